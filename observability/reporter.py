"""
Generate human-readable validation reports in Markdown format.

Report sections:
- Header with run metadata (ID, timestamp, duration, verdict)
- Summary table with document and finding counts
- Check table showing which checks ran, were skipped, or aborted
- Findings by error kind
- The full error tree, as a code block for reviewers

Design decisions:
- Markdown output so the report can be posted on a pull request
- Uses tabulate for GitHub-flavored tables
- Reports saved with timestamp for historical tracking
"""
from datetime import datetime
from pathlib import Path
from typing import List

from tabulate import tabulate

from .metrics import ValidationMetrics


class ValidationReporter:
    """Generates Markdown reports from validation metrics and results."""

    def generate_report(self, metrics: ValidationMetrics, result) -> str:
        """
        Generate the full run report.

        Args:
            metrics: ValidationMetrics for the completed run
            result: ValidationResult returned by the validator

        Returns:
            Markdown-formatted report as string
        """
        lines: List[str] = []

        lines.append("# Advisory Validation Report")
        lines.append(f"**Run ID:** {metrics.run_id}")
        lines.append(f"**Started:** {metrics.started_at.isoformat()}")
        if metrics.completed_at:
            duration = (metrics.completed_at - metrics.started_at).total_seconds()
            lines.append(f"**Duration:** {duration:.1f} seconds")
        lines.append(f"**Result:** {'PASSED' if result.passed else 'FAILED'}")
        lines.append("")

        lines.append("## Summary")
        summary_data = [
            ["Documents", metrics.documents_total],
            ["Documents In Scope", metrics.documents_in_scope],
            ["Baseline Documents", metrics.baseline_documents],
            ["Findings", metrics.total_failures],
            ["Alias Lookups", metrics.alias_lookups],
        ]
        lines.append(tabulate(summary_data, headers=["Metric", "Value"], tablefmt="github"))
        lines.append("")

        lines.append("## Checks")
        check_data = []
        for check_id in metrics.checks_run:
            failures = metrics.failures_by_check.get(check_id, 0)
            status = "✓" if failures == 0 else "✗"
            check_data.append([status, check_id, f"{failures} finding(s)"])
        for check_id, missing in metrics.checks_skipped.items():
            check_data.append(["-", check_id, f"skipped (not provided: {', '.join(missing)})"])
        for check_id, reason in metrics.checks_aborted.items():
            check_data.append(["!", check_id, f"aborted: {reason}"])
        lines.append(tabulate(check_data, headers=["Status", "Check", "Details"], tablefmt="github"))
        lines.append("")

        if metrics.failures_by_kind:
            lines.append("## Findings By Kind")
            kind_data = [[k, v] for k, v in sorted(metrics.failures_by_kind.items())]
            lines.append(tabulate(kind_data, headers=["Kind", "Count"], tablefmt="github"))
            lines.append("")

        if not result.passed:
            lines.append("## Details")
            lines.append("```")
            lines.append(result.render())
            lines.append("```")
            lines.append("")

        return "\n".join(lines)

    def save_report(self, report: str, output_dir: Path) -> Path:
        """
        Save report to file with timestamp.

        Args:
            report: Markdown report content
            output_dir: Directory to save report in

        Returns:
            Path to saved report file
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.utcnow().strftime("%Y%m%d-%H%M%S")
        filepath = output_dir / f"validation-report-{timestamp}.md"
        filepath.write_text(report)
        return filepath
