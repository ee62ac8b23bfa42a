"""
Metrics collection for validation runs.

This module provides ValidationMetrics, a dataclass that tracks the
observability metrics for a single validation run:
- Document counts (total and in scope)
- Which checks ran, were skipped, or were aborted
- Findings per check and per error kind
- Alias lookups issued against the remote service

Design decisions:
- Single metrics object per run, populated from the ValidationResult
- Counters use defaultdict for automatic initialization
- Serializable to_dict() for JSON output alongside the report
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List


def new_run_id(now: datetime) -> str:
    """Run ID in format: run_YYYYMMDD_HHMMSS"""
    return f"run_{now.strftime('%Y%m%d_%H%M%S')}"


@dataclass
class ValidationMetrics:
    """
    Metrics for a single validation run.

    Tracks what was validated, which checks ran, and what they found.
    """
    run_id: str
    started_at: datetime
    completed_at: datetime = None

    documents_total: int = 0
    documents_in_scope: int = 0
    baseline_documents: int = 0

    checks_run: List[str] = field(default_factory=list)
    checks_skipped: Dict[str, List[str]] = field(default_factory=dict)
    checks_aborted: Dict[str, str] = field(default_factory=dict)

    # Key: check ID, Value: number of findings
    failures_by_check: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    # Key: error kind (e.g. "stale_event"), Value: number of findings
    failures_by_kind: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    alias_lookups: int = 0

    @property
    def total_failures(self) -> int:
        return sum(self.failures_by_check.values())

    @property
    def passed(self) -> bool:
        return self.total_failures == 0 and not self.checks_aborted

    def record_result(self, result) -> None:
        """
        Copy check outcomes from a ValidationResult.

        Args:
            result: ValidationResult returned by the validator
        """
        self.checks_run = list(result.checks_run)
        self.checks_skipped = {s.check_id: list(s.missing) for s in result.skipped}
        self.checks_aborted = {a.check_id: a.reason for a in result.aborted}

        for check_id, count in result.failures_by_check.items():
            self.failures_by_check[check_id] += count

        for _, error in result.errors.leaves():
            self.failures_by_kind[error.kind] += 1

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert metrics to dictionary for JSON serialization.

        Returns:
            Dictionary representation with defaultdicts converted to dicts
        """
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "passed": self.passed,
            "documents_total": self.documents_total,
            "documents_in_scope": self.documents_in_scope,
            "baseline_documents": self.baseline_documents,
            "checks_run": self.checks_run,
            "checks_skipped": self.checks_skipped,
            "checks_aborted": self.checks_aborted,
            "failures_by_check": dict(self.failures_by_check),
            "failures_by_kind": dict(self.failures_by_kind),
            "total_failures": self.total_failures,
            "alias_lookups": self.alias_lookups,
        }
