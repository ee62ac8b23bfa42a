"""
Lightweight validation tests for the observability layer.

These tests verify:
- ValidationMetrics copies check outcomes from a ValidationResult
- ValidationMetrics serializes to dict properly
- ValidationReporter generates valid Markdown output

Not comprehensive unit tests - just sanity checks to ensure
the observability layer can be integrated into the CLI.
"""
import json
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from observability import ValidationMetrics, ValidationReporter, new_run_id
from validation import AbortedCheck, ErrorNode, SkippedCheck, StaleNewEventError, StructuralError, ValidationResult


def make_result():
    result = ValidationResult()
    basic = ErrorNode("basic validation failure(s)")
    basic.child("curl").add(StructuralError("advisory has no events"))
    basic.child("zlib").add(StructuralError("missing package name"))
    result.errors.attach(basic)
    diff = ErrorNode("invalid change(s) in diff")
    diff.child("curl").child("CVE-2024-0001").child("event 1 (just added)").add(StaleNewEventError("too old"))
    result.errors.attach(diff)

    result.checks_run = ["basic", "naming", "diff"]
    result.failures_by_check = {"basic": 2, "naming": 0, "diff": 1}
    result.skipped = [SkippedCheck("fixed_version", ["package_index"])]
    return result


def test_new_run_id_format():
    """Verify run IDs are derived from the start time."""
    assert new_run_id(datetime(2024, 1, 15, 12, 5, 30)) == "run_20240115_120530"


def test_metrics_record_result():
    """Verify ValidationMetrics copies check outcomes and counts kinds."""
    metrics = ValidationMetrics(run_id="test_run", started_at=datetime.utcnow())

    metrics.record_result(make_result())

    assert metrics.checks_run == ["basic", "naming", "diff"]
    assert metrics.checks_skipped == {"fixed_version": ["package_index"]}
    assert metrics.failures_by_check["basic"] == 2
    assert metrics.failures_by_kind["structural"] == 2
    assert metrics.failures_by_kind["stale_event"] == 1
    assert metrics.total_failures == 3
    assert not metrics.passed


def test_metrics_aborted_check_fails_run():
    """Verify an aborted check fails the run even with zero findings."""
    metrics = ValidationMetrics(run_id="test_run", started_at=datetime.utcnow())
    result = ValidationResult()
    result.aborted = [AbortedCheck("alias", "alias set completeness validation failure(s)", "timed out")]

    metrics.record_result(result)

    assert metrics.total_failures == 0
    assert metrics.checks_aborted == {"alias": "timed out"}
    assert not metrics.passed


def test_metrics_serialization():
    """Verify ValidationMetrics can be serialized to JSON."""
    metrics = ValidationMetrics(
        run_id="test_run",
        started_at=datetime(2024, 1, 15, 12, 0, 0),
        completed_at=datetime(2024, 1, 15, 12, 0, 3)
    )
    metrics.documents_total = 10
    metrics.documents_in_scope = 4
    metrics.record_result(make_result())

    data = metrics.to_dict()

    assert data["run_id"] == "test_run"
    assert data["started_at"] == "2024-01-15T12:00:00"
    assert data["documents_in_scope"] == 4
    assert data["failures_by_kind"] == {"structural": 2, "stale_event": 1}
    assert data["total_failures"] == 3
    assert data["passed"] is False
    assert isinstance(data["failures_by_check"], dict)
    json.dumps(data)


def test_reporter_generates_markdown():
    """Verify ValidationReporter produces a Markdown report with all sections."""
    metrics = ValidationMetrics(
        run_id="test_run",
        started_at=datetime(2024, 1, 15, 12, 0, 0),
        completed_at=datetime(2024, 1, 15, 12, 0, 3)
    )
    result = make_result()
    metrics.record_result(result)

    report = ValidationReporter().generate_report(metrics, result)

    assert "# Advisory Validation Report" in report
    assert "**Run ID:** test_run" in report
    assert "**Duration:** 3.0 seconds" in report
    assert "**Result:** FAILED" in report
    assert "## Summary" in report
    assert "## Checks" in report
    assert "skipped (not provided: package_index)" in report
    assert "## Findings By Kind" in report
    assert "event 1 (just added):" in report


def test_reporter_passing_run_has_no_details():
    """Verify a passing run omits the findings sections."""
    metrics = ValidationMetrics(run_id="test_run", started_at=datetime(2024, 1, 15, 12, 0, 0))
    result = ValidationResult(checks_run=["basic"], failures_by_check={"basic": 0})
    metrics.record_result(result)

    report = ValidationReporter().generate_report(metrics, result)

    assert "**Result:** PASSED" in report
    assert "## Details" not in report
    assert "## Findings By Kind" not in report


def test_reporter_saves_file(tmp_path):
    """Verify reports are written with a timestamped file name."""
    path = ValidationReporter().save_report("# report", tmp_path / "reports")

    assert path.exists()
    assert path.name.startswith("validation-report-")
    assert path.suffix == ".md"
    assert path.read_text() == "# report"
