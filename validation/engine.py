"""
Orchestrator that runs every applicable validation check.

The validator walks its check table in order. A check whose required
inputs are absent is skipped (logged, not reported). Every other check
runs to completion and contributes its own labeled subtree to one
error report; one check failing never stops the others.

A check that raises ExternalLookupError is recorded as aborted instead
of contributing errors, so callers can tell "the alias data is wrong"
apart from "we could not determine whether the alias data is wrong".
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .checks import Check, default_checks
from .errors import AliasLookupCancelled, ErrorNode, ExternalLookupError
from .inputs import RunControl, ValidationInputs

logger = logging.getLogger(__name__)


@dataclass
class SkippedCheck:
    """A check not run because some of its inputs were not provided."""
    check_id: str
    missing: List[str]


@dataclass
class AbortedCheck:
    """A check that could not finish (external lookup failure or cancellation)."""
    check_id: str
    label: str
    reason: str
    cancelled: bool = False


@dataclass
class ValidationResult:
    """
    Outcome of a validation run.

    Attributes:
        errors: Root of the error tree; one child per check with findings
        checks_run: IDs of checks that ran to completion
        skipped: Checks not run for lack of inputs
        aborted: Checks that started (or were due) but could not finish
        failures_by_check: Count of findings per check ID
    """
    errors: ErrorNode = field(default_factory=lambda: ErrorNode(""))
    checks_run: List[str] = field(default_factory=list)
    skipped: List[SkippedCheck] = field(default_factory=list)
    aborted: List[AbortedCheck] = field(default_factory=list)
    failures_by_check: Dict[str, int] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.errors.is_empty() and not self.aborted

    @property
    def error_count(self) -> int:
        return self.errors.count()

    def render(self) -> str:
        """Human-readable report of findings and aborted checks."""
        if self.passed:
            return "validation passed"

        lines = []
        if not self.errors.is_empty():
            lines.append(self.errors.render())
        for aborted in self.aborted:
            lines.append(f"{aborted.label}: check aborted: {aborted.reason}")
        return "\n".join(lines)


class AdvisoryValidator:
    """
    Runs a table of checks against one set of inputs.

    Adding a check means adding an entry to the table; the orchestrator
    dispatches on each check's declared requirements.
    """

    def __init__(self, checks: Optional[List[Check]] = None):
        """
        Initialize the validator.

        Args:
            checks: Checks to run, in reporting order. If None, uses default_checks().
        """
        self.checks = list(checks) if checks is not None else default_checks()

    def validate(
        self,
        inputs: ValidationInputs,
        cancel_event: Optional[threading.Event] = None
    ) -> ValidationResult:
        """
        Run all applicable checks.

        Args:
            inputs: Snapshots, scope, clock and optional reference datasets
            cancel_event: Set by the caller to cancel the remaining work

        Returns:
            ValidationResult joining every check's findings
        """
        control = RunControl(cancel_event) if cancel_event is not None else RunControl()
        result = ValidationResult()
        logger.info(
            f"Validating {len(inputs.current)} documents (scope: {inputs.scope}, "
            f"baseline: {'yes' if inputs.baseline is not None else 'no'})"
        )

        for check in self.checks:
            missing = inputs.missing(check.requires)
            if missing:
                logger.info(f"Skipping {check.check_id} check, not provided: {', '.join(missing)}")
                result.skipped.append(SkippedCheck(check.check_id, missing))
                continue

            if control.cancelled:
                logger.warning(f"Validation cancelled before {check.check_id} check")
                result.aborted.append(AbortedCheck(
                    check.check_id, check.label, "validation cancelled before check started", cancelled=True
                ))
                continue

            logger.info(f"Running {check.check_id} check")
            try:
                node = check.run(inputs, control)
            except ExternalLookupError as e:
                logger.error(f"{check.check_id} check aborted: {e}")
                result.aborted.append(AbortedCheck(
                    check.check_id, check.label, str(e), cancelled=isinstance(e, AliasLookupCancelled)
                ))
                continue

            node.prune()
            failures = node.count()
            result.checks_run.append(check.check_id)
            result.failures_by_check[check.check_id] = failures
            if failures:
                logger.info(f"{check.check_id} check found {failures} problem(s)")
                result.errors.attach(node)

        logger.info(
            f"Validation {'passed' if result.passed else 'failed'}: "
            f"{result.error_count} problem(s), {len(result.aborted)} aborted, "
            f"{len(result.skipped)} skipped"
        )
        return result


def validate(inputs: ValidationInputs, checks: Optional[List[Check]] = None, **kwargs) -> ValidationResult:
    """Convenience wrapper around AdvisoryValidator.validate."""
    return AdvisoryValidator(checks).validate(inputs, **kwargs)
