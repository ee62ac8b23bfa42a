"""
Diff-driven validation engine for advisory repositories.

Computes the delta between a baseline and a current snapshot and runs
a table of independent checks, joining their findings into a single
hierarchical error report.
"""
from .errors import (
    AdvisoryValidationError,
    AliasLookupCancelled,
    AliasMissingError,
    AliasPrimaryIDPolicyError,
    AmbiguousEventChangeError,
    DocumentOrAdvisoryRemovedError,
    DuplicateAdvisoryIDError,
    ErrorNode,
    ExternalLookupError,
    FixedVersionNotFoundError,
    MissingBuildOrIndexLinkageError,
    NamingMismatchError,
    StaleNewEventError,
    StructuralError,
)
from .scope import PackageScope
from .diff import AdvisoryDiff, DocumentDiff, SnapshotDiff, diff_snapshots
from .inputs import RunControl, ValidationInputs
from .checks import EVENT_MAX_VALID_AGE_DAYS, Check, default_checks
from .engine import AbortedCheck, AdvisoryValidator, SkippedCheck, ValidationResult, validate

__all__ = [
    "AbortedCheck",
    "AdvisoryDiff",
    "AdvisoryValidationError",
    "AdvisoryValidator",
    "AliasLookupCancelled",
    "AliasMissingError",
    "AliasPrimaryIDPolicyError",
    "AmbiguousEventChangeError",
    "Check",
    "DocumentDiff",
    "DocumentOrAdvisoryRemovedError",
    "DuplicateAdvisoryIDError",
    "ErrorNode",
    "EVENT_MAX_VALID_AGE_DAYS",
    "ExternalLookupError",
    "FixedVersionNotFoundError",
    "MissingBuildOrIndexLinkageError",
    "NamingMismatchError",
    "PackageScope",
    "RunControl",
    "SkippedCheck",
    "SnapshotDiff",
    "StaleNewEventError",
    "StructuralError",
    "ValidationInputs",
    "ValidationResult",
    "default_checks",
    "diff_snapshots",
    "validate",
]
