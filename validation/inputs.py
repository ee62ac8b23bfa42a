"""
Inputs shared by every validation pass.

ValidationInputs bundles the current snapshot with the optional
comparison basis and reference datasets. Each optional field is either
present or None; checks declare which ones they require and the
orchestrator skips a check when any of them is absent.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from advisories import Snapshot
from .scope import PackageScope


@dataclass
class ValidationInputs:
    """
    Everything a validation run reads. Nothing here is mutated by checks.

    Attributes:
        current: Snapshot being validated
        baseline: Comparison basis (e.g. merge base); enables diff policy checks
        scope: Package selection applied by every check
        now: Reference time for recency checks
        build_configs: BuildConfigIndex-like object supporting `name in index`
        package_index: PackageIndex-like object with versions(name)
        alias_finder: AliasFinder with ghsas_for_cve / cve_for_ghsa
    """
    current: Snapshot
    baseline: Optional[Snapshot] = None
    scope: PackageScope = field(default_factory=PackageScope)
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    build_configs: Optional[Any] = None
    package_index: Optional[Any] = None
    alias_finder: Optional[Any] = None

    def __post_init__(self):
        if self.now.tzinfo is None:
            self.now = self.now.replace(tzinfo=timezone.utc)

    def available(self, name: str) -> bool:
        return getattr(self, name, None) is not None

    def missing(self, names: Sequence[str]) -> List[str]:
        return [name for name in names if not self.available(name)]

    def selected(self) -> Snapshot:
        """Current snapshot limited to the package scope."""
        return self.current.select(self.scope)


@dataclass
class RunControl:
    """Caller-supplied cancellation for a validation run."""
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()
