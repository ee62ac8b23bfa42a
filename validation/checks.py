"""
Validation passes run by the orchestrator.

Each check inspects the inputs and returns an ErrorNode subtree labeled
with the check's label. A check that finds nothing returns an empty
node. Checks never raise for validation findings; the only exception
that crosses a check boundary on purpose is ExternalLookupError from
the alias completeness check, which aborts that pass.

Checks:
- BasicValidationCheck: per-document self-consistency
- DocumentNameCheck: file name must be "<package>.advisories.yaml"
- AdvisoryIDUniquenessCheck: advisory IDs unique across selected documents
- DiffPolicyCheck: policy on changes relative to the baseline snapshot
- FixedVersionCheck: fixed versions must be published in the package index
- AliasCompletenessCheck: CVE/GHSA alias policy via the alias finder
"""
import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from advisories import EVENT_TYPE_FIXED, Advisory, Event, Fixed, expected_file_name, is_cve_id, is_ghsa_id
from .diff import diff_snapshots
from .errors import (
    AliasLookupCancelled,
    AliasMissingError,
    AliasPrimaryIDPolicyError,
    AmbiguousEventChangeError,
    DocumentOrAdvisoryRemovedError,
    DuplicateAdvisoryIDError,
    ErrorNode,
    FixedVersionNotFoundError,
    MissingBuildOrIndexLinkageError,
    NamingMismatchError,
    StaleNewEventError,
    StructuralError,
)
from .inputs import RunControl, ValidationInputs

logger = logging.getLogger(__name__)

EVENT_MAX_VALID_AGE_DAYS = 3


class Check(ABC):
    """Base class for all validation passes."""

    def __init__(self, check_id: str, label: str, requires: Sequence[str] = ()):
        self.check_id = check_id
        self.label = label
        self.requires = tuple(requires)

    @abstractmethod
    def run(self, inputs: ValidationInputs, control: RunControl) -> ErrorNode:
        """
        Run the check.

        Returns:
            ErrorNode labeled with self.label; empty when the check passes
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.check_id})"


class BasicValidationCheck(Check):
    """Invokes each selected document's own self-consistency checks."""

    def __init__(self):
        super().__init__("basic", "basic validation failure(s)")

    def run(self, inputs: ValidationInputs, control: RunControl) -> ErrorNode:
        root = ErrorNode(self.label)
        for doc in inputs.selected().documents():
            for problem in doc.validate():
                root.child(doc.name).add(StructuralError(problem))
        return root


class DocumentNameCheck(Check):
    """Document file names must match their package names."""

    def __init__(self):
        super().__init__("naming", "document file name validation failure(s)")

    def run(self, inputs: ValidationInputs, control: RunControl) -> ErrorNode:
        root = ErrorNode(self.label)
        for entry in inputs.selected().entries():
            expected = expected_file_name(entry.document.name)
            if entry.path != expected:
                root.add(NamingMismatchError(found=entry.path, expected=expected))
        return root


class AdvisoryIDUniquenessCheck(Check):
    """
    Advisory IDs must be unique across all selected documents.

    Documents outside the package scope are not scanned at all, so
    uniqueness is only enforced among selected packages.
    """

    def __init__(self):
        super().__init__("uniqueness", "advisory ID uniqueness validation failure(s)")

    def run(self, inputs: ValidationInputs, control: RunControl) -> ErrorNode:
        root = ErrorNode(self.label)
        seen: Dict[str, List[str]] = {}

        for entry in inputs.selected().entries():
            for adv in entry.document.advisories:
                if adv.id in seen:
                    root.add(DuplicateAdvisoryIDError(adv.id, entry.path, seen[adv.id]))
                seen.setdefault(adv.id, []).append(entry.path)

        return root


def is_recent(now: datetime, timestamp: datetime) -> bool:
    return now - timestamp < timedelta(days=EVENT_MAX_VALID_AGE_DAYS)


def check_recency(now: datetime, event: Event) -> Optional[StaleNewEventError]:
    """Newly added events must be timestamped within the recency window."""
    if is_recent(now, event.timestamp):
        return None
    return StaleNewEventError(
        f"event's timestamp ({event.timestamp.isoformat()}) set to more than "
        f"{EVENT_MAX_VALID_AGE_DAYS} days ago; timestamps should accurately "
        f"capture event creation time"
    )


class DiffPolicyCheck(Check):
    """
    Validates the changes between the baseline and current snapshots.

    Policy:
    - Documents and advisories are never removed
    - Existing events are never removed or rewritten
    - Modified documents still map to a build configuration or published package
    - Added documents map to a build configuration
    - Every newly added event carries a recent timestamp
    """

    def __init__(self):
        super().__init__("diff", "invalid change(s) in diff", requires=("baseline",))

    def run(self, inputs: ValidationInputs, control: RunControl) -> ErrorNode:
        root = ErrorNode(self.label)
        diff = diff_snapshots(inputs.baseline, inputs.current)
        logger.info(f"Validating snapshot diff: {diff.summary()}")

        for doc in diff.removed:
            if inputs.scope.includes(doc.name):
                root.child(doc.name).add(DocumentOrAdvisoryRemovedError("document was removed"))

        for doc_diff in diff.modified:
            if not inputs.scope.includes(doc_diff.name):
                continue
            node = root.child(doc_diff.name)

            linkage_error = self._check_modified_linkage(inputs, doc_diff.name)
            if linkage_error:
                node.add(linkage_error)

            for adv in doc_diff.removed:
                node.child(adv.id).add(DocumentOrAdvisoryRemovedError("advisory was removed"))

            for adv_diff in doc_diff.modified:
                adv_node = node.child(adv_diff.id)
                if adv_diff.removed_events:
                    if adv_diff.added_events:
                        # A rewritten event is indistinguishable from removal plus addition
                        adv_node.add(AmbiguousEventChangeError("one or more events were modified or removed"))
                    else:
                        adv_node.add(AmbiguousEventChangeError("one or more events were removed"))
                self._check_added_events(inputs.now, adv_node, adv_diff.added_events)

            for adv in doc_diff.added:
                self._check_added_events(inputs.now, node.child(adv.id), adv.events)

        for doc in diff.added:
            if not inputs.scope.includes(doc.name):
                continue
            node = root.child(doc.name)

            linkage_error = self._check_added_linkage(inputs, doc.name)
            if linkage_error:
                node.add(linkage_error)

            for adv in doc.advisories:
                self._check_added_events(inputs.now, node.child(adv.id), adv.events)

        return root

    def _check_added_events(self, now: datetime, node: ErrorNode, events: Sequence[Event]) -> None:
        for i, event in enumerate(events):
            error = check_recency(now, event)
            if error:
                node.child(f"event {i + 1} (just added)").add(error)

    def _check_modified_linkage(
        self,
        inputs: ValidationInputs,
        package_name: str
    ) -> Optional[MissingBuildOrIndexLinkageError]:
        """
        Modified documents need a build configuration or a published package.

        Judged only when both datasets are present: a retired build
        configuration is fine as long as the package is still published.
        """
        if inputs.build_configs is None or inputs.package_index is None:
            logger.debug(f"{package_name}: skipping linkage check, build configs or package index not provided")
            return None

        if package_name in inputs.build_configs or package_name in inputs.package_index:
            return None

        return MissingBuildOrIndexLinkageError(
            "package not found as a build configuration in the distro or as an entry in the package index"
        )

    def _check_added_linkage(
        self,
        inputs: ValidationInputs,
        package_name: str
    ) -> Optional[MissingBuildOrIndexLinkageError]:
        """New documents must be backed by an active build configuration."""
        if inputs.build_configs is None:
            logger.debug(f"{package_name}: skipping linkage check, build configs not provided")
            return None

        if package_name in inputs.build_configs:
            return None

        return MissingBuildOrIndexLinkageError("package build configuration not found in the distro")


class FixedVersionCheck(Check):
    """Every fixed version must be a published version of the package."""

    def __init__(self):
        super().__init__("fixed_version", "fixed version validation failure(s)", requires=("package_index",))

    def run(self, inputs: ValidationInputs, control: RunControl) -> ErrorNode:
        root = ErrorNode(self.label)
        index = inputs.package_index
        documents = inputs.selected().documents()
        logger.debug(f"Validating fixed versions for {len(documents)} documents")

        for doc in documents:
            versions = index.versions(doc.name)
            for adv in doc.advisories:
                for i, event in enumerate(adv.events):
                    if event.type != EVENT_TYPE_FIXED:
                        continue

                    event_node = root.child(doc.name).child(adv.id).child(f"event {i + 1} (type: {event.type})")
                    if not isinstance(event.data, Fixed):
                        event_node.add(StructuralError("event data is not of type fixed"))
                        continue

                    fixed_version = event.data.fixed_version
                    if versions is None:
                        event_node.add(FixedVersionNotFoundError("package not found in package index"))
                    elif fixed_version not in versions:
                        event_node.add(FixedVersionNotFoundError(
                            f"package version {fixed_version!r} not found in package index"
                        ))
                    else:
                        logger.debug(f"{doc.name}: version {fixed_version} found in package index")

        return root


AliasQuery = Tuple[str, str]


class AliasCompletenessCheck(Check):
    """
    Enforces the CVE/GHSA alias policy.

    - A CVE advisory must list every GHSA known to correspond to it
    - A GHSA must not be the advisory ID when a CVE exists for it

    Lookups are deduplicated per run and may run concurrently. Any lookup
    failure, cancellation, or timeout aborts the whole pass by raising
    ExternalLookupError.
    """

    POLL_INTERVAL_SECONDS = 0.1

    def __init__(self, workers: int = 4, timeout_seconds: Optional[float] = None):
        super().__init__("alias", "alias set completeness validation failure(s)", requires=("alias_finder",))
        self.workers = max(1, int(workers))
        self.timeout_seconds = timeout_seconds

    def run(self, inputs: ValidationInputs, control: RunControl) -> ErrorNode:
        root = ErrorNode(self.label)
        documents = inputs.selected().documents()

        queries = list(dict.fromkeys(
            query for doc in documents for adv in doc.advisories
            for query in [self._query_for(adv)] if query
        ))
        logger.info(f"Validating alias set completeness ({len(queries)} unique lookups)")
        answers = self._resolve_all(inputs.alias_finder, queries, control)

        for doc in documents:
            for adv in doc.advisories:
                query = self._query_for(adv)
                if query is None:
                    continue
                answer = answers[query]

                if query[0] == "cve":
                    for ghsa in answer:
                        if ghsa not in adv.aliases:
                            root.child(doc.name).child(adv.id).add(AliasMissingError(ghsa, adv.aliases))
                elif answer:
                    root.child(doc.name).child(adv.id).add(AliasPrimaryIDPolicyError(adv.id, answer))

        return root

    @staticmethod
    def _query_for(adv: Advisory) -> Optional[AliasQuery]:
        if is_cve_id(adv.id):
            return ("cve", adv.id)
        if is_ghsa_id(adv.id):
            return ("ghsa", adv.id)
        return None

    @staticmethod
    def _lookup(finder, query: AliasQuery):
        kind, vuln_id = query
        if kind == "cve":
            return finder.ghsas_for_cve(vuln_id)
        return finder.cve_for_ghsa(vuln_id)

    def _resolve_all(self, finder, queries: List[AliasQuery], control: RunControl) -> Dict[AliasQuery, object]:
        deadline = time.monotonic() + self.timeout_seconds if self.timeout_seconds else None
        answers: Dict[AliasQuery, object] = {}

        if self.workers == 1:
            for query in queries:
                self._raise_if_stopped(control, deadline, len(answers), len(queries))
                answers[query] = self._lookup(finder, query)
            return answers

        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="alias-lookup")
        try:
            futures = {executor.submit(self._lookup, finder, query): query for query in queries}
            pending = set(futures)
            while pending:
                self._raise_if_stopped(control, deadline, len(answers), len(queries))
                done, pending = wait(pending, timeout=self.POLL_INTERVAL_SECONDS, return_when=FIRST_COMPLETED)
                for future in done:
                    # Re-raises ExternalLookupError from the worker
                    answers[futures[future]] = future.result()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return answers

    @staticmethod
    def _raise_if_stopped(control: RunControl, deadline: Optional[float], completed: int, total: int) -> None:
        if control.cancelled:
            raise AliasLookupCancelled(f"alias lookups cancelled after {completed} of {total} queries")
        if deadline is not None and time.monotonic() >= deadline:
            raise AliasLookupCancelled(f"alias lookups timed out after {completed} of {total} queries")


def default_checks(alias_workers: int = 4, alias_timeout_seconds: Optional[float] = None) -> List[Check]:
    """
    Return the standard check table, in reporting order.

    Args:
        alias_workers: Concurrent alias lookups
        alias_timeout_seconds: Deadline for the whole alias pass

    Returns:
        List of Check instances
    """
    return [
        BasicValidationCheck(),
        DocumentNameCheck(),
        AdvisoryIDUniquenessCheck(),
        DiffPolicyCheck(),
        FixedVersionCheck(),
        AliasCompletenessCheck(workers=alias_workers, timeout_seconds=alias_timeout_seconds),
    ]
