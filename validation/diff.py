"""
Structural diff between two advisory snapshots.

The diff is computed at three levels:
1. Documents, keyed by package name (added / removed / modified)
2. Advisories within a modified document, keyed by advisory ID
3. Events within a modified advisory, as a value-equality set difference

Design decisions:
- Pure and total: missing documents or advisories are diff outcomes, never errors
- Deep-equal documents and advisories contribute nothing; anything else that
  differs (including aliases or schema version) is reported as modified
- Event diffing is coarse. An event whose timestamp or payload changed shows
  up as one removed event plus one added event; consumers must treat the
  combination as ambiguous rather than as a modification
- Ordering follows the current snapshot (baseline for removals), so
  results are deterministic
"""
from dataclasses import dataclass, field, replace
from typing import Dict, List, Sequence

from advisories import Advisory, Document, Event, Snapshot


@dataclass
class AdvisoryDiff:
    """Event-level changes to an advisory present in both snapshots."""
    id: str
    added_events: List[Event] = field(default_factory=list)
    removed_events: List[Event] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.added_events and not self.removed_events


@dataclass
class DocumentDiff:
    """Advisory-level changes to a document present in both snapshots."""
    name: str
    added: List[Advisory] = field(default_factory=list)
    removed: List[Advisory] = field(default_factory=list)
    modified: List[AdvisoryDiff] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.added and not self.removed and not self.modified


@dataclass
class SnapshotDiff:
    """Document-level delta between a baseline and a current snapshot."""
    added: List[Document] = field(default_factory=list)
    removed: List[Document] = field(default_factory=list)
    modified: List[DocumentDiff] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.added and not self.removed and not self.modified

    def summary(self) -> Dict[str, int]:
        return {
            "documents_added": len(self.added),
            "documents_removed": len(self.removed),
            "documents_modified": len(self.modified),
            "advisories_added": sum(len(d.added) for d in self.modified),
            "advisories_removed": sum(len(d.removed) for d in self.modified),
            "advisories_modified": sum(len(d.modified) for d in self.modified),
        }


def diff_snapshots(baseline: Snapshot, current: Snapshot) -> SnapshotDiff:
    """
    Compute the structural delta from baseline to current.

    Args:
        baseline: Snapshot used as the comparison basis
        current: Snapshot containing the proposed changes

    Returns:
        SnapshotDiff; empty when the snapshots hold equal documents
    """
    result = SnapshotDiff()
    base_docs = _documents_by_name(baseline)
    current_docs = _documents_by_name(current)

    for name, doc in current_docs.items():
        base_doc = base_docs.get(name)
        if base_doc is None:
            result.added.append(doc)
        elif base_doc != doc:
            result.modified.append(diff_documents(base_doc, doc))

    for name, base_doc in base_docs.items():
        if name not in current_docs:
            result.removed.append(base_doc)

    return result


def diff_documents(baseline: Document, current: Document) -> DocumentDiff:
    """Diff two versions of the same document by advisory ID."""
    result = DocumentDiff(name=current.name)
    base_by_id = {adv.id: adv for adv in baseline.advisories}
    current_ids = {adv.id for adv in current.advisories}

    for adv in current.advisories:
        base_adv = base_by_id.get(adv.id)
        if base_adv is None:
            result.added.append(adv)
        elif base_adv != adv:
            result.modified.append(diff_advisories(base_adv, adv))

    for base_adv in baseline.advisories:
        if base_adv.id not in current_ids:
            result.removed.append(base_adv)

    return result


def diff_advisories(baseline: Advisory, current: Advisory) -> AdvisoryDiff:
    """
    Diff the events of two versions of the same advisory.

    Alias-only changes produce an AdvisoryDiff with no event changes; the
    advisory is still reported as modified.
    """
    return AdvisoryDiff(
        id=current.id,
        added_events=_events_missing_from(current.events, baseline.events),
        removed_events=_events_missing_from(baseline.events, current.events),
    )


def _events_missing_from(events: Sequence[Event], other: Sequence[Event]) -> List[Event]:
    # Events may carry unhashable payloads, so membership is by equality scan
    return [event for event in events if event not in other]


def _documents_by_name(snapshot: Snapshot) -> Dict[str, Document]:
    """
    Key a snapshot's documents by package name.

    Several files may claim the same package (the naming check reports
    that); their advisories are merged in path order into one document so
    each package is diffed exactly once.
    """
    grouped: Dict[str, Document] = {}
    for doc in snapshot.documents():
        seen = grouped.get(doc.name)
        if seen is None:
            grouped[doc.name] = doc
        else:
            grouped[doc.name] = replace(seen, advisories=seen.advisories + doc.advisories)
    return grouped
