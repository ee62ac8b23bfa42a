"""
Read-only snapshot of an advisory repository.

A Snapshot is the full document set at one point in time (e.g. the
working tree, or the merge base of a pull request). Entries are
addressed by the document's path relative to the repository root.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .model import Document, expected_file_name


@dataclass(frozen=True)
class SnapshotEntry:
    """A document together with the path it was loaded from."""
    path: str
    document: Document


class Snapshot:
    """
    Immutable, ordered collection of advisory documents.

    Entry order is preserved from construction so that every consumer
    (diffing, checks, reporting) iterates deterministically.
    """

    def __init__(self, entries: Iterable[SnapshotEntry] = ()):
        self._entries: Tuple[SnapshotEntry, ...] = tuple(entries)
        self._by_name: Dict[str, Document] = {}
        for entry in self._entries:
            self._by_name.setdefault(entry.document.name, entry.document)

    @classmethod
    def from_documents(cls, documents: Iterable[Document]) -> "Snapshot":
        """Build a snapshot whose paths follow the standard file naming."""
        return cls(
            SnapshotEntry(path=expected_file_name(doc.name), document=doc)
            for doc in documents
        )

    def entries(self) -> Tuple[SnapshotEntry, ...]:
        return self._entries

    def documents(self) -> List[Document]:
        return [entry.document for entry in self._entries]

    def names(self) -> List[str]:
        return [entry.document.name for entry in self._entries]

    def get(self, name: str) -> Optional[Document]:
        return self._by_name.get(name)

    def select(self, scope=None) -> "Snapshot":
        """
        Return a snapshot limited to the packages a scope includes.

        Args:
            scope: Object with an includes(name) method, or None for all

        Returns:
            New Snapshot sharing the selected entries
        """
        if scope is None:
            return self
        return Snapshot(e for e in self._entries if scope.includes(e.document.name))

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[SnapshotEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"Snapshot({len(self._entries)} documents)"
