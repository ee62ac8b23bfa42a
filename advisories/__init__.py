"""
Advisory document model.

Provides the read-only in-memory representation of an advisory
repository and the loader that builds it from YAML files.
"""
from .loader import DocumentLoadError, load_document, load_snapshot, parse_document
from .model import (
    EVENT_TYPE_FIXED,
    EVENT_TYPES,
    Advisory,
    Document,
    Event,
    Fixed,
    expected_file_name,
    is_cve_id,
    is_ghsa_id,
)
from .snapshot import Snapshot, SnapshotEntry

__all__ = [
    "Advisory",
    "Document",
    "DocumentLoadError",
    "Event",
    "EVENT_TYPE_FIXED",
    "EVENT_TYPES",
    "Fixed",
    "Snapshot",
    "SnapshotEntry",
    "expected_file_name",
    "is_cve_id",
    "is_ghsa_id",
    "load_document",
    "load_snapshot",
    "parse_document",
]
