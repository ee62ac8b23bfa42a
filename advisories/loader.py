"""
Loads advisory documents from a directory of YAML files.

Expected file layout ("<package>.advisories.yaml"):

    schema-version: 2.0.2
    package:
      name: openssl
    advisories:
      - id: CGA-2345-6789-cfgh
        aliases:
          - CVE-2024-0727
        events:
          - timestamp: 2024-01-26T16:00:00Z
            type: fixed
            data:
              fixed-version: 3.2.1-r0

Design decisions:
- Only files ending in ".advisories.yaml" are treated as documents
- Paths are stored relative to the repository root for naming checks
- Timestamps are normalized to timezone-aware UTC datetimes
- Malformed files raise DocumentLoadError naming the offending path
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .model import (
    DOCUMENT_FILE_SUFFIX,
    EVENT_TYPE_FIXED,
    Advisory,
    Document,
    Event,
    EventData,
    Fixed,
)
from .snapshot import Snapshot, SnapshotEntry

logger = logging.getLogger(__name__)


class DocumentLoadError(Exception):
    """Raised when an advisory document cannot be read or parsed."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


def load_snapshot(directory: Union[str, Path]) -> Snapshot:
    """
    Load every advisory document found directly under a directory.

    Args:
        directory: Repository root holding "<package>.advisories.yaml" files

    Returns:
        Snapshot with entries ordered by file name

    Raises:
        FileNotFoundError: If the directory does not exist
        DocumentLoadError: If any document is malformed
    """
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Advisories directory not found: {root}")

    entries = []
    for path in sorted(root.glob(f"*{DOCUMENT_FILE_SUFFIX}")):
        document = load_document(path)
        entries.append(SnapshotEntry(path=path.name, document=document))

    logger.info(f"Loaded {len(entries)} advisory documents from {root}")
    return Snapshot(entries)


def load_document(path: Union[str, Path]) -> Document:
    """Load and parse a single advisory document."""
    path = Path(path)
    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise DocumentLoadError(path, f"unable to read YAML: {e}") from e

    return parse_document(raw, source=path)


def parse_document(raw: Any, source: Union[str, Path] = "<memory>") -> Document:
    """
    Convert the decoded YAML structure into a Document.

    Args:
        raw: Mapping decoded from a document file
        source: Path used in error messages

    Returns:
        Parsed Document
    """
    if not isinstance(raw, dict):
        raise DocumentLoadError(source, "document is not a mapping")

    package = raw.get("package") or {}
    if not isinstance(package, dict):
        raise DocumentLoadError(source, "'package' is not a mapping")

    advisories = []
    for i, raw_adv in enumerate(raw.get("advisories") or []):
        if not isinstance(raw_adv, dict):
            raise DocumentLoadError(source, f"advisory {i + 1} is not a mapping")
        advisories.append(_parse_advisory(raw_adv, source))

    return Document(
        package_name=str(package.get("name") or ""),
        advisories=tuple(advisories),
        schema_version=str(raw.get("schema-version") or ""),
    )


def _parse_advisory(raw: Dict[str, Any], source: Union[str, Path]) -> Advisory:
    advisory_id = str(raw.get("id") or "")

    events = []
    for i, raw_event in enumerate(raw.get("events") or []):
        if not isinstance(raw_event, dict):
            raise DocumentLoadError(source, f"{advisory_id}: event {i + 1} is not a mapping")
        events.append(_parse_event(raw_event, source, advisory_id, i))

    return Advisory(
        id=advisory_id,
        aliases=tuple(str(a) for a in raw.get("aliases") or []),
        events=tuple(events),
    )


def _parse_event(
    raw: Dict[str, Any],
    source: Union[str, Path],
    advisory_id: str,
    index: int
) -> Event:
    timestamp = parse_timestamp(raw.get("timestamp"))
    if timestamp is None:
        raise DocumentLoadError(
            source, f"{advisory_id}: event {index + 1} has a missing or invalid timestamp"
        )

    event_type = str(raw.get("type") or "")
    raw_data = raw.get("data")

    data: EventData = None
    if event_type == EVENT_TYPE_FIXED and isinstance(raw_data, dict):
        data = Fixed(fixed_version=str(raw_data.get("fixed-version") or ""))
    elif isinstance(raw_data, dict):
        data = dict(raw_data)

    return Event(type=event_type, timestamp=timestamp, data=data)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Normalize a YAML timestamp (string or datetime) to aware UTC."""
    if value is None:
        return None

    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def dump_document(document: Document) -> Dict[str, Any]:
    """Inverse of parse_document, used for writing fixtures."""
    return {
        "schema-version": document.schema_version,
        "package": {"name": document.package_name},
        "advisories": [
            {
                "id": adv.id,
                **({"aliases": list(adv.aliases)} if adv.aliases else {}),
                "events": [_dump_event(event) for event in adv.events],
            }
            for adv in document.advisories
        ],
    }


def _dump_event(event: Event) -> Dict[str, Any]:
    raw: Dict[str, Any] = {
        "timestamp": event.timestamp.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "type": event.type,
    }
    if isinstance(event.data, Fixed):
        raw["data"] = {"fixed-version": event.data.fixed_version}
    elif event.data:
        raw["data"] = dict(event.data)
    return raw
