"""
Document model for advisory files.

A document tracks the advisories for a single package. Each advisory holds
its aliases and the chronological list of events recorded against it.

Design decisions:
- All types are frozen dataclasses so snapshots stay read-only for a run
- Sequences are tuples; equality is structural, which the diff engine relies on
- Events are kept in authoring order, never re-sorted by timestamp
- validate() returns problems instead of raising, so callers can aggregate
"""
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union


EVENT_TYPE_DETECTION = "detection"
EVENT_TYPE_TRUE_POSITIVE_DETERMINATION = "true-positive-determination"
EVENT_TYPE_FIXED = "fixed"
EVENT_TYPE_FALSE_POSITIVE_DETERMINATION = "false-positive-determination"
EVENT_TYPE_ANALYSIS_NOT_PLANNED = "analysis-not-planned"
EVENT_TYPE_FIX_NOT_PLANNED = "fix-not-planned"
EVENT_TYPE_PENDING_UPSTREAM_FIX = "pending-upstream-fix"

EVENT_TYPES = (
    EVENT_TYPE_DETECTION,
    EVENT_TYPE_TRUE_POSITIVE_DETERMINATION,
    EVENT_TYPE_FIXED,
    EVENT_TYPE_FALSE_POSITIVE_DETERMINATION,
    EVENT_TYPE_ANALYSIS_NOT_PLANNED,
    EVENT_TYPE_FIX_NOT_PLANNED,
    EVENT_TYPE_PENDING_UPSTREAM_FIX,
)

CVE_ID_PATTERN = re.compile(r"^CVE-\d{4}-\d{4,}$")
GHSA_ID_PATTERN = re.compile(r"^GHSA(-[23456789cfghjmpqrvwx]{4}){3}$")
INTERNAL_ID_PATTERN = re.compile(r"^CGA(-[23456789cfghjmpqrvwx]{4}){3}$")

DOCUMENT_FILE_SUFFIX = ".advisories.yaml"


def is_cve_id(value: str) -> bool:
    return value.startswith("CVE-")


def is_ghsa_id(value: str) -> bool:
    return value.startswith("GHSA-")


def is_valid_advisory_id(value: str) -> bool:
    """Check an ID against the CVE, GHSA and internal schemes."""
    return bool(
        CVE_ID_PATTERN.match(value)
        or GHSA_ID_PATTERN.match(value)
        or INTERNAL_ID_PATTERN.match(value)
    )


def is_valid_alias(value: str) -> bool:
    return bool(CVE_ID_PATTERN.match(value) or GHSA_ID_PATTERN.match(value))


def expected_file_name(package_name: str) -> str:
    """File name a package's advisory document must be stored under."""
    return f"{package_name}{DOCUMENT_FILE_SUFFIX}"


@dataclass(frozen=True)
class Fixed:
    """Payload of a "fixed" event."""
    fixed_version: str


EventData = Union[Fixed, Dict[str, Any], None]


@dataclass(frozen=True)
class Event:
    """
    A timestamped remediation or status entry within an advisory.

    Equality covers type, timestamp and payload, which is what the diff
    engine uses to decide whether an event was added or removed.
    """
    type: str
    timestamp: datetime
    data: EventData = None

    @property
    def fixed_version(self) -> Optional[str]:
        if isinstance(self.data, Fixed):
            return self.data.fixed_version
        return None


@dataclass(frozen=True)
class Advisory:
    """A tracked vulnerability for one package."""
    id: str
    aliases: Tuple[str, ...] = ()
    events: Tuple[Event, ...] = ()

    def validate(self) -> List[str]:
        problems = []

        if not is_valid_advisory_id(self.id):
            problems.append(f"invalid advisory ID {self.id!r}")

        seen_aliases = set()
        for alias in self.aliases:
            if alias == self.id:
                problems.append(f"alias {alias!r} duplicates the advisory ID")
            elif not is_valid_alias(alias):
                problems.append(f"invalid alias {alias!r}")
            if alias in seen_aliases:
                problems.append(f"alias {alias!r} listed more than once")
            seen_aliases.add(alias)

        if not self.events:
            problems.append("advisory has no events")

        for i, event in enumerate(self.events):
            label = f"event {i + 1}"
            if event.type not in EVENT_TYPES:
                problems.append(f"{label}: unknown event type {event.type!r}")
                continue
            if event.timestamp is None:
                problems.append(f"{label}: missing timestamp")
            if event.type == EVENT_TYPE_FIXED:
                if not isinstance(event.data, Fixed):
                    problems.append(f"{label}: fixed event has no fixed version data")
                elif not event.data.fixed_version.strip():
                    problems.append(f"{label}: fixed version is empty")

        return problems


@dataclass(frozen=True)
class Document:
    """
    Advisory document for a single package.

    The package name is the document's identity. Advisory IDs must be
    unique within the document; uniqueness across documents is enforced
    by the validation engine.
    """
    package_name: str
    advisories: Tuple[Advisory, ...] = ()
    schema_version: str = "2.0.2"

    @property
    def name(self) -> str:
        return self.package_name

    def get_advisory(self, advisory_id: str) -> Optional[Advisory]:
        for adv in self.advisories:
            if adv.id == advisory_id:
                return adv
        return None

    def validate(self) -> List[str]:
        """
        Run the document's own self-consistency checks.

        Returns:
            List of problem descriptions; empty when the document is valid
        """
        problems = []

        if not self.schema_version:
            problems.append("missing schema version")

        if not self.package_name or not self.package_name.strip():
            problems.append("missing package name")

        if not self.advisories:
            problems.append("document has no advisories")

        seen_ids = set()
        for adv in self.advisories:
            if adv.id in seen_ids:
                problems.append(f"advisory ID {adv.id!r} appears more than once in the document")
            seen_ids.add(adv.id)

            problems.extend(f"{adv.id}: {problem}" for problem in adv.validate())

        return problems
