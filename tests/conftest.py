"""
Shared pytest fixtures for advisory validation tests.

This module provides a fixed reference clock and small factories for
building documents, so each test states only what it cares about.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from advisories import Advisory, Document, Event, Fixed, Snapshot
from advisories.loader import dump_document
from reference_data import AliasFinder
from validation import ExternalLookupError


NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Reference clock used for recency checks."""
    return NOW


@pytest.fixture
def make_event():
    """
    Factory for events relative to the reference clock.

    Returns:
        Callable(event_type="detection", days_ago=0, fixed_version=None) -> Event
    """
    def _make(event_type="detection", days_ago=0, fixed_version=None, hours_ago=0):
        data = None
        if event_type == "fixed":
            data = Fixed(fixed_version=fixed_version or "1.0.0-r0")
        return Event(
            type=event_type,
            timestamp=NOW - timedelta(days=days_ago, hours=hours_ago),
            data=data,
        )
    return _make


@pytest.fixture
def make_advisory(make_event):
    """
    Factory for advisories; defaults to a single fresh detection event.

    Returns:
        Callable(advisory_id, events=None, aliases=()) -> Advisory
    """
    def _make(advisory_id, events=None, aliases=()):
        if events is None:
            events = [make_event()]
        return Advisory(id=advisory_id, aliases=tuple(aliases), events=tuple(events))
    return _make


@pytest.fixture
def make_document():
    """Factory for documents: make_document(name, *advisories)."""
    def _make(name, *advisories):
        return Document(package_name=name, advisories=tuple(advisories))
    return _make


@pytest.fixture
def snapshot():
    """Build a Snapshot from documents using standard file names."""
    def _make(*documents):
        return Snapshot.from_documents(documents)
    return _make


@pytest.fixture
def write_documents():
    """
    Write documents as YAML files into a directory.

    Returns:
        Callable(directory, *documents) -> directory
    """
    def _write(directory: Path, *documents):
        directory.mkdir(parents=True, exist_ok=True)
        for doc in documents:
            path = directory / f"{doc.name}.advisories.yaml"
            path.write_text(yaml.safe_dump(dump_document(doc), sort_keys=False))
        return directory
    return _write


class FakeAliasFinder(AliasFinder):
    """
    Alias finder with canned answers that records every query.

    Any ID listed in `failing` raises ExternalLookupError.
    """

    def __init__(self, ghsas_by_cve=None, cve_by_ghsa=None, failing=()):
        self.ghsas_by_cve = ghsas_by_cve or {}
        self.cve_by_ghsa = cve_by_ghsa or {}
        self.failing = set(failing)
        self.queries = []

    def ghsas_for_cve(self, cve_id):
        self.queries.append(cve_id)
        if cve_id in self.failing:
            raise ExternalLookupError(f"lookup for {cve_id} failed")
        return list(self.ghsas_by_cve.get(cve_id, []))

    def cve_for_ghsa(self, ghsa_id):
        self.queries.append(ghsa_id)
        if ghsa_id in self.failing:
            raise ExternalLookupError(f"lookup for {ghsa_id} failed")
        return self.cve_by_ghsa.get(ghsa_id)


@pytest.fixture
def fake_alias_finder():
    """Factory for FakeAliasFinder instances."""
    return FakeAliasFinder
