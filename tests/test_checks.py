"""
Tests for the snapshot-only checks: basic validation, naming,
advisory ID uniqueness, and fixed-version existence.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from advisories import Event, Snapshot, SnapshotEntry
from reference_data import PackageIndex
from validation import (
    DuplicateAdvisoryIDError,
    FixedVersionNotFoundError,
    NamingMismatchError,
    PackageScope,
    RunControl,
    StructuralError,
    ValidationInputs,
)
from validation.checks import (
    AdvisoryIDUniquenessCheck,
    BasicValidationCheck,
    DocumentNameCheck,
    FixedVersionCheck,
)


def run_check(check, **kwargs):
    return check.run(ValidationInputs(**kwargs), RunControl()).prune()


class TestBasicValidationCheck:
    """Per-document self validation, collected per document."""

    def test_valid_documents_pass(self, snapshot, make_document, make_advisory, now):
        snap = snapshot(make_document("a", make_advisory("CVE-2024-0001")))

        assert run_check(BasicValidationCheck(), current=snap, now=now).is_empty()

    def test_failures_labeled_by_document(self, snapshot, make_document, make_advisory, now):
        snap = snapshot(
            make_document("good", make_advisory("CVE-2024-0001")),
            make_document("bad", make_advisory("BOGUS-1")),
        )

        node = run_check(BasicValidationCheck(), current=snap, now=now)

        assert [c.label for c in node.children] == ["bad"]
        [(path, error)] = list(node.leaves())
        assert path == ("basic validation failure(s)", "bad")
        assert isinstance(error, StructuralError)

    def test_out_of_scope_documents_skipped(self, snapshot, make_document, make_advisory, now):
        snap = snapshot(make_document("bad", make_advisory("BOGUS-1")))

        node = run_check(BasicValidationCheck(), current=snap, now=now, scope=PackageScope(["other"]))

        assert node.is_empty()


class TestDocumentNameCheck:
    """File name must be <package>.advisories.yaml."""

    def test_matching_names_pass(self, snapshot, make_document, make_advisory, now):
        snap = snapshot(make_document("curl", make_advisory("CVE-2024-0001")))

        assert run_check(DocumentNameCheck(), current=snap, now=now).is_empty()

    def test_mismatch_reports_found_and_expected(self, make_document, make_advisory, now):
        doc = make_document("curl", make_advisory("CVE-2024-0001"))
        snap = Snapshot([SnapshotEntry(path="libcurl.advisories.yaml", document=doc)])

        node = run_check(DocumentNameCheck(), current=snap, now=now)

        [(_, error)] = list(node.leaves())
        assert isinstance(error, NamingMismatchError)
        assert error.found == "libcurl.advisories.yaml"
        assert error.expected == "curl.advisories.yaml"
        assert "libcurl.advisories.yaml" in str(error)
        assert "curl.advisories.yaml" in str(error)


class TestAdvisoryIDUniquenessCheck:
    """Advisory IDs must be unique across selected documents."""

    def test_unique_ids_pass(self, snapshot, make_document, make_advisory, now):
        snap = snapshot(
            make_document("a", make_advisory("CVE-2024-0001")),
            make_document("b", make_advisory("CVE-2024-0002")),
        )

        assert run_check(AdvisoryIDUniquenessCheck(), current=snap, now=now).is_empty()

    def test_each_repeat_reported_once_with_all_prior_locations(self, snapshot, make_document, make_advisory, now):
        snap = snapshot(
            make_document("a", make_advisory("CVE-2024-0001")),
            make_document("b", make_advisory("CVE-2024-0001")),
            make_document("c", make_advisory("CVE-2024-0001"), make_advisory("CVE-2024-0002")),
        )

        node = run_check(AdvisoryIDUniquenessCheck(), current=snap, now=now)
        errors = [error for _, error in node.leaves()]

        assert len(errors) == 2
        assert all(isinstance(e, DuplicateAdvisoryIDError) for e in errors)
        assert (errors[0].path, errors[0].seen_in) == ("b.advisories.yaml", ["a.advisories.yaml"])
        assert (errors[1].path, errors[1].seen_in) == (
            "c.advisories.yaml", ["a.advisories.yaml", "b.advisories.yaml"]
        )
        assert "already seen in: a.advisories.yaml, b.advisories.yaml" in str(errors[1])

    def test_out_of_scope_documents_not_scanned(self, snapshot, make_document, make_advisory, now):
        snap = snapshot(
            make_document("a", make_advisory("CVE-2024-0001")),
            make_document("b", make_advisory("CVE-2024-0001")),
        )

        node = run_check(AdvisoryIDUniquenessCheck(), current=snap, now=now, scope=PackageScope(["a"]))

        assert node.is_empty()


class TestFixedVersionCheck:
    """Fixed versions must exist in the package index."""

    def test_published_version_passes(self, snapshot, make_document, make_advisory, make_event, now):
        snap = snapshot(make_document(
            "curl", make_advisory("CVE-2024-0001", events=[make_event("fixed", fixed_version="8.6.0-r0")])
        ))
        index = PackageIndex.from_mapping({"curl": ["8.5.0-r0", "8.6.0-r0"]})

        assert run_check(FixedVersionCheck(), current=snap, now=now, package_index=index).is_empty()

    def test_each_failing_event_reported_separately(self, snapshot, make_document, make_advisory, make_event, now):
        snap = snapshot(make_document(
            "curl",
            make_advisory("CVE-2024-0001", events=[
                make_event("detection"),
                make_event("fixed", fixed_version="9.9.9-r0"),
                make_event("fixed", fixed_version="8.6.0-r0"),
                make_event("fixed", fixed_version="9.9.8-r0"),
            ]),
        ))
        index = PackageIndex.from_mapping({"curl": ["8.6.0-r0"]})

        node = run_check(FixedVersionCheck(), current=snap, now=now, package_index=index)
        leaves = list(node.leaves())

        assert [path[1:] for path, _ in leaves] == [
            ("curl", "CVE-2024-0001", "event 2 (type: fixed)"),
            ("curl", "CVE-2024-0001", "event 4 (type: fixed)"),
        ]
        assert all(isinstance(e, FixedVersionNotFoundError) for _, e in leaves)
        assert "'9.9.9-r0' not found" in str(leaves[0][1])

    def test_package_missing_from_index(self, snapshot, make_document, make_advisory, make_event, now):
        snap = snapshot(make_document(
            "ghost", make_advisory("CVE-2024-0001", events=[make_event("fixed")])
        ))

        node = run_check(FixedVersionCheck(), current=snap, now=now, package_index=PackageIndex())

        [(_, error)] = list(node.leaves())
        assert str(error) == "package not found in package index"

    def test_fixed_event_without_payload(self, snapshot, make_document, make_advisory, now):
        event = Event(type="fixed", timestamp=now, data={"unexpected": "shape"})
        snap = snapshot(make_document("curl", make_advisory("CVE-2024-0001", events=[event])))
        index = PackageIndex.from_mapping({"curl": ["1.0.0-r0"]})

        node = run_check(FixedVersionCheck(), current=snap, now=now, package_index=index)

        [(_, error)] = list(node.leaves())
        assert isinstance(error, StructuralError)

    def test_out_of_scope_documents_skipped(self, snapshot, make_document, make_advisory, make_event, now):
        snap = snapshot(make_document(
            "curl", make_advisory("CVE-2024-0001", events=[make_event("fixed", fixed_version="0.0.1-r0")])
        ))

        node = run_check(
            FixedVersionCheck(), current=snap, now=now,
            package_index=PackageIndex(), scope=PackageScope(["zlib"]),
        )

        assert node.is_empty()
