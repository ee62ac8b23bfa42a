"""
Error kinds and the hierarchical error tree produced by validation.

Every finding is an AdvisoryValidationError subclass stored as a leaf of
an ErrorNode tree. The tree mirrors document -> advisory -> event nesting,
with each node labeled by identity (document name, advisory ID,
"event N (type: T)").

ExternalLookupError is deliberately not an AdvisoryValidationError: it
is raised to abort a pass and is reported by the orchestrator as an
aborted check, never stored in the tree.
"""
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple


class AdvisoryValidationError(Exception):
    """Base class for a single validation finding."""

    kind = "validation"

    @property
    def message(self) -> str:
        return str(self)


class StructuralError(AdvisoryValidationError):
    """A document fails its own self-consistency checks."""
    kind = "structural"


class NamingMismatchError(AdvisoryValidationError):
    """Document file name does not match the package name."""
    kind = "naming"

    def __init__(self, found: str, expected: str):
        self.found = found
        self.expected = expected
        super().__init__(f"document file name {found!r} does not match expected name {expected!r}")


class DuplicateAdvisoryIDError(AdvisoryValidationError):
    """An advisory ID appears in more than one in-scope location."""
    kind = "duplicate_id"

    def __init__(self, advisory_id: str, path: str, seen_in: List[str]):
        self.advisory_id = advisory_id
        self.path = path
        self.seen_in = list(seen_in)
        super().__init__(
            f"duplicate advisory ID {advisory_id!r} "
            f"(found in {path}, but already seen in: {', '.join(self.seen_in)})"
        )


class DocumentOrAdvisoryRemovedError(AdvisoryValidationError):
    """A document or advisory present in the baseline was removed."""
    kind = "removed"


class MissingBuildOrIndexLinkageError(AdvisoryValidationError):
    """A document's package has no build configuration (or index entry)."""
    kind = "missing_linkage"


class AmbiguousEventChangeError(AdvisoryValidationError):
    """Existing events were removed, or modified in a way indistinguishable from removal."""
    kind = "event_change"


class StaleNewEventError(AdvisoryValidationError):
    """A newly added event carries a timestamp outside the recency window."""
    kind = "stale_event"


class FixedVersionNotFoundError(AdvisoryValidationError):
    """A fixed version (or its package) is missing from the package index."""
    kind = "fixed_version"


class AliasMissingError(AdvisoryValidationError):
    """A CVE advisory is missing a known GHSA alias."""
    kind = "alias_missing"

    def __init__(self, alias: str, aliases: Tuple[str, ...]):
        self.alias = alias
        super().__init__(f"missing GHSA alias {alias!r} from set [{', '.join(aliases)}]")


class AliasPrimaryIDPolicyError(AdvisoryValidationError):
    """A GHSA is used as the advisory ID although a CVE exists for it."""
    kind = "alias_primary_id"

    def __init__(self, ghsa_id: str, cve_id: str):
        self.ghsa_id = ghsa_id
        self.cve_id = cve_id
        super().__init__(
            f"{ghsa_id!r} should be listed as an alias, and {cve_id!r} should be the advisory ID"
        )


class ExternalLookupError(RuntimeError):
    """The alias resolution service could not answer a query."""


class AliasLookupCancelled(ExternalLookupError):
    """Alias lookups were cancelled or ran past their deadline."""


@dataclass
class ErrorNode:
    """
    Node of the hierarchical error report.

    A node carries a label, optional leaf errors, and labeled children.
    Nodes without errors anywhere below them are "empty" and are skipped
    when rendering or counting.
    """
    label: str
    errors: List[AdvisoryValidationError] = field(default_factory=list)
    children: List["ErrorNode"] = field(default_factory=list)

    def child(self, label: str) -> "ErrorNode":
        """Return the child with this label, creating it if needed."""
        for node in self.children:
            if node.label == label:
                return node
        node = ErrorNode(label)
        self.children.append(node)
        return node

    def add(self, error: AdvisoryValidationError) -> "ErrorNode":
        self.errors.append(error)
        return self

    def attach(self, node: "ErrorNode") -> "ErrorNode":
        """Attach an already-built subtree (used to join check results)."""
        self.children.append(node)
        return node

    def is_empty(self) -> bool:
        return not self.errors and all(c.is_empty() for c in self.children)

    def prune(self) -> "ErrorNode":
        """Drop empty descendants in place."""
        self.children = [c.prune() for c in self.children if not c.is_empty()]
        return self

    def find(self, *labels: str) -> Optional["ErrorNode"]:
        """Follow a path of labels down the tree."""
        node = self
        for label in labels:
            node = next((c for c in node.children if c.label == label), None)
            if node is None:
                return None
        return node

    def leaves(self, path: Tuple[str, ...] = ()) -> Iterator[Tuple[Tuple[str, ...], AdvisoryValidationError]]:
        """Yield (label path, error) for every error under this node."""
        here = path + (self.label,) if self.label else path
        for error in self.errors:
            yield here, error
        for c in self.children:
            yield from c.leaves(here)

    def count(self) -> int:
        return sum(1 for _ in self.leaves())

    def render(self, indent: str = "  ") -> str:
        """Render the non-empty part of the tree as indented text."""
        lines: List[str] = []
        self._render_into(lines, 0, indent)
        return "\n".join(lines)

    def _render_into(self, lines: List[str], depth: int, indent: str) -> None:
        if self.is_empty():
            return

        if self.label:
            lines.append(f"{indent * depth}{self.label}:")
            depth += 1

        for error in self.errors:
            lines.append(f"{indent * depth}- {error}")
        for c in self.children:
            c._render_into(lines, depth, indent)

    def __str__(self) -> str:
        return self.render()
