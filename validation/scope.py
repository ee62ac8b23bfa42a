"""
Package selection scope shared by every validation pass.
"""
from typing import FrozenSet, Iterable, Optional


class PackageScope:
    """
    Predicate deciding which packages a validation run covers.

    An empty selection means every package is in scope.
    """

    def __init__(self, packages: Optional[Iterable[str]] = None):
        self.packages: FrozenSet[str] = frozenset(packages or ())

    @property
    def is_unrestricted(self) -> bool:
        return not self.packages

    def includes(self, package_name: str) -> bool:
        return self.is_unrestricted or package_name in self.packages

    def __repr__(self) -> str:
        if self.is_unrestricted:
            return "PackageScope(all)"
        return f"PackageScope({sorted(self.packages)})"
