"""
Published package index (APKINDEX) support.

The index records every (name, version) the distribution has published.
It backs two checks: fixed versions named in advisories must exist in
the index, and modified documents may be linked to a package that is
still published even after its build configuration was retired.

APKINDEX format: blank-line separated records of "X:value" lines, where
"P:" is the package name and "V:" the version. The file is usually
distributed as APKINDEX.tar.gz.
"""
import io
import logging
import tarfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

from .http_client import CircuitOpenError, HttpClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishedPackage:
    """A single published package build."""
    name: str
    version: str


class PackageIndex:
    """Lookup of published versions by package name."""

    def __init__(self, packages: Iterable[PublishedPackage] = ()):
        self._versions: Dict[str, List[str]] = {}
        count = 0
        for pkg in packages:
            self._versions.setdefault(pkg.name, []).append(pkg.version)
            count += 1
        self.package_count = count

    @classmethod
    def from_mapping(cls, versions: Dict[str, Iterable[str]]) -> "PackageIndex":
        return cls(
            PublishedPackage(name=name, version=version)
            for name, vs in versions.items()
            for version in vs
        )

    def versions(self, package_name: str) -> Optional[List[str]]:
        """Published versions for a package, or None if it was never published."""
        versions = self._versions.get(package_name)
        return list(versions) if versions is not None else None

    def has_version(self, package_name: str, version: str) -> bool:
        return version in self._versions.get(package_name, ())

    def names(self) -> List[str]:
        return list(self._versions)

    def __contains__(self, package_name: str) -> bool:
        return package_name in self._versions

    def __len__(self) -> int:
        return len(self._versions)


def parse_apkindex(text: str) -> Iterator[PublishedPackage]:
    """Yield published packages from APKINDEX text."""
    name = None
    version = None

    for line in text.splitlines() + [""]:
        line = line.strip()
        if not line:
            if name and version:
                yield PublishedPackage(name=name, version=version)
            name = version = None
            continue

        key, sep, value = line.partition(":")
        if not sep:
            continue
        if key == "P":
            name = value
        elif key == "V":
            version = value


def load_package_index(path: Union[str, Path]) -> PackageIndex:
    """
    Load an index from a plain APKINDEX file or an APKINDEX.tar.gz archive.

    Raises:
        FileNotFoundError: If the path does not exist
        ValueError: If an archive holds no APKINDEX member
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Package index not found: {path}")

    if tarfile.is_tarfile(path):
        text = _read_archive(path)
    else:
        text = path.read_text()

    index = PackageIndex(parse_apkindex(text))
    logger.info(f"Loaded package index from {path}: {len(index)} packages, {index.package_count} builds")
    return index


def _read_archive(path: Path) -> str:
    with tarfile.open(path, "r:*") as archive:
        for member in archive.getmembers():
            if member.isfile() and Path(member.name).name == "APKINDEX":
                handle = archive.extractfile(member)
                if handle is None:
                    break
                with io.TextIOWrapper(handle, encoding="utf-8") as text:
                    return text.read()

    raise ValueError(f"No APKINDEX member found in {path}")


class PackageIndexSource:
    """
    Provides a PackageIndex from a local file or a URL with a cached copy.

    A fresh download is attempted when the cached copy is older than the
    TTL; if the download fails and a cached copy exists, it is used.
    """

    def __init__(self, config: Dict, client: Optional[HttpClient] = None):
        self.path = config.get("path")
        self.url = config.get("url")
        self.cache_dir = Path(config.get("cache_dir", ".cache/apkindex"))
        self.cache_ttl_hours = config.get("cache_ttl_hours", 6)
        self.client = client or HttpClient(service_name="package-index", cache_enabled=False)

    @property
    def configured(self) -> bool:
        return bool(self.path or self.url)

    def load(self) -> Optional[PackageIndex]:
        if self.path:
            return load_package_index(self.path)
        if not self.url:
            return None

        archive = self.cache_dir / "APKINDEX.tar.gz"
        if self._cache_expired(archive):
            try:
                self.client.download_to_file(self.url, archive)
            except CircuitOpenError as exc:
                logger.warning(f"Package index circuit open: {exc}")
                if not archive.exists():
                    raise
            except Exception as exc:
                if archive.exists():
                    logger.warning(f"Package index download failed, using cached copy: {exc}")
                else:
                    raise

        return load_package_index(archive)

    def _cache_expired(self, archive: Path) -> bool:
        if not archive.exists():
            return True
        if not self.cache_ttl_hours:
            return False

        mtime = datetime.fromtimestamp(archive.stat().st_mtime, tz=timezone.utc)
        return datetime.now(timezone.utc) - mtime > timedelta(hours=int(self.cache_ttl_hours))
