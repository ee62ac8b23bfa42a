"""
Index of the distribution's package build configurations.

Only existence matters to validation: a build configuration for a
package signals that the package is still actively maintained. The
contents of the configuration are never inspected beyond its name.
"""
import logging
from pathlib import Path
from typing import Iterable, List, Union

import yaml

logger = logging.getLogger(__name__)


class BuildConfigIndex:
    """Set of package names that currently have a build configuration."""

    def __init__(self, package_names: Iterable[str] = ()):
        self._names = set(package_names)

    def names(self) -> List[str]:
        return sorted(self._names)

    def __contains__(self, package_name: str) -> bool:
        return package_name in self._names

    def __len__(self) -> int:
        return len(self._names)


def load_build_configs(directory: Union[str, Path]) -> BuildConfigIndex:
    """
    Scan a directory of build YAML files for their package names.

    Each file is expected to carry a top-level "package.name" key. Files
    without one are skipped with a warning; unreadable YAML is skipped too,
    since such files cannot be built either.

    Raises:
        FileNotFoundError: If the directory does not exist
    """
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Build configuration directory not found: {root}")

    names = []
    for path in sorted(root.glob("*.yaml")):
        try:
            with open(path, "r") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(f"Skipping unreadable build configuration {path.name}: {e}")
            continue

        package = raw.get("package") if isinstance(raw, dict) else None
        name = package.get("name") if isinstance(package, dict) else None
        if not name:
            logger.warning(f"Skipping {path.name}: no package.name")
            continue
        names.append(str(name))

    index = BuildConfigIndex(names)
    logger.info(f"Loaded {len(index)} build configurations from {root}")
    return index
