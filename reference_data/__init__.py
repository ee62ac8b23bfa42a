"""
Reference datasets consumed by advisory validation.

Provides the optional external inputs the validation engine can use:
- BuildConfigIndex: packages that currently have a build configuration
- PackageIndex: published (name, version) records from APKINDEX
- AliasFinder implementations: CVE <-> GHSA alias resolution
"""
from .alias_finder import AliasFinder, GitHubAliasFinder, MemoizingAliasFinder, StaticAliasFinder
from .build_configs import BuildConfigIndex, load_build_configs
from .http_client import CircuitBreaker, CircuitOpenError, HttpClient, RequestCancelledError, RetryConfig
from .package_index import (
    PackageIndex,
    PackageIndexSource,
    PublishedPackage,
    load_package_index,
    parse_apkindex,
)

__all__ = [
    "AliasFinder",
    "BuildConfigIndex",
    "CircuitBreaker",
    "CircuitOpenError",
    "GitHubAliasFinder",
    "HttpClient",
    "MemoizingAliasFinder",
    "PackageIndex",
    "PackageIndexSource",
    "PublishedPackage",
    "RequestCancelledError",
    "RetryConfig",
    "StaticAliasFinder",
    "load_build_configs",
    "load_package_index",
    "parse_apkindex",
]
