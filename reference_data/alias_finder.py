"""
Vulnerability alias resolution.

An AliasFinder answers two questions:
- which GHSA identifiers correspond to a CVE
- which CVE (at most one) corresponds to a GHSA

Implementations:
- GitHubAliasFinder: GitHub global security advisories REST API
- StaticAliasFinder: in-memory mapping, optionally loaded from YAML
- MemoizingAliasFinder: per-run cache wrapper around any finder

All lookup failures surface as ExternalLookupError so the alias
completeness check can abort cleanly.
"""
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import requests
import yaml

from validation.errors import ExternalLookupError
from .http_client import CircuitOpenError, HttpClient, RequestCancelledError, RetryConfig

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class AliasFinder(ABC):
    """Contract for alias resolution services."""

    @abstractmethod
    def ghsas_for_cve(self, cve_id: str) -> List[str]:
        """
        Return every GHSA ID known to correspond to a CVE.

        Raises:
            ExternalLookupError: If the service cannot be queried
        """
        pass

    @abstractmethod
    def cve_for_ghsa(self, ghsa_id: str) -> Optional[str]:
        """
        Return the CVE ID corresponding to a GHSA, or None if there is none.

        Raises:
            ExternalLookupError: If the service cannot be queried
        """
        pass


class GitHubAliasFinder(AliasFinder):
    """Resolves aliases through the GitHub global advisories API."""

    def __init__(self, client: HttpClient, api_url: str = GITHUB_API_URL):
        self.client = client
        self.api_url = api_url.rstrip("/")

    @classmethod
    def from_config(
        cls,
        config: Dict,
        token: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> "GitHubAliasFinder":
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        client = HttpClient(
            service_name="github-advisories",
            rate_limit_per_minute=config.get("rate_limit_per_minute"),
            rate_limit_burst=config.get("rate_limit_burst"),
            retry_config=RetryConfig(
                max_retries=config.get("max_retries", 3),
                timeout_seconds=config.get("request_timeout_seconds", 30.0),
            ),
            default_headers=headers,
            cancel_event=cancel_event,
        )
        return cls(client, api_url=config.get("api_url", GITHUB_API_URL))

    def ghsas_for_cve(self, cve_id: str) -> List[str]:
        payload = self._get(
            f"{self.api_url}/advisories",
            params={"cve_id": cve_id, "per_page": 100},
            query=cve_id,
        )
        if not isinstance(payload, list):
            raise ExternalLookupError(f"unexpected response querying GHSAs for {cve_id}")
        if not all(isinstance(item, dict) for item in payload):
            raise ExternalLookupError(f"unexpected advisory entry querying GHSAs for {cve_id}")

        ghsas = [str(item["ghsa_id"]) for item in payload if item.get("ghsa_id")]
        logger.debug(f"{cve_id}: {len(ghsas)} GHSA(s) found")
        return sorted(set(ghsas))

    def cve_for_ghsa(self, ghsa_id: str) -> Optional[str]:
        payload = self._get(
            f"{self.api_url}/advisories/{ghsa_id}",
            allow_not_found=True,
            query=ghsa_id,
        )
        if payload is None:
            return None
        if not isinstance(payload, dict):
            raise ExternalLookupError(f"unexpected response querying CVE for {ghsa_id}")
        return payload.get("cve_id") or None

    def _get(self, url: str, query: str, params: Optional[Dict] = None, allow_not_found: bool = False):
        try:
            return self.client.get_json(url, params=params, allow_not_found=allow_not_found)
        except (requests.RequestException, CircuitOpenError, RequestCancelledError, ValueError) as e:
            raise ExternalLookupError(f"alias lookup for {query} failed: {type(e).__name__}: {e}") from e


class StaticAliasFinder(AliasFinder):
    """
    Alias finder backed by a fixed CVE -> GHSA mapping.

    Useful for offline runs and tests. The reverse (GHSA -> CVE) mapping
    is derived from the forward one.
    """

    def __init__(self, ghsas_by_cve: Optional[Dict[str, Iterable[str]]] = None):
        self._ghsas_by_cve: Dict[str, List[str]] = {
            cve: sorted(set(ghsas)) for cve, ghsas in (ghsas_by_cve or {}).items()
        }
        self._cve_by_ghsa: Dict[str, str] = {}
        for cve, ghsas in self._ghsas_by_cve.items():
            for ghsa in ghsas:
                self._cve_by_ghsa[ghsa] = cve

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticAliasFinder":
        """Load a YAML mapping of CVE ID to list of GHSA IDs."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Alias mapping in {path} must be a mapping of CVE to GHSA list")
        return cls({str(cve): [str(g) for g in ghsas or []] for cve, ghsas in data.items()})

    def ghsas_for_cve(self, cve_id: str) -> List[str]:
        return list(self._ghsas_by_cve.get(cve_id, []))

    def cve_for_ghsa(self, ghsa_id: str) -> Optional[str]:
        return self._cve_by_ghsa.get(ghsa_id)


class MemoizingAliasFinder(AliasFinder):
    """
    Caches answers from another finder for the duration of a run.

    Failures are not cached, so a retry after a transient error reaches
    the wrapped service again. Safe to share across worker threads.
    """

    def __init__(self, finder: AliasFinder):
        self.finder = finder
        self.lookups = 0
        self._cache: Dict[Tuple[str, str], object] = {}
        self._lock = threading.Lock()

    def ghsas_for_cve(self, cve_id: str) -> List[str]:
        return list(self._lookup("ghsas_for_cve", cve_id))

    def cve_for_ghsa(self, ghsa_id: str) -> Optional[str]:
        return self._lookup("cve_for_ghsa", ghsa_id)

    def _lookup(self, method: str, key: str):
        cache_key = (method, key)
        with self._lock:
            if cache_key in self._cache:
                return self._cache[cache_key]

        value = getattr(self.finder, method)(key)

        with self._lock:
            if cache_key not in self._cache:
                self.lookups += 1
                self._cache[cache_key] = value
            return self._cache[cache_key]
