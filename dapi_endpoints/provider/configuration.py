"""Resolve candidate DAPI endpoint lists from configuration sources.

The provider dispatches on the network's ``ConfigurationSource`` (remote JSON,
bundled resource, or environment variable), validates every entry as an
absolute http(s) URL, and caches successful results per network for
``cache_ttl`` seconds. ``fallback_endpoints`` never touches the network and
never returns an empty list.
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from dapi_endpoints.cache import Clock, TTLCache
from dapi_endpoints.errors import (
    EnvironmentVariableNotSet,
    InvalidConfigurationFormat,
    NoValidEndpoints,
    RemoteConfigurationUnavailable,
    ResourceConfigurationNotFound,
)
from dapi_endpoints.networks import (
    DEFAULT_SOURCES,
    FALLBACK_ENDPOINTS,
    GENERIC_ENVIRONMENT_VARIABLE,
    Network,
    validate_fallback_table,
)
from dapi_endpoints.sources import (
    ConfigurationSource,
    EnvironmentVariableSource,
    LocalResourceSource,
    RemoteSource,
)
from dapi_endpoints.urls import filter_valid_endpoints

LOGGER = logging.getLogger(__name__)

RESOURCE_DIR = Path(__file__).resolve().parents[1] / "data"
HEADERS = {"Accept": "application/json", "User-Agent": "dapi-endpoints-config/1.0"}
_CHUNK_SIZE = 8192


class EndpointConfigurationProvider:
    """Candidate endpoint lists per network, with TTL caching and static fallbacks."""

    def __init__(
        self,
        sources: Optional[Mapping[Network, ConfigurationSource]] = None,
        *,
        fallbacks: Optional[Mapping[Network, Sequence[str]]] = None,
        session: Optional[requests.Session] = None,
        request_timeout: float = 10.0,
        resource_timeout: float = 30.0,
        cache_ttl: float = 300.0,
        clock: Clock = time.monotonic,
        environ: Optional[Mapping[str, str]] = None,
        resource_dir: Optional[Path] = None,
    ) -> None:
        """Initialize the provider.

        Args:
            sources: Per-network overrides of ``DEFAULT_SOURCES``.
            fallbacks: Replacement static fallback table (validated eagerly).
            session: Optional pre-configured Requests session for remote fetches.
            request_timeout: Per-request (connect/read) timeout in seconds.
            resource_timeout: Upper bound on the whole remote download in seconds.
            cache_ttl: Seconds a fetched list stays fresh.
            clock: Monotonic clock used for cache ages and download deadlines.
            environ: Mapping read by environment-variable sources (defaults to ``os.environ``).
            resource_dir: Directory holding ``<name>.json`` bundled resources.
        """
        self._sources: Dict[Network, ConfigurationSource] = dict(sources or {})
        self._fallbacks = validate_fallback_table(fallbacks if fallbacks is not None else FALLBACK_ENDPOINTS)
        self._session = session or requests.Session()
        self._request_timeout = request_timeout
        self._resource_timeout = resource_timeout
        self._clock = clock
        self._environ = environ
        self._resource_dir = resource_dir or RESOURCE_DIR
        self._cache: TTLCache[Network, List[str]] = TTLCache(cache_ttl, clock=clock)

    def source_for(self, network: Network) -> ConfigurationSource:
        """Return the explicit source for ``network``, else its default."""
        if network in self._sources:
            return self._sources[network]
        return DEFAULT_SOURCES.get(network, EnvironmentVariableSource(GENERIC_ENVIRONMENT_VARIABLE))

    def fetch_candidates(self, network: Network) -> List[str]:
        """Return configured candidates for ``network``, served from cache while fresh.

        Raises:
            ConfigurationError: one of its subclasses when the source fails.
        """
        cached = self._cache.get(network)
        if cached is not None:
            LOGGER.debug("Using cached DAPI endpoints for %s: %d endpoints", network, len(cached))
            return list(cached)

        source = self.source_for(network)
        LOGGER.info("Fetching DAPI endpoints for %s from %s", network, source.describe())
        endpoints = self._fetch_from_source(source)

        self._cache.set(network, list(endpoints))
        LOGGER.info("Fetched %d DAPI endpoints for %s", len(endpoints), network)
        return list(endpoints)

    def refresh(self, network: Network) -> List[str]:
        """Drop the cached list for ``network`` and fetch again."""
        self._cache.pop(network)
        return self.fetch_candidates(network)

    def clear_cache(self, network: Optional[Network] = None) -> None:
        if network is None:
            self._cache.clear()
        else:
            self._cache.pop(network)

    def fallback_endpoints(self, network: Network) -> List[str]:
        return list(self._fallbacks[network])

    def _fetch_from_source(self, source: ConfigurationSource) -> List[str]:
        if isinstance(source, RemoteSource):
            return self._fetch_remote(source)
        if isinstance(source, LocalResourceSource):
            return self._fetch_resource(source)
        if isinstance(source, EnvironmentVariableSource):
            return self._fetch_environment(source)
        raise TypeError(f"Unsupported configuration source: {source!r}")

    def _download(self, url: str) -> bytes:
        """GET ``url`` and return the body, enforcing the overall resource deadline."""
        deadline = self._clock() + self._resource_timeout
        try:
            response = self._session.get(
                url,
                headers=HEADERS,
                timeout=self._request_timeout,
                stream=True,
            )
        except requests.RequestException as exc:
            LOGGER.warning("Remote DAPI configuration request failed url=%s error=%s", url, exc)
            raise RemoteConfigurationUnavailable(f"Remote DAPI configuration is unavailable: {exc}") from exc

        try:
            if response.status_code != 200:
                LOGGER.warning("Remote DAPI configuration returned status=%s url=%s", response.status_code, url)
                raise RemoteConfigurationUnavailable(
                    f"Remote DAPI configuration returned HTTP {response.status_code}"
                )
            chunks: List[bytes] = []
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                if chunk:
                    chunks.append(chunk)
                if self._clock() > deadline:
                    raise RemoteConfigurationUnavailable(
                        f"Remote DAPI configuration exceeded {self._resource_timeout:.0f}s download limit"
                    )
            return b"".join(chunks)
        except requests.RequestException as exc:
            raise RemoteConfigurationUnavailable(f"Remote DAPI configuration is unavailable: {exc}") from exc
        finally:
            response.close()

    def _fetch_remote(self, source: RemoteSource) -> List[str]:
        body = self._download(source.url)
        try:
            document: Any = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise InvalidConfigurationFormat(f"Remote DAPI configuration is not valid JSON: {exc}") from exc

        if not isinstance(document, dict) or not isinstance(document.get("endpoints"), list):
            raise InvalidConfigurationFormat("Remote DAPI configuration must be an object with an 'endpoints' array")

        endpoints = filter_valid_endpoints(document["endpoints"], origin=source.describe())
        if not endpoints:
            raise NoValidEndpoints()
        return endpoints

    def _fetch_resource(self, source: LocalResourceSource) -> List[str]:
        path = self._resource_dir / f"{source.name}.json"
        if not path.exists():
            raise ResourceConfigurationNotFound(f"DAPI configuration resource not found: {path}")
        try:
            document: Any = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ResourceConfigurationNotFound(f"DAPI configuration resource unreadable: {path}") from exc

        values = document.get(source.field) if isinstance(document, dict) else None
        if not isinstance(values, list):
            raise ResourceConfigurationNotFound(
                f"DAPI configuration resource {path.name} has no '{source.field}' array"
            )

        endpoints = filter_valid_endpoints(values, origin=source.describe())
        if not endpoints:
            raise NoValidEndpoints()
        return endpoints

    def _fetch_environment(self, source: EnvironmentVariableSource) -> List[str]:
        environ = self._environ if self._environ is not None else os.environ
        raw = environ.get(source.name)
        if raw is None:
            raise EnvironmentVariableNotSet(f"DAPI endpoints environment variable not set: {source.name}")

        segments = [segment.strip() for segment in raw.split(",")]
        endpoints = filter_valid_endpoints([s for s in segments if s], origin=source.describe())
        if not endpoints:
            raise NoValidEndpoints()
        return endpoints

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "EndpointConfigurationProvider":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()


__all__ = ["EndpointConfigurationProvider", "RESOURCE_DIR", "HEADERS"]
