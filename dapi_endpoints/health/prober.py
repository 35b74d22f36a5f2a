"""Endpoint health probing: reachability, latency, and ranking.

Workflow for a batch:

1) Serve from the health cache when any candidate has a fresh healthy result.
2) Otherwise probe every candidate concurrently. Each probe runs on a worker
   thread and holds one permit of a bounded semaphore while its request is in
   flight, so at most ``max_concurrent`` requests are outstanding.
3) Cache every completed result (healthy or not) and return the healthy
   endpoints sorted by ascending response time.

Notes:
- Any HTTP status below 500 counts as healthy: the probe checks that a server
  answers, not that it serves DAPI correctly.
- Probe failures are returned as data on ``HealthCheckResult``; nothing here
  raises for an unreachable endpoint.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import requests

from dapi_endpoints.cache import Clock, TTLCache
from dapi_endpoints.errors import (
    ConnectionTimeout,
    EndpointUnreachable,
    InvalidEndpointURL,
    InvalidResponse,
    ProbeError,
    ServerError,
)
from dapi_endpoints.logging_utils import perf_span
from dapi_endpoints.urls import is_valid_endpoint_url

LOGGER = logging.getLogger(__name__)

HEADERS = {
    "Accept": "application/json",
    "User-Agent": "dapi-endpoints-healthcheck/1.0",
}
DEFAULT_MAX_WORKERS = 32


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of probing one endpoint.

    Attributes:
        endpoint: The probed URL.
        healthy: True when the server answered with a status below 500.
        response_time_ms: Elapsed wall time in milliseconds, recorded on failure too.
        status_code: HTTP status observed, if any.
        error: The captured probe error when unhealthy.
    """

    endpoint: str
    healthy: bool
    response_time_ms: float
    status_code: Optional[int] = None
    error: Optional[ProbeError] = None


def _elapsed_ms(start_ns: int) -> float:
    return (time.perf_counter_ns() - start_ns) / 1_000_000.0


def probe_endpoint(
    endpoint: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: float = 5.0,
    headers: Optional[Mapping[str, str]] = None,
) -> HealthCheckResult:
    """Issue one GET against ``endpoint`` and classify the outcome.

    Args:
        endpoint: Candidate URL.
        session: Optional Requests session; module-level ``requests.get`` otherwise.
        timeout: Request timeout in seconds.
        headers: Request headers (defaults to ``HEADERS``).

    Returns:
        A ``HealthCheckResult``; never raises for network failures.
    """
    start_ns = time.perf_counter_ns()
    if not is_valid_endpoint_url(endpoint):
        return HealthCheckResult(
            endpoint=endpoint,
            healthy=False,
            response_time_ms=_elapsed_ms(start_ns),
            error=InvalidEndpointURL(f"Invalid endpoint URL: {endpoint!r}"),
        )

    get = session.get if session is not None else requests.get
    try:
        resp = get(endpoint, timeout=timeout, headers=dict(headers or HEADERS))
    except requests.Timeout as exc:
        return HealthCheckResult(
            endpoint=endpoint,
            healthy=False,
            response_time_ms=_elapsed_ms(start_ns),
            error=ConnectionTimeout(f"Connection timeout: {exc}"),
        )
    except Exception as exc:  # noqa: BLE001
        return HealthCheckResult(
            endpoint=endpoint,
            healthy=False,
            response_time_ms=_elapsed_ms(start_ns),
            error=EndpointUnreachable(f"Endpoint unreachable: {exc}"),
        )

    elapsed_ms = _elapsed_ms(start_ns)
    status_code = getattr(resp, "status_code", None)
    if not isinstance(status_code, int):
        return HealthCheckResult(
            endpoint=endpoint,
            healthy=False,
            response_time_ms=elapsed_ms,
            error=InvalidResponse(),
        )

    if status_code >= 500:
        LOGGER.debug("Endpoint %s is unhealthy (status: %d)", endpoint, status_code)
        return HealthCheckResult(
            endpoint=endpoint,
            healthy=False,
            response_time_ms=elapsed_ms,
            status_code=status_code,
            error=ServerError(status_code),
        )

    LOGGER.debug("Endpoint %s is healthy (status: %d)", endpoint, status_code)
    return HealthCheckResult(
        endpoint=endpoint,
        healthy=True,
        response_time_ms=elapsed_ms,
        status_code=status_code,
    )


def rank_healthy(results: Iterable[HealthCheckResult]) -> List[str]:
    """Return healthy endpoints ordered by ascending response time."""
    healthy = [r for r in results if r.healthy]
    healthy.sort(key=lambda r: r.response_time_ms)
    return [r.endpoint for r in healthy]


class EndpointHealthProber:
    """Bounded-concurrency prober with a short-lived per-endpoint result cache.

    Without ``session`` each worker calls module-level ``requests.get``. An
    injected session is shared by every worker thread, so it must tolerate
    concurrent ``get`` calls; ``requests.Session`` does not promise that.
    """

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 5.0,
        max_concurrent: int = 5,
        cache_ttl: float = 60.0,
        clock: Clock = time.monotonic,
        headers: Optional[Mapping[str, str]] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._session = session
        self._timeout = timeout
        self._headers = dict(headers or HEADERS)
        self._max_concurrent = max_concurrent
        self._max_workers = max(1, int(max_workers))
        self._semaphore = threading.BoundedSemaphore(max_concurrent)
        self._cache: TTLCache[str, HealthCheckResult] = TTLCache(cache_ttl, clock=clock)

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def last_probe_at(self) -> Optional[float]:
        """Clock value of the last cached probe result, or None after ``clear_cache``."""
        return self._cache.last_write_at

    def probe(self, endpoint: str) -> HealthCheckResult:
        return probe_endpoint(
            endpoint,
            session=self._session,
            timeout=self._timeout,
            headers=self._headers,
        )

    def check_endpoint_health(self, endpoint: str) -> HealthCheckResult:
        """Probe a single endpoint directly, bypassing the batch path and cache."""
        LOGGER.debug("Checking health of endpoint: %s", endpoint)
        return self.probe(endpoint)

    def _gated_probe(self, endpoint: str, abandoned: threading.Event) -> Optional[HealthCheckResult]:
        with self._semaphore:
            # Workers queue on the permit, so an abandoned batch is only seen here.
            if abandoned.is_set():
                return None
            return self.probe(endpoint)

    def _fan_out(
        self,
        endpoints: Sequence[str],
        on_result: Optional[Callable[[HealthCheckResult], None]] = None,
    ) -> List[HealthCheckResult]:
        """Probe ``endpoints`` concurrently and collect results in arrival order.

        ``on_result`` is invoked only for probes that ran to completion. If
        collection is interrupted, the batch is marked abandoned: workers still
        waiting for a permit return without sending a request, and queued
        futures are cancelled.
        """
        if not endpoints:
            return []

        results: List[HealthCheckResult] = []
        abandoned = threading.Event()
        executor = ThreadPoolExecutor(
            max_workers=min(len(endpoints), self._max_workers),
            thread_name_prefix="dapi-probe",
        )
        try:
            futures: Dict[Future, str] = {
                executor.submit(self._gated_probe, endpoint, abandoned): endpoint for endpoint in endpoints
            }
            for fut in as_completed(futures):
                if fut.cancelled():
                    continue
                try:
                    result = fut.result()
                except Exception as exc:  # noqa: BLE001
                    LOGGER.warning("Probe worker failed for %s: %s", futures[fut], exc)
                    results.append(
                        HealthCheckResult(
                            endpoint=futures[fut],
                            healthy=False,
                            response_time_ms=float("inf"),
                            error=EndpointUnreachable(f"Probe worker failed: {exc}"),
                        )
                    )
                    continue
                if result is None:
                    continue
                if on_result is not None:
                    on_result(result)
                results.append(result)
        except BaseException:
            abandoned.set()
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return results

    def _store(self, result: HealthCheckResult) -> None:
        self._cache.set(result.endpoint, result)

    def check_all(self, candidates: Iterable[str]) -> List[HealthCheckResult]:
        """Probe every candidate (no cache) and return results in candidate order."""
        unique = list(dict.fromkeys(candidates))
        by_endpoint = {r.endpoint: r for r in self._fan_out(unique)}
        return [by_endpoint[e] for e in unique if e in by_endpoint]

    def get_healthy_endpoints(self, candidates: Iterable[str]) -> List[str]:
        """Return healthy candidates sorted by ascending response time.

        A fresh cached healthy result for any candidate short-circuits the
        batch: only the cached healthy subset is returned, without reprobing
        the rest. When every candidate has a fresh unhealthy result the batch
        returns an empty list without probing.
        """
        unique = list(dict.fromkeys(candidates))
        if not unique:
            return []

        cached = self._cache.get_many(unique)
        cached_healthy = [r for r in cached.values() if r.healthy]
        if cached_healthy:
            LOGGER.debug("Using cached health results for %d/%d endpoints", len(cached_healthy), len(unique))
            return rank_healthy(cached_healthy)
        if len(cached) == len(unique):
            LOGGER.debug("All %d endpoints cached as unhealthy", len(unique))
            return []

        LOGGER.info("Checking health of %d DAPI endpoints", len(unique))
        with perf_span("prober.fan_out", tags={"candidates": len(unique)}, logger=LOGGER):
            results = self._fan_out(unique, on_result=self._store)

        healthy = rank_healthy(results)
        LOGGER.info("Found %d healthy endpoints out of %d", len(healthy), len(unique))
        return healthy

    def get_best_endpoint(
        self,
        candidates: Iterable[str],
        fallback_candidates: Iterable[str] = (),
    ) -> Optional[str]:
        """Return the fastest healthy candidate, trying ``fallback_candidates`` second."""
        healthy = self.get_healthy_endpoints(candidates)
        if healthy:
            return healthy[0]

        fallback = list(fallback_candidates)
        if fallback:
            LOGGER.info("No healthy endpoints found, trying %d fallback endpoints", len(fallback))
            healthy_fallbacks = self.get_healthy_endpoints(fallback)
            if healthy_fallbacks:
                return healthy_fallbacks[0]

        LOGGER.warning("No healthy endpoints available")
        return None

    def clear_cache(self) -> None:
        self._cache.clear()
        LOGGER.debug("Health cache cleared")


__all__ = [
    "HealthCheckResult",
    "EndpointHealthProber",
    "probe_endpoint",
    "rank_healthy",
    "HEADERS",
]
