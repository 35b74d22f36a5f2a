"""Endpoint health probing.

Exports:
- ``EndpointHealthProber``: bounded-concurrency batch prober with result cache.
- ``HealthCheckResult``: outcome of a single probe.
- ``probe_endpoint``: one GET reachability/latency check.
- ``rank_healthy``: healthy endpoints ordered by response time.
"""

from dapi_endpoints.health.prober import (
    EndpointHealthProber,
    HealthCheckResult,
    probe_endpoint,
    rank_healthy,
)

__all__ = [
    "EndpointHealthProber",
    "HealthCheckResult",
    "probe_endpoint",
    "rank_healthy",
]
