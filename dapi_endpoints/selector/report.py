"""Diagnostic snapshot types for operator-facing connectivity checks."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple

from dapi_endpoints.errors import ConfigurationError, ProbeError
from dapi_endpoints.health.prober import HealthCheckResult
from dapi_endpoints.networks import Network

CONFIGURED = "Configured"
FALLBACK = "Fallback"


@dataclass(frozen=True)
class EndpointStatus:
    endpoint: str
    healthy: bool
    response_time_ms: float
    category: str
    error: Optional[ProbeError] = None

    @classmethod
    def from_result(cls, result: HealthCheckResult, category: str) -> "EndpointStatus":
        return cls(
            endpoint=result.endpoint,
            healthy=result.healthy,
            response_time_ms=result.response_time_ms,
            category=category,
            error=result.error,
        )

    @property
    def formatted_response_time(self) -> str:
        return f"{self.response_time_ms:.2f} ms"

    @property
    def status_description(self) -> str:
        if self.healthy:
            return f"Healthy ({self.formatted_response_time})"
        return f"Unhealthy - {self.error or 'Unknown error'}"


@dataclass(frozen=True)
class ConnectivityReport:
    """Per-endpoint status of both the configured and the fallback sets.

    Built fresh for every diagnostic request and never cached.
    """

    network: Network
    configured_endpoints: Tuple[EndpointStatus, ...]
    fallback_endpoints: Tuple[EndpointStatus, ...]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    configuration_error: Optional[ConfigurationError] = None

    @property
    def total_endpoints(self) -> int:
        return len(self.configured_endpoints) + len(self.fallback_endpoints)

    @property
    def healthy_endpoints(self) -> int:
        return sum(1 for s in self.configured_endpoints + self.fallback_endpoints if s.healthy)

    @property
    def has_healthy_endpoints(self) -> bool:
        return self.healthy_endpoints > 0

    @property
    def summary(self) -> str:
        if self.configuration_error is not None:
            return f"Configuration failed: {self.configuration_error}. Using fallback endpoints only."
        return f"Network: {self.network}, Healthy: {self.healthy_endpoints}/{self.total_endpoints} endpoints"


__all__ = ["EndpointStatus", "ConnectivityReport", "CONFIGURED", "FALLBACK"]
