"""Error types raised (or captured) while discovering and probing endpoints.

Configuration errors are raised by the provider and absorbed by the selector,
which degrades to the next fallback tier. Probe errors are never raised; they
are attached to ``HealthCheckResult.error``.
"""

from typing import Optional


class EndpointDiscoveryError(Exception):
    """Base class for every error in this package."""

    default_message = "Endpoint discovery failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class ConfigurationError(EndpointDiscoveryError):
    default_message = "DAPI configuration could not be loaded"


class RemoteConfigurationUnavailable(ConfigurationError):
    default_message = "Remote DAPI configuration is unavailable"


class InvalidConfigurationFormat(ConfigurationError):
    default_message = "Invalid DAPI configuration format"


class NoValidEndpoints(ConfigurationError):
    default_message = "No valid DAPI endpoints found"


class ResourceConfigurationNotFound(ConfigurationError):
    default_message = "DAPI configuration resource not found"


class EnvironmentVariableNotSet(ConfigurationError):
    default_message = "DAPI endpoints environment variable not set"


class ProbeError(EndpointDiscoveryError):
    default_message = "Health probe failed"


class InvalidEndpointURL(ProbeError):
    default_message = "Invalid endpoint URL"


class InvalidResponse(ProbeError):
    default_message = "Invalid response from endpoint"


class ConnectionTimeout(ProbeError):
    default_message = "Connection timeout"


class EndpointUnreachable(ProbeError):
    default_message = "Endpoint unreachable"


class ServerError(ProbeError):
    """A 5xx response; the endpoint answered but is not serving."""

    def __init__(self, status_code: int, message: Optional[str] = None) -> None:
        self.status_code = status_code
        super().__init__(message or f"Server error with status code: {status_code}")


class EmptyFallbackError(EndpointDiscoveryError):
    """The static fallback table produced nothing; a packaging defect."""

    default_message = "Static fallback endpoint table is empty"


__all__ = [
    "EndpointDiscoveryError",
    "ConfigurationError",
    "RemoteConfigurationUnavailable",
    "InvalidConfigurationFormat",
    "NoValidEndpoints",
    "ResourceConfigurationNotFound",
    "EnvironmentVariableNotSet",
    "ProbeError",
    "InvalidEndpointURL",
    "InvalidResponse",
    "ConnectionTimeout",
    "EndpointUnreachable",
    "ServerError",
    "EmptyFallbackError",
]
