"""Endpoint selection and diagnostics.

Exports:
- ``EndpointSelector``: tiered selection over provider and prober.
- ``SelectionResult`` / ``SelectionTier``: which tier produced the endpoints.
- ``ConnectivityReport`` / ``EndpointStatus``: diagnostic snapshot types.
"""

from dapi_endpoints.selector.report import ConnectivityReport, EndpointStatus
from dapi_endpoints.selector.selector import EndpointSelector, SelectionResult, SelectionTier

__all__ = [
    "EndpointSelector",
    "SelectionResult",
    "SelectionTier",
    "ConnectivityReport",
    "EndpointStatus",
]
