"""Three-tier endpoint selection and connectivity diagnostics.

Tiers, tried in order:

1) ``CONFIGURED``: configured candidates that pass a health probe.
2) ``FALLBACK_PROBED``: static fallback candidates that pass a health probe.
3) ``FALLBACK_UNVERIFIED``: the static fallback list, unprobed.

Configuration errors are logged and degrade to the next tier; they never
propagate out of the selector. Only an empty static fallback table, a
packaging defect, raises.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import requests

from dapi_endpoints.config import AppConfig
from dapi_endpoints.errors import ConfigurationError, EmptyFallbackError
from dapi_endpoints.health.prober import EndpointHealthProber
from dapi_endpoints.logging_utils import perf
from dapi_endpoints.networks import Network
from dapi_endpoints.provider.configuration import EndpointConfigurationProvider
from dapi_endpoints.selector.report import CONFIGURED, FALLBACK, ConnectivityReport, EndpointStatus

LOGGER = logging.getLogger(__name__)

SEPARATOR = ","


class SelectionTier(str, Enum):
    CONFIGURED = "configured"
    FALLBACK_PROBED = "fallback_probed"
    FALLBACK_UNVERIFIED = "fallback_unverified"


@dataclass(frozen=True)
class SelectionResult:
    """Endpoints chosen for a network and the tier that produced them."""

    network: Network
    tier: SelectionTier
    endpoints: Tuple[str, ...]
    configuration_error: Optional[ConfigurationError] = None

    @property
    def best(self) -> Optional[str]:
        return self.endpoints[0] if self.endpoints else None


class EndpointSelector:
    """Pick healthy DAPI endpoints for one network."""

    def __init__(
        self,
        network: Network,
        *,
        provider: Optional[EndpointConfigurationProvider] = None,
        prober: Optional[EndpointHealthProber] = None,
    ) -> None:
        self._network = network
        self._owns_provider = provider is None
        self._provider = provider or EndpointConfigurationProvider()
        self._prober = prober or EndpointHealthProber()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        session: Optional[requests.Session] = None,
    ) -> "EndpointSelector":
        """Build a selector, provider, and prober from loaded settings.

        ``session`` serves configuration downloads only. Health checks call
        ``requests.get`` from each worker thread rather than sharing a session.
        The returned selector owns its provider and closes it in ``close``.
        """
        sources = {config.network: config.source} if config.source is not None else None
        provider = EndpointConfigurationProvider(
            sources,
            session=session,
            request_timeout=config.request_timeout_seconds,
            resource_timeout=config.resource_timeout_seconds,
            cache_ttl=config.config_cache_ttl_seconds,
            environ=config.environment or None,
        )
        prober = EndpointHealthProber(
            timeout=config.probe_timeout_seconds,
            max_concurrent=config.max_concurrent_probes,
            cache_ttl=config.health_cache_ttl_seconds,
        )
        selector = cls(config.network, provider=provider, prober=prober)
        selector._owns_provider = True
        return selector

    @property
    def network(self) -> Network:
        return self._network

    @property
    def provider(self) -> EndpointConfigurationProvider:
        return self._provider

    @property
    def prober(self) -> EndpointHealthProber:
        return self._prober

    def _configured_candidates(self) -> Tuple[List[str], Optional[ConfigurationError]]:
        try:
            return self._provider.fetch_candidates(self._network), None
        except ConfigurationError as exc:
            LOGGER.warning("Failed to fetch DAPI configuration for %s: %s", self._network, exc)
            return [], exc

    @perf("selector.select", tags={"component": "selector"})
    def select(self) -> SelectionResult:
        """Run the tiered selection and report which tier produced the endpoints."""
        configured, config_error = self._configured_candidates()
        if configured:
            healthy = self._prober.get_healthy_endpoints(configured)
            if healthy:
                LOGGER.info("Using %d healthy configured endpoints", len(healthy))
                return SelectionResult(self._network, SelectionTier.CONFIGURED, tuple(healthy))
            LOGGER.warning("No healthy configured endpoints, checking fallback endpoints")

        fallback = self._provider.fallback_endpoints(self._network)
        if not fallback:
            LOGGER.critical("Static fallback endpoint table is empty for %s", self._network)
            raise EmptyFallbackError(f"Static fallback endpoint table is empty for {self._network}")

        healthy_fallbacks = self._prober.get_healthy_endpoints(fallback)
        if healthy_fallbacks:
            LOGGER.info("Using %d healthy fallback endpoints", len(healthy_fallbacks))
            return SelectionResult(
                self._network,
                SelectionTier.FALLBACK_PROBED,
                tuple(healthy_fallbacks),
                config_error,
            )

        LOGGER.error("No healthy endpoints available at all, returning unverified fallback endpoints")
        return SelectionResult(
            self._network,
            SelectionTier.FALLBACK_UNVERIFIED,
            tuple(fallback),
            config_error,
        )

    def get_healthy_endpoints(self) -> List[str]:
        return list(self.select().endpoints)

    def get_healthy_endpoints_string(self) -> str:
        """Comma-joined endpoint list for the native client configuration."""
        return SEPARATOR.join(self.get_healthy_endpoints())

    def get_best_endpoint(self) -> Optional[str]:
        return self.select().best

    def refresh_endpoints(self) -> None:
        """Refetch the configured list and drop all cached health results."""
        try:
            self._provider.refresh(self._network)
        except ConfigurationError as exc:
            LOGGER.warning("Failed to refresh DAPI endpoints for %s: %s", self._network, exc)
        self._prober.clear_cache()
        LOGGER.info("Endpoints refreshed for %s", self._network)

    @perf("selector.connectivity_report", tags={"component": "selector"})
    def get_connectivity_report(self) -> ConnectivityReport:
        """Probe both the configured and the fallback set in full."""
        configured, config_error = self._configured_candidates()
        fallback = self._provider.fallback_endpoints(self._network)

        configured_statuses = tuple(
            EndpointStatus.from_result(r, CONFIGURED) for r in self._prober.check_all(configured)
        )
        fallback_statuses = tuple(
            EndpointStatus.from_result(r, FALLBACK) for r in self._prober.check_all(fallback)
        )

        report = ConnectivityReport(
            network=self._network,
            configured_endpoints=configured_statuses,
            fallback_endpoints=fallback_statuses,
            configuration_error=config_error,
        )
        LOGGER.info("Connectivity report: %s", report.summary)
        return report

    def close(self) -> None:
        """Close the provider session if this selector created the provider."""
        if self._owns_provider:
            self._provider.close()

    def __enter__(self) -> "EndpointSelector":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()


__all__ = ["EndpointSelector", "SelectionResult", "SelectionTier", "SEPARATOR"]
