"""Network identifiers and the static tables keyed by them.

Each network maps to a default configuration source and to a hardcoded
fallback list. The fallback lists are the last line of defence for endpoint
selection, so every one of them must be non-empty and contain only valid URLs.
"""

from enum import Enum
from typing import Dict, List, Mapping, Sequence

from dapi_endpoints.sources import ConfigurationSource, EnvironmentVariableSource, RemoteSource
from dapi_endpoints.urls import is_valid_endpoint_url


class Network(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    DEVNET = "devnet"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "Network":
        """Parse a network name case-insensitively.

        Raises:
            ValueError: when the name matches no known network.
        """
        normalized = (text or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown network: {text!r} (expected one of {', '.join(m.value for m in cls)})")


GENERIC_ENVIRONMENT_VARIABLE = "DAPI_ENDPOINTS"

DEFAULT_SOURCES: Dict[Network, ConfigurationSource] = {
    Network.TESTNET: RemoteSource("https://config.dash.org/testnet/dapi-endpoints.json"),
    Network.MAINNET: RemoteSource("https://config.dash.org/mainnet/dapi-endpoints.json"),
    Network.DEVNET: EnvironmentVariableSource("DAPI_ENDPOINTS_DEVNET"),
}

FALLBACK_ENDPOINTS: Dict[Network, List[str]] = {
    Network.TESTNET: [
        "https://seed-1.testnet.networks.dash.org:1443",
        "https://seed-2.testnet.networks.dash.org:1443",
        "https://seed-3.testnet.networks.dash.org:1443",
    ],
    Network.MAINNET: [
        "https://dapi.dash.org:443",
        "https://seed-1.evonet.networks.dash.org:1443",
    ],
    Network.DEVNET: [
        "http://127.0.0.1:3000",
        "http://127.0.0.1:3001",
    ],
}


def validate_fallback_table(table: Mapping[Network, Sequence[str]]) -> Dict[Network, List[str]]:
    """Check that every network has a non-empty list of valid URLs.

    Returns a defensive copy of the table.

    Raises:
        ValueError: when a network is missing, empty, or lists an invalid URL.
    """
    checked: Dict[Network, List[str]] = {}
    for network in Network:
        endpoints = list(table.get(network) or [])
        if not endpoints:
            raise ValueError(f"Fallback endpoints for {network} must not be empty")
        invalid = [e for e in endpoints if not is_valid_endpoint_url(e)]
        if invalid:
            raise ValueError(f"Invalid fallback endpoints for {network}: {invalid}")
        checked[network] = endpoints
    return checked


__all__ = [
    "Network",
    "DEFAULT_SOURCES",
    "FALLBACK_ENDPOINTS",
    "GENERIC_ENVIRONMENT_VARIABLE",
    "validate_fallback_table",
]
