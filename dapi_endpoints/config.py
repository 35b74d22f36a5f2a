"""Configuration utilities for DAPI endpoint selection.

This module reads environment variables (optionally from an `.env` file) and
produces the settings consumed by the provider, prober, and selector.

Supported keys: `DAPI_NETWORK`, one of `DAPI_CONFIG_URL` /
`DAPI_CONFIG_RESOURCE` / `DAPI_ENDPOINTS_VAR` to override the configuration
source, `DAPI_PROBE_TIMEOUT`, `DAPI_MAX_CONCURRENT_PROBES`,
`DAPI_HEALTH_CACHE_TTL`, `DAPI_CONFIG_CACHE_TTL`, `DAPI_REQUEST_TIMEOUT`,
`DAPI_RESOURCE_TIMEOUT`, `LOG_DIR`, `LOG_LEVEL`, and optional `APP_NAME`.

Usage example:

    from dapi_endpoints.config import load_config
    from dapi_endpoints.selector import EndpointSelector

    config = load_config()
    selector = EndpointSelector.from_config(config)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Optional

from dapi_endpoints.networks import Network
from dapi_endpoints.sources import (
    ConfigurationSource,
    EnvironmentVariableSource,
    LocalResourceSource,
    RemoteSource,
)

ENV_FILE_NAME = ".env"

SOURCE_OVERRIDE_KEYS = ("DAPI_CONFIG_URL", "DAPI_CONFIG_RESOURCE", "DAPI_ENDPOINTS_VAR")


def _load_env_file(path: Path) -> Dict[str, str]:
    """Parse a dotenv-style file into a dictionary."""
    if not path.exists():
        return {}

    data: Dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip().strip("\"'")
    return data


def _merge_envs(dotenv_values: Mapping[str, str], env: MutableMapping[str, str]) -> Dict[str, str]:
    """Merge dotenv values with the current environment, preferring os.environ."""
    merged = dict(dotenv_values)
    merged.update(env)  # os.environ wins
    return merged


def load_environment(env_file: Optional[Path] = None, base_dir: Optional[Path] = None) -> Dict[str, str]:
    """Return the dotenv file merged with the process environment.

    Without ``env_file``, reads `.env` from ``base_dir`` (default: the current
    working directory).
    """
    target_file = env_file or (base_dir or Path.cwd()) / ENV_FILE_NAME
    return _merge_envs(_load_env_file(target_file), os.environ)


def _positive_float(values: Mapping[str, str], key: str, default: float) -> float:
    raw = values.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        number = float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None
    if number <= 0:
        raise ValueError(f"{key} must be positive, got {raw!r}")
    return number


def _positive_int(values: Mapping[str, str], key: str, default: int) -> int:
    raw = values.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        number = int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None
    if number <= 0:
        raise ValueError(f"{key} must be positive, got {raw!r}")
    return number


def _source_override(values: Mapping[str, str]) -> Optional[ConfigurationSource]:
    """Build the explicit configuration source, if exactly one override key is set."""
    present = [key for key in SOURCE_OVERRIDE_KEYS if (values.get(key) or "").strip()]
    if len(present) > 1:
        raise ValueError(f"Only one of {', '.join(SOURCE_OVERRIDE_KEYS)} may be set (got {', '.join(present)})")
    if not present:
        return None

    key = present[0]
    value = values[key].strip()
    if key == "DAPI_CONFIG_URL":
        return RemoteSource(value)
    if key == "DAPI_CONFIG_RESOURCE":
        return LocalResourceSource(value)
    return EnvironmentVariableSource(value)


@dataclass(frozen=True)
class AppConfig:
    """Settings for one endpoint-selection session."""

    network: Network
    log_directory: Path
    log_level: str
    app_name: str = "dapi-endpoints"
    source: Optional[ConfigurationSource] = None
    probe_timeout_seconds: float = 5.0
    max_concurrent_probes: int = 5
    health_cache_ttl_seconds: float = 60.0
    config_cache_ttl_seconds: float = 300.0
    request_timeout_seconds: float = 10.0
    resource_timeout_seconds: float = 30.0
    environment: Mapping[str, str] = field(default_factory=dict, repr=False, compare=False)


def load_config(env_file: Optional[Path] = None, base_dir: Optional[Path] = None) -> AppConfig:
    """Load configuration values using environment defaults.

    A relative `LOG_DIR` and the default `logs` directory resolve against
    ``base_dir``, which defaults to the current working directory.
    """
    base = base_dir or Path.cwd()
    merged = load_environment(env_file, base)

    network = Network.parse(merged.get("DAPI_NETWORK", Network.TESTNET.value))

    log_directory = Path(merged.get("LOG_DIR", "logs"))
    if not log_directory.is_absolute():
        log_directory = base / log_directory

    log_level = merged.get("LOG_LEVEL", "INFO").upper()

    return AppConfig(
        network=network,
        log_directory=log_directory,
        log_level=log_level,
        app_name=merged.get("APP_NAME", "dapi-endpoints"),
        source=_source_override(merged),
        probe_timeout_seconds=_positive_float(merged, "DAPI_PROBE_TIMEOUT", 5.0),
        max_concurrent_probes=_positive_int(merged, "DAPI_MAX_CONCURRENT_PROBES", 5),
        health_cache_ttl_seconds=_positive_float(merged, "DAPI_HEALTH_CACHE_TTL", 60.0),
        config_cache_ttl_seconds=_positive_float(merged, "DAPI_CONFIG_CACHE_TTL", 300.0),
        request_timeout_seconds=_positive_float(merged, "DAPI_REQUEST_TIMEOUT", 10.0),
        resource_timeout_seconds=_positive_float(merged, "DAPI_RESOURCE_TIMEOUT", 30.0),
        environment=merged,
    )


__all__ = ["AppConfig", "load_config", "load_environment", "ENV_FILE_NAME"]
