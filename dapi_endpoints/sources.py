"""Configuration source variants for candidate endpoint lists.

A source is one of:

- ``RemoteSource``: JSON document fetched over HTTPS.
- ``LocalResourceSource``: JSON file bundled under the package ``data/`` directory.
- ``EnvironmentVariableSource``: comma-separated list in a process variable.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class RemoteSource:
    url: str

    def describe(self) -> str:
        return f"remote:{self.url}"


@dataclass(frozen=True)
class LocalResourceSource:
    """A bundled ``<name>.json`` file holding a string array under ``field``."""

    name: str
    field: str = "endpoints"

    def describe(self) -> str:
        return f"resource:{self.name}"


@dataclass(frozen=True)
class EnvironmentVariableSource:
    name: str

    def describe(self) -> str:
        return f"env:{self.name}"


ConfigurationSource = Union[RemoteSource, LocalResourceSource, EnvironmentVariableSource]


__all__ = [
    "ConfigurationSource",
    "RemoteSource",
    "LocalResourceSource",
    "EnvironmentVariableSource",
]
