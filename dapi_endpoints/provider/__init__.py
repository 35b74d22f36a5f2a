"""Candidate endpoint configuration.

Exports:
- ``EndpointConfigurationProvider``: cached, source-dispatching candidate lists.
"""

from dapi_endpoints.provider.configuration import EndpointConfigurationProvider

__all__ = ["EndpointConfigurationProvider"]
