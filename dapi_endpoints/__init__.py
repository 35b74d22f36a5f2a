"""DAPI endpoint discovery and health-checked selection.

Subpackages:
- ``provider``: candidate endpoint lists from remote, bundled, or environment sources.
- ``health``: concurrent reachability/latency probing with a short-lived cache.
- ``selector``: three-tier selection and connectivity diagnostics.
"""
