"""
Node monitoring module: registry, change detection and the poll loop.

Turns periodic reads into a filtered stream of observations using a
per-node absolute deadband and a forced reporting interval.
"""

__all__ = ["models", "registry", "detector", "service"]
