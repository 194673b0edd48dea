"""
Error types for the CDC client.

Configuration problems are rejected when a selector or config is built.
Connectivity and mapping problems end the current query or stream.
"""


class CDCError(Exception):
    """Base exception for CDC client errors."""
    pass


class ConfigurationError(CDCError, ValueError):
    """Invalid selector or client configuration."""
    pass


class ConnectivityError(CDCError):
    """Transport or authorization failure while reading the change feed."""
    pass


class MappingError(CDCError):
    """A raw change record could not be mapped to a ChangeEvent."""
    pass


__all__ = [
    "CDCError",
    "ConfigurationError",
    "ConnectivityError",
    "MappingError",
]
