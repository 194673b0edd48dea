"""
Configuration for the CDC client.
"""

from .settings import (
    CDCSettings,
    ClientConfig,
    Neo4jSettings,
    Settings,
    get_settings,
)

__all__ = [
    "CDCSettings",
    "ClientConfig",
    "Neo4jSettings",
    "Settings",
    "get_settings",
]
