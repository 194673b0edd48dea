"""
CDC client facade and polling stream.
"""

from .cdc_client import CDCClient
from .stream import ChangeStream, StreamState

__all__ = [
    "CDCClient",
    "ChangeStream",
    "StreamState",
]
