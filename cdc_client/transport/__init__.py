"""
Change feed transports.
"""

from .base import CDCTransport, ChangeRead
from .neo4j_transport import Neo4jChangeRead, Neo4jTransport

__all__ = [
    "CDCTransport",
    "ChangeRead",
    "Neo4jChangeRead",
    "Neo4jTransport",
]
