"""
Graph layer for the relationship engine.

Provides the Dgraph-backed social graph:
- RDF wire codec for responses and mutation triples
- Closed catalog of query templates per edge type
- Existence-guarded upserts for nodes and edges
- Redis reconciliation log for cleanup owed after cross-store failures
"""

from .catalog import EdgeType, MixedEdgeType
from .client import GraphClient
from .queue import ReconciliationQueue
from .schema import SCHEMA, Predicate

__all__ = [
    "EdgeType",
    "GraphClient",
    "MixedEdgeType",
    "Predicate",
    "ReconciliationQueue",
    "SCHEMA",
]
