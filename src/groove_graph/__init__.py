"""
groove-graph: relationship engine over a graph store and a relational store.

The graph store (Dgraph) owns edges and their order; the relational store
(SQLite) owns the attributes shown to users.  Reads hydrate graph ids from
the relational store, writes keep both stores in step.
"""

__version__ = "0.1.0"

from .config import Settings
from .errors import (
    CrossStoreError,
    DeadlineExceededError,
    FormatError,
    GraphEngineError,
    GraphStoreError,
    NotFoundError,
    RelationalStoreError,
)
from .factory import create_relationship_service
from .graph.catalog import EdgeType, MixedEdgeType
from .models import Count, EdgePage, Entity, LifecycleResult, Lookup, NodeKind, Page
from .services.relationship_service import RelationshipService

__all__ = [
    "Count",
    "CrossStoreError",
    "DeadlineExceededError",
    "EdgePage",
    "EdgeType",
    "Entity",
    "FormatError",
    "GraphEngineError",
    "GraphStoreError",
    "LifecycleResult",
    "Lookup",
    "MixedEdgeType",
    "NodeKind",
    "NotFoundError",
    "Page",
    "RelationalStoreError",
    "RelationshipService",
    "Settings",
    "create_relationship_service",
]
