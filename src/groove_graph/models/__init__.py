"""Data models for the relationship engine."""

from .entity import Entity
from .node import NodeKind
from .pagination import Count, Lookup, Page, Pagination, QueryMode
from .responses import EdgePage, LifecycleResult, ServiceResult
from .validators import ExternalID, is_external_id, validate_external_id

__all__ = [
    "Count",
    "EdgePage",
    "Entity",
    "ExternalID",
    "LifecycleResult",
    "Lookup",
    "NodeKind",
    "Page",
    "Pagination",
    "QueryMode",
    "ServiceResult",
    "is_external_id",
    "validate_external_id",
]
