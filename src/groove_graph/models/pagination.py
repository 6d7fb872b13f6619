"""Pagination modes for graph traversals.

``Page`` walks an edge set in external-id order, ``Lookup`` checks for a
single target, ``Count`` asks only for the aggregate.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from .validators import ExternalID, PageLimit


class QueryMode(str, Enum):
    PAGE = "page"
    LOOKUP = "lookup"
    COUNT = "count"


class Page(BaseModel):
    """Ordered traversal starting after ``cursor`` (an external id)."""

    model_config = ConfigDict(frozen=True)

    cursor: str = ""
    limit: PageLimit = 20

    @property
    def mode(self) -> QueryMode:
        return QueryMode.PAGE


class Lookup(BaseModel):
    """Existence check for ``target_id`` inside an edge set."""

    model_config = ConfigDict(frozen=True)

    target_id: ExternalID

    @property
    def mode(self) -> QueryMode:
        return QueryMode.LOOKUP


class Count(BaseModel):
    """Aggregate only."""

    model_config = ConfigDict(frozen=True)

    @property
    def mode(self) -> QueryMode:
        return QueryMode.COUNT


Pagination = Page | Lookup | Count
