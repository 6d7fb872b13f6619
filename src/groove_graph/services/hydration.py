"""
Cross-store hydration pipeline.

Graph traversals decide *which* entities are related and in what order;
the relational store supplies *what* they look like.  Every read goes:

    catalog template → graph query → RDF ids → SELECT ... WHERE id IN (...)
    → rows re-sorted into graph order

Counts, statistics and summaries stop after the graph step.
"""

import logging
from collections.abc import Sequence

from ..config import PaginationSettings
from ..errors import NotFoundError
from ..graph import codec
from ..graph.catalog import (
    EdgeType,
    MixedEdgeType,
    edge_types_for,
    query_variables,
    statistics_query,
    summary_query,
)
from ..models.entity import Entity
from ..models.node import NodeKind
from ..models.pagination import Count, Lookup, Page, Pagination, QueryMode
from ..models.responses import EdgePage
from ..models.validators import validate_external_id

logger = logging.getLogger(__name__)


class HydrationPipeline:
    """Reads edge sets from the graph and hydrates them from the relational store."""

    def __init__(self, graph, relational, pagination: PaginationSettings | None = None):
        self._graph = graph
        self._relational = relational
        self._pagination = pagination or PaginationSettings()

    def _normalize(self, pagination: Pagination | None) -> Page | Lookup:
        if pagination is None:
            return Page(limit=self._pagination.default_limit)
        if isinstance(pagination, Count):
            raise ValueError("Count pagination returns no entities; use the *_count operations")
        if isinstance(pagination, Page) and pagination.limit > self._pagination.max_limit:
            return Page(cursor=pagination.cursor, limit=self._pagination.max_limit)
        return pagination

    # ── Single-node edges ───────────────────────────────────────────────

    async def get_edge(
        self,
        node_id: str,
        edge_type: EdgeType,
        pagination: Pagination | None = None,
        fields: Sequence[str] | None = None,
    ) -> EdgePage:
        """
        Hydrated targets of ``edge_type`` starting at ``node_id``.

        Raises:
            NotFoundError: a ``Lookup`` matched nothing
            ValueError: invalid id, unknown field or ``Count`` pagination
        """
        validate_external_id(node_id)
        pagination = self._normalize(pagination)

        raw = await self._graph.query(
            edge_type.template(pagination.mode), query_variables(node_id, pagination)
        )
        ids = codec.parse_ids(raw)
        return await self._hydrate(edge_type.target_kind, ids, pagination, fields, what=edge_type.name)

    async def get_edge_count(self, node_id: str, edge_type: EdgeType) -> int:
        """Size of the edge set; no relational round-trip."""
        validate_external_id(node_id)
        raw = await self._graph.query(edge_type.template(QueryMode.COUNT), query_variables(node_id, Count()))
        if not raw:
            raise NotFoundError(node_id, what=edge_type.source_kind.value)
        return codec.parse_count(raw)

    # ── Two-node edges ──────────────────────────────────────────────────

    async def get_mixed_edge(
        self,
        node_id: str,
        target_id: str,
        edge_type: MixedEdgeType,
        pagination: Pagination | None = None,
        fields: Sequence[str] | None = None,
    ) -> EdgePage:
        """Hydrated intersection / difference of two nodes' edge sets."""
        validate_external_id(node_id)
        validate_external_id(target_id)
        pagination = self._normalize(pagination)

        raw = await self._graph.query(
            edge_type.template(pagination.mode), query_variables(node_id, pagination, target_id)
        )
        ids = codec.parse_ids(raw)
        return await self._hydrate(edge_type.result_kind, ids, pagination, fields, what=edge_type.name)

    async def get_mixed_edge_count(self, node_id: str, target_id: str, edge_type: MixedEdgeType) -> int:
        validate_external_id(node_id)
        validate_external_id(target_id)
        raw = await self._graph.query(
            edge_type.template(QueryMode.COUNT), query_variables(node_id, Count(), target_id)
        )
        if not raw:
            raise NotFoundError(node_id, what=edge_type.source_kind.value)
        return codec.parse_count(raw)

    # ── Summaries ───────────────────────────────────────────────────────

    async def get_statistics(self, kind: NodeKind, node_id: str) -> dict[str, int]:
        """
        Every edge count of a node in one query.

        Returns:
            ``{"friends": 3, "followers": 12, ...}`` keyed by lower-cased
            edge type name; edge sets the store did not report count as 0.
        """
        validate_external_id(node_id)
        raw = await self._graph.query(statistics_query(kind), {"$id": node_id})
        if not raw:
            raise NotFoundError(node_id, what=kind.value)

        counts = codec.parse_count_map(raw)
        return {edge.name.lower(): counts.get(edge.traversal, 0) for edge in edge_types_for(kind)}

    async def get_edge_summary(
        self,
        kind: NodeKind,
        node_id: str,
        edge_types: Sequence[EdgeType] | None = None,
        limit: int | None = None,
    ) -> dict[EdgeType, list[str]]:
        """First ``limit`` target ids of several edge sets in one query (ids only)."""
        validate_external_id(node_id)
        edges = list(edge_types) if edge_types else edge_types_for(kind)
        limit = min(limit or self._pagination.default_limit, self._pagination.max_limit)

        raw = await self._graph.query(summary_query(kind, edges), {"$id": node_id, "$limit": str(limit)})
        by_predicate = codec.parse_predicate_map(raw)
        return {edge: by_predicate.get(edge.traversal, []) for edge in edges}

    # ── Hydration ───────────────────────────────────────────────────────

    async def _hydrate(
        self,
        kind: NodeKind,
        ids: list[str],
        pagination: Page | Lookup,
        fields: Sequence[str] | None,
        what: str,
    ) -> EdgePage:
        if not ids:
            if isinstance(pagination, Lookup):
                raise NotFoundError(pagination.target_id, what=f"{what} edge")
            return EdgePage()

        rows = await self._relational.select_in_ids(kind, ids, fields)
        by_id = {row["id"]: row for row in rows}

        # The relational store returns rows in arbitrary order; graph order wins
        items = [Entity(kind=kind, **by_id[i]) for i in ids if i in by_id]
        missing = [i for i in ids if i not in by_id]
        if missing:
            logger.warning(f"{len(missing)} {kind.value} id(s) from {what} have no relational row: {missing}")

        next_cursor = None
        if isinstance(pagination, Page) and len(ids) >= pagination.limit:
            next_cursor = ids[-1]

        return EdgePage(items=items, ids=ids, missing_ids=missing, next_cursor=next_cursor)
