"""
Relationship Service - single entry point for relationship operations.

Wraps the hydration pipeline, the edge mutation builder and the node
lifecycle coordinator behind one async API.  Every operation accepts an
optional ``timeout`` in seconds; when it expires the in-flight work is
cancelled and ``DeadlineExceededError`` is raised, never a partial result.
"""

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import Any, TypeVar

from ..config import PaginationSettings
from ..errors import DeadlineExceededError, NotFoundError
from ..graph import mutations
from ..graph.catalog import EdgeType, MixedEdgeType
from ..models.node import NodeKind
from ..models.pagination import Lookup, Pagination
from ..models.responses import EdgePage, LifecycleResult
from .hydration import HydrationPipeline
from .lifecycle import NodeLifecycleCoordinator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RelationshipService:
    """Relationship operations over the graph and relational stores."""

    def __init__(
        self,
        graph,
        relational,
        queue=None,
        pagination: PaginationSettings | None = None,
    ):
        """
        Args:
            graph: Initialized GraphClient
            relational: Initialized RelationalStore
            queue: ReconciliationQueue, or None when the log is disabled
            pagination: Page size limits
        """
        self.graph = graph
        self.relational = relational
        self.queue = queue
        self.hydration = HydrationPipeline(graph, relational, pagination)
        self.lifecycle = NodeLifecycleCoordinator(graph, relational, queue)

    async def _bounded(self, operation: str, work: Awaitable[T], timeout: float | None) -> T:
        try:
            return await asyncio.wait_for(work, timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"{operation} exceeded its deadline of {timeout}s")
            raise DeadlineExceededError(operation, timeout or 0.0) from e

    # ── Reads ───────────────────────────────────────────────────────────

    async def get_edge(
        self,
        node_id: str,
        edge_type: EdgeType,
        pagination: Pagination | None = None,
        fields: Sequence[str] | None = None,
        timeout: float | None = None,
    ) -> EdgePage:
        """Hydrated page (or lookup) of ``node_id``'s ``edge_type`` set."""
        return await self._bounded(
            "get_edge", self.hydration.get_edge(node_id, edge_type, pagination, fields), timeout
        )

    async def get_edge_count(self, node_id: str, edge_type: EdgeType, timeout: float | None = None) -> int:
        return await self._bounded("get_edge_count", self.hydration.get_edge_count(node_id, edge_type), timeout)

    async def get_mixed_edge(
        self,
        node_id: str,
        target_id: str,
        edge_type: MixedEdgeType,
        pagination: Pagination | None = None,
        fields: Sequence[str] | None = None,
        timeout: float | None = None,
    ) -> EdgePage:
        """Hydrated page of an edge set computed from two nodes."""
        return await self._bounded(
            "get_mixed_edge",
            self.hydration.get_mixed_edge(node_id, target_id, edge_type, pagination, fields),
            timeout,
        )

    async def get_mixed_edge_count(
        self, node_id: str, target_id: str, edge_type: MixedEdgeType, timeout: float | None = None
    ) -> int:
        return await self._bounded(
            "get_mixed_edge_count",
            self.hydration.get_mixed_edge_count(node_id, target_id, edge_type),
            timeout,
        )

    async def has_edge(
        self, node_id: str, target_id: str, edge_type: EdgeType, timeout: float | None = None
    ) -> bool:
        """True when ``target_id`` is in ``node_id``'s ``edge_type`` set."""

        async def lookup() -> bool:
            try:
                page = await self.hydration.get_edge(node_id, edge_type, Lookup(target_id=target_id), fields=["id"])
            except NotFoundError:
                return False
            return target_id in page.ids

        return await self._bounded("has_edge", lookup(), timeout)

    async def get_statistics(self, kind: NodeKind, node_id: str, timeout: float | None = None) -> dict[str, int]:
        """Every edge count of a node, keyed by lower-cased edge type name."""
        return await self._bounded("get_statistics", self.hydration.get_statistics(kind, node_id), timeout)

    async def get_edge_summary(
        self,
        kind: NodeKind,
        node_id: str,
        edge_types: Sequence[EdgeType] | None = None,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> dict[EdgeType, list[str]]:
        """First ids of several edge sets of a node in one graph query."""
        return await self._bounded(
            "get_edge_summary",
            self.hydration.get_edge_summary(kind, node_id, edge_types, limit),
            timeout,
        )

    # ── Edge writes ─────────────────────────────────────────────────────

    async def add_edge(
        self, node_id: str, target_id: str, edge_type: EdgeType, timeout: float | None = None
    ) -> None:
        """
        Add ``target_id`` to ``node_id``'s ``edge_type`` set.

        Idempotent; a no-op when either node does not exist.  Symmetric types
        write both directions atomically.
        """
        mutation = mutations.edge_mutation(node_id, edge_type, target_id)
        await self._bounded("add_edge", self.graph.mutate(mutation), timeout)
        logger.debug(f"Added {edge_type.name} edge {node_id} -> {target_id}")

    async def remove_edge(
        self, node_id: str, target_id: str, edge_type: EdgeType, timeout: float | None = None
    ) -> None:
        """Inverse of ``add_edge``."""
        mutation = mutations.edge_mutation(node_id, edge_type, target_id, remove=True)
        await self._bounded("remove_edge", self.graph.mutate(mutation), timeout)
        logger.debug(f"Removed {edge_type.name} edge {node_id} -> {target_id}")

    # ── Node lifecycle ──────────────────────────────────────────────────

    async def create_node(
        self,
        kind: NodeKind,
        external_id: str,
        attributes: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> LifecycleResult:
        """Create a node in both stores (saga; see ``NodeLifecycleCoordinator``)."""
        return await self._bounded(
            "create_node", self.lifecycle.create(kind, external_id, attributes), timeout
        )

    async def delete_node(
        self, kind: NodeKind | None, external_id: str, timeout: float | None = None
    ) -> LifecycleResult:
        """Delete a node from both stores; ``kind=None`` resolves it relationally."""
        return await self._bounded("delete_node", self.lifecycle.delete(external_id, kind), timeout)

    # ── Lifecycle ───────────────────────────────────────────────────────

    async def health(self) -> dict[str, Any]:
        """Graph health plus reconciliation backlog."""
        status: dict[str, Any] = {"graph": await self.graph.health()}
        if self.queue is not None:
            status["reconciliation"] = {
                **self.queue.get_stats(),
                "depth": await self.queue.get_queue_depth(),
                "dead_letters": await self.queue.get_dead_letter_depth(),
            }
        return status

    async def close(self) -> None:
        """Stop the reconciliation consumer and close both stores."""
        if self.queue is not None:
            await self.queue.close()
        await self.graph.close()
        await self.relational.close()
        logger.info("RelationshipService closed")
