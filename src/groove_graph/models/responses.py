"""Service-layer response models.

Typed Pydantic models returned by the hydration pipeline and the node
lifecycle coordinator instead of bare dicts.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from .entity import Entity
from .node import NodeKind

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class ServiceResult(BaseModel):
    """Common base for operation results.

    ``success`` is False when part of the work is still owed; ``error`` then
    says why.
    """

    success: bool = True
    error: str | None = None


# ---------------------------------------------------------------------------
# Traversals
# ---------------------------------------------------------------------------


class EdgePage(BaseModel):
    """One page of hydrated edge targets.

    ``ids`` is the graph-determined order; ``items`` follows it.  Ids with
    no relational row (an in-flight create/delete) are listed in
    ``missing_ids`` and left out of ``items``.
    """

    items: list[Entity] = Field(default_factory=list)
    ids: list[str] = Field(default_factory=list)
    missing_ids: list[str] = Field(default_factory=list)
    next_cursor: str | None = None

    def __len__(self) -> int:
        return len(self.items)


# ---------------------------------------------------------------------------
# Node lifecycle
# ---------------------------------------------------------------------------


class LifecycleResult(ServiceResult):
    """Outcome of a cross-store create or delete."""

    operation: str
    kind: NodeKind
    external_id: str
    relational_changed: bool = True
    graph_changed: bool = True
    pending_reconciliation: bool = False
    # Child rows removed by foreign-key cascades (delete only)
    cascaded_ids: list[str] = Field(default_factory=list)
