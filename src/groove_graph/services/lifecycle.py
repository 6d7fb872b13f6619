"""
Node lifecycle coordinator.

A node lives in two stores that share no transaction, so creating or
deleting one is run as a saga: an ordered list of steps, each with an
optional compensation.  When a step fails, the steps already done are
compensated in reverse order.  Steps after the point of no return are
marked ``retriable``: their failure is not compensated but written to the
reconciliation log and finished later by the consumer.

Create:
    1. insert relational row (open transaction)  ↺ rollback
    2. create graph node                         ↺ delete graph node
    3. commit relational transaction

Delete:
    1. collect cascaded child rows, delete relational row and commit
    2. delete graph nodes (node, then children)  → retriable
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..errors import CrossStoreError, NotFoundError, Store
from ..graph import mutations
from ..models.node import NodeKind
from ..models.responses import LifecycleResult
from ..models.validators import validate_external_id

logger = logging.getLogger(__name__)


@dataclass
class SagaStep:
    """One step of a cross-store operation."""

    name: str
    store: Store
    action: Callable[[], Awaitable[Any]]
    compensation: Callable[[], Awaitable[Any]] | None = None
    # Records the step's effect as owed when it cannot be done or undone now
    obligation: Callable[[str], Awaitable[None]] | None = None
    retriable: bool = False


@dataclass
class SagaOutcome:
    completed: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    # Failure reason per pending step
    errors: list[str] = field(default_factory=list)


class Saga:
    """
    Runs ``SagaStep`` lists for one node.

    A failure before any step completed leaves both stores untouched and is
    re-raised as is; later failures raise ``CrossStoreError``.
    """

    def __init__(self, operation: str, kind: NodeKind, external_id: str, steps: list[SagaStep]):
        self.operation = operation
        self.kind = kind
        self.external_id = external_id
        self.steps = steps

    def _error(self, step: SagaStep, reason: str) -> CrossStoreError:
        return CrossStoreError(
            operation=self.operation,
            kind=self.kind.value,
            external_id=self.external_id,
            failed_store=step.store,
            reason=reason,
        )

    async def run(self) -> SagaOutcome:
        outcome = SagaOutcome()
        done: list[SagaStep] = []

        for step in self.steps:
            try:
                await step.action()
            except Exception as e:
                if not done:
                    raise

                reason = f"{step.name}: {e}"
                if step.retriable:
                    await self._record(step, reason)
                    outcome.pending.append(step.name)
                    outcome.errors.append(reason)
                    logger.warning(f"{self.operation} {self.kind.value} {self.external_id}: {reason} (pending)")
                    continue

                logger.error(f"{self.operation} {self.kind.value} {self.external_id} failed at {reason}")
                await self._compensate(done, reason)
                raise self._error(step, str(e)) from e

            done.append(step)
            outcome.completed.append(step.name)

        return outcome

    async def _record(self, step: SagaStep, reason: str) -> None:
        if step.obligation is None:
            logger.error(
                f"{self.operation} {self.kind.value} {self.external_id}: {step.store} store failed at {reason}; "
                "no reconciliation log configured, graph state left inconsistent"
            )
            raise self._error(step, f"{reason}; no reconciliation log configured")
        try:
            await step.obligation(reason)
        except Exception as e:
            logger.error(f"Could not record reconciliation for {self.kind.value} {self.external_id}: {e}")
            raise self._error(step, f"{reason}; reconciliation log unavailable: {e}") from e

    async def _compensate(self, done: list[SagaStep], reason: str) -> None:
        for step in reversed(done):
            if step.compensation is None:
                continue
            try:
                await step.compensation()
            except Exception as e:
                logger.error(f"Compensation {step.name} failed for {self.kind.value} {self.external_id}: {e}")
                if step.obligation is None:
                    continue
                try:
                    await step.obligation(f"compensating {reason}")
                except Exception as record_error:
                    logger.error(
                        f"Could not record reconciliation for {self.kind.value} {self.external_id}: {record_error}"
                    )


class NodeLifecycleCoordinator:
    """Creates and deletes nodes across the relational and graph stores."""

    def __init__(self, graph, relational, queue=None):
        """
        Args:
            graph: GraphClient
            relational: RelationalStore
            queue: ReconciliationQueue, or None when the log is disabled
        """
        self._graph = graph
        self._relational = relational
        self._queue = queue

    def _obligation(
        self, nodes: Callable[[], list[tuple[NodeKind, str]]]
    ) -> Callable[[str], Awaitable[None]] | None:
        """Recorder enqueueing a graph deletion for every node ``nodes()`` still lists."""
        if self._queue is None:
            return None

        async def record(reason: str) -> None:
            for kind, external_id in nodes():
                await self._queue.enqueue_delete_node(kind, external_id, reason)

        return record

    async def create(
        self, kind: NodeKind, external_id: str, attributes: dict[str, Any] | None = None
    ) -> LifecycleResult:
        """
        Create a node in both stores.

        Raises:
            RelationalStoreError: the row could not be inserted (graph untouched)
            CrossStoreError: the graph step or the commit failed
        """
        validate_external_id(external_id)

        async def delete_graph_node() -> None:
            await self._graph.mutate(mutations.delete_node(kind, external_id))

        async with self._relational.transaction() as tx:

            async def insert_row() -> None:
                await self._relational.insert_row(kind, external_id, attributes, tx=tx)

            async def create_graph_node() -> None:
                await self._graph.mutate(mutations.create_node(kind, external_id))

            saga = Saga(
                "create",
                kind,
                external_id,
                [
                    SagaStep("insert row", "relational", insert_row, compensation=tx.rollback),
                    SagaStep(
                        "create graph node",
                        "graph",
                        create_graph_node,
                        compensation=delete_graph_node,
                        obligation=self._obligation(lambda: [(kind, external_id)]),
                    ),
                    SagaStep("commit", "relational", tx.commit),
                ],
            )
            await saga.run()

        logger.info(f"Created {kind.value} {external_id}")
        return LifecycleResult(operation="create", kind=kind, external_id=external_id)

    async def delete(self, external_id: str, kind: NodeKind | None = None) -> LifecycleResult:
        """
        Delete a node from both stores.

        The relational row goes first and foreign keys cascade to child rows
        (an event's posts, a post's comments, a user's comments and their
        replies).  The graph nodes of those children are deleted after the
        node itself.  A graph failure is written to the reconciliation log for
        every node not yet deleted and reported as ``pending_reconciliation``.

        Raises:
            NotFoundError: ``kind`` omitted and no table holds ``external_id``
            RelationalStoreError: the row could not be deleted (graph untouched)
            CrossStoreError: the graph step failed and could not be recorded
        """
        validate_external_id(external_id)
        if kind is None:
            kind = await self._relational.find_kind(external_id)
            if kind is None:
                raise NotFoundError(external_id)

        removed = 0
        cascaded: list[tuple[NodeKind, str]] = []
        # Graph nodes still to delete, in order
        remaining: list[tuple[NodeKind, str]] = []

        async def delete_row() -> None:
            nonlocal removed
            async with self._relational.transaction() as tx:
                cascaded.extend(await self._relational.cascaded_rows(kind, external_id, tx=tx))
                removed = await self._relational.delete_row(kind, external_id, tx=tx)
                await tx.commit()
            remaining.extend([(kind, external_id), *cascaded])

        async def delete_graph_nodes() -> None:
            while remaining:
                node_kind, node_id = remaining[0]
                await self._graph.mutate(mutations.delete_node(node_kind, node_id))
                remaining.pop(0)

        saga = Saga(
            "delete",
            kind,
            external_id,
            [
                SagaStep("delete row", "relational", delete_row),
                SagaStep(
                    "delete graph nodes",
                    "graph",
                    delete_graph_nodes,
                    obligation=self._obligation(lambda: list(remaining)),
                    retriable=True,
                ),
            ],
        )
        outcome = await saga.run()

        pending = bool(outcome.pending)
        if pending:
            logger.warning(
                f"Deleted {kind.value} {external_id} relationally; "
                f"graph cleanup pending for {len(remaining)} node(s)"
            )
        else:
            logger.info(f"Deleted {kind.value} {external_id} and {len(cascaded)} cascaded node(s)")

        return LifecycleResult(
            operation="delete",
            kind=kind,
            external_id=external_id,
            success=not pending,
            error="; ".join(outcome.errors) or None,
            cascaded_ids=[node_id for _, node_id in cascaded],
            relational_changed=removed > 0,
            graph_changed=not pending,
            pending_reconciliation=pending,
        )
