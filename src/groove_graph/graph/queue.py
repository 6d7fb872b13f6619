"""
Reconciliation log for graph cleanup obligations.

When a node is deleted, the relational row is committed first and the
graph node removed afterwards.  If the graph half fails the deletion is
still owed: it is written here and retried by a background consumer.

Pattern:
    Producers (any service instance): LPUSH obligations as JSON
    Consumer (single instance):       BRPOP, skip or retry, re-enqueue

Obligations:
    - delete_node: remove a graph node and every incident edge

The consumer ensures:
    1. A node whose relational row came back is left alone
    2. Failed retries are re-enqueued with an attempt counter and a
       ``not_before`` time that doubles per attempt; earlier pops put the
       obligation back untouched
    3. Exhausted obligations move to a dead-letter list for operators
"""

import asyncio
import json
import logging
import time
from typing import Any

import redis.asyncio as aioredis

from ..models.node import NodeKind
from . import mutations

logger = logging.getLogger(__name__)


class ReconciliationQueue:
    """
    Redis-backed log of graph mutations owed after a cross-store failure.

    Uses LPUSH to enqueue from any instance and BRPOP to dequeue from the
    single consumer.
    """

    def __init__(
        self,
        pool: aioredis.BlockingConnectionPool,
        graph,
        relational,
        queue_key: str = "groove:graph:reconcile",
        dead_letter_key: str = "groove:graph:reconcile:dead",
        batch_size: int = 50,
        poll_interval: float = 0.5,
        max_attempts: int = 5,
        retry_backoff: float = 1.0,
        max_backoff: float = 300.0,
    ):
        """
        Args:
            pool: Redis connection pool
            graph: GraphClient used to replay mutations
            relational: RelationalStore used to detect resurrected rows
            queue_key: Redis key for pending obligations
            dead_letter_key: Redis key for exhausted obligations
            batch_size: Max obligations per consumer tick
            poll_interval: Seconds to wait on empty BRPOP
            max_attempts: Retries before an obligation is dead-lettered
            retry_backoff: Delay before the first retry; doubles per attempt
            max_backoff: Upper bound on the retry delay
        """
        self._pool = pool
        self._graph = graph
        self._relational = relational
        self._queue_key = queue_key
        self._dead_letter_key = dead_letter_key
        self._batch_size = batch_size
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._retry_backoff = retry_backoff
        self._max_backoff = max_backoff
        self._running = False
        self._consumer_task: asyncio.Task | None = None
        self._stats = {"enqueued": 0, "processed": 0, "skipped": 0, "retried": 0, "deferred": 0, "dead_lettered": 0}

    # ── Producer methods ────────────────────────────────────────────────

    async def enqueue_delete_node(self, kind: NodeKind, external_id: str, reason: str = "") -> None:
        """Record that the graph node ``external_id`` still has to be deleted."""
        await self._enqueue(
            {
                "op": "delete_node",
                "kind": kind.value,
                "id": external_id,
                "reason": reason,
                "attempts": 0,
                "ts": time.time(),
            }
        )
        logger.warning(f"Graph cleanup pending for {kind.value} {external_id}: {reason}")

    async def _enqueue(self, payload: dict[str, Any], key: str | None = None) -> None:
        """LPUSH a JSON-encoded obligation."""
        conn = aioredis.Redis(connection_pool=self._pool)
        try:
            await conn.lpush(key or self._queue_key, json.dumps(payload))
            if key is None:
                self._stats["enqueued"] += 1
        finally:
            await conn.aclose()

    # ── Consumer (runs on single instance) ──────────────────────────────

    async def start_consumer(self) -> None:
        """Start the background consumer loop."""
        if self._running:
            logger.warning("Reconciliation consumer already running")
            return

        self._running = True
        self._consumer_task = asyncio.create_task(self._consumer_loop())
        logger.info(f"Reconciliation consumer started (queue={self._queue_key})")

    async def stop_consumer(self) -> None:
        """Stop the consumer; unprocessed obligations stay in Redis."""
        self._running = False
        if self._consumer_task:
            self._consumer_task.cancel()
            try:
                await self._consumer_task
            except asyncio.CancelledError:
                pass
            self._consumer_task = None
        logger.info("Reconciliation consumer stopped")

    async def _consumer_loop(self) -> None:
        """Main consumer loop: BRPOP → process batch → repeat."""
        conn = aioredis.Redis(connection_pool=self._pool)

        try:
            while self._running:
                try:
                    batch = await self._pop_batch(conn)
                    handled = [await self._process(item) for item in batch]
                    if batch and not any(handled):
                        # Only obligations still backing off
                        await asyncio.sleep(self._poll_interval)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Reconciliation loop error: {e}")
                    await asyncio.sleep(1.0)
        finally:
            await conn.aclose()

    async def reconcile_once(self) -> int:
        """Process at most one batch without the background loop. Returns batch size."""
        conn = aioredis.Redis(connection_pool=self._pool)
        try:
            batch = await self._pop_batch(conn)
        finally:
            await conn.aclose()

        for item in batch:
            await self._process(item)
        return len(batch)

    async def _pop_batch(self, conn: aioredis.Redis) -> list[dict[str, Any]]:
        """Pop up to batch_size obligations."""
        batch: list[dict[str, Any]] = []

        result = await conn.brpop(self._queue_key, timeout=self._poll_interval)
        if result is None:
            return batch

        _, raw = result
        batch.append(json.loads(raw))

        for _ in range(self._batch_size - 1):
            raw = await conn.rpop(self._queue_key)
            if raw is None:
                break
            batch.append(json.loads(raw))

        return batch

    async def _process(self, item: dict[str, Any]) -> bool:
        """Run one obligation. Returns False when it was put back to wait out its backoff."""
        if float(item.get("not_before", 0.0)) > time.time():
            await self._enqueue(item, key=self._queue_key)
            self._stats["deferred"] += 1
            return False

        try:
            await self._execute(item)
            self._stats["processed"] += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._retry_or_bury(item, e)
        return True

    async def _execute(self, item: dict[str, Any]) -> None:
        """Replay one obligation against the graph."""
        op_type = item.get("op")
        if op_type != "delete_node":
            raise ValueError(f"Unknown reconciliation op: {op_type}")

        kind = NodeKind(item["kind"])
        external_id = item["id"]

        # A row re-created with the same id owns the graph node again
        if await self._relational.exists(kind, external_id):
            self._stats["skipped"] += 1
            logger.info(f"Skipping graph cleanup for {kind.value} {external_id}: relational row exists")
            return

        await self._graph.mutate(mutations.delete_node(kind, external_id))
        logger.info(f"Reconciled graph deletion of {kind.value} {external_id}")

    def backoff(self, attempts: int) -> float:
        """Seconds to wait before retry number ``attempts``."""
        return min(self._retry_backoff * 2 ** (attempts - 1), self._max_backoff)

    async def _retry_or_bury(self, item: dict[str, Any], error: Exception) -> None:
        attempts = int(item.get("attempts", 0)) + 1
        delay = self.backoff(attempts)
        retry = {**item, "attempts": attempts, "last_error": str(error)}

        if attempts >= self._max_attempts:
            await self._enqueue(retry, key=self._dead_letter_key)
            self._stats["dead_lettered"] += 1
            logger.error(
                f"Graph cleanup dead-lettered after {attempts} attempts: "
                f"{item.get('kind')} {item.get('id')} -> {error}"
            )
            return

        await self._enqueue({**retry, "not_before": time.time() + delay})
        self._stats["retried"] += 1
        logger.warning(
            f"Graph cleanup failed (attempt {attempts}, retry in {delay:.1f}s): "
            f"{item.get('kind')} {item.get('id')} -> {error}"
        )

    # ── Stats ───────────────────────────────────────────────────────────

    async def get_queue_depth(self) -> int:
        """Pending obligations."""
        conn = aioredis.Redis(connection_pool=self._pool)
        try:
            return await conn.llen(self._queue_key)
        finally:
            await conn.aclose()

    async def get_dead_letter_depth(self) -> int:
        """Obligations that exhausted their retries."""
        conn = aioredis.Redis(connection_pool=self._pool)
        try:
            return await conn.llen(self._dead_letter_key)
        finally:
            await conn.aclose()

    async def close(self) -> None:
        """Stop the consumer and disconnect the pool."""
        await self.stop_consumer()
        await self._pool.disconnect()

    def get_stats(self) -> dict[str, Any]:
        """Get consumer statistics."""
        return {
            "queue_key": self._queue_key,
            "dead_letter_key": self._dead_letter_key,
            "running": self._running,
            **self._stats,
        }
