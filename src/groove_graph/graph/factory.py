"""
Factory for creating and initializing the graph layer.

Creates GraphClient + ReconciliationQueue from the aggregate settings.
The queue is None when the reconciliation log is disabled
(GROOVE_RECONCILE_ENABLED=false).
"""

import logging

import redis.asyncio as aioredis

from ..config import Settings
from .client import GraphClient
from .queue import ReconciliationQueue

logger = logging.getLogger(__name__)


async def create_graph_layer(settings: Settings, relational) -> tuple[GraphClient, ReconciliationQueue | None]:
    """
    Create and initialize the Dgraph client and, if enabled, the reconciliation log.

    Args:
        settings: Aggregate settings
        relational: Initialized RelationalStore (the consumer checks row existence)

    Returns:
        Tuple of (GraphClient, ReconciliationQueue or None).
    """
    config = settings.dgraph
    token = config.api_token.get_secret_value() if config.api_token else None

    client = GraphClient(
        url=config.url,
        timeout=config.timeout,
        api_token=token,
        max_connections=config.max_connections,
        apply_schema=config.apply_schema,
    )
    await client.initialize()

    rconfig = settings.reconciliation
    if not rconfig.enabled:
        logger.info("Reconciliation log disabled (GROOVE_RECONCILE_ENABLED=false)")
        return client, None

    password = rconfig.password.get_secret_value() if rconfig.password else None
    pool = aioredis.BlockingConnectionPool(
        host=rconfig.host,
        port=rconfig.port,
        password=password,
        max_connections=rconfig.max_connections,
        timeout=None,
        decode_responses=True,
    )

    queue = ReconciliationQueue(
        pool=pool,
        graph=client,
        relational=relational,
        queue_key=rconfig.queue_key,
        dead_letter_key=rconfig.dead_letter_key,
        batch_size=rconfig.batch_size,
        poll_interval=rconfig.poll_interval,
        max_attempts=rconfig.max_attempts,
        retry_backoff=rconfig.retry_backoff,
        max_backoff=rconfig.max_backoff,
    )

    logger.info(f"Reconciliation log enabled: {rconfig.host}:{rconfig.port}/{rconfig.queue_key}")
    return client, queue
