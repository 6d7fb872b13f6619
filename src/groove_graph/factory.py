"""
Factory wiring both stores into a ``RelationshipService``.

Usage:
    settings = Settings()
    service = await create_relationship_service(settings)
    try:
        page = await service.get_edge(user_id, EdgeType.FRIENDS)
    finally:
        await service.close()
"""

import logging

from .config import Settings
from .graph.factory import create_graph_layer
from .services.relationship_service import RelationshipService
from .storage.factory import create_relational_store

logger = logging.getLogger(__name__)


async def create_relationship_service(settings: Settings | None = None, start_consumer: bool = False) -> RelationshipService:
    """
    Create and initialize the relational store, the graph layer and the facade.

    Args:
        settings: Aggregate settings; read from the environment when omitted
        start_consumer: Also start the reconciliation consumer on this instance
    """
    settings = settings or Settings()

    relational = await create_relational_store(settings)
    graph, queue = await create_graph_layer(settings, relational)

    if queue is not None and start_consumer:
        await queue.start_consumer()

    service = RelationshipService(graph, relational, queue=queue, pagination=settings.pagination)
    logger.info("RelationshipService ready")
    return service
