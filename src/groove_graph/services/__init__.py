"""Service layer: hydration, node lifecycle and the relationship facade."""

from .hydration import HydrationPipeline
from .lifecycle import NodeLifecycleCoordinator, Saga, SagaStep
from .relationship_service import RelationshipService

__all__ = [
    "HydrationPipeline",
    "NodeLifecycleCoordinator",
    "RelationshipService",
    "Saga",
    "SagaStep",
]
