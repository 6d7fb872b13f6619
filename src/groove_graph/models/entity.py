"""Hydrated entities returned to callers."""

from pydantic import BaseModel, ConfigDict

from .node import NodeKind


class Entity(BaseModel):
    """A relational row reached through a graph traversal.

    Only ``id`` is guaranteed; the remaining attributes depend on the
    projection the caller requested and are kept as extra fields.
    """

    model_config = ConfigDict(extra="allow")

    kind: NodeKind
    id: str
