"""
Graph schema for the social graph.

Defines the DQL schema for Dgraph: node types, edge predicates and
indices. The schema is applied idempotently on startup (``/alter``).

Node types:
    User, Event, Post, Comment - each keyed by ``<kind>_id`` (external id)

Edge predicates (all ``[uid] @reverse``):
    friend    - User -> User, symmetric (two triples per friendship)
    follows   - User -> User
    blocked   - User -> User
    invited   - Event -> User
    banned    - Event -> User
    confirmed - Event -> User
    liked_by  - Event|Post|Comment -> User

Indices:
    <kind>_id @index(exact) - equality lookup plus ordered ``gt`` paging
"""

from enum import Enum

from ..models.node import NodeKind


class Predicate(str, Enum):
    """Edge predicates known to the schema (whitelist for query assembly)."""

    FRIEND = "friend"
    FOLLOWS = "follows"
    BLOCKED = "blocked"
    INVITED = "invited"
    BANNED = "banned"
    CONFIRMED = "confirmed"
    LIKED_BY = "liked_by"

    @property
    def symmetric(self) -> bool:
        return self is Predicate.FRIEND

    @property
    def subject_kinds(self) -> frozenset[NodeKind]:
        return _SUBJECT_KINDS[self]

    @property
    def object_kind(self) -> NodeKind:
        # Every edge in this graph points at a user
        return NodeKind.USER


_SUBJECT_KINDS: dict[Predicate, frozenset[NodeKind]] = {
    Predicate.FRIEND: frozenset({NodeKind.USER}),
    Predicate.FOLLOWS: frozenset({NodeKind.USER}),
    Predicate.BLOCKED: frozenset({NodeKind.USER}),
    Predicate.INVITED: frozenset({NodeKind.EVENT}),
    Predicate.BANNED: frozenset({NodeKind.EVENT}),
    Predicate.CONFIRMED: frozenset({NodeKind.EVENT}),
    Predicate.LIKED_BY: frozenset({NodeKind.EVENT, NodeKind.POST, NodeKind.COMMENT}),
}

# Predicates carrying the external id of a node; lines using them in an RDF
# response are identifier lines, every other predicate declares an edge.
ID_PREDICATES: frozenset[str] = frozenset(kind.id_predicate for kind in NodeKind)


def outgoing_predicates(kind: NodeKind) -> list[Predicate]:
    """Predicates a node of ``kind`` may be the subject of."""
    return [p for p in Predicate if kind in p.subject_kinds]


def incoming_predicates(kind: NodeKind) -> list[Predicate]:
    """Predicates that may point at a node of ``kind``."""
    return [p for p in Predicate if p.object_kind is kind]


def _type_block(kind: NodeKind) -> str:
    fields = [kind.id_predicate] + [p.value for p in outgoing_predicates(kind)]
    body = "\n".join(f"\t{f}" for f in fields)
    return f"type {kind.value} {{\n{body}\n}}"


def build_schema() -> str:
    """Render the DQL schema applied on startup."""
    types = "\n\n".join(_type_block(kind) for kind in NodeKind)
    ids = "\n".join(f"{kind.id_predicate}: string @index(exact) ." for kind in NodeKind)
    edges = "\n".join(f"{p.value}: [uid] @reverse ." for p in Predicate)
    return f"{types}\n\n{ids}\n\n{edges}\n"


SCHEMA: str = build_schema()
