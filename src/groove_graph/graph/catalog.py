"""
Query template catalog.

A closed set of DQL query strings.  Every ``EdgeType`` owns its three
single-node templates (page, lookup, count) and every ``MixedEdgeType``
owns three two-node templates (intersection / difference of edge sets).
Callers pick a member and a pagination mode; they never assemble query
text themselves.

Page traversals are ordered by the target's external id, and the cursor
is the last external id already returned:

    friend @filter(gt(user_id, $cursor)) (orderasc: user_id, first: $limit)
"""

from dataclasses import dataclass
from enum import Enum

from ..models.node import NodeKind
from ..models.pagination import Lookup, Page, Pagination, QueryMode
from .schema import Predicate

# ── Single-node templates ───────────────────────────────────────────────

_PAGE = """query q($id: string, $cursor: string, $limit: int) {{
	q(func: eq({source_id}, $id)) {{
		{traversal} @filter(gt({target_id}, $cursor)) (orderasc: {target_id}, first: $limit) {{
			{target_id}
		}}
	}}
}}"""

_LOOKUP = """query q($id: string, $lookup_id: string) {{
	q(func: eq({source_id}, $id)) {{
		{traversal} @filter(eq({target_id}, $lookup_id)) {{
			{target_id}
		}}
	}}
}}"""

_COUNT = """query q($id: string) {{
	q(func: eq({source_id}, $id)) {{
		count({traversal})
	}}
}}"""

# ── Two-node templates ──────────────────────────────────────────────────

_MIXED_PAGE = """query q($id: string, $target_id: string, $cursor: string, $limit: int) {{
	target as var(func: eq({target_id}, $target_id))

	q(func: eq({source_id}, $id)) {{
		{traversal} @filter(({condition}) AND gt({result_id}, $cursor)) (orderasc: {result_id}, first: $limit) {{
			{result_id}
		}}
	}}
}}"""

_MIXED_LOOKUP = """query q($id: string, $target_id: string, $lookup_id: string) {{
	target as var(func: eq({target_id}, $target_id))

	q(func: eq({source_id}, $id)) {{
		{traversal} @filter(({condition}) AND eq({result_id}, $lookup_id)) {{
			{result_id}
		}}
	}}
}}"""

_MIXED_COUNT = """query q($id: string, $target_id: string) {{
	target as var(func: eq({target_id}, $target_id))

	q(func: eq({source_id}, $id)) {{
		count({traversal} @filter({condition}))
	}}
}}"""


@dataclass(frozen=True)
class _EdgeDef:
    source: NodeKind
    predicate: Predicate
    target: NodeKind
    reverse: bool = False


@dataclass(frozen=True)
class _MixedDef:
    source: NodeKind
    target: NodeKind
    traversal: str
    condition: str


class EdgeType(Enum):
    """Edge sets reachable from a single node.

    ``reverse`` members walk the predicate backwards (``~follows`` lists
    the users following the source).
    """

    FRIENDS = _EdgeDef(NodeKind.USER, Predicate.FRIEND, NodeKind.USER)
    FOLLOWING = _EdgeDef(NodeKind.USER, Predicate.FOLLOWS, NodeKind.USER)
    FOLLOWERS = _EdgeDef(NodeKind.USER, Predicate.FOLLOWS, NodeKind.USER, reverse=True)
    BLOCKED = _EdgeDef(NodeKind.USER, Predicate.BLOCKED, NodeKind.USER)
    BLOCKED_BY = _EdgeDef(NodeKind.USER, Predicate.BLOCKED, NodeKind.USER, reverse=True)
    INVITED_EVENTS = _EdgeDef(NodeKind.USER, Predicate.INVITED, NodeKind.EVENT, reverse=True)
    BANNED_EVENTS = _EdgeDef(NodeKind.USER, Predicate.BANNED, NodeKind.EVENT, reverse=True)
    CONFIRMED_EVENTS = _EdgeDef(NodeKind.USER, Predicate.CONFIRMED, NodeKind.EVENT, reverse=True)
    LIKED_EVENTS = _EdgeDef(NodeKind.USER, Predicate.LIKED_BY, NodeKind.EVENT, reverse=True)
    EVENT_INVITED = _EdgeDef(NodeKind.EVENT, Predicate.INVITED, NodeKind.USER)
    EVENT_BANNED = _EdgeDef(NodeKind.EVENT, Predicate.BANNED, NodeKind.USER)
    EVENT_CONFIRMED = _EdgeDef(NodeKind.EVENT, Predicate.CONFIRMED, NodeKind.USER)
    EVENT_LIKED_BY = _EdgeDef(NodeKind.EVENT, Predicate.LIKED_BY, NodeKind.USER)
    POST_LIKED_BY = _EdgeDef(NodeKind.POST, Predicate.LIKED_BY, NodeKind.USER)
    COMMENT_LIKED_BY = _EdgeDef(NodeKind.COMMENT, Predicate.LIKED_BY, NodeKind.USER)

    @property
    def source_kind(self) -> NodeKind:
        return self.value.source

    @property
    def target_kind(self) -> NodeKind:
        return self.value.target

    @property
    def predicate(self) -> Predicate:
        return self.value.predicate

    @property
    def reverse(self) -> bool:
        return self.value.reverse

    @property
    def symmetric(self) -> bool:
        return self.value.predicate.symmetric

    @property
    def traversal(self) -> str:
        """Predicate as written in queries and in RDF responses."""
        prefix = "~" if self.value.reverse else ""
        return f"{prefix}{self.value.predicate.value}"

    def template(self, mode: QueryMode) -> str:
        return _EDGE_TEMPLATES[(self, mode)]

    def __repr__(self) -> str:
        return f"<EdgeType.{self.name}>"


class MixedEdgeType(Enum):
    """Edge sets computed from two nodes (intersection / difference)."""

    FRIENDS_IN_COMMON = _MixedDef(NodeKind.USER, NodeKind.USER, "friend", "uid_in(friend, uid(target))")
    FRIENDS_NOT_IN_COMMON = _MixedDef(
        NodeKind.USER, NodeKind.USER, "friend", "NOT uid_in(friend, uid(target)) AND NOT uid(target)"
    )
    FOLLOWERS_FOLLOWING = _MixedDef(NodeKind.USER, NodeKind.USER, "~follows", "uid_in(follows, uid(target))")
    FOLLOWING_FOLLOWING = _MixedDef(NodeKind.USER, NodeKind.USER, "follows", "uid_in(follows, uid(target))")
    FOLLOWING_FOLLOWERS = _MixedDef(NodeKind.USER, NodeKind.USER, "follows", "uid_in(~follows, uid(target))")
    BANNED_FRIENDS = _MixedDef(NodeKind.USER, NodeKind.EVENT, "friend", "uid_in(~banned, uid(target))")
    CONFIRMED_FRIENDS = _MixedDef(NodeKind.USER, NodeKind.EVENT, "friend", "uid_in(~confirmed, uid(target))")
    INVITED_FRIENDS = _MixedDef(NodeKind.USER, NodeKind.EVENT, "friend", "uid_in(~invited, uid(target))")
    LIKED_BY_FRIENDS = _MixedDef(NodeKind.USER, NodeKind.EVENT, "friend", "uid_in(~liked_by, uid(target))")

    @property
    def source_kind(self) -> NodeKind:
        return self.value.source

    @property
    def target_kind(self) -> NodeKind:
        return self.value.target

    @property
    def result_kind(self) -> NodeKind:
        # friend / follows only connect users
        return NodeKind.USER

    @property
    def traversal(self) -> str:
        return self.value.traversal

    def template(self, mode: QueryMode) -> str:
        return _MIXED_TEMPLATES[(self, mode)]

    def __repr__(self) -> str:
        return f"<MixedEdgeType.{self.name}>"


def _render_edge(edge: EdgeType, template: str) -> str:
    return template.format(
        source_id=edge.source_kind.id_predicate,
        target_id=edge.target_kind.id_predicate,
        traversal=edge.traversal,
    )


def _render_mixed(edge: MixedEdgeType, template: str) -> str:
    return template.format(
        source_id=edge.source_kind.id_predicate,
        target_id=edge.target_kind.id_predicate,
        result_id=edge.result_kind.id_predicate,
        traversal=edge.traversal,
        condition=edge.value.condition,
    )


_EDGE_TEMPLATES: dict[tuple[EdgeType, QueryMode], str] = {
    (edge, mode): _render_edge(edge, template)
    for edge in EdgeType
    for mode, template in ((QueryMode.PAGE, _PAGE), (QueryMode.LOOKUP, _LOOKUP), (QueryMode.COUNT, _COUNT))
}

_MIXED_TEMPLATES: dict[tuple[MixedEdgeType, QueryMode], str] = {
    (edge, mode): _render_mixed(edge, template)
    for edge in MixedEdgeType
    for mode, template in (
        (QueryMode.PAGE, _MIXED_PAGE),
        (QueryMode.LOOKUP, _MIXED_LOOKUP),
        (QueryMode.COUNT, _MIXED_COUNT),
    )
}


# ── Selection ───────────────────────────────────────────────────────────


def select_mode(pagination: Pagination | None) -> QueryMode:
    """Lookup when a target is supplied, count only when asked, page otherwise."""
    if pagination is None:
        return QueryMode.PAGE
    return pagination.mode


def query_variables(node_id: str, pagination: Pagination | None, target_id: str | None = None) -> dict[str, str]:
    """Variables bound to a catalog template for the given pagination."""
    variables = {"$id": node_id}
    if target_id is not None:
        variables["$target_id"] = target_id

    if isinstance(pagination, Lookup):
        variables["$lookup_id"] = pagination.target_id
    elif isinstance(pagination, Page):
        variables["$cursor"] = pagination.cursor
        variables["$limit"] = str(pagination.limit)
    elif pagination is None:
        variables["$cursor"] = ""
        variables["$limit"] = str(Page().limit)

    return variables


# ── Multi-edge summaries ────────────────────────────────────────────────


def edge_types_for(kind: NodeKind) -> list[EdgeType]:
    """Edge types whose source is ``kind``, in declaration order."""
    return [edge for edge in EdgeType if edge.source_kind is kind]


def statistics_query(kind: NodeKind) -> str:
    """One ``count(...)`` per edge type of ``kind``; parse with ``parse_count_map``."""
    counts = "\n".join(f"\t\tcount({edge.traversal})" for edge in edge_types_for(kind))
    return f"query q($id: string) {{\n\tq(func: eq({kind.id_predicate}, $id)) {{\n{counts}\n\t}}\n}}"


def summary_query(kind: NodeKind, edges: list[EdgeType]) -> str:
    """First ``$limit`` ids of each edge set; parse with ``parse_predicate_map``."""
    if not edges:
        raise ValueError("summary_query needs at least one edge type")
    blocks = []
    for edge in edges:
        if edge.source_kind is not kind:
            raise ValueError(f"{edge!r} does not start at a {kind.value} node")
        target_id = edge.target_kind.id_predicate
        blocks.append(
            f"\t\t{edge.traversal} (orderasc: {target_id}, first: $limit) {{\n\t\t\t{target_id}\n\t\t}}"
        )
    body = "\n".join(blocks)
    return f"query q($id: string, $limit: int) {{\n\tq(func: eq({kind.id_predicate}, $id)) {{\n{body}\n\t}}\n}}"
