"""
Existence-guarded graph mutations (upserts).

Every mutation is a guard query binding node variables, a condition over
those variables, and the triples to set or delete.  The store evaluates
the guard and applies the triples in one transaction, so an edge is never
written against a node that does not exist, including the race where one
endpoint is deleted concurrently:

    upsert {
      query {
        src as var(func: eq(user_id, "01H..."))
        dst as var(func: eq(user_id, "01J..."))
      }
      mutation @if(eq(len(src), 1) AND eq(len(dst), 1)) {
        set {
          uid(src) <friend> uid(dst) .
          uid(dst) <friend> uid(src) .
        }
      }
    }

Atomicity holds inside the graph store only, never across stores.
"""

import re
from dataclasses import dataclass, field

from ..models.node import NodeKind
from ..models.validators import validate_external_id
from .catalog import EdgeType
from .codec import join_triples, quote_literal, triple, triple_uid
from .schema import incoming_predicates

_VARIABLE_RE = re.compile(r"\$[A-Za-z_]\w*")

_BOTH_EXIST = "@if(eq(len(src), 1) AND eq(len(dst), 1))"


@dataclass(frozen=True)
class Mutation:
    """A guarded mutation ready for ``GraphClient.mutate``."""

    query: str
    cond: str | None = None
    set_nquads: bytes = b""
    del_nquads: bytes = b""
    variables: dict[str, str] = field(default_factory=dict)
    description: str = ""

    def bound_query(self) -> str:
        """Guard query with every ``$variable`` replaced by a quoted literal."""

        def substitute(match: re.Match) -> str:
            name = match.group(0)
            if name not in self.variables:
                raise ValueError(f"Unbound query variable {name} in mutation {self.description!r}")
            return quote_literal(self.variables[name])

        return _VARIABLE_RE.sub(substitute, self.query)

    def render(self) -> str:
        """Render the RDF upsert block submitted to ``/mutate``."""
        if not self.set_nquads and not self.del_nquads:
            raise ValueError(f"Mutation {self.description!r} has nothing to set or delete")

        parts = ["upsert {", "  query {"]
        parts.extend(f"    {line.strip()}" for line in self.bound_query().strip().splitlines() if line.strip())
        parts.append("  }")
        parts.append(f"  mutation {self.cond} {{" if self.cond else "  mutation {")
        for block, nquads in (("set", self.set_nquads), ("delete", self.del_nquads)):
            if not nquads:
                continue
            parts.append(f"    {block} {{")
            parts.extend(f"      {line.strip()}" for line in nquads.decode().splitlines() if line.strip())
            parts.append("    }")
        parts.append("  }")
        parts.append("}")
        return "\n".join(parts)


def _node_var(name: str, kind: NodeKind, variable: str) -> str:
    return f"{name} as var(func: eq({kind.id_predicate}, {variable}))"


# ── Nodes ───────────────────────────────────────────────────────────────


def create_node(kind: NodeKind, external_id: str) -> Mutation:
    """
    Create a node unless one with ``external_id`` already exists.

    Writes the id attribute and the ``dgraph.type`` label.  Calling it twice
    leaves exactly one node: the second guard evaluates to false.
    """
    validate_external_id(external_id)
    return Mutation(
        query=_node_var("node", kind, "$id"),
        cond="@if(eq(len(node), 0))",
        set_nquads=join_triples(
            triple("_:node", kind.id_predicate, external_id),
            triple("_:node", "dgraph.type", kind.value),
        ),
        variables={"$id": external_id},
        description=f"create {kind.value} node",
    )


def delete_node(kind: NodeKind, external_id: str) -> Mutation:
    """
    Remove a node, every outgoing edge and every incoming edge.

    ``uid(node) * * .`` only drops outgoing predicates, so incoming edges
    are collected through the reverse indices and deleted explicitly.
    """
    validate_external_id(external_id)
    incoming = incoming_predicates(kind)

    lines = [f"node as var(func: eq({kind.id_predicate}, $id)) {{"]
    lines.extend(f"\tin_{p.value} as ~{p.value}" for p in incoming)
    lines.append("}")
    query = "\n".join(lines) if incoming else _node_var("node", kind, "$id")

    deletes = [b"uid(node) * * ."]
    deletes.extend(triple_uid(f"uid(in_{p.value})", p.value, "uid(node)") for p in incoming)

    return Mutation(
        query=query,
        cond="@if(eq(len(node), 1))",
        del_nquads=join_triples(*deletes),
        variables={"$id": external_id},
        description=f"delete {kind.value} node",
    )


# ── Edges ───────────────────────────────────────────────────────────────


def _endpoints(source_id: str, edge_type: EdgeType, target_id: str) -> tuple[str, str]:
    validate_external_id(source_id)
    validate_external_id(target_id)
    if source_id == target_id:
        raise ValueError(f"Cannot create a {edge_type.name} edge from a node to itself")
    return source_id, target_id


def _guard_query(edge_type: EdgeType) -> str:
    return "\n".join(
        (
            _node_var("src", edge_type.source_kind, "$src"),
            _node_var("dst", edge_type.target_kind, "$dst"),
        )
    )


def _directed_triple(edge_type: EdgeType) -> bytes:
    if edge_type.symmetric:
        raise ValueError(f"{edge_type!r} is symmetric; use add_symmetric_edge / remove_symmetric_edge")
    # Reverse edge types store the triple from target to source so that
    # the target shows up when the source walks ``~predicate``.
    if edge_type.reverse:
        return triple_uid("uid(dst)", edge_type.predicate.value, "uid(src)")
    return triple_uid("uid(src)", edge_type.predicate.value, "uid(dst)")


def _edge_mutation(
    source_id: str, edge_type: EdgeType, target_id: str, nquads: bytes, remove: bool, what: str
) -> Mutation:
    src, dst = _endpoints(source_id, edge_type, target_id)
    return Mutation(
        query=_guard_query(edge_type),
        cond=_BOTH_EXIST,
        set_nquads=b"" if remove else nquads,
        del_nquads=nquads if remove else b"",
        variables={"$src": src, "$dst": dst},
        description=f"{'remove' if remove else 'add'} {what} {edge_type.name}",
    )


def add_edge(source_id: str, edge_type: EdgeType, target_id: str) -> Mutation:
    """Single directed edge so that ``target_id`` joins ``source_id``'s ``edge_type`` set."""
    return _edge_mutation(source_id, edge_type, target_id, _directed_triple(edge_type), remove=False, what="edge")


def remove_edge(source_id: str, edge_type: EdgeType, target_id: str) -> Mutation:
    """Inverse of ``add_edge``."""
    return _edge_mutation(source_id, edge_type, target_id, _directed_triple(edge_type), remove=True, what="edge")


def _symmetric_triples(edge_type: EdgeType) -> bytes:
    if not edge_type.symmetric:
        raise ValueError(f"{edge_type!r} is not symmetric")
    predicate = edge_type.predicate.value
    return join_triples(
        triple_uid("uid(src)", predicate, "uid(dst)"),
        triple_uid("uid(dst)", predicate, "uid(src)"),
    )


def add_symmetric_edge(a_id: str, b_id: str, edge_type: EdgeType) -> Mutation:
    """Both directions in one mutation; they succeed or fail together."""
    return _edge_mutation(a_id, edge_type, b_id, _symmetric_triples(edge_type), remove=False, what="symmetric edge")


def remove_symmetric_edge(a_id: str, b_id: str, edge_type: EdgeType) -> Mutation:
    """Remove both directions in one mutation."""
    return _edge_mutation(a_id, edge_type, b_id, _symmetric_triples(edge_type), remove=True, what="symmetric edge")


def edge_mutation(source_id: str, edge_type: EdgeType, target_id: str, remove: bool = False) -> Mutation:
    """Pick the symmetric or directed builder for ``edge_type``."""
    if edge_type.symmetric:
        builder = remove_symmetric_edge if remove else add_symmetric_edge
        return builder(source_id, target_id, edge_type)
    builder = remove_edge if remove else add_edge
    return builder(source_id, edge_type, target_id)
