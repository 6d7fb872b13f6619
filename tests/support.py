"""Shared test support: deterministic ids and an in-memory graph store."""

import re
from collections import defaultdict

from groove_graph.graph import codec
from groove_graph.graph.catalog import (
    _EDGE_TEMPLATES,
    _MIXED_TEMPLATES,
    MixedEdgeType,
    edge_types_for,
    statistics_query,
)
from groove_graph.models.node import NodeKind
from groove_graph.models.pagination import QueryMode


def ulid(n: int) -> str:
    """Deterministic ULID-shaped id; lexical order follows ``n``."""
    return f"01H{n:023d}"


# ---------------------------------------------------------------------------
# In-memory graph store speaking the RDF grammar
# ---------------------------------------------------------------------------

_VAR_RE = re.compile(r'(\w+) as var\(func: eq\((\w+), "((?:[^"\\]|\\.)*)"\)\)')
_REVERSE_VAR_RE = re.compile(r"(\w+) as ~(\w+)")
_COND_RE = re.compile(r"eq\(len\((\w+)\), (\d+)\)")
_TRIPLE_RE = re.compile(r"^(\S+) <([^>]+)> (.+?) \.$")
_UID_RE = re.compile(r"^uid\((\w+)\)$")
_ROOT_RE = re.compile(r"q\(func: eq\((\w+), \$id\)\)")
_SUMMARY_RE = re.compile(r"^\t\t(~?\w+) \(orderasc: \w+, first: \$limit\)", re.MULTILINE)
_CONDITION_TERM_RE = re.compile(r"^(NOT )?(?:uid_in\((~?\w+), uid\(target\)\)|uid\(target\))$")

_TEMPLATES = {text: key for key, text in {**_EDGE_TEMPLATES, **_MIXED_TEMPLATES}.items()}
_STATISTICS = {statistics_query(kind): kind for kind in NodeKind}
_KIND_BY_ID_PREDICATE = {kind.id_predicate: kind for kind in NodeKind}


class FakeGraph:
    """
    Minimal Dgraph stand-in implementing ``query`` and ``mutate``.

    Understands exactly the query catalog and the guarded mutations built
    by ``groove_graph.graph.mutations``; responses use the RDF line format.
    """

    def __init__(self):
        self._next_uid = 1
        self.ids: dict[int, tuple[str, str]] = {}  # uid -> (id predicate, external id)
        self.edges: dict[str, set[tuple[int, int]]] = defaultdict(set)
        self.queries: list[tuple[str, dict]] = []
        self.mutations: list = []
        self.query_error: Exception | None = None
        self.mutate_error: Exception | None = None

    # ── Helpers for tests ────────────────────────────────────────────────

    def uid_of(self, kind: NodeKind, external_id: str) -> int | None:
        for uid, key in self.ids.items():
            if key == (kind.id_predicate, external_id):
                return uid
        return None

    def has_node(self, kind: NodeKind, external_id: str) -> bool:
        return self.uid_of(kind, external_id) is not None

    def add_node(self, kind: NodeKind, external_id: str) -> int:
        uid = self._next_uid
        self._next_uid += 1
        self.ids[uid] = (kind.id_predicate, external_id)
        return uid

    def edge_count(self) -> int:
        return sum(len(pairs) for pairs in self.edges.values())

    # ── Graph semantics ──────────────────────────────────────────────────

    def _lookup(self, id_predicate: str, external_id: str) -> set[int]:
        return {uid for uid, key in self.ids.items() if key == (id_predicate, external_id)}

    def _traverse(self, uid: int, traversal: str) -> set[int]:
        if traversal.startswith("~"):
            return {s for s, o in self.edges[traversal[1:]] if o == uid}
        return {o for s, o in self.edges[traversal] if s == uid}

    def _external(self, uid: int, id_predicate: str) -> str | None:
        key = self.ids.get(uid)
        if key is None or key[0] != id_predicate:
            return None
        return key[1]

    def _root(self, query: str, variables: dict) -> tuple[str, int | None]:
        id_predicate = _ROOT_RE.search(query).group(1)
        uids = self._lookup(id_predicate, variables["$id"])
        return id_predicate, next(iter(uids), None)

    def _matches(self, condition: str, candidate: int, target: int | None) -> bool:
        for term in condition.split(" AND "):
            match = _CONDITION_TERM_RE.match(term.strip())
            assert match, f"unsupported condition term {term!r}"
            negate, traversal = match.group(1), match.group(2)
            if traversal is None:
                value = candidate == target
            else:
                value = target is not None and target in self._traverse(candidate, traversal)
            if bool(negate) == value:
                return False
        return True

    def _emit(self, root: int, traversal: str, targets: list[int], id_predicate: str) -> bytes:
        lines = [f"<0x{root:x}> <{traversal}> <0x{t:x}> ." for t in targets]
        lines += [f'<0x{t:x}> <{id_predicate}> "{self._external(t, id_predicate)}" .' for t in targets]
        return ("\n".join(lines) + "\n").encode() if lines else b""

    def _select(self, candidates: set[int], id_predicate: str, mode: QueryMode, variables: dict) -> list[int]:
        rows = [(self._external(c, id_predicate), c) for c in candidates]
        rows = sorted((ext, c) for ext, c in rows if ext is not None)
        if mode is QueryMode.LOOKUP:
            return [c for ext, c in rows if ext == variables["$lookup_id"]]
        cursor, limit = variables["$cursor"], int(variables["$limit"])
        return [c for ext, c in rows if ext > cursor][:limit]

    # ── Client surface ───────────────────────────────────────────────────

    async def query(self, query: str, variables: dict | None = None) -> bytes:
        variables = variables or {}
        self.queries.append((query, variables))
        if self.query_error is not None:
            raise self.query_error

        if query in _STATISTICS:
            return self._statistics(_STATISTICS[query], variables)
        if query.startswith("query q($id: string, $limit: int)"):
            return self._summary(query, variables)

        member, mode = _TEMPLATES[query]
        _, root = self._root(query, variables)
        if root is None:
            return b""

        if isinstance(member, MixedEdgeType):
            targets = self._lookup(member.target_kind.id_predicate, variables["$target_id"])
            target = next(iter(targets), None)
            condition = member.value.condition
            candidates = {c for c in self._traverse(root, member.traversal) if self._matches(condition, c, target)}
            result_predicate = member.result_kind.id_predicate
        else:
            candidates = self._traverse(root, member.traversal)
            result_predicate = member.target_kind.id_predicate

        if mode is QueryMode.COUNT:
            return codec.count_statement(f"<0x{root:x}>", member.traversal, len(candidates)) + b"\n"

        selected = self._select(candidates, result_predicate, mode, variables)
        return self._emit(root, member.traversal, selected, result_predicate)

    def _statistics(self, kind: NodeKind, variables: dict) -> bytes:
        _, root = self._root(f"q(func: eq({kind.id_predicate}, $id))", variables)
        if root is None:
            return b""
        lines = [
            codec.count_statement(f"<0x{root:x}>", edge.traversal, len(self._traverse(root, edge.traversal)))
            for edge in edge_types_for(kind)
        ]
        return codec.join_triples(*lines) + b"\n"

    def _summary(self, query: str, variables: dict) -> bytes:
        _, root = self._root(query, variables)
        if root is None:
            return b""
        limit = int(variables["$limit"])

        # Edge declarations first, identifiers after, as Dgraph groups them
        edge_lines, id_lines, emitted = [], [], set()
        for traversal in _SUMMARY_RE.findall(query):
            ranked = sorted((self.ids[c][1], c) for c in self._traverse(root, traversal) if c in self.ids)
            targets = [c for _, c in ranked][:limit]
            for t in targets:
                edge_lines.append(f"<0x{root:x}> <{traversal}> <0x{t:x}> .")
                if t not in emitted:
                    emitted.add(t)
                    id_predicate, ext = self.ids[t]
                    id_lines.append(f'<0x{t:x}> <{id_predicate}> "{ext}" .')
        lines = edge_lines + id_lines
        return ("\n".join(lines) + "\n").encode() if lines else b""

    async def mutate(self, mutation) -> dict:
        mutation.render()
        self.mutations.append(mutation)
        if self.mutate_error is not None:
            raise self.mutate_error

        bound = mutation.bound_query()
        variables: dict[str, set[int]] = {}
        for name, id_predicate, external_id in _VAR_RE.findall(bound):
            variables[name] = self._lookup(id_predicate, external_id)
        node = variables.get("node", set())
        for name, predicate in _REVERSE_VAR_RE.findall(bound):
            variables[name] = {s for uid in node for s in self._traverse(uid, f"~{predicate}")}

        if mutation.cond:
            for name, size in _COND_RE.findall(mutation.cond):
                if len(variables.get(name, set())) != int(size):
                    return {"code": "Success", "uids": {}}

        blanks: dict[str, int] = {}
        for line in mutation.del_nquads.decode().splitlines():
            self._apply(line, variables, blanks, delete=True)
        for line in mutation.set_nquads.decode().splitlines():
            self._apply(line, variables, blanks, delete=False)
        return {"code": "Success", "uids": {name: f"0x{uid:x}" for name, uid in blanks.items()}}

    def _resolve(self, term: str, variables: dict, blanks: dict) -> set[int]:
        match = _UID_RE.match(term)
        if match:
            return variables.get(match.group(1), set())
        if term.startswith("_:"):
            name = term[2:]
            if name not in blanks:
                blanks[name] = self._next_uid
                self._next_uid += 1
            return {blanks[name]}
        raise AssertionError(f"unsupported subject/object {term!r}")

    def _apply(self, line: str, variables: dict, blanks: dict, delete: bool) -> None:
        line = line.strip()
        if not line:
            return
        if line.endswith("* * ."):
            for uid in self._resolve(line.split()[0], variables, blanks):
                self.ids.pop(uid, None)
                for predicate in self.edges:
                    self.edges[predicate] = {(s, o) for s, o in self.edges[predicate] if s != uid}
            return

        subject, predicate, obj = _TRIPLE_RE.match(line).groups()
        subjects = self._resolve(subject, variables, blanks)
        if obj.startswith('"'):
            if predicate in _KIND_BY_ID_PREDICATE and not delete:
                for uid in subjects:
                    self.ids[uid] = (predicate, obj[1:-1])
            return

        for s in subjects:
            for o in self._resolve(obj, variables, blanks):
                if delete:
                    self.edges[predicate].discard((s, o))
                else:
                    self.edges[predicate].add((s, o))


def user_attrs(n: int) -> dict:
    return {"name": f"User {n}", "username": f"user{n}", "email": f"user{n}@example.com"}
