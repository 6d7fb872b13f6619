"""
RDF wire codec for graph store responses and mutations.

Responses are line oriented, one statement per line, terminated by a
blank line:

    <0x2> <friend> <0x1> .
    <0x1> <user_id> "01FATYNXRDPTPSJNEJ0DQ5KBAB" .

Parsing this directly is an order of magnitude cheaper than decoding the
JSON response shape for the same traffic.  Every parser delimits on the
quote, paren and angle-bracket characters of the grammar; nothing assumes
a fixed identifier width.
"""

import re

from ..errors import FormatError
from .schema import ID_PREDICATES

# Largest count the store can report (unsigned 64-bit)
MAX_COUNT = 2**64 - 1

_DIGITS_RE = re.compile(r"[0-9]+")
_ESCAPE_RE = re.compile(r"\\(.)")
_UNESCAPES = {"n": "\n", "t": "\t", "r": "\r"}
_PREDICATE_RE = re.compile(r"^(?:\*|~?[A-Za-z_][\w.]*|count\(~?[A-Za-z_][\w.]*\))$")


def _decode(raw: bytes | str | None) -> str:
    if raw is None:
        return ""
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw).decode("utf-8")
    return raw


def _lines(raw: bytes | str | None) -> list[str]:
    """Split a response into statements, dropping the trailing blank line(s)."""
    lines = [line.rstrip("\r") for line in _decode(raw).split("\n")]
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


def _unescape(value: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(1)), value)


def _literal(line: str) -> str | None:
    """Text between the first and last double quote, or None."""
    start = line.find('"')
    end = line.rfind('"')
    if start == -1 or end <= start:
        return None
    return _unescape(line[start + 1 : end])


def _last_quoted(line: str) -> str | None:
    """Text between the last pair of double quotes, or None."""
    end = line.rfind('"')
    if end <= 0:
        return None
    start = line.rfind('"', 0, end)
    if start == -1:
        return None
    return line[start + 1 : end]


def _predicate(line: str) -> str:
    """Predicate of ``<subject> <predicate> object .``."""
    subject_end = line.find(">")
    start = line.find("<", subject_end + 1) if subject_end != -1 else -1
    end = line.find(">", start + 1) if start != -1 else -1
    if start == -1 or end == -1:
        raise FormatError("invalid rdf statement", line)
    return line[start + 1 : end]


def _to_count(digits: str | None, line: str) -> int:
    if digits is None:
        raise FormatError("missing quoted count", line)
    if not _DIGITS_RE.fullmatch(digits):
        raise FormatError("count is not an unsigned integer", line)
    count = int(digits)
    if count > MAX_COUNT:
        raise FormatError("count overflows uint64", line)
    return count


# ── Parsers ─────────────────────────────────────────────────────────────


def parse_ids(raw: bytes | str | None) -> list[str]:
    """
    Return the identifiers of a list-style response, in response order.

    The first line (the queried subject's own edge declaration) and the
    trailing blank line are skipped, as are lines without a quoted literal.
    Zero matches is a legitimate outcome: empty input returns ``[]``.
    """
    if not raw:
        return []

    ids: list[str] = []
    for line in _lines(raw)[1:]:
        value = _literal(line)
        if value is None:
            continue
        ids.append(value)
    return ids


def parse_id_set(raw: bytes | str | None) -> set[str]:
    """Like ``parse_ids`` but for membership checks."""
    return set(parse_ids(raw))


def parse_count(raw: bytes | str | None) -> int:
    """
    Parse a single count statement.

    Sample:
        <0x1> <count(friend)> "15" .

    Raises:
        FormatError: empty input, more than one statement, missing quotes
            or a non-numeric value.
    """
    lines = [line for line in _lines(raw) if line.strip()]
    if not lines:
        raise FormatError("empty count response")
    if len(lines) > 1:
        raise FormatError("expected exactly one count statement", "\n".join(lines))

    line = lines[0]
    return _to_count(_last_quoted(line), line)


def parse_count_map(raw: bytes | str | None) -> dict[str, int]:
    """
    Parse one count statement per line into ``{predicate: count}``.

    Sample:
        <0x1> <count(friend)> "3" .
        <0x1> <count(~follows)> "12" .

    Raises:
        FormatError: on any malformed line.
    """
    counts: dict[str, int] = {}
    for line in _lines(raw):
        start = line.find("(")
        end = line.find(")", start + 1) if start != -1 else -1
        if start == -1 or end == -1:
            raise FormatError("missing count(predicate)", line)
        counts[line[start + 1 : end]] = _to_count(_last_quoted(line), line)
    return counts


def _subject(line: str) -> str:
    end = line.find(">")
    if not line.startswith("<") or end == -1:
        raise FormatError("invalid rdf subject", line)
    return line[1:end]


def _object_ref(line: str) -> str | None:
    """Object of an edge statement (``<0x2>``), or None for literals."""
    body = line.rstrip().removesuffix(".").rstrip()
    start = body.rfind("<")
    if start == -1 or not body.endswith(">") or '"' in body[start:]:
        return None
    return body[start + 1 : -1]


def parse_predicate_map(raw: bytes | str | None) -> dict[str, list[str]]:
    """
    Group identifiers by the edge predicate that reached them.

    An edge-declaration line moves the "current predicate" cursor and
    remembers which child it points at. An identifier line appends to every
    predicate that reached its subject, or to the current predicate when
    none did. Duplicate ids within one predicate are dropped.

    Sample:
        <0x2> <invited> <0x1> .
        <0x1> <user_id> "01FATYNXRDPTPSJNEJ0DQ5KBAB" .
        <0x2> <banned> <0x3> .
        <0x3> <user_id> "01FATYMXV9M5K093CK5NX0Y4K9" .

    Raises:
        FormatError: malformed lines, or an identifier before any edge.
    """
    result: dict[str, list[str]] = {}
    reached_by: dict[str, list[str]] = {}
    seen: dict[str, set[str]] = {}
    current: str | None = None

    for line in _lines(raw):
        predicate = _predicate(line)
        if predicate not in ID_PREDICATES:
            current = predicate
            result.setdefault(current, [])
            child = _object_ref(line)
            if child is not None:
                reached_by.setdefault(child, []).append(predicate)
            continue

        value = _literal(line)
        if value is None:
            raise FormatError("identifier line without a quoted value", line)
        predicates = reached_by.get(_subject(line), [])
        if current is None:
            raise FormatError("identifier before any edge declaration", line)
        if not predicates:
            predicates = [current]
        for pred in predicates:
            if value not in seen.setdefault(pred, set()):
                seen[pred].add(value)
                result[pred].append(value)

    return result


def parse_predicate_values(raw: bytes | str | None, predicate: str) -> list[str]:
    """Every quoted value of ``predicate`` in response order."""
    values: list[str] = []
    for line in _lines(raw):
        if _predicate(line) != predicate:
            continue
        value = _literal(line)
        if value is None:
            raise FormatError(f"{predicate} line without a quoted value", line)
        values.append(value)
    return values


# ── Encoders ────────────────────────────────────────────────────────────


def quote_literal(value: str) -> str:
    """Quote a string literal using N-Quad escaping."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\r", "\\r")
    return f'"{escaped}"'


def _check_predicate(predicate: str) -> None:
    if not _PREDICATE_RE.match(predicate):
        raise ValueError(f"Invalid predicate: {predicate!r}")


def triple(subject: str, predicate: str, literal: str) -> bytes:
    """
    Encode ``subject <predicate> "literal" .``.

    The literal is quoted and escaped; use ``triple_uid`` for node references.
    """
    _check_predicate(predicate)
    return f"{subject} <{predicate}> {quote_literal(literal)} .".encode()


def triple_uid(subject: str, predicate: str, obj: str) -> bytes:
    """Encode ``subject <predicate> object .`` with an unquoted object reference."""
    _check_predicate(predicate)
    return f"{subject} <{predicate}> {obj} .".encode()


def count_statement(subject: str, predicate: str, count: int) -> bytes:
    """Encode a count statement exactly as the store reports it."""
    if count < 0 or count > MAX_COUNT:
        raise ValueError(f"count out of range: {count}")
    _check_predicate(predicate)
    return f'{subject} <count({predicate})> "{count}" .'.encode()


def join_triples(*triples: bytes) -> bytes:
    """Join statements into one N-Quad block."""
    return b"\n".join(triples)
