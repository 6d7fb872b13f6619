"""Exceptions raised by the relationship engine.

Every error derives from ``GraphEngineError`` so callers can catch the
whole family at their boundary.  Store failures are wrapped and chained
(``raise ... from``); nothing is retried inside the request path.
"""

from typing import Literal

Store = Literal["graph", "relational", "reconciliation"]


class GraphEngineError(Exception):
    """Base class for relationship engine errors."""

    pass


class FormatError(GraphEngineError):
    """A raw graph response does not follow the RDF line grammar."""

    def __init__(self, message: str, line: str | None = None):
        self.line = line
        if line is not None:
            message = f"{message}: {line!r}"
        super().__init__(message)


class NotFoundError(GraphEngineError):
    """A lookup matched nothing.

    This is a normal outcome ("relation absent"), not a system fault.
    """

    def __init__(self, node_id: str, what: str = "node"):
        self.node_id = node_id
        self.what = what
        super().__init__(f"{what} not found for {node_id!r}")


class GraphStoreError(GraphEngineError):
    """The graph store rejected or failed a request."""

    pass


class RelationalStoreError(GraphEngineError):
    """The relational store rejected or failed a statement."""

    pass


class DeadlineExceededError(GraphEngineError):
    """The caller's deadline expired before the operation finished."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} exceeded its deadline of {timeout:.3f}s")


class CrossStoreError(GraphEngineError):
    """One store committed and the other failed during a node lifecycle step.

    Carries enough context to drive reconciliation: the node kind, its
    external id, the store that failed and the operation being run.
    """

    def __init__(
        self,
        operation: str,
        kind: str,
        external_id: str,
        failed_store: Store,
        reason: str | None = None,
    ):
        self.operation = operation
        self.kind = kind
        self.external_id = external_id
        self.failed_store = failed_store
        self.reason = reason

        message = f"{operation} {kind} {external_id!r}: {failed_store} store failed"
        if reason:
            message += f" ({reason})"

        super().__init__(message)
