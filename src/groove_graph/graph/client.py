"""
Dgraph client for the social graph.

Talks to the Dgraph Alpha HTTP API through a pooled ``httpx.AsyncClient``.
Reads request the RDF response format and hand the raw bytes to the wire
codec; writes are guarded upserts committed immediately (``commitNow``).

The client is safe for concurrent use: the connection pool is the only
shared state and httpx guards it.  Only schema application on startup is
retried (the alpha may still be booting); query and mutation failures
surface as ``GraphStoreError`` and the caller owns the policy.
"""

import logging
from typing import Any

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from ..errors import GraphStoreError
from .mutations import Mutation
from .schema import SCHEMA

logger = logging.getLogger(__name__)


def is_transient_error(exc: BaseException) -> bool:
    """Transport failures and 5xx responses are worth retrying; everything else is not."""
    if not isinstance(exc, GraphStoreError):
        return False
    cause = exc.__cause__
    if isinstance(cause, httpx.HTTPStatusError):
        return cause.response.status_code >= 500
    return isinstance(cause, httpx.TransportError)


class GraphClient:
    """
    Async Dgraph client.

    ``query`` returns raw RDF bytes; ``mutate`` submits one guarded upsert as
    a single transaction.
    """

    def __init__(
        self,
        url: str = "http://localhost:8080",
        timeout: float = 10.0,
        api_token: str | None = None,
        max_connections: int = 16,
        apply_schema: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.api_token = api_token
        self.max_connections = max_connections
        self.apply_schema = apply_schema

        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._initialized = False

    async def initialize(self) -> None:
        """Open the connection pool and apply the schema."""
        if self._initialized:
            return

        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["X-Dgraph-AccessToken"] = self.api_token

        self._http = httpx.AsyncClient(
            base_url=self.url,
            timeout=self.timeout,
            headers=headers,
            limits=httpx.Limits(max_connections=self.max_connections),
            transport=self._transport,
        )

        if self.apply_schema:
            await self._apply_schema()

        self._initialized = True
        logger.info(f"GraphClient initialized: {self.url}")

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("GraphClient not initialized. Call initialize() first.")
        return self._http

    @retry(
        retry=retry_if_exception(is_transient_error),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        reraise=True,
    )
    async def _apply_schema(self) -> None:
        await self.alter(SCHEMA)

    # ── Requests ────────────────────────────────────────────────────────

    async def _post(self, path: str, what: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self.http.post(path, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise GraphStoreError(f"dgraph: {what} failed with HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise GraphStoreError(f"dgraph: {what} failed: {e}") from e
        except ValueError as e:
            raise GraphStoreError(f"dgraph: {what} returned invalid JSON") from e

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            message = "; ".join(str(err.get("message", err)) for err in errors)
            raise GraphStoreError(f"dgraph: {what} failed: {message}")

        return payload

    async def alter(self, schema: str) -> None:
        """Apply a schema (idempotent on the store side)."""
        await self._post("/alter", "altering schema", content=schema.encode())
        logger.debug("Graph schema applied")

    async def query(self, query: str, variables: dict[str, str] | None = None) -> bytes:
        """
        Run a read-only query and return the RDF response body.

        Args:
            query: DQL text from the query catalog
            variables: ``{"$name": "value"}`` bindings

        Returns:
            Raw RDF bytes (possibly empty when nothing matched)
        """
        payload = await self._post(
            "/query",
            "query",
            params={"respFormat": "rdf"},
            json={"query": query, "variables": variables or {}},
        )
        data = payload.get("data") or {}
        rdf = data.get("rdf") or ""
        return rdf.encode() if isinstance(rdf, str) else bytes(rdf)

    async def mutate(self, mutation: Mutation) -> dict[str, Any]:
        """
        Submit one guarded mutation and commit it.

        The set and delete triples are applied atomically inside the graph
        store, or not at all when the guard condition is false.

        Returns:
            The ``data`` section of the response (assigned uids, etc.)
        """
        body = mutation.render()
        payload = await self._post(
            "/mutate",
            mutation.description or "mutation",
            params={"commitNow": "true"},
            content=body.encode(),
            headers={"Content-Type": "application/rdf"},
        )
        return payload.get("data") or {}

    async def health(self) -> dict[str, Any]:
        """Alpha health for readiness checks."""
        try:
            response = await self.http.get("/health")
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to get graph health: {e}")
            return {"url": self.url, "status": "error", "error": str(e)}

        instances = body if isinstance(body, list) else [body]
        return {"url": self.url, "status": "operational", "instances": instances}

    async def close(self) -> None:
        """Close the connection pool."""
        if self._http is not None:
            try:
                await self._http.aclose()
                logger.info("GraphClient connection pool closed")
            except Exception as e:
                logger.warning(f"Error closing GraphClient pool: {e}")
            finally:
                self._http = None
                self._initialized = False
