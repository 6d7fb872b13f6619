"""
Unit tests for GraphClient.

Tests the Dgraph HTTP client against an ``httpx.MockTransport``.
Validates schema application, RDF queries, guarded mutations and error
wrapping.
"""

import json

import httpx
import pytest

from groove_graph.errors import GraphStoreError
from groove_graph.graph.client import GraphClient
from groove_graph.graph.mutations import create_node
from groove_graph.graph.schema import SCHEMA
from groove_graph.models import NodeKind

USER_A = "01FATYNXRDPTPSJNEJ0DQ5KBAB"


class Recorder:
    """Transport handler recording requests and replaying canned responses."""

    def __init__(self, responses: dict[str, httpx.Response] | None = None):
        self.requests: list[httpx.Request] = []
        self.responses = responses or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.get(request.url.path)
        if response is not None:
            return response
        return httpx.Response(200, json={"data": {"code": "Success"}})

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


async def make_client(recorder: Recorder, **kwargs) -> GraphClient:
    client = GraphClient(url="http://dgraph:8080", transport=httpx.MockTransport(recorder), **kwargs)
    await client.initialize()
    return client


class TestGraphClientInit:
    @pytest.mark.asyncio
    async def test_initialize_applies_schema(self):
        recorder = Recorder()
        client = await make_client(recorder)

        assert recorder.paths() == ["/alter"]
        assert recorder.requests[0].content.decode() == SCHEMA
        await client.close()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self):
        recorder = Recorder()
        client = await make_client(recorder)
        await client.initialize()

        assert recorder.paths() == ["/alter"]
        await client.close()

    @pytest.mark.asyncio
    async def test_schema_can_be_skipped(self):
        recorder = Recorder()
        client = await make_client(recorder, apply_schema=False)

        assert recorder.requests == []
        await client.close()

    @pytest.mark.asyncio
    async def test_access_token_header(self):
        recorder = Recorder()
        client = await make_client(recorder, api_token="t0ken")

        assert recorder.requests[0].headers["X-Dgraph-AccessToken"] == "t0ken"
        await client.close()

    @pytest.mark.asyncio
    async def test_schema_retried_while_alpha_boots(self):
        responses = [httpx.Response(503, text="starting"), httpx.Response(200, json={"data": {}})]
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return responses.pop(0)

        client = GraphClient(url="http://dgraph:8080", transport=httpx.MockTransport(handler))
        await client.initialize()

        assert seen == ["/alter", "/alter"]
        await client.close()

    @pytest.mark.asyncio
    async def test_schema_rejection_not_retried(self):
        recorder = Recorder({"/alter": httpx.Response(400, text="bad schema")})
        client = GraphClient(url="http://dgraph:8080", transport=httpx.MockTransport(recorder))

        with pytest.raises(GraphStoreError, match="HTTP 400"):
            await client.initialize()

        assert recorder.paths() == ["/alter"]
        await client.close()

    def test_http_requires_initialize(self):
        client = GraphClient()
        with pytest.raises(RuntimeError, match="not initialized"):
            _ = client.http


class TestQuery:
    @pytest.mark.asyncio
    async def test_query_returns_rdf_bytes(self):
        rdf = '<0x1> <count(friend)> "3" .\n'
        recorder = Recorder({"/query": httpx.Response(200, json={"data": {"rdf": rdf}})})
        client = await make_client(recorder, apply_schema=False)

        result = await client.query("query q($id: string) { ... }", {"$id": USER_A})

        assert result == rdf.encode()
        request = recorder.requests[0]
        assert request.url.params["respFormat"] == "rdf"
        body = json.loads(request.content)
        assert body["variables"] == {"$id": USER_A}
        await client.close()

    @pytest.mark.asyncio
    async def test_empty_result(self):
        recorder = Recorder({"/query": httpx.Response(200, json={"data": {"rdf": ""}})})
        client = await make_client(recorder, apply_schema=False)

        assert await client.query("q") == b""
        await client.close()

    @pytest.mark.asyncio
    async def test_query_errors_are_wrapped(self):
        payload = {"errors": [{"message": "line 1 column 3: Unrecognized character"}]}
        recorder = Recorder({"/query": httpx.Response(200, json=payload)})
        client = await make_client(recorder, apply_schema=False)

        with pytest.raises(GraphStoreError, match="Unrecognized character"):
            await client.query("q")
        await client.close()

    @pytest.mark.asyncio
    async def test_http_status_is_wrapped(self):
        recorder = Recorder({"/query": httpx.Response(503, text="unavailable")})
        client = await make_client(recorder, apply_schema=False)

        with pytest.raises(GraphStoreError, match="HTTP 503") as exc_info:
            await client.query("q")
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)
        await client.close()

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = GraphClient(transport=httpx.MockTransport(refuse), apply_schema=False)
        await client.initialize()

        with pytest.raises(GraphStoreError, match="connection refused"):
            await client.query("q")
        await client.close()

    @pytest.mark.asyncio
    async def test_invalid_json_is_wrapped(self):
        recorder = Recorder({"/query": httpx.Response(200, text="not json")})
        client = await make_client(recorder, apply_schema=False)

        with pytest.raises(GraphStoreError, match="invalid JSON"):
            await client.query("q")
        await client.close()


class TestMutate:
    @pytest.mark.asyncio
    async def test_mutate_posts_rendered_upsert(self):
        payload = {"data": {"code": "Success", "uids": {"node": "0x2a"}}}
        recorder = Recorder({"/mutate": httpx.Response(200, json=payload)})
        client = await make_client(recorder, apply_schema=False)
        mutation = create_node(NodeKind.USER, USER_A)

        result = await client.mutate(mutation)

        assert result["uids"] == {"node": "0x2a"}
        request = recorder.requests[0]
        assert request.url.params["commitNow"] == "true"
        assert request.headers["Content-Type"] == "application/rdf"
        assert request.content.decode() == mutation.render()
        await client.close()

    @pytest.mark.asyncio
    async def test_mutate_errors_are_wrapped(self):
        payload = {"errors": [{"message": "Transaction has been aborted"}]}
        recorder = Recorder({"/mutate": httpx.Response(200, json=payload)})
        client = await make_client(recorder, apply_schema=False)

        with pytest.raises(GraphStoreError, match="aborted"):
            await client.mutate(create_node(NodeKind.USER, USER_A))
        await client.close()


class TestHealthAndClose:
    @pytest.mark.asyncio
    async def test_health(self):
        recorder = Recorder({"/health": httpx.Response(200, json=[{"status": "healthy"}])})
        client = await make_client(recorder, apply_schema=False)

        health = await client.health()

        assert health["status"] == "operational"
        assert health["instances"] == [{"status": "healthy"}]
        await client.close()

    @pytest.mark.asyncio
    async def test_health_reports_errors(self):
        recorder = Recorder({"/health": httpx.Response(500)})
        client = await make_client(recorder, apply_schema=False)

        health = await client.health()

        assert health["status"] == "error"
        await client.close()

    @pytest.mark.asyncio
    async def test_close_resets_state(self):
        client = await make_client(Recorder(), apply_schema=False)
        await client.close()

        with pytest.raises(RuntimeError):
            _ = client.http
