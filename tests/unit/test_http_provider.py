"""Unit tests for the HTTP capability provider."""

from __future__ import annotations

import json

import httpx
import pytest

from chat_workflow_orchestrator.capabilities.http_provider import HttpCapabilityProvider

BASE_URL = "https://tools.example.test/"


def _provider(handler, api_key: str | None = "secret") -> HttpCapabilityProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpCapabilityProvider(
        BASE_URL, description="Task database", api_key=api_key, client=client
    )


def test_base_url_is_required() -> None:
    with pytest.raises(ValueError):
        HttpCapabilityProvider("", description="x")


@pytest.mark.asyncio
async def test_list_tools_converts_parameter_specs() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "tools": [
                    {
                        "name": "queryDatabase",
                        "description": "Search tasks",
                        "parameters": {
                            "type": "object",
                            "properties": {
                                "database_id": {"type": "string", "description": "Database"},
                                "page_size": {"type": "number"},
                            },
                        },
                    },
                    {"description": "nameless"},
                ]
            },
        )

    provider = _provider(handler)
    tools = await provider.list_tools()

    assert [t.name for t in tools] == ["queryDatabase"]
    assert tools[0].parameters == {"database_id": "Database (string)", "page_size": "number"}
    assert str(seen[0].url) == "https://tools.example.test/api/tools"
    assert seen[0].headers["Authorization"] == "Bearer secret"
    await provider.aclose()


@pytest.mark.asyncio
async def test_list_tools_error_yields_empty_list() -> None:
    provider = _provider(lambda request: httpx.Response(503, text="down"))

    assert await provider.list_tools() == []


@pytest.mark.asyncio
async def test_execute_posts_json_params() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/tools/queryDatabase"
        assert json.loads(request.content) == {"database_id": "db-1"}
        assert "Authorization" not in request.headers
        return httpx.Response(200, json={"results": []})

    provider = _provider(handler, api_key=None)
    response = await provider.execute("queryDatabase", {"database_id": "db-1"})

    assert response.success is True
    assert response.data == {"results": []}


@pytest.mark.asyncio
async def test_execute_error_status_is_unsuccessful_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            404, json={"error": {"code": "NOT_FOUND", "message": "no such page"}}
        )

    response = await _provider(handler).execute("retrievePage", {"page_id": "p1"})

    assert response.success is False
    assert response.code == "NOT_FOUND"
    assert response.error.startswith("HTTP 404:")
    assert "no such page" in response.error


@pytest.mark.asyncio
async def test_transport_error_propagates() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(httpx.ConnectError):
        await _provider(handler).execute("queryDatabase", {})


@pytest.mark.asyncio
async def test_execute_non_json_success_body_is_unsuccessful_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    provider = _provider(handler)

    response = await provider.execute("queryDatabase", {"database_id": "db"})

    assert response.success is False
    assert "maintenance" in response.error
    await provider.aclose()


@pytest.mark.asyncio
async def test_execute_empty_success_body_has_no_data() -> None:
    provider = _provider(lambda request: httpx.Response(204))

    response = await provider.execute("deletePage", {"page_id": "p1"})

    assert response.success is True
    assert response.data is None
    await provider.aclose()
