"""HTTP capability provider for REST tool servers.

The tool server exposes:

- ``GET {base}/api/tools`` returning a JSON list of tool descriptors.
- ``POST {base}/api/tools/{tool}`` executing a tool with a JSON body.

An API key, when configured, is sent as a Bearer token.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from chat_workflow_orchestrator.capabilities.provider import (
    CapabilityProvider,
    CapabilityResponse,
    ToolDescriptor,
)

logger = logging.getLogger(__name__)


def _parameter_text(spec: Any) -> str:
    if isinstance(spec, dict):
        description = str(spec.get("description", "")).strip()
        kind = spec.get("type")
        if kind and description:
            return f"{description} ({kind})"
        return description or str(kind or "")
    return str(spec)


def _to_descriptor(item: Any) -> ToolDescriptor | None:
    if not isinstance(item, dict):
        return None
    params = item.get("parameters") or {}
    if isinstance(params, dict) and isinstance(params.get("properties"), dict):
        params = params["properties"]
    try:
        return ToolDescriptor(
            name=item.get("name", ""),
            description=item.get("description") or "",
            parameters={str(k): _parameter_text(v) for k, v in dict(params).items()},
        )
    except (ValidationError, TypeError, ValueError):
        return None


def _error_code(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    code = body.get("code")
    if code is None and isinstance(body.get("error"), dict):
        code = body["error"].get("code")
    return str(code) if code is not None else None


class HttpCapabilityProvider(CapabilityProvider):
    """Capability provider backed by an HTTP tool server.

    - Uses ``httpx.AsyncClient`` for all calls.
    - A failing tool listing yields an empty list and a log line.
    - Non-2xx tool responses become unsuccessful ``CapabilityResponse`` values
      carrying the server's error text and code.
    - Transport errors propagate to the caller.
    """

    def __init__(
        self,
        base_url: str,
        *,
        description: str,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not base_url:
            raise ValueError("Tool server base URL is required")
        self.base_url = base_url.rstrip("/")
        self.description = description
        self._api_key = api_key
        self._http = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

        if not api_key:
            logger.warning(f"No API key configured for tool server {self.base_url}")

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def describe(self) -> str:
        return self.description

    async def list_tools(self) -> list[ToolDescriptor]:
        url = f"{self.base_url}/api/tools"
        logger.debug("HttpCapabilityProvider.list_tools: GET %s", url)
        try:
            r = await self._http.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Failed to list tools from {url}: {e}")
            return []
        if r.is_error:
            logger.error(f"Failed to list tools: {r.status_code} {r.text}")
            return []
        try:
            payload = r.json()
        except json.JSONDecodeError:
            logger.error(f"Tool listing from {url} is not JSON")
            return []
        if isinstance(payload, dict):
            payload = payload.get("tools", [])
        if not isinstance(payload, list):
            return []

        tools = [d for d in (_to_descriptor(item) for item in payload) if d and d.name]
        logger.debug(f"Tool server advertises {len(tools)} tools")
        return tools

    async def execute(self, tool: str, params: dict[str, Any]) -> CapabilityResponse:
        url = f"{self.base_url}/api/tools/{tool}"
        logger.info(
            f"Executing tool {tool}",
            extra={"tool": tool, "param_keys": sorted(params)},
        )
        r = await self._http.post(url, headers=self._headers(), json=params)

        if r.is_error:
            try:
                body: Any = r.json()
                error_text = json.dumps(body, ensure_ascii=False)
            except json.JSONDecodeError:
                body = None
                error_text = r.text
            logger.error(
                f"Tool {tool} failed: {r.status_code} {error_text}",
                extra={"tool": tool, "status": r.status_code},
            )
            return CapabilityResponse(
                success=False,
                error=f"HTTP {r.status_code}: {error_text}",
                code=_error_code(body),
                data={"error": body} if body is not None else None,
            )

        if not r.content:
            return CapabilityResponse(success=True, data=None)
        try:
            data = r.json()
        except json.JSONDecodeError:
            logger.error(
                f"Tool {tool} returned a non-JSON body: {r.text[:200]}",
                extra={"tool": tool, "status": r.status_code},
            )
            return CapabilityResponse(
                success=False, error=f"Invalid JSON response from tool server: {r.text[:200]}"
            )
        return CapabilityResponse(success=True, data=data)

    async def aclose(self) -> None:
        await self._http.aclose()
