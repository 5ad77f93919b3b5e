"""Tool callers: the single seam between the oracle and the routing service."""
from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List

import httpx

from routing_oracle.errors import ConfigError, ToolCallError
from routing_oracle.mcp_bridge import CLIENT_INFO, PROTOCOL_VERSION, MCPBridge, MCPResponse, parse_tool_result
from routing_oracle.schemas import (
    ROUTE_TOOL,
    VOTE_TOOL,
    WEATHER_TOOL,
    Validated,
    validate_delegate_input,
    validate_vote_input,
    validate_weather_input,
)

logger = logging.getLogger(__name__)


class ToolCaller(ABC):
    """Invoke a named remote tool with an argument map."""

    @abstractmethod
    async def call(self, tool_name: str, args: Dict[str, Any]) -> Any:
        """Return the tool's structured result or raise on any failure."""
        ...

    async def aclose(self) -> None:
        return None


class MCPToolCaller(ToolCaller):
    """Calls tools on one stdio MCP server through an MCPBridge."""

    def __init__(self, bridge: MCPBridge, server: str, timeout: float = 120.0) -> None:
        self.bridge = bridge
        self.server = server
        self.timeout = timeout

    async def call(self, tool_name: str, args: Dict[str, Any]) -> Any:
        response = await asyncio.to_thread(self.bridge.call, self.server, tool_name, args, self.timeout)
        if not response.ok:
            raise ToolCallError(f"{self.server}/{tool_name}: {response.error}")
        logger.debug(f"{self.server}/{tool_name} answered in {response.duration_ms:.0f}ms")
        return response.result

    async def aclose(self) -> None:
        await asyncio.to_thread(self.bridge.close_all)


class HttpToolCaller(ToolCaller):
    """Calls tools on an MCP server exposed over streamable HTTP."""

    SESSION_HEADER = "Mcp-Session-Id"

    def __init__(self, url: str, timeout: float = 120.0, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._session_id: str | None = None
        self._initialized = False
        self._request_id = 0

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json, text/event-stream"}
        if self._session_id:
            headers[self.SESSION_HEADER] = self._session_id
        return headers

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        try:
            response = await self._client.post(self.url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise ToolCallError(f"{self.url}: {e}") from e
        if response.status_code >= 400:
            raise ToolCallError(f"{self.url}: HTTP {response.status_code}: {response.text[:200]}")
        return response

    @staticmethod
    def _decode(response: httpx.Response, request_id: int) -> Dict[str, Any]:
        content_type = response.headers.get("content-type", "")
        if "text/event-stream" in content_type:
            for line in response.text.splitlines():
                if not line.startswith("data:"):
                    continue
                try:
                    message = json.loads(line[5:].strip())
                except json.JSONDecodeError:
                    continue
                if isinstance(message, dict) and message.get("id") == request_id:
                    return message
            raise ToolCallError(f"no reply for request {request_id} in event stream")
        try:
            message = response.json()
        except ValueError as e:
            raise ToolCallError(f"invalid JSON reply: {e}") from e
        if not isinstance(message, dict):
            raise ToolCallError("unexpected JSON-RPC reply")
        return message

    async def _rpc(self, method: str, params: Dict[str, Any]) -> MCPResponse:
        request_id = self._next_id()
        response = await self._post({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})
        session = response.headers.get(self.SESSION_HEADER)
        if session:
            self._session_id = session
        message = self._decode(response, request_id)
        if "error" in message:
            error = message["error"]
            text = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            return MCPResponse(ok=False, error=text)
        return MCPResponse(ok=True, result=message.get("result"))

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        init = await self._rpc("initialize", {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": CLIENT_INFO,
        })
        if not init.ok:
            raise ToolCallError(f"{self.url}: initialize failed: {init.error}")
        await self._post({"jsonrpc": "2.0", "method": "notifications/initialized"})
        self._initialized = True

    async def call(self, tool_name: str, args: Dict[str, Any]) -> Any:
        await self._ensure_initialized()
        response = parse_tool_result(await self._rpc("tools/call", {"name": tool_name, "arguments": args}))
        if not response.ok:
            raise ToolCallError(f"{tool_name}: {response.error}")
        return response.result

    async def aclose(self) -> None:
        await self._client.aclose()


REQUEST_VALIDATORS: Dict[str, Callable[[Any], Validated[Any]]] = {
    ROUTE_TOOL: validate_delegate_input,
    WEATHER_TOOL: validate_weather_input,
    VOTE_TOOL: validate_vote_input,
}


class ScriptedCaller(ToolCaller):
    """In-process stand-in for the routing service.

    Each tool maps to a script entry:
      - a list: responses returned in order, one per call
      - a callable: called with the argument map
      - an exception instance: raised on every call
      - anything else: returned as-is on every call

    With ``validate_requests`` the argument maps are checked against the
    request schemas first, the way the real service rejects bad input.
    """

    def __init__(self, responses: Dict[str, Any] | None = None, validate_requests: bool = True) -> None:
        self.responses = dict(responses or {})
        self.validate_requests = validate_requests
        self.calls: List[tuple[str, Dict[str, Any]]] = []
        self._cursors: Dict[str, int] = {}

    async def call(self, tool_name: str, args: Dict[str, Any]) -> Any:
        self.calls.append((tool_name, dict(args)))
        if self.validate_requests and tool_name in REQUEST_VALIDATORS:
            checked = REQUEST_VALIDATORS[tool_name](args)
            if not checked.ok:
                raise ToolCallError(f"{tool_name} rejected request: {checked.error}")
        if tool_name not in self.responses:
            raise ToolCallError(f"No scripted response for {tool_name}")
        script = self.responses[tool_name]
        if isinstance(script, list):
            index = self._cursors.get(tool_name, 0)
            if index >= len(script):
                raise ToolCallError(f"Scripted responses for {tool_name} exhausted after {len(script)} calls")
            self._cursors[tool_name] = index + 1
            script = script[index]
        if isinstance(script, BaseException):
            raise script
        if callable(script):
            return script(args)
        return script

    def calls_to(self, tool_name: str) -> List[Dict[str, Any]]:
        return [args for name, args in self.calls if name == tool_name]


def build_caller(config: Any, transport: str | None = None) -> ToolCaller:
    """Create the tool caller selected by configuration."""
    kind = (transport or config.transport_kind).lower()
    timeout = float(config.call_timeout_seconds)
    if kind == "mcp":
        bridge = MCPBridge(config_path=config.mcp_config_path)
        return MCPToolCaller(bridge, config.mcp_server, timeout=timeout)
    if kind == "http":
        url = config.http_url
        if not url:
            raise ConfigError("transport 'http' needs transport.http_url (or ROUTING_ORACLE_HTTP_URL)")
        return HttpToolCaller(url, timeout=timeout)
    if kind == "simulated":
        from routing_oracle.simulation import simulated_caller
        return simulated_caller(config.expectations)
    raise ConfigError(f"Unknown transport '{kind}'. Valid: mcp, http, simulated")
