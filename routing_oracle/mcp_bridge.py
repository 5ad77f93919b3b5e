"""MCP stdio bridge used to reach the routing service tools."""
from __future__ import annotations

import json
import logging
import os
import queue
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "routing-oracle", "version": "0.1.0"}
DEFAULT_MCP_CONFIG = Path.home() / ".mcp.json"
EXIT_POLL_SECONDS = 0.5


@dataclass
class MCPResponse:
    """Response from an MCP request."""
    ok: bool
    result: Any = None
    error: str | None = None
    duration_ms: float = 0.0


def parse_tool_result(response: MCPResponse) -> MCPResponse:
    """Unpack a tools/call result into the payload the tool produced.

    Text content blocks are joined and decoded as JSON when possible.
    Results flagged with ``isError`` become failed responses.
    """
    if not response.ok or not isinstance(response.result, dict):
        return response
    content = response.result.get("content")
    text = None
    if isinstance(content, list):
        texts = [c.get("text", "") for c in content if isinstance(c, dict) and c.get("type") == "text"]
        if texts:
            text = "\n".join(texts)
    if response.result.get("isError"):
        return MCPResponse(
            ok=False,
            error=text or "tool reported an error",
            duration_ms=response.duration_ms,
        )
    if "structuredContent" in response.result:
        response.result = response.result["structuredContent"]
    elif text is not None:
        try:
            response.result = json.loads(text)
        except json.JSONDecodeError:
            response.result = text
    return response


@dataclass
class MCPServer:
    """A running MCP server process speaking JSON-RPC over stdio."""
    name: str
    process: subprocess.Popen
    request_id: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)
    lines: queue.Queue = field(default_factory=queue.Queue)
    reader_thread: threading.Thread | None = None
    _closed: bool = False

    def __post_init__(self):
        self.reader_thread = threading.Thread(target=self._pump_stdout, daemon=True)
        self.reader_thread.start()

    def _pump_stdout(self) -> None:
        while not self._closed:
            try:
                line = self.process.stdout.readline()
            except Exception as e:
                if not self._closed:
                    logger.warning(f"MCP reader for {self.name} stopped: {e}")
                return
            if not line:
                # EOF: the server exited
                return
            self.lines.put(line)

    @property
    def alive(self) -> bool:
        return self.process.poll() is None

    def _send(self, payload: Dict[str, Any]) -> None:
        self.process.stdin.write(json.dumps(payload) + "\n")
        self.process.stdin.flush()

    def notify(self, method: str, params: Dict[str, Any] | None = None) -> None:
        payload: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            payload["params"] = params
        with self.lock:
            self._send(payload)

    def request(self, method: str, params: Dict[str, Any] | None = None, timeout: float = 30.0) -> MCPResponse:
        """Send a request and wait for the reply carrying the same id."""
        start = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - start) * 1000

        with self.lock:
            self.request_id += 1
            request_id = self.request_id
            try:
                self._send({
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "method": method,
                    "params": params or {},
                })
            except BrokenPipeError:
                return MCPResponse(ok=False, error="MCP server pipe broken - server may have crashed", duration_ms=elapsed())
            except Exception as e:
                return MCPResponse(ok=False, error=str(e), duration_ms=elapsed())

            deadline = time.monotonic() + timeout
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return MCPResponse(ok=False, error=f"MCP {method} timed out after {timeout}s", duration_ms=elapsed())
                try:
                    line = self.lines.get(timeout=min(remaining, EXIT_POLL_SECONDS))
                except queue.Empty:
                    if self.alive or (self.reader_thread is not None and self.reader_thread.is_alive()):
                        continue
                    if not self.lines.empty():
                        continue
                    return MCPResponse(
                        ok=False,
                        error=f"MCP server {self.name} exited before replying to {method}",
                        duration_ms=elapsed(),
                    )
                try:
                    message = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug(f"MCP {self.name}: skipping non-JSON line: {line[:120]!r}")
                    continue
                if not isinstance(message, dict) or message.get("id") != request_id:
                    # notifications and replies to abandoned requests
                    continue
                if "error" in message:
                    error = message["error"]
                    text = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                    return MCPResponse(ok=False, error=text, duration_ms=elapsed())
                return MCPResponse(ok=True, result=message.get("result"), duration_ms=elapsed())

    def close(self) -> None:
        self._closed = True
        try:
            self.process.terminate()
            self.process.wait(timeout=5)
        except Exception:
            self.process.kill()


class MCPBridge:
    """Starts MCP servers from an mcpServers config and calls their tools."""

    def __init__(self, config_path: Path | None = None, init_timeout: float = 10.0) -> None:
        self.config_path = config_path or DEFAULT_MCP_CONFIG
        self.init_timeout = init_timeout
        self.servers: Dict[str, MCPServer] = {}
        self.config: Dict[str, Any] = {}
        self._config_mtime: float | None = None
        self._load_config()

    def __enter__(self) -> "MCPBridge":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close_all()

    def _load_config(self) -> None:
        if not self.config_path.exists():
            return
        try:
            mtime = self.config_path.stat().st_mtime
            if self._config_mtime is not None and mtime <= self._config_mtime:
                return
            data = json.loads(self.config_path.read_text())
        except Exception as e:
            logger.warning(f"Failed to load MCP config {self.config_path}: {e}")
            return
        self.config = data.get("mcpServers", {}) or {}
        self._config_mtime = mtime

    def available_servers(self) -> List[str]:
        self._load_config()
        return list(self.config.keys())

    def _start_server(self, name: str) -> MCPServer | None:
        self._load_config()
        running = self.servers.get(name)
        if running is not None:
            if running.alive:
                return running
            logger.info(f"MCP server '{name}' exited, restarting")
            self.servers.pop(name, None)

        server_config = self.config.get(name)
        if not server_config:
            logger.warning(f"MCP server '{name}' not found in {self.config_path}")
            return None
        command = server_config.get("command")
        if not command:
            logger.warning(f"MCP server '{name}' has no command")
            return None

        env = os.environ.copy()
        env.update({str(k): str(v) for k, v in (server_config.get("env") or {}).items()})
        try:
            process = subprocess.Popen(
                [command] + list(server_config.get("args") or []),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                bufsize=1,
                env=env,
            )
        except Exception as e:
            logger.error(f"Failed to start MCP server '{name}': {e}")
            return None

        server = MCPServer(name=name, process=process)
        init = server.request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
            timeout=self.init_timeout,
        )
        if not init.ok:
            logger.warning(f"MCP server '{name}' failed to initialize: {init.error}")
            server.close()
            return None
        server.notify("notifications/initialized")
        self.servers[name] = server
        logger.info(f"Started MCP server: {name}")
        return server

    def _request(self, server_name: str, method: str, params: Dict[str, Any] | None, timeout: float) -> MCPResponse:
        server = self._start_server(server_name)
        if server is None:
            return MCPResponse(ok=False, error=f"MCP server '{server_name}' not available")
        response = server.request(method, params, timeout=timeout)
        if not response.ok and response.error and "pipe broken" in response.error.lower():
            server.close()
            self.servers.pop(server_name, None)
        return response

    def call(self, server_name: str, tool: str, arguments: Dict[str, Any] | None = None, timeout: float = 30.0) -> MCPResponse:
        """Call a tool and return its decoded payload."""
        response = self._request(
            server_name,
            "tools/call",
            {"name": tool, "arguments": arguments or {}},
            timeout,
        )
        return parse_tool_result(response)

    def list_tools(self, server_name: str, timeout: float = 10.0) -> MCPResponse:
        return self._request(server_name, "tools/list", {}, timeout)

    def close_all(self) -> None:
        for server in self.servers.values():
            server.close()
        self.servers.clear()
