"""Connections to the backend MCP servers the hub aggregates."""

import asyncio
import logging
import os
import sys
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from mcp_hub.constants import MCP_INIT_TIMEOUT, SSE_LOCAL_START_DELAY, STARTUP_TIMEOUT
from mcp_hub.errors import BackendServerError, ConfigurationError

logger = logging.getLogger(__name__)

# Called with (event, backend_name) whenever the set of sessions changes.
TopologyListener = Callable[[str, str], None]

_TERMINATE_GRACE = 3.0


async def _pump_output(stream: asyncio.StreamReader, svr_name: str, label: str) -> None:
    """Forward a child process stream to the log, line by line, until EOF."""
    try:
        async for raw in stream:
            text = raw.decode(errors="replace").rstrip()
            if text:
                logger.info("[%s:%s] %s", svr_name, label, text)
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        logger.warning("[%s:%s] Output pump stopped: %s", svr_name, label, exc)


async def _stop_process(process: asyncio.subprocess.Process, svr_name: str) -> None:
    if process.returncode is not None:
        return
    logger.info("[%s] Stopping local SSE server (PID %s).", svr_name, process.pid)
    try:
        process.terminate()
        await asyncio.wait_for(process.wait(), timeout=_TERMINATE_GRACE)
    except asyncio.TimeoutError:
        logger.warning("[%s] PID %s ignored SIGTERM, killing it.", svr_name, process.pid)
        process.kill()
        await process.wait()
    except ProcessLookupError:
        logger.debug("[%s] PID %s already gone.", svr_name, process.pid)


@asynccontextmanager
async def _local_sse_server(svr_name: str, svr_conf: Dict[str, Any]) -> AsyncIterator[None]:
    """Run the command an SSE backend is served by, for the life of the context."""
    command = svr_conf["command"]
    executable = sys.executable if command.lower() == "python" else command
    env = dict(os.environ, **(svr_conf.get("env") or {}))

    process = await asyncio.create_subprocess_exec(
        executable,
        *svr_conf.get("args", []),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
    )
    logger.info("[%s] Local SSE server started: %s (PID %s).", svr_name, executable, process.pid)
    pumps = [
        asyncio.create_task(_pump_output(stream, svr_name, label))
        for label, stream in (("out", process.stdout), ("err", process.stderr))
        if stream is not None
    ]
    try:
        yield
    finally:
        for pump in pumps:
            pump.cancel()
        await asyncio.gather(*pumps, return_exceptions=True)
        await _stop_process(process, svr_name)


def _describe_connect_failure(svr_name: str, svr_type: Optional[str], exc: Exception) -> None:
    kind = svr_type or "unknown type"
    if isinstance(exc, asyncio.TimeoutError):
        logger.error("[%s] (%s) Timed out while connecting.", svr_name, kind)
    elif isinstance(exc, ConfigurationError):
        logger.error("[%s] (%s) Bad configuration: %s", svr_name, kind, exc)
    elif isinstance(exc, FileNotFoundError):
        logger.error("[%s] (%s) Executable not found: %s", svr_name, kind, exc.filename)
    elif isinstance(exc, ConnectionError):
        logger.error("[%s] (%s) Connection failed: %s: %s", svr_name, kind, type(exc).__name__, exc)
    else:
        logger.exception("[%s] (%s) Unexpected error while connecting.", svr_name, kind)


class ClientManager:
    """Owns one MCP client session per connected backend.

    Each backend gets its own :class:`AsyncExitStack` so that a single
    backend can be disconnected without touching the others. Listeners
    registered with :meth:`add_listener` are told about every connect and
    disconnect; the hub uses this to invalidate its tool catalog.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, ClientSession] = {}
        self._stacks: Dict[str, AsyncExitStack] = {}
        self._configs: Dict[str, Dict[str, Any]] = {}
        self._listeners: List[TopologyListener] = []

    # ── Listeners ────────────────────────────────────────────────────

    def add_listener(self, listener: TopologyListener) -> None:
        self._listeners.append(listener)

    def _notify(self, event: str, svr_name: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, svr_name)
            except Exception:
                logger.exception("Topology listener failed for %s '%s'.", event, svr_name)

    # ── Transports ───────────────────────────────────────────────────

    async def _open_stdio(
        self, stack: AsyncExitStack, svr_name: str, params: StdioServerParameters
    ) -> ClientSession:
        # Backend stderr would corrupt a stdio-transport hub; discard it.
        devnull = open(os.devnull, "w")  # noqa: SIM115
        stack.callback(devnull.close)
        logger.debug("[%s] Spawning stdio backend: %s", svr_name, params.command)
        read_stream, write_stream = await stack.enter_async_context(
            stdio_client(params, errlog=devnull)
        )
        return await stack.enter_async_context(ClientSession(read_stream, write_stream))

    async def _open_sse(
        self, stack: AsyncExitStack, svr_name: str, svr_conf: Dict[str, Any]
    ) -> ClientSession:
        if svr_conf.get("command"):
            await stack.enter_async_context(_local_sse_server(svr_name, svr_conf))
            delay = svr_conf.get("sse_startup_delay", SSE_LOCAL_START_DELAY)
            logger.info("[%s] Giving the local SSE server %ss to come up.", svr_name, delay)
            await asyncio.sleep(delay)

        read_stream, write_stream = await stack.enter_async_context(
            sse_client(url=svr_conf["url"], headers=svr_conf.get("headers"))
        )
        return await stack.enter_async_context(ClientSession(read_stream, write_stream))

    async def _open_streamable_http(
        self, stack: AsyncExitStack, svr_name: str, svr_conf: Dict[str, Any]
    ) -> ClientSession:
        logger.debug("[%s] Opening streamable-http transport to %s", svr_name, svr_conf["url"])
        read_stream, write_stream, _session_id = await stack.enter_async_context(
            streamablehttp_client(url=svr_conf["url"], headers=svr_conf.get("headers"))
        )
        return await stack.enter_async_context(ClientSession(read_stream, write_stream))

    # ── Connect / disconnect ─────────────────────────────────────────

    async def _open_session(
        self, stack: AsyncExitStack, svr_name: str, svr_conf: Dict[str, Any]
    ) -> ClientSession:
        svr_type = svr_conf.get("type")
        if svr_type == "stdio":
            params = svr_conf.get("params")
            if not isinstance(params, StdioServerParameters):
                raise ConfigurationError(f"Backend '{svr_name}': stdio 'params' are missing.")
            session = await self._open_stdio(stack, svr_name, params)
        elif svr_type in ("sse", "streamable-http"):
            if not svr_conf.get("url"):
                raise ConfigurationError(f"Backend '{svr_name}': {svr_type} needs a 'url'.")
            if svr_type == "sse":
                session = await self._open_sse(stack, svr_name, svr_conf)
            else:
                session = await self._open_streamable_http(stack, svr_name, svr_conf)
        else:
            raise ConfigurationError(f"Backend '{svr_name}': unsupported type '{svr_type}'.")

        init_timeout = svr_conf.get("init_timeout", MCP_INIT_TIMEOUT)
        logger.debug("[%s] Sending MCP initialize (timeout %ss).", svr_name, init_timeout)
        await asyncio.wait_for(session.initialize(), timeout=init_timeout)
        return session

    async def connect(self, svr_name: str, svr_conf: Dict[str, Any]) -> bool:
        """Connect one backend. Returns ``True`` on success."""
        if svr_name in self._sessions:
            raise BackendServerError("Backend is already connected.", svr_name=svr_name)

        svr_type = svr_conf.get("type")
        logger.info("[%s] Connecting (%s)...", svr_name, svr_type)
        stack = AsyncExitStack()
        try:
            session = await asyncio.wait_for(
                self._open_session(stack, svr_name, svr_conf),
                timeout=svr_conf.get("startup_timeout", STARTUP_TIMEOUT),
            )
        except Exception as exc:
            _describe_connect_failure(svr_name, svr_type, exc)
            await self._close_stack(svr_name, stack)
            return False

        self._sessions[svr_name] = session
        self._stacks[svr_name] = stack
        self._configs[svr_name] = svr_conf
        logger.info("[%s] Connected.", svr_name)
        self._notify("connected", svr_name)
        return True

    async def disconnect(self, svr_name: str) -> None:
        """Close one backend's session and any process it started."""
        stack = self._stacks.pop(svr_name, None)
        self._sessions.pop(svr_name, None)
        self._configs.pop(svr_name, None)
        if stack is None:
            return
        await self._close_stack(svr_name, stack)
        self._notify("disconnected", svr_name)

    async def start_all(self, config_data: Dict[str, Dict[str, Any]]) -> None:
        """Connect every configured backend concurrently."""
        names = list(config_data)
        outcomes = await asyncio.gather(
            *(self.connect(name, config_data[name]) for name in names),
            return_exceptions=True,
        )
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, Exception):
                logger.error("[%s] Connect raised %s: %s", name, type(outcome).__name__, outcome)

        logger.info("Backends connected: %d/%d.", len(self._sessions), len(config_data))

    async def stop_all(self) -> None:
        """Disconnect every backend."""
        for svr_name in list(self._stacks):
            await self.disconnect(svr_name)
        logger.info("All backend connections closed.")

    async def _close_stack(self, svr_name: str, stack: AsyncExitStack) -> None:
        try:
            await stack.aclose()
        except Exception as exc:
            logger.exception("[%s] Error while closing the connection: %s", svr_name, exc)

    # ── Accessors ────────────────────────────────────────────────────

    def get_session(self, svr_name: str) -> Optional[ClientSession]:
        return self._sessions.get(svr_name)

    def get_all_sessions(self) -> Dict[str, ClientSession]:
        """Snapshot of the connected sessions, keyed by backend name."""
        return dict(self._sessions)

    def get_display_name(self, svr_name: str) -> str:
        """Human-friendly backend name (falls back to the config key)."""
        conf = self._configs.get(svr_name) or {}
        return conf.get("display_name") or svr_name

    def get_cap_fetch_timeout(self, svr_name: str) -> Optional[float]:
        conf = self._configs.get(svr_name) or {}
        return conf.get("cap_fetch_timeout")
