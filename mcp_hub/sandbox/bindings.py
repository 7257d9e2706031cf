"""Objects exposed to orchestration scripts.

A script sees exactly these names (plus a small set of safe builtins):
``mcp``, ``console``, ``print``, ``parallel`` and ``settle``. Everything
it logs ends up in a bounded :class:`LogBuffer`; every tool call it makes
carries a fresh correlation id tracked by a :class:`CallTracker`.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import uuid
from collections import deque
from typing import Any, Awaitable, Dict, List, Optional, Protocol

from mcp_hub.constants import MAX_LOGS
from mcp_hub.sandbox.deadline import DeadlineExceeded

logger = logging.getLogger(__name__)


class ToolCaller(Protocol):
    async def call(
        self, name_or_id: str, params: Any = None, call_id: Optional[str] = None
    ) -> Any: ...


def stringify(value: Any) -> str:
    """Render one log argument.

    Strings are kept verbatim and exceptions become their message. Numbers
    use ``str``; ``None``, booleans and containers are rendered as JSON.
    """
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, bool):
        return json.dumps(value)
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, BaseException):
        return str(value) or type(value).__name__
    try:
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


def error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class LogBuffer:
    """Bounded, ordered buffer of ``"[level] message"`` lines.

    Once full, the oldest line is dropped for every new one.
    """

    def __init__(self, max_entries: int = MAX_LOGS) -> None:
        self._entries: deque = deque(maxlen=max_entries)

    def push(self, level: str, args: tuple) -> None:
        entry = f"[{level}] " + " ".join(stringify(a) for a in args)
        self._entries.append(entry)
        logger.debug("script: %s", entry)

    def entries(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class CapturedConsole:
    """``console.log`` and friends."""

    def __init__(self, buffer: LogBuffer) -> None:
        self._buffer = buffer

    def log(self, *args: Any) -> None:
        self._buffer.push("log", args)

    def info(self, *args: Any) -> None:
        self._buffer.push("info", args)

    def warn(self, *args: Any) -> None:
        self._buffer.push("warn", args)

    def error(self, *args: Any) -> None:
        self._buffer.push("error", args)

    def debug(self, *args: Any) -> None:
        self._buffer.push("debug", args)


def make_print(buffer: LogBuffer):
    def captured_print(*args: Any, sep: Optional[str] = " ", **_ignored: Any) -> None:
        if sep is None or sep == " ":
            buffer.push("log", args)
        else:
            buffer.push("log", (sep.join(stringify(a) for a in args),))

    return captured_print


class CallTracker:
    """Correlation ids of tool calls that have not completed yet."""

    def __init__(self) -> None:
        self._outstanding: Dict[str, None] = {}

    def begin(self) -> str:
        call_id = uuid.uuid4().hex
        self._outstanding[call_id] = None
        return call_id

    def finish(self, call_id: str) -> None:
        self._outstanding.pop(call_id, None)

    def outstanding(self) -> List[str]:
        return list(self._outstanding)

    def __len__(self) -> int:
        return len(self._outstanding)


class McpBinding:
    """The ``mcp`` object: tool calls and structured logging."""

    def __init__(self, bridge: ToolCaller, buffer: LogBuffer, tracker: CallTracker) -> None:
        self._bridge = bridge
        self._buffer = buffer
        self._tracker = tracker

    async def call_tool(self, name: str, params: Any = None) -> Any:
        if not isinstance(name, str) or not name:
            raise TypeError("mcp.call_tool() requires a tool name")
        call_id = self._tracker.begin()
        cancelled = False
        try:
            return await self._bridge.call(name, params if params is not None else {}, call_id)
        except asyncio.CancelledError:
            # Left outstanding so the runtime aborts it at the provider.
            cancelled = True
            raise
        finally:
            if not cancelled:
                self._tracker.finish(call_id)

    callTool = call_tool

    def log(self, level: Any, message: Any, fields: Any = None) -> None:
        safe_level = level if isinstance(level, str) else "info"
        safe_message = message if isinstance(message, str) else stringify(message)
        if fields is None:
            self._buffer.push(safe_level, (safe_message,))
        else:
            self._buffer.push(safe_level, (safe_message, fields))


async def _resolved(value: Any) -> Any:
    return value


def _as_tasks(items: tuple) -> List[asyncio.Future]:
    return [
        asyncio.ensure_future(item if inspect.isawaitable(item) else _resolved(item))
        for item in items
    ]


async def parallel(*awaitables: Awaitable) -> List[Any]:
    """Await all, in order. The first failure cancels the rest and is raised."""
    tasks = _as_tasks(awaitables)
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        raise


async def settle(*awaitables: Awaitable) -> List[Dict[str, Any]]:
    """Await all and report each outcome; never raises for a child failure."""
    tasks = _as_tasks(awaitables)
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)
    settled: List[Dict[str, Any]] = []
    for outcome in outcomes:
        if isinstance(outcome, DeadlineExceeded):
            raise outcome
        if isinstance(outcome, BaseException):
            settled.append({"status": "rejected", "reason": error_message(outcome)})
        else:
            settled.append({"status": "fulfilled", "value": outcome})
    return settled
