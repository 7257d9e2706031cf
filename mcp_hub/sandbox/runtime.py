"""Run orchestration scripts against the tool bridge under a deadline."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Optional, Set

from mcp_hub.constants import DEFAULT_EXEC_TIMEOUT_MS, MAX_LOGS
from mcp_hub.sandbox.bindings import (
    CallTracker,
    CapturedConsole,
    LogBuffer,
    McpBinding,
    ToolCaller,
    error_message,
    make_print,
    parallel,
    settle,
)
from mcp_hub.sandbox.deadline import Deadline, DeadlineExceeded
from mcp_hub.sandbox.guard import (
    CHECKPOINT,
    ENTRY_POINT,
    SAFE_BUILTINS,
    ScriptRejected,
    compile_script,
)
from mcp_hub.sandbox.models import ExecutionResult

logger = logging.getLogger(__name__)

# abort(call_id) -> bool, or an awaitable resolving to one.
AbortFn = Callable[[str], Any]


async def _run_entry(entry: Callable[[], Any], deadline: Deadline) -> Any:
    """Await the script entry, flattening a returned awaitable.

    A script that only finishes after its deadline counts as timed out,
    even when nothing inside it reached a checkpoint.
    """
    result = await entry()
    while inspect.isawaitable(result):
        result = await result
    deadline.checkpoint()
    return result


def _consume_outcome(task: "asyncio.Future[Any]") -> None:
    if not task.cancelled():
        task.exception()


class SandboxRuntime:
    """Executes scripts with a minimal binding table.

    Each execution gets a fresh global scope holding only ``mcp``,
    ``console``, ``print``, ``parallel``, ``settle`` and the safe builtins.
    On timeout, every still-outstanding correlation id is handed to
    *abort* once and the script task is cancelled; a provider that ignores
    the abort may keep running.
    """

    def __init__(
        self,
        bridge: ToolCaller,
        abort: AbortFn,
        default_deadline_ms: int = DEFAULT_EXEC_TIMEOUT_MS,
        max_logs: int = MAX_LOGS,
    ) -> None:
        self._bridge = bridge
        self._abort = abort
        self._default_deadline_ms = default_deadline_ms
        self._max_logs = max_logs
        self._pending_aborts: Set["asyncio.Future[Any]"] = set()

    def _build_scope(
        self, buffer: LogBuffer, tracker: CallTracker, deadline: Deadline
    ) -> Dict[str, Any]:
        return {
            "__builtins__": dict(SAFE_BUILTINS, print=make_print(buffer)),
            "mcp": McpBinding(self._bridge, buffer, tracker),
            "console": CapturedConsole(buffer),
            "parallel": parallel,
            "settle": settle,
            CHECKPOINT: deadline.checkpoint,
        }

    async def execute(self, code: str, deadline_ms: Optional[int] = None) -> ExecutionResult:
        if deadline_ms is None:
            deadline_ms = self._default_deadline_ms
        buffer = LogBuffer(self._max_logs)
        tracker = CallTracker()

        try:
            compiled = compile_script(code)
        except ScriptRejected as exc:
            logger.info("Script rejected: %s", exc)
            return ExecutionResult.failure(str(exc), buffer.entries())

        deadline = Deadline(deadline_ms / 1000)
        scope = self._build_scope(buffer, tracker, deadline)
        exec(compiled, scope)  # noqa: S102 - restricted builtins and AST guard
        task = asyncio.ensure_future(_run_entry(scope[ENTRY_POINT], deadline))

        try:
            done, _ = await asyncio.wait({task}, timeout=deadline.remaining())
        except asyncio.CancelledError:
            self._abort_outstanding(tracker)
            task.cancel()
            task.add_done_callback(_consume_outcome)
            raise

        if not done or (not task.cancelled() and isinstance(task.exception(), DeadlineExceeded)):
            return self._timed_out(task, tracker, buffer, deadline_ms)

        self._abort_outstanding(tracker)
        if task.cancelled():
            return ExecutionResult.failure("Execution cancelled", buffer.entries())
        exc = task.exception()
        if exc is not None:
            logger.info("Script failed: %s: %s", type(exc).__name__, exc)
            return ExecutionResult.failure(error_message(exc), buffer.entries())
        return ExecutionResult.success(task.result(), buffer.entries())

    def _timed_out(
        self,
        task: "asyncio.Future[Any]",
        tracker: CallTracker,
        buffer: LogBuffer,
        deadline_ms: int,
    ) -> ExecutionResult:
        outstanding = self._abort_outstanding(tracker)
        logger.warning(
            "Script exceeded its %sms deadline; aborted %d outstanding call(s).",
            deadline_ms,
            outstanding,
        )
        if not task.done():
            task.cancel()
            task.add_done_callback(_consume_outcome)
        return ExecutionResult.failure(
            f"Execution timed out after {deadline_ms}ms", buffer.entries()
        )

    # ── Aborts ───────────────────────────────────────────────────────

    def _abort_outstanding(self, tracker: CallTracker) -> int:
        call_ids = tracker.outstanding()
        for call_id in call_ids:
            tracker.finish(call_id)
            self._fire_abort(call_id)
        return len(call_ids)

    def _fire_abort(self, call_id: str) -> None:
        try:
            outcome = self._abort(call_id)
        except Exception:
            logger.exception("abort(%s) failed.", call_id)
            return
        if inspect.isawaitable(outcome):
            future = asyncio.ensure_future(outcome)
            self._pending_aborts.add(future)
            future.add_done_callback(self._abort_done)

    def _abort_done(self, future: "asyncio.Future[Any]") -> None:
        self._pending_aborts.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("Asynchronous abort failed: %s", exc)
