"""Sandboxed execution of orchestration scripts."""

from mcp_hub.sandbox.models import ExecutionResult
from mcp_hub.sandbox.runtime import SandboxRuntime

__all__ = ["ExecutionResult", "SandboxRuntime"]
