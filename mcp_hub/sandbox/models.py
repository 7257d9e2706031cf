"""Result model for one orchestration script run."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class ExecutionResult(BaseModel):
    """Outcome of :meth:`SandboxRuntime.execute`.

    ``result`` and ``error`` are mutually exclusive. ``logs`` holds the
    captured console/log lines in emission order.
    """

    result: Any = None
    error: Optional[str] = None
    logs: List[str] = Field(default_factory=list)
    is_error: bool = False

    @model_validator(mode="after")
    def _check_exclusive(self) -> "ExecutionResult":
        if self.is_error and self.error is None:
            raise ValueError("an error result needs an error message")
        if not self.is_error and self.error is not None:
            raise ValueError("a successful result cannot carry an error")
        if self.is_error and self.result is not None:
            raise ValueError("an error result cannot carry a result")
        return self

    @classmethod
    def success(cls, result: Any, logs: List[str]) -> "ExecutionResult":
        return cls(result=result, logs=logs, is_error=False)

    @classmethod
    def failure(cls, error: str, logs: List[str]) -> "ExecutionResult":
        return cls(error=error, logs=logs, is_error=True)

    def to_dict(self) -> Dict[str, Any]:
        """Wire form: ``isError`` key, and no ``result`` key on failure."""
        if self.is_error:
            return {"error": self.error, "logs": list(self.logs), "isError": True}
        return {"result": self.result, "logs": list(self.logs), "isError": False}
