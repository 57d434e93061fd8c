"""Base class for diagnostic tools.

A tool declares its parameters as a Pydantic model. ``BaseTool.call``
validates raw parameters against it, applies defaults, runs ``execute`` and
wraps the outcome in a ``ToolResult``.
"""

import time
from typing import Any, ClassVar, Dict, List, Optional, Type

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from oncall_gym.tools.result import ToolResult


logger = structlog.get_logger()


class ToolParams(BaseModel):
    """Base for tool parameter models; unknown parameters are rejected."""

    model_config = ConfigDict(extra="forbid")


class ToolExecutionError(Exception):
    """Raised inside ``execute`` to report an expected, user-facing failure."""


def format_validation_errors(error: PydanticValidationError) -> List[str]:
    """Turn Pydantic errors into ``"field: message"`` strings."""
    messages = []
    for err in error.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "params"
        messages.append(f"{field}: {err.get('msg')}")
    return messages


class BaseTool:
    """
    A named, parameterized diagnostic tool.

    Subclasses set ``name``, ``description`` and ``Params`` and implement
    ``execute``. Tools read from an injected data source and never raise out
    of ``call``: every error becomes a failed ``ToolResult``.
    """

    name: ClassVar[Optional[str]] = None
    description: ClassVar[str] = ""
    Params: ClassVar[Type[ToolParams]] = ToolParams

    def __init__(self, data_source: Any = None):
        self.data_source = data_source

    @classmethod
    def parameter_schema(cls) -> Dict[str, Any]:
        return cls.Params.model_json_schema()

    def call(self, params: Optional[Dict[str, Any]] = None) -> ToolResult:
        """Validate parameters, execute, and time the invocation."""
        start = time.monotonic()

        try:
            validated = self.Params.model_validate(dict(params or {}))
        except PydanticValidationError as e:
            errors = format_validation_errors(e)
            logger.warning("Tool parameters rejected", tool_name=self.name, errors=errors)
            return ToolResult.fail(self.name, errors, execution_time_ms=_elapsed_ms(start))

        try:
            data = self.execute(validated)
        except ToolExecutionError as e:
            return ToolResult.fail(self.name, [str(e)], execution_time_ms=_elapsed_ms(start))
        except Exception as e:
            logger.error("Tool execution failed", tool_name=self.name, error=str(e))
            return ToolResult.fail(self.name, [str(e)], execution_time_ms=_elapsed_ms(start))

        return ToolResult.ok(self.name, data, execution_time_ms=_elapsed_ms(start))

    def execute(self, params: ToolParams) -> Any:
        raise NotImplementedError


def _elapsed_ms(start: float) -> int:
    return int(round((time.monotonic() - start) * 1000))
