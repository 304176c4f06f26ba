"""domainsmith/executor.py

Tool execution boundary.

:class:`ToolExecutor` validates the model's arguments against a tool's schema
and runs the bound action exactly once.  Whatever happens (bad arguments, a
network error, an upstream non-2xx, a malformed body) the caller gets a
:class:`ToolResult`; nothing is raised past this boundary.
"""

from __future__ import annotations

# Standard Library
import dataclasses
import json
import logging
import random
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Literal

# Third-Party Libraries
import httpx
from pydantic import BaseModel, ValidationError, model_validator

# Local Modules
from domainsmith.errors import ToolArgumentError
from domainsmith.registry import ToolDefinition
from domainsmith.settings import Settings

logger = logging.getLogger(__name__)

ErrorKind = Literal["unknown_tool", "invalid_arguments", "execution_failed", "timeout"]
Chooser = Callable[[Sequence[str]], str]


class ToolResult(BaseModel):
    """Outcome of executing one tool call.

    ``error_message`` and ``error_kind`` are present iff ``ok`` is false.
    """

    ok: bool
    payload: Any = None
    error_message: str | None = None
    error_kind: ErrorKind | None = None

    @model_validator(mode="after")
    def _check_error_fields(self) -> ToolResult:
        if self.ok and (self.error_message is not None or self.error_kind is not None):
            raise ValueError("successful results carry no error")
        if not self.ok and (not self.error_message or self.error_kind is None):
            raise ValueError("failed results need an error message and kind")
        return self

    @classmethod
    def success(cls, payload: Any) -> ToolResult:
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> ToolResult:
        return cls(ok=False, error_kind=kind, error_message=message)

    def to_content(self) -> str:
        """Serialise the result as the body of a tool turn."""
        if self.ok:
            return json.dumps(self.payload, ensure_ascii=False, default=str)
        return json.dumps(
            {"error": self.error_message, "kind": self.error_kind}, ensure_ascii=False
        )


@dataclasses.dataclass(slots=True)
class ToolEnvironment:
    """Shared dependencies handed to every tool action.

    Attributes:
        http: Shared async HTTP client; its timeout bounds each external call.
        settings: Credentials and endpoints.
        chooser: Source of randomness for the decision tool.
    """

    http: httpx.AsyncClient
    settings: Settings
    chooser: Chooser = random.choice


def _describe_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


class ToolExecutor:
    """Runs tool actions against a shared :class:`ToolEnvironment`."""

    def __init__(self, env: ToolEnvironment) -> None:
        self.env = env

    @staticmethod
    def validate(definition: ToolDefinition, raw_arguments: Any) -> BaseModel:
        """Validate *raw_arguments* against the tool's parameter schema.

        Raises:
            ToolArgumentError: If the arguments do not satisfy the schema.
        """
        if raw_arguments is None:
            raw_arguments = {}
        if not isinstance(raw_arguments, Mapping):
            raise ToolArgumentError(
                f"Arguments for {definition.name} must be an object, "
                f"got {type(raw_arguments).__name__}"
            )
        try:
            return definition.parameter_schema.model_validate(dict(raw_arguments))
        except ValidationError as exc:
            raise ToolArgumentError(
                f"Invalid arguments for {definition.name}: {_describe_validation_error(exc)}"
            ) from exc

    async def execute(self, definition: ToolDefinition, raw_arguments: Any) -> ToolResult:
        """Validate and run one tool call; failures come back as ``ok=False``.

        Args:
            definition: The resolved tool.
            raw_arguments: Arguments exactly as the model produced them.

        Returns:
            The :class:`ToolResult` for this call.
        """
        try:
            arguments = self.validate(definition, raw_arguments)
        except ToolArgumentError as exc:
            logger.warning("[tool:%s] %s", definition.name, exc)
            return ToolResult.failure("invalid_arguments", str(exc))

        logger.info("[tool:%s] executing with %s", definition.name, arguments.model_dump())
        try:
            payload = await definition.execute(arguments, self.env)
        except (httpx.TimeoutException, TimeoutError) as exc:
            logger.error("[tool:%s] timed out: %s", definition.name, exc)
            return ToolResult.failure("timeout", str(exc) or type(exc).__name__)
        except Exception as exc:
            logger.error("[tool:%s] failed: %s", definition.name, exc, exc_info=True)
            return ToolResult.failure("execution_failed", str(exc) or type(exc).__name__)

        logger.info("[tool:%s] ok", definition.name)
        return ToolResult.success(payload)
