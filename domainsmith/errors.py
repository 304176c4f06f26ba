"""domainsmith/errors.py

Error taxonomy for the orchestration core.

Tool-level errors (unknown tool, bad arguments, failed action) are always
absorbed by the loop and turned into conversation content.  Only
:class:`InferenceUnavailable` and :class:`OrchestrationTimeout` escape a run
and reach the HTTP boundary.
"""

from __future__ import annotations


class DomainsmithError(Exception):
    """Base class for every error raised by domainsmith."""


class DuplicateToolError(DomainsmithError):
    """A tool with the same name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool already registered: {name}")
        self.name = name


class UnknownToolError(DomainsmithError):
    """The requested tool name is not in the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ToolArgumentError(DomainsmithError):
    """Tool arguments failed schema validation."""


class ToolExecutionError(DomainsmithError):
    """The action behind a tool failed (network, upstream status, bad body)."""


class InferenceUnavailable(DomainsmithError):
    """The model-invocation call itself failed."""


class ResponseParseError(DomainsmithError):
    """A model answer could not be coerced into structured data."""


class OrchestrationTimeout(DomainsmithError, TimeoutError):
    """A per-call or per-run deadline was exceeded."""


class TurnOrderError(DomainsmithError, ValueError):
    """A turn would break the conversation ordering invariant."""
