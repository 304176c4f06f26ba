"""domainsmith/registry.py

Tool registry: a static name → definition map built once at startup.

Each :class:`ToolDefinition` pairs the description and argument schema the
model sees with the async action the executor runs.  The registry is
read-only after startup and shared by every orchestration run.
"""

from __future__ import annotations

# Standard Library
import dataclasses
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any

# Third-Party Libraries
from pydantic import BaseModel

# Local Modules
from domainsmith.errors import DuplicateToolError, UnknownToolError

if TYPE_CHECKING:
    from domainsmith.executor import ToolEnvironment

logger = logging.getLogger(__name__)

ToolAction = Callable[[Any, "ToolEnvironment"], Awaitable[Any]]


@dataclasses.dataclass(frozen=True, slots=True)
class ToolDefinition:
    """Static description of one capability the model may call.

    Attributes:
        name: Unique tool name, as the model must spell it.
        description: Text shown to the model.
        parameter_schema: Pydantic model declaring required/optional arguments.
        execute: Async action receiving the validated arguments and the
            executor's environment.
    """

    name: str
    description: str
    parameter_schema: type[BaseModel]
    execute: ToolAction

    def to_spec(self) -> dict[str, Any]:
        """Build the OpenAI-style function spec sent to the model."""
        schema = self.parameter_schema.model_json_schema()
        properties: dict[str, Any] = {
            key: {k: v for k, v in prop.items() if k != "title"}
            for key, prop in schema.get("properties", {}).items()
        }
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": list(schema.get("required", [])),
                },
            },
        }


class ToolRegistry:
    """Registry of the tools available to orchestration runs."""

    def __init__(self, definitions: Iterable[ToolDefinition] = ()) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: ToolDefinition) -> None:
        """Add *definition* to the registry.

        Raises:
            DuplicateToolError: If a tool with the same name already exists.
        """
        if definition.name in self._tools:
            raise DuplicateToolError(definition.name)
        self._tools[definition.name] = definition
        logger.info("Registered tool: %s", definition.name)

    def lookup(self, name: str) -> ToolDefinition:
        """Return the definition registered under *name*.

        Raises:
            UnknownToolError: If no such tool exists.
        """
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def schemas_for(self, names: Iterable[str]) -> list[dict[str, Any]]:
        """Return the model-facing specs for *names*, in the given order.

        Raises:
            UnknownToolError: If any name is not registered.
        """
        return [self.lookup(name).to_spec() for name in names]

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
