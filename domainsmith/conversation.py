"""domainsmith/conversation.py

Conversation turns and the append-only conversation state owned by one
orchestration run.

Unlike a rolling chat memory, nothing here is ever dropped: the model must
see every tool request next to the tool turn that answers it, so turns are
only appended, never reordered, rewritten, or removed.
"""

from __future__ import annotations

# Standard Library
import uuid
from collections.abc import Iterable, Iterator, Mapping
from enum import StrEnum
from typing import Any

# Third-Party Libraries
from pydantic import BaseModel, ConfigDict, Field, model_validator

# Local Modules
from domainsmith.errors import TurnOrderError


class Role(StrEnum):
    """Who produced a turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


def new_call_id() -> str:
    """Return a fresh correlation id for a tool call the model left unnamed."""
    return f"call_{uuid.uuid4().hex[:12]}"


class ToolCallRequest(BaseModel):
    """A model-issued request to run a named tool with arguments."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_call_id)
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class Turn(BaseModel):
    """One message in a conversation.

    Attributes:
        role: Producer of the turn.
        content: Text body; may be empty on an assistant turn carrying tool calls.
        tool_calls: Requests issued by an assistant turn, in model order.
        tool_name: Name of the tool answered by a tool turn.
        tool_call_id: Id of the request answered by a tool turn.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCallRequest, ...] = ()
    tool_name: str | None = None
    tool_call_id: str | None = None

    @model_validator(mode="after")
    def _check_role_fields(self) -> Turn:
        if self.tool_calls and self.role is not Role.ASSISTANT:
            raise ValueError("only assistant turns may carry tool calls")
        if self.role is Role.TOOL:
            if not self.tool_name:
                raise ValueError("tool turns must name the tool they answer")
        elif self.tool_name is not None or self.tool_call_id is not None:
            raise ValueError("tool_name/tool_call_id are only valid on tool turns")
        return self

    @classmethod
    def system(cls, content: str) -> Turn:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Turn:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(
        cls, content: str = "", tool_calls: Iterable[ToolCallRequest] = ()
    ) -> Turn:
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, request: ToolCallRequest, content: str) -> Turn:
        """Build the tool turn answering *request*."""
        return cls(
            role=Role.TOOL,
            content=content,
            tool_name=request.name,
            tool_call_id=request.id,
        )


class ConversationState:
    """Ordered, append-only sequence of turns for one orchestration run."""

    def __init__(self, turns: Iterable[Turn] = ()) -> None:
        self._turns: list[Turn] = []
        self._issued_ids: set[str] = set()
        self._issued_names: set[str] = set()
        for turn in turns:
            self.append(turn)

    @classmethod
    def from_messages(cls, messages: Iterable[Mapping[str, Any]]) -> ConversationState:
        """Seed a conversation from inbound ``{"role", "content"}`` dicts.

        Args:
            messages: Chat messages as received from the front end.

        Returns:
            A new conversation holding one turn per message.

        Raises:
            TurnOrderError: If a role is unknown or is ``tool``.
        """
        state = cls()
        for message in messages:
            try:
                role = Role(str(message.get("role", "")))
            except ValueError as exc:
                raise TurnOrderError(f"Unknown role: {message.get('role')!r}") from exc
            if role is Role.TOOL:
                # No request ids survive the round trip through the front end.
                raise TurnOrderError("Tool turns cannot be seeded from inbound messages")
            state.append(Turn(role=role, content=str(message.get("content") or "")))
        return state

    def append(self, turn: Turn) -> None:
        """Append *turn* after checking the tool-turn ordering invariant.

        Raises:
            TurnOrderError: If a tool turn has no earlier matching request.
        """
        if turn.role is Role.TOOL:
            if turn.tool_call_id is not None:
                matched = turn.tool_call_id in self._issued_ids
            else:
                matched = turn.tool_name in self._issued_names
            if not matched:
                raise TurnOrderError(
                    f"Tool turn for {turn.tool_name!r} has no matching assistant request"
                )
        for call in turn.tool_calls:
            self._issued_ids.add(call.id)
            self._issued_names.add(call.name)
        self._turns.append(turn)

    def turns_for_model(self) -> tuple[Turn, ...]:
        """Return the ordered turns as the model-invocation interface expects them."""
        return tuple(self._turns)

    def last_assistant_tool_calls(self) -> tuple[ToolCallRequest, ...]:
        """Return the tool calls of the most recent assistant turn, or ``()``."""
        for turn in reversed(self._turns):
            if turn.role is Role.ASSISTANT:
                return turn.tool_calls
        return ()

    def last_assistant_content(self) -> str:
        """Return the most recent non-empty assistant text, or ``""``."""
        for turn in reversed(self._turns):
            if turn.role is Role.ASSISTANT and turn.content:
                return turn.content
        return ""

    def has_user_turn(self) -> bool:
        return any(t.role is Role.USER and t.content.strip() for t in self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))
