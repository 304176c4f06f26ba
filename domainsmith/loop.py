"""domainsmith/loop.py

Tool-call orchestration loop.

One :class:`OrchestrationRun` is an explicit, bounded state machine:

    AWAITING_MODEL --(no tool call)--> DONE
    AWAITING_MODEL --(tool calls)----> EXECUTING_TOOLS --> AWAITING_MODEL
    AWAITING_MODEL --(tool calls, step_count == max_steps)--> DONE (truncated)

Every tool call in a reply is executed, in the order the model produced
them, each awaited before the next.  Tool failures become tool turns so the
model can react; only inference failures and deadlines end a run early.
"""

from __future__ import annotations

# Standard Library
import asyncio
import dataclasses
import logging
from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import Any

# Local Modules
from domainsmith.conversation import ConversationState, ToolCallRequest, Turn
from domainsmith.errors import InferenceUnavailable, OrchestrationTimeout, UnknownToolError
from domainsmith.executor import ToolExecutor, ToolResult
from domainsmith.llm import ModelClient, ModelReply
from domainsmith.registry import ToolRegistry

logger = logging.getLogger(__name__)

EventCallback = Callable[[dict[str, Any]], None]


class RunState(StrEnum):
    """States of an orchestration run."""

    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


@dataclasses.dataclass(frozen=True, slots=True)
class ToolCallRecord:
    """One executed tool call and its outcome."""

    request: ToolCallRequest
    result: ToolResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.request.id,
            "name": self.request.name,
            "arguments": self.request.arguments,
            "result": self.result.model_dump(),
        }


@dataclasses.dataclass(slots=True)
class OrchestrationRun:
    """State of one request-to-final-answer cycle.

    Attributes:
        conversation: Turns owned by this run; only ever grows.
        model: Model tag used for every invocation in this run.
        tool_names: Tools whose schemas are offered to the model.
        max_steps: Model invocations allowed before forced termination.
        step_count: Model invocations made so far.
        state: Current state-machine state.
        tool_call_log: Every executed call with its result, in order.
        final_answer: Set once the run reaches ``DONE``.
        truncated: True if the run was cut off at ``max_steps``.
    """

    conversation: ConversationState
    model: str
    tool_names: tuple[str, ...]
    max_steps: int
    step_count: int = 0
    state: RunState = RunState.AWAITING_MODEL
    tool_call_log: list[ToolCallRecord] = dataclasses.field(default_factory=list)
    final_answer: str | None = None
    truncated: bool = False

    @property
    def done(self) -> bool:
        return self.state is RunState.DONE

    def tool_calls(self) -> list[dict[str, Any]]:
        return [
            {"id": r.request.id, "name": r.request.name, "arguments": r.request.arguments}
            for r in self.tool_call_log
        ]

    def tool_results(self) -> list[dict[str, Any]]:
        return [r.result.model_dump() for r in self.tool_call_log]


def _emit(on_event: EventCallback | None, event_type: str, **fields: Any) -> None:
    """Fire the on_event callback if one is registered.

    Callback failures are logged and never disturb the run.
    """
    if on_event is None:
        return
    try:
        on_event({"type": event_type, **fields})
    except Exception as exc:
        logger.warning("on_event callback error: %s", exc, exc_info=True)


class OrchestrationLoop:
    """Drives orchestration runs against a model client and tool registry.

    The loop itself is stateless between runs; everything mutable lives on
    the :class:`OrchestrationRun` it returns.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        executor: ToolExecutor,
        model_client: ModelClient,
        *,
        default_model: str,
        max_steps: int = 5,
        model_timeout: float | None = None,
        run_timeout: float | None = None,
    ) -> None:
        """Initialize the loop.

        Args:
            registry: Tools the model may call.
            executor: Runs resolved tool calls.
            model_client: Model-invocation backend.
            default_model: Model tag used when a run does not name one.
            max_steps: Default bound on model invocations per run.
            model_timeout: Seconds allowed per model call (``None`` = no limit).
            run_timeout: Seconds allowed per run (``None`` = no limit).
        """
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.registry = registry
        self.executor = executor
        self.model_client = model_client
        self.default_model = default_model
        self.max_steps = max_steps
        self.model_timeout = model_timeout
        self.run_timeout = run_timeout

    async def run(
        self,
        conversation: ConversationState,
        *,
        tool_names: Sequence[str] = (),
        model: str | None = None,
        max_steps: int | None = None,
        on_event: EventCallback | None = None,
    ) -> OrchestrationRun:
        """Run the conversation to a final answer.

        Args:
            conversation: Seed turns; the run appends to this object.
            tool_names: Registered tools to offer the model.
            model: Model tag override for this run.
            max_steps: Step bound override for this run.
            on_event: Optional callback receiving diagnostic events.

        Returns:
            The finished run, in state ``DONE``.

        Raises:
            InferenceUnavailable: If the model call fails.
            OrchestrationTimeout: If a model call or the whole run exceeds its deadline.
            UnknownToolError: If *tool_names* names an unregistered tool.
            ValueError: If *max_steps* is less than 1.
        """
        steps = self.max_steps if max_steps is None else max_steps
        if steps < 1:
            raise ValueError("max_steps must be at least 1")
        run = OrchestrationRun(
            conversation=conversation,
            model=model or self.default_model,
            tool_names=tuple(tool_names),
            max_steps=steps,
        )
        schemas = self.registry.schemas_for(run.tool_names)
        logger.info(
            "=== Run started: model=%r tools=%s max_steps=%d ===",
            run.model,
            list(run.tool_names),
            run.max_steps,
        )
        try:
            await asyncio.wait_for(self._drive(run, schemas, on_event), timeout=self.run_timeout)
        except OrchestrationTimeout:
            raise
        except TimeoutError as exc:
            logger.error("Run exceeded %ss after %d steps", self.run_timeout, run.step_count)
            raise OrchestrationTimeout(f"Run exceeded {self.run_timeout}s") from exc

        logger.info(
            "=== Run complete: steps=%d tool_calls=%d truncated=%s ===",
            run.step_count,
            len(run.tool_call_log),
            run.truncated,
        )
        return run

    async def _drive(
        self,
        run: OrchestrationRun,
        schemas: list[dict[str, Any]],
        on_event: EventCallback | None,
    ) -> None:
        while run.state is not RunState.DONE:
            if run.state is RunState.AWAITING_MODEL:
                await self._await_model(run, schemas, on_event)
            else:
                await self._execute_tools(run, on_event)

    async def _invoke_model(
        self, run: OrchestrationRun, schemas: list[dict[str, Any]]
    ) -> ModelReply:
        try:
            return await asyncio.wait_for(
                self.model_client.complete(
                    run.model, run.conversation.turns_for_model(), schemas or None
                ),
                timeout=self.model_timeout,
            )
        except InferenceUnavailable:
            raise
        except TimeoutError as exc:
            logger.error("[model] call exceeded %ss", self.model_timeout)
            raise OrchestrationTimeout(f"Model call exceeded {self.model_timeout}s") from exc
        except Exception as exc:
            logger.error("[model] invocation failed: %s", exc, exc_info=True)
            raise InferenceUnavailable(str(exc) or type(exc).__name__) from exc

    async def _await_model(
        self,
        run: OrchestrationRun,
        schemas: list[dict[str, Any]],
        on_event: EventCallback | None,
    ) -> None:
        run.step_count += 1
        reply = await self._invoke_model(run, schemas)
        run.conversation.append(Turn.assistant(reply.content, reply.tool_calls))
        _emit(
            on_event,
            "model_reply",
            step=run.step_count,
            content=reply.content,
            tool_calls=[call.name for call in reply.tool_calls],
        )

        if not reply.tool_calls:
            run.final_answer = reply.content
            run.state = RunState.DONE
        elif run.step_count >= run.max_steps:
            logger.warning(
                "Step limit %d reached with %d pending tool call(s); truncating",
                run.max_steps,
                len(reply.tool_calls),
            )
            run.final_answer = run.conversation.last_assistant_content()
            run.truncated = True
            run.state = RunState.DONE
        else:
            run.state = RunState.EXECUTING_TOOLS

        if run.done:
            _emit(on_event, "done", steps=run.step_count, truncated=run.truncated)

    async def _execute_tools(
        self, run: OrchestrationRun, on_event: EventCallback | None
    ) -> None:
        for request in run.conversation.last_assistant_tool_calls():
            _emit(
                on_event,
                "tool_call",
                id=request.id,
                name=request.name,
                arguments=request.arguments,
            )
            try:
                definition = self.registry.lookup(request.name)
            except UnknownToolError as exc:
                logger.warning("Model requested unknown tool %r", request.name)
                result = ToolResult.failure("unknown_tool", str(exc))
            else:
                result = await self.executor.execute(definition, request.arguments)

            run.conversation.append(Turn.tool(request, result.to_content()))
            run.tool_call_log.append(ToolCallRecord(request=request, result=result))
            _emit(
                on_event,
                "tool_result",
                id=request.id,
                name=request.name,
                ok=result.ok,
                error=result.error_message,
            )
        run.state = RunState.AWAITING_MODEL
