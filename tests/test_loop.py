"""tests/test_loop.py

Unit tests for the orchestration state machine (domainsmith/loop.py).
The model is a scripted FakeModelClient; no network is involved except
through MockTransport handlers.
"""

from __future__ import annotations

# Standard Library
import asyncio
import json
from collections.abc import Callable
from typing import Any

# Third-Party Libraries
import httpx
import pytest

# Local Modules
from conftest import FakeModelClient, text_reply, tool_reply
from domainsmith.conversation import ConversationState, Role, Turn
from domainsmith.errors import InferenceUnavailable, OrchestrationTimeout, UnknownToolError
from domainsmith.loop import OrchestrationLoop, RunState
from domainsmith.tools import DECISION_TOOLS, SUGGESTION_TOOLS, WEATHER_TOOLS

LoopFactory = Callable[..., OrchestrationLoop]


def conversation(text: str = "What's the weather in Paris?") -> ConversationState:
    return ConversationState([Turn.system("You are helpful."), Turn.user(text)])


def weather_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={"name": "Paris", "main": {"temp": 50, "humidity": 80}, "weather": [{"description": "fog"}]},
    )


class TestOrchestrationLoop:
    """Test suite for OrchestrationLoop."""

    def test_rejects_non_positive_max_steps(self, make_loop: LoopFactory) -> None:
        """Test that a loop needs at least one step."""
        with pytest.raises(ValueError):
            make_loop(FakeModelClient(), max_steps=0)

    def test_rejects_non_positive_run_override(self, make_loop: LoopFactory) -> None:
        """Test that a per-run step bound of zero is rejected, not replaced by the default."""
        model = FakeModelClient([text_reply("unused")])
        loop = make_loop(model)

        with pytest.raises(ValueError, match="at least 1"):
            asyncio.run(loop.run(conversation(), max_steps=0))
        assert model.calls == []

    def test_plain_answer_uses_one_invocation(self, make_loop: LoopFactory) -> None:
        """Test that a reply without tool calls finishes after one model call."""
        model = FakeModelClient([text_reply("Hello there.")])
        loop = make_loop(model)

        run = asyncio.run(loop.run(conversation("hi")))

        assert run.state is RunState.DONE
        assert run.final_answer == "Hello there."
        assert run.step_count == 1
        assert run.tool_call_log == []
        assert not run.truncated
        assert len(model.calls) == 1
        assert model.calls[0]["model"] == "test-model"
        assert model.calls[0]["tools"] is None

    def test_tool_round_trip(self, make_loop: LoopFactory) -> None:
        """Test a tool call followed by a final answer."""
        model = FakeModelClient(
            [
                tool_reply(("get_weather", {"city": "Paris"})),
                text_reply("It is foggy and 50F in Paris."),
            ]
        )
        loop = make_loop(model, weather_handler)

        run = asyncio.run(loop.run(conversation(), tool_names=WEATHER_TOOLS))

        assert run.final_answer == "It is foggy and 50F in Paris."
        assert run.step_count == 2
        assert len(run.tool_call_log) == 1
        assert run.tool_call_log[0].result.ok
        roles = [t.role for t in run.conversation]
        assert roles == [Role.SYSTEM, Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
        tool_turn = run.conversation.turns_for_model()[3]
        assert tool_turn.tool_call_id == "call_1"
        assert json.loads(tool_turn.content)["conditions"] == "fog"
        # the second invocation sees the tool turn
        assert model.calls[1]["turns"][-1].role is Role.TOOL
        assert [s["function"]["name"] for s in model.calls[0]["tools"]] == ["get_weather"]

    def test_unknown_tool_becomes_failed_turn(self, make_loop: LoopFactory) -> None:
        """Test that an unregistered tool name is fed back and the run continues."""
        model = FakeModelClient(
            [
                tool_reply(("teleport", {"to": "Mars"})),
                text_reply("I cannot do that."),
            ]
        )
        loop = make_loop(model)

        run = asyncio.run(loop.run(conversation(), tool_names=WEATHER_TOOLS))

        record = run.tool_call_log[0]
        assert not record.result.ok
        assert record.result.error_kind == "unknown_tool"
        tool_turn = run.conversation.turns_for_model()[3]
        assert tool_turn.role is Role.TOOL
        assert json.loads(tool_turn.content)["kind"] == "unknown_tool"
        assert run.final_answer == "I cannot do that."

    def test_invalid_arguments_are_fed_back(self, make_loop: LoopFactory) -> None:
        """Test that a schema violation does not end the run."""
        model = FakeModelClient([tool_reply(("get_weather", {})), text_reply("Which city?")])
        loop = make_loop(model)

        run = asyncio.run(loop.run(conversation(), tool_names=WEATHER_TOOLS))

        assert run.tool_call_log[0].result.error_kind == "invalid_arguments"
        assert run.final_answer == "Which city?"

    def test_multiple_calls_processed_in_order(self, make_loop: LoopFactory) -> None:
        """Test that every call in one reply runs, in model order."""
        model = FakeModelClient(
            [
                tool_reply(
                    ("rank_domains", {"domains": ["a.com", "ab-1.net"]}),
                    ("check_trademarks", {"domains": ["googlesucks.com"]}),
                    ("rank_domains", {"domains": ["b.org"]}),
                ),
                text_reply("done"),
            ]
        )
        loop = make_loop(model)

        run = asyncio.run(
            loop.run(conversation(), tool_names=("rank_domains", "check_trademarks"))
        )

        assert [r.request.id for r in run.tool_call_log] == ["call_1", "call_2", "call_3"]
        tool_turns = [t for t in run.conversation if t.role is Role.TOOL]
        assert [t.tool_call_id for t in tool_turns] == ["call_1", "call_2", "call_3"]
        assert run.tool_results()[1]["payload"]["results"][0]["status"] == "Potential Conflict"

    def test_max_steps_one_truncates(self, make_loop: LoopFactory) -> None:
        """Test that an always-tool-calling model stops at max_steps=1 without error."""
        model = FakeModelClient([tool_reply(("make_decision", {}), content="Deciding...")])
        loop = make_loop(model, max_steps=1)

        run = asyncio.run(loop.run(conversation(), tool_names=DECISION_TOOLS))

        assert run.done
        assert run.truncated
        assert run.step_count == 1
        assert run.final_answer == "Deciding..."
        # pending calls are not executed once the limit is hit
        assert run.tool_call_log == []
        assert len(model.calls) == 1

    def test_truncation_keeps_best_partial_answer(self, make_loop: LoopFactory) -> None:
        """Test that the last non-empty assistant text survives truncation."""
        model = FakeModelClient(
            [
                tool_reply(("make_decision", {}), content="Let me decide."),
                tool_reply(("make_decision", {})),
            ]
        )
        loop = make_loop(model, chooser=lambda options: "rank")

        run = asyncio.run(loop.run(conversation(), tool_names=DECISION_TOOLS, max_steps=2))

        assert run.truncated
        assert run.step_count == 2
        assert len(run.tool_call_log) == 1
        assert run.final_answer == "Let me decide."

    def test_step_count_never_exceeds_max_steps(self, make_loop: LoopFactory) -> None:
        """Test the step bound with the default limit."""
        model = FakeModelClient([tool_reply(("rank_domains", {"domains": ["a.com"]}))])
        loop = make_loop(model, max_steps=5)

        run = asyncio.run(loop.run(conversation(), tool_names=("rank_domains",)))

        assert run.step_count == 5
        assert len(model.calls) == 5
        assert len(run.tool_call_log) == 4

    def test_model_override(self, make_loop: LoopFactory) -> None:
        """Test that a per-run model tag reaches the backend."""
        model = FakeModelClient([text_reply("ok")])

        run = asyncio.run(make_loop(model).run(conversation(), model="other:7b"))

        assert run.model == "other:7b"
        assert model.calls[0]["model"] == "other:7b"

    def test_unknown_active_tool_name(self, make_loop: LoopFactory) -> None:
        """Test that asking for an unregistered schema fails before any model call."""
        model = FakeModelClient([text_reply("ok")])

        with pytest.raises(UnknownToolError):
            asyncio.run(make_loop(model).run(conversation(), tool_names=("nope",)))
        assert model.calls == []

    def test_inference_failure_is_fatal(self, make_loop: LoopFactory) -> None:
        """Test that a backend failure surfaces as InferenceUnavailable."""
        model = FakeModelClient(error=InferenceUnavailable("Ollama unreachable"))

        with pytest.raises(InferenceUnavailable, match="unreachable"):
            asyncio.run(make_loop(model).run(conversation()))

    def test_unexpected_backend_error_is_wrapped(self, make_loop: LoopFactory) -> None:
        """Test that any other backend exception becomes InferenceUnavailable."""
        model = FakeModelClient(error=RuntimeError("socket closed"))

        with pytest.raises(InferenceUnavailable, match="socket closed"):
            asyncio.run(make_loop(model).run(conversation()))

    def test_model_timeout(self, make_loop: LoopFactory) -> None:
        """Test that a slow model call raises OrchestrationTimeout."""
        model = FakeModelClient([text_reply("late")], delay=0.5)
        loop = make_loop(model, model_timeout=0.05)

        with pytest.raises(OrchestrationTimeout, match="Model call"):
            asyncio.run(loop.run(conversation()))

    def test_run_timeout(self, make_loop: LoopFactory) -> None:
        """Test that the whole-run deadline raises OrchestrationTimeout."""
        model = FakeModelClient([tool_reply(("rank_domains", {"domains": ["a.com"]}))], delay=0.05)
        loop = make_loop(model, max_steps=50, run_timeout=0.12)

        with pytest.raises(OrchestrationTimeout, match="Run exceeded"):
            asyncio.run(loop.run(conversation(), tool_names=("rank_domains",)))

    def test_timeout_is_a_timeout_error(self) -> None:
        """Test that callers can catch deadlines as TimeoutError."""
        assert issubclass(OrchestrationTimeout, TimeoutError)

    def test_on_event_sequence(self, make_loop: LoopFactory) -> None:
        """Test the diagnostic events emitted during a tool round trip."""
        events: list[dict[str, Any]] = []
        model = FakeModelClient(
            [tool_reply(("get_weather", {"city": "Paris"})), text_reply("Foggy.")]
        )
        loop = make_loop(model, weather_handler)

        asyncio.run(loop.run(conversation(), tool_names=WEATHER_TOOLS, on_event=events.append))

        assert [e["type"] for e in events] == [
            "model_reply",
            "tool_call",
            "tool_result",
            "model_reply",
            "done",
        ]
        assert events[0]["tool_calls"] == ["get_weather"]
        assert events[2]["ok"] is True
        assert events[-1] == {"type": "done", "steps": 2, "truncated": False}

    def test_on_event_errors_are_swallowed(self, make_loop: LoopFactory) -> None:
        """Test that a failing callback never disturbs the run."""

        def broken(event: dict[str, Any]) -> None:
            raise RuntimeError("display crashed")

        model = FakeModelClient([text_reply("fine")])

        run = asyncio.run(make_loop(model).run(conversation(), on_event=broken))

        assert run.final_answer == "fine"

    def test_suggestion_tools_offered(self, make_loop: LoopFactory) -> None:
        """Test that only the requested schemas are sent to the model."""
        model = FakeModelClient([text_reply("[]")])

        asyncio.run(make_loop(model).run(conversation(), tool_names=SUGGESTION_TOOLS))

        names = [s["function"]["name"] for s in model.calls[0]["tools"]]
        assert names == ["search_domains", "get_domain_status"]
