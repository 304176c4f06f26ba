"""tests/conftest.py

Pytest configuration and shared fixtures for the domainsmith test suite.

No test talks to a real model or API: the model is a scripted
:class:`FakeModelClient` and outbound HTTP goes through ``httpx.MockTransport``.
"""

from __future__ import annotations

# Standard Library
import asyncio
from collections.abc import Callable, Sequence
from typing import Any

# Third-Party Libraries
import httpx
import pytest

# Local Modules
from domainsmith.conversation import ToolCallRequest, Turn
from domainsmith.executor import ToolEnvironment, ToolExecutor
from domainsmith.llm import ModelReply
from domainsmith.loop import OrchestrationLoop
from domainsmith.settings import Settings
from domainsmith.tools import default_registry

Handler = Callable[[httpx.Request], httpx.Response]


class FakeModelClient:
    """Model client that replays scripted replies and records every call.

    Replies are consumed in order; the last one repeats once the script runs
    out, so a single tool-calling reply models "always calls a tool".
    """

    def __init__(
        self,
        replies: Sequence[ModelReply] = (),
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.replies = list(replies)
        self.error = error
        self.delay = delay
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def complete(
        self,
        model: str,
        turns: Sequence[Turn],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> ModelReply:
        self.calls.append({"model": model, "turns": list(turns), "tools": tools})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0] if self.replies else ModelReply()

    async def aclose(self) -> None:
        self.closed = True


def text_reply(content: str) -> ModelReply:
    return ModelReply(content=content)


def tool_reply(*calls: tuple[str, dict[str, Any]], content: str = "") -> ModelReply:
    """Build a reply requesting ``(name, arguments)`` calls, ids ``call_1..n``."""
    return ModelReply(
        content=content,
        tool_calls=tuple(
            ToolCallRequest(id=f"call_{i}", name=name, arguments=args)
            for i, (name, args) in enumerate(calls, start=1)
        ),
    )


def not_found(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, json={"message": "not mocked"})


def make_http(handler: Handler = not_found) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def settings() -> Settings:
    """Settings with test credentials, ignoring any local .env file.

    Returns:
        A :class:`Settings` instance.
    """
    return Settings(
        _env_file=None,
        model="test-model",
        openweather_api_key="weather-key",
        rapidapi_key="rapid-key",
        max_steps=5,
        model_timeout=5.0,
        run_timeout=10.0,
    )


@pytest.fixture
def make_env(settings: Settings) -> Callable[..., ToolEnvironment]:
    """Factory for tool environments backed by a mock transport."""

    def _make(handler: Handler = not_found, chooser: Callable[[Sequence[str]], str] | None = None) -> ToolEnvironment:
        env = ToolEnvironment(http=make_http(handler), settings=settings)
        if chooser is not None:
            env.chooser = chooser
        return env

    return _make


@pytest.fixture
def make_loop(make_env: Callable[..., ToolEnvironment]) -> Callable[..., OrchestrationLoop]:
    """Factory for loops over the default registry and a fake model."""

    def _make(
        model_client: FakeModelClient,
        handler: Handler = not_found,
        chooser: Callable[[Sequence[str]], str] | None = None,
        **loop_kwargs: Any,
    ) -> OrchestrationLoop:
        executor = ToolExecutor(make_env(handler, chooser))
        loop_kwargs.setdefault("default_model", "test-model")
        return OrchestrationLoop(default_registry(), executor, model_client, **loop_kwargs)

    return _make


@pytest.fixture
def sample_messages() -> list[dict[str, str]]:
    """Inbound chat messages as the front end sends them.

    Returns:
        List of role/content dictionaries.
    """
    return [
        {"role": "system", "content": "You are a helpful assistant."},
        {"role": "user", "content": "What's the weather in Paris, FR?"},
    ]
