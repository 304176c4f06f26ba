"""domainsmith/llm.py

Model-invocation interface and its two backends.

The orchestration loop only sees :class:`ModelClient`: given a model tag, the
ordered turns, and the active tool specs, return one :class:`ModelReply`.
Backends translate turns to their own wire format and turn every transport
or protocol failure into :class:`InferenceUnavailable`.

Backends:
  ollama: native Ollama chat API via ``ollama.AsyncClient``
  openai: any OpenAI-compatible ``/chat/completions`` endpoint via ``httpx``
"""

from __future__ import annotations

# Standard Library
import dataclasses
import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

# Third-Party Libraries
import httpx
from ollama import AsyncClient, ResponseError

# Local Modules
from domainsmith.conversation import Role, ToolCallRequest, Turn, new_call_id
from domainsmith.errors import InferenceUnavailable
from domainsmith.settings import Settings

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class ModelReply:
    """One assistant reply: free text plus any requested tool calls."""

    content: str = ""
    tool_calls: tuple[ToolCallRequest, ...] = ()


class ModelClient(Protocol):
    """Boundary abstraction over the LLM inference backend."""

    async def complete(
        self,
        model: str,
        turns: Sequence[Turn],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> ModelReply: ...

    async def aclose(self) -> None: ...


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read *name* from a pydantic response object or a plain dict."""
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _coerce_arguments(raw: Any, tool_name: str) -> dict[str, Any]:
    """Normalise tool-call arguments to a dict.

    OpenAI-compatible servers send a JSON string, Ollama sends a mapping.
    Undecodable arguments become ``{}`` so schema validation reports them.
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("[llm] undecodable arguments for %s: %r", tool_name, raw[:200])
            return {}
        if isinstance(decoded, dict):
            return decoded
    logger.warning("[llm] non-object arguments for %s: %r", tool_name, raw)
    return {}


def _parse_tool_calls(raw_calls: Any) -> tuple[ToolCallRequest, ...]:
    calls: list[ToolCallRequest] = []
    for raw in raw_calls or []:
        function = _field(raw, "function")
        name = _field(function, "name") if function is not None else None
        if not name:
            logger.warning("[llm] dropping tool call without a name: %r", raw)
            continue
        calls.append(
            ToolCallRequest(
                id=_field(raw, "id") or new_call_id(),
                name=name,
                arguments=_coerce_arguments(_field(function, "arguments"), name),
            )
        )
    return tuple(calls)


# ---------------------------------------------------------------------------
# Ollama backend
# ---------------------------------------------------------------------------


def to_ollama_message(turn: Turn) -> dict[str, Any]:
    """Render a turn in the native Ollama chat format."""
    message: dict[str, Any] = {"role": turn.role.value, "content": turn.content}
    if turn.tool_calls:
        message["tool_calls"] = [
            {"function": {"name": call.name, "arguments": call.arguments}}
            for call in turn.tool_calls
        ]
    if turn.role is Role.TOOL:
        message["tool_name"] = turn.tool_name
    return message


class OllamaModelClient:
    """Model client for the native Ollama chat API."""

    def __init__(self, host: str, client: AsyncClient | None = None) -> None:
        self.host = host
        self.client = client or AsyncClient(host=host)

    async def complete(
        self,
        model: str,
        turns: Sequence[Turn],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> ModelReply:
        messages = [to_ollama_message(t) for t in turns]
        logger.info("[ollama] model=%r host=%s turns=%d", model, self.host, len(messages))
        try:
            response = await self.client.chat(
                model=model,
                messages=messages,
                tools=list(tools) if tools else None,
                stream=False,
            )
        except ResponseError as exc:
            logger.error("[ollama] response error: %s", exc, exc_info=True)
            raise InferenceUnavailable(f"Ollama error: {exc}") from exc
        except (httpx.HTTPError, ConnectionError) as exc:
            logger.error("[ollama] transport error: %s", exc, exc_info=True)
            raise InferenceUnavailable(f"Ollama unreachable at {self.host}: {exc}") from exc

        message = _field(response, "message")
        if message is None:
            raise InferenceUnavailable("Ollama response carried no message")
        return ModelReply(
            content=_field(message, "content") or "",
            tool_calls=_parse_tool_calls(_field(message, "tool_calls")),
        )

    async def aclose(self) -> None:
        return None


# ---------------------------------------------------------------------------
# OpenAI-compatible backend
# ---------------------------------------------------------------------------


def to_openai_message(turn: Turn) -> dict[str, Any]:
    """Render a turn in the OpenAI chat-completions format."""
    message: dict[str, Any] = {"role": turn.role.value, "content": turn.content}
    if turn.tool_calls:
        message["content"] = turn.content or None
        message["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {
                    "name": call.name,
                    "arguments": json.dumps(call.arguments, ensure_ascii=False),
                },
            }
            for call in turn.tool_calls
        ]
    if turn.role is Role.TOOL:
        message["tool_call_id"] = turn.tool_call_id
        message["name"] = turn.tool_name
    return message


class OpenAICompatModelClient:
    """Model client for OpenAI-compatible ``/chat/completions`` servers."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.completions_url = base_url.rstrip("/") + "/chat/completions"
        self.api_key = api_key
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient()

    async def complete(
        self,
        model: str,
        turns: Sequence[Turn],
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> ModelReply:
        payload: dict[str, Any] = {
            "model": model,
            "messages": [to_openai_message(t) for t in turns],
            "stream": False,
        }
        if tools:
            payload["tools"] = list(tools)
            payload["tool_choice"] = "auto"
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        logger.info("[openai] model=%r url=%s turns=%d", model, self.completions_url, len(turns))
        try:
            response = await self.http.post(
                self.completions_url, json=payload, headers=headers, timeout=None
            )
            response.raise_for_status()
            message = response.json()["choices"][0]["message"]
        except httpx.HTTPStatusError as exc:
            logger.error("[openai] HTTP error: %s", exc, exc_info=True)
            raise InferenceUnavailable(f"Inference endpoint returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("[openai] transport error: %s", exc, exc_info=True)
            raise InferenceUnavailable(f"Inference endpoint unreachable: {exc}") from exc
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            logger.error("[openai] malformed response: %s", exc, exc_info=True)
            raise InferenceUnavailable("Inference endpoint returned a malformed response") from exc

        return ModelReply(
            content=_field(message, "content") or "",
            tool_calls=_parse_tool_calls(_field(message, "tool_calls")),
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()


def build_model_client(settings: Settings) -> ModelClient:
    """Construct the backend named by ``settings.model_backend``."""
    if settings.model_backend == "openai":
        return OpenAICompatModelClient(settings.openai_base_url, settings.openai_api_key)
    return OllamaModelClient(settings.ollama_base_url)
