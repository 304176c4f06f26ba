"""domainsmith/api.py

FastAPI HTTP interface for the orchestration loop and domain advisor.

Endpoints:
  GET  /health          : liveness probe
  POST /chat            : weather chat, returns the answer envelope
  POST /chat/stream     : Server-Sent Events stream of loop events + final answer
  POST /weather         : one-shot weather lookup for a destination
  POST /domains         : domain-name suggestions, ranked or trademark-screened
"""

from __future__ import annotations

# Standard Library
import asyncio
import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Literal

# Third-Party Libraries
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

# Local Modules
from domainsmith import extractor
from domainsmith.context import AppContext
from domainsmith.conversation import ConversationState, Role, Turn
from domainsmith.errors import (
    DomainsmithError,
    InferenceUnavailable,
    OrchestrationTimeout,
    TurnOrderError,
)
from domainsmith.loop import OrchestrationRun
from domainsmith.prompts import WEATHER_SYSTEM_PROMPT, weather_prompt
from domainsmith.settings import Settings
from domainsmith.tools import WEATHER_TOOLS

logger = logging.getLogger(__name__)

NO_QUERY_ERROR: str = "No user query provided"

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class InboundMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = ""


class ChatRequest(BaseModel):
    messages: list[InboundMessage] = Field(default_factory=list)
    model: str | None = Field(None, description="Model tag override.")
    format: Literal["text", "json"] = Field(
        "text", description="'json' returns the extracted structured answer when possible."
    )


class WeatherRequest(BaseModel):
    destination: str = Field(..., min_length=1, description="City (and country) to look up.")
    model: str | None = None


class DomainsRequest(BaseModel):
    messages: list[InboundMessage] = Field(default_factory=list)
    query: str | None = Field(None, description="Keywords or business idea.")
    model: str | None = None


class _NoUserQuery(DomainsmithError):
    pass


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def _weather_conversation(messages: list[InboundMessage]) -> ConversationState:
    """Seed a weather-chat conversation, adding the system prompt if absent."""
    state = ConversationState.from_messages(m.model_dump() for m in messages)
    if not state.has_user_turn():
        raise _NoUserQuery(NO_QUERY_ERROR)
    if any(t.role is Role.SYSTEM for t in state):
        return state
    return ConversationState([Turn.system(WEATHER_SYSTEM_PROMPT), *state])


def _envelope(run: OrchestrationRun) -> dict[str, Any]:
    return {
        "message": {"content": run.final_answer or ""},
        "toolCalls": run.tool_calls(),
        "toolResults": run.tool_results(),
        "truncated": run.truncated,
    }


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(context: AppContext | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        context: Pre-built dependencies (tests inject one).  When omitted the
            lifespan builds a context from *settings* and closes it on shutdown.
        settings: Configuration; defaults to the context's or the environment's.

    Returns:
        The configured :class:`FastAPI` app.
    """
    settings = settings or (context.settings if context else Settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if context is not None:
            app.state.context = context
            yield
            return
        app.state.context = AppContext.from_settings(settings)
        try:
            yield
        finally:
            await app.state.context.aclose()

    app = FastAPI(
        title="domainsmith",
        version="0.1.0",
        description=(
            "Tool-calling chat and domain-name advisor backed by a local LLM. "
            "The model may call weather and domain lookup tools before answering."
        ),
        lifespan=lifespan,
    )
    if context is not None:
        app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InferenceUnavailable)
    async def _inference_unavailable(request: Request, exc: InferenceUnavailable) -> JSONResponse:
        logger.error("[api] inference unavailable on %s: %s", request.url.path, exc)
        return _error(500, str(exc))

    @app.exception_handler(OrchestrationTimeout)
    async def _orchestration_timeout(request: Request, exc: OrchestrationTimeout) -> JSONResponse:
        logger.error("[api] timeout on %s: %s", request.url.path, exc)
        return _error(504, str(exc))

    @app.exception_handler(_NoUserQuery)
    async def _no_user_query(request: Request, exc: _NoUserQuery) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(TurnOrderError)
    async def _turn_order(request: Request, exc: TurnOrderError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
            for err in exc.errors()
        )
        logger.warning("[api] malformed body on %s: %s", request.url.path, details)
        return _error(400, f"Malformed request: {details}")

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error("[api] unhandled error on %s: %s", request.url.path, exc, exc_info=True)
        return _error(500, str(exc) or type(exc).__name__)

    # -----------------------------------------------------------------------
    # Endpoints
    # -----------------------------------------------------------------------

    @app.get("/health", tags=["meta"])
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok", "server": "domainsmith"}

    @app.post("/chat", tags=["chat"])
    async def chat(body: ChatRequest, ctx: AppContext = Depends(get_context)) -> Any:
        """Run the weather chat to a final answer.

        Returns the envelope ``{message: {content}, toolCalls, toolResults,
        truncated}``.  With ``format="json"`` the structured answer is returned
        directly when one can be extracted.
        """
        conversation = _weather_conversation(body.messages)
        run = await ctx.loop.run(conversation, tool_names=WEATHER_TOOLS, model=body.model)
        if body.format == "json":
            extraction = extractor.extract(run.final_answer)
            if extraction.parsed:
                return extraction.value
        return _envelope(run)

    @app.post("/chat/stream", tags=["chat"])
    async def chat_stream(
        body: ChatRequest, ctx: AppContext = Depends(get_context)
    ) -> StreamingResponse:
        """Stream loop events as Server-Sent Events while the run progresses.

        Each SSE event carries a JSON payload:

        - ``{"type": "model_reply" | "tool_call" | "tool_result" | "done", ...}``
        - ``{"type": "answer", "content": "...", "truncated": bool}``
        - ``{"type": "error", "content": "..."}`` if the run failed

        The stream ends with ``event: done``.
        """
        conversation = _weather_conversation(body.messages)
        events: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()

        async def _produce() -> None:
            try:
                run = await ctx.loop.run(
                    conversation,
                    tool_names=WEATHER_TOOLS,
                    model=body.model,
                    on_event=events.put_nowait,
                )
                events.put_nowait(
                    {"type": "answer", "content": run.final_answer or "", "truncated": run.truncated}
                )
            except Exception as exc:
                logger.error("Streaming run error: %s", exc, exc_info=True)
                events.put_nowait({"type": "error", "content": str(exc)})
            finally:
                events.put_nowait(None)

        async def _event_generator() -> AsyncGenerator[str, None]:
            task = asyncio.create_task(_produce())
            try:
                while (event := await events.get()) is not None:
                    yield f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"
                yield "event: done\ndata: {}\n\n"
            finally:
                if not task.done():
                    task.cancel()

        return StreamingResponse(
            _event_generator(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.post("/weather", tags=["chat"])
    async def weather(body: WeatherRequest, ctx: AppContext = Depends(get_context)) -> dict[str, Any]:
        """Ask the model for the weather at *destination*."""
        conversation = ConversationState(
            [Turn.system(WEATHER_SYSTEM_PROMPT), Turn.user(weather_prompt(body.destination))]
        )
        run = await ctx.loop.run(conversation, tool_names=WEATHER_TOOLS, model=body.model)
        return {
            "destination": body.destination,
            "result": run.final_answer or "",
            "truncated": run.truncated,
        }

    @app.post("/domains", tags=["domains"])
    async def domains(body: DomainsRequest, ctx: AppContext = Depends(get_context)) -> dict[str, Any]:
        """Suggest domain names, then rank them or screen them for trademarks."""
        state = ConversationState.from_messages(m.model_dump() for m in body.messages)
        if body.query and body.query.strip():
            state.append(Turn.user(body.query.strip()))
        if not state.has_user_turn():
            raise _NoUserQuery(NO_QUERY_ERROR)
        result = await ctx.advisor.advise(list(state), model=body.model)
        return result.to_dict()

    return app


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_api() -> None:
    """Start the FastAPI server via uvicorn."""
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    logger.info("Starting domainsmith API on %s:%d", settings.api_host, settings.api_port)
    uvicorn.run(
        create_app(settings=settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    run_api()
