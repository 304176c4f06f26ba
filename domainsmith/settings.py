"""domainsmith/settings.py

Runtime configuration loaded from environment variables / .env file.

Configure via environment variables (names are case-insensitive):
  MODEL_BACKEND        : ``ollama`` (native API) or ``openai`` (OpenAI-compat)
  OLLAMA_BASE_URL      : native Ollama endpoint
  OPENAI_BASE_URL      : OpenAI-compatible endpoint (Ollama serves one at /v1)
  MODEL                : model tag used when a request does not name one
  OPENWEATHER_API_KEY  : OpenWeatherMap key for the weather tool
  RAPIDAPI_KEY         : RapidAPI key for the Domainr search/status tools
"""

from __future__ import annotations

# Standard Library
from typing import Literal

# Third-Party Libraries
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the orchestrator, tools, and API server.

    Attributes:
        model_backend: Which model-invocation backend to use.
        ollama_base_url: Native Ollama base URL.
        openai_base_url: OpenAI-compatible base URL (``/chat/completions`` is appended).
        openai_api_key: Bearer token for the OpenAI-compatible backend.
        model: Default model tag.
        openweather_api_key: OpenWeatherMap API key.
        openweather_base_url: OpenWeatherMap API base URL.
        rapidapi_key: RapidAPI key for Domainr.
        domainr_base_url: Domainr API base URL.
        domainr_host: Value of the ``X-RapidAPI-Host`` header.
        max_steps: Maximum model invocations per orchestration run.
        model_timeout: Deadline in seconds for a single model call.
        tool_timeout: Deadline in seconds for a single external tool HTTP call.
        run_timeout: Wall-clock deadline in seconds for a whole run.
        cors_origins: Origins allowed to call the HTTP API from a browser.
        api_host: Bind address for the API server.
        api_port: Bind port for the API server.
        log_level: Root log level for the entry points.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    model_backend: Literal["ollama", "openai"] = Field(
        "ollama",
        description="Model-invocation backend: native Ollama API or OpenAI-compatible.",
    )
    ollama_base_url: str = Field(
        "http://localhost:11434",
        description="Native Ollama base URL.",
    )
    openai_base_url: str = Field(
        "http://localhost:11434/v1",
        description="OpenAI-compatible base URL.",
    )
    openai_api_key: str = Field(
        "ollama",
        description="API key sent to the OpenAI-compatible backend.",
    )
    model: str = Field(
        "gpt-oss:20b",
        description="Default model tag when the request does not name one.",
    )
    openweather_api_key: str = Field(
        "",
        description="OpenWeatherMap API key.",
    )
    openweather_base_url: str = Field(
        "https://api.openweathermap.org/data/2.5",
        description="OpenWeatherMap API base URL.",
    )
    rapidapi_key: str = Field(
        "",
        description="RapidAPI key used for the Domainr endpoints.",
    )
    domainr_base_url: str = Field(
        "https://domainr.p.rapidapi.com/v2",
        description="Domainr API base URL.",
    )
    domainr_host: str = Field(
        "domainr.p.rapidapi.com",
        description="X-RapidAPI-Host header value.",
    )
    max_steps: int = Field(
        5,
        ge=1,
        description="Maximum model invocations per run before forced termination.",
    )
    model_timeout: float = Field(
        120.0,
        gt=0,
        description="Seconds allowed for a single model call.",
    )
    tool_timeout: float = Field(
        10.0,
        gt=0,
        description="Seconds allowed for a single external tool HTTP call.",
    )
    run_timeout: float = Field(
        300.0,
        gt=0,
        description="Wall-clock seconds allowed for a whole orchestration run.",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5000",
            "http://127.0.0.1:5000",
        ],
        description="Origins allowed by the CORS middleware.",
    )
    api_host: str = Field("0.0.0.0", description="API bind address.")
    api_port: int = Field(4000, description="API bind port.")
    log_level: str = Field("INFO", description="Root log level.")
