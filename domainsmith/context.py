"""domainsmith/context.py

Wires settings, tools, model client, and orchestration loop together.

One :class:`AppContext` is built per process (by the API lifespan or a CLI
entry point) and closed on shutdown so the shared HTTP client and model
backend release their connections.
"""

from __future__ import annotations

# Standard Library
import dataclasses
import logging

# Third-Party Libraries
import httpx

# Local Modules
from domainsmith.advisor import DomainAdvisor
from domainsmith.executor import Chooser, ToolEnvironment, ToolExecutor
from domainsmith.llm import ModelClient, build_model_client
from domainsmith.loop import OrchestrationLoop
from domainsmith.registry import ToolRegistry
from domainsmith.settings import Settings
from domainsmith.tools import default_registry

logger = logging.getLogger(__name__)


@dataclasses.dataclass(slots=True)
class AppContext:
    """Process-wide dependencies shared by every request."""

    settings: Settings
    registry: ToolRegistry
    http: httpx.AsyncClient
    executor: ToolExecutor
    model_client: ModelClient
    loop: OrchestrationLoop
    advisor: DomainAdvisor

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        model_client: ModelClient | None = None,
        http: httpx.AsyncClient | None = None,
        chooser: Chooser | None = None,
    ) -> AppContext:
        """Build a context; any dependency may be injected (tests do)."""
        registry = default_registry()
        http = http or httpx.AsyncClient(timeout=settings.tool_timeout)
        env = ToolEnvironment(http=http, settings=settings)
        if chooser is not None:
            env.chooser = chooser
        executor = ToolExecutor(env)
        model_client = model_client or build_model_client(settings)
        loop = OrchestrationLoop(
            registry,
            executor,
            model_client,
            default_model=settings.model,
            max_steps=settings.max_steps,
            model_timeout=settings.model_timeout,
            run_timeout=settings.run_timeout,
        )
        logger.info(
            "[context] backend=%s model=%s tools=%s",
            settings.model_backend,
            settings.model,
            registry.names(),
        )
        return cls(
            settings=settings,
            registry=registry,
            http=http,
            executor=executor,
            model_client=model_client,
            loop=loop,
            advisor=DomainAdvisor(loop, registry, executor),
        )

    async def aclose(self) -> None:
        await self.model_client.aclose()
        await self.http.aclose()

    async def __aenter__(self) -> AppContext:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
