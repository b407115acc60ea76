"""FastAPI application factory and server configuration.

This module creates and configures the FastAPI application with all middleware,
routes, and lifecycle management.
"""

import asyncio
import logging
import os
import signal
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from mcp_chat.platform.agent.bridge import UIBridge
from mcp_chat.platform.agent.exceptions import ProviderConnectionError, ToolProviderError
from mcp_chat.platform.agent.providers import create_provider
from mcp_chat.platform.agent.registry import ToolProviderRegistry
from mcp_chat.platform.agent.streaming import BackgroundRuns
from mcp_chat.platform.agent.turns import ConversationTurns
from mcp_chat.platform.observability.errors import initialize_bugsnag
from mcp_chat.platform.observability.logging import configure_logging
from mcp_chat.platform.observability.metrics import prometheus_middleware
from mcp_chat.platform.observability.tracing import configure_tracing, instrument_app
from mcp_chat.platform.server.health import HealthCheck
from mcp_chat.platform.server.middlewares import CorrelationIdMiddleware
from mcp_chat.platform.server.responses import validation_error_handler
from mcp_chat.platform.server.routes import root as root_router
from mcp_chat.platform.settings import Settings, ToolProviderSettings

logger = logging.getLogger(__name__)


@retry(
    retry=retry_if_exception_type(ProviderConnectionError),
    wait=wait_fixed(2),
    stop=stop_after_attempt(3),
    reraise=True,
)
async def connect_tool_provider(registry: ToolProviderRegistry, provider: ToolProviderSettings) -> None:
    """Register a configured tool provider, retrying while it starts up."""
    await registry.register(provider.id, provider.to_config())


async def connect_tool_providers(registry: ToolProviderRegistry, settings: Settings) -> None:
    """Connect every configured tool provider; failures are logged, not fatal."""

    async def connect(provider: ToolProviderSettings) -> None:
        try:
            await connect_tool_provider(registry, provider)
        except (ToolProviderError, ValueError) as e:
            logger.error("Failed to connect tool provider '%s': %s", provider.id, e)

    async with asyncio.TaskGroup() as tg:
        for provider in settings.tool_providers:
            tg.create_task(connect(provider))


def lifespan_closure(settings):
    @asynccontextmanager
    async def lifespan(app):
        """
        Use this to initialize all of the singleton dependencies and shared
        objects.  i.e. model provider, tool providers, bridge, bugsnag, etc
        """
        if settings.bugsnag.release_stage in ["production", "development"]:
            signal_handler = SignalHandler(app)
            signal_handler.register_signal_handler()
        initialize_bugsnag(settings.bugsnag)

        # Configure structured logging (JSON in prod/dev, console in local)
        if settings.app_http.log_json is not None:
            json_output = settings.app_http.log_json
        else:
            json_output = settings.bugsnag.release_stage != "local"
        configure_logging(settings.app_http.log_level, json_output=json_output)

        if settings.opentelemetry.enabled:
            configure_tracing(settings.opentelemetry)

        app.state.settings = settings
        app.state.model_provider = create_provider(settings.llm.to_config())
        logger.info(
            "Model provider: %s (%s)",
            app.state.model_provider.name,
            app.state.model_provider.model,
        )

        registry = ToolProviderRegistry()
        bridge = UIBridge(
            registry,
            tool_data_delay=settings.chat.bridge_tool_data_delay,
            link_confirm_timeout=settings.chat.link_confirm_timeout,
        )
        # UI-injected messages wait for the conversation's running turn to settle
        turns = ConversationTurns(deliver=bridge.post_user_message)
        bridge.user_message_handler = turns.submit

        app.state.registry = registry
        app.state.bridge = bridge
        app.state.turns = turns
        app.state.chat_runs = BackgroundRuns()

        await connect_tool_providers(registry, settings)

        HealthCheck.enable()
        try:
            yield
        finally:
            await shutdown(app)

    return lifespan


async def shutdown(app: FastAPI) -> None:
    """Drain in-flight chat runs, then close the bridge and tool providers."""
    settings = app.state.settings
    await app.state.chat_runs.drain(settings.chat.drain_timeout)
    await app.state.bridge.close()
    await app.state.registry.close()


def create_app(settings: Settings):
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings instance

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(lifespan=lifespan_closure(settings))
    app.add_middleware(CorrelationIdMiddleware)
    app.middleware("http")(prometheus_middleware)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    if settings.opentelemetry.enabled:
        instrument_app(app, settings.opentelemetry)

    # Platform routes (health, metrics) and the chat API
    app.include_router(root_router)

    return app


class SignalHandler:
    def __init__(self, app: FastAPI):
        self.app = app

    async def handle_exit(self):
        """
        Handle the exit of the server
        Do NOT use FastAPI @app.on_event("shutdown") or lifespan
        The problem with this method is, it is invoked *after* server
        stops accepting request, so it does not give us any time to
        drain chat runs in progress and DNS cache to refresh
        """
        HealthCheck.disable()
        logging.info("Shutting down...")

        await shutdown(self.app)

        # stop service successfully
        os.kill(os.getpid(), signal.SIGUSR1)

    def signal_handler(self):
        """
        Signal handler function
        """
        asyncio.create_task(self.handle_exit())

    def register_signal_handler(self) -> None:
        """
        Register signal handlers for the server
        """
        loop = asyncio.get_running_loop()
        for sig in [signal.SIGINT, signal.SIGTERM]:
            loop.add_signal_handler(sig, self.signal_handler)
