"""Entry point when the package is executed as a module."""

import sys

import click
import uvicorn

from .platform.agent.exceptions import ConfigurationError
from .platform.settings import Settings


@click.command()
@click.option("--reload", is_flag=True)
@click.option("--host", default=None, help="Overrides APP_HTTP__HOST")
@click.option("--port", type=int, default=None, help="Overrides APP_HTTP__PORT")
@click.option("--check-config", is_flag=True, help="Resolve the model provider and tool providers, then exit")
def main(reload=False, host=None, port=None, check_config=False):
    settings = Settings()

    if check_config:
        try:
            llm = settings.llm.to_config()
            providers = {p.id: p.to_config() for p in settings.tool_providers}
        except (ConfigurationError, ValueError) as e:
            raise click.ClickException(str(e)) from e
        click.echo(f"model provider: {llm.provider.value} ({llm.model})")
        for provider_id, config in providers.items():
            click.echo(f"tool provider: {provider_id} {config!r}")
        return 0

    uvicorn.run(
        "mcp_chat:app",
        loop="uvloop",
        factory=True,
        host=host or settings.app_http.host,
        port=port or settings.app_http.port,
        log_level=settings.app_http.log_level.lower(),
        reload=reload,
    )


if __name__ == "__main__":
    sys.exit(main())
