"""Command-line interface for gworkspace-gateway."""

import logging
import sys

import click

from gworkspace_gateway.__version__ import __version__
from gworkspace_gateway.config import GatewaySettings


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """Google Workspace MCP Gateway - Serve Google Workspace tools over HTTP.

    Exposes tools across:
    - Calendar (events, calendars)
    - Gmail (search, read, send, labels)
    - Drive (list, search, metadata, content)
    - Tasks (task lists and tasks)
    """
    pass


@main.command()
@click.option("--host", default=None, help="Bind host (default: HOST or 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Bind port (default: PORT or 8000)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (default: LOG_LEVEL or INFO)",
)
def serve(host: str | None, port: int | None, log_level: str | None) -> None:
    """Start the MCP gateway HTTP server.

    The MCP endpoint is served at /mcp and a liveness check at /health.
    Configuration is read from the environment; run 'gworkspace-gateway doctor'
    to check it.
    """
    import uvicorn

    from gworkspace_gateway.server import create_app

    settings = GatewaySettings.from_env()
    level = (log_level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    bind_host = host or settings.host
    bind_port = port or settings.port
    click.echo(f"Starting Google Workspace MCP gateway on http://{bind_host}:{bind_port}", err=True)

    try:
        uvicorn.run(create_app(settings), host=bind_host, port=bind_port, log_level=level.lower())
    except KeyboardInterrupt:
        click.echo("\nServer stopped.", err=True)


@main.command()
def tools() -> None:
    """List the tools served by the gateway, grouped by domain."""
    from gworkspace_gateway.auth.service_account import ServiceAccountAuth
    from gworkspace_gateway.google_client import GoogleClient
    from gworkspace_gateway.tools import ToolRegistry, default_executors

    settings = GatewaySettings.from_env()
    client = GoogleClient(ServiceAccountAuth(settings.service_account_key, settings.delegated_user))
    registry = ToolRegistry(default_executors(client, settings))

    for domain in registry.domains:
        domain_tools = registry.tools_for(domain)
        click.echo(f"{domain.value.capitalize()} ({len(domain_tools)} tools):")
        for tool in domain_tools:
            click.echo(f"  {tool.name}  {tool.description}")
        click.echo("")

    click.echo(f"Total: {len(registry)} tools")


@main.command()
def doctor() -> None:
    """Check gateway configuration.

    Verifies:
    1. Authentication mode and tokens
    2. Service account key
    3. Delegated user
    """
    from gworkspace_gateway.auth.service_account import ServiceAccountAuth
    from gworkspace_gateway.errors import ConfigurationError

    settings = GatewaySettings.from_env()
    credentials = settings.credential_set()
    ready = True

    click.echo("Google Workspace MCP Gateway Status:")
    click.echo("")

    click.echo("Authentication:")
    if credentials.is_misconfigured:
        click.echo("  ❌ Misconfigured: auth required but no MCP_AUTH_TOKEN or AUTH_TOKEN set")
    elif credentials.is_open:
        click.echo("  ⚠️  Open mode: no tokens configured, every request is accepted")
    else:
        click.echo(f"  ✓ Required ({len(credentials.tokens)} token(s) configured)")
    click.echo(f"  REQUIRE_AUTH: {'yes' if settings.require_auth else 'no'}")

    click.echo("")

    click.echo("Google service account:")
    auth = ServiceAccountAuth(settings.service_account_key, settings.delegated_user)
    try:
        info = auth.service_account_info()
        missing = [key for key in ("client_email", "private_key") if not info.get(key)]
        if missing:
            click.echo(f"  ❌ Key is missing: {', '.join(missing)}")
            ready = False
        else:
            click.echo(f"  ✓ Key loaded for {info['client_email']}")
    except ConfigurationError as e:
        click.echo(f"  ❌ {e}")
        ready = False

    try:
        click.echo(f"  ✓ Delegated user: {auth.delegated_user}")
    except ConfigurationError as e:
        click.echo(f"  ❌ {e}")
        ready = False

    click.echo("")

    if credentials.is_misconfigured:
        click.echo("❌ Server misconfigured. Set MCP_AUTH_TOKEN or AUTH_TOKEN.")
        sys.exit(1)

    if ready:
        click.echo("✓ Ready to serve!")
    else:
        click.echo("⚠️  Tool calls will fail until the Google settings above are fixed.")


if __name__ == "__main__":
    main()
