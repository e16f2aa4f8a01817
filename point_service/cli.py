"""Command-line entry point."""

import asyncio

import click
import uvicorn

from point_service import __version__
from point_service.config import get_settings
from point_service.db_context import DatabaseManager
from point_service.log_config import configure_logging
from point_service.schema import create_schema


@click.group()
@click.version_option(version=__version__)
def cli():
    """Point Service - CRUD API for points."""
    pass


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to API_HOST)")
@click.option("--port", default=None, type=int, help="Port (defaults to API_PORT)")
def serve(host: str | None, port: int | None):
    """Run the HTTP API."""
    settings = get_settings()
    uvicorn.run(
        "point_service.api.main:create_app",
        factory=True,
        host=host or settings.api_host,
        port=port or settings.api_port,
    )


async def _init_db():
    pool = await DatabaseManager.create_pool()
    try:
        await create_schema(pool)
    finally:
        await DatabaseManager.close_pool()


@cli.command("init-db")
def init_db():
    """Create the point table if it doesn't exist."""
    configure_logging()
    click.echo("Initializing database...")
    asyncio.run(_init_db())
    click.echo("Database ready")


if __name__ == "__main__":
    cli()
