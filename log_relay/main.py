"""
Command line entry point.

    log-relay run      run once and print the result as JSON
    log-relay serve    start the HTTP trigger API
"""

import asyncio
import json
import sys

import click
import uvicorn

from .api.app import create_app
from .api.dependencies import RelayRuntime
from .shared.config import get_settings
from .shared.exceptions import ConfigError
from .shared.logging_config import configure_logging


@click.group()
def cli():
    """Relay event-source logs to a webhook."""
    configure_logging(get_settings())


@cli.command()
def run():
    """Run the relay once."""
    settings = get_settings()

    async def run_once():
        async with RelayRuntime(settings) as runtime:
            return await runtime.orchestrator().run()

    try:
        result = asyncio.run(run_once())
    except ConfigError as e:
        click.echo(e.message, err=True)
        sys.exit(2)

    click.echo(json.dumps(result.to_dict(), indent=2))
    if not result.succeeded:
        sys.exit(1)


@cli.command()
@click.option('--host', default='0.0.0.0', help='Bind address')
@click.option('--port', default=8000, type=int, help='Bind port')
def serve(host, port):
    """Start the HTTP trigger API."""
    app = create_app(get_settings())
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == '__main__':
    cli()
