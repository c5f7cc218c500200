"""Click CLI for running the relay server."""

from __future__ import annotations

import logging
import os

import click
import uvicorn

_LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


@click.group()
def cli() -> None:
    """Discord webhook relay."""


@cli.command()
@click.option("--host", default=lambda: os.environ.get("HOST", "0.0.0.0"),
              show_default="0.0.0.0", help="Interface to bind.")
@click.option("--port", type=int, default=lambda: int(os.environ.get("PORT", "3000")),
              show_default="3000", help="Port to listen on.")
@click.option("--log-level", type=click.Choice(_LOG_LEVELS), default="info",
              show_default=True)
@click.option("--ssl-keyfile", default=lambda: os.environ.get("SSL_KEY_PATH"),
              help="TLS private key; serves HTTPS together with --ssl-certfile.")
@click.option("--ssl-certfile", default=lambda: os.environ.get("SSL_CERT_PATH"),
              help="TLS certificate chain.")
def serve(
    host: str,
    port: int,
    log_level: str,
    ssl_keyfile: str | None,
    ssl_certfile: str | None,
) -> None:
    """Log the bot in and serve the relay API."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not os.environ.get("BOT_TOKEN"):
        raise click.ClickException("BOT_TOKEN is not set")
    if bool(ssl_keyfile) != bool(ssl_certfile):
        raise click.UsageError("--ssl-keyfile and --ssl-certfile must be given together")

    scheme = "https" if ssl_keyfile else "http"
    click.echo(f"Relay server starting on {scheme}://{host}:{port}", err=True)
    uvicorn.run(
        "src.server.app:create_app_from_env",
        factory=True,
        host=host,
        port=port,
        log_level=log_level,
        ssl_keyfile=ssl_keyfile,
        ssl_certfile=ssl_certfile,
    )
