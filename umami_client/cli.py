"""Click CLI entry point for the Umami client."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import TYPE_CHECKING, Any, NoReturn
from urllib.parse import urlsplit

import click
from pydantic import BaseModel

from umami_client.client import UmamiClient, collect
from umami_client.config import Settings
from umami_client.errors import UmamiError
from umami_client.logging import configure_logging
from umami_client.models import MetricType, Pageview, PageviewPayload
from umami_client.periods import ACCEPTED_PERIODS

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


def _to_json(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_json(item) for item in value]
    return value


def _echo(value: Any) -> None:
    click.echo(json.dumps(_to_json(value), indent=2))


def _fail(exc: UmamiError) -> NoReturn:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


def _run(ctx: click.Context, fn: Callable[[UmamiClient], Awaitable[Any]]) -> Any:
    """Run *fn* against a client built from the CLI settings."""
    settings: Settings = ctx.obj["settings"]

    async def main() -> Any:
        async with UmamiClient(
            settings.server,
            settings.username,
            settings.password,
            config=settings.client_config(),
        ) as umami:
            return await fn(umami)

    try:
        return asyncio.run(main())
    except UmamiError as exc:
        _fail(exc)


period_option = click.option(
    "--period",
    type=click.Choice(ACCEPTED_PERIODS),
    default=None,
    help="Time window ending now (defaults to UMAMI_TIME_PERIOD)",
)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Query and manage an Umami analytics server.

    Connection settings come from UMAMI_SERVER, UMAMI_USERNAME and
    UMAMI_PASSWORD (or a .env file).
    """
    ctx.ensure_object(dict)
    settings = Settings()
    log_level = "DEBUG" if verbose else settings.log_level
    configure_logging(log_level=log_level, log_format=settings.log_format)
    ctx.obj["settings"] = settings


@cli.command()
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Show the logged-in user."""
    _echo(_run(ctx, lambda umami: umami.get_current_user()))


@cli.command()
@click.option("--all", "include_all", is_flag=True, help="Include every user's websites (admin)")
@click.pass_context
def websites(ctx: click.Context, include_all: bool) -> None:
    """List tracked websites."""
    _echo(_run(ctx, lambda umami: umami.get_websites(include_all=include_all)))


@cli.command()
@click.argument("website_id", required=False)
@click.pass_context
def website(ctx: click.Context, website_id: str | None) -> None:
    """Show one website (the first one when WEBSITE_ID is omitted)."""
    _echo(_run(ctx, lambda umami: umami.get_website(website_id)))


@cli.command()
@click.argument("website_id")
@period_option
@click.pass_context
def stats(ctx: click.Context, website_id: str, period: str | None) -> None:
    """Show aggregate stats of a website."""
    _echo(_run(ctx, lambda umami: umami.get_stats(website_id, period=period)))


@cli.command()
@click.argument("website_id")
@period_option
@click.option(
    "--type",
    "metric_type",
    type=click.Choice([m.value for m in MetricType], case_sensitive=False),
    default=None,
    help="Dimension to break traffic down by",
)
@click.pass_context
def metrics(
    ctx: click.Context,
    website_id: str,
    period: str | None,
    metric_type: str | None,
) -> None:
    """Show a website's metrics for one dimension."""
    _echo(
        _run(
            ctx,
            lambda umami: umami.get_metrics(website_id, period=period, metric_type=metric_type),
        )
    )


@cli.command()
@click.argument("website_id")
@click.argument("url")
@click.option("--hostname", default=None, help="Hostname of the page (taken from URL if absent)")
@click.option("--referrer", default=None, help="Referrer of the pageview")
@click.pass_context
def pageview(
    ctx: click.Context,
    website_id: str,
    url: str,
    hostname: str | None,
    referrer: str | None,
) -> None:
    """Record a pageview (no login needed)."""
    settings: Settings = ctx.obj["settings"]
    parts = urlsplit(url)
    request = Pageview(
        payload=PageviewPayload(
            website=website_id,
            url=(parts.path or "/") if parts.netloc else url,
            hostname=hostname or parts.hostname or "",
            referrer=referrer,
        )
    )
    try:
        result = asyncio.run(collect(settings.server, request, config=settings.client_config()))
    except UmamiError as exc:
        _fail(exc)
    click.echo(result)
