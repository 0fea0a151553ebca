#!/usr/bin/env python
"""CLI entry point for price guide cache maintenance."""

import asyncio
from typing import Awaitable, Callable, Optional

import click
from dotenv import load_dotenv
from redis.exceptions import RedisError

from priceguide.cache.bulk import invalidate_card, invalidate_pattern, invalidate_set
from priceguide.cache.keys import validate_key
from priceguide.logging_config import configure_logging
from priceguide.redis_client import (
    check_redis_health,
    close_redis_pool,
    get_store,
    init_redis_pool,
)

load_dotenv()


def _run(action: Callable[[], Awaitable]):
    """Run one coroutine between pool startup and shutdown."""

    async def run():
        await init_redis_pool()
        try:
            return await action()
        finally:
            await close_redis_pool()

    return asyncio.run(run())


@click.group()
@click.option("--log-level", type=str, default=None, help="Log level (default: LOG_LEVEL or INFO)")
def cli(log_level: Optional[str]):
    """Price Guide - cache maintenance commands."""
    configure_logging(log_level)


@cli.command("invalidate-card")
@click.argument("tcg_player_id")
def invalidate_card_cmd(tcg_player_id: str):
    """Drop a card's cached record and prices."""
    count = _run(lambda: invalidate_card(tcg_player_id, store=get_store()))
    click.echo(f"✓ Card {tcg_player_id}: {count} keys deleted")


@cli.command("invalidate-set")
@click.argument("set_id")
def invalidate_set_cmd(set_id: str):
    """Drop a set's card list and every cached card record."""
    count = _run(lambda: invalidate_set(set_id, store=get_store()))
    click.echo(f"✓ Set {set_id}: {count} keys deleted")


@cli.command("invalidate-pattern")
@click.argument("pattern")
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
def invalidate_pattern_cmd(pattern: str, yes: bool):
    """Delete every key matching PATTERN (e.g. "search:*")."""
    if not validate_key(pattern):
        raise click.BadParameter(
            "must start with a known key class, e.g. \"search:*\"",
            param_hint="PATTERN",
        )
    if not yes:
        click.confirm(f"Delete all keys matching {pattern!r}?", abort=True)
    count = _run(lambda: invalidate_pattern(pattern, store=get_store()))
    click.echo(f"✓ Pattern {pattern}: {count} keys deleted")


@cli.command()
def health():
    """Show Redis connection status."""

    async def run():
        try:
            await init_redis_pool()
        except (RedisError, ValueError) as e:
            return {"status": "unavailable", "error": str(e)}
        try:
            return await check_redis_health()
        finally:
            await close_redis_pool()

    result = asyncio.run(run())

    if result["status"] == "healthy":
        click.echo(f"✓ Redis healthy ({result['config']})")
    else:
        click.echo(f"✗ Redis {result['status']}: {result.get('error', 'unknown error')}")
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
