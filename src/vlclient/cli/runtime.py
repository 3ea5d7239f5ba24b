"""Shared runtime helpers for CLI command handlers."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import typer

from vlclient.cli.console import error
from vlclient.client import VLClient
from vlclient.config import load_config
from vlclient.errors import VLError


@dataclass(slots=True)
class CLIOptions:
    """Global options collected by the app callback."""

    api_key: str | None = None
    api_url: str | None = None
    timeout: float | None = None
    retries: int | None = None
    config_path: Path | None = None


def create_client(options: CLIOptions) -> VLClient:
    """Create a client from the config file, environment and CLI flags."""
    config = load_config(
        options.config_path,
        api_key=options.api_key,
        api_url=options.api_url,
        timeout=options.timeout,
        retries=options.retries,
    )
    return VLClient(config)


def get_options(ctx: typer.Context) -> CLIOptions:
    options = ctx.find_object(CLIOptions)
    return options if options is not None else CLIOptions()


def run_with_client(
    ctx: typer.Context, handler: Callable[[VLClient], Awaitable[None]]
) -> None:
    """Run ``handler`` with a fresh client, reporting client errors.

    Any VLError is printed and turned into exit status 1.
    """
    options = get_options(ctx)

    async def run() -> None:
        async with create_client(options) as client:
            await handler(client)

    try:
        asyncio.run(run())
    except VLError as e:
        error(f"Error: {e}")
        raise typer.Exit(1) from None


def read_image(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        error(f"Cannot read image {path}: {e.strerror or e}")
        raise typer.Exit(1) from None
