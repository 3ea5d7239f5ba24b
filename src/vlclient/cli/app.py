"""Main CLI application."""

from pathlib import Path
from typing import Annotated

import typer

from vlclient.cli.commands import caption, locate, query, segment
from vlclient.cli.runtime import CLIOptions
from vlclient.logging import configure_logging

app = typer.Typer(
    name="vl",
    help="Vision-language inference on a local server or the cloud",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    api_key: Annotated[
        str | None,
        typer.Option(
            "--api-key",
            envvar="VL_API_KEY",
            help="Cloud API key",
            show_default=False,
        ),
    ] = None,
    api_url: Annotated[
        str | None,
        typer.Option(
            "--api-url",
            envvar="VL_API_URL",
            help="Local inference server URL (selects the local endpoint)",
        ),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", "-t", help="Request timeout in seconds"),
    ] = None,
    retries: Annotated[
        int | None,
        typer.Option("--retries", help="Retries for transient failures"),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to configuration file"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log requests and retries"),
    ] = False,
) -> None:
    """Vision-language inference on a local server or the cloud."""
    configure_logging("DEBUG" if verbose else None, use_rich=True)
    ctx.obj = CLIOptions(
        api_key=api_key,
        api_url=api_url,
        timeout=timeout,
        retries=retries,
        config_path=config,
    )


caption.register(app)
query.register(app)
locate.register(app)
segment.register(app)


if __name__ == "__main__":
    app()
