"""Caption command."""

from pathlib import Path
from typing import Annotated

import typer

from vlclient.cli.console import write
from vlclient.cli.runtime import read_image, run_with_client
from vlclient.client import VLClient
from vlclient.stream import Complete
from vlclient.types import CaptionRequest


def register(app: typer.Typer) -> None:
    """Register the caption command."""

    @app.command()
    def caption(
        ctx: typer.Context,
        image: Annotated[
            Path,
            typer.Argument(help="Image file to describe", dir_okay=False),
        ],
        length: Annotated[
            str,
            typer.Option(
                "--length",
                "-l",
                help="Caption length: short, normal or long",
            ),
        ] = "normal",
        stream: Annotated[
            bool,
            typer.Option("--stream", "-s", help="Print the caption as it arrives"),
        ] = False,
    ) -> None:
        """Describe an image."""
        data = read_image(image)

        async def handle(client: VLClient) -> None:
            result = await client.caption(
                CaptionRequest(image=data, length=length, stream=stream)
            )
            if isinstance(result.caption, Complete):
                write(result.caption.value)
                return
            async with result.caption as fragments:
                async for fragment in fragments:
                    write(fragment, end="")
            write("")

        run_with_client(ctx, handle)
