"""Detect and point commands."""

from pathlib import Path
from typing import Annotated

import typer

from vlclient.cli.console import console, create_table, dim, format_coord
from vlclient.cli.runtime import read_image, run_with_client
from vlclient.client import VLClient
from vlclient.types import DetectRequest, PointRequest


def register(app: typer.Typer) -> None:
    """Register the detect and point commands."""

    @app.command()
    def detect(
        ctx: typer.Context,
        image: Annotated[
            Path,
            typer.Argument(help="Image file to search", dir_okay=False),
        ],
        object_name: Annotated[
            str, typer.Argument(metavar="OBJECT", help="Object to detect")
        ],
    ) -> None:
        """Find bounding boxes of an object in an image."""
        data = read_image(image)

        async def handle(client: VLClient) -> None:
            result = await client.detect(DetectRequest(image=data, object=object_name))
            if not result.objects:
                dim(f"No {object_name} found")
                return
            table = create_table(
                f"{len(result.objects)} x {object_name}",
                [
                    ("#", "dim"),
                    ("x_min", "cyan"),
                    ("y_min", "cyan"),
                    ("x_max", "cyan"),
                    ("y_max", "cyan"),
                ],
            )
            for index, box in enumerate(result.objects, start=1):
                table.add_row(
                    str(index),
                    format_coord(box.x_min),
                    format_coord(box.y_min),
                    format_coord(box.x_max),
                    format_coord(box.y_max),
                )
            console.print(table)

        run_with_client(ctx, handle)

    @app.command()
    def point(
        ctx: typer.Context,
        image: Annotated[
            Path,
            typer.Argument(help="Image file to search", dir_okay=False),
        ],
        object_name: Annotated[
            str, typer.Argument(metavar="OBJECT", help="Object to locate")
        ],
    ) -> None:
        """Find center points of an object in an image."""
        data = read_image(image)

        async def handle(client: VLClient) -> None:
            result = await client.point(PointRequest(image=data, object=object_name))
            if not result.points:
                dim(f"No {object_name} found")
                return
            table = create_table(
                f"{len(result.points)} x {object_name}",
                [("#", "dim"), ("x", "cyan"), ("y", "cyan")],
            )
            for index, p in enumerate(result.points, start=1):
                table.add_row(str(index), format_coord(p.x), format_coord(p.y))
            console.print(table)

        run_with_client(ctx, handle)
