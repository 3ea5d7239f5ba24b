"""Segment command."""

from pathlib import Path
from typing import Annotated

import typer

from vlclient.cli.console import dim, format_coord, write
from vlclient.cli.runtime import read_image, run_with_client
from vlclient.client import VLClient
from vlclient.types import SegmentBbox, SegmentOutput, SegmentRequest, SpatialRef


def parse_ref(value: str) -> SpatialRef:
    """Parse ``x,y`` or ``x1,y1,x2,y2`` into a spatial reference."""
    try:
        numbers = tuple(float(part) for part in value.split(","))
    except ValueError:
        raise typer.BadParameter(f"{value!r} is not a list of numbers") from None
    if len(numbers) not in (2, 4):
        raise typer.BadParameter(f"{value!r} must have 2 or 4 values")
    return numbers  # type: ignore[return-value]


def _print_bbox(bbox: SegmentBbox | None) -> None:
    if bbox is None:
        return
    coords = ", ".join(
        format_coord(v) for v in (bbox.x_min, bbox.y_min, bbox.x_max, bbox.y_max)
    )
    dim(f"bbox: ({coords})")


def register(app: typer.Typer) -> None:
    """Register the segment command."""

    @app.command()
    def segment(
        ctx: typer.Context,
        image: Annotated[
            Path,
            typer.Argument(help="Image file to segment", dir_okay=False),
        ],
        object_name: Annotated[
            str, typer.Argument(metavar="OBJECT", help="Object to segment")
        ],
        refs: Annotated[
            list[str] | None,
            typer.Option(
                "--ref",
                help="Seed point 'x,y' or box 'x1,y1,x2,y2' (repeatable)",
            ),
        ] = None,
        stream: Annotated[
            bool,
            typer.Option("--stream", "-s", help="Print the path as it arrives"),
        ] = False,
    ) -> None:
        """Segment an object into an SVG path."""
        spatial_refs = [parse_ref(ref) for ref in refs] if refs else None
        data = read_image(image)

        async def handle(client: VLClient) -> None:
            result = await client.segment(
                SegmentRequest(
                    image=data,
                    object=object_name,
                    spatial_refs=spatial_refs,
                    stream=stream,
                )
            )
            if isinstance(result, SegmentOutput):
                write(result.path)
                _print_bbox(result.bbox)
                return

            printed = False
            final_path: str | None = None
            bbox: SegmentBbox | None = None
            async with result.stream as updates:
                async for update in updates:
                    if update.bbox is not None:
                        bbox = update.bbox
                    if update.chunk:
                        write(update.chunk, end="")
                        printed = True
                    if update.path is not None:
                        final_path = update.path
            if printed:
                write("")
            elif final_path is not None:
                write(final_path)
            _print_bbox(bbox)

        run_with_client(ctx, handle)
