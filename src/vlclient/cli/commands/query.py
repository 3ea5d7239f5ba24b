"""Query command."""

from pathlib import Path
from typing import Annotated

import typer

from vlclient.cli.console import dim, write
from vlclient.cli.runtime import read_image, run_with_client
from vlclient.client import VLClient
from vlclient.stream import Complete
from vlclient.types import QueryOutput, QueryRequest


def _print_reasoning(output: QueryOutput) -> None:
    if output.reasoning is None:
        return
    dim(f"Reasoning: {output.reasoning.text}")
    for span in output.reasoning.grounding:
        quoted = output.reasoning.text[span.start_idx : span.end_idx]
        points = ", ".join(f"({x:.3f}, {y:.3f})" for x, y in span.points)
        dim(f"  {quoted!r}: {points or 'no points'}")


def register(app: typer.Typer) -> None:
    """Register the query command."""

    @app.command()
    def query(
        ctx: typer.Context,
        image: Annotated[
            Path,
            typer.Argument(help="Image file to ask about", dir_okay=False),
        ],
        question: Annotated[str, typer.Argument(help="Question about the image")],
        reasoning: Annotated[
            bool,
            typer.Option("--reasoning", "-r", help="Ask the model to explain"),
        ] = False,
        stream: Annotated[
            bool,
            typer.Option("--stream", "-s", help="Print the answer as it arrives"),
        ] = False,
    ) -> None:
        """Answer a question about an image."""
        data = read_image(image)

        async def handle(client: VLClient) -> None:
            result = await client.query(
                QueryRequest(
                    image=data,
                    question=question,
                    reasoning=reasoning or None,
                    stream=stream,
                )
            )
            if isinstance(result.answer, Complete):
                write(result.answer.value)
            else:
                async with result.answer as fragments:
                    async for fragment in fragments:
                        write(fragment, end="")
                write("")
            _print_reasoning(result)

        run_with_client(ctx, handle)
