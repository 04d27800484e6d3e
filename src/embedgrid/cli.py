"""Typer CLI definition for embedgrid."""

import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

import numpy as np
import typer

from .backends import BackendRegistry
from .config import EmbedGridConfig, load_config
from .errors import LengthMismatch
from .models import Highlight, Matrix, PipelineState, PipelineStatus
from .models_manager import configure_offline_mode, download_models
from .session import Session
from .similarity import format_similarity
from .store import DEMO_INPUTS

app = typer.Typer(help="Show pairwise embedding similarity between texts")


def collect_texts(texts: list[str] | None, file_text: str | None) -> list[str]:
    """Gather input texts from arguments or file contents.

    Arguments win over the file; file contents are split into one text per
    non-empty line.

    Raises:
        ValueError: If no text is provided
    """
    if texts:
        return list(texts)
    if file_text is not None:
        lines = [line.strip() for line in file_text.splitlines()]
        collected = [line for line in lines if line]
        if collected:
            return collected
    raise ValueError("No text provided")


def render_matrix(
    matrix: Matrix, precision: int = 2, highlight: Highlight = ()
) -> str:
    """Render the similarity matrix as a text table with 1-based headers.

    Highlighted rows and columns get a ``*`` next to their header.
    """
    width = max(precision + 4, len(str(len(matrix))) + 2)

    def label(index: int) -> str:
        marked = index < len(highlight) and highlight[index]
        return f"{index + 1}{'*' if marked else ''}"

    lines = [" " * width + "".join(label(j).rjust(width) for j in range(len(matrix)))]
    for i, row in enumerate(matrix):
        cells = "".join(format_similarity(value, precision).rjust(width) for value in row)
        lines.append(label(i).rjust(width) + cells)
    return "\n".join(lines)


async def compute_grid(
    config: EmbedGridConfig, texts: list[str], highlight: int | None = None
) -> tuple[PipelineState, Highlight]:
    """Run one session over ``texts`` until the pipeline settles."""
    async with Session.from_config(config, inputs=texts) as session:
        if highlight is not None:
            session.highlight.enter_row_header(highlight)
        await session.settle()
        return session.state, session.highlight.state


@app.command()
def grid(
    texts: list[str] | None = typer.Argument(None, help="Texts to compare"),
    file: Path | None = typer.Option(
        None, "-f", "--file", help="Read texts from file, one per line"
    ),
    demo: bool = typer.Option(False, "--demo", help="Use the built-in demo sentences"),
    backend: str | None = typer.Option(
        None, "-b", "--backend", help="Embedding backend (from config if omitted)"
    ),
    model: str | None = typer.Option(
        None, "-m", "--model", help="Model name (from config if omitted)"
    ),
    precision: int | None = typer.Option(
        None, "--precision", min=0, help="Decimal places in the matrix"
    ),
    highlight: int | None = typer.Option(
        None, "--highlight", min=1, help="Mark text N in the matrix headers"
    ),
    show_embeddings: bool = typer.Option(
        False, "--show-embeddings", help="Print the embeddings array"
    ),
    download_models_flag: bool = typer.Option(
        False, "--download-models", help="Download the embedding model and exit"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Show verbose error messages and pipeline activity"
    ),
) -> None:
    """Compute and print the cosine similarity matrix of text embeddings."""
    # Configure logging for debug mode
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    # Resolve config values for flags not provided
    config = load_config()
    config = dataclasses.replace(
        config,
        model=dataclasses.replace(
            config.model,
            backend=backend or config.model.backend,
            name=model or config.model.name,
        ),
        pipeline=dataclasses.replace(
            config.pipeline,
            precision=config.pipeline.precision if precision is None else precision,
        ),
    )

    if download_models_flag:
        download_models(config.model.name)
        raise typer.Exit(0)

    # Get texts from arguments, file, demo set, or stdin (in priority order)
    file_text = None
    if file:
        try:
            file_text = file.read_text()
        except (OSError, UnicodeDecodeError) as e:
            if debug:
                typer.echo(f"Debug - Failed to read {file}: {e!r}", err=True)
            else:
                typer.echo(f"Error: Unable to read file: {file}", err=True)
            raise typer.Exit(1) from None
    elif demo:
        texts = list(DEMO_INPUTS)
    elif not texts and not sys.stdin.isatty():
        file_text = sys.stdin.read()

    try:
        inputs = collect_texts(texts, file_text)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    try:
        BackendRegistry.get(config.model.backend)
    except KeyError as e:
        typer.echo(f"Error: {e.args[0]}", err=True)
        raise typer.Exit(1) from None

    if config.model.backend == "sentence-transformers":
        configure_offline_mode(config.model.name)

    try:
        state, highlighted = asyncio.run(
            compute_grid(
                config, inputs, None if highlight is None else highlight - 1
            )
        )
    except LengthMismatch as e:
        typer.echo(f"Error: Embedding backend is broken: {e}", err=True)
        raise typer.Exit(1) from None

    if state.status == PipelineStatus.ERROR:
        if debug:
            typer.echo(f"Debug - Pipeline error: {state.error!r}", err=True)
        else:
            typer.echo(f"Error: {state.error}", err=True)
        raise typer.Exit(1)

    for index, text in enumerate(inputs, 1):
        typer.echo(f"{index}. {text}")
    typer.echo("")
    typer.echo(render_matrix(state.matrix or (), config.pipeline.precision, highlighted))

    if show_embeddings and state.embeddings is not None:
        embeddings = state.embeddings
        typer.echo("")
        typer.echo(f"Embeddings: shape {embeddings.shape}, dtype {embeddings.dtype}")
        typer.echo(np.array2string(embeddings, precision=4, threshold=64))
