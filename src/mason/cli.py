"""Mason CLI - Main entry point.

Commands:
- build: Construct a hut, a wall or a blueprint file in a simulated world
- resume: Continue a saved session from its latest checkpoint
- sessions: List resumable sessions
- blueprint: Write a generated blueprint to a file
- init: Write an example .mason/config.yaml
"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from mason import __version__
from mason.commands import (
    blueprint_command,
    build_command,
    init_command,
    resume_command,
    sessions_command,
)

app = typer.Typer(
    help="Mason - guarded phase-based construction runtime.",
    no_args_is_help=True,
)

_state = {"verbose": False}

SessionsDirOption = Annotated[
    Optional[Path],
    typer.Option("--sessions-dir", help="Checkpoint directory (default: .mason/sessions)"),
]
OriginOption = Annotated[str, typer.Option("--origin", help="Anchor cell as x,y,z")]
SizeOption = Annotated[int, typer.Option("--size", min=1, help="Hut half-width")]
LengthOption = Annotated[int, typer.Option("--length", min=0, help="Wall length along +x")]
HeightOption = Annotated[int, typer.Option("--height", min=1, help="Wall height")]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"mason {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Debug logging and detailed narration")
    ] = False,
) -> None:
    """Mason - guarded phase-based construction runtime."""
    _state["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def build(
    target: Annotated[str, typer.Argument(help="hut, wall, or a blueprint file (.yaml/.json)")] = "hut",
    origin: OriginOption = "0,64,0",
    size: SizeOption = 3,
    length: LengthOption = 10,
    height: HeightOption = 3,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Build even if pre-build validation fails")
    ] = False,
    sessions_dir: SessionsDirOption = None,
    retries: Annotated[
        Optional[int],
        typer.Option("--retries", min=0, help="Retries per failed phase before moving on"),
    ] = None,
) -> None:
    """Build a structure in a simulated world.

    Examples:
        mason build hut --size 2
        mason build wall --length 12 --height 4
        mason build my-tower.yaml --force
    """
    build_command(target, origin, size, length, height, force, sessions_dir, retries, _state["verbose"])


@app.command()
def resume(
    session_id: Annotated[str, typer.Argument(help="Session to resume (see: mason sessions)")],
    sessions_dir: SessionsDirOption = None,
    retries: Annotated[
        Optional[int],
        typer.Option("--retries", min=0, help="Retries per failed phase before moving on"),
    ] = None,
) -> None:
    """Resume a saved session.

    Examples:
        mason resume build-20250101-120000-a1b2c3
    """
    resume_command(session_id, sessions_dir, retries, _state["verbose"])


@app.command()
def sessions(sessions_dir: SessionsDirOption = None) -> None:
    """List saved sessions, newest first."""
    sessions_command(sessions_dir)


@app.command()
def blueprint(
    kind: Annotated[str, typer.Argument(help="hut or wall")],
    output: Annotated[Path, typer.Option("--output", "-o", help="File to write (.yaml or .json)")],
    origin: OriginOption = "0,64,0",
    size: SizeOption = 3,
    length: LengthOption = 10,
    height: HeightOption = 3,
) -> None:
    """Generate a blueprint file.

    Examples:
        mason blueprint hut -o hut.yaml --size 4
        mason blueprint wall -o wall.json --length 20
    """
    blueprint_command(kind, output, origin, size, length, height)


@app.command()
def init() -> None:
    """Write an example .mason/config.yaml."""
    init_command()


if __name__ == "__main__":
    app()
