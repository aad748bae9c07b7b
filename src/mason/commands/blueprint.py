"""Blueprint command implementation."""

from pathlib import Path

import typer

from mason.builder.blueprint import save_blueprint
from mason.commands.build import resolve_blueprint
from mason.commands.simulation import parse_origin
from mason.display import print_error, print_success


def blueprint_command(
    kind: str,
    output: Path,
    origin: str,
    size: int,
    length: int,
    height: int,
) -> None:
    """Write a generated hut or wall blueprint to a YAML or JSON file."""
    if kind.lower() not in ("hut", "wall"):
        print_error(f"Unknown blueprint kind: {kind} (expected hut or wall)")
        raise typer.Exit(1)

    try:
        anchor = parse_origin(origin)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1) from None

    blueprint = resolve_blueprint(kind, anchor, size, length, height)
    path = save_blueprint(blueprint, output)
    print_success(f"Wrote {kind} blueprint ({len(blueprint.blocks)} blocks) to {path}")
