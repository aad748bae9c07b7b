"""Build command implementation - run a construction in a simulated world."""

import asyncio
from pathlib import Path

import typer
import yaml
from pydantic import ValidationError

from mason.builder.blueprint import (
    Blueprint,
    create_hut_blueprint,
    create_wall_blueprint,
    load_blueprint,
)
from mason.builder.config import BuilderConfig, load_builder_config, merge_cli_overrides
from mason.builder.manager import BuildManager
from mason.bus import LocalEventBus
from mason.commands.simulation import parse_origin, simulated_world
from mason.display import print_build_result, print_error
from mason.exceptions import ConfigurationError
from mason.handlers import ConsoleEventHandler
from mason.protocols.world import WorldPort


def resolve_blueprint(
    target: str,
    origin: tuple[int, int, int],
    size: int,
    length: int,
    height: int,
) -> Blueprint:
    """Turn the build target into a blueprint.

    "hut" and "wall" use the generators anchored at origin; anything
    else is read as a blueprint file.

    Raises:
        FileNotFoundError: If the target is neither a generator nor a file
    """
    x, y, z = origin
    match target.lower():
        case "hut":
            return create_hut_blueprint(x, y, z, size)
        case "wall":
            return create_wall_blueprint(x, y, z, x + length, z, height)
        case _:
            path = Path(target)
            if not path.is_file():
                raise FileNotFoundError(f"Blueprint file not found: {target}")
            return load_blueprint(path)


def load_config(sessions_dir: Path | None, phase_retries: int | None) -> BuilderConfig:
    try:
        config = load_builder_config(Path.cwd())
    except ConfigurationError as e:
        print_error(e.message)
        raise typer.Exit(1) from None
    return merge_cli_overrides(config, sessions_dir=sessions_dir, phase_retries=phase_retries)


def console_manager(world: WorldPort, config: BuilderConfig, verbose: bool) -> BuildManager:
    """A BuildManager whose events are narrated on the console."""
    bus = LocalEventBus()
    bus.subscribe(ConsoleEventHandler(verbose=verbose))
    return BuildManager(world, config, bus=bus)


def build_command(
    target: str,
    origin: str,
    size: int,
    length: int,
    height: int,
    force: bool,
    sessions_dir: Path | None,
    phase_retries: int | None,
    verbose: bool,
) -> None:
    """Build a hut, a wall or a blueprint file in a simulated world.

    This function contains the business logic for the build command.
    The CLI layer (cli.py) handles argument parsing and delegates here.
    """
    try:
        anchor = parse_origin(origin)
        blueprint = resolve_blueprint(target, anchor, size, length, height)
    except (ValueError, FileNotFoundError, ValidationError, yaml.YAMLError) as e:
        print_error(str(e))
        raise typer.Exit(1) from None

    config = load_config(sessions_dir, phase_retries)
    world = simulated_world(blueprint)

    manager = console_manager(world, config, verbose)
    result = asyncio.run(manager.build(blueprint, force=force))
    print_build_result(result)
    raise typer.Exit(result.exit_code())
