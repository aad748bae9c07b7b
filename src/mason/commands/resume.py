"""Resume command implementation."""

import asyncio
from pathlib import Path

import typer
from pydantic import ValidationError

from mason.builder.checkpoints import CheckpointStore
from mason.commands.build import console_manager, load_config
from mason.commands.simulation import simulated_world
from mason.display import print_build_result, print_error, print_warning
from mason.exceptions import SessionNotFoundError


def resume_command(
    session_id: str,
    sessions_dir: Path | None,
    phase_retries: int | None,
    verbose: bool,
) -> None:
    """Resume a saved session from its latest checkpoint.

    The simulated world is rebuilt from the checkpoint's blueprint; blocks
    placed before the interruption are restored by the final structure sweep.
    """
    config = load_config(sessions_dir, phase_retries)

    try:
        checkpoint = CheckpointStore(config.resolved_sessions_dir()).latest(session_id)
    except SessionNotFoundError as e:
        print_error(e.message)
        print_warning("Run [cyan]mason sessions[/] to see resumable sessions")
        raise typer.Exit(1) from None
    except (OSError, ValidationError) as e:
        print_error(f"Unreadable checkpoint for {session_id}: {e}")
        raise typer.Exit(1) from None

    world = simulated_world(checkpoint.blueprint)
    manager = console_manager(world, config, verbose)
    result = asyncio.run(manager.resume_build(session_id))
    print_build_result(result)
    raise typer.Exit(result.exit_code())
