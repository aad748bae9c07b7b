"""Sessions command implementation."""

from pathlib import Path

from mason.builder.checkpoints import CheckpointStore
from mason.commands.build import load_config
from mason.display import print_session_list


def sessions_command(sessions_dir: Path | None) -> None:
    """List saved sessions, newest first."""
    config = load_config(sessions_dir, None)
    print_session_list(CheckpointStore(config.resolved_sessions_dir()).list_sessions())
