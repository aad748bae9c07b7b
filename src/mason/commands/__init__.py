"""Mason CLI commands.

Each command module contains the business logic for a CLI command.
The cli.py module handles typer options and argument parsing,
then delegates to these command functions.
"""

from mason.commands.blueprint import blueprint_command
from mason.commands.build import build_command
from mason.commands.init import init_command
from mason.commands.resume import resume_command
from mason.commands.sessions import sessions_command

__all__ = [
    "blueprint_command",
    "build_command",
    "init_command",
    "resume_command",
    "sessions_command",
]
