"""Init command implementation."""

from pathlib import Path

from mason.builder.config import save_example_builder_config
from mason.display import console, print_info, print_success


def init_command() -> None:
    """Write an example .mason/config.yaml in the current directory."""
    config_path = Path.cwd() / ".mason" / "config.yaml"
    if config_path.exists():
        print_info(f"Mason is already configured ({config_path})")
        return

    save_example_builder_config(config_path)
    print_success(f"Wrote example configuration to {config_path}")
    console.print()
    console.print("[bold]Next steps:[/]")
    console.print("  1. Run [cyan]mason build hut[/] to build a simulated hut")
    console.print("  2. Run [cyan]mason sessions[/] to list resumable sessions")
