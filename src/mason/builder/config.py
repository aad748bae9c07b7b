"""Builder configuration schema and loading."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from mason.exceptions import ConfigurationError

_WOOD_PLANKS = [
    "oak_planks",
    "spruce_planks",
    "birch_planks",
    "jungle_planks",
    "acacia_planks",
    "dark_oak_planks",
]

_DOORS = [
    "oak_door",
    "spruce_door",
    "birch_door",
    "jungle_door",
    "acacia_door",
    "dark_oak_door",
]

_TOOL_TIERS = ["wooden", "stone", "iron", "golden", "diamond", "netherite"]


class CapabilityTables(BaseModel):
    """Explicit block/item tables used for classification.

    Membership is exact: a name either is in a table or it is not.
    """

    building_materials: list[str] = Field(
        default_factory=lambda: [*_WOOD_PLANKS, "cobblestone", "stone", "bricks", "glass", "white_wool"],
        description="Items counted by the low-resources check",
    )
    structural_materials: list[str] = Field(
        default_factory=lambda: ["oak_planks", "cobblestone", "stone"],
        description="Items used to add support under floating blocks",
    )
    wall_materials: list[str] = Field(
        default_factory=lambda: ["oak_planks", "cobblestone", "stone", "bricks"],
        description="Items used to fill wall gaps",
    )
    detail_blocks: list[str] = Field(
        default_factory=lambda: [*_DOORS, "glass", "glass_pane", "torch", "ladder"],
        description="Decorative blocks built in the details phase",
    )
    door_blocks: list[str] = Field(default_factory=lambda: list(_DOORS))
    interior_allowed: list[str] = Field(
        default_factory=lambda: [*_DOORS, "torch", "chest", "crafting_table", "furnace"],
        description="Blocks tolerated inside a house interior",
    )
    natural_terrain: list[str] = Field(
        default_factory=lambda: ["grass_block", "dirt", "stone", "sand", "gravel", "air", "water", "lava"],
        description="Blocks that do not count as terrain obstacles",
    )
    hostile_mobs: list[str] = Field(
        default_factory=lambda: ["zombie", "skeleton", "spider", "creeper", "enderman"],
    )
    tools: list[str] = Field(
        default_factory=lambda: [f"{tier}_{kind}" for kind in ("pickaxe", "shovel") for tier in _TOOL_TIERS],
        description="Any one of these satisfies the tools check",
    )


class SessionConfig(BaseModel):
    """Checkpoint persistence settings."""

    sessions_dir: Path | None = Field(
        default=None, description="Checkpoint directory (defaults to .mason/sessions)"
    )
    checkpoint_every: int = Field(
        default=20, ge=1, description="Foundation checkpoint cadence in placed blocks"
    )


class GuardianThresholds(BaseModel):
    """Limits that turn observations into warnings or recoveries."""

    max_stagnant_time: float = Field(default=30.0, description="Seconds without progress")
    max_repeated_failures: int = Field(default=5, ge=1)
    min_resources_threshold: int = Field(default=10)
    max_distance_from_site: float = Field(default=20.0)
    health_threshold: float = Field(default=5.0)
    food_threshold: float = Field(default=5.0)
    hostile_radius: float = Field(default=20.0)
    stuck_distance: float = Field(default=1.0, description="Displacement below this counts as stuck")
    stuck_time: float = Field(default=10.0, description="Seconds since progress before stuck fires")
    night_start: int = Field(default=13000)
    night_end: int = Field(default=23000)


class GuardianConfig(BaseModel):
    """Guardian thresholds and monitor periods (seconds)."""

    thresholds: GuardianThresholds = Field(default_factory=GuardianThresholds)
    progress_interval: float = 5.0
    environment_interval: float = 5.0
    mob_check_interval: float = 10.0
    weather_check_interval: float = 30.0
    resource_interval: float = 10.0
    health_interval: float = 3.0
    pattern_window_hours: float = 24.0


class VerifierConfig(BaseModel):
    """Verification delays, batch sizes and scan geometry."""

    settle_delay: float = Field(default=0.15, description="Wait before reading back a placement")
    correction_delay: float = Field(default=0.2, description="Wait after digging a wrong block")
    fix_batch_size: int = Field(default=10, description="Max fixes per kind per structure sweep")
    structural_fix_batch_size: int = Field(default=5)
    door_scan_radius: int = 10
    door_scan_height: int = 3
    enclosure_radius: int = 15
    enclosure_height: int = 4
    enclosure_gap_height: int = 2
    max_enclosure_gaps: int = 10
    roof_scan_radius: int = 10
    roof_min_clearance: int = 3
    roof_max_clearance: int = 5
    min_roof_coverage: float = 70.0
    interior_radius: int = 8
    interior_height: int = 3
    max_interior_obstructions: int = 5
    integrity_radius: int = 12
    integrity_height: int = 6
    max_unsupported_blocks: int = 10
    history_window: int = 50


class ManagerConfig(BaseModel):
    """Orchestration settings."""

    failure_backoff_seconds: float = Field(default=2.0, description="Pause after a failed phase")
    phase_retries: int = Field(
        default=0, ge=0, description="In-phase retries before the forced advance"
    )
    progress_report_every: int = Field(default=2, ge=1, description="Narrate progress every N phases")
    verification_delay: float = Field(
        default=1.0, description="Pause between structure and functionality checks"
    )
    logs_dir: Path | None = Field(default=None, description="Journal directory (defaults to .mason/logs)")


class BuilderConfig(BaseModel):
    """Complete builder configuration.

    Loaded from .mason/config.yaml under 'builder:' section.
    CLI flags override config values with precedence:
    1. CLI flags (highest)
    2. .mason/config.yaml
    3. Defaults (lowest)
    """

    session: SessionConfig = Field(default_factory=SessionConfig)
    guardian: GuardianConfig = Field(default_factory=GuardianConfig)
    verifier: VerifierConfig = Field(default_factory=VerifierConfig)
    manager: ManagerConfig = Field(default_factory=ManagerConfig)
    capabilities: CapabilityTables = Field(default_factory=CapabilityTables)

    def resolved_sessions_dir(self) -> Path:
        return self.session.sessions_dir or Path.cwd() / ".mason" / "sessions"

    def resolved_logs_dir(self) -> Path:
        return self.manager.logs_dir or Path.cwd() / ".mason" / "logs"


def load_builder_config(project_root: Path | None = None) -> BuilderConfig:
    """Load builder configuration from .mason/config.yaml.

    Args:
        project_root: Project root directory (contains .mason/). Defaults to cwd.

    Returns:
        BuilderConfig with values from file or defaults

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    if project_root is None:
        project_root = Path.cwd()

    config_path = project_root / ".mason" / "config.yaml"

    if not config_path.exists():
        return BuilderConfig()

    try:
        with open(config_path) as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    builder_section = raw_config.get("builder", {}) or {}

    try:
        return BuilderConfig.model_validate(builder_section)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid builder config in {config_path}: {e}") from e


def merge_cli_overrides(
    config: BuilderConfig,
    sessions_dir: Path | None = None,
    phase_retries: int | None = None,
    settle_delay: float | None = None,
) -> BuilderConfig:
    """Merge CLI flag overrides into config.

    Returns:
        New BuilderConfig with overrides applied

    Example:
        config = load_builder_config()
        config = merge_cli_overrides(config, phase_retries=2)
    """
    updated = config.model_copy(deep=True)

    if sessions_dir is not None:
        updated.session.sessions_dir = sessions_dir

    if phase_retries is not None:
        updated.manager.phase_retries = phase_retries

    if settle_delay is not None:
        updated.verifier.settle_delay = settle_delay

    return updated


def save_example_builder_config(output_path: Path) -> None:
    """Save example builder configuration to file.

    Args:
        output_path: Path to write example config.yaml
    """
    example = {
        "builder": {
            "session": {
                "sessions_dir": ".mason/sessions",
                "checkpoint_every": 20,
            },
            "guardian": {
                "thresholds": {
                    "max_stagnant_time": 30,
                    "max_repeated_failures": 5,
                    "min_resources_threshold": 10,
                    "max_distance_from_site": 20,
                    "health_threshold": 5,
                },
                "progress_interval": 5,
                "resource_interval": 10,
                "health_interval": 3,
            },
            "verifier": {
                "settle_delay": 0.15,
                "fix_batch_size": 10,
            },
            "manager": {
                "failure_backoff_seconds": 2,
                "phase_retries": 0,
            },
        }
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        yaml.dump(example, f, default_flow_style=False, sort_keys=False)
