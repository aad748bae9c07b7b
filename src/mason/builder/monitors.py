"""Pure guardian monitors.

Each monitor takes a snapshot of the world, the guardian's monitor state
and the thresholds, and returns an optional action plus the next state:

    (WorldSnapshot, GuardianState, GuardianThresholds) -> (GuardianAction | None, GuardianState)

Monitors never touch the world or the session. The guardian gathers the
snapshot, runs the monitor on a timer and carries out the action.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from mason.builder.config import CapabilityTables, GuardianThresholds
from mason.protocols.world import Entity, InventoryItem, Position, Vitals, Weather


class WarningKind(str, Enum):
    STAGNATION = "stagnation"
    STUCK = "stuck"
    HOSTILE_MOBS = "hostile_mobs"
    RAIN = "rain"
    NIGHT = "night"
    LOW_RESOURCES = "low_resources"
    FAR_FROM_SITE = "far_from_site"
    LOW_HEALTH = "low_health"
    LOW_FOOD = "low_food"


class RecoveryKind(str, Enum):
    STAGNATION = "stagnation"
    STUCK = "stuck"
    REPEATED_FAILURE = "repeated_failure"


class GuardianWarning(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: WarningKind
    message: str


class GuardianAction(BaseModel):
    """What a monitor wants done: report warnings, maybe recover."""

    model_config = ConfigDict(frozen=True)

    warnings: tuple[GuardianWarning, ...] = ()
    recovery: RecoveryKind | None = None


class WorldSnapshot(BaseModel):
    """Observations taken at one instant. Unobserved fields stay None/empty."""

    model_config = ConfigDict(frozen=True)

    now: float
    position: Position | None = None
    vitals: Vitals | None = None
    weather: Weather | None = None
    entities: tuple[Entity, ...] = ()
    inventory: tuple[InventoryItem, ...] = ()
    site_center: Position | None = None


class GuardianState(BaseModel):
    """Monitor bookkeeping carried between ticks."""

    model_config = ConfigDict(frozen=True)

    last_progress_time: float
    last_position: Position | None = None
    last_mob_check: float | None = None
    last_weather_check: float | None = None


MonitorResult = tuple[GuardianAction | None, GuardianState]


def check_progress(snapshot: WorldSnapshot, state: GuardianState, thresholds: GuardianThresholds) -> MonitorResult:
    """Stagnation: no progress update for longer than max_stagnant_time."""
    idle = snapshot.now - state.last_progress_time
    if idle <= thresholds.max_stagnant_time:
        return None, state
    warning = GuardianWarning(
        kind=WarningKind.STAGNATION,
        message=f"No progress for {idle:.0f}s - investigating",
    )
    return GuardianAction(warnings=(warning,), recovery=RecoveryKind.STAGNATION), state


def check_position(snapshot: WorldSnapshot, state: GuardianState, thresholds: GuardianThresholds) -> MonitorResult:
    """Stuck: barely moved since the last tick and no recent progress.

    Always records the current position for the next tick.
    """
    if snapshot.position is None:
        return None, state

    next_state = state.model_copy(update={"last_position": snapshot.position})
    if state.last_position is None:
        return None, next_state

    moved = snapshot.position.distance_to(state.last_position)
    idle = snapshot.now - state.last_progress_time
    if moved < thresholds.stuck_distance and idle > thresholds.stuck_time:
        warning = GuardianWarning(
            kind=WarningKind.STUCK,
            message=f"Stuck at the same position for {idle:.0f}s - trying to move",
        )
        return GuardianAction(warnings=(warning,), recovery=RecoveryKind.STUCK), next_state
    return None, next_state


def check_environment(
    snapshot: WorldSnapshot,
    state: GuardianState,
    thresholds: GuardianThresholds,
    *,
    capabilities: CapabilityTables | None = None,
    mob_interval: float = 10.0,
    weather_interval: float = 30.0,
) -> MonitorResult:
    """Hostile mobs every mob_interval, rain and night every weather_interval."""
    capabilities = capabilities or CapabilityTables()
    warnings: list[GuardianWarning] = []
    updates: dict[str, float] = {}

    if state.last_mob_check is None or snapshot.now - state.last_mob_check > mob_interval:
        updates["last_mob_check"] = snapshot.now
        hostile = hostile_entities(snapshot, thresholds, capabilities)
        if hostile:
            warnings.append(
                GuardianWarning(
                    kind=WarningKind.HOSTILE_MOBS,
                    message=f"{len(hostile)} hostile mobs nearby - being careful",
                )
            )

    if state.last_weather_check is None or snapshot.now - state.last_weather_check > weather_interval:
        updates["last_weather_check"] = snapshot.now
        if snapshot.weather is not None:
            if snapshot.weather.raining:
                warnings.append(GuardianWarning(kind=WarningKind.RAIN, message="Rain detected - may affect visibility"))
            if is_night(snapshot.weather, thresholds):
                warnings.append(GuardianWarning(kind=WarningKind.NIGHT, message="Night time - mobs may spawn"))

    next_state = state.model_copy(update=updates) if updates else state
    if not warnings:
        return None, next_state
    return GuardianAction(warnings=tuple(warnings)), next_state


def check_resources(
    snapshot: WorldSnapshot,
    state: GuardianState,
    thresholds: GuardianThresholds,
    *,
    capabilities: CapabilityTables | None = None,
) -> MonitorResult:
    """Low building materials and drifting away from the site."""
    capabilities = capabilities or CapabilityTables()
    warnings: list[GuardianWarning] = []

    materials = sum(i.count for i in snapshot.inventory if i.name in capabilities.building_materials)
    if materials < thresholds.min_resources_threshold:
        warnings.append(
            GuardianWarning(
                kind=WarningKind.LOW_RESOURCES,
                message=f"Running low on building materials ({materials} items left)",
            )
        )

    if snapshot.position is not None and snapshot.site_center is not None:
        distance = snapshot.position.distance_to(snapshot.site_center)
        if distance > thresholds.max_distance_from_site:
            warnings.append(
                GuardianWarning(
                    kind=WarningKind.FAR_FROM_SITE,
                    message=f"Far from build site: {distance:.1f} blocks away",
                )
            )

    if not warnings:
        return None, state
    return GuardianAction(warnings=tuple(warnings)), state


def check_health(snapshot: WorldSnapshot, state: GuardianState, thresholds: GuardianThresholds) -> MonitorResult:
    if snapshot.vitals is None:
        return None, state

    warnings: list[GuardianWarning] = []
    if snapshot.vitals.health <= thresholds.health_threshold:
        warnings.append(
            GuardianWarning(kind=WarningKind.LOW_HEALTH, message=f"Low health ({snapshot.vitals.health:g}/20)")
        )
    if snapshot.vitals.food <= thresholds.food_threshold:
        warnings.append(
            GuardianWarning(kind=WarningKind.LOW_FOOD, message=f"Getting hungry ({snapshot.vitals.food:g}/20)")
        )

    if not warnings:
        return None, state
    return GuardianAction(warnings=tuple(warnings)), state


def hostile_entities(
    snapshot: WorldSnapshot, thresholds: GuardianThresholds, capabilities: CapabilityTables
) -> list[Entity]:
    return [
        e
        for e in snapshot.entities
        if e.name in capabilities.hostile_mobs
        and (snapshot.position is None or e.position.distance_to(snapshot.position) < thresholds.hostile_radius)
    ]


def is_night(weather: Weather, thresholds: GuardianThresholds) -> bool:
    return thresholds.night_start < weather.time_of_day < thresholds.night_end


__all__ = [
    "GuardianAction",
    "GuardianState",
    "GuardianWarning",
    "MonitorResult",
    "RecoveryKind",
    "WarningKind",
    "WorldSnapshot",
    "check_environment",
    "check_health",
    "check_position",
    "check_progress",
    "check_resources",
    "hostile_entities",
    "is_night",
]
