"""Tests for the pure guardian monitors."""

from mason.builder.config import CapabilityTables, GuardianThresholds
from mason.builder.monitors import (
    GuardianState,
    RecoveryKind,
    WarningKind,
    WorldSnapshot,
    check_environment,
    check_health,
    check_position,
    check_progress,
    check_resources,
    is_night,
)
from mason.protocols.world import Entity, InventoryItem, Position, Vitals, Weather

THRESHOLDS = GuardianThresholds()


def here(x: float = 0.0, z: float = 0.0) -> Position:
    return Position(x=x, y=64.0, z=z)


def test_progress_within_limit():
    state = GuardianState(last_progress_time=100.0)

    action, next_state = check_progress(WorldSnapshot(now=130.0), state, THRESHOLDS)

    assert action is None
    assert next_state == state


def test_progress_stagnation():
    state = GuardianState(last_progress_time=100.0)

    action, next_state = check_progress(WorldSnapshot(now=135.0), state, THRESHOLDS)

    assert action.recovery == RecoveryKind.STAGNATION
    [warning] = action.warnings
    assert warning.kind == WarningKind.STAGNATION
    assert "35s" in warning.message
    assert next_state == state


def test_position_first_tick_only_records():
    state = GuardianState(last_progress_time=0.0)

    action, next_state = check_position(WorldSnapshot(now=50.0, position=here()), state, THRESHOLDS)

    assert action is None
    assert next_state.last_position == here()


def test_position_stuck():
    state = GuardianState(last_progress_time=0.0, last_position=here())

    action, next_state = check_position(WorldSnapshot(now=11.0, position=here(0.5)), state, THRESHOLDS)

    assert action.recovery == RecoveryKind.STUCK
    assert action.warnings[0].kind == WarningKind.STUCK
    assert next_state.last_position == here(0.5)


def test_position_moved_is_not_stuck():
    state = GuardianState(last_progress_time=0.0, last_position=here())

    action, _ = check_position(WorldSnapshot(now=60.0, position=here(3.0)), state, THRESHOLDS)

    assert action is None


def test_position_recent_progress_is_not_stuck():
    state = GuardianState(last_progress_time=55.0, last_position=here())

    action, _ = check_position(WorldSnapshot(now=60.0, position=here()), state, THRESHOLDS)

    assert action is None


def test_position_unknown_is_ignored():
    state = GuardianState(last_progress_time=0.0)
    assert check_position(WorldSnapshot(now=60.0), state, THRESHOLDS) == (None, state)


def test_environment_hostile_mobs():
    zombie = Entity(kind="mob", name="zombie", position=here(5.0))
    cow = Entity(kind="mob", name="cow", position=here(2.0))
    far_zombie = Entity(kind="mob", name="zombie", position=here(40.0))
    snapshot = WorldSnapshot(now=100.0, position=here(), weather=Weather(), entities=(zombie, cow, far_zombie))

    action, state = check_environment(snapshot, GuardianState(last_progress_time=0.0), THRESHOLDS)

    assert [w.kind for w in action.warnings] == [WarningKind.HOSTILE_MOBS]
    assert action.warnings[0].message.startswith("1 hostile mobs nearby")
    assert action.recovery is None
    assert state.last_mob_check == 100.0
    assert state.last_weather_check == 100.0


def test_environment_rain_and_night():
    snapshot = WorldSnapshot(now=100.0, position=here(), weather=Weather(raining=True, time_of_day=18000))

    action, _ = check_environment(snapshot, GuardianState(last_progress_time=0.0), THRESHOLDS)

    assert [w.kind for w in action.warnings] == [WarningKind.RAIN, WarningKind.NIGHT]


def test_environment_checks_are_rate_limited():
    state = GuardianState(last_progress_time=0.0, last_mob_check=95.0, last_weather_check=80.0)
    zombie = Entity(kind="mob", name="zombie", position=here(1.0))
    snapshot = WorldSnapshot(now=100.0, position=here(), weather=Weather(raining=True), entities=(zombie,))

    action, next_state = check_environment(snapshot, state, THRESHOLDS)

    assert action is None
    assert next_state == state


def test_environment_custom_hostile_table():
    capabilities = CapabilityTables(hostile_mobs=["pillager"])
    pillager = Entity(kind="mob", name="pillager", position=here(3.0))
    snapshot = WorldSnapshot(now=1.0, position=here(), entities=(pillager,))

    action, _ = check_environment(snapshot, GuardianState(last_progress_time=0.0), THRESHOLDS, capabilities=capabilities)

    assert action.warnings[0].kind == WarningKind.HOSTILE_MOBS


def test_is_night_bounds():
    assert is_night(Weather(time_of_day=13001), THRESHOLDS) is True
    assert is_night(Weather(time_of_day=13000), THRESHOLDS) is False
    assert is_night(Weather(time_of_day=23000), THRESHOLDS) is False
    assert is_night(Weather(time_of_day=1000), THRESHOLDS) is False


def test_resources_low_materials():
    inventory = (InventoryItem(name="oak_planks", count=4), InventoryItem(name="dirt", count=64))

    action, _ = check_resources(WorldSnapshot(now=0.0, inventory=inventory), GuardianState(last_progress_time=0.0), THRESHOLDS)

    [warning] = action.warnings
    assert warning.kind == WarningKind.LOW_RESOURCES
    assert "(4 items left)" in warning.message


def test_resources_far_from_site():
    snapshot = WorldSnapshot(
        now=0.0,
        position=here(30.0),
        site_center=here(),
        inventory=(InventoryItem(name="cobblestone", count=64),),
    )

    action, _ = check_resources(snapshot, GuardianState(last_progress_time=0.0), THRESHOLDS)

    [warning] = action.warnings
    assert warning.kind == WarningKind.FAR_FROM_SITE
    assert "30.0 blocks away" in warning.message


def test_resources_fine():
    snapshot = WorldSnapshot(
        now=0.0,
        position=here(2.0),
        site_center=here(),
        inventory=(InventoryItem(name="cobblestone", count=64),),
    )
    assert check_resources(snapshot, GuardianState(last_progress_time=0.0), THRESHOLDS)[0] is None


def test_health_low():
    snapshot = WorldSnapshot(now=0.0, vitals=Vitals(health=4, food=5))

    action, _ = check_health(snapshot, GuardianState(last_progress_time=0.0), THRESHOLDS)

    assert [w.kind for w in action.warnings] == [WarningKind.LOW_HEALTH, WarningKind.LOW_FOOD]
    assert action.warnings[0].message == "Low health (4/20)"


def test_health_fine_or_unknown():
    state = GuardianState(last_progress_time=0.0)
    assert check_health(WorldSnapshot(now=0.0, vitals=Vitals(health=20, food=20)), state, THRESHOLDS)[0] is None
    assert check_health(WorldSnapshot(now=0.0), state, THRESHOLDS)[0] is None
