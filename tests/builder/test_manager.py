"""Tests for the BuildManager orchestration loop."""

import asyncio

import pytest

from mason.builder.blueprint import create_hut_blueprint
from mason.builder.config import GuardianConfig
from mason.builder.events import BuildEventType
from mason.builder.journal import BuilderJournalReader
from mason.builder.manager import BuildManager, BuildResult, VerificationSummary
from mason.builder.phases import PHASE_SEQUENCE, Phase
from mason.builder.session import BuildSession
from mason.drivers.memory import MemoryWorld
from mason.exceptions import VerificationShortfall
from mason.protocols.world import Weather


@pytest.fixture
def manager(world, fast_config, sleep) -> BuildManager:
    return BuildManager(world, fast_config, sleep=sleep)


@pytest.fixture
def events(manager) -> list:
    received: list = []
    manager.bus.subscribe(received.append)
    return received


def of_type(events: list, event_type: BuildEventType) -> list:
    return [e for e in events if e.event_type == event_type]


# ----------------------------------------------------------------------
# Full builds
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_build_hut_end_to_end(manager, events, world, hut, fast_config):
    result = await manager.build(hut)

    assert result.status == "success"
    assert result.exit_code() == 0
    assert result.report["phase"] == "complete"
    assert result.report["completed_phases"] == [p.value for p in PHASE_SEQUENCE[:-1]]
    assert result.verification.passed is True
    assert result.verification.tests == 6
    assert result.verification.passed_tests == 6
    assert result.verification.accuracy == 100.0
    assert all(gate.passed for gate in result.validation)
    result.raise_for_verification()

    assert len(of_type(events, BuildEventType.PHASE_COMPLETED)) == 8
    assert len(of_type(events, BuildEventType.BUILD_PROGRESS)) == 4
    [completed] = of_type(events, BuildEventType.BUILD_COMPLETED)
    assert completed.functional is True

    assert manager.is_building is False
    assert manager.guardian.monitoring_active is False
    assert manager.build_status() == {"building": False}


@pytest.mark.asyncio
async def test_build_writes_journal(manager, hut, fast_config):
    result = await manager.build(hut)

    journal_path = fast_config.resolved_logs_dir() / result.session_id / "events.jsonl"
    events = BuilderJournalReader(journal_path).read_events()
    assert events[0]["event_type"] == "gate.completed"
    assert events[-1]["event_type"] == "build.completed"
    assert all(e["session_id"] == result.session_id for e in events)


@pytest.mark.asyncio
async def test_failed_gates_stop_the_build(manager, events, world, hut):
    world.current_weather = Weather(raining=True)

    result = await manager.build(hut)

    assert result.status == "invalid"
    assert result.reason == "Pre-build validation failed: environment"
    assert result.exit_code() == 1
    assert [g.gate for g in result.validation if not g.passed] == ["environment"]
    [failed] = of_type(events, BuildEventType.BUILD_FAILED)
    assert failed.reason == "validation"
    assert world.actions == []
    assert manager.list_sessions() == []


@pytest.mark.asyncio
async def test_force_builds_despite_failed_gates(manager, world, hut):
    world.current_weather = Weather(raining=True)

    result = await manager.build(hut, force=True)

    assert result.status == "success"
    assert not all(g.passed for g in result.validation)


# ----------------------------------------------------------------------
# Phase failures
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_failed_phase_is_checkpointed_and_skipped(manager, events, hut, sleep, monkeypatch):
    async def broken_walls(self):
        return False

    monkeypatch.setattr(BuildSession, "_execute_walls", broken_walls)

    result = await manager.build(hut)

    assert result.status == "success"
    [failed] = of_type(events, BuildEventType.PHASE_FAILED)
    assert failed.phase == "walls"
    assert failed.reason == "Phase execution failed"
    descriptions = [e.description for e in of_type(events, BuildEventType.CHECKPOINT_SAVED)]
    assert "Phase failure: walls" in descriptions
    assert "walls" in result.report["completed_phases"]
    assert manager.guardian.repeated_failures["build_phase"] == 1
    assert any(p.action == "build_phase" for p in manager.patterns.failures)
    assert 0 in sleep.delays

    assert result.verification.passed is False
    with pytest.raises(VerificationShortfall) as exc_info:
        result.raise_for_verification()
    assert "structure" in exc_info.value.failed_tests


@pytest.mark.asyncio
async def test_phase_failure_is_charged_to_the_attempt_guardian(manager, hut, monkeypatch):
    """The phase loop uses the guardian it started with, not the manager attribute."""

    async def broken_walls(self):
        return False

    monkeypatch.setattr(BuildSession, "_execute_walls", broken_walls)
    started = []

    def detach_guardian(event):
        if event.phase == "walls":
            started.append(manager.guardian)
            manager.guardian = None

    manager.bus.subscribe(detach_guardian, event_types=[BuildEventType.PHASE_STARTED])

    result = await manager.build(hut)

    assert result.status == "success"
    [guardian] = started
    assert guardian.repeated_failures["build_phase"] == 1
    assert guardian.monitoring_active is False


@pytest.mark.asyncio
async def test_phase_exception_becomes_phase_failure(manager, events, hut, monkeypatch):
    async def exploding_roof(self):
        raise RuntimeError("scaffold collapsed")

    monkeypatch.setattr(BuildSession, "_execute_roof", exploding_roof)

    result = await manager.build(hut)

    assert result.status == "success"
    [failed] = of_type(events, BuildEventType.PHASE_FAILED)
    assert failed.phase == "roof"
    assert failed.reason == "scaffold collapsed"


@pytest.mark.asyncio
async def test_phase_retries_before_forced_advance(world, fast_config, sleep, hut, monkeypatch):
    calls = []

    async def flaky_planning(self):
        calls.append(self.phase)
        return len(calls) > 1

    monkeypatch.setattr(BuildSession, "_execute_planning", flaky_planning)
    fast_config.manager.phase_retries = 1
    manager = BuildManager(world, fast_config, sleep=sleep)
    received = []
    manager.bus.subscribe(received.append, event_types=[BuildEventType.PHASE_FAILED])

    result = await manager.build(hut)

    assert result.status == "success"
    assert calls == [Phase.PLANNING, Phase.PLANNING]
    assert received == []


@pytest.mark.asyncio
async def test_retries_exhausted(world, fast_config, sleep, hut, monkeypatch):
    calls = []

    async def dead_planning(self):
        calls.append(1)
        return False

    monkeypatch.setattr(BuildSession, "_execute_planning", dead_planning)
    fast_config.manager.phase_retries = 2
    manager = BuildManager(world, fast_config, sleep=sleep)

    result = await manager.build(hut)

    assert len(calls) == 3
    assert result.status == "success"
    assert "planning" in result.report["completed_phases"]


@pytest.mark.asyncio
async def test_unexpected_error_fails_the_build(manager, events, hut, monkeypatch):
    async def broken_verification(self, session=None):
        raise RuntimeError("verifier crashed")

    monkeypatch.setattr(BuildManager, "perform_complete_verification", broken_verification)

    result = await manager.build(hut)

    assert result.status == "failed"
    assert result.reason == "verifier crashed"
    [failed] = of_type(events, BuildEventType.BUILD_FAILED)
    assert failed.reason == "exception"
    descriptions = [e.description for e in of_type(events, BuildEventType.CHECKPOINT_SAVED)]
    assert descriptions[-1] == "Interruption: verifier crashed"
    assert manager.is_building is False


# ----------------------------------------------------------------------
# Guardian recovery during a build
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_guardian_rerun_queues_behind_running_phase(gated_world, fast_config, clock, hut):
    """A stagnation re-run waits for the running phase and keeps the session consistent."""

    async def yielding_sleep(seconds):
        await asyncio.sleep(0)

    fast_config.guardian = GuardianConfig(
        progress_interval=0.01, environment_interval=3600, resource_interval=3600, health_interval=3600
    )
    manager = BuildManager(gated_world, fast_config, sleep=yielding_sleep, clock=clock)
    received = []
    manager.bus.subscribe(received.append)

    task = asyncio.create_task(manager.build(hut))
    await asyncio.wait_for(gated_world.entered.wait(), timeout=1)
    assert manager.current_session.phase is Phase.FOUNDATION

    clock.advance(35)
    for _ in range(200):
        if manager.guardian.warnings:
            break
        await asyncio.sleep(0.01)
    else:
        pytest.fail("guardian never reported stagnation")
    await asyncio.sleep(0.01)

    gated_world.release.set()
    result = await asyncio.wait_for(task, timeout=10)

    assert result.status == "success"
    assert gated_world.cancelled is False
    assert result.report["completed_phases"] == [p.value for p in PHASE_SEQUENCE[:-1]]
    assert result.report["placed_blocks"] == 98
    assert result.report["failed_blocks"] == 0
    assert len([a for a in gated_world.actions if a[0] == "place"]) == 98

    checkpoints = manager.current_session.checkpoints
    assert [c.sequence for c in checkpoints] == list(range(1, len(checkpoints) + 1))
    order = [PHASE_SEQUENCE.index(c.phase) for c in checkpoints]
    assert order == sorted(order)

    descriptions = [c.description for c in checkpoints]
    assert descriptions.count("Foundation phase completed") == 2
    rerun_done = descriptions.index("Foundation phase completed") + 1
    assert descriptions[rerun_done] == "Foundation phase completed"
    assert descriptions[rerun_done + 1] == "Phase transition to walls"
    assert [e.detail for e in of_type(received, BuildEventType.RECOVERY_ATTEMPTED)] == ["re-ran foundation"]


# ----------------------------------------------------------------------
# Stop and resume
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_stop_without_build(manager):
    assert await manager.stop_build() == {"success": False, "reason": "No active build"}


@pytest.mark.asyncio
async def test_stop_then_resume(world, fast_config, hut):
    """A stopped build resumes from its checkpoint and completes."""
    delays = []

    async def yielding_sleep(seconds):
        delays.append(seconds)
        await asyncio.sleep(0)

    manager = BuildManager(world, fast_config, sleep=yielding_sleep)
    stopped = []
    manager.bus.subscribe(stopped.append, event_types=[BuildEventType.BUILD_STOPPED])

    task = asyncio.create_task(manager.build(hut))
    for _ in range(100_000):
        session = manager.current_session
        if session is not None and session.phase is Phase.WALLS:
            break
        await asyncio.sleep(0)
    else:
        pytest.fail("build never reached the walls phase")

    status = manager.build_status()
    assert status["building"] is True
    assert status["session"]["phase"] == "walls"

    outcome = await manager.stop_build("lunch break")
    result = await task

    assert outcome["success"] is True
    assert outcome["interruption"]["can_resume"] is True
    assert result.status == "stopped"
    assert result.exit_code() == 2
    assert result.reason == "lunch break"
    assert [e.phase for e in stopped] == ["walls"]

    resumer = BuildManager(world, fast_config, sleep=yielding_sleep)
    resumed = await resumer.resume_build(result.session_id)

    assert resumed.status == "success"
    assert resumed.session_id == result.session_id
    assert resumed.verification.passed is True
    assert resumer.list_sessions()[0]["session_id"] == result.session_id


@pytest.mark.asyncio
async def test_resume_unknown_session(manager):
    result = await manager.resume_build("build-19990101-000000-000000")

    assert result.status == "not_found"
    assert result.reason == "Session not found"
    assert result.exit_code() == 1


@pytest.mark.asyncio
async def test_list_sessions_after_build(manager, hut):
    result = await manager.build(hut)

    [entry] = manager.list_sessions()
    assert entry["session_id"] == result.session_id
    assert entry["building_type"] == "hut"


# ----------------------------------------------------------------------
# Manual verification and results
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_manual_verification_with_blueprint(manager, hut):
    await manager.build(hut)

    summary = await manager.manual_verification("hut", hut)

    assert summary.passed is True
    assert summary.failed_tests == []


@pytest.mark.asyncio
async def test_manual_verification_default_hut_on_empty_site(manager):
    summary = await manager.manual_verification("house")

    assert summary.passed is False
    assert summary.tests == 6
    assert summary.structure.total_blocks == len(create_hut_blueprint(0, 1, -7, 5).blocks)
    assert "structure" in summary.failed_tests


@pytest.mark.asyncio
async def test_manual_verification_other_types(fast_config, sleep):
    manager = BuildManager(MemoryWorld(), fast_config, sleep=sleep)

    summary = await manager.manual_verification("tower")

    assert summary.structure is None
    assert summary.tests == 2
    assert summary.passed is True


@pytest.mark.asyncio
async def test_complete_verification_without_session(manager):
    summary = await manager.perform_complete_verification()
    assert summary.error == "No session to verify"


def test_build_result_exit_codes():
    assert BuildResult("success", "b").exit_code() == 0
    assert BuildResult("stopped", "b").exit_code() == 2
    for status in ("failed", "invalid", "not_found"):
        assert BuildResult(status, "b").exit_code() == 1
    assert repr(BuildResult("failed", "b", "boom")) == "BuildResult(status='failed', session_id='b', reason='boom')"


def test_raise_for_verification_without_summary():
    BuildResult("success", "b").raise_for_verification()
    BuildResult("success", "b", verification=VerificationSummary(passed=True)).raise_for_verification()
