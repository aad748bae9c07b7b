"""ConstructionGuardian - concurrent progress/health monitor with recovery.

One guardian is built per construction attempt and watches one session.
Checks run as independent asyncio tasks on their own periods; each tick
gathers a WorldSnapshot, runs a pure monitor from mason.builder.monitors
and carries out the resulting action.

The guardian never mutates session progress. It only calls the session's
re-entry point (execute_current_phase) during stagnation recovery.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from mason.builder.config import CapabilityTables, GuardianConfig
from mason.builder.events import (
    GuardianFailureEvent,
    GuardianWarningEvent,
    RecoveryAttemptedEvent,
)
from mason.builder.monitors import (
    GuardianAction,
    GuardianState,
    GuardianWarning,
    RecoveryKind,
    WorldSnapshot,
    check_environment,
    check_health,
    check_position,
    check_progress,
    check_resources,
)
from mason.bus import EventBus, NullEventBus
from mason.exceptions import RepeatedFailureEscalation, WorldFault
from mason.protocols.world import WorldPort

if TYPE_CHECKING:
    from mason.builder.session import BuildSession

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
StrategyHook = Callable[[str, dict[str, Any]], Awaitable[None]]

_CARDINAL_OFFSETS = [(1, 0), (-1, 0), (0, 1), (0, -1)]


class PatternEntry(BaseModel):
    action: str
    context: dict[str, Any] = Field(default_factory=dict)
    reason: str | None = None
    timestamp: float


class PatternLog:
    """Rolling window of recorded outcomes, pruned on every insert.

    Lives as long as the agent; shared by every guardian it builds.
    """

    def __init__(self, window_hours: float = 24.0, clock: Clock = time.time) -> None:
        self.window_seconds = window_hours * 3600
        self._clock = clock
        self.successes: list[PatternEntry] = []
        self.failures: list[PatternEntry] = []

    def record_success(self, action: str, context: dict[str, Any] | None = None) -> None:
        self.successes.append(PatternEntry(action=action, context=context or {}, timestamp=self._clock()))
        self.successes = self._prune(self.successes)

    def record_failure(self, action: str, context: dict[str, Any] | None = None, reason: str | None = None) -> None:
        self.failures.append(
            PatternEntry(action=action, context=context or {}, reason=reason, timestamp=self._clock())
        )
        self.failures = self._prune(self.failures)

    def _prune(self, entries: list[PatternEntry]) -> list[PatternEntry]:
        cutoff = self._clock() - self.window_seconds
        return [e for e in entries if e.timestamp > cutoff]


class WarningRecord(BaseModel):
    kind: str
    message: str
    phase: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ConstructionGuardian:
    """Watches one build session and attempts automatic recovery."""

    def __init__(
        self,
        world: WorldPort,
        session: "BuildSession",
        *,
        config: GuardianConfig | None = None,
        capabilities: CapabilityTables | None = None,
        patterns: PatternLog | None = None,
        bus: EventBus | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        strategy_hook: StrategyHook | None = None,
    ) -> None:
        self.world = world
        self.session = session
        self.config = config or GuardianConfig()
        self.thresholds = self.config.thresholds
        self.capabilities = capabilities or CapabilityTables()
        self.patterns = patterns or PatternLog(self.config.pattern_window_hours)
        self.bus: EventBus = bus or NullEventBus()
        self.strategy_hook = strategy_hook
        self._clock = clock
        self._sleep = sleep

        self.state = GuardianState(last_progress_time=clock())
        self.repeated_failures: dict[str, int] = {}
        self.warnings: list[WarningRecord] = []
        self.failures: list[RepeatedFailureEscalation] = []
        self.monitoring_active = False
        self._tasks: list[asyncio.Task[None]] = []
        self._rerun: asyncio.Task[bool] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_monitoring(self) -> bool:
        """Start the periodic checks. Returns False if already running."""
        if self.monitoring_active:
            logger.warning("Monitoring already active for %s", self.session.session_id)
            return False

        self.monitoring_active = True
        self.update_progress()
        self._tasks = [
            asyncio.create_task(self._run_periodic("progress", self.config.progress_interval, self.tick_progress)),
            asyncio.create_task(
                self._run_periodic("environment", self.config.environment_interval, self.tick_environment)
            ),
            asyncio.create_task(self._run_periodic("resources", self.config.resource_interval, self.tick_resources)),
            asyncio.create_task(self._run_periodic("health", self.config.health_interval, self.tick_health)),
        ]
        logger.info("Construction monitoring started for session %s", self.session.session_id)
        return True

    async def stop_monitoring(self) -> None:
        """Cancel the periodic checks, then wait for a phase re-run to finish.

        A re-run started by stagnation recovery is never cancelled: it
        returns at the next block boundary once the session is asked to stop.
        """
        self.monitoring_active = False
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        rerun, self._rerun = self._rerun, None
        if rerun is not None:
            try:
                await rerun
            except Exception:
                logger.exception("Phase re-run failed during recovery")
        logger.info("Monitoring stopped for session %s", self.session.session_id)

    async def _run_periodic(self, name: str, interval: float, tick: Callable[[], Awaitable[None]]) -> None:
        while self.monitoring_active:
            await self._sleep(interval)
            if not self.monitoring_active:
                break
            try:
                await tick()
            except Exception:
                logger.exception("Guardian %s check failed", name)

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    async def tick_progress(self) -> None:
        """Stagnation check, then the stuck check on the updated timer."""
        now = self._clock()
        action, self.state = check_progress(WorldSnapshot(now=now), self.state, self.thresholds)
        await self._apply(action)

        position = await self.world.agent_position()
        action, self.state = check_position(
            WorldSnapshot(now=now, position=position), self.state, self.thresholds
        )
        await self._apply(action)

    async def tick_environment(self) -> None:
        position = await self.world.agent_position()
        snapshot = WorldSnapshot(
            now=self._clock(),
            position=position,
            weather=await self.world.weather(),
            entities=tuple(await self.world.nearby_entities(self.thresholds.hostile_radius)),
        )
        action, self.state = check_environment(
            snapshot,
            self.state,
            self.thresholds,
            capabilities=self.capabilities,
            mob_interval=self.config.mob_check_interval,
            weather_interval=self.config.weather_check_interval,
        )
        await self._apply(action)

    async def tick_resources(self) -> None:
        snapshot = WorldSnapshot(
            now=self._clock(),
            position=await self.world.agent_position(),
            inventory=tuple(await self.world.inventory_items()),
            site_center=self.session.blueprint.center() if self.session.blueprint.blocks else None,
        )
        action, self.state = check_resources(snapshot, self.state, self.thresholds, capabilities=self.capabilities)
        await self._apply(action)

    async def tick_health(self) -> None:
        snapshot = WorldSnapshot(now=self._clock(), vitals=await self.world.agent_vitals())
        action, self.state = check_health(snapshot, self.state, self.thresholds)
        await self._apply(action)

    async def _apply(self, action: GuardianAction | None) -> None:
        if action is None:
            return
        for warning in action.warnings:
            self._warn(warning)
        if action.recovery is not None:
            await self.attempt_recovery(action.recovery)

    def _warn(self, warning: GuardianWarning) -> None:
        record = WarningRecord(kind=warning.kind.value, message=warning.message, phase=self.session.phase.value)
        self.warnings.append(record)
        logger.warning("[guardian] %s", warning.message)
        self.bus.emit(
            GuardianWarningEvent(session_id=self.session.session_id, kind=record.kind, message=record.message)
        )

    # ------------------------------------------------------------------
    # Progress and outcome accounting
    # ------------------------------------------------------------------

    def update_progress(self) -> None:
        """Reset the stagnation timer."""
        self.state = self.state.model_copy(update={"last_progress_time": self._clock()})

    def record_success(self, action: str, context: dict[str, Any] | None = None) -> None:
        self.patterns.record_success(action, context)

    async def record_failure(self, action: str, context: dict[str, Any] | None = None, reason: str = "") -> None:
        """Record a failure and escalate once the same action failed often enough.

        Escalation fires when the counter reaches max_repeated_failures;
        the recovery resets the counter to zero.
        """
        context = context or {}
        self.patterns.record_failure(action, context, reason)
        count = self.repeated_failures.get(action, 0) + 1
        self.repeated_failures[action] = count

        self.bus.emit(
            GuardianFailureEvent(
                session_id=self.session.session_id,
                action=action,
                reason=reason,
                count=count,
                context=context,
            )
        )

        if count >= self.thresholds.max_repeated_failures:
            escalation = RepeatedFailureEscalation(action, count)
            self.failures.append(escalation)
            logger.error("[guardian] %s - switching strategy", escalation.message)
            await self.attempt_recovery(RecoveryKind.REPEATED_FAILURE, {"failure_type": action, "context": context})

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    async def attempt_recovery(self, kind: RecoveryKind, context: dict[str, Any] | None = None) -> bool:
        logger.info("Attempting recovery for: %s", kind.value)
        match kind:
            case RecoveryKind.STAGNATION:
                succeeded, detail = await self._recover_from_stagnation()
            case RecoveryKind.STUCK:
                succeeded, detail = await self._recover_from_stuck()
            case RecoveryKind.REPEATED_FAILURE:
                succeeded, detail = await self._recover_from_repeated_failure(context or {})
            case _:
                logger.warning("No recovery strategy for: %s", kind)
                return False

        self.bus.emit(
            RecoveryAttemptedEvent(
                session_id=self.session.session_id,
                strategy=kind.value,
                succeeded=succeeded,
                detail=detail,
            )
        )
        return succeeded

    async def _recover_from_stagnation(self) -> tuple[bool, str]:
        self.update_progress()
        phase = self.session.phase.value
        if self._rerun is not None and not self._rerun.done():
            return False, f"re-run of {phase} already in progress"

        logger.info("Resuming current build phase: %s", phase)
        self._rerun = asyncio.create_task(self.session.execute_current_phase())
        # Cancelling the tick must not reach world calls inside the re-run
        succeeded = await asyncio.shield(self._rerun)
        return succeeded, f"re-ran {phase}"

    async def _recover_from_stuck(self) -> tuple[bool, str]:
        moved_to: str | None = None
        position = await self.world.agent_position()
        for dx, dz in _CARDINAL_OFFSETS:
            try:
                await self.world.move_to(position.x + dx, position.y, position.z + dz)
            except WorldFault as e:
                logger.debug("Unstick move (%+d, %+d) failed: %s", dx, dz, e.reason)
                continue
            moved_to = f"moved ({dx:+d}, {dz:+d})"
            logger.info("Successfully moved to unstick")
            break

        self.update_progress()
        return moved_to is not None, moved_to or "all moves failed"

    async def _recover_from_repeated_failure(self, context: dict[str, Any]) -> tuple[bool, str]:
        failure_type = context.get("failure_type", "unknown")
        logger.info("Implementing strategy change for: %s", failure_type)
        self.repeated_failures[failure_type] = 0
        self.update_progress()
        if self.strategy_hook is not None:
            await self.strategy_hook(failure_type, context.get("context", {}))
        return True, f"reset {failure_type} counter"

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def monitoring_stats(self) -> dict[str, Any]:
        return {
            "active": self.monitoring_active,
            "warnings": len(self.warnings),
            "failures": len(self.failures),
            "repeated_failures": sum(1 for count in self.repeated_failures.values() if count),
            "last_progress": self.state.last_progress_time,
            "patterns": {
                "success_count": len(self.patterns.successes),
                "failure_count": len(self.patterns.failures),
            },
        }
