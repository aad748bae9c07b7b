"""BuildManager - orchestrates gate → phases → verification for one agent.

The manager owns the long-lived pieces (verifier, pattern log, event bus)
and builds a fresh session and guardian for every construction attempt.
"""

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from typing import Any

from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from mason.builder.blueprint import Blueprint, create_hut_blueprint, create_wall_blueprint
from mason.builder.checkpoints import CheckpointStore
from mason.builder.config import BuilderConfig
from mason.builder.events import (
    BuildCompletedEvent,
    BuildFailedEvent,
    BuildProgressEvent,
    BuildStartedEvent,
    BuildStoppedEvent,
    PhaseCompletedEvent,
    PhaseFailedEvent,
    PhaseStartedEvent,
)
from mason.builder.gates import GateResult, ensure_gates_passed, format_gate_failures, run_gates
from mason.builder.guardian import ConstructionGuardian, PatternLog, StrategyHook
from mason.builder.journal import BuilderJournal
from mason.builder.phases import FailedBlock, Phase
from mason.builder.session import BuildSession, generate_session_id
from mason.builder.verifier import BuildVerifier, FunctionalityReport, StructureReport
from mason.bus import EventBus, LocalEventBus
from mason.exceptions import (
    PhaseFailure,
    SessionNotFoundError,
    ValidationFailure,
    VerificationShortfall,
    WorldFault,
)
from mason.protocols.world import WorldPort

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class VerificationSummary(BaseModel):
    """Outcome of the post-construction checks. Informative, never gating."""

    structure: StructureReport | None = None
    functionality: FunctionalityReport | None = None
    passed: bool = False
    tests: int = 0
    passed_tests: int = 0
    accuracy: float | None = None
    error: str | None = None

    @classmethod
    def from_reports(cls, structure: StructureReport, functionality: FunctionalityReport) -> "VerificationSummary":
        # One test for the structure plus the functional battery
        return cls(
            structure=structure,
            functionality=functionality,
            passed=structure.is_complete and functionality.functional,
            tests=1 + len(functionality.tests),
            passed_tests=int(structure.is_complete) + functionality.passed_tests,
            accuracy=structure.accuracy,
        )

    @property
    def failed_tests(self) -> list[str]:
        failed = []
        if self.structure is not None and not self.structure.is_complete:
            failed.append("structure")
        if self.functionality is not None:
            failed.extend(self.functionality.failed_tests)
        return failed


class BuildResult:
    """Result of a build or resume call."""

    def __init__(
        self,
        status: str,
        session_id: str,
        reason: str | None = None,
        report: dict[str, Any] | None = None,
        verification: VerificationSummary | None = None,
        validation: list[GateResult] | None = None,
    ):
        """Initialize build result.

        Args:
            status: "success" | "failed" | "stopped" | "invalid" | "not_found"
            session_id: Session the result belongs to
            reason: Why the build did not succeed
            report: Final session progress report
            verification: Post-construction verification summary
            validation: Pre-build gate results
        """
        self.status = status
        self.session_id = session_id
        self.reason = reason
        self.report = report or {}
        self.verification = verification
        self.validation = validation or []

    @property
    def success(self) -> bool:
        return self.status == "success"

    def exit_code(self) -> int:
        """Get exit code for CLI.

        Returns:
            0 for success, 2 for stopped (resumable), 1 otherwise
        """
        if self.status == "success":
            return 0
        elif self.status == "stopped":
            return 2
        else:
            return 1

    def raise_for_verification(self) -> None:
        """Raise VerificationShortfall if the final checks did not pass."""
        if self.verification is None or self.verification.passed:
            return
        raise VerificationShortfall(self.session_id, self.verification.accuracy, self.verification.failed_tests)

    def __repr__(self) -> str:
        return f"BuildResult(status={self.status!r}, session_id={self.session_id!r}, reason={self.reason!r})"


class BuildManager:
    """Runs construction attempts against one world."""

    def __init__(
        self,
        world: WorldPort,
        config: BuilderConfig | None = None,
        *,
        bus: EventBus | None = None,
        patterns: PatternLog | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        strategy_hook: StrategyHook | None = None,
    ) -> None:
        self.world = world
        self.config = config or BuilderConfig()
        self.bus: EventBus = bus or LocalEventBus()
        self.patterns = patterns or PatternLog(self.config.guardian.pattern_window_hours)
        self.store = CheckpointStore(self.config.resolved_sessions_dir())
        self.verifier = BuildVerifier(
            world,
            self.config.verifier,
            self.config.capabilities,
            bus=self.bus,
            sleep=sleep,
        )
        self.strategy_hook = strategy_hook
        self._sleep = sleep
        self._clock = clock

        self.current_session: BuildSession | None = None
        self.guardian: ConstructionGuardian | None = None
        self.is_building = False
        self._stop_reason: str | None = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def build(
        self,
        blueprint: Blueprint,
        building_type: str | None = None,
        *,
        force: bool = False,
    ) -> BuildResult:
        """Validate, construct and verify a blueprint.

        Failed pre-build gates stop the build unless force is set.
        """
        building_type = building_type or blueprint.building_type
        session_id = generate_session_id()
        logger.info("Starting %s construction (%d blocks)", building_type, len(blueprint.blocks))

        with self._journal(session_id):
            validation = await run_gates(blueprint, self.world, self.config, bus=self.bus, session_id=session_id)
            try:
                ensure_gates_passed(validation)
            except ValidationFailure as e:
                failures = format_gate_failures(validation)
                if not force:
                    logger.warning("%s", failures)
                    self.bus.emit(BuildFailedEvent(session_id=session_id, reason="validation", error=failures))
                    return BuildResult("invalid", session_id, e.message, validation=validation)
                logger.warning("Proceeding despite failed validation: %s", failures)

            session = BuildSession(
                blueprint,
                self.world,
                self.verifier,
                session_id=session_id,
                building_type=building_type,
                config=self.config.session,
                capabilities=self.config.capabilities,
                store=self.store,
                bus=self.bus,
                on_placement_failure=self._on_placement_failure,
            )
            return await self._run(session, resumed=False, validation=validation)

    async def resume_build(self, session_id: str) -> BuildResult:
        """Continue a session from its latest checkpoint."""
        logger.info("Resuming build session: %s", session_id)
        try:
            session = BuildSession.load_session(
                session_id,
                self.world,
                self.verifier,
                config=self.config.session,
                capabilities=self.config.capabilities,
                store=self.store,
                bus=self.bus,
            )
        except SessionNotFoundError as e:
            logger.warning("Cannot resume: %s", e.message)
            return BuildResult("not_found", session_id, "Session not found")
        except (OSError, ValidationError) as e:
            logger.error("Cannot resume %s: unreadable checkpoint: %s", session_id, e)
            return BuildResult("failed", session_id, f"Unreadable checkpoint: {e}")

        session.on_placement_failure = self._on_placement_failure
        with self._journal(session_id):
            return await self._run(session, resumed=True)

    async def stop_build(self, reason: str = "User requested") -> dict[str, Any]:
        """Stop the running build at the next block boundary."""
        session = self.current_session
        if not self.is_building or session is None:
            logger.warning("No active build to stop")
            return {"success": False, "reason": "No active build"}

        logger.warning("Stopping build: %s", reason)
        self._stop_reason = reason
        session.request_stop()

        interruption = await session.handle_interruption(reason)
        if self.guardian is not None:
            await self.guardian.stop_monitoring()
        return {"success": True, "interruption": interruption}

    def build_status(self) -> dict[str, Any]:
        if not self.is_building or self.current_session is None:
            return {"building": False}
        return {
            "building": True,
            "session": self.current_session.progress_report(),
            "guardian": self.guardian.monitoring_stats() if self.guardian else None,
            "verifier": self.verifier.verification_stats(),
        }

    def list_sessions(self) -> list[dict[str, Any]]:
        return self.store.list_sessions()

    # ------------------------------------------------------------------
    # Build loop
    # ------------------------------------------------------------------

    @contextmanager
    def _journal(self, session_id: str) -> Iterator[BuilderJournal]:
        journal = BuilderJournal(session_id, self.config.resolved_logs_dir())
        self.bus.subscribe(journal.write)
        try:
            yield journal
        finally:
            unsubscribe = getattr(self.bus, "unsubscribe", None)
            if unsubscribe is not None:
                unsubscribe(journal.write)
            journal.close()

    async def _run(
        self,
        session: BuildSession,
        *,
        resumed: bool,
        validation: list[GateResult] | None = None,
    ) -> BuildResult:
        self.current_session = session
        self.is_building = True
        self._stop_reason = None
        guardian = self.guardian = ConstructionGuardian(
            self.world,
            session,
            config=self.config.guardian,
            capabilities=self.config.capabilities,
            patterns=self.patterns,
            bus=self.bus,
            clock=self._clock,
            strategy_hook=self.strategy_hook,
        )

        self.bus.emit(
            BuildStartedEvent(
                session_id=session.session_id,
                building_type=session.building_type,
                total_blocks=session.progress.total_blocks,
                phase=session.phase.value,
                resumed=resumed,
            )
        )
        guardian.start_monitoring()
        started = time.monotonic()

        try:
            result = await self._execute_session(session, guardian)
        except Exception as e:
            logger.exception("Build %s failed", session.session_id)
            try:
                await session.handle_interruption(str(e))
            except (OSError, WorldFault) as checkpoint_error:
                logger.error("Could not checkpoint the interruption: %s", checkpoint_error)
            self.bus.emit(BuildFailedEvent(session_id=session.session_id, reason="exception", error=str(e)))
            return BuildResult(
                "failed", session.session_id, str(e), report=session.progress_report(), validation=validation
            )
        finally:
            await guardian.stop_monitoring()
            self.is_building = False

        result.validation = validation or []
        if result.success:
            verification = result.verification
            self.bus.emit(
                BuildCompletedEvent(
                    session_id=session.session_id,
                    duration_seconds=time.monotonic() - started,
                    accuracy=verification.accuracy if verification else None,
                    functional=verification.functionality.functional
                    if verification and verification.functionality
                    else None,
                )
            )
        return result

    async def _execute_session(self, session: BuildSession, guardian: ConstructionGuardian) -> BuildResult:
        phases_completed = 0

        while session.phase is not Phase.COMPLETE and not session.stop_requested:
            phase = session.phase
            logger.info("Executing phase: %s", phase.value)
            self.bus.emit(PhaseStartedEvent(session_id=session.session_id, phase=phase.value))
            phase_started = time.monotonic()

            try:
                await self._execute_phase(session)
            except PhaseFailure as failure:
                if session.stop_requested:
                    break
                await self._handle_phase_failure(session, failure, guardian)
                continue

            if session.stop_requested:
                break

            guardian.update_progress()
            guardian.record_success(phase.value, {"session_id": session.session_id})
            await session.advance_phase()
            phases_completed += 1
            self.bus.emit(
                PhaseCompletedEvent(
                    session_id=session.session_id,
                    phase=phase.value,
                    duration_seconds=time.monotonic() - phase_started,
                )
            )

            if phases_completed % self.config.manager.progress_report_every == 0:
                self._report_progress(session)

        if session.phase is not Phase.COMPLETE:
            reason = self._stop_reason or "Construction incomplete"
            logger.warning("Build %s stopped in phase %s: %s", session.session_id, session.phase.value, reason)
            self.bus.emit(BuildStoppedEvent(session_id=session.session_id, reason=reason, phase=session.phase.value))
            return BuildResult("stopped", session.session_id, reason, report=session.progress_report())

        logger.info("Starting post-construction verification")
        verification = await self.perform_complete_verification(session)
        report = session.progress_report()
        logger.info(
            "Construction complete: %d/%d blocks placed, %d failed",
            report["placed_blocks"],
            report["total_blocks"],
            report["failed_blocks"],
        )
        return BuildResult("success", session.session_id, report=report, verification=verification)

    async def _execute_phase(self, session: BuildSession) -> None:
        """Run the current phase, retrying up to phase_retries times.

        Raises:
            PhaseFailure: If the last attempt failed
        """
        retries = self.config.manager.phase_retries

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait_fixed(self.config.manager.failure_backoff_seconds),
            retry=retry_if_exception_type(PhaseFailure),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        ):
            with attempt:
                await self._attempt_phase(session)

    async def _attempt_phase(self, session: BuildSession) -> None:
        phase = session.phase.value
        try:
            succeeded = await session.execute_current_phase()
        except Exception as e:
            logger.exception("Phase %s raised", phase)
            raise PhaseFailure(phase, str(e)) from e

        if not succeeded and not session.stop_requested:
            raise PhaseFailure(phase)

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning("Retrying phase (attempt %d): %s", retry_state.attempt_number, error)

    async def _handle_phase_failure(
        self, session: BuildSession, failure: PhaseFailure, guardian: ConstructionGuardian
    ) -> None:
        """Emergency checkpoint, back off, then advance anyway."""
        logger.warning("Phase %s failed: %s", failure.phase, failure.reason)
        self.bus.emit(PhaseFailedEvent(session_id=session.session_id, phase=failure.phase, reason=failure.reason))

        await guardian.record_failure(
            "build_phase",
            {"session_id": session.session_id, "phase": failure.phase},
            failure.reason,
        )
        await session.create_checkpoint(f"Phase failure: {failure.phase}")
        await self._sleep(self.config.manager.failure_backoff_seconds)
        await session.advance_phase()

    async def _on_placement_failure(self, failed: FailedBlock) -> None:
        if self.guardian is None:
            return
        await self.guardian.record_failure(
            "place_block",
            {"block_type": failed.block.type, "position": list(failed.block.cell)},
            failed.reason,
        )

    def _report_progress(self, session: BuildSession) -> None:
        progress = session.progress
        logger.info("Progress: %.1f%% complete", progress.percentage)
        self.bus.emit(
            BuildProgressEvent(
                session_id=session.session_id,
                phase=session.phase.value,
                percentage=round(progress.percentage, 1),
                placed_blocks=progress.placed_blocks,
                total_blocks=progress.total_blocks,
            )
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def perform_complete_verification(self, session: BuildSession | None = None) -> VerificationSummary:
        """Structure check, settle pause, then the functional battery."""
        session = session or self.current_session
        if session is None:
            return VerificationSummary(error="No session to verify")

        try:
            structure = await self.verifier.validate_structure(session.blueprint)
            await self._sleep(self.config.manager.verification_delay)
            functionality = await self.verifier.validate_functionality(session.building_type, session.blueprint)
        except WorldFault as e:
            logger.error("Verification failed: %s", e)
            return VerificationSummary(error=str(e))

        summary = VerificationSummary.from_reports(structure, functionality)
        _log_summary(summary)
        return summary

    async def manual_verification(
        self,
        building_type: str = "hut",
        blueprint: Blueprint | None = None,
    ) -> VerificationSummary:
        """Check whatever stands around the agent.

        Without a blueprint, huts and walls are compared against a default
        design anchored at the agent's cell; other types get the functional
        battery only.
        """
        logger.info("Manual verification requested for: %s", building_type)

        try:
            if blueprint is None:
                position = await self.world.agent_position()
                x, y, z = math.floor(position.x), math.floor(position.y), math.floor(position.z)
                match building_type.lower():
                    case "hut" | "house":
                        blueprint = create_hut_blueprint(x, y, z, 5)
                    case "wall":
                        blueprint = create_wall_blueprint(x, y, z, x + 10, z, 3)
                    case _:
                        functionality = await self.verifier.validate_functionality(building_type)
                        return VerificationSummary(
                            functionality=functionality,
                            passed=functionality.functional,
                            tests=len(functionality.tests),
                            passed_tests=functionality.passed_tests,
                        )

            structure = await self.verifier.validate_structure(blueprint)
            await self._sleep(self.config.manager.verification_delay)
            functionality = await self.verifier.validate_functionality(building_type, blueprint)
        except WorldFault as e:
            logger.error("Manual verification failed: %s", e)
            return VerificationSummary(error=str(e))

        summary = VerificationSummary.from_reports(structure, functionality)
        _log_summary(summary)
        return summary


def _log_summary(summary: VerificationSummary) -> None:
    logger.info(
        "Verification %s: %d/%d tests passed, accuracy %.1f%%",
        "PASSED" if summary.passed else "FAILED",
        summary.passed_tests,
        summary.tests,
        summary.accuracy or 0.0,
    )
    for name in summary.failed_tests:
        logger.warning("  - %s", name)
