"""Build event models for the event bus and the append-only journal."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class BuildEventType(str, Enum):
    """Build event types."""

    # Build lifecycle
    BUILD_STARTED = "build.started"
    BUILD_COMPLETED = "build.completed"
    BUILD_FAILED = "build.failed"
    BUILD_STOPPED = "build.stopped"
    BUILD_PROGRESS = "build.progress"

    # Phase lifecycle
    PHASE_STARTED = "phase.started"
    PHASE_COMPLETED = "phase.completed"
    PHASE_FAILED = "phase.failed"

    # Persistence
    CHECKPOINT_SAVED = "checkpoint.saved"

    # Pre-build gates
    GATE_COMPLETED = "gate.completed"

    # Guardian
    GUARDIAN_WARNING = "guardian.warning"
    GUARDIAN_FAILURE = "guardian.failure"
    RECOVERY_ATTEMPTED = "guardian.recovery"

    # Verification
    BLOCK_VERIFICATION_FAILED = "verify.block_failed"
    STRUCTURE_VALIDATED = "verify.structure"
    FUNCTIONALITY_VALIDATED = "verify.functionality"


class BaseBuildEvent(BaseModel):
    """Base event with common fields."""

    event_type: BuildEventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str | None = None


class BuildStartedEvent(BaseBuildEvent):
    """Emitted when a build or resume begins."""

    event_type: BuildEventType = BuildEventType.BUILD_STARTED
    building_type: str
    total_blocks: int
    phase: str
    resumed: bool = False


class BuildCompletedEvent(BaseBuildEvent):
    """Emitted when the phase sequence reaches complete."""

    event_type: BuildEventType = BuildEventType.BUILD_COMPLETED
    duration_seconds: float
    accuracy: float | None = None
    functional: bool | None = None


class BuildFailedEvent(BaseBuildEvent):
    """Emitted when a build cannot start or aborts on an unexpected error."""

    event_type: BuildEventType = BuildEventType.BUILD_FAILED
    reason: str
    error: str | None = None


class BuildStoppedEvent(BaseBuildEvent):
    """Emitted when a stop request is honoured."""

    event_type: BuildEventType = BuildEventType.BUILD_STOPPED
    reason: str
    phase: str


class BuildProgressEvent(BaseBuildEvent):
    """Periodic human-readable progress narration."""

    event_type: BuildEventType = BuildEventType.BUILD_PROGRESS
    phase: str
    percentage: float
    placed_blocks: int
    total_blocks: int


class PhaseStartedEvent(BaseBuildEvent):
    event_type: BuildEventType = BuildEventType.PHASE_STARTED
    phase: str


class PhaseCompletedEvent(BaseBuildEvent):
    event_type: BuildEventType = BuildEventType.PHASE_COMPLETED
    phase: str
    duration_seconds: float


class PhaseFailedEvent(BaseBuildEvent):
    """Emitted when a phase handler returns failure or raises.

    The loop still advances past the phase afterwards.
    """

    event_type: BuildEventType = BuildEventType.PHASE_FAILED
    phase: str
    reason: str


class CheckpointSavedEvent(BaseBuildEvent):
    event_type: BuildEventType = BuildEventType.CHECKPOINT_SAVED
    sequence: int
    phase: str
    description: str
    path: str


class GateCompletedEvent(BaseBuildEvent):
    """Emitted when a pre-build gate completes."""

    event_type: BuildEventType = BuildEventType.GATE_COMPLETED
    gate: str  # "materials" | "terrain" | "environment" | "tools"
    passed: bool
    message: str = ""


class GuardianWarningEvent(BaseBuildEvent):
    """A monitor observed something worth reporting."""

    event_type: BuildEventType = BuildEventType.GUARDIAN_WARNING
    kind: str  # "stagnation" | "stuck" | "hostile_mobs" | "rain" | "night" | ...
    message: str


class GuardianFailureEvent(BaseBuildEvent):
    """A recorded action failure (feeds the repeated-failure counter)."""

    event_type: BuildEventType = BuildEventType.GUARDIAN_FAILURE
    action: str
    reason: str
    count: int
    context: dict[str, Any] = Field(default_factory=dict)


class RecoveryAttemptedEvent(BaseBuildEvent):
    event_type: BuildEventType = BuildEventType.RECOVERY_ATTEMPTED
    strategy: str  # "stagnation" | "stuck" | "repeated_failure"
    succeeded: bool
    detail: str | None = None


class BlockVerificationFailedEvent(BaseBuildEvent):
    event_type: BuildEventType = BuildEventType.BLOCK_VERIFICATION_FAILED
    block_type: str
    position: tuple[int, int, int]
    reason: str
    corrected: bool = False


class StructureValidatedEvent(BaseBuildEvent):
    event_type: BuildEventType = BuildEventType.STRUCTURE_VALIDATED
    total_blocks: int
    correct_blocks: int
    missing_blocks: int
    wrong_blocks: int
    accuracy: float
    is_complete: bool


class FunctionalityValidatedEvent(BaseBuildEvent):
    event_type: BuildEventType = BuildEventType.FUNCTIONALITY_VALIDATED
    building_type: str
    functional: bool
    passed_tests: int
    total_tests: int


# Union type for all events
BuildEvent = (
    BuildStartedEvent
    | BuildCompletedEvent
    | BuildFailedEvent
    | BuildStoppedEvent
    | BuildProgressEvent
    | PhaseStartedEvent
    | PhaseCompletedEvent
    | PhaseFailedEvent
    | CheckpointSavedEvent
    | GateCompletedEvent
    | GuardianWarningEvent
    | GuardianFailureEvent
    | RecoveryAttemptedEvent
    | BlockVerificationFailedEvent
    | StructureValidatedEvent
    | FunctionalityValidatedEvent
)

EVENT_CLASSES: dict[BuildEventType, type[BaseBuildEvent]] = {
    BuildEventType.BUILD_STARTED: BuildStartedEvent,
    BuildEventType.BUILD_COMPLETED: BuildCompletedEvent,
    BuildEventType.BUILD_FAILED: BuildFailedEvent,
    BuildEventType.BUILD_STOPPED: BuildStoppedEvent,
    BuildEventType.BUILD_PROGRESS: BuildProgressEvent,
    BuildEventType.PHASE_STARTED: PhaseStartedEvent,
    BuildEventType.PHASE_COMPLETED: PhaseCompletedEvent,
    BuildEventType.PHASE_FAILED: PhaseFailedEvent,
    BuildEventType.CHECKPOINT_SAVED: CheckpointSavedEvent,
    BuildEventType.GATE_COMPLETED: GateCompletedEvent,
    BuildEventType.GUARDIAN_WARNING: GuardianWarningEvent,
    BuildEventType.GUARDIAN_FAILURE: GuardianFailureEvent,
    BuildEventType.RECOVERY_ATTEMPTED: RecoveryAttemptedEvent,
    BuildEventType.BLOCK_VERIFICATION_FAILED: BlockVerificationFailedEvent,
    BuildEventType.STRUCTURE_VALIDATED: StructureValidatedEvent,
    BuildEventType.FUNCTIONALITY_VALIDATED: FunctionalityValidatedEvent,
}
