"""Construction phases and session progress records."""

from enum import Enum

from pydantic import BaseModel, Field

from mason.builder.blueprint import BlockSpec


class Phase(str, Enum):
    """Fixed construction phase sequence.

    COMPLETE is the terminal state; advancing from it is a no-op.
    """

    PLANNING = "planning"
    RESOURCE_GATHERING = "resource_gathering"
    SITE_PREPARATION = "site_preparation"
    FOUNDATION = "foundation"
    WALLS = "walls"
    ROOF = "roof"
    DETAILS = "details"
    VERIFICATION = "verification"
    COMPLETE = "complete"

    def next(self) -> "Phase":
        """Return the following phase (COMPLETE maps to itself)."""
        if self is Phase.COMPLETE:
            return self
        return PHASE_SEQUENCE[PHASE_SEQUENCE.index(self) + 1]

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


PHASE_SEQUENCE: list[Phase] = list(Phase)

CONSTRUCTION_PLAN = [
    "Clear area if needed",
    "Level ground if needed",
    "Build foundation layer",
    "Build walls layer by layer",
    "Add roof",
    "Add details (doors, windows)",
    "Final verification",
]


class FailedBlock(BaseModel):
    """A block action that did not produce the expected block."""

    block: BlockSpec
    reason: str


class BuildProgress(BaseModel):
    """Mutable progress counters of a session."""

    total_blocks: int = 0
    placed_blocks: int = Field(default=0, description="Attempted placements, successful or not")
    failed_blocks: list[FailedBlock] = Field(default_factory=list)
    completed_phases: list[Phase] = Field(default_factory=list)

    @property
    def percentage(self) -> float:
        if self.total_blocks <= 0:
            return 0.0
        return self.placed_blocks / self.total_blocks * 100
