"""WorldPort protocol definition.

The world is an external collaborator: Mason never implements actuation,
pathfinding or inventory logic itself. Everything it needs from the world
goes through this narrow, async interface.
"""

import math
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

Cell = tuple[int, int, int]

EMPTY_BLOCK_NAMES = frozenset({"air", "cave_air", "void_air"})


class BlockIdentity(BaseModel):
    """What occupies a cell in the world."""

    model_config = ConfigDict(frozen=True)

    name: str
    id: int | None = None


class Position(BaseModel):
    """A point in world space (agents are not locked to the block grid)."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float

    def distance_to(self, other: "Position") -> float:
        return math.sqrt((self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2)

    def to_cell(self) -> Cell:
        return (math.floor(self.x), math.floor(self.y), math.floor(self.z))


class InventoryItem(BaseModel):
    """One inventory stack."""

    model_config = ConfigDict(frozen=True)

    name: str
    count: int = Field(ge=0)


class Entity(BaseModel):
    """An entity seen near the agent."""

    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., description="Entity category (mob, player, object, ...)")
    name: str
    position: Position


class Vitals(BaseModel):
    model_config = ConfigDict(frozen=True)

    health: float
    food: float


class Weather(BaseModel):
    model_config = ConfigDict(frozen=True)

    raining: bool = False
    time_of_day: int = Field(default=6000, description="Ticks into the day cycle (0-23999)")


def is_empty(block: BlockIdentity | None) -> bool:
    """Return True when a cell holds nothing (no block or an air variant)."""
    return block is None or block.name in EMPTY_BLOCK_NAMES


@runtime_checkable
class WorldPort(Protocol):
    """Protocol for sensing and acting on the voxel world.

    All calls suspend with bounded latency and may fault. Faults are
    raised as mason.exceptions.WorldFault.

    Writes are eventually consistent: a placed block may take a short,
    bounded delay before block_at() reports it.
    """

    async def block_at(self, x: int, y: int, z: int) -> BlockIdentity | None:
        """Return the block at a cell, or None when nothing is there."""
        ...

    async def place(self, block_type: str, reference: Cell, face: Cell) -> None:
        """Place block_type against the reference block's face.

        Args:
            block_type: Block/item name to place (must be in inventory)
            reference: Cell of an existing, non-empty block
            face: Unit vector from reference to the target cell
        """
        ...

    async def dig(self, position: Cell) -> None:
        """Break the block at a cell."""
        ...

    async def move_to(self, x: float, y: float, z: float) -> None:
        """Walk the agent to a position."""
        ...

    async def inventory_items(self) -> list[InventoryItem]:
        ...

    async def nearby_entities(self, radius: float) -> list[Entity]:
        ...

    async def agent_position(self) -> Position:
        ...

    async def agent_vitals(self) -> Vitals:
        ...

    async def weather(self) -> Weather:
        ...


__all__ = [
    "Cell",
    "EMPTY_BLOCK_NAMES",
    "BlockIdentity",
    "Position",
    "InventoryItem",
    "Entity",
    "Vitals",
    "Weather",
    "WorldPort",
    "is_empty",
]
