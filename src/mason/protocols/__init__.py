"""Protocol definitions for Mason's external collaborators.

- WorldPort: Sensing and acting on the voxel world

Implementations live in mason.drivers.
"""

from mason.protocols.world import (
    BlockIdentity,
    Cell,
    Entity,
    InventoryItem,
    Position,
    Vitals,
    Weather,
    WorldPort,
    is_empty,
)

__all__ = [
    "BlockIdentity",
    "Cell",
    "Entity",
    "InventoryItem",
    "Position",
    "Vitals",
    "Weather",
    "WorldPort",
    "is_empty",
]
