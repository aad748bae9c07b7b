"""In-memory WorldPort implementation.

Provides a dict-backed voxel world that behaves like the real thing for
the parts Mason relies on: reference-face placement, inventory consumption,
digging, walking. Used by `mason build` simulations and by tests, without
a game server.
"""

from collections import Counter

from mason.exceptions import WorldFault
from mason.protocols.world import (
    BlockIdentity,
    Cell,
    Entity,
    InventoryItem,
    Position,
    Vitals,
    Weather,
)

_UNIT_FACES = {
    (1, 0, 0),
    (-1, 0, 0),
    (0, 1, 0),
    (0, -1, 0),
    (0, 0, 1),
    (0, 0, -1),
}


class MemoryWorld:
    """Voxel world kept in a dict of cell -> block name.

    Knobs for exercising failure paths:
    - substitutions: placing key actually puts value in the world
    - failing_cells: placements targeting these cells raise WorldFault
    - blocked_cells: move_to into these cells raises WorldFault
    - creative: placements do not need or consume inventory

    Every actuation is appended to `actions` for inspection.
    """

    def __init__(
        self,
        *,
        position: Position | None = None,
        inventory: dict[str, int] | None = None,
        creative: bool = False,
    ) -> None:
        self.blocks: dict[Cell, str] = {}
        self.inventory: Counter[str] = Counter(inventory or {})
        self.position = position or Position(x=0.5, y=1.0, z=0.5)
        self.vitals = Vitals(health=20, food=20)
        self.current_weather = Weather()
        self.entities: list[Entity] = []
        self.creative = creative
        self.substitutions: dict[str, str] = {}
        self.failing_cells: set[Cell] = set()
        self.blocked_cells: set[Cell] = set()
        self.actions: list[tuple] = []

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def set_block(self, x: int, y: int, z: int, name: str | None) -> None:
        """Put a block directly (no inventory, no rules). None clears the cell."""
        if name is None or name == "air":
            self.blocks.pop((x, y, z), None)
        else:
            self.blocks[(x, y, z)] = name

    def fill(
        self,
        start: Cell,
        end: Cell,
        name: str,
    ) -> None:
        """Fill an inclusive box with one block type."""
        (x1, y1, z1), (x2, y2, z2) = start, end
        for x in range(min(x1, x2), max(x1, x2) + 1):
            for y in range(min(y1, y2), max(y1, y2) + 1):
                for z in range(min(z1, z2), max(z1, z2) + 1):
                    self.blocks[(x, y, z)] = name

    def flat_ground(self, radius: int, y: int = 0, name: str = "grass_block") -> None:
        """Lay a square of ground centred on the origin at height y."""
        self.fill((-radius, y, -radius), (radius, y, radius), name)

    def give(self, name: str, count: int) -> None:
        self.inventory[name] += count

    def block_name(self, x: int, y: int, z: int) -> str | None:
        return self.blocks.get((x, y, z))

    # ------------------------------------------------------------------
    # WorldPort
    # ------------------------------------------------------------------

    async def block_at(self, x: int, y: int, z: int) -> BlockIdentity | None:
        name = self.blocks.get((x, y, z))
        if name is None:
            return None
        return BlockIdentity(name=name)

    async def place(self, block_type: str, reference: Cell, face: Cell) -> None:
        if tuple(face) not in _UNIT_FACES:
            raise WorldFault("place", f"invalid face vector {face}")
        if reference not in self.blocks:
            raise WorldFault("place", f"no reference block at {reference}")

        target = (reference[0] + face[0], reference[1] + face[1], reference[2] + face[2])
        if target in self.failing_cells:
            raise WorldFault("place", f"placement at {target} was interrupted")
        if target in self.blocks:
            raise WorldFault("place", f"cell {target} is occupied by {self.blocks[target]}")

        if not self.creative:
            if self.inventory[block_type] <= 0:
                raise WorldFault("place", f"no {block_type} in inventory")
            self.inventory[block_type] -= 1
            if self.inventory[block_type] == 0:
                del self.inventory[block_type]

        self.blocks[target] = self.substitutions.get(block_type, block_type)
        self.actions.append(("place", block_type, target))

    async def dig(self, position: Cell) -> None:
        name = self.blocks.pop(tuple(position), None)
        if name is None:
            raise WorldFault("dig", f"nothing to dig at {position}")
        if not self.creative:
            self.inventory[name] += 1
        self.actions.append(("dig", name, tuple(position)))

    async def move_to(self, x: float, y: float, z: float) -> None:
        target = Position(x=x, y=y, z=z)
        if target.to_cell() in self.blocked_cells:
            raise WorldFault("move", f"path to {target.to_cell()} is blocked")
        self.position = target
        self.actions.append(("move", target.to_cell()))

    async def inventory_items(self) -> list[InventoryItem]:
        return [InventoryItem(name=name, count=count) for name, count in self.inventory.items() if count > 0]

    async def nearby_entities(self, radius: float) -> list[Entity]:
        return [e for e in self.entities if e.position.distance_to(self.position) <= radius]

    async def agent_position(self) -> Position:
        return self.position

    async def agent_vitals(self) -> Vitals:
        return self.vitals

    async def weather(self) -> Weather:
        return self.current_weather


__all__ = ["MemoryWorld"]
