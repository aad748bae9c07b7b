"""Blueprint models, block classification and simple generators.

A blueprint is the immutable target structure: a list of typed blocks at
absolute world coordinates plus site-preparation flags. The order of
`blocks` carries no build order; phases pick their blocks through
`classify_block`, which is purely geometric/type-based and reproducible.
"""

import json
from collections import Counter
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

from mason.protocols.world import Cell, Position


class BlockSpec(BaseModel):
    """One block of the target structure."""

    model_config = ConfigDict(frozen=True)

    type: str
    x: int
    y: int
    z: int

    @property
    def cell(self) -> Cell:
        return (self.x, self.y, self.z)


class BuildArea(BaseModel):
    """Inclusive bounding box of a blueprint."""

    model_config = ConfigDict(frozen=True)

    min_x: int = 0
    max_x: int = 0
    min_y: int = 0
    max_y: int = 0
    min_z: int = 0
    max_z: int = 0

    def cells(self) -> Iterable[Cell]:
        for x in range(self.min_x, self.max_x + 1):
            for z in range(self.min_z, self.max_z + 1):
                for y in range(self.min_y, self.max_y + 1):
                    yield (x, y, z)


class Blueprint(BaseModel):
    """Immutable description of the structure to build."""

    model_config = ConfigDict(frozen=True)

    building_type: str
    blocks: tuple[BlockSpec, ...] = Field(default_factory=tuple)
    clear_area: bool = False
    level_ground: bool = False

    def bounds(self) -> BuildArea:
        if not self.blocks:
            return BuildArea()
        return BuildArea(
            min_x=min(b.x for b in self.blocks),
            max_x=max(b.x for b in self.blocks),
            min_y=min(b.y for b in self.blocks),
            max_y=max(b.y for b in self.blocks),
            min_z=min(b.z for b in self.blocks),
            max_z=max(b.z for b in self.blocks),
        )

    def center(self) -> Position:
        area = self.bounds()
        return Position(
            x=(area.min_x + area.max_x) / 2,
            y=(area.min_y + area.max_y) / 2,
            z=(area.min_z + area.max_z) / 2,
        )

    def required_materials(self) -> dict[str, int]:
        return dict(Counter(b.type for b in self.blocks))

    def expected_at(self) -> dict[Cell, str]:
        return {b.cell: b.type for b in self.blocks}


class BlockCategory(str, Enum):
    """Which construction phase a blueprint block belongs to."""

    FOUNDATION = "foundation"
    WALL = "wall"
    ROOF = "roof"
    DETAIL = "detail"


def classify_block(block: BlockSpec, min_y: int, max_y: int, detail_blocks: Iterable[str]) -> BlockCategory:
    """Classify one block.

    Precedence: lowest layer is foundation, highest layer is roof,
    decorative types are details, everything else is wall.
    """
    if block.y == min_y:
        return BlockCategory.FOUNDATION
    if block.y == max_y:
        return BlockCategory.ROOF
    if block.type in detail_blocks:
        return BlockCategory.DETAIL
    return BlockCategory.WALL


def classify_blocks(blueprint: Blueprint, detail_blocks: Iterable[str]) -> dict[BlockCategory, list[BlockSpec]]:
    """Partition a blueprint's blocks into the four categories, keeping blueprint order."""
    partition: dict[BlockCategory, list[BlockSpec]] = {category: [] for category in BlockCategory}
    if not blueprint.blocks:
        return partition

    details = frozenset(detail_blocks)
    area = blueprint.bounds()
    for block in blueprint.blocks:
        partition[classify_block(block, area.min_y, area.max_y, details)].append(block)
    return partition


def group_by_layer(blocks: Iterable[BlockSpec]) -> list[tuple[int, list[BlockSpec]]]:
    """Group blocks by y, lowest layer first.

    Layers must be built bottom-up: building top-down leaves
    unsupported blocks.
    """
    layers: dict[int, list[BlockSpec]] = {}
    for block in blocks:
        layers.setdefault(block.y, []).append(block)
    return sorted(layers.items(), key=lambda item: item[0])


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------


def create_hut_blueprint(center_x: int, center_y: int, center_z: int, size: int = 5) -> Blueprint:
    """Square hut: plank floor, three-high walls, flat roof and a door.

    The floor sits at center_y, walls at center_y+1..+3, roof at center_y+4.
    The door replaces the middle wall block on the south side.
    """
    blocks: list[BlockSpec] = []
    door = (center_x, center_y + 1, center_z + size)

    for x in range(center_x - size, center_x + size + 1):
        for z in range(center_z - size, center_z + size + 1):
            blocks.append(BlockSpec(type="oak_planks", x=x, y=center_y, z=z))

    for y in range(center_y + 1, center_y + 4):
        for x in range(center_x - size, center_x + size + 1):
            for z in (center_z - size, center_z + size):
                if (x, y, z) != door:
                    blocks.append(BlockSpec(type="oak_planks", x=x, y=y, z=z))
        for z in range(center_z - size + 1, center_z + size):
            for x in (center_x - size, center_x + size):
                blocks.append(BlockSpec(type="oak_planks", x=x, y=y, z=z))

    for x in range(center_x - size, center_x + size + 1):
        for z in range(center_z - size, center_z + size + 1):
            blocks.append(BlockSpec(type="oak_planks", x=x, y=center_y + 4, z=z))

    blocks.append(BlockSpec(type="oak_door", x=door[0], y=door[1], z=door[2]))

    return Blueprint(building_type="hut", blocks=tuple(blocks))


def create_wall_blueprint(
    start_x: int,
    start_y: int,
    start_z: int,
    end_x: int,
    end_z: int,
    height: int = 3,
    material: str = "cobblestone",
) -> Blueprint:
    """Straight (or diagonal-stepped) wall from start to end, `height` blocks tall."""
    blocks: list[BlockSpec] = []
    step_x = (end_x > start_x) - (end_x < start_x)
    step_z = (end_z > start_z) - (end_z < start_z)

    x, z = start_x, start_z
    while True:
        for y in range(start_y, start_y + height):
            blocks.append(BlockSpec(type=material, x=x, y=y, z=z))
        if x == end_x and z == end_z:
            break
        if x != end_x:
            x += step_x
        if z != end_z:
            z += step_z

    return Blueprint(building_type="wall", blocks=tuple(blocks))


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def load_blueprint(path: Path) -> Blueprint:
    """Load a blueprint from a .json, .yaml or .yml file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    return Blueprint.model_validate(data)


def save_blueprint(blueprint: Blueprint, path: Path) -> Path:
    """Write a blueprint as YAML or JSON depending on the suffix."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = blueprint.model_dump(mode="json")
    if path.suffix in (".yaml", ".yml"):
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False)
    else:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path
