"""Simulated worlds for running builds without a game server."""

from mason.builder.blueprint import Blueprint
from mason.drivers.memory import MemoryWorld
from mason.protocols.world import Position

GROUND_MARGIN = 4
SPARE_FACTOR = 2
STARTER_TOOLS = ["stone_pickaxe", "stone_shovel"]


def simulated_world(blueprint: Blueprint) -> MemoryWorld:
    """A flat grass plot under the blueprint, stocked with its materials.

    The agent stands just north of the site on the ground layer.
    """
    world = MemoryWorld()
    if not blueprint.blocks:
        world.flat_ground(GROUND_MARGIN)
        return world

    area = blueprint.bounds()
    ground_y = area.min_y - 1
    world.fill(
        (area.min_x - GROUND_MARGIN, ground_y, area.min_z - GROUND_MARGIN),
        (area.max_x + GROUND_MARGIN, ground_y, area.max_z + GROUND_MARGIN),
        "grass_block",
    )

    for material, count in blueprint.required_materials().items():
        world.give(material, count * SPARE_FACTOR)
    for tool in STARTER_TOOLS:
        world.give(tool, 1)

    center = blueprint.center()
    world.position = Position(x=center.x, y=area.min_y, z=area.min_z - 2)
    return world


def parse_origin(value: str) -> tuple[int, int, int]:
    """Parse "x,y,z" into integers.

    Raises:
        ValueError: If value is not three comma separated integers
    """
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 3:
        raise ValueError(f"Origin must be x,y,z: {value!r}")
    x, y, z = (int(p) for p in parts)
    return x, y, z
