"""Pre-build gates.

Four independent checks run before construction starts: materials,
terrain, environment and tools. The build may proceed only if all pass,
unless the caller forces it.
"""

import logging
import time
from typing import Any, Protocol

from pydantic import BaseModel, Field

from mason.builder.blueprint import Blueprint
from mason.builder.config import BuilderConfig, CapabilityTables, GuardianThresholds
from mason.builder.events import GateCompletedEvent
from mason.builder.monitors import WorldSnapshot, hostile_entities, is_night
from mason.bus import EventBus
from mason.exceptions import ValidationFailure
from mason.protocols.world import WorldPort, is_empty

logger = logging.getLogger(__name__)


class GateResult(BaseModel):
    """Result of running a pre-build gate."""

    gate: str
    passed: bool
    duration_seconds: float
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class Gate(Protocol):
    """Protocol for pre-build gates."""

    name: str
    description: str

    async def run(self, blueprint: Blueprint, world: WorldPort) -> GateResult:
        """Execute gate and return result."""
        ...


async def _inventory_counts(world: WorldPort) -> dict[str, int]:
    counts: dict[str, int] = {}
    for item in await world.inventory_items():
        counts[item.name] = counts.get(item.name, 0) + item.count
    return counts


class MaterialsGate:
    """Blueprint materials must all be in the inventory."""

    name = "materials"
    description = "Required materials available"

    async def run(self, blueprint: Blueprint, world: WorldPort) -> GateResult:
        start_time = time.time()
        required = blueprint.required_materials()
        inventory = await _inventory_counts(world)

        missing = [
            {"material": material, "needed": needed, "have": inventory.get(material, 0)}
            for material, needed in required.items()
            if inventory.get(material, 0) < needed
        ]

        if missing:
            message = "Missing materials: " + ", ".join(f"{m['needed'] - m['have']} {m['material']}" for m in missing)
        else:
            message = "All required materials available"

        return GateResult(
            gate=self.name,
            passed=not missing,
            duration_seconds=time.time() - start_time,
            message=message,
            details={"missing": missing, "required": required},
        )


class TerrainGate:
    """Nothing but natural terrain may occupy the build area."""

    name = "terrain"
    description = "Build area free of obstacles"

    def __init__(self, capabilities: CapabilityTables | None = None) -> None:
        self.capabilities = capabilities or CapabilityTables()

    async def run(self, blueprint: Blueprint, world: WorldPort) -> GateResult:
        start_time = time.time()
        obstacles = []

        if blueprint.blocks:
            for x, y, z in blueprint.bounds().cells():
                block = await world.block_at(x, y, z)
                if not is_empty(block) and block.name not in self.capabilities.natural_terrain:
                    obstacles.append({"x": x, "y": y, "z": z, "block_type": block.name})

        return GateResult(
            gate=self.name,
            passed=not obstacles,
            duration_seconds=time.time() - start_time,
            message=f"{len(obstacles)} terrain obstacles found in build area" if obstacles else "Build area is clear",
            details={"obstacles": obstacles},
        )


class EnvironmentGate:
    """No rain, no night, no hostile mobs close by."""

    name = "environment"
    description = "Safe building conditions"

    def __init__(
        self,
        thresholds: GuardianThresholds | None = None,
        capabilities: CapabilityTables | None = None,
    ) -> None:
        self.thresholds = thresholds or GuardianThresholds()
        self.capabilities = capabilities or CapabilityTables()

    async def run(self, blueprint: Blueprint, world: WorldPort) -> GateResult:
        start_time = time.time()
        weather = await world.weather()
        snapshot = WorldSnapshot(
            now=start_time,
            position=await world.agent_position(),
            weather=weather,
            entities=tuple(await world.nearby_entities(self.thresholds.hostile_radius)),
        )

        issues = []
        if weather.raining:
            issues.append("Raining - may affect visibility and movement")
        if is_night(weather, self.thresholds):
            issues.append("Night time - reduced visibility and mob spawning")
        mobs = hostile_entities(snapshot, self.thresholds, self.capabilities)
        if mobs:
            issues.append(f"{len(mobs)} hostile mobs nearby")

        return GateResult(
            gate=self.name,
            passed=not issues,
            duration_seconds=time.time() - start_time,
            message=f"Environment issues: {', '.join(issues)}" if issues else "Environment conditions are good",
            details={
                "issues": issues,
                "time_of_day": weather.time_of_day,
                "raining": weather.raining,
                "hostile_mobs": [m.name for m in mobs],
            },
        )


class ToolsGate:
    """At least one digging tool from the tools table."""

    name = "tools"
    description = "Digging tools available"

    def __init__(self, capabilities: CapabilityTables | None = None) -> None:
        self.capabilities = capabilities or CapabilityTables()

    async def run(self, blueprint: Blueprint, world: WorldPort) -> GateResult:
        start_time = time.time()
        inventory = await _inventory_counts(world)
        tools = [name for name in self.capabilities.tools if inventory.get(name, 0) > 0]

        return GateResult(
            gate=self.name,
            passed=bool(tools),
            duration_seconds=time.time() - start_time,
            message=f"Tools available: {', '.join(tools)}" if tools else "No tools available - may need to craft some",
            details={"tools": tools},
        )


def default_gates(config: BuilderConfig) -> list[Gate]:
    return [
        MaterialsGate(),
        TerrainGate(config.capabilities),
        EnvironmentGate(config.guardian.thresholds, config.capabilities),
        ToolsGate(config.capabilities),
    ]


async def run_gates(
    blueprint: Blueprint,
    world: WorldPort,
    config: BuilderConfig,
    gates: list[Gate] | None = None,
    bus: EventBus | None = None,
    session_id: str | None = None,
) -> list[GateResult]:
    """Run every pre-build gate independently.

    A gate that raises is reported as failed; the others still run.

    Example:
        results = await run_gates(blueprint, world, load_builder_config())
        for result in results:
            print(f"{result.gate}: {'PASS' if result.passed else 'FAIL'}")
    """
    results: list[GateResult] = []

    for gate in gates if gates is not None else default_gates(config):
        start_time = time.time()
        try:
            result = await gate.run(blueprint, world)
        except Exception as e:
            logger.exception("Gate %s raised", gate.name)
            result = GateResult(
                gate=gate.name,
                passed=False,
                duration_seconds=time.time() - start_time,
                message=f"Error running {gate.name} gate: {e}",
            )
        results.append(result)

        if result.passed:
            logger.info("Gate %s passed: %s", result.gate, result.message)
        else:
            logger.warning("Gate %s failed: %s", result.gate, result.message)

        if bus is not None:
            bus.emit(
                GateCompletedEvent(
                    session_id=session_id,
                    gate=result.gate,
                    passed=result.passed,
                    message=result.message,
                )
            )

    return results


def ensure_gates_passed(results: list[GateResult]) -> None:
    """Raise ValidationFailure listing every failed gate."""
    failures = [r for r in results if not r.passed]
    if failures:
        raise ValidationFailure(failures)


def format_gate_failures(results: list[GateResult]) -> str:
    """Format gate failures into one line.

    Example:
        format_gate_failures(results)
        # "Gates failed: materials (Missing materials: 3 oak_planks), tools"
    """
    failures = [r for r in results if not r.passed]

    if not failures:
        return "All gates passed"

    return "Gates failed: " + ", ".join(f"{r.gate} ({r.message})" for r in failures)
