"""Structural and functional verification of built structures.

BuildVerifier diffs the live world against a blueprint, computes accuracy,
runs per-building functional test batteries and issues bounded batches of
corrective actions through the WorldPort.

Every fix is best-effort: a WorldFault on one block is logged and the batch
carries on.
"""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from mason.builder.blueprint import BlockSpec, Blueprint
from mason.builder.config import CapabilityTables, VerifierConfig
from mason.builder.events import (
    BlockVerificationFailedEvent,
    FunctionalityValidatedEvent,
    StructureValidatedEvent,
)
from mason.bus import EventBus, NullEventBus
from mason.exceptions import WorldFault
from mason.protocols.world import Cell, WorldPort, is_empty

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

# Reference search order: below, above, east, west, south, north
NEIGHBOR_OFFSETS: list[Cell] = [
    (0, -1, 0),
    (0, 1, 0),
    (1, 0, 0),
    (-1, 0, 0),
    (0, 0, 1),
    (0, 0, -1),
]

_LATERAL_OFFSETS: list[Cell] = [(1, 0, 0), (-1, 0, 0), (0, 0, 1), (0, 0, -1)]


def _offset(cell: Cell, delta: Cell) -> Cell:
    return (cell[0] + delta[0], cell[1] + delta[1], cell[2] + delta[2])


class Verification(BaseModel):
    """Outcome of checking one placement."""

    block_type: str
    position: Cell
    expected_id: str
    actual_id: str | None = None
    success: bool
    reason: str | None = None
    attempt: int = 1
    corrected: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class WrongBlock(BaseModel):
    expected: BlockSpec
    actual: str


class StructureReport(BaseModel):
    """Blueprint-vs-world diff."""

    total_blocks: int
    correct_blocks: int
    missing_blocks: list[BlockSpec] = Field(default_factory=list)
    wrong_blocks: list[WrongBlock] = Field(default_factory=list)
    accuracy: float
    is_complete: bool
    missing_fixed: int = 0
    wrong_fixed: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FunctionalTest(BaseModel):
    """Result of one functional test."""

    test: str
    passed: bool
    issue: str | None = None
    note: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class FunctionalityReport(BaseModel):
    building_type: str
    functional: bool
    tests: list[FunctionalTest] = Field(default_factory=list)
    fixes_applied: int = 0

    @property
    def passed_tests(self) -> int:
        return sum(1 for t in self.tests if t.passed)

    @property
    def failed_tests(self) -> list[str]:
        return [t.test for t in self.tests if not t.passed]


class _ScanFrame(BaseModel):
    """Where functional scans are centred and how far they reach.

    radius is None when scans fall back to the configured radii.
    """

    origin: Cell
    radius: int | None = None

    @property
    def floor_y(self) -> int:
        return self.origin[1] - 1


class BuildVerifier:
    """Compares live world state to blueprints and corrects it."""

    def __init__(
        self,
        world: WorldPort,
        config: VerifierConfig | None = None,
        capabilities: CapabilityTables | None = None,
        bus: EventBus | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.world = world
        self.config = config or VerifierConfig()
        self.capabilities = capabilities or CapabilityTables()
        self.bus: EventBus = bus or NullEventBus()
        self._sleep = sleep
        self.session_id: str | None = None
        self.history: list[Verification] = []

    # ------------------------------------------------------------------
    # Per-block verification
    # ------------------------------------------------------------------

    async def verify_block_placement(self, block_type: str, x: int, y: int, z: int, attempt: int = 1) -> Verification:
        """Check one placement after the settle delay.

        A different non-empty block is corrected in place. An empty cell is
        only recorded; the structure sweep retries it.
        """
        logger.debug("Verifying %s at (%d,%d,%d), attempt %d", block_type, x, y, z, attempt)
        await self._sleep(self.config.settle_delay)

        actual = await self.world.block_at(x, y, z)
        verification = Verification(
            block_type=block_type,
            position=(x, y, z),
            expected_id=block_type,
            actual_id=None if is_empty(actual) else actual.name,
            success=not is_empty(actual) and actual.name == block_type,
            attempt=attempt,
        )

        if not verification.success:
            if verification.actual_id is None:
                verification.reason = "Block not placed (still air)"
            else:
                verification.reason = f"Wrong block type: expected {block_type}, got {verification.actual_id}"
                logger.info("Auto-correcting (%d,%d,%d): replacing %s with %s", x, y, z, verification.actual_id, block_type)
                verification.corrected = await self.correct_block_placement(block_type, x, y, z)

            logger.warning("Block verification failed at (%d,%d,%d): %s", x, y, z, verification.reason)
            self.bus.emit(
                BlockVerificationFailedEvent(
                    session_id=self.session_id,
                    block_type=block_type,
                    position=(x, y, z),
                    reason=verification.reason,
                    corrected=verification.corrected,
                )
            )

        self.history.append(verification)
        return verification

    async def correct_block_placement(self, block_type: str, x: int, y: int, z: int) -> bool:
        """Replace whatever occupies a cell with block_type.

        Returns True when the expected block was placed.
        """
        cell = (x, y, z)
        if not await self._has_item(block_type):
            logger.warning("Cannot correct (%d,%d,%d): no %s in inventory", x, y, z, block_type)
            return False

        try:
            if not is_empty(await self.world.block_at(x, y, z)):
                await self.world.dig(cell)
                await self._sleep(self.config.correction_delay)
            return await self.place_against_reference(block_type, cell)
        except WorldFault as e:
            logger.warning("Correction failed at (%d,%d,%d): %s", x, y, z, e)
            return False

    async def find_reference_block(self, cell: Cell) -> Cell | None:
        """First non-empty axis-aligned neighbor of a cell, or None."""
        for delta in NEIGHBOR_OFFSETS:
            neighbor = _offset(cell, delta)
            if not is_empty(await self.world.block_at(*neighbor)):
                return neighbor
        return None

    async def place_against_reference(self, block_type: str, cell: Cell) -> bool:
        """Place block_type into cell against a reference neighbor.

        Returns False when no neighbor exists. WorldFault propagates.
        """
        reference = await self.find_reference_block(cell)
        if reference is None:
            logger.debug("No reference block next to %s, skipping", cell)
            return False
        face = (cell[0] - reference[0], cell[1] - reference[1], cell[2] - reference[2])
        await self.world.place(block_type, reference, face)
        return True

    # ------------------------------------------------------------------
    # Structure validation
    # ------------------------------------------------------------------

    async def validate_structure(self, blueprint: Blueprint, auto_fix: bool = True) -> StructureReport:
        """Classify every blueprint cell as correct, missing or wrong.

        With auto_fix, one bounded batch of missing and one of wrong blocks
        is corrected afterwards. The returned accuracy describes the world
        before those fixes.
        """
        missing: list[BlockSpec] = []
        wrong: list[WrongBlock] = []
        correct = 0

        for block in blueprint.blocks:
            actual = await self.world.block_at(block.x, block.y, block.z)
            if is_empty(actual):
                missing.append(block)
            elif actual.name != block.type:
                wrong.append(WrongBlock(expected=block, actual=actual.name))
            else:
                correct += 1

        total = len(blueprint.blocks)
        accuracy = correct / total * 100 if total else 100.0
        report = StructureReport(
            total_blocks=total,
            correct_blocks=correct,
            missing_blocks=missing,
            wrong_blocks=wrong,
            accuracy=accuracy,
            is_complete=not missing and not wrong,
        )

        logger.info(
            "Structure analysis: %d total, %d correct, %d missing, %d wrong (%.1f%%)",
            total,
            correct,
            len(missing),
            len(wrong),
            accuracy,
        )

        if auto_fix and missing:
            logger.info("Found %d missing blocks, fixing up to %d", len(missing), self.config.fix_batch_size)
            report.missing_fixed = await self.fix_missing_blocks(missing)
        if auto_fix and wrong:
            logger.info("Found %d wrong blocks, correcting up to %d", len(wrong), self.config.fix_batch_size)
            report.wrong_fixed = await self.fix_wrong_blocks(wrong)

        self.bus.emit(
            StructureValidatedEvent(
                session_id=self.session_id,
                total_blocks=total,
                correct_blocks=correct,
                missing_blocks=len(missing),
                wrong_blocks=len(wrong),
                accuracy=accuracy,
                is_complete=report.is_complete,
            )
        )
        return report

    async def fix_missing_blocks(self, missing: list[BlockSpec]) -> int:
        fixed = 0
        for block in missing[: self.config.fix_batch_size]:
            if not await self._has_item(block.type):
                logger.debug("No %s in inventory for missing block at %s", block.type, block.cell)
                continue
            try:
                if await self.place_against_reference(block.type, block.cell):
                    fixed += 1
                    logger.info("Fixed missing block: %s at %s", block.type, block.cell)
            except WorldFault as e:
                logger.warning("Failed to fix missing block at %s: %s", block.cell, e)
        return fixed

    async def fix_wrong_blocks(self, wrong: list[WrongBlock]) -> int:
        fixed = 0
        for entry in wrong[: self.config.fix_batch_size]:
            block = entry.expected
            if await self.correct_block_placement(block.type, block.x, block.y, block.z):
                fixed += 1
        return fixed

    # ------------------------------------------------------------------
    # Functional validation
    # ------------------------------------------------------------------

    async def validate_functionality(
        self,
        building_type: str,
        blueprint: Blueprint | None = None,
        origin: Cell | None = None,
        auto_fix: bool = True,
    ) -> FunctionalityReport:
        """Run the test battery for a building type.

        Scans are centred on origin: explicit, else derived from the
        blueprint (centre column, standing on the lowest layer), else the
        agent's cell.
        """
        frame = await self._scan_frame(blueprint, origin)
        logger.info("Testing functionality of %s around %s", building_type, frame.origin)

        match building_type:
            case "house" | "hut":
                tests = [
                    await self.check_doors(frame),
                    await self.check_enclosure(frame),
                    await self.check_roof_coverage(frame),
                    await self.check_interior_clearing(frame),
                    await self.check_structural_integrity(frame),
                ]
            case "wall":
                tests = [
                    await self.check_wall_continuity(blueprint),
                    await self.check_wall_height(blueprint),
                ]
            case _:
                tests = [
                    await self.check_floating_blocks(frame),
                    await self.check_structural_stability(frame),
                ]

        for test in tests:
            if test.passed:
                logger.info("[%s] passed: %s", test.test, test.note or "ok")
            else:
                logger.warning("[%s] failed: %s", test.test, test.issue)

        report = FunctionalityReport(
            building_type=building_type,
            functional=all(t.passed for t in tests),
            tests=tests,
        )
        logger.info(
            "%s functionality check: %s (%d/%d tests passed)",
            building_type,
            "PASSED" if report.functional else "FAILED",
            report.passed_tests,
            len(tests),
        )

        if auto_fix and not report.functional:
            report.fixes_applied = await self.attempt_structural_fixes(tests)

        self.bus.emit(
            FunctionalityValidatedEvent(
                session_id=self.session_id,
                building_type=building_type,
                functional=report.functional,
                passed_tests=report.passed_tests,
                total_tests=len(tests),
            )
        )
        return report

    async def _scan_frame(self, blueprint: Blueprint | None, origin: Cell | None) -> _ScanFrame:
        radius = None
        if blueprint is not None and blueprint.blocks:
            area = blueprint.bounds()
            radius = max(
                math.ceil((area.max_x - area.min_x) / 2),
                math.ceil((area.max_z - area.min_z) / 2),
            )
            if origin is None:
                center = blueprint.center()
                origin = (math.floor(center.x), area.min_y + 1, math.floor(center.z))
        if origin is None:
            origin = (await self.world.agent_position()).to_cell()
        return _ScanFrame(origin=origin, radius=radius)

    async def _non_empty(self, cell: Cell) -> bool:
        return not is_empty(await self.world.block_at(*cell))

    async def _floor_cells(self, frame: _ScanFrame, radius: int) -> list[Cell]:
        ox, _, oz = frame.origin
        floor = []
        for dx in range(-radius, radius + 1):
            for dz in range(-radius, radius + 1):
                cell = (ox + dx, frame.floor_y, oz + dz)
                if await self._non_empty(cell):
                    floor.append(cell)
        return floor

    async def check_doors(self, frame: _ScanFrame) -> FunctionalTest:
        ox, oy, oz = frame.origin
        radius = self.config.door_scan_radius
        height = self.config.door_scan_height
        doors = []
        for dx in range(-radius, radius + 1):
            for dy in range(-height, height + 1):
                for dz in range(-radius, radius + 1):
                    block = await self.world.block_at(ox + dx, oy + dy, oz + dz)
                    if block is not None and block.name in self.capabilities.door_blocks:
                        doors.append((ox + dx, oy + dy, oz + dz))

        if not doors:
            return FunctionalTest(test="doors_present", passed=False, issue="No doors found")
        return FunctionalTest(
            test="doors_present",
            passed=True,
            note=f"Found {len(doors)} door blocks",
            details={"count": len(doors)},
        )

    async def check_enclosure(self, frame: _ScanFrame) -> FunctionalTest:
        """Scan the perimeter ring for walls and low gaps.

        A ring with no wall block at all is an open design and passes.
        """
        ox, oy, oz = frame.origin
        radius = frame.radius if frame.radius is not None else self.config.enclosure_radius
        found_walls = False
        gaps: list[Cell] = []

        for dx in range(-radius, radius + 1):
            for dz in range(-radius, radius + 1):
                if abs(dx) != radius and abs(dz) != radius:
                    continue
                for dy in range(0, self.config.enclosure_height + 1):
                    cell = (ox + dx, oy + dy, oz + dz)
                    if await self._non_empty(cell):
                        found_walls = True
                    elif dy <= self.config.enclosure_gap_height:
                        gaps.append(cell)

        if not found_walls:
            return FunctionalTest(
                test="enclosure_check", passed=True, note="No walls detected - structure may be open design"
            )
        if len(gaps) > self.config.max_enclosure_gaps:
            return FunctionalTest(
                test="enclosure_check",
                passed=False,
                issue=f"Structure has {len(gaps)} gaps in walls",
                details={"gaps": gaps},
            )
        return FunctionalTest(
            test="enclosure_check",
            passed=True,
            note=f"Structure properly enclosed ({len(gaps)} minor gaps for doors/windows)",
            details={"gaps": gaps},
        )

    async def check_roof_coverage(self, frame: _ScanFrame) -> FunctionalTest:
        radius = frame.radius if frame.radius is not None else self.config.roof_scan_radius
        floor = await self._floor_cells(frame, radius)
        if not floor:
            return FunctionalTest(test="roof_coverage", passed=True, note="No floor detected - may be open structure")

        covered = 0
        for x, y, z in floor:
            for dy in range(self.config.roof_min_clearance, self.config.roof_max_clearance + 1):
                if await self._non_empty((x, y + dy, z)):
                    covered += 1
                    break

        uncovered = len(floor) - covered
        percent = covered / len(floor) * 100
        details = {"covered": covered, "uncovered": uncovered}
        if percent < self.config.min_roof_coverage:
            return FunctionalTest(
                test="roof_coverage",
                passed=False,
                issue=f"Insufficient roof coverage: {percent:.1f}% (need >{self.config.min_roof_coverage:.0f}%)",
                details=details,
            )
        return FunctionalTest(
            test="roof_coverage", passed=True, note=f"Good roof coverage: {percent:.1f}%", details=details
        )

    async def check_interior_clearing(self, frame: _ScanFrame) -> FunctionalTest:
        """Look for obstructions 1-3 above interior floor cells.

        The outermost ring of the scan is the wall line and is skipped.
        """
        radius = frame.radius if frame.radius is not None else self.config.interior_radius
        ox, _, oz = frame.origin
        allowed = self.capabilities.interior_allowed
        found_floor = False
        obstructions: list[Cell] = []

        for dx in range(-radius + 1, radius):
            for dz in range(-radius + 1, radius):
                floor_cell = (ox + dx, frame.floor_y, oz + dz)
                if not await self._non_empty(floor_cell):
                    continue
                found_floor = True
                for dy in range(1, self.config.interior_height + 1):
                    block = await self.world.block_at(floor_cell[0], floor_cell[1] + dy, floor_cell[2])
                    if not is_empty(block) and block.name not in allowed:
                        obstructions.append((floor_cell[0], floor_cell[1] + dy, floor_cell[2]))

        if not found_floor:
            return FunctionalTest(test="interior_clearing", passed=True, note="No interior floor detected")
        if len(obstructions) > self.config.max_interior_obstructions:
            return FunctionalTest(
                test="interior_clearing",
                passed=False,
                issue=f"Interior has {len(obstructions)} unwanted obstructions",
                details={"obstructions": obstructions},
            )
        return FunctionalTest(
            test="interior_clearing",
            passed=True,
            note=f"Interior is clear ({len(obstructions)} minor items)",
            details={"obstructions": obstructions},
        )

    async def _support_scan(self, frame: _ScanFrame) -> tuple[list[Cell], list[Cell]]:
        """Find elevated blocks with nothing below them.

        Returns (floating, unsupported): floating blocks also lack any
        lateral neighbor, unsupported ones hang off a neighbor.
        """
        radius = frame.radius + 1 if frame.radius is not None else self.config.integrity_radius
        ox, _, oz = frame.origin
        floating: list[Cell] = []
        unsupported: list[Cell] = []

        for dx in range(-radius, radius + 1):
            for dz in range(-radius, radius + 1):
                for dy in range(1, self.config.integrity_height + 1):
                    cell = (ox + dx, frame.floor_y + dy, oz + dz)
                    if not await self._non_empty(cell):
                        continue
                    if await self._non_empty(_offset(cell, (0, -1, 0))):
                        continue
                    lateral = False
                    for delta in _LATERAL_OFFSETS:
                        if await self._non_empty(_offset(cell, delta)):
                            lateral = True
                            break
                    (unsupported if lateral else floating).append(cell)

        return floating, unsupported

    async def check_structural_integrity(self, frame: _ScanFrame) -> FunctionalTest:
        floating, unsupported = await self._support_scan(frame)
        if floating:
            return FunctionalTest(
                test="structural_integrity",
                passed=False,
                issue=f"Found {len(floating)} floating blocks that may fall",
                details={"floating": floating, "unsupported": unsupported},
            )
        if len(unsupported) > self.config.max_unsupported_blocks:
            return FunctionalTest(
                test="structural_integrity",
                passed=False,
                issue=f"Found {len(unsupported)} potentially unstable blocks",
                details={"unsupported": unsupported},
            )
        return FunctionalTest(
            test="structural_integrity",
            passed=True,
            note=f"Structure is stable ({len(unsupported)} minor unsupported blocks)",
        )

    async def check_floating_blocks(self, frame: _ScanFrame) -> FunctionalTest:
        floating, _ = await self._support_scan(frame)
        if floating:
            return FunctionalTest(
                test="floating_blocks",
                passed=False,
                issue=f"Found {len(floating)} floating blocks",
                details={"floating": floating},
            )
        return FunctionalTest(test="floating_blocks", passed=True, note="No floating blocks detected")

    async def check_structural_stability(self, frame: _ScanFrame) -> FunctionalTest:
        _, unsupported = await self._support_scan(frame)
        if len(unsupported) > self.config.max_unsupported_blocks:
            return FunctionalTest(
                test="structural_stability",
                passed=False,
                issue=f"Found {len(unsupported)} blocks without support below",
                details={"unsupported": unsupported},
            )
        return FunctionalTest(test="structural_stability", passed=True, note="Structure appears stable")

    def _wall_columns(self, blueprint: Blueprint) -> dict[tuple[int, int], list[int]]:
        columns: dict[tuple[int, int], list[int]] = {}
        for block in blueprint.blocks:
            columns.setdefault((block.x, block.z), []).append(block.y)
        return {key: sorted(ys) for key, ys in columns.items()}

    async def check_wall_continuity(self, blueprint: Blueprint | None) -> FunctionalTest:
        """Every blueprint cell along the wall path must be filled."""
        if blueprint is None or not blueprint.blocks:
            return FunctionalTest(test="wall_continuity", passed=True, note="No wall path to check")

        gaps: list[Cell] = []
        for (x, z), ys in self._wall_columns(blueprint).items():
            for y in range(ys[0], ys[-1] + 1):
                if not await self._non_empty((x, y, z)):
                    gaps.append((x, y, z))

        if gaps:
            return FunctionalTest(
                test="wall_continuity",
                passed=False,
                issue=f"Wall has {len(gaps)} gaps",
                details={"gaps": gaps},
            )
        return FunctionalTest(test="wall_continuity", passed=True, note="Wall is continuous")

    async def check_wall_height(self, blueprint: Blueprint | None) -> FunctionalTest:
        """Every column along the wall path must reach the same top."""
        if blueprint is None or not blueprint.blocks:
            return FunctionalTest(test="wall_height", passed=True, note="No wall path to check")

        tops: dict[tuple[int, int], int] = {}
        for (x, z), ys in self._wall_columns(blueprint).items():
            top = ys[0] - 1
            for y in range(ys[0], ys[-1] + 1):
                if not await self._non_empty((x, y, z)):
                    break
                top = y
            tops[(x, z)] = top

        heights = set(tops.values())
        if len(heights) > 1:
            return FunctionalTest(
                test="wall_height",
                passed=False,
                issue=f"Wall height varies between {min(heights)} and {max(heights)}",
                details={"tops": {f"{x},{z}": top for (x, z), top in tops.items()}},
            )
        return FunctionalTest(test="wall_height", passed=True, note="Wall height is consistent")

    # ------------------------------------------------------------------
    # Structural fixes
    # ------------------------------------------------------------------

    async def attempt_structural_fixes(self, tests: list[FunctionalTest]) -> int:
        """Apply bounded best-effort fixes for each failed test.

        Returns the number of fixes that went through.
        """
        logger.info("Attempting to fix structural issues")
        applied = 0
        for test in tests:
            if test.passed:
                continue
            match test.test:
                case "interior_clearing":
                    applied += await self.fix_interior_obstructions(test.details.get("obstructions", []))
                case "structural_integrity" | "floating_blocks":
                    applied += await self.fix_floating_blocks(test.details.get("floating", []))
                case "enclosure_check" | "wall_continuity":
                    applied += await self.fix_wall_gaps(test.details.get("gaps", []))
                case "roof_coverage":
                    logger.info("Roof coverage improvement planned, not executed")
        return applied

    async def fix_interior_obstructions(self, obstructions: list[Cell]) -> int:
        cleared = 0
        for cell in obstructions[: self.config.structural_fix_batch_size]:
            try:
                if await self._non_empty(cell):
                    await self.world.dig(tuple(cell))
                    cleared += 1
                    await self._sleep(self.config.correction_delay)
            except WorldFault as e:
                logger.warning("Failed to clear obstruction at %s: %s", cell, e)
        return cleared

    async def fix_floating_blocks(self, floating: list[Cell]) -> int:
        supported = 0
        for x, y, z in floating[: self.config.structural_fix_batch_size]:
            support = (x, y - 1, z)
            try:
                if await self._non_empty(support):
                    continue
                material = await self._first_available(self.capabilities.structural_materials)
                if material is None:
                    logger.warning("No structural material to support block at (%d,%d,%d)", x, y, z)
                    break
                if await self.place_against_reference(material, support):
                    supported += 1
            except WorldFault as e:
                logger.warning("Failed to support floating block at (%d,%d,%d): %s", x, y, z, e)
        return supported

    async def fix_wall_gaps(self, gaps: list[Cell]) -> int:
        filled = 0
        for cell in gaps[: self.config.structural_fix_batch_size]:
            try:
                material = await self._first_available(self.capabilities.wall_materials)
                if material is None:
                    logger.warning("No wall material to fill gap at %s", cell)
                    break
                if await self.place_against_reference(material, tuple(cell)):
                    filled += 1
            except WorldFault as e:
                logger.warning("Failed to fill gap at %s: %s", cell, e)
        return filled

    # ------------------------------------------------------------------
    # Inventory helpers and stats
    # ------------------------------------------------------------------

    async def _has_item(self, name: str) -> bool:
        return any(item.name == name and item.count > 0 for item in await self.world.inventory_items())

    async def _first_available(self, candidates: list[str]) -> str | None:
        held = {item.name for item in await self.world.inventory_items() if item.count > 0}
        for name in candidates:
            if name in held:
                return name
        return None

    def verification_stats(self) -> dict[str, Any]:
        recent = self.history[-self.config.history_window :]
        success_rate = sum(1 for v in recent if v.success) / len(recent) * 100 if recent else None
        return {
            "total_verifications": len(self.history),
            "recent_success_rate": success_rate,
            "recent_count": len(recent),
        }
