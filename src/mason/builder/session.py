"""BuildSession - the construction phase state machine.

A session owns the progress counters and the checkpoint history of one
construction attempt. Block placement goes through the WorldPort and every
placement is checked by the BuildVerifier.

Concurrency: the manager's build loop and the guardian's recovery tasks
may both call into a session. Public entry points take the session lock;
methods prefixed with an underscore assume it is already held.
"""

import asyncio
import logging
import secrets
import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from mason.builder.blueprint import (
    BlockCategory,
    BlockSpec,
    Blueprint,
    classify_blocks,
    group_by_layer,
)
from mason.builder.checkpoints import Checkpoint, CheckpointStore
from mason.builder.config import CapabilityTables, SessionConfig
from mason.builder.events import CheckpointSavedEvent
from mason.builder.phases import CONSTRUCTION_PLAN, BuildProgress, FailedBlock, Phase
from mason.builder.verifier import BuildVerifier, FunctionalityReport, StructureReport
from mason.bus import EventBus, NullEventBus
from mason.exceptions import PlacementFault, WorldFault
from mason.protocols.world import InventoryItem, Position, WorldPort, is_empty

logger = logging.getLogger(__name__)

FailureListener = Callable[[FailedBlock], Awaitable[None]]


def generate_session_id() -> str:
    """Time plus random derived id, e.g. build-20250101-120000-a1b2c3."""
    return f"build-{datetime.now():%Y%m%d-%H%M%S}-{secrets.token_hex(3)}"


class BuildSession:
    """Phase state machine for one construction attempt."""

    def __init__(
        self,
        blueprint: Blueprint,
        world: WorldPort,
        verifier: BuildVerifier,
        *,
        session_id: str | None = None,
        building_type: str | None = None,
        config: SessionConfig | None = None,
        capabilities: CapabilityTables | None = None,
        store: CheckpointStore | None = None,
        bus: EventBus | None = None,
        on_placement_failure: FailureListener | None = None,
    ) -> None:
        self.blueprint = blueprint
        self.world = world
        self.verifier = verifier
        self.session_id = session_id or generate_session_id()
        self.building_type = building_type or blueprint.building_type
        self.config = config or SessionConfig()
        self.capabilities = capabilities or CapabilityTables()
        self.store = store or CheckpointStore(self.config.sessions_dir or Path.cwd() / ".mason" / "sessions")
        self.bus: EventBus = bus or NullEventBus()
        self.on_placement_failure = on_placement_failure

        self.phase = Phase.PLANNING
        self.progress = BuildProgress(total_blocks=len(blueprint.blocks))
        self.checkpoints: list[Checkpoint] = []
        self.shortfalls: dict[str, int] = {}
        self.last_structure: StructureReport | None = None
        self.last_functionality: FunctionalityReport | None = None

        self._next_sequence = 1
        self._lock = asyncio.Lock()
        self._stop_requested = False
        self._started = time.monotonic()
        self._partition = classify_blocks(blueprint, self.capabilities.detail_blocks)

        self.verifier.session_id = self.session_id
        logger.info("Starting %s build session %s", self.building_type, self.session_id)

    # ------------------------------------------------------------------
    # Loading and listing
    # ------------------------------------------------------------------

    @classmethod
    def load_session(
        cls,
        session_id: str,
        world: WorldPort,
        verifier: BuildVerifier,
        *,
        config: SessionConfig | None = None,
        capabilities: CapabilityTables | None = None,
        store: CheckpointStore | None = None,
        bus: EventBus | None = None,
    ) -> "BuildSession":
        """Rebuild a session from its latest checkpoint.

        Raises:
            SessionNotFoundError: If no checkpoint exists for session_id
        """
        config = config or SessionConfig()
        store = store or CheckpointStore(config.sessions_dir or Path.cwd() / ".mason" / "sessions")
        latest = store.latest(session_id)

        session = cls(
            latest.blueprint,
            world,
            verifier,
            session_id=latest.session_id,
            building_type=latest.building_type,
            config=config,
            capabilities=capabilities,
            store=store,
            bus=bus,
        )
        session.phase = latest.phase
        session.progress = latest.progress.model_copy(deep=True)
        session.checkpoints = [latest]
        session._next_sequence = latest.sequence + 1

        logger.info("Loaded session %s from checkpoint %d (%s phase)", session_id, latest.sequence, latest.phase.value)
        return session

    @staticmethod
    def list_sessions(sessions_dir: Path) -> list[dict[str, Any]]:
        return CheckpointStore(sessions_dir).list_sessions()

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    async def create_checkpoint(self, description: str = "") -> Checkpoint:
        async with self._lock:
            return await self._checkpoint(description)

    async def _checkpoint(self, description: str) -> Checkpoint:
        position: Position | None = None
        inventory: list[InventoryItem] = []
        try:
            position = await self.world.agent_position()
            inventory = await self.world.inventory_items()
        except WorldFault as e:
            logger.warning("Checkpoint without agent snapshot: %s", e)

        checkpoint = Checkpoint(
            session_id=self.session_id,
            sequence=self._next_sequence,
            phase=self.phase,
            progress=self.progress.model_copy(deep=True),
            agent_position=position,
            agent_inventory=inventory,
            description=description or "Auto-checkpoint",
            building_type=self.building_type,
            blueprint=self.blueprint,
        )
        path = self.store.save(checkpoint)
        self.checkpoints.append(checkpoint)
        self._next_sequence += 1

        logger.info("Checkpoint %d saved: %s", checkpoint.sequence, checkpoint.description)
        self.bus.emit(
            CheckpointSavedEvent(
                session_id=self.session_id,
                sequence=checkpoint.sequence,
                phase=self.phase.value,
                description=checkpoint.description,
                path=str(path),
            )
        )
        return checkpoint

    # ------------------------------------------------------------------
    # Phase transitions
    # ------------------------------------------------------------------

    async def advance_phase(self) -> Phase:
        """Move to the next phase and checkpoint the transition.

        At COMPLETE nothing changes and COMPLETE is returned again.
        """
        async with self._lock:
            if self.phase is Phase.COMPLETE:
                return Phase.COMPLETE

            finished = self.phase
            self.progress.completed_phases.append(finished)
            self.phase = finished.next()

            if self.phase is Phase.COMPLETE:
                logger.info("All phases complete")
                await self._checkpoint("All phases complete")
            else:
                logger.info("Advancing to phase: %s", self.phase.value)
                await self._checkpoint(f"Phase transition to {self.phase.value}")
            return self.phase

    async def execute_current_phase(self) -> bool:
        """Run the handler of the current phase.

        Returns False when the handler could not finish (stop requested).
        Placement faults are recorded, never raised.
        """
        async with self._lock:
            logger.info("Executing phase: %s", self.phase.value)
            handlers = {
                Phase.PLANNING: self._execute_planning,
                Phase.RESOURCE_GATHERING: self._execute_resource_gathering,
                Phase.SITE_PREPARATION: self._execute_site_preparation,
                Phase.FOUNDATION: self._execute_foundation,
                Phase.WALLS: self._execute_walls,
                Phase.ROOF: self._execute_roof,
                Phase.DETAILS: self._execute_details,
                Phase.VERIFICATION: self._execute_verification,
            }
            handler = handlers.get(self.phase)
            if handler is None:
                return True
            return await handler()

    # ------------------------------------------------------------------
    # Phase handlers
    # ------------------------------------------------------------------

    async def _execute_planning(self) -> bool:
        materials = self.blueprint.required_materials()
        inventory = await self._inventory_counts()
        logger.info("Required materials: %s", ", ".join(f"{n} x{c}" for n, c in materials.items()) or "none")
        logger.info("Inventory holds %d item types", len(inventory))
        logger.info("Construction plan has %d steps", len(CONSTRUCTION_PLAN))

        await self._checkpoint("Planning phase completed")
        return True

    async def _execute_resource_gathering(self) -> bool:
        inventory = await self._inventory_counts()
        self.shortfalls = {
            material: needed - inventory.get(material, 0)
            for material, needed in self.blueprint.required_materials().items()
            if inventory.get(material, 0) < needed
        }
        for material, missing in self.shortfalls.items():
            logger.warning("Need %d more %s", missing, material)

        await self._checkpoint("Resource gathering completed")
        return True

    async def _execute_site_preparation(self) -> bool:
        if self.blueprint.clear_area:
            logger.info("Clearing construction area")
            if not await self._clear_area():
                return False
        if self.blueprint.level_ground:
            logger.info("Leveling the ground")
            if not await self._level_ground():
                return False

        await self._checkpoint("Site preparation completed")
        return True

    async def _clear_area(self) -> bool:
        expected = self.blueprint.expected_at()
        for cell in self.blueprint.bounds().cells():
            if self._stop_requested:
                return False
            try:
                block = await self.world.block_at(*cell)
            except WorldFault as e:
                logger.warning("Could not inspect %s while clearing: %s", cell, e.reason)
                continue
            if is_empty(block) or expected.get(cell) == block.name:
                continue
            try:
                await self.world.dig(cell)
            except WorldFault as e:
                logger.warning("Could not clear %s at %s: %s", block.name, cell, e.reason)
        return True

    async def _level_ground(self) -> bool:
        for block in self._partition[BlockCategory.FOUNDATION]:
            if self._stop_requested:
                return False
            below = (block.x, block.y - 1, block.z)
            try:
                ground = await self.world.block_at(*below)
            except WorldFault as e:
                logger.warning("Could not inspect ground at %s: %s", below, e.reason)
                continue
            if not is_empty(ground):
                continue
            material = await self._first_available(self.capabilities.building_materials)
            if material is None:
                logger.warning("No building material left to level the ground")
                break
            try:
                if not await self.verifier.place_against_reference(material, below):
                    logger.warning("No reference block to fill ground at %s", below)
            except WorldFault as e:
                logger.warning("Could not fill ground at %s: %s", below, e.reason)
        return True

    async def _execute_foundation(self) -> bool:
        logger.info("Laying the foundation")
        for block in self._partition[BlockCategory.FOUNDATION]:
            if self._stop_requested:
                return False
            if await self._place_block(block) and self.progress.placed_blocks % self.config.checkpoint_every == 0:
                await self._checkpoint(f"Foundation progress: {self.progress.placed_blocks} blocks")

        await self._checkpoint("Foundation phase completed")
        return True

    async def _execute_walls(self) -> bool:
        for y, layer in group_by_layer(self._partition[BlockCategory.WALL]):
            logger.info("Building wall layer at Y=%d (%d blocks)", y, len(layer))
            for block in layer:
                if self._stop_requested:
                    return False
                await self._place_block(block)
            await self._checkpoint(f"Wall layer Y={y} completed")

        await self._checkpoint("Walls phase completed")
        return True

    async def _execute_roof(self) -> bool:
        logger.info("Adding the roof")
        return await self._place_all(self._partition[BlockCategory.ROOF], "Roof phase completed")

    async def _execute_details(self) -> bool:
        logger.info("Adding doors, windows and details")
        return await self._place_all(self._partition[BlockCategory.DETAIL], "Details phase completed")

    async def _execute_verification(self) -> bool:
        self.last_structure = await self.verifier.validate_structure(self.blueprint)
        self.last_functionality = await self.verifier.validate_functionality(self.building_type, self.blueprint)
        logger.info(
            "Structure accuracy: %.1f%%, functionality: %s",
            self.last_structure.accuracy,
            "PASSED" if self.last_functionality.functional else "FAILED",
        )

        await self._checkpoint("Verification phase completed - Build finished")
        return True

    async def _place_all(self, blocks: list[BlockSpec], description: str) -> bool:
        for block in blocks:
            if self._stop_requested:
                return False
            await self._place_block(block)
        await self._checkpoint(description)
        return True

    # ------------------------------------------------------------------
    # Block placement
    # ------------------------------------------------------------------

    async def _place_block(self, block: BlockSpec) -> bool:
        """Place and verify one block.

        Returns False when the cell already held the expected block and
        nothing was attempted. A failed read counts as a failed attempt.
        """
        try:
            current = await self.world.block_at(*block.cell)
        except WorldFault as e:
            self.progress.placed_blocks += 1
            await self._record_failure(block, e.reason)
            return True
        if not is_empty(current) and current.name == block.type:
            logger.debug("%s already at %s", block.type, block.cell)
            return False

        self.progress.placed_blocks += 1
        try:
            if is_empty(current):
                if not await self.verifier.place_against_reference(block.type, block.cell):
                    raise PlacementFault(block.type, block.cell, "no reference block to place against")
            elif not await self.verifier.correct_block_placement(block.type, *block.cell):
                raise PlacementFault(block.type, block.cell, f"cell occupied by {current.name}")

            verification = await self.verifier.verify_block_placement(block.type, *block.cell)
            if not (verification.success or verification.corrected):
                raise PlacementFault(block.type, block.cell, verification.reason or "verification failed")
        except WorldFault as e:
            await self._record_failure(block, e.reason)
        except PlacementFault as e:
            await self._record_failure(block, e.reason)
        return True

    async def _record_failure(self, block: BlockSpec, reason: str) -> None:
        logger.warning("Failed to place %s at %s: %s", block.type, block.cell, reason)
        failed = FailedBlock(block=block, reason=reason)
        self.progress.failed_blocks.append(failed)
        if self.on_placement_failure is not None:
            await self.on_placement_failure(failed)

    async def _inventory_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for item in await self.world.inventory_items():
            counts[item.name] = counts.get(item.name, 0) + item.count
        return counts

    async def _first_available(self, candidates: list[str]) -> str | None:
        counts = await self._inventory_counts()
        for name in candidates:
            if counts.get(name, 0) > 0:
                return name
        return None

    # ------------------------------------------------------------------
    # Stop, interruption and reporting
    # ------------------------------------------------------------------

    def request_stop(self) -> None:
        """Ask running handlers to return at the next block boundary."""
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    async def handle_interruption(self, reason: str = "Unknown") -> dict[str, Any]:
        """Checkpoint the current state and describe how to resume."""
        logger.warning("Handling interruption: %s", reason)
        async with self._lock:
            await self._checkpoint(f"Interruption: {reason}")
        return {
            "can_resume": True,
            "session_id": self.session_id,
            "phase": self.phase.value,
            "progress": self.progress_report(),
        }

    def progress_report(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "building_type": self.building_type,
            "phase": self.phase.value,
            "percentage": round(self.progress.percentage, 1),
            "placed_blocks": self.progress.placed_blocks,
            "total_blocks": self.progress.total_blocks,
            "failed_blocks": len(self.progress.failed_blocks),
            "completed_phases": [p.value for p in self.progress.completed_phases],
            "checkpoints": self._next_sequence - 1,
            "duration_seconds": time.monotonic() - self._started,
        }
