"""Shared pytest fixtures for Mason tests.

Provides an in-memory world with flat ground, a configuration without
delays, a controllable clock and a recording sleep.
"""

import asyncio
from pathlib import Path

import pytest

from mason.builder.blueprint import Blueprint, create_hut_blueprint, create_wall_blueprint
from mason.builder.config import BuilderConfig, GuardianConfig, ManagerConfig, SessionConfig, VerifierConfig
from mason.drivers.memory import MemoryWorld
from mason.protocols.world import Position


class FakeClock:
    """Monotonic clock moved by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that returns immediately and remembers delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class GatedWorld(MemoryWorld):
    """MemoryWorld whose placements wait until `release` is set.

    `entered` is set by the first placement; `cancelled` records whether a
    waiting placement was cancelled.
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.cancelled = False

    async def place(self, block_type: str, reference, face) -> None:
        self.entered.set()
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        await super().place(block_type, reference, face)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fast_config(tmp_path: Path) -> BuilderConfig:
    """Configuration with no waits and guardian ticks that never fire during a test."""
    return BuilderConfig(
        session=SessionConfig(sessions_dir=tmp_path / "sessions"),
        guardian=GuardianConfig(
            progress_interval=3600,
            environment_interval=3600,
            resource_interval=3600,
            health_interval=3600,
        ),
        verifier=VerifierConfig(settle_delay=0, correction_delay=0),
        manager=ManagerConfig(failure_backoff_seconds=0, verification_delay=0, logs_dir=tmp_path / "logs"),
    )


@pytest.fixture
def world() -> MemoryWorld:
    """Flat grass at y=0 around the origin with plenty of building stock."""
    world = MemoryWorld(
        position=Position(x=0.5, y=1.0, z=-6.5),
        inventory={
            "oak_planks": 256,
            "oak_door": 2,
            "cobblestone": 128,
            "stone_pickaxe": 1,
        },
    )
    world.flat_ground(12, y=0)
    return world


@pytest.fixture
def hut() -> Blueprint:
    """Small hut on the ground: floor y=1, walls y=2..4, roof y=5."""
    return create_hut_blueprint(0, 1, 0, size=2)


@pytest.fixture
def wall() -> Blueprint:
    return create_wall_blueprint(0, 1, 0, 6, 0, height=3)


@pytest.fixture
def gated_world() -> GatedWorld:
    """Same site and stock as `world`, with placements held until released."""
    world = GatedWorld(
        position=Position(x=0.5, y=1.0, z=-6.5),
        inventory={
            "oak_planks": 256,
            "oak_door": 2,
            "cobblestone": 128,
            "stone_pickaxe": 1,
        },
    )
    world.flat_ground(12, y=0)
    return world
