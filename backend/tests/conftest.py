"""
Shared pytest fixtures for Castaway backend tests.

This module provides:
- island_map: a fixed 5x5 island so tile tests are deterministic
- manager / started_manager: RoomStateManager in the lobby and in play
- registry: RoomRegistry whose rooms use the fixed island
- no_sleep: awaitable sleep that records delays instead of waiting
- Custom markers for test categorization
"""

from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

# Add backend to path for imports
backend_path = Path(__file__).parent.parent
if str(backend_path) not in sys.path:
    sys.path.insert(0, str(backend_path))

from castaway.engine.registry import RoomRegistry  # noqa: E402
from castaway.engine.state import RoomStateManager  # noqa: E402
from castaway.models.room import MapState, ResourceTiles, Stats  # noqa: E402


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


# =============================================================================
# Map Fixtures
# =============================================================================


WATER = ["0,4", "4,0", "4,4"]


def build_island_map() -> MapState:
    """Fixed island.

    Layout (W = water, S = start):
        row 0:  .  .  S  .  W
        row 1:  .  .  .  .  .
        row 2:  .  .  .  .  .
        row 3:  .  .  .  .  .
        row 4:  W  .  .  .  W
    """
    land = [f"{r},{c}" for r in range(5) for c in range(5) if f"{r},{c}" not in WATER]
    return MapState(
        land_tiles=land,
        water_tiles=list(WATER),
        starting_tile="0,2",
        explored_tiles=["0,2"],
        resource_tiles=ResourceTiles(
            herbs="2,2",
            deer="3,2",
            spring="2,1",
            bottle="0,1",
            coconut="0,3",
            clams=["1,0", "4,1"],
        ),
    )


@pytest.fixture
def island_map() -> MapState:
    return build_island_map()


# =============================================================================
# Room Fixtures
# =============================================================================


def make_manager(code: str = "ABCD") -> RoomStateManager:
    return RoomStateManager(code, map_factory=build_island_map, rng=random.Random(7))


@pytest.fixture
def manager() -> RoomStateManager:
    """Empty lobby for room ABCD."""
    return make_manager()


@pytest.fixture
def started_manager() -> RoomStateManager:
    """Room ABCD with Alice (p1) and Bob (p2), game started, day 1."""
    manager = make_manager()
    manager.join("p1", "Alice", "she/her", Stats(strength=2, intelligence=2, charisma=2), "ENFP")
    manager.join("p2", "Bob", "he/him", Stats(strength=3, intelligence=2, charisma=1), "ISTJ")
    manager.start_game()
    return manager


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry(manager_factory=make_manager)


# =============================================================================
# Timing Fixtures
# =============================================================================


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers every requested delay."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()
