"""
Pydantic models for room state, generation outcomes and the realtime protocol
"""

from castaway.models.room import (
    GroupInventory,
    MapState,
    Player,
    Resources,
    ResourceTiles,
    Room,
    Stats,
    StoryThread,
    ThreadStatus,
)
from castaway.models.outcome import (
    DayNarration,
    GenerationCallError,
    GenerationOk,
    GenerationParseError,
    GenerationResult,
    PlayerAction,
    PlayerOutcome,
    Resolution,
    ResolutionRequest,
    ResourceDelta,
    ThreadUpdate,
    ThreadUpdateType,
)

__all__ = [
    "GroupInventory",
    "MapState",
    "Player",
    "Resources",
    "ResourceTiles",
    "Room",
    "Stats",
    "StoryThread",
    "ThreadStatus",
    "DayNarration",
    "GenerationCallError",
    "GenerationOk",
    "GenerationParseError",
    "GenerationResult",
    "PlayerAction",
    "PlayerOutcome",
    "Resolution",
    "ResolutionRequest",
    "ResourceDelta",
    "ThreadUpdate",
    "ThreadUpdateType",
]
