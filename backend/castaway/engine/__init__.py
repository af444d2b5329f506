"""
Game engine - room state machine, day resolution and the pure rules it relies on
"""

from castaway.engine.registry import RoomRegistry
from castaway.engine.state import RoomStateManager
from castaway.engine.pipeline import NarrationPipeline, ResolutionPipeline

__all__ = [
    "RoomRegistry",
    "RoomStateManager",
    "NarrationPipeline",
    "ResolutionPipeline",
]
