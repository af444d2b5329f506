"""
Protocol definitions for the generation boundary.

The engine never talks to a language model directly. It depends on these
protocols so that the LLM-backed implementations in castaway.llm can be
swapped for deterministic fakes in tests.

Component Flow:
    RoomStateManager -> ResolutionRequest
                              |
                              v
                     OutcomeGenerator -> GenerationResult[Resolution]
                              |
                              v
                     OutcomeValidator -> Resolution (validated)
                              |
                              v
              RoomStateManager.apply_resolution
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from castaway.models.outcome import ResolutionRequest
    from castaway.models.outcome import GenerationResult
    from castaway.models.room import Room


@runtime_checkable
class OutcomeGenerator(Protocol):
    """Resolves a day's worth of player actions.

    Implementations must not raise for model-side problems; they return
    GenerationParseError or GenerationCallError instead. Anything that does
    escape is treated as a call error by the retry combinator.
    """

    async def generate(self, request: "ResolutionRequest") -> "GenerationResult":
        """Produce a Resolution for the request.

        Args:
            request: Actions, stats and island state for the day

        Returns:
            GenerationOk(Resolution) or a failure result
        """
        ...


@runtime_checkable
class NarrationGenerator(Protocol):
    """Writes the narration shown at game start and on a plain day advance."""

    async def narrate(self, room: "Room", opening: bool = False) -> "GenerationResult":
        """Produce a DayNarration for the room as it stands.

        Args:
            room: Current room state (day, players, resources, map, threads)
            opening: True for the game-start narration, False for a new day

        Returns:
            GenerationOk(DayNarration) or a failure result
        """
        ...
