"""
Day pipelines - turn a room's day into one validated, applied state change.

ResolutionPipeline handles the full game loop: it snapshots the day's
actions, asks the outcome generator for a Resolution, validates it and
applies it. NarrationPipeline handles the opening narration and the plain
day advance.

Both go through call_with_retry, so the day always advances exactly once
even when the generation boundary is down. Both hold the room's
resolution guard while they await, so a second day trigger for the same
room is rejected instead of interleaved.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from castaway.engine.errors import IncompleteOutcomeError, ResolutionInProgressError
from castaway.engine.protocols import NarrationGenerator, OutcomeGenerator
from castaway.engine.registry import RoomRegistry
from castaway.engine.retry import Backoff, call_with_retry, linear_backoff
from castaway.engine.state import AppliedResolution, RoomStateManager
from castaway.engine.validator import OutcomeValidator
from castaway.models.outcome import (
    DayNarration,
    GenerationOk,
    GenerationParseError,
    GenerationResult,
    PlayerOutcome,
    Resolution,
    ResolutionRequest,
)

logger = logging.getLogger(__name__)


FALLBACK_RESOLUTION_NARRATION = (
    "The survivors carry out their tasks, facing the challenges of another day on the island."
)
FALLBACK_PRIVATE_NARRATION = "{name} completes their task, maintaining their current condition."
FALLBACK_OPENING_NARRATION = (
    "You wake up on the beach, surrounded by wreckage. The sun beats down and the "
    "jungle hums behind you. Whatever happens next, you will face it together."
)
FALLBACK_DAY_NARRATION = (
    "The sun rises on another day. The survivors gather their strength and look "
    "out over the island, wondering what it will ask of them."
)


def fallback_resolution(request: ResolutionRequest) -> Resolution:
    """Neutral resolution: every acting player gets an outcome that changes nothing."""
    return Resolution(
        narration=FALLBACK_RESOLUTION_NARRATION,
        outcomes=[
            PlayerOutcome(
                player_id=player.id,
                private_narration=FALLBACK_PRIVATE_NARRATION.format(name=player.name),
            )
            for player in request.players
        ],
    )


@dataclass
class DayResolution:
    """Result of one run of the resolution pipeline"""

    code: str
    resolution: Resolution
    applied: AppliedResolution
    attempts: int
    used_fallback: bool


class _GuardedPipeline:
    """Shared retry settings and the per-room resolution guard"""

    def __init__(
        self,
        registry: RoomRegistry,
        max_attempts: int = 3,
        backoff: Backoff = linear_backoff(1.0),
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.registry = registry
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.timeout = timeout
        self.sleep = sleep

    def _claim(self, code: str) -> RoomStateManager | None:
        manager = self.registry.get(code)
        if manager is None:
            logger.warning(f"Room {code} not found, nothing to resolve")
            return None
        if not manager.try_begin_resolution():
            raise ResolutionInProgressError(code)
        return manager

    def _still_registered(self, code: str, manager: RoomStateManager) -> bool:
        """The room may have emptied (and been deleted) while we were waiting."""
        if self.registry.get(code) is manager:
            return True
        logger.info(f"Room {code} was deleted during generation, discarding result")
        return False

    async def _retry(self, attempt, fallback, label: str):
        return await call_with_retry(
            attempt,
            fallback=fallback,
            max_attempts=self.max_attempts,
            backoff=self.backoff,
            timeout=self.timeout,
            sleep=self.sleep,
            label=label,
        )


class ResolutionPipeline(_GuardedPipeline):
    """
    Resolves a day's submitted actions.

    Example:
        >>> pipeline = ResolutionPipeline(registry, ActionResolverAI())
        >>> result = await pipeline.resolve_day("ABCD")
        >>> result.used_fallback
        False
    """

    def __init__(
        self,
        registry: RoomRegistry,
        generator: OutcomeGenerator,
        validator: OutcomeValidator | None = None,
        **retry_settings,
    ):
        super().__init__(registry, **retry_settings)
        self.generator = generator
        self.validator = validator or OutcomeValidator()

    def build_request(self, manager: RoomStateManager) -> ResolutionRequest:
        return manager.build_resolution_request()

    async def _attempt(self, request: ResolutionRequest) -> GenerationResult:
        """One generation attempt, with coverage gaps reported as parse errors."""
        result = await self.generator.generate(request)
        if not isinstance(result, GenerationOk):
            return result
        try:
            validated = self.validator.validate(
                result.value, request.player_ids, set(request.adjacent_tiles)
            )
        except IncompleteOutcomeError as e:
            return GenerationParseError(str(e))
        return GenerationOk(validated)

    async def resolve_day(self, code: str) -> DayResolution | None:
        """
        Run the pipeline for a room.

        Returns:
            DayResolution, or None if the room does not exist or was
            deleted before the result could be applied

        Raises:
            ResolutionInProgressError: If the room is already resolving a day
        """
        manager = self._claim(code)
        if manager is None:
            return None

        try:
            request = self.build_request(manager)
            logger.info(
                f"[{code}] Resolving day {request.current_day} for {len(request.players)} players"
            )

            outcome = await self._retry(
                lambda: self._attempt(request),
                lambda: fallback_resolution(request),
                label=f"[{code}] resolution",
            )

            if not self._still_registered(code, manager):
                return None

            applied = manager.apply_resolution(outcome.value)
            kept = set(applied.applied_player_ids)
            resolution = outcome.value.model_copy(
                update={"outcomes": [o for o in outcome.value.outcomes if o.player_id in kept]}
            )
            return DayResolution(
                code=code,
                resolution=resolution,
                applied=applied,
                attempts=outcome.attempts,
                used_fallback=outcome.used_fallback,
            )
        finally:
            manager.end_resolution()


class NarrationPipeline(_GuardedPipeline):
    """Opening narration and the plain day advance"""

    def __init__(self, registry: RoomRegistry, narrator: NarrationGenerator, **retry_settings):
        super().__init__(registry, **retry_settings)
        self.narrator = narrator

    async def _narrate(self, code: str, manager: RoomStateManager, opening: bool) -> str | None:
        fallback_text = FALLBACK_OPENING_NARRATION if opening else FALLBACK_DAY_NARRATION
        outcome = await self._retry(
            lambda: self.narrator.narrate(manager.get_state(), opening=opening),
            lambda: DayNarration(narration=fallback_text),
            label=f"[{code}] {'opening' if opening else 'day'} narration",
        )
        if not self._still_registered(code, manager):
            return None

        narration: DayNarration = outcome.value
        manager.apply_thread_updates(narration.thread_updates)
        return narration.narration.strip() or fallback_text

    async def opening(self, code: str) -> str | None:
        """Narrate the first morning for a room that has just started."""
        manager = self._claim(code)
        if manager is None:
            return None
        try:
            return await self._narrate(code, manager, opening=True)
        finally:
            manager.end_resolution()

    async def advance_day(self, code: str) -> str | None:
        """
        Legacy day advance: apply the day-pass costs, then narrate the new day.

        Returns:
            Narration text, or None if nothing advanced

        Raises:
            ResolutionInProgressError: If the room is already resolving a day
        """
        manager = self._claim(code)
        if manager is None:
            return None
        try:
            if not manager.advance_day():
                return None
            return await self._narrate(code, manager, opening=False)
        finally:
            manager.end_resolution()
