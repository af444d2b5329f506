"""
Outcome validator - checks a proposed Resolution against game rules.

Coverage problems (an acting player without exactly one outcome) are
reported as IncompleteOutcomeError so the caller can retry. Everything
else is repaired in place:

    - revealed tiles outside the legal adjacent set are dropped
    - at most MAX_TILES_PER_OUTCOME tiles per outcome, none revealed twice
    - hp_change and found resources are clamped to their documented ranges
    - outcomes for players who were not part of the request are dropped
"""

import logging
from collections import Counter
from collections.abc import Iterable

from castaway.engine.errors import IncompleteOutcomeError
from castaway.models.outcome import PlayerOutcome, Resolution, ResourceDelta

logger = logging.getLogger(__name__)


HP_CHANGE_RANGE = (-15, 5)
RESOURCE_FOUND_RANGE = (0, 3)
MAX_TILES_PER_OUTCOME = 2


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class OutcomeValidator:
    """Validates and repairs generated resolutions.

    Example:
        >>> validator = OutcomeValidator()
        >>> clean = validator.validate(resolution, ["p1", "p2"], {"1,2", "2,1"})
    """

    def __init__(
        self,
        hp_change_range: tuple[int, int] = HP_CHANGE_RANGE,
        resource_range: tuple[int, int] = RESOURCE_FOUND_RANGE,
        max_tiles_per_outcome: int = MAX_TILES_PER_OUTCOME,
    ):
        self.hp_change_range = hp_change_range
        self.resource_range = resource_range
        self.max_tiles_per_outcome = max_tiles_per_outcome

    def validate(
        self,
        resolution: Resolution,
        player_ids: Iterable[str],
        legal_tiles: set[str],
    ) -> Resolution:
        """
        Validate a resolution for the given acting players.

        Args:
            resolution: Proposed resolution
            player_ids: Players that were asked to act
            legal_tiles: Tiles that may be revealed this turn

        Returns:
            A cleaned copy of the resolution

        Raises:
            IncompleteOutcomeError: If any acting player is missing or repeated
        """
        expected = set(player_ids)
        counts = Counter(o.player_id for o in resolution.outcomes)

        missing = expected - set(counts)
        duplicated = {pid for pid, n in counts.items() if n > 1 and pid in expected}
        if missing or duplicated:
            raise IncompleteOutcomeError(missing, duplicated)

        revealed: set[str] = set()
        outcomes = []
        for outcome in resolution.outcomes:
            if outcome.player_id not in expected:
                logger.warning(f"Dropping outcome for unknown player {outcome.player_id}")
                continue
            outcomes.append(self._clean_outcome(outcome, legal_tiles, revealed))

        thread_updates = [
            update.model_copy(update={"beat": update.beat.strip()})
            for update in resolution.thread_updates
        ]

        return Resolution(
            narration=resolution.narration.strip(),
            outcomes=outcomes,
            thread_updates=thread_updates,
        )

    def _clean_outcome(
        self,
        outcome: PlayerOutcome,
        legal_tiles: set[str],
        revealed: set[str],
    ) -> PlayerOutcome:
        tiles = []
        for tile in outcome.tiles_revealed:
            if tile not in legal_tiles:
                logger.warning(f"Dropping illegal tile {tile} for player {outcome.player_id}")
                continue
            if tile in revealed or len(tiles) >= self.max_tiles_per_outcome:
                continue
            tiles.append(tile)
            revealed.add(tile)

        hp_change = clamp(outcome.hp_change, *self.hp_change_range)
        food = clamp(outcome.resources_found.food, *self.resource_range)
        water = clamp(outcome.resources_found.water, *self.resource_range)
        if (hp_change, food, water) != (
            outcome.hp_change,
            outcome.resources_found.food,
            outcome.resources_found.water,
        ):
            logger.warning(f"Clamped out-of-range values for player {outcome.player_id}")

        return outcome.model_copy(
            update={
                "tiles_revealed": tiles,
                "hp_change": hp_change,
                "resources_found": ResourceDelta(food=food, water=water),
            }
        )
