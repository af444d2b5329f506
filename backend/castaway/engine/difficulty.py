"""
Difficulty resolver - turns a qualitative difficulty label into success or failure.

Each label maps to a success probability. A uniform draw in [0, 1) below
that threshold is a success.

Example:
    >>> resolver = DifficultyResolver(random.Random(7))
    >>> roll = resolver.resolve("moderate")
    >>> roll.threshold
    0.6
"""

import random
from dataclasses import dataclass
from enum import Enum


class Difficulty(str, Enum):
    """Ordered difficulty labels, easiest first"""

    TRIVIAL = "trivial"
    EASY = "easy"
    MODERATE = "moderate"
    HARD = "hard"
    EXTREME = "extreme"
    IMPOSSIBLE = "impossible"


SUCCESS_THRESHOLDS: dict[Difficulty, float] = {
    Difficulty.TRIVIAL: 1.0,
    Difficulty.EASY: 0.8,
    Difficulty.MODERATE: 0.6,
    Difficulty.HARD: 0.35,
    Difficulty.EXTREME: 0.15,
    Difficulty.IMPOSSIBLE: 0.0,
}


@dataclass(frozen=True)
class DifficultyRoll:
    """Result of one difficulty check"""

    difficulty: Difficulty
    success: bool
    roll: float
    threshold: float

    @property
    def roll_percent(self) -> int:
        return round(self.roll * 100)

    @property
    def threshold_percent(self) -> int:
        return round(self.threshold * 100)


class DifficultyResolver:
    """Rolls against the success threshold table"""

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    def resolve(self, difficulty: Difficulty | str) -> DifficultyRoll:
        """Roll for a difficulty label.

        Raises:
            ValueError: If the label is not one of the known difficulties
        """
        label = Difficulty(difficulty)
        threshold = SUCCESS_THRESHOLDS[label]
        roll = self._rng.random()
        return DifficultyRoll(
            difficulty=label,
            success=roll < threshold,
            roll=roll,
            threshold=threshold,
        )
