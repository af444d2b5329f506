"""
Models for the single-player console game.

The console variant keeps health on a 0-100 scale and resolves each
action with a difficulty roll instead of a full day resolution.
"""

from enum import Enum
from typing import Literal

from pydantic import Field

from castaway.models.base import CamelModel
from castaway.models.room import Stats


CONSOLE_MAX_HP = 100


class ActionType(str, Enum):
    PHYSICAL = "physical"
    GATHERING = "gathering"
    HUNTING = "hunting"
    THINKING = "thinking"
    SOCIAL = "social"
    EXPLORING = "exploring"
    RESTING = "resting"


class PossibilityCheck(CamelModel):
    possible: bool
    trivial: bool = False


class ActionClassification(CamelModel):
    type: ActionType
    difficulty: Literal["easy", "moderate", "hard", "extreme"]


class ConsoleOutcome(CamelModel):
    """Narrated consequences of one console action"""
    narration: str
    hp_change: int = 0
    food_change: int = 0
    water_change: int = 0
    items_gained: list[str] = Field(default_factory=list)
    injured: bool = False


class ConsolePlayer(CamelModel):
    name: str
    pronouns: str = ""
    stats: Stats = Field(default_factory=Stats.balanced)
    hp: int = Field(default=CONSOLE_MAX_HP, ge=0, le=CONSOLE_MAX_HP)
    injured: bool = False

    @property
    def alive(self) -> bool:
        return self.hp > 0


class ConsoleState(CamelModel):
    day: int = 1
    players: list[ConsolePlayer] = Field(default_factory=list)
    food: int = 0
    water: int = 0
    items: list[str] = Field(default_factory=list)
    story_beats: list[str] = Field(default_factory=list)

    def living_players(self) -> list[ConsolePlayer]:
        return [p for p in self.players if p.alive]
