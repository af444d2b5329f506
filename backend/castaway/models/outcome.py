"""
Outcome models for the day-resolution protocol.

A ResolutionRequest describes one day's turn: who is acting, what they
are trying to do, and what the island currently looks like. The
generation boundary answers with a Resolution - one narration plus an
outcome record per player and any story thread updates.

Every call across the generation boundary yields a GenerationResult:

    - GenerationOk: well-formed structured output
    - GenerationParseError: the response could not be read as the expected shape
    - GenerationCallError: the call itself failed or timed out

Example:
    >>> result = await generator.generate(request)
    >>> if isinstance(result, GenerationOk):
    ...     resolution = result.value
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

from pydantic import AliasChoices, Field, field_validator

from castaway.models.base import CamelModel
from castaway.models.room import (
    GroupInventory,
    MapState,
    Resources,
    Stats,
    StoryThread,
)


NEW_THREAD_ID = "NEW"
NO_ACTION = "(no action)"


# =============================================================================
# Request Models
# =============================================================================

class PlayerAction(CamelModel):
    """One player's submitted action for the day"""
    id: str
    name: str
    pronouns: str = ""
    mbti_type: str = "INTJ"
    stats: Stats = Field(default_factory=Stats.balanced)
    hp: int
    action: str = NO_ACTION


class ResolutionRequest(CamelModel):
    """Everything the generation boundary needs to resolve a day"""
    room_code: str
    current_day: int
    players: list[PlayerAction] = Field(default_factory=list)
    map_state: MapState | None = None
    adjacent_tiles: list[str] = Field(default_factory=list)
    resources: Resources = Field(default_factory=Resources)
    inventory: GroupInventory = Field(default_factory=GroupInventory)
    story_threads: dict[str, StoryThread] = Field(default_factory=dict)

    @property
    def player_ids(self) -> list[str]:
        return [p.id for p in self.players]


# =============================================================================
# Response Models
# =============================================================================

class ThreadUpdateType(str, Enum):
    INTRODUCE = "introduce"
    ESCALATE = "escalate"
    COMPLICATE = "complicate"
    RESOLVE = "resolve"


_UPDATE_TYPES = {update.value for update in ThreadUpdateType}


class ThreadUpdate(CamelModel):
    """A story thread change. thread_id is an existing id or "NEW"."""
    thread_id: str
    title_if_new: str | None = None
    update_type: ThreadUpdateType = ThreadUpdateType.ESCALATE
    beat: str = ""

    @field_validator("update_type", mode="before")
    @classmethod
    def coerce_update_type(cls, value):
        # Any label other than a known one keeps the thread active
        if not isinstance(value, str) or value.strip().lower() not in _UPDATE_TYPES:
            return ThreadUpdateType.ESCALATE
        return value.strip().lower()

    @field_validator("beat", mode="before")
    @classmethod
    def blank_beat(cls, value):
        return "" if value is None else value


class ResourceDelta(CamelModel):
    food: int = 0
    water: int = 0


class PlayerOutcome(CamelModel):
    """What happened to one player this day"""
    player_id: str
    tiles_revealed: list[str] = Field(default_factory=list)
    resources_found: ResourceDelta = Field(default_factory=ResourceDelta)
    items_found: list[str] = Field(default_factory=list)
    facts_learned: list[str] = Field(default_factory=list)
    hp_change: int = 0
    injured: bool = False
    private_narration: str = ""


class Resolution(CamelModel):
    """A full day's resolution, either generated or the fallback"""
    narration: str = Field(
        validation_alias=AliasChoices("narration", "publicNarration", "public_narration")
    )
    outcomes: list[PlayerOutcome] = Field(default_factory=list)
    thread_updates: list[ThreadUpdate] = Field(default_factory=list)

    def outcome_for(self, player_id: str) -> PlayerOutcome | None:
        for outcome in self.outcomes:
            if outcome.player_id == player_id:
                return outcome
        return None


class DayNarration(CamelModel):
    """Narration for game start or a plain day advance"""
    narration: str
    thread_updates: list[ThreadUpdate] = Field(default_factory=list)


# =============================================================================
# Generation Results
# =============================================================================

T = TypeVar("T")


@dataclass(frozen=True)
class GenerationOk(Generic[T]):
    """Structured output that parsed cleanly"""

    value: T


@dataclass(frozen=True)
class GenerationParseError:
    """The boundary answered, but not with the expected shape"""

    message: str
    raw: str | None = None


@dataclass(frozen=True)
class GenerationCallError:
    """The boundary could not be reached, raised, or timed out"""

    message: str


GenerationResult = Union[GenerationOk[T], GenerationParseError, GenerationCallError]
