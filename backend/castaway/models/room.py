"""
Room state models - Pydantic models for a shared game room
"""

from datetime import datetime
from enum import Enum

from pydantic import Field

from castaway.models.base import CamelModel


STAT_BUDGET = 6
MAX_HEALTH = 10


# =============================================================================
# Player Models
# =============================================================================

class Stats(CamelModel):
    """Character stats. The three values share a fixed budget of STAT_BUDGET."""
    strength: int = Field(default=0, ge=0)
    intelligence: int = Field(default=0, ge=0)
    charisma: int = Field(default=0, ge=0)

    @classmethod
    def balanced(cls) -> "Stats":
        """Even split of the budget, used when a player supplies no stats"""
        return cls(strength=2, intelligence=2, charisma=2)

    @property
    def total(self) -> int:
        return self.strength + self.intelligence + self.charisma

    def summary(self) -> str:
        return f"STR:{self.strength} INT:{self.intelligence} CHA:{self.charisma}"


class Player(CamelModel):
    """A player in a room. `id` is the connection id and the join key."""
    id: str
    name: str
    pronouns: str = ""
    mbti_type: str = "INTJ"  # Narration colouring only
    stats: Stats = Field(default_factory=Stats.balanced)
    health: int = Field(default=MAX_HEALTH, ge=0, le=MAX_HEALTH)
    injured: bool = False
    injured_on_day: int | None = None
    is_ready: bool = False
    joined_at: datetime = Field(default_factory=datetime.now)


# =============================================================================
# Map Models
# =============================================================================

class ResourceTiles(CamelModel):
    """Where each gatherable resource sits on the map"""
    herbs: str | None = None
    deer: str | None = None
    coconut: str | None = None
    bottle: str | None = None
    spring: str | None = None
    clams: list[str] = Field(default_factory=list)

    def resource_at(self, tile: str) -> tuple[str, str] | None:
        """Return (resource name, depletion key) for a tile, if it holds one."""
        for name in ("herbs", "deer", "coconut", "bottle", "spring"):
            if getattr(self, name) == tile:
                return name, name
        if tile in self.clams:
            return "clams", f"clams_{tile}"
        return None

    def located(self) -> list[tuple[str, str, str]]:
        """All placed resources as (name, tile, depletion key)"""
        placed = []
        for name in ("herbs", "deer", "coconut", "bottle", "spring"):
            tile = getattr(self, name)
            if tile:
                placed.append((name, tile, name))
        for tile in self.clams:
            placed.append(("clams", tile, f"clams_{tile}"))
        return placed


class MapState(CamelModel):
    """Island tiles as "row,col" keys. explored_tiles only ever grows."""
    land_tiles: list[str] = Field(default_factory=list)
    water_tiles: list[str] = Field(default_factory=list)
    starting_tile: str
    explored_tiles: list[str] = Field(default_factory=list)
    resource_tiles: ResourceTiles = Field(default_factory=ResourceTiles)

    def all_tiles(self) -> set[str]:
        return set(self.land_tiles) | set(self.water_tiles)

    def reveal(self, tiles: list[str]) -> list[str]:
        """Mark tiles explored. Unknown or already explored tiles are skipped.

        Returns:
            The tiles that were newly explored, in order
        """
        universe = self.all_tiles()
        explored = set(self.explored_tiles)
        added = []
        for tile in tiles:
            if tile in universe and tile not in explored:
                self.explored_tiles.append(tile)
                explored.add(tile)
                added.append(tile)
        return added


# =============================================================================
# Narrative Models
# =============================================================================

class ThreadStatus(str, Enum):
    INTRODUCED = "introduced"
    ESCALATING = "escalating"
    COMPLICATED = "complicated"
    RESOLVED = "resolved"


class StoryThread(CamelModel):
    """A narrative arc tracked across days. Beats are append-only."""
    title: str
    status: ThreadStatus = ThreadStatus.INTRODUCED
    beats: list[str] = Field(default_factory=list)

    def recent_beats(self, limit: int = 3) -> list[str]:
        return self.beats[-limit:]


# =============================================================================
# Room Models
# =============================================================================

class Resources(CamelModel):
    """Room-wide food and water pool"""
    food: int = Field(default=0, ge=0)
    water: int = Field(default=0, ge=0)


class GroupInventory(CamelModel):
    """Items and facts the group has picked up"""
    items: list[str] = Field(default_factory=list)
    facts: list[str] = Field(default_factory=list)


class Room(CamelModel):
    """Authoritative state of one game room"""
    code: str
    players: list[Player] = Field(default_factory=list)  # Join order
    game_started: bool = False
    current_day: int = Field(default=1, ge=1)
    resources: Resources = Field(default_factory=Resources)
    map_state: MapState | None = None
    resource_depletion: dict[str, bool] = Field(default_factory=dict)
    story_threads: dict[str, StoryThread] = Field(default_factory=dict)
    inventory: GroupInventory = Field(default_factory=GroupInventory)
    pending_actions: dict[str, str] = Field(default_factory=dict)  # player id -> action text
    created_at: datetime = Field(default_factory=datetime.now)

    def get_player(self, player_id: str) -> Player | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def active_players(self) -> list[Player]:
        """Players who can act this day (everyone not injured)"""
        return [p for p in self.players if not p.injured]
