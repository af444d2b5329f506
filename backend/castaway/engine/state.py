"""
Room state management - Handles one room's players and state transitions.

A room starts in the lobby (game_started=False) and moves to the active
game exactly once, when every player is ready. There is no terminal
state: a finished game is simply an active room whose players leave.

All methods run to completion without awaiting, so on a single event
loop no two transitions for the same room ever interleave.
"""

import logging
import random
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

from castaway.engine.errors import JoinValidationError
from castaway.engine.map_generator import generate_map
from castaway.engine.tiles import adjacent_tiles
from castaway.engine.validator import clamp
from castaway.models.outcome import (
    NEW_THREAD_ID,
    NO_ACTION,
    PlayerAction,
    Resolution,
    ResolutionRequest,
    ThreadUpdate,
    ThreadUpdateType,
)
from castaway.models.room import (
    MAX_HEALTH,
    STAT_BUDGET,
    MapState,
    Player,
    Room,
    Stats,
    StoryThread,
    ThreadStatus,
)

logger = logging.getLogger(__name__)


DAY_PASS_HEALTH_COST = 1
DEFAULT_GATHER_RANGE = (2, 4)
FOOD_RESOURCES = {"herbs", "deer", "coconut", "clams"}
WATER_RESOURCES = {"bottle", "spring"}
RENEWABLE_RESOURCES = {"spring"}

STATUS_FOR_UPDATE = {
    ThreadUpdateType.INTRODUCE: ThreadStatus.INTRODUCED,
    ThreadUpdateType.ESCALATE: ThreadStatus.ESCALATING,
    ThreadUpdateType.COMPLICATE: ThreadStatus.COMPLICATED,
    ThreadUpdateType.RESOLVE: ThreadStatus.RESOLVED,
}


@dataclass
class ReadyToggle:
    """Result of a readiness toggle"""

    player: Player
    all_ready: bool  # True exactly once per room, when the game should start


@dataclass
class ActionSubmission:
    player: Player
    total_submitted: int
    total_players: int


@dataclass
class AppliedResolution:
    """What apply_resolution actually changed"""

    applied_player_ids: list[str] = field(default_factory=list)
    discarded_player_ids: list[str] = field(default_factory=list)
    new_tiles: list[str] = field(default_factory=list)
    new_thread_ids: list[str] = field(default_factory=list)


class RoomStateManager:
    """Manages the state of a single room"""

    def __init__(
        self,
        code: str,
        map_factory: Callable[[], MapState] = generate_map,
        rng: random.Random | None = None,
    ):
        self._room = Room(code=code)
        self._map_factory = map_factory
        self._rng = rng or random.Random()
        self._starting = False
        self._resolving = False

    @property
    def code(self) -> str:
        return self._room.code

    def get_state(self) -> Room:
        """Get current room state"""
        return self._room

    def get_player(self, player_id: str) -> Player | None:
        return self._room.get_player(player_id)

    def _require_player(self, player_id: str, operation: str) -> Player | None:
        player = self._room.get_player(player_id)
        if player is None:
            logger.warning(f"[{self.code}] {operation}: no player {player_id}, ignoring")
        return player

    # =========================================================================
    # Lobby
    # =========================================================================

    @staticmethod
    def validate_join(name: str, stats: Stats | None) -> tuple[str, Stats]:
        """
        Check join input before anything is created.

        Returns:
            Tuple of (trimmed name, stats to use)

        Raises:
            JoinValidationError: If the name is blank or stats break the budget
        """
        trimmed = (name or "").strip()
        if not trimmed:
            raise JoinValidationError("Player name must not be empty")

        if stats is None:
            return trimmed, Stats.balanced()

        if stats.total != STAT_BUDGET:
            raise JoinValidationError(
                f"Invalid stats distribution: stats sum to {stats.total}, must be {STAT_BUDGET}"
            )
        return trimmed, stats

    def join(
        self,
        player_id: str,
        name: str,
        pronouns: str | None = None,
        stats: Stats | None = None,
        mbti_type: str | None = None,
    ) -> Player:
        """
        Add a player to the room.

        Raises:
            JoinValidationError: On invalid input, a repeated connection id,
                or while the room is between all-ready and start_game()
        """
        trimmed, checked_stats = self.validate_join(name, stats)
        if self._starting:
            raise JoinValidationError("The game is starting, try joining again in a moment")
        if self._room.get_player(player_id) is not None:
            raise JoinValidationError("This connection has already joined the room")

        player = Player(
            id=player_id,
            name=trimmed,
            pronouns=pronouns or "",
            mbti_type=mbti_type or "INTJ",
            stats=checked_stats.model_copy(),
        )
        self._room.players.append(player)
        logger.info(f"[{self.code}] {trimmed} joined ({len(self._room.players)} players)")
        return player

    def toggle_ready(self, player_id: str) -> ReadyToggle | None:
        """
        Flip a player's readiness in the lobby.

        all_ready is reported once, on the toggle that makes every player
        ready; the caller then announces it and calls start_game().
        """
        player = self._require_player(player_id, "toggle_ready")
        if player is None:
            return None
        if self._room.game_started or self._starting:
            logger.warning(f"[{self.code}] toggle_ready after game start, ignoring")
            return None

        player.is_ready = not player.is_ready
        logger.info(f"[{self.code}] {player.name} is now {'ready' if player.is_ready else 'not ready'}")

        players = self._room.players
        all_ready = len(players) > 0 and all(p.is_ready for p in players)
        if all_ready:
            self._starting = True
        return ReadyToggle(player=player, all_ready=all_ready)

    def start_game(self) -> MapState:
        """Move from lobby to active game and lay out the island."""
        if self._room.game_started:
            logger.warning(f"[{self.code}] start_game called twice, ignoring")
            return self._room.map_state

        self._room.map_state = self._map_factory()
        self._room.game_started = True
        self._starting = False
        logger.info(
            f"[{self.code}] Game started with {len(self._room.players)} players, "
            f"starting tile {self._room.map_state.starting_tile}"
        )
        return self._room.map_state

    def leave(self, player_id: str) -> Player | None:
        """Remove a player. Deleting an empty room is the registry's job."""
        player = self._require_player(player_id, "leave")
        if player is None:
            return None
        self._room.players.remove(player)
        self._room.pending_actions.pop(player_id, None)
        logger.info(f"[{self.code}] {player.name} left ({len(self._room.players)} players)")
        return player

    def is_empty(self) -> bool:
        return not self._room.players

    @property
    def is_starting(self) -> bool:
        return self._starting

    # =========================================================================
    # Day Resolution Guard
    # =========================================================================

    @property
    def is_resolving(self) -> bool:
        return self._resolving

    def try_begin_resolution(self) -> bool:
        """Claim the room for a day transition; False if one is in flight."""
        if self._resolving:
            return False
        self._resolving = True
        return True

    def end_resolution(self) -> None:
        self._resolving = False

    # =========================================================================
    # Actions
    # =========================================================================

    def submit_action(self, player_id: str, action: str) -> ActionSubmission | None:
        """Store a player's action for the current day."""
        player = self._require_player(player_id, "submit_action")
        if player is None:
            return None
        if not self._room.game_started:
            logger.warning(f"[{self.code}] {player.name} submitted an action before game start")
            return None
        if player.injured:
            logger.info(f"[{self.code}] {player.name} is injured and cannot act today")
            return None

        self._room.pending_actions[player_id] = action.strip()
        return ActionSubmission(
            player=player,
            total_submitted=len(self._room.pending_actions),
            total_players=len(self._room.active_players()),
        )

    def all_actions_submitted(self) -> bool:
        active = self._room.active_players()
        return bool(active) and all(p.id in self._room.pending_actions for p in active)

    def adjacent_tiles(self) -> set[str]:
        map_state = self._room.map_state
        if map_state is None:
            return set()
        return adjacent_tiles(map_state.explored_tiles, map_state.land_tiles, map_state.water_tiles)

    def build_resolution_request(self) -> ResolutionRequest:
        """Snapshot what the generation boundary needs for today."""
        room = self._room
        players = [
            PlayerAction(
                id=p.id,
                name=p.name,
                pronouns=p.pronouns,
                mbti_type=p.mbti_type,
                stats=p.stats.model_copy(),
                hp=p.health,
                action=room.pending_actions.get(p.id) or NO_ACTION,
            )
            for p in room.active_players()
        ]
        return ResolutionRequest(
            room_code=room.code,
            current_day=room.current_day,
            players=players,
            map_state=room.map_state.model_copy(deep=True) if room.map_state else None,
            adjacent_tiles=sorted(self.adjacent_tiles()),
            resources=room.resources.model_copy(),
            inventory=room.inventory.model_copy(deep=True),
            story_threads={k: t.model_copy(deep=True) for k, t in room.story_threads.items()},
        )

    # =========================================================================
    # Day Transitions
    # =========================================================================

    def apply_resolution(self, resolution: Resolution) -> AppliedResolution:
        """
        Apply a validated resolution and advance the day.

        Outcomes for players who have since left are discarded. Health is
        clamped to [0, MAX_HEALTH] and the food/water pool never goes negative.
        """
        room = self._room
        applied = AppliedResolution()

        for outcome in resolution.outcomes:
            player = room.get_player(outcome.player_id)
            if player is None:
                logger.info(f"[{self.code}] Discarding outcome for departed player {outcome.player_id}")
                applied.discarded_player_ids.append(outcome.player_id)
                continue

            player.health = clamp(player.health + outcome.hp_change, 0, MAX_HEALTH)
            if outcome.injured:
                player.injured = True
                player.injured_on_day = room.current_day

            room.resources.food = max(0, room.resources.food + outcome.resources_found.food)
            room.resources.water = max(0, room.resources.water + outcome.resources_found.water)

            for item in outcome.items_found:
                if item not in room.inventory.items:
                    room.inventory.items.append(item)
            for fact in outcome.facts_learned:
                if fact not in room.inventory.facts:
                    room.inventory.facts.append(fact)

            if room.map_state is not None and outcome.tiles_revealed:
                applied.new_tiles.extend(room.map_state.reveal(outcome.tiles_revealed))

            applied.applied_player_ids.append(player.id)

        applied.new_thread_ids = self.apply_thread_updates(resolution.thread_updates)

        room.pending_actions.clear()
        room.current_day += 1
        self._expire_injuries()
        logger.info(
            f"[{self.code}] Resolution applied for {len(applied.applied_player_ids)} players, "
            f"now day {room.current_day}"
        )
        return applied

    def advance_day(self) -> bool:
        """
        Plain day advance without action resolution.

        Every player pays the day-pass health cost, injuries may expire,
        then the group eats (+1 health each) if there is food for everyone
        and drinks if there is water for everyone; going thirsty costs 1 health.
        """
        room = self._room
        if not room.game_started:
            logger.warning(f"[{self.code}] advance_day before game start, ignoring")
            return False

        room.current_day += 1
        room.pending_actions.clear()

        for player in room.players:
            player.health = max(0, player.health - DAY_PASS_HEALTH_COST)
        self._expire_injuries()

        count = len(room.players)
        if room.resources.food >= count:
            room.resources.food -= count
            for player in room.players:
                player.health = min(MAX_HEALTH, player.health + 1)

        if room.resources.water >= count:
            room.resources.water -= count
        else:
            for player in room.players:
                player.health = max(0, player.health - 1)

        logger.info(f"[{self.code}] Advanced to day {room.current_day}")
        return True

    def _expire_injuries(self) -> None:
        """Injuries last through one day boundary and clear on the next."""
        day = self._room.current_day
        for player in self._room.players:
            if player.injured and player.injured_on_day is not None and day > player.injured_on_day + 1:
                player.injured = False
                player.injured_on_day = None

    def apply_thread_updates(self, updates: list[ThreadUpdate]) -> list[str]:
        """
        Merge story thread updates.

        "NEW" (or an id we have never seen) creates a thread; otherwise the
        beat is appended and the status follows the update type.

        Returns:
            Ids of threads created by these updates
        """
        threads = self._room.story_threads
        created = []

        for update in updates:
            thread_id = update.thread_id
            if thread_id == NEW_THREAD_ID or thread_id not in threads:
                if thread_id == NEW_THREAD_ID:
                    thread_id = self._new_thread_id()
                threads[thread_id] = StoryThread(title=update.title_if_new or "Untitled thread")
                created.append(thread_id)

            thread = threads[thread_id]
            beat = update.beat.strip()
            if beat:
                thread.beats.append(beat)
            thread.status = STATUS_FOR_UPDATE[update.update_type]

        return created

    def _new_thread_id(self) -> str:
        while True:
            thread_id = f"thread_{uuid.uuid4().hex[:8]}"
            if thread_id not in self._room.story_threads:
                return thread_id

    # =========================================================================
    # Island Interactions
    # =========================================================================

    def mark_injured(self, player_id: str) -> Player | None:
        player = self._require_player(player_id, "mark_injured")
        if player is None or not self._room.game_started:
            return None
        player.injured = True
        player.injured_on_day = self._room.current_day
        logger.info(f"[{self.code}] {player.name} is injured on day {self._room.current_day}")
        return player

    def explore_tiles(self, player_id: str, tiles: list[str]) -> list[str]:
        """Reveal tiles directly. Unknown or already explored tiles are ignored."""
        player = self._require_player(player_id, "explore_tiles")
        map_state = self._room.map_state
        if player is None or map_state is None:
            return []
        added = map_state.reveal(tiles)
        if added:
            logger.info(f"[{self.code}] {player.name} explored {added}")
        return added

    def gather_resource(
        self,
        player_id: str,
        resource_type: str,
        tile: str,
        amount: int | None = None,
    ) -> int | None:
        """
        Collect food or water from an explored resource tile.

        Args:
            player_id: Gathering player
            resource_type: "food" or "water"
            tile: Tile key holding the resource
            amount: Quantity to add; a random 2-4 if missing or not positive

        Returns:
            Amount gathered, or None if the attempt was invalid
        """
        player = self._require_player(player_id, "gather_resource")
        map_state = self._room.map_state
        if player is None or map_state is None:
            return None

        found = map_state.resource_tiles.resource_at(tile)
        valid_kinds = FOOD_RESOURCES if resource_type == "food" else WATER_RESOURCES
        if found is None or found[0] not in valid_kinds:
            logger.warning(f"[{self.code}] No {resource_type} resource at {tile}")
            return None
        if tile not in map_state.explored_tiles:
            logger.warning(f"[{self.code}] Tile {tile} is not explored yet")
            return None

        name, depletion_key = found
        renewable = name in RENEWABLE_RESOURCES
        if self._room.resource_depletion.get(depletion_key) and not renewable:
            logger.info(f"[{self.code}] {depletion_key} at {tile} is already depleted")
            return None

        if amount is None or amount <= 0:
            amount = self._rng.randint(*DEFAULT_GATHER_RANGE)

        if resource_type == "food":
            self._room.resources.food += amount
        else:
            self._room.resources.water += amount

        if not renewable:
            self._room.resource_depletion[depletion_key] = True

        logger.info(f"[{self.code}] {player.name} gathered {amount} {resource_type} from {name} at {tile}")
        return amount
