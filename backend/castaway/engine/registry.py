"""
Room registry - process-wide mapping from room code to room state.

Created empty at startup and injected into the gateway and pipelines.
Nothing is persisted; rooms disappear with the process or when their
last player leaves.
"""

import logging
import random
from collections.abc import Callable

from castaway.engine.state import RoomStateManager
from castaway.models.room import Player

logger = logging.getLogger(__name__)


CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # No I, O, 0 or 1
CODE_LENGTH = 4


class RoomRegistry:
    """Owns creation, lookup and deletion of rooms"""

    def __init__(self, manager_factory: Callable[[str], RoomStateManager] = RoomStateManager):
        self._rooms: dict[str, RoomStateManager] = {}
        self._manager_factory = manager_factory

    def __contains__(self, code: str) -> bool:
        return code in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def codes(self) -> list[str]:
        return list(self._rooms)

    def create_or_get(self, code: str) -> RoomStateManager:
        """Return the room for a code, creating it on first use."""
        manager = self._rooms.get(code)
        if manager is None:
            manager = self._manager_factory(code)
            self._rooms[code] = manager
            logger.info(f"Created room {code} ({len(self._rooms)} active)")
        return manager

    def get(self, code: str) -> RoomStateManager | None:
        return self._rooms.get(code)

    def remove_player(self, code: str, player_id: str) -> tuple[Player | None, bool]:
        """
        Remove a player and delete the room if it is now empty.

        Returns:
            Tuple of (removed player or None, whether the room was deleted)
        """
        manager = self._rooms.get(code)
        if manager is None:
            logger.warning(f"remove_player: room {code} not found")
            return None, False

        player = manager.leave(player_id)
        if manager.is_empty():
            self.delete(code)
            return player, True
        return player, False

    def delete(self, code: str) -> bool:
        if self._rooms.pop(code, None) is None:
            return False
        logger.info(f"Deleted room {code} ({len(self._rooms)} active)")
        return True

    def allocate_code(self, rng: random.Random | None = None) -> str:
        """Pick an unused, human-shareable room code."""
        rng = rng or random.Random()
        while True:
            code = "".join(rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if code not in self._rooms:
                return code
