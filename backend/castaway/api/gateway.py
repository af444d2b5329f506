"""
Realtime session gateway - WebSocket endpoint and per-connection event handling.

Every connection gets a connection id, which is also the player id once
it joins a room. Inbound messages are ``{"kind", "payload"}`` objects;
each kind maps to one handler below. Room state only changes through the
registry and RoomStateManager, and every resulting snapshot is broadcast
identically to all connections subscribed to the room.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from castaway.engine.errors import JoinValidationError, ResolutionInProgressError
from castaway.engine.pipeline import NarrationPipeline, ResolutionPipeline
from castaway.engine.registry import RoomRegistry
from castaway.engine.state import RoomStateManager
from castaway.models.protocol import (
    ClientMessage,
    ExploreTilesPayload,
    GatherResourcePayload,
    JoinRoomPayload,
    ServerMessage,
    SubmitActionPayload,
    actions_resolved_payload,
    day_advanced_payload,
    error_payload,
    game_start_payload,
    map_updated_payload,
    resource_updated_payload,
    room_update_payload,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Connections
# =============================================================================

class ConnectionManager:
    """Open sockets and the room broadcast groups they belong to"""

    def __init__(self):
        self._sockets: dict[str, WebSocket] = {}
        self._groups: dict[str, set[str]] = {}

    async def connect(self, websocket: WebSocket, connection_id: str | None = None) -> str:
        await websocket.accept()
        connection_id = connection_id or uuid.uuid4().hex
        self._sockets[connection_id] = websocket
        logger.info(f"Connection {connection_id} opened ({len(self._sockets)} open)")
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        self._sockets.pop(connection_id, None)
        for code in list(self._groups):
            self.unsubscribe(connection_id, code)
        logger.info(f"Connection {connection_id} closed ({len(self._sockets)} open)")

    def subscribe(self, connection_id: str, code: str) -> None:
        self._groups.setdefault(code, set()).add(connection_id)

    def unsubscribe(self, connection_id: str, code: str) -> None:
        group = self._groups.get(code)
        if group is None:
            return
        group.discard(connection_id)
        if not group:
            del self._groups[code]

    def subscribers(self, code: str) -> list[str]:
        return sorted(self._groups.get(code, ()))

    async def send(self, connection_id: str, kind: str, payload: dict | None = None) -> None:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            return
        message = ServerMessage(kind=kind, payload=payload or {})
        try:
            await websocket.send_json(message.model_dump())
        except Exception as e:
            # A socket that is going away is cleaned up by its own receive loop
            logger.warning(f"Failed to send {kind} to {connection_id}: {type(e).__name__}: {e}")

    async def broadcast(self, code: str, kind: str, payload: dict | None = None) -> None:
        for connection_id in self.subscribers(code):
            await self.send(connection_id, kind, payload)


# =============================================================================
# Gateway
# =============================================================================

@dataclass
class Binding:
    """The room a connection belongs to"""

    code: str
    is_screen: bool = False


class SessionGateway:
    """Maps inbound events to room transitions and broadcasts the results.

    Example:
        >>> gateway = SessionGateway(registry, connections, resolution, narration)
        >>> await gateway.handle(connection_id, {"kind": "toggle-ready", "payload": {}})
    """

    def __init__(
        self,
        registry: RoomRegistry,
        connections: ConnectionManager,
        resolution_pipeline: ResolutionPipeline,
        narration_pipeline: NarrationPipeline,
    ):
        self.registry = registry
        self.connections = connections
        self.resolution_pipeline = resolution_pipeline
        self.narration_pipeline = narration_pipeline
        self._bindings: dict[str, Binding] = {}
        self._resolutions: dict[str, asyncio.Task] = {}
        self._handlers = {
            "join-room": self.join_room,
            "toggle-ready": self.toggle_ready,
            "advance-day": self.advance_day,
            "leave-room": self.leave_room,
            "submit-action": self.submit_action,
            "gather-resource": self.gather_resource,
            "explore-tiles": self.explore_tiles,
            "player-injured": self.player_injured,
        }

    def binding(self, connection_id: str) -> Binding | None:
        return self._bindings.get(connection_id)

    async def handle(self, connection_id: str, data: dict) -> None:
        """Dispatch one inbound message."""
        try:
            message = ClientMessage.model_validate(data)
        except ValidationError as e:
            kind = data.get("kind", "unknown") if isinstance(data, dict) else "unknown"
            logger.warning(f"Malformed message from {connection_id}: {e}")
            await self._error(connection_id, str(kind), "Malformed message")
            return

        logger.debug(f"{connection_id} -> {message.kind}")
        await self._handlers[message.kind](connection_id, message.payload)

    async def on_disconnect(self, connection_id: str) -> None:
        """Transport closed: always leave, then forget the socket."""
        await self._leave(connection_id)
        self.connections.disconnect(connection_id)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _error(self, connection_id: str, event: str, message: str) -> None:
        await self.connections.send(connection_id, "error", error_payload(event, message))

    async def _player_room(self, connection_id: str, event: str) -> tuple[str, RoomStateManager] | None:
        """The caller's room, if the caller is a player in a live room."""
        binding = self._bindings.get(connection_id)
        if binding is None or binding.is_screen:
            await self._error(connection_id, event, "Join a room as a player first")
            return None
        manager = self.registry.get(binding.code)
        if manager is None:
            logger.warning(f"{event}: room {binding.code} for {connection_id} no longer exists")
            return None
        return binding.code, manager

    async def _broadcast_room(self, code: str, manager: RoomStateManager) -> None:
        await self.connections.broadcast(code, "room-update", room_update_payload(manager.get_state()))

    # -------------------------------------------------------------------------
    # Lobby
    # -------------------------------------------------------------------------

    async def join_room(self, connection_id: str, payload: dict) -> None:
        try:
            join = JoinRoomPayload.model_validate(payload)
        except ValidationError as e:
            await self._error(connection_id, "join-room", f"Invalid join request: {e.errors()[0]['msg']}")
            return

        current = self._bindings.get(connection_id)
        if current is not None and current.code == join.room_code:
            await self._error(connection_id, "join-room", "Already in this room")
            return

        if join.is_screen:
            if current is not None:
                await self._leave(connection_id)
            self._bindings[connection_id] = Binding(code=join.room_code, is_screen=True)
            self.connections.subscribe(connection_id, join.room_code)
            logger.info(f"Screen {connection_id} watching room {join.room_code}")
            manager = self.registry.get(join.room_code)
            if manager is not None:
                room = manager.get_state()
                await self.connections.send(connection_id, "room-update", room_update_payload(room))
                if room.game_started:
                    await self.connections.send(connection_id, "map-updated", map_updated_payload(room))
            return

        # Validate before anything is created so a rejected join changes nothing
        try:
            name, stats = RoomStateManager.validate_join(join.player_name, join.stats)
        except JoinValidationError as e:
            await self._error(connection_id, "join-room", str(e))
            return

        existing = self.registry.get(join.room_code)
        if existing is not None and existing.is_starting:
            await self._error(connection_id, "join-room", "The game is starting, try joining again in a moment")
            return

        if current is not None:
            await self._leave(connection_id)

        manager = self.registry.create_or_get(join.room_code)
        try:
            manager.join(connection_id, name, join.pronouns, stats, join.mbti_type)
        except JoinValidationError as e:
            if manager.is_empty():
                self.registry.delete(join.room_code)
            await self._error(connection_id, "join-room", str(e))
            return

        self._bindings[connection_id] = Binding(code=join.room_code)
        self.connections.subscribe(connection_id, join.room_code)
        await self._broadcast_room(join.room_code, manager)

        room = manager.get_state()
        if room.game_started:
            await self.connections.send(connection_id, "map-updated", map_updated_payload(room))

    async def toggle_ready(self, connection_id: str, payload: dict) -> None:
        context = await self._player_room(connection_id, "toggle-ready")
        if context is None:
            return
        code, manager = context

        toggle = manager.toggle_ready(connection_id)
        if toggle is None:
            await self._error(connection_id, "toggle-ready", "Ready state can only change in the lobby")
            return

        await self._broadcast_room(code, manager)
        if not toggle.all_ready:
            return

        # Joins are refused until start_game(); clients still see
        # all-players-ready before game-start
        manager.start_game()
        await self.connections.broadcast(code, "all-players-ready", {})
        try:
            narration = await self.narration_pipeline.opening(code)
        except ResolutionInProgressError:
            logger.warning(f"[{code}] Opening narration already in progress")
            return
        if narration is None:
            return

        await self.connections.broadcast(
            code, "game-start", game_start_payload(manager.get_state(), narration)
        )

    async def leave_room(self, connection_id: str, payload: dict) -> None:
        await self._leave(connection_id)

    async def _leave(self, connection_id: str) -> None:
        binding = self._bindings.pop(connection_id, None)
        if binding is None:
            return
        self.connections.unsubscribe(connection_id, binding.code)
        if binding.is_screen:
            return

        player, deleted = self.registry.remove_player(binding.code, connection_id)
        if deleted or player is None:
            return

        manager = self.registry.get(binding.code)
        await self._broadcast_room(binding.code, manager)
        # The leaver may have been the last one everybody was waiting on
        await self._resolve_if_complete(binding.code, manager, connection_id)

    # -------------------------------------------------------------------------
    # Day Loop
    # -------------------------------------------------------------------------

    async def advance_day(self, connection_id: str, payload: dict) -> None:
        context = await self._player_room(connection_id, "advance-day")
        if context is None:
            return
        code, manager = context

        if not manager.get_state().game_started:
            await self._error(connection_id, "advance-day", "The game has not started")
            return

        try:
            narration = await self.narration_pipeline.advance_day(code)
        except ResolutionInProgressError:
            await self._error(connection_id, "advance-day", "The day is already being resolved")
            return
        if narration is None:
            return

        await self.connections.broadcast(
            code, "day-advanced", day_advanced_payload(manager.get_state(), narration)
        )

    async def submit_action(self, connection_id: str, payload: dict) -> None:
        context = await self._player_room(connection_id, "submit-action")
        if context is None:
            return
        code, manager = context

        try:
            submitted = SubmitActionPayload.model_validate(payload)
        except ValidationError:
            await self._error(connection_id, "submit-action", "Action text is required")
            return

        if self._resolution_pending(code, manager):
            await self._error(connection_id, "submit-action", "The day is already being resolved")
            return

        result = manager.submit_action(connection_id, submitted.action)
        if result is None:
            await self._error(connection_id, "submit-action", "You cannot act right now")
            return

        await self.connections.broadcast(
            code,
            "action-submitted",
            {
                "playerId": result.player.id,
                "playerName": result.player.name,
                "totalSubmitted": result.total_submitted,
                "totalPlayers": result.total_players,
            },
        )
        await self._resolve_if_complete(code, manager, connection_id)

    def _resolution_pending(self, code: str, manager: RoomStateManager) -> bool:
        task = self._resolutions.get(code)
        return manager.is_resolving or (task is not None and not task.done())

    async def _resolve_if_complete(
        self, code: str, manager: RoomStateManager, connection_id: str
    ) -> None:
        room = manager.get_state()
        if not room.game_started or not room.pending_actions or self._resolution_pending(code, manager):
            return
        if manager.all_actions_submitted():
            # Generation can take minutes; the caller's receive loop keeps running
            task = asyncio.create_task(self.resolve(code, connection_id), name=f"resolve-{code}")
            self._resolutions[code] = task
            task.add_done_callback(lambda done: self._resolution_done(code, done))

    def _resolution_done(self, code: str, task: asyncio.Task) -> None:
        if self._resolutions.get(code) is task:
            del self._resolutions[code]
        if task.cancelled():
            logger.warning(f"[{code}] Day resolution cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[{code}] Day resolution failed: {type(error).__name__}: {error}", exc_info=error)

    async def wait_idle(self) -> None:
        """Wait until no scheduled day resolution is running."""
        while True:
            pending = [task for task in self._resolutions.values() if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def resolve(self, code: str, connection_id: str | None = None) -> None:
        """Run the resolution pipeline for a room and broadcast the outcome."""
        manager = self.registry.get(code)
        if manager is None:
            return

        await self.connections.broadcast(
            code, "resolving-actions", {"currentDay": manager.get_state().current_day}
        )
        try:
            result = await self.resolution_pipeline.resolve_day(code)
        except ResolutionInProgressError:
            if connection_id is not None:
                await self._error(connection_id, "submit-action", "The day is already being resolved")
            return
        if result is None:
            return

        room = manager.get_state()
        await self.connections.broadcast(
            code, "actions-resolved", actions_resolved_payload(room, result.resolution)
        )
        await self.connections.broadcast(
            code, "day-advanced", day_advanced_payload(room, result.resolution.narration)
        )

    # -------------------------------------------------------------------------
    # Island Interactions
    # -------------------------------------------------------------------------

    async def gather_resource(self, connection_id: str, payload: dict) -> None:
        context = await self._player_room(connection_id, "gather-resource")
        if context is None:
            return
        code, manager = context

        try:
            gather = GatherResourcePayload.model_validate(payload)
        except ValidationError:
            await self._error(connection_id, "gather-resource", "Invalid gather request")
            return

        amount = gather.food_amount if gather.resource_type == "food" else gather.water_amount
        gathered = manager.gather_resource(connection_id, gather.resource_type, gather.tile_key, amount)
        if gathered is None:
            await self._error(connection_id, "gather-resource", "Nothing to gather there")
            return

        await self.connections.broadcast(
            code, "resource-updated", resource_updated_payload(manager.get_state())
        )

    async def explore_tiles(self, connection_id: str, payload: dict) -> None:
        context = await self._player_room(connection_id, "explore-tiles")
        if context is None:
            return
        code, manager = context

        try:
            explore = ExploreTilesPayload.model_validate(payload)
        except ValidationError:
            await self._error(connection_id, "explore-tiles", "Invalid tile list")
            return

        if manager.explore_tiles(connection_id, explore.tiles):
            await self.connections.broadcast(
                code, "map-updated", map_updated_payload(manager.get_state())
            )

    async def player_injured(self, connection_id: str, payload: dict) -> None:
        context = await self._player_room(connection_id, "player-injured")
        if context is None:
            return
        code, manager = context

        if manager.mark_injured(connection_id) is None:
            return
        await self._broadcast_room(code, manager)
        # An injured player no longer acts, so the others may now be complete
        await self._resolve_if_complete(code, manager, connection_id)


# =============================================================================
# WebSocket Endpoint
# =============================================================================

@router.websocket("/ws")
async def room_socket(websocket: WebSocket):
    """One realtime session per socket"""
    connections: ConnectionManager = websocket.app.state.connections
    gateway: SessionGateway = websocket.app.state.gateway

    connection_id = await connections.connect(websocket)
    try:
        while True:
            text = await websocket.receive_text()
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                await connections.send(connection_id, "error", error_payload("unknown", "Invalid JSON"))
                continue
            await gateway.handle(connection_id, data)
    except WebSocketDisconnect:
        logger.debug(f"Connection {connection_id} disconnected")
    finally:
        await gateway.on_disconnect(connection_id)
