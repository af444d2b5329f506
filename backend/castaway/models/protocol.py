"""
Realtime protocol models.

Every message on the room socket is a JSON object of the form
``{"kind": <event name>, "payload": {...}}`` in both directions.
Payload keys are camelCase on the wire.

Client -> server events:
    join-room, toggle-ready, advance-day, leave-room, submit-action,
    gather-resource, explore-tiles, player-injured

Server -> client events:
    room-update, all-players-ready, game-start, day-advanced,
    resource-updated, map-updated, action-submitted, resolving-actions,
    actions-resolved, error
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from castaway.models.base import CamelModel
from castaway.models.outcome import Resolution
from castaway.models.room import Room, Stats


ClientEventKind = Literal[
    "join-room",
    "toggle-ready",
    "advance-day",
    "leave-room",
    "submit-action",
    "gather-resource",
    "explore-tiles",
    "player-injured",
]


class ClientMessage(BaseModel):
    """A message received from a client"""
    kind: ClientEventKind
    payload: dict[str, Any] = Field(default_factory=dict)


class ServerMessage(BaseModel):
    """A message sent from the server to clients"""
    kind: str
    payload: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Client Payloads
# =============================================================================

class JoinRoomPayload(CamelModel):
    room_code: str = Field(min_length=1, max_length=16)
    player_name: str = ""
    pronouns: str | None = None
    stats: Stats | None = None
    mbti_type: str | None = None
    is_screen: bool = False

    @field_validator("room_code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        code = value.strip().upper()
        if not code:
            raise ValueError("room code must not be blank")
        return code


class SubmitActionPayload(CamelModel):
    action: str = Field(min_length=1, max_length=1000)


class GatherResourcePayload(CamelModel):
    resource_type: Literal["food", "water"]
    tile_key: str
    food_amount: int | None = None
    water_amount: int | None = None


class ExploreTilesPayload(CamelModel):
    tiles: list[str] = Field(default_factory=list)


# =============================================================================
# Server Payloads
# =============================================================================

def _players(room: Room) -> list[dict]:
    return [player.to_wire() for player in room.players]


def _map(room: Room) -> dict | None:
    return room.map_state.to_wire() if room.map_state else None


def room_update_payload(room: Room) -> dict:
    return {
        "players": _players(room),
        "gameStarted": room.game_started,
        "currentDay": room.current_day,
        "resources": room.resources.to_wire(),
    }


def game_start_payload(room: Room, narration: str) -> dict:
    return {
        "players": _players(room),
        "narration": narration,
        "mapState": _map(room),
        "resourceDepletion": dict(room.resource_depletion),
        "resources": room.resources.to_wire(),
    }


def day_advanced_payload(room: Room, narration: str) -> dict:
    return {
        "currentDay": room.current_day,
        "players": _players(room),
        "resources": room.resources.to_wire(),
        "narration": narration,
    }


def resource_updated_payload(room: Room) -> dict:
    return {
        "resources": room.resources.to_wire(),
        "resourceDepletion": dict(room.resource_depletion),
    }


def map_updated_payload(room: Room) -> dict:
    return {
        "mapState": _map(room),
        "resourceDepletion": dict(room.resource_depletion),
    }


def actions_resolved_payload(room: Room, resolution: Resolution) -> dict:
    return {
        "narration": resolution.narration,
        "outcomes": [outcome.to_wire() for outcome in resolution.outcomes],
        "players": _players(room),
        "resources": room.resources.to_wire(),
        "inventory": room.inventory.to_wire(),
        "mapState": _map(room),
        "resourceDepletion": dict(room.resource_depletion),
    }


def error_payload(event: str, message: str) -> dict:
    return {"event": event, "message": message}
