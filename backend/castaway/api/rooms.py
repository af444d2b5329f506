"""
Room API endpoints - Code allocation and read-only room snapshots
"""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from castaway.engine.registry import RoomRegistry
from castaway.models.room import Room

router = APIRouter()


class NewRoomResponse(BaseModel):
    """An unused room code. The room itself is created by the first join."""

    room_code: str


def _registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


@router.post("", response_model=NewRoomResponse)
async def new_room(request: Request):
    """Allocate a fresh room code"""
    return NewRoomResponse(room_code=_registry(request).allocate_code())


@router.get("/{code}")
async def get_room(code: str, request: Request):
    """Get the current state of a room"""
    manager = _registry(request).get(code.strip().upper())
    if manager is None:
        raise HTTPException(status_code=404, detail=f"Room '{code}' not found")

    room: Room = manager.get_state()
    return {"room": room.to_wire(), "resolving": manager.is_resolving}
