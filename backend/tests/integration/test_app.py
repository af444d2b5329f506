"""
Integration tests for the FastAPI application: HTTP routes and the /ws socket.
"""

import pytest
from fastapi.testclient import TestClient

from castaway.config import Settings
from castaway.engine.registry import CODE_ALPHABET
from castaway.main import create_app
from tests.mocks.generation import ScriptedGenerator, ScriptedNarrator, quiet_day

pytestmark = pytest.mark.integration


@pytest.fixture
def client(tmp_path):
    settings = Settings(generation_timeout=5.0, max_attempts=1, backoff_seconds=0.0, log_dir=tmp_path)
    app = create_app(settings, ScriptedGenerator([quiet_day]), ScriptedNarrator())
    return TestClient(app)


def join(ws, name: str = "Alice", code: str = "abcd") -> None:
    ws.send_json({"kind": "join-room", "payload": {"roomCode": code, "playerName": name}})


class TestHttp:
    def test_health_check(self, client) -> None:
        response = client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["rooms"] == 0

    def test_allocate_room_code(self, client) -> None:
        response = client.post("/api/rooms")
        assert response.status_code == 200
        code = response.json()["room_code"]
        assert len(code) == 4
        assert set(code) <= set(CODE_ALPHABET)

    def test_unknown_room(self, client) -> None:
        assert client.get("/api/rooms/ZZZZ").status_code == 404


class TestSocket:
    def test_join_and_snapshot(self, client) -> None:
        with client.websocket_connect("/ws") as ws:
            join(ws)
            message = ws.receive_json()

            assert message["kind"] == "room-update"
            assert [p["name"] for p in message["payload"]["players"]] == ["Alice"]

            snapshot = client.get("/api/rooms/abcd").json()
            assert snapshot["resolving"] is False
            assert snapshot["room"]["code"] == "ABCD"
            assert snapshot["room"]["gameStarted"] is False

    def test_single_player_game_starts(self, client) -> None:
        with client.websocket_connect("/ws") as ws:
            join(ws)
            ws.receive_json()

            ws.send_json({"kind": "toggle-ready", "payload": {}})
            kinds = [ws.receive_json()["kind"] for _ in range(2)]
            start = ws.receive_json()

            assert kinds == ["room-update", "all-players-ready"]
            assert start["kind"] == "game-start"
            assert start["payload"]["narration"] == "The tide goes out."

            ws.send_json({"kind": "submit-action", "payload": {"action": "look around"}})
            kinds = [ws.receive_json()["kind"] for _ in range(4)]
            assert kinds == ["action-submitted", "resolving-actions", "actions-resolved", "day-advanced"]

    def test_invalid_json(self, client) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_text("{not json")
            message = ws.receive_json()

            assert message["kind"] == "error"
            assert message["payload"] == {"event": "unknown", "message": "Invalid JSON"}

    def test_invalid_join(self, client) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_json(
                {
                    "kind": "join-room",
                    "payload": {"roomCode": "abcd", "playerName": "Alice", "stats": {"strength": 6, "intelligence": 6}},
                }
            )
            message = ws.receive_json()

            assert message["kind"] == "error"
            assert message["payload"]["event"] == "join-room"
            assert client.get("/api/rooms/ABCD").status_code == 404
