"""
Integration tests for the session gateway.

Drives SessionGateway through fake sockets with scripted generators, so
the whole lobby -> game -> day loop runs without a network or an LLM.
"""

import asyncio

import pytest

from castaway.api.gateway import ConnectionManager, SessionGateway
from castaway.engine.pipeline import NarrationPipeline, ResolutionPipeline
from tests.mocks.generation import ScriptedGenerator, ScriptedNarrator, quiet_day

pytestmark = pytest.mark.integration


ALICE = {"playerName": "Alice", "pronouns": "she/her", "stats": {"strength": 2, "intelligence": 2, "charisma": 2}, "mbtiType": "ENFP"}
BOB = {"playerName": "Bob", "pronouns": "he/him", "stats": {"strength": 3, "intelligence": 2, "charisma": 1}, "mbtiType": "ISTJ"}


class FakeSocket:
    """Records everything the server sends"""

    def __init__(self):
        self.accepted = False
        self.sent: list[dict] = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        self.sent.append(data)

    def kinds(self) -> list[str]:
        return [message["kind"] for message in self.sent]

    def last(self, kind: str) -> dict:
        return [m for m in self.sent if m["kind"] == kind][-1]["payload"]

    def clear(self) -> None:
        self.sent.clear()


class YieldingSocket(FakeSocket):
    """Gives up the event loop on every send, like a real socket write"""

    async def send_json(self, data):
        await asyncio.sleep(0)
        self.sent.append(data)


class Harness:
    def __init__(self, registry, sleep):
        self.registry = registry
        self.connections = ConnectionManager()
        self.generator = ScriptedGenerator([quiet_day])
        self.narrator = ScriptedNarrator()
        self.gateway = SessionGateway(
            registry,
            self.connections,
            ResolutionPipeline(registry, self.generator, sleep=sleep),
            NarrationPipeline(registry, self.narrator, sleep=sleep),
        )
        self.sockets: dict[str, FakeSocket] = {}

    async def connect(self, connection_id: str) -> FakeSocket:
        socket = FakeSocket()
        await self.connections.connect(socket, connection_id)
        self.sockets[connection_id] = socket
        return socket

    async def send(self, connection_id: str, kind: str, payload: dict | None = None) -> None:
        await self.gateway.handle(connection_id, {"kind": kind, "payload": payload or {}})
        await self.gateway.wait_idle()

    async def join(self, connection_id: str, player: dict, code: str = "ABCD") -> FakeSocket:
        socket = self.sockets.get(connection_id) or await self.connect(connection_id)
        await self.send(connection_id, "join-room", {"roomCode": code, **player})
        return socket

    async def start(self) -> tuple[FakeSocket, FakeSocket]:
        alice = await self.join("p1", ALICE)
        bob = await self.join("p2", BOB)
        await self.send("p1", "toggle-ready")
        await self.send("p2", "toggle-ready")
        alice.clear()
        bob.clear()
        return alice, bob


@pytest.fixture
def harness(registry, no_sleep) -> Harness:
    return Harness(registry, no_sleep)


class TestLobby:
    @pytest.mark.asyncio
    async def test_two_players_ready_up(self, harness) -> None:
        alice = await harness.join("p1", ALICE)
        bob = await harness.join("p2", BOB)

        assert alice.accepted is True
        assert [p["name"] for p in alice.last("room-update")["players"]] == ["Alice", "Bob"]

        await harness.send("p1", "toggle-ready")
        await harness.send("p2", "toggle-ready")

        for socket in (alice, bob):
            kinds = socket.kinds()
            assert kinds.count("all-players-ready") == 1
            assert kinds.count("game-start") == 1
            assert kinds.index("all-players-ready") < kinds.index("game-start")
            assert kinds[-3:] == ["room-update", "all-players-ready", "game-start"]

        start = alice.last("game-start")
        assert len(start["players"]) == 2
        assert start["narration"] == "The tide goes out."
        assert start["mapState"]["startingTile"] == "0,2"
        assert harness.narrator.openings == [True]

    @pytest.mark.asyncio
    async def test_invalid_stats_create_nothing(self, harness) -> None:
        bad = {**ALICE, "stats": {"strength": 5, "intelligence": 2, "charisma": 1}}
        socket = await harness.join("p1", bad)

        assert socket.kinds() == ["error"]
        assert socket.last("error")["event"] == "join-room"
        assert "ABCD" not in harness.registry
        assert harness.gateway.binding("p1") is None

    @pytest.mark.asyncio
    async def test_missing_stats_get_even_split(self, harness) -> None:
        socket = await harness.join("p1", {"playerName": "Alice"})
        (player,) = socket.last("room-update")["players"]
        assert player["stats"] == {"strength": 2, "intelligence": 2, "charisma": 2}

    @pytest.mark.asyncio
    async def test_room_code_normalized(self, harness) -> None:
        await harness.join("p1", ALICE, code=" abcd ")
        assert "ABCD" in harness.registry

    @pytest.mark.asyncio
    async def test_rejoining_same_room_rejected(self, harness) -> None:
        socket = await harness.join("p1", ALICE)
        await harness.join("p1", ALICE)

        assert socket.kinds() == ["room-update", "error"]
        assert len(harness.registry.get("ABCD").get_state().players) == 1

    @pytest.mark.asyncio
    async def test_switching_rooms_leaves_old_room(self, harness) -> None:
        await harness.join("p1", ALICE)
        await harness.join("p1", ALICE, code="WXYZ")

        assert "ABCD" not in harness.registry
        assert harness.gateway.binding("p1").code == "WXYZ"

    @pytest.mark.asyncio
    async def test_disconnect_deletes_empty_room(self, harness) -> None:
        await harness.join("p1", ALICE)
        await harness.gateway.on_disconnect("p1")

        assert "ABCD" not in harness.registry
        assert harness.connections.subscribers("ABCD") == []

    @pytest.mark.asyncio
    async def test_leave_notifies_others(self, harness) -> None:
        await harness.join("p1", ALICE)
        bob = await harness.join("p2", BOB)
        bob.clear()

        await harness.send("p1", "leave-room")

        assert [p["name"] for p in bob.last("room-update")["players"]] == ["Bob"]
        assert harness.gateway.binding("p1") is None

    @pytest.mark.asyncio
    async def test_toggle_after_start_rejected(self, harness) -> None:
        alice, _ = await harness.start()
        await harness.send("p1", "toggle-ready")

        assert alice.kinds() == ["error"]
        assert alice.last("error")["message"] == "Ready state can only change in the lobby"

    @pytest.mark.asyncio
    async def test_join_during_start_cannot_start_unready_player(self, harness) -> None:
        alice = YieldingSocket()
        await harness.connections.connect(alice, "p1")
        await harness.send("p1", "join-room", {"roomCode": "ABCD", **ALICE})
        bob = await harness.connect("p2")

        ready = asyncio.create_task(harness.send("p1", "toggle-ready"))
        # Let the toggle run until its first socket write
        await asyncio.sleep(0)
        await harness.send("p2", "join-room", {"roomCode": "ABCD", **BOB})
        await ready

        room = harness.registry.get("ABCD").get_state()
        assert room.game_started is True
        assert [(p.name, p.is_ready) for p in room.players] == [("Alice", True)]
        assert bob.last("error")["event"] == "join-room"
        assert harness.gateway.binding("p2") is None

        # Once started, the same join takes the late-join path
        bob.clear()
        await harness.send("p2", "join-room", {"roomCode": "ABCD", **BOB})
        assert bob.kinds() == ["room-update", "map-updated"]

    @pytest.mark.asyncio
    async def test_game_active_before_all_ready_announced(self, harness) -> None:
        alice = YieldingSocket()
        await harness.connections.connect(alice, "p1")
        await harness.send("p1", "join-room", {"roomCode": "ABCD", **ALICE})

        ready = asyncio.create_task(harness.send("p1", "toggle-ready"))
        await asyncio.sleep(0)  # writing room-update
        await asyncio.sleep(0)  # writing all-players-ready

        assert harness.registry.get("ABCD").get_state().game_started is True
        assert "all-players-ready" not in alice.kinds()

        await ready
        assert alice.kinds()[-3:] == ["room-update", "all-players-ready", "game-start"]

    @pytest.mark.asyncio
    async def test_malformed_message(self, harness) -> None:
        socket = await harness.connect("p1")
        await harness.gateway.handle("p1", {"kind": "fly-away"})

        assert socket.last("error") == {"event": "fly-away", "message": "Malformed message"}

    @pytest.mark.asyncio
    async def test_event_before_join(self, harness) -> None:
        socket = await harness.connect("p1")
        await harness.send("p1", "submit-action", {"action": "fish"})
        assert socket.last("error")["message"] == "Join a room as a player first"


class TestScreens:
    @pytest.mark.asyncio
    async def test_screen_watches_without_joining(self, harness) -> None:
        screen = await harness.join("tv", {"isScreen": True})
        assert screen.sent == []

        await harness.join("p1", ALICE)

        assert screen.kinds() == ["room-update"]
        assert [p["name"] for p in screen.last("room-update")["players"]] == ["Alice"]

    @pytest.mark.asyncio
    async def test_screen_joining_started_game(self, harness) -> None:
        await harness.start()
        screen = await harness.join("tv", {"isScreen": True})

        assert screen.kinds() == ["room-update", "map-updated"]
        assert len(harness.registry.get("ABCD").get_state().players) == 2

    @pytest.mark.asyncio
    async def test_screen_disconnect_keeps_room(self, harness) -> None:
        await harness.join("p1", ALICE)
        await harness.join("tv", {"isScreen": True})
        await harness.gateway.on_disconnect("tv")

        assert "ABCD" in harness.registry
        assert harness.connections.subscribers("ABCD") == ["p1"]


class TestDayLoop:
    @pytest.mark.asyncio
    async def test_actions_resolve_when_everyone_submitted(self, harness) -> None:
        alice, bob = await harness.start()

        await harness.send("p1", "submit-action", {"action": "build a shelter"})
        assert alice.kinds() == ["action-submitted"]
        assert alice.last("action-submitted") == {
            "playerId": "p1",
            "playerName": "Alice",
            "totalSubmitted": 1,
            "totalPlayers": 2,
        }

        await harness.send("p2", "submit-action", {"action": "fish"})

        for socket in (alice, bob):
            assert socket.kinds()[-3:] == ["resolving-actions", "actions-resolved", "day-advanced"]
        resolved = bob.last("actions-resolved")
        assert [o["playerId"] for o in resolved["outcomes"]] == ["p1", "p2"]
        assert bob.last("day-advanced")["currentDay"] == 2
        assert [p.action for p in harness.generator.requests[0].players] == ["build a shelter", "fish"]

    @pytest.mark.asyncio
    async def test_generation_outage_still_advances(self, harness) -> None:
        harness.generator.steps = [RuntimeError("provider down")]
        alice, _ = await harness.start()

        await harness.send("p1", "submit-action", {"action": "fish"})
        await harness.send("p2", "submit-action", {"action": "fish"})

        assert alice.last("day-advanced")["currentDay"] == 2
        assert harness.generator.calls == 3

    @pytest.mark.asyncio
    async def test_leaver_completes_the_set(self, harness) -> None:
        alice, _ = await harness.start()

        await harness.send("p1", "submit-action", {"action": "fish"})
        await harness.send("p2", "leave-room")

        assert alice.kinds()[-3:] == ["resolving-actions", "actions-resolved", "day-advanced"]
        assert [o["playerId"] for o in alice.last("actions-resolved")["outcomes"]] == ["p1"]

    @pytest.mark.asyncio
    async def test_injury_completes_the_set(self, harness) -> None:
        alice, _ = await harness.start()

        await harness.send("p1", "submit-action", {"action": "fish"})
        await harness.send("p2", "player-injured")

        assert "resolving-actions" in alice.kinds()
        assert harness.generator.requests[0].player_ids == ["p1"]

    @pytest.mark.asyncio
    async def test_submitter_handled_while_generation_runs(self, harness) -> None:
        release = asyncio.Event()

        async def slow_day(request):
            await release.wait()
            return quiet_day(request)

        harness.generator.steps = [slow_day]
        alice, bob = await harness.start()
        await harness.send("p1", "submit-action", {"action": "fish"})

        # The last submission returns straight away; generation waits on release
        await harness.gateway.handle("p2", {"kind": "submit-action", "payload": {"action": "swim"}})
        await asyncio.sleep(0)
        assert harness.registry.get("ABCD").is_resolving is True
        assert "actions-resolved" not in alice.kinds()

        await harness.gateway.handle("p2", {"kind": "leave-room", "payload": {}})
        assert harness.gateway.binding("p2") is None
        assert [p["name"] for p in alice.last("room-update")["players"]] == ["Alice"]

        await harness.gateway.handle("p1", {"kind": "submit-action", "payload": {"action": "fish again"}})
        assert alice.last("error")["message"] == "The day is already being resolved"

        release.set()
        await harness.gateway.wait_idle()

        assert alice.kinds()[-2:] == ["actions-resolved", "day-advanced"]
        assert [o["playerId"] for o in alice.last("actions-resolved")["outcomes"]] == ["p1"]
        assert "actions-resolved" not in bob.kinds()

    @pytest.mark.asyncio
    async def test_submit_while_resolving_rejected(self, harness) -> None:
        alice, _ = await harness.start()
        harness.registry.get("ABCD").try_begin_resolution()

        await harness.send("p1", "submit-action", {"action": "fish"})

        assert alice.last("error")["message"] == "The day is already being resolved"

    @pytest.mark.asyncio
    async def test_empty_action_rejected(self, harness) -> None:
        alice, _ = await harness.start()
        await harness.send("p1", "submit-action", {"action": ""})
        assert alice.last("error")["event"] == "submit-action"

    @pytest.mark.asyncio
    async def test_advance_day(self, harness) -> None:
        alice, _ = await harness.start()
        await harness.send("p1", "advance-day")

        advanced = alice.last("day-advanced")
        assert advanced["currentDay"] == 2
        assert advanced["narration"] == "The tide goes out."
        assert [p["health"] for p in advanced["players"]] == [8, 8]

    @pytest.mark.asyncio
    async def test_advance_day_in_lobby_rejected(self, harness) -> None:
        alice = await harness.join("p1", ALICE)
        await harness.send("p1", "advance-day")
        assert alice.last("error")["message"] == "The game has not started"

    @pytest.mark.asyncio
    async def test_late_joiner_gets_map(self, harness) -> None:
        await harness.start()
        carol = await harness.join("p3", {"playerName": "Carol"})

        assert carol.kinds() == ["room-update", "map-updated"]
        assert carol.last("map-updated")["mapState"]["startingTile"] == "0,2"


class TestIsland:
    @pytest.mark.asyncio
    async def test_explore_then_gather(self, harness) -> None:
        alice, bob = await harness.start()

        await harness.send("p1", "explore-tiles", {"tiles": ["0,1"]})
        assert bob.last("map-updated")["mapState"]["exploredTiles"] == ["0,2", "0,1"]

        await harness.send("p1", "gather-resource", {"resourceType": "water", "tileKey": "0,1", "waterAmount": 3})
        update = bob.last("resource-updated")
        assert update["resources"] == {"food": 0, "water": 3}
        assert update["resourceDepletion"] == {"bottle": True}

    @pytest.mark.asyncio
    async def test_gather_unexplored_rejected(self, harness) -> None:
        alice, bob = await harness.start()
        await harness.send("p1", "gather-resource", {"resourceType": "food", "tileKey": "2,2"})

        assert alice.last("error")["event"] == "gather-resource"
        assert "resource-updated" not in bob.kinds()

    @pytest.mark.asyncio
    async def test_player_injured_broadcasts(self, harness) -> None:
        _, bob = await harness.start()
        await harness.send("p1", "player-injured")

        alice_wire = bob.last("room-update")["players"][0]
        assert alice_wire["injured"] is True
        assert alice_wire["injuredOnDay"] == 1
