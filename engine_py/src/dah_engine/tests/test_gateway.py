"""
Integration tests for the FastAPI app: websocket gateway and admin endpoints.
"""

import pytest

from fastapi.testclient import TestClient

from dah_engine.config import ServerSettings
from dah_engine.engine import GameEngine
from dah_engine.main import create_app

from conftest import make_catalog

ADMIN_KEY = "secret"


def receive_until(websocket, event_type, limit=30):
    """Read frames until one of the given type arrives."""
    for _ in range(limit):
        message = websocket.receive_json()
        if message["type"] == event_type:
            return message
    raise AssertionError(f"No {event_type} event received")


@pytest.fixture
def engine():
    return GameEngine(make_catalog(), seed=11)


@pytest.fixture
def client(engine):
    app = create_app(ServerSettings(admin_key=ADMIN_KEY, log_level="warning"), engine=engine)
    with TestClient(app) as test_client:
        yield test_client


def _join(websocket, name, room_id="ABCDE", create=False):
    event_type = "create_room" if create else "join"
    websocket.send_json({"type": event_type, "room_id": room_id, "name": name})
    joined = receive_until(websocket, "join_success")
    receive_until(websocket, "state_full")
    return joined["data"]["player_id"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_room_and_join(client):
    with client.websocket_connect("/ws") as alice:
        alice.send_json({"type": "create_room", "room_id": "abcde", "name": "Alice"})

        created = alice.receive_json()
        assert created["type"] == "room_created"
        assert created["data"]["room_id"] == "ABCDE"

        joined = alice.receive_json()
        assert joined["type"] == "join_success"

        announced = alice.receive_json()
        assert announced["type"] == "player_joined"
        assert announced["data"]["players"] == ["Alice"]

        state = alice.receive_json()
        assert state["type"] == "state_full"
        assert state["state"]["roomId"] == "ABCDE"
        assert state["state"]["creatorConnectionId"] == joined["data"]["player_id"]
        assert state["state"]["state"] == "lobby"


def test_malformed_and_rejected_events(client):
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text("this is not json")
        assert websocket.receive_json()["code"] == "INVALID_EVENT"

        websocket.send_json({"type": "teleport"})
        assert websocket.receive_json()["code"] == "INVALID_EVENT"

        websocket.send_json({"type": "start"})
        assert websocket.receive_json()["code"] == "NOT_IN_ROOM"

        websocket.send_json({"type": "join", "room_id": "ZZZZZ", "name": "Alice"})
        assert websocket.receive_json()["code"] == "ROOM_NOT_FOUND"

        websocket.send_json({"type": "join", "room_id": "AB", "name": "Alice"})
        assert websocket.receive_json()["code"] == "INVALID_ROOM_ID"


def test_game_start_pushes_hands(client):
    with client.websocket_connect("/ws") as alice:
        _join(alice, "Alice", create=True)
        with client.websocket_connect("/ws") as bob:
            _join(bob, "Bob")
            with client.websocket_connect("/ws") as carol:
                _join(carol, "Carol")

                alice.send_json({"type": "start"})

                hands = {}
                for name, websocket in (("Alice", alice), ("Bob", bob), ("Carol", carol)):
                    receive_until(websocket, "game_started")
                    state = receive_until(websocket, "state_full")
                    assert state["state"]["state"] == "playing"
                    assert state["state"]["currentRound"] == 1
                    hands[name] = receive_until(websocket, "hand_updated")["hand"]
                    assert len(hands[name]) == 10

                # Alice is the first czar
                alice.send_json({"type": "submit", "card_ids": [hands["Alice"][0]["id"]]})
                error = receive_until(alice, "error")
                assert error["code"] == "CZAR_CANNOT_SUBMIT"

                bob.send_json({"type": "submit", "card_ids": [hands["Bob"][0]["id"]]})
                submitted = receive_until(carol, "card_submitted")
                assert submitted["type"] == "card_submitted"

def test_disconnect_in_lobby_announces_leave(client):
    with client.websocket_connect("/ws") as alice:
        _join(alice, "Alice", create=True)
        with client.websocket_connect("/ws") as bob:
            _join(bob, "Bob")

        left = receive_until(alice, "player_left")
        assert left["data"]["name"] == "Bob"
        assert left["data"]["players"] == ["Alice"]


def test_takedown_goes_to_target_only(client):
    with client.websocket_connect("/ws") as alice:
        alice_id = _join(alice, "Alice", create=True)
        with client.websocket_connect("/ws") as bob:
            _join(bob, "Bob")
            bob.send_json({"type": "takedown", "target_id": alice_id})

            takedown = receive_until(alice, "takedown")
            assert takedown["data"]["sender"] == "Bob"
            assert takedown["data"]["text"] == "Your code review is a crime scene."


def test_admin_requires_key(client):
    assert client.get("/admin/rooms").status_code == 401
    assert client.get("/admin/rooms", params={"key": "wrong"}).status_code == 401
    assert client.post("/admin/rooms/clear").status_code == 401
    assert client.get("/admin/cards").status_code == 401


def test_admin_room_management(client, engine):
    engine.create_room("ABCDE")
    engine.create_room("FGHIJ")

    response = client.get("/admin/rooms", params={"key": ADMIN_KEY})
    assert response.status_code == 200
    assert sorted(room["roomId"] for room in response.json()["rooms"]) == ["ABCDE", "FGHIJ"]

    response = client.post("/admin/rooms/abcde/delete", params={"key": ADMIN_KEY})
    assert response.status_code == 200
    assert response.json() == {"deleted": True}
    assert client.post("/admin/rooms/ABCDE/delete", params={"key": ADMIN_KEY}).status_code == 404
    assert client.post("/admin/rooms/bad/delete", params={"key": ADMIN_KEY}).status_code == 404

    response = client.post("/admin/rooms/clear", params={"key": ADMIN_KEY})
    assert response.json() == {"cleared": 1}
    assert engine.list_room_ids() == []


def test_admin_delete_notifies_players(client):
    with client.websocket_connect("/ws") as alice:
        _join(alice, "Alice", create=True)
        response = client.post("/admin/rooms/ABCDE/delete", params={"key": ADMIN_KEY})
        assert response.status_code == 200

        deleted = receive_until(alice, "room_deleted")
        assert "deleted by an admin" in deleted["data"]["message"]


def test_admin_replaces_cards(client, engine):
    payload = {
        "prompt_cards": [
            {"text": "Why is ____ in production?"},
            {"text": "____ plus ____ equals outage", "pick_count": 0},
            {"text": "Pick three", "pick_count": 3},
        ],
        "response_cards": [{"text": "YAML"}, {"text": "A cron job"}],
    }
    response = client.post("/admin/cards", params={"key": ADMIN_KEY}, json=payload)
    assert response.json() == {"prompt_count": 3, "response_count": 2}

    cards = client.get("/admin/cards", params={"key": ADMIN_KEY}).json()
    assert [card["pick_count"] for card in cards["prompt_cards"]] == [1, 2, 3]
    assert [card["text"] for card in cards["response_cards"]] == ["YAML", "A cron job"]
    assert engine.catalog.counts()["responses"] == 2
