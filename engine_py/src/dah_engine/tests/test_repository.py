"""
Tests for the in-memory room repository.
"""

import threading

import pytest

from dah_engine.errors import ROOM_NOT_FOUND, GameError
from dah_engine.models import GameState, Player
from dah_engine.repository import RoomRepository

from conftest import FakeClock


@pytest.fixture
def repo():
    return RoomRepository(clock=FakeClock())


def test_create_room_is_idempotent(repo):
    """A second create returns the same room and keeps its settings."""
    first = repo.create_room("ABCDE", total_rounds=5, creator_connection_id="c1")
    second = repo.create_room("ABCDE", total_rounds=9, creator_connection_id="c2")

    assert second is first
    assert second.total_rounds == 5
    assert second.creator_connection_id == "c1"
    assert len(repo) == 1


def test_create_room_ignores_non_positive_rounds(repo):
    room = repo.create_room("ABCDE", total_rounds=0)
    assert room.total_rounds == 7


def test_create_room_stamps_activity(repo):
    room = repo.create_room("ABCDE")
    assert room.last_activity == 1000.0
    assert room.last_idle_warning is None


def test_locked_missing_room(repo):
    with pytest.raises(GameError) as exc:
        with repo.locked("NOPE1"):
            pass
    assert exc.value.code == ROOM_NOT_FOUND


def test_delete_room(repo):
    room = repo.create_room("ABCDE")
    room.players.append(Player(connection_id="c1", name="Alice"))
    room.state = GameState.PLAYING

    assert repo.delete_room("ABCDE") is True
    assert repo.get_room("ABCDE") is None
    # Anyone still holding the object sees an empty lobby
    assert room.players == []
    assert room.state == GameState.LOBBY

    assert repo.delete_room("ABCDE") is False


def test_clear_all(repo):
    repo.create_room("AAAAA")
    repo.create_room("BBBBB")
    assert repo.clear_all() == 2
    assert repo.list_room_ids() == []
    assert repo.clear_all() == 0


def test_listings_are_copies(repo):
    repo.create_room("AAAAA")
    ids = repo.list_room_ids()
    rooms = repo.list_rooms()
    repo.create_room("BBBBB")

    assert ids == ["AAAAA"]
    assert len(rooms) == 1
    assert sorted(repo.list_room_ids()) == ["AAAAA", "BBBBB"]


def test_touch_rearms_idle_warning(repo):
    room = repo.create_room("ABCDE")
    assert repo.claim_idle_warning("ABCDE", 1600.0, 540)
    assert room.last_idle_warning == 1600.0

    repo.clock.advance(600)
    repo.touch("ABCDE")
    assert room.last_activity == 1600.0
    assert room.last_idle_warning is None


def test_touch_missing_room_is_noop(repo):
    repo.touch("ZZZZZ")
    assert repo.claim_idle_warning("ZZZZZ", 2000.0, 540) is False


def test_discard_empty_keeps_occupied_rooms(repo):
    room = repo.create_room("ABCDE")
    room.players.append(Player(connection_id="c1", name="Alice"))
    with repo.locked("ABCDE"):
        assert repo.discard_empty(room) is False
    assert repo.exists("ABCDE")

    room.players.clear()
    with repo.locked("ABCDE"):
        assert repo.discard_empty(room) is True
    assert not repo.exists("ABCDE")


def test_claim_idle_warning_needs_enough_idle_time(repo):
    room = repo.create_room("ABCDE")
    assert repo.claim_idle_warning("ABCDE", 1500.0, 540) is False
    assert room.last_idle_warning is None


def test_claim_idle_warning_only_once(repo):
    room = repo.create_room("ABCDE")
    assert repo.claim_idle_warning("ABCDE", 1540.0, 540) is True
    assert repo.claim_idle_warning("ABCDE", 1580.0, 540) is False
    assert room.last_idle_warning == 1540.0


def test_join_racing_delete_never_leaves_players_behind(engine):
    """A join that loses to a delete fails; one that wins is wiped by it."""
    for attempt in range(20):
        room_id = f"RACE{attempt % 10}"
        room = engine.create_room(room_id)
        barrier = threading.Barrier(2)
        failures = []

        def join():
            barrier.wait()
            try:
                engine.add_player(room_id, "conn-alice", "Alice")
            except GameError as e:
                failures.append(e.code)

        def delete():
            barrier.wait()
            engine.delete_room(room_id)

        threads = [threading.Thread(target=join), threading.Thread(target=delete)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert failures in ([], [ROOM_NOT_FOUND])
        assert engine.get_room(room_id) is None
        assert room.players == []
