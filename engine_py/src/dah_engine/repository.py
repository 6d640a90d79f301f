"""
In-memory registry of game rooms.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from .constants import DEFAULT_TOTAL_ROUNDS
from .errors import ROOM_NOT_FOUND, raise_error
from .models import GameState, RoomState

logger = logging.getLogger(__name__)


class RoomRepository:
    """
    Keyed store of ``RoomState`` objects.

    The id -> room map has its own lock; each room carries its own lock for
    mutations. A room lock may be held while taking the map lock, never the
    other way round.
    """

    def __init__(self, clock: Callable[[], float] = time.time, default_total_rounds: int = DEFAULT_TOTAL_ROUNDS):
        self.rooms: Dict[str, RoomState] = {}
        self.clock = clock
        self.default_total_rounds = default_total_rounds
        self._lock = threading.Lock()

    def create_room(
        self,
        room_id: str,
        total_rounds: Optional[int] = None,
        creator_connection_id: Optional[str] = None,
        **room_options,
    ) -> RoomState:
        with self._lock:
            existing = self.rooms.get(room_id)
            if existing is not None:
                logger.warning(f"Room {room_id} already exists, returning existing room")
                return existing

            room = RoomState(
                room_id=room_id,
                creator_connection_id=creator_connection_id,
                total_rounds=self.default_total_rounds,
                **room_options,
            )
            if total_rounds is not None and total_rounds > 0:
                room.total_rounds = total_rounds
            room.mark_activity(self.clock())
            self.rooms[room_id] = room
        logger.info(f"Room {room_id} created with {room.total_rounds} rounds")
        return room

    def get_room(self, room_id: str) -> Optional[RoomState]:
        with self._lock:
            return self.rooms.get(room_id)

    def exists(self, room_id: str) -> bool:
        return self.get_room(room_id) is not None

    @contextmanager
    def locked(self, room_id: str) -> Iterator[RoomState]:
        """
        Hold a room's lock for the duration of the block.

        Raises ROOM_NOT_FOUND if the room is missing, including when it was
        deleted while this caller was waiting for the lock.
        """
        room = self.get_room(room_id)
        if room is None:
            raise_error(ROOM_NOT_FOUND, f"Room {room_id} not found")
        with room.lock:
            if self.get_room(room_id) is not room:
                raise_error(ROOM_NOT_FOUND, f"Room {room_id} not found")
            yield room

    def delete_room(self, room_id: str) -> bool:
        room = self.get_room(room_id)
        if room is None:
            return False
        with room.lock:
            with self._lock:
                if self.rooms.get(room_id) is not room:
                    return False
                del self.rooms[room_id]
            _reset_room(room)
        logger.info(f"Room {room_id} deleted")
        return True

    def discard_empty(self, room: RoomState) -> bool:
        """Drop a room whose last player left. Caller holds the room lock."""
        with self._lock:
            if self.rooms.get(room.room_id) is not room or room.players:
                return False
            del self.rooms[room.room_id]
        logger.info(f"Room {room.room_id} removed (no players)")
        return True

    def clear_all(self) -> int:
        with self._lock:
            rooms = list(self.rooms.values())
            self.rooms.clear()
        for room in rooms:
            with room.lock:
                _reset_room(room)
        logger.warning(f"All rooms cleared by admin. Cleared {len(rooms)} room(s).")
        return len(rooms)

    def list_room_ids(self) -> List[str]:
        with self._lock:
            return list(self.rooms.keys())

    def list_rooms(self) -> List[RoomState]:
        with self._lock:
            return list(self.rooms.values())

    def touch(self, room_id: str):
        room = self.get_room(room_id)
        if room is None:
            return
        with room.lock:
            room.mark_activity(self.clock())

    def claim_idle_warning(self, room_id: str, now: float, threshold: float) -> bool:
        """
        Stamp the idle warning if the room is due one.

        The idle check and the stamp happen under the room lock, so a touch
        that lands afterwards always re-arms the warning.
        """
        room = self.get_room(room_id)
        if room is None:
            return False
        with room.lock:
            if self.rooms.get(room_id) is not room or room.last_idle_warning is not None:
                return False
            if now - room.last_activity < threshold:
                return False
            room.last_idle_warning = now
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self.rooms)


def _reset_room(room: RoomState):
    # Transport-held references must not keep seeing a live game
    room.players.clear()
    room.submitted_cards.clear()
    room.removed_player_ids.clear()
    room.current_prompt = None
    room.current_round = 0
    room.winning_player_id = None
    room.player_who_left_name = None
    room.is_locked_for_return = False
    room.state = GameState.LOBBY
