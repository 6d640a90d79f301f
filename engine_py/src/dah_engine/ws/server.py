"""
WebSocket session gateway for the party card game.
"""

import logging
import uuid
from collections import defaultdict
from typing import Dict, Optional, Set

import orjson
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from ..engine import GameEngine, LeaveResult
from ..errors import ALREADY_IN_ROOM, ROOM_NOT_FOUND, GameError, raise_error
from ..models import GameState
from ..serialization import serialize_hand
from .events import (
    CreateRoomEvent, ErrorCode, EventType, ExtendIdleEvent, JoinEvent, LeaveEvent,
    NextRoundEvent, OutboundEventType, QuitGameEvent, RequestStateEvent,
    RestartGameEvent, RestartRoundEvent, ReturnToLobbyEvent, SelectWinnerEvent,
    StartEvent, SubmitEvent, TakedownEvent, UpdateRoundsEvent, WaitForReturnEvent,
    create_error_event, create_hand_event, create_notice_event,
    create_state_full_event, parse_inbound_event,
)

logger = logging.getLogger(__name__)


def encode_event(event: BaseModel) -> str:
    return orjson.dumps(event.model_dump(mode="json")).decode()


class ConnectionManager:
    """Manages WebSocket connections and room groups."""

    def __init__(self):
        self.connections: Dict[str, WebSocket] = {}
        self.room_connections: Dict[str, Set[str]] = defaultdict(set)
        self.connection_rooms: Dict[str, Optional[str]] = {}

    def register(self, connection_id: str, websocket: WebSocket):
        self.connections[connection_id] = websocket
        self.connection_rooms[connection_id] = None

    def join_group(self, connection_id: str, room_id: str):
        self.leave_group(connection_id)
        self.room_connections[room_id].add(connection_id)
        self.connection_rooms[connection_id] = room_id
        logger.info(f"Connection {connection_id} joined group {room_id}")

    def leave_group(self, connection_id: str) -> Optional[str]:
        room_id = self.connection_rooms.get(connection_id)
        if room_id is None:
            return None
        members = self.room_connections.get(room_id)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self.room_connections[room_id]
        self.connection_rooms[connection_id] = None
        return room_id

    def drop_group(self, room_id: str):
        """Forget a room's group; its connections stay open but unbound."""
        for connection_id in self.room_connections.pop(room_id, set()):
            self.connection_rooms[connection_id] = None

    def disconnect(self, connection_id: str) -> Optional[str]:
        """Forget a connection; returns the room it was bound to."""
        room_id = self.leave_group(connection_id)
        self.connections.pop(connection_id, None)
        self.connection_rooms.pop(connection_id, None)
        logger.info(f"Connection {connection_id} disconnected from room {room_id}")
        return room_id

    def room_of(self, connection_id: str) -> Optional[str]:
        return self.connection_rooms.get(connection_id)

    async def send(self, connection_id: str, event: BaseModel):
        """Send an event to a single connection."""
        websocket = self.connections.get(connection_id)
        if websocket is None:
            return
        try:
            await websocket.send_text(encode_event(event))
        except Exception as e:
            logger.error(f"Error sending to connection {connection_id}: {e}")
            self.disconnect(connection_id)

    async def broadcast_to_room(self, room_id: str, event: BaseModel, exclude: Optional[str] = None):
        """Broadcast an event to all connections in a room."""
        payload = encode_event(event)
        for connection_id in list(self.room_connections.get(room_id, ())):
            if connection_id == exclude:
                continue
            websocket = self.connections.get(connection_id)
            if websocket is None:
                continue
            try:
                await websocket.send_text(payload)
            except Exception as e:
                logger.error(f"Error broadcasting to {connection_id}: {e}")
                self.disconnect(connection_id)

    async def notify_room_deleted(self, room_id: str, reason: str):
        await self.broadcast_to_room(room_id, create_notice_event(OutboundEventType.ROOM_DELETED, message=reason))
        self.drop_group(room_id)

    async def notify_idle_warning(self, room_id: str, seconds_remaining: int):
        await self.broadcast_to_room(
            room_id,
            create_notice_event(OutboundEventType.ROOM_IDLE_WARNING, seconds_remaining=seconds_remaining),
        )


class GameGateway:
    """
    Translates websocket events into engine calls.

    Engine calls run to completion before anything is sent, so broadcasts never
    happen while a room lock is held. Failures are reported to the calling
    connection only.
    """

    def __init__(self, engine: GameEngine, manager: ConnectionManager):
        self.engine = engine
        self.manager = manager
        self.handlers = {
            EventType.CREATE_ROOM: self.handle_create_room,
            EventType.JOIN: self.handle_join,
            EventType.LEAVE: self.handle_leave,
            EventType.UPDATE_ROUNDS: self.handle_update_rounds,
            EventType.START: self.handle_start,
            EventType.SUBMIT: self.handle_submit,
            EventType.SELECT_WINNER: self.handle_select_winner,
            EventType.NEXT_ROUND: self.handle_next_round,
            EventType.WAIT_FOR_RETURN: self.handle_wait_for_return,
            EventType.RETURN_TO_LOBBY: self.handle_return_to_lobby,
            EventType.RESTART_ROUND: self.handle_restart_round,
            EventType.RESTART_GAME: self.handle_restart_game,
            EventType.QUIT_GAME: self.handle_quit_game,
            EventType.EXTEND_IDLE: self.handle_extend_idle,
            EventType.TAKEDOWN: self.handle_takedown,
            EventType.REQUEST_STATE: self.handle_request_state,
        }

    async def serve(self, websocket: WebSocket):
        """Main loop for one websocket connection."""
        await websocket.accept()
        connection_id = str(uuid.uuid4())
        self.manager.register(connection_id, websocket)
        logger.info(f"WebSocket connection accepted: {connection_id}")

        try:
            while True:
                raw_data = await websocket.receive_text()
                await self.dispatch(connection_id, raw_data)
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected: {connection_id}")
        except Exception as e:
            logger.error(f"WebSocket error on {connection_id}: {e}")
        finally:
            await self.handle_disconnect(connection_id)

    async def dispatch(self, connection_id: str, raw_data: str):
        try:
            event = parse_inbound_event(orjson.loads(raw_data))
            await self.handle_event(connection_id, event)
        except GameError as e:
            await self.manager.send(connection_id, create_error_event(e.code, e.message))
        except ValueError as e:
            # orjson.JSONDecodeError is a ValueError too
            await self.manager.send(connection_id, create_error_event(ErrorCode.INVALID_EVENT, str(e)))
        except Exception as e:
            logger.error(f"Error handling event from {connection_id}: {e}")
            await self.manager.send(connection_id, create_error_event(ErrorCode.INTERNAL, "Internal server error"))

    async def handle_event(self, connection_id: str, event):
        handler = self.handlers.get(event.type)
        if handler is None:
            raise ValueError(f"Unhandled event type: {event.type}")
        await handler(connection_id, event)

    async def handle_disconnect(self, connection_id: str):
        room_id = self.manager.disconnect(connection_id)
        if room_id:
            result = self.engine.leave_room(room_id, connection_id)
            await self._announce_leave(room_id, result)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _room_for(self, connection_id: str) -> str:
        room_id = self.manager.room_of(connection_id)
        if room_id is None:
            raise_error(ErrorCode.NOT_IN_ROOM.value, "Not in a room")
        return room_id

    async def broadcast_state(self, room_id: str):
        try:
            snapshot = self.engine.snapshot(room_id)
        except GameError as e:
            if e.code != ROOM_NOT_FOUND:
                raise
            return
        await self.manager.broadcast_to_room(room_id, create_state_full_event(snapshot))

    async def push_hands(self, room_id: str):
        """Send every player their own hand."""
        for connection_id, hand in self.engine.hands(room_id).items():
            await self.manager.send(connection_id, create_hand_event(hand))

    async def notify(self, room_id: str, event_type: OutboundEventType, **data):
        await self.manager.broadcast_to_room(room_id, create_notice_event(event_type, **data))

    async def _announce_leave(self, room_id: str, result: Optional[LeaveResult]):
        if result is None or result.room_deleted:
            return
        if not result.mid_game:
            await self.notify(
                room_id, OutboundEventType.PLAYER_LEFT,
                name=result.player_name,
                player_count=result.remaining_players,
                players=result.player_names,
                has_enough_players=result.has_enough_players,
            )
        elif result.has_enough_players:
            await self.notify(
                room_id, OutboundEventType.PLAYER_LEFT_MID_GAME,
                name=result.player_name,
                remaining_players=result.remaining_players,
                creator_connection_id=result.creator_connection_id,
            )
        else:
            await self.notify(
                room_id, OutboundEventType.NOT_ENOUGH_PLAYERS_AFTER_LEAVE,
                name=result.player_name,
                remaining_players=result.remaining_players,
                min_players=self.engine.rules.min_players,
                creator_connection_id=result.creator_connection_id,
            )
        await self.broadcast_state(room_id)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def handle_create_room(self, connection_id: str, event: CreateRoomEvent):
        room = self.engine.create_room(
            event.room_id, total_rounds=event.total_rounds, creator_connection_id=connection_id
        )
        await self.manager.send(
            connection_id,
            create_notice_event(OutboundEventType.ROOM_CREATED, room_id=room.room_id),
        )
        if event.name:
            await self._join(connection_id, room.room_id, event.name)

    async def handle_join(self, connection_id: str, event: JoinEvent):
        await self._join(connection_id, event.room_id, event.name)

    async def _join(self, connection_id: str, room_id: str, name: str):
        if self.manager.room_of(connection_id) is not None:
            raise_error(ALREADY_IN_ROOM, "Leave your current room first")

        room_id = self.engine.normalize(room_id)
        result = self.engine.add_player(room_id, connection_id, name)
        self.manager.join_group(connection_id, room_id)

        await self.manager.send(
            connection_id,
            create_notice_event(OutboundEventType.JOIN_SUCCESS, room_id=room_id, player_id=connection_id),
        )
        if result.reconnected:
            await self.notify(
                room_id, OutboundEventType.PLAYER_REJOINED,
                name=result.player.name, resumed=result.resumed,
            )
        else:
            room = self.engine.get_room(room_id)
            names = room.player_names if room else [result.player.name]
            await self.notify(
                room_id, OutboundEventType.PLAYER_JOINED,
                name=result.player.name, player_count=len(names), players=names,
            )
        await self.broadcast_state(room_id)
        if result.player.hand:
            await self.manager.send(connection_id, create_hand_event(serialize_hand(result.player)))

    async def handle_leave(self, connection_id: str, event: LeaveEvent):
        room_id = self._room_for(connection_id)
        self.manager.leave_group(connection_id)
        result = self.engine.leave_room(room_id, connection_id)
        await self._announce_leave(room_id, result)

    async def handle_update_rounds(self, connection_id: str, event: UpdateRoundsEvent):
        room_id = self._room_for(connection_id)
        room = self.engine.update_rounds(room_id, connection_id, event.total_rounds)
        await self.notify(room_id, OutboundEventType.ROUNDS_UPDATED, total_rounds=room.total_rounds)
        await self.broadcast_state(room_id)

    async def handle_start(self, connection_id: str, event: StartEvent):
        room_id = self._room_for(connection_id)
        self.engine.start_game(room_id)
        await self.notify(room_id, OutboundEventType.GAME_STARTED)
        await self.broadcast_state(room_id)
        await self.push_hands(room_id)

    async def handle_submit(self, connection_id: str, event: SubmitEvent):
        room_id = self._room_for(connection_id)
        self.engine.submit_cards(room_id, connection_id, event.card_ids)
        await self.notify(room_id, OutboundEventType.CARD_SUBMITTED, player_id=connection_id)
        await self.broadcast_state(room_id)

    async def handle_select_winner(self, connection_id: str, event: SelectWinnerEvent):
        room_id = self._room_for(connection_id)
        state = self.engine.select_winner(room_id, event.player_id)
        await self.notify(
            room_id, OutboundEventType.WINNER_SELECTED,
            player_id=event.player_id, game_over=state == GameState.GAME_OVER,
        )
        await self.broadcast_state(room_id)

    async def handle_next_round(self, connection_id: str, event: NextRoundEvent):
        room_id = self._room_for(connection_id)
        state = self.engine.next_round(room_id)
        if state == GameState.PLAYING:
            await self.notify(room_id, OutboundEventType.ROUND_STARTED)
        await self.broadcast_state(room_id)
        await self.push_hands(room_id)

    async def handle_wait_for_return(self, connection_id: str, event: WaitForReturnEvent):
        room_id = self._room_for(connection_id)
        name = self.engine.wait_for_player_return(room_id, connection_id)
        await self.notify(room_id, OutboundEventType.WAITING_FOR_PLAYER_RETURN, name=name)

    async def handle_return_to_lobby(self, connection_id: str, event: ReturnToLobbyEvent):
        room_id = self._room_for(connection_id)
        self.engine.reset_to_lobby(room_id, connection_id, clear_scores=event.clear_scores)
        await self.notify(room_id, OutboundEventType.RETURNING_TO_LOBBY)
        await self.broadcast_state(room_id)

    async def handle_restart_round(self, connection_id: str, event: RestartRoundEvent):
        room_id = self._room_for(connection_id)
        self.engine.restart_round(room_id, connection_id)
        await self.notify(room_id, OutboundEventType.ROUND_RESTARTED)
        await self.broadcast_state(room_id)

    async def handle_restart_game(self, connection_id: str, event: RestartGameEvent):
        room_id = self._room_for(connection_id)
        self.engine.restart_game(room_id, connection_id)
        await self.notify(room_id, OutboundEventType.GAME_RESTARTED)
        await self.broadcast_state(room_id)
        await self.push_hands(room_id)

    async def handle_quit_game(self, connection_id: str, event: QuitGameEvent):
        room_id = self._room_for(connection_id)
        self.engine.quit_game(room_id, connection_id)
        await self.notify(room_id, OutboundEventType.GAME_QUIT, message="The host ended the game")
        self.manager.drop_group(room_id)

    async def handle_extend_idle(self, connection_id: str, event: ExtendIdleEvent):
        room_id = self._room_for(connection_id)
        self.engine.touch_room(room_id)
        await self.notify(room_id, OutboundEventType.ROOM_IDLE_EXTENDED)

    async def handle_takedown(self, connection_id: str, event: TakedownEvent):
        room_id = self._room_for(connection_id)
        sender_name, text = self.engine.send_takedown(room_id, connection_id, event.target_id)
        self.engine.touch_room(room_id)
        await self.manager.send(
            event.target_id,
            create_notice_event(OutboundEventType.TAKEDOWN, sender=sender_name, text=text),
        )

    async def handle_request_state(self, connection_id: str, event: RequestStateEvent):
        room_id = self._room_for(connection_id)
        self.engine.touch_room(room_id)
        await self.manager.send(connection_id, create_state_full_event(self.engine.snapshot(room_id)))
