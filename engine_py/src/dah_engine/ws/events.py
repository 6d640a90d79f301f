"""
WebSocket event models and validation.
"""

import time
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError


class EventType(str, Enum):
    """Inbound event types."""
    CREATE_ROOM = "create_room"
    JOIN = "join"
    LEAVE = "leave"
    UPDATE_ROUNDS = "update_rounds"
    START = "start"
    SUBMIT = "submit"
    SELECT_WINNER = "select_winner"
    NEXT_ROUND = "next_round"
    WAIT_FOR_RETURN = "wait_for_return"
    RETURN_TO_LOBBY = "return_to_lobby"
    RESTART_ROUND = "restart_round"
    RESTART_GAME = "restart_game"
    QUIT_GAME = "quit_game"
    EXTEND_IDLE = "extend_idle"
    TAKEDOWN = "takedown"
    REQUEST_STATE = "request_state"


class OutboundEventType(str, Enum):
    """Outbound event types."""
    ROOM_CREATED = "room_created"
    JOIN_SUCCESS = "join_success"
    PLAYER_JOINED = "player_joined"
    PLAYER_REJOINED = "player_rejoined"
    PLAYER_LEFT = "player_left"
    PLAYER_LEFT_MID_GAME = "player_left_mid_game"
    NOT_ENOUGH_PLAYERS_AFTER_LEAVE = "not_enough_players_after_leave"
    ROUNDS_UPDATED = "rounds_updated"
    GAME_STARTED = "game_started"
    CARD_SUBMITTED = "card_submitted"
    WINNER_SELECTED = "winner_selected"
    ROUND_STARTED = "round_started"
    ROUND_RESTARTED = "round_restarted"
    GAME_RESTARTED = "game_restarted"
    RETURNING_TO_LOBBY = "returning_to_lobby"
    WAITING_FOR_PLAYER_RETURN = "waiting_for_player_return"
    GAME_QUIT = "game_quit"
    ROOM_DELETED = "room_deleted"
    ROOM_IDLE_WARNING = "room_idle_warning"
    ROOM_IDLE_EXTENDED = "room_idle_extended"
    TAKEDOWN = "takedown"
    HAND_UPDATED = "hand_updated"
    STATE_FULL = "state_full"
    ERROR = "error"


class ErrorCode(str, Enum):
    """Gateway-level error codes; game rule failures carry the engine's code."""
    INVALID_EVENT = "INVALID_EVENT"
    NOT_IN_ROOM = "NOT_IN_ROOM"
    INTERNAL = "INTERNAL"


# Inbound event models
class BaseEvent(BaseModel):
    """Base event model."""
    type: EventType


class CreateRoomEvent(BaseEvent):
    """Create a room, optionally joining it straight away."""
    type: EventType = EventType.CREATE_ROOM
    room_id: Optional[str] = Field(default=None, max_length=50)
    name: Optional[str] = Field(default=None, max_length=30)
    total_rounds: Optional[int] = None


class JoinEvent(BaseEvent):
    """Join room event."""
    type: EventType = EventType.JOIN
    room_id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=30)


class LeaveEvent(BaseEvent):
    type: EventType = EventType.LEAVE


class UpdateRoundsEvent(BaseEvent):
    type: EventType = EventType.UPDATE_ROUNDS
    total_rounds: int


class StartEvent(BaseEvent):
    """Start game event."""
    type: EventType = EventType.START


class SubmitEvent(BaseEvent):
    """Submit response cards for the current prompt."""
    type: EventType = EventType.SUBMIT
    card_ids: List[str] = Field(default_factory=list, max_length=10)


class SelectWinnerEvent(BaseEvent):
    """Czar picks the winning submission."""
    type: EventType = EventType.SELECT_WINNER
    player_id: str = Field(..., min_length=1)


class NextRoundEvent(BaseEvent):
    type: EventType = EventType.NEXT_ROUND


class WaitForReturnEvent(BaseEvent):
    type: EventType = EventType.WAIT_FOR_RETURN


class ReturnToLobbyEvent(BaseEvent):
    type: EventType = EventType.RETURN_TO_LOBBY
    clear_scores: bool = False


class RestartRoundEvent(BaseEvent):
    type: EventType = EventType.RESTART_ROUND


class RestartGameEvent(BaseEvent):
    type: EventType = EventType.RESTART_GAME


class QuitGameEvent(BaseEvent):
    type: EventType = EventType.QUIT_GAME


class ExtendIdleEvent(BaseEvent):
    type: EventType = EventType.EXTEND_IDLE


class TakedownEvent(BaseEvent):
    """Send a random roast to another player in the room."""
    type: EventType = EventType.TAKEDOWN
    target_id: str = Field(..., min_length=1)


class RequestStateEvent(BaseEvent):
    """Request full state event."""
    type: EventType = EventType.REQUEST_STATE


# Union type for all inbound events
InboundEvent = Union[
    CreateRoomEvent,
    JoinEvent,
    LeaveEvent,
    UpdateRoundsEvent,
    StartEvent,
    SubmitEvent,
    SelectWinnerEvent,
    NextRoundEvent,
    WaitForReturnEvent,
    ReturnToLobbyEvent,
    RestartRoundEvent,
    RestartGameEvent,
    QuitGameEvent,
    ExtendIdleEvent,
    TakedownEvent,
    RequestStateEvent,
]

EVENT_MODELS = {
    EventType.CREATE_ROOM: CreateRoomEvent,
    EventType.JOIN: JoinEvent,
    EventType.LEAVE: LeaveEvent,
    EventType.UPDATE_ROUNDS: UpdateRoundsEvent,
    EventType.START: StartEvent,
    EventType.SUBMIT: SubmitEvent,
    EventType.SELECT_WINNER: SelectWinnerEvent,
    EventType.NEXT_ROUND: NextRoundEvent,
    EventType.WAIT_FOR_RETURN: WaitForReturnEvent,
    EventType.RETURN_TO_LOBBY: ReturnToLobbyEvent,
    EventType.RESTART_ROUND: RestartRoundEvent,
    EventType.RESTART_GAME: RestartGameEvent,
    EventType.QUIT_GAME: QuitGameEvent,
    EventType.EXTEND_IDLE: ExtendIdleEvent,
    EventType.TAKEDOWN: TakedownEvent,
    EventType.REQUEST_STATE: RequestStateEvent,
}


# Outbound event models
class NoticeEvent(BaseModel):
    """Room notification with a free-form payload."""
    type: OutboundEventType
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: float


class StateFullEvent(BaseModel):
    """Full state event."""
    type: OutboundEventType = OutboundEventType.STATE_FULL
    state: Dict[str, Any]
    timestamp: float


class HandEvent(BaseModel):
    """A player's own hand, pushed after dealing."""
    type: OutboundEventType = OutboundEventType.HAND_UPDATED
    hand: List[Dict[str, str]]
    timestamp: float


class ErrorEvent(BaseModel):
    """Error event."""
    type: OutboundEventType = OutboundEventType.ERROR
    code: str
    message: str
    timestamp: float


OutboundEvent = Union[NoticeEvent, StateFullEvent, HandEvent, ErrorEvent]


def parse_inbound_event(data: Dict[str, Any]) -> InboundEvent:
    """
    Parse raw event data into appropriate event model.

    Args:
        data: Raw event data from WebSocket

    Returns:
        Parsed event model

    Raises:
        ValueError: If event type is invalid or data is malformed
    """
    if not isinstance(data, dict):
        raise ValueError("Event must be a JSON object")

    event_type = data.get("type")
    if not event_type:
        raise ValueError("Missing event type")

    try:
        event_type = EventType(event_type)
    except ValueError:
        raise ValueError(f"Invalid event type: {event_type}")

    event_class = EVENT_MODELS[event_type]
    try:
        return event_class(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid event data: {e.errors()[0]['msg']}")


def create_notice_event(event_type: OutboundEventType, **data) -> NoticeEvent:
    return NoticeEvent(type=event_type, data=data, timestamp=time.time())


def create_state_full_event(state: Dict[str, Any]) -> StateFullEvent:
    """Create a full state event."""
    return StateFullEvent(state=state, timestamp=time.time())


def create_hand_event(hand: List[Dict[str, str]]) -> HandEvent:
    return HandEvent(hand=hand, timestamp=time.time())


def create_error_event(code: Union[ErrorCode, str], message: str) -> ErrorEvent:
    """Create an error event."""
    if isinstance(code, ErrorCode):
        code = code.value
    return ErrorEvent(code=code, message=message, timestamp=time.time())
