"""Game models and data structures"""

import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from .constants import (
    DEFAULT_TOTAL_ROUNDS, MAX_PLAYERS, WINNING_SCORE, count_blanks,
)


class GameState(str, Enum):
    LOBBY = "lobby"
    PLAYING = "playing"
    JUDGING = "judging"
    ROUND_OVER = "round_over"
    GAME_OVER = "game_over"


def new_card_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class PromptCard:
    id: str
    text: str
    pick_count: int = 1

    @classmethod
    def from_text(cls, text: str, card_id: Optional[str] = None) -> "PromptCard":
        text = text.strip()
        return cls(id=card_id or new_card_id(), text=text, pick_count=count_blanks(text))


@dataclass(frozen=True)
class ResponseCard:
    id: str
    text: str

    @classmethod
    def from_text(cls, text: str, card_id: Optional[str] = None) -> "ResponseCard":
        return cls(id=card_id or new_card_id(), text=text.strip())


@dataclass
class Player:
    connection_id: str
    name: str
    score: int = 0
    hand: List[ResponseCard] = field(default_factory=list)
    is_czar: bool = False
    selected_card_ids: List[str] = field(default_factory=list)

    def has_card(self, card_id: str) -> bool:
        return any(card.id == card_id for card in self.hand)


@dataclass
class RoomState:
    room_id: str
    creator_connection_id: Optional[str] = None
    players: List[Player] = field(default_factory=list)
    last_activity: float = 0.0
    last_idle_warning: Optional[float] = None
    current_prompt: Optional[PromptCard] = None
    submitted_cards: Dict[str, List[str]] = field(default_factory=dict)  # connection id -> card ids
    state: GameState = GameState.LOBBY
    czar_index: int = 0
    winning_player_id: Optional[str] = None
    max_players: int = MAX_PLAYERS
    winning_score: int = WINNING_SCORE
    total_rounds: int = DEFAULT_TOTAL_ROUNDS
    current_round: int = 0
    is_decider_round: bool = False
    removed_player_ids: Set[str] = field(default_factory=set)
    player_who_left_name: Optional[str] = None
    is_locked_for_return: bool = False
    # Serializes mutations of this room; see RoomRepository.locked
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def find_player(self, connection_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.connection_id == connection_id), None)

    def find_player_by_name(self, name: str) -> Optional[Player]:
        return next((p for p in self.players if p.name == name), None)

    @property
    def czar(self) -> Optional[Player]:
        return next((p for p in self.players if p.is_czar), None)

    @property
    def player_names(self) -> List[str]:
        return [p.name for p in self.players]

    def non_czar_players(self) -> List[Player]:
        return [p for p in self.players if not p.is_czar]

    def mark_activity(self, now: float):
        self.last_activity = now
        self.last_idle_warning = None
