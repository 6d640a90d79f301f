"""Room state machine: every game action a player or admin can take"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .catalog import CardCatalog
from .constants import ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH, ROOM_ID_FORMAT_NUMERIC
from .errors import (
    ALREADY_IN_ROOM, CZAR_CANNOT_SUBMIT, GAME_ALREADY_STARTED, INVALID_ROOM_ID,
    INVALID_ROUNDS, NAME_TAKEN, NOT_ENOUGH_PLAYERS, NOT_IN_LOBBY, NOT_JUDGING,
    NOT_PLAYING, NOT_ROUND_OVER, PLAYER_NOT_FOUND, REMOVED_FROM_GAME, ROOM_FULL,
    ROOM_LOCKED, ROOM_NOT_FOUND, UNAUTHORIZED, GameError, raise_error,
)
from .models import GameState, Player, PromptCard, ResponseCard, RoomState
from .repository import RoomRepository
from .rules import RuleConfig, default_rules
from .serialization import serialize_hand, serialize_room
from .validate import normalize_player_name, normalize_room_id, validate_submission

logger = logging.getLogger(__name__)


@dataclass
class JoinResult:
    player: Player
    reconnected: bool = False  # existing player rebound to a new connection
    resumed: bool = False  # the reconnect cleared a mid-game departure lock


@dataclass
class LeaveResult:
    player_name: str
    connection_id: str
    mid_game: bool
    remaining_players: int
    player_names: List[str] = field(default_factory=list)
    has_enough_players: bool = True
    room_deleted: bool = False
    creator_connection_id: Optional[str] = None


class GameEngine:
    def __init__(
        self,
        catalog: CardCatalog,
        rules: RuleConfig = default_rules,
        repository: Optional[RoomRepository] = None,
        seed: Optional[int] = None,
    ):
        self.catalog = catalog
        self.rules = rules
        if repository is None:
            repository = RoomRepository(default_total_rounds=rules.default_total_rounds)
        self.repository = repository
        self._rng = random.Random(seed) if seed is not None else random.Random()

    @property
    def clock(self):
        return self.repository.clock

    # ------------------------------------------------------------------
    # Room ids and repository access
    # ------------------------------------------------------------------

    def normalize(self, room_id: Optional[str]) -> str:
        return normalize_room_id(room_id, self.rules.room_id_format)

    def generate_room_id(self) -> str:
        """Pick an unused room id in the deployment's format."""
        while True:
            if self.rules.room_id_format == ROOM_ID_FORMAT_NUMERIC:
                candidate = str(self._rng.randint(10000, 99999))
            else:
                candidate = "".join(self._rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))
            if not self.repository.exists(candidate):
                return candidate

    def create_room(
        self,
        room_id: Optional[str] = None,
        total_rounds: Optional[int] = None,
        creator_connection_id: Optional[str] = None,
    ) -> RoomState:
        room_id = self.normalize(room_id) if room_id is not None else self.generate_room_id()
        return self.repository.create_room(
            room_id,
            total_rounds=total_rounds,
            creator_connection_id=creator_connection_id,
            max_players=self.rules.max_players,
            winning_score=self.rules.winning_score,
        )

    def get_room(self, room_id: str) -> Optional[RoomState]:
        return self.repository.get_room(self.normalize(room_id))

    def delete_room(self, room_id: str) -> bool:
        return self.repository.delete_room(self.normalize(room_id))

    def clear_rooms(self) -> int:
        return self.repository.clear_all()

    def list_rooms(self) -> List[RoomState]:
        return self.repository.list_rooms()

    def list_room_ids(self) -> List[str]:
        return self.repository.list_room_ids()

    def touch_room(self, room_id: str):
        room_id = self._tolerant_id(room_id)
        if room_id:
            self.repository.touch(room_id)

    def snapshot(self, room_id: str) -> dict:
        with self.repository.locked(self.normalize(room_id)) as room:
            return serialize_room(room)

    def hands(self, room_id: str) -> Dict[str, List[dict]]:
        with self.repository.locked(self.normalize(room_id)) as room:
            return {p.connection_id: serialize_hand(p) for p in room.players}

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add_player(
        self,
        room_id: str,
        connection_id: str,
        name: str,
        allow_rejoin: Optional[bool] = None,
    ) -> JoinResult:
        name = normalize_player_name(name)
        if allow_rejoin is None:
            allow_rejoin = self.rules.allow_mid_game_rejoin

        with self.repository.locked(self.normalize(room_id)) as room:
            current = room.find_player(connection_id)
            if current:
                # A player who left mid-game may come back on the same connection
                if room.is_locked_for_return and current.name == room.player_who_left_name:
                    return self._reconnect(room, current, connection_id)
                raise_error(ALREADY_IN_ROOM, "Player already in room")
            if connection_id in room.removed_player_ids:
                raise_error(REMOVED_FROM_GAME, "You were removed from this game and cannot rejoin")

            existing = room.find_player_by_name(name)
            if existing and existing.connection_id != connection_id:
                if room.state == GameState.LOBBY:
                    raise_error(NAME_TAKEN, "Name already taken")
                return self._reconnect(room, existing, connection_id)

            if room.state != GameState.LOBBY:
                if not allow_rejoin:
                    raise_error(GAME_ALREADY_STARTED, "Cannot join: Game has already started")
                if room.is_locked_for_return:
                    raise_error(ROOM_LOCKED, f"Waiting for {room.player_who_left_name} to return")
            if len(room.players) >= room.max_players:
                raise_error(ROOM_FULL, "Room is full")

            player = Player(connection_id=connection_id, name=name)
            if room.state != GameState.LOBBY:
                # Late joiners need a hand to be able to answer this round
                player.hand = self.catalog.draw_responses(self.rules.hand_size)

            if room.creator_connection_id is None:
                room.creator_connection_id = connection_id
                logger.info(f"Set {name} as creator of room {room.room_id}")

            room.players.append(player)
            room.mark_activity(self.clock())
            logger.info(f"Player {name} joined room {room.room_id}. Total players: {len(room.players)}")
            return JoinResult(player=player)

    def _reconnect(self, room: RoomState, player: Player, connection_id: str) -> JoinResult:
        old_id = player.connection_id
        was_creator = room.creator_connection_id == old_id

        player.connection_id = connection_id
        if old_id in room.submitted_cards:
            room.submitted_cards[connection_id] = room.submitted_cards.pop(old_id)
        if room.winning_player_id == old_id:
            room.winning_player_id = connection_id
        if was_creator:
            room.creator_connection_id = connection_id

        resumed = room.is_locked_for_return and room.player_who_left_name == player.name
        if resumed:
            room.player_who_left_name = None
            room.is_locked_for_return = False

        room.mark_activity(self.clock())
        logger.info(f"Player {player.name} reconnected to room {room.room_id}, was_creator: {was_creator}")
        return JoinResult(player=player, reconnected=True, resumed=resumed)

    def remove_player(self, room_id: str, connection_id: str) -> bool:
        """Remove a player; returns True if the room was discarded because it emptied."""
        room_id = self._tolerant_id(room_id)
        if not room_id:
            return False
        try:
            with self.repository.locked(room_id) as room:
                player = room.find_player(connection_id)
                if player is None:
                    return False
                return self._remove_player_locked(room, player)
        except GameError as e:
            if e.code != ROOM_NOT_FOUND:
                raise
            return False

    def _remove_player_locked(self, room: RoomState, player: Player) -> bool:
        was_czar = player.is_czar
        room.players.remove(player)
        room.submitted_cards.pop(player.connection_id, None)
        room.mark_activity(self.clock())
        logger.info(f"Player {player.name} left room {room.room_id}")

        if not room.players:
            return self.repository.discard_empty(room)

        if room.creator_connection_id == player.connection_id:
            room.creator_connection_id = room.players[0].connection_id
        if was_czar and room.state in (GameState.PLAYING, GameState.JUDGING):
            self._assign_czar(room)
            new_czar = room.czar
            room.submitted_cards.pop(new_czar.connection_id, None)
            new_czar.selected_card_ids = []
            room.state = GameState.PLAYING
        if room.state == GameState.PLAYING:
            self._check_all_submitted(room)
        return False

    def leave_room(self, room_id: str, connection_id: str) -> Optional[LeaveResult]:
        """
        Handle an explicit leave or a dropped connection.

        In the lobby the player is removed. Once a game is running the player is
        kept (hand and score intact) and the room is locked until they return or
        the creator decides how to continue.
        """
        room_id = self._tolerant_id(room_id)
        if not room_id:
            return None
        try:
            with self.repository.locked(room_id) as room:
                player = room.find_player(connection_id)
                if player is None:
                    return None

                if room.state == GameState.LOBBY:
                    deleted = self._remove_player_locked(room, player)
                    return LeaveResult(
                        player_name=player.name,
                        connection_id=connection_id,
                        mid_game=False,
                        remaining_players=len(room.players),
                        player_names=room.player_names,
                        has_enough_players=self.rules.can_start_with(len(room.players)),
                        room_deleted=deleted,
                        creator_connection_id=room.creator_connection_id,
                    )

                room.player_who_left_name = player.name
                room.is_locked_for_return = True
                room.mark_activity(self.clock())
                remaining = len(room.players) - 1
                logger.info(f"Player {player.name} left room {room.room_id} mid-game, {remaining} remaining")
                return LeaveResult(
                    player_name=player.name,
                    connection_id=connection_id,
                    mid_game=True,
                    remaining_players=remaining,
                    player_names=[p.name for p in room.players if p is not player],
                    has_enough_players=self.rules.can_start_with(remaining),
                    creator_connection_id=room.creator_connection_id,
                )
        except GameError as e:
            if e.code != ROOM_NOT_FOUND:
                raise
            return None

    def update_rounds(self, room_id: str, requester_id: str, total_rounds: int) -> RoomState:
        with self.repository.locked(self.normalize(room_id)) as room:
            self._require_creator(room, requester_id, "Only room creator can set rounds")
            if room.state != GameState.LOBBY:
                raise_error(NOT_IN_LOBBY, "Cannot change rounds after game started")
            if total_rounds < 1:
                raise_error(INVALID_ROUNDS, "Must have at least 1 round")
            room.total_rounds = total_rounds
            room.mark_activity(self.clock())
            return room

    # ------------------------------------------------------------------
    # Round lifecycle
    # ------------------------------------------------------------------

    def start_game(self, room_id: str) -> RoomState:
        with self.repository.locked(self.normalize(room_id)) as room:
            if not self.rules.can_start_with(len(room.players)):
                raise_error(NOT_ENOUGH_PLAYERS, f"Need at least {self.rules.min_players} players to start")
            hands = self._draw_hands(room.players)
            prompt = self.catalog.draw_prompt()
            self._begin_game(room, hands, prompt)
            logger.info(f"Game started in room {room.room_id}")
            return room

    def submit_cards(self, room_id: str, player_id: str, card_ids: List[str]) -> GameState:
        with self.repository.locked(self.normalize(room_id)) as room:
            if room.state != GameState.PLAYING:
                raise_error(NOT_PLAYING, "Not in playing state")
            player = room.find_player(player_id)
            if player is None:
                raise_error(PLAYER_NOT_FOUND, "Player not found")
            if player.is_czar:
                raise_error(CZAR_CANNOT_SUBMIT, "Card czar cannot submit cards")
            validate_submission(player, room.current_prompt, card_ids)

            # Resubmitting before the round closes replaces the earlier choice
            room.submitted_cards[player_id] = list(card_ids)
            player.selected_card_ids = list(card_ids)
            self._check_all_submitted(room)
            room.mark_activity(self.clock())
            return room.state

    def select_winner(self, room_id: str, winner_id: str) -> GameState:
        with self.repository.locked(self.normalize(room_id)) as room:
            if room.state != GameState.JUDGING:
                raise_error(NOT_JUDGING, "Not in judging state")
            winner = room.find_player(winner_id)
            if winner is None:
                raise_error(PLAYER_NOT_FOUND, "Winner not found")

            winner.score += 1
            room.winning_player_id = winner_id
            room.state = GameState.ROUND_OVER

            if winner.score >= room.winning_score:
                room.state = GameState.GAME_OVER
            elif room.is_decider_round and self._sole_leader(room) is winner:
                room.state = GameState.GAME_OVER

            room.mark_activity(self.clock())
            logger.info(f"Player {winner.name} won round {room.current_round} in room {room.room_id}")
            if room.state == GameState.GAME_OVER:
                logger.info(f"Game over in room {room.room_id}, winner: {winner.name}")
            return room.state

    def next_round(self, room_id: str) -> GameState:
        with self.repository.locked(self.normalize(room_id)) as room:
            if room.state != GameState.ROUND_OVER:
                raise_error(NOT_ROUND_OVER, "Not in round over state")

            # Draw everything first so a failed draw leaves the room untouched
            refills: List[Tuple[Player, List[str], List[ResponseCard]]] = []
            for player in room.non_czar_players():
                played = [card_id for card_id in player.selected_card_ids if player.has_card(card_id)]
                hand_ids = {card.id for card in player.hand}
                refills.append((player, played, self.catalog.draw_responses(len(played), hand_ids)))

            leader = None
            if room.current_round >= room.total_rounds:
                leader = self._sole_leader(room)
            prompt = self.catalog.draw_prompt() if leader is None else None

            for player, played, replacements in refills:
                player.hand = [card for card in player.hand if card.id not in played]
                player.hand.extend(replacements)
                player.selected_card_ids = []

            if leader is not None:
                room.winning_player_id = leader.connection_id
                room.state = GameState.GAME_OVER
                logger.info(f"Game over in room {room.room_id} after {room.current_round} rounds, winner: {leader.name}")
            else:
                # Round budget spent with a shared top score: play a decider
                room.is_decider_round = room.current_round >= room.total_rounds
                room.czar_index += 1
                room.current_round += 1
                self._start_round(room, prompt)
                if room.is_decider_round:
                    logger.info(f"Decider round {room.current_round} started in room {room.room_id}")

            room.mark_activity(self.clock())
            return room.state

    # ------------------------------------------------------------------
    # Mid-game departure responses (room creator only)
    # ------------------------------------------------------------------

    def wait_for_player_return(self, room_id: str, requester_id: str) -> Optional[str]:
        with self.repository.locked(self.normalize(room_id)) as room:
            self._require_creator(room, requester_id)
            room.mark_activity(self.clock())
            return room.player_who_left_name

    def reset_to_lobby(self, room_id: str, requester_id: str, clear_scores: bool = False) -> RoomState:
        """
        Send everyone back to the lobby to wait for more players.

        Unlike the other resets this changes the roster: the player who left
        mid-game is dropped (without being banned) so the lobby only lists
        connected players. They can rejoin from the lobby under any free name.
        """
        with self.repository.locked(self.normalize(room_id)) as room:
            self._require_creator(room, requester_id)
            departed = self._departed_player(room)
            if departed is not None and departed.connection_id != requester_id:
                room.players.remove(departed)

            for player in room.players:
                player.is_czar = False
                player.hand = []
                player.selected_card_ids = []
                if clear_scores:
                    player.score = 0

            room.state = GameState.LOBBY
            room.submitted_cards.clear()
            room.current_prompt = None
            room.czar_index = 0
            room.current_round = 0
            room.is_decider_round = False
            room.winning_player_id = None
            room.player_who_left_name = None
            room.is_locked_for_return = False
            room.mark_activity(self.clock())
            logger.info(f"Room {room.room_id} returned to lobby")
            return room

    def restart_round(self, room_id: str, requester_id: str) -> RoomState:
        """Drop the departed player and replay the current round with a random czar."""
        with self.repository.locked(self.normalize(room_id)) as room:
            self._require_creator(room, requester_id, "Only room creator can restart round")
            if room.state == GameState.LOBBY:
                raise_error(NOT_PLAYING, "No game in progress")
            departed = self._departed_player(room)
            remaining = [p for p in room.players if p is not departed]
            if not self.rules.can_start_with(len(remaining)):
                raise_error(NOT_ENOUGH_PLAYERS, f"Need at least {self.rules.min_players} players to continue")
            prompt = room.current_prompt or self.catalog.draw_prompt()

            self._expel(room, departed)
            for player in room.players:
                player.selected_card_ids = []
            room.submitted_cards.clear()
            room.winning_player_id = None
            room.czar_index = self._rng.randrange(len(room.players))
            self._assign_czar(room)
            room.current_prompt = prompt
            room.state = GameState.PLAYING
            room.player_who_left_name = None
            room.is_locked_for_return = False
            room.mark_activity(self.clock())
            logger.info(f"Round {room.current_round} restarted in room {room.room_id}")
            return room

    def restart_game(self, room_id: str, requester_id: str) -> RoomState:
        """Drop the departed player and start over: scores, hands and rounds reset."""
        with self.repository.locked(self.normalize(room_id)) as room:
            self._require_creator(room, requester_id, "Only room creator can restart game")
            departed = self._departed_player(room)
            remaining = [p for p in room.players if p is not departed]
            if not self.rules.can_start_with(len(remaining)):
                raise_error(NOT_ENOUGH_PLAYERS, f"Need at least {self.rules.min_players} players to start")
            hands = self._draw_hands(remaining)
            prompt = self.catalog.draw_prompt()

            self._expel(room, departed)
            self._begin_game(room, hands, prompt)
            logger.info(f"Game restarted in room {room.room_id}")
            return room

    def quit_game(self, room_id: str, requester_id: str) -> List[str]:
        """Delete the room for everyone; returns the connection ids that were in it."""
        with self.repository.locked(self.normalize(room_id)) as room:
            self._require_creator(room, requester_id)
            connection_ids = [p.connection_id for p in room.players]
            self.repository.delete_room(room.room_id)
            logger.info(f"Room {room.room_id} closed by its creator")
            return connection_ids

    def send_takedown(self, room_id: str, sender_id: str, target_id: str) -> Tuple[str, str]:
        with self.repository.locked(self.normalize(room_id)) as room:
            sender = room.find_player(sender_id)
            if sender is None:
                raise_error(PLAYER_NOT_FOUND, "Sender not found")
            if room.find_player(target_id) is None:
                raise_error(PLAYER_NOT_FOUND, "Target player not found")
            return sender.name, self.catalog.random_takedown()

    # ------------------------------------------------------------------
    # Internal helpers (caller holds the room lock)
    # ------------------------------------------------------------------

    def _begin_game(self, room: RoomState, hands: Dict[str, List[ResponseCard]], prompt: PromptCard):
        for player in room.players:
            player.score = 0
            player.selected_card_ids = []
            player.hand = hands[player.connection_id]
        room.current_round = 1
        room.czar_index = 0
        room.is_decider_round = False
        room.player_who_left_name = None
        room.is_locked_for_return = False
        self._start_round(room, prompt)
        room.mark_activity(self.clock())

    def _start_round(self, room: RoomState, prompt: PromptCard):
        room.submitted_cards.clear()
        room.winning_player_id = None
        room.state = GameState.PLAYING
        self._assign_czar(room)
        room.current_prompt = prompt

    def _assign_czar(self, room: RoomState):
        for player in room.players:
            player.is_czar = False
        if room.players:
            room.players[room.czar_index % len(room.players)].is_czar = True

    def _check_all_submitted(self, room: RoomState):
        non_czar = room.non_czar_players()
        submitters = [p for p in non_czar if p.connection_id in room.submitted_cards]
        if non_czar and len(submitters) == len(non_czar):
            room.state = GameState.JUDGING

    def _draw_hands(self, players: List[Player]) -> Dict[str, List[ResponseCard]]:
        return {p.connection_id: self.catalog.draw_responses(self.rules.hand_size) for p in players}

    def _sole_leader(self, room: RoomState) -> Optional[Player]:
        if not room.players:
            return None
        top = max(p.score for p in room.players)
        leaders = [p for p in room.players if p.score == top]
        return leaders[0] if len(leaders) == 1 else None

    def _departed_player(self, room: RoomState) -> Optional[Player]:
        if room.player_who_left_name is None:
            return None
        return room.find_player_by_name(room.player_who_left_name)

    def _expel(self, room: RoomState, player: Optional[Player]):
        if player is None:
            return
        room.removed_player_ids.add(player.connection_id)
        room.players.remove(player)
        room.submitted_cards.pop(player.connection_id, None)
        logger.info(f"Player {player.name} removed from room {room.room_id}")

    def _require_creator(self, room: RoomState, requester_id: str, message: str = "Only room creator can perform this action"):
        if room.creator_connection_id != requester_id:
            raise_error(UNAUTHORIZED, message)

    def _tolerant_id(self, room_id: Optional[str]) -> Optional[str]:
        # An id that cannot be normalized names no room
        try:
            return self.normalize(room_id)
        except GameError as e:
            if e.code != INVALID_ROOM_ID:
                raise
            return None
