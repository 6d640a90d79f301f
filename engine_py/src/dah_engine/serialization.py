"""
State serialization utilities.
"""

from typing import Any, Dict, List, Optional

from .models import Player, PromptCard, RoomState


def serialize_room(state: RoomState) -> Dict[str, Any]:
    """
    Serialize room state for transmission to clients.

    Every player entry carries its hand; clients render only their own.

    Args:
        state: Room state to serialize (caller holds the room lock)

    Returns:
        JSON-safe state dictionary
    """
    return {
        "roomId": state.room_id,
        "creatorConnectionId": state.creator_connection_id,
        "players": [serialize_player(player) for player in state.players],
        "currentPrompt": serialize_prompt(state.current_prompt),
        "submittedCards": {
            player_id: list(card_ids)
            for player_id, card_ids in state.submitted_cards.items()
        },
        "state": state.state.value,
        "czarIndex": state.czar_index,
        "currentRound": state.current_round,
        "totalRounds": state.total_rounds,
        "isDeciderRound": state.is_decider_round,
        "winningPlayerId": state.winning_player_id,
        "maxPlayers": state.max_players,
        "winningScore": state.winning_score,
        "playerWhoLeftName": state.player_who_left_name,
        "isLockedForReturn": state.is_locked_for_return,
    }


def serialize_player(player: Player) -> Dict[str, Any]:
    return {
        "connectionId": player.connection_id,
        "name": player.name,
        "score": player.score,
        "isCzar": player.is_czar,
        "hand": serialize_hand(player),
        "selectedCardIds": list(player.selected_card_ids),
    }


def serialize_hand(player: Player) -> List[Dict[str, str]]:
    return [{"id": card.id, "text": card.text} for card in player.hand]


def serialize_prompt(prompt: Optional[PromptCard]) -> Optional[Dict[str, Any]]:
    if prompt is None:
        return None
    return {"id": prompt.id, "text": prompt.text, "pickCount": prompt.pick_count}


def serialize_room_summary(state: RoomState, now: Optional[float] = None) -> Dict[str, Any]:
    """Get public information about a room for admin listings."""
    summary = {
        "roomId": state.room_id,
        "state": state.state.value,
        "playerCount": len(state.players),
        "players": state.player_names,
        "currentRound": state.current_round,
        "totalRounds": state.total_rounds,
        "lastActivity": state.last_activity,
    }
    if now is not None:
        summary["idleSeconds"] = max(0, int(now - state.last_activity))
    return summary
