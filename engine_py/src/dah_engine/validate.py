"""
Input validation for room ids, player names and card submissions.

Every check here runs before the engine mutates anything, so a failed
operation leaves the room exactly as it was.
"""

import re
from typing import List, Optional

from .constants import ROOM_CODE_LENGTH, ROOM_ID_FORMAT_CODE, ROOM_ID_FORMAT_NUMERIC
from .errors import (
    CARD_NOT_IN_HAND, DUPLICATE_CARDS, INVALID_NAME, INVALID_ROOM_ID,
    NO_CARDS_SELECTED, NO_PROMPT_CARD, WRONG_CARD_COUNT, raise_error,
)
from .models import Player, PromptCard

ROOM_CODE_RE = re.compile(rf"^[A-Z0-9]{{{ROOM_CODE_LENGTH}}}$")
NUMERIC_ROOM_RE = re.compile(r"^\d+$")


def normalize_room_id(room_id: Optional[str], room_id_format: str = ROOM_ID_FORMAT_CODE) -> str:
    """
    Normalize a client-supplied room id for the deployment's id format.

    Args:
        room_id: Raw room id as typed by a player
        room_id_format: "code" (5 uppercase alphanumerics) or "numeric"

    Returns:
        The canonical room id

    Raises:
        GameError: INVALID_ROOM_ID when the id cannot be normalized
    """
    if room_id is None or not str(room_id).strip():
        raise_error(INVALID_ROOM_ID, "Room code is required")

    trimmed = str(room_id).strip()

    if room_id_format == ROOM_ID_FORMAT_NUMERIC:
        if trimmed.startswith("-"):
            raise_error(INVALID_ROOM_ID, f"Room id cannot be negative. Got: '{trimmed}'")
        if not NUMERIC_ROOM_RE.match(trimmed):
            raise_error(INVALID_ROOM_ID, f"Room id must be a number. Got: '{trimmed}'")
        return trimmed

    trimmed = trimmed.upper()
    if not ROOM_CODE_RE.match(trimmed):
        raise_error(
            INVALID_ROOM_ID,
            f"Room code must be exactly {ROOM_CODE_LENGTH} alphanumeric characters. "
            f"Got: '{trimmed}' (length: {len(trimmed)})"
        )
    return trimmed


def normalize_player_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise_error(INVALID_NAME, "Player name is required")
    return name


def validate_ownership(player: Player, card_ids: List[str]) -> bool:
    """Check if player holds all the specified cards."""
    return all(player.has_card(card_id) for card_id in card_ids)


def validate_submission(player: Player, prompt: Optional[PromptCard], card_ids: Optional[List[str]]):
    """
    Check a non-czar player's response to the current prompt.

    The selection must match the prompt's pick count exactly, contain no
    repeated ids, and only use cards from the player's own hand.
    """
    if prompt is None:
        raise_error(NO_PROMPT_CARD, "No prompt card selected")
    if not card_ids:
        raise_error(NO_CARDS_SELECTED, "No cards selected")
    if len(card_ids) != prompt.pick_count:
        raise_error(WRONG_CARD_COUNT, f"Must submit exactly {prompt.pick_count} card(s)")
    if len(set(card_ids)) != len(card_ids):
        raise_error(DUPLICATE_CARDS, "Cannot submit duplicate cards")
    if not validate_ownership(player, card_ids):
        raise_error(CARD_NOT_IN_HAND, "Card not in hand")
