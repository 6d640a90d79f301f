"""Game constants and utilities"""

import re
from typing import List

HAND_SIZE = 10
MIN_PLAYERS = 3
MAX_PLAYERS = 10
WINNING_SCORE = 7
DEFAULT_TOTAL_ROUNDS = 7

ROOM_CODE_LENGTH = 5
ROOM_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
ROOM_ID_FORMAT_CODE = "code"
ROOM_ID_FORMAT_NUMERIC = "numeric"

# A blank is a run of two or more underscores
BLANK_PATTERN = re.compile(r"_{2,}")

DEFAULT_TAKEDOWN = "Your code is... let's just say it's unique."

PROMPT_CARDS_FILE = "prompt-cards.txt"
RESPONSE_CARDS_FILE = "response-cards.txt"
TAKEDOWNS_FILE = "takedowns.txt"


def count_blanks(text: str) -> int:
    """Number of responses a prompt asks for; at least 1."""
    return max(1, len(BLANK_PATTERN.findall(text)))


def clean_lines(lines: List[str]) -> List[str]:
    return [line.strip() for line in lines if line.strip()]
