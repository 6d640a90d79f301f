# engine_py/src/dah_engine/errors.py

class GameError(Exception):
    """Base exception for game-related errors."""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")

# Specific error codes
ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
INVALID_ROOM_ID = "INVALID_ROOM_ID"
INVALID_NAME = "INVALID_NAME"
ALREADY_IN_ROOM = "ALREADY_IN_ROOM"
NAME_TAKEN = "NAME_TAKEN"
GAME_ALREADY_STARTED = "GAME_ALREADY_STARTED"
ROOM_FULL = "ROOM_FULL"
ROOM_LOCKED = "ROOM_LOCKED"
REMOVED_FROM_GAME = "REMOVED_FROM_GAME"
NOT_ENOUGH_PLAYERS = "NOT_ENOUGH_PLAYERS"
NOT_PLAYING = "NOT_PLAYING"
CZAR_CANNOT_SUBMIT = "CZAR_CANNOT_SUBMIT"
NO_PROMPT_CARD = "NO_PROMPT_CARD"
NO_CARDS_SELECTED = "NO_CARDS_SELECTED"
WRONG_CARD_COUNT = "WRONG_CARD_COUNT"
DUPLICATE_CARDS = "DUPLICATE_CARDS"
CARD_NOT_IN_HAND = "CARD_NOT_IN_HAND"
NOT_JUDGING = "NOT_JUDGING"
PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
NOT_ROUND_OVER = "NOT_ROUND_OVER"
NOT_IN_LOBBY = "NOT_IN_LOBBY"
INVALID_ROUNDS = "INVALID_ROUNDS"
EMPTY_CATALOG = "EMPTY_CATALOG"
UNAUTHORIZED = "UNAUTHORIZED"

# Helper function to raise common errors
def raise_error(code: str, message: str):
    raise GameError(code, message)
