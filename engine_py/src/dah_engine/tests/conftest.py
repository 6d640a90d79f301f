"""
Shared fixtures for the game engine tests.
"""

import pytest

from dah_engine.catalog import CardCatalog
from dah_engine.engine import GameEngine
from dah_engine.models import PromptCard, ResponseCard
from dah_engine.repository import RoomRepository


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_catalog(prompt_texts=None, response_count=100, seed=42):
    prompt_texts = prompt_texts or [f"Prompt {i} needs ____." for i in range(10)]
    prompts = [PromptCard.from_text(text, card_id=f"p{i}") for i, text in enumerate(prompt_texts)]
    responses = [ResponseCard(id=f"r{i}", text=f"Response {i}") for i in range(response_count)]
    return CardCatalog(prompts, responses, takedowns=["Your code review is a crime scene."], seed=seed)


def join_all(engine, room_id, names):
    """Join each name with a predictable connection id; returns the ids."""
    ids = []
    for name in names:
        connection_id = f"conn-{name.lower()}"
        engine.add_player(room_id, connection_id, name)
        ids.append(connection_id)
    return ids


def submit_all(engine, room_id):
    """Every non-czar player submits the first cards of their hand."""
    room = engine.get_room(room_id)
    pick = room.current_prompt.pick_count
    for player in room.non_czar_players():
        engine.submit_cards(room_id, player.connection_id, [card.id for card in player.hand[:pick]])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog():
    return make_catalog()


@pytest.fixture
def engine(catalog, clock):
    return GameEngine(catalog, repository=RoomRepository(clock=clock), seed=7)


@pytest.fixture
def lobby(engine):
    """Room ABCDE with Alice, Bob and Carol waiting in the lobby."""
    engine.create_room("ABCDE")
    join_all(engine, "ABCDE", ["Alice", "Bob", "Carol"])
    return "ABCDE"


@pytest.fixture
def started(engine, lobby):
    engine.start_game(lobby)
    return lobby
