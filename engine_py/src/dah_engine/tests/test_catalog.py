"""
Tests for card parsing and the card catalog.
"""

import pytest

from dah_engine.catalog import CardCatalog, load_catalog
from dah_engine.constants import DEFAULT_TAKEDOWN, count_blanks
from dah_engine.errors import EMPTY_CATALOG, GameError
from dah_engine.models import PromptCard, ResponseCard

from conftest import make_catalog


def test_pick_count_from_blanks():
    """Each run of underscores is one blank to fill."""
    assert PromptCard.from_text("Why did ___ cross the ___?").pick_count == 2
    assert PromptCard.from_text("My code works because of ____.").pick_count == 1
    assert PromptCard.from_text("No blanks at all").pick_count == 1
    assert count_blanks("a snake_case name") == 1
    assert count_blanks("__ and __ and __") == 3


def test_from_lines_skips_blank_lines():
    catalog = CardCatalog.from_lines(
        ["  First ____ prompt  ", "", "   ", "Second ____ and ____"],
        ["Tabs", "", "Spaces"],
    )
    assert [p.text for p in catalog.prompts] == ["First ____ prompt", "Second ____ and ____"]
    assert [p.pick_count for p in catalog.prompts] == [1, 2]
    assert [r.text for r in catalog.responses] == ["Tabs", "Spaces"]


def test_load_default_card_set():
    catalog = load_catalog()
    counts = catalog.counts()
    assert counts["prompts"] > 0
    assert counts["responses"] >= 10
    assert counts["takedowns"] > 0


def test_load_missing_directory_gives_empty_catalog(tmp_path):
    catalog = load_catalog(tmp_path / "nowhere")
    assert catalog.counts() == {"prompts": 0, "responses": 0, "takedowns": 0}

    with pytest.raises(GameError) as exc:
        catalog.draw_prompt()
    assert exc.value.code == EMPTY_CATALOG

    with pytest.raises(GameError) as exc:
        catalog.draw_responses(3)
    assert exc.value.code == EMPTY_CATALOG

    assert catalog.random_takedown() == DEFAULT_TAKEDOWN


def test_load_from_custom_directory(tmp_path):
    (tmp_path / "prompt-cards.txt").write_text("Deploy on ____?\n\n", encoding="utf-8")
    (tmp_path / "response-cards.txt").write_text("Friday\nNever\n", encoding="utf-8")
    catalog = load_catalog(tmp_path, seed=1)
    assert catalog.counts() == {"prompts": 1, "responses": 2, "takedowns": 0}
    assert catalog.draw_prompt().text == "Deploy on ____?"


def test_draw_responses_avoids_cards_in_hand():
    catalog = make_catalog(response_count=12)
    hand = catalog.draw_responses(10)
    assert len({card.id for card in hand}) == 10

    refill = catalog.draw_responses(2, exclude_ids={card.id for card in hand})
    assert len(refill) == 2
    assert not {card.id for card in refill} & {card.id for card in hand}


def test_draw_responses_small_catalog_still_fills_hand():
    catalog = make_catalog(response_count=3)
    hand = catalog.draw_responses(10)
    assert len(hand) == 10


def test_seeded_catalogs_draw_identically():
    first = make_catalog(seed=123)
    second = make_catalog(seed=123)
    assert [c.id for c in first.draw_responses(10)] == [c.id for c in second.draw_responses(10)]
    assert first.draw_prompt().id == second.draw_prompt().id


def test_replace_catalog_leaves_dealt_cards_alone():
    catalog = make_catalog()
    hand = catalog.draw_responses(5)

    catalog.replace_catalog(
        [PromptCard.from_text("Only ____ remains")],
        [ResponseCard.from_text("New card")],
    )

    assert len(hand) == 5
    assert all(card.text.startswith("Response") for card in hand)
    assert catalog.draw_response().text == "New card"
    assert catalog.counts()["prompts"] == 1
