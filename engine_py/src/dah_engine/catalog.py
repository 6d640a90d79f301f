"""
Card catalog: the prompt and response sets cards are drawn from.
"""

import logging
import random
import threading
from pathlib import Path
from typing import Iterable, List, Optional, Set, Union

from .constants import (
    DEFAULT_TAKEDOWN, PROMPT_CARDS_FILE, RESPONSE_CARDS_FILE, TAKEDOWNS_FILE, clean_lines,
)
from .errors import EMPTY_CATALOG, raise_error
from .models import PromptCard, ResponseCard

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent / "data"


class CardCatalog:
    """
    Read-mostly card store with uniform random draws.

    The card sets are replaced as a whole by ``replace_catalog``; cards already
    dealt into hands are separate references and are not affected.
    """

    def __init__(
        self,
        prompts: Iterable[PromptCard] = (),
        responses: Iterable[ResponseCard] = (),
        takedowns: Iterable[str] = (),
        seed: Optional[int] = None,
    ):
        self._prompts: List[PromptCard] = list(prompts)
        self._responses: List[ResponseCard] = list(responses)
        self._takedowns: List[str] = list(takedowns)
        self._lock = threading.Lock()
        # Seeded catalogs deal deterministically
        self._rng = random.Random(seed) if seed is not None else random.Random()

    @classmethod
    def from_lines(
        cls,
        prompt_lines: Iterable[str],
        response_lines: Iterable[str],
        takedown_lines: Iterable[str] = (),
        seed: Optional[int] = None,
    ) -> "CardCatalog":
        return cls(
            prompts=[PromptCard.from_text(line) for line in clean_lines(list(prompt_lines))],
            responses=[ResponseCard.from_text(line) for line in clean_lines(list(response_lines))],
            takedowns=clean_lines(list(takedown_lines)),
            seed=seed,
        )

    @property
    def prompts(self) -> List[PromptCard]:
        with self._lock:
            return list(self._prompts)

    @property
    def responses(self) -> List[ResponseCard]:
        with self._lock:
            return list(self._responses)

    def draw_prompt(self) -> PromptCard:
        with self._lock:
            if not self._prompts:
                raise_error(EMPTY_CATALOG, "No prompt cards available")
            return self._rng.choice(self._prompts)

    def draw_response(self) -> ResponseCard:
        with self._lock:
            if not self._responses:
                raise_error(EMPTY_CATALOG, "No response cards available")
            return self._rng.choice(self._responses)

    def draw_responses(self, count: int, exclude_ids: Optional[Set[str]] = None) -> List[ResponseCard]:
        """
        Draw ``count`` response cards for a single hand.

        Cards whose id is in ``exclude_ids`` (the rest of the hand) are avoided
        while enough distinct cards remain, so a hand never holds two copies of
        the same card unless the catalog is smaller than the hand.
        """
        if count <= 0:
            return []
        with self._lock:
            if not self._responses:
                raise_error(EMPTY_CATALOG, "No response cards available")
            excluded = set(exclude_ids or ())
            available = [card for card in self._responses if card.id not in excluded]
            if len(available) >= count:
                return self._rng.sample(available, count)
            drawn = list(available)
            self._rng.shuffle(drawn)
            while len(drawn) < count:
                drawn.append(self._rng.choice(self._responses))
            return drawn

    def random_takedown(self) -> str:
        with self._lock:
            if not self._takedowns:
                return DEFAULT_TAKEDOWN
            return self._rng.choice(self._takedowns)

    def replace_catalog(self, prompts: Iterable[PromptCard], responses: Iterable[ResponseCard]):
        prompts = list(prompts)
        responses = list(responses)
        with self._lock:
            self._prompts = prompts
            self._responses = responses
        logger.info(f"Catalog replaced: {len(prompts)} prompt cards, {len(responses)} response cards")

    def counts(self) -> dict:
        with self._lock:
            return {
                "prompts": len(self._prompts),
                "responses": len(self._responses),
                "takedowns": len(self._takedowns),
            }


def _read_lines(path: Path, label: str) -> List[str]:
    if not path.exists():
        logger.warning(f"{label} file not found at {path}")
        return []
    lines = clean_lines(path.read_text(encoding="utf-8").splitlines())
    logger.info(f"Loaded {len(lines)} {label} from {path}")
    return lines


def load_catalog(data_dir: Union[str, Path, None] = None, seed: Optional[int] = None) -> CardCatalog:
    """
    Load card content from line-oriented text files.

    Args:
        data_dir: Directory holding prompt-cards.txt, response-cards.txt and
            takedowns.txt; defaults to the packaged card set
        seed: Optional seed for deterministic draws

    Returns:
        A populated catalog (empty sets for missing files)
    """
    data_dir = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
    return CardCatalog.from_lines(
        _read_lines(data_dir / PROMPT_CARDS_FILE, "prompt cards"),
        _read_lines(data_dir / RESPONSE_CARDS_FILE, "response cards"),
        _read_lines(data_dir / TAKEDOWNS_FILE, "takedowns"),
        seed=seed,
    )
