"""
Game rule configuration and validation.
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from .constants import (
    DEFAULT_TOTAL_ROUNDS, HAND_SIZE, MAX_PLAYERS, MIN_PLAYERS, WINNING_SCORE,
)


class RuleConfig(BaseModel):
    """Configuration for game rules and deployment variant."""

    min_players: int = Field(
        default=MIN_PLAYERS,
        ge=2,
        description="Minimum number of players required to start"
    )
    max_players: int = Field(
        default=MAX_PLAYERS,
        ge=2,
        le=50,
        description="Maximum number of players allowed in a room"
    )
    hand_size: int = Field(
        default=HAND_SIZE,
        ge=1,
        description="Response cards dealt to each player at game start"
    )
    winning_score: int = Field(
        default=WINNING_SCORE,
        ge=1,
        description="Score that ends the game immediately"
    )
    default_total_rounds: int = Field(
        default=DEFAULT_TOTAL_ROUNDS,
        ge=1,
        description="Rounds played when the creator does not choose"
    )
    allow_mid_game_rejoin: bool = Field(
        default=False,
        description="Whether new names may join a game in progress"
    )
    room_id_format: Literal["code", "numeric"] = Field(
        default="code",
        description="5-character alphanumeric codes or non-negative numeric ids"
    )

    @field_validator('max_players')
    @classmethod
    def validate_max_players(cls, v, info):
        """Validate maximum players doesn't undercut minimum."""
        min_players = info.data.get('min_players', MIN_PLAYERS)
        if v < min_players:
            raise ValueError(f'max_players ({v}) must be >= min_players ({min_players})')
        return v

    def can_start_with(self, player_count: int) -> bool:
        return player_count >= self.min_players


# Default configuration instance
default_rules = RuleConfig()


def create_rules(**overrides) -> RuleConfig:
    """Create a RuleConfig with optional overrides."""
    config_dict = default_rules.model_dump()
    config_dict.update(overrides)
    return RuleConfig(**config_dict)
