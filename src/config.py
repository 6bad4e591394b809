"""Engine configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Dice engine settings loaded from environment variables.

    Every field can be overridden with a ``DICE_`` prefixed variable,
    e.g. ``DICE_EXPLOSION_CAP=20`` or ``DICE_SEED=42``.
    """

    model_config = SettingsConfigDict(
        env_prefix="DICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Parser Limits
    # ==========================================================================
    max_dice: int = Field(default=1000, ge=1)  # Dice per term
    max_sides: int = Field(default=1000, ge=1)  # Faces per die

    # ==========================================================================
    # Termination Caps
    # ==========================================================================
    explosion_cap: int = Field(default=100, ge=0)  # Extra dice per original die
    reroll_cap: int = Field(default=100, ge=1)  # Redraws per die for repeating "r"

    # ==========================================================================
    # Randomness
    # ==========================================================================
    # None = cryptographically secure source
    # int  = deterministic seeded source (tests, replays)
    seed: int | None = None

    # Statistical validation
    significance: float = Field(default=0.01, gt=0.0, lt=1.0)

    # ==========================================================================
    # Batch Rolling
    # ==========================================================================
    batch_budget_ms: float = Field(default=10.0, gt=0.0)
    max_batch_size: int = Field(default=10_000, ge=1)

    # Roll history collaborator
    history_size: int = Field(default=1000, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
