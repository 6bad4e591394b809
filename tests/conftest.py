"""Core test fixtures for dice engine tests."""

import pytest

from src.config import Settings, get_settings
from src.dice.random_source import SeededSource
from src.dice.roller import DiceEngine


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Make every test read settings fresh from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None, seed=None)


@pytest.fixture
def seeded_source() -> SeededSource:
    """Deterministic source with a fixed seed."""
    return SeededSource(42)


@pytest.fixture
def engine(seeded_source, settings) -> DiceEngine:
    """Engine bound to a seeded source and default settings."""
    return DiceEngine(source=seeded_source, settings=settings)
