"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock

import pytest

from builders import FakeClock
from prereq_engine.cache.cache import PrerequisiteCache
from prereq_engine.engine import PrerequisiteEngine
from prereq_engine.models.config import EngineConfig
from prereq_engine.models.suite import SetupProfile
from prereq_engine.storage.repository import InMemoryRepository


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> PrerequisiteCache:
    return PrerequisiteCache(clock=clock)


@pytest.fixture
def config(tmp_path) -> EngineConfig:
    return EngineConfig(data_dir=str(tmp_path / "test-data"))


@pytest.fixture
def repo() -> InMemoryRepository:
    repository = InMemoryRepository()
    repository.save_setup_profile(SetupProfile(id="fresh_install", name="Fresh install"))
    repository.save_setup_profile(SetupProfile(id="legacy", name="Legacy", enabled=False))
    return repository


@pytest.fixture
def engine(config: EngineConfig, repo: InMemoryRepository, cache: PrerequisiteCache) -> PrerequisiteEngine:
    return PrerequisiteEngine(config=config, repository=repo, cache=cache)


@pytest.fixture
def device() -> AsyncMock:
    mock = AsyncMock()
    mock.apply_setup_profile.return_value = True
    mock.execute_action.side_effect = lambda action: f"{action.type}: {action.id}"
    return mock
