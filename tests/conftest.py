"""Shared fixtures for the scoring core tests."""
import pytest

from blend.compute.cache import ScoreCache
from blend.compute.pipeline import ScoringService
from blend.compute.repository import InMemoryRepository
from factories import make_profile


@pytest.fixture
def viewer():
    return make_profile("viewer", age=31)


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def cache():
    return ScoreCache()


@pytest.fixture
def service(repository, cache):
    return ScoringService(repository=repository, cache=cache)
