"""Shared pytest fixtures for media-sort tests."""

import pytest

from mediasort.config import Config, TMDBConfig
from mediasort.metadata.cache import CacheStore
from mediasort.metadata.queries import METHOD_TYPES
from mediasort.metadata.ratelimit import RateLimiter
from mediasort.models.candidate import Candidate


@pytest.fixture
def offline_config():
    """Configuration with TMDB lookups disabled."""
    return Config(tmdb=TMDBConfig(enabled=False))


@pytest.fixture
def lookup_config():
    """Configuration with TMDB lookups enabled."""
    return Config(tmdb=TMDBConfig(enabled=True, api_key="test-key"))


@pytest.fixture
def memory_cache():
    """In-memory cache store with every query section."""
    return CacheStore(None, METHOD_TYPES.keys())


@pytest.fixture
def fast_limiter():
    """Rate limiter that never waits in practice."""
    return RateLimiter(rate=100, interval=0.01, concurrency=4)


@pytest.fixture
def tv_candidate():
    """Parsed TV episode candidate."""
    candidate = Candidate.from_path("/media/tv/the.flintstones.s01e01.avi")
    candidate.parsed = True
    candidate.mediatype = "tv"
    candidate.pieces = {"name": "the flintstones", "season": 1, "episode": 1}
    return candidate


@pytest.fixture
def movie_candidate():
    """Parsed movie candidate."""
    candidate = Candidate.from_path("/media/movies/Mr Magoo 1997.avi")
    candidate.parsed = True
    candidate.mediatype = "movie"
    candidate.pieces = {"name": "mr magoo", "year": 1997}
    return candidate
