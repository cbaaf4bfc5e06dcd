"""Pytest configuration and fixtures."""

import pytest

from helpers import RESOURCE_TYPE, make_record
from repository import Repository
from memory_store import InMemoryStore


@pytest.fixture
def resource_type():
    return RESOURCE_TYPE


@pytest.fixture
def store():
    """An empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def sample_record():
    """Sample GithubRepository record for testing."""
    return make_record()


@pytest.fixture
def sample_repository():
    """Sample decoded repository for testing."""
    return Repository(
        name="repo-a",
        namespace="tacos",
        remote_url="https://example/a.git",
        username="u",
        access_token="t",
    )
