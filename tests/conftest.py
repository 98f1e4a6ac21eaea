"""Shared test fixtures."""

from __future__ import annotations

import pytest
from github_fakes import FakeGitHub, sample_snapshot

from devscore.config import ScoringConfig
from devscore.models import EcosystemSnapshot


@pytest.fixture
def scoring() -> ScoringConfig:
    return ScoringConfig()


@pytest.fixture
def snapshot() -> EcosystemSnapshot:
    return sample_snapshot()


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Empty fake API; tests register users and repos on it."""
    return FakeGitHub()
