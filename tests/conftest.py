"""Shared fixtures for the IdeaSlot test suite."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest

from ideaslot.config import RateLimitPolicy
from ideaslot.database import IdeaStore
from ideaslot.models import IdeaRecord


# ---------------------------------------------------------------------------
# Ensure we don't hit real APIs during tests
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _block_env_keys(monkeypatch):
    """Clear all API keys and overrides so tests never hit real services."""
    keys = [
        "SUPABASE_URL",
        "SUPABASE_SERVICE_KEY",
        "ANTHROPIC_API_KEY",
        "TWITTER_BEARER_TOKEN",
        "REDDIT_CLIENT_ID",
        "REDDIT_CLIENT_SECRET",
        "REDDIT_USER_AGENT",
        "REDDIT_USERNAME",
        "REDDIT_PASSWORD",
        "CRON_AUTH_TOKEN",
        "ENVIRONMENT",
        "CLAUDE_MODEL",
        "IDEASLOT_CONFIG",
        "IDEASLOT_STATE_FILE",
        "PORT",
        "REDDIT_MAX_REQUESTS",
        "REDDIT_MIN_INTERVAL",
        "TWITTER_MAX_REQUESTS",
        "TWITTER_MIN_INTERVAL",
    ]
    for key in keys:
        monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# Deterministic time
# ---------------------------------------------------------------------------
class FakeClock:
    """Monotonic clock whose sleeps advance time instantly.

    Each sleep still yields once to the event loop so other tasks can
    interleave in FIFO order.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fast_policy():
    """A policy small enough to exercise window and retry paths quickly."""
    return RateLimitPolicy(
        name="test",
        window_seconds=10.0,
        max_requests=100,
        min_interval=0.0,
        max_retries=3,
        backoff_base=1.0,
        safety_buffer=0.5,
    )


# ---------------------------------------------------------------------------
# Common datetime fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def sample_utc_now():
    """A fixed UTC datetime for deterministic tests."""
    return datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_idea(sample_utc_now):
    """Factory for IdeaRecord instances created ``age_days`` before now."""

    def _make(idea_id, title, description="", age_days=0):
        return IdeaRecord(
            id=idea_id,
            title=title,
            description=description,
            category="Tech",
            created_at=sample_utc_now - timedelta(days=age_days),
        )

    return _make


# ---------------------------------------------------------------------------
# Mock Supabase client
# ---------------------------------------------------------------------------
@pytest.fixture
def mock_supabase_client():
    """A mock Supabase async client (``table()`` is sync, ``execute()`` is awaited)."""
    client = MagicMock()
    # table().select().execute() chain
    table_mock = MagicMock()
    table_mock.select.return_value = table_mock
    table_mock.insert.return_value = table_mock
    table_mock.delete.return_value = table_mock
    table_mock.eq.return_value = table_mock
    table_mock.in_.return_value = table_mock
    table_mock.order.return_value = table_mock

    async def mock_execute():
        return MagicMock(data=[], count=0)

    table_mock.execute = mock_execute
    client.table.return_value = table_mock
    return client


@pytest.fixture
def mock_store():
    """An IdeaStore double with no ideas."""
    store = AsyncMock(spec=IdeaStore)
    store.fetch_ideas.return_value = []
    store.get_ideas_by_ids.return_value = []
    store.insert_ideas.side_effect = lambda rows: [
        {"id": f"new-{i}", **row} for i, row in enumerate(rows, start=1)
    ]
    store.delete_ideas.side_effect = lambda ids: len(ids)
    return store
