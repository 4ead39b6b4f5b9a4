"""
Tests for ideaslot.utils module.

Covers:
    - utc_now(): returns timezone-aware UTC datetime
    - ensure_utc(): converts naive and aware datetimes to UTC
    - parse_timestamp(): ISO strings from the store, including trailing Z
    - isoformat_utc(): serialization used by the state file
    - with_retry(): exponential backoff decorator for async functions
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from ideaslot.exceptions import RetryExhaustedError
from ideaslot.utils import ensure_utc, isoformat_utc, parse_timestamp, utc_now, with_retry


# ===========================================================================
# Timezone helpers
# ===========================================================================


def test_utc_now_is_aware():
    assert utc_now().tzinfo == timezone.utc


def test_ensure_utc_naive_is_assumed_utc():
    naive = datetime(2025, 1, 1, 12, 0)
    assert ensure_utc(naive) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_ensure_utc_converts_offset():
    plus_two = timezone(timedelta(hours=2))
    aware = datetime(2025, 1, 1, 14, 0, tzinfo=plus_two)
    assert ensure_utc(aware) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value",
    ["2025-06-15T12:00:00Z", "2025-06-15T12:00:00+00:00", "2025-06-15T14:00:00+02:00"],
    ids=["zulu", "offset-zero", "offset-two"],
)
def test_parse_timestamp(value, sample_utc_now):
    assert parse_timestamp(value) == sample_utc_now


@pytest.mark.parametrize(
    "value, microsecond",
    [
        ("2024-05-01T10:00:00.12345+00:00", 123450),
        ("2024-05-01T10:00:00.1Z", 100000),
        ("2024-05-01T10:00:00.1234567+00:00", 123456),
        ("2024-05-01T10:00:00.12345", 123450),
    ],
    ids=["five-digits", "one-digit", "seven-digits", "naive"],
)
def test_parse_timestamp_trimmed_fraction(value, microsecond):
    parsed = parse_timestamp(value)
    assert parsed == datetime(2024, 5, 1, 10, 0, 0, microsecond, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", [None, ""])
def test_parse_timestamp_empty(value):
    assert parse_timestamp(value) is None


def test_parse_timestamp_invalid():
    with pytest.raises(ValueError):
        parse_timestamp("yesterday")


def test_isoformat_utc(sample_utc_now):
    assert isoformat_utc(sample_utc_now) == "2025-06-15T12:00:00+00:00"
    assert parse_timestamp(isoformat_utc()) is not None


# ===========================================================================
# with_retry() -- asynchronous functions
# ===========================================================================


@pytest.mark.asyncio
async def test_with_retry_succeeds_first_try():
    """Function that succeeds immediately is not retried."""
    with patch("ideaslot.utils.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:

        @with_retry(max_attempts=3, base_delay=2.0)
        async def succeed():
            return "ok"

        assert await succeed() == "ok"
        mock_sleep.assert_not_called()


@pytest.mark.asyncio
async def test_with_retry_retries_and_succeeds_second_try():
    """Function that fails once then succeeds is retried exactly once."""
    with patch("ideaslot.utils.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        call_count = 0

        @with_retry(max_attempts=3, base_delay=2.0)
        async def flaky():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ValueError("transient")
            return "recovered"

        assert await flaky() == "recovered"
        assert call_count == 2
        mock_sleep.assert_called_once_with(2.0)


@pytest.mark.asyncio
async def test_with_retry_exhausts_retries():
    """Function that always fails raises RetryExhaustedError after max_attempts."""
    with patch("ideaslot.utils.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:

        @with_retry(max_attempts=3, base_delay=1.0, operation_name="async_op")
        async def always_fail():
            raise RuntimeError("permanent")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await always_fail()

        err = exc_info.value
        assert err.operation == "async_op"
        assert err.attempts == 3
        assert str(err.last_error) == "permanent"
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_with_retry_non_retryable_propagates():
    """Exceptions outside retryable_exceptions are raised immediately."""
    with patch("ideaslot.utils.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:

        @with_retry(max_attempts=3, retryable_exceptions=(ConnectionError,))
        async def broken():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            await broken()
        mock_sleep.assert_not_called()
