"""Tests for the rate-limited request scheduler.

Validates:
- Sliding-window admission and minimum spacing between dispatches
- FIFO order, with front re-insertion of retried requests (inline and
  deferred backoff)
- Backoff delays, provider reset hints and retry exhaustion
- Usage-cap errors disable the scheduler permanently
- Fatal errors fail only their own request
- Errors raised while retrying fail the request instead of stalling it
"""

import asyncio
from dataclasses import replace

import pytest

from ideaslot.exceptions import (
    ProviderAPIError,
    RateLimitExceededError,
    SourceUnavailableError,
    UsageCapExceededError,
)
from ideaslot.scheduling.request_scheduler import (
    ErrorKind,
    RequestScheduler,
    classify_error,
)
from ideaslot.tools.twitter import classify_twitter_error


def rate_limited(retry_after=None):
    return ProviderAPIError(
        "test", "Too Many Requests", status_code=429, retry_after=retry_after
    )


def make_call(name, log, clock=None, failures=0, error=None, yields=0):
    """Invocation that logs its dispatch and fails ``failures`` times first."""
    remaining = {"failures": failures}

    async def call():
        log.append((name, clock() if clock else None))
        for _ in range(yields):
            await asyncio.sleep(0)
        if remaining["failures"]:
            remaining["failures"] -= 1
            raise error or rate_limited()
        return name

    return call


def names(log):
    return [name for name, _ in log]


def times(log):
    return [at for _, at in log]


# =============================================================================
# Admission and pacing
# =============================================================================


class TestAdmission:
    """Window capacity and minimum inter-request spacing."""

    @pytest.mark.asyncio
    async def test_waits_for_window_capacity(self, fast_policy, clock):
        """The third call waits for the oldest entry to leave the window plus the buffer."""
        policy = replace(fast_policy, max_requests=2)
        scheduler = RequestScheduler(policy, clock=clock, sleep=clock.sleep)
        log = []

        results = await asyncio.gather(
            *(scheduler.run(make_call(n, log, clock), n) for n in "ABC")
        )

        assert results == ["A", "B", "C"]
        assert times(log) == [0.0, 0.0, pytest.approx(10.5)]

    @pytest.mark.asyncio
    async def test_enforces_minimum_interval(self, fast_policy, clock):
        policy = replace(fast_policy, min_interval=3.0)
        scheduler = RequestScheduler(policy, clock=clock, sleep=clock.sleep)
        log = []

        await asyncio.gather(*(scheduler.run(make_call(n, log, clock), n) for n in "ABC"))

        gaps = [b - a for a, b in zip(times(log), times(log)[1:])]
        assert all(gap >= 3.0 for gap in gaps)
        assert times(log) == [0.0, 3.0, 6.0]

    @pytest.mark.asyncio
    async def test_no_window_ever_exceeds_cap(self, fast_policy, clock):
        policy = replace(fast_policy, max_requests=3, min_interval=0.4)
        scheduler = RequestScheduler(policy, clock=clock, sleep=clock.sleep)
        log = []

        await asyncio.gather(
            *(scheduler.run(make_call(str(i), log, clock), str(i)) for i in range(12))
        )

        dispatched = times(log)
        assert len(dispatched) == 12
        for start in dispatched:
            inside = [t for t in dispatched if start <= t < start + policy.window_seconds]
            assert len(inside) <= policy.max_requests

    @pytest.mark.asyncio
    async def test_rate_limit_info_reflects_window(self, fast_policy, clock):
        scheduler = RequestScheduler(fast_policy, clock=clock, sleep=clock.sleep)
        log = []
        await scheduler.run(make_call("A", log, clock), "A")
        await scheduler.run(make_call("B", log, clock), "B")

        info = scheduler.rate_limit_info().to_dict()

        assert info["currentRequests"] == 2
        assert info["remainingRequests"] == 98
        assert info["withinLimit"] is True
        assert info["queueSize"] == 0
        assert info["isProcessing"] is False


# =============================================================================
# Queue order with retries
# =============================================================================


class TestRetryOrdering:
    """A retried request returns to the front of the queue."""

    @pytest.mark.asyncio
    async def test_inline_backoff_retries_before_siblings(self, fast_policy, clock):
        """Requeue happens before B is dispatched: [A, A(retry), B, C]."""
        scheduler = RequestScheduler(fast_policy, clock=clock, sleep=clock.sleep)
        log = []
        calls = {
            "A": make_call("A", log, clock, failures=1),
            "B": make_call("B", log, clock),
            "C": make_call("C", log, clock),
        }

        results = await asyncio.gather(*(scheduler.run(calls[n], n) for n in "ABC"))

        assert results == ["A", "B", "C"]
        assert names(log) == ["A", "A", "B", "C"]
        assert clock.sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_deferred_backoff_lets_siblings_run(self, fast_policy, clock):
        """Requeue happens after B is dispatched: [A, B, A(retry), C]."""
        policy = replace(fast_policy, defer_backoff=True)
        scheduler = RequestScheduler(policy, clock=clock, sleep=clock.sleep)
        log = []
        calls = {
            "A": make_call("A", log, clock, failures=1),
            # B stays in flight long enough for A's backoff to finish
            "B": make_call("B", log, clock, yields=3),
            "C": make_call("C", log, clock),
        }

        results = await asyncio.gather(*(scheduler.run(calls[n], n) for n in "ABC"))

        assert results == ["A", "B", "C"]
        assert names(log) == ["A", "B", "A", "C"]

    @pytest.mark.asyncio
    async def test_deferred_retry_restarts_idle_loop(self, fast_policy, clock):
        policy = replace(fast_policy, defer_backoff=True)
        scheduler = RequestScheduler(policy, clock=clock, sleep=clock.sleep)
        log = []

        result = await scheduler.run(make_call("A", log, clock, failures=1), "A")

        assert result == "A"
        assert names(log) == ["A", "A"]


# =============================================================================
# Backoff and exhaustion
# =============================================================================


class TestBackoff:
    """Exponential backoff, provider reset hints and the retry budget."""

    @pytest.mark.asyncio
    async def test_exponential_backoff_then_exhaustion(self, fast_policy, clock):
        scheduler = RequestScheduler(fast_policy, clock=clock, sleep=clock.sleep)
        log = []

        with pytest.raises(RateLimitExceededError, match="after 3 retries"):
            await scheduler.run(make_call("A", log, clock, failures=99), "A")

        assert len(log) == 4
        assert clock.sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_provider_reset_hint_overrides_backoff(self, fast_policy, clock):
        scheduler = RequestScheduler(fast_policy, clock=clock, sleep=clock.sleep)
        log = []
        call = make_call("A", log, clock, failures=1, error=rate_limited(retry_after=7.0))

        assert await scheduler.run(call, "A") == "A"
        assert clock.sleeps == [7.5]

    @pytest.mark.asyncio
    async def test_exhaustion_does_not_stall_queue(self, fast_policy, clock):
        policy = replace(fast_policy, max_retries=1)
        scheduler = RequestScheduler(policy, clock=clock, sleep=clock.sleep)
        log = []

        results = await asyncio.gather(
            scheduler.enqueue(make_call("A", log, clock, failures=99), "A"),
            scheduler.enqueue(make_call("B", log, clock), "B"),
        )

        assert results[0].success is False
        assert "Rate limit exceeded" in results[0].error
        assert results[1].success is True
        assert results[1].data == "B"


# =============================================================================
# Usage cap and fatal errors
# =============================================================================


class TestTerminalErrors:
    """Usage caps disable the scheduler; fatal errors fail one request."""

    @pytest.mark.asyncio
    async def test_usage_cap_disables_scheduler(self, fast_policy, clock):
        scheduler = RequestScheduler(
            fast_policy,
            classify_error=classify_twitter_error,
            clock=clock,
            sleep=clock.sleep,
        )
        reasons = []
        scheduler.on_disabled(reasons.append)
        log = []
        cap = ProviderAPIError(
            "twitter", "Twitter API error 429", status_code=429, title="UsageCapExceeded"
        )

        results = await asyncio.gather(
            scheduler.enqueue(make_call("A", log, clock, failures=1, error=cap), "A"),
            scheduler.enqueue(make_call("B", log, clock), "B"),
            scheduler.enqueue(make_call("C", log, clock), "C"),
        )

        assert names(log) == ["A"]
        assert all(not r.success for r in results)
        assert "unavailable" in results[1].error
        assert scheduler.is_available is False
        assert len(reasons) == 1

        with pytest.raises(SourceUnavailableError):
            await scheduler.run(make_call("D", log, clock), "D")
        assert names(log) == ["A"]

    @pytest.mark.asyncio
    async def test_disable_is_idempotent(self, fast_policy):
        scheduler = RequestScheduler(fast_policy)
        reasons = []
        scheduler.on_disabled(reasons.append)

        scheduler.disable("first")
        scheduler.disable("second")

        assert reasons == ["first"]
        assert scheduler.capability.reason == "first"

    @pytest.mark.asyncio
    async def test_fatal_error_fails_only_that_request(self, fast_policy, clock):
        scheduler = RequestScheduler(fast_policy, clock=clock, sleep=clock.sleep)
        log = []
        broken = make_call("A", log, clock, failures=1, error=ValueError("bad payload"))

        with pytest.raises(ValueError, match="bad payload"):
            await scheduler.run(broken, "A")
        assert await scheduler.run(make_call("B", log, clock), "B") == "B"
        assert names(log) == ["A", "B"]
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_enqueue_reports_failure_instead_of_raising(self, fast_policy, clock):
        scheduler = RequestScheduler(fast_policy, clock=clock, sleep=clock.sleep)
        call = make_call("A", [], clock, failures=1, error=RuntimeError("boom"))

        result = await scheduler.enqueue(call, "tech")

        assert result.success is False
        assert result.category == "tech"
        assert result.error == "boom"

    @pytest.mark.asyncio
    async def test_classifier_error_fails_request(self, fast_policy, clock):
        def broken_classifier(exc):
            raise RuntimeError("classifier bug")

        scheduler = RequestScheduler(
            fast_policy, classify_error=broken_classifier, clock=clock, sleep=clock.sleep
        )
        log = []

        with pytest.raises(RuntimeError, match="classifier bug"):
            await scheduler.run(make_call("A", log, clock, failures=1), "A")

        assert await scheduler.run(make_call("B", log, clock), "B") == "B"
        assert names(log) == ["A", "B"]

    @pytest.mark.parametrize("defer", [False, True], ids=["inline", "deferred"])
    @pytest.mark.asyncio
    async def test_sleep_error_fails_request(self, fast_policy, clock, defer):
        async def broken_sleep(seconds):
            raise RuntimeError("timer gone")

        scheduler = RequestScheduler(
            replace(fast_policy, defer_backoff=defer), clock=clock, sleep=broken_sleep
        )
        log = []

        with pytest.raises(RuntimeError, match="timer gone"):
            await scheduler.run(make_call("A", log, clock, failures=1), "A")
        assert names(log) == ["A"]


# =============================================================================
# Error classification
# =============================================================================


class TestClassifyError:
    """Tests for the generic error classifier."""

    @pytest.mark.parametrize(
        "exc, kind",
        [
            (ProviderAPIError("x", "slow down", status_code=429), ErrorKind.RATE_LIMITED),
            (RuntimeError("Too Many Requests"), ErrorKind.RATE_LIMITED),
            (RuntimeError("RATELIMIT reached"), ErrorKind.RATE_LIMITED),
            (UsageCapExceededError("monthly cap"), ErrorKind.USAGE_CAP),
            (RuntimeError("Usage cap exceeded for project"), ErrorKind.USAGE_CAP),
            (ProviderAPIError("x", "server error", status_code=500), ErrorKind.FATAL),
            (ValueError("bad json"), ErrorKind.FATAL),
        ],
        ids=["429", "too-many", "ratelimit", "cap-type", "cap-text", "500", "other"],
    )
    def test_classification(self, exc, kind):
        assert classify_error(exc).kind is kind

    def test_usage_cap_wins_over_429(self):
        exc = ProviderAPIError("twitter", "error", status_code=429, title="UsageCapExceeded")
        assert classify_error(exc).kind is ErrorKind.USAGE_CAP

    def test_retry_after_is_carried(self):
        verdict = classify_error(rate_limited(retry_after=12.0))
        assert verdict.retry_after == 12.0
