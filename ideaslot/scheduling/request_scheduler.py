"""
Rate-limited request scheduler shared by every outbound API client.

One ``RequestScheduler`` serializes all callers of a provider through a
single FIFO queue drained by one processing loop.  Before each dispatch the
loop waits for sliding-window capacity (one computed sleep, then a
recheck), then enforces the minimum inter-request gap.

Failures are classified by an injected function:

- ``RATE_LIMITED``: backoff ``backoff_base * 2 ** attempt`` (or the provider
  reset time plus the safety buffer), then the request goes back to the
  *front* of the queue.  After ``max_retries`` it fails with
  ``RateLimitExceededError``.
- ``USAGE_CAP``: the scheduler disables itself for the rest of the
  process.  Queued and future requests fail with ``SourceUnavailableError``
  without being dispatched.
- ``FATAL``: the request fails immediately.

One request's failure never stalls the rest of the queue.

Usage::

    scheduler = RequestScheduler(RateLimitPolicy.reddit())
    posts = await scheduler.run(lambda: client.search("startups", "fix for"), "startups")
    result = await scheduler.enqueue(lambda: client.search_recent(q), "tech")
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, List, Optional, Set

from ideaslot.config import RateLimitPolicy
from ideaslot.exceptions import (
    ProviderAPIError,
    RateLimitExceededError,
    SourceUnavailableError,
    UsageCapExceededError,
)
from ideaslot.scheduling.models import (
    Capability,
    CategoryResult,
    QueuedRequest,
    RateLimitInfo,
)
from ideaslot.scheduling.rate_window import RateWindow

logger = logging.getLogger(__name__)

Invocation = Callable[[], Awaitable[Any]]


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================


class ErrorKind(Enum):
    """How the scheduler reacts to a failed dispatch."""

    RATE_LIMITED = "rate_limited"
    USAGE_CAP = "usage_cap"
    FATAL = "fatal"


@dataclass(frozen=True)
class ErrorVerdict:
    """Classifier output.  ``retry_after`` is the provider reset delay in seconds."""

    kind: ErrorKind
    retry_after: Optional[float] = None


ErrorClassifier = Callable[[BaseException], ErrorVerdict]

RATE_LIMIT_MARKERS = ("ratelimit", "rate limit", "429", "too many requests")
USAGE_CAP_MARKERS = ("usagecapexceeded", "usage cap exceeded")


def classify_error(exc: BaseException) -> ErrorVerdict:
    """Generic classifier covering HTTP 429 and common provider wording."""
    if isinstance(exc, UsageCapExceededError):
        return ErrorVerdict(ErrorKind.USAGE_CAP)

    if isinstance(exc, ProviderAPIError):
        markers = " ".join(
            part for part in (exc.title, exc.detail, str(exc)) if part
        ).lower()
        if any(marker in markers for marker in USAGE_CAP_MARKERS):
            return ErrorVerdict(ErrorKind.USAGE_CAP)
        if exc.status_code == 429:
            return ErrorVerdict(ErrorKind.RATE_LIMITED, exc.retry_after)

    message = str(exc).lower()
    if any(marker in message for marker in USAGE_CAP_MARKERS):
        return ErrorVerdict(ErrorKind.USAGE_CAP)
    if any(marker in message for marker in RATE_LIMIT_MARKERS):
        return ErrorVerdict(ErrorKind.RATE_LIMITED)
    return ErrorVerdict(ErrorKind.FATAL)


# =============================================================================
# SCHEDULER
# =============================================================================


class RequestScheduler:
    """Queue, pace and retry calls against one rate-limited API.

    Args:
        policy: Window size, cap, pacing and retry parameters.
        classify_error: Maps a dispatch failure to an :class:`ErrorVerdict`.
        clock: Monotonic time source in seconds.
        sleep: Awaitable sleep used for every wait.

    The scheduler holds no external resources; construct it once at
    startup and share it between every caller of the provider.
    """

    def __init__(
        self,
        policy: RateLimitPolicy,
        classify_error: ErrorClassifier = classify_error,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.policy = policy
        self._classify = classify_error
        self._clock = clock
        self._sleep = sleep
        self.window = RateWindow(policy.window_seconds, policy.max_requests, clock)
        self._queue: Deque[QueuedRequest] = deque()
        self._is_processing = False
        self._last_dispatch: Optional[float] = None
        self._capability = Capability.ok()
        self._disable_listeners: List[Callable[[str], None]] = []
        self._retry_tasks: Set["asyncio.Task[None]"] = set()
        self._loop_task: Optional["asyncio.Task[None]"] = None

    # ------------------------------------------------------------------
    # Capability
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.policy.name

    @property
    def capability(self) -> Capability:
        return self._capability

    @property
    def is_available(self) -> bool:
        return self._capability.is_available

    def on_disabled(self, listener: Callable[[str], None]) -> None:
        """Register a callback invoked once with the reason when disabled."""
        self._disable_listeners.append(listener)

    def disable(self, reason: str) -> None:
        """Stop dispatching for the rest of the process."""
        if not self._capability.is_available:
            return
        self._capability = Capability.disabled(reason)
        logger.error("[SCHEDULER] %s disabled: %s", self.name, reason)
        for listener in self._disable_listeners:
            listener(reason)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def run(self, invocation: Invocation, label: str = "request") -> Any:
        """Queue *invocation* and return its value once dispatched.

        Raises:
            SourceUnavailableError: If the scheduler is disabled.
            RateLimitExceededError: If the retry budget is exhausted.
            Exception: Whatever the invocation raised on a fatal failure.
        """
        if not self._capability.is_available:
            raise SourceUnavailableError(self.name, self._capability.reason or "disabled")

        future: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        self._queue.append(
            QueuedRequest(
                invocation=invocation,
                label=label,
                future=future,
                enqueued_at=self._clock(),
            )
        )
        logger.debug(
            "[SCHEDULER] %s queued '%s' (queue=%d)", self.name, label, len(self._queue)
        )
        self._ensure_processing()
        return await future

    async def enqueue(self, invocation: Invocation, label: str) -> CategoryResult:
        """Queue *invocation* and return its outcome as a :class:`CategoryResult`.

        Never raises for dispatch failures; they are reported in the result.
        """
        try:
            data = await self.run(invocation, label)
        except Exception as exc:
            logger.warning("[SCHEDULER] %s '%s' failed: %s", self.name, label, exc)
            return CategoryResult.failed(label, exc)
        return CategoryResult.succeeded(label, data)

    def rate_limit_info(self) -> RateLimitInfo:
        """Snapshot of window occupancy and queue status."""
        current = self.window.count
        return RateLimitInfo(
            current_requests=current,
            max_requests=self.policy.max_requests,
            window_seconds=self.policy.window_seconds,
            within_limit=current < self.policy.max_requests,
            remaining_requests=max(0, self.policy.max_requests - current),
            queue_size=len(self._queue),
            is_processing=self._is_processing,
        )

    # ------------------------------------------------------------------
    # Processing loop
    # ------------------------------------------------------------------

    def _ensure_processing(self) -> None:
        if self._is_processing:
            return
        self._is_processing = True
        self._loop_task = asyncio.get_running_loop().create_task(self._process_queue())

    async def _process_queue(self) -> None:
        try:
            while self._queue:
                request = self._queue.popleft()
                if request.future.done():
                    continue
                if not self._capability.is_available:
                    self._fail(
                        request,
                        SourceUnavailableError(
                            self.name, self._capability.reason or "disabled"
                        ),
                    )
                    continue
                try:
                    await self._wait_for_window()
                    await self._wait_min_interval()
                    await self._dispatch(request)
                except Exception as exc:
                    logger.error(
                        "[SCHEDULER] %s '%s' aborted: %s", self.name, request.label, exc
                    )
                    self._fail(request, exc)
        except asyncio.CancelledError:
            while self._queue:
                self._queue.popleft().future.cancel()
            raise
        finally:
            self._is_processing = False

    async def _wait_for_window(self) -> None:
        while not self.window.has_capacity():
            wait = self.window.seconds_until_capacity() + self.policy.safety_buffer
            logger.warning(
                "[SCHEDULER] %s window full (%d/%d), waiting %.1fs",
                self.name,
                self.window.count,
                self.policy.max_requests,
                wait,
            )
            await self._sleep(wait)

    async def _wait_min_interval(self) -> None:
        if self._last_dispatch is None:
            return
        elapsed = self._clock() - self._last_dispatch
        if elapsed < self.policy.min_interval:
            await self._sleep(self.policy.min_interval - elapsed)

    async def _dispatch(self, request: QueuedRequest) -> None:
        self._last_dispatch = self.window.record()
        logger.debug(
            "[SCHEDULER] %s dispatch '%s' (attempt %d, window=%d/%d)",
            self.name,
            request.label,
            request.attempts + 1,
            self.window.count,
            self.policy.max_requests,
        )
        try:
            result = await request.invocation()
        except Exception as exc:
            await self._handle_failure(request, exc)
            return
        if not request.future.done():
            request.future.set_result(result)

    async def _handle_failure(self, request: QueuedRequest, exc: Exception) -> None:
        verdict = self._classify(exc)

        if verdict.kind is ErrorKind.USAGE_CAP:
            self.disable(f"usage cap exceeded ({exc})")
            self._fail(request, exc)
            return

        if verdict.kind is ErrorKind.FATAL:
            self._fail(request, exc)
            return

        if request.attempts >= self.policy.max_retries:
            logger.error(
                "[SCHEDULER] %s '%s' still rate limited after %d retries",
                self.name,
                request.label,
                self.policy.max_retries,
            )
            self._fail(
                request,
                RateLimitExceededError(request.label, self.policy.max_retries, exc),
            )
            return

        if verdict.retry_after is not None:
            delay = max(0.0, verdict.retry_after) + self.policy.safety_buffer
        else:
            delay = self.policy.backoff_base * (2 ** request.attempts)
        request.attempts += 1
        logger.warning(
            "[SCHEDULER] %s '%s' rate limited, retry %d/%d in %.1fs",
            self.name,
            request.label,
            request.attempts,
            self.policy.max_retries,
            delay,
        )

        if self.policy.defer_backoff:
            task = asyncio.get_running_loop().create_task(
                self._requeue_after(request, delay)
            )
            self._retry_tasks.add(task)
            task.add_done_callback(self._retry_tasks.discard)
            return

        await self._sleep(delay)
        self._queue.appendleft(request)

    async def _requeue_after(self, request: QueuedRequest, delay: float) -> None:
        try:
            await self._sleep(delay)
        except Exception as exc:
            logger.error("[SCHEDULER] %s '%s' retry aborted: %s", self.name, request.label, exc)
            self._fail(request, exc)
            return
        self._queue.appendleft(request)
        self._ensure_processing()

    def _fail(self, request: QueuedRequest, exc: BaseException) -> None:
        if not request.future.done():
            request.future.set_exception(exc)
