"""
Scheduling data models: Capability, QueuedRequest, CategoryResult,
RateLimitInfo, ProcessingState.

Defines the core data structures used by the scheduling subsystem:
- ``Capability``: Whether a scheduler (and its client) may still dispatch.
- ``QueuedRequest``: One deferred unit of work owned by a scheduler queue.
- ``CategoryResult``: Terminal outcome of one labelled request.
- ``RateLimitInfo``: Observability snapshot of one scheduler.
- ``ProcessingState``: Resumable snapshot of a multi-category batch run.

``ProcessingState`` serializes with camelCase keys so that a state file
written by an earlier deployment stays readable.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ideaslot.utils import isoformat_utc


# =============================================================================
# CAPABILITY
# =============================================================================


@dataclass(frozen=True)
class Capability:
    """``Available`` or ``Disabled(reason)``, computed once and checked in one place."""

    is_available: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "Capability":
        return cls(is_available=True)

    @classmethod
    def disabled(cls, reason: str) -> "Capability":
        return cls(is_available=False, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        return {"available": self.is_available, "reason": self.reason}


# =============================================================================
# QUEUED REQUEST
# =============================================================================


@dataclass
class QueuedRequest:
    """A deferred call waiting in a scheduler queue.

    Attributes:
        invocation: Zero-argument factory returning the awaitable to dispatch.
        label: Caller-supplied name (category, query, ...).
        future: Resolved with the result or the terminal error.
        enqueued_at: Scheduler clock reading at enqueue time.
        attempts: Rate-limited dispatches so far.
    """

    invocation: Callable[[], Awaitable[Any]]
    label: str
    future: "asyncio.Future[Any]"
    enqueued_at: float
    attempts: int = 0

    @property
    def requeued(self) -> bool:
        return self.attempts > 0


# =============================================================================
# CATEGORY RESULT
# =============================================================================


@dataclass
class CategoryResult:
    """Outcome of processing one queued item.

    Exactly one of ``data`` / ``error`` is meaningful, selected by ``success``.
    """

    success: bool
    category: str
    data: Any = None
    error: Optional[str] = None
    completed_at: str = field(default_factory=isoformat_utc)

    @classmethod
    def succeeded(cls, category: str, data: Any) -> "CategoryResult":
        return cls(success=True, category=category, data=data)

    @classmethod
    def failed(cls, category: str, error: Any) -> "CategoryResult":
        return cls(success=False, category=category, error=str(error))

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "category": self.category,
            "completedAt": self.completed_at,
        }
        if self.success:
            payload["data"] = self.data
        else:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, category: str, payload: Dict[str, Any]) -> "CategoryResult":
        return cls(
            success=bool(payload.get("success")),
            category=payload.get("category", category),
            data=payload.get("data"),
            error=payload.get("error"),
            completed_at=payload.get("completedAt") or isoformat_utc(),
        )


# =============================================================================
# RATE LIMIT INFO
# =============================================================================


@dataclass
class RateLimitInfo:
    """Window occupancy and queue status of one scheduler."""

    current_requests: int
    max_requests: int
    window_seconds: float
    within_limit: bool
    remaining_requests: int
    queue_size: int
    is_processing: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentRequests": self.current_requests,
            "maxRequests": self.max_requests,
            "windowSeconds": self.window_seconds,
            "withinLimit": self.within_limit,
            "remainingRequests": self.remaining_requests,
            "queueSize": self.queue_size,
            "isProcessing": self.is_processing,
        }


# =============================================================================
# PROCESSING STATE
# =============================================================================


@dataclass
class ProcessingState:
    """Resumable snapshot of a batch run.

    Invariants:
        - ``completed_categories`` holds no duplicates and keeps insertion order.
        - Every key of ``results`` is in ``completed_categories``.
        - Once a run finishes, no label is both completed and remaining.
    """

    completed_categories: List[str] = field(default_factory=list)
    remaining_categories: List[str] = field(default_factory=list)
    results: Dict[str, CategoryResult] = field(default_factory=dict)
    last_processed_at: Optional[str] = None
    saved_at: Optional[str] = None
    rate_limit_info: Optional[RateLimitInfo] = None

    def record(self, result: CategoryResult) -> None:
        """Mark ``result.category`` as attempted and store its outcome."""
        label = result.category
        if label not in self.completed_categories:
            self.completed_categories.append(label)
        if label in self.remaining_categories:
            self.remaining_categories.remove(label)
        self.results[label] = result
        self.last_processed_at = isoformat_utc()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "completedCategories": list(self.completed_categories),
            "remainingCategories": list(self.remaining_categories),
            "results": {k: v.to_dict() for k, v in self.results.items()},
            "lastProcessedAt": self.last_processed_at,
        }
        if self.saved_at is not None:
            payload["savedAt"] = self.saved_at
        if self.rate_limit_info is not None:
            payload["rateLimitInfo"] = self.rate_limit_info.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ProcessingState":
        completed: List[str] = []
        for label in payload.get("completedCategories") or []:
            if label not in completed:
                completed.append(label)
        raw_results = payload.get("results") or {}
        return cls(
            completed_categories=completed,
            remaining_categories=list(payload.get("remainingCategories") or []),
            results={
                label: CategoryResult.from_dict(label, value)
                for label, value in raw_results.items()
            },
            last_processed_at=payload.get("lastProcessedAt"),
            saved_at=payload.get("savedAt"),
        )
