"""Scheduling subsystem: rate windows, request scheduler, resumable batches, state."""

from ideaslot.scheduling.batch_processor import BatchProcessor
from ideaslot.scheduling.models import (
    Capability,
    CategoryResult,
    ProcessingState,
    QueuedRequest,
    RateLimitInfo,
)
from ideaslot.scheduling.rate_window import RateWindow
from ideaslot.scheduling.request_scheduler import (
    ErrorKind,
    ErrorVerdict,
    RequestScheduler,
    classify_error,
)
from ideaslot.scheduling.state_store import (
    FileStateStore,
    InMemoryStateStore,
    StateStore,
    create_state_store,
)

__all__ = [
    "BatchProcessor",
    "Capability",
    "CategoryResult",
    "ProcessingState",
    "QueuedRequest",
    "RateLimitInfo",
    "RateWindow",
    "ErrorKind",
    "ErrorVerdict",
    "RequestScheduler",
    "classify_error",
    "FileStateStore",
    "InMemoryStateStore",
    "StateStore",
    "create_state_store",
]
