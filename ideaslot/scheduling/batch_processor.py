"""
Resumable multi-category batch processor.

Drives a :class:`~ideaslot.scheduling.request_scheduler.RequestScheduler`
across a set of labels.  Labels already in ``completed_categories`` of the
persisted state are skipped, so re-running the same batch only attempts
what is left.  Failed labels count as attempted and are not retried until
the state is cleared.

State is checkpointed after every finished label, so an interrupted run
resumes from the last completed item.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from ideaslot.scheduling.models import CategoryResult, ProcessingState
from ideaslot.scheduling.request_scheduler import RequestScheduler
from ideaslot.scheduling.state_store import StateStore

logger = logging.getLogger(__name__)

RequestBuilder = Callable[[str], Callable[[], Awaitable[Any]]]


def unique_labels(categories: Iterable[str]) -> List[str]:
    """Collapse duplicates while keeping first-seen order."""
    seen: List[str] = []
    for label in categories:
        if label not in seen:
            seen.append(label)
    return seen


class BatchProcessor:
    """Run one scheduled request per category with resumable state.

    Args:
        scheduler: Scheduler every request goes through.
        state_store: Where the :class:`ProcessingState` blob lives.
        checkpoint: Save state after each finished category (in addition
            to the final save).
    """

    def __init__(
        self,
        scheduler: RequestScheduler,
        state_store: StateStore,
        checkpoint: bool = True,
    ) -> None:
        self.scheduler = scheduler
        self.state_store = state_store
        self.checkpoint = checkpoint

    async def process_all(
        self,
        categories: Iterable[str],
        request_builder: RequestBuilder,
    ) -> ProcessingState:
        """Process every category not yet completed in the persisted state.

        Args:
            categories: Labels to process.  Duplicates are collapsed.
            request_builder: Maps a label to a zero-argument coroutine factory.

        Returns:
            The final state, or the persisted state unchanged when nothing
            is pending.
        """
        labels = unique_labels(categories)
        state = self.state_store.load_state() or ProcessingState()

        pending = [label for label in labels if label not in state.completed_categories]
        if not pending:
            logger.info(
                "[BATCH] All %d categories already processed; nothing to do",
                len(labels),
            )
            return state

        state.remaining_categories = list(pending)
        logger.info(
            "[BATCH] Processing %d categories (%d already completed) via %s",
            len(pending),
            len(labels) - len(pending),
            self.scheduler.name,
        )

        await asyncio.gather(
            *(self._process_one(state, label, request_builder) for label in pending)
        )

        state.rate_limit_info = self.scheduler.rate_limit_info()
        self._save(state)

        succeeded = sum(1 for label in pending if state.results[label].success)
        logger.info(
            "[BATCH] Finished: %d succeeded, %d failed",
            succeeded,
            len(pending) - succeeded,
        )
        return state

    async def _process_one(
        self,
        state: ProcessingState,
        label: str,
        request_builder: RequestBuilder,
    ) -> CategoryResult:
        try:
            invocation = request_builder(label)
        except Exception as exc:
            logger.error("[BATCH] Could not build request for '%s': %s", label, exc)
            result = CategoryResult.failed(label, exc)
        else:
            result = await self.scheduler.enqueue(invocation, label)

        state.record(result)
        if self.checkpoint:
            self._save(state)
        return result

    def status(self) -> Optional[ProcessingState]:
        """Currently persisted state, if any."""
        return self.state_store.load_state()

    def reset(self) -> bool:
        """Forget all progress so the next run starts over."""
        logger.info("[BATCH] Clearing persisted state")
        return self.state_store.clear_state()

    def _save(self, state: ProcessingState) -> None:
        if not self.state_store.save_state(state):
            logger.warning("[BATCH] State checkpoint was not persisted")
