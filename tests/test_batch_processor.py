"""Tests for the resumable multi-category batch processor."""

import pytest

from ideaslot.exceptions import ProviderAPIError
from ideaslot.scheduling.batch_processor import BatchProcessor, unique_labels
from ideaslot.scheduling.models import CategoryResult, ProcessingState
from ideaslot.scheduling.request_scheduler import RequestScheduler
from ideaslot.scheduling.state_store import InMemoryStateStore


class RecordingBuilder:
    """Request builder that records which labels were attempted."""

    def __init__(self, failing=()):
        self.attempted = []
        self.failing = set(failing)

    def __call__(self, label):
        async def call():
            self.attempted.append(label)
            if label in self.failing:
                raise ProviderAPIError("test", f"{label} exploded", status_code=500)
            return {"label": label}

        return call


@pytest.fixture
def scheduler(fast_policy, clock):
    return RequestScheduler(fast_policy, clock=clock, sleep=clock.sleep)


@pytest.fixture
def store():
    return InMemoryStateStore()


class TestUniqueLabels:
    def test_keeps_first_seen_order(self):
        assert unique_labels(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


class TestProcessAll:
    """Tests for BatchProcessor.process_all."""

    @pytest.mark.asyncio
    async def test_processes_every_category(self, scheduler, store):
        builder = RecordingBuilder()
        processor = BatchProcessor(scheduler, store)

        state = await processor.process_all(["X", "Y", "Z"], builder)

        assert builder.attempted == ["X", "Y", "Z"]
        assert state.completed_categories == ["X", "Y", "Z"]
        assert state.remaining_categories == []
        assert state.results["Y"].data == {"label": "Y"}
        assert state.rate_limit_info is not None
        assert store.load_state().completed_categories == ["X", "Y", "Z"]

    @pytest.mark.asyncio
    async def test_resumes_from_persisted_state(self, scheduler, store):
        """Only categories missing from completedCategories are attempted."""
        prior = ProcessingState()
        prior.record(CategoryResult.succeeded("X", {"label": "X"}))
        store.save_state(prior)
        builder = RecordingBuilder()

        state = await BatchProcessor(scheduler, store).process_all(["X", "Y", "Z"], builder)

        assert builder.attempted == ["Y", "Z"]
        assert sorted(state.completed_categories) == ["X", "Y", "Z"]
        assert len(state.completed_categories) == len(set(state.completed_categories))
        assert state.results["X"].success is True

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, scheduler, store):
        processor = BatchProcessor(scheduler, store)
        await processor.process_all(["X", "Y"], RecordingBuilder())
        builder = RecordingBuilder()

        state = await processor.process_all(["Y", "X"], builder)

        assert builder.attempted == []
        assert state.completed_categories == ["X", "Y"]

    @pytest.mark.asyncio
    async def test_failure_is_recorded_and_not_retried(self, scheduler, store):
        processor = BatchProcessor(scheduler, store)
        first = RecordingBuilder(failing={"Y"})

        state = await processor.process_all(["X", "Y", "Z"], first)

        assert state.results["Y"].success is False
        assert "Y exploded" in state.results["Y"].error
        assert state.results["Z"].success is True
        assert "Y" in state.completed_categories

        second = RecordingBuilder()
        await processor.process_all(["X", "Y", "Z"], second)
        assert second.attempted == []

    @pytest.mark.asyncio
    async def test_builder_error_becomes_failed_result(self, scheduler, store):
        def builder(label):
            if label == "bad":
                raise KeyError(label)
            return RecordingBuilder()(label)

        state = await BatchProcessor(scheduler, store).process_all(["ok", "bad"], builder)

        assert state.results["ok"].success is True
        assert state.results["bad"].success is False

    @pytest.mark.asyncio
    async def test_checkpoints_after_each_category(self, scheduler):
        store = InMemoryStateStore()
        snapshots = []
        original_save = store.save_state

        def spy(state):
            snapshots.append(list(state.completed_categories))
            return original_save(state)

        store.save_state = spy

        await BatchProcessor(scheduler, store).process_all(["X", "Y"], RecordingBuilder())

        assert snapshots[0] == ["X"]
        assert snapshots[1] == ["X", "Y"]
        assert len(snapshots) == 3

    @pytest.mark.asyncio
    async def test_duplicate_categories_are_collapsed(self, scheduler, store):
        builder = RecordingBuilder()
        await BatchProcessor(scheduler, store).process_all(["X", "X", "Y"], builder)
        assert builder.attempted == ["X", "Y"]


class TestStatusAndReset:
    @pytest.mark.asyncio
    async def test_reset_forgets_progress(self, scheduler, store):
        processor = BatchProcessor(scheduler, store)
        await processor.process_all(["X"], RecordingBuilder())
        assert processor.status().completed_categories == ["X"]

        assert processor.reset() is True
        assert processor.status() is None

        builder = RecordingBuilder()
        await processor.process_all(["X"], builder)
        assert builder.attempted == ["X"]
