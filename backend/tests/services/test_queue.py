"""
Unit tests for the asynchronous generation queue: job lifecycle, progress
estimation, cancellation, batches and stores.
"""

import asyncio
import time
from datetime import timedelta

import pytest

from contentops.core.exceptions import JobNotFoundError, ValidationError
from contentops.services.ai.models import GenerationResult
from contentops.services.ai.parsing import ParsedContent
from contentops.services.ai.requests import GenerationRequest
from contentops.services.queue.models import (
    CANCELLED_MESSAGE,
    INTERRUPTED_MESSAGE,
    BatchProgress,
    Job,
    JobPhase,
    phase_for_progress
)
from contentops.services.queue.queue import GenerationQueue
from contentops.services.queue.store import DiskJobStore, InMemoryJobStore
from tests.factories import GenerationRequestFactory


def _success() -> GenerationResult:
    return GenerationResult(
        success=True,
        content="TITLE: T\nCONTENT:\nBody",
        parsed=ParsedContent(title="T", meta_description="", body="Body")
    )


async def wait_for(predicate, timeout: float = 2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class ControlledRunner:
    """Runner that blocks each call until released."""

    def __init__(self, result_factory=_success, auto_release: bool = False):
        self.result_factory = result_factory
        self.release = asyncio.Event()
        if auto_release:
            self.release.set()
        self.calls = []

    async def __call__(self, request, preferred_provider):
        self.calls.append(request)
        await self.release.wait()
        return self.result_factory()


@pytest.fixture
def store():
    return InMemoryJobStore()


def _queue(runner, store, **kwargs) -> GenerationQueue:
    options = dict(max_concurrent_jobs=2, max_batch_size=3, estimated_duration=1.0, tick_seconds=0.01)
    options.update(kwargs)
    return GenerationQueue(runner, store, **options)


@pytest.mark.unit
def test_phase_for_progress():
    assert phase_for_progress(0) == JobPhase.ANALYZING
    assert phase_for_progress(9.9) == JobPhase.ANALYZING
    assert phase_for_progress(10) == JobPhase.STRUCTURING
    assert phase_for_progress(30) == JobPhase.WRITING
    assert phase_for_progress(79.9) == JobPhase.WRITING
    assert phase_for_progress(80) == JobPhase.OPTIMIZING
    assert phase_for_progress(95) == JobPhase.FINALIZING
    assert phase_for_progress(100) == JobPhase.FINALIZING


class TestJobLifecycle:

    @pytest.mark.unit
    async def test_job_completes(self, store):
        queue = _queue(ControlledRunner(auto_release=True), store)
        job_id = await queue.enqueue(GenerationRequestFactory())
        await queue.join()

        job = queue.get_progress(job_id)
        assert job.phase == JobPhase.COMPLETED
        assert job.progress == 100
        assert job.result["success"] is True
        assert job.started_at is not None and job.completed_at is not None
        await queue.shutdown()

    @pytest.mark.unit
    async def test_enqueue_returns_queued_snapshot(self, store):
        runner = ControlledRunner()
        queue = _queue(runner, store, max_concurrent_jobs=1)
        first = await queue.enqueue(GenerationRequestFactory())
        second = await queue.enqueue(GenerationRequestFactory())
        await wait_for(lambda: len(runner.calls) == 1)

        assert queue.get_progress(second).phase == JobPhase.QUEUED
        assert queue.get_progress(first).phase != JobPhase.QUEUED
        runner.release.set()
        await queue.join()
        await queue.shutdown()

    @pytest.mark.unit
    async def test_snapshots_are_copies(self, store):
        queue = _queue(ControlledRunner(auto_release=True), store)
        job_id = await queue.enqueue(GenerationRequestFactory())
        snapshot = queue.get_progress(job_id)
        snapshot.phase = JobPhase.ERROR
        await queue.join()

        assert queue.get_progress(job_id).phase == JobPhase.COMPLETED
        await queue.shutdown()

    @pytest.mark.unit
    async def test_unknown_job(self, store):
        queue = _queue(ControlledRunner(), store)
        with pytest.raises(JobNotFoundError):
            queue.get_progress("job_missing")
        with pytest.raises(JobNotFoundError):
            queue.cancel("job_missing")

    @pytest.mark.unit
    async def test_invalid_request_is_rejected_synchronously(self, store):
        queue = _queue(ControlledRunner(), store)
        with pytest.raises(ValidationError):
            await queue.enqueue(GenerationRequest(title=""))
        assert store.list() == []

    @pytest.mark.unit
    async def test_progress_is_monotonic_and_capped(self, store):
        async def slow_runner(request, preferred_provider):
            await asyncio.sleep(0.3)
            return _success()

        queue = _queue(slow_runner, store, estimated_duration=0.4)
        job_id = await queue.enqueue(GenerationRequestFactory())

        seen = []
        while True:
            job = queue.get_progress(job_id)
            seen.append((job.phase, job.progress))
            if job.is_terminal:
                break
            await asyncio.sleep(0.01)

        progresses = [progress for _, progress in seen]
        assert progresses == sorted(progresses)
        assert all(progress <= 95 for phase, progress in seen if phase != JobPhase.COMPLETED)
        assert seen[-1] == (JobPhase.COMPLETED, 100)
        phases = [phase for phase, _ in seen]
        assert JobPhase.WRITING in phases
        await queue.shutdown()

    @pytest.mark.unit
    async def test_failed_generation_keeps_progress(self, store):
        def failure():
            return GenerationResult(success=False, error=RuntimeError("All providers failed: boom"))

        queue = _queue(ControlledRunner(result_factory=failure, auto_release=True), store)
        job_id = await queue.enqueue(GenerationRequestFactory())
        await queue.join()

        job = queue.get_progress(job_id)
        assert job.phase == JobPhase.ERROR
        assert job.error == "All providers failed: boom"
        assert job.progress < 100
        await queue.shutdown()

    @pytest.mark.unit
    async def test_runner_exception_marks_error(self, store):
        async def broken(request, preferred_provider):
            raise RuntimeError("worker exploded")

        queue = _queue(broken, store)
        job_id = await queue.enqueue(GenerationRequestFactory())
        await queue.join()

        job = queue.get_progress(job_id)
        assert job.phase == JobPhase.ERROR
        assert "worker exploded" in job.error
        await queue.shutdown()

    @pytest.mark.unit
    async def test_estimator_sets_eta(self, store):
        queue = _queue(ControlledRunner(), store, estimator=lambda provider: 42.0)
        job_id = await queue.enqueue(GenerationRequestFactory())

        assert queue.get_progress(job_id).estimated_time_remaining == 42.0
        await queue.shutdown()


class TestCancellation:

    @pytest.mark.unit
    async def test_cancel_queued_job(self, store):
        runner = ControlledRunner()
        queue = _queue(runner, store, max_concurrent_jobs=1)
        await queue.enqueue(GenerationRequestFactory())
        waiting = await queue.enqueue(GenerationRequestFactory())
        await wait_for(lambda: len(runner.calls) == 1)

        job = queue.cancel(waiting)
        assert job.phase == JobPhase.ERROR
        assert job.error == CANCELLED_MESSAGE

        runner.release.set()
        await queue.join()
        assert len(runner.calls) == 1
        assert queue.get_progress(waiting).phase == JobPhase.ERROR
        await queue.shutdown()

    @pytest.mark.unit
    async def test_cancel_in_flight_discards_result(self, store):
        runner = ControlledRunner()
        queue = _queue(runner, store)
        job_id = await queue.enqueue(GenerationRequestFactory())
        await wait_for(lambda: queue.get_progress(job_id).phase != JobPhase.QUEUED)

        queue.cancel(job_id)
        assert queue.get_progress(job_id).phase == JobPhase.ERROR

        runner.release.set()
        await queue.join()

        job = queue.get_progress(job_id)
        assert job.phase == JobPhase.ERROR
        assert job.error == CANCELLED_MESSAGE
        assert job.result is None
        await queue.shutdown()

    @pytest.mark.unit
    async def test_cancel_in_flight_skips_completion_hook(self, store):
        runner = ControlledRunner()
        completed = []

        async def on_success(request, result):
            completed.append(request)

        queue = _queue(runner, store, on_success=on_success)
        job_id = await queue.enqueue(GenerationRequestFactory())
        await wait_for(lambda: len(runner.calls) == 1)

        queue.cancel(job_id)
        runner.release.set()
        await queue.join()

        assert completed == []
        assert queue.get_progress(job_id).phase == JobPhase.ERROR
        await queue.shutdown()

    @pytest.mark.unit
    async def test_completion_hook_runs_for_successful_jobs(self, store):
        completed = []

        async def on_success(request, result):
            result.article = {"id": "art_1"}
            completed.append(request)

        queue = _queue(ControlledRunner(auto_release=True), store, on_success=on_success)
        job_id = await queue.enqueue(GenerationRequestFactory())
        await queue.join()

        job = queue.get_progress(job_id)
        assert len(completed) == 1
        assert job.article_id == "art_1"
        assert job.result["article"] == {"id": "art_1"}
        await queue.shutdown()

    @pytest.mark.unit
    async def test_cancel_is_idempotent(self, store):
        queue = _queue(ControlledRunner(auto_release=True), store)
        job_id = await queue.enqueue(GenerationRequestFactory())
        await queue.join()

        job = queue.cancel(job_id)
        assert job.phase == JobPhase.COMPLETED
        assert queue.cancel(job_id).phase == JobPhase.COMPLETED
        await queue.shutdown()


class TestBatches:

    @pytest.mark.unit
    async def test_batch_runs_all_jobs(self, store):
        queue = _queue(ControlledRunner(auto_release=True), store)
        batch_id, job_ids = await queue.enqueue_batch([GenerationRequestFactory() for _ in range(3)])
        await queue.join()

        batch = queue.get_batch_progress(batch_id)
        assert batch.total == 3
        assert batch.completed == 3
        assert batch.is_finished
        assert sorted(job.job_id for job in batch.jobs) == sorted(job_ids)
        await queue.shutdown()

    @pytest.mark.unit
    @pytest.mark.parametrize("size", [0, 4])
    async def test_batch_size_limits(self, store, size):
        queue = _queue(ControlledRunner(), store)
        with pytest.raises(ValidationError):
            await queue.enqueue_batch([GenerationRequestFactory() for _ in range(size)])
        assert store.list() == []

    @pytest.mark.unit
    async def test_invalid_member_rejects_whole_batch(self, store):
        queue = _queue(ControlledRunner(), store)
        with pytest.raises(ValidationError) as exc_info:
            await queue.enqueue_batch([GenerationRequestFactory(), GenerationRequest(title="")])

        assert "Request 1" in exc_info.value.message
        assert store.list() == []

    @pytest.mark.unit
    def test_batch_counts_are_derived(self, store):
        for index, phase in enumerate([JobPhase.COMPLETED, JobPhase.COMPLETED, JobPhase.WRITING]):
            store.save(Job(
                job_id=f"job_{index}",
                request=GenerationRequestFactory(),
                batch_id="batch_1",
                phase=phase,
                progress=100 if phase == JobPhase.COMPLETED else 40
            ))

        queue = _queue(ControlledRunner(), store)
        batch = queue.get_batch_progress("batch_1")

        assert batch.completed == 2
        assert batch.total == 3
        assert batch.failed == 0
        assert batch.finished == 2
        assert batch.percentage == pytest.approx(66.7)
        assert batch.average_progress == pytest.approx(80.0)

    @pytest.mark.unit
    async def test_cancelled_batch_is_finished(self, store):
        runner = ControlledRunner()
        queue = _queue(runner, store, max_concurrent_jobs=1)
        await queue.enqueue(GenerationRequestFactory())
        await wait_for(lambda: len(runner.calls) == 1)
        batch_id, job_ids = await queue.enqueue_batch([GenerationRequestFactory() for _ in range(2)])

        for job_id in job_ids:
            queue.cancel(job_id)
        batch = queue.get_batch_progress(batch_id)

        assert batch.failed == 2
        assert batch.is_finished
        assert batch.percentage == 100.0
        assert batch.average_progress == 0.0
        await queue.shutdown()

    @pytest.mark.unit
    def test_unknown_batch(self, store):
        with pytest.raises(JobNotFoundError):
            _queue(ControlledRunner(), store).get_batch_progress("batch_missing")

    @pytest.mark.unit
    def test_empty_batch_progress(self):
        assert BatchProgress(batch_id="b", jobs=[]).percentage == 0.0


class TestStatsAndRetention:

    @pytest.mark.unit
    def test_stats(self, store):
        now = time.time()
        phases = [JobPhase.QUEUED, JobPhase.WRITING, JobPhase.COMPLETED, JobPhase.COMPLETED, JobPhase.ERROR]
        for index, phase in enumerate(phases):
            job = Job(job_id=f"job_{index}", request=GenerationRequestFactory(), phase=phase)
            if phase == JobPhase.COMPLETED:
                job.started_at = now - 10 * index
                job.completed_at = now
            store.save(job)

        stats = _queue(ControlledRunner(), store).stats()

        assert stats.queued_count == 1
        assert stats.in_flight_count == 1
        assert stats.completed_count == 2
        assert stats.errored_count == 1
        assert stats.total_jobs == 5
        assert stats.average_processing_time == pytest.approx(25.0)
        assert stats.to_dict()["max_concurrent_jobs"] == 2

    @pytest.mark.unit
    def test_purge_finished(self, store):
        old = time.time() - timedelta(days=8).total_seconds()
        store.save(Job(job_id="job_old", request=GenerationRequestFactory(), phase=JobPhase.COMPLETED, completed_at=old))
        store.save(Job(job_id="job_new", request=GenerationRequestFactory(), phase=JobPhase.COMPLETED, completed_at=time.time()))
        store.save(Job(job_id="job_stale", request=GenerationRequestFactory(), created_at=old))

        purged = _queue(ControlledRunner(), store).purge_finished()

        assert purged == 1
        assert store.get("job_old") is None
        assert store.get("job_new") is not None
        # Non-terminal jobs are never purged
        assert store.get("job_stale") is not None


@pytest.mark.unit
class TestDiskJobStore:

    def test_roundtrip(self, tmp_path):
        store = DiskJobStore(str(tmp_path / "jobs"))
        job = Job(job_id="job_1", request=GenerationRequestFactory(), batch_id="batch_1")
        store.save(job)

        loaded = store.get("job_1")
        assert loaded.request == job.request
        assert [j.job_id for j in store.list(batch_id="batch_1")] == ["job_1"]
        assert store.delete("job_1") is True
        assert store.get("job_1") is None
        store.close()

    async def test_queue_over_disk_store(self, tmp_path):
        store = DiskJobStore(str(tmp_path / "jobs"))
        queue = _queue(ControlledRunner(auto_release=True), store)
        job_id = await queue.enqueue(GenerationRequestFactory())
        await queue.join()

        assert queue.get_progress(job_id).phase == JobPhase.COMPLETED
        await queue.shutdown()
        store.close()

    async def test_start_reconciles_jobs_from_previous_process(self, tmp_path):
        store = DiskJobStore(str(tmp_path / "jobs"))
        store.save(Job(job_id="job_writing", request=GenerationRequestFactory(), phase=JobPhase.WRITING, progress=40))
        store.save(Job(job_id="job_queued", request=GenerationRequestFactory()))
        store.save(Job(job_id="job_done", request=GenerationRequestFactory(), phase=JobPhase.COMPLETED, progress=100))

        runner = ControlledRunner(auto_release=True)
        queue = _queue(runner, store)
        queue.start()
        await queue.join()

        interrupted = queue.get_progress("job_writing")
        assert interrupted.phase == JobPhase.ERROR
        assert interrupted.error == INTERRUPTED_MESSAGE
        assert interrupted.progress == 40
        assert queue.get_progress("job_queued").phase == JobPhase.COMPLETED
        assert queue.get_progress("job_done").phase == JobPhase.COMPLETED
        assert len(runner.calls) == 1
        assert queue.stats().in_flight_count == 0
        await queue.shutdown()
        store.close()
