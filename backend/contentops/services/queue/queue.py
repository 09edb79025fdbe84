"""
Asynchronous generation job queue.

A fixed pool of asyncio workers drains an ``asyncio.Queue`` of job ids. While
a job's provider call is in flight a timer advances its progress along the
estimated run time, so pollers see phases move even though the underlying
call is a single opaque request:

    progress = min(95, elapsed / estimated_total * 100)

The phase is read from cumulative shares of that estimate (analyzing 10%,
structuring 20%, writing 50%, optimizing 15%, finalizing 5%). Progress snaps
to 100 on completion and freezes on error. Cancellation is cooperative: the
job flips to ``error`` at once, the in-flight call is allowed to finish and
its result is discarded before the ``on_success`` hook (article creation)
ever sees it.

On start, jobs left behind by a previous process are reconciled: queued jobs
are put back on the queue and jobs that were in flight fail with
``INTERRUPTED_MESSAGE``.
"""

import asyncio
import logging
import time
from datetime import timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from contentops.core.exceptions import JobNotFoundError, ValidationError
from contentops.services.ai.models import GenerationResult
from contentops.services.ai.requests import GenerationRequest
from contentops.services.queue.models import (
    CANCELLED_MESSAGE,
    INTERRUPTED_MESSAGE,
    PHASE_STEPS,
    BatchProgress,
    Job,
    JobPhase,
    QueueStats,
    new_batch_id,
    new_job_id,
    phase_for_progress
)
from contentops.services.queue.store import JobStore

logger = logging.getLogger(__name__)

MAX_INFLIGHT_PROGRESS = 95.0

JobRunner = Callable[[GenerationRequest, Optional[str]], Awaitable[GenerationResult]]
CompletionHook = Callable[[GenerationRequest, GenerationResult], Awaitable[None]]
DurationEstimator = Callable[[Optional[str]], Optional[float]]


class GenerationQueue:
    def __init__(
        self,
        runner: JobRunner,
        store: JobStore,
        max_concurrent_jobs: int = 3,
        max_batch_size: int = 20,
        estimated_duration: float = 90.0,
        tick_seconds: float = 1.0,
        retention_days: int = 7,
        estimator: Optional[DurationEstimator] = None,
        on_success: Optional[CompletionHook] = None
    ):
        if max_concurrent_jobs <= 0:
            raise ValueError("max_concurrent_jobs must be positive")
        self._runner = runner
        self.store = store
        self.max_concurrent_jobs = max_concurrent_jobs
        self.max_batch_size = max_batch_size
        self.estimated_duration = estimated_duration
        self.tick_seconds = tick_seconds
        self.retention_days = retention_days
        self._estimator = estimator
        self._on_success = on_success

        self._pending: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._running: Dict[str, asyncio.Task] = {}

    # -- submission ---------------------------------------------------------

    async def enqueue(self, request: GenerationRequest, preferred_provider: Optional[str] = None) -> str:
        request.validate()
        job = Job(job_id=new_job_id(), request=request, preferred_provider=preferred_provider)
        await self._submit(job)
        logger.info(f"Enqueued job {job.job_id} for '{request.title}'")
        return job.job_id

    async def enqueue_batch(
        self,
        requests: Sequence[GenerationRequest],
        preferred_provider: Optional[str] = None
    ) -> Tuple[str, List[str]]:
        if not requests:
            raise ValidationError("Batch must contain at least one request")
        if len(requests) > self.max_batch_size:
            raise ValidationError(f"Batch size {len(requests)} exceeds the limit of {self.max_batch_size}")
        for index, request in enumerate(requests):
            try:
                request.validate()
            except ValidationError as e:
                raise ValidationError(f"Request {index}: {e.message}") from e

        batch_id = new_batch_id()
        job_ids = []
        for request in requests:
            job = Job(
                job_id=new_job_id(),
                request=request,
                batch_id=batch_id,
                preferred_provider=preferred_provider
            )
            await self._submit(job)
            job_ids.append(job.job_id)

        logger.info(f"Enqueued batch {batch_id} with {len(job_ids)} jobs")
        return batch_id, job_ids

    async def _submit(self, job: Job) -> None:
        job.estimated_time_remaining = self._estimate(job.preferred_provider)
        # Start before saving so recovery does not pick up the new job
        self.start()
        self.store.save(job)
        await self._pending.put(job.job_id)

    # -- queries ------------------------------------------------------------

    def get_progress(self, job_id: str) -> Job:
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    def get_batch_progress(self, batch_id: str) -> BatchProgress:
        jobs = self.store.list(batch_id=batch_id)
        if not jobs:
            raise JobNotFoundError(f"Batch {batch_id} not found")
        return BatchProgress(batch_id=batch_id, jobs=jobs)

    def stats(self) -> QueueStats:
        jobs = self.store.list()
        durations = [
            job.processing_time for job in jobs
            if job.phase == JobPhase.COMPLETED and job.processing_time is not None
        ]
        return QueueStats(
            queued_count=sum(1 for job in jobs if job.phase == JobPhase.QUEUED),
            in_flight_count=sum(1 for job in jobs if not job.is_terminal and job.phase != JobPhase.QUEUED),
            completed_count=sum(1 for job in jobs if job.phase == JobPhase.COMPLETED),
            errored_count=sum(1 for job in jobs if job.phase == JobPhase.ERROR),
            average_processing_time=round(sum(durations) / len(durations), 2) if durations else None,
            max_concurrent_jobs=self.max_concurrent_jobs
        )

    # -- control ------------------------------------------------------------

    def cancel(self, job_id: str) -> Job:
        """Flip a non-terminal job to error; terminal jobs are left as they are"""
        job = self.get_progress(job_id)
        if job.is_terminal:
            return job

        job.phase = JobPhase.ERROR
        job.error = CANCELLED_MESSAGE
        job.current_step = CANCELLED_MESSAGE
        job.estimated_time_remaining = None
        job.completed_at = time.time()
        self.store.save(job)
        logger.info(f"Cancelled job {job_id}")
        return job

    def purge_finished(self, older_than: Optional[timedelta] = None) -> int:
        """Delete terminal jobs that finished before the retention cutoff"""
        older_than = older_than if older_than is not None else timedelta(days=self.retention_days)
        cutoff = time.time() - older_than.total_seconds()
        purged = 0
        for job in self.store.list():
            if job.is_terminal and (job.completed_at or job.created_at) < cutoff:
                if self.store.delete(job.job_id):
                    purged += 1
        if purged:
            logger.info(f"Purged {purged} finished jobs")
        return purged

    def start(self) -> None:
        if self._pending is None:
            self._pending = asyncio.Queue()
        if not self._workers:
            self._recover()
            self._workers = [
                asyncio.create_task(self._worker(i), name=f"generation-worker-{i}")
                for i in range(self.max_concurrent_jobs)
            ]
            logger.info(f"Started {self.max_concurrent_jobs} generation workers")

    def _recover(self) -> None:
        """Requeue stored queued jobs and fail the ones a dead worker owned"""
        requeued = interrupted = 0
        for job in self.store.list():
            if job.phase == JobPhase.QUEUED:
                self._pending.put_nowait(job.job_id)
                requeued += 1
            elif not job.is_terminal:
                self._fail(job.job_id, INTERRUPTED_MESSAGE)
                interrupted += 1
        if requeued or interrupted:
            logger.warning(f"Recovered stored jobs: {requeued} requeued, {interrupted} interrupted")

    async def shutdown(self) -> None:
        tasks = self._workers + list(self._running.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._running.clear()
        self._pending = None
        logger.info("Generation queue stopped")

    async def join(self) -> None:
        """Wait until every submitted job has been processed"""
        if self._pending is not None:
            await self._pending.join()

    # -- workers ------------------------------------------------------------

    def _estimate(self, preferred_provider: Optional[str]) -> float:
        if self._estimator is not None:
            estimate = self._estimator(preferred_provider)
            if estimate:
                return estimate
        return self.estimated_duration

    async def _worker(self, index: int) -> None:
        while True:
            job_id = await self._pending.get()
            try:
                await self._process(job_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Worker {index} failed while processing job {job_id}")
                self._fail(job_id, "Internal error while processing job")
            finally:
                self._running.pop(job_id, None)
                self._pending.task_done()

    async def _process(self, job_id: str) -> None:
        job = self.store.get(job_id)
        if job is None or job.is_terminal:
            # Cancelled or purged while waiting
            return

        total = self._estimate(job.preferred_provider)
        started = time.monotonic()
        job.started_at = time.time()
        job.phase = JobPhase.ANALYZING
        job.current_step = PHASE_STEPS[JobPhase.ANALYZING]
        job.estimated_time_remaining = total
        self.store.save(job)

        task = asyncio.create_task(self._runner(job.request, job.preferred_provider))
        self._running[job_id] = task
        while True:
            done, _ = await asyncio.wait({task}, timeout=self.tick_seconds)
            if done:
                break
            self._tick(job_id, time.monotonic() - started, total)

        job = self.store.get(job_id)
        if job is None or job.is_terminal:
            logger.info(f"Discarding result of cancelled job {job_id}")
            return

        try:
            result = task.result()
        except Exception as e:
            logger.error(f"Job {job_id} failed: {e}")
            self._fail(job_id, str(e))
            return

        if result.success and self._on_success is not None:
            await self._on_success(job.request, result)
            job = self.store.get(job_id)
            if job is None or job.is_terminal:
                logger.info(f"Job {job_id} was cancelled during completion")
                return

        job.completed_at = time.time()
        job.result = result.to_dict()
        job.estimated_time_remaining = 0.0
        if result.success:
            job.phase = JobPhase.COMPLETED
            job.progress = 100.0
            job.current_step = PHASE_STEPS[JobPhase.COMPLETED]
            if result.article:
                job.article_id = result.article.get("id")
            logger.info(f"Job {job_id} completed via {result.final_provider}")
        else:
            job.phase = JobPhase.ERROR
            job.error = str(result.error) if result.error else "Generation failed"
            job.current_step = "Generation failed"
            logger.warning(f"Job {job_id} failed: {job.error}")
        self.store.save(job)

    def _tick(self, job_id: str, elapsed: float, total: float) -> None:
        job = self.store.get(job_id)
        if job is None or job.is_terminal:
            return
        estimated = min(MAX_INFLIGHT_PROGRESS, elapsed / total * 100) if total > 0 else MAX_INFLIGHT_PROGRESS
        job.progress = max(job.progress, estimated)
        job.phase = phase_for_progress(job.progress)
        job.current_step = PHASE_STEPS[job.phase]
        job.estimated_time_remaining = round(max(total - elapsed, 0.0), 1)
        self.store.save(job)

    def _fail(self, job_id: str, message: str) -> None:
        job = self.store.get(job_id)
        if job is None or job.is_terminal:
            return
        job.phase = JobPhase.ERROR
        job.error = message
        job.current_step = "Generation failed"
        job.completed_at = time.time()
        self.store.save(job)
