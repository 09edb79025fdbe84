import time

from fastapi import APIRouter, Depends, Request, status

from contentops.api.deps import get_generation_service
from contentops.core.rate_limiting import limiter, RATE_LIMITS
from contentops.schemas.generation import GenerateRequest, BatchGenerateRequest
from contentops.schemas.job import (
    JobSubmitResponse, BatchSubmitResponse, JobResponse, BatchResponse, QueueStatsResponse
)
from contentops.services.generation import ContentGenerationService

router = APIRouter()

@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=JobSubmitResponse)
@limiter.limit(RATE_LIMITS["enqueue"])
async def enqueue_job(
    request: Request,
    payload: GenerateRequest,
    service: ContentGenerationService = Depends(get_generation_service)
):
    """
    Queue an article for background generation
    """
    job_id = await service.enqueue(payload.to_domain(service.settings), payload.preferredProvider)
    job = service.get_progress(job_id)

    return JobSubmitResponse(
        jobId=job_id,
        status=job.phase.value,
        estimatedCompletion=time.time() + (job.estimated_time_remaining or 0),
        message="Article generation queued."
    )

@router.post("/batch", status_code=status.HTTP_202_ACCEPTED, response_model=BatchSubmitResponse)
@limiter.limit(RATE_LIMITS["enqueue"])
async def enqueue_batch(
    request: Request,
    payload: BatchGenerateRequest,
    service: ContentGenerationService = Depends(get_generation_service)
):
    """
    Queue several articles under one batch id
    """
    batch_id, job_ids = await service.enqueue_batch(
        [item.to_domain(service.settings) for item in payload.requests],
        payload.preferredProvider
    )

    return BatchSubmitResponse(
        batchId=batch_id,
        jobIds=job_ids,
        message=f"{len(job_ids)} articles queued."
    )

@router.get("/stats", response_model=QueueStatsResponse)
async def queue_stats(
    service: ContentGenerationService = Depends(get_generation_service)
):
    stats = service.stats()
    return QueueStatsResponse(
        queuedCount=stats.queued_count,
        inFlightCount=stats.in_flight_count,
        completedCount=stats.completed_count,
        erroredCount=stats.errored_count,
        totalJobs=stats.total_jobs,
        averageProcessingTime=stats.average_processing_time,
        maxConcurrentJobs=stats.max_concurrent_jobs
    )

@router.get("/batch/{batch_id}", response_model=BatchResponse)
async def get_batch_status(
    batch_id: str,
    service: ContentGenerationService = Depends(get_generation_service)
):
    """
    Get the aggregate progress of a batch
    """
    batch = service.get_batch_progress(batch_id)

    return BatchResponse(
        batchId=batch.batch_id,
        total=batch.total,
        completed=batch.completed,
        failed=batch.failed,
        finished=batch.finished,
        percentage=batch.percentage,
        averageProgress=batch.average_progress,
        jobs=[JobResponse.from_job(job) for job in batch.jobs]
    )

@router.get("/{job_id}/status", response_model=JobResponse)
async def get_job_status(
    job_id: str,
    service: ContentGenerationService = Depends(get_generation_service)
):
    """
    Get the status of an asynchronous job
    """
    return JobResponse.from_job(service.get_progress(job_id))

@router.post("/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(
    job_id: str,
    service: ContentGenerationService = Depends(get_generation_service)
):
    """
    Cancel a queued or running job; finished jobs are returned unchanged
    """
    return JobResponse.from_job(service.cancel(job_id))
