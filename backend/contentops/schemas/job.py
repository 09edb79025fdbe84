from pydantic import BaseModel
from typing import Optional, List, Dict, Any

class JobSubmitResponse(BaseModel):
    jobId: str
    status: str
    estimatedCompletion: Optional[float] = None
    message: str

class BatchSubmitResponse(BaseModel):
    batchId: str
    jobIds: List[str]
    message: str

class JobResponse(BaseModel):
    jobId: str
    status: str  # queued, analyzing, structuring, writing, optimizing, finalizing, completed, error
    progress: Optional[int] = None
    currentStep: Optional[str] = None
    estimatedTimeRemaining: Optional[float] = None
    batchId: Optional[str] = None
    articleId: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def from_job(cls, job) -> "JobResponse":
        return cls(
            jobId=job.job_id,
            status=job.phase.value,
            progress=int(job.progress),
            currentStep=job.current_step,
            estimatedTimeRemaining=job.estimated_time_remaining,
            batchId=job.batch_id,
            articleId=job.article_id,
            result=job.result,
            error=job.error
        )

class BatchResponse(BaseModel):
    batchId: str
    total: int
    completed: int
    failed: int
    finished: int
    percentage: float
    averageProgress: float
    jobs: List[JobResponse]

class QueueStatsResponse(BaseModel):
    queuedCount: int
    inFlightCount: int
    completedCount: int
    erroredCount: int
    totalJobs: int
    averageProcessingTime: Optional[float] = None
    maxConcurrentJobs: int
