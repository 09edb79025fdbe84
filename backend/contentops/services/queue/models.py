"""
Job queue records.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from contentops.services.ai.requests import GenerationRequest


class JobPhase(str, Enum):
    """Lifecycle phases of a generation job"""
    QUEUED = "queued"
    ANALYZING = "analyzing"
    STRUCTURING = "structuring"
    WRITING = "writing"
    OPTIMIZING = "optimizing"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobPhase.COMPLETED, JobPhase.ERROR)


# Share of the estimated run time spent in each in-flight phase
PHASE_SHARES: Tuple[Tuple[JobPhase, float], ...] = (
    (JobPhase.ANALYZING, 0.10),
    (JobPhase.STRUCTURING, 0.20),
    (JobPhase.WRITING, 0.50),
    (JobPhase.OPTIMIZING, 0.15),
    (JobPhase.FINALIZING, 0.05),
)

PHASE_STEPS = {
    JobPhase.QUEUED: "Waiting for a free worker",
    JobPhase.ANALYZING: "Analyzing topic and keywords",
    JobPhase.STRUCTURING: "Planning article structure",
    JobPhase.WRITING: "Writing article content",
    JobPhase.OPTIMIZING: "Optimizing for SEO and readability",
    JobPhase.FINALIZING: "Finalizing article",
    JobPhase.COMPLETED: "Generation complete",
}

CANCELLED_MESSAGE = "Generation cancelled by user"
INTERRUPTED_MESSAGE = "Generation interrupted by restart"


def phase_for_progress(progress: float) -> JobPhase:
    """In-flight phase whose cumulative share band contains the progress"""
    boundary = 0.0
    for phase, share in PHASE_SHARES:
        boundary += share * 100
        if progress < boundary:
            return phase
    return PHASE_SHARES[-1][0]


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex}"


def new_batch_id() -> str:
    return f"batch_{uuid.uuid4().hex}"


@dataclass
class Job:
    job_id: str
    request: GenerationRequest
    created_at: float = field(default_factory=time.time)
    phase: JobPhase = JobPhase.QUEUED
    progress: float = 0.0
    current_step: str = PHASE_STEPS[JobPhase.QUEUED]
    estimated_time_remaining: Optional[float] = None
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    batch_id: Optional[str] = None
    preferred_provider: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    article_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal

    @property
    def processing_time(self) -> Optional[float]:
        if self.started_at is None or self.completed_at is None:
            return None
        return self.completed_at - self.started_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "batch_id": self.batch_id,
            "phase": self.phase.value,
            "progress": round(self.progress, 1),
            "current_step": self.current_step,
            "estimated_time_remaining": self.estimated_time_remaining,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "request": self.request.to_dict(),
            "result": self.result,
            "error": self.error,
            "article_id": self.article_id,
        }


@dataclass
class BatchProgress:
    """Batch view derived on read from its member jobs"""
    batch_id: str
    jobs: List[Job]

    @property
    def total(self) -> int:
        return len(self.jobs)

    @property
    def completed(self) -> int:
        return sum(1 for job in self.jobs if job.phase == JobPhase.COMPLETED)

    @property
    def failed(self) -> int:
        return sum(1 for job in self.jobs if job.phase == JobPhase.ERROR)

    @property
    def finished(self) -> int:
        return self.completed + self.failed

    @property
    def in_progress(self) -> int:
        return self.total - self.finished

    @property
    def percentage(self) -> float:
        """Share of member jobs in a terminal phase"""
        if not self.jobs:
            return 0.0
        return round(self.finished / self.total * 100, 1)

    @property
    def average_progress(self) -> float:
        if not self.jobs:
            return 0.0
        return round(sum(job.progress for job in self.jobs) / self.total, 1)

    @property
    def is_finished(self) -> bool:
        return self.finished == self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "finished": self.finished,
            "in_progress": self.in_progress,
            "percentage": self.percentage,
            "average_progress": self.average_progress,
            "jobs": [job.to_dict() for job in self.jobs],
        }


@dataclass
class QueueStats:
    queued_count: int
    in_flight_count: int
    completed_count: int
    errored_count: int
    average_processing_time: Optional[float]
    max_concurrent_jobs: int

    @property
    def total_jobs(self) -> int:
        return self.queued_count + self.in_flight_count + self.completed_count + self.errored_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "queued_count": self.queued_count,
            "in_flight_count": self.in_flight_count,
            "completed_count": self.completed_count,
            "errored_count": self.errored_count,
            "total_jobs": self.total_jobs,
            "average_processing_time": self.average_processing_time,
            "max_concurrent_jobs": self.max_concurrent_jobs,
        }
