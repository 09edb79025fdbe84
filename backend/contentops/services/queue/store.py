"""
Job stores.

The queue treats its store as the source of truth: every read returns a copy
and every change is written back with ``save``. The in-memory store is the
default; the diskcache store keeps jobs across restarts of the process.
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from diskcache import Cache

from contentops.core.config import Settings
from contentops.services.queue.models import Job

logger = logging.getLogger(__name__)


class JobStore(ABC):
    @abstractmethod
    def save(self, job: Job) -> None:
        pass

    @abstractmethod
    def get(self, job_id: str) -> Optional[Job]:
        pass

    @abstractmethod
    def list(self, batch_id: Optional[str] = None) -> List[Job]:
        """All jobs, or the members of one batch, oldest first"""

    @abstractmethod
    def delete(self, job_id: str) -> bool:
        pass

    def close(self) -> None:
        return None


class InMemoryJobStore(JobStore):
    def __init__(self):
        self._jobs: Dict[str, Job] = {}

    def save(self, job: Job) -> None:
        self._jobs[job.job_id] = copy.deepcopy(job)

    def get(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return copy.deepcopy(job) if job else None

    def list(self, batch_id: Optional[str] = None) -> List[Job]:
        jobs = [
            copy.deepcopy(job) for job in self._jobs.values()
            if batch_id is None or job.batch_id == batch_id
        ]
        return sorted(jobs, key=lambda job: job.created_at)

    def delete(self, job_id: str) -> bool:
        return self._jobs.pop(job_id, None) is not None


class DiskJobStore(JobStore):
    """diskcache-backed store; jobs are pickled under their id"""

    def __init__(self, directory: str, size_limit: int = 100000000):
        self.cache = Cache(directory, size_limit=size_limit)

    def save(self, job: Job) -> None:
        self.cache.set(job.job_id, job)

    def get(self, job_id: str) -> Optional[Job]:
        return self.cache.get(job_id)

    def list(self, batch_id: Optional[str] = None) -> List[Job]:
        jobs = []
        for key in list(self.cache.iterkeys()):
            job = self.cache.get(key)
            # Entries can be evicted between iteration and read
            if job is None:
                continue
            if batch_id is None or job.batch_id == batch_id:
                jobs.append(job)
        return sorted(jobs, key=lambda job: job.created_at)

    def delete(self, job_id: str) -> bool:
        return self.cache.delete(job_id)

    def close(self) -> None:
        self.cache.close()


def build_job_store(settings: Settings) -> JobStore:
    if settings.JOB_STORE_BACKEND == "disk":
        logger.info(f"Using disk job store at {settings.JOB_STORE_PATH}")
        return DiskJobStore(settings.JOB_STORE_PATH)
    return InMemoryJobStore()
