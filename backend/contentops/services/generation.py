"""
Content generation facade.

Single entry point used by the HTTP layer: synchronous generation through the
orchestrator, optional article creation, and the asynchronous job queue that
runs the same pipeline. ``build_generation_service`` is the composition root;
nothing here is a module-level singleton.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from contentops.core.config import Settings, settings as default_settings
from contentops.core.exceptions import ArticleCreationError, ValidationError
from contentops.services.ai.base import AIServiceError, BaseProviderAdapter
from contentops.services.ai.health import ProviderHealthTracker
from contentops.services.ai.models import (
    AllProvidersExhaustedError,
    GenerationResult,
    SchemaFallbackFailedError
)
from contentops.services.ai.orchestrator import GenerationOrchestrator
from contentops.services.ai.providers import build_adapters
from contentops.services.ai.quality import QualityContext, QualityReport, analyze
from contentops.services.ai.requests import GenerationRequest
from contentops.services.articles import (
    ArticleRepository,
    InMemoryArticleRepository,
    build_article_fields
)
from contentops.services.queue.models import BatchProgress, Job, QueueStats
from contentops.services.queue.queue import GenerationQueue
from contentops.services.queue.store import JobStore, build_job_store

logger = logging.getLogger(__name__)


class ContentGenerationService:
    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        articles: ArticleRepository,
        store: JobStore,
        settings: Settings
    ):
        self.orchestrator = orchestrator
        self.articles = articles
        self.settings = settings
        self.queue = GenerationQueue(
            runner=self._generate,
            store=store,
            max_concurrent_jobs=settings.QUEUE_MAX_CONCURRENT_JOBS,
            max_batch_size=settings.QUEUE_MAX_BATCH_SIZE,
            estimated_duration=settings.JOB_ESTIMATED_DURATION_SECONDS,
            tick_seconds=settings.JOB_PROGRESS_TICK_SECONDS,
            retention_days=settings.JOB_RETENTION_DAYS,
            estimator=self.estimate_duration,
            on_success=self._persist
        )

    @property
    def tracker(self) -> ProviderHealthTracker:
        return self.orchestrator.tracker

    async def generate(
        self,
        request: GenerationRequest,
        preferred_provider: Optional[str] = None
    ) -> GenerationResult:
        """Generate an article; expected failures come back as an unsuccessful result"""
        result = await self._generate(request, preferred_provider)
        if result.success:
            await self._persist(request, result)
        return result

    async def _generate(
        self,
        request: GenerationRequest,
        preferred_provider: Optional[str] = None
    ) -> GenerationResult:
        try:
            result = await self.orchestrator.generate(request, preferred_provider)
        except ValidationError as e:
            logger.warning(f"Rejected generation request: {e.message}")
            return GenerationResult(success=False, error=e)
        except (AllProvidersExhaustedError, SchemaFallbackFailedError) as e:
            logger.error(f"Generation failed for '{request.title}': {e.message}")
            e.result.error = e
            return e.result
        return result

    async def _persist(self, request: GenerationRequest, result: GenerationResult) -> None:
        if not request.create_article:
            return
        try:
            result.article = await self.articles.create_article(build_article_fields(request, result))
        except ArticleCreationError as e:
            # Generation itself succeeded; the caller still gets the content
            logger.error(f"Article creation failed for '{request.title}': {e.message}")
            result.article_error = e.message

    def analyze(self, content: str, context: Optional[QualityContext] = None) -> QualityReport:
        return analyze(content, context)

    def estimate_duration(self, preferred_provider: Optional[str] = None) -> Optional[float]:
        """Expected run time of a job from recent latency, if any is known"""
        order = self.orchestrator.provider_order(preferred_provider)
        return self.tracker.expected_latency(order[0]) if order else None

    def estimate_cost(self, request: GenerationRequest) -> Dict[str, float]:
        return {
            name: adapter.estimate_cost(request)
            for name, adapter in self.orchestrator.adapters.items()
        }

    async def enqueue(self, request: GenerationRequest, preferred_provider: Optional[str] = None) -> str:
        return await self.queue.enqueue(request, preferred_provider)

    async def enqueue_batch(
        self,
        requests: Sequence[GenerationRequest],
        preferred_provider: Optional[str] = None
    ) -> Tuple[str, List[str]]:
        return await self.queue.enqueue_batch(requests, preferred_provider)

    def get_progress(self, job_id: str) -> Job:
        return self.queue.get_progress(job_id)

    def get_batch_progress(self, batch_id: str) -> BatchProgress:
        return self.queue.get_batch_progress(batch_id)

    def cancel(self, job_id: str) -> Job:
        return self.queue.cancel(job_id)

    def stats(self) -> QueueStats:
        return self.queue.stats()

    def purge_finished(self) -> int:
        return self.queue.purge_finished()

    def start(self) -> None:
        self.queue.start()

    def available_providers(self) -> List[str]:
        return self.orchestrator.available_providers

    def providers_health(self) -> Dict[str, Dict[str, Any]]:
        snapshot = self.tracker.snapshot(self.orchestrator.provider_order())
        return {name: health.to_dict() for name, health in snapshot.items()}

    async def shutdown(self) -> None:
        await self.queue.shutdown()
        for adapter in self.orchestrator.adapters.values():
            try:
                await adapter.aclose()
            except Exception as e:
                logger.warning(f"Failed to close {adapter.name} client: {e}")
        self.queue.store.close()


def build_generation_service(
    settings: Optional[Settings] = None,
    adapters: Optional[Sequence[BaseProviderAdapter]] = None,
    articles: Optional[ArticleRepository] = None,
    store: Optional[JobStore] = None
) -> ContentGenerationService:
    """Wire the generation stack from settings, with optional overrides"""
    settings = settings or default_settings
    adapters = list(adapters) if adapters is not None else build_adapters(settings)
    if not adapters:
        raise AIServiceError("No provider adapters available")

    tracker = ProviderHealthTracker(
        window_size=settings.HEALTH_WINDOW_SIZE,
        declaration_order=[adapter.name for adapter in adapters]
    )
    orchestrator = GenerationOrchestrator(
        adapters,
        tracker,
        schema_fallback_enabled=settings.SCHEMA_FALLBACK_ENABLED
    )
    return ContentGenerationService(
        orchestrator=orchestrator,
        articles=articles or InMemoryArticleRepository(),
        store=store or build_job_store(settings),
        settings=settings
    )
