"""
Generation Orchestrator

Serves one generation request by trying providers in ranked order, recording
every attempt, and degrading to the legacy request schema once when the
primary schema cannot be served by any provider.
"""

import logging
import time
from typing import Dict, List, Optional, Sequence, Tuple

from contentops.services.ai.base import AIServiceError, BaseProviderAdapter, ProviderResponse
from contentops.services.ai.health import ProviderHealthTracker
from contentops.services.ai.models import (
    AllProvidersExhaustedError,
    Attempt,
    GenerationResult,
    SchemaFallbackFailedError
)
from contentops.services.ai.parsing import parse_content
from contentops.services.ai.quality import QualityContext, analyze
from contentops.services.ai.requests import (
    GenerationRequest,
    ProviderRequest,
    schema_of,
    to_legacy_request
)

logger = logging.getLogger(__name__)


class GenerationOrchestrator:
    """Sequential multi-provider generation with schema fallback"""

    def __init__(
        self,
        adapters: Sequence[BaseProviderAdapter],
        tracker: ProviderHealthTracker,
        schema_fallback_enabled: bool = True
    ):
        self.adapters: Dict[str, BaseProviderAdapter] = {
            adapter.name: adapter for adapter in adapters if adapter.is_configured
        }
        if not self.adapters:
            raise ValueError("At least one configured provider adapter is required")
        self.tracker = tracker
        self.schema_fallback_enabled = schema_fallback_enabled

    @property
    def available_providers(self) -> List[str]:
        return list(self.adapters)

    def provider_order(self, preferred_provider: Optional[str] = None) -> List[str]:
        ranked = self.tracker.rank(self.adapters)
        if preferred_provider:
            if preferred_provider in self.adapters:
                return [preferred_provider] + [p for p in ranked if p != preferred_provider]
            logger.warning(f"Preferred provider {preferred_provider!r} is not configured, ignoring")
        return ranked

    async def _attempt(self, provider: str, request: ProviderRequest, result: GenerationResult) -> ProviderResponse:
        adapter = self.adapters[provider]
        schema = schema_of(request)
        start_time = time.monotonic()
        try:
            response = await adapter.invoke(request)
        except AIServiceError as e:
            latency = time.monotonic() - start_time
            self.tracker.record(provider, False, latency)
            result.attempts.append(Attempt(
                provider=provider,
                schema=schema,
                success=False,
                latency=latency,
                error_kind=e.kind,
                error_message=e.message
            ))
            logger.warning(f"{provider} failed ({schema.value}, {e.kind.value}): {e.message}")
            raise

        self.tracker.record(provider, True, response.latency)
        result.attempts.append(Attempt(
            provider=provider,
            schema=schema,
            success=True,
            latency=response.latency,
            tokens_used=response.tokens_used,
            cost=response.cost
        ))
        logger.info(
            f"{provider} succeeded ({schema.value}) in {response.latency:.2f}s, "
            f"{response.tokens_used} tokens, ${response.cost:.4f}"
        )
        return response

    async def _run_pass(
        self,
        request: ProviderRequest,
        providers: Sequence[str],
        result: GenerationResult
    ) -> Tuple[Optional[ProviderResponse], Optional[AIServiceError]]:
        """Try each provider in turn; return the first response or the last error"""
        last_error: Optional[AIServiceError] = None
        for provider in providers:
            try:
                return await self._attempt(provider, request, result), None
            except AIServiceError as e:
                last_error = e
        return None, last_error

    async def generate(
        self,
        request: GenerationRequest,
        preferred_provider: Optional[str] = None
    ) -> GenerationResult:
        """Generate an article, raising only when every path has failed

        Raises ValidationError before any provider call for a bad request,
        AllProvidersExhaustedError when the only pass fails and
        SchemaFallbackFailedError when both schema passes fail.
        """
        request.validate()
        start_time = time.monotonic()
        providers = self.provider_order(preferred_provider)
        result = GenerationResult(success=False)

        logger.info(f"Generating '{request.title}' with provider order {providers}")
        response, v2_error = await self._run_pass(request, providers, result)

        if response is None and self.schema_fallback_enabled:
            logger.warning(f"All providers failed for '{request.title}', retrying with legacy schema")
            result.original_v2_error = v2_error
            response, legacy_error = await self._run_pass(to_legacy_request(request), providers, result)
            if response is None:
                result.error = legacy_error
                result.processing_time = time.monotonic() - start_time
                raise SchemaFallbackFailedError(
                    f"Schema fallback failed. Primary error: {v2_error}. Legacy error: {legacy_error}",
                    result,
                    v2_error,
                    legacy_error
                )
            result.fallback_used = True

        if response is None:
            result.error = v2_error
            result.processing_time = time.monotonic() - start_time
            raise AllProvidersExhaustedError(
                f"All providers failed: {v2_error}",
                result,
                v2_error
            )

        parsed = parse_content(response.content, fallback_title=request.title, keywords=request.keywords)
        result.success = True
        result.content = response.content
        result.parsed = parsed
        result.quality = analyze(parsed.body, QualityContext.from_request(request))
        result.processing_time = time.monotonic() - start_time

        logger.info(
            f"Generated '{parsed.title}' via {result.final_provider} "
            f"(attempts={len(result.attempts)}, fallback={result.fallback_used}, "
            f"score={result.quality.overall_score})"
        )
        return result
