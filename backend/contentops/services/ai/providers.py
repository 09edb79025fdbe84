"""
Provider Adapter Implementations

Concrete adapters for Anthropic, OpenAI and Google Gemini, plus a
deterministic mock used when no credentials are configured. Each adapter
maps its provider's failures onto the typed errors in ``base``.
"""

import asyncio
import logging
from typing import List, Optional

import anthropic
import httpx
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from contentops.core.config import Settings
from contentops.services.ai.base import (
    AIProvider,
    AIServiceError,
    BaseProviderAdapter,
    ContentPolicyViolationError,
    InvalidResponseError,
    ProviderAuthError,
    ProviderRateLimitError,
    ProviderResponse,
    ProviderTimeoutError
)
from contentops.services.ai.prompts import SYSTEM_PROMPT
from contentops.services.ai.requests import LegacyGenerationRequest, ProviderRequest, schema_of

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseProviderAdapter):
    """Anthropic Claude adapter"""

    provider = AIProvider.ANTHROPIC

    def __init__(self, api_key: str, model: str = "claude-3-sonnet-20240229", cost_per_1k: float = 0.015, **kwargs):
        super().__init__(model, cost_per_1k, **kwargs)
        self.api_key = api_key
        self._client: Optional[AsyncAnthropic] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> AsyncAnthropic:
        if self._client is None:
            # Retries are owned by invoke(), not the SDK
            self._client = AsyncAnthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    async def _make_request(self, prompt: str, request: ProviderRequest) -> ProviderResponse:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}]
            )
        except anthropic.AuthenticationError as e:
            raise ProviderAuthError(f"Anthropic authentication failed: {e}", "anthropic", self.model, e)
        except anthropic.PermissionDeniedError as e:
            raise ProviderAuthError(f"Anthropic permission denied: {e}", "anthropic", self.model, e)
        except anthropic.RateLimitError as e:
            raise ProviderRateLimitError(f"Anthropic rate limit exceeded: {e}", "anthropic", self.model, e)
        except anthropic.APITimeoutError as e:
            raise ProviderTimeoutError(f"Anthropic request timed out: {e}", "anthropic", self.model, e)
        except anthropic.APIStatusError as e:
            raise AIServiceError(f"Anthropic API error ({e.status_code}): {e}", "anthropic", self.model, e)
        except anthropic.APIError as e:
            raise AIServiceError(f"Anthropic API error: {e}", "anthropic", self.model, e)

        if response.stop_reason == "refusal":
            raise ContentPolicyViolationError("Anthropic refused the request", "anthropic", self.model)

        content = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        usage = getattr(response, "usage", None)
        if usage is not None:
            tokens = usage.input_tokens + usage.output_tokens
        else:
            tokens = self.token_counter.count_tokens(prompt + content)

        return ProviderResponse(
            content=content,
            tokens_used=tokens,
            cost=self.calculate_cost(tokens),
            latency=0.0,
            model=response.model,
            metadata={"stop_reason": response.stop_reason, "schema": schema_of(request).value}
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


class OpenAIAdapter(BaseProviderAdapter):
    """OpenAI chat completions adapter"""

    provider = AIProvider.OPENAI

    def __init__(self, api_key: str, model: str = "gpt-4-turbo-preview", cost_per_1k: float = 0.03, **kwargs):
        super().__init__(model, cost_per_1k, **kwargs)
        self.api_key = api_key
        self._client: Optional[AsyncOpenAI] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    async def _make_request(self, prompt: str, request: ProviderRequest) -> ProviderResponse:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                max_tokens=request.max_tokens,
                temperature=request.temperature
            )
        except openai.AuthenticationError as e:
            raise ProviderAuthError(f"OpenAI authentication failed: {e}", "openai", self.model, e)
        except openai.PermissionDeniedError as e:
            raise ProviderAuthError(f"OpenAI permission denied: {e}", "openai", self.model, e)
        except openai.RateLimitError as e:
            raise ProviderRateLimitError(f"OpenAI rate limit exceeded: {e}", "openai", self.model, e)
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(f"OpenAI request timed out: {e}", "openai", self.model, e)
        except openai.BadRequestError as e:
            if getattr(e, "code", None) == "content_policy_violation":
                raise ContentPolicyViolationError(f"OpenAI content policy: {e}", "openai", self.model, e)
            raise AIServiceError(f"OpenAI rejected the request: {e}", "openai", self.model, e)
        except openai.APIError as e:
            raise AIServiceError(f"OpenAI API error: {e}", "openai", self.model, e)

        if not response.choices:
            raise InvalidResponseError("OpenAI returned no choices", "openai", self.model)

        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise ContentPolicyViolationError("OpenAI content filter blocked the output", "openai", self.model)

        content = choice.message.content or ""
        if response.usage is not None:
            tokens = response.usage.total_tokens
        else:
            tokens = self.token_counter.count_tokens(prompt + content)

        return ProviderResponse(
            content=content,
            tokens_used=tokens,
            cost=self.calculate_cost(tokens),
            latency=0.0,
            model=response.model,
            metadata={"finish_reason": choice.finish_reason, "schema": schema_of(request).value}
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


class GoogleAdapter(BaseProviderAdapter):
    """Google Gemini adapter over the generateContent REST endpoint"""

    provider = AIProvider.GOOGLE

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-pro",
        cost_per_1k: float = 0.0005,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs
    ):
        super().__init__(model, cost_per_1k, **kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def _make_request(self, prompt: str, request: ProviderRequest) -> ProviderResponse:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": f"{SYSTEM_PROMPT}\n\n{prompt}"}]}],
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
                "topP": 0.8,
                "topK": 40
            }
        }

        try:
            response = await self.http_client.post(url, params={"key": self.api_key}, json=payload)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Google request timed out: {e}", "google", self.model, e)
        except httpx.HTTPError as e:
            raise AIServiceError(f"Google transport error: {e}", "google", self.model, e)

        if response.status_code in (401, 403):
            raise ProviderAuthError(f"Google authentication failed ({response.status_code})", "google", self.model)
        if response.status_code == 429:
            raise ProviderRateLimitError("Google rate limit exceeded", "google", self.model)
        if response.status_code in (408, 504):
            raise ProviderTimeoutError(f"Google gateway timeout ({response.status_code})", "google", self.model)
        if response.status_code >= 400:
            raise AIServiceError(
                f"Google API error ({response.status_code}): {response.text[:200]}", "google", self.model
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError("Google returned a non-JSON body", "google", self.model, e)

        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise ContentPolicyViolationError(f"Google blocked the prompt: {block_reason}", "google", self.model)

        candidates = data.get("candidates") or []
        if not candidates:
            raise InvalidResponseError("Google returned no candidates", "google", self.model)

        candidate = candidates[0]
        if candidate.get("finishReason") == "SAFETY":
            raise ContentPolicyViolationError("Content blocked by Google safety filters", "google", self.model)

        parts = (candidate.get("content") or {}).get("parts") or []
        content = "".join(part.get("text", "") for part in parts)
        if not content:
            raise InvalidResponseError("Google candidate carried no text", "google", self.model)

        tokens = (data.get("usageMetadata") or {}).get("totalTokenCount")
        if tokens is None:
            tokens = self.token_counter.count_tokens(prompt + content)

        return ProviderResponse(
            content=content,
            tokens_used=tokens,
            cost=self.calculate_cost(tokens),
            latency=0.0,
            model=self.model,
            metadata={
                "finish_reason": candidate.get("finishReason"),
                "safety_ratings": candidate.get("safetyRatings", []),
                "schema": schema_of(request).value
            }
        )

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()


class MockAdapter(BaseProviderAdapter):
    """Deterministic offline adapter used when no provider credentials exist"""

    provider = AIProvider.MOCK

    def __init__(self, model: str = "mock-writer", delay: float = 0.0, **kwargs):
        super().__init__(model, 0.0, **kwargs)
        self.delay = delay

    @property
    def is_configured(self) -> bool:
        return True

    async def _make_request(self, prompt: str, request: ProviderRequest) -> ProviderResponse:
        if self.delay:
            await asyncio.sleep(self.delay)

        source = request.source if isinstance(request, LegacyGenerationRequest) else request
        content = render_mock_article(source.title, source.primary_keyword, source.tone)
        return ProviderResponse(
            content=content,
            tokens_used=len(content) // 4,
            cost=0.0,
            latency=0.0,
            model=self.model,
            metadata={"mock": True, "schema": schema_of(request).value}
        )


def render_mock_article(title: str, keyword: str, tone: str) -> str:
    sections = [
        ("Why It Matters", f"Understanding {keyword} helps readers make better decisions. "
                           "However, most guides skip the basics, so this section starts there."),
        ("Getting Started", f"Begin with a clear goal. Furthermore, pick tools that suit a {tone} workflow "
                            "and keep notes as you go."),
        ("Common Mistakes", "Rushing the setup is the most frequent error. Therefore, slow down and "
                            "check each step before moving on."),
    ]
    intro = (
        f"This article walks through {title} step by step. It explains what {keyword} is, "
        "why it matters and how to get reliable results without wasting time or money."
    )
    body = [f"# {title}", "", intro, ""]
    for heading, text in sections:
        body += [f"## {heading}", "", text, ""]
    body += ["## Conclusion", "", f"In conclusion, {keyword} rewards a patient, structured approach."]

    return (
        f"TITLE: {title}\n"
        f"META_DESCRIPTION: A practical {tone} guide to {keyword}, covering the basics, "
        "common mistakes and next steps.\n"
        "CONTENT:\n" + "\n".join(body)
    )


def build_adapters(settings: Settings) -> List[BaseProviderAdapter]:
    """Build configured adapters in declaration order, or the mock if none are"""
    retry_kwargs = dict(
        timeout=settings.AI_REQUEST_TIMEOUT,
        max_retries=settings.AI_MAX_RETRIES,
        retry_min_wait=settings.AI_RETRY_MIN_WAIT,
        retry_max_wait=settings.AI_RETRY_MAX_WAIT
    )
    candidates = {
        "anthropic": lambda: AnthropicAdapter(
            settings.ANTHROPIC_API_KEY, settings.ANTHROPIC_MODEL, settings.ANTHROPIC_COST_PER_1K, **retry_kwargs
        ),
        "openai": lambda: OpenAIAdapter(
            settings.OPENAI_API_KEY, settings.OPENAI_MODEL, settings.OPENAI_COST_PER_1K, **retry_kwargs
        ),
        "google": lambda: GoogleAdapter(
            settings.GOOGLE_API_KEY, settings.GOOGLE_MODEL, settings.GOOGLE_COST_PER_1K,
            base_url=settings.GOOGLE_API_BASE_URL, **retry_kwargs
        ),
    }

    adapters = []
    for name in settings.provider_order:
        factory = candidates.get(name)
        if factory is None:
            logger.warning(f"Unknown provider in PROVIDER_ORDER: {name}")
            continue
        adapter = factory()
        if adapter.is_configured:
            adapters.append(adapter)

    if not adapters:
        if not settings.USE_MOCK_PROVIDER_WHEN_UNCONFIGURED:
            raise AIServiceError("No AI providers configured")
        logger.warning("No AI provider credentials configured, using mock adapter")
        adapters.append(MockAdapter(**retry_kwargs))

    logger.info(f"Initialized providers: {[adapter.name for adapter in adapters]}")
    return adapters
