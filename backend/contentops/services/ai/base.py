"""
Base Provider Adapter Classes

Provides the abstract adapter every LLM provider implements, the typed error
taxonomy adapters raise, and the shared token/cost utilities. Error kinds are
assigned where the failure is observed so callers never inspect messages.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import tiktoken
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

from contentops.services.ai.prompts import build_prompt
from contentops.services.ai.requests import ProviderRequest

logger = logging.getLogger(__name__)


class AIProvider(str, Enum):
    """Supported AI providers"""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GOOGLE = "google"
    MOCK = "mock"


class ErrorKind(str, Enum):
    """Classification of a failed provider call"""
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    CONTENT_POLICY = "content_policy"
    TIMEOUT = "timeout"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


class AIServiceError(Exception):
    """Base exception for provider errors"""
    kind = ErrorKind.UNKNOWN

    def __init__(self, message: str, provider: str = "", model: str = "", original_error: Exception = None):
        self.message = message
        self.provider = provider
        self.model = model
        self.original_error = original_error
        super().__init__(self.message)


class ProviderAuthError(AIServiceError):
    """Credentials rejected or missing"""
    kind = ErrorKind.AUTH


class ProviderRateLimitError(AIServiceError):
    """Provider throttled the request"""
    kind = ErrorKind.RATE_LIMIT


class ContentPolicyViolationError(AIServiceError):
    """Provider refused the prompt or blocked the output"""
    kind = ErrorKind.CONTENT_POLICY


class ProviderTimeoutError(AIServiceError):
    """Provider did not answer in time"""
    kind = ErrorKind.TIMEOUT


class InvalidResponseError(AIServiceError):
    """Provider answered but no usable text could be extracted"""
    kind = ErrorKind.INVALID_RESPONSE


# Only these are worth retrying against the same provider
TRANSIENT_ERRORS = (ProviderRateLimitError, ProviderTimeoutError)

REFUSAL_PHRASES = (
    "i'm sorry, but i can't",
    "i'm sorry, i can't",
    "sorry, but i can't",
    "sorry, i can't",
    "i can't help with",
    "i cannot provide",
    "i can't assist with",
    "i can't create",
    "i can't generate",
    "i can't write",
    "this request goes against",
    "against my guidelines",
    "violates my guidelines",
    "my guidelines don't allow",
    "not something i can help with",
    "i'm not comfortable",
    "i don't feel comfortable",
    "i won't be able to",
    "i cannot fulfill",
    "i'm not able to create content",
)

ARTICLE_MARKERS = ("title:", "meta_description:", "content:")


def is_refusal(content: str) -> bool:
    """True when the text reads as a refusal rather than an article.

    A refusal phrase alone is not enough: models often prepend a disclaimer
    to a perfectly good article, so structured or long bolded output wins.
    """
    normalized = content.lower().strip()
    if not any(phrase in normalized for phrase in REFUSAL_PHRASES):
        return False
    if any(marker in normalized for marker in ARTICLE_MARKERS):
        return False
    if len(content) > 1000 and content.count("**") > 6:
        return False
    return True


@dataclass
class ProviderResponse:
    """Normalized result of one successful provider call"""
    content: str
    tokens_used: int
    cost: float
    latency: float  # seconds
    model: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


class TokenCounter:
    """Utility class for counting tokens across different models"""

    def __init__(self):
        self._encoders = {}

    def count_tokens(self, text: str, encoding_name: str = "cl100k_base") -> int:
        """Count tokens for given text"""
        try:
            if encoding_name not in self._encoders:
                self._encoders[encoding_name] = tiktoken.get_encoding(encoding_name)

            return len(self._encoders[encoding_name].encode(text))

        except Exception as e:
            logger.warning(f"Failed to count tokens with {encoding_name}: {e}")
            # Fallback: rough estimation (4 chars per token)
            return len(text) // 4


class BaseProviderAdapter(ABC):
    """Abstract base class for all provider adapters"""

    provider: AIProvider

    def __init__(
        self,
        model: str,
        cost_per_1k: float,
        timeout: float = 30,
        max_retries: int = 3,
        retry_min_wait: float = 1.0,
        retry_max_wait: float = 4.0
    ):
        self.model = model
        self.cost_per_1k = cost_per_1k
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait
        self.token_counter = TokenCounter()

    @property
    def name(self) -> str:
        return self.provider.value

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials are present for this provider"""

    @abstractmethod
    async def _make_request(self, prompt: str, request: ProviderRequest) -> ProviderResponse:
        """Make the actual API request and return extracted text

        Implementations translate SDK/HTTP failures into the typed errors above.
        Latency is filled in by ``invoke``.
        """

    async def invoke(self, request: ProviderRequest) -> ProviderResponse:
        """Send one normalized request, retrying transient failures"""
        prompt = build_prompt(request)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_min_wait, min=self.retry_min_wait, max=self.retry_max_wait),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True
        )

        start_time = time.monotonic()
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._make_request(prompt, request)
        except AIServiceError:
            raise
        except Exception as e:
            raise AIServiceError(f"Unexpected {self.name} error: {e}", self.name, self.model, e) from e

        response.latency = time.monotonic() - start_time
        self._check_content(response.content)
        return response

    def _check_content(self, content: Optional[str]) -> None:
        if not content or not content.strip():
            raise InvalidResponseError(f"Empty response from {self.name}", self.name, self.model)
        if is_refusal(content):
            raise ContentPolicyViolationError(
                f"Content refused by {self.name}: {content.strip()[:120]}",
                self.name,
                self.model
            )

    async def aclose(self) -> None:
        """Release any network client held by the adapter"""
        return None

    def calculate_cost(self, tokens: int) -> float:
        return round(tokens / 1000 * self.cost_per_1k, 6)

    def estimate_cost(self, request: ProviderRequest) -> float:
        """Pre-flight estimate: prompt tokens plus the requested completion budget"""
        prompt_tokens = self.token_counter.count_tokens(build_prompt(request))
        return self.calculate_cost(prompt_tokens + request.max_tokens)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model!r})"
