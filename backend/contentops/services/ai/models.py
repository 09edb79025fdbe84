"""
Generation outcome records shared by the orchestrator, queue and API.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from contentops.services.ai.base import AIServiceError, ErrorKind
from contentops.services.ai.parsing import ParsedContent
from contentops.services.ai.quality import QualityReport
from contentops.services.ai.requests import RequestSchema


@dataclass
class Attempt:
    """One provider call made while serving a request"""
    provider: str
    schema: RequestSchema
    success: bool
    latency: float
    tokens_used: int = 0
    cost: float = 0.0
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "schema": self.schema.value,
            "success": self.success,
            "latency": round(self.latency, 3),
            "tokens_used": self.tokens_used,
            "cost": self.cost,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error_message": self.error_message,
            "timestamp": self.timestamp,
        }


@dataclass
class GenerationResult:
    success: bool
    content: Optional[str] = None
    parsed: Optional[ParsedContent] = None
    attempts: List[Attempt] = field(default_factory=list)
    fallback_used: bool = False
    original_v2_error: Optional[Exception] = None
    error: Optional[Exception] = None
    quality: Optional[QualityReport] = None
    article: Optional[Dict[str, Any]] = None
    article_error: Optional[str] = None
    processing_time: float = 0.0

    @property
    def total_cost(self) -> float:
        return round(sum(attempt.cost for attempt in self.attempts), 6)

    @property
    def total_tokens(self) -> int:
        return sum(attempt.tokens_used for attempt in self.attempts)

    @property
    def primary_provider(self) -> Optional[str]:
        return self.attempts[0].provider if self.attempts else None

    @property
    def final_provider(self) -> Optional[str]:
        for attempt in reversed(self.attempts):
            if attempt.success:
                return attempt.provider
        return self.attempts[-1].provider if self.attempts else None

    @property
    def article_creation_failed(self) -> bool:
        return self.article_error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "content": self.content,
            "parsed": self.parsed.to_dict() if self.parsed else None,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
            "total_cost": self.total_cost,
            "total_tokens": self.total_tokens,
            "primary_provider": self.primary_provider,
            "final_provider": self.final_provider,
            "fallback_used": self.fallback_used,
            "original_v2_error": str(self.original_v2_error) if self.original_v2_error else None,
            "error": str(self.error) if self.error else None,
            "quality": self.quality.to_dict() if self.quality else None,
            "article": self.article,
            "article_error": self.article_error,
            "article_creation_failed": self.article_creation_failed,
            "processing_time": round(self.processing_time, 3),
        }


class AllProvidersExhaustedError(AIServiceError):
    """Every provider in the pass failed"""

    def __init__(self, message: str, result: GenerationResult, last_error: Optional[Exception] = None):
        super().__init__(message, original_error=last_error)
        self.result = result
        self.last_error = last_error

    @property
    def attempts(self) -> List[Attempt]:
        return self.result.attempts


class SchemaFallbackFailedError(AIServiceError):
    """Both the primary schema pass and the legacy pass failed"""

    def __init__(self, message: str, result: GenerationResult, v2_error: Exception, legacy_error: Exception):
        super().__init__(message, original_error=legacy_error)
        self.result = result
        self.v2_error = v2_error
        self.legacy_error = legacy_error

    @property
    def attempts(self) -> List[Attempt]:
        return self.result.attempts
