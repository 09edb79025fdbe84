"""
Generation request model.

Two request shapes reach the providers: the topic-based ``GenerationRequest``
(the primary schema) and the free-text ``LegacyGenerationRequest`` used only
when the primary schema path has failed. The legacy shape is never built by
callers directly; ``to_legacy_request`` is the single converter.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from contentops.core.exceptions import ValidationError

# Templates that benefit from a different creativity level than the default
TEMPLATE_TEMPERATURES: Dict[str, float] = {
    "Artist Showcase": 0.8,
    "Product Showcase": 0.7,
    "How-to Guide": 0.5,
    "Buying Guide": 0.6,
    "Review Article": 0.7,
    "Industry Trends": 0.6,
}

MAX_KEYWORDS = 20


class RequestSchema(str, Enum):
    V2 = "v2"
    LEGACY = "legacy"


def _normalize_keywords(keywords: Union[str, Iterable[str], None]) -> Tuple[str, ...]:
    if keywords is None:
        return ()
    if isinstance(keywords, str):
        keywords = keywords.split(",")
    seen = []
    for keyword in keywords:
        keyword = str(keyword).strip()
        if keyword and keyword.lower() not in (k.lower() for k in seen):
            seen.append(keyword)
    return tuple(seen)


@dataclass(frozen=True)
class GenerationRequest:
    """Topic brief for one article"""
    title: str
    keywords: Tuple[str, ...] = ()
    tone: str = "professional"
    target_word_count: int = 1000
    template: str = "article"
    temperature: float = 0.7
    max_tokens: int = 2000
    create_article: bool = False
    topic_id: Optional[str] = None
    optimize_for_seo: bool = True

    def __post_init__(self):
        # Frozen, so normalization has to go through object.__setattr__
        object.__setattr__(self, "title", (self.title or "").strip())
        object.__setattr__(self, "keywords", _normalize_keywords(self.keywords))

    @property
    def primary_keyword(self) -> str:
        return self.keywords[0] if self.keywords else self.title

    def validate(self) -> "GenerationRequest":
        """Raise ValidationError for a request that must not reach a provider"""
        if not self.title:
            raise ValidationError("Topic title is required")
        if len(self.title) > 300:
            raise ValidationError("Topic title must be at most 300 characters")
        if self.target_word_count <= 0:
            raise ValidationError("target_word_count must be positive")
        if self.max_tokens <= 0:
            raise ValidationError("max_tokens must be positive")
        if not 0 <= self.temperature <= 2:
            raise ValidationError("temperature must be between 0 and 2")
        if len(self.keywords) > MAX_KEYWORDS:
            raise ValidationError(f"At most {MAX_KEYWORDS} keywords are allowed")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "keywords": list(self.keywords),
            "tone": self.tone,
            "target_word_count": self.target_word_count,
            "template": self.template,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "create_article": self.create_article,
            "topic_id": self.topic_id,
            "optimize_for_seo": self.optimize_for_seo,
        }


@dataclass(frozen=True)
class LegacyGenerationRequest:
    """Free-text request shape accepted by the older generation path"""
    prompt: str
    tone: str
    keywords: Tuple[str, ...]
    target_word_count: int
    template: str
    temperature: float
    max_tokens: int
    source: GenerationRequest = field(repr=False, compare=False)


ProviderRequest = Union[GenerationRequest, LegacyGenerationRequest]


def schema_of(request: ProviderRequest) -> RequestSchema:
    if isinstance(request, LegacyGenerationRequest):
        return RequestSchema.LEGACY
    return RequestSchema.V2


def temperature_for_template(template: str, default: float = 0.7) -> float:
    return TEMPLATE_TEMPERATURES.get(template, default)


def to_legacy_request(request: GenerationRequest) -> LegacyGenerationRequest:
    """Render a topic brief into the legacy free-text shape.

    Pure: identical input yields an identical legacy request.
    """
    keywords = ", ".join(request.keywords) if request.keywords else request.title
    prompt = (
        f"Write a {request.target_word_count}-word {request.template} about "
        f"\"{request.title}\" in a {request.tone} tone.\n"
        f"Keywords to cover: {keywords}.\n"
        "Start with a title on its own line, then the article body using "
        "markdown headings."
    )
    return LegacyGenerationRequest(
        prompt=prompt,
        tone=request.tone,
        keywords=request.keywords,
        target_word_count=request.target_word_count,
        template=request.template,
        temperature=request.temperature,
        max_tokens=request.max_tokens,
        source=request,
    )
