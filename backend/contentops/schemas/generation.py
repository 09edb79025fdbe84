from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any, Union

from contentops.core.config import Settings, settings as default_settings
from contentops.services.ai.requests import GenerationRequest, temperature_for_template

# Request Schemas
class TopicIn(BaseModel):
    title: str
    keywords: Union[str, List[str], None] = None
    tone: Optional[str] = None
    template: Optional[str] = None
    topicId: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Topic title is required")
        return v.strip()

class GenerateRequest(BaseModel):
    topic: TopicIn
    targetWordCount: Optional[int] = Field(None, gt=0, le=10000)
    temperature: Optional[float] = Field(None, ge=0, le=2)
    maxTokens: Optional[int] = Field(None, gt=0, le=32000)
    createArticle: bool = False
    optimizeForSeo: bool = True
    preferredProvider: Optional[str] = None

    def to_domain(self, settings: Optional[Settings] = None) -> GenerationRequest:
        """Build the domain request, filling omitted fields from the configured defaults"""
        settings = settings or default_settings
        template = self.topic.template or settings.DEFAULT_TEMPLATE
        temperature = self.temperature
        if temperature is None:
            temperature = temperature_for_template(template, settings.DEFAULT_TEMPERATURE)
        return GenerationRequest(
            title=self.topic.title,
            keywords=self.topic.keywords,
            tone=self.topic.tone or settings.DEFAULT_TONE,
            target_word_count=self.targetWordCount or settings.DEFAULT_TARGET_WORD_COUNT,
            template=template,
            temperature=temperature,
            max_tokens=self.maxTokens or settings.DEFAULT_MAX_TOKENS,
            create_article=self.createArticle,
            topic_id=self.topic.topicId,
            optimize_for_seo=self.optimizeForSeo
        )

class BatchGenerateRequest(BaseModel):
    requests: List[GenerateRequest] = Field(..., min_length=1)
    preferredProvider: Optional[str] = None

class AnalyzeRequest(BaseModel):
    content: str = Field(..., min_length=1)
    targetKeyword: Optional[str] = None
    keywords: List[str] = []
    targetWordCount: Optional[int] = Field(None, gt=0)
    template: Optional[str] = None

# Response Schemas
class AttemptOut(BaseModel):
    provider: str
    requestSchema: str
    success: bool
    latency: float
    tokensUsed: int
    cost: float
    errorKind: Optional[str] = None
    errorMessage: Optional[str] = None

class GenerateResponse(BaseModel):
    success: bool
    title: Optional[str] = None
    metaDescription: Optional[str] = None
    content: Optional[str] = None
    headings: List[str] = []
    attempts: List[AttemptOut] = []
    totalCost: float = 0.0
    totalTokens: int = 0
    primaryProvider: Optional[str] = None
    finalProvider: Optional[str] = None
    fallbackUsed: bool = False
    originalV2Error: Optional[str] = None
    error: Optional[str] = None
    quality: Optional[Dict[str, Any]] = None
    article: Optional[Dict[str, Any]] = None
    articleCreationFailed: bool = False
    articleError: Optional[str] = None
    processingTime: float = 0.0

    @classmethod
    def from_result(cls, result) -> "GenerateResponse":
        data = result.to_dict()
        parsed = data["parsed"] or {}
        return cls(
            success=data["success"],
            title=parsed.get("title"),
            metaDescription=parsed.get("meta_description"),
            content=parsed.get("body"),
            headings=parsed.get("headings", []),
            attempts=[
                AttemptOut(
                    provider=a["provider"],
                    requestSchema=a["schema"],
                    success=a["success"],
                    latency=a["latency"],
                    tokensUsed=a["tokens_used"],
                    cost=a["cost"],
                    errorKind=a["error_kind"],
                    errorMessage=a["error_message"]
                )
                for a in data["attempts"]
            ],
            totalCost=data["total_cost"],
            totalTokens=data["total_tokens"],
            primaryProvider=data["primary_provider"],
            finalProvider=data["final_provider"],
            fallbackUsed=data["fallback_used"],
            originalV2Error=data["original_v2_error"],
            error=data["error"],
            quality=data["quality"],
            article=data["article"],
            articleCreationFailed=data["article_creation_failed"],
            articleError=data["article_error"],
            processingTime=data["processing_time"]
        )

class ProvidersResponse(BaseModel):
    available: List[str]
    health: Dict[str, Dict[str, Any]]
    costEstimates: Optional[Dict[str, float]] = None
