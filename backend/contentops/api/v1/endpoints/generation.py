from fastapi import APIRouter, Depends, Request

from contentops.api.deps import get_generation_service
from contentops.core.rate_limiting import limiter, RATE_LIMITS
from contentops.schemas.generation import (
    GenerateRequest, GenerateResponse, AnalyzeRequest, ProvidersResponse
)
from contentops.services.ai.quality import QualityContext
from contentops.services.generation import ContentGenerationService

router = APIRouter()

@router.post("/generate", response_model=GenerateResponse)
@limiter.limit(RATE_LIMITS["generate"])
async def generate_content(
    request: Request,
    payload: GenerateRequest,
    service: ContentGenerationService = Depends(get_generation_service)
):
    """
    Generate an article now, falling back across providers and schemas
    """
    result = await service.generate(payload.to_domain(service.settings), payload.preferredProvider)
    return GenerateResponse.from_result(result)

@router.post("/analyze")
@limiter.limit(RATE_LIMITS["analyze"])
async def analyze_content(
    request: Request,
    payload: AnalyzeRequest,
    service: ContentGenerationService = Depends(get_generation_service)
):
    """
    Score existing article text for readability, structure and keywords
    """
    context = QualityContext(
        target_keyword=payload.targetKeyword or (payload.keywords[0] if payload.keywords else ""),
        keywords=tuple(payload.keywords),
        target_word_count=payload.targetWordCount,
        template=payload.template
    )
    return service.analyze(payload.content, context).to_dict()

@router.get("/providers", response_model=ProvidersResponse)
async def provider_health(
    service: ContentGenerationService = Depends(get_generation_service)
):
    """
    List configured providers with their rolling health window
    """
    return ProvidersResponse(
        available=service.available_providers(),
        health=service.providers_health()
    )

@router.post("/estimate", response_model=ProvidersResponse)
async def estimate_cost(
    payload: GenerateRequest,
    service: ContentGenerationService = Depends(get_generation_service)
):
    """
    Estimate the cost of a request on each configured provider
    """
    return ProvidersResponse(
        available=service.available_providers(),
        health=service.providers_health(),
        costEstimates=service.estimate_cost(payload.to_domain(service.settings))
    )
