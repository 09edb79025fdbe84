from fastapi import Request

from contentops.services.generation import ContentGenerationService


def get_generation_service(request: Request) -> ContentGenerationService:
    """The service built by the application lifespan"""
    return request.app.state.generation_service
