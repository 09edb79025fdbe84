from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from contentops.core.config import Settings, settings as default_settings
from contentops.core.logging import setup_logging
from contentops.core.exceptions import (
    ContentOpsException, contentops_exception_handler, general_exception_handler
)
from contentops.core.rate_limiting import limiter, custom_rate_limit_exceeded_handler
from contentops.api.v1.api import api_router
from contentops.services.generation import ContentGenerationService, build_generation_service


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[ContentGenerationService] = None
) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management"""
        # Startup
        generation_service = service or build_generation_service(settings)
        app.state.generation_service = generation_service
        generation_service.purge_finished()
        generation_service.start()

        yield

        # Shutdown
        await generation_service.shutdown()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Multi-provider article generation with background jobs",
        version="1.0.0",
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan
    )

    # Add rate limiter to app
    app.state.limiter = limiter

    # Exception handlers
    app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)
    app.add_exception_handler(ContentOpsException, contentops_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/")
    async def root():
        return {"message": f"{settings.PROJECT_NAME} is running"}

    @app.get("/health")
    async def health_check():
        generation_service = app.state.generation_service
        return {
            "status": "healthy",
            "providers": generation_service.available_providers(),
            "queue": generation_service.stats().to_dict()
        }

    return app


# Set up logging
setup_logging()

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("contentops.main:app", host="0.0.0.0", port=8000, reload=True)
