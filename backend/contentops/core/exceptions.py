from fastapi import Request, status
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)

class ContentOpsException(Exception):
    """Base exception for ContentOps application"""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

class JobNotFoundError(ContentOpsException):
    """Raised when a job or batch id is unknown to the queue"""
    def __init__(self, message: str = "Job not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)

class ValidationError(ContentOpsException):
    """Raised when a generation request fails validation"""
    def __init__(self, message: str = "Validation error"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)

class ArticleCreationError(ContentOpsException):
    """Raised by the article store when a record cannot be created"""
    def __init__(self, message: str = "Article creation failed"):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)

async def contentops_exception_handler(request: Request, exc: ContentOpsException):
    """Handle custom ContentOps exceptions"""
    logger.error(f"ContentOps exception: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message}
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.exception(f"Unexpected error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )
