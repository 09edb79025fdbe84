from fastapi import APIRouter

from contentops.api.v1.endpoints import generation, jobs

api_router = APIRouter()

api_router.include_router(generation.router, prefix="/generation", tags=["generation"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
