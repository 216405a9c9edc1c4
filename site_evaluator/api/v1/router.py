from fastapi import APIRouter

from site_evaluator.api.v1.endpoints import jobs, locations

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])
api_router.include_router(locations.router, prefix="/locations", tags=["Locations"])

__all__ = ["api_router"]
