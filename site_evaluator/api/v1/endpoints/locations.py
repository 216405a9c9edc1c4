"""Location API endpoints."""

from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Request

from site_evaluator.api.dependencies import get_job_orchestrator, get_location_cache
from site_evaluator.schemas.common import ApiResponse
from site_evaluator.schemas.job import JobRead
from site_evaluator.schemas.location import LocationRead, ResolveLocationRequest
from site_evaluator.services.job_orchestrator import JobOrchestrator
from site_evaluator.services.location_cache import LocationCache
from site_evaluator.utils.logging import get_logger
from site_evaluator.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()

Cache = Annotated[LocationCache, Depends(get_location_cache)]
Orchestrator = Annotated[JobOrchestrator, Depends(get_job_orchestrator)]


@router.post(
    "/resolve",
    response_model=ApiResponse,
    summary="Resolve a property",
    operation_id="resolve_location",
)
async def resolve_location(request: Request, body: ResolveLocationRequest, cache: Cache) -> ApiResponse:
    """Find or create the location for an address, title reference or coordinates."""
    location = await cache.resolve(body)
    if body.refresh:
        location = await cache.refresh(location.id)
    return create_api_response(
        data=LocationRead.from_model(location),
        message="Location resolved",
        request=request,
    )


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List locations",
    operation_id="list_locations",
)
async def list_locations(
    request: Request,
    cache: Cache,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    summaries = await cache.list_locations(skip=skip, limit=limit)
    return create_api_response(
        data=summaries,
        message="Locations retrieved successfully",
        request=request,
    )


@router.get(
    "/autocomplete",
    response_model=ApiResponse,
    summary="Address autocomplete",
    operation_id="autocomplete_address",
)
async def autocomplete(
    request: Request,
    cache: Cache,
    q: str = Query(..., description="Partial address"),
    limit: int = Query(10, ge=1, le=50),
) -> ApiResponse:
    suggestions = await cache.autocomplete(q, limit=limit)
    return create_api_response(
        data=suggestions,
        message=f"{len(suggestions)} suggestions",
        request=request,
    )


@router.get(
    "/{location_id}",
    response_model=ApiResponse,
    summary="Get location details",
    operation_id="get_location",
)
async def get_location(request: Request, location_id: UUID, cache: Cache) -> ApiResponse:
    location = await cache.get_location(location_id)
    return create_api_response(
        data=LocationRead.from_model(location),
        message="Location retrieved successfully",
        request=request,
    )


@router.get(
    "/{location_id}/jobs",
    response_model=ApiResponse,
    summary="Jobs at a location",
    operation_id="list_location_jobs",
)
async def list_location_jobs(request: Request, location_id: UUID, orchestrator: Orchestrator) -> ApiResponse:
    jobs = await orchestrator.jobs_for_location(location_id)
    return create_api_response(
        data=[JobRead.model_validate(job) for job in jobs],
        message=f"Found {len(jobs)} jobs",
        request=request,
    )


@router.post(
    "/{location_id}/refresh",
    response_model=ApiResponse,
    summary="Refresh cached location data",
    operation_id="refresh_location",
)
async def refresh_location(
    request: Request,
    location_id: UUID,
    cache: Cache,
    sections: Optional[List[str]] = Body(default=None, embed=True),
    force: bool = Query(False),
) -> ApiResponse:
    """Refresh stale sections, or the named sections when ``force`` is set."""
    location = await cache.refresh(location_id, sections, force=force)
    return create_api_response(
        data=LocationRead.from_model(location),
        message="Location refreshed",
        request=request,
    )
