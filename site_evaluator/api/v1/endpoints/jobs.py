"""Job API endpoints."""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status

from site_evaluator.api.dependencies import get_job_orchestrator, get_owner_id, get_report_coordinator
from site_evaluator.schemas.common import ApiResponse
from site_evaluator.schemas.enums import JobPurpose, JobStatus
from site_evaluator.schemas.job import (
    CreateJobRequest,
    JobListFilter,
    JobListResponse,
    JobRead,
    RefreshSectionsRequest,
    StatusUpdateRequest,
    UpdateJobRequest,
)
from site_evaluator.schemas.report import GenerateReportRequest, ReportRead
from site_evaluator.services.job_orchestrator import JobOrchestrator
from site_evaluator.services.report_coordinator import ReportCoordinator
from site_evaluator.utils.logging import get_logger
from site_evaluator.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()

Orchestrator = Annotated[JobOrchestrator, Depends(get_job_orchestrator)]
Reports = Annotated[ReportCoordinator, Depends(get_report_coordinator)]
OwnerId = Annotated[Optional[str], Depends(get_owner_id)]


@router.post(
    "/",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a job",
    operation_id="create_job",
)
async def create_job(
    request: Request,
    body: CreateJobRequest,
    orchestrator: Orchestrator,
    owner_id: OwnerId,
) -> ApiResponse:
    """Create a job against an address, title reference, coordinates or existing location."""
    job = await orchestrator.create_job(body, owner_id=owner_id)
    return create_api_response(
        data=JobRead.model_validate(job),
        message=f"Job {job.job_reference} created",
        request=request,
    )


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List jobs",
    operation_id="list_jobs",
)
async def list_jobs(
    request: Request,
    orchestrator: Orchestrator,
    owner_id: Optional[str] = Query(None),
    location_id: Optional[UUID] = Query(None),
    job_status: Optional[JobStatus] = Query(None, alias="status"),
    purpose: Optional[JobPurpose] = Query(None),
    created_from: Optional[datetime] = Query(None),
    created_to: Optional[datetime] = Query(None),
    customer_name: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: str = Query("created_at"),
    descending: bool = Query(True),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    """List jobs with filtering, sorting and pagination."""
    filters = JobListFilter(
        owner_id=owner_id,
        location_id=location_id,
        status=job_status,
        purpose=purpose,
        created_from=created_from,
        created_to=created_to,
        customer_name=customer_name,
        search=search,
        sort_by=sort_by,
        descending=descending,
        skip=skip,
        limit=limit,
    )
    jobs, total = await orchestrator.list_jobs(filters)
    return create_api_response(
        data=JobListResponse.build(jobs, total, skip, limit),
        message="Jobs retrieved successfully",
        request=request,
    )


@router.get(
    "/search",
    response_model=ApiResponse,
    summary="Search jobs",
    operation_id="search_jobs",
)
async def search_jobs(
    request: Request,
    orchestrator: Orchestrator,
    q: str = Query(..., description="Text matched against reference, customer and address"),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    jobs = await orchestrator.search_jobs(q, limit=limit)
    return create_api_response(
        data=[JobRead.model_validate(job) for job in jobs],
        message=f"Found {len(jobs)} jobs",
        request=request,
    )


@router.get(
    "/by-reference/{job_reference}",
    response_model=ApiResponse,
    summary="Get a job by reference",
    operation_id="get_job_by_reference",
)
async def get_job_by_reference(request: Request, job_reference: str, orchestrator: Orchestrator) -> ApiResponse:
    job = await orchestrator.get_job_by_reference(job_reference)
    return create_api_response(
        data=JobRead.model_validate(job),
        message="Job retrieved successfully",
        request=request,
    )


@router.get(
    "/{job_id}",
    response_model=ApiResponse,
    summary="Get job details",
    operation_id="get_job",
)
async def get_job(request: Request, job_id: UUID, orchestrator: Orchestrator) -> ApiResponse:
    job = await orchestrator.get_job(job_id)
    return create_api_response(
        data=JobRead.model_validate(job),
        message="Job retrieved successfully",
        request=request,
    )


@router.patch(
    "/{job_id}",
    response_model=ApiResponse,
    summary="Update job metadata",
    operation_id="update_job",
)
async def update_job(
    request: Request,
    job_id: UUID,
    body: UpdateJobRequest,
    orchestrator: Orchestrator,
) -> ApiResponse:
    """Merge provided fields into the job. Location and status are not editable here."""
    job = await orchestrator.update_job(job_id, body)
    return create_api_response(
        data=JobRead.model_validate(job),
        message="Job updated successfully",
        request=request,
    )


@router.put(
    "/{job_id}/status",
    response_model=ApiResponse,
    summary="Change job status",
    operation_id="update_job_status",
)
async def update_job_status(
    request: Request,
    job_id: UUID,
    body: StatusUpdateRequest,
    orchestrator: Orchestrator,
) -> ApiResponse:
    job = await orchestrator.update_status(job_id, body.status)
    return create_api_response(
        data=JobRead.model_validate(job),
        message=f"Job status is {job.status.value}",
        request=request,
    )


@router.post(
    "/{job_id}/cancel",
    response_model=ApiResponse,
    summary="Cancel a job",
    operation_id="cancel_job",
)
async def cancel_job(request: Request, job_id: UUID, orchestrator: Orchestrator) -> ApiResponse:
    job = await orchestrator.cancel_job(job_id)
    return create_api_response(
        data=JobRead.model_validate(job),
        message="Job cancelled",
        request=request,
    )


@router.post(
    "/{job_id}/data-collection",
    response_model=ApiResponse,
    summary="Run data collection",
    operation_id="run_data_collection",
)
async def run_data_collection(request: Request, job_id: UUID, orchestrator: Orchestrator) -> ApiResponse:
    """Refresh stale location data and update the job's data status."""
    job = await orchestrator.run_data_collection(job_id)
    return create_api_response(
        data=JobRead.model_validate(job),
        message=f"Data collection finished at {job.completeness_percent}% completeness",
        request=request,
    )


@router.post(
    "/{job_id}/refresh",
    response_model=ApiResponse,
    summary="Force-refresh data sections",
    operation_id="refresh_job_sections",
)
async def refresh_sections(
    request: Request,
    job_id: UUID,
    body: RefreshSectionsRequest,
    orchestrator: Orchestrator,
) -> ApiResponse:
    job = await orchestrator.refresh_sections(job_id, body.sections)
    return create_api_response(
        data=JobRead.model_validate(job),
        message="Sections refreshed",
        request=request,
    )


@router.post(
    "/{job_id}/reports",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a report",
    operation_id="generate_report",
)
async def generate_report(
    request: Request,
    job_id: UUID,
    body: GenerateReportRequest,
    reports: Reports,
    owner_id: OwnerId,
) -> ApiResponse:
    report = await reports.generate(job_id, body.report_type, body.options, generated_by=owner_id)
    return create_api_response(
        data=ReportRead.model_validate(report),
        message=f"Generated {report.file_name}",
        request=request,
    )


@router.get(
    "/{job_id}/reports",
    response_model=ApiResponse,
    summary="List reports for a job",
    operation_id="list_reports",
)
async def list_reports(request: Request, job_id: UUID, reports: Reports) -> ApiResponse:
    items = await reports.list_reports(job_id)
    return create_api_response(
        data=[ReportRead.model_validate(report) for report in items],
        message="Reports retrieved successfully",
        request=request,
    )


@router.get(
    "/{job_id}/reports/{report_id}/content",
    summary="Download a report",
    operation_id="download_report",
    response_class=Response,
)
async def download_report(job_id: UUID, report_id: UUID, reports: Reports) -> Response:
    report, content = await reports.fetch_content(job_id, report_id)
    return Response(
        content=content,
        media_type=report.content_type,
        headers={"Content-Disposition": f'attachment; filename="{report.file_name}"'},
    )
