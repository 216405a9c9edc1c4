"""FastAPI dependencies resolving services from the application container."""

from typing import Optional

from fastapi import Header, Request

from site_evaluator.services.container import ServiceContainer
from site_evaluator.services.job_orchestrator import JobOrchestrator
from site_evaluator.services.location_cache import LocationCache
from site_evaluator.services.report_coordinator import ReportCoordinator


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_job_orchestrator(request: Request) -> JobOrchestrator:
    return get_container(request).orchestrator


def get_location_cache(request: Request) -> LocationCache:
    return get_container(request).location_cache


def get_report_coordinator(request: Request) -> ReportCoordinator:
    return get_container(request).reports


def get_owner_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Owner id from the optional X-User-Id header."""
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()
