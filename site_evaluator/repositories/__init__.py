"""Repositories for data access."""

from site_evaluator.repositories.base_repository import BaseRepository
from site_evaluator.repositories.job_repository import JobRepository
from site_evaluator.repositories.location_repository import LocationRepository
from site_evaluator.repositories.report_repository import ReportBlobRepository, ReportRepository

__all__ = [
    "BaseRepository",
    "JobRepository",
    "LocationRepository",
    "ReportBlobRepository",
    "ReportRepository",
]
