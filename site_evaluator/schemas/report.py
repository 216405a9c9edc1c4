"""Report schemas and the evaluation snapshot handed to renderers."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from site_evaluator.schemas.enums import (
    DataSection,
    JobPurpose,
    PropertyUseCategory,
    ReportType,
    SectionStatus,
)


class ReportOptions(BaseModel):
    """Rendering options recorded with each report."""

    include_sections: Optional[List[DataSection]] = Field(
        default=None,
        description="Restrict a full report to these sections",
    )
    include_data_gaps: bool = True
    include_sources: bool = False
    notes: Optional[str] = Field(default=None, max_length=2000)


class GenerateReportRequest(BaseModel):
    report_type: ReportType = ReportType.FULL
    options: ReportOptions = Field(default_factory=ReportOptions)


class ReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    report_type: ReportType
    title: str
    file_name: str
    content_type: str
    file_size: int
    options: Dict[str, Any] = Field(default_factory=dict)
    storage_key: str
    generated_at: datetime
    generated_by: Optional[str] = None
    download_count: int = 0
    last_downloaded_at: Optional[datetime] = None


class SnapshotSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    section: DataSection
    status: SectionStatus
    payload: Optional[Dict[str, Any]] = None
    cached_at: Optional[datetime] = None


class EvaluationSnapshot(BaseModel):
    """Immutable copy of a job and its location's cached data at generation time."""

    model_config = ConfigDict(frozen=True)

    job_id: UUID
    job_reference: str
    job_title: str
    customer_name: str
    customer_company: Optional[str] = None
    customer_reference: Optional[str] = None
    purpose: JobPurpose
    intended_use: PropertyUseCategory
    intended_use_details: Optional[str] = None
    is_new_development: bool = False
    proposed_height: Optional[float] = None
    proposed_coverage: Optional[float] = None
    proposed_units: Optional[int] = None
    proposed_gfa: Optional[float] = None

    location_id: UUID
    address: str
    title_reference: Optional[str] = None
    legal_description: Optional[str] = None
    latitude: float
    longitude: float
    site_area_m2: Optional[float] = None
    territorial_authority: Optional[str] = None

    sections: tuple[SnapshotSection, ...] = ()
    completeness_percent: int = 0
    data_gaps: tuple[Dict[str, Any], ...] = ()
    generated_at: datetime

    def section(self, name: DataSection) -> Optional[SnapshotSection]:
        for item in self.sections:
            if item.section == name:
                return item
        return None
