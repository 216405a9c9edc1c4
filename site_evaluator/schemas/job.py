"""Job request and response schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from site_evaluator.schemas.enums import (
    BillingStatus,
    DataSection,
    GapSeverity,
    JobPurpose,
    JobStatus,
    PropertyUseCategory,
    SectionStatus,
)
from site_evaluator.schemas.location import Coordinate, Locator
from site_evaluator.schemas.report import ReportRead


class CreateJobRequest(BaseModel):
    """Request to open a job against a property."""

    # Locator: exactly one of these
    address: Optional[str] = None
    title_reference: Optional[str] = None
    coordinates: Optional[Coordinate] = None
    location_id: Optional[UUID] = None

    title: Optional[str] = Field(default=None, max_length=200)

    customer_name: str = Field(default="", max_length=200)
    customer_reference: Optional[str] = Field(default=None, max_length=100)
    customer_email: Optional[str] = Field(default=None, max_length=200)
    customer_company: Optional[str] = Field(default=None, max_length=200)

    purpose: JobPurpose = JobPurpose.GENERAL_ENQUIRY
    description: Optional[str] = Field(default=None, max_length=2000)
    intended_use: PropertyUseCategory = PropertyUseCategory.RESIDENTIAL
    intended_use_details: Optional[str] = Field(default=None, max_length=2000)
    is_new_development: bool = False
    proposed_height: Optional[float] = None
    proposed_coverage: Optional[float] = None
    proposed_units: Optional[int] = None
    proposed_gfa: Optional[float] = None

    is_billable: bool = True
    internal_notes: Optional[str] = None

    auto_start_data_collection: bool = False

    def locator(self) -> Locator:
        return Locator(
            address=self.address,
            title_reference=self.title_reference,
            coordinates=self.coordinates,
        )

    def provided_locators(self) -> List[str]:
        kinds = self.locator().provided()
        if self.location_id is not None:
            kinds.append("location_id")
        return kinds


class UpdateJobRequest(BaseModel):
    """Partial update of job metadata. Absent or null fields are left unchanged."""

    title: Optional[str] = Field(default=None, max_length=200)
    customer_name: Optional[str] = Field(default=None, max_length=200)
    customer_reference: Optional[str] = Field(default=None, max_length=100)
    customer_email: Optional[str] = Field(default=None, max_length=200)
    customer_company: Optional[str] = Field(default=None, max_length=200)
    purpose: Optional[JobPurpose] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    intended_use: Optional[PropertyUseCategory] = None
    intended_use_details: Optional[str] = Field(default=None, max_length=2000)
    is_new_development: Optional[bool] = None
    proposed_height: Optional[float] = None
    proposed_coverage: Optional[float] = None
    proposed_units: Optional[int] = None
    proposed_gfa: Optional[float] = None
    is_billable: Optional[bool] = None
    billing_status: Optional[BillingStatus] = None
    invoice_reference: Optional[str] = None
    internal_notes: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: JobStatus


class RefreshSectionsRequest(BaseModel):
    sections: List[str] = Field(..., min_length=1, description="Section names to force-refresh")


class JobListFilter(BaseModel):
    owner_id: Optional[str] = None
    location_id: Optional[UUID] = None
    status: Optional[JobStatus] = None
    purpose: Optional[JobPurpose] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    customer_name: Optional[str] = None
    search: Optional[str] = None
    sort_by: str = "created_at"
    descending: bool = True
    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=50, ge=1, le=200)


class SectionState(BaseModel):
    status: SectionStatus = SectionStatus.NOT_STARTED
    updated_at: Optional[datetime] = None


class DataGap(BaseModel):
    """A missing or failed data section recorded against a job."""

    section: DataSection
    field: str
    reason: str
    suggested_action: Optional[str] = None
    severity: GapSeverity = GapSeverity.MEDIUM


class JobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_reference: str
    title: str
    location_id: UUID
    address: str
    owner_id: Optional[str] = None

    customer_name: str
    customer_reference: Optional[str] = None
    customer_email: Optional[str] = None
    customer_company: Optional[str] = None

    purpose: JobPurpose
    description: Optional[str] = None
    intended_use: PropertyUseCategory
    intended_use_details: Optional[str] = None
    is_new_development: bool
    proposed_height: Optional[float] = None
    proposed_coverage: Optional[float] = None
    proposed_units: Optional[int] = None
    proposed_gfa: Optional[float] = None

    is_billable: bool
    billing_status: BillingStatus
    invoice_reference: Optional[str] = None
    internal_notes: Optional[str] = None

    status: JobStatus
    data_status: Dict[str, SectionState] = Field(default_factory=dict)
    completeness_percent: int
    data_gaps: List[DataGap] = Field(default_factory=list)

    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime
    version: int

    reports: List[ReportRead] = Field(default_factory=list)


class JobListResponse(BaseModel):
    items: List[JobRead]
    total: int
    skip: int
    limit: int

    @classmethod
    def build(cls, jobs: List[Any], total: int, skip: int, limit: int) -> "JobListResponse":
        return cls(
            items=[JobRead.model_validate(job) for job in jobs],
            total=total,
            skip=skip,
            limit=limit,
        )
