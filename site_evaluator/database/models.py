"""SQLAlchemy models for all database tables."""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
    Boolean,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from site_evaluator.core.database import Base
from site_evaluator.schemas.enums import (
    BillingStatus,
    DataSection,
    FetchOutcome,
    JobPurpose,
    JobStatus,
    PropertyUseCategory,
    ReportType,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timestamp that is always stored and returned as timezone-aware UTC.

    SQLite drops tzinfo on round trip; this keeps comparisons with aware
    datetimes valid on every backend.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


JSONType = JSON().with_variant(JSONB(), "postgresql")


def _enum(enum_cls) -> SAEnum:
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


class Location(Base):
    """Canonical record of a physical property, shared across jobs."""

    __tablename__ = "locations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    address: Mapped[str] = mapped_column(String, nullable=False)
    address_key: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    title_reference: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    legal_description: Mapped[str | None] = mapped_column(String, nullable=True)
    valuation_reference: Mapped[str | None] = mapped_column(String, nullable=True)

    latitude: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    longitude: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    boundary: Mapped[list[dict[str, float]] | None] = mapped_column(JSONType, nullable=True)
    site_area_m2: Mapped[float | None] = mapped_column(Float, nullable=True)

    street_number: Mapped[str | None] = mapped_column(String, nullable=True)
    street_name: Mapped[str | None] = mapped_column(String, nullable=True)
    suburb: Mapped[str | None] = mapped_column(String, nullable=True)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    post_code: Mapped[str | None] = mapped_column(String, nullable=True)
    territorial_authority: Mapped[str | None] = mapped_column(String, nullable=True)
    regional_council: Mapped[str | None] = mapped_column(String, nullable=True)

    source: Mapped[str] = mapped_column(String, nullable=False)
    geocode_confidence: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), default=utcnow, nullable=False)
    last_refreshed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(timezone=True), nullable=True)

    # Relationships
    sections: Mapped[list["LocationSection"]] = relationship(
        "LocationSection",
        back_populates="location",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def section(self, name: DataSection) -> Optional["LocationSection"]:
        """Return the cached section row for a section, if any."""
        for row in self.sections:
            if row.section == name:
                return row
        return None

    def short_address(self) -> str:
        if self.suburb and self.street_name:
            return f"{self.street_number or ''} {self.street_name}, {self.suburb}".strip()
        return self.address if len(self.address) <= 50 else self.address[:47] + "..."


class LocationSection(Base):
    """Cached payload for one data section of a Location.

    One row per (location, section) so that each section write is an
    independent unit of atomicity.
    """

    __tablename__ = "location_sections"
    __table_args__ = (UniqueConstraint("location_id", "section", name="uq_location_section"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    section: Mapped[DataSection] = mapped_column(_enum(DataSection), nullable=False)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    cached_at: Mapped[datetime | None] = mapped_column(UTCDateTime(timezone=True), nullable=True)
    last_attempt_at: Mapped[datetime | None] = mapped_column(UTCDateTime(timezone=True), nullable=True)
    last_outcome: Mapped[FetchOutcome | None] = mapped_column(_enum(FetchOutcome), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    location: Mapped["Location"] = relationship("Location", back_populates="sections")


class Job(Base):
    """One billable engagement against a Location."""

    __tablename__ = "jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_reference: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    reference_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    reference_sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)

    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("locations.id"), nullable=False, index=True
    )
    address: Mapped[str] = mapped_column(String, nullable=False)
    owner_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    # Customer
    customer_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    customer_reference: Mapped[str | None] = mapped_column(String, nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String, nullable=True)
    customer_company: Mapped[str | None] = mapped_column(String, nullable=True)

    # Intended use
    purpose: Mapped[JobPurpose] = mapped_column(
        _enum(JobPurpose), nullable=False, default=JobPurpose.GENERAL_ENQUIRY
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    intended_use: Mapped[PropertyUseCategory] = mapped_column(
        _enum(PropertyUseCategory), nullable=False, default=PropertyUseCategory.RESIDENTIAL
    )
    intended_use_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_new_development: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    proposed_height: Mapped[float | None] = mapped_column(Float, nullable=True)
    proposed_coverage: Mapped[float | None] = mapped_column(Float, nullable=True)
    proposed_units: Mapped[int | None] = mapped_column(Integer, nullable=True)
    proposed_gfa: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Billing
    is_billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    billing_status: Mapped[BillingStatus] = mapped_column(
        _enum(BillingStatus), nullable=False, default=BillingStatus.NOT_BILLED
    )
    invoice_reference: Mapped[str | None] = mapped_column(String, nullable=True)
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Status & data collection
    status: Mapped[JobStatus] = mapped_column(
        _enum(JobStatus), nullable=False, default=JobStatus.CREATED, index=True
    )
    data_status: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    completeness_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    data_gaps: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    location: Mapped["Location"] = relationship("Location", lazy="selectin")
    reports: Mapped[list["JobReport"]] = relationship(
        "JobReport",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobReport.generated_at",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}


class JobReport(Base):
    """A generated report artifact for a job."""

    __tablename__ = "job_reports"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    report_type: Mapped[ReportType] = mapped_column(_enum(ReportType), nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    file_name: Mapped[str] = mapped_column(String, nullable=False)
    content_type: Mapped[str] = mapped_column(String, nullable=False, default="application/pdf")
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    options: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    storage_key: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    generated_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), default=utcnow, nullable=False)
    generated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    download_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_downloaded_at: Mapped[datetime | None] = mapped_column(UTCDateTime(timezone=True), nullable=True)

    job: Mapped["Job"] = relationship("Job", back_populates="reports")


class ReportBlob(Base):
    """Binary report artifact stored in the database."""

    __tablename__ = "report_blobs"

    storage_key: Mapped[str] = mapped_column(String, primary_key=True)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    content_type: Mapped[str] = mapped_column(String, nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), default=utcnow, nullable=False)
