"""Enumerations shared by the data model, services and API."""

from enum import Enum


class DataSection(str, Enum):
    """Tracked data sections of a property evaluation."""
    LOCATION = "location"
    ZONING = "zoning"
    HAZARDS = "hazards"
    GEOTECH = "geotech"
    INFRASTRUCTURE = "infrastructure"
    CLIMATE = "climate"
    LAND = "land"


# Single source of truth for the section taxonomy; completeness is computed
# against len(TRACKED_SECTIONS).
TRACKED_SECTIONS: tuple[DataSection, ...] = tuple(DataSection)

# Sections cached on the Location and refreshed from external providers.
CACHED_SECTIONS: tuple[DataSection, ...] = tuple(
    s for s in TRACKED_SECTIONS if s is not DataSection.LOCATION
)


class SectionStatus(str, Enum):
    """Per-section data status recorded on a job."""
    NOT_STARTED = "not_started"
    PARTIAL = "partial"
    COMPLETE = "complete"
    NOT_AVAILABLE = "not_available"
    ERROR = "error"


class FetchOutcome(str, Enum):
    """Outcome of the last provider call for a cached section."""
    OK = "ok"
    ERROR = "error"
    NOT_AVAILABLE = "not_available"


class JobStatus(str, Enum):
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    DATA_COLLECTION = "data_collection"
    REVIEW = "review"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class JobPurpose(str, Enum):
    GENERAL_ENQUIRY = "general_enquiry"
    PURCHASE = "purchase"
    SALE = "sale"
    DEVELOPMENT = "development"
    SUBDIVISION = "subdivision"
    RESOURCE_CONSENT = "resource_consent"
    BUILDING_CONSENT = "building_consent"
    DUE_DILIGENCE = "due_diligence"
    INSURANCE = "insurance"
    VALUATION = "valuation"
    SITE_INVESTIGATION = "site_investigation"
    OTHER = "other"


class PropertyUseCategory(str, Enum):
    RESIDENTIAL = "residential"
    MULTI_UNIT_RESIDENTIAL = "multi_unit_residential"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    MIXED_USE = "mixed_use"
    RURAL = "rural"
    OTHER = "other"


class BillingStatus(str, Enum):
    NOT_BILLED = "not_billed"
    PENDING = "pending"
    INVOICED = "invoiced"
    PAID = "paid"
    WAIVED = "waived"
    DISPUTED = "disputed"


class ReportType(str, Enum):
    FULL = "full"
    SUMMARY = "summary"
    GEOTECH_BRIEF = "geotech_brief"
    DUE_DILIGENCE_PACK = "due_diligence_pack"


class GapSeverity(str, Enum):
    LOW = "low"            # Nice to have
    MEDIUM = "medium"      # Should be obtained
    HIGH = "high"          # Required for assessment
    CRITICAL = "critical"  # Cannot proceed without


class ProviderKey(str, Enum):
    """Stable identifiers for the provider registry."""
    ADDRESS = "address"
    HAZARD = "hazard"
    GEOTECH = "geotech"
    CLIMATE = "climate"
    LAND = "land"


def parse_sections(names) -> list[DataSection]:
    """Parse section names case-insensitively, preserving order and dropping duplicates.

    Raises:
        ValueError: If a name is not a tracked section
    """
    parsed: list[DataSection] = []
    for name in names:
        if isinstance(name, DataSection):
            section = name
        else:
            section = DataSection(str(name).strip().lower())
        if section not in parsed:
            parsed.append(section)
    return parsed
