"""Rendering of evaluation snapshots to PDF using fpdf2."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from site_evaluator.schemas.enums import DataSection, ReportType, SectionStatus
from site_evaluator.schemas.report import EvaluationSnapshot, ReportOptions
from site_evaluator.utils.geo import format_coordinates
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

REPORT_TITLES = {
    ReportType.FULL: "Site Evaluation Report",
    ReportType.SUMMARY: "Site Evaluation Summary",
    ReportType.GEOTECH_BRIEF: "Geotechnical Brief",
    ReportType.DUE_DILIGENCE_PACK: "Due Diligence Pack",
}

# Sections in print order, and whether the data gaps appendix is included
REPORT_LAYOUTS: Dict[ReportType, Tuple[Tuple[DataSection, ...], bool]] = {
    ReportType.FULL: (
        (
            DataSection.LOCATION, DataSection.ZONING, DataSection.HAZARDS, DataSection.GEOTECH,
            DataSection.INFRASTRUCTURE, DataSection.CLIMATE, DataSection.LAND,
        ),
        True,
    ),
    ReportType.SUMMARY: ((DataSection.LOCATION, DataSection.ZONING, DataSection.HAZARDS), False),
    ReportType.GEOTECH_BRIEF: ((DataSection.LOCATION, DataSection.GEOTECH, DataSection.HAZARDS), False),
    ReportType.DUE_DILIGENCE_PACK: (
        (
            DataSection.LOCATION, DataSection.LAND, DataSection.ZONING,
            DataSection.HAZARDS, DataSection.INFRASTRUCTURE,
        ),
        True,
    ),
}

SECTION_HEADINGS = {
    DataSection.LOCATION: "Property",
    DataSection.ZONING: "Zoning & Planning",
    DataSection.HAZARDS: "Natural Hazards",
    DataSection.GEOTECH: "Geotechnical",
    DataSection.INFRASTRUCTURE: "Infrastructure & Services",
    DataSection.CLIMATE: "Climate",
    DataSection.LAND: "Title & Land",
}

SKIPPED_KEYS = {"source", "sources"}
MAX_LIST_ITEMS = 5

_REPLACEMENTS = {
    "–": "-", "—": "-", "‘": "'", "’": "'",
    "“": '"', "”": '"', "…": "...", " ": " ",
}


def layout_for(report_type: ReportType, options: ReportOptions) -> Tuple[List[DataSection], bool]:
    """Sections to print and whether to include data gaps."""
    sections, include_gaps = REPORT_LAYOUTS[report_type]
    ordered = list(sections)
    if report_type == ReportType.FULL and options.include_sections:
        ordered = [s for s in ordered if s in options.include_sections]
    return ordered, include_gaps and options.include_data_gaps


def _latin1(text: Any) -> str:
    """Core PDF fonts only cover latin-1."""
    value = str(text)
    for char, replacement in _REPLACEMENTS.items():
        value = value.replace(char, replacement)
    return value.encode("latin-1", errors="replace").decode("latin-1")


def _label(key: str) -> str:
    return key.replace("_", " ").capitalize()


def flatten_payload(payload: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """Turn a nested section payload into printable (label, value) rows."""
    rows: List[Tuple[str, str]] = []
    for key, value in payload.items():
        if key in SKIPPED_KEYS or value is None or value == [] or value == {}:
            continue
        label = f"{prefix}{_label(key)}"
        if isinstance(value, dict):
            rows.extend(flatten_payload(value, prefix=f"{label} - "))
        elif isinstance(value, list):
            items = []
            for item in value[:MAX_LIST_ITEMS]:
                if isinstance(item, dict):
                    name = item.get("name") or item.get("id") or item.get("hazard_type") or item.get("type")
                    detail = item.get("description") or item.get("severity") or item.get("distance_km")
                    items.append(f"{name} ({detail})" if detail not in (None, "") else str(name))
                else:
                    items.append(str(item))
            more = f" and {len(value) - MAX_LIST_ITEMS} more" if len(value) > MAX_LIST_ITEMS else ""
            rows.append((label, "; ".join(items) + more))
        elif isinstance(value, bool):
            rows.append((label, "Yes" if value else "No"))
        else:
            rows.append((label, str(value)))
    return rows


class ReportRenderer(ABC):
    """Renders an evaluation snapshot to a binary artifact."""

    content_type: str = PDF_CONTENT_TYPE
    extension: str = "pdf"

    @abstractmethod
    def render(self, snapshot: EvaluationSnapshot, report_type: ReportType, options: ReportOptions) -> bytes:
        ...


class PdfReportRenderer(ReportRenderer):
    """Renders evaluation reports as A4 PDFs using fpdf2."""

    def render(self, snapshot: EvaluationSnapshot, report_type: ReportType, options: ReportOptions) -> bytes:
        sections, include_gaps = layout_for(report_type, options)

        pdf = FPDF(orientation="portrait", unit="mm", format="A4")
        pdf.set_auto_page_break(auto=True, margin=15)
        pdf.add_page()

        self._cover(pdf, snapshot, report_type)
        if options.notes:
            self._heading(pdf, "Notes")
            self._paragraph(pdf, options.notes)

        for section in sections:
            self._section(pdf, snapshot, section)

        if include_gaps:
            self._data_gaps(pdf, snapshot)

        if options.include_sources:
            self._sources(pdf, snapshot, sections)

        output = bytes(pdf.output())
        LOGGER.info(
            "Rendered report",
            extra={
                "job_reference": snapshot.job_reference,
                "report_type": report_type.value,
                "bytes": len(output),
            },
        )
        return output

    def _cover(self, pdf: FPDF, snapshot: EvaluationSnapshot, report_type: ReportType) -> None:
        pdf.set_font("helvetica", "B", 20)
        pdf.set_text_color(0, 51, 102)
        pdf.cell(0, 12, _latin1(REPORT_TITLES[report_type]), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

        pdf.set_font("helvetica", "", 11)
        pdf.set_text_color(51, 51, 51)
        pdf.multi_cell(0, 7, _latin1(snapshot.address), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(3)

        rows = [
            ("Job reference", snapshot.job_reference),
            ("Customer", snapshot.customer_company or snapshot.customer_name or "-"),
            ("Purpose", _label(snapshot.purpose.value)),
            ("Intended use", _label(snapshot.intended_use.value)),
            ("Data completeness", f"{snapshot.completeness_percent}%"),
            ("Generated", snapshot.generated_at.strftime("%d %B %Y %H:%M UTC")),
        ]
        if snapshot.intended_use_details:
            rows.append(("Use details", snapshot.intended_use_details))
        self._table(pdf, rows)

    def _section(self, pdf: FPDF, snapshot: EvaluationSnapshot, section: DataSection) -> None:
        self._heading(pdf, SECTION_HEADINGS[section])

        if section == DataSection.LOCATION:
            rows = [
                ("Address", snapshot.address),
                ("Title reference", snapshot.title_reference or "-"),
                ("Legal description", snapshot.legal_description or "-"),
                ("Coordinates", format_coordinates(snapshot.latitude, snapshot.longitude)),
                ("Site area", f"{snapshot.site_area_m2:g} m2" if snapshot.site_area_m2 else "-"),
                ("Territorial authority", snapshot.territorial_authority or "-"),
            ]
            self._table(pdf, rows)
            return

        item = snapshot.section(section)
        if item is None or item.payload is None:
            status = item.status if item is not None else SectionStatus.NOT_STARTED
            pdf.set_font("helvetica", "I", 10)
            pdf.set_text_color(150, 60, 60)
            pdf.multi_cell(
                0, 6, _latin1(f"No data ({status.value.replace('_', ' ')})"),
                new_x=XPos.LMARGIN, new_y=YPos.NEXT,
            )
            return

        rows = flatten_payload(item.payload)
        if item.cached_at is not None:
            rows.append(("Data retrieved", item.cached_at.strftime("%d %B %Y %H:%M UTC")))
        self._table(pdf, rows)

    def _data_gaps(self, pdf: FPDF, snapshot: EvaluationSnapshot) -> None:
        self._heading(pdf, "Data Gaps")
        if not snapshot.data_gaps:
            self._paragraph(pdf, "No data gaps were recorded.")
            return
        for gap in snapshot.data_gaps:
            severity = str(gap.get("severity", "")).upper()
            line = f"[{severity}] {gap.get('section')}: {gap.get('reason')}"
            if gap.get("suggested_action"):
                line += f" Suggested action: {gap['suggested_action']}."
            self._paragraph(pdf, line)

    def _sources(self, pdf: FPDF, snapshot: EvaluationSnapshot, sections: List[DataSection]) -> None:
        self._heading(pdf, "Appendix: Data Sources")
        for section in sections:
            item = snapshot.section(section)
            if item is None or not item.payload:
                continue
            sources = item.payload.get("sources") or ([item.payload["source"]] if item.payload.get("source") else [])
            for source in sources:
                self._paragraph(pdf, f"{SECTION_HEADINGS[section]}: {source.get('name')} {source.get('url') or ''}")

    def _heading(self, pdf: FPDF, text: str) -> None:
        pdf.ln(4)
        pdf.set_font("helvetica", "B", 14)
        pdf.set_text_color(0, 51, 102)
        pdf.cell(0, 9, _latin1(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.line(pdf.l_margin, pdf.get_y(), pdf.w - pdf.r_margin, pdf.get_y())
        pdf.ln(2)

    def _paragraph(self, pdf: FPDF, text: str) -> None:
        pdf.set_font("helvetica", "", 10)
        pdf.set_text_color(68, 68, 68)
        pdf.multi_cell(0, 6, _latin1(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def _table(self, pdf: FPDF, rows: List[Tuple[str, str]]) -> None:
        label_width = 55
        for label, value in rows:
            pdf.set_font("helvetica", "B", 9)
            pdf.set_text_color(51, 51, 51)
            pdf.cell(label_width, 6, _latin1(label)[:40])
            pdf.set_font("helvetica", "", 9)
            pdf.multi_cell(0, 6, _latin1(value), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
