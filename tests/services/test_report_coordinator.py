from uuid import uuid4

import pytest
import pytest_asyncio

from site_evaluator.core.exceptions import NotFoundError, RenderError
from site_evaluator.providers.mock import SAMPLE_PROPERTIES
from site_evaluator.repositories.report_repository import ReportBlobRepository
from site_evaluator.schemas.enums import DataSection, ReportType
from site_evaluator.schemas.job import CreateJobRequest
from site_evaluator.schemas.report import ReportOptions
from site_evaluator.services.report_coordinator import build_snapshot, storage_key_for
from site_evaluator.services.report_renderer import ReportRenderer

BARBADOES = SAMPLE_PROPERTIES[0].full_address
ARMAGH = SAMPLE_PROPERTIES[1].full_address


class BrokenRenderer(ReportRenderer):
    def render(self, snapshot, report_type, options):
        raise ValueError("font missing")


@pytest_asyncio.fixture
async def collected_job(container):
    job = await container.orchestrator.create_job(
        CreateJobRequest(address=BARBADOES, customer_name="Aroha Ngata")
    )
    return await container.orchestrator.run_data_collection(job.id)


async def _blob_count(container) -> int:
    async with container.session_factory() as session:
        return await ReportBlobRepository(session).count()


@pytest.mark.asyncio
async def test_generate_and_download(container, collected_job, clock):
    reports = container.reports

    report = await reports.generate(collected_job.id, ReportType.FULL, generated_by="user-1")

    assert report.job_id == collected_job.id
    assert report.download_count == 0
    assert report.storage_key == storage_key_for(collected_job.id, report.id)
    assert report.file_name == f"{collected_job.job_reference}_full_{clock().strftime('%Y%m%d')}.pdf"
    assert report.title == f"Site Evaluation Report - {collected_job.job_reference}"
    assert report.generated_by == "user-1"

    fetched, content = await reports.fetch_content(collected_job.id, report.id)

    assert content.startswith(b"%PDF")
    assert len(content) == report.file_size
    assert fetched.download_count == 1
    assert fetched.last_downloaded_at == clock()

    fetched, _ = await reports.fetch_content(collected_job.id, report.id)
    assert fetched.download_count == 2


@pytest.mark.asyncio
async def test_generate_records_options(container, collected_job):
    options = ReportOptions(include_sections=[DataSection.ZONING], include_sources=True, notes="Draft")

    report = await container.reports.generate(collected_job.id, ReportType.FULL, options)

    assert report.options["include_sections"] == ["zoning"]
    assert report.options["notes"] == "Draft"
    assert [r.id for r in await container.reports.list_reports(collected_job.id)] == [report.id]


@pytest.mark.asyncio
async def test_report_can_be_generated_before_data_collection(container):
    job = await container.orchestrator.create_job(CreateJobRequest(address=BARBADOES))

    report = await container.reports.generate(job.id, ReportType.SUMMARY)

    _, content = await container.reports.fetch_content(job.id, report.id)
    assert content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_unknown_report_does_not_count_download(container, collected_job):
    report = await container.reports.generate(collected_job.id, ReportType.SUMMARY)

    with pytest.raises(NotFoundError):
        await container.reports.fetch_content(collected_job.id, uuid4())

    [stored] = await container.reports.list_reports(collected_job.id)
    assert stored.id == report.id
    assert stored.download_count == 0


@pytest.mark.asyncio
async def test_report_of_another_job_is_not_found(container, collected_job):
    other = await container.orchestrator.create_job(CreateJobRequest(address=ARMAGH))
    report = await container.reports.generate(collected_job.id, ReportType.SUMMARY)

    with pytest.raises(NotFoundError):
        await container.reports.fetch_content(other.id, report.id)

    [stored] = await container.reports.list_reports(collected_job.id)
    assert stored.download_count == 0


@pytest.mark.asyncio
async def test_unknown_job(container):
    with pytest.raises(NotFoundError):
        await container.reports.generate(uuid4(), ReportType.FULL)
    with pytest.raises(NotFoundError):
        await container.reports.list_reports(uuid4())
    with pytest.raises(NotFoundError):
        await container.reports.fetch_content(uuid4(), uuid4())


@pytest.mark.asyncio
async def test_missing_artifact_is_not_found(container, collected_job):
    report = await container.reports.generate(collected_job.id, ReportType.GEOTECH_BRIEF)
    await container.reports.blob_store.delete(report.storage_key)

    with pytest.raises(NotFoundError):
        await container.reports.fetch_content(collected_job.id, report.id)

    [stored] = await container.reports.list_reports(collected_job.id)
    assert stored.download_count == 0


class TestRenderFailure:

    @pytest_asyncio.fixture
    async def broken_container(self, make_container):
        container = make_container(renderer=BrokenRenderer())
        await container.db_client.create_tables()
        yield container
        await container.close()

    @pytest.mark.asyncio
    async def test_render_error_stores_nothing(self, broken_container):
        job = await broken_container.orchestrator.create_job(CreateJobRequest(address=BARBADOES))

        with pytest.raises(RenderError) as exc_info:
            await broken_container.reports.generate(job.id, ReportType.FULL)

        assert "font missing" in str(exc_info.value)
        assert await broken_container.reports.list_reports(job.id) == []
        assert await _blob_count(broken_container) == 0


@pytest.mark.asyncio
async def test_snapshot_copies_job_and_location(container, collected_job):
    snapshot = build_snapshot(collected_job, collected_job.completed_at)

    assert snapshot.job_reference == collected_job.job_reference
    assert snapshot.address == BARBADOES
    assert snapshot.completeness_percent == 100
    zoning = snapshot.section(DataSection.ZONING)
    assert zoning.status.value == "complete"
    assert zoning.payload == collected_job.location.section(DataSection.ZONING).payload
    assert zoning.payload is not collected_job.location.section(DataSection.ZONING).payload
    assert snapshot.section(DataSection.LOCATION) is None
