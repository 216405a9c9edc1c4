import asyncio
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from site_evaluator.core.exceptions import (
    InvalidStatusTransitionError,
    NotFoundError,
    NotResolvableError,
    ProviderError,
    ValidationError,
)
from site_evaluator.providers.mock import SAMPLE_PROPERTIES, to_candidate
from site_evaluator.schemas.enums import (
    DataSection,
    GapSeverity,
    JobPurpose,
    JobStatus,
    SectionStatus,
)
from site_evaluator.schemas.job import CreateJobRequest, JobListFilter, UpdateJobRequest
from site_evaluator.schemas.location import Coordinate, Locator

BARBADOES = SAMPLE_PROPERTIES[0].full_address
ARMAGH = SAMPLE_PROPERTIES[1].full_address


@pytest.fixture
def orchestrator(container):
    return container.orchestrator


def _statuses(job):
    return {section: state["status"] for section, state in job.data_status.items()}


@pytest.mark.asyncio
async def test_create_job_resolves_location(orchestrator, clock):
    job = await orchestrator.create_job(
        CreateJobRequest(address=BARBADOES, customer_name="Aroha Ngata", purpose=JobPurpose.PURCHASE),
        owner_id="user-1",
    )

    assert job.job_reference == f"JOB-{clock().year}-00001"
    assert job.status == JobStatus.CREATED
    assert job.address == BARBADOES
    assert job.owner_id == "user-1"
    assert job.title == "Evaluation - 353 Barbadoes Street, Central City"
    assert job.completeness_percent == 0
    assert set(_statuses(job).values()) == {SectionStatus.NOT_STARTED.value}
    assert set(job.data_status) == {section.value for section in DataSection}


@pytest.mark.asyncio
async def test_jobs_share_a_location(orchestrator):
    first = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))
    second = await orchestrator.create_job(CreateJobRequest(title_reference="CB32A/891"))
    third = await orchestrator.create_job(CreateJobRequest(location_id=first.location_id))

    assert first.location_id == second.location_id == third.location_id
    jobs = await orchestrator.jobs_for_location(first.location_id)
    assert {j.id for j in jobs} == {first.id, second.id, third.id}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "request_kwargs",
    [
        {},
        {"address": BARBADOES, "location_id": uuid4()},
        {"address": BARBADOES, "coordinates": Coordinate(latitude=-43.527, longitude=172.642)},
    ],
)
async def test_create_job_requires_exactly_one_locator(orchestrator, providers, request_kwargs):
    with pytest.raises(ValidationError):
        await orchestrator.create_job(CreateJobRequest(**request_kwargs))

    jobs, total = await orchestrator.list_jobs(JobListFilter())
    assert total == 0
    providers.address.resolve.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_job_with_unknown_location_id(orchestrator):
    with pytest.raises(NotFoundError):
        await orchestrator.create_job(CreateJobRequest(location_id=uuid4()))


@pytest.mark.asyncio
async def test_create_job_unresolvable_address_creates_nothing(orchestrator):
    with pytest.raises(NotResolvableError):
        await orchestrator.create_job(CreateJobRequest(address="1 Nowhere Lane, Atlantis"))

    _, total = await orchestrator.list_jobs(JobListFilter())
    assert total == 0


@pytest.mark.asyncio
async def test_concurrent_creates_get_unique_increasing_references(orchestrator, container):
    location = await container.location_cache.resolve(Locator(address=BARBADOES))

    jobs = await asyncio.gather(*(
        orchestrator.create_job(CreateJobRequest(location_id=location.id, customer_name=f"Customer {i}"))
        for i in range(5)
    ))

    references = sorted(job.job_reference for job in jobs)
    assert len(set(references)) == 5
    assert [int(ref.rsplit("-", 1)[1]) for ref in references] == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_reference_sequence_restarts_each_year(orchestrator, clock):
    first = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))
    clock.advance(days=365)
    second = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))

    assert first.job_reference.endswith("-00001")
    assert second.job_reference == f"JOB-{clock().year}-00001"


@pytest.mark.asyncio
async def test_data_collection_completes_job(orchestrator):
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))

    collected = await orchestrator.run_data_collection(job.id)

    assert collected.status == JobStatus.COMPLETE
    assert collected.completeness_percent == 100
    assert set(_statuses(collected).values()) == {SectionStatus.COMPLETE.value}
    assert collected.data_gaps == []
    assert collected.started_at is not None
    assert collected.completed_at is not None


@pytest.mark.asyncio
async def test_auto_start_data_collection(orchestrator):
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES, auto_start_data_collection=True))

    assert job.status == JobStatus.COMPLETE
    assert job.completeness_percent == 100


@pytest.mark.asyncio
async def test_provider_failure_is_recorded_on_the_job(orchestrator, providers):
    unbounded = to_candidate(SAMPLE_PROPERTIES[1]).model_copy(update={"boundary": None})
    providers.address.resolve = AsyncMock(return_value=[unbounded])
    providers.hazard.hazard_for = AsyncMock(side_effect=ProviderError("gns", "HTTP 503"))

    collected = await orchestrator.create_job(CreateJobRequest(address=ARMAGH, auto_start_data_collection=True))

    statuses = _statuses(collected)
    assert statuses["hazards"] == SectionStatus.ERROR.value
    assert statuses["location"] == SectionStatus.NOT_AVAILABLE.value
    assert [s for s, v in statuses.items() if v == SectionStatus.COMPLETE.value] == [
        "zoning", "geotech", "infrastructure", "climate", "land",
    ]
    assert collected.completeness_percent == 71
    assert collected.status == JobStatus.COMPLETE

    gaps = {gap["section"]: gap for gap in collected.data_gaps}
    assert set(gaps) == {"location", "hazards"}
    assert gaps["hazards"]["severity"] == GapSeverity.HIGH.value
    assert "HTTP 503" in gaps["hazards"]["reason"]


@pytest.mark.asyncio
async def test_second_collection_makes_no_provider_calls(orchestrator, providers):
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))
    first = await orchestrator.run_data_collection(job.id)
    calls = providers.data_calls()

    await orchestrator.update_status(job.id, JobStatus.IN_PROGRESS)
    second = await orchestrator.run_data_collection(job.id)

    assert providers.data_calls() == calls
    assert second.data_status == first.data_status
    assert second.completeness_percent == first.completeness_percent


@pytest.mark.asyncio
async def test_stale_sections_show_as_partial_until_refreshed(orchestrator, container, clock, providers):
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))
    await orchestrator.run_data_collection(job.id)

    clock.advance(hours=25)
    providers.hazard.hazard_for = AsyncMock(side_effect=ProviderError("gns", "HTTP 503"))
    providers.hazard.historical_events = AsyncMock(side_effect=ProviderError("gns", "HTTP 503"))
    collected = await orchestrator.run_data_collection(job.id)

    # Other sections refresh fine; the hazard section keeps its old payload but records the error
    assert _statuses(collected)["hazards"] == SectionStatus.ERROR.value
    location = await container.location_cache.get_location(job.location_id)
    assert location.section(DataSection.HAZARDS).payload is not None


@pytest.mark.asyncio
async def test_refresh_sections_forces_named_sections(orchestrator, providers):
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))
    await orchestrator.run_data_collection(job.id)
    zoning_calls = providers.councils[0].get_zoning_data.await_count
    land_calls = providers.land.title_data.await_count

    await orchestrator.refresh_sections(job.id, ["zoning"])

    assert providers.councils[0].get_zoning_data.await_count == zoning_calls + 1
    assert providers.land.title_data.await_count == land_calls


@pytest.mark.asyncio
async def test_failed_forced_section_is_fetched_once(orchestrator, providers):
    providers.land.title_data = AsyncMock(side_effect=ProviderError("landonline", "HTTP 503"))
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))
    await orchestrator.run_data_collection(job.id)
    assert providers.land.title_data.await_count == 1

    refreshed = await orchestrator.refresh_sections(job.id, ["land"])

    assert providers.land.title_data.await_count == 2
    assert _statuses(refreshed)["land"] == SectionStatus.ERROR.value


@pytest.mark.asyncio
async def test_refresh_sections_validates_before_side_effects(orchestrator, providers):
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))

    with pytest.raises(ValidationError):
        await orchestrator.refresh_sections(job.id, ["zoning", "sewerage"])
    with pytest.raises(ValidationError):
        await orchestrator.refresh_sections(job.id, [])

    assert providers.data_calls() == 0
    assert (await orchestrator.get_job(job.id)).status == JobStatus.CREATED


@pytest.mark.asyncio
async def test_update_job_merges_fields(orchestrator):
    job = await orchestrator.create_job(
        CreateJobRequest(address=BARBADOES, customer_name="Aroha", customer_email="aroha@example.co.nz")
    )

    updated = await orchestrator.update_job(
        job.id,
        UpdateJobRequest(customer_name="Aroha Ngata", customer_email=None, proposed_units=3),
    )

    assert updated.customer_name == "Aroha Ngata"
    assert updated.customer_email == "aroha@example.co.nz"
    assert updated.proposed_units == 3
    assert updated.location_id == job.location_id
    assert updated.version > job.version


@pytest.mark.asyncio
async def test_status_transitions(orchestrator):
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))

    job = await orchestrator.update_status(job.id, JobStatus.IN_PROGRESS)
    assert job.started_at is not None

    job = await orchestrator.update_status(job.id, JobStatus.COMPLETE)
    assert job.completed_at is not None

    with pytest.raises(InvalidStatusTransitionError):
        await orchestrator.update_status(job.id, JobStatus.REVIEW)

    job = await orchestrator.update_status(job.id, JobStatus.IN_PROGRESS)
    assert job.status == JobStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_same_status_is_a_no_op(orchestrator):
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))

    unchanged = await orchestrator.update_status(job.id, JobStatus.CREATED)

    assert unchanged.status == JobStatus.CREATED
    assert unchanged.version == job.version


@pytest.mark.asyncio
async def test_cancelled_job_is_terminal(orchestrator, providers):
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))

    cancelled = await orchestrator.cancel_job(job.id)
    assert cancelled.status == JobStatus.CANCELLED

    with pytest.raises(InvalidStatusTransitionError):
        await orchestrator.update_status(job.id, JobStatus.IN_PROGRESS)
    with pytest.raises(ValidationError):
        await orchestrator.run_data_collection(job.id)
    assert providers.data_calls() == 0


@pytest.mark.asyncio
async def test_on_hold_job_cannot_collect_data(orchestrator):
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))
    await orchestrator.update_status(job.id, JobStatus.ON_HOLD)

    with pytest.raises(ValidationError):
        await orchestrator.run_data_collection(job.id)


@pytest.mark.asyncio
async def test_unknown_job(orchestrator):
    with pytest.raises(NotFoundError):
        await orchestrator.get_job(uuid4())
    with pytest.raises(NotFoundError):
        await orchestrator.run_data_collection(uuid4())
    with pytest.raises(NotFoundError):
        await orchestrator.get_job_by_reference("JOB-1999-00001")


@pytest.mark.asyncio
async def test_get_job_by_reference_is_case_insensitive(orchestrator):
    job = await orchestrator.create_job(CreateJobRequest(address=BARBADOES))

    found = await orchestrator.get_job_by_reference(job.job_reference.lower())

    assert found.id == job.id


@pytest.mark.asyncio
async def test_list_and_search_jobs(orchestrator, clock):
    barbadoes = await orchestrator.create_job(
        CreateJobRequest(address=BARBADOES, customer_name="Aroha Ngata", purpose=JobPurpose.PURCHASE),
        owner_id="user-1",
    )
    clock.advance(minutes=5)
    armagh = await orchestrator.create_job(
        CreateJobRequest(address=ARMAGH, customer_name="Ben Smith", purpose=JobPurpose.DEVELOPMENT),
        owner_id="user-2",
    )
    await orchestrator.cancel_job(armagh.id)

    jobs, total = await orchestrator.list_jobs(JobListFilter())
    assert total == 2
    assert [j.id for j in jobs] == [armagh.id, barbadoes.id]

    jobs, total = await orchestrator.list_jobs(JobListFilter(status=JobStatus.CANCELLED))
    assert [j.id for j in jobs] == [armagh.id]

    jobs, _ = await orchestrator.list_jobs(JobListFilter(owner_id="user-1"))
    assert [j.id for j in jobs] == [barbadoes.id]

    jobs, total = await orchestrator.list_jobs(JobListFilter(limit=1, skip=1))
    assert total == 2
    assert [j.id for j in jobs] == [barbadoes.id]

    jobs, _ = await orchestrator.list_jobs(JobListFilter(sort_by="customer_name", descending=False))
    assert [j.customer_name for j in jobs] == ["Aroha Ngata", "Ben Smith"]

    assert [j.id for j in await orchestrator.search_jobs("armagh")] == [armagh.id]
    assert [j.id for j in await orchestrator.search_jobs("aroha")] == [barbadoes.id]

    with pytest.raises(ValidationError):
        await orchestrator.search_jobs("  ")
