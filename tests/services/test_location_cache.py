import asyncio
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio

from site_evaluator.core.exceptions import NotFoundError, NotResolvableError, ProviderError, ValidationError
from site_evaluator.providers.mock import SAMPLE_PROPERTIES, to_candidate
from site_evaluator.schemas.enums import DataSection, FetchOutcome, SectionStatus
from site_evaluator.schemas.location import Coordinate, Locator

BARBADOES = SAMPLE_PROPERTIES[0].full_address
ARMAGH = SAMPLE_PROPERTIES[1].full_address


@pytest.fixture
def cache(container):
    return container.location_cache


@pytest.mark.asyncio
async def test_address_variants_resolve_to_one_location(cache, providers):
    first = await cache.resolve(Locator(address=BARBADOES))
    second = await cache.resolve(Locator(address="353 Barbadoes St"))
    third = await cache.resolve(Locator(address="  353 barbadoes street, central city,  christchurch 8011 "))

    assert first.id == second.id == third.id
    assert len(await cache.list_locations()) == 1
    # The exact normalised match is served without a provider call
    assert providers.address.resolve.await_count == 2


@pytest.mark.asyncio
async def test_title_and_coordinates_find_the_same_location(cache, providers):
    location = await cache.resolve(Locator(address=BARBADOES))

    by_title = await cache.resolve(Locator(title_reference="cb32a/891"))
    by_point = await cache.resolve(
        Locator(coordinates=Coordinate(latitude=location.latitude + 0.0001, longitude=location.longitude))
    )

    assert by_title.id == location.id
    assert by_point.id == location.id
    providers.address.resolve_title.assert_not_awaited()


@pytest.mark.asyncio
async def test_new_location_created_from_title(cache):
    location = await cache.resolve(Locator(title_reference="CB45A/123"))

    assert location.address == ARMAGH
    assert location.title_reference == "CB45A/123"
    assert location.boundary
    assert {row.section for row in location.sections} == set(cache.requested_sections(None))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "locator",
    [
        Locator(),
        Locator(address="   "),
        Locator(address=BARBADOES, title_reference="CB32A/891"),
        Locator(coordinates=Coordinate(latitude=95.0, longitude=172.6)),
    ],
)
async def test_invalid_locator_raises_validation_error(cache, providers, locator):
    with pytest.raises(ValidationError):
        await cache.resolve(locator)

    providers.address.resolve.assert_not_awaited()
    assert await cache.list_locations() == []


@pytest.mark.asyncio
async def test_unresolvable_address_creates_nothing(cache):
    with pytest.raises(NotResolvableError):
        await cache.resolve(Locator(address="1 Nowhere Lane, Atlantis"))

    assert await cache.list_locations() == []


@pytest.mark.asyncio
async def test_low_confidence_candidate_is_not_resolvable(cache, providers):
    providers.address.resolve = AsyncMock(return_value=[to_candidate(SAMPLE_PROPERTIES[0], confidence=20)])

    with pytest.raises(NotResolvableError):
        await cache.resolve(Locator(address=BARBADOES))


@pytest.mark.asyncio
async def test_address_provider_failure_is_not_resolvable(cache, providers):
    providers.address.resolve = AsyncMock(side_effect=ProviderError("linz", "HTTP 503"))

    with pytest.raises(NotResolvableError):
        await cache.resolve(Locator(address=BARBADOES))

    assert await cache.list_locations() == []


@pytest.mark.asyncio
async def test_concurrent_resolution_creates_one_location(cache):
    locations = await asyncio.gather(*(cache.resolve(Locator(address=BARBADOES)) for _ in range(5)))

    assert len({location.id for location in locations}) == 1
    assert len(await cache.list_locations()) == 1


@pytest.mark.asyncio
async def test_refresh_populates_every_section(cache):
    location = await cache.resolve(Locator(address=BARBADOES))

    refreshed = await cache.refresh(location.id)

    for section in cache.requested_sections(None):
        row = refreshed.section(section)
        assert row.payload is not None, section
        assert row.last_outcome == FetchOutcome.OK
        assert cache.section_status(refreshed, section) == SectionStatus.COMPLETE
    assert refreshed.last_refreshed_at is not None
    assert refreshed.section(DataSection.GEOTECH).payload["investigation_required"] is False


@pytest.mark.asyncio
async def test_fresh_sections_are_not_refetched(cache, providers):
    location = await cache.resolve(Locator(address=BARBADOES))
    await cache.refresh(location.id)
    calls = providers.data_calls()

    await cache.refresh(location.id)

    assert providers.data_calls() == calls


@pytest.mark.asyncio
async def test_concurrent_refreshes_fetch_each_section_once(cache, providers):
    location = await cache.resolve(Locator(address=BARBADOES))

    first, second = await asyncio.gather(cache.refresh(location.id), cache.refresh(location.id))

    assert providers.climate.rainfall.await_count == 1
    assert providers.land.title_data.await_count == 1
    assert providers.geotech.nearby_investigations.await_count == 1
    assert providers.councils[0].get_zoning_data.await_count == 1
    assert first.section(DataSection.CLIMATE).cached_at == second.section(DataSection.CLIMATE).cached_at


@pytest.mark.asyncio
async def test_refresh_excludes_named_sections(cache, providers):
    location = await cache.resolve(Locator(address=BARBADOES))

    refreshed = await cache.refresh(location.id, exclude=["land", "climate"])

    providers.land.title_data.assert_not_awaited()
    providers.climate.rainfall.assert_not_awaited()
    assert refreshed.section(DataSection.LAND).last_attempt_at is None
    assert refreshed.section(DataSection.ZONING).payload is not None


@pytest.mark.asyncio
async def test_refresh_one_section_leaves_others_unchanged(cache, clock):
    location = await cache.resolve(Locator(address=BARBADOES))
    before = await cache.refresh(location.id)
    first_cached = {s: before.section(s).cached_at for s in cache.requested_sections(None)}

    clock.advance(hours=1)
    after = await cache.refresh(location.id, ["zoning"], force=True)

    assert after.section(DataSection.ZONING).cached_at == clock()
    for section, cached_at in first_cached.items():
        if section != DataSection.ZONING:
            assert after.section(section).cached_at == cached_at
            assert after.section(section).payload == before.section(section).payload


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_payload(cache, providers, clock):
    location = await cache.resolve(Locator(address=BARBADOES))
    before = await cache.refresh(location.id)
    zoning = before.section(DataSection.ZONING)

    council = providers.councils[0]
    council.get_zoning_data = AsyncMock(side_effect=ProviderError(council.name, "HTTP 500"))
    clock.advance(hours=25)

    after = await cache.refresh(location.id, ["zoning"])

    row = after.section(DataSection.ZONING)
    assert row.payload == zoning.payload
    assert row.cached_at == zoning.cached_at
    assert row.last_outcome == FetchOutcome.ERROR
    assert "HTTP 500" in row.last_error
    assert row.last_attempt_at == clock()
    assert cache.section_status(after, DataSection.ZONING) == SectionStatus.ERROR


@pytest.mark.asyncio
async def test_missing_data_is_recorded_as_not_available(cache, providers):
    location = await cache.resolve(Locator(address=BARBADOES))
    providers.land.title_data = AsyncMock(return_value=None)

    refreshed = await cache.refresh(location.id)

    row = refreshed.section(DataSection.LAND)
    assert row.payload is None
    assert row.last_outcome == FetchOutcome.NOT_AVAILABLE
    assert cache.section_status(refreshed, DataSection.LAND) == SectionStatus.NOT_AVAILABLE


@pytest.mark.asyncio
async def test_location_outside_council_regions_has_no_zoning(cache, providers):
    providers.registry.regional._entries.clear()
    location = await cache.resolve(Locator(address=BARBADOES))

    refreshed = await cache.refresh(location.id)

    assert refreshed.section(DataSection.ZONING).last_outcome == FetchOutcome.NOT_AVAILABLE
    assert refreshed.section(DataSection.INFRASTRUCTURE).last_outcome == FetchOutcome.NOT_AVAILABLE
    assert refreshed.section(DataSection.HAZARDS).payload is not None


@pytest.mark.asyncio
async def test_refresh_rejects_unknown_section(cache, providers):
    location = await cache.resolve(Locator(address=BARBADOES))

    with pytest.raises(ValidationError):
        await cache.refresh(location.id, ["zoning", "sewerage"])

    assert providers.data_calls() == 0


@pytest.mark.asyncio
async def test_refresh_unknown_location(cache):
    with pytest.raises(NotFoundError):
        await cache.refresh(uuid4())


@pytest.mark.asyncio
async def test_autocomplete(cache):
    assert await cache.autocomplete("3") == []

    suggestions = await cache.autocomplete("353 barb")

    assert [s.full_address for s in suggestions] == [BARBADOES]


@pytest.mark.asyncio
async def test_find_nearby_orders_by_distance(cache):
    barbadoes = await cache.resolve(Locator(address=BARBADOES))
    armagh = await cache.resolve(Locator(address=ARMAGH))

    nearby = await cache.find_nearby(armagh.latitude, armagh.longitude, radius_m=2000)

    assert [loc.id for loc in nearby] == [armagh.id, barbadoes.id]
    assert await cache.find_nearby(-36.8485, 174.7633) == []


class TestSlowProvider:

    @pytest_asyncio.fixture
    async def fast_timeout_container(self, make_container):
        container = make_container(cache={"provider_timeout_seconds": 0.2})
        await container.db_client.create_tables()
        yield container
        await container.close()

    @pytest.mark.asyncio
    async def test_timeout_is_isolated_to_its_section(self, fast_timeout_container, providers):
        cache = fast_timeout_container.location_cache

        async def slow_rainfall(lat, lon):
            await asyncio.sleep(2)

        providers.climate.rainfall = AsyncMock(side_effect=slow_rainfall)
        location = await cache.resolve(Locator(address=BARBADOES))

        refreshed = await cache.refresh(location.id)

        climate = refreshed.section(DataSection.CLIMATE)
        assert climate.last_outcome == FetchOutcome.ERROR
        assert "timed out" in climate.last_error
        assert climate.payload is None
        for section in cache.requested_sections(None):
            if section != DataSection.CLIMATE:
                assert refreshed.section(section).last_outcome == FetchOutcome.OK, section
