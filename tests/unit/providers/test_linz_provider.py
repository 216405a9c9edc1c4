from datetime import date
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from site_evaluator.core.credentials import CredentialStore
from site_evaluator.core.exceptions import ConfigurationError, ProviderError
from site_evaluator.providers.linz import LandonlineLandProvider, LinzAddressProvider
from site_evaluator.schemas.location import Coordinate

BASE_URL = "https://data.linz.govt.nz"


def _response(status_code, json=None, url=BASE_URL):
    return httpx.Response(status_code, json=json, request=httpx.Request("GET", url))


@pytest.fixture
def address_provider():
    return LinzAddressProvider(BASE_URL, CredentialStore({"linz": "test-key"}))


@pytest.fixture
def land_provider():
    return LandonlineLandProvider("https://api.landonline.govt.nz/", CredentialStore({"landonline": "secret"}))


GEOCODE_BODY = {
    "results": [
        {
            "full_address": "353 Barbadoes Street, Central City, Christchurch 8011",
            "latitude": -43.527,
            "longitude": 172.642,
            "score": 0.93,
            "address_number": "353",
            "road_name": "Barbadoes Street",
            "suburb": "Central City",
            "city": "Christchurch",
            "postcode": "8011",
            "title_reference": "CB32A/891",
            "boundary": [[172.6419, -43.5271], [172.6421, -43.5271], [172.6421, -43.5269]],
        },
        {"full_address": "No coordinates", "latitude": None, "longitude": None},
    ]
}


@pytest.mark.asyncio
async def test_resolve_address_maps_candidates(address_provider):
    with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = _response(200, GEOCODE_BODY)

        candidates = await address_provider.resolve("353 Barbadoes St")

    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate.confidence == 93
    assert candidate.title_reference == "CB32A/891"
    assert candidate.source == "linz"
    assert candidate.boundary[0].latitude == -43.5271
    assert candidate.boundary[0].longitude == 172.6419

    _, kwargs = mock_get.call_args
    assert kwargs["params"] == {"q": "353 Barbadoes St"}
    assert kwargs["headers"] == {"Authorization": "key test-key"}


@pytest.mark.asyncio
async def test_parcel_only_result_is_placed_at_boundary_centroid(address_provider):
    body = {
        "results": [
            {
                "full_address": "Lot 1 DP 12345, Christchurch",
                "score": 0.8,
                "boundary": [[172.64, -43.53], [172.66, -43.53], [172.66, -43.51], [172.64, -43.51]],
            }
        ]
    }
    with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = _response(200, body)

        [candidate] = await address_provider.resolve_title("CB45A/123")

    assert candidate.latitude == pytest.approx(-43.52)
    assert candidate.longitude == pytest.approx(172.65)
    assert len(candidate.boundary) == 4


@pytest.mark.asyncio
async def test_resolve_coordinate_uses_reverse_endpoint(address_provider):
    with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = _response(200, {"results": []})

        candidates = await address_provider.resolve(Coordinate(latitude=-43.527, longitude=172.642))

    assert candidates == []
    args, kwargs = mock_get.call_args
    assert args[0].endswith("/geocode/reverse")
    assert kwargs["params"] == {"lat": -43.527, "lon": 172.642}


@pytest.mark.asyncio
async def test_http_error_raises_provider_error(address_provider):
    with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = _response(503)

        with pytest.raises(ProviderError) as exc_info:
            await address_provider.resolve("353 Barbadoes St")

    assert exc_info.value.provider == "linz"
    assert "503" in str(exc_info.value)


@pytest.mark.asyncio
async def test_request_error_raises_provider_error(address_provider):
    with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
        mock_get.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(ProviderError):
            await address_provider.resolve_title("CB32A/891")


@pytest.mark.asyncio
async def test_autocomplete_skips_short_input(address_provider):
    with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
        assert await address_provider.autocomplete("3") == []
        mock_get.assert_not_called()


@pytest.mark.asyncio
async def test_title_data_maps_landonline_body(land_provider):
    body = {
        "title_reference": "CB45A/123",
        "type": "Freehold",
        "status": "Live",
        "registration_date": "1998-06-01T00:00:00Z",
        "legal_description": "Lot 1 DP 12345",
        "area": 0.045,
        "area_unit": "ha",
        "owners": [{"name": "A Owner", "share": "1/2"}, {"share": "1/2"}],
        "easements": [{"purpose": "Right of way", "benefiting": "Lot 2", "instrument_number": "E1"}],
        "encumbrances": [{"type": "Mortgage", "mortgagee": "Bank", "registration_number": "M9"}],
    }
    with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = _response(200, body)

        land = await land_provider.title_data(" cb45a/123 ")

    args, kwargs = mock_get.call_args
    assert args[0] == "https://api.landonline.govt.nz/v1/titles/CB45A%2F123"
    assert kwargs["headers"] == {"Authorization": "Bearer secret"}

    assert land.title_date == date(1998, 6, 1)
    assert land.lot_number == "1"
    assert land.dp_number == "12345"
    assert land.area_m2 == pytest.approx(450)
    assert [o.name for o in land.owners] == ["A Owner", "Unknown"]
    assert land.easements[0].type == "Easement"
    assert land.other_encumbrances[0].description == "Mortgagee: Bank"


@pytest.mark.asyncio
async def test_title_data_not_found_returns_none(land_provider):
    with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = _response(404)

        assert await land_provider.title_data("XX1/1") is None


@pytest.mark.asyncio
async def test_title_data_requires_credential():
    provider = LandonlineLandProvider("https://api.landonline.govt.nz", CredentialStore())

    with pytest.raises(ConfigurationError):
        await provider.title_data("CB45A/123")
