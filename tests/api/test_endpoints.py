"""API tests through the FastAPI application with mock providers and SQLite."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from site_evaluator.main import create_app
from site_evaluator.providers.mock import SAMPLE_PROPERTIES

BARBADOES = SAMPLE_PROPERTIES[0].full_address
ARMAGH = SAMPLE_PROPERTIES[1].full_address

JOBS = "/api/v1/jobs/"
LOCATIONS = "/api/v1/locations"


@pytest.fixture
def client(make_container):
    with TestClient(create_app(make_container())) as test_client:
        yield test_client


def _create_job(client, **body):
    response = client.post(JOBS, json=body, headers={"X-User-Id": "user-1"})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_root_and_health(client):
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["message"] == "Server is running"

    health = client.get("/health/")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert health.json()["database"]["database"] == "sqlite"


def test_correlation_id_is_echoed(client):
    response = client.get("/", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_create_and_get_job(client):
    job = _create_job(client, address=BARBADOES, customer_name="Aroha Ngata", purpose="purchase")

    assert job["job_reference"].startswith("JOB-")
    assert job["status"] == "created"
    assert job["owner_id"] == "user-1"
    assert job["data_status"]["zoning"]["status"] == "not_started"

    response = client.get(f"{JOBS}{job['id']}")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] is True
    assert body["data"]["id"] == job["id"]
    assert body["meta"]["api_version"] == "v1"

    by_reference = client.get(f"{JOBS}by-reference/{job['job_reference']}")
    assert by_reference.json()["data"]["id"] == job["id"]


def test_create_job_without_locator_is_rejected(client):
    response = client.post(JOBS, json={"customer_name": "Aroha"})

    assert response.status_code == 400
    error = response.json()
    assert error["title"] == "Validation Error"
    assert error["status"] == 400
    assert error["instance"] == JOBS
    assert client.get(JOBS).json()["data"]["total"] == 0


def test_unresolvable_address(client):
    response = client.post(JOBS, json={"address": "1 Nowhere Lane, Atlantis"})
    assert response.status_code == 422
    assert response.json()["title"] == "Location Not Resolvable"


def test_unknown_job_is_404(client):
    response = client.get(f"{JOBS}{uuid4()}")
    assert response.status_code == 404
    assert response.json()["title"] == "Not Found"


def test_invalid_status_transition_is_400(client):
    job = _create_job(client, address=BARBADOES)

    cancelled = client.post(f"{JOBS}{job['id']}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "cancelled"

    response = client.put(f"{JOBS}{job['id']}/status", json={"status": "in_progress"})
    assert response.status_code == 400
    assert "cancelled" in response.json()["detail"]


def test_update_job(client):
    job = _create_job(client, address=BARBADOES, customer_name="Aroha")

    response = client.patch(f"{JOBS}{job['id']}", json={"customer_company": "Ngata Holdings"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["customer_company"] == "Ngata Holdings"
    assert data["customer_name"] == "Aroha"


def test_data_collection_and_refresh(client):
    job = _create_job(client, address=BARBADOES)

    response = client.post(f"{JOBS}{job['id']}/data-collection")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "complete"
    assert data["completeness_percent"] == 100

    refreshed = client.post(f"{JOBS}{job['id']}/refresh", json={"sections": ["zoning", "land"]})
    assert refreshed.status_code == 200

    invalid = client.post(f"{JOBS}{job['id']}/refresh", json={"sections": ["sewerage"]})
    assert invalid.status_code == 400


def test_list_and_search_jobs(client):
    _create_job(client, address=BARBADOES, customer_name="Aroha Ngata")
    armagh = _create_job(client, address=ARMAGH, customer_name="Ben Smith")

    listed = client.get(JOBS, params={"limit": 1}).json()["data"]
    assert listed["total"] == 2
    assert len(listed["items"]) == 1

    searched = client.get(f"{JOBS}search", params={"q": "Armagh"}).json()["data"]
    assert [item["id"] for item in searched["items"]] == [armagh["id"]]

    filtered = client.get(JOBS, params={"status": "created", "search": "Ben"}).json()["data"]
    assert [item["id"] for item in filtered["items"]] == [armagh["id"]]


def test_generate_and_download_report(client):
    job = _create_job(client, address=BARBADOES, auto_start_data_collection=True)

    created = client.post(f"{JOBS}{job['id']}/reports", json={"report_type": "summary"})
    assert created.status_code == 201
    report = created.json()["data"]
    assert report["download_count"] == 0

    download = client.get(f"{JOBS}{job['id']}/reports/{report['id']}/content")
    assert download.status_code == 200
    assert download.headers["content-type"] == "application/pdf"
    assert report["file_name"] in download.headers["content-disposition"]
    assert download.content.startswith(b"%PDF")

    listed = client.get(f"{JOBS}{job['id']}/reports").json()["data"]["items"]
    assert listed[0]["download_count"] == 1

    missing = client.get(f"{JOBS}{job['id']}/reports/{uuid4()}/content")
    assert missing.status_code == 404


def test_resolve_and_refresh_location(client):
    resolved = client.post(f"{LOCATIONS}/resolve", json={"title_reference": "CB32A/891"})
    assert resolved.status_code == 200
    location = resolved.json()["data"]
    assert location["address"] == BARBADOES
    assert location["sections"]["zoning"]["payload"] is None

    refreshed = client.post(f"{LOCATIONS}/{location['id']}/refresh", json={"sections": ["zoning"]})
    assert refreshed.status_code == 200
    sections = refreshed.json()["data"]["sections"]
    assert sections["zoning"]["payload"]["zone"] == "Central City Residential"
    assert sections["land"]["payload"] is None

    fetched = client.get(f"{LOCATIONS}/{location['id']}")
    assert fetched.json()["data"]["sections"]["zoning"]["last_outcome"] == "ok"

    assert client.get(f"{LOCATIONS}/{uuid4()}").status_code == 404


def test_location_listing_and_jobs(client):
    job = _create_job(client, address=BARBADOES)
    _create_job(client, title_reference="CB32A/891")

    locations = client.get(f"{LOCATIONS}/").json()["data"]["items"]
    assert len(locations) == 1
    assert locations[0]["job_count"] == 2
    assert locations[0]["short_address"] == "353 Barbadoes Street, Central City"

    jobs = client.get(f"{LOCATIONS}/{job['location_id']}/jobs").json()["data"]["items"]
    assert len(jobs) == 2


def test_autocomplete(client):
    response = client.get(f"{LOCATIONS}/autocomplete", params={"q": "90 arm"})

    assert response.status_code == 200
    items = response.json()["data"]["items"]
    assert [item["full_address"] for item in items] == [ARMAGH]
