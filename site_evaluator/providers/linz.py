"""httpx adapters for the LINZ Data Service and Landonline."""

import re
from datetime import date
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from site_evaluator.core.credentials import CredentialStore
from site_evaluator.core.exceptions import ProviderError
from site_evaluator.providers.base import AddressResolutionProvider, LandDataProvider
from site_evaluator.schemas.location import AddressCandidate, AddressSuggestion, Coordinate
from site_evaluator.schemas.providers import DataSource, Encumbrance, LandData, Owner
from site_evaluator.utils.geo import centroid
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)

LOT_PATTERN = re.compile(r"\bLot\s+(\d+)", re.IGNORECASE)
DP_PATTERN = re.compile(r"\bDP\s+(\d+)", re.IGNORECASE)


def _score_to_confidence(score: Any) -> int:
    """LINZ scores are 0..1 or 0..100; normalise to an integer percentage."""
    if score is None:
        return 100
    value = float(score)
    if value <= 1.0:
        value *= 100
    return max(0, min(100, int(round(value))))


class LinzAddressProvider(AddressResolutionProvider):
    """Geocoding and address autocomplete against the LINZ Data Service."""

    name = "linz"

    def __init__(self, base_url: str, credentials: CredentialStore, timeout: float = 20.0):
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        api_key = self.credentials.get("linz")
        return {"Authorization": f"key {api_key}"} if api_key else {}

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params, headers=self._headers())
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            LOGGER.warning(
                "LINZ request failed",
                extra={"url": url, "status_code": e.response.status_code},
            )
            raise ProviderError(self.name, f"HTTP {e.response.status_code}", original_error=e)
        except httpx.RequestError as e:
            LOGGER.warning("LINZ request error", extra={"url": url, "error": str(e)})
            raise ProviderError(self.name, f"request error: {e}", original_error=e)

    async def resolve(self, query: Union[str, Coordinate]) -> List[AddressCandidate]:
        if isinstance(query, Coordinate):
            body = await self._get(
                "/services/api/v1/geocode/reverse",
                {"lat": query.latitude, "lon": query.longitude},
            )
        else:
            body = await self._get("/services/api/v1/geocode", {"q": query})
        return self._candidates(body)

    async def resolve_title(self, title_reference: str) -> List[AddressCandidate]:
        body = await self._get("/services/api/v1/geocode", {"title": title_reference})
        return self._candidates(body)

    async def autocomplete(self, partial: str, limit: int = 10) -> List[AddressSuggestion]:
        if len(partial.strip()) < 2:
            return []
        body = await self._get("/services/api/v1/geocode", {"q": partial, "count": limit})
        suggestions = []
        for result in body.get("results") or []:
            full_address = result.get("full_address")
            if not full_address:
                continue
            suggestions.append(
                AddressSuggestion(
                    text=full_address.split(",")[0],
                    full_address=full_address,
                    address_id=str(result["address_id"]) if result.get("address_id") else None,
                    latitude=result.get("latitude"),
                    longitude=result.get("longitude"),
                    score=_score_to_confidence(result.get("score")) / 100,
                )
            )
        return suggestions[:limit]

    def _candidates(self, body: Dict[str, Any]) -> List[AddressCandidate]:
        candidates = []
        for result in body.get("results") or []:
            boundary = [Coordinate(latitude=p[1], longitude=p[0]) for p in result.get("boundary") or []]
            lat, lon = result.get("latitude"), result.get("longitude")
            if lat is None or lon is None:
                # Parcel-only results are placed at the boundary centroid
                point = centroid([(p.latitude, p.longitude) for p in boundary])
                if point is None:
                    continue
                lat, lon = point
            candidates.append(
                AddressCandidate(
                    formatted_address=result.get("full_address") or "",
                    latitude=lat,
                    longitude=lon,
                    confidence=_score_to_confidence(result.get("score")),
                    street_number=result.get("address_number"),
                    street_name=result.get("road_name"),
                    suburb=result.get("suburb"),
                    city=result.get("city"),
                    post_code=result.get("postcode"),
                    territorial_authority=result.get("territorial_authority"),
                    regional_council=result.get("regional_council"),
                    title_reference=result.get("title_reference"),
                    legal_description=result.get("legal_description"),
                    boundary=boundary or None,
                    site_area_m2=result.get("parcel_area"),
                    source=self.name,
                )
            )
        return [c for c in candidates if c.formatted_address]


class LandonlineLandProvider(LandDataProvider):
    """Certificate of title data from the Landonline API."""

    name = "landonline"

    def __init__(self, base_url: str, credentials: CredentialStore, timeout: float = 20.0):
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.timeout = timeout

    async def title_data(self, title_reference: str) -> Optional[LandData]:
        api_key = self.credentials.require("landonline")
        url = f"{self.base_url}/v1/titles/{quote(title_reference.strip().upper(), safe='')}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers={"Authorization": f"Bearer {api_key}"})
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            LOGGER.warning(
                "Landonline title lookup failed",
                extra={"title_reference": title_reference, "status_code": e.response.status_code},
            )
            raise ProviderError(self.name, f"HTTP {e.response.status_code}", original_error=e)
        except httpx.RequestError as e:
            raise ProviderError(self.name, f"request error: {e}", original_error=e)

        return self._map(body)

    def _map(self, body: Dict[str, Any]) -> LandData:
        legal = body.get("legal_description")
        area = body.get("area")
        if area is not None and (body.get("area_unit") or "sqm").lower() == "ha":
            area = area * 10000
        registered = body.get("registration_date")

        lot = LOT_PATTERN.search(legal or "")
        dp = DP_PATTERN.search(legal or "")

        return LandData(
            title_reference=body.get("title_reference") or "",
            title_type=body.get("type"),
            title_status=body.get("status"),
            title_date=date.fromisoformat(registered[:10]) if registered else None,
            legal_description=legal,
            lot_number=lot.group(1) if lot else None,
            dp_number=dp.group(1) if dp else None,
            area_m2=area,
            owners=[Owner(name=o.get("name") or "Unknown", share=o.get("share")) for o in body.get("owners") or []],
            easements=[
                Encumbrance(
                    type=e.get("type") or "Easement",
                    description=e.get("purpose"),
                    in_favour_of=e.get("benefiting"),
                    document_reference=e.get("instrument_number"),
                )
                for e in body.get("easements") or []
            ],
            covenants=[
                Encumbrance(
                    type=c.get("type") or "Covenant",
                    description=c.get("description"),
                    document_reference=c.get("instrument_number"),
                )
                for c in body.get("covenants") or []
            ],
            other_encumbrances=[
                Encumbrance(
                    type=e.get("type") or "Encumbrance",
                    description=f"Mortgagee: {e['mortgagee']}" if e.get("mortgagee") else None,
                    document_reference=e.get("registration_number"),
                )
                for e in body.get("encumbrances") or []
            ],
            source=DataSource(name="LINZ Landonline", url="https://www.landonline.govt.nz/"),
        )
