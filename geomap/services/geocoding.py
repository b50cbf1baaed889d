# geomap/services/geocoding.py
"""
Address geocoders used by the map search box.

Both providers answer ``search(query) -> list[GeoCandidate]`` and never raise:
short queries are skipped without a request, backend failures give ``[]``.
"""
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ..core.config import settings
from ..core.errors import NetworkFailure
from ..schemas.common import BoundsRect, GeoCandidate
from ..utils.geo import coerce_coordinate
from ..utils.http import get_json, post_json

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3


def query_is_searchable(query: Optional[str]) -> bool:
    # raw length, whitespace included; the query is sent as typed
    return bool(query) and len(query) >= MIN_QUERY_LENGTH


class GeocodingProvider:
    name = "geocoder"

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout or settings.http_timeout

    async def search(self, query: Optional[str]) -> list[GeoCandidate]:
        if not query_is_searchable(query):
            return []
        try:
            return await self._search(query)
        # ValueError covers pydantic ValidationError from odd payloads
        except (NetworkFailure, ValueError, AttributeError) as e:
            logger.warning("%s search for %r failed: %s", self.name, query, e)
            return []

    async def _search(self, query: str) -> list[GeoCandidate]:
        raise NotImplementedError


class DaDataProvider(GeocodingProvider):
    name = "dadata"

    def __init__(self, token: Optional[str] = None, endpoint: Optional[str] = None, count: int = 10, **kw):
        super().__init__(**kw)
        self.token = token if token is not None else settings.dadata_token
        self.endpoint = endpoint or settings.dadata_endpoint
        self.count = count

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Token {self.token}",
        }

    async def _search(self, query: str) -> list[GeoCandidate]:
        if not self.token:
            logger.warning("DADATA_TOKEN is not set, skipping search for %r", query)
            return []
        data = await post_json(self.name, self.endpoint, {"query": query, "count": self.count},
                               headers=self._headers(), timeout=self.timeout, client=self.client)
        if not isinstance(data, dict):
            return []
        results = []
        for s in data.get("suggestions") or []:
            if not isinstance(s, dict) or not isinstance(s.get("data"), dict):
                continue
            d = s["data"]
            lat = coerce_coordinate(d.get("geo_lat"), 90)
            lon = coerce_coordinate(d.get("geo_lon"), 180)
            # no house-level coordinates -> nothing to put on the map
            if lat is None or lon is None:
                continue
            results.append(GeoCandidate(x=lon, y=lat, label=s.get("value") or query, bounds=None, raw=s))
        return results


def _pos(value: Any) -> Optional[tuple[float, float]]:
    """Yandex positions are "lon lat" strings."""
    if not isinstance(value, str):
        return None
    parts = value.split()
    if len(parts) != 2:
        return None
    lon, lat = coerce_coordinate(parts[0], 180), coerce_coordinate(parts[1], 90)
    if lon is None or lat is None:
        return None
    return lon, lat


class YandexProvider(GeocodingProvider):
    name = "yandex"

    def __init__(self, api_key: Optional[str] = None, endpoint: Optional[str] = None, **kw):
        super().__init__(**kw)
        self.api_key = api_key if api_key is not None else settings.yandex_api_key
        self.endpoint = endpoint or settings.yandex_geocoder_url

    async def _search(self, query: str) -> list[GeoCandidate]:
        params = {"geocode": query, "format": "json", "results": 1}
        if self.api_key:
            params["apikey"] = self.api_key
        data = await get_json(self.name, self.endpoint, params=params, timeout=self.timeout, client=self.client)

        if not isinstance(data, dict):
            return []
        members = (((data.get("response") or {}).get("GeoObjectCollection") or {}).get("featureMember") or [])
        if not isinstance(members, list) or not members or not isinstance(members[0], dict):
            return []
        geo = members[0].get("GeoObject") or {}
        if not isinstance(geo, dict):
            return []
        point = _pos((geo.get("Point") or {}).get("pos"))
        if point is None:
            return []

        bounds = None
        envelope = (geo.get("boundedBy") or {}).get("Envelope") or {}
        lower, upper = _pos(envelope.get("lowerCorner")), _pos(envelope.get("upperCorner"))
        if lower and upper:
            try:
                bounds = BoundsRect(west=lower[0], south=lower[1], east=upper[0], north=upper[1])
            except ValidationError as e:
                logger.debug("yandex envelope ignored for %r: %s", query, e)

        return [GeoCandidate(x=point[0], y=point[1], label=geo.get("name") or query, bounds=bounds, raw=geo)]


PROVIDERS = {"dadata": DaDataProvider, "yandex": YandexProvider}


def get_geocoder(name: str, **kw) -> GeocodingProvider:
    cls = PROVIDERS.get(name)
    if cls is None:
        raise ValueError(f"unknown geocoder: {name}")
    return cls(**kw)
