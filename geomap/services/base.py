# geomap/services/base.py
"""
Provider adapter contract.

An adapter talks to one backend and maps its records onto GeoEntity. Reads
degrade: a backend failure becomes an empty FetchResult carrying a
Diagnostic. Writes raise, so the caller can show a failure state.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

import httpx

from ..core.config import settings
from ..core.errors import NetworkFailure, ProtocolViolation, UnsupportedOperation
from ..schemas.common import AuthContext, EntityFilter, FetchResult, GeoEntity
from ..utils.geo import coerce_coordinate, parse_lat_lng
from ..utils.http import post_json

logger = logging.getLogger(__name__)


def flatten_attributes(record: Mapping[str, Any], skip: tuple[str, ...] = ()) -> dict[str, str]:
    """Render every field of a backend record as a string; None is dropped."""
    out: dict[str, str] = {}
    for k, v in record.items():
        if k in skip or v is None:
            continue
        if isinstance(v, (dict, list, tuple)):
            out[k] = json.dumps(v, ensure_ascii=False, default=str)
        elif isinstance(v, bool):
            out[k] = "Y" if v else "N"
        else:
            out[k] = str(v)
    return out


class ProviderAdapter(ABC):
    name: str = "provider"

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout or settings.http_timeout

    async def fetch_entities(self, auth: AuthContext, flt: Optional[EntityFilter] = None) -> FetchResult:
        flt = flt or EntityFilter()
        try:
            entities = await self._fetch(auth, flt)
        except NetworkFailure as e:
            logger.warning("%s read failed: %s", self.name, e)
            return FetchResult.failed(self.name, "network", str(e))
        except ProtocolViolation as e:
            logger.warning("%s broke paging: %s", self.name, e)
            return FetchResult.failed(self.name, "protocol", str(e))
        return FetchResult(source=self.name, entities=entities)

    @abstractmethod
    async def _fetch(self, auth: AuthContext, flt: EntityFilter) -> list[GeoEntity]:
        ...

    async def create_entity(self, auth: AuthContext, fields: dict[str, Any], category_id: Optional[int] = None):
        raise UnsupportedOperation(self.name, "create")

    async def update_entity(self, auth: AuthContext, entity_id: Any, fields: dict[str, Any]):
        raise UnsupportedOperation(self.name, "update")

    async def delete_entity(self, auth: AuthContext, entity_id: Any):
        raise UnsupportedOperation(self.name, "delete")


LAT_KEYS = ("lat", "latitude", "geo_lat")
LNG_KEYS = ("lng", "lon", "longitude", "geo_lon")


def extract_records(body: Any, *keys: str) -> list[dict]:
    """Pull the record list out of a response that may or may not wrap it."""
    if isinstance(body, list):
        return [r for r in body if isinstance(r, dict)]
    if isinstance(body, dict):
        for k in (*keys, "data", "items", "result"):
            v = body.get(k)
            if isinstance(v, list):
                return extract_records(v)
            if isinstance(v, dict):
                nested = extract_records(v)
                if nested:
                    return nested
                # records keyed by id: {"123": {...}, "124": {...}}
                if v and all(isinstance(r, dict) for r in v.values()):
                    return list(v.values())
    if body:
        logger.debug("no records found in %s response", type(body).__name__)
    return []


def first_coordinate(record: Mapping[str, Any], keys: tuple[str, ...], limit: float) -> Optional[float]:
    for k in keys:
        v = coerce_coordinate(record.get(k), limit)
        if v is not None:
            return v
    return None


def record_point(record: Mapping[str, Any]) -> tuple[Optional[float], Optional[float]]:
    lat = first_coordinate(record, LAT_KEYS, 90)
    lng = first_coordinate(record, LNG_KEYS, 180)
    if lat is None or lng is None:
        return parse_lat_lng(record.get("coordinates")) or (None, None)
    return lat, lng


class JsonApiAdapter(ProviderAdapter):
    """
    Backends reached by POSTing ``{auth, ...params}`` to ``base_url + endpoint``.
    Used by the network inventory (Userside) and billing (UTM5) systems.
    """
    default_base_url: str = ""

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None,
                 timeout: Optional[float] = None):
        super().__init__(client, timeout)
        self.base_url = base_url if base_url is not None else self.default_base_url

    def set_api_url(self, url: str) -> None:
        self.base_url = url

    async def call_api(self, endpoint: str, auth: AuthContext, params: Optional[dict] = None):
        if not self.base_url:
            raise NetworkFailure(self.name, "API base URL is not configured")
        payload = {"auth": auth.as_payload(), **(params or {})}
        url = f"{self.base_url.rstrip('/')}{endpoint}"
        logger.debug("%s POST %s", self.name, url)
        return await post_json(self.name, url, payload, timeout=self.timeout, client=self.client)
