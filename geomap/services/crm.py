# geomap/services/crm.py
"""
Bitrix24 smart-process adapter.

Geo objects (points and polygons) live in one smart process; the category of
an item tells the two apart. Coordinates and polygon rings are stored in
custom ``UF_*`` fields whose names come from settings.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..core.config import settings
from ..core.errors import GeoMapError, NetworkFailure, ValidationFailure
from ..schemas.common import AuthContext, EntityFilter, FetchResult, GeoEntity
from ..utils.geo import coerce_coordinate, parse_lat_lng, ring_centroid
from ..utils.http import post_json
from .base import ProviderAdapter, flatten_attributes
from .pagination import Page, paginate

logger = logging.getLogger(__name__)


@dataclass
class CrmResponse:
    data: Any
    next: Any = None
    total: Optional[int] = None


class Bitrix24Client:
    """Minimal REST caller: POST https://<portal>/rest/<method>.json."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout or settings.http_timeout

    @staticmethod
    def endpoint(auth: AuthContext, method: str) -> str:
        base = auth.domain.rstrip("/")
        if not base.startswith(("http://", "https://")):
            base = f"https://{base}"
        return f"{base}/rest/{method}.json"

    async def call_method(self, auth: AuthContext, method: str, params: Optional[dict] = None) -> CrmResponse:
        if not auth.domain:
            raise NetworkFailure("crm", "auth context has no portal domain")
        payload = {**(params or {}), "auth": auth.access_token}
        body = await post_json("crm", self.endpoint(auth, method), payload, timeout=self.timeout, client=self.client)
        if not isinstance(body, dict):
            raise NetworkFailure("crm", f"{method}: unexpected response")
        if body.get("error"):
            raise NetworkFailure("crm", f"{method}: {body['error']} {body.get('error_description') or ''}".strip())
        return CrmResponse(data=body.get("result"), next=body.get("next"), total=body.get("total"))


def entity_card_path(entity_type_id: int, entity_id: Any) -> str:
    return f"/crm/type/{entity_type_id}/details/{entity_id}/"


def _parse_ring(value: Any) -> Optional[list[tuple[float, float]]]:
    if not value:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as e:
            raise ValidationFailure(f"geometry is not JSON: {e}") from e
    if not isinstance(value, list):
        raise ValidationFailure("geometry is not a list of points")
    ring = []
    for pair in value:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise ValidationFailure(f"bad vertex {pair!r}")
        lat, lng = coerce_coordinate(pair[0], 90), coerce_coordinate(pair[1], 180)
        if lat is None or lng is None:
            raise ValidationFailure(f"vertex out of range {pair!r}")
        ring.append((lat, lng))
    return ring or None


class CrmAdapter(ProviderAdapter):
    name = "crm"

    def __init__(self, rpc=None, client: Optional[httpx.AsyncClient] = None,
                 timeout: Optional[float] = None, max_pages: Optional[int] = None):
        super().__init__(client, timeout)
        self.rpc = rpc or Bitrix24Client(client=client, timeout=self.timeout)
        self.max_pages = max_pages or settings.max_pages
        self.entity_type_id = settings.bitrix_smart_process_id
        self.polygon_type_id = settings.bitrix_polygon_type_id
        self.point_type_id = settings.bitrix_point_type_id

    # ---------- reads ----------
    async def list_items(self, auth: AuthContext, category_id: Optional[int] = None) -> list[dict]:
        """All smart process items (standard + custom fields). Raises on failure."""
        params = {
            "entityTypeId": self.entity_type_id,
            "select": ["*", "UF_*"],
            "filter": {"categoryId": category_id} if category_id else {},
        }

        async def fetch_page(start):
            resp = await self.rpc.call_method(auth, "crm.item.list", {**params, "start": start})
            data = resp.data if isinstance(resp.data, dict) else {}
            return Page(items=data.get("items") or [], next=resp.next)

        return await paginate(self.name, fetch_page, self.max_pages)

    async def _fetch(self, auth: AuthContext, flt: EntityFilter) -> list[GeoEntity]:
        items = await self.list_items(auth, flt.category_id)
        return [self.to_entity(it) for it in items]

    async def get_geo_objects(self, auth: AuthContext, type_id: Optional[int] = None) -> FetchResult:
        return await self.fetch_entities(auth, EntityFilter(category_id=type_id))

    async def get_polygons(self, auth: AuthContext) -> FetchResult:
        return await self.get_geo_objects(auth, self.polygon_type_id)

    async def get_points(self, auth: AuthContext) -> FetchResult:
        return await self.get_geo_objects(auth, self.point_type_id)

    async def get_stages(self, auth: AuthContext, category_id: int) -> list[dict]:
        entity_id = f"DYNAMIC_{self.entity_type_id}_STAGE_{category_id}"
        try:
            resp = await self.rpc.call_method(auth, "crm.status.list", {"filter": {"ENTITY_ID": entity_id}})
        except NetworkFailure as e:
            logger.warning("stages for category %s unavailable: %s", category_id, e)
            return []
        if isinstance(resp.data, dict):
            return resp.data.get("statuses") or []
        return resp.data or []

    # ---------- writes ----------
    async def create_entity(self, auth: AuthContext, fields: dict[str, Any], category_id: Optional[int] = None):
        params = {
            "entityTypeId": self.entity_type_id,
            "fields": {"categoryId": category_id, **fields},
        }
        return await self._write(auth, "crm.item.add", params)

    async def update_entity(self, auth: AuthContext, entity_id: Any, fields: dict[str, Any]):
        params = {"entityTypeId": self.entity_type_id, "id": entity_id, "fields": fields}
        return await self._write(auth, "crm.item.update", params)

    async def delete_entity(self, auth: AuthContext, entity_id: Any):
        params = {"entityTypeId": self.entity_type_id, "id": entity_id}
        return await self._write(auth, "crm.item.delete", params)

    async def batch(self, auth: AuthContext, commands: dict[str, str], halt: bool = False):
        """Run several REST calls in one request (``{key: "method?query"}``)."""
        return await self._write(auth, "batch", {"halt": 1 if halt else 0, "cmd": commands})

    async def _write(self, auth: AuthContext, method: str, params: dict):
        try:
            resp = await self.rpc.call_method(auth, method, params)
        except GeoMapError as e:
            logger.error("%s failed: %s", method, e)
            raise
        return resp.data

    # ---------- mapping ----------
    def kind_for(self, category_id: Any) -> str:
        return "polygon" if str(category_id) == str(self.polygon_type_id) else "point"

    def to_entity(self, item: dict) -> GeoEntity:
        try:
            ring = _parse_ring(item.get(settings.crm_geometry_field))
        except ValidationFailure as e:
            logger.debug("item %s geometry ignored: %s", item.get("id"), e)
            ring = None
        lat = coerce_coordinate(item.get(settings.crm_latitude_field), 90)
        lng = coerce_coordinate(item.get(settings.crm_longitude_field), 180)
        if lat is None or lng is None:
            lat, lng = parse_lat_lng(item.get(settings.crm_coordinates_field)) or (None, None)
        if (lat is None or lng is None) and ring:
            lat, lng = ring_centroid(ring) or (None, None)
        return GeoEntity(
            id=str(item.get("id", "")),
            source_system=self.name,
            kind=self.kind_for(item.get("categoryId")),
            latitude=lat,
            longitude=lng,
            bounding_shape=ring,
            attributes=flatten_attributes(item, skip=("id",)),
        )
