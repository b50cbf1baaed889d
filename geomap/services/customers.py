# geomap/services/customers.py
"""CRM deals used as customers, plus the client-side location filters."""
import logging
from typing import Any, Iterable, Optional

import httpx

from ..core.config import settings
from ..core.errors import GeoMapError, NetworkFailure, ProtocolViolation
from ..schemas.common import AuthContext, BoundsRect, EntityFilter, GeoEntity, Location
from ..utils.geo import haversine_distances_km, in_bounds
from .base import ProviderAdapter, first_coordinate, flatten_attributes
from .crm import Bitrix24Client
from .pagination import Page, paginate

logger = logging.getLogger(__name__)

LATITUDE_KEYS = ("latitude", "UF_CRM_LATITUDE")
LONGITUDE_KEYS = ("longitude", "UF_CRM_LONGITUDE")


def customer_coordinates(customer: dict) -> Optional[tuple[float, float]]:
    lat = first_coordinate(customer, LATITUDE_KEYS, 90)
    lng = first_coordinate(customer, LONGITUDE_KEYS, 180)
    if lat is None or lng is None:
        return None
    return lat, lng


def filter_customers_by_location(customers: Iterable[dict], bounds: BoundsRect) -> list[dict]:
    out = []
    for c in customers:
        coords = customer_coordinates(c)
        if coords and in_bounds(coords[0], coords[1], bounds):
            out.append(c)
    return out


def get_customers_in_radius(customers: Iterable[dict], center: Location, radius_km: float) -> list[dict]:
    located, lats, lngs = [], [], []
    for c in customers:
        coords = customer_coordinates(c)
        if coords:
            located.append(c)
            lats.append(coords[0])
            lngs.append(coords[1])
    if not located:
        return []
    dist = haversine_distances_km(center.lat, center.lng, lats, lngs)
    return [c for c, d in zip(located, dist) if d <= radius_km]


class CustomersAdapter(ProviderAdapter):
    name = "customers"

    def __init__(self, rpc=None, client: Optional[httpx.AsyncClient] = None,
                 timeout: Optional[float] = None, max_pages: Optional[int] = None):
        super().__init__(client, timeout)
        self.rpc = rpc or Bitrix24Client(client=client, timeout=self.timeout)
        self.max_pages = max_pages or settings.max_pages

    async def _list(self, auth: AuthContext) -> list[dict]:
        async def fetch_page(start):
            resp = await self.rpc.call_method(
                auth, "crm.deal.list", {"select": ["ID", "TITLE", "UF_*"], "filter": {}, "start": start}
            )
            data = resp.data
            if isinstance(data, dict):
                data = data.get("items")
            return Page(items=data or [], next=resp.next)

        return await paginate(self.name, fetch_page, self.max_pages)

    async def list_customers(self, auth: AuthContext) -> list[dict]:
        try:
            return await self._list(auth)
        except (NetworkFailure, ProtocolViolation) as e:
            logger.warning("customers unavailable: %s", e)
            return []

    async def _fetch(self, auth: AuthContext, flt: EntityFilter) -> list[GeoEntity]:
        return [self.to_entity(c) for c in await self._list(auth)]

    async def get_customer(self, auth: AuthContext, customer_id: Any):
        return await self._call(auth, "crm.deal.get", {"id": customer_id})

    async def create_customer(self, auth: AuthContext, customer: dict[str, Any]):
        return await self._call(auth, "crm.deal.add", {"fields": customer})

    async def update_customer(self, auth: AuthContext, customer_id: Any, customer: dict[str, Any]):
        return await self._call(auth, "crm.deal.update", {"id": customer_id, "fields": customer})

    async def create_entity(self, auth: AuthContext, fields: dict[str, Any], category_id: Optional[int] = None):
        if category_id is not None:
            fields = {"CATEGORY_ID": category_id, **fields}
        return await self.create_customer(auth, fields)

    async def update_entity(self, auth: AuthContext, entity_id: Any, fields: dict[str, Any]):
        return await self.update_customer(auth, entity_id, fields)

    async def _call(self, auth: AuthContext, method: str, params: dict):
        try:
            resp = await self.rpc.call_method(auth, method, params)
        except GeoMapError as e:
            logger.error("%s failed: %s", method, e)
            raise
        return resp.data

    def to_entity(self, customer: dict) -> GeoEntity:
        lat, lng = customer_coordinates(customer) or (None, None)
        return GeoEntity(
            id=str(customer.get("ID", customer.get("id", ""))),
            source_system=self.name,
            kind="point",
            latitude=lat,
            longitude=lng,
            attributes=flatten_attributes(customer, skip=("ID", "id")),
        )
