# geomap/services/utm5.py
"""UTM5 billing: subscribers with their services and accounts."""
from typing import Any, Optional

from ..core.config import settings
from ..schemas.common import AuthContext, BoundsRect, EntityFilter, GeoEntity
from .base import JsonApiAdapter, extract_records, flatten_attributes, record_point


class Utm5Adapter(JsonApiAdapter):
    name = "utm5"

    @property
    def default_base_url(self) -> str:
        return settings.utm5_base_url

    async def get_customers(self, auth: AuthContext, filters: Optional[dict] = None):
        return await self.call_api("/customers", auth, filters or {})

    async def get_customer(self, auth: AuthContext, customer_id: Any):
        return await self.call_api("/customer", auth, {"customer_id": customer_id})

    async def get_customers_by_address(self, auth: AuthContext, address: str):
        return await self.call_api("/customers/search", auth, {"address": address})

    async def get_customers_by_bounds(self, auth: AuthContext, bounds: BoundsRect):
        return await self.call_api("/customers/bounds", auth, bounds.as_params())

    async def get_services(self, auth: AuthContext, customer_id: Any = None):
        params = {"customer_id": customer_id} if customer_id else {}
        return await self.call_api("/services", auth, params)

    async def get_accounts(self, auth: AuthContext, customer_id: Any = None):
        params = {"customer_id": customer_id} if customer_id else {}
        return await self.call_api("/accounts", auth, params)

    async def _fetch(self, auth: AuthContext, flt: EntityFilter) -> list[GeoEntity]:
        if flt.bounds:
            body = await self.get_customers_by_bounds(auth, flt.bounds)
        elif flt.query:
            body = await self.get_customers_by_address(auth, flt.query)
        else:
            body = await self.get_customers(auth)
        return [self.to_entity(r) for r in extract_records(body, "customers")]

    def to_entity(self, record: dict) -> GeoEntity:
        lat, lng = record_point(record)
        return GeoEntity(
            id=str(record.get("id", record.get("customer_id", ""))),
            source_system=self.name,
            kind="point",
            latitude=lat,
            longitude=lng,
            attributes=flatten_attributes(record, skip=("id",)),
        )
