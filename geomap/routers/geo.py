# geomap/routers/geo.py
import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from ..core.errors import NetworkFailure, UnsupportedOperation
from ..schemas.common import AggregateResult, GeoCandidate
from ..schemas.requests import (
    AggregateQuery,
    CrmAuthRequest,
    CrmItemCreate,
    CrmItemUpdate,
    GeocodeQuery,
    StagesQuery,
)
from ..services.aggregator import Aggregator
from ..services.base import ProviderAdapter
from ..services.crm import CrmAdapter, entity_card_path
from ..services.customers import CustomersAdapter
from ..services.geocoding import get_geocoder
from ..services.userside import UsersideAdapter
from ..services.utm5 import Utm5Adapter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/geo", tags=["geo"])

ADAPTERS = {
    "crm": CrmAdapter,
    "customers": CustomersAdapter,
    "userside": UsersideAdapter,
    "utm5": Utm5Adapter,
}


def build_adapter(source: str) -> ProviderAdapter:
    return ADAPTERS[source]()


def _write_error(e: Exception) -> HTTPException:
    if isinstance(e, UnsupportedOperation):
        return HTTPException(status_code=405, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


# -------- aggregation --------
@router.post("/entities", response_model=AggregateResult)
async def aggregate_entities(q: AggregateQuery):
    # keep request order, drop repeats
    sources = list(dict.fromkeys(q.sources))
    aggregator = Aggregator([build_adapter(s) for s in sources])
    auth = {s: q.auth_by_source.get(s, q.auth) for s in sources}
    return await aggregator.aggregate(auth, q.filter, timeout=q.timeout, dedupe=q.dedupe)


# -------- CRM smart process --------
@router.post("/crm/items")
async def create_crm_item(body: CrmItemCreate):
    try:
        data = await build_adapter("crm").create_entity(body.auth, body.fields, body.category_id)
    except (NetworkFailure, UnsupportedOperation) as e:
        raise _write_error(e) from e
    return {"result": data}


@router.patch("/crm/items/{item_id}")
async def update_crm_item(item_id: int, body: CrmItemUpdate):
    try:
        data = await build_adapter("crm").update_entity(body.auth, item_id, body.fields)
    except (NetworkFailure, UnsupportedOperation) as e:
        raise _write_error(e) from e
    return {"result": data}


@router.delete("/crm/items/{item_id}")
async def delete_crm_item(item_id: int, body: CrmAuthRequest):
    try:
        data = await build_adapter("crm").delete_entity(body.auth, item_id)
    except (NetworkFailure, UnsupportedOperation) as e:
        raise _write_error(e) from e
    return {"result": data}


@router.post("/crm/stages")
async def crm_stages(q: StagesQuery) -> list[dict[str, Any]]:
    return await build_adapter("crm").get_stages(q.auth, q.category_id)


@router.get("/crm/items/{item_id}/card")
def crm_item_card(item_id: int, entity_type_id: int | None = None):
    adapter = build_adapter("crm")
    return {"path": entity_card_path(entity_type_id or adapter.entity_type_id, item_id)}


# -------- geocoding --------
@router.post("/geocode", response_model=list[GeoCandidate])
async def geocode(q: GeocodeQuery):
    kw = {"count": q.count} if q.provider == "dadata" and q.count else {}
    return await get_geocoder(q.provider, **kw).search(q.query)
