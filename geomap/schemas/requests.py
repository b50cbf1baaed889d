# geomap/schemas/requests.py
from pydantic import BaseModel, Field
from typing import Any, Literal, Optional
from .common import AuthContext, EntityFilter

SourceName = Literal["crm", "customers", "userside", "utm5"]


class AggregateQuery(BaseModel):
    sources: list[SourceName] = Field(default_factory=lambda: ["crm"])
    # one credential bundle per backend; missing ones fall back to `auth`
    auth: AuthContext = Field(default_factory=AuthContext)
    auth_by_source: dict[str, AuthContext] = {}
    filter: EntityFilter = Field(default_factory=EntityFilter)
    timeout: float | None = Field(None, gt=0, description="Per-adapter timeout (s)")
    dedupe: bool = False


class CrmAuthRequest(BaseModel):
    auth: AuthContext


class CrmItemCreate(CrmAuthRequest):
    category_id: int
    fields: dict[str, Any] = {}


class CrmItemUpdate(CrmAuthRequest):
    fields: dict[str, Any] = {}


class StagesQuery(CrmAuthRequest):
    category_id: int


class GeocodeQuery(BaseModel):
    query: str
    provider: Literal["dadata", "yandex"] = "dadata"
    count: Optional[int] = Field(None, ge=1, le=20)
