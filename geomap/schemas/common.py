# geomap/schemas/common.py
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field, model_validator

EntityKind = Literal["point", "polygon", "line", "node"]
DiagnosticKind = Literal["network", "protocol", "timeout", "validation", "error"]


class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class BoundsRect(BaseModel):
    north: float = Field(..., ge=-90, le=90)
    south: float = Field(..., ge=-90, le=90)
    # west > east (antimeridian) is accepted as-is
    east: float = Field(..., ge=-180, le=180)
    west: float = Field(..., ge=-180, le=180)

    @model_validator(mode="after")
    def _north_above_south(self):
        if self.north < self.south:
            raise ValueError("north must be >= south")
        return self

    def as_params(self) -> dict[str, float]:
        return {"north": self.north, "south": self.south, "east": self.east, "west": self.west}


class AuthContext(BaseModel):
    """Per-backend credential bundle. Owned by the caller, never stored here."""
    domain: str = ""
    member_id: str = ""
    access_token: str = ""
    refresh_token: str = ""
    expires_in: int = 0

    @classmethod
    def from_sdk(cls, raw: Optional[dict[str, Any]]) -> Optional["AuthContext"]:
        if not raw:
            return None
        return cls(
            domain=raw.get("domain") or "",
            member_id=raw.get("member_id") or "",
            access_token=raw.get("access_token") or "",
            refresh_token=raw.get("refresh_token") or "",
            expires_in=raw.get("expires_in") or 0,
        )

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump()


class GeoEntity(BaseModel):
    id: str
    source_system: str
    kind: EntityKind
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    # [lat, lng] pairs: polygon ring or line path
    bounding_shape: list[tuple[float, float]] | None = None
    attributes: dict[str, str] = {}

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class EntityFilter(BaseModel):
    category_id: int | None = None
    bounds: BoundsRect | None = None
    center: Location | None = None
    radius_km: float | None = Field(None, ge=0)
    query: str | None = None


class GeoCandidate(BaseModel):
    x: float  # longitude
    y: float  # latitude
    label: str
    bounds: BoundsRect | None = None
    raw: Any = None


class Diagnostic(BaseModel):
    source: str
    kind: DiagnosticKind
    message: str


class FetchResult(BaseModel):
    source: str
    entities: list[GeoEntity] = []
    diagnostics: list[Diagnostic] = []

    @property
    def ok(self) -> bool:
        return not self.diagnostics

    @classmethod
    def failed(cls, source: str, kind: DiagnosticKind, message: str) -> "FetchResult":
        return cls(source=source, diagnostics=[Diagnostic(source=source, kind=kind, message=message)])


class AggregateResult(BaseModel):
    entities: list[GeoEntity] = []
    unlocated: list[GeoEntity] = []
    diagnostics: list[Diagnostic] = []
