# geomap/services/userside.py
"""Userside network inventory: nodes, optical lines and equipment."""
import json
from typing import Any, Optional

from ..core.config import settings
from ..schemas.common import AuthContext, BoundsRect, EntityFilter, GeoEntity
from ..utils.geo import coerce_coordinate, ring_centroid
from .base import JsonApiAdapter, extract_records, flatten_attributes, record_point


def _line_path(record: dict) -> Optional[list[tuple[float, float]]]:
    raw = record.get("path") or record.get("points") or record.get("coordinates")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, list):
        return None
    path = []
    for p in raw:
        if isinstance(p, dict):
            lat, lng = record_point(p)
        elif isinstance(p, (list, tuple)) and len(p) == 2:
            lat, lng = coerce_coordinate(p[0], 90), coerce_coordinate(p[1], 180)
        else:
            return None
        if lat is None or lng is None:
            return None
        path.append((lat, lng))
    return path or None


class UsersideAdapter(JsonApiAdapter):
    name = "userside"

    @property
    def default_base_url(self) -> str:
        return settings.userside_base_url

    async def get_nodes(self, auth: AuthContext):
        return await self.call_api("/nodes", auth)

    async def get_node(self, auth: AuthContext, node_id: Any):
        return await self.call_api("/node", auth, {"node_id": node_id})

    async def get_optical_lines(self, auth: AuthContext):
        return await self.call_api("/optical-lines", auth)

    async def get_optical_line(self, auth: AuthContext, line_id: Any):
        return await self.call_api("/optical-line", auth, {"line_id": line_id})

    async def get_equipment(self, auth: AuthContext, node_id: Any = None):
        params = {"node_id": node_id} if node_id else {}
        return await self.call_api("/equipment", auth, params)

    async def search_address(self, auth: AuthContext, query: str):
        return await self.call_api("/address/search", auth, {"query": query})

    async def get_nodes_by_bounds(self, auth: AuthContext, bounds: BoundsRect):
        return await self.call_api("/nodes/bounds", auth, bounds.as_params())

    async def get_lines_by_bounds(self, auth: AuthContext, bounds: BoundsRect):
        return await self.call_api("/lines/bounds", auth, bounds.as_params())

    async def _fetch(self, auth: AuthContext, flt: EntityFilter) -> list[GeoEntity]:
        if flt.bounds:
            nodes = await self.get_nodes_by_bounds(auth, flt.bounds)
            lines = await self.get_lines_by_bounds(auth, flt.bounds)
        else:
            nodes = await self.get_nodes(auth)
            lines = await self.get_optical_lines(auth)
        entities = [self.node_entity(r) for r in extract_records(nodes, "nodes")]
        entities += [self.line_entity(r) for r in extract_records(lines, "lines", "optical_lines")]
        return entities

    def node_entity(self, record: dict) -> GeoEntity:
        lat, lng = record_point(record)
        return GeoEntity(
            id=str(record.get("id", record.get("node_id", ""))),
            source_system=self.name,
            kind="node",
            latitude=lat,
            longitude=lng,
            attributes=flatten_attributes(record, skip=("id",)),
        )

    def line_entity(self, record: dict) -> GeoEntity:
        path = _line_path(record)
        lat, lng = ring_centroid(path) if path else (None, None)
        return GeoEntity(
            id=str(record.get("id", record.get("line_id", ""))),
            source_system=self.name,
            kind="line",
            latitude=lat,
            longitude=lng,
            bounding_shape=path,
            attributes=flatten_attributes(record, skip=("id", "path", "points", "coordinates")),
        )
