# geomap/services/aggregator.py
"""
Fan out to the configured adapters, then project the merged set through the
spatial filters. The filters are pure: they return new lists and never touch
adapter state.
"""
import asyncio
import logging
from typing import Iterable, Mapping, Optional, Sequence, Union

from ..core.config import settings
from ..schemas.common import (
    AggregateResult,
    AuthContext,
    BoundsRect,
    Diagnostic,
    EntityFilter,
    FetchResult,
    GeoEntity,
    Location,
)
from ..utils.geo import haversine_distances_km, in_bounds
from .base import ProviderAdapter

logger = logging.getLogger(__name__)


def split_located(entities: Iterable[GeoEntity]) -> tuple[list[GeoEntity], list[GeoEntity]]:
    located, unlocated = [], []
    for e in entities:
        (located if e.has_coordinates else unlocated).append(e)
    return located, unlocated


def filter_by_bounds(entities: Iterable[GeoEntity], bounds: BoundsRect) -> list[GeoEntity]:
    return [e for e in entities if e.has_coordinates and in_bounds(e.latitude, e.longitude, bounds)]


def filter_by_radius(entities: Iterable[GeoEntity], center: Location, radius_km: float) -> list[GeoEntity]:
    located = [e for e in entities if e.has_coordinates]
    if not located:
        return []
    dist = haversine_distances_km(
        center.lat, center.lng, [e.latitude for e in located], [e.longitude for e in located]
    )
    return [e for e, d in zip(located, dist) if d <= radius_km]


def dedupe_entities(entities: Iterable[GeoEntity]) -> list[GeoEntity]:
    seen = set()
    out = []
    for e in entities:
        key = (e.source_system, e.id)
        if key in seen:
            continue
        seen.add(key)
        out.append(e)
    return out


class Aggregator:
    def __init__(self, adapters: Sequence[ProviderAdapter], timeout: Optional[float] = None):
        self.adapters = list(adapters)
        self.timeout = timeout or settings.adapter_timeout

    async def _fetch_one(self, adapter: ProviderAdapter, auth: AuthContext, flt: EntityFilter,
                         timeout: float) -> FetchResult:
        try:
            return await asyncio.wait_for(adapter.fetch_entities(auth, flt), timeout)
        except asyncio.TimeoutError:
            logger.warning("%s did not answer within %.1fs", adapter.name, timeout)
            return FetchResult.failed(adapter.name, "timeout", f"no answer within {timeout:g}s")
        except Exception as e:
            logger.exception("%s fetch crashed", adapter.name)
            return FetchResult.failed(adapter.name, "error", f"{type(e).__name__}: {e}")

    async def fetch_all(self, auth: Union[AuthContext, Mapping[str, AuthContext]],
                        flt: EntityFilter, timeout: Optional[float] = None) -> list[FetchResult]:
        """One FetchResult per adapter, in adapter order."""
        timeout = timeout or self.timeout
        tasks = [
            self._fetch_one(a, _auth_for(auth, a.name), flt, timeout)
            for a in self.adapters
        ]
        return list(await asyncio.gather(*tasks))

    async def aggregate(self, auth: Union[AuthContext, Mapping[str, AuthContext]],
                        flt: Optional[EntityFilter] = None, timeout: Optional[float] = None,
                        dedupe: bool = False) -> AggregateResult:
        flt = flt or EntityFilter()
        results = await self.fetch_all(auth, flt, timeout)

        merged: list[GeoEntity] = []
        diagnostics: list[Diagnostic] = []
        for r in results:
            merged.extend(r.entities)
            diagnostics.extend(r.diagnostics)
        if dedupe:
            merged = dedupe_entities(merged)

        located, unlocated = split_located(merged)
        if flt.bounds is not None:
            located = filter_by_bounds(located, flt.bounds)
        if flt.center is not None and flt.radius_km is not None:
            located = filter_by_radius(located, flt.center, flt.radius_km)

        logger.info(
            "aggregated %d entities (%d without coordinates) from %d sources, %d diagnostics",
            len(located), len(unlocated), len(results), len(diagnostics),
        )
        return AggregateResult(entities=located, unlocated=unlocated, diagnostics=diagnostics)


def _auth_for(auth: Union[AuthContext, Mapping[str, AuthContext]], source: str) -> AuthContext:
    if isinstance(auth, AuthContext):
        return auth
    return auth.get(source) or AuthContext()
