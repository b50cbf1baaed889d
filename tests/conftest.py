"""
Shared fixtures: fake backends for the adapters and the aggregator.

Nothing here talks to the network; HTTP adapters get an httpx client backed
by ``httpx.MockTransport`` and the CRM adapter gets a fake REST caller.
"""
import asyncio
from typing import Any, Callable, Dict, List

import httpx
import pytest

from geomap.core.errors import NetworkFailure
from geomap.schemas.common import AuthContext, EntityFilter, GeoEntity
from geomap.services.base import ProviderAdapter
from geomap.services.crm import CrmResponse


class FakeRpc:
    """Stands in for Bitrix24Client; replies are keyed by REST method."""

    def __init__(self, replies: Dict[str, Any]):
        self.replies = replies
        self.calls: List[tuple] = []

    async def call_method(self, auth, method, params=None):
        self.calls.append((method, params or {}))
        reply = self.replies[method]
        if callable(reply):
            reply = reply(params or {})
        if isinstance(reply, Exception):
            raise reply
        return reply


class StaticAdapter(ProviderAdapter):
    def __init__(self, name: str, entities: List[GeoEntity], delay: float = 0.0):
        super().__init__()
        self.name = name
        self.entities = entities
        self.delay = delay
        self.seen_auth = []
        self.cancelled = False

    async def _fetch(self, auth, flt):
        self.seen_auth.append(auth)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return list(self.entities)


class FailingAdapter(ProviderAdapter):
    def __init__(self, name: str, exc: Exception = None):
        super().__init__()
        self.name = name
        self.exc = exc or NetworkFailure(name, "HTTP 500", 500)

    async def _fetch(self, auth, flt):
        raise self.exc


def make_entity(id, source="crm", lat=55.75, lng=37.62, kind="point"):
    return GeoEntity(id=str(id), source_system=source, kind=kind, latitude=lat, longitude=lng)


@pytest.fixture
def auth() -> AuthContext:
    return AuthContext(domain="portal.bitrix24.ru", member_id="m1", access_token="tok", refresh_token="rt", expires_in=3600)


@pytest.fixture
def empty_filter() -> EntityFilter:
    return EntityFilter()


@pytest.fixture
def fake_rpc() -> Callable[[Dict[str, Any]], FakeRpc]:
    return FakeRpc


@pytest.fixture
def crm_response() -> Callable[..., CrmResponse]:
    return CrmResponse


@pytest.fixture
def entity() -> Callable[..., GeoEntity]:
    return make_entity


@pytest.fixture
def static_adapter():
    return StaticAdapter


@pytest.fixture
def failing_adapter():
    return FailingAdapter


@pytest.fixture
def mock_client():
    """
    Factory for an AsyncClient whose requests are answered by ``handler``.
    Every request is appended to ``client.requests`` for later inspection.
    """
    def make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        requests: List[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
        client.requests = requests
        return client

    return make
