"""Tests for the Userside and UTM5 JSON-over-POST adapters."""
import json

import httpx
import pytest

from geomap.core.errors import NetworkFailure, UnsupportedOperation
from geomap.schemas.common import BoundsRect, EntityFilter
from geomap.services.base import extract_records
from geomap.services.userside import UsersideAdapter
from geomap.services.utm5 import Utm5Adapter

BASE = "https://inventory.example.net/api"
BOUNDS = BoundsRect(north=56, south=55, east=38, west=37)


def routes(table):
    def handler(request):
        path = request.url.path.replace("/api", "", 1)
        if path not in table:
            return httpx.Response(404)
        return httpx.Response(200, json=table[path])
    return handler


class TestUserside:

    @pytest.mark.asyncio
    async def test_fetch_by_bounds(self, auth, mock_client):
        handler = routes({
            "/nodes/bounds": [{"id": 1, "name": "Node A", "lat": 55.7, "lon": 37.6}],
            "/lines/bounds": {"data": [{"id": 7, "path": [[55.7, 37.6], [55.9, 37.8]]}]},
        })
        async with mock_client(handler) as client:
            result = await UsersideAdapter(base_url=BASE, client=client).fetch_entities(auth, EntityFilter(bounds=BOUNDS))
            bodies = [json.loads(r.content) for r in client.requests]

        assert result.ok
        node, line = result.entities
        assert (node.kind, node.id, node.latitude, node.longitude) == ("node", "1", 55.7, 37.6)
        assert node.attributes["name"] == "Node A"
        assert line.kind == "line"
        assert line.bounding_shape == [(55.7, 37.6), (55.9, 37.8)]
        assert line.latitude == pytest.approx(55.8)
        assert bodies[0]["auth"]["access_token"] == "tok"
        assert {k: bodies[0][k] for k in ("north", "south", "east", "west")} == BOUNDS.as_params()

    @pytest.mark.asyncio
    async def test_fetch_all(self, auth, mock_client):
        handler = routes({"/nodes": {"nodes": [{"id": 2, "coordinates": "55.1,37.1"}]}, "/optical-lines": []})
        async with mock_client(handler) as client:
            result = await UsersideAdapter(base_url=BASE, client=client).fetch_entities(auth)
            paths = [r.url.path for r in client.requests]
        assert paths == ["/api/nodes", "/api/optical-lines"]
        assert (result.entities[0].latitude, result.entities[0].longitude) == (55.1, 37.1)

    @pytest.mark.asyncio
    async def test_records_keyed_by_id(self, auth, mock_client):
        handler = routes({
            "/nodes": {"data": {"123": {"id": 123, "lat": 55.7, "lon": 37.6}, "124": {"id": 124, "lat": 55.8, "lon": 37.7}}},
            "/optical-lines": {"data": {}},
        })
        async with mock_client(handler) as client:
            result = await UsersideAdapter(base_url=BASE, client=client).fetch_entities(auth)
        assert [e.id for e in result.entities] == ["123", "124"]
        assert result.entities[0].latitude == 55.7

    @pytest.mark.asyncio
    async def test_non_2xx_is_a_failure(self, auth, mock_client):
        async with mock_client(lambda r: httpx.Response(500)) as client:
            adapter = UsersideAdapter(base_url=BASE, client=client)
            with pytest.raises(NetworkFailure) as exc:
                await adapter.get_node(auth, 5)
            assert exc.value.status_code == 500

            result = await adapter.fetch_entities(auth)
        assert result.entities == []
        assert result.diagnostics[0].kind == "network"

    @pytest.mark.asyncio
    async def test_unconfigured_base_url(self, auth):
        result = await UsersideAdapter(base_url="").fetch_entities(auth)
        assert result.diagnostics[0].source == "userside"

    @pytest.mark.asyncio
    async def test_request_bodies(self, auth, mock_client):
        async with mock_client(lambda r: httpx.Response(200, json={})) as client:
            adapter = UsersideAdapter(base_url=BASE, client=client)
            await adapter.get_equipment(auth)
            await adapter.get_equipment(auth, 9)
            await adapter.get_optical_line(auth, 3)
            await adapter.search_address(auth, "Lenina 1")
            bodies = [json.loads(r.content) for r in client.requests]
        assert set(bodies[0]) == {"auth"}
        assert bodies[1]["node_id"] == 9
        assert bodies[2]["line_id"] == 3
        assert bodies[3]["query"] == "Lenina 1"

    @pytest.mark.asyncio
    async def test_set_api_url(self, auth, mock_client):
        async with mock_client(lambda r: httpx.Response(200, json=[])) as client:
            adapter = UsersideAdapter(base_url=BASE, client=client)
            adapter.set_api_url("https://other.example.net")
            await adapter.get_nodes(auth)
            assert client.requests[0].url.host == "other.example.net"

    @pytest.mark.asyncio
    async def test_writes_unsupported(self, auth):
        with pytest.raises(UnsupportedOperation):
            await UsersideAdapter(base_url=BASE).create_entity(auth, {})


class TestUtm5:

    @pytest.mark.asyncio
    async def test_fetch_by_query(self, auth, mock_client):
        handler = routes({"/customers/search": {"customers": [{"id": 11, "latitude": "55.5", "longitude": "37.5"}]}})
        async with mock_client(handler) as client:
            result = await Utm5Adapter(base_url=BASE, client=client).fetch_entities(auth, EntityFilter(query="Lenina"))
            body = json.loads(client.requests[0].content)
        assert body["address"] == "Lenina"
        assert result.entities[0].id == "11"
        assert result.entities[0].source_system == "utm5"

    @pytest.mark.asyncio
    async def test_fetch_routes(self, auth, mock_client):
        handler = routes({"/customers": [], "/customers/bounds": []})
        async with mock_client(handler) as client:
            adapter = Utm5Adapter(base_url=BASE, client=client)
            await adapter.fetch_entities(auth)
            await adapter.fetch_entities(auth, EntityFilter(bounds=BOUNDS))
            paths = [r.url.path for r in client.requests]
        assert paths == ["/api/customers", "/api/customers/bounds"]

    @pytest.mark.asyncio
    async def test_services_and_accounts(self, auth, mock_client):
        async with mock_client(lambda r: httpx.Response(200, json=[])) as client:
            adapter = Utm5Adapter(base_url=BASE, client=client)
            await adapter.get_services(auth, 4)
            await adapter.get_accounts(auth)
            await adapter.get_customer(auth, 4)
            bodies = [json.loads(r.content) for r in client.requests]
        assert bodies[0]["customer_id"] == 4
        assert "customer_id" not in bodies[1]
        assert bodies[2]["customer_id"] == 4

    @pytest.mark.asyncio
    async def test_transport_error(self, auth, mock_client):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(NetworkFailure):
                await Utm5Adapter(base_url=BASE, client=client).get_customers(auth)


@pytest.mark.parametrize("body, expected", [
    ([{"id": 1}, "x"], [{"id": 1}]),
    ({"data": [{"id": 1}]}, [{"id": 1}]),
    ({"nodes": {"items": [{"id": 1}]}}, [{"id": 1}]),
    ({"data": {"7": {"id": 7}}}, [{"id": 7}]),
    ({"data": {"count": 3}}, []),
    ({"error": "nope"}, []),
    (None, []),
])
def test_extract_records(body, expected):
    assert extract_records(body, "nodes") == expected
