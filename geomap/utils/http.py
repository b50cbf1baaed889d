# geomap/utils/http.py
from typing import Any, Optional

import httpx

from ..core.errors import NetworkFailure


async def _send(
    source: str,
    method: str,
    url: str,
    *,
    json: Any = None,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    timeout: float = 30.0,
    client: Optional[httpx.AsyncClient] = None,
) -> httpx.Response:
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout)
    try:
        r = await client.request(method, url, json=json, params=params, headers=headers)
        r.raise_for_status()
        return r
    except httpx.HTTPStatusError as e:
        raise NetworkFailure(source, f"HTTP {e.response.status_code} from {url}", e.response.status_code) from e
    except httpx.HTTPError as e:
        raise NetworkFailure(source, f"{type(e).__name__} calling {url}: {e}") from e
    finally:
        if owns_client:
            await client.aclose()


async def post_json(source: str, url: str, payload: Any, headers: Optional[dict] = None,
                    timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
    r = await _send(source, "POST", url, json=payload, headers=headers, timeout=timeout, client=client)
    try:
        return r.json()
    except ValueError as e:
        raise NetworkFailure(source, f"invalid JSON from {url}", r.status_code) from e


async def get_json(source: str, url: str, params: Optional[dict] = None, headers: Optional[dict] = None,
                   timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
    r = await _send(source, "GET", url, params=params, headers=headers, timeout=timeout, client=client)
    try:
        return r.json()
    except ValueError as e:
        raise NetworkFailure(source, f"invalid JSON from {url}", r.status_code) from e
