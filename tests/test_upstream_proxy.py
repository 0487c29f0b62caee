import asyncio
import os
import sys

import httpx
import pytest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from collector.upstream_proxy import RateLimitedProxy
from core.errors import InvalidPath
from core.rate_bucket import RateBucket


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _proxy(handler, capacity: float = 20) -> RateLimitedProxy:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    bucket = RateBucket(capacity=capacity, refill_per_minute=20, clock=FakeClock())
    return RateLimitedProxy(bucket, base_url="https://upstream.test", client=client)


def test_passes_through_status_and_body_with_public_cache() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(404, json={"detail": "unknown station"})

    response = asyncio.run(_proxy(handler).proxy("/historical_weather?station=KXYZ"))

    assert response.status == 404
    assert response.body == {"detail": "unknown station"}
    assert response.headers["Cache-Control"] == "public, s-maxage=60, stale-while-revalidate=300"
    assert str(seen[0].url) == "https://upstream.test/historical_weather?station=KXYZ"
    assert seen[0].headers["accept"] == "application/json"


@pytest.mark.parametrize("path", [None, "", "stations", "http://evil.test/x", 5])
def test_rejects_relative_or_missing_path(path) -> None:
    proxy = _proxy(lambda request: httpx.Response(200, json=[]))

    with pytest.raises(InvalidPath):
        asyncio.run(proxy.proxy(path))


def test_rate_limited_call_never_reaches_upstream() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=[])

    proxy = _proxy(handler, capacity=2)

    async def scenario():
        return [await proxy.proxy("/stations") for _ in range(3)]

    responses = asyncio.run(scenario())

    assert [r.status for r in responses] == [200, 200, 429]
    assert responses[-1].body == {"error": "Rate limit: 20/min. Please retry shortly."}
    assert len(calls) == 2


def test_invalid_json_station_list_falls_back_to_empty_list() -> None:
    proxy = _proxy(lambda request: httpx.Response(200, text="not json"))

    response = asyncio.run(proxy.proxy("/stations"))

    assert response.status == 200
    assert response.body == []
    assert response.headers["Cache-Control"] == "no-store"


def test_invalid_json_observations_fall_back_to_empty_series() -> None:
    proxy = _proxy(lambda request: httpx.Response(500, text="<html>oops</html>"))

    response = asyncio.run(proxy.proxy("/historical_weather?station=KSFO"))

    assert response.status == 200
    assert response.body == {"station": "unknown", "data": []}
    assert response.headers["Cache-Control"] == "no-store"


def test_invalid_json_elsewhere_is_bad_gateway() -> None:
    proxy = _proxy(lambda request: httpx.Response(200, text="{truncated"))

    response = asyncio.run(proxy.proxy("/something_else"))

    assert response.status == 502
    assert response.body == {"error": "Upstream returned invalid JSON"}
    assert "Cache-Control" not in response.headers


def test_transport_failure_is_bad_gateway() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    response = asyncio.run(_proxy(handler).proxy("/stations"))

    assert response.status == 502
    assert response.body["error"] == "Proxy error"
    assert "connection refused" in response.body["detail"]


def test_nan_in_observations_falls_back_to_empty_series() -> None:
    proxy = _proxy(lambda request: httpx.Response(200, text='[{"ts": 1700000000, "temp_c": NaN}]'))

    response = asyncio.run(proxy.proxy("/historical_weather?station=KSFO"))

    assert response.status == 200
    assert response.body == {"station": "unknown", "data": []}
    assert response.headers["Cache-Control"] == "no-store"


def test_infinity_elsewhere_is_bad_gateway() -> None:
    proxy = _proxy(lambda request: httpx.Response(200, text='{"value": -Infinity}'))

    response = asyncio.run(proxy.proxy("/something_else"))

    assert response.status == 502
    assert response.body == {"error": "Upstream returned invalid JSON"}
