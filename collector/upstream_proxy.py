"""
Station Explorer - Upstream Proxy
Rate-limited, cache-aware passthrough to the upstream weather API.

Every outcome is a ProxyResponse carrying a JSON-ready body; nothing the
upstream does (timeouts, HTML error pages, truncated JSON) raises past `proxy`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from config import (
    NO_STORE_CACHE_CONTROL,
    OBSERVATION_PATH,
    PUBLIC_CACHE_CONTROL,
    RATE_LIMIT_MESSAGE,
    STATION_LIST_PATH,
    UPSTREAM_BASE_URL,
    UPSTREAM_TIMEOUT_SECONDS,
)
from core.errors import InvalidPath, RateLimited, UpstreamInvalidJson, UpstreamTransportError
from core.rate_bucket import RateBucket

logger = logging.getLogger("upstream_proxy")

_SENTINEL = object()


@dataclass
class ProxyResponse:
    status: int
    body: Any
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def reject_json_constant(token: str) -> Any:
    # NaN / Infinity are not JSON and cannot be re-serialized.
    raise ValueError(f"non-standard JSON constant: {token}")


def _route(path: str) -> str:
    route = path.split("?", 1)[0]
    return route.rstrip("/") or "/"


class RateLimitedProxy:
    """
    Forward GET requests for relative upstream paths.

    Malformed upstream JSON policy: the station list degrades to `[]` and the
    observation endpoint to an empty series envelope (both `no-store`), every
    other path answers 502.
    """

    def __init__(
        self,
        bucket: RateBucket,
        base_url: str = UPSTREAM_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = UPSTREAM_TIMEOUT_SECONDS,
        station_list_path: str = STATION_LIST_PATH,
        observation_path: str = OBSERVATION_PATH,
    ):
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.station_list_path = station_list_path
        self.observation_path = observation_path
        self._client = client

    def fallback_for(self, path: str) -> Any:
        """Typed empty body served when `path` returns malformed JSON, or _SENTINEL."""
        route = _route(path)
        if route == self.station_list_path:
            return []
        if route == self.observation_path:
            return {"station": "unknown", "data": []}
        return _SENTINEL

    async def _get(self, url: str) -> httpx.Response:
        headers = {"accept": "application/json"}
        if self._client is not None:
            return await self._client.get(url, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await client.get(url, headers=headers)

    async def proxy(self, path: Any) -> ProxyResponse:
        if not path or not isinstance(path, str) or not path.startswith("/"):
            raise InvalidPath()

        # No await between the bucket check and the decrement.
        if not self.bucket.allow():
            logger.warning(f"Rate limited: {path}")
            return ProxyResponse(RateLimited.status_code, {"error": RATE_LIMIT_MESSAGE})

        url = f"{self.base_url}{path}"
        try:
            upstream = await self._get(url)
            text = upstream.text
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Upstream transport failure for {path}: {e}")
            error = UpstreamTransportError(detail=str(e))
            return ProxyResponse(error.status_code, error.to_payload())

        try:
            body = json.loads(text, parse_constant=reject_json_constant)
        except ValueError:
            fallback = self.fallback_for(path)
            if fallback is _SENTINEL:
                logger.warning(f"Upstream returned invalid JSON for {path} (HTTP {upstream.status_code})")
                error = UpstreamInvalidJson()
                return ProxyResponse(error.status_code, error.to_payload())
            logger.warning(f"Upstream returned invalid JSON for {path}, serving empty fallback")
            return ProxyResponse(200, fallback, {"Cache-Control": NO_STORE_CACHE_CONTROL})

        return ProxyResponse(upstream.status_code, body, {"Cache-Control": PUBLIC_CACHE_CONTROL})
