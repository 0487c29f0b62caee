"""
Station Explorer - Collector Module
Network-facing pieces: upstream proxy, station directory, observation loader, question relay.
"""

from .upstream_proxy import RateLimitedProxy, ProxyResponse
from .observation_loader import ObservationLoader, ObservationSession, RetryPolicy, proxy_json_source
from .station_fetcher import fetch_stations, parse_stations

__all__ = [
    "RateLimitedProxy", "ProxyResponse",
    "ObservationLoader", "ObservationSession", "RetryPolicy", "proxy_json_source",
    "fetch_stations", "parse_stations",
    "load_observations",
]


async def load_observations(proxy: RateLimitedProxy, station_id: str, retry: RetryPolicy = RetryPolicy()):
    """
    Run the full ingestion pipeline for one station through `proxy`.

    Returns:
        LoadResult (never raises)
    """
    loader = ObservationLoader(proxy_json_source(proxy), retry=retry)
    return await loader.load(station_id)
