"""
Station Explorer - Station Directory
Fetches the upstream station list and normalizes it to Station values.
"""

import logging
from typing import Any, List, Optional

from config import STATION_LIST_PATH
from core.envelope import resolve_records
from core.field_extractor import coerce_number
from core.models import Station

logger = logging.getLogger("station_fetcher")


def _first(record: dict, *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


def _first_number(record: dict, *keys: str) -> Optional[float]:
    for key in keys:
        value = coerce_number(record.get(key))
        if value is not None:
            return value
    return None


def parse_station(record: Any) -> Optional[Station]:
    """Station from one upstream record, or None when it carries no id."""
    if not isinstance(record, dict):
        return None
    station_id = _first(record, "station_id", "id", "icao")
    if station_id is None:
        return None
    name = _first(record, "station_name", "name")
    return Station(
        id=str(station_id),
        name=str(name) if name is not None else None,
        lon=_first_number(record, "longitude", "lon"),
        lat=_first_number(record, "latitude", "lat"),
    )


def parse_stations(payload: Any) -> List[Station]:
    stations = []
    for record in resolve_records(payload):
        station = parse_station(record)
        if station is not None:
            stations.append(station)
    return stations


async def fetch_stations(proxy) -> List[Station]:
    """
    Load the station list through the proxy.
    Any non-2xx answer (rate limit, upstream failure) yields an empty list.
    """
    response = await proxy.proxy(STATION_LIST_PATH)
    if not response.ok:
        logger.warning(f"Failed to load stations (HTTP {response.status}): {response.body}")
        return []
    stations = parse_stations(response.body)
    logger.info(f"Loaded {len(stations)} stations")
    return stations
