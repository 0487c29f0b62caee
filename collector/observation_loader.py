"""
Station Explorer - Observation Loader
Fetch a station's history (one retry), normalize it, and hand back a renderable result.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional
from urllib.parse import quote

from config import OBSERVATION_PATH, OBSERVATION_RETRY_ATTEMPTS, OBSERVATION_RETRY_BACKOFF_MS
from core.envelope import resolve_records
from core.errors import ObservationFetchFailed
from core.models import LoadResult, LoadState, RawObservationRecord
from core.series import SeriesAligner

logger = logging.getLogger("observation_loader")

NO_DATA_MESSAGE = "No data returned for this station right now. Try another (KSFO/KLAX/KJFK)."
STALE_MESSAGE = "Superseded by a newer station selection."

JsonSource = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = OBSERVATION_RETRY_ATTEMPTS
    backoff_ms: int = OBSERVATION_RETRY_BACKOFF_MS

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_ms < 0:
            raise ValueError("backoff_ms must be >= 0")


def observation_path(station_id: str) -> str:
    return f"{OBSERVATION_PATH}?station={quote(str(station_id), safe='')}"


def proxy_json_source(proxy) -> JsonSource:
    """Adapt a RateLimitedProxy into a JSON source; non-2xx answers raise."""

    async def fetch(path: str) -> Any:
        response = await proxy.proxy(path)
        if not response.ok:
            raise ObservationFetchFailed(detail=f"HTTP {response.status}: {response.body}")
        return response.body

    return fetch


class ObservationLoader:
    def __init__(
        self,
        source: JsonSource,
        retry: RetryPolicy = RetryPolicy(),
        aligner: Optional[SeriesAligner] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.source = source
        self.retry = retry
        self.aligner = aligner or SeriesAligner()
        self._sleep = sleep

    async def fetch_records(self, station_id: str) -> List[RawObservationRecord]:
        """Raises ObservationFetchFailed once every attempt has failed."""
        path = observation_path(station_id)
        last_error: Optional[Exception] = None
        for attempt in range(1, self.retry.max_attempts + 1):
            try:
                payload = await self.source(path)
                return resolve_records(payload)
            except Exception as e:
                last_error = e
                logger.warning(f"[{station_id}] fetch attempt {attempt}/{self.retry.max_attempts} failed: {e}")
                if attempt < self.retry.max_attempts:
                    await self._sleep(self.retry.backoff_ms / 1000.0)
        raise ObservationFetchFailed(detail=str(last_error)) from last_error

    async def load(self, station_id: str, generation: int = 0) -> LoadResult:
        try:
            records = await self.fetch_records(station_id)
        except ObservationFetchFailed as e:
            logger.error(f"[{station_id}] historical fetch failed: {e.detail}")
            return LoadResult(station_id, LoadState.FAILED, message=e.message, generation=generation)

        if not records:
            return LoadResult(station_id, LoadState.NO_DATA, message=NO_DATA_MESSAGE, generation=generation)

        try:
            series = self.aligner.align(records)
        except Exception as e:
            logger.exception(f"[{station_id}] normalization failed: {e}")
            return LoadResult(
                station_id, LoadState.FAILED, message=ObservationFetchFailed.default_message, generation=generation
            )

        if series.is_empty:
            return LoadResult(station_id, LoadState.NO_DATA, message=NO_DATA_MESSAGE, generation=generation)

        logger.info(f"[{station_id}] {len(series)} rows from {len(records)} records")
        return LoadResult(station_id, LoadState.OK, series=series, message=series.quality_text, generation=generation)


class ObservationSession:
    """
    Tracks the displayed result for one viewer.
    Each selection gets a new generation; a load that finishes after a newer
    selection started is reported as stale and does not replace `current`.
    """

    def __init__(self, loader: ObservationLoader):
        self.loader = loader
        self.generation = 0
        self.current: Optional[LoadResult] = None

    async def select(self, station_id: str) -> LoadResult:
        self.generation += 1
        generation = self.generation
        result = await self.loader.load(station_id, generation=generation)
        if generation != self.generation:
            logger.info(f"[{station_id}] discarding stale load (gen {generation} < {self.generation})")
            return LoadResult(station_id, LoadState.STALE, message=STALE_MESSAGE, generation=generation)
        self.current = result
        return result
