from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

UTC = ZoneInfo("UTC")

# Raw upstream record: structure not controlled by us.
RawObservationRecord = Dict[str, Any]


class UnitKind(str, Enum):
    """Source units understood by the field extractor."""
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"
    KNOTS = "knots"
    MPH = "mph"
    METERS_PER_SECOND = "meters_per_second"


@dataclass
class CanonicalObservation:
    """
    One upstream record reduced to canonical units.
    temperature_c is always Celsius and wind_kts always knots, whatever the source used.
    """
    instant: Optional[datetime] = None
    temperature_c: Optional[float] = None
    wind_kts: Optional[float] = None

    @property
    def has_value(self) -> bool:
        return self.temperature_c is not None or self.wind_kts is not None


@dataclass
class NormalizedSeries:
    """
    Gap-aligned series handed to presentation.
    Index i of labels, temperature_c and wind_kts always describes the same observation.
    """
    labels: List[str] = field(default_factory=list)
    temperature_c: List[Optional[float]] = field(default_factory=list)
    wind_kts: List[Optional[float]] = field(default_factory=list)
    quality_notes: List[Optional[str]] = field(default_factory=list)

    def __post_init__(self):
        n = len(self.labels)
        if len(self.temperature_c) != n or len(self.wind_kts) != n:
            raise ValueError(
                f"misaligned series: {n} labels, {len(self.temperature_c)} temps, {len(self.wind_kts)} winds"
            )

    def __len__(self) -> int:
        return len(self.labels)

    @property
    def is_empty(self) -> bool:
        return not self.labels

    @property
    def quality_text(self) -> str:
        """Notes joined for display, empty when nothing was flagged."""
        return " • ".join(n for n in self.quality_notes if n)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "labels": list(self.labels),
            "temperature_c": list(self.temperature_c),
            "wind_kts": list(self.wind_kts),
            "quality_notes": list(self.quality_notes),
            "quality_text": self.quality_text,
        }


@dataclass(frozen=True)
class Station:
    """Station metadata as listed upstream. Read-only for the pipeline."""
    id: str
    name: Optional[str] = None
    lon: Optional[float] = None
    lat: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "lon": self.lon, "lat": self.lat}


class LoadState(str, Enum):
    OK = "ok"
    NO_DATA = "no_data"
    FAILED = "failed"
    STALE = "stale"


@dataclass
class LoadResult:
    """Outcome of one observation load. Always renderable, never an exception."""
    station_id: str
    state: LoadState
    series: NormalizedSeries = field(default_factory=NormalizedSeries)
    message: str = ""
    generation: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "station_id": self.station_id,
            "state": self.state.value,
            "message": self.message,
            "generation": self.generation,
            "series": self.series.to_dict(),
        }
