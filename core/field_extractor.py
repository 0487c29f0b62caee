"""
Schema-tolerant field extraction for upstream observation records.

Records arrive with unknown key names, arbitrary nesting and mixed units.
Each record is flattened to dot-joined keys, then timestamp, temperature and
wind are resolved by ordered rule lists:

- exact rules try a priority list of known key names (whole key or last
  dotted segment) and carry the source unit
- fuzzy rules match on substrings of the key name and run last

Values are converted to canonical units (Celsius, knots).
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Iterator, Optional, Sequence, Tuple

from config import FLATTEN_MAX_DEPTH
from core.models import UTC, CanonicalObservation, RawObservationRecord, UnitKind

_CLEAN_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_EPOCH_STRING_RE = re.compile(r"^\d+(\.\d+)?$")
_COMPACT_TIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})?$")

# Epoch readings outside this window are treated as "not an epoch".
_EPOCH_MIN_YEAR = 1900
_EPOCH_MAX_YEAR = 2200
_EPOCH_MS_THRESHOLD = 1e12

MPH_TO_KTS = 0.868976
MS_TO_KTS = 1.94384


# ---------------------------------------------------------------------------
# Coercion and unit conversion
# ---------------------------------------------------------------------------

def coerce_number(value: Any) -> Optional[float]:
    """Native finite number or a string that cleanly parses to one; else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            n = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not _CLEAN_NUMBER_RE.match(text):
            return None
        n = float(text)
    else:
        return None
    return n if math.isfinite(n) else None


def convert(value: float, unit: UnitKind) -> float:
    if unit is UnitKind.FAHRENHEIT:
        return (value - 32) * 5 / 9
    if unit is UnitKind.MPH:
        return value * MPH_TO_KTS
    if unit is UnitKind.METERS_PER_SECOND:
        return value * MS_TO_KTS
    return value


def guess_temperature_unit(value: float) -> Optional[UnitKind]:
    """Unit guess for temperatures found under an unrecognised key."""
    if 65 < value < 150:
        return UnitKind.FAHRENHEIT
    if -100 < value < 100:
        return UnitKind.CELSIUS
    return None


# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------

def flatten_record(record: Dict[str, Any], max_depth: int = FLATTEN_MAX_DEPTH) -> Dict[str, Any]:
    """
    Flatten nested objects into dot-joined keys: {"a": {"b": 1}} -> {"a.b": 1}.
    Arrays stay leaf values. Objects nested deeper than `max_depth` are kept whole.
    """
    flat: Dict[str, Any] = {}

    def _walk(node: Dict[str, Any], prefix: str, depth: int) -> None:
        for key, value in node.items():
            full_key = f"{prefix}.{key}" if prefix else str(key)
            if isinstance(value, dict) and value and depth < max_depth:
                _walk(value, full_key, depth + 1)
            else:
                flat[full_key] = value

    _walk(record, "", 0)
    return flat


# ---------------------------------------------------------------------------
# Timestamp parsing
# ---------------------------------------------------------------------------

def _from_epoch(n: float) -> Optional[datetime]:
    if not math.isfinite(n):
        return None
    ms = n if n >= _EPOCH_MS_THRESHOLD else n * 1000
    try:
        instant = datetime.fromtimestamp(ms / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None
    if not (_EPOCH_MIN_YEAR <= instant.year <= _EPOCH_MAX_YEAR):
        return None
    return instant


def _from_date_string(text: str) -> Optional[datetime]:
    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        instant = datetime.fromisoformat(iso)
    except ValueError:
        instant = None
    if instant is None:
        try:
            instant = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            instant = None
    if instant is None:
        return None
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


def _from_compact(text: str) -> Optional[datetime]:
    match = _COMPACT_TIME_RE.match(text)
    if not match:
        return None
    year, month, day, hour, minute, second = match.groups()
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second or 0), tzinfo=UTC
        )
    except ValueError:
        return None


def parse_instant(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp candidate, trying in order:
      1. epoch number / digit string (seconds below 1e12, else milliseconds)
      2. date string (ISO 8601, then RFC 2822)
      3. compact yyyymmddHHMM[ss] digits, read as UTC
    """
    if isinstance(value, bool) or value is None:
        return None

    if isinstance(value, (int, float)):
        try:
            n = float(value)
        except OverflowError:
            return None
        instant = _from_epoch(n)
        if instant is not None:
            return instant
        if math.isfinite(n) and n.is_integer():
            return _from_compact(str(int(n)))
        return None

    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    if _EPOCH_STRING_RE.match(text):
        instant = _from_epoch(float(text))
        if instant is not None:
            return instant
        return _from_compact(text)

    return _from_date_string(text) or _from_compact(text)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldRule:
    """
    One step of a priority-ordered lookup.

    Exact rules list `keys`; fuzzy rules give a `predicate` over the lowercased
    flattened key. `unit` drives conversion; a rule with no unit defers to
    `guess_unit` on the value.
    """
    label: str
    keys: Tuple[str, ...] = ()
    predicate: Optional[Callable[[str], bool]] = None
    unit: Optional[UnitKind] = None
    guess_unit: Optional[Callable[[float], Optional[UnitKind]]] = None

    def candidates(self, flat: Dict[str, Any]) -> Iterator[Any]:
        if self.keys:
            for name in self.keys:
                if name in flat:
                    yield flat[name]
                for key, value in flat.items():
                    if key != name and key.rsplit(".", 1)[-1] == name:
                        yield value
        elif self.predicate is not None:
            for key, value in flat.items():
                if self.predicate(key.lower()):
                    yield value

    def to_canonical(self, value: float) -> Optional[float]:
        unit = self.unit
        if unit is None and self.guess_unit is not None:
            unit = self.guess_unit(value)
        if unit is None:
            return None
        return convert(value, unit)


TIME_KEYS = (
    "ts", "time", "timestamp", "datetime", "date_time", "valid_time", "valid",
    "obsTimeUtc", "obsTime", "ob_time", "report_time", "Date", "date",
    "time_obs", "timeObs", "datetimeISO",
)

TIME_RULES: Tuple[FieldRule, ...] = (
    FieldRule("known time keys", keys=TIME_KEYS),
    FieldRule("time-like keys", predicate=lambda k: "time" in k or "date" in k),
)

TEMPERATURE_RULES: Tuple[FieldRule, ...] = (
    FieldRule(
        "celsius keys",
        keys=("temp_c", "temperature_c", "temperatureC", "tempC", "tmpc",
              "air_temp_c", "air_temp_set_1", "air_temp"),
        unit=UnitKind.CELSIUS,
    ),
    FieldRule(
        "fahrenheit keys",
        keys=("tmpf", "temp_f", "temperature_f", "temperatureF", "tempF", "air_temp_f"),
        unit=UnitKind.FAHRENHEIT,
    ),
    FieldRule("temp-like keys", predicate=lambda k: "temp" in k, guess_unit=guess_temperature_unit),
)

WIND_RULES: Tuple[FieldRule, ...] = (
    FieldRule(
        "knots keys",
        keys=("wind_kts", "wind_kt", "wind_speed_kts", "windSpeedKts", "sknt",
              "wind_speed", "wspd", "wind_speed_set_1"),
        unit=UnitKind.KNOTS,
    ),
    FieldRule(
        "mph keys",
        keys=("wind_mph", "wind_speed_mph", "windSpeedMph"),
        unit=UnitKind.MPH,
    ),
    FieldRule(
        "m/s keys",
        keys=("wind_ms", "wind_mps", "wind_speed_ms", "wind_speed_mps", "windSpeedMs"),
        unit=UnitKind.METERS_PER_SECOND,
    ),
    # Unit unknown here; read as knots.
    FieldRule(
        "wind-speed-like keys",
        predicate=lambda k: "wind" in k and any(t in k for t in ("speed", "spd", "sknt")),
        unit=UnitKind.KNOTS,
    ),
)


def _pick_number(flat: Dict[str, Any], rules: Sequence[FieldRule]) -> Optional[float]:
    for rule in rules:
        for raw in rule.candidates(flat):
            value = coerce_number(raw)
            if value is None:
                continue
            result = rule.to_canonical(value)
            if result is not None:
                return result
    return None


def pick_time(flat: Dict[str, Any], rules: Sequence[FieldRule] = TIME_RULES) -> Optional[datetime]:
    for rule in rules:
        for raw in rule.candidates(flat):
            instant = parse_instant(raw)
            if instant is not None:
                return instant
    return None


def pick_temp_c(flat: Dict[str, Any], rules: Sequence[FieldRule] = TEMPERATURE_RULES) -> Optional[float]:
    return _pick_number(flat, rules)


def pick_wind_kts(flat: Dict[str, Any], rules: Sequence[FieldRule] = WIND_RULES) -> Optional[float]:
    return _pick_number(flat, rules)


class FieldExtractor:
    """Reduce a raw record to a CanonicalObservation."""

    def __init__(
        self,
        max_depth: int = FLATTEN_MAX_DEPTH,
        time_rules: Sequence[FieldRule] = TIME_RULES,
        temperature_rules: Sequence[FieldRule] = TEMPERATURE_RULES,
        wind_rules: Sequence[FieldRule] = WIND_RULES,
    ):
        self.max_depth = max_depth
        self.time_rules = tuple(time_rules)
        self.temperature_rules = tuple(temperature_rules)
        self.wind_rules = tuple(wind_rules)

    def extract(self, record: RawObservationRecord) -> CanonicalObservation:
        if not isinstance(record, dict):
            return CanonicalObservation()
        flat = flatten_record(record, self.max_depth)
        return CanonicalObservation(
            instant=pick_time(flat, self.time_rules),
            temperature_c=pick_temp_c(flat, self.temperature_rules),
            wind_kts=pick_wind_kts(flat, self.wind_rules),
        )
