import os
import sys
from datetime import datetime

import pytest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.field_extractor import (
    FieldExtractor,
    coerce_number,
    flatten_record,
    guess_temperature_unit,
    parse_instant,
    pick_temp_c,
    pick_time,
    pick_wind_kts,
)
from core.models import UTC, UnitKind


T0 = datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)


# --- flatten ---------------------------------------------------------------

def test_flatten_joins_nested_keys() -> None:
    assert flatten_record({"a": {"b": 1}}) == {"a.b": 1}


def test_flatten_is_identity_on_flat_records() -> None:
    flat = {"ts": 1, "temp_c": 2.5, "name": "x"}
    assert flatten_record(flat) == flat
    assert flatten_record(flatten_record(flat)) == flat


def test_flatten_keeps_arrays_as_leaves() -> None:
    record = {"obs": {"values": [{"t": 1}, {"t": 2}]}}
    assert flatten_record(record) == {"obs.values": [{"t": 1}, {"t": 2}]}


def test_flatten_depth_is_capped() -> None:
    record = {"x": 1}
    for _ in range(20):
        record = {"n": record}

    flat = flatten_record(record, max_depth=3)

    assert list(flat) == ["n.n.n.n"]
    assert isinstance(flat["n.n.n.n"], dict)


# --- numbers and units -----------------------------------------------------

def test_coerce_number_accepts_clean_numeric_strings() -> None:
    assert coerce_number(" 12.5 ") == 12.5
    assert coerce_number("-3e2") == -300.0
    assert coerce_number(7) == 7.0


def test_coerce_number_rejects_everything_else() -> None:
    for value in ("", "12.5abc", "nan", "inf", "1_000", True, None, [1], {"v": 1}, float("nan")):
        assert coerce_number(value) is None


def test_fahrenheit_freezing_point_is_zero_celsius() -> None:
    assert pick_temp_c({"tmpf": 32}) == 0.0


def test_mph_to_knots() -> None:
    assert pick_wind_kts({"wind_mph": 10}) == pytest.approx(8.68976, abs=1e-6)


def test_meters_per_second_to_knots() -> None:
    assert pick_wind_kts({"wind_ms": 10}) == pytest.approx(19.4384, abs=1e-6)


def test_celsius_key_beats_fahrenheit_key() -> None:
    assert pick_temp_c({"tmpf": 68, "temp_c": 25}) == 25


def test_exact_keys_match_nested_leaf_names() -> None:
    flat = flatten_record({"obs": {"tmpf": 68, "wind": {"sknt": 12}}})

    assert pick_temp_c(flat) == pytest.approx(20.0)
    assert pick_wind_kts(flat) == 12


def test_string_values_are_coerced() -> None:
    assert pick_temp_c({"temp_c": "18.5"}) == 18.5
    assert pick_wind_kts({"wind_kts": "not a number"}) is None


# --- fuzzy temperature -----------------------------------------------------

def test_guess_temperature_unit_ranges() -> None:
    assert guess_temperature_unit(70.0) is UnitKind.FAHRENHEIT
    assert guess_temperature_unit(21.0) is UnitKind.CELSIUS
    assert guess_temperature_unit(-40.0) is UnitKind.CELSIUS
    assert guess_temperature_unit(150.0) is None
    assert guess_temperature_unit(-150.0) is None


def test_fuzzy_temperature_in_fahrenheit_range_is_converted() -> None:
    assert pick_temp_c({"air_temperature": 68}) == pytest.approx(20.0)


def test_fuzzy_temperature_in_celsius_range_is_kept() -> None:
    assert pick_temp_c({"temperature": 21.5}) == 21.5


def test_fuzzy_temperature_out_of_range_is_rejected() -> None:
    assert pick_temp_c({"temperature": 500}) is None


def test_fuzzy_temperature_skips_implausible_candidate() -> None:
    assert pick_temp_c({"temp_sensor_id": 4000, "temperature": 12}) == 12


# --- fuzzy wind ------------------------------------------------------------

def test_fuzzy_wind_speed_is_read_as_knots() -> None:
    flat = flatten_record({"wind": {"speed": 9}})
    assert pick_wind_kts(flat) == 9


def test_wind_direction_is_not_wind_speed() -> None:
    assert pick_wind_kts({"wind_dir": 270}) is None


# --- timestamps ------------------------------------------------------------

def test_epoch_seconds_and_milliseconds_give_same_instant() -> None:
    assert parse_instant(1700000000) == T0
    assert parse_instant(1700000000000) == T0
    assert parse_instant("1700000000") == T0
    assert parse_instant("1700000000000") == T0


def test_iso_strings() -> None:
    assert parse_instant("2023-11-14T22:13:20Z") == T0
    assert parse_instant("2023-11-14T23:13:20+01:00") == T0
    assert parse_instant("2023-11-14 22:13:20") == T0


def test_rfc2822_string() -> None:
    assert parse_instant("Tue, 14 Nov 2023 22:13:20 GMT") == T0


def test_compact_digit_strings_are_utc() -> None:
    assert parse_instant("202311142213") == datetime(2023, 11, 14, 22, 13, tzinfo=UTC)
    assert parse_instant("20231114221320") == T0
    assert parse_instant(202311142213) == datetime(2023, 11, 14, 22, 13, tzinfo=UTC)


def test_unparseable_timestamps() -> None:
    for value in (None, True, "", "yesterday", "209913991299", [1700000000], {"t": 1}):
        assert parse_instant(value) is None


def test_pick_time_prefers_known_keys_in_priority_order() -> None:
    flat = {"observedDate": "2020-01-01T00:00:00Z", "ts": 1700000000}
    assert pick_time(flat) == T0


def test_pick_time_skips_candidates_that_do_not_parse() -> None:
    flat = {"time": "garbage", "valid_time": "2023-11-14T22:13:20Z"}
    assert pick_time(flat) == T0


def test_pick_time_falls_back_to_time_like_keys() -> None:
    flat = flatten_record({"meta": {"observedDate": "2023-11-14T22:13:20Z"}})
    assert pick_time(flat) == T0


# --- extractor -------------------------------------------------------------

def test_extract_nested_record() -> None:
    record = {
        "meta": {"obsTimeUtc": "2023-11-14T22:13:20Z"},
        "metric": {"temp_f": 50, "wind_speed_mph": 10},
    }

    obs = FieldExtractor().extract(record)

    assert obs.instant == T0
    assert obs.temperature_c == pytest.approx(10.0)
    assert obs.wind_kts == pytest.approx(8.68976)


def test_extract_non_mapping_record_is_empty() -> None:
    obs = FieldExtractor().extract(["not", "a", "record"])

    assert obs.instant is None
    assert obs.has_value is False


def test_oversized_integers_are_absent_not_errors() -> None:
    huge = 10 ** 400

    assert coerce_number(huge) is None
    assert parse_instant(huge) is None
    assert pick_temp_c({"temp_c": huge}) is None
    assert pick_wind_kts({"wind_kts": huge, "wind_mph": 10}) == pytest.approx(8.68976)
