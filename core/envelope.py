"""
Locate the list of observation records inside whatever envelope the upstream returned.
"""

from __future__ import annotations

from typing import Any, List

from core.models import RawObservationRecord


def resolve_records(payload: Any) -> List[RawObservationRecord]:
    """
    Return the observation records carried by `payload`.

    First match wins:
      1. bare array
      2. {"data": [...]}
      3. {"observations": [...]}
      4. object whose values are objects (time-keyed map) -> its values
      5. anything else -> []
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []

    data = payload.get("data")
    if isinstance(data, list):
        return data

    observations = payload.get("observations")
    if isinstance(observations, list):
        return observations

    values = list(payload.values())
    if values and all(isinstance(v, dict) for v in values):
        return values

    return []
