"""
Assemble the aligned series shown in the temperature and wind charts.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from core.field_extractor import FieldExtractor
from core.models import UTC, CanonicalObservation, NormalizedSeries, RawObservationRecord
from core.qc import QualityAnnotator

logger = logging.getLogger("series")


def format_label(instant: datetime) -> str:
    """UTC minute-precision label, e.g. '2023-11-14 22:13'."""
    return instant.astimezone(UTC).strftime("%Y-%m-%d %H:%M")


class SeriesAligner:
    """
    Build a NormalizedSeries from raw records.

    Rows are the records whose timestamp resolved. When no record has a
    timestamp, rows are the records with at least one value, labelled
    '#1', '#2', ... An empty result is a valid "no data" series.
    """

    def __init__(self, extractor: Optional[FieldExtractor] = None, annotator=QualityAnnotator):
        self.extractor = extractor or FieldExtractor()
        self.annotator = annotator

    def align(self, records: Sequence[RawObservationRecord]) -> NormalizedSeries:
        observations = [self.extractor.extract(r) for r in records]

        labels: List[str] = []
        temps: List[Optional[float]] = []
        winds: List[Optional[float]] = []

        for obs in observations:
            if obs.instant is None:
                continue
            labels.append(format_label(obs.instant))
            temps.append(obs.temperature_c)
            winds.append(obs.wind_kts)

        if not labels:
            self._fill_ordinal(observations, labels, temps, winds)
            if labels:
                logger.info(f"No timestamps in {len(records)} records, using ordinal labels")

        if not labels:
            return NormalizedSeries()

        notes = [self.annotator.annotate(temps), self.annotator.annotate(winds)]
        return NormalizedSeries(labels=labels, temperature_c=temps, wind_kts=winds, quality_notes=notes)

    @staticmethod
    def _fill_ordinal(
        observations: Sequence[CanonicalObservation],
        labels: List[str],
        temps: List[Optional[float]],
        winds: List[Optional[float]],
    ) -> None:
        for obs in observations:
            if not obs.has_value:
                continue
            labels.append(f"#{len(labels) + 1}")
            temps.append(obs.temperature_c)
            winds.append(obs.wind_kts)
