from typing import List, Optional, Sequence
from dataclasses import dataclass
import math
import statistics

from config import QC_MIN_SAMPLES, QC_Z_THRESHOLD


@dataclass
class QCResult:
    sample_size: int
    mean: Optional[float]
    stddev: Optional[float]
    outlier_indices: List[int]

    @property
    def outlier_count(self) -> int:
        return len(self.outlier_indices)


class QualityAnnotator:
    """
    Z-score outlier signal over one numeric column.
    Advisory only: flagged values stay in the series, only the count is reported.
    """

    MIN_SAMPLES = QC_MIN_SAMPLES
    Z_THRESHOLD = QC_Z_THRESHOLD

    @staticmethod
    def _finite(value) -> bool:
        return (
            isinstance(value, (int, float))
            and not isinstance(value, bool)
            and math.isfinite(value)
        )

    @classmethod
    def check(cls, values: Sequence[Optional[float]]) -> QCResult:
        """Indices (into `values`) whose population z-score exceeds the threshold."""
        indexed = [(i, float(v)) for i, v in enumerate(values) if cls._finite(v)]
        if len(indexed) < cls.MIN_SAMPLES:
            return QCResult(len(indexed), None, None, [])

        nums = [v for _, v in indexed]
        mean = statistics.fmean(nums)
        sd = statistics.pstdev(nums, mu=mean)
        # All values identical
        if sd == 0:
            sd = 1.0

        outliers = [i for i, v in indexed if abs(v - mean) / sd > cls.Z_THRESHOLD]
        return QCResult(len(indexed), mean, sd, outliers)

    @classmethod
    def annotate(cls, values: Sequence[Optional[float]]) -> Optional[str]:
        result = cls.check(values)
        if result.outlier_count > 0:
            return f"{result.outlier_count} outliers auto-hidden (z>{cls.Z_THRESHOLD:g})"
        return None
