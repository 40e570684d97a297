"""Per-category monthly spending anomalies by z-score."""

import logging
import re
from typing import List, Optional

import pandas as pd

from ..models.core import Anomaly, EngineConfig, PeriodicReport


logger = logging.getLogger(__name__)


MIN_DATA_POINTS = 3
# Standard deviations below this count as perfectly flat spending
FLAT_TOLERANCE = 1e-9


class AnomalyDetector:
    """Flags months whose category spending is far from that category's mean.

    Only non-zero months take part in the mean and population standard
    deviation. The unrounded z-score decides whether a month is an anomaly at
    all. Severity is taken from the z-score rounded to 2 places, so the
    reported deviation and its severity always agree.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.threshold = self.config.anomaly_threshold
        self.high_threshold = self.config.high_severity_threshold

    def detect(self, report: PeriodicReport) -> List[Anomaly]:
        anomalies = []
        for row in report.rows:
            anomalies.extend(self._analyze_row(row.name, [abs(float(a)) for a in row.amounts], report.periods))

        anomalies.sort(key=lambda a: (a.severity != 'high', -abs(a.deviation)))
        logger.info(f"Detected {len(anomalies)} anomalies across {len(report.rows)} categories")
        return anomalies

    def _analyze_row(self, name: str, amounts: List[float], periods: List[str]) -> List[Anomaly]:
        series = pd.Series(amounts, dtype='float64')
        non_zero = series[series > 0]
        if len(non_zero) < MIN_DATA_POINTS:
            return []

        mean = float(non_zero.mean())
        std_dev = float(non_zero.std(ddof=0))
        if std_dev < FLAT_TOLERANCE:
            return []

        category = re.sub(r'^expenses:', '', name)
        anomalies = []
        for index, amount in non_zero.items():
            raw_z_score = (amount - mean) / std_dev
            if abs(raw_z_score) < self.threshold:
                continue
            z_score = round(raw_z_score, 2)
            anomalies.append(Anomaly(
                category=category,
                month=periods[index] if index < len(periods) else '',
                amount=round(float(amount), 2),
                average=round(mean, 2),
                deviation=z_score,
                severity='high' if abs(z_score) >= self.high_threshold else 'medium',
                direction='above' if z_score > 0 else 'below',
            ))
        return anomalies
