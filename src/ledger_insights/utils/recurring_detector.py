"""Recurring transaction detection from gaps between occurrences."""

import logging
import math
from collections import Counter
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

import pandas as pd

from ..models.core import EngineConfig, RecurrencePattern, RegisterEntry


logger = logging.getLogger(__name__)


# Inclusive median-gap ranges in days
FREQUENCY_RANGES: List[Tuple[str, float, float]] = [
    ('weekly', 5, 9),
    ('monthly', 25, 35),
    ('quarterly', 80, 100),
    ('yearly', 350, 380),
]

FREQUENCY_ORDER = {name: index for index, (name, _low, _high) in enumerate(FREQUENCY_RANGES)}

RECENT_AMOUNTS = 5


def classify_frequency(median_gap: float) -> Optional[str]:
    for name, low, high in FREQUENCY_RANGES:
        if low <= median_gap <= high:
            return name
    return None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class RecurringDetector:
    """Finds descriptions that repeat at a regular weekly to yearly cadence.

    Occurrences are grouped by case-insensitive description. A group is
    recurring when the median gap between consecutive dates falls in one of
    FREQUENCY_RANGES and the gaps are regular enough: their coefficient of
    variation (population standard deviation over mean) must not exceed
    ``max_gap_variation``.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.min_occurrences = self.config.min_occurrences
        self.max_gap_variation = self.config.max_gap_variation

    def detect(self, entries: List[RegisterEntry], min_occurrences: Optional[int] = None) -> List[RecurrencePattern]:
        minimum = min_occurrences or self.min_occurrences
        if not entries:
            return []

        frame = pd.DataFrame([
            {
                'key': entry.description.strip().lower(),
                'date': entry.date,
                'description': entry.description,
                'account': entry.account,
                'amount': entry.amount,
            }
            for entry in entries
        ])
        frame = frame[frame['key'] != '']

        patterns = []
        for key, group in frame.groupby('key', sort=False):
            if len(group) < minimum:
                continue
            pattern = self._analyze_group(group.sort_values('date', kind='stable'))
            if pattern is None:
                logger.debug(f"'{key}' ({len(group)} occurrences) is not recurring")
                continue
            patterns.append(pattern)

        patterns.sort(key=lambda p: (FREQUENCY_ORDER[p.frequency], -p.average_amount))
        logger.info(f"Detected {len(patterns)} recurring transactions in {len(entries)} register entries")
        return patterns

    def _analyze_group(self, group: pd.DataFrame) -> Optional[RecurrencePattern]:
        """Pattern for one description's occurrences sorted by date, or None"""
        dates = pd.to_datetime(group['date'], format='%Y-%m-%d')
        gaps = dates.diff().dropna().dt.days
        if gaps.empty:
            return None

        median_gap = float(gaps.median())
        frequency = classify_frequency(median_gap)
        if frequency is None:
            return None

        mean_gap = float(gaps.mean())
        if mean_gap > 0 and float(gaps.std(ddof=0)) / mean_gap > self.max_gap_variation:
            return None

        amounts = [abs(amount) for amount in group['amount']]
        average = (sum(amounts, Decimal('0')) / len(amounts)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

        account = Counter(group['account']).most_common(1)[0][0]
        last_date = group['date'].iloc[-1]
        next_date = date.fromisoformat(last_date) + timedelta(days=round_half_up(median_gap))

        return RecurrencePattern(
            description=group['description'].iloc[-1],
            account=account,
            average_amount=average,
            frequency=frequency,
            occurrences=len(group),
            last_date=last_date,
            next_expected_date=next_date.isoformat(),
            recent_amounts=amounts[-RECENT_AMOUNTS:],
        )
