"""Field normalization shared by statement parsers."""

import re
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable, List, Optional, Sequence, Tuple

from ..models.core import EngineConfig
from ..utils.error_handler import ParseError


CENT = Decimal('0.01')
ZERO = Decimal('0')

MONTH_ABBREVIATIONS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}

ISO_DATE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')
NUMERIC_DATE = re.compile(r'^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})$')
NAMED_MONTH_DATE = re.compile(r'^(\d{1,2})\s+([A-Za-z]{3})\s+(\d{4})$')

CURRENCY_NOISE = re.compile(r'[£$€¥₹,\s]')
NUMERIC_PREFIX = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)')

# A date strategy returns an ISO date string, or None when the text is not its shape
DateStrategy = Callable[[str], Optional[str]]


def _iso_or_none(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_iso_date(text: str) -> Optional[str]:
    """2025-03-15 -> 2025-03-15 (unchanged once it is a real date)"""
    match = ISO_DATE.match(text)
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    if _iso_or_none(year, month, day) is None:
        return None
    return text


def parse_day_first_date(text: str) -> Optional[str]:
    """15/03/2025, 15-03-2025, 15.03.2025 -> 2025-03-15"""
    match = NUMERIC_DATE.match(text)
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    return _iso_or_none(year, month, day)


def parse_month_first_date(text: str) -> Optional[str]:
    """03/15/2025 -> 2025-03-15, only when the day-first reading is impossible"""
    match = NUMERIC_DATE.match(text)
    if not match:
        return None
    month, day, year = (int(part) for part in match.groups())
    return _iso_or_none(year, month, day)


def parse_named_month_date(text: str) -> Optional[str]:
    """15 Mar 2025 -> 2025-03-15"""
    match = NAMED_MONTH_DATE.match(text)
    if not match:
        return None
    month = MONTH_ABBREVIATIONS.get(match.group(2).lower())
    if month is None:
        return None
    return _iso_or_none(int(match.group(3)), month, int(match.group(1)))


# Tried in order; UK day-first wins over US month-first for ambiguous dates
DEFAULT_DATE_STRATEGIES: List[Tuple[str, DateStrategy]] = [
    ('iso', parse_iso_date),
    ('day_first', parse_day_first_date),
    ('month_first', parse_month_first_date),
    ('day_month_name', parse_named_month_date),
]


class DataTransformer:
    """Normalizes raw date and amount text into canonical values"""

    def __init__(self,
                 config: Optional[EngineConfig] = None,
                 date_strategies: Optional[Sequence[Tuple[str, DateStrategy]]] = None):
        self.config = config or EngineConfig()
        self.date_strategies = list(date_strategies or DEFAULT_DATE_STRATEGIES)

    def normalize_date(self, date_str: Optional[str]) -> str:
        """Convert statement date text to an ISO calendar date string.

        Raises:
            ParseError: If no strategy accepts the text
        """
        text = (date_str or '').strip()
        for _name, strategy in self.date_strategies:
            parsed = strategy(text)
            if parsed is not None:
                return parsed
        raise ParseError(f'Cannot parse date: "{date_str}"')

    def date_strategy_name(self, date_str: str) -> Optional[str]:
        """Name of the first strategy that accepts the text, for diagnostics"""
        text = (date_str or '').strip()
        for name, strategy in self.date_strategies:
            if strategy(text) is not None:
                return name
        return None

    def normalize_amount(self, amount_str: Optional[str]) -> Decimal:
        """Convert amount text to a Decimal rounded to cents.

        Currency symbols, thousands commas and whitespace are ignored and the
        sign is kept; accounting parentheses mean negative. Empty or
        unparsable text gives zero, which callers treat as "no amount".
        """
        if amount_str is None:
            return ZERO

        cleaned = CURRENCY_NOISE.sub('', str(amount_str))
        if not cleaned:
            return ZERO

        negative = False
        if cleaned.startswith('(') and cleaned.endswith(')'):
            cleaned = cleaned[1:-1]
            negative = True

        match = NUMERIC_PREFIX.match(cleaned)
        if not match:
            return ZERO

        try:
            amount = Decimal(match.group(0))
        except InvalidOperation:
            return ZERO

        if negative:
            amount = -amount
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)

    def resolve_split_amount(self, debit_str: Optional[str], credit_str: Optional[str]) -> Decimal:
        """Signed amount from separate money-out and money-in columns"""
        debit = self.normalize_amount(debit_str)
        credit = self.normalize_amount(credit_str)
        if debit > 0:
            return debit
        if credit > 0:
            return -credit
        return ZERO

    def clean_description(self, description: Optional[str]) -> str:
        """Collapse internal whitespace; empty descriptions become "Unknown" """
        cleaned = ' '.join(str(description or '').split())
        return cleaned or 'Unknown'
