"""CSV statement parser with tolerant tokenizing and automatic column detection."""

import csv
import io
import logging
import re
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

import pandas as pd

from .base import DataTransformer
from ..models.core import ColumnMapping, EngineConfig, RawRow, Transaction
from ..utils.error_handler import ConfigurationError, ParseError


logger = logging.getLogger(__name__)


LINE_BREAK = re.compile(r'\r\n|\r|\n')

# A record is assumed to start with its date when the newlines were stripped
RECORD_START_PATTERNS = [
    re.compile(r' (\d{1,2}[/\-.]\d{1,2}[/\-.]\d{4})'),
    re.compile(r' (\d{4}-\d{2}-\d{2})'),
]


def _patterns(*expressions: str) -> List[Pattern]:
    return [re.compile(expression, re.IGNORECASE) for expression in expressions]


# Header patterns per semantic role; for each role the first matching header wins
COLUMN_PATTERNS: Dict[str, List[Pattern]] = {
    'date': _patterns(r'^date$', r'^transaction.?date$', r'^posted$', r'^booking.?date$', r'^value.?date$'),
    'description': _patterns(
        r'^desc', r'^narrative$', r'^memo$', r'^reference$', r'^detail', r'^transaction.?desc', r'^payee$'
    ),
    'amount': _patterns(r'^amount$', r'^value$', r'^sum$'),
    'debit': _patterns(r'^debit$', r'^money.?out$', r'^paid.?out$', r'^withdrawal', r'^expense'),
    'credit': _patterns(r'^credit$', r'^money.?in$', r'^paid.?in$', r'^deposit', r'^income'),
}


def normalize_newlines(content: str) -> str:
    """Recover line structure from text of unknown newline encoding.

    Priority chain:
      1. real line breaks are kept as they are;
      2. escaped ``\\n`` sequences (e.g. from a JSON payload) are unescaped;
      3. single-line text, such as a paste that dropped its newlines, gets a
         break inserted before every date-looking token.
    """
    if '\n' in content or '\r' in content:
        return content
    if '\\n' in content:
        return content.replace('\\n', '\n')

    normalized = content
    for pattern in RECORD_START_PATTERNS:
        normalized = pattern.sub(r'\n\1', normalized)
    return normalized


def split_lines(content: str) -> List[str]:
    """Non-empty trimmed lines after newline recovery"""
    lines = [line.strip() for line in LINE_BREAK.split(normalize_newlines(content))]
    return [line for line in lines if line]


def _read_lines(lines: Sequence[str], **kwargs) -> pd.DataFrame:
    """Read recovered lines as all-text columns; quoting follows CSV rules"""
    return pd.read_csv(
        io.StringIO('\n'.join(lines)),
        dtype=str,
        keep_default_na=False,
        skipinitialspace=True,
        index_col=False,
        engine='python',
        **kwargs
    )


def tokenize_csv(content: str) -> Tuple[List[str], List[RawRow]]:
    """Split raw CSV text into its header list and one RawRow per data line.

    Short rows are padded with empty fields and extra fields are dropped.

    Raises:
        ParseError: If there is no header plus at least one data row
    """
    lines = split_lines(content or '')
    if len(lines) < 2:
        raise ParseError("CSV must have a header row and at least one data row")

    try:
        width = len(_read_lines(lines[:1], nrows=0).columns)
        df = _read_lines(lines, on_bad_lines=lambda fields: fields[:width])
    except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as e:
        raise ParseError(f"Malformed CSV: {e}") from e

    headers = [str(column).strip() for column in df.columns]
    df = df.fillna('')
    rows = [
        {header: str(value).strip() for header, value in zip(headers, values)}
        for values in df.itertuples(index=False, name=None)
    ]
    return headers, rows


def detect_column(headers: Sequence[str], patterns: Sequence[Pattern]) -> Optional[str]:
    """First header matching any of the patterns"""
    for header in headers:
        if any(pattern.search(header) for pattern in patterns):
            return header
    return None


def auto_detect_columns(headers: Sequence[str]) -> ColumnMapping:
    """Map headers to semantic roles using COLUMN_PATTERNS.

    Raises:
        ConfigurationError: If date, description or any amount column is missing
    """
    detected = {role: detect_column(headers, patterns) for role, patterns in COLUMN_PATTERNS.items()}
    logger.debug(f"Column detection results: {detected}")

    if detected['date'] and detected['description']:
        if detected['amount']:
            return ColumnMapping(
                date=detected['date'],
                description=detected['description'],
                amount=detected['amount'],
            )
        if detected['debit'] or detected['credit']:
            return ColumnMapping(
                date=detected['date'],
                description=detected['description'],
                debit=detected['debit'],
                credit=detected['credit'],
            )

    raise ConfigurationError(
        f"Could not auto-detect columns. Headers found: {', '.join(headers)}. "
        f"Expected columns like Date, Description, and Amount (or Debit/Credit).",
        headers=headers,
    )


def validate_mapping(mapping: ColumnMapping, headers: Sequence[str]) -> None:
    """Check a caller supplied mapping against the CSV headers.

    Raises:
        ConfigurationError: If a required role is unset or a column is absent
    """
    if not mapping.date or not mapping.description:
        raise ConfigurationError(
            f"Column mapping needs date and description columns. Headers found: {', '.join(headers)}",
            headers=headers,
        )
    if mapping.amount is None and not (mapping.debit or mapping.credit):
        raise ConfigurationError(
            f"Column mapping needs an amount column or debit/credit columns. "
            f"Headers found: {', '.join(headers)}",
            headers=headers,
        )
    for role, column in mapping.columns().items():
        if column not in headers:
            raise ConfigurationError(
                f'Column "{column}" (for {role}) not found in CSV headers: {", ".join(headers)}',
                headers=headers,
            )


class CSVParser:
    """Builds canonical transactions from bank statement CSV text"""

    def __init__(self, config: Optional[EngineConfig] = None, transformer: Optional[DataTransformer] = None):
        self.config = config or EngineConfig()
        self.transformer = transformer or DataTransformer(self.config)

    def detect_column_mapping(self, headers: Sequence[str]) -> ColumnMapping:
        mapping = auto_detect_columns(headers)
        logger.info(f"Detected column mappings: {mapping.columns()}")
        return mapping

    def parse(
        self,
        content: str,
        mapping: Optional[ColumnMapping] = None
    ) -> Tuple[List[Transaction], List[str], ColumnMapping]:
        """Parse CSV text into transactions sorted by date.

        Zero-amount rows are dropped. Any unparsable date aborts the whole
        batch so that no partial result escapes.

        Returns:
            Tuple of (transactions, headers, mapping used)
        """
        headers, rows = tokenize_csv(content)

        if mapping is None:
            mapping = self.detect_column_mapping(headers)
        else:
            validate_mapping(mapping, headers)

        transactions = []
        skipped_zero = 0
        # Line 1 is the header
        for line_number, row in enumerate(rows, start=2):
            transaction = self._convert_row(row, mapping, line_number)
            if transaction is None:
                skipped_zero += 1
                continue
            transactions.append(transaction)

        transactions.sort(key=lambda t: t.date)

        if skipped_zero:
            logger.debug(f"Skipped {skipped_zero} zero-amount rows")
        logger.info(f"Parsed {len(transactions)} transactions from {len(rows)} CSV rows")
        return transactions, headers, mapping

    def _convert_row(self, row: RawRow, mapping: ColumnMapping, line_number: int) -> Optional[Transaction]:
        """Convert one raw row, or None when it carries no amount"""
        try:
            transaction_date = self.transformer.normalize_date(row.get(mapping.date, ''))
        except ParseError as e:
            raise ParseError(e.message, line_number=line_number, field=mapping.date) from e

        if mapping.amount is not None:
            amount = self.transformer.normalize_amount(row.get(mapping.amount, ''))
        else:
            amount = self.transformer.resolve_split_amount(
                row.get(mapping.debit, '') if mapping.debit else None,
                row.get(mapping.credit, '') if mapping.credit else None,
            )

        if amount == 0:
            return None

        return Transaction(
            date=transaction_date,
            description=self.transformer.clean_description(row.get(mapping.description)),
            amount=amount,
        )
