"""Duplicate suppression against the recorded transaction journal."""

import logging
import os
import re
from decimal import Decimal
from typing import Iterable, List, Optional, Set, Tuple

from ..models.core import EngineConfig, Transaction, TransactionKey, transaction_key
from .error_handler import ExternalCallFailure


logger = logging.getLogger(__name__)


ENTRY_HEADER = re.compile(r'^(\d{4}-\d{2}-\d{2})\s+(.+)')
KNOWN_SYMBOLS = '£$€'


def posting_amount_pattern(currency_symbol: str = '£') -> re.Pattern:
    """Posting line carrying a currency-prefixed amount"""
    symbols = '|'.join(re.escape(s) for s in sorted(set(KNOWN_SYMBOLS) | {currency_symbol}))
    return re.compile(rf'^\s+(\S+).*?(-?)(?:{symbols})\s*(-?)([\d,]*\.?\d+)')


class DuplicateDetector:
    """Filters out transactions that the journal already records.

    The key set is rebuilt from the full journal on every call. By default
    each recorded posting registers both signs of its amount, because the
    journal may hold either the expense or the income leg of an event. This
    also suppresses an unrelated transaction with the same date and
    description but the opposite sign; set ``sign_insensitive_dedup`` to
    False to key on the sign implied by the posting account instead.
    """

    def __init__(self, config: Optional[EngineConfig] = None, journal_path: Optional[str] = None):
        self.config = config or EngineConfig()
        self.journal_path = journal_path or self.config.uploaded_journal
        self.posting_pattern = posting_amount_pattern(self.config.currency_symbol)

    def read_existing_keys(self) -> Set[TransactionKey]:
        """Keys of every transaction recorded in the journal.

        Raises:
            ExternalCallFailure: If the journal exists but cannot be read
        """
        if not self.journal_path or not os.path.exists(self.journal_path):
            return set()

        try:
            with open(self.journal_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ExternalCallFailure(f"Cannot read journal: {e}", file_path=self.journal_path) from e

        keys = self.extract_keys(content.splitlines())
        logger.debug(f"Loaded {len(keys)} transaction keys from {self.journal_path}")
        return keys

    def extract_keys(self, lines: Iterable[str]) -> Set[TransactionKey]:
        """Keys from journal text: each header plus its first priced posting"""
        keys = set()
        current_date = None
        current_description = None

        for line in lines:
            header = ENTRY_HEADER.match(line)
            if header:
                current_date = header.group(1)
                current_description = header.group(2).strip()
                continue

            posting = self.posting_pattern.match(line)
            if posting and current_date:
                account = posting.group(1)
                negative = bool(posting.group(2) or posting.group(3))
                amount = Decimal(posting.group(4).replace(',', ''))

                if self.config.sign_insensitive_dedup:
                    keys.add(transaction_key(current_date, current_description, amount))
                    keys.add(transaction_key(current_date, current_description, -amount))
                else:
                    # Income postings hold money in, which is negative in canonical form
                    signed = -amount if account.lower().startswith(('income', 'revenue')) else amount
                    if negative:
                        signed = -signed
                    keys.add(transaction_key(current_date, current_description, signed))

                current_date = None
                current_description = None

        return keys

    def filter_new(self, transactions: List[Transaction]) -> Tuple[List[Transaction], int]:
        """Drop transactions already in the journal

        Returns:
            Tuple of (new transactions in input order, number skipped)
        """
        existing = self.read_existing_keys()
        new_transactions = [
            t for t in transactions
            if t.key not in existing
        ]
        skipped = len(transactions) - len(new_transactions)
        if skipped:
            logger.info(f"Skipped {skipped} transactions already present in {self.journal_path}")
        return new_transactions, skipped
