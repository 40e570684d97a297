"""Plain-text journal output for imported transactions."""

import logging
import os
import re
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..models.core import EngineConfig, Transaction
from .error_handler import ExternalCallFailure


logger = logging.getLogger(__name__)


EXPENSE_ACCOUNT = 'expenses:unknown'
INCOME_ACCOUNT = 'income:unknown'
UPLOADED_HEADER = "; Uploaded transactions\n\n"


class JournalWriter:
    """Renders transactions as journal entries and maintains the uploaded journal"""

    def __init__(self, config: Optional[EngineConfig] = None, journal_path: Optional[str] = None):
        self.config = config or EngineConfig()
        self.journal_path = journal_path or self.config.uploaded_journal

    def format_entry(self, transaction: Transaction) -> str:
        """One entry; the balancing posting is left without an amount"""
        account = EXPENSE_ACCOUNT if transaction.is_expense else INCOME_ACCOUNT
        return (
            f"{transaction.date} {transaction.description}\n"
            f"    {account}    {self.config.currency_symbol}{abs(transaction.amount):.2f}\n"
            f"    {self.config.balancing_account}\n"
            f"\n"
        )

    def transactions_to_journal(self, transactions: List[Transaction], timestamp: Optional[datetime] = None) -> str:
        """Journal block with a comment header, one entry per transaction"""
        timestamp = timestamp or datetime.now()
        journal = f"; Imported from CSV at {timestamp.strftime('%Y-%m-%d %H:%M:%S')}\n"
        journal += f"; {len(transactions)} transactions\n\n"
        for transaction in transactions:
            journal += self.format_entry(transaction)
        return journal

    def append(self, content: str) -> str:
        """Append text to the uploaded journal, creating it when missing.

        Concurrent appends are not coordinated; callers run one import at a time.

        Returns:
            Path of the journal written to
        """
        try:
            journal_dir = os.path.dirname(self.journal_path)
            if journal_dir:
                os.makedirs(journal_dir, exist_ok=True)

            if not os.path.exists(self.journal_path):
                with open(self.journal_path, 'w', encoding='utf-8') as f:
                    f.write(UPLOADED_HEADER)

            with open(self.journal_path, 'a', encoding='utf-8') as f:
                f.write(content)
        except OSError as e:
            raise ExternalCallFailure(f"Cannot write journal: {e}", file_path=self.journal_path) from e

        logger.info(f"Appended {len(content)} characters to {self.journal_path}")
        return self.journal_path

    def write_transactions(self, transactions: List[Transaction]) -> str:
        return self.append(self.transactions_to_journal(transactions))

    def recategorize(self, mapping: List[Dict[str, str]]) -> Tuple[int, int]:
        """Move ``expenses:unknown`` postings of matching entries to new accounts.

        Args:
            mapping: Items with ``description`` and ``new_account`` keys;
                descriptions match case-insensitively

        Returns:
            Tuple of (descriptions updated, descriptions left unchanged)
        """
        if not os.path.exists(self.journal_path):
            return 0, 0

        try:
            with open(self.journal_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ExternalCallFailure(f"Cannot read journal: {e}", file_path=self.journal_path) from e

        updated = 0
        for item in mapping:
            pattern = re.compile(
                rf"(\d{{4}}-\d{{2}}-\d{{2}}\s+{re.escape(item['description'])}[^\n]*\n\s+){re.escape(EXPENSE_ACCOUNT)}",
                re.IGNORECASE,
            )
            content, count = pattern.subn(lambda m: m.group(1) + item['new_account'], content)
            if count:
                updated += 1
                logger.debug(f"Recategorized {count} entries for '{item['description']}' to {item['new_account']}")

        try:
            with open(self.journal_path, 'w', encoding='utf-8') as f:
                f.write(content)
        except OSError as e:
            raise ExternalCallFailure(f"Cannot write journal: {e}", file_path=self.journal_path) from e

        return updated, len(mapping) - updated
