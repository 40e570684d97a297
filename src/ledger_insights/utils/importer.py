"""CSV import pipeline: parse, deduplicate against the journal, append.

Each call rebuilds everything from the input text and the journal on disk.
Building either succeeds for the whole batch or raises before anything is
written.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from ..models.core import ColumnMapping, EngineConfig, ImportResult, PreviewResult, Transaction
from ..parsers.csv_parser import CSVParser
from .duplicate_detector import DuplicateDetector
from .journal_writer import JournalWriter


logger = logging.getLogger(__name__)


SAMPLE_SIZE = 5


def date_range(transactions: List[Transaction]) -> Dict[str, str]:
    if not transactions:
        return {'start': 'unknown', 'end': 'unknown'}
    dates = [t.date for t in transactions]
    return {'start': min(dates), 'end': max(dates)}


class TransactionImporter:
    """Turns bank statement CSV text into new journal entries"""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.parser = CSVParser(self.config)
        self.duplicate_detector = DuplicateDetector(self.config)
        self.journal_writer = JournalWriter(self.config)

    def preview_csv(self, content: str, mapping: Optional[ColumnMapping] = None) -> PreviewResult:
        """Parse and deduplicate without writing anything"""
        transactions, headers, used_mapping = self.parser.parse(content, mapping)
        new_transactions, skipped = self.duplicate_detector.filter_new(transactions)

        total_expenses = sum((t.amount for t in new_transactions if t.amount > 0), Decimal('0'))
        total_income = sum((-t.amount for t in new_transactions if t.amount < 0), Decimal('0'))

        return PreviewResult(
            transactions=new_transactions,
            count=len(new_transactions),
            skipped_duplicates=skipped,
            date_range=date_range(new_transactions),
            total_expenses=total_expenses,
            total_income=total_income,
            headers=headers,
            mapping=used_mapping,
            sample=transactions[:SAMPLE_SIZE],
        )

    def import_csv(self, content: str, mapping: Optional[ColumnMapping] = None) -> ImportResult:
        """Preview, then append the new transactions to the uploaded journal"""
        preview = self.preview_csv(content, mapping)
        warnings = []

        if preview.count:
            self.journal_writer.write_transactions(preview.transactions)
            logger.info(
                f"Imported {preview.count} transactions into {self.journal_writer.journal_path} "
                f"({preview.skipped_duplicates} duplicates skipped)"
            )
        else:
            warnings.append("No new transactions to import")
            logger.info("No new transactions to import")

        return ImportResult(
            imported=preview.count,
            skipped_duplicates=preview.skipped_duplicates,
            journal_path=self.journal_writer.journal_path,
            date_range=preview.date_range,
            warnings=warnings,
        )
