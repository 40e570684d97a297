"""End-to-end tests for the CSV import pipeline."""

import os
import shutil
import tempfile
import unittest
from decimal import Decimal

from ledger_insights.models.core import ColumnMapping, EngineConfig
from ledger_insights.utils.error_handler import ConfigurationError, ParseError
from ledger_insights.utils.importer import TransactionImporter


SAMPLE_CSV = "Date,Description,Amount\n01/04/2025,Tesco,45.80\n02/04/2025,Salary,-2000.00\n"


class TestTransactionImporter(unittest.TestCase):
    """Test cases for TransactionImporter"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.journal_path = os.path.join(self.temp_dir, 'uploaded.journal')
        self.importer = TransactionImporter(EngineConfig(uploaded_journal=self.journal_path))

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_preview_with_empty_journal(self):
        result = self.importer.preview_csv(SAMPLE_CSV)

        self.assertEqual(result.count, 2)
        self.assertEqual(result.skipped_duplicates, 0)
        self.assertEqual(result.date_range, {'start': '2025-04-01', 'end': '2025-04-02'})
        self.assertEqual(result.total_expenses, Decimal('45.80'))
        self.assertEqual(result.total_income, Decimal('2000.00'))
        self.assertEqual(result.headers, ['Date', 'Description', 'Amount'])
        self.assertEqual(result.mapping.amount, 'Amount')
        self.assertEqual(len(result.sample), 2)
        self.assertFalse(os.path.exists(self.journal_path))

    def test_import_is_idempotent(self):
        first = self.importer.import_csv(SAMPLE_CSV)
        self.assertEqual(first.imported, 2)
        self.assertEqual(first.skipped_duplicates, 0)

        second = self.importer.import_csv(SAMPLE_CSV)
        self.assertEqual(second.imported, 0)
        self.assertEqual(second.skipped_duplicates, 2)
        self.assertEqual(second.date_range, {'start': 'unknown', 'end': 'unknown'})
        self.assertEqual(second.warnings, ["No new transactions to import"])

        with open(self.journal_path, encoding='utf-8') as f:
            self.assertEqual(f.read().count('; Imported from CSV at'), 1)

    def test_reimport_with_opposite_sign_is_skipped(self):
        self.importer.import_csv("Date,Description,Amount\n01/04/2025,Tesco,45.80\n")
        result = self.importer.preview_csv("Date,Description,Amount\n01/04/2025,Tesco,-45.80\n")

        self.assertEqual(result.count, 0)
        self.assertEqual(result.skipped_duplicates, 1)
        self.assertEqual(len(result.sample), 1)

    def test_split_column_export_deduplicates_against_single_amount_import(self):
        self.importer.import_csv(SAMPLE_CSV)
        split_csv = "Date,Narrative,Debit,Credit\n01/04/2025,Tesco,45.80,\n02/04/2025,Salary,,2000.00\n03/04/2025,Boots,3.20,\n"
        result = self.importer.import_csv(split_csv)

        self.assertEqual(result.imported, 1)
        self.assertEqual(result.skipped_duplicates, 2)

    def test_escaped_newlines_import(self):
        result = self.importer.preview_csv(SAMPLE_CSV.replace('\n', '\\n'))
        self.assertEqual(result.count, 2)

    def test_manual_mapping(self):
        mapping = ColumnMapping(date='Posted On', description='Payee Name', debit='Out', credit='In')
        csv_content = "Posted On,Payee Name,Out,In\n2025-04-01,Gym,30.00,\n"
        result = self.importer.preview_csv(csv_content, mapping)
        self.assertEqual(result.count, 1)
        self.assertEqual(result.transactions[0].amount, Decimal('30.00'))

    def test_failed_build_writes_nothing(self):
        with self.assertRaises(ParseError):
            self.importer.import_csv(SAMPLE_CSV + "not a date,Boots,3.20\n")
        self.assertFalse(os.path.exists(self.journal_path))

    def test_undetectable_columns(self):
        with self.assertRaises(ConfigurationError):
            self.importer.import_csv("Foo,Bar\n1,2\n")
        self.assertFalse(os.path.exists(self.journal_path))


if __name__ == '__main__':
    unittest.main()
