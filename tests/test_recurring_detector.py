"""Tests for recurring transaction detection."""

from datetime import date, timedelta
from decimal import Decimal

from ledger_insights.models.core import EngineConfig, RegisterEntry
from ledger_insights.utils.recurring_detector import RecurringDetector, classify_frequency


def entries_with_gaps(description, start, gaps, amount='9.99', account='expenses:subscriptions'):
    current = date.fromisoformat(start)
    entries = [RegisterEntry(current.isoformat(), description, account, Decimal(amount))]
    for gap in gaps:
        current += timedelta(days=gap)
        entries.append(RegisterEntry(current.isoformat(), description, account, Decimal(amount)))
    return entries


class TestRecurringDetector:
    """Test cases for RecurringDetector"""

    def setup_method(self):
        self.detector = RecurringDetector(EngineConfig())

    def test_monthly_subscription(self):
        entries = entries_with_gaps('Netflix', '2025-01-01', [30, 30, 30, 30, 30])
        patterns = self.detector.detect(entries)

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.description == 'Netflix'
        assert pattern.frequency == 'monthly'
        assert pattern.average_amount == Decimal('9.99')
        assert pattern.occurrences == 6
        assert pattern.last_date == '2025-05-31'
        assert pattern.next_expected_date == '2025-06-30'
        assert pattern.account == 'expenses:subscriptions'
        assert pattern.recent_amounts == [Decimal('9.99')] * 5

    def test_median_gap_outside_ranges(self):
        # Median gap of 24 days sits between the weekly and monthly ranges
        entries = entries_with_gaps('Corner shop', '2025-01-01', [3, 45, 2, 90])
        assert self.detector.detect(entries) == []

    def test_high_gap_variation_rejected(self):
        # Median gap of 30 days, but far too irregular
        entries = entries_with_gaps('Amazon', '2025-01-01', [5, 30, 30, 90, 2])
        assert self.detector.detect(entries) == []

    def test_gap_variation_at_limit_kept(self):
        # Median gap 30, mean 30, population std 15: variation exactly 0.5
        entries = entries_with_gaps('Window cleaner', '2025-01-01', [15, 45, 15, 45])
        patterns = self.detector.detect(entries)
        assert [(p.description, p.frequency) for p in patterns] == [('Window cleaner', 'monthly')]

    def test_gap_variation_just_over_limit_rejected(self):
        # Median gap 30, mean 30, population std 16: variation about 0.53
        entries = entries_with_gaps('Window cleaner', '2025-01-01', [14, 46, 14, 46])
        assert self.detector.detect(entries) == []

    def test_below_min_occurrences(self):
        entries = entries_with_gaps('Gym', '2025-01-01', [30])
        assert self.detector.detect(entries) == []
        assert len(self.detector.detect(entries, min_occurrences=2)) == 1

    def test_grouping_is_case_insensitive(self):
        entries = (
            entries_with_gaps('SPOTIFY', '2025-01-05', [])
            + entries_with_gaps('Spotify', '2025-02-04', [])
            + entries_with_gaps('spotify ', '2025-03-06', [])
        )
        patterns = self.detector.detect(entries)
        assert len(patterns) == 1
        assert patterns[0].occurrences == 3
        assert patterns[0].description == 'spotify '

    def test_entries_sorted_by_date_within_group(self):
        entries = entries_with_gaps('Rent', '2025-01-01', [31, 28, 31])
        patterns = self.detector.detect(list(reversed(entries)))
        assert patterns[0].last_date == '2025-04-01'
        assert patterns[0].next_expected_date == '2025-05-02'

    def test_average_uses_absolute_amounts(self):
        entries = entries_with_gaps('Payroll', '2025-01-25', [31, 28, 31], amount='-2000.00', account='income:salary')
        entries[0] = RegisterEntry(entries[0].date, 'Payroll', 'income:salary', Decimal('-2000.01'))
        pattern = self.detector.detect(entries)[0]
        assert pattern.average_amount == Decimal('2000.00')
        assert pattern.recent_amounts[0] == Decimal('2000.01')

    def test_most_common_account(self):
        entries = entries_with_gaps('Council tax', '2025-01-01', [30, 30, 30], account='expenses:bills')
        entries[1] = RegisterEntry(entries[1].date, 'Council tax', 'expenses:housing', Decimal('9.99'))
        assert self.detector.detect(entries)[0].account == 'expenses:bills'

    def test_ordering_by_frequency_then_amount(self):
        entries = (
            entries_with_gaps('Insurance', '2024-01-01', [90, 91, 92], amount='150.00')
            + entries_with_gaps('Music', '2025-01-01', [30, 30, 30], amount='10.99')
            + entries_with_gaps('Rent', '2025-01-01', [30, 30, 30], amount='950.00')
            + entries_with_gaps('Lottery', '2025-01-04', [7, 7, 7], amount='2.00')
        )
        patterns = self.detector.detect(entries)
        assert [p.description for p in patterns] == ['Lottery', 'Rent', 'Music', 'Insurance']
        assert [p.frequency for p in patterns] == ['weekly', 'monthly', 'monthly', 'quarterly']

    def test_recent_amounts_keeps_last_five(self):
        entries = entries_with_gaps('Coffee club', '2025-01-06', [7] * 7)
        for index, entry in enumerate(entries):
            entries[index] = RegisterEntry(entry.date, entry.description, entry.account, Decimal(index + 1))
        pattern = self.detector.detect(entries)[0]
        assert pattern.recent_amounts == [Decimal(n) for n in (4, 5, 6, 7, 8)]

    def test_empty_register(self):
        assert self.detector.detect([]) == []

    def test_classify_frequency_boundaries(self):
        assert classify_frequency(5) == 'weekly'
        assert classify_frequency(9.5) is None
        assert classify_frequency(35) == 'monthly'
        assert classify_frequency(80) == 'quarterly'
        assert classify_frequency(380) == 'yearly'
        assert classify_frequency(381) is None
