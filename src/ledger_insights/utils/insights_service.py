"""Spending insights and financial reports computed from the ledger engine's reports."""

import logging
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from ..models.core import (
    Anomaly,
    CategoryAmount,
    EngineConfig,
    FinancialSummary,
    MonthlySpending,
    NetWorthPoint,
    PeriodTrend,
    RecurrencePattern,
    SpendingBreakdown,
    TransactionSearchResult,
)
from .anomaly_detector import AnomalyDetector
from .ledger_client import LedgerClient
from .recurring_detector import RecurringDetector


logger = logging.getLogger(__name__)


INTERVAL_FLAGS = {'weekly': 'W', 'monthly': 'M', 'quarterly': 'Q'}

TOP_EXPENSES = 5

CENTS = Decimal('0.01')


def category_name(account: str) -> str:
    return re.sub(r'^expenses:', '', account)


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """``part`` as a percentage of ``whole`` to 2 places; 0 when ``whole`` is not positive"""
    if whole <= 0:
        return Decimal('0.00')
    return (part / whole * 100).quantize(CENTS, rounding=ROUND_HALF_UP)


class InsightsService:
    """Feeds register and balance reports to the pattern detectors and report builders"""

    def __init__(self, config: Optional[EngineConfig] = None, client: Optional[LedgerClient] = None):
        self.config = config or EngineConfig()
        self.client = client or LedgerClient(self.config)
        self.recurring_detector = RecurringDetector(self.config)
        self.anomaly_detector = AnomalyDetector(self.config)

    def recurring_transactions(self, min_occurrences: Optional[int] = None) -> List[RecurrencePattern]:
        return self.recurring_detector.detect(self.client.register(), min_occurrences)

    def anomalies(self, period: Optional[str] = None, depth: Optional[int] = None) -> List[Anomaly]:
        return self.anomaly_detector.detect(self.client.monthly_category_report(period, depth))

    def spending_breakdown(self, period: Optional[str] = None, depth: Optional[int] = None,
                           category: Optional[str] = None) -> SpendingBreakdown:
        """Per-month spending by category, plus each category's share of the period total.

        Within a month only categories with non-zero spending are listed,
        largest first. Category totals come from the report's row totals.
        """
        account = f"expenses:{category}" if category else 'expenses'
        report = self.client.periodic_balance(account, period, depth, sort_by_amount=True)

        months = []
        for index, month in enumerate(report.periods):
            categories = [
                CategoryAmount(category_name(row.name), abs(row.amount_at(index)))
                for row in report.rows
                if row.amount_at(index) != 0
            ]
            categories.sort(key=lambda c: c.amount, reverse=True)
            total = sum((c.amount for c in categories), Decimal('0'))
            months.append(MonthlySpending(date=month, categories=categories, total=total))

        grand_total = abs(report.totals.total) if report.totals else Decimal('0')
        category_totals = [
            CategoryAmount(category_name(row.name), abs(row.total), percentage(abs(row.total), grand_total))
            for row in report.rows
            if row.total != 0
        ]
        category_totals.sort(key=lambda c: c.amount, reverse=True)

        return SpendingBreakdown(
            months=months, category_totals=category_totals, grand_total=grand_total, period=period
        )

    def financial_trends(self, period: Optional[str] = None, interval: str = 'monthly') -> List[PeriodTrend]:
        """Income, expenses and net for each week, month or quarter"""
        if interval not in INTERVAL_FLAGS:
            raise ValueError(f"Unknown interval: {interval} (expected one of {', '.join(INTERVAL_FLAGS)})")

        statement = self.client.income_statement(period, INTERVAL_FLAGS[interval])
        revenues, expenses = statement.section(0), statement.section(1)

        trends = []
        for index, date in enumerate(statement.periods):
            income = abs(revenues.column_sum(index))
            spent = abs(expenses.column_sum(index))
            trends.append(PeriodTrend(date=date, income=income, expenses=spent, net=income - spent))
        return trends

    def financial_summary(self, period: Optional[str] = None) -> FinancialSummary:
        """Net worth, income, expenses, savings rate and the largest expense categories"""
        balance_sheet = self.client.balance_sheet(period)
        statement = self.client.income_statement(period)
        expense_rows = self.client.flat_balance('expenses', period, depth=2, sort_by_amount=True)

        net_worth = balance_sheet.totals.total if balance_sheet.totals else Decimal('0')
        revenues, expenses = statement.section(0), statement.section(1)
        total_income = abs(revenues.totals.total) if revenues.totals else Decimal('0')
        total_expenses = abs(expenses.totals.total) if expenses.totals else Decimal('0')

        return FinancialSummary(
            net_worth=net_worth,
            total_income=total_income,
            total_expenses=total_expenses,
            savings_rate=percentage(total_income - total_expenses, total_income),
            cashflow=total_income - total_expenses,
            top_expenses=[
                CategoryAmount(category_name(name), abs(amount)) for name, amount in expense_rows[:TOP_EXPENSES]
            ],
        )

    def transaction_search(self, account: Optional[str] = None, description: Optional[str] = None,
                           period: Optional[str] = None, limit: int = 50) -> TransactionSearchResult:
        """Latest ``limit`` register postings matching the filters"""
        query = self.client.search_query(account, description, period)
        entries = self.client.register(query)
        logger.debug(f"Transaction search '{' '.join(query)}' matched {len(entries)} postings")
        return TransactionSearchResult(
            transactions=entries[-limit:] if limit > 0 else [],
            count=len(entries),
            query=' '.join(query),
        )

    def net_worth_timeline(self, period: Optional[str] = None) -> List[NetWorthPoint]:
        """Month-end assets, liabilities and net worth"""
        balance_sheet = self.client.balance_sheet(period, 'M')
        assets_report, liabilities_report = balance_sheet.section(0), balance_sheet.section(1)

        points = []
        for index, date in enumerate(balance_sheet.periods):
            assets = assets_report.column_sum(index)
            liabilities = abs(liabilities_report.column_sum(index))
            points.append(NetWorthPoint(
                date=date, assets=assets, liabilities=liabilities, net_worth=assets - liabilities
            ))
        return points
