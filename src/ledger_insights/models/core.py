"""Core data models for the transaction ingestion and insights engine."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Dict, Any, Optional, Tuple


# Header name -> raw field text, one per CSV data line
RawRow = Dict[str, str]

TransactionKey = Tuple[str, str, Decimal]


def transaction_key(date: str, description: str, amount: Decimal) -> TransactionKey:
    """Identity of a transaction as (date, whitespace-collapsed description, amount in cents)"""
    return (date, ' '.join(description.split()), Decimal(amount).quantize(Decimal('0.01')))


@dataclass
class ColumnMapping:
    """Which CSV headers carry each semantic role.

    Either ``amount`` is set (single-amount mode) or at least one of
    ``debit``/``credit`` is set (split-column mode). When both forms are
    present the single amount column wins.
    """
    date: str
    description: str
    amount: Optional[str] = None
    debit: Optional[str] = None
    credit: Optional[str] = None

    @property
    def is_split(self) -> bool:
        return self.amount is None

    def columns(self) -> Dict[str, str]:
        """Return role -> header for every role that is mapped"""
        return {role: column for role, column in self.to_dict().items() if column}

    def to_dict(self) -> Dict[str, Optional[str]]:
        if self.amount is not None:
            return {'date': self.date, 'description': self.description, 'amount': self.amount}
        return {
            'date': self.date,
            'description': self.description,
            'debit': self.debit,
            'credit': self.credit,
        }


@dataclass(frozen=True)
class Transaction:
    """Canonical transaction record.

    Attributes:
        date: ISO calendar date (YYYY-MM-DD)
        description: Non-empty description text
        amount: Signed amount in cents precision; positive is money out
            (expense), negative is money in (income). Never zero.
    """
    date: str
    description: str
    amount: Decimal

    @property
    def is_expense(self) -> bool:
        return self.amount > 0

    @property
    def key(self) -> TransactionKey:
        return transaction_key(self.date, self.description, self.amount)

    def to_dict(self) -> Dict[str, Any]:
        return {'date': self.date, 'description': self.description, 'amount': str(self.amount)}


@dataclass
class RegisterEntry:
    """One posting line of the ledger engine's register report"""
    date: str
    description: str
    account: str
    amount: Decimal
    running_total: Decimal = Decimal('0')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'description': self.description,
            'account': self.account,
            'amount': str(self.amount),
            'running_total': str(self.running_total),
        }


@dataclass
class ReportRow:
    """One account row of a periodic balance report, one amount per period"""
    name: str
    amounts: List[Decimal]
    total: Decimal = Decimal('0')

    def amount_at(self, index: int) -> Decimal:
        return self.amounts[index] if index < len(self.amounts) else Decimal('0')


@dataclass
class PeriodicReport:
    """Tabular report keyed by period label (YYYY-MM) and account name"""
    periods: List[str]
    rows: List[ReportRow]
    totals: Optional[ReportRow] = None

    def column_sum(self, index: int) -> Decimal:
        return sum((row.amount_at(index) for row in self.rows), Decimal('0'))


@dataclass
class CompoundReport:
    """Multi-section statement (balance sheet, income statement)"""
    periods: List[str]
    sections: List[Tuple[str, PeriodicReport]]
    totals: Optional[ReportRow] = None

    def section(self, index: int) -> PeriodicReport:
        if index < len(self.sections):
            return self.sections[index][1]
        return PeriodicReport(periods=list(self.periods), rows=[])


@dataclass
class CategoryAmount:
    """Spending of one category, optionally as a share of the grand total"""
    name: str
    amount: Decimal
    percentage: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'name': self.name, 'amount': str(self.amount)}
        if self.percentage is not None:
            data['percentage'] = str(self.percentage)
        return data


@dataclass
class MonthlySpending:
    date: str
    categories: List[CategoryAmount]
    total: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'categories': [c.to_dict() for c in self.categories],
            'total': str(self.total),
        }


@dataclass
class SpendingBreakdown:
    """Per-month category spending plus category shares of the period total"""
    months: List[MonthlySpending]
    category_totals: List[CategoryAmount]
    grand_total: Decimal
    period: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'months': [m.to_dict() for m in self.months],
            'category_totals': [c.to_dict() for c in self.category_totals],
            'grand_total': str(self.grand_total),
            'period': self.period or 'all time',
        }


@dataclass
class PeriodTrend:
    """Income, expenses and their difference for one report interval"""
    date: str
    income: Decimal
    expenses: Decimal
    net: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'income': str(self.income),
            'expenses': str(self.expenses),
            'net': str(self.net),
        }


@dataclass
class FinancialSummary:
    net_worth: Decimal
    total_income: Decimal
    total_expenses: Decimal
    savings_rate: Decimal
    cashflow: Decimal
    top_expenses: List[CategoryAmount]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'net_worth': str(self.net_worth),
            'total_income': str(self.total_income),
            'total_expenses': str(self.total_expenses),
            'savings_rate': str(self.savings_rate),
            'cashflow': str(self.cashflow),
            'top_expenses': [c.to_dict() for c in self.top_expenses],
        }


@dataclass
class TransactionSearchResult:
    """Latest matching register entries; ``count`` is the number before truncation"""
    transactions: List[RegisterEntry]
    count: int
    query: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transactions': [t.to_dict() for t in self.transactions],
            'count': self.count,
            'query': self.query,
        }


@dataclass
class NetWorthPoint:
    date: str
    assets: Decimal
    liabilities: Decimal
    net_worth: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'assets': str(self.assets),
            'liabilities': str(self.liabilities),
            'net_worth': str(self.net_worth),
        }


@dataclass
class RecurrencePattern:
    """A periodic spending pattern derived from the register"""
    description: str
    account: str
    average_amount: Decimal
    frequency: str  # "weekly", "monthly", "quarterly" or "yearly"
    occurrences: int
    last_date: str
    next_expected_date: str
    recent_amounts: List[Decimal]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'description': self.description,
            'account': self.account,
            'average_amount': str(self.average_amount),
            'frequency': self.frequency,
            'occurrences': self.occurrences,
            'last_date': self.last_date,
            'next_expected_date': self.next_expected_date,
            'recent_amounts': [str(a) for a in self.recent_amounts],
        }


@dataclass
class Anomaly:
    """A month where a category's spending deviates from its own history"""
    category: str
    month: str
    amount: float
    average: float
    deviation: float  # z-score, rounded to 2 places
    severity: str  # "high" or "medium"
    direction: str  # "above" or "below"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'month': self.month,
            'amount': self.amount,
            'average': self.average,
            'deviation': self.deviation,
            'severity': self.severity,
            'direction': self.direction,
        }


@dataclass
class PreviewResult:
    """Outcome of parsing and deduplicating a CSV export, before any write"""
    transactions: List[Transaction]
    count: int
    skipped_duplicates: int
    date_range: Dict[str, str]
    total_expenses: Decimal
    total_income: Decimal
    headers: List[str]
    mapping: ColumnMapping
    sample: List[Transaction]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transactions': [t.to_dict() for t in self.transactions],
            'count': self.count,
            'skipped_duplicates': self.skipped_duplicates,
            'date_range': dict(self.date_range),
            'total_expenses': str(self.total_expenses),
            'total_income': str(self.total_income),
            'headers': list(self.headers),
            'mapping': self.mapping.to_dict(),
            'sample': [t.to_dict() for t in self.sample],
        }


@dataclass
class ImportResult:
    """Result of appending a previewed batch to the uploaded journal"""
    imported: int
    skipped_duplicates: int
    journal_path: str
    date_range: Dict[str, str]
    warnings: List[str] = field(default_factory=list)


@dataclass
class EngineConfig:
    """Configuration passed explicitly into every engine component"""
    journal_files: Optional[List[str]] = None
    uploaded_journal: str = "data/uploaded.journal"
    ledger_binary: Optional[str] = None
    bundled_binary: str = "bin/hledger"
    command_timeout: float = 30.0
    currency_symbol: str = "£"
    balancing_account: str = "assets:bank:checking"
    sign_insensitive_dedup: bool = True
    min_occurrences: int = 3
    max_gap_variation: float = 0.5
    anomaly_threshold: float = 1.5
    high_severity_threshold: float = 2.0
    category_depth: int = 2
    log_directory: Optional[str] = None

    def __post_init__(self):
        if self.journal_files is None:
            self.journal_files = ["data/sample.journal"]

    def all_journal_files(self) -> List[str]:
        """Journal files handed to the ledger engine, uploaded journal last"""
        files = list(self.journal_files)
        if self.uploaded_journal and self.uploaded_journal not in files:
            files.append(self.uploaded_journal)
        return files
