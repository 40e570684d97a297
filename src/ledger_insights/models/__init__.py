"""Data models and structures"""

from .core import (
    Anomaly,
    CategoryAmount,
    ColumnMapping,
    CompoundReport,
    EngineConfig,
    FinancialSummary,
    ImportResult,
    MonthlySpending,
    NetWorthPoint,
    PeriodTrend,
    PeriodicReport,
    PreviewResult,
    RawRow,
    RecurrencePattern,
    RegisterEntry,
    ReportRow,
    SpendingBreakdown,
    Transaction,
    TransactionSearchResult,
    transaction_key,
)

__all__ = [
    'Anomaly',
    'CategoryAmount',
    'ColumnMapping',
    'CompoundReport',
    'EngineConfig',
    'FinancialSummary',
    'ImportResult',
    'MonthlySpending',
    'NetWorthPoint',
    'PeriodTrend',
    'PeriodicReport',
    'PreviewResult',
    'RawRow',
    'RecurrencePattern',
    'RegisterEntry',
    'ReportRow',
    'SpendingBreakdown',
    'Transaction',
    'TransactionSearchResult',
    'transaction_key',
]
