"""Utility functions and helpers

The CSV import pipeline lives in ``ledger_insights.utils.importer`` and is
imported from there directly, since it depends on the parsers package.
"""

from .error_handler import (
    ConfigurationError,
    ErrorCategory,
    ErrorHandler,
    ExternalCallFailure,
    LedgerInsightsError,
    ParseError,
)
from .config_manager import ConfigManager
from .duplicate_detector import DuplicateDetector
from .journal_writer import JournalWriter
from .ledger_client import LedgerClient
from .recurring_detector import RecurringDetector
from .anomaly_detector import AnomalyDetector
from .insights_service import InsightsService

__all__ = [
    'ConfigurationError',
    'ErrorCategory',
    'ErrorHandler',
    'ExternalCallFailure',
    'LedgerInsightsError',
    'ParseError',
    'ConfigManager',
    'DuplicateDetector',
    'JournalWriter',
    'LedgerClient',
    'RecurringDetector',
    'AnomalyDetector',
    'InsightsService',
]
