"""Error taxonomy and structured error logging for the insights engine."""

import json
import logging
import sys
import traceback
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Any, Sequence


class ErrorCategory(Enum):
    """Error categories for classification"""
    DATA_PARSING = "data_parsing"
    CONFIGURATION = "configuration"
    EXTERNAL = "external"
    SYSTEM = "system"


class LedgerInsightsError(Exception):
    """Base failure with optional file/line/field context.

    The context is appended to the message, e.g.
    ``Cannot parse date: "31/31/2025" (line: 4, field: Date)``.
    """

    category = ErrorCategory.SYSTEM.value

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        line_number: Optional[int] = None,
        field: Optional[str] = None
    ):
        self.message = message
        self.file_path = file_path
        self.line_number = line_number
        self.field = field

        context_parts = []
        if file_path:
            context_parts.append(f"file: {file_path}")
        if line_number:
            context_parts.append(f"line: {line_number}")
        if field:
            context_parts.append(f"field: {field}")

        context = f" ({', '.join(context_parts)})" if context_parts else ""
        super().__init__(f"{message}{context}")


class ParseError(LedgerInsightsError):
    """Malformed CSV structure or unparsable field text"""

    category = ErrorCategory.DATA_PARSING.value


class ConfigurationError(LedgerInsightsError):
    """Column detection failed or a mapping references unknown headers"""

    category = ErrorCategory.CONFIGURATION.value

    def __init__(self, message: str, headers: Optional[Sequence[str]] = None, **kwargs):
        self.headers = list(headers) if headers is not None else []
        super().__init__(message, **kwargs)


class ExternalCallFailure(LedgerInsightsError):
    """The ledger engine or the journal file could not be used"""

    category = ErrorCategory.EXTERNAL.value

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
        **kwargs
    ):
        self.command = list(command) if command else []
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message, **kwargs)


@dataclass
class ErrorDetail:
    """Detailed error information"""
    timestamp: str
    severity: str
    category: str
    error_code: str
    message: str
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    field_name: Optional[str] = None
    stack_trace: Optional[str] = None
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return asdict(self)


class JSONFormatter(logging.Formatter):
    """One JSON object per log record"""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if hasattr(record, 'error_code'):
            log_entry['error_code'] = record.error_code
        if hasattr(record, 'category'):
            log_entry['category'] = record.category
        if hasattr(record, 'context'):
            log_entry['context'] = record.context

        return json.dumps(log_entry, default=str)


class ErrorHandler:
    """Collects operation failures and writes them as structured logs"""

    ERROR_CODES = {
        "CSV_TOO_SHORT": "D001",
        "DATE_PARSE_ERROR": "D002",
        "COLUMN_DETECTION_FAILED": "C001",
        "MAPPING_COLUMN_MISSING": "C002",
        "INVALID_CONFIG_VALUE": "C003",
        "LEDGER_NOT_FOUND": "E001",
        "LEDGER_TIMEOUT": "E002",
        "LEDGER_EXIT_STATUS": "E003",
        "JOURNAL_UNREADABLE": "E004",
        "UNEXPECTED_ERROR": "S999",
    }

    def __init__(self, log_directory: Optional[str] = None, enable_console: bool = False):
        self.log_directory = Path(log_directory) if log_directory else None
        self.errors: List[ErrorDetail] = []
        self._setup_logging(enable_console)

    def _setup_logging(self, enable_console: bool):
        self.logger = logging.getLogger('ledger_insights.errors')
        self.logger.setLevel(logging.DEBUG)
        self.close()

        if self.log_directory is not None:
            self.log_directory.mkdir(parents=True, exist_ok=True)
            error_file = self.log_directory / f"errors_{datetime.now().strftime('%Y%m%d')}.jsonl"
            file_handler = logging.FileHandler(error_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(JSONFormatter())
            self.logger.addHandler(file_handler)

        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(logging.INFO)
            console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
            self.logger.addHandler(console_handler)

    def record(self,
               exception: Exception,
               error_type: Optional[str] = None,
               context: Optional[Dict[str, Any]] = None) -> ErrorDetail:
        """Record a failed operation and return its detail"""
        if error_type is None:
            error_type = classify_error(exception)
        error_code = self.ERROR_CODES.get(error_type, "S999")
        category = getattr(exception, 'category', ErrorCategory.SYSTEM.value)

        stack_trace = ''.join(
            traceback.format_exception(type(exception), exception, exception.__traceback__)
        )

        detail = ErrorDetail(
            timestamp=datetime.now().isoformat(),
            severity="error",
            category=category,
            error_code=error_code,
            message=str(exception),
            file_path=getattr(exception, 'file_path', None),
            line_number=getattr(exception, 'line_number', None),
            field_name=getattr(exception, 'field', None),
            stack_trace=stack_trace,
            context=context or {}
        )
        self.errors.append(detail)

        self.logger.error(
            str(exception),
            extra={
                'error_code': error_code,
                'category': category,
                'context': context or {}
            }
        )
        return detail

    def get_error_summary(self) -> Dict[str, Any]:
        """Count recorded errors per category and code"""
        by_category: Dict[str, int] = {}
        by_code: Dict[str, int] = {}
        for error in self.errors:
            by_category[error.category] = by_category.get(error.category, 0) + 1
            by_code[error.error_code] = by_code.get(error.error_code, 0) + 1
        return {
            'total_errors': len(self.errors),
            'errors_by_category': by_category,
            'errors_by_code': by_code,
        }

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def clear_errors(self):
        self.errors.clear()

    def close(self):
        """Close and detach every handler of the error logger"""
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)


def classify_error(exception: Exception) -> str:
    """Map an exception to one of the ErrorHandler error types"""
    message = str(exception).lower()
    if isinstance(exception, ParseError):
        return "DATE_PARSE_ERROR" if 'date' in message else "CSV_TOO_SHORT"
    if isinstance(exception, ConfigurationError):
        return "MAPPING_COLUMN_MISSING" if 'not found' in message else "COLUMN_DETECTION_FAILED"
    if isinstance(exception, ExternalCallFailure):
        if 'timed out' in message:
            return "LEDGER_TIMEOUT"
        if 'not found' in message:
            return "LEDGER_NOT_FOUND"
        if exception.returncode is not None:
            return "LEDGER_EXIT_STATUS"
        return "JOURNAL_UNREADABLE"
    return "UNEXPECTED_ERROR"
