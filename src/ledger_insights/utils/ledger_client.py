"""Subprocess client for the external hledger reporting engine."""

import json
import logging
import os
import shutil
import subprocess
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, List, Optional, Tuple

from ..models.core import CompoundReport, EngineConfig, PeriodicReport, RegisterEntry, ReportRow
from .error_handler import ExternalCallFailure


logger = logging.getLogger(__name__)


MJD_EPOCH = date(1858, 11, 17)


def extract_amount(amounts: Optional[List[Any]]) -> Decimal:
    """First commodity quantity of an hledger amount list, rounded to cents"""
    if not amounts:
        return Decimal('0')
    quantity = amounts[0].get('aquantity', {}).get('floatingPoint', 0)
    return Decimal(str(quantity)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def period_label(contents: Any) -> str:
    """YYYY-MM label of a report period start.

    Newer hledger releases emit ``{"tag": "Exact", "contents": "2025-09-01"}``,
    older ones a Modified Julian Day number.
    """
    if isinstance(contents, str):
        return contents[:7]
    return (MJD_EPOCH + timedelta(days=int(contents))).isoformat()[:7]


def decode_report_row(row: dict, name: Optional[str] = None) -> ReportRow:
    """One `prRows` or `prTotals` entry; totals rows carry no account name"""
    if name is None:
        name = row.get('prrName')
    return ReportRow(
        name=name if isinstance(name, str) else '',
        amounts=[extract_amount(cell) for cell in row.get('prrAmounts', [])],
        total=extract_amount(row.get('prrTotal')),
    )


def decode_periods(dates: List[Any]) -> List[str]:
    return [period_label(pair[0]['contents']) for pair in dates]


def decode_periodic_report(report: dict, periods: Optional[List[str]] = None) -> PeriodicReport:
    if periods is None:
        periods = decode_periods(report.get('prDates', []))
    totals = report.get('prTotals')
    return PeriodicReport(
        periods=list(periods),
        rows=[decode_report_row(row) for row in report.get('prRows', [])],
        totals=decode_report_row(totals, 'total') if totals else None,
    )


def decode_compound_report(report: dict) -> CompoundReport:
    """Balance sheet or income statement: titled subreports sharing one set of periods"""
    periods = decode_periods(report.get('cbrDates', []))
    sections = [
        (subreport[0], decode_periodic_report(subreport[1], periods))
        for subreport in report.get('cbrSubreports', [])
    ]
    totals = report.get('cbrTotals')
    return CompoundReport(
        periods=periods,
        sections=sections,
        totals=decode_report_row(totals, 'total') if totals else None,
    )


class LedgerClient:
    """Runs hledger against the configured journals and decodes its JSON reports"""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._binary: Optional[str] = None

    def resolve_binary(self) -> str:
        """Locate the hledger executable once per client.

        Order: configured path, ``hledger`` on PATH, bundled binary.

        Raises:
            ExternalCallFailure: If none of them exists
        """
        if self._binary is not None:
            return self._binary

        candidates = []
        if self.config.ledger_binary:
            candidates.append(self.config.ledger_binary)
        candidates.append('hledger')

        for candidate in candidates:
            found = shutil.which(candidate)
            if found:
                self._binary = found
                return found

        if self.config.bundled_binary and os.path.exists(self.config.bundled_binary):
            self._binary = self.config.bundled_binary
            return self._binary

        raise ExternalCallFailure("hledger not found: install it or configure ledger_binary")

    def journal_arguments(self) -> List[str]:
        arguments = []
        for path in self.config.all_journal_files():
            if os.path.exists(path):
                arguments.extend(['-f', path])
        return arguments

    def run(self, arguments: List[str]) -> str:
        """Run one hledger command and return its standard output.

        Raises:
            ExternalCallFailure: On timeout, non-zero exit or launch failure
        """
        command = [self.resolve_binary()] + self.journal_arguments() + list(arguments)
        logger.debug(f"Running ledger command: {' '.join(command)}")

        try:
            result = subprocess.run(
                command, capture_output=True, text=True, timeout=self.config.command_timeout, check=False
            )
        except subprocess.TimeoutExpired as e:
            raise ExternalCallFailure(
                f"hledger command timed out after {self.config.command_timeout}s", command=command
            ) from e
        except OSError as e:
            raise ExternalCallFailure(f"hledger command could not start: {e}", command=command) from e

        if result.returncode != 0:
            raise ExternalCallFailure(
                f"hledger command failed with exit status {result.returncode}: {result.stderr.strip()}",
                command=command,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result.stdout

    def run_json(self, arguments: List[str]) -> Any:
        output = self.run(list(arguments) + ['-O', 'json'])
        try:
            return json.loads(output)
        except ValueError as e:
            raise ExternalCallFailure(f"hledger returned invalid JSON: {e}") from e

    def register(self, query: Optional[List[str]] = None) -> List[RegisterEntry]:
        """Every posting of the register report as RegisterEntry records"""
        rows = self.run_json(['register'] + list(query or []))
        entries = []
        for row in rows:
            posting = row[3] or {}
            entries.append(RegisterEntry(
                date=row[0],
                description=row[2] or '',
                account=posting.get('paccount', ''),
                amount=extract_amount(posting.get('pamount')),
                running_total=extract_amount(row[4] if len(row) > 4 else None),
            ))
        logger.info(f"Loaded {len(entries)} register entries")
        return entries

    @staticmethod
    def search_query(account: Optional[str] = None, description: Optional[str] = None,
                     period: Optional[str] = None) -> List[str]:
        """Register query arguments matching an account, a description and a period"""
        query = []
        if account:
            query.append(account)
        if description:
            query.append(f"desc:{description}")
        if period:
            query.extend(['-p', period])
        return query

    def periodic_balance(self, account: str = 'expenses', period: Optional[str] = None,
                         depth: Optional[int] = None, interval: str = 'M',
                         sort_by_amount: bool = False) -> PeriodicReport:
        """Balance of ``account`` and its children for each report interval"""
        arguments = ['balance', account]
        if depth:
            arguments.extend(['--depth', str(depth)])
        arguments.append(f"-{interval}")
        if sort_by_amount:
            arguments.append('-S')
        if period:
            arguments.extend(['-p', period])
        return decode_periodic_report(self.run_json(arguments))

    def monthly_category_report(self, period: Optional[str] = None, depth: Optional[int] = None) -> PeriodicReport:
        """Monthly expense balances per category at the configured account depth"""
        return self.periodic_balance('expenses', period, depth or self.config.category_depth)

    def flat_balance(self, account: str = 'expenses', period: Optional[str] = None,
                     depth: Optional[int] = None, sort_by_amount: bool = False) -> List[Tuple[str, Decimal]]:
        """(full account name, amount) rows of a single-column balance report"""
        arguments = ['balance', account]
        if depth:
            arguments.extend(['--depth', str(depth)])
        if sort_by_amount:
            arguments.append('-S')
        if period:
            arguments.extend(['-p', period])

        report = self.run_json(arguments)
        rows = report[0] if report else []
        return [(row[0], extract_amount(row[3])) for row in rows]

    def _statement(self, command: str, period: Optional[str], interval: Optional[str]) -> CompoundReport:
        arguments = [command]
        if interval:
            arguments.append(f"-{interval}")
        if period:
            arguments.extend(['-p', period])
        return decode_compound_report(self.run_json(arguments))

    def income_statement(self, period: Optional[str] = None, interval: Optional[str] = None) -> CompoundReport:
        """Revenues (section 0) and expenses (section 1), optionally per interval"""
        return self._statement('incomestatement', period, interval)

    def balance_sheet(self, period: Optional[str] = None, interval: Optional[str] = None) -> CompoundReport:
        """Assets (section 0) and liabilities (section 1), optionally per interval"""
        return self._statement('balancesheet', period, interval)
