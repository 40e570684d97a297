"""Command-line interface for the ledger insights engine."""

import json
import sys
import click
from typing import Any, Optional
import logging

from .models.core import ColumnMapping
from .utils.config_manager import ConfigManager
from .utils.error_handler import ErrorHandler, LedgerInsightsError
from .utils.importer import TransactionImporter
from .utils.insights_service import InsightsService
from .utils.journal_writer import JournalWriter


logger = logging.getLogger(__name__)


class LedgerInsightsCLI:
    """Wires configuration into the importer and the insights service"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_manager = ConfigManager(config_path)
        self.config = self.config_manager.load_config()
        self.error_handler = ErrorHandler(self.config.log_directory)

        self.importer = TransactionImporter(self.config)
        self.insights = InsightsService(self.config)
        self.journal_writer = JournalWriter(self.config)

    def read_csv(self, path: str) -> str:
        with open(path, 'r', encoding='utf-8-sig') as f:
            return f.read()

    def generate_config_template(self, output_path: str) -> bool:
        try:
            self.config_manager.save_config_template(output_path)
            return True
        except OSError as e:
            self.error_handler.record(e, context={'output_path': output_path})
            return False


def build_mapping(date_column, description_column, amount_column, debit_column, credit_column) -> Optional[ColumnMapping]:
    """Manual column mapping from CLI options, or None to auto-detect"""
    if not any([date_column, description_column, amount_column, debit_column, credit_column]):
        return None
    return ColumnMapping(
        date=date_column or '',
        description=description_column or '',
        amount=amount_column,
        debit=debit_column,
        credit=credit_column,
    )


def mapping_options(func):
    """Shared options for overriding column auto-detection"""
    options = [
        click.option('--date-column', help='Header of the date column'),
        click.option('--description-column', help='Header of the description column'),
        click.option('--amount-column', help='Header of a signed amount column'),
        click.option('--debit-column', help='Header of the money-out column'),
        click.option('--credit-column', help='Header of the money-in column'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def fail(cli_instance: LedgerInsightsCLI, error: Exception, action: str):
    cli_instance.error_handler.record(error, context={'action': action})
    click.echo(f"✗ Error during {action}: {error}")
    sys.exit(1)


def echo_json(data: Any):
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


# CLI Commands using Click
@click.group()
@click.option('--config', '-c', help='Path to configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config, verbose):
    """Ledger Insights - import bank statements and find spending patterns"""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    ctx.ensure_object(dict)
    ctx.obj['cli'] = LedgerInsightsCLI(config)


@cli.command()
@click.argument('csv_file', type=click.Path(exists=True, dir_okay=False))
@mapping_options
@click.option('--json', 'as_json', is_flag=True, help='Print the preview as JSON')
@click.pass_context
def preview(ctx, csv_file, date_column, description_column, amount_column, debit_column, credit_column, as_json):
    """Show what importing CSV_FILE would add, without writing"""

    cli_instance = ctx.obj['cli']
    mapping = build_mapping(date_column, description_column, amount_column, debit_column, credit_column)

    try:
        result = cli_instance.importer.preview_csv(cli_instance.read_csv(csv_file), mapping)
    except (LedgerInsightsError, OSError) as e:
        fail(cli_instance, e, 'preview')

    if as_json:
        echo_json(result.to_dict())
        return

    click.echo(f"Detected columns: {result.mapping.columns()}")
    click.echo(f"  New transactions: {result.count}")
    click.echo(f"  Skipped duplicates: {result.skipped_duplicates}")
    click.echo(f"  Date range: {result.date_range['start']} .. {result.date_range['end']}")
    click.echo(f"  Total expenses: {result.total_expenses}")
    click.echo(f"  Total income: {result.total_income}")
    for transaction in result.sample:
        click.echo(f"    {transaction.date}  {transaction.amount:>10}  {transaction.description}")


@cli.command(name='import')
@click.argument('csv_file', type=click.Path(exists=True, dir_okay=False))
@mapping_options
@click.pass_context
def import_command(ctx, csv_file, date_column, description_column, amount_column, debit_column, credit_column):
    """Append the new transactions of CSV_FILE to the uploaded journal"""

    cli_instance = ctx.obj['cli']
    mapping = build_mapping(date_column, description_column, amount_column, debit_column, credit_column)

    try:
        result = cli_instance.importer.import_csv(cli_instance.read_csv(csv_file), mapping)
    except (LedgerInsightsError, OSError) as e:
        fail(cli_instance, e, 'import')

    click.echo("✓ Import completed")
    click.echo(f"  Transactions imported: {result.imported}")
    click.echo(f"  Skipped duplicates: {result.skipped_duplicates}")
    click.echo(f"  Journal: {result.journal_path}")
    for warning in result.warnings:
        click.echo(f"  ! {warning}")


@cli.command()
@click.option('--min-occurrences', type=int, help='Minimum occurrences for a recurring transaction')
@click.option('--json', 'as_json', is_flag=True, help='Print the patterns as JSON')
@click.pass_context
def recurring(ctx, min_occurrences, as_json):
    """List recurring transactions found in the ledger register"""

    cli_instance = ctx.obj['cli']
    try:
        patterns = cli_instance.insights.recurring_transactions(min_occurrences)
    except LedgerInsightsError as e:
        fail(cli_instance, e, 'recurring detection')

    if as_json:
        echo_json([p.to_dict() for p in patterns])
        return

    if not patterns:
        click.echo("No recurring transactions found")
        return

    for pattern in patterns:
        click.echo(
            f"{pattern.frequency:<10} {pattern.average_amount:>10}  {pattern.description} "
            f"({pattern.occurrences}x, next {pattern.next_expected_date}, {pattern.account})"
        )


@cli.command()
@click.option('--period', '-p', help='Report period, e.g. 2025 or 2025-01..2025-06')
@click.option('--depth', type=int, help='Account depth of the categories')
@click.option('--json', 'as_json', is_flag=True, help='Print the anomalies as JSON')
@click.pass_context
def anomalies(ctx, period, depth, as_json):
    """List months where a category's spending is unusual"""

    cli_instance = ctx.obj['cli']
    try:
        found = cli_instance.insights.anomalies(period, depth)
    except LedgerInsightsError as e:
        fail(cli_instance, e, 'anomaly detection')

    if as_json:
        echo_json({'anomalies': [a.to_dict() for a in found], 'period': period or 'all time'})
        return

    if not found:
        click.echo("No anomalies found")
        return

    for anomaly in found:
        click.echo(
            f"[{anomaly.severity}] {anomaly.month} {anomaly.category}: {anomaly.amount:.2f} "
            f"({anomaly.direction} average {anomaly.average:.2f}, z={anomaly.deviation})"
        )


@cli.command()
@click.option('--period', '-p', help='Report period, e.g. 2025 or 2025-01..2025-06')
@click.option('--depth', type=int, help='Account depth of the categories')
@click.option('--category', help='Only break down this expense category, e.g. food')
@click.option('--json', 'as_json', is_flag=True, help='Print the breakdown as JSON')
@click.pass_context
def spending(ctx, period, depth, category, as_json):
    """Break down spending by category and month"""

    cli_instance = ctx.obj['cli']
    try:
        breakdown = cli_instance.insights.spending_breakdown(period, depth, category)
    except LedgerInsightsError as e:
        fail(cli_instance, e, 'spending breakdown')

    if as_json:
        echo_json(breakdown.to_dict())
        return

    click.echo(f"Total spending ({breakdown.period or 'all time'}): {breakdown.grand_total}")
    for item in breakdown.category_totals:
        click.echo(f"  {item.name:<30} {item.amount:>10}  {item.percentage:>6}%")
    for month in breakdown.months:
        click.echo(f"{month.date}: {month.total}")


@cli.command()
@click.option('--period', '-p', help='Report period, e.g. 2025 or 2025-01..2025-06')
@click.option('--interval', type=click.Choice(['weekly', 'monthly', 'quarterly']), default='monthly',
              help='Report interval')
@click.option('--json', 'as_json', is_flag=True, help='Print the trends as JSON')
@click.pass_context
def trends(ctx, period, interval, as_json):
    """Show income, expenses and net per interval"""

    cli_instance = ctx.obj['cli']
    try:
        periods = cli_instance.insights.financial_trends(period, interval)
    except LedgerInsightsError as e:
        fail(cli_instance, e, 'trend report')

    if as_json:
        echo_json({'periods': [p.to_dict() for p in periods]})
        return

    for trend in periods:
        click.echo(f"{trend.date}  income {trend.income:>10}  expenses {trend.expenses:>10}  net {trend.net:>10}")


@cli.command()
@click.option('--period', '-p', help='Report period, e.g. 2025 or 2025-01..2025-06')
@click.option('--json', 'as_json', is_flag=True, help='Print the summary as JSON')
@click.pass_context
def summary(ctx, period, as_json):
    """Show net worth, income, expenses and savings rate"""

    cli_instance = ctx.obj['cli']
    try:
        result = cli_instance.insights.financial_summary(period)
    except LedgerInsightsError as e:
        fail(cli_instance, e, 'financial summary')

    if as_json:
        echo_json(result.to_dict())
        return

    click.echo(f"Net worth: {result.net_worth}")
    click.echo(f"  Income: {result.total_income}")
    click.echo(f"  Expenses: {result.total_expenses}")
    click.echo(f"  Cashflow: {result.cashflow}")
    click.echo(f"  Savings rate: {result.savings_rate}%")
    for item in result.top_expenses:
        click.echo(f"    {item.name:<30} {item.amount:>10}")


@cli.command()
@click.option('--account', help='Account query, e.g. expenses:food')
@click.option('--description', help='Description pattern')
@click.option('--period', '-p', help='Report period, e.g. 2025 or 2025-01..2025-06')
@click.option('--limit', type=int, default=50, show_default=True, help='Number of latest postings to show')
@click.option('--json', 'as_json', is_flag=True, help='Print the postings as JSON')
@click.pass_context
def search(ctx, account, description, period, limit, as_json):
    """Search register postings by account, description and period"""

    cli_instance = ctx.obj['cli']
    try:
        result = cli_instance.insights.transaction_search(account, description, period, limit)
    except LedgerInsightsError as e:
        fail(cli_instance, e, 'transaction search')

    if as_json:
        echo_json(result.to_dict())
        return

    click.echo(f"Matched {result.count} postings, showing {len(result.transactions)}")
    for entry in result.transactions:
        click.echo(f"  {entry.date}  {entry.amount:>10}  {entry.account:<30} {entry.description}")


@cli.command(name='net-worth')
@click.option('--period', '-p', help='Report period, e.g. 2025 or 2025-01..2025-06')
@click.option('--json', 'as_json', is_flag=True, help='Print the timeline as JSON')
@click.pass_context
def net_worth(ctx, period, as_json):
    """Show month-end assets, liabilities and net worth"""

    cli_instance = ctx.obj['cli']
    try:
        points = cli_instance.insights.net_worth_timeline(period)
    except LedgerInsightsError as e:
        fail(cli_instance, e, 'net worth timeline')

    if as_json:
        echo_json({'points': [p.to_dict() for p in points]})
        return

    for point in points:
        click.echo(f"{point.date}  assets {point.assets:>10}  liabilities {point.liabilities:>10}  net {point.net_worth:>10}")


@cli.command()
@click.argument('description')
@click.argument('account')
@click.pass_context
def recategorize(ctx, description, account):
    """Move uncategorized expenses named DESCRIPTION to ACCOUNT"""

    cli_instance = ctx.obj['cli']
    try:
        updated, unchanged = cli_instance.journal_writer.recategorize(
            [{'description': description, 'new_account': account}]
        )
    except LedgerInsightsError as e:
        fail(cli_instance, e, 'recategorization')

    click.echo(f"Updated: {updated}, unchanged: {unchanged}")


@cli.command()
@click.argument('output_path', default='ledger_config.json')
@click.option('--format', type=click.Choice(['json', 'yaml']), default='json', help='Configuration file format')
@click.pass_context
def init_config(ctx, output_path, format):
    """Generate configuration template file"""

    cli_instance = ctx.obj['cli']

    if format == 'yaml' and not output_path.endswith(('.yml', '.yaml')):
        output_path = output_path.replace('.json', '.yml')
    elif format == 'json' and not output_path.endswith('.json'):
        output_path = output_path.replace('.yml', '.json').replace('.yaml', '.json')

    if cli_instance.generate_config_template(output_path):
        click.echo(f"✓ Configuration template generated: {output_path}")
    else:
        click.echo("✗ Failed to generate configuration template")
        sys.exit(1)


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
