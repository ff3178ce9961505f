import asyncio
import logging
import sys
from typing import Optional

import click
from pythonjsonlogger import jsonlogger

from . import __version__
from .config import (
    ScanConfig, load_table_candidates, load_hosts, validate_config,
    DEFAULT_TABLE_LIST, DEFAULT_RESULTS_DIR, DEFAULT_CONCURRENCY, DEFAULT_TIMEOUT
)
from .scanner import ListScanner
from .reporter import ScanReporter

EXIT_FINDINGS = 2


@click.group(help="List Scanner - Detect public list widgets leaking table data to anonymous users")
def app():
    """List Scanner CLI."""
    pass

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Setup structured logging."""
    loggers = [logging.getLogger(name) for name in ['listscanner', '__main__']]

    formatter = jsonlogger.JsonFormatter(
        fmt='%(asctime)s %(name)s %(levelname)s %(message)s'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    for logger_instance in loggers:
        logger_instance.handlers.clear()
        logger_instance.setLevel(getattr(logging, log_level.upper()))
        logger_instance.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        for logger_instance in loggers:
            logger_instance.addHandler(file_handler)


@app.command()
@click.option('--url', default=None, help='The URL to fetch from')
@click.option('--file', 'host_file', default=None, help='File of URLs, one per line')
@click.option('--fast-check', is_flag=True, default=False, help='Only check the kb_knowledge table')
@click.option('--proxy', default=None, help='Proxy server in the format http://host:port')
@click.option('--tables', 'table_file', default=DEFAULT_TABLE_LIST, show_default=True,
              help='File of table names to probe')
@click.option('--output-dir', default=DEFAULT_RESULTS_DIR, show_default=True,
              help='Directory leaked records are written to')
@click.option('--concurrency', default=DEFAULT_CONCURRENCY, show_default=True, type=int,
              help='Maximum number of probes in flight')
@click.option('--timeout', default=DEFAULT_TIMEOUT, show_default=True, type=float,
              help='Per-request timeout in seconds')
@click.option('--deadline', default=None, type=float, help='Overall scan deadline in seconds')
@click.option('--insecure', is_flag=True, default=False, help='Skip TLS certificate verification')
@click.option('--report', 'report_path', default=None, help='Write a JSON scan summary to this path')
@click.option('--fail-on-findings', is_flag=True, default=False,
              help=f'Exit with code {EXIT_FINDINGS} when vulnerable tables are found')
@click.option('--log-level', default='INFO', help='Logging level')
@click.option('--log-file', default=None, help='Log file path')
def scan(url, host_file, fast_check, proxy, table_file, output_dir, concurrency, timeout,
         deadline, insecure, report_path, fail_on_findings, log_level, log_file):
    """Probe hosts for public list widgets that leak table contents."""

    setup_logging(log_level, log_file)

    try:
        tables = load_table_candidates(table_file)
    except OSError as e:
        click.echo(f"Error reading table names from file: {e}", err=True)
        sys.exit(1)

    try:
        hosts = load_hosts(url, host_file)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except OSError as e:
        click.echo(f"Error reading file: {e}", err=True)
        sys.exit(1)

    config = ScanConfig(
        hosts=hosts,
        tables=tables,
        concurrency_limit=concurrency,
        fast_check=fast_check,
        proxy=proxy,
        timeout_seconds=timeout,
        deadline_seconds=deadline,
        verify_ssl=not insecure,
        results_dir=output_dir,
        report_path=report_path,
        fail_on_findings=fail_on_findings
    )

    try:
        validate_config(config)
    except ValueError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    scanner = ListScanner(config)

    try:
        result = asyncio.run(scanner.run())
    except KeyboardInterrupt:
        click.echo("Scan interrupted by user", err=True)
        sys.exit(1)

    if config.report_path:
        report_file = ScanReporter(config.report_path).generate_report(config, result)
        click.echo(f"Report generated: {report_file}")

    click.echo(result.verdict())

    if config.fail_on_findings and result.vulnerable:
        sys.exit(EXIT_FINDINGS)


@app.command()
def version():
    """Show version information."""
    click.echo(f"List Scanner v{__version__}")
    click.echo("Public list widget data exposure scanner")


if __name__ == "__main__":
    app()
