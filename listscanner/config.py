import logging
from pathlib import Path
from typing import List, Optional, Tuple
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Query key the list widget expects in front of every table name
TABLE_QUERY_KEY = "t="

# Single high-signal table probed in fast-check mode
FAST_CHECK_TABLE = f"{TABLE_QUERY_KEY}kb_knowledge"

DEFAULT_TABLE_LIST = "table_list.txt"
DEFAULT_RESULTS_DIR = "result"
DEFAULT_CONCURRENCY = 10
DEFAULT_TIMEOUT = 15.0


@dataclass
class ScanConfig:
    """Complete scan configuration."""
    hosts: List[str]
    tables: Tuple[str, ...]
    concurrency_limit: int = DEFAULT_CONCURRENCY
    fast_check: bool = False
    proxy: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT
    deadline_seconds: Optional[float] = None
    verify_ssl: bool = True
    results_dir: str = DEFAULT_RESULTS_DIR
    report_path: Optional[str] = None
    fail_on_findings: bool = False


def _read_lines(path: Path) -> List[str]:
    with open(path, 'r', encoding='utf-8') as f:
        return [line.strip() for line in f if line.strip()]


def load_table_candidates(table_file: str = DEFAULT_TABLE_LIST) -> Tuple[str, ...]:
    """
    Load the candidate table list.

    Each bare table name is prefixed with the widget query key, so
    ``incident`` becomes ``t=incident``.

    Args:
        table_file: Path to a newline-delimited list of table names

    Returns:
        Tuple of prefixed table candidates in file order

    Raises:
        OSError: If the file is missing or unreadable
    """
    path = Path(table_file)
    logger.info(f"Loading table candidates from {path}")

    tables = tuple(f"{TABLE_QUERY_KEY}{name}" for name in _read_lines(path))

    logger.info(f"Loaded {len(tables)} table candidates")
    return tables


def load_hosts(url: Optional[str] = None, host_file: Optional[str] = None) -> List[str]:
    """
    Resolve the target hosts from ``--url`` or ``--file``.

    A single URL takes precedence over the host file.

    Raises:
        ValueError: If neither source is given
        OSError: If the host file cannot be read
    """
    if url:
        if host_file:
            logger.warning(f"Both --url and --file given, ignoring {host_file}")
        return [url.strip()]

    if host_file:
        hosts = _read_lines(Path(host_file))
        logger.info(f"Loaded {len(hosts)} hosts from {host_file}")
        return hosts

    raise ValueError("Either --url or --file must be specified.")


def validate_config(config: ScanConfig) -> bool:
    """
    Validate configuration for common issues.

    Args:
        config: Configuration to validate

    Returns:
        True if configuration is valid

    Raises:
        ValueError: If configuration has validation errors
    """
    errors = []

    if not config.hosts:
        logger.warning("No target hosts given; nothing will be scanned")

    if not config.tables:
        logger.warning("Table candidate list is empty; no probes will be sent")

    if config.concurrency_limit <= 0:
        errors.append("concurrency limit must be positive")

    if config.timeout_seconds <= 0:
        errors.append("timeout must be positive")

    if config.deadline_seconds is not None and config.deadline_seconds <= 0:
        errors.append("deadline must be positive")

    if config.fast_check and FAST_CHECK_TABLE not in config.tables:
        logger.warning(f"Fast-check enabled but {FAST_CHECK_TABLE} is not in the table list; no probe will be sent")

    if errors:
        error_message = "Configuration validation failed:\n" + "\n".join(f"- {error}" for error in errors)
        logger.error(error_message)
        raise ValueError(error_message)

    return True
