import json
import logging
from pathlib import Path
from typing import Any, List
from urllib.parse import urlparse

from .config import TABLE_QUERY_KEY

logger = logging.getLogger(__name__)


def host_label(host: str) -> str:
    """
    Directory name for a host: the leading DNS label of its hostname.

    ``https://acme.service-now.com`` maps to ``acme``.
    """
    hostname = urlparse(host).hostname or ""
    label = hostname.split(".")[0]
    if not label:
        raise ValueError(f"Cannot derive a directory name from host {host!r}")
    return label


def table_name(table: str) -> str:
    """Strip the widget query key from a table candidate."""
    if table.startswith(TABLE_QUERY_KEY):
        return table[len(TABLE_QUERY_KEY):]
    return table


class LeakStore:
    """Persists leaked widget records as one JSON file per host and table."""

    def __init__(self, base_dir: str):
        """
        Initialize leak store.

        Host directories are created lazily, only when a leak is confirmed.

        Args:
            base_dir: Base directory for storing leak artifacts
        """
        self.base_dir = Path(base_dir)

    def artifact_path(self, host: str, table: str) -> Path:
        """Location of the artifact for a (host, table) pair."""
        return self.base_dir / host_label(host) / f"{table_name(table)}.json"

    def persist(self, host: str, table: str, records: List[Any]) -> Path:
        """
        Write leaked records for one host and table.

        An existing artifact for the same pair is overwritten.

        Args:
            host: Base URL of the leaking instance
            table: Table candidate that leaked (``t=<name>``)
            records: Raw records returned by the widget

        Returns:
            Path to the written file

        Raises:
            OSError: If the directory or file cannot be written
        """
        artifact_file = self.artifact_path(host, table)
        artifact_file.parent.mkdir(parents=True, exist_ok=True)

        with open(artifact_file, 'w', encoding='utf-8') as f:
            json.dump(records, f)

        logger.info(f"Stored {len(records)} leaked records: {artifact_file}")

        return artifact_file
