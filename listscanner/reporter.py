import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any

from . import __version__
from .config import ScanConfig
from .scanner import ScanResult

logger = logging.getLogger(__name__)


class ScanReporter:
    """Writes a JSON summary of a finished scan."""

    def __init__(self, report_path: str):
        """
        Initialize scan reporter.

        Args:
            report_path: File the JSON summary is written to
        """
        self.report_path = Path(report_path)

    def build_report(self, config: ScanConfig, result: ScanResult) -> Dict[str, Any]:
        """Assemble the report document without touching disk."""
        findings = result.findings
        return {
            'scan_metadata': {
                'scan_id': result.scan_id,
                'generated_at': datetime.now(timezone.utc).isoformat(),
                'scanner_version': __version__,
                'hosts': config.hosts,
                'table_count': len(config.tables),
                'fast_check': config.fast_check,
                'concurrency_limit': config.concurrency_limit,
                'results_dir': config.results_dir
            },
            'summary': {
                'vulnerable': result.vulnerable,
                'verdict': result.verdict(),
                'jobs_dispatched': result.jobs_dispatched,
                'outcomes': len(result.outcomes),
                'leaking_tables': len(findings),
                'errors': len(result.errors),
                'skipped_hosts': len(result.skipped_hosts)
            },
            'findings': [outcome.to_dict() for outcome in findings],
            'errors': [outcome.to_dict() for outcome in result.errors],
            'skipped_hosts': result.skipped_hosts
        }

    def generate_report(self, config: ScanConfig, result: ScanResult) -> str:
        """
        Generate the scan report.

        Args:
            config: Configuration the scan ran with
            result: Aggregated scan result

        Returns:
            Path to the generated report file
        """
        logger.info(f"Generating scan report for {result.scan_id}")

        report = self.build_report(config, result)

        if self.report_path.parent != Path('.'):
            self.report_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.report_path, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, default=str)

        logger.info(f"Report generated: {self.report_path}")
        return str(self.report_path)
