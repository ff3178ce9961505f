"""
List Scanner - Detect public list widgets that leak backend table data.

This package bootstraps anonymous sessions against portal instances, probes the
widget list endpoint for every candidate table with bounded concurrency, and
stores any leaked records on disk.
"""

__version__ = "1.0.0"

from .config import ScanConfig, load_table_candidates, load_hosts, validate_config
from .session import SessionBootstrapper, SessionCredential, BootstrapError, TokenNotFound, InvalidHost
from .probe import ProbeExecutor, ProbeJob, ProbeOutcome, ProbeError, UnexpectedStatus, MalformedResponse
from .evidence import LeakStore
from .scanner import ListScanner, ScanResult
from .reporter import ScanReporter

__all__ = [
    'ScanConfig',
    'load_table_candidates',
    'load_hosts',
    'validate_config',
    'SessionBootstrapper',
    'SessionCredential',
    'BootstrapError',
    'TokenNotFound',
    'InvalidHost',
    'ProbeExecutor',
    'ProbeJob',
    'ProbeOutcome',
    'ProbeError',
    'UnexpectedStatus',
    'MalformedResponse',
    'LeakStore',
    'ListScanner',
    'ScanResult',
    'ScanReporter'
]
