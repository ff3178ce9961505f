import logging
from typing import Dict, Any, Optional, List
from dataclasses import dataclass

from .config import FAST_CHECK_TABLE
from .evidence import LeakStore
from .session import SessionCredential
from .utils.http import HttpSession

logger = logging.getLogger(__name__)

WIDGET_LIST_PATH = "/api/now/sp/widget/widget-simple-list"


class ProbeError(Exception):
    """Raised when a probe response cannot be classified."""


class UnexpectedStatus(ProbeError):
    """Raised when the widget endpoint answers with a non-success status."""

    def __init__(self, status_code: int, url: str):
        super().__init__(f"received status code {status_code} for {url}")
        self.status_code = status_code
        self.url = url


class MalformedResponse(ProbeError):
    """Raised when the widget response lacks the result/data envelope."""


@dataclass(frozen=True)
class ProbeJob:
    """One (host, table) unit of scan work."""
    credential: SessionCredential
    table: str

    @property
    def host(self) -> str:
        return self.credential.host


@dataclass
class ProbeOutcome:
    """Result of a single probe job. Exactly one is produced per job."""
    host: str
    table: str
    vulnerable: bool
    record_count: int = 0
    artifact_path: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert outcome to dictionary for serialization."""
        return {
            'host': self.host,
            'table': self.table,
            'vulnerable': self.vulnerable,
            'record_count': self.record_count,
            'artifact_path': self.artifact_path,
            'error': self.error
        }


def probe_url(host: str, table: str) -> str:
    return f"{host}{WIDGET_LIST_PATH}?{table}"


def extract_records(payload: Any, url: str) -> Optional[List[Any]]:
    """
    Pull ``result.data.list`` out of a widget response.

    Returns None when the list is absent or not an array, meaning the
    endpoint answered but does not expose this table.

    Raises:
        MalformedResponse: If ``result`` or ``result.data`` is missing
    """
    if not isinstance(payload, dict):
        raise MalformedResponse(f"unexpected response structure from {url}")

    result = payload.get('result')
    if not isinstance(result, dict):
        raise MalformedResponse(f"unexpected response structure from {url}")

    data = result.get('data')
    if not isinstance(data, dict):
        raise MalformedResponse(f"no data key in response from {url}")

    records = data.get('list')
    if not isinstance(records, list):
        return None
    return records


class ProbeExecutor:
    """Sends widget list probes and classifies their responses."""

    def __init__(self, session: HttpSession, leak_store: LeakStore, fast_check: bool = False):
        """
        Initialize the probe executor.

        Args:
            session: Shared HTTP session used for every probe
            leak_store: Sink for confirmed leaks
            fast_check: Only probe the designated fast-check table
        """
        self.session = session
        self.leak_store = leak_store
        self.fast_check = fast_check

    async def probe(self, credential: SessionCredential, table: str) -> List[Any]:
        """
        Probe one table on one host.

        Args:
            credential: Session credential harvested for the host
            table: Table candidate (``t=<name>``)

        Returns:
            Leaked records; empty when the table is not leaking

        Raises:
            UnexpectedStatus: On any status other than 200/201
            MalformedResponse: If the response envelope is broken
            httpx.HTTPError: On transport failures
            OSError: If a confirmed leak cannot be persisted
        """
        if self.fast_check and table != FAST_CHECK_TABLE:
            return []

        url = probe_url(credential.host, table)
        headers = {
            'X-UserToken': credential.token,
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }
        if credential.cookies:
            headers['Cookie'] = credential.cookie_header

        response = await self.session.post(url, headers=headers, content=b"{}")

        if response.status_code not in (200, 201):
            raise UnexpectedStatus(response.status_code, url)

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponse(f"invalid JSON from {url}: {e}") from e

        records = extract_records(payload, url)
        if records is None:
            return []

        if not records:
            logger.warning(f"{url} is EXPOSED, but data is NOT leaking likely because ACLs are blocking. Mark Widgets as not Public.")
            return []

        logger.error(f"{url} is EXPOSED, and LEAKING data. Check ACLs ASAP.")
        self.leak_store.persist(credential.host, table, records)
        return records

    async def run_job(self, job: ProbeJob) -> ProbeOutcome:
        """
        Execute a probe job and always return its outcome.

        Errors are logged and reported as a non-vulnerable outcome so a
        single failing table never aborts the scan.
        """
        try:
            records = await self.probe(job.credential, job.table)
        except Exception as e:
            logger.error(f"Error checking vulnerability for {job.host} ({job.table}): {e}")
            return ProbeOutcome(host=job.host, table=job.table, vulnerable=False, error=str(e))

        if not records:
            return ProbeOutcome(host=job.host, table=job.table, vulnerable=False)

        return ProbeOutcome(
            host=job.host,
            table=job.table,
            vulnerable=True,
            record_count=len(records),
            artifact_path=str(self.leak_store.artifact_path(job.host, job.table))
        )
