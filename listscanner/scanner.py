import asyncio
import logging
import uuid
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field

import httpx

from .config import ScanConfig
from .evidence import LeakStore
from .probe import ProbeExecutor, ProbeJob, ProbeOutcome
from .session import SessionBootstrapper
from .utils.http import HttpSession

logger = logging.getLogger(__name__)

DEADLINE_ERROR = "cancelled: scan deadline exceeded"


@dataclass
class ScanResult:
    """Aggregated outcome of a scan run."""
    scan_id: str
    outcomes: List[ProbeOutcome] = field(default_factory=list)
    skipped_hosts: Dict[str, str] = field(default_factory=dict)
    jobs_dispatched: int = 0

    @property
    def vulnerable(self) -> bool:
        return any(outcome.vulnerable for outcome in self.outcomes)

    @property
    def findings(self) -> List[ProbeOutcome]:
        return [outcome for outcome in self.outcomes if outcome.vulnerable]

    @property
    def errors(self) -> List[ProbeOutcome]:
        return [outcome for outcome in self.outcomes if outcome.error]

    def verdict(self) -> str:
        if self.vulnerable:
            return "Scanning completed. Vulnerable URLs found."
        return "Scanning completed. No vulnerable URLs found."

    def to_dict(self) -> Dict[str, Any]:
        return {
            'scan_id': self.scan_id,
            'vulnerable': self.vulnerable,
            'jobs_dispatched': self.jobs_dispatched,
            'outcomes': [outcome.to_dict() for outcome in self.outcomes],
            'skipped_hosts': self.skipped_hosts
        }


class ListScanner:
    """Scan orchestrator: bootstraps hosts and fans probes out over host x table."""

    def __init__(self, config: ScanConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize scanner components.

        Args:
            config: Validated scan configuration
            transport: Optional transport override shared by both HTTP phases
        """
        self.config = config
        self.scan_id = str(uuid.uuid4())

        self.bootstrapper = SessionBootstrapper(
            proxy=config.proxy,
            timeout=config.timeout_seconds,
            verify_ssl=config.verify_ssl,
            transport=transport
        )
        self.leak_store = LeakStore(config.results_dir)
        # Redirects would drop the explicit Cookie header, so a 3xx is reported as is
        self.probe_session = HttpSession(
            timeout=config.timeout_seconds,
            verify_ssl=config.verify_ssl,
            follow_redirects=False,
            proxy=config.proxy,
            transport=transport
        )
        self.executor = ProbeExecutor(self.probe_session, self.leak_store, fast_check=config.fast_check)

    async def run(self) -> ScanResult:
        """
        Execute the complete scan.

        Hosts are bootstrapped one after another. As soon as a host has a
        credential, its probe jobs are scheduled, so earlier hosts are being
        probed while later ones bootstrap. All jobs share one admission gate.

        Returns:
            ScanResult holding exactly one outcome per dispatched job
        """
        logger.info(f"Starting scan {self.scan_id}: {len(self.config.hosts)} hosts, "
                    f"{len(self.config.tables)} table candidates, "
                    f"concurrency {self.config.concurrency_limit}")

        loop = asyncio.get_running_loop()
        deadline = None
        if self.config.deadline_seconds is not None:
            deadline = loop.time() + self.config.deadline_seconds

        result = ScanResult(scan_id=self.scan_id)
        semaphore = asyncio.Semaphore(self.config.concurrency_limit)
        tasks: Dict[asyncio.Task, ProbeJob] = {}

        async with self.probe_session:
            for host in self.config.hosts:
                if deadline is not None and loop.time() >= deadline:
                    logger.warning(f"Skipping {host}: scan deadline exceeded")
                    result.skipped_hosts[host] = DEADLINE_ERROR
                    continue

                try:
                    credential = await self.bootstrapper.bootstrap(host)
                except Exception as e:
                    logger.error(f"Error fetching g_ck for {host}: {e}")
                    result.skipped_hosts[host] = str(e)
                    continue

                for table in self.config.tables:
                    job = ProbeJob(credential=credential, table=table)
                    task = asyncio.create_task(self._bounded_probe(semaphore, job))
                    tasks[task] = job

            result.jobs_dispatched = len(tasks)
            logger.info(f"Dispatched {result.jobs_dispatched} probe jobs")

            timeout = None
            if deadline is not None:
                timeout = max(0.0, deadline - loop.time())
            result.outcomes = await self._collect(tasks, timeout)

        logger.info(f"Scan {self.scan_id} finished: {len(result.outcomes)} outcomes, "
                    f"{len(result.findings)} leaking, {len(result.skipped_hosts)} hosts skipped")

        return result

    async def _bounded_probe(self, semaphore: asyncio.Semaphore, job: ProbeJob) -> ProbeOutcome:
        async with semaphore:
            return await self.executor.run_job(job)

    async def _collect(self,
                       tasks: Dict[asyncio.Task, ProbeJob],
                       timeout: Optional[float]) -> List[ProbeOutcome]:
        """Wait for every dispatched job and turn each into one outcome."""
        if not tasks:
            return []

        _, pending = await asyncio.wait(tasks.keys(), timeout=timeout)

        if pending:
            logger.warning(f"Scan deadline exceeded, cancelling {len(pending)} unfinished probes")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes = []
        for task, job in tasks.items():
            if task.cancelled():
                outcomes.append(ProbeOutcome(host=job.host, table=job.table, vulnerable=False, error=DEADLINE_ERROR))
            elif task.exception() is not None:
                logger.error(f"Probe task for {job.host} ({job.table}) failed: {task.exception()}")
                outcomes.append(ProbeOutcome(host=job.host, table=job.table, vulnerable=False,
                                             error=str(task.exception())))
            else:
                outcomes.append(task.result())

        return outcomes
