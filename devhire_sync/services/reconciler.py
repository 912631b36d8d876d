"""
Periodic merge of authoritative backend state into the StatusLedger.

One asyncio timer drives the polling. A pass is a single snapshot fetch
followed by ledger applies in response order; at most one pass is in
flight at any time, and a tick that lands while one is running is skipped.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from devhire_sync.core.errors import InvalidTransition
from devhire_sync.models.schemas import EntityType, ReconciliationReport, SyncStatus, Transition, parse_entity
from devhire_sync.services.status_ledger import StatusLedger, utc_now

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 30000

Snapshot = List[Tuple[EntityType, Dict[str, Any]]]
Fetcher = Callable[[], Awaitable[Snapshot]]
Sleeper = Callable[[float], Awaitable[Any]]


def snapshot_fetcher(client) -> Fetcher:
    """Wraps the blocking BackendClient.fetch_snapshot for use on the event loop."""
    async def fetch() -> Snapshot:
        return await asyncio.to_thread(client.fetch_snapshot)
    return fetch


class PollingReconciler:

    def __init__(self, fetch: Fetcher, ledger: StatusLedger, interval_ms: int = DEFAULT_INTERVAL_MS,
                 sleep: Sleeper = asyncio.sleep, clock: Optional[Callable[[], datetime]] = None):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.interval_ms = interval_ms
        self._fetch = fetch
        self._ledger = ledger
        self._sleep = sleep
        self._clock = clock or utc_now
        self._in_flight: Optional[asyncio.Future] = None
        self._timer: Optional[asyncio.Task] = None
        self._stopped = True
        self.passes = 0
        self.skipped_ticks = 0
        self.last_report: Optional[ReconciliationReport] = None
        self.last_error: Optional[str] = None

    @property
    def running(self) -> bool:
        return not self._stopped and self._timer is not None and not self._timer.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def status(self) -> SyncStatus:
        return SyncStatus(
            running=self.running,
            interval_ms=self.interval_ms,
            in_flight=self.in_flight,
            passes=self.passes,
            skipped_ticks=self.skipped_ticks,
            last_report=self.last_report,
            last_error=self.last_error,
        )

    def start(self, interval_ms: Optional[int] = None) -> None:
        """Begin polling on the running event loop. The first pass starts immediately."""
        if interval_ms is not None:
            if interval_ms <= 0:
                raise ValueError("interval_ms must be positive")
            self.interval_ms = interval_ms
        if self.running:
            return
        self._stopped = False
        self._timer = asyncio.get_running_loop().create_task(self._run_timer())
        logger.info(f"Polling every {self.interval_ms} ms")

    def stop(self) -> None:
        """
        Stop issuing fetches. A pass that is already in flight still
        completes and applies its results.
        """
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.info("Polling stopped")

    async def drain(self) -> None:
        """Wait for the in-flight pass, if any, without raising its error."""
        if self.in_flight:
            await asyncio.wait([self._in_flight])

    def tick(self) -> bool:
        """One timer firing. Returns True when a new pass was started."""
        if self._stopped:
            return False
        if self.in_flight:
            self.skipped_ticks += 1
            logger.debug("Reconciliation still in flight, skipping tick")
            return False
        self._begin_pass()
        return True

    async def reconcile_once(self) -> ReconciliationReport:
        """
        Run one pass, or join the pass already in flight so that only one
        fetch is ever outstanding.

        Raises:
            NetworkError, ServerRejection: the snapshot fetch failed.
        """
        if not self.in_flight:
            self._begin_pass()
        else:
            logger.debug("Joining in-flight reconciliation pass")
        return await asyncio.shield(self._in_flight)

    async def _run_timer(self) -> None:
        while not self._stopped:
            self.tick()
            await self._sleep(self.interval_ms / 1000)

    def _begin_pass(self) -> asyncio.Future:
        task = asyncio.ensure_future(self._run_pass())
        task.add_done_callback(self._pass_finished)
        self._in_flight = task
        return task

    def _pass_finished(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            self.last_error = None
            return
        self.last_error = f"{type(error).__name__}: {error}"
        logger.error(f"Reconciliation pass failed, retrying next tick: {self.last_error}")

    async def _run_pass(self) -> ReconciliationReport:
        started_at = self._clock()
        snapshot = await self._fetch()
        applied: List[Transition] = []
        unchanged = 0
        for entity_type, payload in snapshot:
            result = self._merge(entity_type, payload)
            if result is None:
                continue
            if result is True:
                unchanged += 1
            else:
                applied.append(result)

        report = ReconciliationReport(
            started_at=started_at,
            finished_at=self._clock(),
            fetched=len(snapshot),
            applied=applied,
            unchanged=unchanged,
        )
        self.passes += 1
        self.last_report = report
        logger.info(f"Reconciled {report.fetched} entities: {len(applied)} changed, {unchanged} unchanged")
        return report

    def _merge(self, entity_type: EntityType, payload: Dict[str, Any]):
        """Apply one server entity. Returns a Transition, True if unchanged, None if rejected."""
        try:
            entity_id = int(payload["id"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring {entity_type.value} without a usable id: {payload!r}")
            return None
        raw_status = payload.get("status")

        try:
            entity = parse_entity(entity_type, payload)
        except ValidationError:
            # Still let the ledger judge the status; an unknown one is an InvalidTransition
            entity = None

        try:
            transition = self._ledger.apply_transition(entity_type, entity_id, raw_status, entity=entity)
        except InvalidTransition as e:
            logger.warning(f"Rejected server update: {e}")
            return None
        if transition is None:
            return True
        return transition
