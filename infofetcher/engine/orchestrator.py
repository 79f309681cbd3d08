"""Poll orchestrator: timer tick -> poll due servers -> tolerance policy -> snapshot -> sink."""

import asyncio
import functools
import logging
import time
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Tuple

from infofetcher.connector.topic import query_server
from infofetcher.core.errors import FetchError
from infofetcher.core.logging_utils import log_cycle_summary, log_poll_result, new_trace_id
from infofetcher.core.metrics import Metrics, get_metrics
from infofetcher.core.record import ServerRecord
from infofetcher.core.snapshot import PollSnapshot
from infofetcher.engine.state import ServerStateTable, TrackedServerState
from infofetcher.engine.state_machine import FetcherState, FetcherStateMachine, StopReason
from infofetcher.engine.tolerance import is_violation
from infofetcher.sink.base import SinkError, StatusSink

if TYPE_CHECKING:
    from infofetcher.config.settings import FetcherSettings

logger = logging.getLogger(__name__)

QueryFn = Callable[[str], Awaitable[ServerRecord]]
PollResult = Tuple[Optional[ServerRecord], Optional[FetchError]]


class PollOrchestrator:
    """Owns tracked server state and runs one poll cycle per interval until a fatal condition.

    Servers are polled in configuration order. With query.max_concurrency > 1 the due servers
    of a cycle are polled in parallel, but results are still applied in configuration order
    once all of them are in, so the tolerance policy and the snapshot see the same thing as
    in the sequential case.
    """

    def __init__(
        self,
        settings: "FetcherSettings",
        sink: StatusSink,
        query: Optional[QueryFn] = None,
        metrics: Optional[Metrics] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self._sink = sink
        self._query = query or functools.partial(
            query_server,
            timeout=settings.query_timeout,
            read_timeout=settings.read_timeout,
        )
        self._states = ServerStateTable.from_endpoints(list(settings.servers))
        self._state_machine = FetcherStateMachine()
        self._metrics = metrics or get_metrics()
        self._sleep = sleep or self._sleep_until_stop
        self._clock = clock
        self._stop_event: Optional[asyncio.Event] = None
        self.last_snapshot: Optional[PollSnapshot] = None

    @property
    def states(self) -> ServerStateTable:
        return self._states

    @property
    def state_machine(self) -> FetcherStateMachine:
        return self._state_machine

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    def request_stop(self) -> None:
        """Finish the current cycle (if any) and return STOP_REQUESTED from run()."""
        self._state_machine.request_stop()
        if self._stop_event is not None:
            self._stop_event.set()

    async def _sleep_until_stop(self, delay: float) -> None:
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    # --- One server ---

    async def _poll_one(self, state: TrackedServerState, trace_id: str) -> PollResult:
        started = self._clock()
        try:
            record = await self._query(state.endpoint)
        except FetchError as e:
            log_poll_result(
                state.endpoint,
                ok=False,
                trace_id=trace_id,
                error_kind=e.kind,
                elapsed_ms=(self._clock() - started) * 1000.0,
            )
            return None, e
        log_poll_result(
            state.endpoint,
            ok=True,
            trace_id=trace_id,
            identifier=record.identifier,
            players=record.players,
            elapsed_ms=(self._clock() - started) * 1000.0,
        )
        return record, None

    async def _poll_all(self, due: List[TrackedServerState], trace_id: str) -> List[PollResult]:
        semaphore = asyncio.Semaphore(self.settings.max_concurrency)

        async def _bounded(state: TrackedServerState) -> PollResult:
            async with semaphore:
                return await self._poll_one(state, trace_id)

        return list(await asyncio.gather(*(_bounded(s) for s in due)))

    def _apply_success(self, state: TrackedServerState, record: ServerRecord) -> None:
        self._metrics.record_poll(ok=True)
        previous = state.record_success(record)
        if previous is not None:
            self._metrics.inc_identifier_changes()
            logger.warning(
                "Server %s changed identifier from `%s` to `%s`",
                state.endpoint,
                previous,
                record.identifier,
            )

    def _apply_failure(
        self, state: TrackedServerState, error: FetchError, failures_before: int
    ) -> Optional[StopReason]:
        """Record a failed poll and apply the tolerance policy. Returns a stop reason if fatal."""
        self._metrics.record_poll(ok=False)
        logger.warning("Error querying server %s: %s (%s)", state.endpoint, error, error.kind)
        state.record_failure(f"{error.kind}: {error}")
        tolerance = self.settings.failure_tolerance
        if is_violation(tolerance, failures_before):
            logger.error(
                "Exiting due to failure tolerance violation (tolerance=%s, failed=%s).",
                tolerance.value,
                state.endpoint,
            )
            return StopReason.TOLERANCE_VIOLATION
        if self.settings.failure_retry_wait:
            state.retry_wait = self.settings.failure_retry_wait
        return None

    # --- One cycle ---

    async def run_cycle(self) -> Optional[StopReason]:
        """Poll every due server once, evaluate the policy and publish the snapshot.

        Returns None when the cycle completed and was published, otherwise the reason the
        fetcher must stop.
        """
        sm = self._state_machine
        sm.transition(FetcherState.POLLING)
        cycle = self._metrics.inc_cycles()
        trace_id = new_trace_id()
        started = self._clock()

        due: List[TrackedServerState] = []
        for state in self._states:
            if not state.is_due:
                state.tick_skip()
                self._metrics.inc_skips()
                logger.debug("Skipping %s (retry_wait now %d)", state.endpoint, state.retry_wait)
                continue
            due.append(state)

        prefetched: Optional[List[PollResult]] = None
        if self.settings.max_concurrency > 1 and len(due) > 1:
            prefetched = await self._poll_all(due, trace_id)

        failures = 0
        for i, state in enumerate(due):
            if prefetched is not None:
                record, error = prefetched[i]
            else:
                record, error = await self._poll_one(state, trace_id)
            if error is None:
                self._apply_success(state, record)
                continue
            reason = self._apply_failure(state, error, failures)
            if reason is not None:
                return reason
            failures += 1

        total = len(self._states)
        if failures == total:
            logger.error("All servers failed to respond.")
            return StopReason.ALL_SERVERS_DOWN
        if failures:
            logger.warning("%d servers failed to respond.", failures)

        sm.transition(FetcherState.PUBLISHING)
        snapshot = PollSnapshot.build(self._states.entries())
        document = snapshot.to_document(self.settings.keying)
        try:
            await asyncio.to_thread(self._sink.write_snapshot, document)
        except SinkError as e:
            logger.error("%s", e)
            return StopReason.SINK_FAILURE
        self.last_snapshot = snapshot

        self._metrics.set_last_cycle_sec(self._clock() - started)
        log_cycle_summary(
            cycle,
            polled=len(due),
            skipped=total - len(due),
            failures=failures,
            up=snapshot.up_count,
            total=total,
            trace_id=trace_id,
        )
        self._metrics.log_snapshot()
        sm.transition(FetcherState.WAITING)
        return None

    # --- Loop ---

    async def run(self, max_cycles: Optional[int] = None) -> StopReason:
        """Run cycles on a fixed schedule until a fatal condition or a stop request.

        The first cycle starts immediately; later ones start every settings.interval seconds.
        A cycle that overruns the interval is followed immediately by the next one and the
        schedule restarts from there. Cycles never overlap.
        """
        sm = self._state_machine
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        if sm.stop_requested:
            self._stop_event.set()
        reason: Optional[StopReason] = None
        try:
            if len(self._states) == 0:
                logger.error("No servers specified!")
                reason = StopReason.NO_SERVERS
                return reason
            logger.info(
                "Fetcher running (servers=%d, interval=%ss, tolerance=%s, retry_wait=%d, concurrency=%d)",
                len(self._states),
                self.settings.interval,
                self.settings.failure_tolerance.value,
                self.settings.failure_retry_wait,
                self.settings.max_concurrency,
            )
            next_tick = self._clock()
            cycles = 0
            while True:
                if sm.stop_requested:
                    reason = StopReason.STOP_REQUESTED
                    break
                reason = await self.run_cycle()
                if reason is not None:
                    break
                cycles += 1
                if max_cycles is not None and cycles >= max_cycles:
                    reason = StopReason.MAX_CYCLES
                    break
                next_tick += self.settings.interval
                delay = next_tick - self._clock()
                if delay < 0:
                    logger.warning("Cycle overran the %ss interval by %.2fs", self.settings.interval, -delay)
                    next_tick = self._clock()
                    delay = 0.0
                await self._sleep(delay)
            return reason
        finally:
            if not sm.is_stopped():
                sm.transition(FetcherState.STOPPED)
            logger.info("Fetcher stopped (%s)", reason.value if reason else "error")
