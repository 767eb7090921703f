"""Background polling and atomic publication of metric snapshots."""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, Optional, TypeVar

from .collectors import PortfolioCollector, ProjectCollector, ViolationCollector
from .collectors.base import UpstreamClient
from .errors import CancelledError
from .metrics import MetricSet
from .pagination import DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReadWriteLock:
    """A writer-preferring reader/writer lock.

    Any number of readers may hold the lock together. A waiting writer
    blocks new readers so a steady stream of scrapes cannot starve it.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class SnapshotState(Enum):
    """Poller states."""

    IDLE = "idle"
    COLLECTING = "collecting"
    PUBLISHING = "publishing"


@dataclass
class CycleResult:
    """Outcome of one poll cycle."""

    started_at: float
    duration: float = 0.0
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True if every collector succeeded."""
        return not self.failed and not self.skipped


class SnapshotManager:
    """Builds a fresh MetricSet every cycle and publishes it atomically.

    Each cycle runs the portfolio, project and violation collectors in
    sequence against a new MetricSet. A failing collector is logged and
    the others still run. The cycle's MetricSet is then published even
    if it is only partially populated: a collector that failed exposes
    no series until a later cycle succeeds, rather than stale ones.

    Usage:
        manager = SnapshotManager(client, project_tags=["prod"])
        manager.start(interval=6 * 3600)

        # In a request handler:
        metrics = manager.current()

        # On shutdown:
        manager.stop()
    """

    def __init__(
        self,
        client: UpstreamClient,
        project_tags: Optional[list[str]] = None,
        initialize_violation_metrics: bool = True,
        page_size: int = DEFAULT_PAGE_SIZE,
        metric_set_factory: Callable[[], MetricSet] = MetricSet,
    ):
        """Initialize the manager.

        Args:
            client: Dependency-Track client shared by the collectors.
            project_tags: Only collect projects with one of these tags.
            initialize_violation_metrics: Pre-create violation series at 0.
            page_size: Items requested per page on paginated endpoints.
            metric_set_factory: Builds the empty container of each cycle.
        """
        self.portfolio_collector = PortfolioCollector(client)
        self.project_collector = ProjectCollector(
            client,
            tags=project_tags,
            initialize_violation_metrics=initialize_violation_metrics,
            page_size=page_size,
        )
        self.violation_collector = ViolationCollector(client, page_size=page_size)
        self.metric_set_factory = metric_set_factory

        self._lock = ReadWriteLock()
        self._current: Optional[MetricSet] = None

        self._state = SnapshotState.IDLE
        self._state_lock = threading.Lock()

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.cycles = 0
        self.last_cycle: Optional[CycleResult] = None

    @property
    def state(self) -> SnapshotState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: SnapshotState) -> None:
        with self._state_lock:
            self._state = state

    @property
    def cancel_event(self) -> threading.Event:
        """Event that aborts in-flight fetches and ends the poll loop."""
        return self._stop

    def current(self) -> Optional[MetricSet]:
        """The published MetricSet, or None before the first publication."""
        with self._lock.read_locked():
            return self._current

    def publish(self, metrics: MetricSet) -> None:
        """Replace the published MetricSet."""
        with self._lock.write_locked():
            self._current = metrics

    def poll(self) -> CycleResult:
        """Run one collection cycle and publish its result.

        Raises:
            CancelledError: If shutdown was requested during the cycle.
                Nothing is published in that case.
        """
        result = CycleResult(started_at=time.time())
        start = time.monotonic()
        cancel = self._stop

        logger.debug("Polling Dependency-Track metrics")
        self._set_state(SnapshotState.COLLECTING)
        try:
            metrics = self.metric_set_factory()

            self._run_collector(
                "portfolio", result, lambda: self.portfolio_collector.collect(metrics, cancel)
            )
            matched = self._run_collector(
                "project", result, lambda: self.project_collector.collect(metrics, cancel)
            )
            if matched is None:
                logger.warning("Skipping policy violations: project collection failed")
                result.skipped.append("violation")
            else:
                self._run_collector(
                    "violation",
                    result,
                    lambda: self.violation_collector.collect(metrics, matched, cancel),
                )

            self._set_state(SnapshotState.PUBLISHING)
            self.publish(metrics)
        finally:
            self._set_state(SnapshotState.IDLE)

        result.duration = time.monotonic() - start
        self.cycles += 1
        self.last_cycle = result

        if result.complete:
            logger.debug("Successfully updated metrics cache in %.2fs", result.duration)
        else:
            logger.warning(
                "Published partial metrics in %.2fs (failed: %s, skipped: %s)",
                result.duration,
                ", ".join(result.failed) or "none",
                ", ".join(result.skipped) or "none",
            )
        return result

    def _run_collector(
        self, name: str, result: CycleResult, collect: Callable[[], T]
    ) -> Optional[T]:
        """Run one collector, recording and logging its failure.

        An error raised once shutdown has been requested (for example the
        client being closed under an in-flight request) is a cancellation,
        not a collector failure.
        """
        try:
            return collect()
        except CancelledError:
            raise
        except Exception as e:
            if self._stop.is_set():
                raise CancelledError(f"{name} collection interrupted by shutdown") from e
            result.failed.append(name)
            logger.error("Error collecting %s metrics: %s: %s", name, type(e).__name__, e)
            return None

    def run(self, interval: float) -> None:
        """Poll immediately, then every ``interval`` seconds until stopped."""
        logger.info("Starting background poller (interval %ss)", interval)

        next_run = time.monotonic()
        while not self._stop.is_set():
            try:
                self.poll()
            except CancelledError:
                logger.info("Poll cycle cancelled by shutdown, nothing published")
                break

            # Missed ticks are dropped, not queued
            next_run += interval
            now = time.monotonic()
            while next_run <= now:
                next_run += interval

            if self._stop.wait(next_run - now):
                break

        logger.info("Stopping background poller")

    def start(self, interval: float) -> None:
        """Run the poll loop in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._thread = threading.Thread(
            target=self.run,
            args=(interval,),
            name="dtrack-exporter-poller",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        """Cancel in-flight fetches and wait for the poll loop to exit."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Poller did not stop within %ss", timeout)
            self._thread = None

