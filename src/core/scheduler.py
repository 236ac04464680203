"""Periodic score tracking.

The scheduler owns a one-shot timer, an explicit Idle/Scheduled/Running state
and the batched reconciliation cycle:

1) List every tracked entry from the store (fresh read each cycle)
2) Split entries into fixed-size batches
3) Within a batch, fetch + compare + notify + persist concurrently
4) Sleep between batches (never after the last one)
5) Re-arm the timer, whatever happened during the cycle

At most one cycle runs at a time. Failures are contained per entry and per
cycle and only surface in the logs.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Optional, Sequence

from core.config import TrackingConfig
from core.delta import compute_delta
from core.errors import CycleFetchError, DeliveryError, PersistenceError, TransientFetchError
from core.models import ScoreDelta, TrackedEntry
from core.ports import NotifierPort, ScoreSourcePort, TrackedHandleStorePort

LOGGER = logging.getLogger(__name__)

Formatter = Callable[[ScoreDelta], str]
Sleeper = Callable[[float], Awaitable[None]]


class SchedulerState(enum.Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"


class EntryOutcome(enum.Enum):
    UNCHANGED = "unchanged"
    NOTIFIED = "notified"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class CycleReport:
    """Summary of one reconciliation pass."""

    entries: int
    batches: int
    notified: int
    skipped: int
    failures: int
    duration_seconds: float
    aborted: bool = False


def iter_batches(entries: Sequence[TrackedEntry], size: int) -> Iterator[Sequence[TrackedEntry]]:
    """Yield consecutive slices of at most `size` entries."""

    for start in range(0, len(entries), size):
        yield entries[start : start + size]


class TrackingScheduler:
    """Drives periodic score reconciliation without overlapping cycles."""

    def __init__(
        self,
        store: TrackedHandleStorePort,
        source: ScoreSourcePort,
        notifier: NotifierPort,
        formatter: Formatter,
        config: Optional[TrackingConfig] = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._store = store
        self._source = source
        self._notifier = notifier
        self._formatter = formatter
        self._config = config or TrackingConfig()
        self._sleep = sleep
        self._interval = self._config.interval_seconds
        self._state = SchedulerState.IDLE
        self._timer: Optional[asyncio.TimerHandle] = None
        self._cycle: Optional[asyncio.Task] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    def start(self, interval_seconds: Optional[float] = None) -> None:
        """Arm the first check; must be called from inside the event loop."""

        if self._state is not SchedulerState.IDLE:
            LOGGER.warning("Score tracking service is already running")
            return
        if interval_seconds is not None:
            if interval_seconds < 0:
                raise ValueError(f"interval_seconds must be >= 0, got {interval_seconds}")
            self._interval = interval_seconds
        self._arm()
        LOGGER.info("Score tracking service started (interval: %.0f seconds)", self._interval)

    def stop(self) -> None:
        """Disarm the timer. An in-flight cycle finishes but does not re-arm."""

        self._cancel_timer()
        self._state = SchedulerState.IDLE
        LOGGER.info("Score tracking service stopped")

    def fire(self) -> None:
        """Timer callback; may also be called directly to trigger a check now."""

        self._cancel_timer()
        if self._state is SchedulerState.IDLE:
            return
        if self._cycle is not None and not self._cycle.done():
            LOGGER.warning("Previous check still in progress, skipping this cycle")
            self._arm()
            return
        self._state = SchedulerState.RUNNING
        self._cycle = asyncio.get_running_loop().create_task(self._run_and_rearm())

    async def wait_for_cycle(self) -> None:
        """Wait until the in-flight cycle, if any, has returned."""

        if self._cycle is not None and not self._cycle.done():
            await asyncio.shield(self._cycle)

    def _arm(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._interval, self.fire)
        self._state = SchedulerState.SCHEDULED

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _run_and_rearm(self) -> None:
        try:
            await self.run_cycle()
        except Exception:
            LOGGER.exception("Error in tracking scores")
        finally:
            # stop() (or stop() + start()) during the cycle moves us out of RUNNING;
            # in both cases the timer is already owned by someone else.
            if self._state is SchedulerState.RUNNING:
                self._arm()

    async def run_cycle(self) -> CycleReport:
        """Run one full pass over all tracked entries."""

        started = time.monotonic()
        try:
            entries = await self._list_entries()
        except CycleFetchError as exc:
            LOGGER.error("%s, ending cycle early", exc)
            return CycleReport(0, 0, 0, 0, 0, time.monotonic() - started, aborted=True)
        except Exception:
            LOGGER.exception("Unexpected error listing tracked handles, ending cycle early")
            return CycleReport(0, 0, 0, 0, 0, time.monotonic() - started, aborted=True)

        LOGGER.info("Checking scores for %s tracked Twitter users", len(entries))

        batches = list(iter_batches(entries, self._config.batch_size))
        outcomes: list[EntryOutcome] = []
        for index, batch in enumerate(batches):
            results = await asyncio.gather(*(self._process_entry(entry) for entry in batch))
            outcomes.extend(results)
            if index < len(batches) - 1:
                await self._sleep(self._config.batch_delay_seconds)

        duration = time.monotonic() - started
        report = CycleReport(
            entries=len(entries),
            batches=len(batches),
            notified=outcomes.count(EntryOutcome.NOTIFIED),
            skipped=outcomes.count(EntryOutcome.SKIPPED),
            failures=outcomes.count(EntryOutcome.FAILED),
            duration_seconds=duration,
        )
        LOGGER.info(
            "Completed checking scores for %s users in %.2f seconds (notified=%s, skipped=%s, failures=%s)",
            report.entries,
            duration,
            report.notified,
            report.skipped,
            report.failures,
        )
        return report

    async def _list_entries(self) -> list[TrackedEntry]:
        try:
            return list(await asyncio.to_thread(self._store.list_all))
        except PersistenceError as exc:
            raise CycleFetchError(f"Failed to list tracked handles: {exc}") from exc

    async def _process_entry(self, entry: TrackedEntry) -> EntryOutcome:
        """Reconcile one entry. Never raises."""

        try:
            current = await self._source.fetch(entry.handle)
        except TransientFetchError as exc:
            LOGGER.error("Could not fetch data for %s: %s", entry.handle, exc)
            return EntryOutcome.SKIPPED
        except Exception:
            LOGGER.exception("Error processing user %s", entry.handle)
            return EntryOutcome.FAILED

        if current is None:
            LOGGER.warning("Could not fetch data for user %s", entry.handle)
            return EntryOutcome.SKIPPED

        delta = compute_delta(entry.snapshot, current)
        if delta is None:
            return EntryOutcome.UNCHANGED

        # Delivery and persistence are independent: a failure in one does not
        # stop the other, and neither is retried in this cycle.
        failed = False
        try:
            message = self._formatter(delta)
            await self._notifier.send(entry.chat_id, message)
        except DeliveryError as exc:
            LOGGER.error("Failed to notify chat %s about %s: %s", entry.chat_id, entry.handle, exc)
            failed = True
        except Exception:
            LOGGER.exception("Error notifying chat %s about %s", entry.chat_id, entry.handle)
            failed = True

        try:
            await asyncio.to_thread(self._store.update_snapshot, entry.chat_id, entry.handle, current)
        except PersistenceError as exc:
            LOGGER.error("Failed to store new score for %s: %s", entry.handle, exc)
            failed = True
        except Exception:
            LOGGER.exception("Error storing new score for %s", entry.handle)
            failed = True

        if failed:
            return EntryOutcome.FAILED

        LOGGER.info(
            "Updated score for %s: %.2f -> %.2f",
            entry.handle,
            delta.previous_total,
            delta.current_total,
        )
        return EntryOutcome.NOTIFIED
