from __future__ import annotations

import asyncio
import logging

import pytest
from fakes import FakeNotifier, FakeSource, FakeStore, entry, snapshot, transient

from core.config import TrackingConfig
from core.errors import CycleFetchError
from core.scheduler import SchedulerState, TrackingScheduler, iter_batches


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _format(delta) -> str:
    return f"{delta.handle} +{delta.total_increase:.2f}"


def _scheduler(store, source, notifier, sleep=None, **config) -> TrackingScheduler:
    return TrackingScheduler(
        store=store,
        source=source,
        notifier=notifier,
        formatter=_format,
        config=TrackingConfig(**config),
        sleep=sleep or RecordingSleep(),
    )


def test_iter_batches_splits_into_fixed_sizes() -> None:
    entries = [entry(f"user{i}") for i in range(12)]
    sizes = [len(batch) for batch in iter_batches(entries, 5)]
    assert sizes == [5, 5, 2]


def test_twelve_entries_make_three_batches_and_two_delays() -> None:
    entries = [entry(f"user{i}") for i in range(12)]
    store = FakeStore(entries)
    source = FakeSource({f"user{i}": snapshot(f"user{i}", 100) for i in range(12)})
    sleep = RecordingSleep()
    scheduler = _scheduler(store, source, FakeNotifier(), sleep=sleep, batch_delay_seconds=2.0)

    report = asyncio.run(scheduler.run_cycle())

    assert report.entries == 12
    assert report.batches == 3
    assert sleep.delays == [2.0, 2.0]
    assert len(source.calls) == 12
    assert source.max_in_flight <= 5


def test_single_batch_never_sleeps() -> None:
    store = FakeStore([entry("a"), entry("b")])
    source = FakeSource({"a": snapshot("a"), "b": snapshot("b")})
    sleep = RecordingSleep()

    asyncio.run(_scheduler(store, source, FakeNotifier(), sleep=sleep).run_cycle())

    assert sleep.delays == []


def test_entries_in_a_batch_run_concurrently() -> None:
    entries = [entry(f"user{i}") for i in range(3)]
    source = FakeSource({f"user{i}": snapshot(f"user{i}") for i in range(3)})
    scheduler = _scheduler(FakeStore(entries), source, FakeNotifier())

    async def scenario() -> None:
        source.gate = asyncio.Event()
        cycle = asyncio.create_task(scheduler.run_cycle())
        while source.in_flight < 3:
            await asyncio.sleep(0)
        source.gate.set()
        await cycle

    asyncio.run(scenario())

    assert source.max_in_flight == 3


def test_increase_notifies_and_persists() -> None:
    store = FakeStore([entry("alice", 100, chat_id=7, l7d=20)])
    source = FakeSource({"alice": snapshot("alice", 115, l7d=25)})
    notifier = FakeNotifier()

    report = asyncio.run(_scheduler(store, source, notifier).run_cycle())

    assert report.notified == 1
    assert notifier.sent == [(7, "alice +15.00")]
    assert len(store.updates) == 1
    chat_id, handle, stored = store.updates[0]
    assert (chat_id, handle) == (7, "alice")
    assert stored.total == 115


def test_zero_baseline_still_notifies() -> None:
    store = FakeStore([entry("newbie", 0)])
    source = FakeSource({"newbie": snapshot("newbie", 10)})
    notifier = FakeNotifier()

    asyncio.run(_scheduler(store, source, notifier).run_cycle())

    assert notifier.sent == [(1, "newbie +10.00")]
    assert len(store.updates) == 1


def test_unchanged_score_sends_nothing_and_writes_nothing() -> None:
    store = FakeStore([entry("flat", 50)])
    source = FakeSource({"flat": snapshot("flat", 50)})
    notifier = FakeNotifier()

    report = asyncio.run(_scheduler(store, source, notifier).run_cycle())

    assert notifier.sent == []
    assert store.updates == []
    assert report.notified == 0


def test_failing_entry_does_not_block_the_batch() -> None:
    entries = [entry("good1", 10), entry("broken", 10), entry("missing", 10), entry("boom", 10), entry("good2", 10)]
    source = FakeSource(
        {
            "good1": snapshot("good1", 20),
            "broken": transient(),
            "missing": None,
            "boom": RuntimeError("unexpected"),
            "good2": snapshot("good2", 30),
        }
    )
    notifier = FakeNotifier()

    report = asyncio.run(_scheduler(FakeStore(entries), source, notifier).run_cycle())

    assert sorted(message for _, message in notifier.sent) == ["good1 +10.00", "good2 +20.00"]
    assert report.notified == 2
    assert report.skipped == 2
    assert report.failures == 1


def test_delivery_failure_still_persists() -> None:
    store = FakeStore([entry("alice", 10, chat_id=99)])
    source = FakeSource({"alice": snapshot("alice", 20)})
    notifier = FakeNotifier()
    notifier.fail_for.add(99)

    report = asyncio.run(_scheduler(store, source, notifier).run_cycle())

    assert report.failures == 1
    assert len(store.updates) == 1


def test_persistence_failure_is_contained() -> None:
    store = FakeStore([entry("alice", 10), entry("bob", 10)])
    store.fail_update_for.add("alice")
    source = FakeSource({"alice": snapshot("alice", 20), "bob": snapshot("bob", 20)})
    notifier = FakeNotifier()

    report = asyncio.run(_scheduler(store, source, notifier).run_cycle())

    assert len(notifier.sent) == 2
    assert [handle for _, handle, _ in store.updates] == ["bob"]
    assert report.failures == 1
    assert report.notified == 1


def test_list_failure_ends_cycle_early() -> None:
    store = FakeStore([entry("alice")])
    store.fail_list = True
    source = FakeSource()

    report = asyncio.run(_scheduler(store, source, FakeNotifier()).run_cycle())

    assert report.aborted
    assert source.calls == []


def test_start_arms_timer_and_stop_disarms() -> None:
    async def scenario() -> None:
        scheduler = _scheduler(FakeStore(), FakeSource(), FakeNotifier(), interval_seconds=3600)
        assert scheduler.state is SchedulerState.IDLE
        scheduler.start()
        assert scheduler.state is SchedulerState.SCHEDULED
        scheduler.start()
        assert scheduler.state is SchedulerState.SCHEDULED
        scheduler.stop()
        assert scheduler.state is SchedulerState.IDLE

    asyncio.run(scenario())


def test_fire_while_idle_does_nothing() -> None:
    store = FakeStore([entry("alice")])

    async def scenario() -> None:
        scheduler = _scheduler(store, FakeSource(), FakeNotifier())
        scheduler.fire()
        await scheduler.wait_for_cycle()
        assert scheduler.state is SchedulerState.IDLE

    asyncio.run(scenario())

    assert store.list_calls == 0


def test_second_trigger_is_skipped_while_cycle_runs() -> None:
    store = FakeStore([entry("alice", 10)])
    source = FakeSource({"alice": snapshot("alice", 20)})
    notifier = FakeNotifier()

    async def scenario() -> None:
        source.gate = asyncio.Event()
        scheduler = _scheduler(store, source, notifier, interval_seconds=3600)
        scheduler.start()
        scheduler.fire()
        assert scheduler.state is SchedulerState.RUNNING
        scheduler.fire()
        assert scheduler.state is SchedulerState.SCHEDULED
        source.gate.set()
        await scheduler.wait_for_cycle()
        scheduler.stop()

    asyncio.run(scenario())

    assert store.list_calls == 1
    assert len(notifier.sent) == 1


def test_cycle_failure_rearms_the_timer() -> None:
    store = FakeStore([entry("alice")])
    store.fail_list = True

    async def scenario() -> SchedulerState:
        scheduler = _scheduler(store, FakeSource(), FakeNotifier(), interval_seconds=3600)
        scheduler.start()
        scheduler.fire()
        await scheduler.wait_for_cycle()
        state = scheduler.state
        scheduler.stop()
        return state

    assert asyncio.run(scenario()) is SchedulerState.SCHEDULED


def test_unexpected_cycle_error_rearms_the_timer() -> None:
    class ExplodingScheduler(TrackingScheduler):
        async def run_cycle(self):
            raise RuntimeError("bug")

    async def scenario() -> SchedulerState:
        scheduler = ExplodingScheduler(
            store=FakeStore(),
            source=FakeSource(),
            notifier=FakeNotifier(),
            formatter=_format,
            config=TrackingConfig(interval_seconds=3600),
        )
        scheduler.start()
        scheduler.fire()
        await scheduler.wait_for_cycle()
        state = scheduler.state
        scheduler.stop()
        return state

    assert asyncio.run(scenario()) is SchedulerState.SCHEDULED


def test_stop_during_cycle_lets_it_finish_without_rearming() -> None:
    store = FakeStore([entry("alice", 10)])
    source = FakeSource({"alice": snapshot("alice", 20)})
    notifier = FakeNotifier()

    async def scenario() -> SchedulerState:
        source.gate = asyncio.Event()
        scheduler = _scheduler(store, source, notifier, interval_seconds=3600)
        scheduler.start()
        scheduler.fire()
        scheduler.stop()
        source.gate.set()
        await scheduler.wait_for_cycle()
        return scheduler.state

    assert asyncio.run(scenario()) is SchedulerState.IDLE
    assert len(notifier.sent) == 1


def test_restart_after_stop_resumes() -> None:
    store = FakeStore([entry("alice", 10)])
    source = FakeSource({"alice": snapshot("alice", 20)})

    async def scenario() -> None:
        scheduler = _scheduler(store, source, FakeNotifier(), interval_seconds=3600)
        scheduler.start()
        scheduler.stop()
        scheduler.start()
        assert scheduler.state is SchedulerState.SCHEDULED
        scheduler.fire()
        await scheduler.wait_for_cycle()
        scheduler.stop()

    asyncio.run(scenario())

    assert store.list_calls == 1


def test_timer_fires_on_its_own() -> None:
    store = FakeStore()

    async def scenario() -> None:
        scheduler = _scheduler(store, FakeSource(), FakeNotifier(), interval_seconds=3600)
        scheduler.start(interval_seconds=0.01)
        for _ in range(200):
            if store.list_calls >= 2:
                break
            await asyncio.sleep(0.01)
        scheduler.stop()
        await scheduler.wait_for_cycle()

    asyncio.run(scenario())

    assert store.list_calls >= 2


def test_cycle_with_failing_entry_still_rearms() -> None:
    store = FakeStore([entry("good", 10), entry("boom", 10)])
    source = FakeSource({"good": snapshot("good", 20), "boom": RuntimeError("unexpected")})
    notifier = FakeNotifier()

    async def scenario() -> SchedulerState:
        scheduler = _scheduler(store, source, notifier, interval_seconds=3600)
        scheduler.start()
        scheduler.fire()
        await scheduler.wait_for_cycle()
        state = scheduler.state
        scheduler.stop()
        return state

    assert asyncio.run(scenario()) is SchedulerState.SCHEDULED
    assert notifier.sent == [(1, "good +10.00")]


def test_store_list_failure_is_logged_as_cycle_fetch_error(caplog) -> None:
    store = FakeStore([entry("alice")])
    store.fail_list = True

    with caplog.at_level(logging.ERROR, logger="core.scheduler"):
        report = asyncio.run(_scheduler(store, FakeSource(), FakeNotifier()).run_cycle())

    assert report.aborted
    record = caplog.records[-1]
    assert "Failed to list tracked handles" in record.getMessage()
    assert record.exc_info is None


def test_unexpected_list_failure_keeps_traceback(caplog) -> None:
    class BrokenStore(FakeStore):
        def list_all(self):
            raise RuntimeError("bug in store")

    with caplog.at_level(logging.ERROR, logger="core.scheduler"):
        report = asyncio.run(_scheduler(BrokenStore(), FakeSource(), FakeNotifier()).run_cycle())

    assert report.aborted
    assert caplog.records[-1].exc_info is not None


def test_list_entries_raises_cycle_fetch_error() -> None:
    store = FakeStore()
    store.fail_list = True
    scheduler = _scheduler(store, FakeSource(), FakeNotifier())

    with pytest.raises(CycleFetchError):
        asyncio.run(scheduler._list_entries())
