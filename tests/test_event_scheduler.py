# /// script
# requires-python = ">=3.12"
# dependencies = ["pytest>=7.0", "pydantic>=2.0"]
# ///
"""Tests for the event scheduler.

Covers sequencing, timestamps, handler filtering, handler fault isolation,
log access, clear/reset semantics and concurrent publishing.
"""

import logging
import sys
import threading
from dataclasses import FrozenInstanceError, dataclass
from datetime import timedelta
from pathlib import Path
from typing import ClassVar

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from baseball_events import (
    RUN_SCORED,
    OutRecordedEvent,
    RunScoredEvent,
)
from models import Half, Outcome, Player
from simengine.events import CallbackHandler, EventHandler, EventScheduler, SimulationEvent


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@dataclass(frozen=True, kw_only=True)
class PingEvent(SimulationEvent):
    event_type: ClassVar[str] = "test.ping"
    n: int = 0


def make_player(name="Runner"):
    return Player(name=name, walk_rate=0.1, single_rate=0.15, double_rate=0.05,
                  triple_rate=0.005, home_run_rate=0.03)


def make_run_scored(score=1):
    p = make_player()
    return RunScoredEvent(runner=p, batter=p, is_home_team=True, new_score=score,
                          scoring_play=Outcome.SINGLE)


def make_out(number=1):
    return OutRecordedEvent(batter=make_player("Batter"), out_number=number,
                            inning=1, half=Half.TOP)


class Recorder(EventHandler):
    def __init__(self, event_types=None):
        self.event_types = frozenset(event_types) if event_types else None
        self.seen = []

    def handle(self, event):
        self.seen.append(event)


class Exploding(EventHandler):
    def handle(self, event):
        raise RuntimeError("handler blew up")


@pytest.fixture
def scheduler():
    return EventScheduler()


# ---------------------------------------------------------------------------
# Sequencing and timestamps
# ---------------------------------------------------------------------------

class TestSequencing:

    def test_sequences_start_at_one_and_increase_by_one(self, scheduler):
        events = [scheduler.publish(PingEvent(n=i)) for i in range(3)]
        assert [e.sequence for e in events] == [1, 2, 3]

    def test_timestamps_match_current_time_without_advance(self, scheduler):
        events = [scheduler.publish(PingEvent()) for _ in range(3)]
        assert {e.timestamp for e in events} == {timedelta(0)}

    def test_timestamp_reflects_advanced_time(self, scheduler):
        first = scheduler.publish(PingEvent())
        scheduler.advance_time(timedelta(minutes=10))
        second = scheduler.publish(PingEvent())
        assert first.timestamp == timedelta(0)
        assert second.timestamp == timedelta(minutes=10)

    def test_set_time(self, scheduler):
        scheduler.set_time(timedelta(hours=1))
        assert scheduler.publish(PingEvent()).timestamp == timedelta(hours=1)
        assert scheduler.current_time == timedelta(hours=1)

    def test_caller_supplied_sequence_is_overwritten(self, scheduler):
        stamped = scheduler.publish(PingEvent(sequence=99, timestamp=timedelta(days=1)))
        assert stamped.sequence == 1
        assert stamped.timestamp == timedelta(0)

    def test_published_event_is_immutable(self, scheduler):
        stamped = scheduler.publish(PingEvent(n=1))
        with pytest.raises(FrozenInstanceError):
            stamped.n = 2

    def test_log_holds_stamped_events_in_publish_order(self, scheduler):
        scheduler.publish(PingEvent(n=1))
        scheduler.publish(make_out())
        scheduler.publish(PingEvent(n=2))
        log = scheduler.event_log
        assert [e.sequence for e in log] == [1, 2, 3]
        assert isinstance(log[1], OutRecordedEvent)


# ---------------------------------------------------------------------------
# clear_log / reset
# ---------------------------------------------------------------------------

class TestClearAndReset:

    def test_reset_restarts_numbering_and_time(self, scheduler):
        scheduler.publish(PingEvent())
        scheduler.publish(PingEvent())
        scheduler.advance_time(timedelta(seconds=30))
        scheduler.reset()
        assert scheduler.event_log == ()
        assert scheduler.current_time == timedelta(0)
        assert scheduler.publish(PingEvent()).sequence == 1

    def test_clear_log_keeps_numbering_and_time(self, scheduler):
        scheduler.publish(PingEvent())
        scheduler.publish(PingEvent())
        scheduler.advance_time(timedelta(seconds=30))
        scheduler.clear_log()
        assert scheduler.event_log == ()
        nxt = scheduler.publish(PingEvent())
        assert nxt.sequence == 3
        assert nxt.timestamp == timedelta(seconds=30)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

class TestHandlers:

    def test_filtered_handler_receives_only_matching_events(self, scheduler):
        runs = Recorder({RUN_SCORED})
        scheduler.register_handler(runs)
        scheduler.publish(make_out(1))
        scheduler.publish(make_run_scored(1))
        scheduler.publish(PingEvent())
        scheduler.publish(make_run_scored(2))
        assert [e.new_score for e in runs.seen] == [1, 2]
        assert all(isinstance(e, RunScoredEvent) for e in runs.seen)

    def test_unfiltered_handler_receives_everything_in_order(self, scheduler):
        everything = Recorder()
        scheduler.register_handler(everything)
        published = [
            scheduler.publish(make_out(1)),
            scheduler.publish(make_run_scored()),
            scheduler.publish(PingEvent()),
        ]
        assert everything.seen == published

    def test_empty_filter_means_all(self, scheduler):
        handler = Recorder(set())
        scheduler.register_handler(handler)
        scheduler.publish(PingEvent())
        scheduler.publish(make_out())
        assert len(handler.seen) == 2

    def test_failing_handler_does_not_block_others(self, scheduler, caplog):
        before = Recorder()
        after = Recorder()
        scheduler.register_handler(before)
        scheduler.register_handler(Exploding())
        scheduler.register_handler(after)
        with caplog.at_level(logging.ERROR, logger="simengine.events"):
            stamped = scheduler.publish(PingEvent())
        assert before.seen == [stamped]
        assert after.seen == [stamped]
        assert any("handler blew up" in r.getMessage() for r in caplog.records)

    def test_failing_handler_does_not_reach_publisher(self, scheduler):
        scheduler.register_handler(Exploding())
        scheduler.publish(PingEvent())
        assert len(scheduler.event_log) == 1

    def test_unregister(self, scheduler):
        handler = Recorder()
        scheduler.register_handler(handler)
        scheduler.publish(PingEvent())
        scheduler.unregister_handler(handler)
        scheduler.publish(PingEvent())
        assert len(handler.seen) == 1

    def test_unregister_unknown_handler_is_a_no_op(self, scheduler):
        scheduler.unregister_handler(Recorder())

    def test_callback_handler(self, scheduler):
        seen = []
        scheduler.register_handler(CallbackHandler(seen.append, ["test.ping"]))
        scheduler.publish(make_out())
        scheduler.publish(PingEvent(n=5))
        assert [e.n for e in seen] == [5]

    def test_handler_registered_during_dispatch_sees_next_event_only(self, scheduler):
        late = Recorder()
        registered = []

        def register_late(event):
            if not registered:
                registered.append(late)
                scheduler.register_handler(late)

        scheduler.register_handler(CallbackHandler(register_late))
        scheduler.publish(PingEvent(n=1))
        scheduler.publish(PingEvent(n=2))
        assert [e.n for e in late.seen] == [2]

    def test_debug_mode_traces_publish(self, caplog):
        scheduler = EventScheduler(debug_mode=True)
        with caplog.at_level(logging.DEBUG, logger="simengine.events"):
            scheduler.publish(PingEvent())
        assert any("test.ping" in r.getMessage() for r in caplog.records)


# ---------------------------------------------------------------------------
# Log queries
# ---------------------------------------------------------------------------

class TestQueries:

    def test_get_events_by_type(self, scheduler):
        scheduler.publish(PingEvent(n=1))
        scheduler.publish(make_out())
        scheduler.publish(PingEvent(n=2))
        pings = scheduler.get_events(PingEvent)
        assert [p.n for p in pings] == [1, 2]
        assert len(scheduler.get_events()) == 3

    def test_filter_events_by_predicate(self, scheduler):
        for i in range(5):
            scheduler.publish(PingEvent(n=i))
        odd = scheduler.filter_events(lambda e: e.n % 2 == 1)
        assert [e.n for e in odd] == [1, 3]


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

def test_concurrent_publishers_get_unique_increasing_sequences():
    scheduler = EventScheduler()
    per_thread = 200
    threads = [
        threading.Thread(target=lambda: [scheduler.publish(PingEvent()) for _ in range(per_thread)])
        for _ in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    sequences = [e.sequence for e in scheduler.event_log]
    assert sequences == list(range(1, 8 * per_thread + 1))
    print("  test_concurrent_publishers_get_unique_increasing_sequences: PASSED")
