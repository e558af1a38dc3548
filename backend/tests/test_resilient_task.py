# Copyright (c) 2025 Efstratios Goudelis
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Tests for tasks/resilient.py: fatal latch, retry backoff and fault containment.
"""

from datetime import datetime, timedelta, timezone

import pytest

from common.configuration import Configuration
from tasks.resilient import ConfigTaskStateStore, InMemoryTaskStateStore, ResilientTask, TaskState

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingWork:
    """Work function returning a scripted sequence of outcomes."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def __call__(self, state, now):
        self.calls.append(now)
        outcome = self.outcomes.pop(0) if self.outcomes else "ok"
        if outcome == "fatal":
            return state.latch_fatal()
        if outcome == "backoff":
            return state.backoff(now, timedelta(minutes=30))
        if outcome == "raise":
            raise RuntimeError("boom")
        return state


@pytest.fixture
def clock():
    return FakeClock()


class TestTaskState:
    """Test cases for TaskState transitions."""

    def test_default_state(self):
        state = TaskState()
        assert state.fatal is False
        assert state.retry_after is None

    def test_backoff_sets_deadline(self):
        state = TaskState().backoff(T0, timedelta(minutes=30))
        assert state.retry_after == T0 + timedelta(minutes=30)

    def test_clear_backoff(self):
        state = TaskState().backoff(T0, timedelta(minutes=30)).clear_backoff()
        assert state.retry_after is None

    def test_latch_fatal_keeps_deadline(self):
        state = TaskState().backoff(T0, timedelta(minutes=1)).latch_fatal()
        assert state.fatal is True
        assert state.retry_after is not None


class TestResilientTask:
    """Test cases for ResilientTask invocation rules."""

    def test_runs_work_when_healthy(self, clock):
        work = RecordingWork("ok")
        task = ResilientTask("test", work, clock=clock)
        task()
        assert work.calls == [T0]

    def test_fatal_latch_prevents_further_runs(self, clock):
        work = RecordingWork("fatal")
        task = ResilientTask("test", work, clock=clock)
        task()
        assert task.state.fatal is True

        for _ in range(3):
            clock.advance(hours=1)
            task()
        assert len(work.calls) == 1

    def test_backoff_skips_until_deadline(self, clock):
        work = RecordingWork("backoff", "ok")
        task = ResilientTask("test", work, clock=clock)
        task()
        assert task.state.retry_after == T0 + timedelta(minutes=30)

        clock.advance(minutes=10)
        task()
        assert len(work.calls) == 1

    def test_expired_backoff_clears_and_runs_once(self, clock):
        work = RecordingWork("backoff", "ok")
        task = ResilientTask("test", work, clock=clock)
        task()

        clock.advance(minutes=31)
        task()
        assert len(work.calls) == 2
        assert task.state.retry_after is None

    def test_exception_is_contained(self, clock):
        work = RecordingWork("raise", "ok")
        task = ResilientTask("test", work, clock=clock)
        task()
        assert task.state == TaskState()

        task()
        assert len(work.calls) == 2

    def test_state_is_persisted(self, clock):
        store = InMemoryTaskStateStore()
        task = ResilientTask("test", RecordingWork("backoff"), store=store, clock=clock)
        task()
        assert store.state.retry_after == T0 + timedelta(minutes=30)

    def test_state_is_loaded_on_creation(self, clock):
        store = InMemoryTaskStateStore(TaskState(fatal=True))
        work = RecordingWork()
        task = ResilientTask("test", work, store=store, clock=clock)
        task()
        assert work.calls == []

    def test_failed_persist_still_updates_memory(self, clock):
        class BrokenStore(InMemoryTaskStateStore):
            def save(self, state):
                raise OSError("disk full")

        task = ResilientTask("test", RecordingWork("fatal"), store=BrokenStore(), clock=clock)
        task()
        assert task.state.fatal is True

    def test_overlapping_invocation_is_skipped(self, clock):
        inner = []

        def work(state, now):
            # re-entrant call while the first one still holds the lock
            inner.append(task.run())
            return state

        task = ResilientTask("test", work, clock=clock)
        task()
        assert len(inner) == 1


class TestConfigTaskStateStore:
    """Test cases for state persisted through the key-value configuration."""

    def test_round_trip_through_file(self, tmp_path):
        path = str(tmp_path / "config.yaml")
        store = ConfigTaskStateStore(Configuration(path), "ddns")
        store.save(TaskState(fatal=True, retry_after=T0))

        reloaded = ConfigTaskStateStore(Configuration(path), "ddns").load()
        assert reloaded.fatal is True
        assert reloaded.retry_after == T0

    def test_keys_removed_when_cleared(self, config):
        store = ConfigTaskStateStore(config, "ddns")
        store.save(TaskState(fatal=True, retry_after=T0))
        store.save(TaskState())

        assert config.get_property("ddns.fatal") is None
        assert config.get_property("ddns.retry.after.millis") is None

    def test_retry_stored_as_epoch_millis(self, config):
        ConfigTaskStateStore(config, "ddns").save(TaskState(retry_after=T0))
        assert config.get_int("ddns.retry.after.millis") == int(T0.timestamp() * 1000)

    def test_backoff_survives_restart(self, tmp_path, clock):
        path = str(tmp_path / "config.yaml")
        first = ResilientTask(
            "test", RecordingWork("backoff"), ConfigTaskStateStore(Configuration(path), "t"), clock
        )
        first()

        work = RecordingWork()
        second = ResilientTask("test", work, ConfigTaskStateStore(Configuration(path), "t"), clock)
        clock.advance(minutes=5)
        second()
        assert work.calls == []
