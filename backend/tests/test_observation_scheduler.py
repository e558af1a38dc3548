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
Tests for observations/scheduler.py with a recording job scheduler.
"""

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.jobstores.base import JobLookupError

from observations.models import ObserverLocation, PassWindow, SatelliteDescriptor, observation_id_for
from observations.scheduler import FINISH_EXECUTOR, OBSERVATIONS_EXECUTOR, ObservationScheduler
from server.scheduler import create_scheduler
from tasks.resilient import ResilientTask, TaskState

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class RecordingScheduler:
    """Keeps added jobs instead of running them."""

    def __init__(self):
        self.jobs = {}

    def add_job(self, func, trigger=None, args=None, id=None, **kwargs):
        self.jobs[id] = {"func": func, "trigger": trigger, "args": args or [], **kwargs}

    def remove_job(self, job_id):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def run(self, job_id):
        job = self.jobs.pop(job_id)
        job["func"](*job["args"])


class FakePredictor:
    def __init__(self, offset=timedelta(hours=1)):
        self.offset = offset
        self.calls = []

    def next_pass(self, satellite, observer, after):
        self.calls.append((satellite.id, observer, after))
        if self.offset is None:
            return None
        start = after + self.offset
        return PassWindow(start=start, end=start + timedelta(minutes=10))


class FakeOrchestrator:
    def __init__(self, satellite, window, fail_stop=False):
        self.satellite = satellite
        self.window = window
        self.fail_stop = fail_stop
        self.calls = []

    def get_id(self):
        return observation_id_for(self.window)

    def start(self):
        self.calls.append("start")

    def stop(self):
        self.calls.append("stop")
        if self.fail_stop:
            raise RuntimeError("stop failed")

    def decode(self):
        self.calls.append("decode")


SATELLITES = [
    SatelliteDescriptor(id="40069", frequency=137900000, mode="lrpt"),
    SatelliteDescriptor(id="43803", frequency=145840000, mode="jy1sat"),
    SatelliteDescriptor(id="99999", frequency=1, mode="lrpt", enabled=False),
]


@pytest.fixture
def jobs():
    return RecordingScheduler()


@pytest.fixture
def orchestrators():
    return []


@pytest.fixture
def make_scheduler(jobs, config, orchestrators):
    def factory(predictor=None, satellites=SATELLITES, fail_stop=False):
        def create(satellite, window):
            orchestrator = FakeOrchestrator(satellite, window, fail_stop)
            orchestrators.append(orchestrator)
            return orchestrator

        return ObservationScheduler(jobs, config, satellites, predictor or FakePredictor(), create)

    return factory


def job_id(orchestrator, suffix):
    return f"observation_{orchestrator.satellite.id}_{orchestrator.get_id()}_{suffix}"


class TestPlanning:
    """Test cases for turning passes into jobs."""

    def test_plans_enabled_satellites(self, make_scheduler, jobs, orchestrators):
        scheduler = make_scheduler()
        scheduler.plan(TaskState(), NOW)

        assert [o.satellite.id for o in orchestrators] == ["40069", "43803"]
        assert len(jobs.jobs) == 4
        assert set(scheduler.pending()) == {"40069", "43803"}

    def test_job_triggers(self, make_scheduler, jobs, orchestrators):
        make_scheduler().plan(TaskState(), NOW)
        orchestrator = orchestrators[0]

        start = jobs.jobs[job_id(orchestrator, "start")]
        stop = jobs.jobs[job_id(orchestrator, "stop")]
        assert start["trigger"].run_date == orchestrator.window.start
        assert stop["trigger"].run_date == orchestrator.window.end
        assert start["executor"] == OBSERVATIONS_EXECUTOR
        assert stop["executor"] == FINISH_EXECUTOR

    def test_pending_satellite_is_not_replanned(self, make_scheduler):
        predictor = FakePredictor()
        scheduler = make_scheduler(predictor)
        scheduler.plan(TaskState(), NOW)
        scheduler.plan(TaskState(), NOW + timedelta(minutes=1))
        assert len(predictor.calls) == 2

    def test_pass_already_begun_is_skipped(self, make_scheduler, jobs):
        make_scheduler(FakePredictor(offset=timedelta(minutes=-1))).plan(TaskState(), NOW)
        assert jobs.jobs == {}

    def test_no_pass(self, make_scheduler, jobs):
        make_scheduler(FakePredictor(offset=None)).plan(TaskState(), NOW)
        assert jobs.jobs == {}

    def test_observer_from_configuration(self, make_scheduler, config):
        predictor = FakePredictor()
        config.set_property("location.lat", 51.49)
        config.set_property("location.lon", 0.01)
        make_scheduler(predictor).plan(TaskState(), NOW)
        assert predictor.calls[0][1] == ObserverLocation(lat=51.49, lon=0.01)

    def test_plan_returns_state_unchanged(self, make_scheduler):
        state = TaskState()
        assert make_scheduler().plan(state, NOW) is state


class TestExecution:
    """Test cases for running the registered jobs."""

    def test_stop_job_decodes_and_releases(self, make_scheduler, jobs, orchestrators):
        scheduler = make_scheduler(satellites=SATELLITES[:1])
        scheduler.plan(TaskState(), NOW)
        orchestrator = orchestrators[0]

        jobs.run(job_id(orchestrator, "start"))
        jobs.run(job_id(orchestrator, "stop"))

        assert orchestrator.calls == ["start", "stop", "decode"]
        assert scheduler.pending() == {}

        scheduler.plan(TaskState(), NOW + timedelta(hours=2))
        assert len(orchestrators) == 2

    def test_failed_stop_still_releases(self, make_scheduler, jobs, orchestrators):
        scheduler = make_scheduler(satellites=SATELLITES[:1], fail_stop=True)
        scheduler.plan(TaskState(), NOW)
        orchestrator = orchestrators[0]

        jobs.run(job_id(orchestrator, "stop"))

        assert orchestrator.calls == ["stop"]
        assert scheduler.pending() == {}

    def test_cancel_all(self, make_scheduler, jobs, orchestrators):
        scheduler = make_scheduler()
        scheduler.plan(TaskState(), NOW)

        scheduler.cancel_all()

        assert jobs.jobs == {}
        assert scheduler.pending() == {}
        assert all(o.calls == ["stop"] for o in orchestrators)

    def test_cancel_all_after_start_job_ran(self, make_scheduler, jobs, orchestrators):
        scheduler = make_scheduler(satellites=SATELLITES[:1])
        scheduler.plan(TaskState(), NOW)
        jobs.run(job_id(orchestrators[0], "start"))

        scheduler.cancel_all()
        assert orchestrators[0].calls == ["start", "stop"]

    def test_runs_as_resilient_task(self, make_scheduler, jobs):
        task = ResilientTask("observation-planner", make_scheduler(), clock=lambda: NOW)
        task()
        assert len(jobs.jobs) == 4


class TestApschedulerIntegration:
    """Test cases against a real background scheduler that is never started."""

    def test_jobs_are_registered(self, make_scheduler, config, orchestrators):
        background = create_scheduler()
        satellite = SATELLITES[0]
        scheduler = ObservationScheduler(
            background,
            config,
            [satellite],
            FakePredictor(),
            lambda sat, window: orchestrators.append(FakeOrchestrator(sat, window)) or orchestrators[-1],
        )
        scheduler.plan(TaskState(), NOW)

        ids = {job.id for job in background.get_jobs()}
        assert ids == {job_id(orchestrators[0], "start"), job_id(orchestrators[0], "stop")}

        scheduler.cancel_all()
        assert background.get_jobs() == []


class BlockingOrchestrator(FakeOrchestrator):
    """Capture that holds its worker until it is stopped, like a live rtl_sdr stream."""

    def __init__(self, satellite, window):
        super().__init__(satellite, window)
        self.stopped = threading.Event()

    def start(self):
        self.calls.append("start")
        self.stopped.wait(timeout=10)

    def stop(self):
        self.calls.append("stop")
        self.stopped.set()


class ShortPassPredictor:
    def next_pass(self, satellite, observer, after):
        start = after + timedelta(milliseconds=300)
        return PassWindow(start=start, end=start + timedelta(milliseconds=300))


class TestOverlappingPasses:
    """Test cases for passes that overlap on a running scheduler."""

    def test_captures_filling_the_pool_are_stopped_at_los(self, config):
        workers = 3
        background = create_scheduler(observation_workers=workers)
        satellites = [
            SatelliteDescriptor(id=str(10000 + index), frequency=137100000, mode="lrpt")
            for index in range(workers)
        ]
        created = []

        def create(satellite, window):
            orchestrator = BlockingOrchestrator(satellite, window)
            created.append(orchestrator)
            return orchestrator

        scheduler = ObservationScheduler(
            background, config, satellites, ShortPassPredictor(), create
        )
        background.start()
        try:
            scheduler.plan(TaskState(), datetime.now(timezone.utc))
            assert len(created) == workers

            deadline = time.monotonic() + 5
            while scheduler.pending() and time.monotonic() < deadline:
                time.sleep(0.05)

            assert scheduler.pending() == {}
            for orchestrator in created:
                assert orchestrator.stopped.is_set()
                assert orchestrator.calls[-1] == "decode"
        finally:
            for orchestrator in created:
                orchestrator.stopped.set()
            background.shutdown(wait=False)
