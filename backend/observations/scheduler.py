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
Observation scheduler - turns predicted passes into capture jobs.

The planning step runs periodically as a resilient task. For every enabled
satellite without a pending pass it asks the predictor for the next window
and registers two date-triggered jobs: start at AOS on the observations executor
and stop at LOS on the finish executor. A running capture holds its worker
until it is stopped, so the stop jobs never wait behind captures. The stop
job decodes the capture on the same thread once it is registered.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.date import DateTrigger

from common.configuration import Configuration
from observations.constants import MISFIRE_GRACE_SECONDS
from observations.models import PassWindow, SatelliteDescriptor
from observations.orchestrator import ObservationOrchestrator
from tasks.resilient import TaskState
from tracking.passes import observer_from_config

logger = logging.getLogger("observation-scheduler")

OBSERVATIONS_EXECUTOR = "observations"
FINISH_EXECUTOR = "finish"


class ObservationScheduler:
    """
    Plans passes for the satellite catalog and owns the pending orchestrators.

    Used as the work function of a ResilientTask: plan(state, now).
    """

    def __init__(
        self,
        scheduler,
        config: Configuration,
        satellites: List[SatelliteDescriptor],
        predictor,
        orchestrator_factory: Callable[[SatelliteDescriptor, PassWindow], ObservationOrchestrator],
    ):
        self.scheduler = scheduler
        self.config = config
        self.satellites = satellites
        self.predictor = predictor
        self.orchestrator_factory = orchestrator_factory
        self._pending: Dict[str, ObservationOrchestrator] = {}
        self._lock = threading.Lock()

    def __call__(self, state: TaskState, now: datetime) -> TaskState:
        return self.plan(state, now)

    def pending(self) -> Dict[str, ObservationOrchestrator]:
        with self._lock:
            return dict(self._pending)

    def plan(self, state: TaskState, now: datetime) -> TaskState:
        observer = observer_from_config(self.config)
        for satellite in self.satellites:
            if not satellite.enabled:
                continue
            with self._lock:
                if satellite.id in self._pending:
                    continue

            window = self.predictor.next_pass(satellite, observer, now)
            if window is None:
                continue
            if window.start <= now:
                logger.debug(f"Pass of {satellite.id} has already begun, skipping")
                continue

            self.schedule(satellite, window)
        return state

    def schedule(self, satellite: SatelliteDescriptor, window: PassWindow) -> Optional[ObservationOrchestrator]:
        orchestrator = self.orchestrator_factory(satellite, window)
        with self._lock:
            if satellite.id in self._pending:
                return None
            self._pending[satellite.id] = orchestrator

        job_prefix = f"observation_{satellite.id}_{orchestrator.get_id()}"
        self.scheduler.add_job(
            orchestrator.start,
            trigger=DateTrigger(run_date=window.start),
            id=f"{job_prefix}_start",
            name=f"Capture {satellite.name or satellite.id}",
            executor=OBSERVATIONS_EXECUTOR,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.finish,
            trigger=DateTrigger(run_date=window.end),
            args=[satellite.id, orchestrator],
            id=f"{job_prefix}_stop",
            name=f"Stop and decode {satellite.name or satellite.id}",
            executor=FINISH_EXECUTOR,
            misfire_grace_time=None,
            replace_existing=True,
        )

        logger.info(
            f"Scheduled {satellite.id} ({satellite.mode}) pass {orchestrator.get_id()}: "
            f"{window.start.isoformat()} - {window.end.isoformat()}"
        )
        return orchestrator

    def finish(self, satellite_id: str, orchestrator: ObservationOrchestrator):
        """Stop the capture at LOS and decode it on the same thread."""
        try:
            orchestrator.stop()
            orchestrator.decode()
        except Exception as e:
            logger.error(f"Error while finishing {orchestrator!r}: {e}")
            logger.exception(e)
        finally:
            self._release(satellite_id, orchestrator)

    def cancel_all(self):
        """Remove pending jobs and stop running captures. Captures are not decoded."""
        with self._lock:
            pending = list(self._pending.items())
            self._pending.clear()

        for satellite_id, orchestrator in pending:
            job_prefix = f"observation_{satellite_id}_{orchestrator.get_id()}"
            for suffix in ("start", "stop"):
                try:
                    self.scheduler.remove_job(f"{job_prefix}_{suffix}")
                except JobLookupError:
                    pass
            try:
                orchestrator.stop()
            except Exception as e:
                logger.error(f"Error while cancelling {orchestrator!r}: {e}")
                logger.exception(e)

        if pending:
            logger.info(f"Cancelled {len(pending)} pending observations")

    def _release(self, satellite_id: str, orchestrator: ObservationOrchestrator):
        with self._lock:
            if self._pending.get(satellite_id) is orchestrator:
                del self._pending[satellite_id]
