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
Observation orchestrator - drives one satellite pass from capture to artifact.

States: created -> capturing -> captured -> decoded, with failed reachable
from any state. start() blocks for the whole capture and must run on its own
thread; stop() is called from another thread at LOS and decode() after it.
Faults are logged and reflected in the state, never raised to the caller.
"""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from typing import Optional

from common.configuration import Configuration
from common.exceptions import ProcessSpawnError
from decoders.adapter import SamplePipelineAdapter
from decoders.base import DecodeResult
from observations.constants import (
    CAPTURE_JOIN_TIMEOUT,
    CHANNEL_DATA,
    CHANNEL_IMAGE,
    STATUS_CAPTURED,
    STATUS_CAPTURING,
    STATUS_CREATED,
    STATUS_DECODED,
    STATUS_FAILED,
)
from observations.models import ObservationRecord, PassWindow, SatelliteDescriptor, observation_id_for
from processing.capturecommands import build_capture_chain
from processing.processpipe import SHUTDOWN_TIMEOUT, ProcessPipe, spawn_process

logger = logging.getLogger("observation")


class ObservationOrchestrator:
    """State machine for a single pass of a single satellite."""

    def __init__(
        self,
        config: Configuration,
        satellite: SatelliteDescriptor,
        window: PassWindow,
        store,
        adapter: Optional[SamplePipelineAdapter] = None,
        spawn=spawn_process,
        temp_dir: Optional[str] = None,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT,
    ):
        self.config = config
        self.satellite = satellite
        self.window = window
        self.store = store
        self.adapter = adapter or SamplePipelineAdapter()
        self.spawn = spawn
        self.temp_dir = temp_dir
        self.shutdown_timeout = shutdown_timeout

        self.observation_id = observation_id_for(window)
        self.status = STATUS_CREATED
        self.wav_path: Optional[str] = None
        self.decode_result: Optional[DecodeResult] = None

        self._pipe: Optional[ProcessPipe] = None
        self._cancel = threading.Event()
        self._capture_done = threading.Event()
        self._capture_done.set()
        self._stop_lock = threading.Lock()
        self._stopped = False

    def get_start(self) -> datetime:
        return self.window.start

    def get_end(self) -> datetime:
        return self.window.end

    def get_id(self) -> str:
        return self.observation_id

    def __repr__(self):
        return f"<Observation {self.satellite.id}/{self.observation_id} {self.status}>"

    def start(self):
        """Capture samples until stop() is requested or the tuner stream ends."""
        if self.status != STATUS_CREATED:
            logger.warning(f"Cannot start {self!r}, it was already started")
            return

        try:
            fd, self.wav_path = tempfile.mkstemp(
                prefix=f"{self.satellite.id}-", suffix=".wav", dir=self.temp_dir
            )
            os.close(fd)
        except OSError as e:
            logger.error(f"Unable to create temp file for {self.satellite.id}: {e}")
            logger.exception(e)
            self.status = STATUS_FAILED
            return

        with self._stop_lock:
            if self._stopped:
                logger.info(f"{self!r} was stopped before the capture started")
                os.remove(self.wav_path)
                self.wav_path = None
                return
            self._capture_done.clear()

        try:
            pipe = ProcessPipe(
                build_capture_chain(self.config, self.satellite, self.wav_path),
                spawn=self.spawn,
                shutdown_timeout=self.shutdown_timeout,
            )
            self._pipe = pipe
            pipe.start()
            self.status = STATUS_CAPTURING
            logger.info(
                f"Capturing {self.satellite.id} pass {self.observation_id} "
                f"until {self.window.end.isoformat()}"
            )
            pipe.run(self._cancel)
        except ProcessSpawnError as e:
            logger.error(f"Unable to start capture for {self.satellite.id}: {e.message}")
            self.status = STATUS_FAILED
        finally:
            self._capture_done.set()

    def stop(self):
        """Finish the capture and register the raw samples with the result store."""
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True

        self._cancel.set()
        pipe = self._pipe
        if pipe is not None:
            pipe.shutdown()

        if not self._capture_done.wait(timeout=CAPTURE_JOIN_TIMEOUT):
            # The capture may still be writing, leave its file alone
            logger.warning(f"Capture of {self!r} did not finish in time, not registering it")
            self.status = STATUS_FAILED
            return
        self._pipe = None

        if self.wav_path is None or not os.path.exists(self.wav_path):
            logger.info(f"Nothing saved for {self.satellite.id} pass {self.observation_id}")
            self.status = STATUS_FAILED
            return

        if os.path.getsize(self.wav_path) == 0:
            logger.info(f"Nothing saved for {self.satellite.id} pass {self.observation_id}")
            os.remove(self.wav_path)
            self.wav_path = None
            self.status = STATUS_FAILED
            return

        if not self.store.create_observation(self.satellite.id, self.observation_id, self.wav_path):
            self.status = STATUS_FAILED
            return

        self.status = STATUS_CAPTURED

    def decode(self) -> Optional[ObservationRecord]:
        """
        Decode the registered capture and persist the outcome.

        Returns the saved record, or None when nothing was captured.
        """
        record = self.store.find(self.satellite.id, self.observation_id)
        if record is None:
            logger.info(f"Nothing to decode for {self.satellite.id} pass {self.observation_id}")
            return None

        result = self.adapter.decode(record.raw_path, self.satellite)
        self.decode_result = result
        if result is not None:
            self._save_artifacts(result)

        record.start = self.window.start
        record.end = self.window.end
        record.decoded_count = result.record_count if result is not None else 0
        record.status = STATUS_DECODED
        self.store.save_metadata(self.satellite.id, record)
        self.status = STATUS_DECODED

        logger.info(
            f"Decoded {self.satellite.id} pass {self.observation_id}: "
            f"{record.decoded_count} records, image={'yes' if result and result.has_image else 'no'}"
        )
        return record

    def _save_artifacts(self, result: DecodeResult):
        try:
            if result.has_image:
                path = self._write_temp(".jpg", result.image)
                self.store.save_artifact(self.satellite.id, self.observation_id, path, CHANNEL_IMAGE)
            elif result.records:
                lines = [json.dumps(self._record_to_dict(record)) for record in result.records]
                payload = ("\n".join(lines) + "\n").encode("utf-8")
                path = self._write_temp(".jsonl", payload)
                self.store.save_artifact(self.satellite.id, self.observation_id, path, CHANNEL_DATA)
        except OSError as e:
            logger.error(f"Unable to write artifact for {self.satellite.id}/{self.observation_id}: {e}")
            logger.exception(e)

    def _write_temp(self, suffix: str, data: bytes) -> str:
        fd, path = tempfile.mkstemp(prefix=f"{self.satellite.id}-", suffix=suffix, dir=self.temp_dir)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        return path

    @staticmethod
    def _record_to_dict(record) -> dict:
        if hasattr(record, "to_dict"):
            return record.to_dict()
        if isinstance(record, (bytes, bytearray)):
            return {"payload": bytes(record).hex()}
        return {"value": str(record)}
