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
Result store for observations.

Metadata lives in SQLite through SQLAlchemy; captured and decoded files live
under ``<data_dir>/satellites/<satellite>/data/<observation>/``. Writes are
serialized per observation id, distinct observations proceed concurrently.
"""

import logging
import shutil
import threading
import traceback
import weakref
from pathlib import Path
from typing import List, Optional, Tuple

from sqlalchemy import select

from db.models import ObservationArtifacts, Observations
from observations.constants import STATUS_CAPTURED
from observations.models import ObservationRecord

logger = logging.getLogger("result-store")

RAW_FILE_STEM = "output"


def _to_record(row: Observations, artifacts: List[ObservationArtifacts]) -> ObservationRecord:
    return ObservationRecord(
        satellite_id=row.satellite_id,
        observation_id=row.observation_id,
        raw_path=row.raw_path,
        start=row.start,
        end=row.end,
        decoded_count=row.decoded_count or 0,
        status=row.status,
        artifacts={artifact.channel: artifact.path for artifact in artifacts},
    )


class ResultStore:
    """Durable storage for captured and decoded observations."""

    def __init__(self, session_factory, data_dir: str):
        self.Session = session_factory
        self.base_dir = Path(data_dir) / "satellites"
        # Entries disappear once no writer holds the lock
        self._locks: "weakref.WeakValueDictionary[Tuple[str, str], threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()

    def _lock_for(self, satellite_id: str, observation_id: str) -> threading.Lock:
        key = (satellite_id, observation_id)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def observation_dir(self, satellite_id: str, observation_id: str) -> Path:
        return self.base_dir / satellite_id / "data" / observation_id

    def _restore(self, target: Path, source: Path):
        if not target.exists():
            return
        try:
            shutil.move(str(target), str(source))
        except OSError as e:
            logger.error(f"Could not move {target} back to {source}: {e}")

    def _fetch_artifacts(self, session, satellite_id: str, observation_id: str):
        stmt = select(ObservationArtifacts).filter(
            ObservationArtifacts.satellite_id == satellite_id,
            ObservationArtifacts.observation_id == observation_id,
        )
        return list(session.execute(stmt).scalars().all())

    def create_observation(self, satellite_id: str, observation_id: str, raw_path: str) -> bool:
        """
        Register a raw capture, moving it into the observation directory.

        Returns False if the observation already exists or the capture cannot be stored.
        """
        with self._lock_for(satellite_id, observation_id):
            with self.Session() as session:
                moved = None
                try:
                    if session.get(Observations, (satellite_id, observation_id)) is not None:
                        logger.info(f"Observation {satellite_id}/{observation_id} already exists")
                        return False

                    source = Path(raw_path)
                    target_dir = self.observation_dir(satellite_id, observation_id)
                    target_dir.mkdir(parents=True, exist_ok=True)
                    target = target_dir / f"{RAW_FILE_STEM}{source.suffix}"
                    shutil.move(str(source), str(target))
                    moved = (target, source)

                    session.add(
                        Observations(
                            satellite_id=satellite_id,
                            observation_id=observation_id,
                            raw_path=str(target),
                            decoded_count=0,
                            status=STATUS_CAPTURED,
                        )
                    )
                    session.commit()
                    logger.info(f"Stored capture {target}")
                    return True

                except Exception as e:
                    session.rollback()
                    if moved:
                        self._restore(*moved)
                    logger.error(f"Error creating observation {satellite_id}/{observation_id}: {e}")
                    logger.error(traceback.format_exc())
                    return False

    def find(self, satellite_id: str, observation_id: str) -> Optional[ObservationRecord]:
        with self.Session() as session:
            try:
                row = session.get(Observations, (satellite_id, observation_id))
                if row is None:
                    return None
                artifacts = self._fetch_artifacts(session, satellite_id, observation_id)
                return _to_record(row, artifacts)

            except Exception as e:
                logger.error(f"Error fetching observation {satellite_id}/{observation_id}: {e}")
                logger.error(traceback.format_exc())
                return None

    def list_observations(self, satellite_id: str) -> List[ObservationRecord]:
        with self.Session() as session:
            stmt = (
                select(Observations)
                .filter(Observations.satellite_id == satellite_id)
                .order_by(Observations.observation_id.desc())
            )
            rows = session.execute(stmt).scalars().all()
            return [
                _to_record(row, self._fetch_artifacts(session, satellite_id, row.observation_id))
                for row in rows
            ]

    def save_artifact(
        self, satellite_id: str, observation_id: str, path: str, channel: str
    ) -> Optional[str]:
        """
        Move a decoded file next to the capture as ``<channel><suffix>``.

        Returns the stored path, or None if the observation is unknown or the
        file cannot be stored.
        """
        with self._lock_for(satellite_id, observation_id):
            with self.Session() as session:
                moved = None
                try:
                    if session.get(Observations, (satellite_id, observation_id)) is None:
                        logger.warning(
                            f"Cannot save artifact for unknown observation {satellite_id}/{observation_id}"
                        )
                        return None

                    source = Path(path)
                    target_dir = self.observation_dir(satellite_id, observation_id)
                    target_dir.mkdir(parents=True, exist_ok=True)
                    target = target_dir / f"{channel}{source.suffix}"
                    shutil.move(str(source), str(target))
                    moved = (target, source)

                    artifact = session.get(
                        ObservationArtifacts, (satellite_id, observation_id, channel)
                    )
                    if artifact is None:
                        session.add(
                            ObservationArtifacts(
                                satellite_id=satellite_id,
                                observation_id=observation_id,
                                channel=channel,
                                path=str(target),
                            )
                        )
                    else:
                        artifact.path = str(target)
                    session.commit()
                    return str(target)

                except Exception as e:
                    session.rollback()
                    if moved:
                        self._restore(*moved)
                    logger.error(f"Error saving artifact {path} for {satellite_id}/{observation_id}: {e}")
                    logger.error(traceback.format_exc())
                    return None

    def save_metadata(self, satellite_id: str, record: ObservationRecord) -> bool:
        with self._lock_for(satellite_id, record.observation_id):
            with self.Session() as session:
                try:
                    row = session.get(Observations, (satellite_id, record.observation_id))
                    if row is None:
                        logger.warning(
                            f"Cannot save metadata for unknown observation {satellite_id}/{record.observation_id}"
                        )
                        return False

                    row.start = record.start
                    row.end = record.end
                    row.decoded_count = record.decoded_count
                    row.status = record.status
                    session.commit()
                    return True

                except Exception as e:
                    session.rollback()
                    logger.error(
                        f"Error saving metadata for {satellite_id}/{record.observation_id}: {e}"
                    )
                    logger.error(traceback.format_exc())
                    return False
