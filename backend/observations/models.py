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

"""Data model shared by the observation pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from observations.constants import STATUS_CREATED


@dataclass(frozen=True)
class PassWindow:
    """Visibility window produced by the pass predictor."""

    start: datetime
    end: datetime
    max_elevation: Optional[float] = None

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class SatelliteDescriptor:
    """Read-only description of a satellite from the catalog."""

    id: str
    frequency: int
    mode: str
    name: str = ""
    enabled: bool = True
    tle: Optional[Tuple[str, str]] = None
    params: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass
class ObservationRecord:
    """Durable view of an observation as kept by the result store."""

    satellite_id: str
    observation_id: str
    raw_path: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    decoded_count: int = 0
    status: str = STATUS_CREATED
    artifacts: Dict[str, str] = field(default_factory=dict)


def observation_id_for(window: PassWindow) -> str:
    """Observation ids are the pass start in epoch milliseconds."""
    return str(int(window.start.timestamp() * 1000))


@dataclass(frozen=True)
class ObserverLocation:
    """Ground station position in degrees and metres."""

    lat: float
    lon: float
    alt: float = 0.0
