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

"""Types shared by the decoder variants."""

import threading
import wave
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, List, Optional, Protocol

OUTPUT_IMAGE = "image"
OUTPUT_RECORDS = "records"


@dataclass(frozen=True)
class SampleSource:
    """A captured WAV sample file and its format."""

    path: str
    sample_rate: int
    channels: int
    sample_width: int
    frames: int

    @classmethod
    def open(cls, path: str) -> "SampleSource":
        """
        Read the WAV header of a capture.

        Raises:
            FileNotFoundError: If the capture does not exist
            wave.Error: If the file is not a readable WAV file
        """
        with wave.open(path, "rb") as wav:
            return cls(
                path=path,
                sample_rate=wav.getframerate(),
                channels=wav.getnchannels(),
                sample_width=wav.getsampwidth(),
                frames=wav.getnframes(),
            )

    @property
    def is_iq(self) -> bool:
        return self.channels == 2

    @property
    def baseband_format(self) -> str:
        """SatDump baseband format name for this file."""
        return "w8" if self.sample_width == 1 else "w16"

    @property
    def duration_seconds(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate else 0.0


class RecordCounter:
    """Decoded-record counter scoped to a single decode call."""

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    def increment(self, amount: int = 1):
        with self._lock:
            self._value += amount

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class SamplePipeline(Protocol):
    """Iterable over the typed outputs of one decode, closed exactly once."""

    def __iter__(self) -> Iterator[Any]: ...

    def close(self) -> None: ...


@dataclass
class BeaconRecord:
    """One frame recovered by a telemetry beacon pipeline."""

    payload: bytes
    timestamp: datetime
    framing: str = ""

    @property
    def length(self) -> int:
        return len(self.payload)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "framing": self.framing,
            "length": self.length,
            "payload": self.payload.hex(),
        }


@dataclass
class DecodeResult:
    """Outcome of draining one sample pipeline."""

    mode: str
    output_type: str
    record_count: int = 0
    image: Optional[bytes] = None
    records: List[Any] = field(default_factory=list)

    @property
    def has_image(self) -> bool:
        return self.image is not None and len(self.image) > 0
