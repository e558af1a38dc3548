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
Shared fixtures for the observer test suite.
"""

import sys
import wave
from datetime import datetime, timedelta, timezone

import pytest

from common.configuration import Configuration
from crud.observations import ResultStore
from db import create_db_engine, create_session_factory, init_db
from observations.models import PassWindow, SatelliteDescriptor

# Writes stdin into a two-channel 8-bit WAV file, standing in for sox
FAKE_SOX = (
    "import sys, wave\n"
    "data = sys.stdin.buffer.read()\n"
    "w = wave.open(sys.argv[1], 'wb')\n"
    "w.setnchannels(2)\n"
    "w.setsampwidth(1)\n"
    "w.setframerate(150000)\n"
    "w.writeframes(data)\n"
    "w.close()\n"
)


def python_command(script, *args):
    return [sys.executable, "-c", script, *args]


def write_wav(path, frames=1000, channels=2, sample_width=1, rate=150000):
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(sample_width)
        wav.setframerate(rate)
        wav.writeframes(b"\x80" * frames * channels * sample_width)
    return str(path)


@pytest.fixture
def config(tmp_path):
    """Configuration backed by a file in a temporary directory."""
    return Configuration(str(tmp_path / "config.yaml"))


@pytest.fixture
def store(tmp_path):
    """Result store over a fresh SQLite database."""
    engine = create_db_engine(str(tmp_path / "db" / "observations.db"))
    init_db(engine)
    yield ResultStore(create_session_factory(engine), str(tmp_path / "data"))
    engine.dispose()


@pytest.fixture
def satellite():
    return SatelliteDescriptor(id="40069", frequency=137900000, mode="test_records", name="TEST-SAT")


@pytest.fixture
def window():
    start = datetime(2024, 3, 1, 10, 0, 0, tzinfo=timezone.utc)
    return PassWindow(start=start, end=start + timedelta(minutes=12), max_elevation=45.0)
