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


from typing import List

from common.configuration import Configuration
from observations.models import SatelliteDescriptor
from processing.processpipe import CommandSpec

DEFAULT_INPUT_SAMPLE_RATE = 1440000
DEFAULT_OUTPUT_SAMPLE_RATE = 150000
DEFAULT_GAIN = 45


def build_capture_chain(
    config: Configuration, satellite: SatelliteDescriptor, wav_path: str
) -> List[CommandSpec]:
    """
    Build the tuner -> rate/format converter chain for one pass.

    rtl_sdr streams interleaved unsigned 8-bit I/Q at the input rate; sox
    wraps it into a two-channel WAV file resampled to the output rate.
    """
    input_rate = int(satellite.params.get("input_sample_rate", DEFAULT_INPUT_SAMPLE_RATE))
    output_rate = int(satellite.params.get("output_sample_rate", DEFAULT_OUTPUT_SAMPLE_RATE))
    gain = satellite.params.get("gain", config.get_property("satellites.rtlsdr.gain", DEFAULT_GAIN))
    ppm = config.get_int("ppm.current", 0)

    rtl_sdr = CommandSpec(
        name="rtl_sdr for satellites",
        args=[
            config.get_property("satellites.rtlsdr.path", "rtl_sdr"),
            "-f",
            str(int(satellite.frequency)),
            "-s",
            str(input_rate),
            "-g",
            str(gain),
            "-p",
            str(ppm),
            "-",
        ],
    )
    sox = CommandSpec(
        name="sox",
        args=[
            config.get_property("satellites.sox.path", "sox"),
            "--type",
            "raw",
            "--rate",
            str(input_rate),
            "--encoding",
            "unsigned-integer",
            "--bits",
            "8",
            "--channels",
            "2",
            "-",
            wav_path,
            "rate",
            str(output_rate),
        ],
    )
    return [rtl_sdr, sox]
