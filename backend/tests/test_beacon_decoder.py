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
Tests for decoders/beacon.py. The PDU conversion and frame bookkeeping run
without GNU Radio; the flowgraph tests are skipped when it is not installed.
"""

import numpy as np
import pytest

from conftest import write_wav
from decoders.base import BeaconRecord, RecordCounter, SampleSource
from decoders.beacon import (
    DEFAULT_PARAMS,
    JY1SAT_PARAMS,
    BeaconPipeline,
    build_beacon_pipeline,
    create_deframer,
    pdu_to_bytes,
)


class FakePair:
    def __init__(self, car, cdr):
        self.car = car
        self.cdr = cdr


class FakePmt:
    """Stands in for gr.pmt: pairs hold (metadata, payload), anything else is the payload."""

    def is_pair(self, msg):
        return isinstance(msg, FakePair)

    def cdr(self, msg):
        return msg.cdr

    def to_python(self, msg):
        return msg


@pytest.fixture
def source(tmp_path):
    return SampleSource.open(write_wav(tmp_path / "beacon.wav", frames=4800))


class TestPduToBytes:
    """Test cases for converting deframer PDUs to bytes."""

    def test_pair_with_ndarray_payload(self):
        msg = FakePair(None, np.array([0x8A, 0xA6, 0x01], dtype=np.uint8))
        assert pdu_to_bytes(FakePmt(), msg) == b"\x8a\xa6\x01"

    def test_wide_integer_array_is_narrowed(self):
        msg = FakePair({"meta": 1}, np.array([1, 2, 255], dtype=np.int64))
        assert pdu_to_bytes(FakePmt(), msg) == b"\x01\x02\xff"

    def test_bare_payload(self):
        assert pdu_to_bytes(FakePmt(), [0x41, 0x42]) == b"AB"

    def test_bare_bytes(self):
        assert pdu_to_bytes(FakePmt(), b"\x00\x10") == b"\x00\x10"


class TestBeaconPipeline:
    """Test cases for pipeline construction and frame bookkeeping."""

    def test_unsupported_framing(self, source):
        with pytest.raises(ValueError, match="Unsupported framing 'usp'"):
            BeaconPipeline(source, {**DEFAULT_PARAMS, "framing": "usp"}, RecordCounter())

    def test_framing_defaults_to_ax25(self, source):
        params = {key: value for key, value in DEFAULT_PARAMS.items() if key != "framing"}
        assert BeaconPipeline(source, params, RecordCounter()).framing == "ax25"

    def test_build_helper(self, source):
        pipeline = build_beacon_pipeline(source, dict(JY1SAT_PARAMS), RecordCounter())
        assert isinstance(pipeline, BeaconPipeline)
        assert pipeline.framing == "ao40"
        assert pipeline.records == []

    def test_on_frame_counts_and_records(self, source):
        counter = RecordCounter()
        pipeline = BeaconPipeline(source, dict(JY1SAT_PARAMS), counter)

        pipeline.on_frame(b"\x01\x02\x03")
        pipeline.on_frame(b"\x04")

        assert counter.value == 2
        assert [record.payload for record in pipeline.records] == [b"\x01\x02\x03", b"\x04"]
        assert all(isinstance(record, BeaconRecord) for record in pipeline.records)
        assert all(record.framing == "ao40" for record in pipeline.records)
        assert pipeline.records[0].to_dict()["payload"] == "010203"

    def test_close_without_build(self, source):
        pipeline = BeaconPipeline(source, dict(DEFAULT_PARAMS), RecordCounter())
        pipeline.close()
        pipeline.close()
        assert pipeline.top_block is None


class TestCreateDeframer:
    """Test cases for deframer selection."""

    def test_unsupported_framing(self):
        with pytest.raises(ValueError, match="Unsupported framing 'usp'"):
            create_deframer("usp")

    @pytest.mark.parametrize("framing", ["ao40", "ax25", "ccsds_rs"])
    def test_supported_framings(self, framing):
        pytest.importorskip("gnuradio")
        pytest.importorskip("satellites")
        assert create_deframer(framing) is not None


class TestFlowgraph:
    """Test cases that run the GNU Radio flowgraph on a silent capture."""

    def test_silence_yields_no_frames(self, source):
        pytest.importorskip("gnuradio")
        pytest.importorskip("satellites")
        counter = RecordCounter()
        pipeline = BeaconPipeline(source, dict(DEFAULT_PARAMS), counter)
        try:
            records = list(pipeline)
        finally:
            pipeline.close()

        assert records == []
        assert counter.value == 0
        assert pipeline.top_block is None
