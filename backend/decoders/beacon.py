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
Telemetry beacon decoder built on gr-satellites.

The capture is replayed through a fixed-parameter BPSK demodulator feeding
a mode-specific deframer; every PDU leaving the deframer becomes a
BeaconRecord. GNU Radio and gr-satellites are system packages and are
imported only when a flowgraph is built.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List

import numpy as np

from decoders.base import BeaconRecord, RecordCounter, SampleSource

logger = logging.getLogger("beacon-decoder")

DEFAULT_PARAMS: Dict[str, Any] = {
    "baudrate": 1200,
    "differential": False,
    "f_offset": 0,
    "framing": "ax25",
}

JY1SAT_PARAMS: Dict[str, Any] = {
    "baudrate": 1200,
    "differential": True,
    "f_offset": 0,
    "framing": "ao40",
}

SUPPORTED_FRAMINGS = ("ao40", "ax25", "ccsds_rs")


def create_deframer(framing: str):
    if framing == "ao40":
        from satellites.components.deframers.ao40_fec_deframer import ao40_fec_deframer

        return ao40_fec_deframer()
    if framing == "ax25":
        from satellites.components.deframers.ax25_deframer import ax25_deframer

        return ax25_deframer(g3ruh_scrambler=True)
    if framing == "ccsds_rs":
        from satellites.components.deframers.ccsds_rs_deframer import ccsds_rs_deframer

        # Standard CCSDS frame parameters
        # 223 bytes data + 32 bytes RS parity = 255 byte total frame
        return ccsds_rs_deframer(
            frame_size=223,
            precoding=None,
            rs_en=True,
            rs_basis="dual",
            rs_interleaving=1,
            scrambler="CCSDS",
        )
    raise ValueError(f"Unsupported framing '{framing}'")


def pdu_to_bytes(pmt, msg) -> bytes:
    if pmt.is_pair(msg):
        data = pmt.to_python(pmt.cdr(msg))
    else:
        data = pmt.to_python(msg)
    if isinstance(data, np.ndarray):
        data = data.astype(np.uint8).tobytes()
    return bytes(data)


class BeaconPipeline:
    """Replays a capture through the gr-satellites demodulator and deframer once."""

    def __init__(self, source: SampleSource, params: Dict[str, Any], counter: RecordCounter):
        framing = params.get("framing", "ax25")
        if framing not in SUPPORTED_FRAMINGS:
            raise ValueError(f"Unsupported framing '{framing}'")

        self.source = source
        self.params = params
        self.counter = counter
        self.framing = framing
        self.records: List[BeaconRecord] = []
        self.top_block = None

    def on_frame(self, payload: bytes):
        self.counter.increment()
        self.records.append(
            BeaconRecord(
                payload=payload, timestamp=datetime.now(timezone.utc), framing=self.framing
            )
        )

    def build(self):
        from gnuradio import blocks, gr
        from satellites.components.demodulators.bpsk_demodulator import bpsk_demodulator

        pipeline = self

        class FrameCollector(gr.basic_block):
            def __init__(self):
                gr.basic_block.__init__(self, name="beacon_frame_collector", in_sig=None, out_sig=None)
                self.message_port_register_in(gr.pmt.intern("in"))
                self.set_msg_handler(gr.pmt.intern("in"), self.handle_msg)

            def handle_msg(self, msg):
                try:
                    pipeline.on_frame(pdu_to_bytes(gr.pmt, msg))
                except Exception as e:
                    logger.error(f"Error handling beacon PDU: {e}")

        tb = gr.top_block("Beacon Decoder")
        wav = blocks.wavfile_source(self.source.path, False)
        demod = bpsk_demodulator(
            baudrate=float(self.params["baudrate"]),
            samp_rate=float(self.source.sample_rate),
            iq=self.source.is_iq,
            f_offset=float(self.params.get("f_offset", 0)),
            differential=bool(self.params.get("differential", False)),
            manchester=False,
        )
        deframer = create_deframer(self.framing)
        collector = FrameCollector()

        if self.source.is_iq:
            to_complex = blocks.float_to_complex(1)
            tb.connect((wav, 0), (to_complex, 0))
            tb.connect((wav, 1), (to_complex, 1))
            tb.connect(to_complex, demod, deframer)
        else:
            tb.connect(wav, demod, deframer)
        tb.msg_connect((deframer, "out"), (collector, "in"))

        self.top_block = tb
        return tb

    def __iter__(self) -> Iterator[BeaconRecord]:
        tb = self.build()
        logger.info(
            f"Decoding {self.source.path}: BPSK {self.params['baudrate']}bd, "
            f"{self.source.sample_rate}sps, framing={self.framing}"
        )
        tb.start()
        tb.wait()
        logger.info(f"Recovered {len(self.records)} frames from {self.source.path}")
        yield from self.records

    def close(self):
        tb, self.top_block = self.top_block, None
        if tb is None:
            return
        tb.stop()
        tb.wait()
        tb.disconnect_all()


def build_beacon_pipeline(
    source: SampleSource, params: Dict[str, Any], counter: RecordCounter
) -> BeaconPipeline:
    return BeaconPipeline(source, params, counter)
