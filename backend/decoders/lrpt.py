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
LRPT image decoder built on SatDump.

SatDump performs the whole LRPT chain (QPSK demodulation, CADU correlation,
phase ambiguity resolution, Viterbi/RS, MSU-MR image reconstruction) over the
captured baseband file. Frame counts reported on its console drive the
decoded-record counter; the best product image is re-encoded as JPEG.
"""

import io
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from PIL import Image

from decoders.base import RecordCounter, SampleSource
from decoders.satdumpparser import SatDumpOutputParser
from processing.processpipe import SHUTDOWN_TIMEOUT, shutdown_process

logger = logging.getLogger("lrpt-decoder")

DEFAULT_PARAMS: Dict[str, Any] = {
    "satdump_path": "satdump",
    "pipeline": "meteor_m2-x_lrpt",
    "symbol_rate": 72000,
    "jpeg_quality": 90,
    # composites first, single channels as fallback
    "product_preference": ["221", "321", "125", "MSU-MR-2", "MSU-MR-1"],
}


def find_best_product(output_dir: Path, preference: List[str]) -> Optional[Path]:
    """
    Pick the product image to keep.

    The first preference token contained in a file name wins; without a match
    the largest PNG is used.
    """
    candidates = sorted(output_dir.rglob("*.png"))
    if not candidates:
        return None

    for token in preference:
        for candidate in candidates:
            if token in candidate.name:
                return candidate

    return max(candidates, key=lambda path: path.stat().st_size)


def encode_jpeg(image_path: Path, quality: int = 90) -> bytes:
    with Image.open(image_path) as img:
        buffer = io.BytesIO()
        img.convert("RGB").save(buffer, format="JPEG", quality=quality)
        return buffer.getvalue()


class SatDumpPipeline:
    """Runs SatDump over one capture and yields at most one encoded image."""

    def __init__(self, source: SampleSource, params: Dict[str, Any], counter: RecordCounter):
        self.source = source
        self.params = params
        self.counter = counter
        self.process: Optional[subprocess.Popen] = None
        self.output_dir: Optional[Path] = None
        self.parser = SatDumpOutputParser()

    def command(self, output_dir: Path) -> List[str]:
        return [
            self.params.get("satdump_path", "satdump"),
            self.params["pipeline"],
            "baseband",
            self.source.path,
            str(output_dir),
            "--samplerate",
            str(self.source.sample_rate),
            "--baseband_format",
            self.params.get("baseband_format", self.source.baseband_format),
            "--dc_block",
        ]

    def __iter__(self) -> Iterator[bytes]:
        self.output_dir = Path(tempfile.mkdtemp(prefix="satdump-", dir=self.params.get("work_dir")))
        cmd = self.command(self.output_dir)
        logger.info(f"Running: {' '.join(cmd)}")

        self.process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
        )

        reported = 0
        for line in self.process.stdout:
            self.parser.parse_line(line)
            frames = self.parser.status.frame_count
            if frames > reported:
                self.counter.increment(frames - reported)
                reported = frames

        return_code = self.process.wait()
        product = find_best_product(self.output_dir, self.params.get("product_preference", []))

        # SatDump returns exit code 1 even when decoding succeeded
        if return_code not in (0, 1) or (return_code == 1 and product is None):
            logger.warning(
                f"SatDump exited with code {return_code} for {self.source.path}, "
                f"{reported} frames decoded"
            )

        if product is None:
            logger.info(f"No image decoded from {self.source.path}")
            return

        logger.info(f"Using product {product.name} ({reported} frames)")
        yield encode_jpeg(product, int(self.params.get("jpeg_quality", 90)))

    def close(self):
        shutdown_process("satdump", self.process, timeout=SHUTDOWN_TIMEOUT)
        self.process = None
        if self.output_dir is not None:
            shutil.rmtree(self.output_dir, ignore_errors=True)
            self.output_dir = None


def build_lrpt_pipeline(
    source: SampleSource, params: Dict[str, Any], counter: RecordCounter
) -> SatDumpPipeline:
    if not source.is_iq:
        raise ValueError(f"LRPT needs a two-channel I/Q capture, got {source.channels} channel(s)")
    return SatDumpPipeline(source, params, counter)
