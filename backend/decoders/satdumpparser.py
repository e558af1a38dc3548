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

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger("satdump-parser")

# SatDump prefixes every line with "[HH:MM:SS - DD/MM/YYYY]"
TIMESTAMP_PREFIX = re.compile(r"^\[\d{2}:\d{2}:\d{2}\s+-\s+\d{2}/\d{2}/\d{4}\]\s*")


@dataclass
class SatDumpStatus:
    """Progress of one offline SatDump run."""

    sync_status: str = "nosync"  # 'nosync', 'locked', 'lost'
    snr_db: Optional[float] = None
    frame_count: int = 0
    progress: float = 0.0
    products_generated: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class SatDumpOutputParser:
    """
    Parser for SatDump console output.

    Tracks the decoded frame count, sync state and the products SatDump
    reports as saved.
    """

    PATTERNS = {
        # Example: "Progress 50.5%, SNR : 12.5dB, Peak SNR: 15.2dB"
        "progress_snr": re.compile(
            r"Progress\s+([\d.]+|inf)%.*?SNR\s*:\s*([\d.]+|nan)dB", re.IGNORECASE
        ),
        # Example: "Progress 80.1%, Viterbi : SYNCED BER : 0.01, Deframer : SYNCED, Frames : 1520"
        "progress_deframer": re.compile(
            r"Progress\s+([\d.]+|inf)%.*?Deframer\s*:\s*(\w+)(?:.*?Frames\s*:\s*(\d+))?",
            re.IGNORECASE,
        ),
        "frame": re.compile(r"\[.*Decoder\].*Got frame\s+(\d+)", re.IGNORECASE),
        "saved": re.compile(r"(?:\[Products\].*)?Saved:?\s+(\S+\.(?:png|jpg|jpeg))", re.IGNORECASE),
        "error": re.compile(r"(?:\[ERROR\]|\(E\)|\(C\))\s+(.+)", re.IGNORECASE),
    }

    def __init__(self):
        self.status = SatDumpStatus()
        self.lines = 0

    @staticmethod
    def _progress(value: str) -> float:
        if value == "inf":
            return 0.0
        progress = float(value)
        return progress if progress <= 100 else 0.0

    def parse_line(self, line: str) -> Optional[str]:
        """
        Parse a single line of SatDump output.

        Returns:
            The kind of line recognised, or None if the line was ignored
        """
        line = TIMESTAMP_PREFIX.sub("", line.strip())
        if not line:
            return None

        self.lines += 1

        # deframer lines carry both progress and frame counts, check them first
        if match := self.PATTERNS["progress_deframer"].search(line):
            self.status.progress = self._progress(match.group(1))
            deframer_status = match.group(2).upper()
            if deframer_status == "NOSYNC":
                self.status.sync_status = "nosync" if self.status.frame_count == 0 else "lost"
            elif deframer_status in ("SYNCED", "LOCKED", "SYNCING"):
                self.status.sync_status = "locked"
            if match.group(3):
                self.status.frame_count = max(self.status.frame_count, int(match.group(3)))
            return "progress_deframer"

        if match := self.PATTERNS["progress_snr"].search(line):
            self.status.progress = self._progress(match.group(1))
            if match.group(2) != "nan":
                self.status.snr_db = float(match.group(2))
            return "progress_snr"

        if match := self.PATTERNS["frame"].search(line):
            self.status.frame_count = max(self.status.frame_count, int(match.group(1)))
            return "frame"

        if match := self.PATTERNS["saved"].search(line):
            self.status.products_generated.append(match.group(1))
            logger.info(f"SatDump saved {match.group(1)}")
            return "saved"

        if match := self.PATTERNS["error"].search(line):
            self.status.errors.append(match.group(1))
            logger.error(f"SatDump ERROR: {match.group(1)}")
            return "error"

        logger.debug(f"Unparsed SatDump output: {line}")
        return None


__all__ = ["SatDumpOutputParser", "SatDumpStatus"]
