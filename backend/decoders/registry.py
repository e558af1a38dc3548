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


from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from common.exceptions import UnknownDecoderModeError
from decoders import beacon, lrpt
from decoders.base import OUTPUT_IMAGE, OUTPUT_RECORDS, BeaconRecord


@dataclass(frozen=True)
class DecoderVariant:
    """Capabilities of a decoder for one satellite mode"""

    mode: str
    output_type: str  # OUTPUT_IMAGE or OUTPUT_RECORDS
    build_pipeline: Callable  # (SampleSource, params, RecordCounter) -> SamplePipeline
    record_type: Optional[type] = None
    default_params: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    description: str = ""


class DecoderRegistry:
    """
    Registry of decoder variants keyed by satellite mode.

    Dispatch is a pure lookup; variants share no mutable state and every
    build_pipeline call returns a fresh pipeline.
    """

    def __init__(self, variants: Optional[List[DecoderVariant]] = None):
        self._variants: Dict[str, DecoderVariant] = {}
        for variant in variants or []:
            self.register(variant)

    def register(self, variant: DecoderVariant):
        """
        Register a decoder variant.

        Raises:
            ValueError: If the mode is already registered or the output type is unknown
        """
        if variant.mode in self._variants:
            raise ValueError(f"Decoder mode '{variant.mode}' is already registered")
        if variant.output_type not in (OUTPUT_IMAGE, OUTPUT_RECORDS):
            raise ValueError(f"Unknown output type '{variant.output_type}'")
        self._variants[variant.mode] = variant

    def get_capabilities(self, mode: str) -> Optional[DecoderVariant]:
        """Get the variant for a mode, None if unknown"""
        return self._variants.get(mode)

    def resolve(self, mode: str) -> DecoderVariant:
        """
        Get the variant for a mode.

        Raises:
            UnknownDecoderModeError: If no variant is registered for the mode
        """
        variant = self._variants.get(mode)
        if variant is None:
            raise UnknownDecoderModeError(mode)
        return variant

    def exists(self, mode: str) -> bool:
        return mode in self._variants

    def list_modes(self) -> List[str]:
        return list(self._variants.keys())

    def produces_image(self, mode: str) -> bool:
        variant = self.get_capabilities(mode)
        return variant.output_type == OUTPUT_IMAGE if variant else False


def create_default_registry() -> DecoderRegistry:
    return DecoderRegistry(
        [
            DecoderVariant(
                mode="lrpt",
                output_type=OUTPUT_IMAGE,
                build_pipeline=lrpt.build_lrpt_pipeline,
                default_params=lrpt.DEFAULT_PARAMS,
                description="Meteor-M LRPT image via SatDump (QPSK, CADU sync, phase ambiguity resolution)",
            ),
            DecoderVariant(
                mode="bpsk_beacon",
                output_type=OUTPUT_RECORDS,
                build_pipeline=beacon.build_beacon_pipeline,
                record_type=BeaconRecord,
                default_params=beacon.DEFAULT_PARAMS,
                description="BPSK telemetry beacon via gr-satellites demodulator and deframer",
            ),
            DecoderVariant(
                mode="jy1sat",
                output_type=OUTPUT_RECORDS,
                build_pipeline=beacon.build_beacon_pipeline,
                record_type=BeaconRecord,
                default_params=beacon.JY1SAT_PARAMS,
                description="JY1SAT 1200 baud differential BPSK with AO-40 FEC framing",
            ),
        ]
    )


# Default instance
decoder_registry = create_default_registry()
