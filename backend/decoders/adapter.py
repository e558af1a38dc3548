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
Sample pipeline adapter.

Selects the decoder variant for a satellite, builds a fresh pipeline over the
captured samples and drains it into a DecodeResult. Any fault while building
or draining is logged with the sample path and turned into an absent result.
"""

import logging
from typing import Any, Dict, List, Optional

from decoders.base import OUTPUT_IMAGE, DecodeResult, RecordCounter, SampleSource
from decoders.registry import DecoderRegistry, decoder_registry
from observations.models import SatelliteDescriptor

logger = logging.getLogger("decoder-adapter")


class SamplePipelineAdapter:
    """
    Decodes captures for any registered satellite mode.

    ``base_params`` are station-wide settings (tool paths, work directory)
    layered between the variant defaults and the satellite's own parameters.
    """

    def __init__(
        self,
        registry: Optional[DecoderRegistry] = None,
        base_params: Optional[Dict[str, Any]] = None,
    ):
        self.registry = registry or decoder_registry
        self.base_params = dict(base_params or {})

    def decode(self, raw_path: str, satellite: SatelliteDescriptor) -> Optional[DecodeResult]:
        counter = RecordCounter()
        pipeline = None
        outputs: List[Any] = []

        try:
            variant = self.registry.resolve(satellite.mode)
            params = {**variant.default_params, **self.base_params, **satellite.params}
            source = SampleSource.open(raw_path)
            logger.info(
                f"Decoding {raw_path} for {satellite.id} with '{variant.mode}' "
                f"({source.sample_rate} sps, {source.duration_seconds:.0f}s)"
            )
            pipeline = variant.build_pipeline(source, params, counter)
            for output in pipeline:
                outputs.append(output)
        except Exception as e:
            logger.error(f"Unable to process: {raw_path}: {e}")
            logger.exception(e)
            return None
        finally:
            if pipeline is not None:
                try:
                    pipeline.close()
                except Exception as e:
                    logger.info(f"Unable to close pipeline for {raw_path}: {e}")

        if variant.output_type == OUTPUT_IMAGE:
            image = outputs[-1] if outputs else None
            return DecodeResult(
                mode=variant.mode,
                output_type=variant.output_type,
                record_count=counter.value,
                image=image,
            )

        return DecodeResult(
            mode=variant.mode,
            output_type=variant.output_type,
            record_count=counter.value,
            records=outputs,
        )


def decode(
    raw_path: str, satellite: SatelliteDescriptor, registry: Optional[DecoderRegistry] = None
) -> Optional[DecodeResult]:
    return SamplePipelineAdapter(registry).decode(raw_path, satellite)
