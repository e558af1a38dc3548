"""
Decoder dispatch for recorded passes.

A decoder variant turns a captured sample file into either an image or a
sequence of decoded records. Variants are registered per satellite mode in
the decoder registry; the sample pipeline adapter selects one and drains it.
"""

from decoders.adapter import SamplePipelineAdapter, decode
from decoders.base import DecodeResult, RecordCounter, SampleSource
from decoders.registry import DecoderRegistry, DecoderVariant, decoder_registry

__all__ = [
    "DecodeResult",
    "DecoderRegistry",
    "DecoderVariant",
    "RecordCounter",
    "SamplePipelineAdapter",
    "SampleSource",
    "decode",
    "decoder_registry",
]
