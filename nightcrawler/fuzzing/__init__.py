"""
Payload generation for Nightcrawler.

This module provides:
- Grammar / keyed-vector fuzz string generation
- Pluggable payload encodings
- A sink that drives external commands with each payload
"""

from .payload_generator import (
    FuzzingSpec,
    PayloadGenerator,
    ENCODINGS,
    resolve_encodings,
    load_fuzzing_spec,
    parse_fuzzing_spec,
)
from .command_runner import CommandSink

__all__ = [
    'FuzzingSpec',
    'PayloadGenerator',
    'ENCODINGS',
    'resolve_encodings',
    'load_fuzzing_spec',
    'parse_fuzzing_spec',
    'CommandSink',
]
