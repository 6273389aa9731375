"""
Generation core.

Provides:
- Batch: Fixed-capacity evaluation batch
- IncrementalUTF8Decoder: Byte-to-text conversion across token boundaries
- validate_context_size: Capacity checks run before any evaluation
- GenerationStats / StatsTimer: Decode throughput
- CancellationToken: Cooperative cancellation
- TextGenerator: The prefill/decode loop
"""

from .batch import Batch
from .cancellation import CancellationToken
from .generator import FinishReason, GenerationResult, TextGenerator, stdout_sink
from .stats import GenerationStats, StatsTimer
from .utf8 import IncrementalUTF8Decoder
from .validation import validate_context_size

__all__ = [
    "Batch",
    "CancellationToken",
    "FinishReason",
    "GenerationResult",
    "GenerationStats",
    "IncrementalUTF8Decoder",
    "StatsTimer",
    "TextGenerator",
    "stdout_sink",
    "validate_context_size",
]
