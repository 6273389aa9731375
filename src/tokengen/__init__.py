"""
tokengen: autoregressive token generation over a fixed-capacity KV cache.

- Prefill and one-token-at-a-time decode against a pre-allocated KV cache
- Capacity checks that run before any model evaluation
- Incremental UTF-8 decoding of token bytes into well-formed text fragments
- Seeded distributional + greedy sampler chain
- Cancellable, ordered streaming to a caller-supplied sink
"""

__version__ = "0.1.0"

from tokengen.config import DEFAULT_SEED, GenerationConfig
from tokengen.errors import (
    BatchFullError,
    CapacityExceeded,
    EvaluationError,
    GenerationError,
    LoadError,
    PromptTooLong,
    SinkError,
    TokenizationError,
)
from tokengen.generation import (
    CancellationToken,
    FinishReason,
    GenerationResult,
    GenerationStats,
    TextGenerator,
    stdout_sink,
)
from tokengen.models import TorchModelContext, load_model

__all__ = [
    "DEFAULT_SEED",
    "BatchFullError",
    "CancellationToken",
    "CapacityExceeded",
    "EvaluationError",
    "FinishReason",
    "GenerationConfig",
    "GenerationError",
    "GenerationResult",
    "GenerationStats",
    "LoadError",
    "PromptTooLong",
    "SinkError",
    "TextGenerator",
    "TokenizationError",
    "TorchModelContext",
    "load_model",
    "stdout_sink",
]
