from .context import (
    ContextTimings,
    TorchEvaluationContext,
    TorchModelContext,
    init_model_context,
    load_model,
    save_checkpoint,
)
from .decoder import CausalDecoder, DecoderConfig

__all__ = [
    "CausalDecoder",
    "ContextTimings",
    "DecoderConfig",
    "TorchEvaluationContext",
    "TorchModelContext",
    "init_model_context",
    "load_model",
    "save_checkpoint",
]
