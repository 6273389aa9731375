from .config import ServingConfig
from .engine import GenerationEngine, ModelNotLoadedError
from .schemas import GenerationRequest, GenerationResponse

__all__ = [
    "GenerationEngine",
    "GenerationRequest",
    "GenerationResponse",
    "ModelNotLoadedError",
    "ServingConfig",
]
