import pytest

from tokengen.models import init_model_context
from tokengen.serving.config import ServingConfig
from tokengen.tokenization import ByteTokenizer


@pytest.fixture
def byte_tokenizer():
    return ByteTokenizer()


@pytest.fixture
def tiny_model_context(byte_tokenizer):
    """Provides a small randomly initialized model with a deterministic seed."""
    return init_model_context(
        byte_tokenizer,
        context_size=64,
        hidden_size=32,
        num_layers=1,
        num_heads=2,
        seed=0,
    )


@pytest.fixture
def tiny_serving_config():
    """Provides a minimal serving configuration for fast unit testing."""
    return ServingConfig(
        context_size=64,
        max_length=24,
        batch_size=16,
        hidden_size=32,
        num_layers=1,
        num_heads=2,
        seed=0,
    )
