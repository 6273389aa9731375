import itertools

import pytest

from tokengen.errors import CapacityExceeded, PromptTooLong
from tokengen.generation import CancellationToken, FinishReason
from tokengen.models import save_checkpoint
from tokengen.serving.config import ServingConfig
from tokengen.serving.engine import GenerationEngine, ModelNotLoadedError
from tokengen.tokenization import ByteTokenizer


@pytest.fixture
def engine(tiny_serving_config):
    engine = GenerationEngine(tiny_serving_config)
    engine.load_model()
    yield engine
    engine.unload_model()


def test_load_dummy_model(engine):
    assert engine.loaded
    assert engine.model_context.n_ctx == 64
    assert isinstance(engine.model_context.tokenizer, ByteTokenizer)


def test_load_from_checkpoint(engine, tmp_path):
    save_checkpoint(engine.model_context.model, tmp_path)
    config = ServingConfig(model_dir=str(tmp_path), context_size=32)

    loaded = GenerationEngine(config)
    loaded.load_model()

    assert loaded.model_context.n_ctx == 32
    assert loaded.model_context.model.config == engine.model_context.model.config


def test_generate(engine):
    text, result = engine.generate("hello")

    assert result.n_prompt_tokens == 6
    assert len(result.token_ids) <= 24 - 6
    assert result.finish_reason in (FinishReason.STOP, FinishReason.LENGTH)
    assert isinstance(text, str)


def test_generate_respects_request_max_length(engine):
    _, result = engine.generate("hello", max_length=8)

    assert len(result.token_ids) <= 2


def test_stream_matches_generate(engine):
    text, _ = engine.generate("hello")

    assert "".join(engine.stream_generate("hello")) == text


def test_stream_precancelled(engine):
    token = CancellationToken()
    token.cancel()

    assert list(engine.stream_generate("hello", cancellation=token)) == []


def test_stream_early_close_releases_engine(engine):
    stream = engine.stream_generate("hello")
    list(itertools.islice(stream, 1))
    stream.close()

    assert engine._lock.acquire(blocking=False)
    engine._lock.release()


def test_stream_reraises_errors(engine):
    with pytest.raises(PromptTooLong):
        list(engine.stream_generate("hello", max_length=3))


def test_capacity_errors(engine):
    with pytest.raises(CapacityExceeded):
        engine.generate("hello", max_length=100)


def test_not_loaded(tiny_serving_config):
    engine = GenerationEngine(tiny_serving_config)

    assert not engine.loaded
    with pytest.raises(ModelNotLoadedError, match="not loaded"):
        engine.generate("hello")
    with pytest.raises(ModelNotLoadedError, match="not loaded"):
        next(engine.stream_generate("hello"))
