import pytest
import torch

from tokengen.models.decoder import CausalDecoder, DecoderConfig, sinusoidal_position_encoding


@pytest.fixture
def decoder():
    torch.manual_seed(0)
    return CausalDecoder(DecoderConfig(vocab_size=50, hidden_size=32, num_layers=2, num_heads=4)).eval()


class TestDecoderConfig:
    def test_defaults(self):
        config = DecoderConfig(vocab_size=100)

        assert config.mlp_intermediate_size == config.hidden_size * 4
        assert config.head_dim == 16

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"vocab_size": 0},
            {"vocab_size": 10, "hidden_size": 33, "num_heads": 3},
            {"vocab_size": 10, "num_layers": 0},
            {"vocab_size": 10, "hidden_size": 64, "num_heads": 5},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            DecoderConfig(**kwargs)


def test_position_encoding_shape():
    pe = sinusoidal_position_encoding(torch.tensor([0, 5, 9]), 16)

    assert pe.shape == (3, 16)
    assert torch.allclose(pe[0, 1::2], torch.ones(8))


def test_forward_shape(decoder):
    logits = decoder(torch.randint(0, 50, (2, 7)))

    assert logits.shape == (2, 7, 50)


def test_incremental_decode_matches_full_forward(decoder):
    """Prefill plus one-token steps against a KV cache reproduce the uncached logits."""
    input_ids = torch.randint(0, 50, (1, 9), generator=torch.Generator().manual_seed(1))

    with torch.inference_mode():
        full = decoder(input_ids)

        caches = decoder.new_kv_caches(max_seq_len=16)
        prefill = decoder(input_ids[:, :5], torch.arange(5), caches)
        steps = [decoder(input_ids[:, i : i + 1], torch.tensor([i]), caches) for i in range(5, 9)]

    assert torch.allclose(prefill, full[:, :5], atol=1e-5)
    for i, step in zip(range(5, 9), steps):
        assert torch.allclose(step[:, 0], full[:, i], atol=1e-5)
    assert all(cache.seq_len == 9 for cache in caches)


def test_wrong_cache_count(decoder):
    caches = decoder.new_kv_caches(8)[:1]

    with pytest.raises(ValueError, match="Expected 2 KV caches"):
        decoder(torch.tensor([[1, 2]]), kv_caches=caches)
