"""
A small causal Transformer decoder evaluated against pre-allocated KV caches.

Tokens are fed with their absolute positions, so a prompt can be evaluated in one
pass (prefill) and the continuation one position at a time (decode), both writing
into the same per-layer ``KVCache``.
"""

import math
from dataclasses import dataclass

import torch
import torch.nn.functional as F
from torch import Tensor, nn

from tokengen.core.kv_cache import KVCache


@dataclass
class DecoderConfig:
    """模型配置"""

    vocab_size: int
    hidden_size: int = 64
    num_layers: int = 2
    num_heads: int = 4
    mlp_intermediate_size: int | None = None
    norm_eps: float = 1e-5

    def __post_init__(self):
        if self.mlp_intermediate_size is None:
            self.mlp_intermediate_size = self.hidden_size * 4

        if self.vocab_size <= 0:
            raise ValueError("Vocab size must be positive")
        if self.hidden_size <= 0 or self.hidden_size % 2 != 0:
            raise ValueError("Hidden size must be positive and even")
        if self.num_layers <= 0:
            raise ValueError("Number of layers must be positive")
        if self.hidden_size % self.num_heads != 0:
            raise ValueError(f"hidden_size ({self.hidden_size}) must be divisible by num_heads ({self.num_heads})")

    @property
    def head_dim(self) -> int:
        return self.hidden_size // self.num_heads


def sinusoidal_position_encoding(positions: Tensor, hidden_size: int, dtype: torch.dtype | None = None) -> Tensor:
    """
    Sinusoidal encodings for arbitrary absolute positions.

    Args:
        positions (Tensor): Positions of shape [S].
        hidden_size (int): Encoding dimension (even).

    Returns:
        Tensor: Encodings of shape [S, hidden_size].
    """
    div_term = torch.exp(
        torch.arange(0, hidden_size, 2, device=positions.device, dtype=torch.float32)
        * (-math.log(10000.0) / hidden_size)
    )
    angles = positions.to(torch.float32)[:, None] * div_term[None, :]
    pe = torch.zeros(positions.size(0), hidden_size, device=positions.device, dtype=torch.float32)
    pe[:, 0::2] = torch.sin(angles)
    pe[:, 1::2] = torch.cos(angles)
    return pe.to(dtype) if dtype is not None else pe


class CausalSelfAttention(nn.Module):
    """
    Multi-head self-attention that appends its keys/values to a KV cache.

    The attention mask is derived from absolute positions: a query at position p
    attends to every cached key at position <= p.
    """

    def __init__(self, hidden_size: int, num_heads: int, device=None, dtype=None):
        super().__init__()
        factory_kwargs = {"device": device, "dtype": dtype}
        self.hidden_size = hidden_size
        self.num_heads = num_heads
        self.head_dim = hidden_size // num_heads

        self.qkv_proj = nn.Linear(hidden_size, 3 * hidden_size, bias=True, **factory_kwargs)
        self.out_proj = nn.Linear(hidden_size, hidden_size, bias=True, **factory_kwargs)
        self._init_weights()

    def _init_weights(self):
        """Initialize linear layer weights (Xavier uniform) and biases (zeros)."""
        for proj in [self.qkv_proj, self.out_proj]:
            nn.init.xavier_uniform_(proj.weight)
            nn.init.zeros_(proj.bias)

    def forward(self, hidden_states: Tensor, positions: Tensor, kv_cache: KVCache | None = None) -> Tensor:
        """
        Args:
            hidden_states (Tensor): Input of shape [B, S, H]. B must be 1 when a cache is used.
            positions (Tensor): Absolute positions of the S tokens, shape [S].
            kv_cache (KVCache | None): Cache to append to and attend over.

        Returns:
            Tensor: Output of shape [B, S, H].
        """
        batch_size, seq_len, _ = hidden_states.size()

        q, k, v = self.qkv_proj(hidden_states).split(self.hidden_size, dim=-1)
        q = q.view(batch_size, seq_len, self.num_heads, self.head_dim).transpose(1, 2)
        k = k.view(batch_size, seq_len, self.num_heads, self.head_dim).transpose(1, 2)
        v = v.view(batch_size, seq_len, self.num_heads, self.head_dim).transpose(1, 2)

        if kv_cache is not None:
            k, v = kv_cache.update(k, v)
            key_positions = torch.arange(k.size(2), device=positions.device)
        else:
            key_positions = positions

        # True = may attend
        attn_mask = key_positions[None, :] <= positions[:, None]

        attn_output = F.scaled_dot_product_attention(q, k, v, attn_mask=attn_mask)
        attn_output = attn_output.transpose(1, 2).reshape(batch_size, seq_len, self.hidden_size)
        return self.out_proj(attn_output)


class DecoderBlock(nn.Module):
    """Pre-LN block: attention and MLP, each wrapped in a residual connection."""

    def __init__(self, config: DecoderConfig, device=None, dtype=None):
        super().__init__()
        factory_kwargs = {"device": device, "dtype": dtype}
        self.attn_norm = nn.LayerNorm(config.hidden_size, eps=config.norm_eps, **factory_kwargs)
        self.attn = CausalSelfAttention(config.hidden_size, config.num_heads, **factory_kwargs)
        self.mlp_norm = nn.LayerNorm(config.hidden_size, eps=config.norm_eps, **factory_kwargs)
        self.mlp = nn.Sequential(
            nn.Linear(config.hidden_size, config.mlp_intermediate_size, **factory_kwargs),
            nn.GELU(),
            nn.Linear(config.mlp_intermediate_size, config.hidden_size, **factory_kwargs),
        )

    def forward(self, hidden_states: Tensor, positions: Tensor, kv_cache: KVCache | None = None) -> Tensor:
        hidden_states = hidden_states + self.attn(self.attn_norm(hidden_states), positions, kv_cache)
        hidden_states = hidden_states + self.mlp(self.mlp_norm(hidden_states))
        return hidden_states


class CausalDecoder(nn.Module):
    """
    Token embeddings, a stack of decoder blocks, a final LayerNorm and a language
    modeling head producing next-token logits.
    """

    def __init__(self, config: DecoderConfig, device: torch.device | str | None = None, dtype: torch.dtype | None = None):
        super().__init__()
        factory_kwargs = {"device": device, "dtype": dtype}
        self.config = config

        self.token_embeddings = nn.Embedding(config.vocab_size, config.hidden_size, **factory_kwargs)
        self.blocks = nn.ModuleList([DecoderBlock(config, **factory_kwargs) for _ in range(config.num_layers)])
        self.final_norm = nn.LayerNorm(config.hidden_size, eps=config.norm_eps, **factory_kwargs)
        self.lm_head = nn.Linear(config.hidden_size, config.vocab_size, bias=False, **factory_kwargs)

    def new_kv_caches(self, max_seq_len: int) -> list[KVCache]:
        """Allocates one empty cache per layer on the model's device and dtype."""
        param = next(self.parameters())
        return KVCache.for_layers(
            num_layers=self.config.num_layers,
            max_seq_len=max_seq_len,
            num_kv_heads=self.config.num_heads,
            head_dim=self.config.head_dim,
            device=param.device,
            dtype=param.dtype,
        )

    def forward(
        self,
        input_ids: Tensor,
        positions: Tensor | None = None,
        kv_caches: list[KVCache] | None = None,
    ) -> Tensor:
        """
        Forward pass of the CausalDecoder.

        Args:
            input_ids (Tensor): Token IDs of shape [B, S].
            positions (Tensor | None): Absolute positions of shape [S]; defaults to 0..S-1.
            kv_caches (list[KVCache] | None): One cache per layer. Requires B == 1.

        Returns:
            Tensor: Logits of shape [B, S, vocab_size].
        """
        if positions is None:
            positions = torch.arange(input_ids.size(1), device=input_ids.device)
        if kv_caches is not None and len(kv_caches) != len(self.blocks):
            raise ValueError(f"Expected {len(self.blocks)} KV caches, got {len(kv_caches)}")

        hidden_states = self.token_embeddings(input_ids) * math.sqrt(self.config.hidden_size)
        hidden_states = hidden_states + sinusoidal_position_encoding(
            positions, self.config.hidden_size, dtype=hidden_states.dtype
        )

        for i, block in enumerate(self.blocks):
            hidden_states = block(hidden_states, positions, kv_caches[i] if kv_caches is not None else None)

        return self.lm_head(self.final_norm(hidden_states))
