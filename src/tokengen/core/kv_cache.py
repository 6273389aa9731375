"""
KV Cache for one generation call.

The cache is pre-allocated to the full context size (``n_ctx`` positions) and
updated in place, so decoding never reallocates. Writes past the capacity are
rejected instead of silently wrapping.
"""

from __future__ import annotations

import torch
from torch import Tensor


class KVCacheOverflow(ValueError):
    """An update would write past the cache capacity."""


class KVCache:
    """Pre-allocated Key-Value cache for a single sequence.

    Args:
        max_seq_len: Capacity of the cache in token positions.
        num_kv_heads: Number of key-value heads.
        head_dim: Dimension of each attention head.
        device: Device to allocate buffers on.
        dtype: Data type for cache buffers.

    Example:
        >>> cache = KVCache(max_seq_len=2048, num_kv_heads=4, head_dim=16)
        >>> # In attention forward pass:
        >>> k, v = cache.update(k_new, v_new)  # In-place update, returns view
    """

    def __init__(
        self,
        max_seq_len: int,
        num_kv_heads: int,
        head_dim: int,
        device: torch.device | str | None = None,
        dtype: torch.dtype | None = None,
    ) -> None:
        self.max_seq_len = max_seq_len
        self.num_kv_heads = num_kv_heads
        self.head_dim = head_dim

        # Pre-allocate buffers: [1, N_kv, S_max, D]
        self.k_cache = torch.zeros(1, num_kv_heads, max_seq_len, head_dim, device=device, dtype=dtype)
        self.v_cache = torch.zeros(1, num_kv_heads, max_seq_len, head_dim, device=device, dtype=dtype)
        self._seq_len = 0

    @property
    def seq_len(self) -> int:
        """Current cached sequence length."""
        return self._seq_len

    @property
    def device(self) -> torch.device:
        return self.k_cache.device

    @property
    def dtype(self) -> torch.dtype:
        return self.k_cache.dtype

    def update(self, k_new: Tensor, v_new: Tensor) -> tuple[Tensor, Tensor]:
        """Append new key-value tensors and return the full cache view.

        Args:
            k_new: New key tensor of shape [1, N_kv, S_new, D].
            v_new: New value tensor of shape [1, N_kv, S_new, D].

        Returns:
            Tuple of (k_cached, v_cached) covering every cached position up to and
            including the new tokens. Shape: [1, N_kv, S_total, D].

        Raises:
            KVCacheOverflow: If the update would exceed max_seq_len.
        """
        new_tokens = k_new.size(2)
        new_seq_len = self._seq_len + new_tokens

        if new_seq_len > self.max_seq_len:
            raise KVCacheOverflow(
                f"Cache overflow: trying to cache {new_seq_len} tokens, but max_seq_len is {self.max_seq_len}"
            )

        # In-place update (no memory allocation)
        self.k_cache[:, :, self._seq_len : new_seq_len] = k_new
        self.v_cache[:, :, self._seq_len : new_seq_len] = v_new
        self._seq_len = new_seq_len

        return (
            self.k_cache[:, :, :new_seq_len],
            self.v_cache[:, :, :new_seq_len],
        )

    @classmethod
    def for_layers(
        cls,
        num_layers: int,
        max_seq_len: int,
        num_kv_heads: int,
        head_dim: int,
        device: torch.device | str | None = None,
        dtype: torch.dtype | None = None,
    ) -> list[KVCache]:
        """Create one KVCache per transformer layer."""
        return [cls(max_seq_len, num_kv_heads, head_dim, device, dtype) for _ in range(num_layers)]
