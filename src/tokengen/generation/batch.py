"""
Fixed-capacity evaluation batch.

The batch is allocated once per generation call and then cleared and refilled in
place for every evaluation step, so the hot decode loop never allocates.
"""

from __future__ import annotations

import torch

from tokengen.errors import BatchFullError


class Batch:
    """Pre-allocated arena of (token, position, sequence id, needs-logits) entries.

    Args:
        capacity: Maximum number of entries the batch can hold.
        device: Device to allocate the slot buffers on.

    Example:
        >>> batch = Batch(capacity=512)
        >>> for i, token in enumerate(prompt_ids):
        ...     batch.add(token, i, 0, i == len(prompt_ids) - 1)
        >>> ctx.decode(batch)
        >>> batch.clear()
    """

    def __init__(self, capacity: int, device: torch.device | str | None = None) -> None:
        if capacity < 1:
            raise ValueError(f"Batch capacity must be positive, got {capacity}")

        self.capacity = capacity
        self.token_ids = torch.zeros(capacity, dtype=torch.long, device=device)
        self.positions = torch.zeros(capacity, dtype=torch.long, device=device)
        self.seq_ids = torch.zeros(capacity, dtype=torch.long, device=device)
        self.needs_logits = torch.zeros(capacity, dtype=torch.bool, device=device)
        self._n_tokens = 0

    @property
    def n_tokens(self) -> int:
        """Number of occupied slots."""
        return self._n_tokens

    def __len__(self) -> int:
        return self._n_tokens

    def add(self, token_id: int, position: int, seq_id: int, needs_logits: bool) -> int:
        """
        Append an entry in the next free slot.

        Returns:
            The slot index the entry was written to.

        Raises:
            BatchFullError: If the batch is already at capacity.
        """
        if self._n_tokens >= self.capacity:
            raise BatchFullError(f"Batch is full: capacity is {self.capacity}")

        slot = self._n_tokens
        self.token_ids[slot] = token_id
        self.positions[slot] = position
        self.seq_ids[slot] = seq_id
        self.needs_logits[slot] = needs_logits
        self._n_tokens += 1
        return slot

    def clear(self) -> None:
        """Mark every slot free. The buffers themselves are kept."""
        self.needs_logits[: self._n_tokens] = False
        self._n_tokens = 0

    def tokens(self) -> torch.Tensor:
        """View of the occupied token slots."""
        return self.token_ids[: self._n_tokens]

    def active_positions(self) -> torch.Tensor:
        return self.positions[: self._n_tokens]

    def active_seq_ids(self) -> torch.Tensor:
        return self.seq_ids[: self._n_tokens]

    def logit_slots(self) -> list[int]:
        """Slot indices whose logits were requested."""
        return torch.nonzero(self.needs_logits[: self._n_tokens]).flatten().tolist()

    def __repr__(self) -> str:
        return f"Batch(capacity={self.capacity}, n_tokens={self._n_tokens})"
