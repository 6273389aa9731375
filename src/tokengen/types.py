from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

import torch

if TYPE_CHECKING:
    from tokengen.generation.batch import Batch

# Receives each well-formed text fragment, in order, synchronously from the loop.
Sink = Callable[[str], None]


class Tokenizer(Protocol):
    """
    Tokenizer/detokenizer adapter consumed by the generation loop.
    """

    vocab_size: int
    bos_token_id: int | None
    eos_token_id: int | None

    def tokenize(self, text: str, add_bos: bool = True) -> list[int]:
        """Converts text to token IDs, prepending the beginning-of-sequence marker when asked."""
        ...

    def token_to_bytes(self, token_id: int) -> bytes:
        """Returns the raw bytes of a single token. May be an incomplete UTF-8 sequence."""
        ...

    def is_eog(self, token_id: int) -> bool:
        """Whether the token ends generation."""
        ...


class EvaluationContext(Protocol):
    """
    Per-call evaluation state: owns the KV cache of a single in-flight generation.

    Not reentrant. One context serves exactly one call and is closed afterwards.
    """

    def decode(self, batch: "Batch") -> None:
        """Evaluates every entry of the batch, advancing the KV cache.

        Raises:
            EvaluationError: If the backend fails. The context is unusable afterwards.
        """
        ...

    def get_logits_ith(self, slot: int) -> torch.Tensor:
        """Returns the next-token logits computed for a batch slot that requested them."""
        ...

    def close(self) -> None:
        """Releases the KV cache."""
        ...


class ModelContext(Protocol):
    """
    Loaded model weights, their tokenizer and the context size.

    Shared read-only across calls; every call obtains its own `EvaluationContext`.
    """

    tokenizer: Tokenizer

    @property
    def n_ctx(self) -> int:
        """KV cache capacity in tokens."""
        ...

    def new_context(self) -> EvaluationContext: ...
