"""
Error kinds surfaced by a generation call.

Every error aborts the whole call. Fragments already delivered to the sink before
the failure are not retracted.
"""


class GenerationError(Exception):
    """Base class for all failures of a generation call."""


class CapacityExceeded(GenerationError, ValueError):
    """The requested sequence length cannot fit in the model's KV cache."""

    def __init__(self, n_kv_req: int, n_ctx: int):
        self.n_kv_req = n_kv_req
        self.n_ctx = n_ctx
        super().__init__(
            f"the required KV cache size ({n_kv_req}) exceeds the context size ({n_ctx}): "
            "either reduce max_length or increase the context size"
        )


class PromptTooLong(GenerationError, ValueError):
    """The prompt alone consumes the whole length budget."""

    def __init__(self, n_prompt: int, max_length: int):
        self.n_prompt = n_prompt
        self.max_length = max_length
        super().__init__(
            f"the prompt is too long: it has {n_prompt} tokens but max_length is {max_length}; "
            "shorten the prompt or increase max_length"
        )


class TokenizationError(GenerationError):
    """The prompt could not be converted to tokens."""


class EvaluationError(GenerationError):
    """The model backend failed to evaluate a batch.

    The evaluation context that raised it is unusable afterwards.
    """


class SinkError(GenerationError):
    """The caller-supplied sink raised while receiving a fragment."""


class LoadError(GenerationError):
    """A model checkpoint or tokenizer could not be loaded."""


class BatchFullError(IndexError):
    """Appending to a batch that is already at capacity."""
