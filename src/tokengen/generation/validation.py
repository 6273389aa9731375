import logging

from tokengen.errors import CapacityExceeded, PromptTooLong

logger = logging.getLogger(__name__)


def validate_context_size(n_prompt: int, max_length: int, n_ctx: int) -> int:
    """
    Check that a generation fits the KV cache before anything is evaluated.

    The KV cache must hold the worst-case full-length sequence: the prompt plus
    every token that may be generated after it, ``n_prompt + (max_length - n_prompt)``,
    which is ``max_length`` itself.

    Args:
        n_prompt: Number of prompt tokens.
        max_length: Bound on the total sequence length.
        n_ctx: KV cache capacity of the model context.

    Returns:
        int: The required KV cache size.

    Raises:
        CapacityExceeded: When ``max_length > n_ctx``.
        PromptTooLong: When ``n_prompt >= max_length``.
    """
    n_kv_req = max_length
    logger.debug(f"n_len = {max_length}, n_ctx = {n_ctx}, n_kv_req = {n_kv_req}")

    if n_kv_req > n_ctx:
        raise CapacityExceeded(n_kv_req, n_ctx)

    if n_prompt >= max_length:
        raise PromptTooLong(n_prompt, max_length)

    return n_kv_req
