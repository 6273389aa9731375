"""
Autoregressive generation loop.

One call of :meth:`TextGenerator.generate` tokenizes the prompt, checks that the
whole sequence fits the KV cache, prefills the prompt, then samples and decodes
one token at a time until an end-of-generation token, the length bound or a
cancellation. Text reaches the caller only through the sink, fragment by fragment,
in generation order.
"""

import enum
import logging
import sys
from dataclasses import dataclass, field

from tokengen.config import DEFAULT_SEED, GenerationConfig
from tokengen.errors import SinkError, TokenizationError
from tokengen.generation.batch import Batch
from tokengen.generation.cancellation import CancellationToken
from tokengen.generation.stats import GenerationStats, StatsTimer
from tokengen.generation.utf8 import IncrementalUTF8Decoder
from tokengen.generation.validation import validate_context_size
from tokengen.sampling.sampler import SamplerChain, default_sampler_chain
from tokengen.types import EvaluationContext, ModelContext, Sink

logger = logging.getLogger(__name__)

SEQ_ID = 0


class FinishReason(str, enum.Enum):
    """Terminal state of a generation call."""

    STOP = "stop"  # end-of-generation token sampled
    LENGTH = "length"  # max_length reached
    CANCELLED = "cancelled"


@dataclass
class GenerationResult:
    finish_reason: FinishReason
    stats: GenerationStats
    n_prompt_tokens: int
    token_ids: list[int] = field(default_factory=list)


def stdout_sink(fragment: str) -> None:
    """Writes each fragment straight to standard output."""
    sys.stdout.write(fragment)
    sys.stdout.flush()


class TextGenerator:
    """
    Drives generation against a shared model context.

    The model context is only read; every call creates, uses and closes its own
    evaluation context, so one ``TextGenerator`` may be shared. Calls that share a
    single evaluation context are not supported.

    Args:
        model_context: Loaded model, tokenizer and context size.
        config: Length bound and batch capacity for every call.
        seed: Seed of the distributional sampler link.
    """

    def __init__(self, model_context: ModelContext, config: GenerationConfig | None = None, seed: int = DEFAULT_SEED):
        self.model_context = model_context
        self.config = config or GenerationConfig()
        self.seed = seed

    @property
    def tokenizer(self):
        return self.model_context.tokenizer

    def generate(
        self,
        prompt: str,
        sink: Sink | None = None,
        cancellation: CancellationToken | None = None,
    ) -> GenerationResult:
        """
        Generate a continuation of ``prompt``.

        Args:
            prompt: Non-empty prompt text.
            sink: Receives each well-formed text fragment. ``None`` discards the output.
            cancellation: Checked before every decoding step.

        Returns:
            GenerationResult: Terminal state, throughput and the generated token IDs.

        Raises:
            TokenizationError: The prompt cannot be tokenized.
            CapacityExceeded: ``max_length`` exceeds the model's context size.
            PromptTooLong: The prompt leaves no room to generate.
            EvaluationError: The model failed during prefill or decoding.
            SinkError: The sink raised.
        """
        tokens = self._tokenize(prompt)
        validate_context_size(len(tokens), self.config.max_length, self.model_context.n_ctx)
        self._log_prompt_tokens(tokens)

        ctx = self.model_context.new_context()
        try:
            batch = Batch(self.config.batch_size)
            self._prefill(ctx, batch, tokens)
            return self._decode_loop(ctx, batch, len(tokens), sink, cancellation)
        finally:
            ctx.close()

    def _tokenize(self, prompt: str) -> list[int]:
        if not isinstance(prompt, str) or not prompt:
            raise TokenizationError("prompt must be a non-empty string")
        try:
            tokens = self.tokenizer.tokenize(prompt, add_bos=True)
        except (KeyError, ValueError, TypeError) as exc:
            raise TokenizationError(f"failed to tokenize {prompt!r}") from exc
        if not tokens:
            raise TokenizationError(f"tokenizing {prompt!r} produced no tokens")
        return tokens

    def _log_prompt_tokens(self, tokens: list[int]) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        rendered = b"".join(self.tokenizer.token_to_bytes(t) for t in tokens)
        logger.debug(f"prompt ({len(tokens)} tokens): {rendered.decode('utf-8', errors='replace')}")

    def _prefill(self, ctx: EvaluationContext, batch: Batch, tokens: list[int]) -> None:
        """
        Evaluate the prompt. Only the final prompt entry requests logits.

        Prompts longer than the batch capacity are submitted in consecutive
        batch-sized chunks.
        """
        last_index = len(tokens) - 1
        for start in range(0, len(tokens), batch.capacity):
            batch.clear()
            for i, token in enumerate(tokens[start : start + batch.capacity], start=start):
                batch.add(token, i, SEQ_ID, i == last_index)
            ctx.decode(batch)

    def _decode_loop(
        self,
        ctx: EvaluationContext,
        batch: Batch,
        n_prompt: int,
        sink: Sink | None,
        cancellation: CancellationToken | None,
    ) -> GenerationResult:
        sampler: SamplerChain = default_sampler_chain(self.seed)
        decoder = IncrementalUTF8Decoder()
        generated: list[int] = []

        n_cur = n_prompt
        n_decode = 0
        finish_reason = FinishReason.LENGTH

        timer = StatsTimer()
        timer.start()

        while n_cur < self.config.max_length:
            if cancellation is not None and cancellation.cancelled:
                logger.info(f"Generation cancelled after {n_decode} decoded tokens")
                finish_reason = FinishReason.CANCELLED
                break

            token = sampler.sample(ctx, batch.n_tokens - 1)
            sampler.accept(token)

            if self.tokenizer.is_eog(token):
                finish_reason = FinishReason.STOP
                break

            generated.append(token)
            fragment = decoder.decode(self.tokenizer.token_to_bytes(token))
            if fragment:
                self._emit(sink, fragment)

            batch.clear()
            batch.add(token, n_cur, SEQ_ID, True)
            n_cur += 1

            ctx.decode(batch)
            n_decode += 1

        dropped = decoder.finish()
        if dropped:
            logger.debug(f"Discarded {len(dropped)} trailing bytes of an incomplete character: {dropped!r}")

        stats = timer.stop(n_decode)
        logger.info(str(stats))
        if hasattr(ctx, "timings"):
            logger.debug(str(ctx.timings()))

        return GenerationResult(
            finish_reason=finish_reason,
            stats=stats,
            n_prompt_tokens=n_prompt,
            token_ids=generated,
        )

    @staticmethod
    def _emit(sink: Sink | None, fragment: str) -> None:
        if sink is None:
            return
        try:
            sink(fragment)
        except Exception as exc:
            raise SinkError("sink failed while receiving a fragment") from exc
