"""
Torch-backed model and evaluation contexts.

``TorchModelContext`` holds the loaded weights, tokenizer and context size and is
shared read-only between calls. Each generation call obtains its own
``TorchEvaluationContext``, which owns a freshly allocated KV cache of ``n_ctx``
positions and is discarded when the call ends.
"""

import logging
import pickle
import time
from dataclasses import asdict, dataclass
from pathlib import Path

import torch

from tokengen.errors import EvaluationError, LoadError
from tokengen.generation.batch import Batch
from tokengen.models.decoder import CausalDecoder, DecoderConfig
from tokengen.tokenization import BPETokenizer, ByteTokenizer
from tokengen.types import Tokenizer

logger = logging.getLogger(__name__)

TOKENIZER_FILE = "tokenizer.json"


@dataclass
class ContextTimings:
    """Evaluation counters of one context."""

    n_eval_calls: int = 0
    n_eval_tokens: int = 0
    eval_ms: float = 0.0

    def __str__(self) -> str:
        per_token = self.eval_ms / self.n_eval_tokens if self.n_eval_tokens else 0.0
        return (
            f"eval time = {self.eval_ms:.2f} ms / {self.n_eval_tokens} tokens "
            f"({per_token:.2f} ms per token) in {self.n_eval_calls} calls"
        )


class TorchModelContext:
    """
    A loaded ``CausalDecoder`` plus its tokenizer and KV cache capacity.

    Args:
        model: The decoder. Put into eval mode and never mutated afterwards.
        tokenizer: Tokenizer whose vocabulary fits the model's.
        n_ctx: KV cache capacity in tokens for each evaluation context.
    """

    def __init__(self, model: CausalDecoder, tokenizer: Tokenizer, n_ctx: int):
        if n_ctx < 1:
            raise ValueError("n_ctx must be positive")
        if tokenizer.vocab_size > model.config.vocab_size:
            raise ValueError(
                f"Tokenizer vocab ({tokenizer.vocab_size}) is larger than the model vocab ({model.config.vocab_size})"
            )

        self.model = model.eval()
        self.tokenizer = tokenizer
        self._n_ctx = n_ctx

    @property
    def n_ctx(self) -> int:
        return self._n_ctx

    @property
    def device(self) -> torch.device:
        return next(self.model.parameters()).device

    def new_context(self) -> "TorchEvaluationContext":
        return TorchEvaluationContext(self)


class TorchEvaluationContext:
    """
    Per-call evaluation state over a ``TorchModelContext``.

    Positions must be submitted contiguously: every batch continues exactly where
    the previous one ended. Not reentrant; use one context per generation call.
    """

    def __init__(self, model_context: TorchModelContext):
        self.model_context = model_context
        self._kv_caches = model_context.model.new_kv_caches(model_context.n_ctx)
        self._logits: dict[int, torch.Tensor] = {}
        self._n_past = 0
        self._failed = False
        self._timings = ContextTimings()

    @property
    def n_past(self) -> int:
        """Number of positions already held in the KV cache."""
        return self._n_past

    @property
    def closed(self) -> bool:
        return self._kv_caches is None

    def decode(self, batch: Batch) -> None:
        """
        Evaluate every entry of the batch and keep the logits of the slots that asked for them.

        Raises:
            ValueError: If the batch is empty, uses a sequence other than 0, or its
                positions do not continue the cached sequence.
            EvaluationError: If the model fails. The context is unusable afterwards.
        """
        if self._kv_caches is None:
            raise RuntimeError("Evaluation context is closed")
        if self._failed:
            raise EvaluationError("evaluation context is unusable after a previous failure")

        n_tokens = batch.n_tokens
        if n_tokens == 0:
            raise ValueError("Cannot decode an empty batch")
        if torch.any(batch.active_seq_ids() != 0):
            raise ValueError("Only sequence 0 is supported")

        positions = batch.active_positions()
        expected = torch.arange(self._n_past, self._n_past + n_tokens, device=positions.device)
        if not torch.equal(positions, expected):
            raise ValueError(f"Batch positions must continue the cached sequence at position {self._n_past}")

        device = self.model_context.device
        start = time.perf_counter()
        try:
            with torch.inference_mode():
                logits = self.model_context.model(
                    batch.tokens().to(device).unsqueeze(0),
                    positions.to(device),
                    self._kv_caches,
                )
        except (RuntimeError, ValueError) as exc:
            self._failed = True
            self._logits.clear()
            raise EvaluationError("model evaluation failed") from exc

        self._logits = {slot: logits[0, slot] for slot in batch.logit_slots()}
        self._n_past += n_tokens

        self._timings.n_eval_calls += 1
        self._timings.n_eval_tokens += n_tokens
        self._timings.eval_ms += (time.perf_counter() - start) * 1000

    def get_logits_ith(self, slot: int) -> torch.Tensor:
        """Logits for a slot of the last decoded batch that had ``needs_logits`` set."""
        try:
            return self._logits[slot]
        except KeyError:
            raise ValueError(f"Logits were not computed for batch slot {slot}") from None

    def timings(self) -> ContextTimings:
        return ContextTimings(**asdict(self._timings))

    def close(self) -> None:
        """Drop the KV cache buffers."""
        self._kv_caches = None
        self._logits.clear()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def _select_device(gpu_layer_count: int) -> torch.device:
    if gpu_layer_count > 0:
        if torch.cuda.is_available():
            return torch.device("cuda")
        logger.warning(f"gpu_layer_count={gpu_layer_count} requested but CUDA is not available, using CPU")
    return torch.device("cpu")


def load_model(
    repo_identifier: str | Path,
    file_identifier: str = "model.pt",
    gpu_layer_count: int = 0,
    context_size: int = 2048,
) -> TorchModelContext:
    """
    Load a checkpoint directory into a ``TorchModelContext``.

    The directory holds ``file_identifier`` (a ``torch.save`` dict with ``config``
    and ``model_state``) and optionally ``tokenizer.json``; without it the byte
    tokenizer is used.

    Args:
        repo_identifier: Local checkpoint directory.
        file_identifier: Checkpoint file name inside the directory.
        gpu_layer_count: Any value > 0 places the model on CUDA when available.
        context_size: KV cache capacity (``n_ctx``) of every evaluation context.

    Raises:
        LoadError: If the checkpoint or tokenizer cannot be read or do not match.
    """
    model_dir = Path(repo_identifier)
    checkpoint_path = model_dir / file_identifier
    if not checkpoint_path.is_file():
        raise LoadError(f"Checkpoint not found: {checkpoint_path}")

    logger.info(f"Loading model from {checkpoint_path}...")
    try:
        checkpoint = torch.load(checkpoint_path, map_location="cpu", weights_only=True)
        if not isinstance(checkpoint, dict) or "config" not in checkpoint or "model_state" not in checkpoint:
            raise LoadError(f"{checkpoint_path} is not a tokengen checkpoint")

        # Handle DDP prefix if present (e.g. "module.")
        state_dict = {
            (k[7:] if k.startswith("module.") else k): v for k, v in checkpoint["model_state"].items()
        }

        device = _select_device(gpu_layer_count)
        model = CausalDecoder(DecoderConfig(**checkpoint["config"]))
        model.load_state_dict(state_dict)
        model.to(device)

        tokenizer_path = model_dir / TOKENIZER_FILE
        if tokenizer_path.is_file():
            tokenizer = BPETokenizer.from_file(tokenizer_path)
        else:
            tokenizer = ByteTokenizer()

        model_context = TorchModelContext(model, tokenizer, n_ctx=context_size)
    except LoadError:
        raise
    except (OSError, EOFError, pickle.UnpicklingError, RuntimeError, ValueError, TypeError, KeyError) as exc:
        raise LoadError(f"Failed to load model from {checkpoint_path}: {exc}") from exc

    logger.info(f"Model loaded: {model.config.num_layers} layers on {device}, n_ctx = {context_size}")
    return model_context


def save_checkpoint(
    model: CausalDecoder,
    directory: str | Path,
    file_identifier: str = "model.pt",
    tokenizer: Tokenizer | None = None,
) -> Path:
    """Write a checkpoint directory readable by :func:`load_model`."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / file_identifier
    torch.save({"config": asdict(model.config), "model_state": model.state_dict()}, path)
    if isinstance(tokenizer, BPETokenizer):
        tokenizer.save(directory / TOKENIZER_FILE)
    return path


def init_model_context(
    tokenizer: Tokenizer,
    context_size: int,
    hidden_size: int = 64,
    num_layers: int = 2,
    num_heads: int = 4,
    device: torch.device | str | None = None,
    seed: int | None = None,
) -> TorchModelContext:
    """Build a randomly initialized model over the tokenizer's vocabulary."""
    if seed is not None:
        torch.manual_seed(seed)
    config = DecoderConfig(
        vocab_size=tokenizer.vocab_size,
        hidden_size=hidden_size,
        num_layers=num_layers,
        num_heads=num_heads,
    )
    return TorchModelContext(CausalDecoder(config, device=device), tokenizer, n_ctx=context_size)
