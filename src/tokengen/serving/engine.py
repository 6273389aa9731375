import logging
import queue
import threading
from collections.abc import Iterator
from dataclasses import dataclass

from tokengen.config import GenerationConfig
from tokengen.generation import CancellationToken, GenerationResult, TextGenerator
from tokengen.models import TorchModelContext, init_model_context, load_model
from tokengen.serving.config import ServingConfig
from tokengen.tokenization import ByteTokenizer

logger = logging.getLogger(__name__)


class ModelNotLoadedError(RuntimeError):
    """A generation was requested before the model was loaded."""


@dataclass
class _Finished:
    result: GenerationResult


@dataclass
class _Failed:
    error: BaseException


class GenerationEngine:
    """
    推理引擎.
    封装模型加载、调用串行化和流式输出.

    All calls share one loaded model and are serialized by a lock, so at most one
    generation runs at a time.
    """

    def __init__(self, config: ServingConfig | None = None) -> None:
        self.config = config or ServingConfig()
        self.model_context: TorchModelContext | None = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self.model_context is not None

    def load_model(self) -> None:
        """加载模型和分词器."""
        if self.config.model_dir:
            self.model_context = load_model(
                self.config.model_dir,
                self.config.checkpoint_file,
                gpu_layer_count=self.config.n_gpu_layers,
                context_size=self.config.context_size,
            )
        else:
            logger.warning("No model_dir configured, initializing a random dummy model")
            self.model_context = init_model_context(
                ByteTokenizer(),
                context_size=self.config.context_size,
                hidden_size=self.config.hidden_size,
                num_layers=self.config.num_layers,
                num_heads=self.config.num_heads,
                seed=self.config.seed,
            )
        logger.info("Model loaded successfully.")

    def unload_model(self) -> None:
        """卸载模型以释放资源."""
        self.model_context = None

    def _text_generator(self, max_length: int | None) -> TextGenerator:
        if self.model_context is None:
            raise ModelNotLoadedError("Model explicitly not loaded")
        config = GenerationConfig(
            max_length=max_length or self.config.max_length,
            batch_size=self.config.batch_size,
        )
        return TextGenerator(self.model_context, config, seed=self.config.seed)

    def generate(self, prompt: str, max_length: int | None = None) -> tuple[str, GenerationResult]:
        """非流式生成. Returns the full text and the result of the call."""
        generator = self._text_generator(max_length)
        fragments: list[str] = []
        with self._lock:
            result = generator.generate(prompt, sink=fragments.append)
        return "".join(fragments), result

    def stream_generate(
        self,
        prompt: str,
        max_length: int | None = None,
        cancellation: CancellationToken | None = None,
    ) -> Iterator[str]:
        """
        流式生成.

        The generation runs on a worker thread and hands fragments over a queue in
        order. Closing the iterator early cancels the generation.

        Raises:
            GenerationError: Re-raised from the worker once the fragments emitted
                before the failure have been yielded.
        """
        generator = self._text_generator(max_length)
        token = cancellation or CancellationToken()
        fragments: queue.Queue = queue.Queue()

        def run() -> None:
            try:
                with self._lock:
                    result = generator.generate(prompt, sink=fragments.put, cancellation=token)
                fragments.put(_Finished(result))
            except Exception as exc:
                fragments.put(_Failed(exc))

        worker = threading.Thread(target=run, name="tokengen-generate", daemon=True)
        worker.start()
        try:
            while True:
                item = fragments.get()
                if isinstance(item, _Finished):
                    return
                if isinstance(item, _Failed):
                    raise item.error
                yield item
        finally:
            token.cancel()
            worker.join()
