from dataclasses import dataclass

# Seed of the distributional sampler link; fixed so repeated calls are reproducible.
DEFAULT_SEED = 1234


@dataclass(frozen=True)
class GenerationConfig:
    """生成配置

    Attributes:
        max_length: Upper bound on the total sequence length (prompt + generated tokens).
        batch_size: Capacity of the evaluation batch submitted to the model in one step.
    """

    max_length: int = 4096 * 2
    batch_size: int = 512

    def __post_init__(self):
        if self.max_length < 1:
            raise ValueError("max_length must be positive")
        if self.batch_size < 1:
            raise ValueError("batch_size must be positive")
