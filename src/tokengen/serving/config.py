from pydantic_settings import BaseSettings, SettingsConfigDict


class ServingConfig(BaseSettings):
    """
    Serving Configuration using environment variables.
    """

    # Model configuration
    model_dir: str | None = None  # Checkpoint directory; None builds a random dummy model
    checkpoint_file: str = "model.pt"
    n_gpu_layers: int = 0
    context_size: int = 2048  # n_ctx of every evaluation context

    # Generation
    max_length: int = 256
    batch_size: int = 512

    # Model Params (for dummy init if no checkpoint)
    hidden_size: int = 64
    num_layers: int = 2
    num_heads: int = 4
    seed: int = 1234

    # Security & Observability
    api_key: str | None = None  # If set, requires this key for access
    log_level: str = "INFO"
    json_logs: bool = True

    model_config = SettingsConfigDict(env_prefix="TOKENGEN_SERVING_")
