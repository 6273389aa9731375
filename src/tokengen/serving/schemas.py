from pydantic import BaseModel, Field


class GenerationRequest(BaseModel):
    """Generation request model."""

    prompt: str = Field(..., min_length=1, description="Input prompt text.")
    max_length: int | None = Field(
        None, ge=1, description="Bound on prompt + generated tokens. Defaults to the server setting."
    )
    stream: bool = Field(False, description="Whether to use streaming output (SSE).")


class GenerationResponse(BaseModel):
    """Generation response model."""

    generated_text: str = Field(..., description="Generated text.")
    token_count: int = Field(..., description="Number of generated tokens.")
    finish_reason: str = Field(..., description="Why generation ended: stop, length or cancelled.")
    tokens_per_second: float = Field(..., description="Decode throughput.")
