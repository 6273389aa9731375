import contextlib
import logging
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Security
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from fastapi.security.api_key import APIKeyHeader
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.concurrency import iterate_in_threadpool
from starlette.status import HTTP_403_FORBIDDEN

from tokengen.errors import CapacityExceeded, EvaluationError, GenerationError, PromptTooLong, TokenizationError
from tokengen.serving.config import ServingConfig
from tokengen.serving.engine import GenerationEngine, ModelNotLoadedError
from tokengen.serving.schemas import GenerationRequest, GenerationResponse
from tokengen.utils.logging import configure_logging

config = ServingConfig()
configure_logging(config.log_level, json_format=config.json_logs)
logger = logging.getLogger(__name__)

# 全局推理引擎
engine = GenerationEngine(config)

# API Key Security Scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

CLIENT_ERRORS = (CapacityExceeded, PromptTooLong, TokenizationError)


async def get_api_key(
    api_key_header: str = Security(api_key_header),
):
    """验证 API Key."""
    if config.api_key:
        if api_key_header == config.api_key:
            return api_key_header
        else:
            raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Could not validate credentials")
    return None


@contextlib.asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, Any]:
    """
    FastAPI 生命周期管理器.
    """
    logger.info("Starting up...")
    engine.load_model()
    yield
    engine.unload_model()
    logger.info("Shutting down...")


app = FastAPI(
    title="tokengen",
    description="Streaming text generation over a fixed-capacity KV cache.",
    version="0.1.0",
    lifespan=lifespan,
)

# Prometheus Metrics
Instrumentator().instrument(app).expose(app)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """健康检查端点."""
    return {"status": "ok" if engine.loaded else "loading"}


@app.post("/generate", response_model=GenerationResponse)
async def generate_text(
    request: GenerationRequest, _api_key: str = Depends(get_api_key)
) -> GenerationResponse | StreamingResponse:
    """
    文本生成端点. 支持流式和非流式.
    """
    if request.stream:
        return StreamingResponse(_stream_generator(request), media_type="text/event-stream")

    try:
        # 在线程池中运行以避免阻塞事件循环
        generated_text, result = await run_in_threadpool(
            engine.generate,
            prompt=request.prompt,
            max_length=request.max_length,
        )
    except CLIENT_ERRORS as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EvaluationError:
        logger.exception("Model evaluation failed")
        raise HTTPException(status_code=500, detail="model evaluation failed")
    except ModelNotLoadedError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return GenerationResponse(
        generated_text=generated_text,
        token_count=len(result.token_ids),
        finish_reason=result.finish_reason.value,
        tokens_per_second=result.stats.tokens_per_second,
    )


async def _stream_generator(request: GenerationRequest) -> AsyncGenerator[str]:
    """辅助生成器, 将同步的 engine 生成转换为异步流."""
    try:
        iterator = engine.stream_generate(prompt=request.prompt, max_length=request.max_length)
        async for chunk in iterate_in_threadpool(iterator):
            yield chunk
    except EvaluationError:
        logger.exception("Model evaluation failed")
        yield "Error: model evaluation failed"
    except (GenerationError, ModelNotLoadedError) as e:
        yield f"Error: {str(e)}"


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tokengen.serving.api:app", host="0.0.0.0", port=8000)
