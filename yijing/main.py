import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from yijing import __version__
from yijing.core.config import get_settings
from yijing.core.errors import DivinationError, ExternalModelError, RateLimitedError
from yijing.core.lifespan import lifespan
from yijing.core.logging import configure_logging
from yijing.routers import divination, hexagrams

logger = logging.getLogger(__name__)


async def divination_error_handler(request: Request, exc: DivinationError) -> JSONResponse:
    message = exc.message
    if isinstance(exc, ExternalModelError):
        # 对外统一提示，具体原因只写日志
        logger.error(f"外部模型调用失败 code={exc.code} path={request.url.path}: {exc.message}")
        message = ExternalModelError.default_message
    elif exc.status_code >= 500:
        logger.error(f"服务错误 code={exc.code} path={request.url.path}: {exc.message}")

    headers = {}
    if isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {"code": exc.code, "message": message},
            "timestamp": int(time.time() * 1000),
        },
        headers=headers,
    )


def create_app(with_lifespan: bool = True) -> FastAPI:
    settings = get_settings()
    configure_logging(
        settings.log_level,
        secrets=[settings.llm_api_key],
        monitor_log_file=settings.monitor_log_file,
    )

    app = FastAPI(
        title="yijing",
        description="金钱课起卦与解卦服务",
        version=__version__,
        lifespan=lifespan if with_lifespan else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DivinationError, divination_error_handler)

    app.include_router(divination.router, prefix="/divination", tags=["divination"])
    app.include_router(hexagrams.router, prefix="/hexagrams", tags=["hexagrams"])

    @app.get("/health", tags=["meta"])
    async def healthcheck():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("yijing.main:app", host="0.0.0.0", port=8000, reload=True)
