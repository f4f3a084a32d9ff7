"""Domain errors raised by the divination core.

Each error carries a stable ``code`` and the HTTP status the web layer maps it
to. Lookup misses and malformed model output are recovered inside the
services and never show up here.
"""

from typing import Optional


class DivinationError(Exception):
    code = "DIVINATION_ERROR"
    status_code = 500
    default_message = "占卜服务内部错误"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NoReferenceDataError(DivinationError):
    code = "NO_REFERENCE_DATA"
    status_code = 503
    default_message = "没有可用的卦象数据"


class RecordNotFoundError(DivinationError):
    code = "RECORD_NOT_FOUND"
    status_code = 404
    default_message = "卜卦记录不存在"


class RateLimitedError(DivinationError):
    code = "RATE_LIMITED"
    status_code = 429
    default_message = "请求过于频繁，请稍后再试"

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message or f"请求过于频繁，请在 {retry_after} 秒后重试")


class GenerationInProgressError(DivinationError):
    code = "GENERATION_IN_PROGRESS"
    status_code = 409
    default_message = "AI 解卦正在生成中，请稍后重试"


class ExternalModelError(DivinationError):
    """Generic upstream model failure; subclasses narrow the cause."""

    code = "EXTERNAL_MODEL_GENERIC"
    status_code = 503
    default_message = "AI 解读服务暂时不可用"


class ExternalModelTimeoutError(ExternalModelError):
    code = "EXTERNAL_MODEL_TIMEOUT"
    default_message = "LLM API 请求超时"


class ExternalModelAuthError(ExternalModelError):
    code = "EXTERNAL_MODEL_AUTH_FAILED"
    default_message = "LLM API 密钥无效"


class ExternalModelRateLimitedError(ExternalModelError):
    code = "EXTERNAL_MODEL_RATE_LIMITED"
    default_message = "LLM API 请求频率超限"
