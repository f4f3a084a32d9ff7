import asyncio
import logging
from typing import Optional

import aiohttp

from yijing.core.config import Settings
from yijing.core.errors import (
    ExternalModelAuthError,
    ExternalModelError,
    ExternalModelRateLimitedError,
    ExternalModelTimeoutError,
)

logger = logging.getLogger(__name__)


class LLMClient:
    """OpenAI 兼容的 /chat/completions 调用，单次请求，不做重试。"""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 30.0,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ):
        self.session = session
        self.url = f"{base_url.rstrip('/')}/chat/completions"
        self.api_key = api_key
        self.model = model
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.max_tokens = max_tokens
        self.temperature = temperature
        if not api_key:
            logger.warning("LLM_API_KEY 未配置")

    @classmethod
    def from_settings(cls, session: aiohttp.ClientSession, settings: Settings) -> "LLMClient":
        return cls(
            session,
            base_url=settings.llm_api_base_url,
            api_key=settings.llm_api_key,
            model=settings.llm_model_name,
            timeout_seconds=settings.llm_timeout_seconds,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        )

    async def complete(self, prompt: str, request_id: Optional[str] = None) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with self.session.post(self.url, json=payload, headers=headers, timeout=self.timeout) as response:
                if response.status == 401:
                    raise ExternalModelAuthError()
                if response.status == 429:
                    raise ExternalModelRateLimitedError()
                if response.status >= 400:
                    body = await response.text()
                    logger.error(f"[{request_id}] LLM API 返回 {response.status}: {body[:200]}")
                    raise ExternalModelError()
                json_response = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            logger.error(f"[{request_id}] LLM API 请求超时 ({self.timeout.total}s)")
            raise ExternalModelTimeoutError() from e
        except aiohttp.ClientError as e:
            logger.error(f"[{request_id}] LLM API 请求失败: {e}")
            raise ExternalModelError() from e
        except ValueError as e:
            logger.error(f"[{request_id}] LLM API 响应不是合法JSON: {e}")
            raise ExternalModelError() from e

        choices = json_response.get("choices") if isinstance(json_response, dict) else None
        if not choices:
            logger.error(f"[{request_id}] LLM API 返回空响应")
            raise ExternalModelError("LLM API 返回空响应")
        content = (choices[0].get("message") or {}).get("content") or ""
        if not content.strip():
            raise ExternalModelError("LLM API 返回空内容")
        return content.strip()
