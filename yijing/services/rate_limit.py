import logging
import math
import time
from typing import Callable, Optional

from redis.exceptions import RedisError

from yijing.core.errors import RateLimitedError
from yijing.stores.coordination import CoordinationStore

logger = logging.getLogger(__name__)

HOUR_SECONDS = 3600


class RateLimiter:
    """
    固定窗口计数限流。
    bucketed=True 时窗口与时钟对齐（例如整点），键中带窗口序号；
    否则窗口从该身份的第一次请求开始计时。
    """

    def __init__(
        self,
        store: CoordinationStore,
        limit: int,
        window_seconds: int = HOUR_SECONDS,
        key_prefix: str = "ai:interpretation:rate",
        bucketed: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix
        self.bucketed = bucketed
        self._clock = clock

    def key_for(self, identity: str, now: Optional[float] = None) -> str:
        if not self.bucketed:
            return f"{self.key_prefix}:{identity}"
        now = self._clock() if now is None else now
        return f"{self.key_prefix}:{identity}:{math.floor(now / self.window_seconds)}"

    def retry_after(self, now: Optional[float] = None) -> int:
        if not self.bucketed:
            return self.window_seconds
        now = self._clock() if now is None else now
        return max(1, math.ceil(self.window_seconds - (now % self.window_seconds)))

    async def hit(self, identity: str) -> int:
        """计数加一；超过配额时抛出 RateLimitedError"""
        now = self._clock()
        count = await self.store.increment_with_expiry(self.key_for(identity, now), self.window_seconds)
        if count > self.limit:
            retry_after = self.retry_after(now)
            logger.warning(f"限流触发 {self.key_prefix} identity={identity} count={count} limit={self.limit}")
            raise RateLimitedError(retry_after)
        return count


class GuestCastRateLimiter(RateLimiter):
    """游客起卦限流；协调存储异常时放行"""

    def __init__(self, store: CoordinationStore, limit: int, window_seconds: int, clock: Callable[[], float] = time.time):
        super().__init__(
            store,
            limit,
            window_seconds=window_seconds,
            key_prefix="rate_limit:guest_divination",
            bucketed=False,
            clock=clock,
        )

    async def hit(self, identity: str) -> int:
        try:
            return await super().hit(identity)
        except (RedisError, OSError) as e:
            logger.error(f"游客限流检查失败，放行请求: {e}")
            return 0
