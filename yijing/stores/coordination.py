"""Key-value coordination store used for quotas, caching and locks.

Two implementations: one over a redis.asyncio client (single node or
cluster), and an in-memory one used when no ``REDIS_URL`` is configured.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# INCR 与首次 EXPIRE 在同一脚本内执行，计数键不会丢失过期时间
_INCR_WITH_EXPIRY = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""

# 只删除自己持有的锁
_DELETE_IF_VALUE = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class CoordinationStore(ABC):
    @abstractmethod
    async def increment_with_expiry(self, key: str, window_seconds: int) -> int:
        """原子自增；键首次创建时设置过期时间，返回自增后的值"""

    @abstractmethod
    async def set_if_absent_with_expiry(self, key: str, ttl_seconds: int, value: str = "1") -> bool:
        """SET NX EX，成功返回 True"""

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def delete_if_value(self, key: str, value: str) -> bool:
        """值匹配时删除，返回是否删除"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    async def close(self) -> None:
        return None


class RedisCoordinationStore(CoordinationStore):
    def __init__(self, client):
        self.client = client
        self._incr_script = client.register_script(_INCR_WITH_EXPIRY)
        self._delete_if_value_script = client.register_script(_DELETE_IF_VALUE)

    async def increment_with_expiry(self, key: str, window_seconds: int) -> int:
        count = await self._incr_script(keys=[key], args=[int(window_seconds)])
        return int(count)

    async def set_if_absent_with_expiry(self, key: str, ttl_seconds: int, value: str = "1") -> bool:
        result = await self.client.set(key, value, ex=int(ttl_seconds), nx=True)
        return bool(result)

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def delete_if_value(self, key: str, value: str) -> bool:
        deleted = await self._delete_if_value_script(keys=[key], args=[value])
        return bool(deleted)

    async def get(self, key: str) -> Optional[str]:
        value = await self.client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.client.set(key, value, ex=int(ttl_seconds))

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("协调存储 Redis 连接已关闭。")


class InMemoryCoordinationStore(CoordinationStore):
    """内存模式：单进程内有效，用于开发环境和测试"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    async def increment_with_expiry(self, key: str, window_seconds: int) -> int:
        current = self._live(key)
        if current is None:
            self._data[key] = ("1", self._clock() + window_seconds)
            return 1
        count = int(current) + 1
        self._data[key] = (str(count), self._data[key][1])
        return count

    async def set_if_absent_with_expiry(self, key: str, ttl_seconds: int, value: str = "1") -> bool:
        if self._live(key) is not None:
            return False
        self._data[key] = (value, self._clock() + ttl_seconds)
        return True

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def delete_if_value(self, key: str, value: str) -> bool:
        if self._live(key) != value:
            return False
        del self._data[key]
        return True

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)
