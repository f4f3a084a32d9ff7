import logging
from typing import Optional

import aiomysql

from yijing.core.config import Settings

logger = logging.getLogger(__name__)

_db_pool: Optional[aiomysql.Pool] = None


async def init_db_pool(settings: Settings) -> Optional[aiomysql.Pool]:
    global _db_pool
    if _db_pool:
        return _db_pool
    if not settings.db_host:
        logger.warning("未配置 DB_HOST，卜卦记录使用内存模式")
        return None
    _db_pool = await aiomysql.create_pool(**settings.get_db_config())
    logger.info(f"MySQL 连接池已创建: {settings.db_host}:{settings.db_port}/{settings.db_name}")
    return _db_pool


async def close_db_pool():
    global _db_pool
    if _db_pool:
        _db_pool.close()
        await _db_pool.wait_closed()
        _db_pool = None
