import logging

import aiohttp

logger = logging.getLogger(__name__)


def create_shared_session() -> aiohttp.ClientSession:
    """应用启动时创建共享的 aiohttp.ClientSession，单次请求超时由调用方设置。"""
    logger.info("正在创建共享 aiohttp.ClientSession 实例...")
    connector = aiohttp.TCPConnector(
        limit=100,
        limit_per_host=50,
        enable_cleanup_closed=True,
        keepalive_timeout=120,
    )
    return aiohttp.ClientSession(connector=connector, timeout=aiohttp.ClientTimeout(connect=10))


async def close_shared_session(session: aiohttp.ClientSession) -> None:
    if session and not session.closed:
        await session.close()
        logger.info("共享的 aiohttp.ClientSession 已关闭。")
