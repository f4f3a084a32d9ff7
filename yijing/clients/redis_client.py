import logging
from collections import namedtuple
from typing import List, Optional, Union
from urllib.parse import urlparse

from redis.asyncio import Redis as AsyncRedis
from redis.asyncio.cluster import ClusterNode, RedisCluster
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

RedisAddress = namedtuple("RedisAddress", ["host", "port"])


def parse_redis_hosts(redis_url: str) -> List[RedisAddress]:
    """解析 REDIS_URL 中的一个或多个 host:port（逗号分隔即为集群）"""
    parsed_url = urlparse(redis_url)
    netloc = parsed_url.netloc
    # 密码中可能含有 @
    if "@" in netloc:
        netloc = netloc.rsplit("@", 1)[1]

    hosts = []
    for loc in netloc.split(","):
        if ":" in loc:
            host, port_str = loc.split(":", 1)
            if host and port_str.isdigit():
                hosts.append(RedisAddress(host, int(port_str)))
        elif loc:
            hosts.append(RedisAddress(loc, 6379))
    return hosts


def _password_from_url(redis_url: str) -> Optional[str]:
    netloc = urlparse(redis_url).netloc
    if "@" not in netloc:
        return None
    userinfo = netloc.rsplit("@", 1)[0]
    return userinfo.split(":", 1)[1] if ":" in userinfo else userinfo


async def create_redis_client(redis_url: str) -> Optional[Union[AsyncRedis, RedisCluster]]:
    """
    根据 REDIS_URL 创建 Redis 客户端（自动检测单实例/集群）。
    连接失败返回 None，由调用方降级为内存模式。
    """
    try:
        hosts = parse_redis_hosts(redis_url)
        if not hosts:
            raise ValueError("无法解析Redis地址")

        password = _password_from_url(redis_url)
        path = urlparse(redis_url).path.lstrip("/")
        if len(hosts) == 1:
            logger.info(f"检测到单实例Redis: {hosts[0].host}:{hosts[0].port}")
            client = AsyncRedis(
                host=hosts[0].host,
                port=hosts[0].port,
                password=password,
                encoding="utf-8",
                decode_responses=True,
                db=int(path) if path.isdigit() else 0,
            )
        else:
            logger.info(f"检测到Redis集群: {[f'{h.host}:{h.port}' for h in hosts]}")
            client = RedisCluster(
                startup_nodes=[ClusterNode(h.host, h.port) for h in hosts],
                password=password,
                encoding="utf-8",
                decode_responses=True,
            )

        await client.ping()
        logger.info("Redis连接成功")
        return client
    except (RedisError, OSError, ValueError) as e:
        logger.error(f"Redis连接失败: {e}，使用内存模式")
        return None
