import pytest

from yijing.clients.redis_client import RedisAddress, _password_from_url, create_redis_client, parse_redis_hosts


@pytest.mark.parametrize(
    "url,hosts",
    [
        ("redis://localhost:6379/0", [RedisAddress("localhost", 6379)]),
        ("redis://cache.internal", [RedisAddress("cache.internal", 6379)]),
        ("redis://:p@ss@10.0.0.1:7000,10.0.0.2:7001", [RedisAddress("10.0.0.1", 7000), RedisAddress("10.0.0.2", 7001)]),
    ],
)
def test_parse_redis_hosts(url, hosts):
    assert parse_redis_hosts(url) == hosts


def test_password_from_url():
    assert _password_from_url("redis://:secret@localhost:6379") == "secret"
    assert _password_from_url("redis://localhost:6379") is None


@pytest.mark.asyncio
async def test_unreachable_redis_returns_none():
    assert await create_redis_client("redis://127.0.0.1:1/0") is None
