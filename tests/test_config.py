"""Tests for url parsing."""

import pytest

from waitquorum import client, config


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("redis://127.0.0.1:6379", ("127.0.0.1", 6379)),
        ("redis://node-1:7000", ("node-1", 7000)),
        ("redis://node-1", ("node-1", config.DEFAULT_PORT)),
        ("redis://node-1:7000/0", ("node-1", 7000)),
    ],
)
def test_parse_url(url: str, expected: tuple[str, int]) -> None:
    assert config.parse_url(url) == expected


@pytest.mark.parametrize(
    "url",
    ["rediss://node-1:6379", "http://node-1:6379", "redis://:6379", "node-1:6379", "redis://node-1:notaport"],
)
def test_parse_url_rejects(url: str) -> None:
    with pytest.raises(ValueError, match="redis://host:port"):
        config.parse_url(url)


def test_redis_from_url_does_not_connect() -> None:
    redis = client.Redis.from_url("redis://node-1:7000")

    assert (redis.host, redis.port) == ("node-1", 7000)
