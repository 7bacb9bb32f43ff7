"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import collections.abc
import socket

import pytest
import pytest_asyncio

from tests.fakes import FakeRedisServer, RecordingConnection


@pytest_asyncio.fixture
async def redis_server() -> collections.abc.AsyncIterator[FakeRedisServer]:
    """A scripted RESP3 server listening on an ephemeral local port."""
    server = FakeRedisServer()
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
def unused_port() -> int:
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def recording_connection() -> RecordingConnection:
    return RecordingConnection()
