"""Asyncio Redis client with a ``WAITQUORUM`` extension for replication tests."""

import collections.abc

from waitquorum.batch import Pipeline, Transaction
from waitquorum.client import Redis
from waitquorum.command import Command, CustomCommand
from waitquorum.connection import ActionableConnection, Connection
from waitquorum.error import (
    ConnectionError,
    ProtocolError,
    RedisError,
    ResponseError,
    StateError,
    UsageError,
)
from waitquorum.quorum import WAITQUORUM, QuorumClient

__all__: collections.abc.Sequence[str] = (
    "WAITQUORUM",
    "ActionableConnection",
    "Command",
    "Connection",
    "ConnectionError",
    "CustomCommand",
    "Pipeline",
    "ProtocolError",
    "QuorumClient",
    "Redis",
    "RedisError",
    "ResponseError",
    "StateError",
    "Transaction",
    "UsageError",
)
