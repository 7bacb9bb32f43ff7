"""Module containing the waitquorum error hierarchy."""

import collections.abc
import dataclasses

__all__: collections.abc.Sequence[str] = (
    "RedisError",
    "ConnectionError",
    "StateError",
    "UsageError",
    "ProtocolError",
    "ResponseError",
)


class RedisError(Exception):
    """Base class for every error raised by waitquorum."""


class ConnectionError(RedisError):
    """The transport failed: connect, write, read or unexpected EOF."""


class StateError(RedisError):
    ...


class UsageError(StateError):
    """A command was issued in a client mode that does not support it."""


class ProtocolError(RedisError):
    """A reply was malformed or had an unexpected type."""


@dataclasses.dataclass
class ResponseError(RedisError):
    code: str
    message: str

    def __str__(self) -> str:
        return self.message

    @classmethod
    def from_response(cls, response: bytes) -> "ResponseError":
        code, _, message = response.rstrip(b"\r\n").decode("utf-8", errors="replace").partition(" ")
        return cls(code, message or code)
