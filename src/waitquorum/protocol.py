"""Module containing protocols that prescribe waitquorum implementations."""

import collections.abc
import typing

if typing.TYPE_CHECKING:
    import typing_extensions

    from waitquorum import batch

__all__: collections.abc.Sequence[str] = (
    "ProtocolCommand",
    "CommandProto",
    "ConnectionProto",
    "ActionableConnectionProto",
)


@typing.runtime_checkable
class ProtocolCommand(typing.Protocol):
    """Anything that can yield the wire-format bytes of a command name."""

    @property
    def raw(self) -> bytes: ...


class CommandProto(typing.Protocol):
    """Redis command protocol."""

    def arg(self, value: str | bytes | int | float) -> "CommandProto":
        """Add an argument to this command."""
        ...

    def __iter__(self) -> typing.Iterator[bytes]: ...

    def __len__(self) -> int: ...


class ConnectionProto(typing.Protocol):
    """Redis connection protocol."""

    @classmethod
    async def from_host_port(cls, host: str, port: int, /) -> "typing_extensions.Self":
        """Connect to Redis at the provided host and port."""
        ...

    def is_alive(self) -> bool:
        """Check whether this connection has an active redis connection."""
        ...

    async def connect(self) -> None:
        """Connect to Redis with the connection parameters provided at instantiation."""
        ...

    async def disconnect(self) -> None:
        """Close the connection with Redis."""
        ...

    async def write_command(self, command: "CommandProto", /) -> None:
        """Write a command to the connected Redis instance.

        This requires this connection to be alive.

        Either ``read_response``, ``read_integer_response`` or
        ``discard_response`` *must* be called after this.
        """
        ...

    async def read_response(self, *, disconnect_on_error: bool) -> typing.Any:  # noqa: ANN401
        """Read the response to a previously executed command.

        This requires this connection to be alive.
        """
        ...

    async def read_integer_response(self, *, disconnect_on_error: bool) -> int:
        """Read the response to a previously executed command as an integer.

        This requires this connection to be alive.
        """
        ...

    async def discard_response(self, *, disconnect_on_error: bool) -> typing.Any:  # noqa: ANN401
        """Discard the response to the previously executed command.

        This requires this connection to be alive.
        """
        ...


class ActionableConnectionProto(ConnectionProto, typing.Protocol):
    """High-level Redis connection protocol that tracks batched modes."""

    @property
    def batch_mode(self) -> str | None:
        """The batched mode this connection is in, if any."""
        ...

    def ensure_not_batched(self, command_name: str = "Command", /) -> None:
        """Raise ``UsageError`` if a pipeline or transaction is open."""
        ...

    def pipeline(self) -> "batch.Pipeline":
        """Create a pipeline on this connection."""
        ...

    def transaction(self) -> "batch.Transaction":
        """Create a MULTI/EXEC transaction on this connection."""
        ...
