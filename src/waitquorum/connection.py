"""Module containing connection implementations."""

import asyncio
import collections.abc
import dataclasses
import enum
import logging
import socket
import typing

from waitquorum import batch, command, config, error, protocol

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Connection", "ActionableConnection")

_LOGGER = logging.getLogger(__name__)

_RESP3: typing.Final = 3

ConnectHook: typing.TypeAlias = typing.Callable[
    ["Connection"],
    typing.Coroutine[typing.Any, typing.Any, None],
]


class ByteResponse(bytes, enum.Enum):
    # Ordered by documentation:
    # https://github.com/redis/redis-specifications/blob/master/protocol/RESP3.md

    # Simple types
    BLOB_STRING = b"$"
    SIMPLE_STRING = b"+"
    SIMPLE_ERROR = b"-"
    NUMBER = b":"
    NULL = b"_"
    DOUBLE = b","
    BOOLEAN = b"#"
    BLOB_ERROR = b"!"
    VERBATIM_STRING = b"="
    BIG_NUMBER = b"("

    # Aggregate types
    ARRAY = b"*"
    MAP = b"%"
    SET = b"~"
    ATTRIBUTE = b"|"
    PUSH = b">"


def _parse_int(raw: bytes) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        msg = f"Expected an integer in reply frame, got {raw!r}"
        raise error.ProtocolError(msg) from exc


def _parse_kind(byte: bytes) -> ByteResponse:
    try:
        return ByteResponse(byte)
    except ValueError:
        msg = f"{byte!r} is not a valid response type"
        raise error.ProtocolError(msg) from None


async def _set_resp3(con: protocol.ConnectionProto) -> None:
    await con.write_command(command.Command(b"HELLO", _RESP3))
    hello = await con.read_response(disconnect_on_error=True)

    if not isinstance(hello, dict) or hello.get(b"proto") != _RESP3:
        msg = "Failed to set redis protocol version to 3"
        raise error.ProtocolError(msg)


@dataclasses.dataclass(slots=True)
class Connection:
    """Low-level connection implementation.

    This connection can make connections to Redis, and both send and receive
    commands. It does not implement any higher-level commands.

    Only RESP3 connections are supported.
    """

    host: str
    port: int
    buffer_limit: int = 6000
    _post_connect_hooks: dict[str, ConnectHook] = dataclasses.field(
        default_factory=dict,
        repr=False,
    )
    _reader: asyncio.StreamReader | None = dataclasses.field(default=None, repr=False)
    _writer: asyncio.StreamWriter | None = dataclasses.field(default=None, repr=False)

    @classmethod
    async def from_url(cls, url: str, /) -> "typing_extensions.Self":
        """Connect to the provided Redis url."""
        return await cls.from_host_port(*config.parse_url(url))

    @classmethod
    async def from_host_port(cls, host: str, port: int, /) -> "typing_extensions.Self":
        """Connect to Redis at the provided host and port."""
        self = cls(host=host, port=port)
        self._post_connect_hooks["HELLO"] = _set_resp3

        await self.connect()
        return self

    def __del__(self) -> None:
        if getattr(self, "_writer", None):
            self._close()

    def _close(self) -> asyncio.StreamWriter:
        assert self._writer

        writer = self._writer
        writer.close()
        self._writer = self._reader = None

        return writer

    @property
    def address(self) -> str:
        """The ``host:port`` this connection targets."""
        return f"{self.host}:{self.port}"

    def is_alive(self) -> bool:
        """Check whether this connection has an active redis connection."""
        return self._reader is not None and self._writer is not None

    async def connect(self) -> None:
        """Connect to Redis with the connection parameters provided at instantiation."""
        try:
            reader, writer = await asyncio.open_connection(
                self.host,
                self.port,
                limit=self.buffer_limit,
            )
            sock: socket.socket = writer.transport.get_extra_info("socket")
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        except OSError as exc:
            msg = f"Failed to connect to '{self.address}'."
            raise error.ConnectionError(msg) from exc

        self._reader = reader
        self._writer = writer
        _LOGGER.debug("connected to %s", self.address)

        try:
            for hook in self._post_connect_hooks.values():
                await hook(self)

        except BaseException:
            if self.is_alive():
                self._close()
            raise

    async def disconnect(self) -> None:
        """Close the connection with Redis."""
        if not self.is_alive():
            msg = "The connection is already closed."
            raise error.StateError(msg)

        closing_writer = self._close()
        try:
            await closing_writer.wait_closed()
        except OSError as exc:
            # The peer may already have reset the socket; it is closed either way.
            _LOGGER.debug("error while closing %s: %s", self.address, exc)

        _LOGGER.debug("disconnected from %s", self.address)

    async def write_command(self, command: protocol.CommandProto, /) -> None:
        """Write a command to the connected Redis instance.

        This requires this connection to be alive.

        Either ``read_response``, ``read_integer_response`` or
        ``discard_response`` *must* be called after this.
        """
        if not self.is_alive():
            msg = f"Cannot send commands to closed connection '{self.address}'."
            raise error.ConnectionError(msg)

        assert self._writer is not None

        try:
            self._writer.write(b"*%i\r\n" % len(command))
            for arg in command:
                self._writer.write(b"$%i\r\n" % len(arg))
                self._writer.write(arg)
                self._writer.write(b"\r\n")

            await self._writer.drain()

        except OSError as exc:
            self._close()

            if len(exc.args) < 2:  # noqa: PLR2004
                error_code = "UNKNOWN"
                error_msg = str(exc)

            else:
                error_code, error_msg, *_ = exc.args

            msg = f"Writing to '{self.address}' raised {error_code}: {error_msg}"
            _LOGGER.warning(msg)
            raise error.ConnectionError(msg) from exc

        except BaseException:
            self._close()
            raise

    async def _read_line(self) -> bytes:
        if self._reader is None:
            msg = f"Cannot read from closed connection '{self.address}'."
            raise error.ConnectionError(msg)

        data = await self._reader.readuntil(b"\r\n")
        return data[:-2]

    async def _read_bytes(self, n: int) -> bytes:
        assert self._reader is not None

        if n < 0:
            msg = f"Invalid blob length {n}"
            raise error.ProtocolError(msg)

        response = await self._reader.readexactly(n + 2)

        if response[-2:] != b"\r\n":
            msg = "Blob reply is not terminated by CRLF."
            raise error.ProtocolError(msg)

        return response[:-2]

    async def _read_typed_response(self) -> tuple[ByteResponse, object]:  # noqa: C901, PLR0911, PLR0912
        data = await self._read_line()

        # First character is a symbol that determines the data type,
        # the rest is the actual data.
        byte, response = data[:1], data[1:]
        kind = _parse_kind(byte)

        if kind is ByteResponse.ATTRIBUTE:
            # Attributes annotate the reply that follows them; skip to it.
            for _ in range(2 * _parse_int(response)):
                await self._discard_response()
            return await self._read_typed_response()

        if kind is ByteResponse.SIMPLE_ERROR:
            raise error.ResponseError.from_response(response)

        if kind is ByteResponse.BLOB_ERROR:
            response = await self._read_bytes(_parse_int(response))
            raise error.ResponseError.from_response(response)

        if kind is ByteResponse.SIMPLE_STRING:
            return kind, response

        if kind is ByteResponse.BLOB_STRING:
            length = _parse_int(response)
            # RESP2-style null bulk string.
            if length == -1:
                return kind, None

            return kind, await self._read_bytes(length)

        if kind is ByteResponse.VERBATIM_STRING:
            # TODO: Maybe store the format instead of discarding it.
            return kind, (await self._read_bytes(_parse_int(response)))[4:]

        if kind in (ByteResponse.NUMBER, ByteResponse.BIG_NUMBER):
            return kind, _parse_int(response)

        if kind is ByteResponse.DOUBLE:
            try:
                return kind, float(response)
            except ValueError as exc:
                msg = f"Expected a double in reply frame, got {response!r}"
                raise error.ProtocolError(msg) from exc

        if kind is ByteResponse.BOOLEAN:
            return kind, response == b"t"

        if kind is ByteResponse.NULL:
            return kind, None

        if kind in (ByteResponse.ARRAY, ByteResponse.PUSH):
            length = _parse_int(response)
            if length == -1:
                return kind, None

            return kind, [await self._read_response() for _ in range(length)]

        if kind is ByteResponse.SET:
            return kind, {await self._read_response() for _ in range(_parse_int(response))}

        assert kind is ByteResponse.MAP
        return kind, {
            await self._read_response(): await self._read_response()
            for _ in range(_parse_int(response))
        }

    async def _read_response(self) -> object:
        _, value = await self._read_typed_response()
        return value

    async def _guarded_read(
        self,
        reader: collections.abc.Callable[[], collections.abc.Awaitable[typing.Any]],
        *,
        disconnect_on_error: bool,
    ) -> typing.Any:  # noqa: ANN401
        try:
            return await reader()

        except error.ResponseError:
            # The error reply was fully consumed; the stream is still in sync.
            raise

        except (OSError, EOFError, asyncio.LimitOverrunError) as exc:
            if disconnect_on_error and self.is_alive():
                await self.disconnect()

            msg = f"Failed to read from '{self.address}': {exc!r}"
            _LOGGER.warning(msg)
            raise error.ConnectionError(msg) from exc

        except BaseException:
            if disconnect_on_error and self.is_alive():
                await self.disconnect()

            raise

    async def read_response(self, *, disconnect_on_error: bool = True) -> typing.Any:  # noqa: ANN401
        """Read the response to a previously executed command.

        This requires this connection to be alive.
        """
        return await self._guarded_read(self._read_response, disconnect_on_error=disconnect_on_error)

    async def read_integer_response(self, *, disconnect_on_error: bool = True) -> int:
        """Read the response to a previously executed command as an integer.

        Only a RESP integer (``:``) reply is accepted. Any other well-formed
        reply is consumed in full and raises ``ProtocolError`` without
        closing the connection.

        This requires this connection to be alive.
        """
        kind, value = await self._guarded_read(
            self._read_typed_response,
            disconnect_on_error=disconnect_on_error,
        )

        if kind is not ByteResponse.NUMBER:
            msg = f"Expected an integer reply, got {kind.name.lower()} reply {value!r}"
            raise error.ProtocolError(msg)

        assert isinstance(value, int)
        return value

    async def _discard_response(self) -> None:
        data = await self._read_line()

        # First character is a symbol that determines the data type,
        # the rest is the actual data.
        byte, response = data[:1], data[1:]
        kind = _parse_kind(byte)

        if kind in (
            ByteResponse.BLOB_ERROR,
            ByteResponse.BLOB_STRING,
            ByteResponse.VERBATIM_STRING,
        ):
            length = _parse_int(response)
            if length != -1:
                await self._read_bytes(length)
            return

        if kind in (
            ByteResponse.ARRAY,
            ByteResponse.SET,
            ByteResponse.PUSH,
        ):
            for _ in range(_parse_int(response)):
                await self._discard_response()
            return

        if kind is ByteResponse.MAP:
            for _ in range(2 * _parse_int(response)):
                await self._discard_response()
            return

        if kind is ByteResponse.ATTRIBUTE:
            for _ in range(2 * _parse_int(response)):
                await self._discard_response()
            # The attributed reply itself follows.
            await self._discard_response()
            return

        # Simple types carry no further data.
        return

    async def discard_response(self, *, disconnect_on_error: bool = True) -> None:
        """Discard the response to the previously executed command.

        This requires this connection to be alive.
        """
        await self._guarded_read(self._discard_response, disconnect_on_error=disconnect_on_error)


@dataclasses.dataclass(slots=True)
class ActionableConnection:
    """High-level connection implementation.

    This connection wraps a low-level connection and tracks whether a
    pipeline or transaction is currently open on it. While one is, commands
    cannot be sent directly through this connection.

    Only RESP3 connections are supported.
    """

    connection: protocol.ConnectionProto
    _batch_mode: str | None = dataclasses.field(default=None, init=False, repr=False)

    @classmethod
    async def from_url(
        cls,
        url: str,
        /,
        *,
        connection_class: type[protocol.ConnectionProto] = Connection,
    ) -> "typing_extensions.Self":
        """Connect to the provided Redis url."""
        host, port = config.parse_url(url)
        return await cls.from_host_port(host, port, connection_class=connection_class)

    @classmethod
    async def from_host_port(
        cls,
        host: str,
        port: int,
        /,
        *,
        connection_class: type[protocol.ConnectionProto] = Connection,
    ) -> "typing_extensions.Self":
        """Connect to Redis at the provided host and port."""
        connection = await connection_class.from_host_port(host, port)
        return cls(connection)

    @property
    def batch_mode(self) -> str | None:
        """The batched mode this connection is in, if any."""
        return self._batch_mode

    def ensure_not_batched(self, command_name: str = "Command", /) -> None:
        """Raise ``UsageError`` if a pipeline or transaction is open."""
        if self._batch_mode is not None:
            msg = f"{command_name} is not supported in {self._batch_mode} mode"
            raise error.UsageError(msg)

    def enter_batch(self, mode: str, /) -> None:
        """Mark this connection as being inside a batched context."""
        self.ensure_not_batched()
        self._batch_mode = mode

    def exit_batch(self) -> None:
        """Mark this connection as no longer being inside a batched context."""
        self._batch_mode = None

    def pipeline(self) -> batch.Pipeline:
        """Create a pipeline on this connection.

        Use it as an async context manager; the connection is in pipeline mode
        for the duration of the block.
        """
        return batch.Pipeline(self)

    def transaction(self) -> batch.Transaction:
        """Create a MULTI/EXEC transaction on this connection.

        Use it as an async context manager; the connection is in transaction
        mode for the duration of the block.
        """
        return batch.Transaction(self)

    def is_alive(self) -> bool:
        """Check whether this connection has an active redis connection."""
        return self.connection.is_alive()

    async def connect(self) -> None:
        """Connect to Redis with the connection parameters provided at instantiation."""
        await self.connection.connect()

    async def disconnect(self) -> None:
        """Close the connection with Redis."""
        await self.connection.disconnect()

    async def write_command(self, command: protocol.CommandProto, /) -> None:
        """Write a command to the connected Redis instance.

        This requires this connection to be alive and not batched.

        Either ``read_response``, ``read_integer_response`` or
        ``discard_response`` *must* be called after this.
        """
        self.ensure_not_batched()
        await self.connection.write_command(command)

    async def read_response(self, *, disconnect_on_error: bool = True) -> typing.Any:  # noqa: ANN401
        """Read the response to a previously executed command.

        This requires this connection to be alive.
        """
        return await self.connection.read_response(disconnect_on_error=disconnect_on_error)

    async def read_integer_response(self, *, disconnect_on_error: bool = True) -> int:
        """Read the response to a previously executed command as an integer.

        This requires this connection to be alive.
        """
        return await self.connection.read_integer_response(disconnect_on_error=disconnect_on_error)

    async def discard_response(self, *, disconnect_on_error: bool = True) -> None:
        """Discard the response to the previously executed command.

        This requires this connection to be alive.
        """
        return await self.connection.discard_response(disconnect_on_error=disconnect_on_error)
