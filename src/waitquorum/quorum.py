"""Module containing the quorum-wait client extension.

``WAITQUORUM`` is an out-of-band command understood by Redis nodes running a
quorum-replication patch. It takes no arguments and replies with an integer,
whose meaning is left to the caller.
"""

import collections.abc
import dataclasses
import logging
import types
import typing

from waitquorum import batch, command, config, connection, protocol

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("WAITQUORUM", "QuorumClient")

_LOGGER = logging.getLogger(__name__)


WAITQUORUM: typing.Final = command.CustomCommand("WAITQUORUM")


@dataclasses.dataclass(slots=True)
class QuorumClient:
    """Redis client that can issue ``WAITQUORUM``.

    This wraps an existing connection rather than extending one, so any
    ``ActionableConnectionProto`` implementation can be used.
    """

    connection: protocol.ActionableConnectionProto

    @classmethod
    async def from_url(cls, url: str, /) -> "typing_extensions.Self":
        """Connect to the provided Redis url."""
        return await cls.from_host_port(*config.parse_url(url))

    @classmethod
    async def from_host_port(cls, host: str, port: int, /) -> "typing_extensions.Self":
        """Connect to Redis at the provided host and port."""
        return cls(await connection.ActionableConnection.from_host_port(host, port))

    def pipeline(self) -> batch.Pipeline:
        """Create a pipeline on the wrapped connection."""
        return self.connection.pipeline()

    def transaction(self) -> batch.Transaction:
        """Create a MULTI/EXEC transaction on the wrapped connection."""
        return self.connection.transaction()

    async def wait_quorum(self) -> int:
        """Send ``WAITQUORUM`` and return the server's integer reply as-is.

        Raises ``UsageError`` without sending anything if a pipeline or
        transaction is open, ``ConnectionError`` on transport failure, and
        ``ProtocolError`` if the reply is not an integer.
        """
        self.connection.ensure_not_batched(WAITQUORUM.name)

        await self.connection.write_command(command.Command(WAITQUORUM))
        result = await self.connection.read_integer_response(disconnect_on_error=True)

        _LOGGER.debug("%s replied %d", WAITQUORUM, result)
        return result

    async def close(self) -> None:
        """Close the wrapped connection, if it is still open."""
        if self.connection.is_alive():
            await self.connection.disconnect()

    async def __aenter__(self) -> "typing_extensions.Self":
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        await self.close()
