"""Module containing Redis client implementation."""

import asyncio
import collections.abc
import dataclasses
import types
import typing

from waitquorum import config, connection, protocol

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Redis",)


ConnectionT = typing.TypeVar("ConnectionT", bound=protocol.ConnectionProto)


@dataclasses.dataclass(slots=True)
class Redis:
    """Factory for connections to a single Redis instance."""

    host: str
    port: int = config.DEFAULT_PORT

    _connections: list[protocol.ConnectionProto] = dataclasses.field(
        default_factory=list,
        init=False,
    )

    @classmethod
    def from_url(cls, url: str) -> "Redis":
        """Create a Redis client from a Redis url.

        This performs URL validation, but does *not* make any connections.

        Connections should be created by the user with ``get_connection``.
        """
        return cls(*config.parse_url(url))

    async def get_connection(
        self,
        connection_class: type[ConnectionT] = connection.ActionableConnection,
    ) -> ConnectionT:
        """Make a new connection to this client's Redis instance.

        By default, this make a new ActionableConnection. You can provide a
        different (custom) connection class through the ``connection_class``
        argument.
        """
        con = await connection_class.from_host_port(self.host, self.port)
        self._connections.append(con)
        return con

    async def disconnect(self) -> None:
        """Disconnect all live connections registered to this Redis client."""
        connections, self._connections = self._connections, []
        await asyncio.gather(*[con.disconnect() for con in connections if con.is_alive()])

    async def __aenter__(self) -> "typing_extensions.Self":
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        await self.disconnect()
