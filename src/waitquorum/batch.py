"""Module containing batched command contexts.

Pipelines and transactions defer replies: commands are queued and their
responses collected together. While either is open, the owning connection
refuses to send commands directly.
"""

import collections.abc
import dataclasses
import types
import typing

from waitquorum import command, error

if typing.TYPE_CHECKING:
    import typing_extensions

    from waitquorum import connection

__all__: collections.abc.Sequence[str] = ("Pipeline", "Transaction")


@dataclasses.dataclass(slots=True)
class Pipeline:
    """Queue commands locally and send them in one go.

    ```
    async with con.pipeline() as pipe:
        pipe.queue("SET", "foo", "bar").queue("GET", "foo")
        replies = await pipe.execute()
    ```
    """

    owner: "connection.ActionableConnection"
    _commands: list[command.Command] = dataclasses.field(default_factory=list, init=False, repr=False)
    _open: bool = dataclasses.field(default=False, init=False, repr=False)

    def _ensure_open(self) -> None:
        if not self._open:
            msg = "The pipeline is not open."
            raise error.StateError(msg)

    def queue(self, name: command.CommandName, *args: str | bytes | int | float) -> "typing_extensions.Self":
        """Queue a command to be sent on ``execute``."""
        self._ensure_open()
        self._commands.append(command.Command(name, *args))
        return self

    def __len__(self) -> int:
        return len(self._commands)

    async def execute(self) -> list[typing.Any]:
        """Send all queued commands and read their replies in order.

        Error replies are returned in place as ``ResponseError`` instances.
        """
        self._ensure_open()
        commands, self._commands = self._commands, []
        con = self.owner.connection

        for cmd in commands:
            await con.write_command(cmd)

        replies: list[typing.Any] = []
        for _ in commands:
            try:
                replies.append(await con.read_response(disconnect_on_error=True))
            except error.ResponseError as exc:
                replies.append(exc)

        return replies

    async def __aenter__(self) -> "typing_extensions.Self":
        self.owner.enter_batch("pipeline")
        self._open = True
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        self._open = False
        self._commands.clear()
        self.owner.exit_batch()


@dataclasses.dataclass(slots=True)
class Transaction:
    """A MULTI/EXEC block.

    Commands are queued server-side as they're added. Leaving the block
    without calling ``execute`` discards the transaction.
    """

    owner: "connection.ActionableConnection"
    _open: bool = dataclasses.field(default=False, init=False, repr=False)

    async def _roundtrip(self, cmd: command.Command) -> typing.Any:  # noqa: ANN401
        con = self.owner.connection
        await con.write_command(cmd)
        return await con.read_response(disconnect_on_error=True)

    async def queue(self, name: command.CommandName, *args: str | bytes | int | float) -> None:
        """Queue a command inside this transaction."""
        if not self._open:
            msg = "The transaction is not open."
            raise error.StateError(msg)

        reply = await self._roundtrip(command.Command(name, *args))
        if reply != b"QUEUED":
            msg = f"Expected QUEUED reply, got {reply!r}"
            raise error.ProtocolError(msg)

    async def execute(self) -> list[typing.Any] | None:
        """Execute all queued commands.

        Returns ``None`` if the transaction was aborted by a WATCHed key.
        """
        if not self._open:
            msg = "The transaction is not open."
            raise error.StateError(msg)

        self._open = False
        return await self._roundtrip(command.Command(b"EXEC"))

    async def discard(self) -> None:
        """Discard all queued commands."""
        if not self._open:
            msg = "The transaction is not open."
            raise error.StateError(msg)

        self._open = False
        await self._roundtrip(command.Command(b"DISCARD"))

    async def __aenter__(self) -> "typing_extensions.Self":
        self.owner.enter_batch("transaction")
        try:
            await self._roundtrip(command.Command(b"MULTI"))
        except BaseException:
            self.owner.exit_batch()
            raise

        self._open = True
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        try:
            if self._open and self.owner.is_alive():
                await self.discard()
        finally:
            self._open = False
            self.owner.exit_batch()
