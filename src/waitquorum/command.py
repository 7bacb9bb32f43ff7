"""Module containing command implementation."""

import collections.abc
import dataclasses
import typing

from waitquorum import protocol

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Command", "CustomCommand")


CommandName: typing.TypeAlias = "str | bytes | protocol.ProtocolCommand"

_FORBIDDEN_NAME_BYTES: typing.Final = frozenset(b" \t\r\n")


@dataclasses.dataclass(frozen=True, slots=True)
class CustomCommand:
    """A command name as it is sent over the wire.

    The wire bytes are computed once at construction. Instances satisfy
    ``protocol.ProtocolCommand`` and can be passed wherever a command name is
    accepted, so new commands don't require changes to any client.
    """

    name: str
    raw: bytes = dataclasses.field(init=False, repr=False)

    def __post_init__(self) -> None:
        raw = self.name.encode("utf-8")
        if not raw or _FORBIDDEN_NAME_BYTES.intersection(raw):
            msg = f"Invalid command name {self.name!r}: must be a single non-empty token"
            raise ValueError(msg)

        # Frozen dataclass, so bypass __setattr__ for the derived field.
        object.__setattr__(self, "raw", raw)

    def get_raw(self) -> bytes:
        """Return the wire-format bytes of this command name."""
        return self.raw

    def __str__(self) -> str:
        return self.name


@dataclasses.dataclass(slots=True)
class Command:
    """A Redis command.

    This class handles encoding of arguments before they're accepted by a
    ``Connection``.
    """

    arguments: list[bytes]
    discard_response: bool
    disconnect_on_error: bool

    def __init__(self, name: CommandName, *args: str | bytes | int | float) -> None:
        self.discard_response = False
        self.disconnect_on_error = True

        self.arguments = []
        self.arg(name.raw if isinstance(name, protocol.ProtocolCommand) else name)
        for arg in args:
            self.arg(arg)

    def arg(self, value: str | bytes | int | float) -> "typing_extensions.Self":
        """Add an argument to this command."""
        if isinstance(value, bytes):
            pass
        elif isinstance(value, str):
            value = value.encode()
        elif isinstance(value, int | float):
            value = str(value).encode()
        else:
            msg = f"Unsupported argument type {type(value).__name__!r}"
            raise TypeError(msg)

        self.arguments.append(value)
        return self

    def set_discard_response(self, discard_response: bool, /) -> "typing_extensions.Self":  # noqa: FBT001
        """Set whether to read and return the response, or to discard it."""
        self.discard_response = discard_response
        return self

    def set_disconnect_on_error(self, disconnect_on_error: bool, /) -> "typing_extensions.Self":  # noqa: FBT001
        """Set ``disconnect_on_error`` when executing the command."""
        self.disconnect_on_error = disconnect_on_error
        return self

    @property
    def name(self) -> bytes:
        """The wire-format name of this command."""
        return self.arguments[0]

    async def execute(self, con: protocol.ConnectionProto) -> typing.Any:  # noqa: ANN401
        """Execute this command on a given connection."""
        await con.write_command(self)

        if self.discard_response:
            return await con.discard_response(disconnect_on_error=self.disconnect_on_error)

        return await con.read_response(disconnect_on_error=self.disconnect_on_error)

    def __str__(self) -> str:
        return " ".join(arg.decode("utf-8", errors="replace") for arg in self.arguments)

    def __len__(self) -> int:
        return len(self.arguments)

    def __iter__(self) -> collections.abc.Iterator[bytes]:
        return iter(self.arguments)
