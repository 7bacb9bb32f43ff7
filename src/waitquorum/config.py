"""Module containing connection configuration helpers."""

import collections.abc
import typing
import urllib.parse

__all__: collections.abc.Sequence[str] = ("DEFAULT_PORT", "parse_url")


DEFAULT_PORT: typing.Final = 6379

_URL_ERROR: typing.Final = "Only urls of scheme 'redis://host:port' are supported"


def parse_url(url: str, /) -> tuple[str, int]:
    """Split a ``redis://host[:port]`` url into its host and port.

    The port defaults to ``DEFAULT_PORT`` when omitted.
    """
    parsed = urllib.parse.urlparse(url)
    if not parsed.hostname or parsed.scheme != "redis":
        raise ValueError(_URL_ERROR)

    try:
        port = parsed.port
    except ValueError as exc:
        raise ValueError(_URL_ERROR) from exc

    return parsed.hostname, DEFAULT_PORT if port is None else port
