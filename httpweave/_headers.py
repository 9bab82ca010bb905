from __future__ import annotations

import logging
import re
import typing
from collections.abc import Iterator, MutableMapping

import httpx

from ._exceptions import InvalidHeader

logger = logging.getLogger("httpweave.headers")

# RFC 7230 section 3.2.6 token.
_TOKEN_REGEX = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_FORBIDDEN_VALUE_CHARS = ("\r", "\n", "\0")


def validate_header(name: str, value: str) -> None:
    if not _TOKEN_REGEX.match(name):
        raise InvalidHeader(f"Invalid header name {name!r}")
    if any(char in value for char in _FORBIDDEN_VALUE_CHARS):
        raise InvalidHeader(f"Invalid value for header {name!r}: control character")
    try:
        value.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise InvalidHeader(
            f"Invalid value for header {name!r}: not latin-1 encodable"
        ) from exc


class Headers(MutableMapping[str, str]):
    """Plain name -> value header map used for client-wide defaults.

    Names are kept as given. Conversion to the engine's representation
    happens in :meth:`to_httpx`, which drops entries the wire cannot carry.
    """

    def __init__(self, headers: typing.Mapping[str, str] | None = None) -> None:
        self._store: dict[str, str] = {}
        if headers:
            for key, value in headers.items():
                self.insert(key, value)

    def insert(self, name: str, value: str) -> None:
        self._store[str(name)] = str(value)

    def __getitem__(self, name: str) -> str:
        return self._store[name]

    def __setitem__(self, name: str, value: str) -> None:
        self.insert(name, value)

    def __delitem__(self, name: str) -> None:
        del self._store[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        return f"Headers({self._store!r})"

    def to_httpx(self) -> httpx.Headers:
        converted = httpx.Headers()
        for name, value in self._store.items():
            try:
                validate_header(name, value)
            except InvalidHeader as exc:
                logger.warning("Dropping header: %s", exc)
                continue
            converted[name] = value
        return converted
