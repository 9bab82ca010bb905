from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from ._request import Request


class HttpError(Exception):
    """Base class for every error raised while executing a request."""

    def __init__(self, message: str, *, request: Request | None = None) -> None:
        super().__init__(message)
        self._request = request

    @property
    def request(self) -> Request:
        if self._request is None:
            raise RuntimeError("The .request property has not been set.")
        return self._request

    @request.setter
    def request(self, request: Request) -> None:
        self._request = request


class TransportError(HttpError):
    """The underlying engine failed to deliver the request or read the reply."""


class SerializationError(HttpError):
    """The JSON body could not be encoded."""


class DeserializationError(HttpError):
    """A response body could not be decoded into the requested type."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: int,
        body: str,
        request: Request | None = None,
    ) -> None:
        super().__init__(message, request=request)
        self.url = url
        self.status_code = status_code
        self.body = body


class InvalidURL(HttpError):
    """A base URL or request URL is malformed, or cannot be joined."""


class InvalidHeader(HttpError):
    """A header name or value is not allowed on the wire."""


class RequestCloneError(HttpError):
    """The prepared request cannot be replayed, e.g. it carries a stream body."""


class StreamConsumed(RuntimeError):
    """A response body accessor was called after the body was already read."""

    def __init__(self) -> None:
        super().__init__(
            "Attempted to read the response body more than once. "
            "bytes(), text() and json() each consume the response."
        )


class RequestConsumed(RuntimeError):
    """A request was passed to ``execute`` after it had already been sent."""

    def __init__(self) -> None:
        super().__init__(
            "Attempted to execute a request more than once. Query parameters "
            "and the JSON body have already been applied; build a new Request."
        )
