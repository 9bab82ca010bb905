from __future__ import annotations

import json as _json
import typing

import httpx
import pydantic

from ._exceptions import DeserializationError, StreamConsumed, TransportError
from ._status_codes import AnyStatusCode, StatusCode

T = typing.TypeVar("T")


class Response:
    """A received response whose body can be read exactly once.

    :attr:`status` and the other metadata may be read any number of times.
    :meth:`bytes`, :meth:`text` and :meth:`json` each drain the underlying
    stream, so only the first of them succeeds; later calls raise
    :class:`StreamConsumed`.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._consumed = False

    def __repr__(self) -> str:
        return f"<Response [{self.status_code} {self.reason_phrase}]>"

    async def __aenter__(self) -> Response:
        return self

    async def __aexit__(self, *args: typing.Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def status(self) -> AnyStatusCode:
        return StatusCode.from_code(self._response.status_code)

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def reason_phrase(self) -> str:
        return self._response.reason_phrase

    @property
    def http_version(self) -> str:
        return self._response.http_version

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def url(self) -> httpx.URL:
        return self._response.url

    @property
    def is_consumed(self) -> bool:
        return self._consumed

    def as_httpx(self) -> httpx.Response:
        return self._response

    async def aclose(self) -> None:
        await self._response.aclose()

    # ------------------------------------------------------------------
    # Body accessors
    # ------------------------------------------------------------------

    async def _consume(self) -> bytes:
        if self._consumed:
            raise StreamConsumed()
        self._consumed = True
        try:
            return await self._response.aread()
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Failed to read response body from {self.url}: {exc}"
            ) from exc
        finally:
            await self._response.aclose()

    async def bytes(self) -> bytes:
        return await self._consume()

    async def json_bytes(self) -> bytes:
        """Raw body bytes, for callers that decode JSON themselves."""
        return await self._consume()

    async def text(self) -> str:
        await self._consume()
        return self._response.text

    @typing.overload
    async def json(self) -> typing.Any: ...

    @typing.overload
    async def json(self, type_: type[T]) -> T: ...

    async def json(self, type_: typing.Any = None) -> typing.Any:
        """Decode the body as JSON, validated as ``type_`` when given.

        ``type_`` may be anything pydantic can validate: a model class, a
        dataclass, a ``TypedDict`` or a plain annotation like
        ``list[int]``. On failure the raised :class:`DeserializationError`
        carries the URL, status and raw body of this response.
        """
        content = await self._consume()
        try:
            if type_ is None:
                return _json.loads(content)
            return pydantic.TypeAdapter(type_).validate_json(content)
        except (ValueError, pydantic.ValidationError) as exc:
            body = content.decode("utf-8", errors="replace")
            raise DeserializationError(
                f"Failed to deserialize JSON response from {self.url} "
                f"(status: {self.status_code}). Response body: {body}. "
                f"Decode error: {exc}",
                url=str(self.url),
                status_code=self.status_code,
                body=body,
            ) from exc
