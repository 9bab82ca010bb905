from __future__ import annotations

import enum
import typing
from dataclasses import dataclass

import httpx

from ._exceptions import InvalidURL, RequestCloneError, RequestConsumed
from ._headers import validate_header
from ._urls import URLTypes

ContentTypes = typing.Union[bytes, str, None]


def _to_url(value: URLTypes) -> httpx.URL:
    try:
        return httpx.URL(value)
    except (httpx.InvalidURL, TypeError) as exc:
        raise InvalidURL(f"Invalid URL {str(value)!r}: {exc}") from exc


class Method(str, enum.Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    CONNECT = "CONNECT"
    TRACE = "TRACE"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RetryPolicy:
    """Maximum attempts plus a fixed delay before every retry.

    ``max_attempts=1`` means the request is sent once and never retried.
    """

    max_attempts: int = 1
    backoff_millis: int = 0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.backoff_millis < 0:
            raise ValueError(
                f"backoff_millis must not be negative, got {self.backoff_millis}"
            )

    @property
    def backoff_seconds(self) -> float:
        return self.backoff_millis / 1000


NO_RETRY = RetryPolicy()


def resolve_retry_policy(
    request_policy: RetryPolicy | None,
    default_policy: RetryPolicy | None,
) -> RetryPolicy:
    if request_policy is not None:
        return request_policy
    if default_policy is not None:
        return default_policy
    return NO_RETRY


class Request:
    """Mutable description of one outbound call.

    ``path`` is resolved against the client's base URL by the pipeline. It
    also seeds :attr:`url`, so an absolute path can be sent by a client that
    has no base URL.

    Query parameters and the JSON body are held aside and applied exactly
    once, after pre-request interceptors have run. A request is executed at
    most once; build a new one to send the same call again.
    """

    def __init__(
        self,
        method: Method | str,
        path: URLTypes,
        *,
        headers: typing.Mapping[str, str] | None = None,
        content: ContentTypes = None,
    ) -> None:
        self._method = str(method).upper()
        self.path: str | None = str(path)
        self.url = _to_url(path)
        self.headers = httpx.Headers(headers)
        self.content: typing.Any = content
        self.query_params: dict[str, str] | None = None
        self.json_body: typing.Any = None
        self.has_json_body = False
        self.retry_policy: RetryPolicy | None = None
        self._executed = False

    def __repr__(self) -> str:
        return f"<Request({self._method!r}, {str(self.url)!r})>"

    # ------------------------------------------------------------------
    # Builder methods
    # ------------------------------------------------------------------

    def with_path(self, path: str) -> Request:
        self.url = _to_url(path)
        self.path = path
        return self

    def with_query_params(self, params: typing.Mapping[str, str]) -> Request:
        self.query_params = dict(params)
        return self

    def with_json_body(self, body: typing.Any) -> Request:
        # ``None`` is a valid body and is sent as ``null``.
        self.json_body = body
        self.has_json_body = True
        return self

    def with_retry_policy(self, policy: RetryPolicy) -> Request:
        self.retry_policy = policy
        return self

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def add_header(self, name: str, value: str) -> None:
        validate_header(name, value)
        self.headers[name] = value

    @property
    def method(self) -> str:
        return self._method

    @property
    def is_executed(self) -> bool:
        return self._executed

    def mark_executed(self) -> None:
        """Claim this request for one pipeline run.

        Raises :class:`RequestConsumed` if it was already claimed.
        """
        if self._executed:
            raise RequestConsumed()
        self._executed = True

    @property
    def url_path(self) -> str:
        return self.url.path

    def set_url(self, url: URLTypes) -> None:
        self.url = _to_url(url)

    def build_transport_request(self, client: httpx.AsyncClient) -> httpx.Request:
        """Create a fresh engine request for one attempt.

        The client's default headers are merged underneath ours. Only
        in-memory bodies can be rebuilt for every attempt.
        """
        content = self.content
        if content is not None and not isinstance(content, (bytes, str)):
            raise RequestCloneError(
                "Failed to clone request for retry: "
                f"{type(content).__name__} body cannot be replayed",
                request=self,
            )
        return client.build_request(
            self._method, self.url, headers=self.headers, content=content
        )
