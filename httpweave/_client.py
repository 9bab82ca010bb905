from __future__ import annotations

import abc
import json as _json
import logging
import typing

import anyio
import httpx

from ._exceptions import InvalidURL, SerializationError, TransportError
from ._headers import Headers
from ._interceptors import (
    InterceptorChain,
    PostRequestInterceptor,
    PreRequestInterceptor,
)
from ._request import Request, RetryPolicy, resolve_retry_policy
from ._response import Response
from ._urls import URLTypes, append_query_params, join_url, parse_url

logger = logging.getLogger("httpweave.client")

DEFAULT_TIMEOUT = httpx.Timeout(timeout=30.0)


class BaseClient(abc.ABC):
    @abc.abstractmethod
    async def execute(self, request: Request) -> Response:
        """Send ``request`` and return the response, or raise ``HttpError``."""


class Client(BaseClient):
    """Asynchronous client that runs every request through one pipeline.

    The pipeline for :meth:`execute` is, in order: base URL resolution,
    pre-request interceptors, query parameters, JSON body, the retry loop
    around the transport call, and post-request interceptors.

    Parameters
    ----------
    base_url:
        Absolute URL that relative request paths are joined onto. An invalid
        value raises :class:`~httpweave.InvalidURL` here, not at send time.
    headers:
        Default headers sent with every request. Request headers win.
    retry_policy:
        Used by requests that do not carry their own policy.
    pre_interceptors, post_interceptors:
        Run in the given order, one at a time, for every request.
    transport:
        Optional ``httpx`` transport, e.g. ``httpx.MockTransport`` in tests.
    timeout:
        Per-attempt transport timeout.

    Examples
    --------
    >>> client = (
    ...     Client("https://api.example.com/v1/")
    ...     .with_default_retry_policy(RetryPolicy(max_attempts=3, backoff_millis=10))
    ...     .with_pre_interceptor(AuthInterceptor(token))
    ... )
    >>> request = Request("GET", "users/42").with_query_params({"active": "true"})
    >>> async with client:
    ...     response = await client.execute(request)
    ...     user = await response.json(User)
    """

    def __init__(
        self,
        base_url: URLTypes | None = None,
        *,
        headers: typing.Mapping[str, str] | None = None,
        retry_policy: RetryPolicy | None = None,
        pre_interceptors: typing.Iterable[PreRequestInterceptor] = (),
        post_interceptors: typing.Iterable[PostRequestInterceptor] = (),
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        self._base_url = parse_url(base_url) if base_url is not None else None
        self._default_headers = Headers(headers)
        self._default_retry_policy = retry_policy
        self._interceptors = InterceptorChain(pre_interceptors, post_interceptors)
        self._transport = transport
        self._timeout = timeout
        self._client = self._build_engine()
        self._retired: list[httpx.AsyncClient] = []

    def _build_engine(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self._default_headers.to_httpx(),
            transport=self._transport,
            timeout=self._timeout,
        )

    def __repr__(self) -> str:
        return f"<Client base_url={str(self._base_url) if self._base_url else None!r}>"

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *args: typing.Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        # Engines replaced by with_default_headers() may still own open
        # responses.
        retired, self._retired = self._retired, []
        for engine in retired:
            await engine.aclose()
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> httpx.URL | None:
        return self._base_url

    @property
    def default_headers(self) -> Headers:
        return Headers(self._default_headers)

    @property
    def default_retry_policy(self) -> RetryPolicy | None:
        return self._default_retry_policy

    @property
    def interceptors(self) -> InterceptorChain:
        return self._interceptors

    def with_base_url(self, base_url: URLTypes) -> Client:
        self._base_url = parse_url(base_url)
        return self

    def with_default_headers(self, headers: typing.Mapping[str, str]) -> Client:
        """Replace the default headers.

        This rebuilds the engine client, so call it before sending requests.
        The previous engine is closed by :meth:`aclose`.
        """
        self._default_headers = Headers(headers)
        previous, self._client = self._client, self._build_engine()
        self._retired.append(previous)
        logger.debug("Rebuilt engine client with %d default header(s)", len(headers))
        return self

    def with_default_retry_policy(self, policy: RetryPolicy) -> Client:
        self._default_retry_policy = policy
        return self

    def with_pre_interceptor(self, interceptor: PreRequestInterceptor) -> Client:
        self._interceptors = self._interceptors.with_pre(interceptor)
        return self

    def with_post_interceptor(self, interceptor: PostRequestInterceptor) -> Client:
        self._interceptors = self._interceptors.with_post(interceptor)
        return self

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def execute(self, request: Request) -> Response:
        # Read once; builder calls during this request must not affect it.
        base_url = self._base_url
        interceptors = self._interceptors
        engine = self._client
        default_policy = self._default_retry_policy
        request.mark_executed()

        if base_url is not None and request.path is not None:
            request.url = join_url(base_url, request.path)

        await interceptors.run_pre(request)

        if request.query_params:
            request.url = append_query_params(request.url, request.query_params)

        if request.has_json_body:
            request.content = _serialize_json(request)
            request.headers["Content-Type"] = "application/json"

        if not request.url.is_absolute_url:
            raise InvalidURL(
                f"Request URL {str(request.url)!r} is not absolute and no "
                "base URL is configured",
                request=request,
            )

        policy = resolve_retry_policy(request.retry_policy, default_policy)

        logger.debug(
            "%s %s (max_attempts=%d, backoff_millis=%d)",
            request.method,
            request.url,
            policy.max_attempts,
            policy.backoff_millis,
        )
        raw = await self._send_with_retry(engine, request, policy)

        response = Response(raw)
        try:
            await interceptors.run_post(response)
        except BaseException:
            await response.aclose()
            raise
        return response

    async def _send_with_retry(
        self, engine: httpx.AsyncClient, request: Request, policy: RetryPolicy
    ) -> httpx.Response:
        attempts = 0
        while True:
            outbound = request.build_transport_request(engine)
            try:
                return await engine.send(outbound, stream=True)
            except httpx.TransportError as exc:
                attempts += 1
                if attempts >= policy.max_attempts:
                    logger.error(
                        "%s %s failed after %d attempt(s): %s",
                        request.method,
                        request.url,
                        attempts,
                        exc,
                    )
                    raise TransportError(
                        f"HTTP client error: {exc}", request=request
                    ) from exc
                logger.warning(
                    "Attempt %d/%d for %s %s failed: %s",
                    attempts,
                    policy.max_attempts,
                    request.method,
                    request.url,
                    exc,
                )
                if policy.backoff_millis > 0:
                    await anyio.sleep(policy.backoff_seconds)
            except httpx.HTTPError as exc:
                raise TransportError(
                    f"HTTP client error: {exc}", request=request
                ) from exc


def _serialize_json(request: Request) -> bytes:
    try:
        text = _json.dumps(
            request.json_body, separators=(",", ":"), ensure_ascii=False
        )
    except (TypeError, ValueError) as exc:
        raise SerializationError(
            f"Failed to serialize JSON body: {exc}", request=request
        ) from exc
    return text.encode("utf-8")
