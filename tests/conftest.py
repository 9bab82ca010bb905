import json
import typing

import httpx
import pytest

import httpweave


# httpweave sleeps with anyio, but the suite only needs one event loop.
@pytest.fixture
def anyio_backend():
    return "asyncio"


Message = typing.Dict[str, typing.Any]
Receive = typing.Callable[[], typing.Awaitable[Message]]
Send = typing.Callable[
    [typing.Dict[str, typing.Any]], typing.Coroutine[None, None, None]
]
Scope = typing.Dict[str, typing.Any]


async def app(scope: Scope, receive: Receive, send: Send) -> None:
    assert scope["type"] == "http"
    if scope["path"].startswith("/status"):
        await status_code(scope, receive, send)
    elif scope["path"].startswith("/echo_body"):
        await echo_body(scope, receive, send)
    elif scope["path"].startswith("/echo_headers"):
        await echo_headers(scope, receive, send)
    elif scope["path"].startswith("/echo_url"):
        await echo_url(scope, receive, send)
    elif scope["path"].startswith("/json"):
        await hello_world_json(scope, receive, send)
    else:
        await hello_world(scope, receive, send)


async def hello_world(scope: Scope, receive: Receive, send: Send) -> None:
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [[b"content-type", b"text/plain"]],
        }
    )
    await send({"type": "http.response.body", "body": b"Hello, world!"})


async def hello_world_json(scope: Scope, receive: Receive, send: Send) -> None:
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [[b"content-type", b"application/json"]],
        }
    )
    await send({"type": "http.response.body", "body": b'{"Hello": "world!"}'})


async def status_code(scope: Scope, receive: Receive, send: Send) -> None:
    status_code = int(scope["path"].replace("/status/", ""))
    await send(
        {
            "type": "http.response.start",
            "status": status_code,
            "headers": [[b"content-type", b"text/plain"]],
        }
    )
    await send({"type": "http.response.body", "body": b"Hello, world!"})


async def echo_body(scope: Scope, receive: Receive, send: Send) -> None:
    body = b""
    more_body = True

    while more_body:
        message = await receive()
        body += message.get("body", b"")
        more_body = message.get("more_body", False)

    content_type = dict(scope.get("headers", [])).get(b"content-type", b"text/plain")
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [[b"content-type", content_type]],
        }
    )
    await send({"type": "http.response.body", "body": body})


async def echo_headers(scope: Scope, receive: Receive, send: Send) -> None:
    body = {name.decode(): value.decode() for name, value in scope.get("headers", [])}
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [[b"content-type", b"application/json"]],
        }
    )
    await send({"type": "http.response.body", "body": json.dumps(body).encode()})


async def echo_url(scope: Scope, receive: Receive, send: Send) -> None:
    body = {
        "path": scope["path"],
        "query": scope.get("query_string", b"").decode(),
    }
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [[b"content-type", b"application/json"]],
        }
    )
    await send({"type": "http.response.body", "body": json.dumps(body).encode()})


class FlakyTransport(httpx.AsyncBaseTransport):
    """Fails with ``ConnectError`` for the first ``failures`` attempts."""

    def __init__(self, failures: int, handler=None) -> None:
        self.failures = failures
        self.requests: typing.List[httpx.Request] = []
        self.errors: typing.List[httpx.ConnectError] = []
        self._handler = handler or (lambda request: httpx.Response(200, text="ok"))

    @property
    def attempts(self) -> int:
        return len(self.requests)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)
        if self.attempts <= self.failures:
            error = httpx.ConnectError(
                f"connection refused (attempt {self.attempts})", request=request
            )
            self.errors.append(error)
            raise error
        return self._handler(request)


@pytest.fixture
def asgi_transport() -> httpx.ASGITransport:
    return httpx.ASGITransport(app=app)


@pytest.fixture
def make_client(asgi_transport):
    def _make_client(**kwargs: typing.Any) -> httpweave.Client:
        kwargs.setdefault("transport", asgi_transport)
        return httpweave.Client("http://testserver/", **kwargs)

    return _make_client


@pytest.fixture
def flaky():
    return FlakyTransport
