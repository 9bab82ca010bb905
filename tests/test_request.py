from __future__ import annotations

import httpx
import pytest

import httpweave
from httpweave import Method, Request, RetryPolicy, resolve_retry_policy


class TestRetryPolicy:
    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.max_attempts == 1
        assert policy.backoff_millis == 0
        assert policy == httpweave.NO_RETRY

    def test_backoff_seconds(self) -> None:
        assert RetryPolicy(max_attempts=3, backoff_millis=250).backoff_seconds == 0.25

    @pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"backoff_millis": -1}])
    def test_invalid(self, kwargs) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)

    def test_frozen(self) -> None:
        policy = RetryPolicy(max_attempts=2)
        with pytest.raises(AttributeError):
            policy.max_attempts = 5  # type: ignore[misc]


class TestResolveRetryPolicy:
    def test_request_policy_wins(self) -> None:
        request_policy = RetryPolicy(max_attempts=5)
        default = RetryPolicy(max_attempts=2)
        assert resolve_retry_policy(request_policy, default) is request_policy

    def test_falls_back_to_default(self) -> None:
        default = RetryPolicy(max_attempts=2)
        assert resolve_retry_policy(None, default) is default

    def test_no_policy_means_one_attempt(self) -> None:
        policy = resolve_retry_policy(None, None)
        assert policy.max_attempts == 1
        assert policy.backoff_millis == 0


class TestRequest:
    def test_relative_path(self) -> None:
        request = Request(Method.GET, "users/42")
        assert request.method == "GET"
        assert request.path == "users/42"
        assert not request.url.is_absolute_url

    def test_absolute_path_seeds_url(self) -> None:
        request = Request("post", "https://example.com/items")
        assert request.method == "POST"
        assert request.url == httpx.URL("https://example.com/items")
        assert request.url_path == "/items"

    def test_builders_return_request(self) -> None:
        policy = RetryPolicy(max_attempts=3)
        request = (
            Request("GET", "a")
            .with_path("users/7")
            .with_query_params({"active": "true"})
            .with_json_body({"a": 1})
            .with_retry_policy(policy)
        )
        assert request.path == "users/7"
        assert request.query_params == {"active": "true"}
        assert request.json_body == {"a": 1}
        assert request.has_json_body
        assert request.retry_policy is policy

    def test_json_body_none_is_still_a_body(self) -> None:
        request = Request("POST", "a").with_json_body(None)
        assert request.has_json_body

    def test_add_header(self) -> None:
        request = Request("GET", "a")
        request.add_header("X-Trace", "abc")
        assert request.headers["x-trace"] == "abc"

    def test_add_invalid_header(self) -> None:
        request = Request("GET", "a")
        with pytest.raises(httpweave.InvalidHeader):
            request.add_header("X-Trace", "a\r\nInjected: yes")
        assert "x-trace" not in request.headers

    def test_set_url(self) -> None:
        request = Request("GET", "a")
        request.set_url("https://example.com/b")
        assert request.url_path == "/b"

    def test_invalid_path(self) -> None:
        with pytest.raises(httpweave.InvalidURL):
            Request("GET", "http://example.com:notaport/")

    def test_method_str(self) -> None:
        assert str(Method.DELETE) == "DELETE"
        assert Request(Method.DELETE, "a").method == "DELETE"


class TestMarkExecuted:
    def test_first_claim_succeeds(self) -> None:
        request = Request("GET", "https://example.com/")
        assert not request.is_executed
        request.mark_executed()
        assert request.is_executed

    def test_second_claim_raises(self) -> None:
        request = Request("GET", "https://example.com/")
        request.mark_executed()
        with pytest.raises(httpweave.RequestConsumed):
            request.mark_executed()

class TestBuildTransportRequest:
    @pytest.mark.anyio
    async def test_merges_client_headers(self) -> None:
        request = Request("GET", "https://example.com/", headers={"X-Req": "1"})
        async with httpx.AsyncClient(headers={"X-Default": "d", "X-Req": "0"}) as engine:
            outbound = request.build_transport_request(engine)
        assert outbound.headers["x-default"] == "d"
        assert outbound.headers["x-req"] == "1"

    @pytest.mark.anyio
    async def test_each_call_is_a_fresh_copy(self) -> None:
        request = Request("POST", "https://example.com/", content=b"payload")
        async with httpx.AsyncClient() as engine:
            first = request.build_transport_request(engine)
            second = request.build_transport_request(engine)
        assert first is not second
        assert first.content == second.content == b"payload"

    @pytest.mark.anyio
    async def test_stream_body_cannot_be_cloned(self) -> None:
        def chunks():
            yield b"a"

        request = Request("POST", "https://example.com/", content=chunks())  # type: ignore[arg-type]
        async with httpx.AsyncClient() as engine:
            with pytest.raises(httpweave.RequestCloneError) as info:
                request.build_transport_request(engine)
        assert info.value.request is request
