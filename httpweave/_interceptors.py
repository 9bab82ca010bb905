from __future__ import annotations

import logging
import typing

if typing.TYPE_CHECKING:
    from ._request import Request
    from ._response import Response

logger = logging.getLogger("httpweave.interceptors")


@typing.runtime_checkable
class PreRequestInterceptor(typing.Protocol):
    """Hook that may rewrite a request before it is sent.

    The same instance is shared by every request a client executes, so
    implementations must not keep per-request state on ``self``.
    """

    async def intercept(self, request: Request) -> None: ...


@typing.runtime_checkable
class PostRequestInterceptor(typing.Protocol):
    """Hook that may inspect or rewrite a response before it is returned."""

    async def intercept(self, response: Response) -> None: ...


class InterceptorChain:
    """Immutable, ordered pre- and post-request interceptors.

    Exceptions raised by an interceptor are not caught here; they abort the
    request and reach the caller of ``execute``.
    """

    __slots__ = ("_pre", "_post")

    def __init__(
        self,
        pre: typing.Iterable[PreRequestInterceptor] = (),
        post: typing.Iterable[PostRequestInterceptor] = (),
    ) -> None:
        self._pre: tuple[PreRequestInterceptor, ...] = tuple(pre)
        self._post: tuple[PostRequestInterceptor, ...] = tuple(post)
        for interceptor in self._pre + self._post:  # type: ignore[operator]
            if not callable(getattr(interceptor, "intercept", None)):
                raise TypeError(
                    f"{interceptor!r} does not define an intercept() method"
                )

    @property
    def pre(self) -> tuple[PreRequestInterceptor, ...]:
        return self._pre

    @property
    def post(self) -> tuple[PostRequestInterceptor, ...]:
        return self._post

    def with_pre(self, interceptor: PreRequestInterceptor) -> InterceptorChain:
        return InterceptorChain(self._pre + (interceptor,), self._post)

    def with_post(self, interceptor: PostRequestInterceptor) -> InterceptorChain:
        return InterceptorChain(self._pre, self._post + (interceptor,))

    async def run_pre(self, request: Request) -> None:
        for interceptor in self._pre:
            logger.debug("pre-request interceptor %r", interceptor)
            await interceptor.intercept(request)

    async def run_post(self, response: Response) -> None:
        for interceptor in self._post:
            logger.debug("post-request interceptor %r", interceptor)
            await interceptor.intercept(response)

    def __len__(self) -> int:
        return len(self._pre) + len(self._post)

    def __repr__(self) -> str:
        return f"InterceptorChain(pre={len(self._pre)}, post={len(self._post)})"
