from ._client import DEFAULT_TIMEOUT, BaseClient, Client
from ._exceptions import (
    DeserializationError,
    HttpError,
    InvalidHeader,
    InvalidURL,
    RequestCloneError,
    RequestConsumed,
    SerializationError,
    StreamConsumed,
    TransportError,
)
from ._headers import Headers, validate_header
from ._interceptors import (
    InterceptorChain,
    PostRequestInterceptor,
    PreRequestInterceptor,
)
from ._request import NO_RETRY, Method, Request, RetryPolicy, resolve_retry_policy
from ._response import Response
from ._status_codes import AnyStatusCode, CustomStatusCode, StatusCode
from ._urls import append_query_params, join_url, parse_url

__title__ = "httpweave"
__description__ = "Interceptors, retries and base-URL resolution on top of httpx."
__version__ = "0.1.0"

_EXCLUDED_FROM_ALL = {"cli", "main"}

_members = [
    member
    for member in list(vars().keys())
    if (
        not member.startswith("_")
        or member in ["__description__", "__title__", "__version__"]
    )
    and member not in _EXCLUDED_FROM_ALL
]

__all__ = sorted(_members, key=str.casefold)  # pyright: ignore[reportUnsupportedDunderAll]
