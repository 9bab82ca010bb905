from __future__ import annotations

import typing

import httpx

from ._exceptions import InvalidURL

URLTypes = typing.Union[str, httpx.URL]


def parse_url(value: URLTypes) -> httpx.URL:
    """Parse ``value`` into an absolute URL, raising :class:`InvalidURL`."""
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError) as exc:
        raise InvalidURL(f"Invalid URL {str(value)!r}: {exc}") from exc
    if not url.scheme:
        raise InvalidURL(f"Invalid URL {str(value)!r}: relative URL without a base")
    if not url.host:
        raise InvalidURL(f"Invalid URL {str(value)!r}: empty host")
    return url


def join_url(base: httpx.URL, path: str) -> httpx.URL:
    """Resolve ``path`` against ``base`` as an RFC 3986 relative reference."""
    try:
        return base.join(path)
    except (httpx.InvalidURL, TypeError) as exc:
        raise InvalidURL(f"Failed to join {str(base)!r} and {path!r}: {exc}") from exc


def append_query_params(
    url: httpx.URL, params: typing.Mapping[str, str]
) -> httpx.URL:
    # Only the new pairs are encoded; the existing query is kept byte for
    # byte. Pairs are appended, never merged, so existing keys may repeat.
    if not params:
        return url
    addition = str(httpx.QueryParams(params)).encode("ascii")
    query = url.query + b"&" + addition if url.query else addition
    return url.copy_with(query=query)
