from __future__ import annotations

import json
import logging
import sys
import time
import typing

import anyio
import click
from rich.console import Console
from rich.syntax import Syntax
from rich.text import Text

from ._client import Client
from ._exceptions import HttpError
from ._request import Request, RetryPolicy

# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


class _Printed(typing.NamedTuple):
    http_version: str
    status_code: int
    reason_phrase: str
    headers: list[tuple[str, str]]
    content: bytes


def _status_color(status_code: int) -> str:
    """Return a rich color name based on HTTP status category."""
    if status_code < 200:
        return "cyan"
    elif status_code < 300:
        return "green"
    elif status_code < 400:
        return "yellow"
    elif status_code < 500:
        return "red"
    else:
        return "bold red"


def is_binary_content(content: bytes) -> bool:
    return b"\0" in content


def is_binary_content_type(content_type: str) -> bool:
    text_types = (
        "text/",
        "application/json",
        "application/xml",
        "application/javascript",
    )
    ct = content_type.lower().split(";")[0].strip()
    return not any(ct.startswith(t) for t in text_types) and ct != ""


def _content_type(printed: _Printed) -> str:
    for key, value in printed.headers:
        if key.lower() == "content-type":
            return value
    return ""


def _pretty_json(text: str) -> str | None:
    try:
        return json.dumps(json.loads(text), indent=4, ensure_ascii=False)
    except ValueError:
        return None


def format_response_plain(printed: _Printed) -> str:
    status_line = (
        f"{printed.http_version} {printed.status_code} {printed.reason_phrase}"
    ).rstrip()
    lines: list[str] = [status_line]
    lines.extend(f"{key}: {value}" for key, value in printed.headers)
    lines.append("")

    content = printed.content
    if content:
        content_type = _content_type(printed)
        if is_binary_content_type(content_type) or is_binary_content(content):
            lines.append(f"<{len(content)} bytes of binary data>")
        else:
            text = content.decode("utf-8", errors="replace")
            formatted = (
                _pretty_json(text) if "application/json" in content_type else None
            )
            lines.append(formatted if formatted is not None else text)

    return "\n".join(lines)


def print_response_rich(console: Console, printed: _Printed) -> None:
    color = _status_color(printed.status_code)

    status_line = Text()
    status_line.append(f"{printed.http_version} ", style="bold dim")
    status_line.append(f"{printed.status_code}", style=f"bold {color}")
    if printed.reason_phrase:
        status_line.append(f" {printed.reason_phrase}", style=color)
    console.print(status_line)

    for key, value in printed.headers:
        header_text = Text()
        header_text.append(key, style="dim cyan")
        header_text.append(": ", style="dim")
        header_text.append(value)
        console.print(header_text)

    console.print()

    content = printed.content
    if content:
        content_type = _content_type(printed)
        if is_binary_content_type(content_type) or is_binary_content(content):
            console.print(f"[dim]<{len(content)} bytes of binary data>[/dim]")
            return
        text = content.decode("utf-8", errors="replace")
        formatted = _pretty_json(text) if "application/json" in content_type else None
        if formatted is not None:
            console.print(Syntax(formatted, "json", theme="monokai"))
        else:
            console.print(text, markup=False)


# ---------------------------------------------------------------------------
# Option parsing helpers
# ---------------------------------------------------------------------------


def parse_header(header: str) -> tuple[str, str]:
    """Parse a curl-style 'Key: Value' header string."""
    if ":" not in header:
        raise click.BadParameter(
            f"Invalid header format: '{header}'. Expected 'Key: Value'."
        )
    key, _, value = header.partition(":")
    return key.strip(), value.strip()


def parse_query(pair: str) -> tuple[str, str]:
    if "=" not in pair:
        raise click.BadParameter(
            f"Invalid query format: '{pair}'. Expected 'key=value'."
        )
    key, _, value = pair.partition("=")
    return key, value


async def _run(client: Client, request: Request) -> _Printed:
    async with client:
        response = await client.execute(request)
        content = await response.bytes()
        return _Printed(
            http_version=response.http_version,
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers=list(response.headers.items()),
            content=content,
        )


# ---------------------------------------------------------------------------
# CLI command
# ---------------------------------------------------------------------------


@click.command(help="Send one request through the httpweave pipeline.")
@click.argument("url")
@click.option("--base-url", default=None, help="Base URL that URL is joined onto.")
@click.option("-m", "--method", default="GET", help="HTTP method.")
@click.option(
    "-H",
    "--header",
    "headers",
    multiple=True,
    help='Add a header, e.g. -H "Authorization: Bearer token".',
)
@click.option(
    "-q", "--query", "query", multiple=True, help="Add a query pair, e.g. -q page=2."
)
@click.option("-j", "--json", "json_body", default=None, help="JSON data to send.")
@click.option(
    "--retries",
    default=1,
    show_default=True,
    type=click.IntRange(min=1),
    envvar="HTTPWEAVE_MAX_ATTEMPTS",
    help="Maximum attempts on transport errors.",
)
@click.option(
    "--backoff-ms",
    default=0,
    show_default=True,
    type=click.IntRange(min=0),
    envvar="HTTPWEAVE_BACKOFF_MS",
    help="Delay before each retry, in milliseconds.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log pipeline steps.")
@click.option(
    "--timing", is_flag=True, default=False, help="Show total request time."
)
@click.option("--no-color", is_flag=True, default=False, help="Disable colored output.")
def main(
    url: str,
    base_url: str | None,
    method: str,
    headers: tuple[str, ...],
    query: tuple[str, ...],
    json_body: str | None,
    retries: int,
    backoff_ms: int,
    verbose: bool,
    timing: bool,
    no_color: bool,
) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(name)s %(levelname)s %(message)s"
        )

    use_rich = not no_color and sys.stdout.isatty()

    header_pairs = [parse_header(h) for h in headers]
    query_params = dict(parse_query(pair) for pair in query)
    body: typing.Any = None
    if json_body is not None:
        try:
            body = json.loads(json_body)
        except ValueError as exc:
            raise click.BadParameter(f"Invalid JSON: {exc}", param_hint="--json")

    try:
        request = Request(method, url)
        for key, value in header_pairs:
            request.add_header(key, value)
        if query_params:
            request.with_query_params(query_params)
        if json_body is not None:
            request.with_json_body(body)
        client = Client(
            base_url,
            retry_policy=RetryPolicy(max_attempts=retries, backoff_millis=backoff_ms),
        )
        start_time = time.monotonic()
        printed = anyio.run(_run, client, request)
        elapsed_ms = (time.monotonic() - start_time) * 1000
    except HttpError as exc:
        if use_rich:
            Console(stderr=True).print(
                f"[bold red]{type(exc).__name__}[/bold red]: {exc}"
            )
        else:
            click.echo(f"{type(exc).__name__}: {exc}")
        sys.exit(1)

    if use_rich:
        console = Console()
        print_response_rich(console, printed)
        if timing:
            console.print()
            console.print(f"[dim]Total: {elapsed_ms:.1f}ms[/dim]")
    else:
        click.echo(format_response_plain(printed))
        if timing:
            click.echo()
            click.echo(f"Total: {elapsed_ms:.1f}ms")

    if printed.status_code >= 300:
        sys.exit(1)
