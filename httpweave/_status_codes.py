from __future__ import annotations

import enum
import typing

import httpx


class _StatusClass:
    """Classification shared by named and custom status codes.

    Every predicate looks only at the numeric value.
    """

    @property
    def code(self) -> int:
        return int(self)  # type: ignore[call-overload]

    @property
    def reason_phrase(self) -> str:
        return httpx.codes.get_reason_phrase(self.code)

    @property
    def is_informational(self) -> bool:
        return 100 <= self.code < 200

    @property
    def is_success(self) -> bool:
        return 200 <= self.code < 300

    @property
    def is_redirection(self) -> bool:
        return 300 <= self.code < 400

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.code < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.code < 600

    @property
    def is_error(self) -> bool:
        return self.is_client_error or self.is_server_error


class StatusCode(_StatusClass, enum.IntEnum):
    CONTINUE = 100
    SWITCHING_PROTOCOLS = 101
    PROCESSING = 102
    EARLY_HINTS = 103

    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NON_AUTHORITATIVE_INFORMATION = 203
    NO_CONTENT = 204
    RESET_CONTENT = 205
    PARTIAL_CONTENT = 206
    MULTI_STATUS = 207
    ALREADY_REPORTED = 208
    IM_USED = 226

    MULTIPLE_CHOICES = 300
    MOVED_PERMANENTLY = 301
    FOUND = 302
    SEE_OTHER = 303
    NOT_MODIFIED = 304
    USE_PROXY = 305
    TEMPORARY_REDIRECT = 307
    PERMANENT_REDIRECT = 308

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    PAYMENT_REQUIRED = 402
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    NOT_ACCEPTABLE = 406
    PROXY_AUTHENTICATION_REQUIRED = 407
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    GONE = 410
    LENGTH_REQUIRED = 411
    PRECONDITION_FAILED = 412
    PAYLOAD_TOO_LARGE = 413
    URI_TOO_LONG = 414
    UNSUPPORTED_MEDIA_TYPE = 415
    RANGE_NOT_SATISFIABLE = 416
    EXPECTATION_FAILED = 417
    IM_A_TEAPOT = 418
    MISDIRECTED_REQUEST = 421
    UNPROCESSABLE_ENTITY = 422
    LOCKED = 423
    FAILED_DEPENDENCY = 424
    TOO_EARLY = 425
    UPGRADE_REQUIRED = 426
    PRECONDITION_REQUIRED = 428
    TOO_MANY_REQUESTS = 429
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431
    UNAVAILABLE_FOR_LEGAL_REASONS = 451

    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504
    HTTP_VERSION_NOT_SUPPORTED = 505
    VARIANT_ALSO_NEGOTIATES = 506
    INSUFFICIENT_STORAGE = 507
    LOOP_DETECTED = 508
    NOT_EXTENDED = 510
    NETWORK_AUTHENTICATION_REQUIRED = 511

    def __str__(self) -> str:
        return str(self.value)

    @classmethod
    def from_code(cls, code: int) -> typing.Union[StatusCode, CustomStatusCode]:
        """Map any numeric code onto a named member, or the custom escape."""
        try:
            return cls(code)
        except ValueError:
            return CustomStatusCode(code)


class CustomStatusCode(_StatusClass, int):
    """A status code outside the named set, e.g. ``CustomStatusCode(999)``."""

    def __repr__(self) -> str:
        return f"CustomStatusCode({int(self)})"

    def __str__(self) -> str:
        return str(int(self))


AnyStatusCode = typing.Union[StatusCode, CustomStatusCode]
