"""Typed data contracts shared by the request-execution components."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from .exceptions import HyperfabricError

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

NO_ERROR_CODE = "NO_ERROR_CODE"
ERR_CODE_SERVICE_UNAVAILABLE = "ERR_CODE_SERVICE_UNAVAILABLE"
ERR_CODE_TOO_MANY_REQUESTS = "ERR_CODE_TOO_MANY_REQUESTS"

BODYLESS_METHODS: frozenset[str] = frozenset({"GET", "DELETE"})


def _empty_headers() -> dict[str, str]:
    return {}


@dataclass(frozen=True)
class RestRequest:
    """One fully-built HTTP request. The body is buffered so it can be replayed."""

    method: str
    url: str
    path: str
    body: bytes | None = None
    headers: dict[str, str] = field(default_factory=_empty_headers)
    authenticated: bool = True

    def with_headers(self, extra: Mapping[str, str]) -> RestRequest:
        return replace(self, headers={**self.headers, **extra})


@dataclass(frozen=True)
class TransportResponse:
    """Status, headers and fully-read body returned by a transport."""

    status_code: int
    body: bytes = b""
    reason: str = ""
    headers: Mapping[str, str] = field(default_factory=_empty_headers)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ServiceError:
    """Structured decoding of the service's JSON error envelope."""

    err_code: str = NO_ERROR_CODE
    message: str = ""
    field: str = ""
    value: str = ""
    causes: tuple[str, ...] = ()
    critical: bool = False
    notes: str = ""
    status: float = 0.0
    tracking_id: str = ""

    def __post_init__(self) -> None:
        if not self.err_code:
            object.__setattr__(self, "err_code", NO_ERROR_CODE)


@dataclass(frozen=True)
class Diagnostic:
    """Two-part failure description surfaced to callers."""

    summary: str
    detail: str


@dataclass(frozen=True)
class CallResult:
    """Outcome of one logical call: a document, an empty success, or a failure."""

    document: object | None = None
    error: HyperfabricError | None = None

    @classmethod
    def success(cls, document: object) -> CallResult:
        return cls(document=document)

    @classmethod
    def empty(cls) -> CallResult:
        return cls()

    @classmethod
    def failure(cls, error: HyperfabricError) -> CallResult:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def diagnostic(self) -> Diagnostic | None:
        if self.error is None:
            return None
        return Diagnostic(summary=self.error.summary, detail=self.error.detail)

    def as_tuple(self) -> tuple[object | None, Diagnostic | None]:
        return self.document, self.diagnostic
