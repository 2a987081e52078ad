"""Response classification for the request executor.

Usage example:
    from hyperfabric_client.domain.classification import OutcomeKind, classify_response

    outcome = classify_response(status_code=503, method="GET", body=b'{"errCode": "..."}')
    if outcome.kind is OutcomeKind.RETRYABLE:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..infrastructure.io.validation import (
    IncomingDataError,
    parse_json_document,
    parse_service_error,
)
from ..types import (
    ERR_CODE_SERVICE_UNAVAILABLE,
    ERR_CODE_TOO_MANY_REQUESTS,
    ServiceError,
)

RETRYABLE_ERROR_CODES: frozenset[str] = frozenset(
    {ERR_CODE_SERVICE_UNAVAILABLE, ERR_CODE_TOO_MANY_REQUESTS}
)
NOT_FOUND_AS_EMPTY_METHODS: frozenset[str] = frozenset({"GET", "DELETE"})


class OutcomeKind(Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class Outcome:
    """Classification of one HTTP response."""

    kind: OutcomeKind
    status_code: int
    document: object | None = None
    service_error: ServiceError | None = None
    raw_body: str = ""

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


def is_success_status(status_code: int) -> bool:
    return 200 <= status_code < 300


def classify_response(*, status_code: int, method: str, body: bytes) -> Outcome:
    """Classify a response as success, retryable, terminal or malformed.

    204 is an empty success for every method. Other 2xx bodies must be JSON documents.
    Any other status must carry the service error envelope; only the overload and
    rate-limit error codes are retryable.
    """
    _ = method
    if status_code == 204:
        return Outcome(kind=OutcomeKind.SUCCESS, status_code=status_code)

    if is_success_status(status_code):
        try:
            document = parse_json_document(body)
        except IncomingDataError:
            return _malformed(status_code, body)
        return Outcome(kind=OutcomeKind.SUCCESS, status_code=status_code, document=document)

    try:
        service_error = parse_service_error(body)
    except IncomingDataError:
        return _malformed(status_code, body)

    kind = (
        OutcomeKind.RETRYABLE
        if service_error.err_code in RETRYABLE_ERROR_CODES
        else OutcomeKind.TERMINAL
    )
    return Outcome(kind=kind, status_code=status_code, service_error=service_error)


def is_idempotent_not_found(*, status_code: int | None, method: str) -> bool:
    """Whether a failed call is the GET/DELETE "not found" case treated as an empty result."""
    return status_code == 404 and method.upper() in NOT_FOUND_AS_EMPTY_METHODS


def _malformed(status_code: int, body: bytes) -> Outcome:
    return Outcome(
        kind=OutcomeKind.MALFORMED,
        status_code=status_code,
        raw_body=body.decode("utf-8", errors="replace"),
    )
