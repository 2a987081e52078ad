"""Tests for response classification."""

import json

import pytest

from hyperfabric_client.domain import OutcomeKind, classify_response, is_idempotent_not_found
from hyperfabric_client.types import (
    ERR_CODE_SERVICE_UNAVAILABLE,
    ERR_CODE_TOO_MANY_REQUESTS,
    NO_ERROR_CODE,
)


def _envelope(err_code: str, message: str = "") -> bytes:
    return json.dumps({"errCode": err_code, "message": message}).encode("utf-8")


class TestSuccessClassification:
    """2xx responses."""

    @pytest.mark.parametrize("method", ["GET", "POST", "PUT", "PATCH", "DELETE"])
    def test_204_is_empty_success_for_every_method(self, method: str) -> None:
        outcome = classify_response(status_code=204, method=method, body=b"")
        assert outcome.kind is OutcomeKind.SUCCESS
        assert outcome.document is None

    def test_200_body_is_parsed(self) -> None:
        outcome = classify_response(status_code=200, method="GET", body=b'{"fabrics": []}')
        assert outcome.is_success
        assert outcome.document == {"fabrics": []}

    def test_201_body_is_parsed(self) -> None:
        outcome = classify_response(status_code=201, method="POST", body=b'{"id": "f1"}')
        assert outcome.document == {"id": "f1"}

    @pytest.mark.parametrize("body", [b"", b"<html></html>", b"{truncated"])
    def test_unparseable_2xx_is_malformed(self, body: bytes) -> None:
        outcome = classify_response(status_code=200, method="GET", body=body)
        assert outcome.kind is OutcomeKind.MALFORMED
        assert outcome.raw_body == body.decode("utf-8")


class TestFailureClassification:
    """Non-2xx responses."""

    @pytest.mark.parametrize(
        ("status_code", "err_code"),
        [(503, ERR_CODE_SERVICE_UNAVAILABLE), (429, ERR_CODE_TOO_MANY_REQUESTS)],
    )
    def test_overload_codes_are_retryable(self, status_code: int, err_code: str) -> None:
        outcome = classify_response(
            status_code=status_code, method="GET", body=_envelope(err_code)
        )
        assert outcome.kind is OutcomeKind.RETRYABLE
        assert outcome.service_error is not None
        assert outcome.service_error.err_code == err_code

    def test_retryability_follows_error_code_not_status(self) -> None:
        """A 503 with an ordinary error code is terminal."""
        outcome = classify_response(
            status_code=503, method="GET", body=_envelope("ERR_CODE_INTERNAL")
        )
        assert outcome.kind is OutcomeKind.TERMINAL

    def test_other_codes_are_terminal(self) -> None:
        outcome = classify_response(
            status_code=400, method="POST", body=_envelope("ERR_CODE_INVALID", "bad")
        )
        assert outcome.kind is OutcomeKind.TERMINAL
        assert outcome.service_error is not None
        assert outcome.service_error.message == "bad"

    def test_missing_code_uses_sentinel(self) -> None:
        outcome = classify_response(status_code=500, method="GET", body=b'{"message": "boom"}')
        assert outcome.kind is OutcomeKind.TERMINAL
        assert outcome.service_error is not None
        assert outcome.service_error.err_code == NO_ERROR_CODE

    def test_non_json_error_body_is_malformed(self) -> None:
        outcome = classify_response(status_code=502, method="GET", body=b"Bad Gateway")
        assert outcome.kind is OutcomeKind.MALFORMED
        assert outcome.status_code == 502
        assert outcome.raw_body == "Bad Gateway"


class TestIdempotentNotFound:
    """404 handling for GET and DELETE."""

    @pytest.mark.parametrize("method", ["GET", "DELETE", "get", "delete"])
    def test_get_and_delete_404_collapse(self, method: str) -> None:
        assert is_idempotent_not_found(status_code=404, method=method) is True

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH"])
    def test_mutating_404_does_not_collapse(self, method: str) -> None:
        assert is_idempotent_not_found(status_code=404, method=method) is False

    @pytest.mark.parametrize("status_code", [None, 400, 410, 500])
    def test_other_statuses_do_not_collapse(self, status_code: int | None) -> None:
        assert is_idempotent_not_found(status_code=status_code, method="GET") is False
