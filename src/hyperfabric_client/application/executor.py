"""Request execution: authentication, the send/retry state machine and classification.

One logical call moves through the states

    BUILDING -> AUTHENTICATING -> SENDING -> CLASSIFYING -> DONE
                                     ^            |
                                     +- RETRYING <+

Each transition is one step over an immutable CallProgress record, so the attempt
counter is data rather than loop state and every transition can be exercised alone.

Usage example:
    from hyperfabric_client.application.executor import RequestExecutor, RestCall

    executor = RequestExecutor(
        base_url="https://hyperfabric.cisco.com",
        transport=transport,
        auth=AuthInjector(token="secret"),
        retry_policy=BackoffPolicy(max_retries=2),
    )
    result = executor.execute(RestCall(method="GET", path="/api/v1/fabrics"))
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from urllib.parse import urljoin

from ..domain.classification import OutcomeKind, classify_response, is_idempotent_not_found
from ..exceptions import (
    CallCancelledError,
    ConfigurationError,
    HyperfabricError,
    MalformedResponseError,
    RetryableServiceError,
    TerminalServiceError,
    TlsError,
    TransportError,
)
from ..infrastructure.resilience import CancellationToken
from ..observability import get_logger
from ..protocols import RetryPolicy, Transport
from ..types import BODYLESS_METHODS, CallResult, RestRequest, TransportResponse
from .auth import AuthInjector

logger = get_logger("hyperfabric_client.executor")

DEFAULT_REQUEST_TIMEOUT_SECONDS = 100.0


class CallState(Enum):
    BUILDING = "building"
    AUTHENTICATING = "authenticating"
    SENDING = "sending"
    CLASSIFYING = "classifying"
    RETRYING = "retrying"
    DONE = "done"


@dataclass(frozen=True)
class RestCall:
    """A logical operation: method, path and an optional JSON or raw payload."""

    method: str
    path: str
    payload: object | None = None
    raw_payload: bytes | None = None
    authenticated: bool = True


@dataclass(frozen=True)
class CallProgress:
    """Immutable snapshot of one call's position in the state machine."""

    call: RestCall
    state: CallState = CallState.BUILDING
    attempt: int = 0
    request: RestRequest | None = None
    response: TransportResponse | None = None
    error: HyperfabricError | None = None
    result: CallResult | None = None

    @property
    def done(self) -> bool:
        return self.state is CallState.DONE


def build_url(base_url: str, path: str, *, preserve_base_url_ref: bool = False) -> str:
    """Join a request path onto the base URL.

    By default the path is resolved as a URL reference, so an absolute path replaces any
    path on the base URL. With ``preserve_base_url_ref`` the path is appended verbatim.
    """
    if preserve_base_url_ref:
        return f"{base_url}{path}"
    return urljoin(base_url, path)


def encode_payload(call: RestCall) -> bytes | None:
    """Buffer the request body once so every attempt sends identical bytes."""
    if call.method.upper() in BODYLESS_METHODS:
        return None
    if call.payload is not None:
        return json.dumps(call.payload, separators=(",", ":")).encode("utf-8")
    return call.raw_payload if call.raw_payload is not None else b""


_Transition = Callable[[CallProgress, CancellationToken | None], CallProgress]


class RequestExecutor:
    """Runs logical calls through the authentication, send and retry states."""

    def __init__(
        self,
        *,
        base_url: str,
        transport: Transport,
        auth: AuthInjector,
        retry_policy: RetryPolicy,
        timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        skip_logging_payload: bool = False,
        preserve_base_url_ref: bool = False,
    ) -> None:
        self.base_url = base_url
        self.transport = transport
        self.auth = auth
        self.retry_policy = retry_policy
        self.timeout_seconds = timeout_seconds
        self.skip_logging_payload = skip_logging_payload
        self.preserve_base_url_ref = preserve_base_url_ref

    def execute(self, call: RestCall, *, cancel: CancellationToken | None = None) -> CallResult:
        """Run ``call`` to completion and return its result. Never raises HyperfabricError."""
        progress = CallProgress(call=call)
        while not progress.done:
            progress = self.step(progress, cancel=cancel)
        assert progress.result is not None
        return progress.result

    def step(
        self, progress: CallProgress, *, cancel: CancellationToken | None = None
    ) -> CallProgress:
        """Advance ``progress`` by exactly one transition."""
        handlers: dict[CallState, _Transition] = {
            CallState.BUILDING: self._build,
            CallState.AUTHENTICATING: self._authenticate,
            CallState.SENDING: self._send,
            CallState.CLASSIFYING: self._classify,
            CallState.RETRYING: self._retry,
        }
        if progress.done:
            return progress
        return handlers[progress.state](progress, cancel)

    def build_request(self, call: RestCall) -> RestRequest:
        method = call.method.upper()
        url = build_url(self.base_url, call.path, preserve_base_url_ref=self.preserve_base_url_ref)
        request = RestRequest(
            method=method,
            url=url,
            path=call.path,
            body=encode_payload(call),
            headers={"Content-Type": "application/json"},
            authenticated=call.authenticated,
        )
        logger.debug("base_url: %s, path: %s, url: %s", self.base_url, call.path, url)
        if self.skip_logging_payload:
            logger.debug("HTTP request %s %s", method, call.path)
        else:
            logger.debug("HTTP request %s %s %r", method, call.path, request.body)
        return request

    def _build(self, progress: CallProgress, cancel: CancellationToken | None) -> CallProgress:
        _ = cancel
        request = self.build_request(progress.call)
        next_state = CallState.AUTHENTICATING if request.authenticated else CallState.SENDING
        return replace(progress, state=next_state, request=request)

    def _authenticate(
        self, progress: CallProgress, cancel: CancellationToken | None
    ) -> CallProgress:
        _ = cancel
        request = _require_request(progress)
        try:
            authenticated = self.auth.inject(request, request.path)
        except ConfigurationError as exc:
            logger.error("Authentication failed for %s %s: %s", request.method, request.path, exc)
            return self._finish_failure(progress, exc)
        return replace(progress, state=CallState.SENDING, request=authenticated)

    def _send(self, progress: CallProgress, cancel: CancellationToken | None) -> CallProgress:
        request = _require_request(progress)
        if cancel is not None and cancel.cancelled:
            reason = "past its deadline" if cancel.expired else "cancelled by caller"
            return self._finish_failure(
                progress, CallCancelledError(request.method, request.path, reason)
            )
        timeout = self.timeout_seconds
        if cancel is not None:
            timeout = cancel.cap_timeout(timeout)
        if timeout <= 0:
            return self._finish_failure(
                progress, CallCancelledError(request.method, request.path, "past its deadline")
            )

        logger.debug("HTTP request method and URL: %s %s", request.method, request.url)
        try:
            response = self.transport.send(
                request.method,
                request.url,
                headers=request.headers,
                body=request.body,
                timeout_seconds=timeout,
            )
        except TlsError as exc:
            logger.error("HTTP connection failed due to TLS error: %s", exc.detail)
            return self._finish_failure(progress, exc)
        except TransportError as exc:
            return replace(progress, state=CallState.RETRYING, response=None, error=exc)

        logger.debug("HTTP response: %d %s", response.status_code, response.reason)
        if not self.skip_logging_payload:
            logger.debug(
                "HTTP response body %s %s %s", request.method, request.url, response.text
            )
        return replace(progress, state=CallState.CLASSIFYING, response=response, error=None)

    def _classify(self, progress: CallProgress, cancel: CancellationToken | None) -> CallProgress:
        _ = cancel
        request = _require_request(progress)
        response = progress.response
        assert response is not None
        outcome = classify_response(
            status_code=response.status_code, method=request.method, body=response.body
        )
        logger.debug("Classified %s %s as %s", request.method, request.path, outcome.kind.value)

        if outcome.kind is OutcomeKind.SUCCESS:
            result = (
                CallResult.empty()
                if outcome.document is None
                else CallResult.success(outcome.document)
            )
            return replace(progress, state=CallState.DONE, result=result)

        if outcome.kind is OutcomeKind.MALFORMED:
            logger.error("Failed to parse JSON response from %s", request.url)
            return self._finish_failure(
                progress,
                MalformedResponseError(
                    method=request.method,
                    url=request.url,
                    status_code=response.status_code,
                    reason=response.reason,
                    body=outcome.raw_body,
                ),
            )

        assert outcome.service_error is not None
        if outcome.kind is OutcomeKind.RETRYABLE:
            error = RetryableServiceError.for_status(
                method=request.method,
                path=request.path,
                status_code=response.status_code,
                service_error=outcome.service_error,
            )
            return replace(progress, state=CallState.RETRYING, error=error)

        terminal = TerminalServiceError.for_status(
            method=request.method,
            path=request.path,
            status_code=response.status_code,
            service_error=outcome.service_error,
        )
        return self._finish_failure(progress, terminal)

    def _retry(self, progress: CallProgress, cancel: CancellationToken | None) -> CallProgress:
        request = _require_request(progress)
        error = progress.error
        assert error is not None
        should_retry, delay = self.retry_policy.next(progress.attempt)
        if not should_retry:
            logger.error(
                "%s %s failed after %d attempt(s): %s",
                request.method,
                request.path,
                progress.attempt + 1,
                error.summary,
            )
            return self._finish_failure(progress, error)

        logger.warning(
            "%s %s failed (%s), retrying in %.1fs (retry %d of %d)",
            request.method,
            request.path,
            error.summary,
            delay,
            progress.attempt + 1,
            self.retry_policy.max_retries,
        )
        if cancel is None:
            time.sleep(delay)
        elif cancel.wait(delay):
            reason = "past its deadline" if cancel.expired else "cancelled by caller"
            return self._finish_failure(
                progress, CallCancelledError(request.method, request.path, reason)
            )
        return replace(
            progress,
            state=CallState.SENDING,
            attempt=progress.attempt + 1,
            response=None,
        )

    def _finish_failure(self, progress: CallProgress, error: HyperfabricError) -> CallProgress:
        """Close the call with ``error``, collapsing GET/DELETE 404s into an empty result."""
        if is_idempotent_not_found(status_code=error.status_code, method=progress.call.method):
            logger.debug(
                "%s %s returned 404, treating as empty", progress.call.method, progress.call.path
            )
            return replace(progress, state=CallState.DONE, error=None, result=CallResult.empty())
        return replace(
            progress, state=CallState.DONE, error=error, result=CallResult.failure(error)
        )


def _require_request(progress: CallProgress) -> RestRequest:
    request = progress.request
    assert request is not None
    return request
