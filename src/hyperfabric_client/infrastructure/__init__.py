"""Concrete infrastructure implementations and shared helpers."""

from .io.http import RequestsTransport, build_requests_transport, is_tls_error
from .pending import PendingChangeSet
from .resilience import BackoffDecision, BackoffPolicy, CancellationToken, next_backoff

__all__ = [
    "BackoffDecision",
    "BackoffPolicy",
    "CancellationToken",
    "PendingChangeSet",
    "RequestsTransport",
    "build_requests_transport",
    "is_tls_error",
    "next_backoff",
]
