"""Protocol definitions for dependency injection.

These protocols define the collaborator interfaces that the request executor depends on,
enabling isolated unit testing with fake implementations.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from .types import RestRequest, TransportResponse


@runtime_checkable
class Transport(Protocol):
    """Sends a fully-formed request and returns the complete response."""

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> TransportResponse:
        """Send one HTTP request.

        Raises:
            TlsError: When the connection fails during TLS negotiation.
            TransportError: For any other failure before a response is received.
        """
        ...

    def close(self) -> None:
        """Release pooled connections."""
        ...


@runtime_checkable
class RequestSigner(Protocol):
    """Signs canonical request content for private-key authentication."""

    def sign(self, content: bytes) -> str:
        """Return the signature for the canonical content."""
        ...

    def credential_headers(self, signature: str, *, cert_name: str) -> Mapping[str, str]:
        """Return the headers that carry the signature and credential identity.

        ``cert_name`` names the admin certificate registered for the key; it may be empty.
        """
        ...


@runtime_checkable
class CredentialAttachment(Protocol):
    """Stamps credentials onto an outgoing request."""

    def attach(self, request: RestRequest, signing_path: str) -> RestRequest:
        """Return an authenticated copy of the request."""
        ...


@runtime_checkable
class RetryPolicy(Protocol):
    """Decides whether an attempt may be retried and how long to wait first."""

    max_retries: int

    def next(self, attempt: int) -> tuple[bool, float]:
        """Return (should_retry, delay_seconds) for the zero-based attempt."""
        ...


@runtime_checkable
class PendingChanges(Protocol):
    """Thread-safe set of fabric ids with uncommitted changes."""

    def mark(self, fabric_id: str) -> None:
        """Record that a fabric has pending changes."""
        ...

    def snapshot(self) -> frozenset[str]:
        """Return the current pending ids."""
        ...

    def discard(self, fabric_id: str) -> None:
        """Forget a fabric once its changes are committed."""
        ...
