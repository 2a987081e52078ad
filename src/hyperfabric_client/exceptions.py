"""Custom exceptions for the Hyperfabric client.

Every failure carries a short ``summary`` and a longer ``detail`` so that it can be
surfaced to callers as a two-part diagnostic without knowledge of HTTP mechanics.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Self

if TYPE_CHECKING:
    from .types import ServiceError

_VERIFY_SERVICE_HINT = "Verify that you are connecting to the correct Hyperfabric service."
_REPORT_HINT = (
    "If this failure is unexpected, please report the issue to the client maintainers "
    "and include the tracking ID shown above."
)


class HyperfabricError(Exception):
    """Base exception for all client errors."""

    status_code: int | None = None

    def __init__(self, summary: str, detail: str = "") -> None:
        self.summary = summary
        self.detail = detail
        super().__init__(f"{summary}\n{detail}" if detail else summary)


class ConfigurationError(HyperfabricError):
    """Raised when the client is misconfigured. Never retried."""


class InvalidBaseUrlError(ConfigurationError):
    """Raised at client construction when the base URL cannot be used."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        super().__init__("Invalid Hyperfabric URL", f"URL '{url}' {reason}.")


class MissingCredentialsError(ConfigurationError):
    """Raised when neither a bearer token nor a private key is configured."""

    def __init__(self) -> None:
        super().__init__(
            "Missing credentials",
            "one of token or private_key is required. "
            "Set HYPERFABRIC_TOKEN or HYPERFABRIC_PRIVATE_KEY, or pass token/private_key "
            "when building the client.",
        )


class SigningNotImplementedError(ConfigurationError):
    """Raised when a private key is configured but no request signer is available."""

    def __init__(self) -> None:
        super().__init__(
            "Signed requests are not available",
            "A private key is configured but no request signer was provided. "
            "Use a bearer token, or supply a RequestSigner implementation.",
        )


class EnvVarError(ConfigurationError):
    """Raised when an environment variable holds an unusable value."""

    def __init__(self, env_name: str, expectation: str) -> None:
        self.env_name = env_name
        super().__init__(f"Invalid value for {env_name}", f"{env_name} must be {expectation}.")


class InvalidRetrySettingsError(ConfigurationError):
    """Raised when retry bounds cannot produce a valid backoff schedule."""

    def __init__(self, reason: str) -> None:
        super().__init__("Invalid retry settings", reason)


class ConfigFileNotFoundError(ConfigurationError):
    """Raised when an explicit config file path does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__("Config file not found", f"No config file at: {path}")


class ConfigFileParseError(ConfigurationError):
    """Raised when a config file is not valid TOML."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__("Config file could not be parsed", f"{path}: {reason}")


class ConfigFileValidationError(ConfigurationError):
    """Raised when a config file has unknown keys or invalid values."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__("Config file is invalid", f"{path}: {reason}")


class TlsError(HyperfabricError):
    """Raised when the connection fails during TLS negotiation. Never retried."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        super().__init__(
            f"TLS error while connecting to {url}",
            f"failed to connect due to a TLS error. {_VERIFY_SERVICE_HINT}\n"
            f"Error message: {reason}",
        )


class TransportError(HyperfabricError):
    """Raised when the transport fails before a response is received."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(
            f"Connection to {url} failed",
            f"failed to connect to the Hyperfabric service. {_VERIFY_SERVICE_HINT}\n"
            f"Error message: {reason}",
        )


class CallCancelledError(HyperfabricError):
    """Raised when the caller cancels a call or its deadline elapses."""

    def __init__(self, method: str, path: str, reason: str = "cancelled by caller") -> None:
        super().__init__(f"{method} {path} was not completed", f"The call was {reason}.")


class MalformedResponseError(HyperfabricError):
    """Raised when the service returns a body that is not the JSON it promised."""

    def __init__(self, *, method: str, url: str, status_code: int, reason: str, body: str) -> None:
        self.status_code = status_code
        self.raw_body = body
        super().__init__(
            f"Failed to parse response to {method} {url} (HTTP {status_code})",
            f"Failed to parse JSON response from: {url}. {_VERIFY_SERVICE_HINT}\n"
            f"HTTP response status: {status_code} {reason}\n"
            f"Message: {body}",
        )


class ServiceResponseError(HyperfabricError):
    """Base class for failures reported by the service in its JSON error envelope."""

    def __init__(
        self,
        *,
        method: str,
        path: str,
        status_code: int,
        service_error: ServiceError,
    ) -> None:
        self.method = method
        self.path = path
        self.status_code = status_code
        self.service_error = service_error
        super().__init__(
            f"Failed to {method} {path}: HTTP {status_code} ({service_error.err_code})",
            _format_service_detail(service_error),
        )

    @classmethod
    def for_status(
        cls, *, method: str, path: str, status_code: int, service_error: ServiceError
    ) -> Self:
        return cls(method=method, path=path, status_code=status_code, service_error=service_error)


class RetryableServiceError(ServiceResponseError):
    """Service overload or rate-limit signal. Retried while the budget allows."""


class TerminalServiceError(ServiceResponseError):
    """Any other non-2xx service response."""


def _format_causes(causes: Sequence[str]) -> str:
    return "\n".join(f"  - {cause}" for cause in causes)


def _format_service_detail(error: ServiceError) -> str:
    lines = [f"Error code: {error.err_code}"]
    if error.message:
        lines.append(f"Message: {error.message}")
    if error.field:
        value = f" (value: {error.value})" if error.value else ""
        lines.append(f"Field: {error.field}{value}")
    if error.causes:
        lines.append("Causes:")
        lines.append(_format_causes(error.causes))
    if error.notes:
        lines.append(f"Notes: {error.notes}")
    if error.tracking_id:
        lines.append(f"Tracking ID: {error.tracking_id}")
    lines.append(_REPORT_HINT)
    return "\n".join(lines)
