"""Centralised, injectable configuration for the Hyperfabric client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Self

from dotenv import load_dotenv

from .config_file import ClientConfigFile
from .exceptions import EnvVarError, InvalidBaseUrlError
from .infrastructure.resilience import (
    DEFAULT_BACKOFF_DELAY_FACTOR,
    DEFAULT_BACKOFF_MAX_DELAY_SECONDS,
    DEFAULT_BACKOFF_MIN_DELAY_SECONDS,
    MAX_RETRIES_LIMIT,
)

DEFAULT_URL = "https://hyperfabric.cisco.com"
# The service's reverse proxy times out after 90 seconds.
DEFAULT_TIMEOUT_SECONDS = 100.0
DEFAULT_ENV_RETRIES = 2


@dataclass(frozen=True)
class ClientConfig:
    """Immutable configuration for one client handle.

    Load from environment with `ClientConfig.from_env()` or construct directly for testing.
    Retries are disabled unless ``max_retries`` is set.
    """

    base_url: str = DEFAULT_URL
    token: str = field(default="", repr=False)
    private_key: str = field(default="", repr=False)
    admin_cert: str = ""

    # Transport
    insecure: bool = False
    proxy_url: str = ""
    proxy_creds: str = field(default="", repr=False)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    preserve_base_url_ref: bool = False

    # Retries
    max_retries: int = 0
    backoff_min_delay_seconds: float = DEFAULT_BACKOFF_MIN_DELAY_SECONDS
    backoff_max_delay_seconds: float = DEFAULT_BACKOFF_MAX_DELAY_SECONDS
    backoff_delay_factor: float = DEFAULT_BACKOFF_DELAY_FACTOR

    # Logging
    skip_logging_payload: bool = False

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from environment variables.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.

        Returns:
            ClientConfig instance populated from environment.

        Raises:
            InvalidBaseUrlError: If HYPERFABRIC_URL does not start with https://.
            EnvVarError: If a numeric or boolean variable cannot be parsed.
        """
        load_dotenv(dotenv_path)

        base_url = os.getenv("HYPERFABRIC_URL", "").strip() or DEFAULT_URL
        if not base_url.startswith("https://"):
            raise InvalidBaseUrlError(base_url, "must start with 'https://'")

        return cls(
            base_url=base_url,
            token=os.getenv("HYPERFABRIC_TOKEN", "").strip(),
            private_key=os.getenv("HYPERFABRIC_PRIVATE_KEY", "").strip(),
            admin_cert=os.getenv("HYPERFABRIC_ADMIN_CERT", "").strip(),
            insecure=_parse_bool(
                os.getenv("HYPERFABRIC_INSECURE", ""), env_name="HYPERFABRIC_INSECURE"
            ),
            proxy_url=os.getenv("HYPERFABRIC_PROXY_URL", "").strip(),
            proxy_creds=os.getenv("HYPERFABRIC_PROXY_CREDS", "").strip(),
            timeout_seconds=_parse_positive_float(
                os.getenv("HYPERFABRIC_TIMEOUT_SECONDS", ""),
                env_name="HYPERFABRIC_TIMEOUT_SECONDS",
                default=DEFAULT_TIMEOUT_SECONDS,
            ),
            preserve_base_url_ref=_parse_bool(
                os.getenv("HYPERFABRIC_PRESERVE_BASE_URL_REF", ""),
                env_name="HYPERFABRIC_PRESERVE_BASE_URL_REF",
            ),
            max_retries=_parse_retries(os.getenv("HYPERFABRIC_RETRIES", "")),
            backoff_min_delay_seconds=_parse_non_negative_float(
                os.getenv("HYPERFABRIC_BACKOFF_MIN_DELAY", ""),
                env_name="HYPERFABRIC_BACKOFF_MIN_DELAY",
                default=DEFAULT_BACKOFF_MIN_DELAY_SECONDS,
            ),
            backoff_max_delay_seconds=_parse_non_negative_float(
                os.getenv("HYPERFABRIC_BACKOFF_MAX_DELAY", ""),
                env_name="HYPERFABRIC_BACKOFF_MAX_DELAY",
                default=DEFAULT_BACKOFF_MAX_DELAY_SECONDS,
            ),
            backoff_delay_factor=_parse_positive_float(
                os.getenv("HYPERFABRIC_BACKOFF_DELAY_FACTOR", ""),
                env_name="HYPERFABRIC_BACKOFF_DELAY_FACTOR",
                default=DEFAULT_BACKOFF_DELAY_FACTOR,
            ),
            skip_logging_payload=_parse_bool(
                os.getenv("HYPERFABRIC_SKIP_LOGGING_PAYLOAD", ""),
                env_name="HYPERFABRIC_SKIP_LOGGING_PAYLOAD",
            ),
        )

    def with_overrides(
        self,
        *,
        base_url: str | None = None,
        token: str | None = None,
        insecure: bool | None = None,
        max_retries: int | None = None,
        timeout_seconds: float | None = None,
    ) -> Self:
        """Return a new config with specified overrides (for CLI options)."""
        return replace(
            self,
            base_url=self.base_url if base_url is None else base_url.strip(),
            token=self.token if token is None else token.strip(),
            insecure=self.insecure if insecure is None else insecure,
            max_retries=self.max_retries if max_retries is None else max_retries,
            timeout_seconds=self.timeout_seconds if timeout_seconds is None else timeout_seconds,
        )

    def with_file_overrides(self, file_config: ClientConfigFile) -> Self:
        """Return a new config with config-file values overriding env/default values."""
        return replace(
            self,
            base_url=self.base_url if file_config.base_url is None else file_config.base_url,
            insecure=self.insecure if file_config.insecure is None else file_config.insecure,
            proxy_url=self.proxy_url if file_config.proxy_url is None else file_config.proxy_url,
            timeout_seconds=self.timeout_seconds
            if file_config.timeout_seconds is None
            else file_config.timeout_seconds,
            preserve_base_url_ref=self.preserve_base_url_ref
            if file_config.preserve_base_url_ref is None
            else file_config.preserve_base_url_ref,
            max_retries=self.max_retries
            if file_config.max_retries is None
            else file_config.max_retries,
            backoff_min_delay_seconds=self.backoff_min_delay_seconds
            if file_config.backoff_min_delay_seconds is None
            else file_config.backoff_min_delay_seconds,
            backoff_max_delay_seconds=self.backoff_max_delay_seconds
            if file_config.backoff_max_delay_seconds is None
            else file_config.backoff_max_delay_seconds,
            backoff_delay_factor=self.backoff_delay_factor
            if file_config.backoff_delay_factor is None
            else file_config.backoff_delay_factor,
            skip_logging_payload=self.skip_logging_payload
            if file_config.skip_logging_payload is None
            else file_config.skip_logging_payload,
        )


def _parse_bool(value: str, *, env_name: str, default: bool = False) -> bool:
    """Parse an optional boolean from an environment variable."""
    text = value.strip().lower()
    if not text:
        return default
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise EnvVarError(env_name, "a boolean value (true/false, 1/0, yes/no, on/off)")


def _parse_retries(value: str) -> int:
    text = value.strip()
    if not text:
        return DEFAULT_ENV_RETRIES
    expectation = f"an integer between 0 and {MAX_RETRIES_LIMIT}"
    try:
        parsed = int(text)
    except ValueError as exc:
        raise EnvVarError("HYPERFABRIC_RETRIES", expectation) from exc
    if parsed < 0 or parsed > MAX_RETRIES_LIMIT:
        raise EnvVarError("HYPERFABRIC_RETRIES", expectation)
    return parsed


def _parse_float(value: str, *, env_name: str, default: float, expectation: str) -> float:
    text = value.strip()
    if not text:
        return default
    try:
        return float(text)
    except ValueError as exc:
        raise EnvVarError(env_name, expectation) from exc


def _parse_positive_float(value: str, *, env_name: str, default: float) -> float:
    parsed = _parse_float(
        value, env_name=env_name, default=default, expectation="a positive number"
    )
    if parsed <= 0:
        raise EnvVarError(env_name, "a positive number")
    return parsed


def _parse_non_negative_float(value: str, *, env_name: str, default: float) -> float:
    parsed = _parse_float(
        value, env_name=env_name, default=default, expectation="a non-negative number"
    )
    if parsed < 0:
        raise EnvVarError(env_name, "a non-negative number")
    return parsed
