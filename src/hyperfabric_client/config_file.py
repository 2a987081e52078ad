"""Typed parsing and validation for client config files."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigFileNotFoundError, ConfigFileParseError, ConfigFileValidationError
from .infrastructure.resilience import MAX_RETRIES_LIMIT

_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class ClientConfigFile:
    """Validated client config values loaded from a TOML file.

    Credentials are deliberately absent: they come from the environment only.
    """

    base_url: str | None = None
    insecure: bool | None = None
    proxy_url: str | None = None
    timeout_seconds: float | None = None
    preserve_base_url_ref: bool | None = None
    max_retries: int | None = None
    backoff_min_delay_seconds: float | None = None
    backoff_max_delay_seconds: float | None = None
    backoff_delay_factor: float | None = None
    skip_logging_payload: bool | None = None


class _ClientSectionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str | None = None
    insecure: bool | None = None
    proxy_url: str | None = None
    timeout_seconds: float | None = Field(default=None, gt=0)
    preserve_base_url_ref: bool | None = None
    max_retries: int | None = Field(default=None, ge=0, le=MAX_RETRIES_LIMIT)
    backoff_min_delay_seconds: float | None = Field(default=None, ge=0)
    backoff_max_delay_seconds: float | None = Field(default=None, ge=0)
    backoff_delay_factor: float | None = Field(default=None, gt=0)
    skip_logging_payload: bool | None = None

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        if not text.startswith("https://"):
            raise ValueError("must start with 'https://'")
        return text

    @field_validator("proxy_url")
    @classmethod
    def _validate_non_empty_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        if not text:
            raise ValueError("must not be empty")
        return text


class _ConfigFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: int
    client: _ClientSectionModel

    @field_validator("schema_version")
    @classmethod
    def _validate_schema_version(cls, value: int) -> int:
        if value != _SCHEMA_VERSION:
            raise ValueError(f"unsupported schema version (expected {_SCHEMA_VERSION})")
        return value


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ("<root>",)))
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}"


def load_client_config_file(path: Path) -> ClientConfigFile:
    """Load and validate a client TOML config file."""
    if not path.exists():
        raise ConfigFileNotFoundError(str(path))

    raw_payload = path.read_text(encoding="utf-8")
    try:
        payload: object = tomllib.loads(raw_payload)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigFileParseError(str(path), str(exc)) from exc

    try:
        model = _ConfigFileModel.model_validate(payload)
    except ValidationError as exc:
        raise ConfigFileValidationError(str(path), _format_validation_error(exc)) from exc

    section = model.client
    return ClientConfigFile(
        base_url=section.base_url,
        insecure=section.insecure,
        proxy_url=section.proxy_url,
        timeout_seconds=section.timeout_seconds,
        preserve_base_url_ref=section.preserve_base_url_ref,
        max_retries=section.max_retries,
        backoff_min_delay_seconds=section.backoff_min_delay_seconds,
        backoff_max_delay_seconds=section.backoff_max_delay_seconds,
        backoff_delay_factor=section.backoff_delay_factor,
        skip_logging_payload=section.skip_logging_payload,
    )
