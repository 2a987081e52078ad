"""Pydantic-based validation helpers for inbound response payloads."""

from __future__ import annotations

from typing import TypedDict

from pydantic import JsonValue, TypeAdapter, ValidationError

from ...types import NO_ERROR_CODE, ServiceError


class IncomingDataError(ValueError):
    """Raised when inbound data fails validation."""


class ServiceErrorEnvelopeInput(TypedDict, total=False):
    errCode: object
    message: object
    field: object
    value: object
    causes: list[object] | None
    critical: bool | None
    notes: object
    status: float | None
    trackingId: object


def validate_as[SchemaT](schema: type[SchemaT], payload: object) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_python(payload)
    except ValidationError as exc:
        message = f"Invalid payload for {schema}."
        raise IncomingDataError(message) from exc


def validate_json_as[SchemaT](schema: type[SchemaT], payload: str | bytes | bytearray) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_json(payload)
    except ValidationError as exc:
        message = f"Invalid JSON payload for {schema}."
        raise IncomingDataError(message) from exc


def parse_json_document(body: bytes) -> JsonValue:
    """Parse a response body into plain Python JSON values."""
    return validate_json_as(JsonValue, body)


def _as_str(value: object) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_causes(value: list[object] | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(_as_str(cause) for cause in value)


def parse_service_error(body: bytes) -> ServiceError:
    """Decode the service's JSON error envelope.

    Raises:
        IncomingDataError: If the body is not a JSON object.
    """
    payload = validate_json_as(dict[str, JsonValue], body)
    envelope = validate_as(ServiceErrorEnvelopeInput, payload)
    return ServiceError(
        err_code=_as_str(envelope.get("errCode")) or NO_ERROR_CODE,
        message=_as_str(envelope.get("message")),
        field=_as_str(envelope.get("field")),
        value=_as_str(envelope.get("value")),
        causes=_as_causes(envelope.get("causes")),
        critical=bool(envelope.get("critical") or False),
        notes=_as_str(envelope.get("notes")),
        status=float(envelope.get("status") or 0.0),
        tracking_id=_as_str(envelope.get("trackingId")),
    )
