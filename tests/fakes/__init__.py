"""Exports for test fakes."""

from .signer import FakeSigner
from .transport import FakeTransport, RecordedSend, error_response, json_response

__all__ = [
    "FakeSigner",
    "FakeTransport",
    "RecordedSend",
    "error_response",
    "json_response",
]
