"""Request signer fakes for tests."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import override

from hyperfabric_client.protocols import RequestSigner


def _empty_contents() -> list[bytes]:
    return []


@dataclass
class FakeSigner(RequestSigner):
    """Deterministic signer that records every payload it signs."""

    key_id: str = "test-key"
    signed: list[bytes] = field(default_factory=_empty_contents)

    @override
    def sign(self, content: bytes) -> str:
        self.signed.append(content)
        return f"signed:{content.decode('utf-8', errors='replace')}"

    @override
    def credential_headers(self, signature: str, *, cert_name: str) -> Mapping[str, str]:
        headers = {"X-Signature": signature, "X-Key-Id": self.key_id}
        if cert_name:
            headers["X-Cert-Name"] = cert_name
        return headers
