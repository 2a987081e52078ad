"""Credential attachment for outgoing requests.

Two variants exist. A bearer token is stamped as an ``Authorization`` header. A private key
selects signed requests: the canonical content ``METHOD + PATH + BODY`` is built here and
handed to a pluggable RequestSigner, which owns the signing primitive and the header names.
Without a signer the signed variant fails with SigningNotImplementedError.

Usage example:
    from hyperfabric_client.application.auth import AuthInjector

    injector = AuthInjector(token="secret")
    authenticated = injector.inject(request, request.path)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import override

from ..exceptions import MissingCredentialsError, SigningNotImplementedError
from ..observability import get_logger
from ..protocols import CredentialAttachment, RequestSigner
from ..types import RestRequest

logger = get_logger("hyperfabric_client.auth")

_EMPTY_OBJECT = b"{}"


def canonical_signing_content(method: str, path: str, body: bytes | None) -> bytes:
    """Return the bytes that are signed for a private-key request.

    GET bodies are never included, and an empty-object body ``{}`` is left out too. The body
    is signed verbatim, so raw payloads need not be valid UTF-8.
    """
    prefix = f"{method}{path}".encode("utf-8")
    if method == "GET" or not body or body == _EMPTY_OBJECT:
        return prefix
    return prefix + body


@dataclass(frozen=True)
class BearerTokenCredential(CredentialAttachment):
    """Bearer token authentication."""

    token: str = field(repr=False)

    @override
    def attach(self, request: RestRequest, signing_path: str) -> RestRequest:
        _ = signing_path
        return request.with_headers({"Authorization": f"Bearer {self.token}"})


@dataclass(frozen=True)
class SignedRequestCredential(CredentialAttachment):
    """Private-key authentication through a pluggable signer."""

    private_key: str = field(repr=False)
    signer: RequestSigner | None = None
    cert_name: str = ""
    skip_logging_payload: bool = False

    @override
    def attach(self, request: RestRequest, signing_path: str) -> RestRequest:
        content = canonical_signing_content(request.method, signing_path, request.body)
        if not self.skip_logging_payload:
            logger.debug("Signing content %s", content.decode("utf-8", errors="replace"))
        if self.signer is None:
            raise SigningNotImplementedError()
        signature = self.signer.sign(content)
        logger.debug("Finished signature creation")
        return request.with_headers(
            self.signer.credential_headers(signature, cert_name=self.cert_name)
        )


class AuthInjector:
    """Chooses the credential mechanism for a client and applies it to requests.

    Policy, in order: bearer token, then private key, else MissingCredentialsError.
    """

    def __init__(
        self,
        *,
        token: str = "",
        private_key: str = "",
        signer: RequestSigner | None = None,
        cert_name: str = "",
        skip_logging_payload: bool = False,
    ) -> None:
        self._credential: CredentialAttachment | None
        if token:
            self._credential = BearerTokenCredential(token=token)
        elif private_key:
            self._credential = SignedRequestCredential(
                private_key=private_key,
                signer=signer,
                cert_name=cert_name,
                skip_logging_payload=skip_logging_payload,
            )
        else:
            self._credential = None

    @property
    def credential(self) -> CredentialAttachment | None:
        return self._credential

    def inject(self, request: RestRequest, signing_path: str = "") -> RestRequest:
        """Return an authenticated copy of ``request``.

        Raises:
            MissingCredentialsError: If neither a token nor a private key is configured.
            SigningNotImplementedError: If a private key is configured without a signer.
        """
        logger.debug("Begin authentication injection for %s %s", request.method, request.path)
        if self._credential is None:
            raise MissingCredentialsError()
        return self._credential.attach(request, signing_path)
