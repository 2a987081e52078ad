"""HTTP transport implementations for infrastructure.

Usage example:
    from hyperfabric_client.infrastructure.io.http import build_requests_transport

    transport = build_requests_transport(
        insecure=False,
        proxy_url="http://proxy.example.com:3128",
        proxy_creds="user:secret",
    )
    response = transport.send(
        "GET",
        "https://hyperfabric.cisco.com/api/v1/fabrics",
        headers={"Authorization": "Bearer ..."},
        body=None,
        timeout_seconds=100,
    )
"""

from __future__ import annotations

import ssl
from collections.abc import Iterator, Mapping
from typing import override
from urllib.parse import quote, urlsplit, urlunsplit

import requests
import urllib3

from ...exceptions import ConfigurationError, TlsError, TransportError
from ...observability import get_logger
from ...protocols import Transport
from ...types import TransportResponse

logger = get_logger("hyperfabric_client.infrastructure.http")

_TLS_ERROR_TYPES = (requests.exceptions.SSLError, urllib3.exceptions.SSLError, ssl.SSLError)
# Phrases that cannot appear in a host name, so a URL in the message never matches.
_TLS_MARKERS = (" tls: ", "certificate verify failed")


def _linked_errors(error: BaseException) -> Iterator[BaseException]:
    """Yield ``error`` and every exception chained to it.

    requests wraps urllib3 errors in ``args`` and urllib3 keeps the cause in ``reason``,
    besides the usual ``__cause__`` and ``__context__`` links.
    """
    seen: set[int] = set()
    stack: list[BaseException] = [error]
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        links: list[object] = [current.__cause__, current.__context__]
        links.append(getattr(current, "reason", None))
        links.extend(current.args)
        stack.extend(link for link in links if isinstance(link, BaseException))


def is_tls_error(error: BaseException) -> bool:
    """Check if a transport exception was raised during TLS negotiation."""
    if any(isinstance(linked, _TLS_ERROR_TYPES) for linked in _linked_errors(error)):
        return True
    error_str = str(error).lower()
    return any(marker in error_str for marker in _TLS_MARKERS)


def proxy_url_with_credentials(proxy_url: str, proxy_creds: str) -> str:
    """Embed ``username:password`` credentials into a proxy URL.

    requests turns URL credentials into a ``Proxy-Authorization: Basic`` header that is
    sent on the CONNECT request, i.e. at connect time.
    """
    parts = urlsplit(proxy_url)
    if not parts.scheme or not parts.hostname:
        raise ConfigurationError("Invalid proxy URL", f"Proxy URL '{proxy_url}' is not absolute.")
    if not proxy_creds:
        return proxy_url
    username, _, password = proxy_creds.partition(":")
    userinfo = quote(username, safe="")
    if password:
        userinfo = f"{userinfo}:{quote(password, safe='')}"
    host = parts.hostname
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def build_requests_transport(
    *,
    insecure: bool = False,
    proxy_url: str = "",
    proxy_creds: str = "",
    session: requests.Session | None = None,
) -> RequestsTransport:
    """Build a requests-backed transport with TLS and proxy settings applied.

    A caller-supplied session is used as-is; proxy settings are then ignored.
    """
    if session is not None:
        return RequestsTransport(session=session, verify=not insecure)
    session = requests.Session()
    if proxy_url:
        logger.debug("Using proxy server: %s", proxy_url)
        proxy = proxy_url_with_credentials(proxy_url, proxy_creds)
        session.proxies = {"http": proxy, "https": proxy}
        session.trust_env = False
    if insecure:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    return RequestsTransport(session=session, verify=not insecure)


class RequestsTransport(Transport):
    """Transport that sends requests through a ``requests.Session``.

    requests exceptions never escape: TLS failures become TlsError and every other
    connection failure becomes TransportError.
    """

    def __init__(self, *, session: requests.Session, verify: bool = True) -> None:
        self.session = session
        self.verify = verify

    @override
    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> TransportResponse:
        if timeout_seconds <= 0:
            raise TransportError(url, f"timeout must be positive, got {timeout_seconds}s")
        try:
            response = self.session.request(
                method,
                url,
                headers=dict(headers),
                data=body,
                timeout=timeout_seconds,
                verify=self.verify,
            )
        except requests.RequestException as exc:
            if is_tls_error(exc):
                raise TlsError(url, str(exc)) from exc
            raise TransportError(url, str(exc)) from exc

        try:
            content = response.content
        except requests.RequestException as exc:
            raise TransportError(url, f"failed to read response body: {exc}") from exc
        finally:
            response.close()

        return TransportResponse(
            status_code=response.status_code,
            body=content or b"",
            reason=response.reason or "",
            headers=dict(response.headers),
        )

    @override
    def close(self) -> None:
        self.session.close()
