"""Client handles and their lifecycle.

A HyperfabricClient is an explicitly constructed handle that bundles configuration, the
transport, the request executor and the pending-changes set. Callers either pass one
handle around, or use a ClientRegistry to share one instance per base URL.

Usage example:
    from hyperfabric_client.client import ClientRegistry, HyperfabricClient
    from hyperfabric_client.config import ClientConfig

    config = ClientConfig.from_env()
    client = HyperfabricClient(config)
    document, diagnostic = client.execute_rest_call("/api/v1/fabrics", "GET")

    registry = ClientRegistry()
    shared = registry.shared(config)
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from types import TracebackType
from typing import Self
from urllib.parse import urlsplit

from .application.auth import AuthInjector
from .application.executor import RequestExecutor, RestCall
from .config import ClientConfig
from .exceptions import InvalidBaseUrlError
from .infrastructure.io.http import build_requests_transport
from .infrastructure.pending import PendingChangeSet
from .infrastructure.resilience import BackoffPolicy, CancellationToken
from .observability import get_logger
from .protocols import RequestSigner, RetryPolicy, Transport
from .types import CallResult, Diagnostic

logger = get_logger("hyperfabric_client.client")


def validate_base_url(url: str) -> str:
    """Return ``url`` if it is an absolute http(s) URL.

    Raises:
        InvalidBaseUrlError: Otherwise. No request could ever succeed against it.
    """
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError as exc:
        raise InvalidBaseUrlError(url, f"could not be parsed ({exc})") from exc
    if parts.scheme not in {"http", "https"} or not hostname:
        raise InvalidBaseUrlError(url, "must be an absolute http(s) URL")
    return url


def build_retry_policy(config: ClientConfig) -> BackoffPolicy:
    return BackoffPolicy(
        max_retries=config.max_retries,
        min_delay_seconds=config.backoff_min_delay_seconds,
        max_delay_seconds=config.backoff_max_delay_seconds,
        delay_factor=config.backoff_delay_factor,
    )


class HyperfabricClient:
    """Configured handle for executing REST calls against the Hyperfabric service.

    Safe to share between threads: the only mutable state is the pending-changes set,
    which guards itself with a lock.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: Transport | None = None,
        signer: RequestSigner | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        validate_base_url(config.base_url)
        self.config = config
        self.transport = transport or build_requests_transport(
            insecure=config.insecure,
            proxy_url=config.proxy_url,
            proxy_creds=config.proxy_creds,
        )
        self.executor = RequestExecutor(
            base_url=config.base_url,
            transport=self.transport,
            auth=AuthInjector(
                token=config.token,
                private_key=config.private_key,
                signer=signer,
                cert_name=config.admin_cert,
                skip_logging_payload=config.skip_logging_payload,
            ),
            retry_policy=retry_policy or build_retry_policy(config),
            timeout_seconds=config.timeout_seconds,
            skip_logging_payload=config.skip_logging_payload,
            preserve_base_url_ref=config.preserve_base_url_ref,
        )
        self.pending = PendingChangeSet()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def base_url(self) -> str:
        return self.config.base_url

    def execute(
        self,
        method: str,
        path: str,
        payload: object | None = None,
        *,
        raw_payload: bytes | None = None,
        authenticated: bool = True,
        cancel: CancellationToken | None = None,
    ) -> CallResult:
        call = RestCall(
            method=method,
            path=path,
            payload=payload,
            raw_payload=raw_payload,
            authenticated=authenticated,
        )
        return self.executor.execute(call, cancel=cancel)

    def execute_rest_call(
        self,
        path: str,
        method: str,
        payload: object | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> tuple[object | None, Diagnostic | None]:
        """Execute one call and return ``(document, diagnostic)``.

        The diagnostic is None on success, including a 404 on GET or DELETE.
        """
        return self.execute(method, path, payload, cancel=cancel).as_tuple()

    def request(
        self,
        method: str,
        path: str,
        payload: object | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> object | None:
        """Execute one call and return its document, raising the failure instead.

        Raises:
            HyperfabricError: The terminal failure of the call.
        """
        result = self.execute(method, path, payload, cancel=cancel)
        if result.error is not None:
            raise result.error
        return result.document

    def mark_pending(self, fabric_id: str) -> None:
        self.pending.mark(fabric_id)

    def pending_fabrics(self) -> frozenset[str]:
        return self.pending.snapshot()

    def close(self) -> None:
        self.transport.close()


ClientFactory = Callable[[ClientConfig], HyperfabricClient]


class ClientRegistry:
    """Owns an optional shared client alongside independently built ones.

    ``shared`` keeps one instance per base URL and replaces it when a config with a
    different base URL arrives; ``new_client`` always builds a fresh handle.
    """

    def __init__(self, factory: ClientFactory = HyperfabricClient) -> None:
        self._factory = factory
        self._lock = threading.Lock()
        self._shared: HyperfabricClient | None = None

    def shared(self, config: ClientConfig) -> HyperfabricClient:
        with self._lock:
            current = self._shared
            if current is None or current.base_url != config.base_url:
                if current is not None:
                    logger.info(
                        "Replacing shared client for %s with %s",
                        current.base_url,
                        config.base_url,
                    )
                current = self._factory(config)
                self._shared = current
            return current

    def new_client(self, config: ClientConfig) -> HyperfabricClient:
        return self._factory(config)

    def reset(self) -> None:
        with self._lock:
            self._shared = None
