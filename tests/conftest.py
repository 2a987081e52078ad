"""Pytest fixtures shared by the client test suite.

All tests are network-isolated - socket connections are blocked by default.
"""

from __future__ import annotations

import logging
import os
import socket
from collections.abc import Iterator

import pytest

from tests.fakes import FakeSigner, FakeTransport
from tests.support.errors import NetworkIsolationError

# =============================================================================
# Network Isolation - Block all socket connections in tests
# =============================================================================


def _blocked_socket_connect(self: socket.socket, *args: object, **kwargs: object) -> None:
    """Raise an error if any test tries to make a real network connection."""
    _ = (self, kwargs)
    raise NetworkIsolationError(str(args))


@pytest.fixture(autouse=True)
def block_network_access(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Block all network access in tests.

    Tests that need HTTP should use FakeTransport or a MagicMock session.
    """
    monkeypatch.setattr(socket.socket, "connect", _blocked_socket_connect)
    yield


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep HYPERFABRIC_* variables from the developer's shell out of tests."""
    for name in list(os.environ):
        if name.startswith("HYPERFABRIC_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Provide a scripted transport for tests."""
    return FakeTransport()


@pytest.fixture
def fake_signer() -> FakeSigner:
    """Provide a deterministic request signer for tests."""
    return FakeSigner()


@pytest.fixture
def propagate_package_logs() -> Iterator[None]:
    """Let caplog see package loggers, which do not propagate by default."""
    loggers = [
        logger
        for name, logger in list(logging.Logger.manager.loggerDict.items())
        if isinstance(logger, logging.Logger) and name.startswith("hyperfabric_client")
    ]
    for logger in loggers:
        logger.propagate = True
    yield
    for logger in loggers:
        logger.propagate = False
