"""Composition root for wiring CLI dependencies."""

from __future__ import annotations

from .cli import CliDependencies, create_app
from .client import HyperfabricClient
from .config import ClientConfig


def build_cli_dependencies(*, config: ClientConfig) -> CliDependencies:
    """Build concrete dependencies for CLI commands.

    Args:
        config: Client configuration (used for transport, credential and retry wiring).
    """
    return CliDependencies(client=HyperfabricClient(config))


app = create_app(build_cli_dependencies)
