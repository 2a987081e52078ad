"""CLI for the Hyperfabric client.

Commands:
- call: Execute one REST call and print the JSON document
- commit: Commit the candidate configuration of one or more fabrics
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, NoReturn, Protocol

import typer
from rich import print as rprint
from rich import print_json
from rich.markup import escape

from .application.commit import DEFAULT_CANDIDATE, DEFAULT_COMMIT_COMMENT, AutoCommitter
from .client import HyperfabricClient
from .config import ClientConfig
from .config_file import load_client_config_file
from .exceptions import HyperfabricError
from .infrastructure.resilience import MAX_RETRIES_LIMIT
from .observability import set_log_level
from .types import Diagnostic


class DependenciesBuilder(Protocol):
    """Protocol for constructing CLI dependencies."""

    def __call__(self, *, config: ClientConfig) -> CliDependencies:
        """Build dependencies for CLI commands."""
        ...


@dataclass(frozen=True)
class CliDependencies:
    """Concrete dependencies required by the CLI."""

    client: HyperfabricClient


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    deps_builder: DependenciesBuilder

    def build_dependencies(self, *, config: ClientConfig) -> CliDependencies:
        """Return dependencies using the configured builder."""
        return self.deps_builder(config=config)


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the hyperfabric entry point.")


class ConflictingPayloadOptionsError(typer.BadParameter):
    """Raised when both --data and --data-file are supplied."""

    def __init__(self) -> None:
        super().__init__("Use either --data or --data-file, not both.")


class InvalidPayloadError(typer.BadParameter):
    """Raised when the request payload is not valid JSON."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Payload must be valid JSON: {reason}")


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


def _load_payload(data: str | None, data_file: Path | None) -> object | None:
    if data is not None and data_file is not None:
        raise ConflictingPayloadOptionsError()
    text = data_file.read_text(encoding="utf-8") if data_file is not None else data
    if text is None:
        return None
    try:
        payload: object = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidPayloadError(str(exc)) from exc
    return payload


def _resolve_config(
    *,
    config_path: Path | None,
    base_url: str | None,
    retries: int | None,
    insecure: bool | None,
) -> ClientConfig:
    config = ClientConfig.from_env()
    if config_path is not None:
        config = config.with_file_overrides(load_client_config_file(config_path))
    return config.with_overrides(base_url=base_url, max_retries=retries, insecure=insecure)


def _fail(diagnostic: Diagnostic) -> NoReturn:
    rprint(f"[red]✗ {escape(diagnostic.summary)}[/red]")
    if diagnostic.detail:
        rprint(escape(diagnostic.detail))
    raise typer.Exit(code=1)


def _build_client(
    state: CliContext,
    *,
    config_path: Path | None,
    base_url: str | None,
    retries: int | None,
    insecure: bool | None,
) -> HyperfabricClient:
    try:
        config = _resolve_config(
            config_path=config_path, base_url=base_url, retries=retries, insecure=insecure
        )
        return state.build_dependencies(config=config).client
    except HyperfabricError as exc:
        _fail(Diagnostic(summary=exc.summary, detail=exc.detail))


ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="TOML config file overriding environment values"),
]
BaseUrlOption = Annotated[
    str | None,
    typer.Option("--url", help="Hyperfabric service URL (overrides HYPERFABRIC_URL)"),
]
RetriesOption = Annotated[
    int | None,
    typer.Option(
        "--retries",
        min=0,
        max=MAX_RETRIES_LIMIT,
        help="Retries for overload and transport failures",
    ),
]
InsecureOption = Annotated[
    bool | None,
    typer.Option("--insecure/--secure", help="Skip TLS certificate verification"),
]


def create_app(deps_builder: DependenciesBuilder) -> typer.Typer:
    """Create a Typer app wired with the provided dependencies builder."""
    app = typer.Typer(
        add_completion=False,
        help="Hyperfabric REST client: execute calls and commit pending fabric changes",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        verbose: Annotated[
            bool,
            typer.Option("--verbose", "-v", help="Log request execution at debug level"),
        ] = False,
    ) -> None:
        """Initialise CLI context."""
        if verbose:
            set_log_level(logging.DEBUG)
        ctx.obj = CliContext(deps_builder=deps_builder)

    @app.command()
    def call(
        ctx: typer.Context,
        method: Annotated[str, typer.Argument(help="HTTP method (GET, POST, PUT, PATCH, DELETE)")],
        path: Annotated[str, typer.Argument(help="Request path, e.g. /api/v1/fabrics")],
        data: Annotated[
            str | None,
            typer.Option("--data", "-d", help="JSON request payload"),
        ] = None,
        data_file: Annotated[
            Path | None,
            typer.Option("--data-file", help="File containing the JSON request payload"),
        ] = None,
        config_path: ConfigOption = None,
        base_url: BaseUrlOption = None,
        retries: RetriesOption = None,
        insecure: InsecureOption = None,
    ) -> None:
        """Execute one REST call and print the JSON response."""
        payload = _load_payload(data, data_file)
        state = _get_context(ctx)
        client = _build_client(
            state, config_path=config_path, base_url=base_url, retries=retries, insecure=insecure
        )
        with client:
            document, diagnostic = client.execute_rest_call(path, method.upper(), payload)
        if diagnostic is not None:
            _fail(diagnostic)
        if document is None:
            rprint("[green]✓ No content[/green]")
            return
        print_json(data=document)

    @app.command()
    def commit(
        ctx: typer.Context,
        fabric_ids: Annotated[list[str], typer.Argument(help="Fabric ids to commit")],
        candidate: Annotated[
            str,
            typer.Option("--candidate", help="Candidate configuration name"),
        ] = DEFAULT_CANDIDATE,
        comment: Annotated[
            str,
            typer.Option("--comment", "-m", help="Comment recorded with the commit"),
        ] = DEFAULT_COMMIT_COMMENT,
        config_path: ConfigOption = None,
        base_url: BaseUrlOption = None,
        retries: RetriesOption = None,
        insecure: InsecureOption = None,
    ) -> None:
        """Commit the candidate configuration of the given fabrics."""
        state = _get_context(ctx)
        client = _build_client(
            state, config_path=config_path, base_url=base_url, retries=retries, insecure=insecure
        )
        with client:
            for fabric_id in fabric_ids:
                client.mark_pending(fabric_id)
            report = AutoCommitter(client, candidate=candidate, comment=comment).commit_pending()
        for fabric_id in report.committed:
            rprint(f"[green]✓ Committed:[/green] {fabric_id}")
        for fabric_id in report.failed:
            rprint(f"[red]✗ Commit failed:[/red] {fabric_id}")
        if not report.ok:
            raise typer.Exit(code=1)

    return app
