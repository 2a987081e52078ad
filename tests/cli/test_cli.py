"""Tests for CLI wiring and overrides."""

import json
import logging
import re
from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from hyperfabric_client import cli
from hyperfabric_client.cli import CliDependencies
from hyperfabric_client.client import HyperfabricClient
from hyperfabric_client.config import ClientConfig
from hyperfabric_client.observability import set_log_level
from hyperfabric_client.types import TransportResponse
from tests.fakes import FakeTransport, error_response, json_response

runner = CliRunner()
_ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*m")


def _strip_ansi(text: str) -> str:
    return _ANSI_ESCAPE_RE.sub("", text)


class _RecordingBuilder:
    """Dependencies builder that wires a fake transport and records configs."""

    def __init__(self, transport: FakeTransport) -> None:
        self.transport = transport
        self.configs: list[ClientConfig] = []

    def __call__(self, *, config: ClientConfig) -> CliDependencies:
        self.configs.append(config)
        return CliDependencies(client=HyperfabricClient(config, transport=self.transport))


def _build_app(transport: FakeTransport) -> tuple[typer.Typer, _RecordingBuilder]:
    builder = _RecordingBuilder(transport)
    return cli.create_app(builder), builder


@pytest.fixture(autouse=True)
def token_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HYPERFABRIC_URL", "https://hf.example.com")
    monkeypatch.setenv("HYPERFABRIC_TOKEN", "secret")
    monkeypatch.setenv("HYPERFABRIC_RETRIES", "0")


class TestCallCommand:
    """Tests for `hyperfabric call`."""

    def test_prints_json_document(self) -> None:
        transport = FakeTransport().queue(json_response(200, {"fabrics": [{"id": "f1"}]}))
        app, _ = _build_app(transport)

        result = runner.invoke(app, ["call", "get", "/api/v1/fabrics"])

        assert result.exit_code == 0, result.output
        assert json.loads(_strip_ansi(result.output)) == {"fabrics": [{"id": "f1"}]}
        assert transport.calls[0].method == "GET"
        assert transport.calls[0].url == "https://hf.example.com/api/v1/fabrics"
        assert transport.calls[0].headers["Authorization"] == "Bearer secret"
        assert transport.closed is True

    def test_sends_data_payload(self) -> None:
        transport = FakeTransport().queue(json_response(201, {"id": "f1"}))
        app, _ = _build_app(transport)

        result = runner.invoke(
            app, ["call", "POST", "/api/v1/fabrics", "--data", '{"name": "f1"}']
        )

        assert result.exit_code == 0, result.output
        assert transport.calls[0].body == b'{"name":"f1"}'

    def test_sends_data_file_payload(self, tmp_path: Path) -> None:
        payload_file = tmp_path / "fabric.json"
        payload_file.write_text('{"name": "from-file"}', encoding="utf-8")
        transport = FakeTransport().queue(json_response(201, {"id": "f1"}))
        app, _ = _build_app(transport)

        result = runner.invoke(
            app, ["call", "POST", "/api/v1/fabrics", "--data-file", str(payload_file)]
        )

        assert result.exit_code == 0, result.output
        assert transport.calls[0].body == b'{"name":"from-file"}'

    def test_missing_resource_prints_no_content(self) -> None:
        transport = FakeTransport().queue(error_response(404, "ERR_CODE_NOT_FOUND"))
        app, _ = _build_app(transport)

        result = runner.invoke(app, ["call", "GET", "/api/v1/fabrics/missing"])

        assert result.exit_code == 0, result.output
        assert "No content" in _strip_ansi(result.output)

    def test_failure_prints_diagnostic_and_exits_1(self) -> None:
        transport = FakeTransport().queue(
            error_response(400, "ERR_CODE_INVALID", "name is required")
        )
        app, _ = _build_app(transport)

        result = runner.invoke(app, ["call", "POST", "/api/v1/fabrics", "--data", "{}"])

        output = _strip_ansi(result.output)
        assert result.exit_code == 1
        assert "ERR_CODE_INVALID" in output
        assert "name is required" in output

    def test_conflicting_payload_options_are_rejected(self, tmp_path: Path) -> None:
        payload_file = tmp_path / "fabric.json"
        payload_file.write_text("{}", encoding="utf-8")
        transport = FakeTransport()
        app, _ = _build_app(transport)

        result = runner.invoke(
            app,
            ["call", "POST", "/x", "--data", "{}", "--data-file", str(payload_file)],
        )

        assert result.exit_code == 2
        assert transport.calls == []

    def test_invalid_json_payload_is_rejected(self) -> None:
        transport = FakeTransport()
        app, _ = _build_app(transport)

        result = runner.invoke(app, ["call", "POST", "/x", "--data", "{not json"])

        assert result.exit_code == 2
        assert transport.calls == []

    def test_cli_options_override_environment(self) -> None:
        transport = FakeTransport().queue(json_response(200, {}))
        app, builder = _build_app(transport)

        result = runner.invoke(
            app,
            ["call", "GET", "/x", "--retries", "4", "--insecure"]
            + ["--url", "https://o.example.com"],
        )

        assert result.exit_code == 0, result.output
        config = builder.configs[0]
        assert config.max_retries == 4
        assert config.insecure is True
        assert config.base_url == "https://o.example.com"

    def test_config_file_is_applied(self, tmp_path: Path) -> None:
        config_file = tmp_path / "client.toml"
        config_file.write_text(
            "schema_version = 1\n\n[client]\nmax_retries = 7\ntimeout_seconds = 9\n",
            encoding="utf-8",
        )
        transport = FakeTransport().queue(json_response(200, {}))
        app, builder = _build_app(transport)

        result = runner.invoke(app, ["call", "GET", "/x", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert builder.configs[0].max_retries == 7
        assert transport.calls[0].timeout_seconds == 9.0

    def test_configuration_error_exits_1(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HYPERFABRIC_URL", "http://insecure.example.com")
        transport = FakeTransport()
        app, _ = _build_app(transport)

        result = runner.invoke(app, ["call", "GET", "/x"])

        assert result.exit_code == 1
        assert "Invalid Hyperfabric URL" in _strip_ansi(result.output)
        assert transport.calls == []

    def test_missing_credentials_exit_1(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HYPERFABRIC_TOKEN")
        transport = FakeTransport()
        app, _ = _build_app(transport)

        result = runner.invoke(app, ["call", "GET", "/x"])

        assert result.exit_code == 1
        assert "Missing credentials" in _strip_ansi(result.output)
        assert transport.calls == []


class TestCommitCommand:
    """Tests for `hyperfabric commit`."""

    def test_commits_each_fabric(self) -> None:
        transport = FakeTransport().queue(
            json_response(200, {}), TransportResponse(status_code=204)
        )
        app, _ = _build_app(transport)

        result = runner.invoke(app, ["commit", "f2", "f1", "--candidate", "staging"])

        output = _strip_ansi(result.output)
        assert result.exit_code == 0, output
        assert "Committed: f1" in output
        assert "Committed: f2" in output
        assert [sent.url for sent in transport.calls] == [
            "https://hf.example.com/api/v1/fabrics/f1/candidates/staging",
            "https://hf.example.com/api/v1/fabrics/f2/candidates/staging",
        ]

    def test_failed_commit_exits_1(self) -> None:
        transport = FakeTransport().queue(
            error_response(409, "ERR_CODE_CONFLICT"), json_response(200, {})
        )
        app, _ = _build_app(transport)

        result = runner.invoke(app, ["commit", "f1", "f2", "-m", "release"])

        output = _strip_ansi(result.output)
        assert result.exit_code == 1
        assert "Commit failed: f1" in output
        assert "Committed: f2" in output
        assert json.loads(transport.calls[0].body or b"") == {"comments": "release"}


def test_verbose_flag_enables_debug_logging() -> None:
    transport = FakeTransport().queue(json_response(200, {}))
    app, _ = _build_app(transport)
    try:
        result = runner.invoke(app, ["--verbose", "call", "GET", "/x"])
        assert result.exit_code == 0, result.output
        assert logging.getLogger("hyperfabric_client.executor").level == logging.DEBUG
    finally:
        set_log_level(logging.INFO)
