"""Tests for the main CLI module."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from anchors_runtime.exceptions import RuntimeNotFound
from anchors_runtime.installation.artifact_resolver import ArtifactLocation
from anchors_runtime.installation.runtime_locator import RuntimeInfo
from anchors_runtime.main import cli
from anchors_runtime.management.process_registry import ProcessRecord
from anchors_runtime.management.session import SessionHandle


class TestCLI:
    """Test the main CLI functionality."""

    @pytest.fixture(autouse=True)
    def isolated_settings(self, settings):
        with patch("anchors_runtime.main.get_settings", return_value=settings):
            yield settings

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_cli_help(self):
        result = self.runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("start", "stop", "resolve", "check-java"):
            assert command in result.output

    def test_cli_version(self):
        result = self.runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "anchors-runtime" in result.output
        assert "0.1.0" in result.output

    def test_cli_verbose_quiet_conflict(self):
        result = self.runner.invoke(cli, ["--verbose", "--quiet", "resolve"])

        assert result.exit_code != 0
        assert "Cannot use both --verbose and --quiet" in result.output

    def test_stop_without_server(self, free_port):
        """Stopping a port nothing listens on reports the error and exits 1."""
        result = self.runner.invoke(cli, ["stop", "--ip", "127.0.0.1", "--port", str(free_port)])

        assert result.exit_code == 1
        assert "No running instance of Anchors found" in result.output

    def test_resolve(self):
        location = ArtifactLocation(path=Path("/cache/RemoteModuleExtension.jar"), version="1.0.1")

        with patch("anchors_runtime.main.ArtifactResolver") as mock_resolver:
            mock_resolver.return_value.resolve = AsyncMock(return_value=location)
            result = self.runner.invoke(cli, ["resolve", "--force-download"])

        assert result.exit_code == 0
        assert "RemoteModuleExtension.jar" in result.output
        assert "Version: 1.0.1" in result.output
        mock_resolver.return_value.resolve.assert_awaited_once_with(force_refresh=True)

    def test_start_reports_session(self):
        handle = SessionHandle(host="localhost", port=7777, name="demo", started_here=True)
        record = ProcessRecord(
            pid=4242,
            name="demo",
            port=7777,
            stdout_log="/tmp/a.out",
            stderr_log="/tmp/a.err",
        )

        with patch("anchors_runtime.main.ConnectionManager") as mock_manager:
            manager = mock_manager.return_value
            manager.connect = AsyncMock(return_value=handle)
            manager.registry.get_by_port.return_value = record
            result = self.runner.invoke(
                cli, ["start", "--port", "7777", "--name", "demo", "--max-memory", "2g"]
            )

        assert result.exit_code == 0
        assert "Connected to Anchors on localhost:7777" in result.output
        assert "Process ID: 4242" in result.output

        kwargs = manager.connect.call_args.kwargs
        assert kwargs["port"] == 7777
        assert kwargs["auto_start"] is True
        assert kwargs["launch_spec"].max_memory == "2g"
        assert kwargs["force_refresh"] is False

    def test_start_no_start_flag(self):
        handle = SessionHandle(host="10.0.0.5", port=6666, name="remote")

        with patch("anchors_runtime.main.ConnectionManager") as mock_manager:
            manager = mock_manager.return_value
            manager.connect = AsyncMock(return_value=handle)
            manager.registry.get_by_port.return_value = None
            result = self.runner.invoke(cli, ["start", "--ip", "10.0.0.5", "--no-start"])

        assert result.exit_code == 0
        assert manager.connect.call_args.kwargs["auto_start"] is False
        assert "Process ID" not in result.output

    def test_check_java(self):
        info = RuntimeInfo(
            path=Path("/opt/jdk/bin/java"),
            version_output=['java version "1.8.0_202"', "Java HotSpot(TM) Client VM"],
        )

        with patch("anchors_runtime.main.default_locator") as mock_locator:
            mock_locator.return_value.locate.return_value = info.path
            mock_locator.return_value.inspect = AsyncMock(return_value=info)
            result = self.runner.invoke(cli, ["check-java"])

        assert result.exit_code == 0
        assert "1.8.0_202" in result.output
        assert "Client VM" in result.output
        assert "Java version is supported" in result.output

    def test_check_java_missing(self):
        with patch("anchors_runtime.main.default_locator") as mock_locator:
            mock_locator.return_value.locate.side_effect = RuntimeNotFound(
                "Cannot find Java. Please install the latest JRE",
                suggestion="Download it from https://java.example.com",
            )
            result = self.runner.invoke(cli, ["check-java"])

        assert result.exit_code == 1
        assert "Error: Cannot find Java" in result.output
        assert "Suggestion: Download it from" in result.output
