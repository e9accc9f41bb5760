"""Unit tests for the WatchVuln CLI."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import structlog
import yaml
from typer.testing import CliRunner

from watchvuln import __version__
from watchvuln.app import build_app
from watchvuln.cli import app
from watchvuln.core.exceptions import StoreError

runner = CliRunner()


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    # configure_logging binds the runner's temporary stderr.
    structlog.reset_defaults()


@pytest.fixture
def config_file(tmp_path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "database": {"path": str(tmp_path / "cli.sqlite")},
        "task": {"timezone": "UTC"},
        "logging": {"level": "WARNING", "format": "console"},
    }))
    return path


def _lines(result) -> list[str]:
    return [line.strip() for line in result.output.splitlines()]


class TestCallback:

    @pytest.mark.unit
    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "once", "count", "sources", "version"):
            assert command in result.output

    @pytest.mark.unit
    def test_missing_config_file(self, tmp_path):
        result = runner.invoke(app, ["-c", str(tmp_path / "nope.yaml"), "version"])
        assert result.exit_code == 1
        assert "not found" in result.output

    @pytest.mark.unit
    def test_invalid_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"task": {"cron_config": "bad"}}))
        result = runner.invoke(app, ["-c", str(path), "version"])
        assert result.exit_code == 1
        assert "Error loading config" in result.output


class TestCommands:

    @pytest.mark.unit
    def test_version(self, config_file):
        result = runner.invoke(app, ["-c", str(config_file), "version"])
        assert result.exit_code == 0
        assert __version__ in _lines(result)

    @pytest.mark.unit
    def test_sources(self, config_file):
        result = runner.invoke(app, ["-c", str(config_file), "sources"])
        assert result.exit_code == 0
        assert "* kev" in _lines(result)

    @pytest.mark.unit
    def test_count_empty_store(self, config_file):
        result = runner.invoke(app, ["-c", str(config_file), "count"])
        assert result.exit_code == 0
        assert "0" in _lines(result)

    @pytest.mark.unit
    def test_once(self, config_file, make_source, make_raw):
        source = make_source("a", [make_raw("K1"), make_raw("K2")])

        def fake_build(settings):
            return build_app(settings, sources=[source], channels=[])

        with patch("watchvuln.cli.build_app", side_effect=fake_build):
            result = runner.invoke(app, ["-c", str(config_file), "once", "--volume", "3"])

        assert result.exit_code == 0, result.output
        assert source.calls == [3]
        # No channel configured: records stay pending.
        assert "collected=2 new=2 changed=0 delivered=0 undelivered=2" in _lines(result)

        count = runner.invoke(app, ["-c", str(config_file), "count"])
        assert "2" in _lines(count)

    @pytest.mark.unit
    def test_once_unknown_source(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "database": {"path": str(tmp_path / "cli.sqlite")},
            "sources": {"enabled": ["nope"]},
            "logging": {"level": "ERROR"},
        }))
        result = runner.invoke(app, ["-c", str(path), "once"])
        assert result.exit_code == 1
        assert "Unknown source 'nope'" in result.output

    @pytest.mark.unit
    def test_once_failed_pass_exits_nonzero(self, config_file):
        def fake_build(settings):
            context = build_app(settings, sources=[], channels=[])
            context.store.find_pending = lambda: 1 / 0
            return context

        with patch("watchvuln.cli.build_app", side_effect=fake_build):
            result = runner.invoke(app, ["-c", str(config_file), "once"])

        assert result.exit_code == 1
        assert "Error: ZeroDivisionError" in result.output

    @pytest.mark.unit
    def test_run(self, config_file):
        with patch("watchvuln.cli.run_daemon", new=MagicMock()) as run_daemon, \
                patch("watchvuln.cli.asyncio.run") as run:
            result = runner.invoke(app, ["-c", str(config_file), "run"])

        assert result.exit_code == 0, result.output
        run_daemon.assert_called_once()
        run.assert_called_once_with(run_daemon.return_value)


class TestStoreErrors:

    @pytest.fixture
    def blocked_config(self, tmp_path) -> Path:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "database": {"path": str(blocker / "cli.sqlite")},
            "logging": {"level": "CRITICAL"},
        }))
        return path

    @pytest.mark.unit
    @pytest.mark.parametrize("command", ["count", "once", "run"])
    def test_unopenable_store(self, blocked_config, command):
        with patch("watchvuln.cli.asyncio.run") as run:
            result = runner.invoke(app, ["-c", str(blocked_config), command])

        assert result.exit_code == 1
        assert "Error: Cannot create" in result.output
        assert not isinstance(result.exception, StoreError)
        run.assert_not_called()

    @pytest.mark.unit
    def test_count_query_failure(self, config_file):
        with patch("watchvuln.storage.store.VulnStore.count", side_effect=StoreError(operation="count")):
            result = runner.invoke(app, ["-c", str(config_file), "count"])

        assert result.exit_code == 1
        assert "Error: Store operation 'count' failed." in result.output
