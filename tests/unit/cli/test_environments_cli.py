"""Unit tests for the root CLI group and the environments command."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from envsync.cli.main import cli, main


def _config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "envsync.yaml"
    path.write_text(text)
    return path


class TestRootGroup:
    """Tests for the envsync group."""

    def test_help_lists_commands(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("apply", "sync-dashboards", "environments"):
            assert command in result.output

    def test_version(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert result.output.startswith("envsync ")

    def test_invalid_log_level(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--log-level", "CHATTY", "environments"])

        assert result.exit_code == 2


class TestEnvironmentsCommand:
    """Tests for envsync environments."""

    def test_configured_list_is_deduplicated(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        config = _config(tmp_path, "environments: [staging, production, staging]\n")

        result = cli_runner.invoke(cli, ["--config", str(config), "environments"])

        assert result.exit_code == 0
        assert result.output.splitlines() == ["staging", "production"]

    def test_env_option_overrides_config(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        config = _config(tmp_path, "environments: [staging]\n")

        result = cli_runner.invoke(
            cli, ["--config", str(config), "environments", "-e", "qa", "-e", "qa"]
        )

        assert result.output.splitlines() == ["qa"]

    def test_fallback_namespace(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        config = _config(tmp_path, "environments: []\ndefault_namespace: shop\n")

        result = cli_runner.invoke(cli, ["--config", str(config), "environments", "-o", "json"])

        assert result.exit_code == 0
        assert json.loads(result.output) == ["shop"]

    def test_no_environments_no_fallback(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        config = _config(tmp_path, "environments: []\ndefault_namespace: ''\n")

        result = cli_runner.invoke(cli, ["--config", str(config), "environments"])

        assert result.exit_code == 2
        assert "No environments" in result.output

    def test_invalid_config_file(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        config = _config(tmp_path, "node_count: 0\n")

        result = cli_runner.invoke(cli, ["--config", str(config), "environments"])

        assert result.exit_code == 2
        assert "Invalid configuration" in result.output


class TestMain:
    """Tests for the console script entry point."""

    def test_success_returns_normally(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = _config(tmp_path, "environments: [staging]\n")

        main(["--config", str(config), "environments"])

        assert capsys.readouterr().out.splitlines() == ["staging"]

    def test_usage_error_exits_2(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["environments", "--output", "yaml"])

        assert exc_info.value.code == 2
