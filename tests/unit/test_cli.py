"""Tests for CLI commands."""

from unittest.mock import patch

import pytest
from click.exceptions import Exit
from typer.testing import CliRunner

from buildgraph.cli import _parse_comma_list, _validate_publishable, _validate_target_selection, app, main
from buildgraph.models.manifest import TargetConfig

runner = CliRunner()

TARGETS = [
    TargetConfig(name="cloudRepo", url="https://repo.example.com/releases"),
    TargetConfig(name="local", url="file:///tmp/repo"),
]


class TestCLIHelp:
    """Test CLI help output."""

    def test_main_help(self):
        """Test main help displays commands."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "build" in result.stdout
        assert "publish" in result.stdout
        assert "list-plugins" in result.stdout
        assert "list-targets" in result.stdout

    def test_build_help(self):
        """Test build command help."""
        result = runner.invoke(app, ["build", "--help"])
        assert result.exit_code == 0
        assert "--workspace" in result.stdout
        assert "--lock-file" in result.stdout
        assert "--sbom" in result.stdout

    def test_publish_help(self):
        """Test publish command help."""
        result = runner.invoke(app, ["publish", "--help"])
        assert result.exit_code == 0
        assert "--targets" in result.stdout
        assert "--allow-overwrite" in result.stdout


class TestLoggingOptions:
    """Test logging option validation."""

    def test_mutually_exclusive_verbose_quiet(self):
        """Test that --verbose and --quiet are mutually exclusive."""
        result = runner.invoke(app, ["list-plugins", "--verbose", "--quiet"])
        assert result.exit_code == 1
        assert "mutually exclusive" in result.stdout

    def test_mutually_exclusive_quiet_log_level(self):
        """Test that --quiet and --log-level are mutually exclusive."""
        result = runner.invoke(app, ["list-plugins", "--quiet", "--log-level", "WARNING"])
        assert result.exit_code == 1
        assert "mutually exclusive" in result.stdout

    def test_unknown_log_level(self):
        result = runner.invoke(app, ["list-plugins", "--log-level", "LOUD"])
        assert result.exit_code == 1
        assert "unknown log level" in result.stdout


class TestListPlugins:
    """Test list-plugins command."""

    def test_displays_tables(self, fresh_plugins):
        result = runner.invoke(app, ["list-plugins"])
        assert result.exit_code == 0
        assert "mc-java" in result.stdout
        assert "https" in result.stdout

    @patch("buildgraph.graph.get_registered_build_plugins")
    def test_no_plugins_error(self, mock_get_plugins):
        """Test error when no build plugins are registered."""
        mock_get_plugins.return_value = {}
        result = runner.invoke(app, ["list-plugins"])
        assert result.exit_code == 1
        assert "No build plugins registered" in result.stdout


class TestBuildErrors:
    """Test build command failures."""

    def test_missing_workspace(self, tmp_path):
        """Test that a directory without buildgraph.toml fails the build."""
        result = runner.invoke(app, ["build", "--workspace", str(tmp_path)])
        assert result.exit_code == 1
        assert "Build failed" in result.stdout


class TestHelpers:
    """Test CLI helper functions."""

    def test_parse_comma_list(self):
        assert _parse_comma_list("local, cloudRepo") == ["local", "cloudRepo"]
        assert _parse_comma_list(None) is None

    def test_all_targets_by_default(self):
        assert _validate_target_selection(None, TARGETS) == TARGETS

    def test_target_selection_keeps_requested_order(self):
        selected = _validate_target_selection(["local", "cloudRepo"], TARGETS)
        assert [t.name for t in selected] == ["local", "cloudRepo"]

    def test_unknown_target(self):
        with pytest.raises(Exit) as exc_info:
            _validate_target_selection(["mirror"], TARGETS)
        assert exc_info.value.exit_code == 1

    def test_not_publishable(self):
        assert _validate_publishable(None, ("model-check",)) == ["model-check"]
        with pytest.raises(Exit):
            _validate_publishable(["model-assembler"], ("model-check",))

    @patch("buildgraph.cli.app")
    def test_main_calls_app(self, mock_app):
        main()
        mock_app.assert_called_once()
