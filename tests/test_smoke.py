"""
Smoke tests — verify the bootstrap is healthy.

These tests ensure the basic scaffolding works:
- Package imports successfully
- CLI entrypoint responds
- Every built-in handler is registered
"""

from click.testing import CliRunner

from nldevices import __version__
from nldevices.main import cli


class TestBootstrap:
    """Verify the project bootstrap is healthy."""

    def test_version_is_set(self):
        """Version string should be defined and non-empty."""
        assert __version__
        assert isinstance(__version__, str)

    def test_cli_help(self):
        """CLI --help should exit cleanly with usage info."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "idempotent device configuration" in result.output

    def test_cli_version(self):
        """CLI --version should print the version."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_core_package_imports(self):
        """Core sub-packages should be importable."""
        import nldevices.adapters
        import nldevices.adapters.transport
        import nldevices.adapters.vcs
        import nldevices.core.config.loader
        import nldevices.core.engine.executor
        import nldevices.core.models
        import nldevices.core.persistence.history
        import nldevices.core.use_cases.run  # noqa: F401

    def test_builtin_handlers(self):
        from nldevices.adapters import default_registry

        assert len(default_registry().list_handlers()) == 15
