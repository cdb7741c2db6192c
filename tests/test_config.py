"""Tests for settings and the command-line entry points."""

from rfs.cli import client_main, server_main
from rfs.config import Settings
from rfs.types import DEFAULT_REGISTRY_PATH
from .test_vectors import REGISTRY_LINES


class TestSettings:
    """Environment-driven settings."""

    def test_defaults(self) -> None:
        settings = Settings.from_env({})
        assert settings.registry_path == DEFAULT_REGISTRY_PATH
        assert settings.log_level == "INFO"

    def test_from_env(self) -> None:
        settings = Settings.from_env({"RFS_CONFIG": "/etc/rfs", "RFS_LOG_LEVEL": "debug"})
        assert settings.registry_path == "/etc/rfs"
        assert settings.log_level == "DEBUG"


class TestCli:
    """Failures are reported through the exit status."""

    def test_server_rejects_client_name(self, tmp_path) -> None:
        path = tmp_path / "rfs_config"
        path.write_text("\n".join(REGISTRY_LINES))
        assert server_main(["alice", "--config", str(path)]) == 1

    def test_client_without_server_entry(self, tmp_path) -> None:
        assert client_main(["srv1", "alice", "--config", str(tmp_path / "missing")]) == 1
