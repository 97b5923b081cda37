"""Unit tests for settings loading."""

from __future__ import annotations

import pytest

from lhc.config import Settings, get_settings


class TestDefaults:
    def test_defaults(self):
        settings = Settings()

        assert settings.cli.namespace == "default"
        assert settings.cli.storage_class == "longhorn"
        assert settings.provision.mount_path == "/mnt/volume"
        assert settings.provision.claim_bind_timeout == 60
        assert settings.provision.pod_ready_timeout == 120
        assert settings.longhorn.namespace == "longhorn-system"
        assert settings.longhorn.replicas == 3
        assert settings.transfer.pipe_max_chunks == 16


class TestEnvironment:
    def test_nested_env_override(self, monkeypatch):
        monkeypatch.setenv("LHC_CLI__NAMESPACE", "storage")
        monkeypatch.setenv("LHC_PROVISION__POD_READY_TIMEOUT", "30")

        settings = Settings()

        assert settings.cli.namespace == "storage"
        assert settings.provision.pod_ready_timeout == 30


class TestConfigFile:
    def test_reads_file_from_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "lhc.yaml"
        path.write_text("cli:\n  namespace: backups\nlogging:\n  level: DEBUG\n")
        monkeypatch.setenv("LHC_CONFIG_FILE", str(path))

        settings = Settings()

        assert settings.cli.namespace == "backups"
        assert settings.logging.level == "DEBUG"

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "lhc.yaml"
        path.write_text("cli:\n  namespace: backups\n  storage_class: fast\n")
        monkeypatch.setenv("LHC_CONFIG_FILE", str(path))
        monkeypatch.setenv("LHC_CLI__NAMESPACE", "storage")

        settings = Settings()

        assert settings.cli.namespace == "storage"
        assert settings.cli.storage_class == "fast"

    def test_empty_file_gives_defaults(self, tmp_path, monkeypatch):
        path = tmp_path / "lhc.yaml"
        path.write_text("")
        monkeypatch.setenv("LHC_CONFIG_FILE", str(path))

        assert Settings().cli.namespace == "default"

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

    def test_invalid_level_rejected(self):
        with pytest.raises(ValueError):
            Settings(logging={"level": "LOUD"})
