"""Tests for layered configuration."""

import pytest
import yaml
from infragraph.config import load_config, load_engine_config
from infragraph.utils.errors import ConfigError


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Empty home and working directory so only packaged defaults apply."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    return work


def _write(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data))
    return path


class TestLoadEngineConfig:
    """Test defaults, layering and validation."""

    def test_defaults(self):
        settings = load_engine_config()

        assert settings.executor.concurrency == 10
        assert settings.executor.retry.max_attempts == 4
        assert settings.state.path == "infragraph.state.json"
        assert settings.plan.refresh is True

    def test_project_config_overrides_defaults(self, isolated):
        _write(isolated / ".infragraph" / "config.yaml", {"executor": {"concurrency": 3}})
        settings = load_engine_config()

        assert settings.executor.concurrency == 3
        assert settings.executor.retry.max_attempts == 4

    def test_user_config_below_project_config(self, tmp_path, isolated):
        _write(tmp_path / "home" / ".infragraph" / "config.yaml", {
            "executor": {"concurrency": 2},
            "state": {"path": "user.json"},
        })
        _write(isolated / ".infragraph" / "config.yaml", {"executor": {"concurrency": 5}})
        settings = load_engine_config()

        assert settings.executor.concurrency == 5
        assert settings.state.path == "user.json"

    def test_explicit_file_and_overrides(self, tmp_path):
        explicit = _write(tmp_path / "ci.yaml", {"plan": {"refresh": False}, "executor": {"concurrency": 8}})
        settings = load_engine_config(str(explicit), overrides={"executor": {"concurrency": 1}})

        assert settings.plan.refresh is False
        assert settings.executor.concurrency == 1

    def test_invalid_value(self):
        with pytest.raises(ConfigError):
            load_engine_config(overrides={"executor": {"concurrency": 0}})

    def test_unknown_section(self):
        with pytest.raises(ConfigError):
            load_engine_config(overrides={"telemetry": {"enabled": True}})

    def test_retry_bounds(self):
        with pytest.raises(ConfigError):
            load_engine_config(overrides={"executor": {"retry": {"base_delay": 10, "max_delay": 1}}})


class TestConfigFiles:
    """Test reading and writing config files."""

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("executor: [unclosed")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_config(str(path))
