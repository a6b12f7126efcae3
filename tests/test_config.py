"""
Unit tests for configuration loading and validation.

Tests defaults, strict key checking and error handling for app configs.
"""

import os
import tempfile

import pytest
import yaml

from ecoprompt.config.loader import (
    CONFIG_ENV_VAR,
    AppConfig,
    ReferenceConfig,
    StorageConfig,
    load_app_config,
    resolve_config_path,
)
from ecoprompt.core.modes import Settings
from ecoprompt.core.reference import DEFAULT_REFERENCE_PATH


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "ecoprompt.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a full configuration loads correctly."""
        config_path = self._write_config({
            "storage": {"path": "/tmp/footprint.db"},
            "reference": {"source": "https://example.com/energy.json", "timeout_seconds": 3},
            "defaults": {"mode": "Small", "theme": "ocean", "grid_intensity": 250},
        })

        config = load_app_config(config_path)

        assert config.storage == StorageConfig(path="/tmp/footprint.db")
        assert config.reference == ReferenceConfig(source="https://example.com/energy.json", timeout_seconds=3.0)
        assert config.defaults == Settings(mode="small", theme="ocean", grid_intensity=250.0)

    def test_partial_config_uses_defaults(self):
        """Test that omitted sections fall back to defaults."""
        config = load_app_config(self._write_config({"defaults": {"mode": "large"}}))

        assert config.storage == StorageConfig()
        assert config.reference.source == str(DEFAULT_REFERENCE_PATH)
        assert config.defaults == Settings(mode="large")

    def test_empty_config_uses_defaults(self):
        """Test that an empty file yields the built-in defaults."""
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, 'w').close()
        assert load_app_config(config_path) == AppConfig()

    def test_missing_explicit_file_raises_error(self):
        """Test that an explicitly named missing file is an error."""
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_app_config(os.path.join(self.temp_dir, "nope.yaml"))

    def test_missing_default_file_uses_defaults(self, monkeypatch):
        """Test that no config at the default location is not an error."""
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.chdir(self.temp_dir)
        assert load_app_config() == AppConfig()

    def test_env_var_selects_file(self, monkeypatch):
        """Test that the environment variable points at the config file."""
        config_path = self._write_config({"storage": {"path": "env.db"}}, "custom.yaml")
        monkeypatch.setenv(CONFIG_ENV_VAR, config_path)

        assert str(resolve_config_path()) == config_path
        assert load_app_config().storage.path == "env.db"

    def test_invalid_yaml_raises_error(self):
        """Test that malformed YAML is reported."""
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("storage: [unclosed\n")
        with pytest.raises(yaml.YAMLError, match="Invalid YAML"):
            load_app_config(config_path)

    def test_non_mapping_config_raises_error(self):
        """Test that a top-level list is rejected."""
        with pytest.raises(ValueError, match="must be a mapping"):
            load_app_config(self._write_config(["storage"]))

    def test_unknown_top_level_keys_raise_error(self):
        """Test that unknown top-level keys are rejected."""
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_app_config(self._write_config({"budget": {"daily": 1}}))

    def test_unknown_section_keys_raise_error(self):
        """Test that unknown keys inside a section are rejected."""
        with pytest.raises(ValueError, match="Unknown keys in defaults"):
            load_app_config(self._write_config({"defaults": {"model": "gpt-4"}}))

    def test_invalid_section_type_raises_error(self):
        """Test that sections must be dictionaries."""
        with pytest.raises(ValueError, match="'storage' must be a dictionary"):
            load_app_config(self._write_config({"storage": "footprint.db"}))

    def test_invalid_mode_raises_error(self):
        """Test that only known modes are accepted."""
        with pytest.raises(ValueError, match="must be one of"):
            load_app_config(self._write_config({"defaults": {"mode": "turbo"}}))

    @pytest.mark.parametrize("grid", [0, -10, "high", True])
    def test_invalid_grid_intensity_raises_error(self, grid):
        """Test that grid intensity must be a positive number."""
        with pytest.raises(ValueError, match="grid_intensity"):
            load_app_config(self._write_config({"defaults": {"grid_intensity": grid}}))

    @pytest.mark.parametrize("timeout", [0, -1, "soon"])
    def test_invalid_timeout_raises_error(self, timeout):
        """Test that the reference timeout must be positive."""
        with pytest.raises(ValueError, match="timeout_seconds"):
            load_app_config(self._write_config({"reference": {"timeout_seconds": timeout}}))

    def test_empty_storage_path_raises_error(self):
        """Test that the store path cannot be blank."""
        with pytest.raises(ValueError, match="non-empty string"):
            load_app_config(self._write_config({"storage": {"path": "  "}}))
