"""
Unit tests for configuration loading and the configuration singleton.
"""

import pytest
import toml

from perfwatch.config import (
    clear_config_cache,
    get_config,
    get_config_info,
    is_config_loaded,
    set_config_path,
)
from perfwatch.validation import ValidationError


@pytest.mark.unit
class TestConfigManager:
    """Test cases for get_config() and friends."""

    def test_load_from_custom_path(self, config_files):
        set_config_path(config_files["config"])

        config = get_config()

        assert config.monitor.process_name == "Service"
        assert config.monitor.thresholds.memory_mb == 1024
        assert config.logging.console_echo is False
        assert is_config_loaded()

    def test_config_is_cached(self, config_files):
        set_config_path(config_files["config"])
        assert get_config() is get_config()

    def test_clear_cache_reloads(self, config_files, sample_config_data):
        set_config_path(config_files["config"])
        first = get_config()

        sample_config_data["monitor"]["collection"]["interval_ms"] = 250
        with open(config_files["config"], "w") as f:
            toml.dump(sample_config_data, f)
        clear_config_cache()

        second = get_config()
        assert second is not first
        assert second.monitor.interval_ms == 250

    def test_missing_file(self, temp_dir):
        set_config_path(temp_dir / "missing.toml")

        with pytest.raises(FileNotFoundError):
            get_config()
        assert not is_config_loaded()

    def test_invalid_values_raise(self, config_files, sample_config_data):
        sample_config_data["monitor"]["collection"]["interval_ms"] = 1
        with open(config_files["config"], "w") as f:
            toml.dump(sample_config_data, f)
        set_config_path(config_files["config"])

        with pytest.raises(ValidationError):
            get_config()

    def test_config_info(self, config_files):
        set_config_path(config_files["config"])
        get_config()

        info = get_config_info()

        assert info["config_loaded"] is True
        assert info["config_path"] == str(config_files["config"])
        assert info["named_counters_count"] == 2

    def test_default_config_file_loads(self, monkeypatch, temp_dir):
        from perfwatch.config import manager

        monkeypatch.chdir(temp_dir)
        clear_config_cache()

        config = get_config()

        assert manager._CONFIG_FILE_PATH.name == "config.toml"
        assert config.monitor.enabled is True
        assert config.monitor.excluded_process_names == ["conhost"]
