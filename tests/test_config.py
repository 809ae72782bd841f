"""
Tests for configuration loading.
"""

import yaml

from pixelfruit.config import (
    get_config_value, get_default_config, load_config, save_config, update_config_value
)
from pixelfruit.preview import EngineConfig


class TestLoadConfig:
    """Test YAML loading and merging."""

    def test_packaged_config_matches_defaults(self):
        """The bundled config.yaml carries the default values."""
        assert load_config() == get_default_config()

    def test_missing_file_uses_defaults(self, tmp_path):
        """A missing file falls back to defaults."""
        assert load_config(tmp_path / "absent.yaml") == get_default_config()

    def test_partial_file_is_merged(self, tmp_path):
        """Values from the file override defaults key by key."""
        path = tmp_path / "config.yaml"
        path.write_text("cache:\n  max_size: 9\nprogressive:\n  enabled: false\n")

        config = load_config(path)
        assert config['cache']['max_size'] == 9
        assert config['cache']['ttl_seconds'] == 300
        assert config['progressive']['enabled'] is False
        assert config['progressive']['quality_steps'] == 3

    def test_env_var_expansion(self, tmp_path, monkeypatch):
        """${VAR} references are expanded and typed."""
        monkeypatch.setenv('PIXELFRUIT_CACHE_SIZE', '12')
        monkeypatch.delenv('PIXELFRUIT_UNSET', raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("cache:\n  max_size: ${PIXELFRUIT_CACHE_SIZE}\n"
                        "worker:\n  thread_name_prefix: ${PIXELFRUIT_UNSET}\n")

        config = load_config(path)
        assert config['cache']['max_size'] == 12
        assert config['worker']['thread_name_prefix'] == '${PIXELFRUIT_UNSET}'

    def test_invalid_yaml_uses_defaults(self, tmp_path):
        """Unparseable files fall back to defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("cache: [unclosed\n")
        assert load_config(path) == get_default_config()

    def test_non_mapping_uses_defaults(self, tmp_path):
        """A file that is not a mapping falls back to defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        assert load_config(path) == get_default_config()

    def test_save_round_trip(self, tmp_path):
        """Saved configs load back unchanged."""
        config = get_default_config()
        config['presets'] = {'soft': {'contrast': -20}}
        path = tmp_path / "saved.yaml"

        assert save_config(config, path)
        assert yaml.safe_load(path.read_text())['presets'] == {'soft': {'contrast': -20}}
        assert load_config(path) == config

    def test_engine_config_from_loaded_file(self, tmp_path):
        """Loaded configuration builds engine settings."""
        path = tmp_path / "config.yaml"
        path.write_text("cache:\n  ttl_seconds: 42\nprogressive:\n  quality_steps: 5\n")

        engine_config = EngineConfig.from_config(load_config(path))
        assert engine_config.cache.ttl == 42.0
        assert engine_config.progressive.quality_steps == 5
        assert engine_config.thread_name_prefix == 'PixelFruit-Worker'


class TestConfigValues:
    """Test dotted key access."""

    def test_get_nested(self):
        """Dotted paths read nested values."""
        config = get_default_config()
        assert get_config_value(config, 'replace.default_tolerance') == 60
        assert get_config_value(config, 'replace.missing', 'x') == 'x'
        assert get_config_value(config, 'cache.max_size.deeper', 0) == 0

    def test_update_creates_levels(self):
        """Updating a dotted path creates missing levels."""
        config = {}
        update_config_value(config, 'progressive.step_delay', 0.1)
        assert config == {'progressive': {'step_delay': 0.1}}
