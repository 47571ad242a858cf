"""
Unit tests for core.yaml module.

Tests:
- Loading a mapping document
- Missing file raises FileNotFoundError
- Empty file yields an empty dict
- Non-mapping documents raise ConfigurationError
- Invalid syntax raises yaml.YAMLError
"""

import pytest
import yaml

from nostrbridge.core.exceptions import ConfigurationError
from nostrbridge.core.yaml import load_yaml


class TestLoadYaml:
    """load_yaml()."""

    def test_mapping(self, tmp_path):
        path = tmp_path / "bridge.yaml"
        path.write_text("relays:\n  - wss://nos.lol\ninterval: 30\n", encoding="utf-8")
        assert load_yaml(path) == {"relays": ["wss://nos.lol"], "interval": 30}

    def test_accepts_str_path(self, tmp_path):
        path = tmp_path / "bridge.yaml"
        path.write_text("dm_policy: open\n", encoding="utf-8")
        assert load_yaml(str(path)) == {"dm_policy": "open"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_yaml(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_yaml(path) == {}

    def test_list_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_yaml(path)

    def test_invalid_syntax(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("relays: [wss://nos.lol\n", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_yaml(path)

    def test_safe_load_rejects_python_tags(self, tmp_path):
        path = tmp_path / "unsafe.yaml"
        path.write_text("x: !!python/object/apply:os.system ['true']\n", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_yaml(path)
