"""Unit tests for workspace.config module."""

import pytest

from src.workspace.config import ConfigLoader, FeatureFlags, WorkspaceConfig
from src.workspace.errors import ConfigError


class TestFeatureFlags:
    """Test cases for FeatureFlags."""

    def test_defaults_are_off(self):
        flags = FeatureFlags()

        assert flags.folder_publish_enabled is True
        assert flags.is_enabled("enable_lakehouse_unpublish") is False

    def test_from_names_enables_flags(self):
        flags = FeatureFlags.from_names(["enable_lakehouse_unpublish", "disable_workspace_folder_publish"])

        assert flags.enable_lakehouse_unpublish is True
        assert flags.folder_publish_enabled is False

    def test_unknown_flag_raises(self):
        """Unknown flag names are rejected rather than ignored."""
        with pytest.raises(ConfigError, match="feature_flags"):
            FeatureFlags.from_names(["enable_everything"])


class TestConfigLoader:
    """Test cases for ConfigLoader."""

    def test_load_full_config(self, tmp_path):
        config_file = tmp_path / "sync.yaml"
        config_file.write_text(
            "workspace_id: 8b6e2c7a-4c1f-4e3a-9d3a-0f6f1c2b9a11\n"
            "repository_directory: ./workspace\n"
            "environment: PROD\n"
            "item_types: [Notebook, DataPipeline]\n"
            "feature_flags: [enable_warehouse_unpublish]\n"
            "item_name_exclude_regex: '^DEV_'\n",
            encoding="utf-8",
        )

        config = ConfigLoader.load(str(config_file))

        assert config.workspace_id == "8b6e2c7a-4c1f-4e3a-9d3a-0f6f1c2b9a11"
        assert config.repository_directory == "./workspace"
        assert config.environment == "PROD"
        assert config.item_types == ["Notebook", "DataPipeline"]
        assert config.feature_flags.enable_warehouse_unpublish is True
        assert config.item_name_exclude_regex == "^DEV_"
        assert config.parameter_file is None

    def test_empty_file_returns_defaults(self, tmp_path):
        config_file = tmp_path / "sync.yaml"
        config_file.write_text("", encoding="utf-8")

        assert ConfigLoader.load(str(config_file)) == WorkspaceConfig()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            ConfigLoader.load(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml_raises(self, tmp_path):
        config_file = tmp_path / "sync.yaml"
        config_file.write_text("workspace_id: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            ConfigLoader.load(str(config_file))

    def test_unknown_field_raises(self, tmp_path):
        config_file = tmp_path / "sync.yaml"
        config_file.write_text("workspace: abc\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="Unknown fields: workspace"):
            ConfigLoader.load(str(config_file))

    def test_item_types_must_be_list(self, tmp_path):
        config_file = tmp_path / "sync.yaml"
        config_file.write_text("item_types: Notebook\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="item_types"):
            ConfigLoader.load(str(config_file))

    def test_non_mapping_raises(self, tmp_path):
        config_file = tmp_path / "sync.yaml"
        config_file.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="YAML dictionary"):
            ConfigLoader.load(str(config_file))
