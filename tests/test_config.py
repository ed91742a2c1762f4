"""Tests for configuration management."""

import pytest
import yaml

from texture_annotator.core.config import (
    MISSING_POLICY_DEFAULT,
    MISSING_POLICY_SKIP,
    AppConfig,
    ConfigManager,
    ExportFilter,
)


class TestAppConfig:
    """Tests for AppConfig."""

    def test_default_config(self):
        """Test creating config with defaults."""
        config = AppConfig()

        assert config.export.expand_orientations is False
        assert config.export.missing_orientation_policy == MISSING_POLICY_DEFAULT
        assert config.export.filter.classes == {}
        assert config.export.filter.orientations == {str(i): True for i in range(6)}
        assert config.default_mode is None

    def test_to_dict(self):
        """Test converting config to dictionary."""
        config = AppConfig()
        config.export.expand_orientations = True

        data = config.to_dict()

        assert data["export"]["expandOrientations"] is True
        assert data["export"]["missingOrientationPolicy"] == "default"
        assert data["export"]["filter"]["orientations"]["0"] is True
        assert "defaultMode" in data

    def test_from_dict(self):
        """Test creating config from dictionary."""
        data = {
            "export": {
                "expandOrientations": True,
                "missingOrientationPolicy": "skip",
                "filter": {"classes": {"head": False}, "orientations": {"2": False}},
            },
            "defaultMode": "texture",
        }

        config = AppConfig.from_dict(data)

        assert config.export.expand_orientations is True
        assert config.export.missing_orientation_policy == MISSING_POLICY_SKIP
        assert config.export.filter.classes == {"head": False}
        assert config.export.filter.orientations["2"] is False
        assert config.export.filter.orientations["0"] is True
        assert config.default_mode == "texture"

    @pytest.mark.parametrize("data", [None, [], "text", {"export": "nope"}, {"export": {"filter": 3}}])
    def test_from_malformed_dict(self, data):
        """Anything malformed falls back to defaults."""
        assert AppConfig.from_dict(data) == AppConfig()

    def test_reconciles_bad_values(self):
        config = AppConfig.from_dict({
            "export": {
                "expandOrientations": "yes",
                "missingOrientationPolicy": "ask",
                "filter": {"classes": {"head": "off", "body": True}},
            },
            "defaultMode": "3d",
            "recentFiles": "a.png",
        })

        assert config.export.expand_orientations is False
        assert config.export.missing_orientation_policy == MISSING_POLICY_DEFAULT
        assert config.export.filter.classes == {"body": True}
        assert config.default_mode is None
        assert config.recent_files == []

    def test_round_trip(self):
        config = AppConfig()
        config.export.filter.classes["head"] = False
        config.last_opened = "a.png"

        assert AppConfig.from_dict(config.to_dict()) == config


class TestSyncWithClasses:
    """Tests for explicit filter entries."""

    def test_adds_missing_classes(self):
        config = AppConfig()

        assert config.sync_with_classes(["head", "aletas"])
        assert config.export.filter.classes == {"head": True, "aletas": False}

    def test_keeps_existing_entries(self):
        config = AppConfig()
        config.export.filter.classes["head"] = False

        config.sync_with_classes(["head"])

        assert config.export.filter.classes["head"] is False

    def test_no_change(self):
        config = AppConfig()
        config.sync_with_classes(["head"])

        assert not config.sync_with_classes(["head"])

    def test_restores_orientation_entries(self):
        config = AppConfig()
        config.export.filter = ExportFilter(orientations={"0": False})

        assert config.sync_with_classes([])
        assert config.export.filter.orientations["0"] is False
        assert set(config.export.filter.orientations) == {str(i) for i in range(6)}


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_missing_file_writes_defaults(self, tmp_path):
        config_path = tmp_path / "config" / "config.yaml"
        manager = ConfigManager(config_path)

        config = manager.load()

        assert config == AppConfig()
        assert config_path.exists()
        assert yaml.safe_load(config_path.read_text())["export"]["expandOrientations"] is False

    def test_save_and_load(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        manager = ConfigManager(config_path)
        config = AppConfig(default_mode="minecraft")
        config.export.missing_orientation_policy = MISSING_POLICY_SKIP

        assert manager.save(config)
        loaded = ConfigManager(config_path).load()

        assert loaded.default_mode == "minecraft"
        assert loaded.export.missing_orientation_policy == MISSING_POLICY_SKIP
        assert not (tmp_path / "config.yaml.tmp").exists()

    def test_corrupt_file_is_backed_up(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("export: [unclosed\n")
        manager = ConfigManager(config_path)

        config = manager.load()

        assert config == AppConfig()
        assert manager.backup_path.read_text() == "export: [unclosed\n"
        assert yaml.safe_load(config_path.read_text())["theme"] == "default"

    def test_undecodable_file_is_backed_up(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_bytes(b"\xff\xfe\x00\x81 not yaml")
        manager = ConfigManager(config_path)

        config = manager.load()

        assert config == AppConfig()
        assert manager.backup_path.read_bytes() == b"\xff\xfe\x00\x81 not yaml"
        assert yaml.safe_load(config_path.read_text())["theme"] == "default"

    def test_non_mapping_is_backed_up(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("- just\n- a list\n")
        manager = ConfigManager(config_path)

        assert manager.load() == AppConfig()
        assert manager.backup_path.exists()

    def test_empty_file_gives_defaults(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("")

        assert ConfigManager(config_path).load() == AppConfig()

    def test_lazy_config_property(self, tmp_path):
        manager = ConfigManager(tmp_path / "config.yaml")

        assert manager.config is manager.config
