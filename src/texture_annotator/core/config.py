"""Configuration management for Texture Annotator."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml

from ..utils.fileio import atomic_write_text, ensure_dir
from .models import DISABLED_BY_DEFAULT_CLASSES, ORIENTATIONS

logger = logging.getLogger(__name__)

# Default configuration file path, relative to the workspace root
DEFAULT_CONFIG_PATH = Path("config") / "config.yaml"

MISSING_POLICY_DEFAULT = "default"
MISSING_POLICY_SKIP = "skip"
MISSING_ORIENTATION_POLICIES = (MISSING_POLICY_DEFAULT, MISSING_POLICY_SKIP)

VALID_MODES = ("minecraft", "texture")


def _default_orientation_filter() -> Dict[str, bool]:
    return {str(o.id): True for o in ORIENTATIONS}


def _bool_map(data: Any) -> Dict[str, bool]:
    """Keep only entries whose value is a boolean."""
    if not isinstance(data, Mapping):
        return {}
    return {str(key): value for key, value in data.items() if isinstance(value, bool)}


@dataclass
class ExportFilter:
    """
    Per-class and per-orientation export switches.

    Orientation keys are the orientation id as a string ("0".."5").
    """

    classes: Dict[str, bool] = field(default_factory=dict)
    orientations: Dict[str, bool] = field(default_factory=_default_orientation_filter)

    def to_dict(self) -> Dict[str, Any]:
        return {"classes": dict(self.classes), "orientations": dict(self.orientations)}

    @classmethod
    def from_dict(cls, data: Any) -> ExportFilter:
        data = data if isinstance(data, Mapping) else {}
        orientations = _default_orientation_filter()
        orientations.update(_bool_map(data.get("orientations")))
        return cls(classes=_bool_map(data.get("classes")), orientations=orientations)


@dataclass
class ExportConfig:
    """Settings that shape label and dataset export."""

    expand_orientations: bool = False
    missing_orientation_policy: str = MISSING_POLICY_DEFAULT
    filter: ExportFilter = field(default_factory=ExportFilter)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expandOrientations": self.expand_orientations,
            "missingOrientationPolicy": self.missing_orientation_policy,
            "filter": self.filter.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> ExportConfig:
        data = data if isinstance(data, Mapping) else {}
        policy = data.get("missingOrientationPolicy", MISSING_POLICY_DEFAULT)
        if policy not in MISSING_ORIENTATION_POLICIES:
            logger.warning(f"Unknown missing orientation policy {policy!r}, using default")
            policy = MISSING_POLICY_DEFAULT
        return cls(
            expand_orientations=data.get("expandOrientations") is True,
            missing_orientation_policy=policy,
            filter=ExportFilter.from_dict(data.get("filter")),
        )


@dataclass
class AppConfig:
    """
    Application configuration settings.

    ``from_dict`` is the reconciliation step: any partial or malformed
    mapping is merged over the defaults, so the result is always complete.
    """

    export: ExportConfig = field(default_factory=ExportConfig)
    default_mode: Optional[str] = None
    theme: str = "default"
    recent_files: List[str] = field(default_factory=list)
    last_opened: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "export": self.export.to_dict(),
            "defaultMode": self.default_mode,
            "theme": self.theme,
            "recentFiles": list(self.recent_files),
            "lastOpened": self.last_opened,
        }

    @classmethod
    def from_dict(cls, data: Any) -> AppConfig:
        """Create config from dictionary, falling back to defaults per key."""
        data = data if isinstance(data, Mapping) else {}

        default_mode = data.get("defaultMode")
        if default_mode not in VALID_MODES:
            default_mode = None

        theme = data.get("theme")
        if not isinstance(theme, str) or not theme:
            theme = "default"

        recent_files = data.get("recentFiles")
        if not isinstance(recent_files, list):
            recent_files = []

        last_opened = data.get("lastOpened")
        if not isinstance(last_opened, str):
            last_opened = None

        return cls(
            export=ExportConfig.from_dict(data.get("export")),
            default_mode=default_mode,
            theme=theme,
            recent_files=[str(item) for item in recent_files],
            last_opened=last_opened,
        )

    def sync_with_classes(self, classes: Iterable[str]) -> bool:
        """
        Give every known class and orientation an explicit filter entry.

        Missing classes are enabled, except reserved classes that start
        disabled. Existing entries are never changed.

        Returns:
            True if any entry was added
        """
        changed = False
        class_filter = self.export.filter.classes
        for name in classes:
            if name not in class_filter:
                class_filter[name] = name not in DISABLED_BY_DEFAULT_CLASSES
                changed = True

        orientation_filter = self.export.filter.orientations
        for orientation in ORIENTATIONS:
            key = str(orientation.id)
            if not isinstance(orientation_filter.get(key), bool):
                orientation_filter[key] = True
                changed = True

        return changed


class ConfigManager:
    """
    Manager for loading and saving application configuration.

    Handles YAML serialization and recovers from missing or corrupt files
    by writing defaults.
    """

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Optional[AppConfig] = None

    @property
    def config(self) -> AppConfig:
        """Get the current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def backup_path(self) -> Path:
        return self.config_path.with_name(self.config_path.name + ".bak")

    def load(self) -> AppConfig:
        """
        Load configuration from file.

        A missing file is created with defaults. A file that cannot be decoded
        or parsed, or does not hold a mapping, is moved aside to ``<name>.bak`` and
        replaced by defaults.

        Returns:
            AppConfig instance with loaded or default values
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, writing defaults")
            return self._reset_to_defaults()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            logger.error(f"Error parsing config file: {e}")
            return self._backup_and_reset()
        except OSError as e:
            logger.error(f"Error loading config: {e}")
            self._config = AppConfig()
            return self._config

        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            logger.error(f"Config file {self.config_path} does not contain a mapping")
            return self._backup_and_reset()

        self._config = AppConfig.from_dict(data)
        logger.info(f"Loaded configuration from {self.config_path}")
        return self._config

    def save(self, config: Optional[AppConfig] = None) -> bool:
        """
        Save configuration to file.

        Args:
            config: Configuration to save, or use current config

        Returns:
            True if save was successful
        """
        if config is not None:
            self._config = config

        if self._config is None:
            logger.warning("No configuration to save")
            return False

        try:
            ensure_dir(self.config_path.parent)
            content = yaml.safe_dump(self._config.to_dict(), default_flow_style=False, sort_keys=False)
            atomic_write_text(self.config_path, content)
            logger.info(f"Saved configuration to {self.config_path}")
            return True
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error saving config: {e}")
            return False

    def _reset_to_defaults(self) -> AppConfig:
        self._config = AppConfig()
        self.save()
        return self._config

    def _backup_and_reset(self) -> AppConfig:
        try:
            os.replace(self.config_path, self.backup_path)
            logger.warning(f"Corrupt config moved to {self.backup_path}")
        except OSError as e:
            logger.error(f"Could not back up corrupt config: {e}")
        return self._reset_to_defaults()
