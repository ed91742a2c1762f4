"""Workspace directory layout and annotation modes."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .fileio import ensure_dir

logger = logging.getLogger(__name__)

# Default workspace location
DEFAULT_WORKSPACE_ROOT = Path.home() / "Documents" / "DataTextureGUI"

MODE_MINECRAFT = "minecraft"
MODE_TEXTURE = "texture"


@dataclass(frozen=True)
class ModeSettings:
    """
    File names used by one annotation mode.

    ``orientation_aware`` modes honour orientation expansion on export.
    """

    key: str
    title: str
    image_dir: str
    jsonl_file: str
    full_jsonl_file: str
    yaml_file: str
    dataset_dir: str
    orientation_aware: bool


MODE_SETTINGS: Dict[str, ModeSettings] = {
    MODE_MINECRAFT: ModeSettings(
        key=MODE_MINECRAFT,
        title="Minecraft textures",
        image_dir="unboxedTextures",
        jsonl_file="trainDataMinecraft.jsonl",
        full_jsonl_file="trainDataMinecraft.full.jsonl",
        yaml_file="datasetMinecraft.yaml",
        dataset_dir="minecraftDataset",
        orientation_aware=True,
    ),
    MODE_TEXTURE: ModeSettings(
        key=MODE_TEXTURE,
        title="2D textures",
        image_dir="normalTextures",
        jsonl_file="trainDataNormal.jsonl",
        full_jsonl_file="trainDataNormal.full.jsonl",
        yaml_file="datasetNormal.yaml",
        dataset_dir="textureDataset",
        orientation_aware=False,
    ),
}


def get_mode_settings(mode: Optional[str]) -> ModeSettings:
    """Settings for a mode name, falling back to the Minecraft mode."""
    return MODE_SETTINGS.get(mode or "", MODE_SETTINGS[MODE_MINECRAFT])


def copy_if_missing(source: Path, destination: Path) -> int:
    """
    Recursively copy files that do not exist at the destination yet.

    Returns:
        Number of files copied
    """
    ensure_dir(destination)
    if not source.is_dir():
        return 0

    copied = 0
    for entry in source.iterdir():
        target = destination / entry.name
        if entry.is_dir():
            copied += copy_if_missing(entry, target)
        elif not target.exists():
            shutil.copyfile(entry, target)
            copied += 1
    return copied


class Workspace:
    """
    The user's data folder.

    Layout::

        <root>/
            unboxedTextures/   images for the Minecraft mode
            normalTextures/    images for the 2D texture mode
            labels/            YOLO label files of the active mode
            trainingData/      JSONL records, dataset manifests and datasets
            config/            config.yaml
            classes.txt
    """

    def __init__(self, root: Path = DEFAULT_WORKSPACE_ROOT, mode: str = MODE_MINECRAFT) -> None:
        self.root = Path(root)
        self.mode = get_mode_settings(mode)

    @property
    def unboxed_dir(self) -> Path:
        return self.root / "unboxedTextures"

    @property
    def normal_dir(self) -> Path:
        return self.root / "normalTextures"

    @property
    def labels_dir(self) -> Path:
        return self.root / "labels"

    @property
    def training_dir(self) -> Path:
        return self.root / "trainingData"

    @property
    def config_dir(self) -> Path:
        return self.root / "config"

    @property
    def directories(self) -> List[Path]:
        return [self.unboxed_dir, self.normal_dir, self.labels_dir, self.training_dir, self.config_dir]

    @property
    def config_path(self) -> Path:
        return self.config_dir / "config.yaml"

    @property
    def classes_path(self) -> Path:
        return self.root / "classes.txt"

    @property
    def images_dir(self) -> Path:
        return self.root / self.mode.image_dir

    @property
    def jsonl_path(self) -> Path:
        return self.training_dir / self.mode.jsonl_file

    @property
    def full_jsonl_path(self) -> Path:
        return self.training_dir / self.mode.full_jsonl_file

    @property
    def dataset_dir(self) -> Path:
        return self.training_dir / self.mode.dataset_dir

    @property
    def dataset_yaml_path(self) -> Path:
        return self.training_dir / self.mode.yaml_file

    def copy(self) -> Workspace:
        """A workspace on the same root, fixed to the current mode."""
        return Workspace(self.root, self.mode.key)

    def set_mode(self, mode: str) -> ModeSettings:
        """Switch the active mode; unknown names select the Minecraft mode."""
        if mode not in MODE_SETTINGS:
            logger.warning(f"Unknown mode {mode!r}, using {MODE_MINECRAFT}")
        self.mode = get_mode_settings(mode)
        return self.mode

    def ensure_external_data(self, example_dirs: Optional[Mapping[str, Path]] = None) -> bool:
        """
        Create the workspace folders and seed them with example textures.

        Existing files are never overwritten.

        Args:
            example_dirs: Mode name to a directory of bundled example images

        Returns:
            True if the workspace root did not exist before (first run)
        """
        first_setup = not self.root.exists()
        ensure_dir(self.root)
        for directory in self.directories:
            ensure_dir(directory)

        for mode, source in (example_dirs or {}).items():
            target = self.root / get_mode_settings(mode).image_dir
            try:
                copied = copy_if_missing(Path(source), target)
            except OSError as e:
                logger.error(f"Error copying example images from {source}: {e}")
                continue
            if copied:
                logger.info(f"Copied {copied} example images into {target}")

        if first_setup:
            logger.info(f"Created workspace at {self.root}")
        return first_setup
