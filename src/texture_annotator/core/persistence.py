"""Filesystem persistence for one workspace and mode."""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, Mapping, Optional, Sequence

from ..utils.workspace import Workspace
from ..workers.image_loader import scan_images
from .classes import RESERVED_CLASS, ClassListFile
from .config import AppConfig, ConfigManager
from .dataset import DatasetExporter, DatasetImage, SplitRatios
from .export import SavePayload
from .jsonl_store import JsonlStore
from .results import (
    ClassLoadResult,
    DatasetExportResult,
    ExistingData,
    ImageScanResult,
    OperationResult,
)
from .yolo_format import YOLOLabelWriter

logger = logging.getLogger(__name__)


class ProjectStorage:
    """
    Reads and writes every file the annotator uses.

    Paths follow the workspace's active mode, so switching the mode on the
    workspace redirects subsequent calls. No method raises on I/O failure;
    problems come back in the result objects.
    """

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.config_manager = ConfigManager(workspace.config_path)

    def detached(self) -> ProjectStorage:
        """
        Storage bound to a copy of the workspace.

        Later mode switches on the original workspace do not redirect it.
        """
        return ProjectStorage(self.workspace.copy())

    @property
    def class_file(self) -> ClassListFile:
        return ClassListFile(self.workspace.classes_path)

    @property
    def jsonl_store(self) -> JsonlStore:
        return JsonlStore(self.workspace.jsonl_path, self.workspace.full_jsonl_path)

    def load_images(self) -> ImageScanResult:
        return scan_images(self.workspace.images_dir)

    def load_classes(self) -> ClassLoadResult:
        """Load ``classes.txt``, inferring it from saved records when missing."""
        class_file = self.class_file
        records = []
        if not class_file.path.exists():
            existing = self.load_existing_data()
            if existing.success:
                records = existing.records
        return class_file.load(records)

    def save_classes(self, classes: Sequence[str]) -> OperationResult:
        return self.class_file.save(classes)

    def ensure_reserved_class(self) -> bool:
        """Add the reserved class to an existing class list."""
        return self.class_file.ensure_class(RESERVED_CLASS)

    def load_config(self) -> AppConfig:
        return self.config_manager.load()

    def save_config(self, config: AppConfig) -> AppConfig:
        """
        Reconcile and store a configuration.

        Returns:
            The merged configuration that was written
        """
        merged = AppConfig.from_dict(config.to_dict())
        if not self.config_manager.save(merged):
            logger.warning("Configuration could not be written, keeping it in memory")
        return merged

    def load_existing_data(self) -> ExistingData:
        return self.jsonl_store.load_existing()

    def save_jsonl(self, filtered: Sequence[Dict[str, Any]], full: Sequence[Dict[str, Any]]) -> OperationResult:
        return self.jsonl_store.save(filtered, full)

    def save_yolo_txt_batch(self, per_image_lines: Mapping[str, Sequence[str]]) -> OperationResult:
        return YOLOLabelWriter(self.workspace.labels_dir).write_batch(per_image_lines)

    def save_payload(self, payload: SavePayload) -> OperationResult:
        """
        Write records, then label files.

        Labels are skipped when the records could not be written.
        """
        jsonl_result = self.save_jsonl(payload.filtered, payload.full)
        if not jsonl_result.success:
            return jsonl_result
        return self.save_yolo_txt_batch(payload.labels)

    def export_dataset(
        self,
        images: Sequence[DatasetImage],
        labels: Mapping[str, Sequence[str]],
        classes: Sequence[str],
        splits: Optional[SplitRatios] = None,
        expand_orientations: bool = False,
        rng: Optional[random.Random] = None
    ) -> DatasetExportResult:
        """
        Export a split dataset for the active mode.

        Orientation expansion only applies in orientation-aware modes.
        """
        expand = expand_orientations and self.workspace.mode.orientation_aware
        exporter = DatasetExporter(self.workspace.dataset_dir, self.workspace.dataset_yaml_path)
        return exporter.export(images, labels, classes, splits, expand, rng)
