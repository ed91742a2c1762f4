"""Export configuration panel."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from PyQt6.QtCore import pyqtSignal
from PyQt6.QtWidgets import (
    QCheckBox, QComboBox, QFormLayout, QGroupBox, QLabel, QPushButton,
    QScrollArea, QVBoxLayout, QWidget
)

from ..core.config import MISSING_POLICY_DEFAULT, MISSING_POLICY_SKIP, AppConfig
from ..core.models import ORIENTATIONS

logger = logging.getLogger(__name__)


class ExportConfigPanel(QWidget):
    """
    Dock panel editing the export settings of an AppConfig in place.

    Every edit updates the shared config object and emits ``config_changed``;
    the owner decides when to persist it.
    """

    config_changed = pyqtSignal()
    assign_default_requested = pyqtSignal()

    def __init__(self, config: AppConfig, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.config = config
        self._class_boxes: Dict[str, QCheckBox] = {}
        self._orientation_boxes: Dict[str, QCheckBox] = {}
        self._updating = False
        self._init_ui()

    def _init_ui(self) -> None:
        layout = QVBoxLayout(self)

        # Orientation options
        options_group = QGroupBox("Orientations")
        options_layout = QFormLayout(options_group)

        self.expand_check = QCheckBox("Export one class per orientation")
        self.expand_check.toggled.connect(self._on_expand_toggled)
        options_layout.addRow(self.expand_check)

        self.policy_combo = QComboBox()
        self.policy_combo.addItem("Use default (Top)", MISSING_POLICY_DEFAULT)
        self.policy_combo.addItem("Skip object", MISSING_POLICY_SKIP)
        self.policy_combo.currentIndexChanged.connect(self._on_policy_changed)
        options_layout.addRow("Missing orientation:", self.policy_combo)

        self.issues_label = QLabel()
        self.issues_label.setWordWrap(True)
        options_layout.addRow(self.issues_label)

        self.assign_button = QPushButton("Assign Top to all")
        self.assign_button.clicked.connect(self.assign_default_requested)
        options_layout.addRow(self.assign_button)

        layout.addWidget(options_group)

        # Orientation filter
        orientation_group = QGroupBox("Exported orientations")
        orientation_layout = QVBoxLayout(orientation_group)
        for orientation in ORIENTATIONS:
            key = str(orientation.id)
            box = QCheckBox(orientation.label)
            box.toggled.connect(lambda checked, k=key: self._on_orientation_toggled(k, checked))
            orientation_layout.addWidget(box)
            self._orientation_boxes[key] = box
        layout.addWidget(orientation_group)

        # Class filter
        class_group = QGroupBox("Exported classes")
        class_group_layout = QVBoxLayout(class_group)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        self._class_container = QWidget()
        self._class_layout = QVBoxLayout(self._class_container)
        self._class_layout.addStretch()
        scroll.setWidget(self._class_container)
        class_group_layout.addWidget(scroll)
        layout.addWidget(class_group, 1)

        self.set_orientation_issues(0)
        self.refresh()

    # === Public API ===

    def set_config(self, config: AppConfig) -> None:
        self.config = config
        self.refresh()

    def set_classes(self, classes: Iterable[str]) -> None:
        """Rebuild the class check boxes."""
        for box in self._class_boxes.values():
            self._class_layout.removeWidget(box)
            box.deleteLater()
        self._class_boxes.clear()

        for name in classes:
            box = QCheckBox(name)
            box.toggled.connect(lambda checked, n=name: self._on_class_toggled(n, checked))
            self._class_layout.insertWidget(self._class_layout.count() - 1, box)
            self._class_boxes[name] = box
        self.refresh()

    def set_orientation_aware(self, aware: bool) -> None:
        """Orientation settings only matter in orientation-aware modes."""
        for widget in (self.expand_check, self.policy_combo, self.assign_button):
            widget.setEnabled(aware)
        for box in self._orientation_boxes.values():
            box.setEnabled(aware)

    def set_orientation_issues(self, count: int) -> None:
        """Show how many objects still use an automatically filled orientation."""
        visible = count > 0 and self.config.export.expand_orientations
        self.issues_label.setText(f"{count} objects without orientation")
        self.issues_label.setVisible(visible)
        self.assign_button.setVisible(visible)

    def refresh(self) -> None:
        """Reflect the current config in the widgets without emitting changes."""
        self._updating = True
        try:
            export = self.config.export
            self.expand_check.setChecked(export.expand_orientations)
            index = self.policy_combo.findData(export.missing_orientation_policy)
            self.policy_combo.setCurrentIndex(max(0, index))
            for key, box in self._orientation_boxes.items():
                box.setChecked(export.filter.orientations.get(key, True))
            for name, box in self._class_boxes.items():
                box.setChecked(export.filter.classes.get(name, True))
        finally:
            self._updating = False

    # === Slots ===

    def _on_expand_toggled(self, checked: bool) -> None:
        if self._updating:
            return
        self.config.export.expand_orientations = checked
        self.config_changed.emit()

    def _on_policy_changed(self, index: int) -> None:
        if self._updating:
            return
        policy = self.policy_combo.itemData(index)
        if policy:
            self.config.export.missing_orientation_policy = policy
            self.config_changed.emit()

    def _on_orientation_toggled(self, key: str, checked: bool) -> None:
        if self._updating:
            return
        self.config.export.filter.orientations[key] = checked
        self.config_changed.emit()

    def _on_class_toggled(self, name: str, checked: bool) -> None:
        if self._updating:
            return
        self.config.export.filter.classes[name] = checked
        logger.debug(f"Export filter for class {name}: {checked}")
        self.config_changed.emit()
