"""Main application window for Texture Annotator."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QActionGroup, QImage, QImageReader, QKeySequence, QShortcut
from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QStatusBar, QLabel, QDockWidget,
    QToolBar, QListWidget, QListWidgetItem, QPushButton, QComboBox,
    QFormLayout, QMessageBox, QInputDialog, QApplication
)

from ..core.alpha_mask import AlphaMask
from ..core.classes import sanitise_classes
from ..core.config import AppConfig
from ..core.models import ORIENTATIONS
from ..core.persistence import ProjectStorage
from ..core.results import ImageScanResult, OperationResult
from ..core.session import AnnotationSession, SaveTrigger
from ..utils.workspace import MODE_SETTINGS, Workspace
from ..workers.image_loader import ImageScanner
from ..workers.save_worker import SaveWorker
from .canvas import NOTICE_WARNING, AnnotationCanvas
from .config_panel import ExportConfigPanel

logger = logging.getLogger(__name__)

MAX_RECENT_FILES = 10
STATUS_TIMEOUT_MS = 5000


def increase_image_allocation_limit() -> None:
    """Remove image allocation limit for large images."""
    QImageReader.setAllocationLimit(0)


class MainWindow(QMainWindow):
    """
    Main application window for Texture Annotator.

    Provides:
    - Image list and navigation for the active mode
    - Polygon drawing and editing on the annotation canvas
    - Class and orientation selection
    - Export filters and orientation options
    - Background saving and dataset export
    """

    def __init__(self, workspace: Workspace) -> None:
        """
        Initialize the main window.

        Args:
            workspace: Workspace folder with its active mode
        """
        super().__init__()

        # Remove image allocation limit
        increase_image_allocation_limit()

        # Initialize managers
        self.workspace = workspace
        self.storage = ProjectStorage(workspace)
        self.session = AnnotationSession()

        # Workers
        self.image_scanner: Optional[ImageScanner] = None
        self.save_worker: Optional[SaveWorker] = None

        # UI elements (initialized in _init_ui)
        self.dock_widgets: Dict[str, QDockWidget] = {}
        self.canvas: Optional[AnnotationCanvas] = None
        self.config_panel: Optional[ExportConfigPanel] = None
        self.image_list: Optional[QListWidget] = None
        self.issue_list: Optional[QListWidget] = None
        self.class_combo: Optional[QComboBox] = None
        self.orientation_combo: Optional[QComboBox] = None
        self.mode_actions: Dict[str, QAction] = {}

        # Status bar elements
        self.status_bar: Optional[QStatusBar] = None
        self.mode_label: Optional[QLabel] = None
        self.file_label: Optional[QLabel] = None
        self.image_count_label: Optional[QLabel] = None

        # Load settings and initialize UI
        self._load_settings()
        self._init_ui()
        self._setup_connections()
        self._load_workspace()

        logger.info("MainWindow initialization complete")

    @property
    def config(self) -> AppConfig:
        """Get the current configuration."""
        return self.session.config

    def _load_settings(self) -> None:
        """Load the configuration and pick the remembered mode."""
        config = self.storage.load_config()
        if config.default_mode:
            self.workspace.set_mode(config.default_mode)
        self.session = AnnotationSession(config, orientation_aware=self.workspace.mode.orientation_aware)

    def _init_ui(self) -> None:
        """Initialize the user interface."""
        self.setGeometry(100, 100, 1280, 820)

        self.canvas = AnnotationCanvas()
        self.canvas.set_session(self.session)
        self.setCentralWidget(self.canvas)

        # Status bar
        self._create_status_bar()

        # Dock widgets
        self._create_dock_widgets()

        # Toolbar
        self._create_toolbar()

        # Menu bar
        self._create_menus()

        self._update_window_title()

    def _create_status_bar(self) -> None:
        """Create the status bar."""
        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)

        self.mode_label = QLabel()
        self.status_bar.addPermanentWidget(self.mode_label)

        self.file_label = QLabel()
        self.status_bar.addPermanentWidget(self.file_label)

        self.image_count_label = QLabel()
        self.status_bar.addPermanentWidget(self.image_count_label)

    def _add_dock(self, name: str, widget: QWidget, area: Qt.DockWidgetArea) -> None:
        dock = QDockWidget(name, self)
        dock.setObjectName(f"{name.replace(' ', '')}Dock")
        dock.setAllowedAreas(Qt.DockWidgetArea.LeftDockWidgetArea | Qt.DockWidgetArea.RightDockWidgetArea)
        dock.setWidget(widget)
        self.addDockWidget(area, dock)
        self.dock_widgets[name] = dock

    def _create_dock_widgets(self) -> None:
        """Create all dock widgets."""
        self._add_dock("Images", self._create_image_list_widget(), Qt.DockWidgetArea.LeftDockWidgetArea)
        self._add_dock("Classes", self._create_classes_widget(), Qt.DockWidgetArea.RightDockWidgetArea)
        self._add_dock("Issues", self._create_issues_widget(), Qt.DockWidgetArea.RightDockWidgetArea)

        self.config_panel = ExportConfigPanel(self.config)
        self.config_panel.set_orientation_aware(self.workspace.mode.orientation_aware)
        self._add_dock("Export", self.config_panel, Qt.DockWidgetArea.RightDockWidgetArea)

    def _create_image_list_widget(self) -> QWidget:
        """Create the image list widget."""
        widget = QWidget()
        layout = QVBoxLayout(widget)
        self.image_list = QListWidget()
        layout.addWidget(self.image_list)
        return widget

    def _create_classes_widget(self) -> QWidget:
        """Create the class and orientation selectors."""
        widget = QWidget()
        layout = QFormLayout(widget)

        self.class_combo = QComboBox()
        layout.addRow("Class:", self.class_combo)

        self.orientation_combo = QComboBox()
        for orientation in ORIENTATIONS:
            self.orientation_combo.addItem(orientation.label, orientation.id)
        layout.addRow("Orientation:", self.orientation_combo)

        add_button = QPushButton("Add Class...")
        add_button.clicked.connect(self._add_class)
        layout.addRow(add_button)

        return widget

    def _create_issues_widget(self) -> QWidget:
        """Create the list of export problems of the current image."""
        widget = QWidget()
        layout = QVBoxLayout(widget)
        self.issue_list = QListWidget()
        self.issue_list.setWordWrap(True)
        layout.addWidget(self.issue_list)
        return widget

    def _create_toolbar(self) -> None:
        """Create the main toolbar."""
        self.toolbar = QToolBar()
        self.toolbar.setObjectName("MainToolBar")
        self.addToolBar(self.toolbar)

        self.save_action = QAction("Save", self)
        self.save_action.triggered.connect(lambda: self._save_annotations(SaveTrigger.BUTTON))
        self.toolbar.addAction(self.save_action)

        export_action = QAction("Export Dataset", self)
        export_action.triggered.connect(self._export_dataset)
        self.toolbar.addAction(export_action)

        self.toolbar.addSeparator()

        previous_action = QAction("Previous", self)
        previous_action.setShortcut(QKeySequence(Qt.Key.Key_PageUp))
        previous_action.triggered.connect(lambda: self._navigate(-1))
        self.toolbar.addAction(previous_action)

        next_action = QAction("Next", self)
        next_action.setShortcut(QKeySequence(Qt.Key.Key_PageDown))
        next_action.triggered.connect(lambda: self._navigate(1))
        self.toolbar.addAction(next_action)

        fit_action = QAction("Fit", self)
        fit_action.triggered.connect(self.canvas.fit_view)
        self.toolbar.addAction(fit_action)

        # Shortcut saves are debounced by the session, button saves are not
        self.save_shortcut = QShortcut(QKeySequence("Ctrl+S"), self)
        self.save_shortcut.activated.connect(lambda: self._save_annotations(SaveTrigger.SHORTCUT))

    def _create_menus(self) -> None:
        """Create the menu bar."""
        menubar = self.menuBar()

        # File menu
        file_menu = menubar.addMenu("File")

        save_action = QAction("Save", self)
        save_action.triggered.connect(lambda: self._save_annotations(SaveTrigger.BUTTON))
        file_menu.addAction(save_action)

        export_action = QAction("Export Dataset...", self)
        export_action.setShortcut("Ctrl+E")
        export_action.triggered.connect(self._export_dataset)
        file_menu.addAction(export_action)

        reload_action = QAction("Reload Images", self)
        reload_action.setShortcut("F5")
        reload_action.triggered.connect(self._scan_images)
        file_menu.addAction(reload_action)

        file_menu.addSeparator()

        exit_action = QAction("Exit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        # Mode menu
        mode_menu = menubar.addMenu("Mode")
        mode_group = QActionGroup(self)
        for key, settings in MODE_SETTINGS.items():
            action = QAction(settings.title, self, checkable=True)
            action.setChecked(key == self.workspace.mode.key)
            action.triggered.connect(lambda checked, k=key: self._switch_mode(k))
            mode_group.addAction(action)
            mode_menu.addAction(action)
            self.mode_actions[key] = action

        mode_menu.addSeparator()
        remember_action = QAction("Use Current Mode at Startup", self)
        remember_action.triggered.connect(self._remember_mode)
        mode_menu.addAction(remember_action)

        # View menu
        view_menu = menubar.addMenu("View")
        fit_action = QAction("Fit to Window", self)
        fit_action.triggered.connect(self.canvas.fit_view)
        view_menu.addAction(fit_action)
        view_menu.addSeparator()
        for name, dock in self.dock_widgets.items():
            view_menu.addAction(dock.toggleViewAction())

        # Info menu
        info_menu = menubar.addMenu("Info")
        about_action = QAction("About", self)
        about_action.triggered.connect(self._show_about)
        info_menu.addAction(about_action)

    def _setup_connections(self) -> None:
        """Set up signal/slot connections."""
        self.canvas.objects_changed.connect(self._on_objects_changed)
        self.canvas.selection_changed.connect(self._on_selection_changed)
        self.canvas.notice.connect(self._on_notice)

        self.image_list.currentRowChanged.connect(self._on_image_row_changed)
        self.class_combo.currentIndexChanged.connect(self._on_class_chosen)
        self.orientation_combo.currentIndexChanged.connect(self._on_orientation_chosen)

        self.config_panel.config_changed.connect(self._on_config_changed)
        self.config_panel.assign_default_requested.connect(self._assign_default_orientation)

    # === Loading ===

    def _load_workspace(self) -> None:
        """Load classes, saved annotations and the image list of the active mode."""
        class_result = self.storage.load_classes()
        if not class_result.success:
            self._show_error("Classes", class_result.error or "The class list could not be loaded.")
        elif class_result.inferred:
            self._show_status_message(f"Class list created with {len(class_result.classes)} classes")
        if self.storage.ensure_reserved_class():
            class_result = self.storage.load_classes()
        self._install_classes(class_result.classes)

        existing = self.storage.load_existing_data()
        if not existing.success:
            self._show_error("Annotations", existing.error or "Saved annotations could not be read.")
        else:
            summary = self.session.load_records(existing.records)
            if existing.errors:
                logger.warning(f"{len(existing.errors)} lines of saved annotations were skipped")
                self._show_status_message(f"{len(existing.errors)} damaged annotation lines were skipped")
            if summary.migrated:
                self._show_status_message(f"Migrated {summary.migrated} legacy boxes to polygons")

        self._refresh_orientation_issues()
        self._scan_images()

    def _install_classes(self, classes: List[str]) -> None:
        self.session.set_classes(classes)
        self.canvas.refresh_class_colors()
        self.config_panel.set_classes(self.session.classes)

        self.class_combo.blockSignals(True)
        self.class_combo.clear()
        self.class_combo.addItems(self.session.classes)
        if self.session.current_class_name:
            self.class_combo.setCurrentText(self.session.current_class_name)
        self.class_combo.blockSignals(False)

    def _scan_images(self) -> None:
        """List the images of the active mode in a background thread."""
        if self.image_scanner and self.image_scanner.isRunning():
            return
        self._show_status_message("Scanning images...")
        self.image_scanner = ImageScanner(self.workspace.images_dir)
        self.image_scanner.scan_complete.connect(self._on_scan_complete)
        self.image_scanner.start()

    def _on_scan_complete(self, result: ImageScanResult) -> None:
        if not result.success:
            self._show_error("Images", result.error or "The image folder could not be read.")
            return

        self.session.set_images(result.images)
        self.image_list.blockSignals(True)
        self.image_list.clear()
        for entry in result.images:
            self.image_list.addItem(QListWidgetItem(entry.name))
        self.image_list.blockSignals(False)

        self.image_count_label.setText(f"{len(result.images)} images")
        self._show_status_message(f"Found {len(result.images)} images")

        names = [entry.name for entry in result.images]
        start = names.index(self.config.last_opened) if self.config.last_opened in names else 0
        if names:
            self.image_list.setCurrentRow(start)
        else:
            self.canvas.clear()
            self._refresh_issues()

    def _on_image_row_changed(self, row: int) -> None:
        if self.session.select_image(row):
            self._show_current_image()

    def _navigate(self, step: int) -> None:
        if self.session.navigate(step):
            self.image_list.setCurrentRow(self.session.current_index)

    def _show_current_image(self) -> None:
        """Decode the current image and hand it to the canvas."""
        entry = self.session.current_image
        if entry is None:
            self.canvas.clear()
            return

        image = QImage(str(entry.path))
        if image.isNull():
            logger.error(f"Failed to load image: {entry.path}")
            self.session.on_image_decoded(0, 0, None)
            self.canvas.clear()
            self._show_status_message(f"Failed to load image: {entry.name}")
            return

        self.session.on_image_decoded(image.width(), image.height(), AlphaMask.from_qimage(image))
        self.canvas.set_image(image)
        self.file_label.setText(f"{entry.name} ({image.width()}x{image.height()})")
        self._remember_opened(entry.name)
        self._refresh_issues()

    def _remember_opened(self, name: str) -> None:
        config = self.config
        config.last_opened = name
        if name in config.recent_files:
            config.recent_files.remove(name)
        config.recent_files.insert(0, name)
        del config.recent_files[MAX_RECENT_FILES:]

    # === Classes and orientations ===

    def _add_class(self) -> None:
        name, ok = QInputDialog.getText(self, "Add Class", "Class name:")
        if not ok:
            return
        classes = sanitise_classes(self.session.classes + [name])
        if len(classes) == len(self.session.classes):
            self._show_status_message("The class already exists or the name is empty")
            return

        result = self.storage.save_classes(classes)
        if not result.success:
            self._show_error("Classes", result.describe())
            return
        self._install_classes(classes)
        self.class_combo.setCurrentText(classes[-1])
        self._on_config_changed()

    def _on_class_chosen(self, index: int) -> None:
        name = self.class_combo.itemText(index)
        if not name:
            return
        selected = self.session.selected_object_id
        if selected is not None:
            if self.session.set_object_class(selected, name):
                self._on_objects_changed()
        else:
            self.session.current_class_name = name

    def _on_orientation_chosen(self, index: int) -> None:
        orientation_id = self.orientation_combo.itemData(index)
        selected = self.session.selected_object_id
        if selected is not None:
            if self.session.set_object_orientation(selected, orientation_id):
                self._on_objects_changed()
        else:
            self.session.set_current_orientation(orientation_id)

    def _on_selection_changed(self, object_id: Optional[str]) -> None:
        """Show the class and orientation of the selected object in the selectors."""
        obj = self.session.find_object(object_id)
        class_name = obj.class_name if obj else self.session.current_class_name
        orientation_id = obj.class_orientation_id if obj else self.session.current_orientation_id

        self.class_combo.blockSignals(True)
        if class_name:
            self.class_combo.setCurrentText(class_name)
        self.class_combo.blockSignals(False)

        self.orientation_combo.blockSignals(True)
        index = self.orientation_combo.findData(orientation_id)
        if index >= 0:
            self.orientation_combo.setCurrentIndex(index)
        self.orientation_combo.blockSignals(False)

    def _assign_default_orientation(self) -> None:
        changed = self.session.assign_default_orientation_to_all()
        self._show_status_message(f"Default orientation assigned to {changed} objects")
        self._on_objects_changed()

    # === Change tracking ===

    def _on_objects_changed(self) -> None:
        self.canvas.update()
        self._refresh_issues()
        self._refresh_orientation_issues()
        self._update_window_title()

    def _on_config_changed(self) -> None:
        self.storage.save_config(self.config)
        self.canvas.update()
        self._refresh_issues()
        self._refresh_orientation_issues()

    def _refresh_orientation_issues(self) -> None:
        count = self.session.orientation_issue_count() if self.session.orientation_aware else 0
        self.config_panel.set_orientation_issues(count)

    def _refresh_issues(self) -> None:
        """List validation and export problems of the current image."""
        self.issue_list.clear()
        annotation = self.session.current_annotation
        if annotation is None:
            return
        for obj in annotation.objects:
            for message in obj.validation.errors + obj.validation.warnings:
                self.issue_list.addItem(f"{obj.class_name}: {message}")
        for issue in self.session.current_label_issues():
            self.issue_list.addItem(f"Export: {issue.message}")

    def _update_window_title(self) -> None:
        marker = " *" if self.session.has_unsaved_changes else ""
        self.setWindowTitle(f"Texture Annotator - {self.workspace.mode.title}{marker}")
        self.mode_label.setText(self.workspace.mode.title)

    # === Saving and export ===

    def _save_annotations(self, trigger: SaveTrigger) -> None:
        """Write records and label files in a background thread."""
        request = self.session.request_save(trigger)
        if not request.accepted:
            if request.notice:
                self._show_status_message(request.notice)
            return

        self.storage.save_config(self.config)
        self.save_action.setEnabled(False)
        self._show_status_message("Saving...")
        self.save_worker = SaveWorker(self.storage.detached(), request.payload)
        self.save_worker.save_finished.connect(self._on_save_finished)
        self.save_worker.start()

    def _on_save_finished(self, result: OperationResult) -> None:
        self.save_action.setEnabled(True)
        self.session.complete_save(result)
        if result.success:
            skipped = sum(len(issues) for issues in self.session.annotation_errors.values())
            message = "Annotations saved"
            if skipped:
                message += f" ({skipped} objects not exported)"
            self._show_status_message(message)
        else:
            self._show_error("Save", result.describe())
        self.canvas.update()
        self._refresh_issues()
        self._update_window_title()

    def _wait_for_save(self) -> None:
        """Block until a running background save has finished and been applied."""
        if self.save_worker and self.save_worker.isRunning():
            self.save_worker.wait()
            # Deliver the pending save_finished signal
            QApplication.processEvents()

    def _save_blocking(self) -> bool:
        """Save synchronously, used when the window is closing."""
        self._wait_for_save()
        request = self.session.request_save(SaveTrigger.BUTTON)
        if not request.accepted:
            return False
        result = self.storage.save_payload(request.payload)
        self.session.complete_save(result)
        if not result.success:
            self._show_error("Save", result.describe())
        return result.success

    def _export_dataset(self) -> None:
        """Export the images of the active mode as a split dataset."""
        if not self.session.images:
            self._show_status_message("No images to export")
            return
        if self.session.has_unsaved_changes:
            self._save_annotations(SaveTrigger.BUTTON)

        images, labels = self.session.build_dataset_export()
        result = self.storage.export_dataset(
            images,
            labels,
            self.session.classes,
            expand_orientations=self.config.export.expand_orientations,
        )
        if not result.success:
            self._show_error("Dataset export", result.error or "The dataset could not be exported.")
            return

        counts = Counter(item["split"] for item in result.results)
        QMessageBox.information(
            self,
            "Dataset exported",
            f"Exported {len(result.results)} images to {self.workspace.dataset_dir}\n"
            f"train: {counts['train']}, val: {counts['val']}, test: {counts['test']}"
        )

    # === Modes ===

    def _switch_mode(self, mode: str) -> None:
        if mode == self.workspace.mode.key:
            return
        if not self._confirm_discard_or_save():
            self.mode_actions[self.workspace.mode.key].setChecked(True)
            return

        self._wait_for_save()
        config = self.config
        self.workspace.set_mode(mode)
        self.session = AnnotationSession(config, orientation_aware=self.workspace.mode.orientation_aware)
        self.canvas.set_session(self.session)
        self.canvas.clear()
        self.config_panel.set_config(config)
        self.config_panel.set_orientation_aware(self.workspace.mode.orientation_aware)
        logger.info(f"Switched to mode {mode}")

        self._update_window_title()
        self._load_workspace()

    def _remember_mode(self) -> None:
        self.config.default_mode = self.workspace.mode.key
        self.storage.save_config(self.config)
        self._show_status_message(f"{self.workspace.mode.title} will open at startup")

    def _confirm_discard_or_save(self) -> bool:
        """Ask what to do with unsaved changes. Returns False to cancel."""
        if not self.session.has_unsaved_changes:
            return True
        answer = QMessageBox.question(
            self,
            "Unsaved changes",
            "There are unsaved annotations. Save them first?",
            QMessageBox.StandardButton.Save
            | QMessageBox.StandardButton.Discard
            | QMessageBox.StandardButton.Cancel
        )
        if answer == QMessageBox.StandardButton.Cancel:
            return False
        if answer == QMessageBox.StandardButton.Save:
            return self._save_blocking()
        return True

    # === Utility Methods ===

    def _on_notice(self, level: str, message: str) -> None:
        if level == NOTICE_WARNING:
            logger.warning(message)
        else:
            logger.info(message)
        self._show_status_message(message)

    def _show_status_message(self, message: str) -> None:
        """Show a status bar message."""
        self.status_bar.showMessage(message, STATUS_TIMEOUT_MS)

    def _show_error(self, title: str, message: str) -> None:
        logger.error(f"{title}: {message}")
        QMessageBox.warning(self, title, message)

    def _show_about(self) -> None:
        """Show about dialog."""
        QMessageBox.about(
            self,
            "About Texture Annotator",
            "Texture Annotator\nVersion 1.0.0\n\n"
            "Polygon annotation of game textures and YOLO dataset export."
        )

    # === Event Handlers ===

    def closeEvent(self, event) -> None:
        """Handle window close."""
        if not self._confirm_discard_or_save():
            event.ignore()
            return

        self._wait_for_save()
        if self.image_scanner and self.image_scanner.isRunning():
            self.image_scanner.wait()

        self.storage.save_config(self.config)
        super().closeEvent(event)
