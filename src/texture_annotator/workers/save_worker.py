"""Background thread for writing annotation files."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PyQt6.QtCore import QThread, pyqtSignal

from ..core.export import SavePayload
from ..core.results import OperationResult

if TYPE_CHECKING:
    from ..core.persistence import ProjectStorage

logger = logging.getLogger(__name__)


class SaveWorker(QThread):
    """
    Writes a prepared save payload off the UI thread.

    The JSONL records are written first; label files are only written when
    that succeeds. The outcome is always reported through ``save_finished``,
    even when the write fails unexpectedly.
    """

    # Emitted with the OperationResult of the whole save
    save_finished = pyqtSignal(object)

    def __init__(self, storage: ProjectStorage, payload: SavePayload) -> None:
        """
        Args:
            storage: Persistence adapter of the active workspace
            payload: Records and label lines to write
        """
        super().__init__()
        self.storage = storage
        self.payload = payload

    def run(self) -> None:
        try:
            result = self.storage.save_payload(self.payload)
        except Exception as e:
            logger.error(f"Unexpected error while saving: {e}", exc_info=True)
            result = OperationResult.failed(f"Error saving annotations: {e}")
        if not result.success:
            logger.error(f"Save failed: {result.describe()}")
        self.save_finished.emit(result)
