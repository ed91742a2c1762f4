"""Pytest configuration and fixtures."""

import os
import pytest
import sys
from pathlib import Path

import numpy as np

# Run Qt headless so tests work without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


@pytest.fixture(scope="session")
def qapp():
    """Create a QApplication for tests that need it."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])

    yield app


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def square_points():
    """A 10x10 pixel square starting at the origin, clockwise."""
    from PyQt6.QtCore import QPointF

    return [QPointF(0, 0), QPointF(10, 0), QPointF(10, 10), QPointF(0, 10)]


@pytest.fixture
def transparent_border_mask():
    """20x20 mask with an opaque 10x10 block at (5, 5)-(14, 14)."""
    from texture_annotator.core.alpha_mask import AlphaMask

    alpha = np.zeros((20, 20), dtype=np.uint8)
    alpha[5:15, 5:15] = 255
    return AlphaMask(alpha)


@pytest.fixture
def workspace(tmp_path):
    """A fresh workspace rooted in a temporary directory."""
    from texture_annotator.utils.workspace import Workspace

    ws = Workspace(tmp_path / "DataTextureGUI")
    ws.ensure_external_data()
    return ws


@pytest.fixture
def sample_classes():
    """Class list in id order."""
    return ["body", "head", "eyes", "aletas"]
