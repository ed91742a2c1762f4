"""Application bootstrap for Texture Annotator."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from PyQt6.QtWidgets import QApplication

from .ui.main_window import MainWindow
from .utils.workspace import DEFAULT_WORKSPACE_ROOT, MODE_SETTINGS, Workspace

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)

logger = logging.getLogger(__name__)

# Example textures shipped with the package, one folder per mode image directory
ASSETS_DIR = Path(__file__).parent / "assets"


def bundled_example_dirs() -> Dict[str, Path]:
    """Example image folders per mode (folders that do not exist are ignored)."""
    return {mode: ASSETS_DIR / settings.image_dir for mode, settings in MODE_SETTINGS.items()}


def create_application() -> QApplication:
    """
    Create and configure the Qt application.

    Returns:
        Configured QApplication instance
    """
    app = QApplication(sys.argv)
    app.setApplicationName("Texture Annotator")
    app.setApplicationVersion("1.0.0")
    app.setOrganizationName("Texture Annotator")
    return app


def prepare_workspace(root: Optional[Path] = None) -> Workspace:
    """
    Create the workspace folders and copy the example textures into them.

    Args:
        root: Workspace folder (defaults to ~/Documents/DataTextureGUI)

    Returns:
        Workspace in its default mode
    """
    workspace = Workspace(root or DEFAULT_WORKSPACE_ROOT)
    if workspace.ensure_external_data(bundled_example_dirs()):
        logger.info("First start: workspace prepared")
    return workspace


def create_main_window(workspace: Workspace) -> MainWindow:
    """
    Create the main application window.

    Returns:
        MainWindow instance
    """
    return MainWindow(workspace)


def run(workspace_root: Optional[Path] = None) -> int:
    """
    Run the Texture Annotator application.

    Returns:
        Exit code
    """
    logger.info("Starting Texture Annotator")

    try:
        app = create_application()
        logger.info("QApplication created")

        workspace = prepare_workspace(workspace_root)
        logger.info(f"Using workspace {workspace.root}")

        window = create_main_window(workspace)
        logger.info("MainWindow created")

        window.show()
        logger.info("MainWindow shown")

        return app.exec()

    except Exception as e:
        logger.error(f"Application error: {e}", exc_info=True)
        return 1


def main() -> None:
    """Main entry point for the application."""
    root = Path(sys.argv[1]).expanduser() if len(sys.argv) > 1 else None
    sys.exit(run(root))


if __name__ == "__main__":
    main()
