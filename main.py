"""
main.py — Entry point for the storyboard worksheet print preview

Usage: worksheet-preview [project.json]
"""

import logging
import os
import sys

# High-DPI support
os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")

from PyQt6.QtGui import QFont
from PyQt6.QtWidgets import QApplication

from models import PrintPreferences, ProjectData
from print_window import PrintWindow
from regeneration import RegenerationController
from version import __version__
from worksheet_printer import StoryTips, WorksheetGenerator

logger = logging.getLogger(__name__)


def load_project(argv: list[str]) -> ProjectData:
    """Read the project file named on the command line, if any."""
    for arg in argv[1:]:
        if arg.lower().endswith(".json") and os.path.exists(arg):
            try:
                return ProjectData.from_file(arg)
            except (OSError, ValueError) as e:
                logger.error(f"Could not read project file {arg}: {e}")
    return ProjectData()


def main():
    debug = os.environ.get("WORKSHEET_PREVIEW_DEBUG") == "1"
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QApplication(sys.argv)
    app.setApplicationName("Worksheet Preview")
    app.setApplicationVersion(__version__)
    app.setOrganizationName("StoryboardWorksheet")
    app.setStyle("Fusion")
    app.setFont(QFont("Segoe UI", 10))

    app.setStyleSheet("""
        QWidget { font-size: 12px; }
        QPushButton {
            padding: 6px 12px;
            border-radius: 4px;
            border: 1px solid #ccc;
            background: white;
        }
        QPushButton:hover { background: #f0f0f0; }
        QPushButton:pressed { background: #e0e0e0; }
        QPushButton:disabled { color: #aaa; }
        QProgressBar { border: none; background: #e0e0e0; }
        QProgressBar::chunk { background: #2979FF; }
    """)

    project = load_project(sys.argv)
    preferences = PrintPreferences()
    params = preferences.parameters(project)

    generator = WorksheetGenerator()
    controller = RegenerationController(
        generator, params, boards=project.boards, preferences=preferences,
        tips=StoryTips().tip_string,
    )
    window = PrintWindow(controller)
    window.show()
    exit_code = app.exec()

    generator.close()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
