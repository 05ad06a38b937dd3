"""
models.py — Data models: GenerationParameters, ProjectData, WorksheetDocument,
PrintPreferences, and the worksheet error types.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF
from PyQt6.QtCore import QSettings

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# Tunables
# ─────────────────────────────────────────────

RENDER_SCALE = 1.5
SETTLE_DELAY_MS = 500
MAX_LOAD_RETRIES = 3
GENERATION_TIMEOUT_MS = 30000


# ─────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────

class WorksheetError(Exception):
    """Base class for worksheet preview failures."""


class LoadError(WorksheetError):
    """A generated document could not be opened after all retries."""

    def __init__(self, path: str, attempts: int, cause: Optional[BaseException] = None):
        self.path = path
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"could not load {path} after {attempts} attempts: {cause}")


class GenerationError(WorksheetError):
    """The worksheet generator failed or never reported back."""


class PrintError(WorksheetError):
    """The print sink could not print the document."""


# ─────────────────────────────────────────────
# Paper
# ─────────────────────────────────────────────

class PaperSize(Enum):
    LETTER = ("LTR", 612.0, 792.0)
    A4     = ("A4",  595.0, 842.0)

    def __init__(self, code: str, width: float, height: float):
        self.code = code
        self.width = width
        self.height = height

    def __str__(self):
        return self.code

    @classmethod
    def from_code(cls, code: str) -> "PaperSize":
        for size in cls:
            if size.code == code:
                return size
        raise ValueError(f"unknown paper size: {code!r}")


class Orientation(Enum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"


# ─────────────────────────────────────────────
# Generation parameters
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class GenerationParameters:
    """Everything the worksheet generator needs to compose a document."""
    paper_size: PaperSize = PaperSize.LETTER
    orientation: Orientation = Orientation.LANDSCAPE
    rows: int = 5
    cols: int = 3
    spacing: int = 15
    aspect_ratio: float = 16 / 9
    scene: str = ""
    aux_text: str = ""
    script_data: Optional[dict] = None

    @property
    def page_size(self) -> tuple[float, float]:
        """Page (width, height) in points after applying the orientation."""
        w, h = self.paper_size.width, self.paper_size.height
        if self.orientation is Orientation.LANDSCAPE:
            return max(w, h), min(w, h)
        return min(w, h), max(w, h)

    @property
    def cells_per_page(self) -> int:
        return max(1, self.rows) * max(1, self.cols)

    def with_changes(self, **changes) -> "GenerationParameters":
        return replace(self, **changes)


# ─────────────────────────────────────────────
# Project data (supplied by the host application)
# ─────────────────────────────────────────────

@dataclass
class Board:
    number: int
    dialogue: str = ""
    action: str = ""

    @classmethod
    def from_dict(cls, d: dict, fallback_number: int) -> "Board":
        return cls(
            number=int(d.get("number", fallback_number)),
            dialogue=str(d.get("dialogue", "") or ""),
            action=str(d.get("action", "") or ""),
        )


@dataclass
class ProjectData:
    aspect_ratio: float = 16 / 9
    current_scene: str = ""
    script_data: Optional[dict] = None
    boards: list[Board] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict) -> "ProjectData":
        boards = [
            Board.from_dict(b, i + 1)
            for i, b in enumerate(d.get("boards", []) or [])
        ]
        return cls(
            aspect_ratio=float(d.get("aspectRatio", 16 / 9)),
            current_scene=str(d.get("currentScene", "") or ""),
            script_data=d.get("scriptData"),
            boards=boards,
        )

    @classmethod
    def from_file(cls, path: str) -> "ProjectData":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.from_dict(data)


# ─────────────────────────────────────────────
# Loaded document
# ─────────────────────────────────────────────

class WorksheetDocument:
    """An opened generated worksheet. `version` is assigned by the controller."""

    def __init__(self, path: str, handle: fitz.Document, version: int = 0):
        self.path = path
        self.handle = handle
        self.version = version

    @property
    def page_count(self) -> int:
        return self.handle.page_count if self.handle is not None else 0

    def page(self, page_number: int) -> fitz.Page:
        """Return the 1-based page `page_number`."""
        if not 1 <= page_number <= self.page_count:
            raise IndexError(f"page {page_number} out of range 1..{self.page_count}")
        return self.handle[page_number - 1]

    def close(self):
        if self.handle is not None:
            self.handle.close()
            self.handle = None


# ─────────────────────────────────────────────
# Persisted print window state
# ─────────────────────────────────────────────

class PrintPreferences:
    """Print window state stored in QSettings under `printingWindowState/`."""

    GROUP = "printingWindowState"
    DEFAULTS = {
        "paperSize": "LTR",
        "paperOrientation": "landscape",
        "rows": 5,
        "cols": 3,
        "spacing": 15,
    }

    def __init__(self, settings: Optional[QSettings] = None):
        self.settings = settings or QSettings("StoryboardWorksheet", "PrintWindow")

    def _key(self, name: str) -> str:
        return f"{self.GROUP}/{name}"

    def load(self) -> dict:
        """Return the stored state, writing the defaults on first use."""
        if not self.settings.contains(self._key("paperSize")):
            for name, value in self.DEFAULTS.items():
                self.settings.setValue(self._key(name), value)
            self.settings.sync()

        state = {}
        for name, default in self.DEFAULTS.items():
            state[name] = self.settings.value(self._key(name), default, type=type(default))
        return state

    def set(self, name: str, value):
        if name not in self.DEFAULTS:
            raise KeyError(name)
        self.settings.setValue(self._key(name), value)
        self.settings.sync()

    def parameters(self, project: Optional[ProjectData] = None,
                   aux_text: str = "") -> GenerationParameters:
        """Build generation parameters from the stored state and project data."""
        state = self.load()
        try:
            paper = PaperSize.from_code(state["paperSize"])
        except ValueError:
            logger.warning(f"Unknown stored paper size {state['paperSize']!r}; using LTR")
            paper = PaperSize.LETTER
        try:
            orientation = Orientation(state["paperOrientation"])
        except ValueError:
            orientation = Orientation.LANDSCAPE

        project = project or ProjectData()
        return GenerationParameters(
            paper_size=paper,
            orientation=orientation,
            rows=state["rows"],
            cols=state["cols"],
            spacing=state["spacing"],
            aspect_ratio=project.aspect_ratio,
            scene=project.current_scene,
            aux_text=aux_text,
            script_data=project.script_data,
        )
