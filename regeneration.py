"""
regeneration.py — Sequences worksheet regeneration for the print preview.

The controller owns the generation parameters and the current document.
Every parameter change drops the document, waits for the input to settle,
asks the generator for a new worksheet, loads the result with retry and
renders the current page through the render queue.
"""

from __future__ import annotations

import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from PyQt6.QtCore import QObject, QTimer, pyqtSignal
from PyQt6.QtGui import QImage

from document_loader import DocumentLoader
from models import (
    GENERATION_TIMEOUT_MS, RENDER_SCALE, SETTLE_DELAY_MS,
    Board, GenerationParameters, LoadError, Orientation, PaperSize,
    PrintError, PrintPreferences, WorksheetDocument,
)
from page_renderer import PageRenderer
from print_sink import PrintSink, QtPrintSink
from render_queue import RenderQueue

logger = logging.getLogger(__name__)


class ControllerState(Enum):
    IDLE = "idle"
    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"


# parameter field -> (preference key, stored value)
_PREF_KEYS = {
    "paper_size": ("paperSize", lambda v: v.code),
    "orientation": ("paperOrientation", lambda v: v.value),
    "rows": ("rows", int),
    "cols": ("cols", int),
    "spacing": ("spacing", int),
}


class RegenerationController(QObject):

    state_changed = pyqtSignal(object)              # ControllerState
    controls_enabled_changed = pyqtSignal(bool)
    busy_changed = pyqtSignal(bool)
    current_page_changed = pyqtSignal(int, int)     # page, page_count
    page_rendered = pyqtSignal(QImage, int, int)    # image, page, page_count
    pagination_visible_changed = pyqtSignal(bool)
    error_occurred = pyqtSignal(str)

    def __init__(self, generator, params: GenerationParameters,
                 boards: Sequence[Board] = (),
                 loader: Optional[DocumentLoader] = None,
                 renderer: Optional[PageRenderer] = None,
                 print_sink: Optional[PrintSink] = None,
                 preferences: Optional[PrintPreferences] = None,
                 tips: Optional[Callable[[], str]] = None,
                 settle_delay_ms: int = SETTLE_DELAY_MS,
                 generation_timeout_ms: int = GENERATION_TIMEOUT_MS,
                 render_scale: float = RENDER_SCALE,
                 parent=None):
        super().__init__(parent)
        self._generator = generator
        self._params = params
        self._boards = list(boards)
        self._loader = loader or DocumentLoader()
        self._renderer = renderer or PageRenderer(parent=self)
        self._print_sink = print_sink or QtPrintSink()
        self._preferences = preferences
        self._tips = tips
        self._render_scale = render_scale

        self._state = ControllerState.IDLE
        self._version = 0
        self._awaited_token: Optional[int] = None
        self._last_image: Optional[QImage] = None

        self._queue = RenderQueue(self._dispatch_render)

        self._settle_timer = QTimer(self)
        self._settle_timer.setSingleShot(True)
        self._settle_timer.setInterval(settle_delay_ms)
        self._settle_timer.timeout.connect(self.generate_now)

        self._timeout_timer = QTimer(self)
        self._timeout_timer.setSingleShot(True)
        self._timeout_timer.setInterval(generation_timeout_ms)
        self._timeout_timer.timeout.connect(self._on_generation_timeout)

        self._generator.generated.connect(self._on_generated)
        self._generator.failed.connect(self._on_generation_failed)
        self._renderer.rendered.connect(self._on_rendered)
        self._renderer.render_failed.connect(self._on_render_failed)

    # ── State ─────────────────────────────────

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def parameters(self) -> GenerationParameters:
        return self._params

    @property
    def document(self) -> Optional[WorksheetDocument]:
        return self._loader.document

    @property
    def current_page(self) -> int:
        return self._loader.current_page

    @property
    def page_count(self) -> int:
        return self._loader.page_count

    @property
    def last_image(self) -> Optional[QImage]:
        return self._last_image

    @property
    def can_output(self) -> bool:
        """Print and export need a loaded, current document."""
        return self._state is ControllerState.READY and self._loader.document is not None

    def _set_state(self, state: ControllerState):
        if state is self._state:
            return
        logger.debug(f"{self._state.value} -> {state.value}")
        self._state = state
        self.state_changed.emit(state)

    # ── Parameters ────────────────────────────

    def set_paper_size(self, paper_size: PaperSize):
        self.update_parameters(paper_size=paper_size)

    def set_orientation(self, orientation: Orientation):
        self.update_parameters(orientation=orientation)

    def set_rows(self, rows: int):
        self.update_parameters(rows=int(rows))

    def set_cols(self, cols: int):
        self.update_parameters(cols=int(cols))

    def set_spacing(self, spacing: int):
        self.update_parameters(spacing=int(spacing))

    def update_parameters(self, **changes):
        new_params = self._params.with_changes(**changes)
        if new_params == self._params:
            return
        self._params = new_params
        self._persist(changes)
        self.regenerate()

    def _persist(self, changes: dict):
        if self._preferences is None:
            return
        for name, value in changes.items():
            if name in _PREF_KEYS:
                key, convert = _PREF_KEYS[name]
                self._preferences.set(key, convert(value))

    # ── Generation ────────────────────────────

    def regenerate(self):
        """Drop the current document and schedule a new worksheet."""
        self._invalidate()
        self._set_state(ControllerState.GENERATING)
        self.controls_enabled_changed.emit(False)
        self.busy_changed.emit(True)
        self._settle_timer.start()

    def _invalidate(self):
        self._loader.release()
        self._version += 1
        self._queue.drop_pending()
        self._awaited_token = None
        self._timeout_timer.stop()

    def generate_now(self):
        """Hand the current parameters to the generator (settle timer expiry)."""
        self._settle_timer.stop()
        if self._state is not ControllerState.GENERATING:
            return
        if self._tips is not None:
            # fresh tip per worksheet; not a parameter change
            self._params = self._params.with_changes(aux_text=self._tips())
        self._awaited_token = self._generator.generate(self._params, self._boards)
        self._timeout_timer.start()

    def _on_generated(self, token: int, path: str):
        if token != self._awaited_token or self._state is not ControllerState.GENERATING:
            logger.debug(f"Ignoring superseded worksheet #{token} at {path}")
            return
        self._awaited_token = None
        self._timeout_timer.stop()

        try:
            doc = self._loader.load(path)
        except LoadError as e:
            self._fail(str(e))
            return

        self._version += 1
        doc.version = self._version
        self._set_state(ControllerState.READY)
        self.controls_enabled_changed.emit(True)
        self.pagination_visible_changed.emit(doc.page_count > 1)
        self.current_page_changed.emit(self.current_page, doc.page_count)
        self._queue.request(self.current_page)

    def _on_generation_failed(self, token: int, message: str):
        if token != self._awaited_token:
            return
        self._fail(f"worksheet generation failed: {message}")

    def _on_generation_timeout(self):
        if self._state is not ControllerState.GENERATING:
            return
        self._fail(f"worksheet generation timed out after {self._timeout_timer.interval()} ms")

    def _fail(self, message: str):
        logger.error(message)
        self._awaited_token = None
        self._timeout_timer.stop()
        self._set_state(ControllerState.FAILED)
        self.controls_enabled_changed.emit(True)
        self.busy_changed.emit(False)
        self.error_occurred.emit(message)

    # ── Rendering ─────────────────────────────

    def _dispatch_render(self, page_number: int):
        doc = self._loader.document
        if doc is None:
            self._queue.reset()
            return
        self._renderer.render(doc, page_number, self._render_scale)

    def _is_current(self, version: int) -> bool:
        doc = self._loader.document
        return doc is not None and doc.version == version

    def _on_rendered(self, version: int, page_number: int, image: QImage):
        if not self._is_current(version):
            logger.debug(f"Discarding stale render of page {page_number} (v{version})")
            self._queue.complete()
            return
        if self._queue.pending is None:
            self._last_image = image
            self.page_rendered.emit(image, page_number, self.page_count)
            self.busy_changed.emit(False)
        self._queue.complete()

    def _on_render_failed(self, version: int, page_number: int, message: str):
        if not self._is_current(version):
            self._queue.complete()
            return
        logger.error(f"Page {page_number} could not be rendered: {message}")
        if self._queue.pending is None:
            self.busy_changed.emit(False)
            self.error_occurred.emit(message)
        self._queue.complete()

    # ── Navigation ────────────────────────────

    def go_to_page(self, page_number: int) -> bool:
        doc = self._loader.document
        if doc is None:
            return False
        if not 1 <= page_number <= doc.page_count or page_number == self.current_page:
            return False
        self._loader.current_page = page_number
        self.current_page_changed.emit(page_number, doc.page_count)
        self._queue.request(page_number)
        return True

    def next_page(self) -> bool:
        return self.go_to_page(self.current_page + 1)

    def previous_page(self) -> bool:
        return self.go_to_page(self.current_page - 1)

    # ── Output ────────────────────────────────

    def print_document(self, copies: int = 1) -> bool:
        if not self.can_output:
            return False
        path = self._loader.document.path
        try:
            self._print_sink.print_document(path, copies)
        except PrintError as e:
            logger.error(f"Print failed: {e}")
            self.error_occurred.emit(str(e))
            return False
        return True

    def export_document(self, dest: str) -> bool:
        if not self.can_output:
            return False
        if not dest.lower().endswith(".pdf"):
            dest += ".pdf"
        src = self._loader.document.path
        try:
            shutil.copy2(src, dest)
        except OSError as e:
            logger.error(f"Export to {dest} failed: {e}")
            self.error_occurred.emit(f"export failed: {e}")
            return False
        logger.info(f"Exported worksheet to {Path(dest).name}")
        return True

    # ── Teardown ──────────────────────────────

    def release(self):
        """Stop pending work and drop the document (window closed)."""
        self._settle_timer.stop()
        self._invalidate()
        self._set_state(ControllerState.IDLE)
        self.busy_changed.emit(False)
        self.controls_enabled_changed.emit(True)
