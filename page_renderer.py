"""
page_renderer.py — Renders worksheet pages to QImage.

Uses PyMuPDF (fitz) for rasterising pages. Renders run on the global
QThreadPool with a worker-private document instance; results come back to the
UI thread through signals tagged with the document version so that callers
can drop renders that belong to a replaced document.
"""

from __future__ import annotations

import logging
from typing import Optional

import fitz  # PyMuPDF
from PyQt6.QtCore import QObject, QRunnable, QThreadPool, pyqtSignal
from PyQt6.QtGui import QImage

from models import RENDER_SCALE, WorksheetDocument

logger = logging.getLogger(__name__)


def fitz_pixmap_to_qimage(pix: fitz.Pixmap) -> QImage:
    """Convert fitz.Pixmap to QImage."""
    fmt = QImage.Format.Format_RGB888 if pix.n == 3 else QImage.Format.Format_RGBA8888
    img = QImage(pix.samples, pix.width, pix.height, pix.stride, fmt)
    return img.copy()  # copy to detach from fitz memory


def render_page_image(page: fitz.Page, scale: float = RENDER_SCALE) -> QImage:
    """Rasterise one page; the image is sized to the page rect times `scale`."""
    mat = fitz.Matrix(scale, scale)
    pix = page.get_pixmap(matrix=mat, alpha=False)
    return fitz_pixmap_to_qimage(pix)


# ─────────────────────────────────────────────
# Async Rendering Worker
# ─────────────────────────────────────────────

class WorkerSignals(QObject):
    finished = pyqtSignal(int, int, QImage)  # version, page_number, image
    failed = pyqtSignal(int, int, str)       # version, page_number, message


class RenderWorker(QRunnable):
    """Background worker that renders one page from its own document instance."""

    def __init__(self, file_path: str, page_number: int, scale: float, version: int):
        super().__init__()
        self._file_path = file_path
        self.page_number = page_number
        self.scale = scale
        self.version = version
        self.signals = WorkerSignals()

    def run(self):
        doc = None
        try:
            doc = fitz.open(self._file_path)
            page = doc[self.page_number - 1]
            img = render_page_image(page, self.scale)
        except Exception as e:
            logger.warning(f"Render of page {self.page_number} from {self._file_path} failed: {e}")
            self.signals.failed.emit(self.version, self.page_number, str(e))
            return
        finally:
            if doc:
                doc.close()
        self.signals.finished.emit(self.version, self.page_number, img)


# ─────────────────────────────────────────────
# Renderer
# ─────────────────────────────────────────────

class PageRenderer(QObject):
    """Dispatches page renders and tracks the one in flight.

    Pass `threaded=False` to render on the calling thread.
    """

    rendered = pyqtSignal(int, int, QImage)      # version, page_number, image
    render_failed = pyqtSignal(int, int, str)    # version, page_number, message

    def __init__(self, threaded: bool = True, parent=None):
        super().__init__(parent)
        self._thread_pool: Optional[QThreadPool] = (
            QThreadPool.globalInstance() if threaded else None
        )
        # (version, page_number) of the active render
        self.in_flight: Optional[tuple[int, int]] = None

    @property
    def busy(self) -> bool:
        return self.in_flight is not None

    def render(self, document: WorksheetDocument, page_number: int,
               scale: float = RENDER_SCALE):
        if not 1 <= page_number <= document.page_count:
            raise IndexError(f"page {page_number} out of range 1..{document.page_count}")

        self.in_flight = (document.version, page_number)
        worker = RenderWorker(document.path, page_number, scale, document.version)
        worker.signals.finished.connect(self._on_finished)
        worker.signals.failed.connect(self._on_failed)
        if self._thread_pool is None:
            worker.setAutoDelete(False)
            worker.run()
        else:
            self._thread_pool.start(worker)

    def _settle(self, version: int, page_number: int):
        # a late result from an earlier render must not clear the active one
        if self.in_flight == (version, page_number):
            self.in_flight = None

    def _on_finished(self, version: int, page_number: int, image: QImage):
        self._settle(version, page_number)
        self.rendered.emit(version, page_number, image)

    def _on_failed(self, version: int, page_number: int, message: str):
        self._settle(version, page_number)
        self.render_failed.emit(version, page_number, message)
