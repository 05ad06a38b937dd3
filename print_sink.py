"""
print_sink.py — Sends a worksheet PDF to a printer.

The default sink goes through Qt's print support: each page is rasterised
with PyMuPDF at the printer's resolution and painted onto a QPrinter.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import fitz  # PyMuPDF
from PyQt6.QtCore import QRectF, QSizeF, Qt
from PyQt6.QtGui import QPageLayout, QPageSize, QPainter
from PyQt6.QtPrintSupport import QPrinter

from models import PaperSize, PrintError
from page_renderer import render_page_image

logger = logging.getLogger(__name__)

MAX_PRINT_DPI = 300

_PAGE_SIZE_IDS = {
    PaperSize.LETTER: QPageSize.PageSizeId.Letter,
    PaperSize.A4: QPageSize.PageSizeId.A4,
}


def page_size_for(width: float, height: float) -> QPageSize:
    """Media for a page of `width` x `height` points, either orientation."""
    short, long = sorted((width, height))
    for paper, size_id in _PAGE_SIZE_IDS.items():
        if abs(paper.width - short) < 1 and abs(paper.height - long) < 1:
            return QPageSize(size_id)
    return QPageSize(QSizeF(short, long), QPageSize.Unit.Point)


class PrintSink(ABC):

    @abstractmethod
    def print_document(self, path: str, copies: int):
        """Print the PDF at `path` `copies` times; raise PrintError on failure."""


class QtPrintSink(PrintSink):

    def __init__(self, printer: Optional[QPrinter] = None):
        self._printer = printer

    def _make_printer(self) -> QPrinter:
        return self._printer or QPrinter(QPrinter.PrinterMode.HighResolution)

    def print_document(self, path: str, copies: int):
        copies = max(1, int(copies))
        printer = self._make_printer()
        printer.setCopyCount(copies)
        printer.setDocName(path)

        doc = None
        painter = QPainter()
        try:
            doc = fitz.open(path)
            first = doc[0].rect
            printer.setPageSize(page_size_for(first.width, first.height))
            printer.setPageOrientation(
                QPageLayout.Orientation.Landscape if first.width > first.height
                else QPageLayout.Orientation.Portrait
            )
            if not painter.begin(printer):
                raise PrintError("printer is not available")
            scale = min(printer.resolution(), MAX_PRINT_DPI) / 72.0
            for i in range(doc.page_count):
                if i > 0 and not printer.newPage():
                    raise PrintError(f"printer rejected page {i + 1}")
                img = render_page_image(doc[i], scale)
                target = QRectF(painter.viewport())
                size = img.size()
                size.scale(target.size().toSize(), Qt.AspectRatioMode.KeepAspectRatio)
                painter.drawImage(QRectF(0, 0, size.width(), size.height()), img)
        except PrintError:
            raise
        except Exception as e:
            raise PrintError(f"printing {path} failed: {e}") from e
        finally:
            if painter.isActive():
                painter.end()
            if doc:
                doc.close()
        logger.info(f"Printed {path} x{copies}")
