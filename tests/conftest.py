"""Shared fixtures: offscreen Qt, sample PDFs, fake collaborators."""

import os
import sys

# Offscreen platform for Qt
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import fitz  # PyMuPDF
import pytest
from PyQt6.QtCore import QObject, QSettings, pyqtSignal
from PyQt6.QtGui import QImage
from PyQt6.QtWidgets import QApplication

from print_sink import PrintSink

app = QApplication.instance() or QApplication(sys.argv)


def write_pdf(path, pages: int, width: float = 612, height: float = 792) -> str:
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=width, height=height)
        page.insert_text((72, 72), f"page {i + 1}", fontsize=24)
    doc.save(str(path))
    doc.close()
    return str(path)


@pytest.fixture
def make_pdf(tmp_path):
    counter = {"n": 0}

    def _make(pages: int = 3, **kwargs) -> str:
        counter["n"] += 1
        return write_pdf(tmp_path / f"doc{counter['n']}.pdf", pages, **kwargs)

    return _make


@pytest.fixture
def settings(tmp_path):
    s = QSettings(str(tmp_path / "prefs.ini"), QSettings.Format.IniFormat)
    yield s
    s.sync()


class FakeGenerator(QObject):
    """Records generate() calls; tests emit `generated` / `failed` themselves."""

    generated = pyqtSignal(int, str)
    failed = pyqtSignal(int, str)

    def __init__(self):
        super().__init__()
        self.calls = []

    def generate(self, params, boards) -> int:
        self.calls.append((params, list(boards)))
        return len(self.calls)

    @property
    def last_token(self) -> int:
        return len(self.calls)


class FakeRenderer(QObject):
    """Holds renders in flight until the test finishes them."""

    rendered = pyqtSignal(int, int, QImage)
    render_failed = pyqtSignal(int, int, str)

    def __init__(self):
        super().__init__()
        self.requests = []  # (version, page_number)

    def render(self, document, page_number, scale):
        self.requests.append((document.version, page_number))

    def finish(self, index: int = -1, image=None):
        version, page = self.requests[index]
        if image is None:
            image = QImage(8, 8, QImage.Format.Format_RGB32)
        self.rendered.emit(version, page, image)

    def fail(self, index: int = -1, message: str = "render failed"):
        version, page = self.requests[index]
        self.render_failed.emit(version, page, message)


class RecordingSink(PrintSink):
    def __init__(self, error=None):
        self.printed = []
        self._error = error

    def print_document(self, path, copies):
        if self._error is not None:
            raise self._error
        self.printed.append((path, copies))


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def make_sink():
    return RecordingSink
