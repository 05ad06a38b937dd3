"""
worksheet_printer.py — Composes printable storyboard worksheets with PyMuPDF.

Generation runs in a background QThread; the generator reports the written
file with `generated(token, path)` or `failed(token, message)`. Tokens let the
caller tell a current result from one that was superseded while running.
"""

from __future__ import annotations

import logging
import math
import os
import random
import shutil
import tempfile
from typing import Optional

import fitz  # PyMuPDF
from PyQt6.QtCore import QObject, QThread, pyqtSignal

from models import Board, GenerationError, GenerationParameters

logger = logging.getLogger(__name__)


MARGIN = 36.0        # page margin in points
HEADER_H = 54.0      # title + tip band
FOOTER_H = 14.0
FRAME_SHARE = 0.7    # part of a cell's height the board frame may use
NOTE_LINE_GAP = 9.0


# ─────────────────────────────────────────────
# Story tips (header text)
# ─────────────────────────────────────────────

class StoryTips:
    TIPS = [
        "Establish the space early: open on a wide shot before cutting in.",
        "Every board should answer one question the previous board asked.",
        "Keep the camera on one side of the action line unless you mean to jar.",
        "Give the audience a reason to look where you want them to look.",
        "Vary shot sizes; three mediums in a row flatten a scene.",
        "Cut on action to hide the edit.",
        "A reaction shot often tells more than the action itself.",
        "Thumbnail fast, refine later. Clarity beats polish at this stage.",
    ]

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def tip_string(self) -> str:
        return "Tip: " + self._rng.choice(self.TIPS)


# ─────────────────────────────────────────────
# Layout
# ─────────────────────────────────────────────

def page_count_for(params: GenerationParameters, board_count: int) -> int:
    return max(1, math.ceil(board_count / params.cells_per_page))


def cell_rects(params: GenerationParameters) -> list[fitz.Rect]:
    """Return the grid cells of one page, row by row."""
    page_w, page_h = params.page_size
    rows, cols = max(1, params.rows), max(1, params.cols)
    area_w = page_w - 2 * MARGIN
    area_h = page_h - 2 * MARGIN - HEADER_H - FOOTER_H
    cell_w = (area_w - params.spacing * (cols - 1)) / cols
    cell_h = (area_h - params.spacing * (rows - 1)) / rows
    if cell_w <= 0 or cell_h <= 0:
        raise GenerationError(
            f"{rows}x{cols} grid with spacing {params.spacing} does not fit on "
            f"{params.paper_size} {params.orientation.value}"
        )

    top = MARGIN + HEADER_H
    rects = []
    for r in range(rows):
        for c in range(cols):
            x0 = MARGIN + c * (cell_w + params.spacing)
            y0 = top + r * (cell_h + params.spacing)
            rects.append(fitz.Rect(x0, y0, x0 + cell_w, y0 + cell_h))
    return rects


def _frame_rect(cell: fitz.Rect, aspect_ratio: float) -> fitz.Rect:
    aspect_ratio = aspect_ratio if aspect_ratio > 0 else 16 / 9
    fw = cell.width
    fh = fw / aspect_ratio
    if fh > cell.height * FRAME_SHARE:
        fh = cell.height * FRAME_SHARE
        fw = fh * aspect_ratio
    return fitz.Rect(cell.x0, cell.y0, cell.x0 + fw, cell.y0 + fh)


def _draw_cell(page: fitz.Page, cell: fitz.Rect, params: GenerationParameters,
               board: Optional[Board]):
    frame = _frame_rect(cell, params.aspect_ratio)
    page.draw_rect(frame, color=(0, 0, 0), width=0.75)

    label_y = frame.y1 + 8
    if board is not None:
        page.insert_text((cell.x0, label_y), str(board.number), fontsize=7, fontname="helv")

    notes = fitz.Rect(cell.x0, label_y + 2, cell.x1, cell.y1)
    if board is not None and (board.dialogue or board.action):
        text = "\n".join(t for t in (board.dialogue, board.action) if t)
        page.insert_textbox(notes, text, fontsize=6, fontname="helv")
        return
    y = notes.y0 + NOTE_LINE_GAP
    while y <= notes.y1:
        page.draw_line((cell.x0, y), (cell.x0 + frame.width, y),
                       color=(0.75, 0.75, 0.75), width=0.4)
        y += NOTE_LINE_GAP


def compose_worksheet(params: GenerationParameters, boards: list[Board], path: str) -> int:
    """Write a worksheet PDF to `path` and return its page count."""
    cells = cell_rects(params)
    pages = page_count_for(params, len(boards))
    page_w, page_h = params.page_size
    title = params.scene or "Storyboard Worksheet"

    doc = fitz.open()
    try:
        for p in range(pages):
            page = doc.new_page(width=page_w, height=page_h)
            page.insert_text((MARGIN, MARGIN + 14), title, fontsize=14, fontname="helv")
            if params.aux_text:
                tip_rect = fitz.Rect(MARGIN, MARGIN + 20, page_w - MARGIN, MARGIN + HEADER_H - 4)
                page.insert_textbox(tip_rect, params.aux_text, fontsize=8, fontname="helv",
                                    color=(0.3, 0.3, 0.3))

            chunk = boards[p * len(cells):(p + 1) * len(cells)]
            for i, cell in enumerate(cells):
                _draw_cell(page, cell, params, chunk[i] if i < len(chunk) else None)

            page.insert_text((page_w - MARGIN - 30, page_h - MARGIN + 4),
                             f"{p + 1} / {pages}", fontsize=7, fontname="helv")
        doc.save(path, garbage=3, deflate=True)
    finally:
        doc.close()
    return pages


# ─────────────────────────────────────────────
# Worker
# ─────────────────────────────────────────────

class GenerateWorker(QThread):
    finished_generation = pyqtSignal(int, str)  # token, path
    error = pyqtSignal(int, str)                # token, message

    def __init__(self, token: int, params: GenerationParameters,
                 boards: list[Board], path: str):
        super().__init__()
        self.token = token
        self._params = params
        self._boards = list(boards)
        self._path = path

    def run(self):
        try:
            pages = compose_worksheet(self._params, self._boards, self._path)
            logger.debug(f"Composed {self._path} ({pages} pages)")
            self.finished_generation.emit(self.token, self._path)
        except Exception as e:
            logger.error(f"Worksheet generation failed: {e}")
            self.error.emit(self.token, str(e))


# ─────────────────────────────────────────────
# Generator service
# ─────────────────────────────────────────────

class WorksheetGenerator(QObject):
    """Generates worksheets into a private temp directory."""

    generated = pyqtSignal(int, str)  # token, path
    failed = pyqtSignal(int, str)     # token, message

    def __init__(self, output_dir: Optional[str] = None, parent=None):
        super().__init__(parent)
        self._owns_dir = output_dir is None
        self._output_dir = output_dir or tempfile.mkdtemp(prefix="worksheet-")
        self._next_token = 0
        self._workers: list[GenerateWorker] = []

    @property
    def output_dir(self) -> str:
        return self._output_dir

    def generate(self, params: GenerationParameters, boards: list[Board]) -> int:
        self._next_token += 1
        token = self._next_token
        path = os.path.join(self._output_dir, f"worksheet-{token}.pdf")
        logger.info(
            f"Generating worksheet #{token}: {params.paper_size} {params.orientation.value} "
            f"{params.rows}x{params.cols} spacing={params.spacing}"
        )
        worker = GenerateWorker(token, params, boards, path)
        worker.finished_generation.connect(self.generated)
        worker.error.connect(self.failed)
        worker.finished.connect(lambda w=worker: self._forget(w))
        self._workers.append(worker)
        worker.start()
        return token

    def _forget(self, worker: GenerateWorker):
        if worker in self._workers:
            self._workers.remove(worker)
        worker.deleteLater()

    def close(self, timeout_ms: int = 2000):
        """Wait for running workers and remove generated files."""
        for worker in list(self._workers):
            if worker.isRunning() and not worker.wait(timeout_ms):
                logger.warning(f"Worksheet worker #{worker.token} still running at close")
        self._workers.clear()
        if self._owns_dir:
            shutil.rmtree(self._output_dir, ignore_errors=True)
