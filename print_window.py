"""
print_window.py — Worksheet print preview window.

Left: layout controls (paper, orientation, grid, spacing, copies) and the
Print / PDF buttons. Right: the rendered page with page navigation.
All state lives in RegenerationController; the window only forwards input
and reflects the controller's signals.
"""

from __future__ import annotations

from pathlib import Path

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QImage, QKeyEvent, QPixmap
from PyQt6.QtWidgets import (
    QComboBox, QFileDialog, QFormLayout, QFrame, QHBoxLayout, QLabel,
    QProgressBar, QPushButton, QSizePolicy, QSpinBox, QVBoxLayout, QWidget,
)

from models import Orientation, PaperSize
from regeneration import ControllerState, RegenerationController


PANEL_STYLE = "background: white; border-right: 1px solid #d0d0d0;"
PREVIEW_STYLE = "background: #444;"


def make_spin_box(minimum: int, maximum: int, value: int) -> QSpinBox:
    box = QSpinBox()
    box.setRange(minimum, maximum)
    box.setValue(value)
    box.setFixedWidth(70)
    return box


class PrintWindow(QWidget):

    def __init__(self, controller: RegenerationController, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Print Worksheet")
        self.setMinimumSize(900, 620)
        self._controller = controller
        self._pixmap: QPixmap | None = None

        self._build_ui()
        self._load_values()
        self._connect_signals()

    # ── UI Build ──────────────────────────────

    def _build_ui(self):
        root = QHBoxLayout(self)
        root.setContentsMargins(0, 0, 0, 0)
        root.setSpacing(0)

        # ── Config panel ──
        panel = QFrame()
        panel.setFixedWidth(260)
        panel.setStyleSheet(PANEL_STYLE)
        pl = QVBoxLayout(panel)
        pl.setContentsMargins(16, 16, 16, 16)
        pl.setSpacing(10)

        title = QLabel("Worksheet")
        title.setStyleSheet("font-weight: bold; font-size: 15px; border: none;")
        pl.addWidget(title)
        intro = QLabel("Print a worksheet to sketch your boards by hand.")
        intro.setWordWrap(True)
        intro.setStyleSheet("font-size: 11px; color: #666; border: none;")
        pl.addWidget(intro)

        form = QFormLayout()
        form.setLabelAlignment(Qt.AlignmentFlag.AlignLeft)

        self._paper_size = QComboBox()
        self._paper_size.addItem("Letter", PaperSize.LETTER.code)
        self._paper_size.addItem("A4", PaperSize.A4.code)
        form.addRow("Paper size", self._paper_size)

        self._orientation = QComboBox()
        self._orientation.addItem("Landscape", Orientation.LANDSCAPE.value)
        self._orientation.addItem("Portrait", Orientation.PORTRAIT.value)
        form.addRow("Orientation", self._orientation)

        self._cols = make_spin_box(1, 15, 3)
        form.addRow("Columns", self._cols)
        self._rows = make_spin_box(1, 15, 5)
        form.addRow("Rows", self._rows)
        self._spacing = make_spin_box(0, 40, 15)
        form.addRow("Spacing", self._spacing)
        self._copies = make_spin_box(1, 99, 1)
        form.addRow("Copies", self._copies)
        pl.addLayout(form)

        pl.addStretch(1)

        self._status_label = QLabel("")
        self._status_label.setWordWrap(True)
        self._status_label.setStyleSheet("font-size: 11px; color: #c62828; border: none;")
        pl.addWidget(self._status_label)

        self._print_btn = QPushButton("Print")
        self._pdf_btn = QPushButton("Export PDF")
        self._close_btn = QPushButton("Close")
        for btn in (self._print_btn, self._pdf_btn, self._close_btn):
            pl.addWidget(btn)
        root.addWidget(panel)

        # ── Preview pane ──
        preview_pane = QWidget()
        preview_pane.setStyleSheet(PREVIEW_STYLE)
        vl = QVBoxLayout(preview_pane)
        vl.setContentsMargins(24, 24, 24, 16)

        self._preview = QLabel()
        self._preview.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._preview.setSizePolicy(QSizePolicy.Policy.Ignored, QSizePolicy.Policy.Ignored)
        vl.addWidget(self._preview, 1)

        self._loading = QProgressBar()
        self._loading.setRange(0, 0)  # indeterminate
        self._loading.setTextVisible(False)
        self._loading.setFixedHeight(4)
        self._loading.hide()
        vl.addWidget(self._loading)

        self._nav = QWidget()
        nl = QHBoxLayout(self._nav)
        nl.setContentsMargins(0, 8, 0, 0)
        self._prev_btn = QPushButton("‹ Previous")
        self._next_btn = QPushButton("Next ›")
        self._page_info = QLabel("")
        self._page_info.setStyleSheet("color: white;")
        nl.addStretch(1)
        nl.addWidget(self._prev_btn)
        nl.addWidget(self._page_info)
        nl.addWidget(self._next_btn)
        nl.addStretch(1)
        self._nav.hide()
        vl.addWidget(self._nav)

        root.addWidget(preview_pane, 1)

    def _load_values(self):
        params = self._controller.parameters
        for widget in self._param_widgets():
            widget.blockSignals(True)
        self._paper_size.setCurrentIndex(self._paper_size.findData(params.paper_size.code))
        self._orientation.setCurrentIndex(self._orientation.findData(params.orientation.value))
        self._rows.setValue(params.rows)
        self._cols.setValue(params.cols)
        self._spacing.setValue(params.spacing)
        for widget in self._param_widgets():
            widget.blockSignals(False)
        self._on_state_changed(self._controller.state)

    def _param_widgets(self) -> list[QWidget]:
        return [self._paper_size, self._orientation, self._rows, self._cols, self._spacing]

    def _connect_signals(self):
        c = self._controller
        self._paper_size.currentIndexChanged.connect(
            lambda _i: c.set_paper_size(PaperSize.from_code(self._paper_size.currentData())))
        self._orientation.currentIndexChanged.connect(
            lambda _i: c.set_orientation(Orientation(self._orientation.currentData())))
        self._rows.valueChanged.connect(c.set_rows)
        self._cols.valueChanged.connect(c.set_cols)
        self._spacing.valueChanged.connect(c.set_spacing)

        self._prev_btn.clicked.connect(c.previous_page)
        self._next_btn.clicked.connect(c.next_page)
        self._print_btn.clicked.connect(self._print)
        self._pdf_btn.clicked.connect(self._export_pdf)
        self._close_btn.clicked.connect(self.close)

        c.controls_enabled_changed.connect(self._set_controls_enabled)
        c.busy_changed.connect(self._loading.setVisible)
        c.current_page_changed.connect(self._update_page_info)
        c.page_rendered.connect(self._on_page_rendered)
        c.pagination_visible_changed.connect(self._nav.setVisible)
        c.error_occurred.connect(self._status_label.setText)
        c.state_changed.connect(self._on_state_changed)

    # ── Controller feedback ───────────────────

    def _set_controls_enabled(self, enabled: bool):
        for widget in self._param_widgets():
            widget.setEnabled(enabled)

    def _on_state_changed(self, state: ControllerState):
        can_output = state is ControllerState.READY
        self._print_btn.setEnabled(can_output)
        self._pdf_btn.setEnabled(can_output)
        if state is ControllerState.GENERATING:
            self._status_label.setText("")

    def _update_page_info(self, page: int, page_count: int):
        self._page_info.setText(f"Page {page} of {page_count}")
        self._prev_btn.setEnabled(page > 1)
        self._next_btn.setEnabled(page < page_count)

    def _on_page_rendered(self, image: QImage, page: int, page_count: int):
        self._pixmap = QPixmap.fromImage(image)
        self._update_page_info(page, page_count)
        self._show_pixmap()

    def _show_pixmap(self):
        if self._pixmap is None:
            return
        self._preview.setPixmap(self._pixmap.scaled(
            self._preview.size(),
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        ))

    # ── Actions ───────────────────────────────

    def _print(self):
        if self._controller.print_document(self._copies.value()):
            self.close()

    def _export_pdf(self):
        if not self._controller.can_output:
            return
        default_name = (self._controller.parameters.scene or "worksheet") + ".pdf"
        path, _ = QFileDialog.getSaveFileName(
            self, "Export Worksheet", str(Path.home() / default_name), "PDF Files (*.pdf)"
        )
        if not path:
            return
        if self._controller.export_document(path):
            self.close()

    # ── Qt events ─────────────────────────────

    def showEvent(self, event):
        super().showEvent(event)
        if self._controller.state is ControllerState.IDLE:
            self._controller.regenerate()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._show_pixmap()

    def keyPressEvent(self, event: QKeyEvent):
        if event.key() == Qt.Key.Key_Escape:
            self.close()
            return
        super().keyPressEvent(event)

    def closeEvent(self, event):
        self._controller.release()
        event.accept()
