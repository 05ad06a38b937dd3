import fitz
import pytest
from PyQt6.QtGui import QPageSize
from PyQt6.QtPrintSupport import QPrinter

from models import PrintError
from print_sink import PrintSink, QtPrintSink, page_size_for


def pdf_printer(path) -> QPrinter:
    printer = QPrinter(QPrinter.PrinterMode.ScreenResolution)
    printer.setOutputFormat(QPrinter.OutputFormat.PdfFormat)
    printer.setOutputFileName(str(path))
    return printer


def test_prints_every_page(make_pdf, tmp_path):
    out = tmp_path / "printed.pdf"

    QtPrintSink(pdf_printer(out)).print_document(make_pdf(3), copies=1)

    with fitz.open(str(out)) as doc:
        assert doc.page_count == 3


def test_zero_copies_still_prints(make_pdf, tmp_path):
    out = tmp_path / "one.pdf"
    QtPrintSink(pdf_printer(out)).print_document(make_pdf(1), copies=0)
    assert out.exists()


def test_unreadable_document_raises_print_error(tmp_path):
    sink = QtPrintSink(pdf_printer(tmp_path / "never.pdf"))
    with pytest.raises(PrintError):
        sink.print_document(str(tmp_path / "missing.pdf"), copies=1)


@pytest.mark.parametrize("width, height, expected", [
    (612, 792, QPageSize.PageSizeId.Letter),
    (792, 612, QPageSize.PageSizeId.Letter),
    (595, 842, QPageSize.PageSizeId.A4),
    (842, 595, QPageSize.PageSizeId.A4),
])
def test_paper_follows_the_document(width, height, expected):
    assert page_size_for(width, height).id() == expected


def test_a4_worksheet_prints_on_a4(make_pdf, tmp_path):
    out = tmp_path / "a4.pdf"
    printer = pdf_printer(out)

    QtPrintSink(printer).print_document(make_pdf(1, width=595, height=842), copies=1)

    assert printer.pageLayout().pageSize().id() == QPageSize.PageSizeId.A4
    with fitz.open(str(out)) as doc:
        assert doc[0].rect.width == pytest.approx(595, abs=2)
        assert doc[0].rect.height == pytest.approx(842, abs=2)


def test_sink_interface_cannot_be_used_directly():
    with pytest.raises(TypeError):
        PrintSink()
