import os
import random

import fitz
import pytest
from PyQt6.QtTest import QTest

from models import Board, GenerationError, GenerationParameters, Orientation, PaperSize
from worksheet_printer import (
    StoryTips, WorksheetGenerator, cell_rects, compose_worksheet, page_count_for,
)


def boards(n):
    return [Board(number=i + 1, dialogue=f"line {i + 1}") for i in range(n)]


@pytest.mark.parametrize("count, expected", [(0, 1), (1, 1), (15, 1), (16, 2), (45, 3), (46, 4)])
def test_page_count(count, expected):
    assert page_count_for(GenerationParameters(rows=5, cols=3), count) == expected


def test_cells_fill_the_grid_with_spacing():
    params = GenerationParameters(rows=2, cols=3, spacing=10)
    cells = cell_rects(params)

    assert len(cells) == 6
    assert cells[1].x0 - cells[0].x1 == pytest.approx(10)
    assert cells[3].y0 - cells[0].y1 == pytest.approx(10)
    page_w, page_h = params.page_size
    assert all(0 <= c.x0 and c.x1 <= page_w and c.y1 <= page_h for c in cells)


def test_grid_that_does_not_fit_is_rejected():
    with pytest.raises(GenerationError):
        cell_rects(GenerationParameters(rows=15, cols=15, spacing=40))


def test_compose_writes_expected_pages(tmp_path):
    path = str(tmp_path / "ws.pdf")
    params = GenerationParameters(paper_size=PaperSize.A4, orientation=Orientation.PORTRAIT,
                                  rows=2, cols=2, scene="Scene 1", aux_text="Tip: cut on action.")

    pages = compose_worksheet(params, boards(9), path)

    assert pages == 3
    with fitz.open(path) as doc:
        assert doc.page_count == 3
        assert (doc[0].rect.width, doc[0].rect.height) == (595.0, 842.0)
        text = doc[0].get_text()
        assert "Scene 1" in text
        assert "line 1" in text
        assert "1 / 3" in text


def test_compose_without_boards_gives_one_blank_page(tmp_path):
    path = str(tmp_path / "blank.pdf")
    assert compose_worksheet(GenerationParameters(), [], path) == 1
    with fitz.open(path) as doc:
        assert doc[0].rect.width > doc[0].rect.height  # landscape by default


def test_story_tip():
    tip = StoryTips(random.Random(1)).tip_string()
    assert tip.startswith("Tip: ")


def wait_for(predicate, timeout_ms=5000):
    waited = 0
    while not predicate() and waited < timeout_ms:
        QTest.qWait(20)
        waited += 20
    return predicate()


def test_generator_emits_path_with_token(tmp_path):
    generator = WorksheetGenerator(output_dir=str(tmp_path))
    results = []
    generator.generated.connect(lambda token, path: results.append((token, path)))

    token = generator.generate(GenerationParameters(rows=2, cols=2), boards(5))

    assert wait_for(lambda: results)
    assert results[0][0] == token
    with fitz.open(results[0][1]) as doc:
        assert doc.page_count == 2
    generator.close()


def test_generator_reports_failure(tmp_path):
    generator = WorksheetGenerator(output_dir=str(tmp_path))
    failures = []
    generator.failed.connect(lambda token, msg: failures.append((token, msg)))

    token = generator.generate(GenerationParameters(rows=15, cols=15, spacing=40), [])

    assert wait_for(lambda: failures)
    assert failures[0][0] == token
    generator.close()


def test_generator_close_removes_its_temp_dir():
    generator = WorksheetGenerator()
    out = generator.output_dir
    generator.close()
    assert not os.path.exists(out)
