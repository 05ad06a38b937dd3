"""
document_loader.py — Opens generated worksheet PDFs with bounded retry.

Freshly written worksheets occasionally fail to open on the first try (the
generator may still be flushing the file), and a plain re-open succeeds.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import fitz  # PyMuPDF

from models import MAX_LOAD_RETRIES, LoadError, WorksheetDocument

logger = logging.getLogger(__name__)


class DocumentLoader:
    """Loads worksheet documents and tracks the current one and its page."""

    def __init__(self, opener: Optional[Callable[[str], fitz.Document]] = None,
                 max_retries: int = MAX_LOAD_RETRIES):
        self._opener = opener or fitz.open
        self.max_retries = max(0, max_retries)
        self.document: Optional[WorksheetDocument] = None
        self.current_page: int = 1

    @property
    def page_count(self) -> int:
        return self.document.page_count if self.document else 0

    def load(self, path: str) -> WorksheetDocument:
        """Open `path`, retrying up to `max_retries` extra times.

        Raises LoadError once every attempt has failed. On success the
        previous document is closed and the current page is clamped to
        the new page count.
        """
        attempts = self.max_retries + 1
        last_error: Optional[BaseException] = None
        for attempt in range(1, attempts + 1):
            try:
                handle = self._open(path)
            except Exception as e:
                last_error = e
                if attempt < attempts:
                    logger.info(f"retry loading {path} ({attempt}/{self.max_retries}): {e}")
                continue
            return self._replace(path, handle)

        logger.error(f"Giving up on {path} after {attempts} attempts: {last_error}")
        raise LoadError(path, attempts, last_error)

    def _open(self, path: str) -> fitz.Document:
        handle = self._opener(path)
        if handle.page_count < 1:
            handle.close()
            raise ValueError("document has no pages")
        return handle

    def _replace(self, path: str, handle: fitz.Document) -> WorksheetDocument:
        if self.document is not None:
            self.document.close()
        self.document = WorksheetDocument(path, handle)
        self.current_page = max(1, min(self.current_page, self.document.page_count))
        logger.debug(f"Loaded {path}: {self.document.page_count} pages")
        return self.document

    def release(self):
        """Close and forget the current document, keeping the current page."""
        if self.document is not None:
            self.document.close()
            self.document = None
