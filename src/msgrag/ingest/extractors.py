"""Page-level text extraction for PDF documents."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from pdfminer.high_level import extract_pages
from pdfminer.layout import LAParams, LTTextContainer

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PageContent:
    """Represents text extracted from a page in the source document."""

    page_number: int
    text: str


class PDFExtractor:
    """Extract text from each page of a PDF with pdfminer."""

    def __init__(self, laparams: LAParams | None = None) -> None:
        self.laparams = laparams or LAParams()

    def extract(self, path: str | Path) -> List[PageContent]:
        path = Path(path)
        pages: List[PageContent] = []
        for index, layout in enumerate(extract_pages(str(path), laparams=self.laparams), start=1):
            parts = [element.get_text() for element in layout if isinstance(element, LTTextContainer)]
            pages.append(PageContent(page_number=index, text="".join(parts)))
        LOGGER.debug("Extracted %d pages from %s", len(pages), path.name)
        return pages


def join_pages(pages: List[PageContent]) -> str:
    """Concatenate page texts the way the pattern cascade expects them."""

    return "\n".join(page.text for page in pages)


__all__ = ["PDFExtractor", "PageContent", "join_pages"]
