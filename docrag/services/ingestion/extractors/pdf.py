"""PDF text extraction using PyMuPDF (fitz).

Pages are read one at a time and joined with newlines.  Every
``yield_every`` pages the coroutine hands control back to the event loop so
a several-hundred-page document does not starve concurrent requests.
"""

from __future__ import annotations

import asyncio

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from docrag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


async def extract_pdf(data: bytes, yield_every: int = 10) -> str:
    """Return the text of every page of a PDF, one page per block.

    Raises
    ------
    ExtractionError
        If the bytes are not a readable PDF or the file is encrypted.
    """
    if not data:
        raise ExtractionError("pdf", "empty file")

    try:
        document = fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        # fitz.FileDataError and EmptyFileError both derive from RuntimeError.
        raise ExtractionError("pdf", f"unreadable PDF: {exc}") from exc

    with document:
        if document.needs_pass:
            raise ExtractionError("pdf", "document is password protected")

        pages: list[str] = []
        for page_number, page in enumerate(document, start=1):
            try:
                pages.append(page.get_text("text"))
            except RuntimeError as exc:
                raise ExtractionError("pdf", f"page {page_number} unreadable: {exc}") from exc
            if page_number % yield_every == 0:
                await asyncio.sleep(0)

    logger.debug("pdf_extracted", pages=len(pages))
    return "\n".join(pages)
