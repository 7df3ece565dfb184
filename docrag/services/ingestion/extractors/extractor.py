"""Format-dispatching text extractor.

Strategy pattern: :class:`DocumentExtractor` holds a mapping from
:class:`~docrag.models.document.FormatFamily` to one extraction coroutine.
``extract`` detects the family, runs its strategy and applies the shared
minimum-length rule, so every format fails the same way on near-empty output.

    PDF          -> pdf.extract_pdf          (PyMuPDF, cooperative yields)
    DOCX/XLSX/PPTX -> office.extract_*       (zip + tag scanning, worker thread)
    DOC/XLS/PPT  -> legacy.scan_legacy_binary (heuristic byte scan, worker thread)
    CSV          -> delimited.extract_csv
    TEXT/UNKNOWN -> delimited.extract_plain_text
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Awaitable, Callable

import structlog

from docrag.config.settings import Settings
from docrag.models.document import ExtractionResult, FormatFamily
from docrag.services.ingestion.extractors import delimited, legacy, office
from docrag.services.ingestion.extractors.detection import detect_format
from docrag.services.ingestion.extractors.pdf import extract_pdf
from docrag.utils.errors import ExtractionError
from docrag.utils.text_normalizer import normalize_text

logger = structlog.get_logger(logger_name=__name__)

Strategy = Callable[[bytes], Awaitable[str]]

_ZIP_SIGNATURE = b"PK\x03\x04"

# A "legacy" upload that is really a zip package is read with the modern parser.
_MODERN_COUNTERPART: dict[FormatFamily, FormatFamily] = {
    FormatFamily.DOC: FormatFamily.DOCX,
    FormatFamily.XLS: FormatFamily.XLSX,
    FormatFamily.PPT: FormatFamily.PPTX,
}


class DocumentExtractor:
    """Turns raw file bytes into plain text according to their format family."""

    def __init__(self, settings: Settings) -> None:
        self._min_text_length = settings.min_text_length
        legacy_scan = partial(
            legacy.scan_legacy_binary,
            min_run_length=settings.legacy_min_run_length,
            min_letter_sequence=settings.legacy_min_letter_sequence,
            min_letter_ratio=settings.legacy_min_letter_ratio,
        )
        self._strategies: dict[FormatFamily, Strategy] = {
            FormatFamily.PDF: partial(extract_pdf, yield_every=settings.pdf_yield_every_pages),
            FormatFamily.DOCX: _in_thread(office.extract_docx),
            FormatFamily.XLSX: _in_thread(office.extract_xlsx),
            FormatFamily.PPTX: _in_thread(office.extract_pptx),
            FormatFamily.DOC: _in_thread(partial(legacy_scan, format_name="doc")),
            FormatFamily.XLS: _in_thread(partial(legacy_scan, format_name="xls")),
            FormatFamily.PPT: _in_thread(partial(legacy_scan, format_name="ppt")),
            FormatFamily.CSV: _in_thread(delimited.extract_csv),
            FormatFamily.TEXT: _in_thread(delimited.extract_plain_text),
            FormatFamily.UNKNOWN: _in_thread(delimited.extract_plain_text),
        }

    async def extract(
        self,
        data: bytes,
        content_type: str | None,
        filename: str | None = None,
    ) -> ExtractionResult:
        """Extract plain text from *data*.

        Parameters
        ----------
        data:
            Raw file bytes.
        content_type:
            Declared MIME type.
        filename:
            Original filename; only consulted when the MIME type is
            missing or generic.

        Returns
        -------
        ExtractionResult
            The extracted text and the family that produced it.

        Raises
        ------
        ExtractionError
            On structural corruption, missing archive parts, or output
            shorter than ``min_text_length`` after normalization.
        """
        family = detect_format(content_type, filename)
        if family in _MODERN_COUNTERPART and data.startswith(_ZIP_SIGNATURE):
            family = _MODERN_COUNTERPART[family]

        text = await self._strategies[family](data)

        meaningful = len(normalize_text(text))
        if meaningful < self._min_text_length:
            raise ExtractionError(
                family.value,
                f"insufficient text ({meaningful} chars, minimum {self._min_text_length})",
            )

        logger.info(
            "text_extracted",
            format=family.value,
            content_type=content_type,
            bytes=len(data),
            chars=len(text),
        )
        return ExtractionResult(text=text, format_family=family)


def _in_thread(func: Callable[[bytes], str]) -> Strategy:
    """Wrap a blocking extractor so it runs in a worker thread."""

    async def _run(data: bytes) -> str:
        return await asyncio.to_thread(func, data)

    return _run
