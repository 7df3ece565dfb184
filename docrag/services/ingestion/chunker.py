"""Format-aware text chunking.

Splits normalized document text into bounded, overlapping segments sized for
the embedding model.  The strategy follows the document's format family:

1. **Tabular** (CSV, spreadsheets) -- rows are packed into segments of up to
   ``tabular_chunk_size`` characters.  Each new segment re-prepends the
   table's header row (and the sheet marker, for spreadsheets) so every
   segment can be read on its own.

2. **Slide-based** (presentations) -- text is cut on ``--- Slide n ---``
   markers first; a slide longer than ``slide_chunk_size`` is split further
   with the generic strategy.

3. **Generic prose** -- a greedy forward scan with ``chunk_size`` windows and
   ``chunk_overlap`` characters of overlap.  A window edge that lands inside
   a word is walked back to the nearest space, period or newline, but never
   to a point less than ``boundary_lookback_floor`` characters into the
   window.

Segments shorter than ``min_chunk_length`` are dropped, except that text
which already fits in one window is always returned whole.  The chunker is
pure: the same text, family and parameters always give the same segments.
"""

from __future__ import annotations

import re

import structlog

from docrag.config.settings import Settings
from docrag.models.document import FormatFamily
from docrag.services.ingestion.extractors.detection import detect_format
from docrag.utils.text_normalizer import normalize_text

logger = structlog.get_logger(logger_name=__name__)

_SHEET_MARKER_RE = re.compile(r"^=== Sheet: .* ===$")
_SLIDE_MARKER_RE = re.compile(r"^--- Slide \d+ ---$")
_BOUNDARY_CHARS = (" ", ".", "\n")


class TextChunker:
    """Splits text into segments using a format-aware strategy.

    Parameters
    ----------
    chunk_size:
        Target maximum characters per generic segment (default 1000).
    overlap:
        Characters shared between consecutive generic segments (default 100).
    min_chunk_length:
        Segments shorter than this are dropped (default 50).
    lookback_floor:
        A word-boundary walk-back never moves a cut closer than this to the
        segment start (default 100).
    tabular_chunk_size:
        Character budget per tabular segment (default 1500).
    slide_chunk_size:
        Slides longer than this are split further (default 800).
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        overlap: int = 100,
        min_chunk_length: int = 50,
        lookback_floor: int = 100,
        tabular_chunk_size: int = 1500,
        slide_chunk_size: int = 800,
    ) -> None:
        if overlap >= chunk_size:
            msg = f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
            raise ValueError(msg)
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._min_chunk_length = min_chunk_length
        self._lookback_floor = lookback_floor
        self._tabular_chunk_size = tabular_chunk_size
        self._slide_chunk_size = slide_chunk_size

    @classmethod
    def from_settings(cls, settings: Settings) -> TextChunker:
        return cls(
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
            min_chunk_length=settings.min_chunk_length,
            lookback_floor=settings.boundary_lookback_floor,
            tabular_chunk_size=settings.tabular_chunk_size,
            slide_chunk_size=settings.slide_chunk_size,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str, content_type: FormatFamily | str | None) -> list[str]:
        """Split *text* into ordered segments.

        Parameters
        ----------
        text:
            Extracted document text; normalized here before splitting.
        content_type:
            A :class:`FormatFamily`, or a MIME type string that is mapped to
            one.

        Returns
        -------
        list[str]
            Ordered segments.  Empty input returns an empty list.
        """
        family = (
            content_type
            if isinstance(content_type, FormatFamily)
            else detect_format(content_type)
        )
        normalized = normalize_text(text)
        if not normalized:
            return []

        if family.is_tabular:
            segments = self._chunk_tabular(normalized)
        elif family.is_slides:
            segments = self._chunk_slides(normalized)
        else:
            segments = self._chunk_generic(normalized, self._chunk_size)

        logger.debug(
            "chunking_complete",
            family=family.value,
            chars=len(normalized),
            num_chunks=len(segments),
        )
        return segments

    # ------------------------------------------------------------------
    # Generic prose
    # ------------------------------------------------------------------

    def _chunk_generic(self, text: str, size: int) -> list[str]:
        if len(text) <= size:
            return [text]

        overlap = min(self._overlap, size - 1)
        segments: list[str] = []
        start = 0
        length = len(text)

        while start < length:
            end = min(start + size, length)
            if end < length and self._cuts_word(text, end):
                end = self._walk_back(text, start, end)

            segment = text[start:end].strip()
            if len(segment) >= self._min_chunk_length:
                segments.append(segment)
            if end >= length:
                break

            next_start = end - overlap
            # Always advance, even if a walk-back left a window shorter than the overlap.
            start = next_start if next_start > start else end

        return segments

    @staticmethod
    def _cuts_word(text: str, end: int) -> bool:
        """True when a cut at *end* would separate two non-space characters."""
        before, after = text[end - 1], text[end]
        return not before.isspace() and not after.isspace() and before != "."

    def _walk_back(self, text: str, start: int, end: int) -> int:
        """Return the cut just after the last boundary char in the lookback window.

        Falls back to the hard cut at *end* when the window has no boundary.
        """
        floor = start + self._lookback_floor
        if floor >= end:
            return end
        position = max(text.rfind(ch, floor, end) for ch in _BOUNDARY_CHARS)
        return position + 1 if position >= 0 else end

    # ------------------------------------------------------------------
    # Tabular
    # ------------------------------------------------------------------

    def _chunk_tabular(self, text: str) -> list[str]:
        segments: list[str] = []
        for section in self._split_on_markers(text.split("\n"), _SHEET_MARKER_RE):
            segments.extend(self._pack_rows(section))
        return segments

    def _pack_rows(self, lines: list[str]) -> list[str]:
        """Pack one table's rows into header-prefixed segments."""
        if not lines:
            return []

        header_len = 2 if _SHEET_MARKER_RE.match(lines[0]) and len(lines) > 1 else 1
        header = lines[:header_len]
        rows = lines[header_len:]
        budget = self._tabular_chunk_size

        segments: list[str] = []
        current: list[str] = list(header)
        current_len = len("\n".join(header))

        for row in rows:
            added = len(row) + 1
            if current_len + added > budget and len(current) > header_len:
                segments.append("\n".join(current))
                current = list(header)
                current_len = len("\n".join(header))
            current.append(row)
            current_len += added

        if len(current) > header_len or not segments:
            segments.append("\n".join(current))

        return [s for s in segments if len(s) >= self._min_chunk_length]

    # ------------------------------------------------------------------
    # Slides
    # ------------------------------------------------------------------

    def _chunk_slides(self, text: str) -> list[str]:
        blocks = self._split_on_markers(text.split("\n"), _SLIDE_MARKER_RE)
        if len(blocks) == 1 and not _SLIDE_MARKER_RE.match(blocks[0][0]):
            return self._chunk_generic(text, self._chunk_size)

        segments: list[str] = []
        for block in blocks:
            slide = "\n".join(block)
            if len(slide) <= self._slide_chunk_size:
                segments.append(slide)
                continue

            marker = block[0] if _SLIDE_MARKER_RE.match(block[0]) else None
            for piece in self._chunk_generic(slide, self._slide_chunk_size):
                if marker and not piece.startswith(marker):
                    piece = f"{marker}\n{piece}"
                segments.append(piece)
        return segments

    # ------------------------------------------------------------------

    @staticmethod
    def _split_on_markers(lines: list[str], marker_re: re.Pattern[str]) -> list[list[str]]:
        """Group lines into blocks that each start at a marker line.

        Lines before the first marker form their own leading block.
        """
        blocks: list[list[str]] = []
        current: list[str] = []
        for line in lines:
            if marker_re.match(line) and current:
                blocks.append(current)
                current = []
            current.append(line)
        if current:
            blocks.append(current)
        return blocks
