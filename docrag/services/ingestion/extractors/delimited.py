"""Plain-text and delimited-text (CSV) extraction."""

from __future__ import annotations

import csv
import io

from docrag.services.ingestion.extractors.office import CELL_SEPARATOR
from docrag.utils.errors import ExtractionError

CANDIDATE_DELIMITERS = (",", ";", "\t")
_SNIFF_LINES = 20


def decode_text(data: bytes) -> str:
    """Decode as UTF-8 (BOM tolerated), falling back to Latin-1."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def detect_delimiter(text: str) -> str:
    """Pick the most frequent of comma, semicolon and tab in the first lines.

    Ties go to the earlier candidate; text with none of them uses a comma.
    """
    sample = "\n".join(text.splitlines()[:_SNIFF_LINES])
    counts = {d: sample.count(d) for d in CANDIDATE_DELIMITERS}
    best = max(CANDIDATE_DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def extract_plain_text(data: bytes) -> str:
    return decode_text(data)


def extract_csv(data: bytes) -> str:
    """Return one line per non-empty row with cells joined by `` | ``."""
    text = decode_text(data)
    delimiter = detect_delimiter(text)

    lines: list[str] = []
    try:
        for row in csv.reader(io.StringIO(text, newline=""), delimiter=delimiter):
            cells = [cell.strip() for cell in row]
            if not any(cells):
                continue
            lines.append(CELL_SEPARATOR.join(cells))
    except csv.Error as exc:
        raise ExtractionError("csv", f"malformed CSV: {exc}") from exc
    return "\n".join(lines)
