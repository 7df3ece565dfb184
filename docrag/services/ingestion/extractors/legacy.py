"""Best-effort text scraping for legacy binary Office files (doc, xls, ppt).

There is no structural parser here.  The bytes are decoded as Latin-1 (every
byte maps to one character), UTF-16LE runs are collapsed by dropping the NUL
that sits between two printable characters, every other run of control
characters becomes a line break, and only the fragments that look like
natural-language text are kept.

The thresholds are passed in from :class:`~docrag.config.settings.Settings`
so tests can probe the edge cases directly.
"""

from __future__ import annotations

import re

import structlog

from docrag.utils.errors import ExtractionError
from docrag.utils.text_normalizer import letter_ratio

logger = structlog.get_logger(logger_name=__name__)

_PRINTABLE = r"[\x20-\x7e\xa0-\xff]"
_UTF16_NUL_RE = re.compile(rf"(?<={_PRINTABLE})\x00(?={_PRINTABLE})")
# C0 controls except tab / LF / CR, DEL, and the C1 range Latin-1 maps 0x80-0x9f to.
_CONTROL_RUN_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]+")
_LINE_SPLIT_RE = re.compile(r"[\r\n]+")


def scan_legacy_binary(
    data: bytes,
    format_name: str,
    min_run_length: int = 4,
    min_letter_sequence: int = 3,
    min_letter_ratio: float = 0.4,
) -> str:
    """Return the text-like fragments of a legacy binary document.

    Parameters
    ----------
    data:
        Raw file bytes.
    format_name:
        ``"doc"``, ``"xls"`` or ``"ppt"``; used in error messages only.
    min_run_length:
        Fragments shorter than this (after trimming) are discarded.
    min_letter_sequence:
        A kept fragment must contain at least this many consecutive letters.
    min_letter_ratio:
        A kept fragment must be at least this fraction letters.

    Returns
    -------
    str
        Kept fragments, one per line.  May be short or empty; the caller
        applies the minimum-length check.
    """
    if not data:
        raise ExtractionError(format_name, "empty file")

    text = data.decode("latin-1")
    text = _UTF16_NUL_RE.sub("", text)
    text = _CONTROL_RUN_RE.sub("\n", text)

    letter_sequence_re = re.compile(rf"[^\W\d_]{{{min_letter_sequence},}}")
    kept: list[str] = []
    fragments = 0
    for fragment in _LINE_SPLIT_RE.split(text):
        fragment = fragment.strip()
        if not fragment:
            continue
        fragments += 1
        if len(fragment) < min_run_length:
            continue
        if not letter_sequence_re.search(fragment):
            continue
        if letter_ratio(fragment) < min_letter_ratio:
            continue
        kept.append(fragment)

    logger.debug(
        "legacy_binary_scanned",
        format=format_name,
        bytes=len(data),
        fragments=fragments,
        kept=len(kept),
    )
    return "\n".join(kept)
