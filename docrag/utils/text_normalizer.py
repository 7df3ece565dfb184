"""Text normalization applied to extracted document text before chunking.

Extractors return text with whatever noise the source format carried: NUL
bytes from UTF-16 runs, stray control characters from legacy binaries,
Windows line endings, tab-aligned columns, long runs of blank lines.  The
chunker measures segment sizes in characters, so this noise must be removed
first or it inflates chunk sizes and produces unstable boundaries.

Line structure is kept on purpose: the tabular and slide strategies split on
newlines and on marker lines, so only horizontal whitespace is collapsed.
"""

import re

# Every C0 control character except "\n" (0x0A), plus DEL.
_CONTROL_CHARS = re.compile(r"[\x00-\x09\x0b-\x1f\x7f]")
_HORIZONTAL_WS = re.compile(r"[ \t\f\v\u00a0]+")
_BLANK_LINES = re.compile(r"\n{2,}")


def normalize_text(text: str) -> str:
    """Strip control characters, collapse whitespace runs and trim.

    Steps, in order:

    1. ``\\r\\n`` and lone ``\\r`` become ``\\n``.
    2. Tabs and other horizontal whitespace collapse to a single space.
    3. NUL and the remaining control characters are removed.
    4. Each line is trimmed and runs of newlines collapse to one.
    5. The whole result is trimmed.

    The function is idempotent: ``normalize_text(normalize_text(t)) ==
    normalize_text(t)``.

    Args:
        text: Raw extracted text.

    Returns:
        Normalized text, possibly empty.
    """
    if not text:
        return ""

    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _HORIZONTAL_WS.sub(" ", normalized)
    normalized = _CONTROL_CHARS.sub("", normalized)
    normalized = "\n".join(line.strip() for line in normalized.split("\n"))
    normalized = _BLANK_LINES.sub("\n", normalized)
    return normalized.strip()


def letter_ratio(text: str) -> float:
    """Return the fraction of characters in *text* that are letters."""
    if not text:
        return 0.0
    return sum(1 for ch in text if ch.isalpha()) / len(text)
