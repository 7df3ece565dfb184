"""Content-type to format-family detection.

The declared MIME type wins.  The filename extension is consulted only when
the MIME type is missing, generic (``application/octet-stream``) or unknown.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from docrag.models.document import FormatFamily

GENERIC_CONTENT_TYPE = "application/octet-stream"

_MIME_FAMILIES: dict[str, FormatFamily] = {
    "application/pdf": FormatFamily.PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": FormatFamily.DOCX,
    "application/msword": FormatFamily.DOC,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": FormatFamily.XLSX,
    "application/vnd.ms-excel": FormatFamily.XLS,
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": FormatFamily.PPTX,
    "application/vnd.ms-powerpoint": FormatFamily.PPT,
    "text/csv": FormatFamily.CSV,
    "application/csv": FormatFamily.CSV,
    "text/comma-separated-values": FormatFamily.CSV,
    "text/tab-separated-values": FormatFamily.CSV,
    "text/plain": FormatFamily.TEXT,
    "text/markdown": FormatFamily.TEXT,
}

_EXTENSION_FAMILIES: dict[str, FormatFamily] = {
    ".pdf": FormatFamily.PDF,
    ".docx": FormatFamily.DOCX,
    ".doc": FormatFamily.DOC,
    ".xlsx": FormatFamily.XLSX,
    ".xls": FormatFamily.XLS,
    ".pptx": FormatFamily.PPTX,
    ".ppt": FormatFamily.PPT,
    ".csv": FormatFamily.CSV,
    ".tsv": FormatFamily.CSV,
    ".txt": FormatFamily.TEXT,
    ".text": FormatFamily.TEXT,
    ".md": FormatFamily.TEXT,
}

# Canonical MIME type per family, used when a caller only has a filename.
FAMILY_CONTENT_TYPES: dict[FormatFamily, str] = {
    FormatFamily.PDF: "application/pdf",
    FormatFamily.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    FormatFamily.DOC: "application/msword",
    FormatFamily.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    FormatFamily.XLS: "application/vnd.ms-excel",
    FormatFamily.PPTX: "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    FormatFamily.PPT: "application/vnd.ms-powerpoint",
    FormatFamily.CSV: "text/csv",
    FormatFamily.TEXT: "text/plain",
    FormatFamily.UNKNOWN: GENERIC_CONTENT_TYPE,
}


def detect_format(content_type: str | None, filename: str | None = None) -> FormatFamily:
    """Map a declared content type (and optional filename) to a format family.

    Parameters
    ----------
    content_type:
        Declared MIME type; parameters such as ``; charset=utf-8`` and
        letter case are ignored.
    filename:
        Original filename, used as a fallback hint.

    Returns
    -------
    FormatFamily
        ``FormatFamily.UNKNOWN`` when neither hint is recognised.
    """
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    by_extension = _family_from_filename(filename)

    by_mime = _MIME_FAMILIES.get(mime)
    if by_mime is None and mime.startswith("text/"):
        by_mime = FormatFamily.TEXT

    if by_mime is not None:
        # Browsers on Windows report .csv uploads as application/vnd.ms-excel.
        if by_mime is FormatFamily.XLS and by_extension is FormatFamily.CSV:
            return FormatFamily.CSV
        return by_mime

    return by_extension or FormatFamily.UNKNOWN


def content_type_for(filename: str) -> str:
    """Return the canonical MIME type for *filename*'s extension."""
    family = _family_from_filename(filename) or FormatFamily.UNKNOWN
    return FAMILY_CONTENT_TYPES[family]


def extension_for(filename: str | None, family: FormatFamily) -> str:
    """Return the storage extension (without dot) for an upload."""
    suffix = PurePosixPath(filename or "").suffix.lower().lstrip(".")
    if suffix:
        return suffix
    return "bin" if family is FormatFamily.UNKNOWN else family.value


def _family_from_filename(filename: str | None) -> FormatFamily | None:
    if not filename:
        return None
    return _EXTENSION_FAMILIES.get(PurePosixPath(filename).suffix.lower())
