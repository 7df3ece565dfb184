"""Text extraction for the zip-packaged Office formats (docx, xlsx, pptx).

Each format is a zip archive of XML parts.  Rather than building a DOM, the
extractors scan for the handful of tags that carry text:

    docx  word/document.xml          <w:t> runs, </w:p> paragraph ends
    xlsx  xl/sharedStrings.xml        <si> entries referenced by index
          xl/worksheets/sheetN.xml    <row>/<c> cells
    pptx  ppt/slides/slideN.xml       <a:t> runs, </a:p> paragraph ends

Output conventions the chunker relies on:

* spreadsheets: ``=== Sheet: <name> ===`` before each sheet, one row per
  line, cells joined with `` | ``
* presentations: ``--- Slide <n> ---`` before each slide's text
"""

from __future__ import annotations

import io
import posixpath
import re
import zipfile

import structlog

from docrag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

SHEET_MARKER = "=== Sheet: {name} ==="
SLIDE_MARKER = "--- Slide {number} ---"
CELL_SEPARATOR = " | "

_ENTITY_RE = re.compile(r"&(lt|gt|quot|apos|amp|#[0-9]+|#x[0-9a-fA-F]+);")
_NAMED_ENTITIES = {"lt": "<", "gt": ">", "quot": '"', "apos": "'", "amp": "&"}
_ATTR_RE = re.compile(r'([\w:]+)\s*=\s*"([^"]*)"')

_DOCX_TOKEN_RE = re.compile(
    r"<w:t(?:\s[^>]*)?>(?P<text>[^<]*)</w:t>"
    r"|(?P<para></w:p>)"
    r"|(?P<brk><w:(?:br|cr)\b[^>]*/>)"
    r"|(?P<tab><w:tab\b[^>]*/>)"
)
_PPTX_TOKEN_RE = re.compile(
    r"<a:t(?:\s[^>]*)?>(?P<text>[^<]*)</a:t>"
    r"|(?P<para></a:p>)"
    r"|(?P<brk><a:br\b[^>]*/?>)"
)
_SHARED_ITEM_RE = re.compile(r"<si\b[^>]*>(.*?)</si>", re.DOTALL)
_PHONETIC_RE = re.compile(r"<rPh\b.*?</rPh>", re.DOTALL)
_T_RE = re.compile(r"<t(?:\s[^>]*)?>([^<]*)</t>")
_SHEET_RE = re.compile(r"<sheet\b([^>]*)/?>")
_SLIDE_ID_RE = re.compile(r"<p:sldId\b([^>]*)/?>")
_RELATIONSHIP_RE = re.compile(r"<Relationship\b([^>]*)/?>")
_ROW_RE = re.compile(r"<row\b[^>]*?(?:/>|>(.*?)</row>)", re.DOTALL)
_CELL_RE = re.compile(r"<c\b([^>]*?)(?:/>|>(.*?)</c>)", re.DOTALL)
_VALUE_RE = re.compile(r"<v>([^<]*)</v>")
_COLUMN_RE = re.compile(r"^([A-Z]+)")
_PART_NUMBER_RE = re.compile(r"(\d+)\.xml$")


def unescape_xml(text: str) -> str:
    """Replace the five predefined XML entities and numeric character references.

    Substitution is single-pass, so ``&amp;lt;`` becomes ``&lt;`` rather
    than ``<``.  A numeric reference outside the Unicode range is left as
    written.
    """

    def _replace(match: re.Match[str]) -> str:
        entity = match.group(1)
        if not entity.startswith("#"):
            return _NAMED_ENTITIES[entity]
        try:
            if entity.startswith("#x"):
                return chr(int(entity[2:], 16))
            return chr(int(entity[1:]))
        except (ValueError, OverflowError):
            return match.group(0)

    return _ENTITY_RE.sub(_replace, text)


# ---------------------------------------------------------------------------
# docx
# ---------------------------------------------------------------------------


def extract_docx(data: bytes) -> str:
    """Return the body text of a word-processing package, one paragraph per line."""
    with _open_archive(data, "docx") as archive:
        xml = _read_part(archive, "word/document.xml", "docx")
    return _scan_runs(xml, _DOCX_TOKEN_RE)


# ---------------------------------------------------------------------------
# xlsx
# ---------------------------------------------------------------------------


def extract_xlsx(data: bytes) -> str:
    """Return every sheet's rows, each sheet introduced by a sheet marker."""
    with _open_archive(data, "xlsx") as archive:
        names = set(archive.namelist())
        shared = []
        if "xl/sharedStrings.xml" in names:
            shared = _parse_shared_strings(_read_part(archive, "xl/sharedStrings.xml", "xlsx"))

        sheets = _ordered_sheets(archive, names)
        if not sheets:
            raise ExtractionError("xlsx", "no worksheets found")

        blocks: list[str] = []
        for sheet_name, part in sheets:
            rows = _parse_sheet_rows(_read_part(archive, part, "xlsx"), shared)
            if not rows:
                continue
            lines = [SHEET_MARKER.format(name=sheet_name)]
            lines.extend(CELL_SEPARATOR.join(row) for row in rows)
            blocks.append("\n".join(lines))

    logger.debug("xlsx_extracted", sheets=len(sheets), non_empty_sheets=len(blocks))
    return "\n".join(blocks)


def _parse_shared_strings(xml: str) -> list[str]:
    strings: list[str] = []
    for item in _SHARED_ITEM_RE.findall(xml):
        item = _PHONETIC_RE.sub("", item)
        strings.append(unescape_xml("".join(_T_RE.findall(item))))
    return strings


def _ordered_sheets(archive: zipfile.ZipFile, names: set[str]) -> list[tuple[str, str]]:
    """Return ``(sheet_name, part_path)`` in workbook order."""
    if "xl/workbook.xml" in names and "xl/_rels/workbook.xml.rels" in names:
        workbook = _read_part(archive, "xl/workbook.xml", "xlsx")
        targets = _relationship_targets(
            _read_part(archive, "xl/_rels/workbook.xml.rels", "xlsx"), base_dir="xl"
        )
        sheets: list[tuple[str, str]] = []
        for raw_attrs in _SHEET_RE.findall(workbook):
            attrs = dict(_ATTR_RE.findall(raw_attrs))
            target = targets.get(attrs.get("r:id", ""))
            if target and target in names:
                sheets.append((unescape_xml(attrs.get("name", "")) or posixpath.basename(target), target))
        if sheets:
            return sheets

    parts = _numbered_parts(names, "xl/worksheets/sheet")
    return [(f"Sheet{_part_number(p)}", p) for p in parts]


def _parse_sheet_rows(xml: str, shared: list[str]) -> list[list[str]]:
    rows: list[list[str]] = []
    for row_body in _ROW_RE.findall(xml):
        cells: dict[int, str] = {}
        next_column = 0
        for raw_attrs, body in _CELL_RE.findall(row_body or ""):
            attrs = dict(_ATTR_RE.findall(raw_attrs))
            column = _column_index(attrs.get("r", ""))
            if column is None:
                column = next_column
            next_column = column + 1
            value = _cell_value(attrs.get("t", "n"), body or "", shared)
            if value:
                cells[column] = value
        if not cells:
            continue
        width = max(cells) + 1
        rows.append([cells.get(i, "") for i in range(width)])
    return rows


def _cell_value(cell_type: str, body: str, shared: list[str]) -> str:
    if cell_type == "inlineStr":
        return unescape_xml("".join(_T_RE.findall(body))).strip()

    match = _VALUE_RE.search(body)
    if match is None:
        return ""
    raw = unescape_xml(match.group(1)).strip()

    if cell_type == "s":
        try:
            return shared[int(raw)].strip()
        except (ValueError, IndexError) as exc:
            raise ExtractionError("xlsx", f"invalid shared string reference {raw!r}") from exc
    if cell_type == "b":
        return "TRUE" if raw == "1" else "FALSE"
    return raw


def _column_index(reference: str) -> int | None:
    """``"A1" -> 0``, ``"AB7" -> 27``; ``None`` when there is no reference."""
    match = _COLUMN_RE.match(reference)
    if match is None:
        return None
    index = 0
    for letter in match.group(1):
        index = index * 26 + (ord(letter) - ord("A") + 1)
    return index - 1


# ---------------------------------------------------------------------------
# pptx
# ---------------------------------------------------------------------------


def extract_pptx(data: bytes) -> str:
    """Return slide text, each slide introduced by a numbered slide marker."""
    with _open_archive(data, "pptx") as archive:
        names = set(archive.namelist())
        slides = _ordered_slides(archive, names)
        if not slides:
            raise ExtractionError("pptx", "no slides found")

        blocks: list[str] = []
        for number, part in enumerate(slides, start=1):
            text = _scan_runs(_read_part(archive, part, "pptx"), _PPTX_TOKEN_RE).strip()
            if text:
                blocks.append(f"{SLIDE_MARKER.format(number=number)}\n{text}")

    logger.debug("pptx_extracted", slides=len(slides), non_empty_slides=len(blocks))
    return "\n".join(blocks)


def _ordered_slides(archive: zipfile.ZipFile, names: set[str]) -> list[str]:
    """Return slide part paths in presentation order."""
    if "ppt/presentation.xml" in names and "ppt/_rels/presentation.xml.rels" in names:
        presentation = _read_part(archive, "ppt/presentation.xml", "pptx")
        targets = _relationship_targets(
            _read_part(archive, "ppt/_rels/presentation.xml.rels", "pptx"), base_dir="ppt"
        )
        ordered = []
        for raw_attrs in _SLIDE_ID_RE.findall(presentation):
            attrs = dict(_ATTR_RE.findall(raw_attrs))
            target = targets.get(attrs.get("r:id", ""))
            if target and target in names:
                ordered.append(target)
        if ordered:
            return ordered

    return _numbered_parts(names, "ppt/slides/slide")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _open_archive(data: bytes, format_name: str) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as exc:
        raise ExtractionError(format_name, "not a valid zip archive") from exc


def _read_part(archive: zipfile.ZipFile, part: str, format_name: str) -> str:
    try:
        raw = archive.read(part)
    except KeyError as exc:
        raise ExtractionError(format_name, f"missing archive part {part}") from exc
    except (zipfile.BadZipFile, OSError, RuntimeError) as exc:
        raise ExtractionError(format_name, f"unreadable archive part {part}: {exc}") from exc
    return raw.decode("utf-8", errors="replace")


def _scan_runs(xml: str, token_re: re.Pattern[str]) -> str:
    """Concatenate text runs, turning paragraph ends and breaks into newlines."""
    pieces: list[str] = []
    for match in token_re.finditer(xml):
        if match.group("text") is not None:
            pieces.append(unescape_xml(match.group("text")))
        elif match.group("para") or match.group("brk"):
            pieces.append("\n")
        elif match.groupdict().get("tab"):
            pieces.append("\t")
    return "".join(pieces)


def _relationship_targets(rels_xml: str, base_dir: str) -> dict[str, str]:
    """Map relationship ids to normalised archive paths."""
    targets: dict[str, str] = {}
    for raw_attrs in _RELATIONSHIP_RE.findall(rels_xml):
        attrs = dict(_ATTR_RE.findall(raw_attrs))
        rel_id, target = attrs.get("Id"), attrs.get("Target")
        if not rel_id or not target:
            continue
        if target.startswith("/"):
            path = target.lstrip("/")
        else:
            path = posixpath.normpath(posixpath.join(base_dir, target))
        targets[rel_id] = path
    return targets


def _numbered_parts(names: set[str], prefix: str) -> list[str]:
    parts = [n for n in names if n.startswith(prefix) and _PART_NUMBER_RE.search(n)]
    # Only direct children, e.g. not ppt/slides/_rels/slide1.xml.rels.
    parts = [p for p in parts if "/" not in p[len(prefix):]]
    return sorted(parts, key=_part_number)


def _part_number(part: str) -> int:
    match = _PART_NUMBER_RE.search(part)
    return int(match.group(1)) if match else 0
