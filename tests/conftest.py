"""Shared pytest fixtures for the docrag test suite."""

from __future__ import annotations

import hashlib
import io
import re
import zipfile
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.models.document import Category, Document
from docrag.providers.storage.local_storage import LocalObjectStorage
from docrag.providers.store.sqlite_chunk_store import SQLiteChunkStore
from docrag.providers.store.sqlite_document_repository import SQLiteDocumentRepository

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def make_settings(tmp_path: Path | None = None, **overrides: Any) -> Settings:
    """Settings isolated from the developer's environment and data directory."""
    defaults: dict[str, Any] = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "embedding_batch_delay": 0.0,
    }
    if tmp_path is not None:
        defaults["database_path"] = str(tmp_path / "docrag.db")
        defaults["storage_root"] = str(tmp_path / "storage")
    defaults.update(overrides)
    return Settings(**defaults)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 64
_WORD_RE = re.compile(r"\w+")


def word_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Hash each lower-cased word into one of *dim* buckets and L2-normalise.

    Texts sharing most of their words get a high cosine similarity; texts
    with no words in common score near zero.
    """
    vector = [0.0] * dim
    for word in _WORD_RE.findall(text.lower()):
        bucket = int.from_bytes(hashlib.sha256(word.encode("utf-8")).digest()[:4], "big") % dim
        vector[bucket] += 1.0
    magnitude = sum(v * v for v in vector) ** 0.5
    if magnitude == 0:
        return vector
    return [v / magnitude for v in vector]


class WordHashEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests.

    ``fail_on`` lists substrings; texts containing one always fail.
    """

    def __init__(self, fail_on: tuple[str, ...] = ()) -> None:
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def embed_single(self, text: str) -> list[float]:
        from docrag.utils.errors import EmbeddingError

        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise EmbeddingError(message="Embedding failed after 3 attempt(s): boom")
        return word_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "word-hash-embedding"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def embedding_provider() -> WordHashEmbeddingProvider:
    return WordHashEmbeddingProvider()


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """LLM provider whose ``complete`` returns a fixed answer."""
    llm = MagicMock(spec=ILLMProvider)
    llm.complete = AsyncMock(return_value="Grounded answer.")
    llm.get_provider_name.return_value = "mock-llm"
    llm.is_available.return_value = True
    return llm


# ---------------------------------------------------------------------------
# Local adapters on tmp_path
# ---------------------------------------------------------------------------


@pytest.fixture
async def repository(settings: Settings) -> SQLiteDocumentRepository:
    repo = SQLiteDocumentRepository(settings.database_path)
    await repo.initialize()
    return repo


@pytest.fixture
async def chunk_store(settings: Settings, repository: SQLiteDocumentRepository) -> SQLiteChunkStore:
    store = SQLiteChunkStore(settings.database_path)
    await store.initialize()
    return store


@pytest.fixture
def storage(settings: Settings) -> LocalObjectStorage:
    return LocalObjectStorage(settings.storage_root, bucket=settings.storage_bucket)


@pytest.fixture
async def category(repository: SQLiteDocumentRepository) -> Category:
    return await repository.create_category(
        Category(id="cat-1", name="Handbook", description="Employee handbook")
    )


async def store_document(
    repository: SQLiteDocumentRepository,
    storage: LocalObjectStorage,
    data: bytes,
    *,
    document_id: str = "doc-1",
    category_id: str = "cat-1",
    name: str = "notes.txt",
    file_type: str = "text/plain",
) -> Document:
    """Put *data* in storage and create a pending document row for it."""
    path = f"{category_id}/{document_id}.bin"
    await storage.upload(path, data)
    return await repository.create_document(
        Document(
            id=document_id,
            category_id=category_id,
            name=name,
            file_path=path,
            file_size=len(data),
            file_type=file_type,
        )
    )


# ---------------------------------------------------------------------------
# In-memory Office packages
# ---------------------------------------------------------------------------


def _zip(parts: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in parts.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def _xml_escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def build_docx(paragraphs: list[str]) -> bytes:
    body = "".join(
        f'<w:p><w:r><w:t xml:space="preserve">{_xml_escape(p)}</w:t></w:r></w:p>'
        for p in paragraphs
    )
    document = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
        f"<w:body>{body}</w:body></w:document>"
    )
    return _zip({"[Content_Types].xml": "<Types/>", "word/document.xml": document})


def build_xlsx(sheets: dict[str, list[list[str]]]) -> bytes:
    """Build a workbook whose string cells all go through the shared-string table."""
    shared: list[str] = []
    parts: dict[str, str] = {"[Content_Types].xml": "<Types/>"}
    sheet_entries = []
    rel_entries = []

    for number, (name, rows) in enumerate(sheets.items(), start=1):
        row_xml = []
        for r, row in enumerate(rows, start=1):
            cells = []
            for c, value in enumerate(row):
                ref = f"{chr(ord('A') + c)}{r}"
                if value.replace(".", "", 1).isdigit():
                    cells.append(f'<c r="{ref}"><v>{value}</v></c>')
                else:
                    shared.append(value)
                    cells.append(f'<c r="{ref}" t="s"><v>{len(shared) - 1}</v></c>')
            row_xml.append(f'<row r="{r}">{"".join(cells)}</row>')
        parts[f"xl/worksheets/sheet{number}.xml"] = (
            "<worksheet><sheetData>" + "".join(row_xml) + "</sheetData></worksheet>"
        )
        sheet_entries.append(f'<sheet name="{_xml_escape(name)}" sheetId="{number}" r:id="rId{number}"/>')
        rel_entries.append(
            f'<Relationship Id="rId{number}" Type="worksheet" Target="worksheets/sheet{number}.xml"/>'
        )

    parts["xl/workbook.xml"] = "<workbook><sheets>" + "".join(sheet_entries) + "</sheets></workbook>"
    parts["xl/_rels/workbook.xml.rels"] = "<Relationships>" + "".join(rel_entries) + "</Relationships>"
    parts["xl/sharedStrings.xml"] = (
        "<sst>" + "".join(f"<si><t>{_xml_escape(s)}</t></si>" for s in shared) + "</sst>"
    )
    return _zip(parts)


def build_pptx(slides: list[list[str]]) -> bytes:
    """Build a presentation; each slide is a list of paragraphs."""
    parts: dict[str, str] = {"[Content_Types].xml": "<Types/>"}
    ids = []
    rels = []
    for number, paragraphs in enumerate(slides, start=1):
        body = "".join(f"<a:p><a:r><a:t>{_xml_escape(p)}</a:t></a:r></a:p>" for p in paragraphs)
        parts[f"ppt/slides/slide{number}.xml"] = f"<p:sld><p:cSld><p:spTree>{body}</p:spTree></p:cSld></p:sld>"
        ids.append(f'<p:sldId id="{255 + number}" r:id="rId{number}"/>')
        rels.append(f'<Relationship Id="rId{number}" Type="slide" Target="slides/slide{number}.xml"/>')
    parts["ppt/presentation.xml"] = "<p:presentation><p:sldIdLst>" + "".join(ids) + "</p:sldIdLst></p:presentation>"
    parts["ppt/_rels/presentation.xml.rels"] = "<Relationships>" + "".join(rels) + "</Relationships>"
    return _zip(parts)


def build_pdf(pages: list[str]) -> bytes:
    import fitz

    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data
