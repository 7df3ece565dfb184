"""Shared SQLite schema for documents, categories and chunks.

All three tables live in one database file so ``ON DELETE CASCADE`` from
``documents`` to ``document_chunks`` is enforced by SQLite itself.  Foreign
keys are off by default in SQLite, so every connection opened through
:func:`connect` switches them on.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

_SCHEMA_SQL = f"""\
CREATE TABLE IF NOT EXISTS categories (
    id          TEXT    PRIMARY KEY,
    name        TEXT    NOT NULL,
    description TEXT,
    is_active   INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT    NOT NULL DEFAULT ({NOW_SQL})
);

CREATE TABLE IF NOT EXISTS documents (
    id           TEXT    PRIMARY KEY,
    category_id  TEXT    NOT NULL REFERENCES categories(id),
    name         TEXT    NOT NULL,
    file_path    TEXT    NOT NULL,
    file_size    INTEGER NOT NULL DEFAULT 0,
    file_type    TEXT    NOT NULL DEFAULT 'application/octet-stream',
    status       TEXT    NOT NULL DEFAULT 'pending'
                 CHECK (status IN ('pending', 'processing', 'processed', 'error')),
    chunk_count  INTEGER NOT NULL DEFAULT 0,
    uploaded_by  TEXT,
    created_at   TEXT    NOT NULL DEFAULT ({NOW_SQL}),
    updated_at   TEXT    NOT NULL DEFAULT ({NOW_SQL}),
    processed_at TEXT
);

CREATE TABLE IF NOT EXISTS document_chunks (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id TEXT    NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index INTEGER NOT NULL,
    content     TEXT    NOT NULL,
    embedding   TEXT    NOT NULL,
    metadata    TEXT    NOT NULL DEFAULT '{{}}',
    created_at  TEXT    NOT NULL DEFAULT ({NOW_SQL}),
    UNIQUE(document_id, chunk_index)
);

CREATE INDEX IF NOT EXISTS idx_documents_category ON documents(category_id);
CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);
CREATE INDEX IF NOT EXISTS idx_chunks_document ON document_chunks(document_id);
"""


@asynccontextmanager
async def connect(db_path: str | Path) -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection with foreign keys enabled and ``Row`` results."""
    async with aiosqlite.connect(str(db_path)) as db:
        await db.execute("PRAGMA foreign_keys = ON")
        db.row_factory = aiosqlite.Row
        yield db


async def initialize_schema(db_path: str | Path) -> None:
    """Create every table and index if missing.  Safe to call repeatedly."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    async with connect(db_path) as db:
        await db.executescript(_SCHEMA_SQL)
        await db.commit()
