"""SQLite-backed chunk store with numpy cosine-similarity search.

Embeddings are stored as JSON arrays in the ``document_chunks`` table.
:meth:`SQLiteChunkStore.search` loads the candidate rows for a category,
scores them in one vectorised numpy pass and returns the top matches.
That is linear in the category's chunk count, which is fine for the corpus
sizes a single SQLite file serves.
"""

from __future__ import annotations

import json
from pathlib import Path

import aiosqlite
import numpy as np
import structlog

from docrag.interfaces.chunk_store import IChunkStore
from docrag.models.rag import DocumentChunk, SearchMatch
from docrag.providers.store.schema import connect, initialize_schema
from docrag.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/docrag.db")

_UPSERT_CHUNK_SQL = """\
INSERT INTO document_chunks (document_id, chunk_index, content, embedding, metadata)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(document_id, chunk_index)
DO UPDATE SET content   = excluded.content,
              embedding = excluded.embedding,
              metadata  = excluded.metadata;
"""

_SEARCH_CANDIDATES_SQL = """\
SELECT c.document_id, d.name AS document_name, c.chunk_index, c.content, c.embedding
FROM document_chunks c
JOIN documents d ON d.id = c.document_id
WHERE (? IS NULL OR d.category_id = ?);
"""


class SQLiteChunkStore(IChunkStore):
    """Chunk persistence and similarity search over a local SQLite file."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the tables and indices if they don't exist."""
        await initialize_schema(self._db_path)
        logger.info("chunk_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def delete_chunks(self, document_id: str) -> int:
        try:
            async with connect(self._db_path) as db:
                cursor = await db.execute(
                    "DELETE FROM document_chunks WHERE document_id = ?",
                    (document_id,),
                )
                await db.commit()
                deleted = cursor.rowcount
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Could not delete chunks of {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("chunks_deleted", document_id=document_id, count=deleted)
        return deleted

    async def insert_chunks(self, chunks: list[DocumentChunk]) -> int:
        if not chunks:
            return 0
        try:
            async with connect(self._db_path) as db:
                await db.executemany(_UPSERT_CHUNK_SQL, [self._to_row(c) for c in chunks])
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Batch insert of {len(chunks)} chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(chunks)

    async def insert_chunk(self, chunk: DocumentChunk) -> None:
        try:
            async with connect(self._db_path) as db:
                await db.execute(_UPSERT_CHUNK_SQL, self._to_row(chunk))
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=(
                    f"Insert of chunk {chunk.chunk_index} of {chunk.document_id} failed: {exc}"
                ),
                provider_name=self.get_provider_name(),
            ) from exc

    async def replace_chunks(self, document_id: str, chunks: list[DocumentChunk]) -> int:
        foreign = [c.chunk_index for c in chunks if c.document_id != document_id]
        if foreign:
            msg = f"Chunks {foreign} do not belong to document {document_id}"
            raise ValueError(msg)

        try:
            async with connect(self._db_path) as db:
                # One transaction: a failure rolls back to the previous chunk set.
                try:
                    await db.execute(
                        "DELETE FROM document_chunks WHERE document_id = ?",
                        (document_id,),
                    )
                    await db.executemany(_UPSERT_CHUNK_SQL, [self._to_row(c) for c in chunks])
                    await db.commit()
                except aiosqlite.Error:
                    await db.rollback()
                    raise
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Replacing chunks of {document_id} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chunks_replaced", document_id=document_id, count=len(chunks))
        return len(chunks)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def count_chunks(self, document_id: str) -> int:
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) AS n FROM document_chunks WHERE document_id = ?",
                (document_id,),
            )
            row = await cursor.fetchone()
        return int(row["n"]) if row else 0

    async def list_chunks(self, document_id: str) -> list[DocumentChunk]:
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT document_id, chunk_index, content, embedding, metadata "
                "FROM document_chunks WHERE document_id = ? ORDER BY chunk_index",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [
            DocumentChunk(
                document_id=r["document_id"],
                chunk_index=r["chunk_index"],
                content=r["content"],
                embedding=json.loads(r["embedding"]),
                metadata=json.loads(r["metadata"]),
            )
            for r in rows
        ]

    async def search(
        self,
        query_embedding: list[float],
        category_id: str | None,
        threshold: float,
        limit: int,
    ) -> list[SearchMatch]:
        if not query_embedding or limit <= 0:
            return []

        async with connect(self._db_path) as db:
            cursor = await db.execute(_SEARCH_CANDIDATES_SQL, (category_id, category_id))
            rows = await cursor.fetchall()

        query = np.asarray(query_embedding, dtype=np.float64)
        candidates = []
        vectors = []
        skipped = 0
        for row in rows:
            vector = json.loads(row["embedding"])
            if len(vector) != query.shape[0]:
                skipped += 1
                continue
            candidates.append(row)
            vectors.append(vector)

        if skipped:
            logger.warning(
                "search_dimension_mismatch",
                skipped=skipped,
                expected_dimension=int(query.shape[0]),
            )
        if not candidates:
            return []

        scores = _cosine_similarities(query, np.asarray(vectors, dtype=np.float64))
        order = np.argsort(-scores, kind="stable")

        matches: list[SearchMatch] = []
        for idx in order:
            score = float(scores[idx])
            if score < threshold:
                break
            row = candidates[idx]
            matches.append(
                SearchMatch(
                    document_id=row["document_id"],
                    document_name=row["document_name"],
                    chunk_index=row["chunk_index"],
                    content=row["content"],
                    similarity=score,
                )
            )
            if len(matches) >= limit:
                break

        logger.debug(
            "chunk_search",
            category_id=category_id,
            candidates=len(candidates),
            matches=len(matches),
            threshold=threshold,
        )
        return matches

    def get_provider_name(self) -> str:
        return "sqlite_chunks"

    # ------------------------------------------------------------------

    @staticmethod
    def _to_row(chunk: DocumentChunk) -> tuple:
        return (
            chunk.document_id,
            chunk.chunk_index,
            chunk.content,
            json.dumps(chunk.embedding),
            json.dumps(chunk.metadata),
        )


def _cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of *query* against every row of *matrix*.

    Zero-length vectors score 0.0 instead of producing NaN.
    """
    row_norms = np.linalg.norm(matrix, axis=1)
    query_norm = float(np.linalg.norm(query))
    denom = row_norms * query_norm
    dots = matrix @ query
    return np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
