"""Retrieval and grounded answer composition.

Query path for one question, scoped to one category:

  1. EMBED     -- the raw question becomes a vector (same model as ingestion).
  2. RETRIEVE  -- the chunk store returns the closest chunks of that
                  category above the similarity threshold (5 for chat,
                  20 for plain search).
  3. CONTEXT   -- retrieved chunks are concatenated, each labeled with its
                  source document's name.  With no matches the context is
                  an explicit "no relevant documents" marker.
  4. GENERATE  -- the system instruction restricts the model to that
                  context and tells it to say so when the answer is not
                  there.  The user's message is passed through unchanged.
  5. CITE      -- every retrieved chunk is returned as a source, whether or
                  not the model mentioned it.

An embedding, search or completion failure propagates to the caller.  An
empty retrieval is not a failure.  The service holds no state between
requests.
"""

from __future__ import annotations

import structlog

from docrag.interfaces.chunk_store import IChunkStore
from docrag.interfaces.document_repository import IDocumentRepository
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.models.rag import ChatAnswer, SearchMatch, SourceCitation
from docrag.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

NO_CONTEXT_MARKER = "No relevant documents were found for this query."
_DEFAULT_CATEGORY_LABEL = "the selected category"


class ChatService:
    """Answers questions from the indexed documents of one category.

    Parameters
    ----------
    embedding_provider:
        Embeds the user's question.
    chunk_store:
        Category-scoped similarity search.
    llm_provider:
        Generates the grounded answer.
    repository:
        Used to look up the category's display name for the instruction.
    match_threshold:
        Minimum cosine similarity for a chunk to be retrieved.
    chat_match_count:
        Chunks retrieved for an answer.
    search_match_count:
        Chunks retrieved for a plain search.
    temperature, max_tokens:
        Completion parameters.
    answer_language:
        Language the model must answer in; empty means "the question's
        language".
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        chunk_store: IChunkStore,
        llm_provider: ILLMProvider,
        repository: IDocumentRepository,
        match_threshold: float = 0.7,
        chat_match_count: int = 5,
        search_match_count: int = 20,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        answer_language: str = "",
    ) -> None:
        self._embedding_provider = embedding_provider
        self._chunk_store = chunk_store
        self._llm = llm_provider
        self._repository = repository
        self._match_threshold = match_threshold
        self._chat_match_count = chat_match_count
        self._search_match_count = search_match_count
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._answer_language = answer_language

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def answer(self, message: str, category_id: str | None) -> ChatAnswer:
        """Answer *message* using only documents from *category_id*.

        Raises
        ------
        ValueError
            If *message* is blank.
        docrag.utils.errors.EmbeddingError
            If the question cannot be embedded.
        docrag.utils.errors.CompletionError
            If the chat model call fails.
        """
        if not message or not message.strip():
            msg = "Message must not be empty"
            raise ValueError(msg)

        matches = await self._retrieve(message, category_id, self._chat_match_count)
        category_label = await self._category_label(category_id)
        system_prompt = self.build_system_prompt(category_label, self.build_context(matches))

        reply = await self._llm.complete(
            system_prompt=system_prompt,
            user_prompt=message,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        sources = [
            SourceCitation(document_name=m.document_name, similarity=m.similarity)
            for m in matches
        ]
        logger.info(
            "chat_answered",
            category_id=category_id,
            question=message[:80],
            sources=len(sources),
            llm=self._llm.get_provider_name(),
        )
        return ChatAnswer(message=reply, sources=sources)

    async def search(self, query: str, category_id: str | None) -> list[SearchMatch]:
        """Return up to ``search_match_count`` chunks relevant to *query*."""
        if not query or not query.strip():
            msg = "Query must not be empty"
            raise ValueError(msg)
        matches = await self._retrieve(query, category_id, self._search_match_count)
        logger.info("chunks_searched", category_id=category_id, results=len(matches))
        return matches

    # ------------------------------------------------------------------
    # Prompt assembly
    # ------------------------------------------------------------------

    @staticmethod
    def build_context(matches: list[SearchMatch]) -> str:
        """Concatenate matches into a context block labeled per document."""
        if not matches:
            return NO_CONTEXT_MARKER
        return "\n\n".join(
            f"Document: {m.document_name}\nContent: {m.content}" for m in matches
        )

    def build_system_prompt(self, category_label: str, context: str) -> str:
        if self._answer_language:
            language_rule = f"- Respond in {self._answer_language}"
        else:
            language_rule = "- Respond in the same language as the user's question"

        return (
            "You are an assistant that answers questions using the documents of the "
            f'category "{category_label}".\n\n'
            "IMPORTANT INSTRUCTIONS:\n"
            "- Answer ONLY from the information in the document context below\n"
            "- If the answer is not in the context, say clearly that the available "
            "documents do not contain that information\n"
            "- Cite the relevant documents by name when appropriate\n"
            "- Keep a professional, helpful tone\n"
            f"{language_rule}\n\n"
            "DOCUMENT CONTEXT:\n"
            f"{context}"
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _retrieve(self, text: str, category_id: str | None, limit: int) -> list[SearchMatch]:
        query_embedding = await self._embedding_provider.embed_single(text)
        return await self._chunk_store.search(
            query_embedding=query_embedding,
            category_id=category_id,
            threshold=self._match_threshold,
            limit=limit,
        )

    async def _category_label(self, category_id: str | None) -> str:
        if not category_id:
            return _DEFAULT_CATEGORY_LABEL
        category = await self._repository.get_category(category_id)
        return category.name if category else _DEFAULT_CATEGORY_LABEL
