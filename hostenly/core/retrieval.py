"""Property-scoped grounding retrieval.

Embeds the guest's message and pulls the closest knowledge chunks of one
property. Grounding is best-effort: any embedding or search failure yields an
empty result and the reply is generated ungrounded.

Usage:
    assembler = RetrievalAssembler(embedder, knowledge_store)
    results = await assembler.retrieve_async(property_id, "What's the wifi?")
    context = format_context(results)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import UUID

from hostenly.core.logging import get_logger

if TYPE_CHECKING:
    from hostenly.core.embeddings import EmbeddingProvider
    from hostenly.db.knowledge_chunks import KnowledgeStore

logger = get_logger(__name__)

DEFAULT_TOP_K = 3
DEFAULT_MIN_SCORE = 0.6


@dataclass(frozen=True)
class RetrievalResult:
    """One ranked knowledge snippet."""

    content: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


class RetrievalAssembler:
    """Builds grounding context for a property and a query."""

    def __init__(self, embedder: EmbeddingProvider, knowledge_store: KnowledgeStore):
        self.embedder = embedder
        self.knowledge_store = knowledge_store

    def retrieve(
        self,
        property_id: UUID,
        query_text: str,
        k: int = DEFAULT_TOP_K,
        min_score: float = DEFAULT_MIN_SCORE,
    ) -> list[RetrievalResult]:
        """
        Return at most `k` snippets of `property_id` scoring >= `min_score`, best first.

        Never raises: provider failures degrade to an empty list.
        """
        if k <= 0 or not query_text.strip():
            return []

        try:
            query_embedding = self.embedder.embed_text(query_text)
            rows = self.knowledge_store.search(
                property_id=property_id,
                query_embedding=query_embedding,
                match_count=k,
                match_threshold=min_score,
            )
        except Exception as e:
            logger.warning(f"Grounding unavailable for property {property_id}: {e}")
            return []

        results = []
        for row in rows:
            # Rows tagged with another property are dropped, whatever the store returned
            row_property = row.get("property_id")
            if row_property is not None and str(row_property) != str(property_id):
                logger.error(
                    f"Search for property {property_id} returned chunk of {row_property}; dropped"
                )
                continue

            score = float(row.get("similarity", 0.0))
            if score < min_score:
                continue

            metadata = row.get("metadata") or {}
            results.append(
                RetrievalResult(content=row.get("content", ""), score=score, metadata=metadata)
            )

        results.sort(key=lambda r: (-r.score, r.content))
        results = results[:k]

        logger.debug(
            f"Retrieved {len(results)} snippets for property {property_id}",
            extra={"extra_data": {"property_id": str(property_id), "count": len(results)}},
        )
        return results

    async def retrieve_async(
        self,
        property_id: UUID,
        query_text: str,
        k: int = DEFAULT_TOP_K,
        min_score: float = DEFAULT_MIN_SCORE,
    ) -> list[RetrievalResult]:
        """Async wrapper around retrieve using thread pool."""
        return await asyncio.to_thread(self.retrieve, property_id, query_text, k, min_score)


def format_context(results: list[RetrievalResult]) -> str:
    """Join snippet contents, one per line, in rank order."""
    return "\n".join(r.content for r in results if r.content)
