"""Hybrid semantic + keyword retrieval.

The semantic path embeds an optimized search string and asks the store for
nearest neighbours. The keyword path runs one containment search per query
keyword. Both run concurrently, are merged by chunk id, filtered by a low
similarity floor and handed to the reranker.
"""

import asyncio
import logging

from pdfqa.config import Settings
from pdfqa.models import Chunk
from pdfqa.rag.classifier import classify_question
from pdfqa.rag.keywords import extract_keywords, extract_terms
from pdfqa.rag.query_builder import build_search_query, expand_query
from pdfqa.rag.reranker import Reranker

logger = logging.getLogger(__name__)


class HybridRetriever:
    """Retrieves ranked chunks for a query.

    Args:
        settings: Application settings (limits, thresholds and boosts).
        store: Chunk store exposing ``similarity_search`` and ``contains_search``.
        embedder: Embedding client exposing ``embed_query``.
        reranker: Reranker applied to the merged candidates.
    """

    def __init__(self, settings: Settings, store, embedder, reranker: Reranker | None = None) -> None:
        self.settings = settings
        self.store = store
        self.embedder = embedder
        self.reranker = reranker or Reranker()

    async def retrieve(
        self, query: str, top_k: int | None = None, document_filter: str | None = None
    ) -> list[Chunk]:
        """Retrieve with the strategy selected by ``settings.retrieval_mode``."""
        mode = self.settings.retrieval_mode
        if mode == "multi_query":
            return await self.retrieve_multi_query(query, top_k, document_filter)
        if mode == "semantic":
            return await self.retrieve_semantic(query, top_k, document_filter)
        return await self.retrieve_hybrid(query, top_k, document_filter)

    async def retrieve_hybrid(
        self, query: str, top_k: int | None = None, document_filter: str | None = None
    ) -> list[Chunk]:
        top_k = top_k or self.settings.top_k
        filters = self._filters(document_filter)

        question_type = classify_question(query)
        terms = extract_terms(query, question_type)
        search_text = build_search_query(query, question_type, terms)
        valid_keywords = [keyword for keyword in extract_keywords(query) if len(keyword) > 2]
        logger.info(
            f"Hybrid retrieval: type={question_type.value} search_text={search_text!r} "
            f"keywords={valid_keywords[: self.settings.max_keywords]}"
        )

        semantic_hits, keyword_hits = await asyncio.gather(
            self._semantic_search(search_text, top_k, filters),
            self._keyword_search(valid_keywords, top_k, filters),
        )
        merged = self.merge(semantic_hits, keyword_hits)
        candidates = self._above_threshold(merged)
        logger.info(
            f"Retrieved {len(semantic_hits)} semantic and {len(keyword_hits)} keyword hits, "
            f"{len(candidates)}/{len(merged)} above threshold"
        )
        return self.reranker.rerank(candidates, query, question_type, self._rerank_limit(top_k))

    async def retrieve_multi_query(
        self, query: str, top_k: int | None = None, document_filter: str | None = None
    ) -> list[Chunk]:
        """Search every ``expand_query`` variant and pool the unique hits."""
        top_k = top_k or self.settings.top_k
        filters = self._filters(document_filter)
        variants = expand_query(query)

        results = await asyncio.gather(
            *(self._semantic_search(variant, top_k, filters) for variant in variants)
        )
        pooled: dict[int, Chunk] = {}
        for hits in results:
            for chunk in hits:
                if chunk.id not in pooled:
                    pooled[chunk.id] = chunk
        candidates = self._above_threshold(list(pooled.values()))
        candidates.sort(key=lambda chunk: chunk.similarity, reverse=True)
        return self.reranker.rerank(
            candidates[:top_k], query, classify_question(query), self._rerank_limit(top_k)
        )

    async def retrieve_semantic(
        self, query: str, top_k: int | None = None, document_filter: str | None = None
    ) -> list[Chunk]:
        """Single-path fallback: semantic search only, no keyword pass."""
        top_k = top_k or self.settings.top_k
        question_type = classify_question(query)
        terms = extract_terms(query, question_type)
        search_text = build_search_query(query, question_type, terms)
        hits = await self._semantic_search(search_text, top_k, self._filters(document_filter))
        return self.reranker.rerank(
            self._above_threshold(hits), query, question_type, self._rerank_limit(top_k)
        )

    def merge(self, semantic_hits: list[Chunk], keyword_hits: list[Chunk]) -> list[Chunk]:
        """Merge both result lists by chunk id, semantic hits first.

        Keyword hits the semantic pass missed are added with
        ``keyword_only_boost``. Keyword hits it also found raise the existing
        entry by ``overlap_boost``, capped at 1.0.
        """
        merged: dict[int, Chunk] = {}
        for chunk in semantic_hits:
            if chunk.id not in merged:
                merged[chunk.id] = chunk.model_copy()

        for chunk in keyword_hits:
            existing = merged.get(chunk.id)
            if existing is None:
                merged[chunk.id] = chunk.model_copy(
                    update={"similarity": chunk.similarity + self.settings.keyword_only_boost}
                )
            else:
                existing.similarity = min(existing.similarity + self.settings.overlap_boost, 1.0)

        return list(merged.values())

    async def _semantic_search(
        self, text: str, limit: int, filters: dict[str, str] | None
    ) -> list[Chunk]:
        async def search() -> list[Chunk]:
            vector = await asyncio.to_thread(self.embedder.embed_query, text)
            return await asyncio.to_thread(self.store.similarity_search, vector, limit, filters)

        return await asyncio.wait_for(search(), timeout=self.settings.request_timeout)

    async def _keyword_search(
        self, valid_keywords: list[str], limit: int, filters: dict[str, str] | None
    ) -> list[Chunk]:
        """Containment search per keyword; failures degrade to no results."""
        keywords = valid_keywords[: self.settings.max_keywords]
        if not keywords:
            return []

        try:
            results = await asyncio.wait_for(
                asyncio.gather(
                    *(
                        asyncio.to_thread(self.store.contains_search, keyword, limit, filters)
                        for keyword in keywords
                    ),
                    return_exceptions=True,
                ),
                timeout=self.settings.request_timeout,
            )
        except Exception as e:
            logger.warning(f"Keyword search failed, continuing with semantic results: {e!r}")
            return []

        matches: dict[int, Chunk] = {}
        counts: dict[int, int] = {}
        for keyword, result in zip(keywords, results):
            if isinstance(result, BaseException):
                logger.warning(f"Keyword search for {keyword!r} failed: {result!r}")
                continue
            for chunk in result:
                if chunk.id not in matches:
                    matches[chunk.id] = chunk
                counts[chunk.id] = counts.get(chunk.id, 0) + 1

        scored = [
            chunk.model_copy(update={"similarity": self.keyword_similarity(counts[chunk_id], len(valid_keywords))})
            for chunk_id, chunk in matches.items()
        ]
        scored.sort(key=lambda chunk: chunk.similarity, reverse=True)
        return scored[:limit]

    def keyword_similarity(self, match_count: int, total_keywords: int) -> float:
        """Similarity of a keyword hit; stays below the strong-semantic range."""
        score = self.settings.keyword_base_score + (
            match_count / total_keywords
        ) * self.settings.keyword_score_range
        return min(score, self.settings.keyword_similarity_cap)

    def _rerank_limit(self, top_k: int) -> int:
        return min(top_k, self.settings.rerank_top_k)

    def _above_threshold(self, candidates: list[Chunk]) -> list[Chunk]:
        return [c for c in candidates if c.similarity >= self.settings.similarity_threshold]

    @staticmethod
    def _filters(document_filter: str | None) -> dict[str, str] | None:
        return {"document_name": document_filter} if document_filter else None
