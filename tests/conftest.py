import dataclasses

import pytest

from pdfqa.config import Settings
from pdfqa.models import Chunk, ChunkMetadata


def make_chunk(chunk_id, content, page=1, document="doc.pdf", similarity=0.5):
    return Chunk(
        id=chunk_id,
        content=content,
        metadata=ChunkMetadata(document_name=document, page_number=page, chunk_index=chunk_id),
        similarity=similarity,
    )


class FakeStore:
    """In-memory stand-in for MilvusStore.

    ``semantic_hits`` is returned by every similarity search; containment
    search scans ``chunks`` (which defaults to the semantic hits).
    """

    def __init__(self, semantic_hits=None, chunks=None, fail_contains=False):
        self.semantic_hits = list(semantic_hits or [])
        self.chunks = list(chunks if chunks is not None else self.semantic_hits)
        self.fail_contains = fail_contains
        self.similarity_calls = []
        self.contains_calls = []
        self.inserted = []

    @staticmethod
    def _matches(chunk, filters):
        return not filters or chunk.metadata.document_name == filters.get("document_name")

    def similarity_search(self, vector, limit, filters=None):
        self.similarity_calls.append((vector, limit, filters))
        hits = [c for c in self.semantic_hits if self._matches(c, filters)]
        return hits[:limit]

    def contains_search(self, term, limit, filters=None):
        self.contains_calls.append((term, limit, filters))
        if self.fail_contains:
            raise RuntimeError("keyword index unavailable")
        hits = [
            c.model_copy(update={"similarity": 0.0})
            for c in self.chunks
            if term.lower() in c.content.lower() and self._matches(c, filters)
        ]
        return hits[:limit]

    def insert_chunks(self, drafts, embeddings):
        assert len(drafts) == len(embeddings)
        self.inserted.extend(drafts)
        return len(drafts)

    def delete_by_document(self, document_name):
        before = len(self.inserted)
        self.inserted = [d for d in self.inserted if d.metadata.document_name != document_name]
        return before - len(self.inserted)

    def list_documents(self):
        names = []
        for draft in self.inserted:
            if draft.metadata.document_name not in names:
                names.append(draft.metadata.document_name)
        return names


class FakeEmbedder:
    def __init__(self):
        self.queries = []

    def embed_query(self, text):
        self.queries.append(text)
        return [0.1, 0.2, 0.3]

    def embed_texts(self, texts):
        return [[0.1, 0.2, 0.3] for _ in texts]


class FakeGenerator:
    def __init__(self, answer="Machine learning is a field of AI.", fragments=None, error=None):
        self.answer = answer
        self.fragments = ["Machine ", "learning ", "is a field of AI."] if fragments is None else fragments
        self.error = error
        self.prompts = []

    def generate(self, system_prompt, user_prompt):
        self.prompts.append(user_prompt)
        if self.error is not None:
            raise self.error
        return self.answer

    def generate_stream(self, system_prompt, user_prompt):
        self.prompts.append(user_prompt)
        for fragment in self.fragments:
            yield fragment
        if self.error is not None:
            raise self.error


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("RETRIEVAL_MODE", "hybrid")
    return dataclasses.replace(
        Settings.from_env(),
        top_k=10,
        rerank_top_k=5,
        similarity_threshold=0.1,
        max_context_length=15000,
        max_keywords=5,
        keyword_base_score=0.3,
        keyword_score_range=0.5,
        keyword_similarity_cap=0.9,
        keyword_only_boost=0.2,
        overlap_boost=0.15,
        request_timeout=5.0,
        chunk_size=1000,
        chunk_overlap=200,
        max_upload_bytes=10 * 1024 * 1024,
        cors_origins=["*"],
    )


@pytest.fixture
def ml_chunks():
    return [
        make_chunk(
            1,
            "Machine learning is a field of study that gives computers the ability to learn "
            "without being explicitly programmed.",
            page=2,
            similarity=0.8,
        ),
        make_chunk(2, "Recipes for sourdough bread and other cooking notes.", page=5, similarity=0.05),
        make_chunk(3, "Deep learning builds on neural networks with many layers.", page=1, similarity=0.0),
    ]
