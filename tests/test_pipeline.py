import asyncio
import io

import pytest
from pypdf import PdfWriter

from conftest import FakeEmbedder, FakeGenerator, FakeStore
from pdfqa.models import QuestionType
from pdfqa.rag.errors import EmptyGenerationError, IngestionError, RateLimitError
from pdfqa.rag.generator import NOT_COVERED_INSTRUCTION
from pdfqa.rag.pdf_extractor import ParsedPage, ParsedPDF
from pdfqa.rag.pipeline import IngestionPipeline, QueryPipeline


def _query_pipeline(settings, store, generator):
    return QueryPipeline(settings, store=store, embedder=FakeEmbedder(), generator=generator)


def _collect(pipeline, question, **kwargs):
    async def run():
        return [event async for event in pipeline.stream_answer(question, **kwargs)]

    return asyncio.run(run())


def test_answer_returns_sources_and_context(settings, ml_chunks):
    generator = FakeGenerator()
    pipeline = _query_pipeline(settings, FakeStore(semantic_hits=ml_chunks[:2], chunks=ml_chunks), generator)

    result = asyncio.run(pipeline.answer("What is machine learning?"))

    assert result.answer == "Machine learning is a field of AI."
    assert result.question_type == QuestionType.DEFINITION
    assert result.sources == ["doc.pdf (pages: 1, 2)"]
    assert {c.id for c in result.context} == {1, 3}
    assert "[Page 1, Relevance:" in generator.prompts[0]
    assert "QUESTION:\nWhat is machine learning?" in generator.prompts[0]


def test_answer_without_context_asks_model_to_say_so(settings):
    generator = FakeGenerator()
    pipeline = _query_pipeline(settings, FakeStore(), generator)

    result = asyncio.run(pipeline.answer("What is machine learning?"))

    assert result.sources == []
    assert NOT_COVERED_INSTRUCTION in generator.prompts[0]


def test_blank_answer_raises(settings, ml_chunks):
    pipeline = _query_pipeline(settings, FakeStore(semantic_hits=ml_chunks), FakeGenerator(answer="  "))

    with pytest.raises(EmptyGenerationError):
        asyncio.run(pipeline.answer("What is machine learning?"))


def test_generation_errors_propagate(settings, ml_chunks):
    generator = FakeGenerator(error=RateLimitError("429 Too Many Requests"))
    pipeline = _query_pipeline(settings, FakeStore(semantic_hits=ml_chunks), generator)

    with pytest.raises(RateLimitError):
        asyncio.run(pipeline.answer("What is machine learning?"))


def test_stream_emits_chunks_then_sources(settings, ml_chunks):
    pipeline = _query_pipeline(settings, FakeStore(semantic_hits=ml_chunks), FakeGenerator())

    events = _collect(pipeline, "What is machine learning?")

    assert [e["type"] for e in events] == ["chunk", "chunk", "chunk", "sources"]
    assert "".join(e["content"] for e in events[:-1]) == "Machine learning is a field of AI."
    assert events[-1]["sources"] == ["doc.pdf (pages: 1, 2)"]


def test_stream_without_fragments_sends_sources_then_fails(settings, ml_chunks):
    pipeline = _query_pipeline(settings, FakeStore(semantic_hits=ml_chunks), FakeGenerator(fragments=[]))
    events = []

    async def run():
        async for event in pipeline.stream_answer("What is machine learning?"):
            events.append(event)

    with pytest.raises(EmptyGenerationError):
        asyncio.run(run())
    assert [e["type"] for e in events] == ["sources"]


def test_stream_error_after_fragments(settings, ml_chunks):
    generator = FakeGenerator(fragments=["partial "], error=RateLimitError("quota exceeded"))
    pipeline = _query_pipeline(settings, FakeStore(semantic_hits=ml_chunks), generator)
    events = []

    async def run():
        async for event in pipeline.stream_answer("What is machine learning?"):
            events.append(event)

    with pytest.raises(RateLimitError):
        asyncio.run(run())
    assert events == [{"type": "chunk", "content": "partial "}]


def test_stream_can_be_abandoned_early(settings, ml_chunks):
    generator = FakeGenerator(fragments=[f"part {i} " for i in range(100)])
    pipeline = _query_pipeline(settings, FakeStore(semantic_hits=ml_chunks), generator)

    async def run():
        stream = pipeline.stream_answer("What is machine learning?")
        first = await stream.__anext__()
        await stream.aclose()
        return first

    assert asyncio.run(run()) == {"type": "chunk", "content": "part 0 "}


def test_ingest_pdf_chunks_embeds_and_stores(settings, monkeypatch):
    parsed = ParsedPDF(
        document_name="notes.pdf",
        total_pages=3,
        pages=[
            ParsedPage(page_number=1, text="Introduction to caching. " * 10),
            ParsedPage(page_number=3, text="Eviction policies such as LRU. " * 10),
        ],
    )
    monkeypatch.setattr("pdfqa.rag.pipeline.parse_pdf", lambda data, name: parsed)
    store = FakeStore()
    pipeline = IngestionPipeline(settings, store=store, embedder=FakeEmbedder())

    stats = pipeline.ingest_pdf("notes.pdf", b"%PDF-fake", chunk_size=100, chunk_overlap=10)

    assert stats.file_name == "notes.pdf"
    assert stats.file_size == len(b"%PDF-fake")
    assert stats.total_pages == 3
    assert stats.total_chunks == len(store.inserted)
    assert {d.metadata.page_number for d in store.inserted} == {1, 3}
    assert pipeline.list_documents() == ["notes.pdf"]
    assert pipeline.delete_document("notes.pdf") == stats.total_chunks
    assert pipeline.list_documents() == []


def test_ingest_blank_pdf_fails(settings):
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    pipeline = IngestionPipeline(settings, store=FakeStore(), embedder=FakeEmbedder())

    with pytest.raises(IngestionError):
        pipeline.ingest_pdf("blank.pdf", buffer.getvalue())


def test_ingest_rejects_invalid_pdf(settings):
    pipeline = IngestionPipeline(settings, store=FakeStore(), embedder=FakeEmbedder())

    with pytest.raises(IngestionError):
        pipeline.ingest_pdf("broken.pdf", b"this is not a pdf")


def test_ingest_rejects_overlap_not_smaller_than_size(settings):
    pipeline = IngestionPipeline(settings, store=FakeStore(), embedder=FakeEmbedder())

    with pytest.raises(IngestionError):
        pipeline.ingest_pdf("x.pdf", b"%PDF-fake", chunk_size=100, chunk_overlap=100)
