"""RAG pipeline for document ingestion and query processing.

This module provides the IngestionPipeline and QueryPipeline classes
for document processing and query answering.
"""

import asyncio
import logging
import threading
from typing import AsyncIterator

from pdfqa.config import Settings
from pdfqa.models import IngestionStats, QueryResult
from pdfqa.rag.chunker import chunk_document
from pdfqa.rag.classifier import classify_question
from pdfqa.rag.context import format_context, format_sources
from pdfqa.rag.embeddings import EmbeddingClient
from pdfqa.rag.errors import EmptyGenerationError, IngestionError
from pdfqa.rag.generator import SYSTEM_PROMPT, GeneratorClient, build_user_prompt
from pdfqa.rag.pdf_extractor import parse_pdf
from pdfqa.rag.reranker import Reranker
from pdfqa.rag.retriever import HybridRetriever
from pdfqa.rag.vectorstore import MilvusStore

logger = logging.getLogger(__name__)

STREAM_QUEUE_SIZE = 32

_STREAM_END = object()


class IngestionPipeline:
    """Pipeline for ingesting and indexing documents.

    Handles text extraction, chunking, embedding and storage, plus listing
    and deleting stored documents.
    """

    def __init__(self, settings: Settings, store=None, embedder=None) -> None:
        """Initialize ingestion pipeline.

        Args:
            settings: Application settings.
            store: Chunk store; a MilvusStore is created when omitted.
            embedder: Embedding client; an EmbeddingClient is created when omitted.
        """
        self.settings = settings
        self.vs = store if store is not None else MilvusStore(settings)
        self.embed = embedder if embedder is not None else EmbeddingClient(settings)

    def ingest_pdf(
        self,
        filename: str,
        data: bytes,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ) -> IngestionStats:
        """Ingest a PDF document into the knowledge base.

        Args:
            filename: Name of the PDF file; stored as the document name.
            data: Raw PDF bytes.
            chunk_size: Optional override of the configured chunk size.
            chunk_overlap: Optional override of the configured overlap.

        Returns:
            IngestionStats describing the stored document.

        Raises:
            IngestionError: If the PDF is unreadable or has no text.
        """
        chunk_size = chunk_size or self.settings.chunk_size
        chunk_overlap = self.settings.chunk_overlap if chunk_overlap is None else chunk_overlap
        if chunk_overlap >= chunk_size:
            raise IngestionError(
                f"Chunk overlap ({chunk_overlap}) must be smaller than chunk size ({chunk_size})"
            )

        logger.info(f"Processing PDF: {filename} ({len(data)} bytes)")
        parsed = parse_pdf(data, filename)
        chunks = chunk_document(parsed, chunk_size, chunk_overlap)
        logger.info(f"Created {len(chunks)} chunks")
        if not chunks:
            raise IngestionError("No text content could be extracted from the PDF")

        embeddings = self.embed.embed_texts([chunk.content for chunk in chunks])
        stored = self.vs.insert_chunks(chunks, embeddings)
        logger.info(f"Stored {stored} chunks for {filename}")

        return IngestionStats(
            file_name=filename,
            file_size=len(data),
            total_pages=parsed.total_pages,
            total_chunks=stored,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
        )

    def list_documents(self) -> list[str]:
        return self.vs.list_documents()

    def delete_document(self, document_name: str) -> int:
        return self.vs.delete_by_document(document_name)


class QueryPipeline:
    """Pipeline for processing queries and generating answers.

    Handles hybrid retrieval, reranking, context assembly and generation,
    either in one shot or as a stream of events.
    """

    def __init__(
        self,
        settings: Settings,
        store=None,
        embedder=None,
        generator=None,
        reranker: Reranker | None = None,
    ) -> None:
        """Initialize query pipeline.

        Args:
            settings: Application settings.
            store: Chunk store; a MilvusStore is created when omitted.
            embedder: Embedding client; an EmbeddingClient is created when omitted.
            generator: Generation client; a GeneratorClient is created when omitted.
            reranker: Reranker used by the retriever.
        """
        self.settings = settings
        self.gen = generator if generator is not None else GeneratorClient(settings)
        self.retriever = HybridRetriever(
            settings,
            store if store is not None else MilvusStore(settings),
            embedder if embedder is not None else EmbeddingClient(settings),
            reranker,
        )

    async def _prepare(self, question: str, top_k: int | None, document_filter: str | None):
        question_type = classify_question(question)
        candidates = await self.retriever.retrieve(question, top_k, document_filter)
        context = format_context(candidates, self.settings.max_context_length)
        user_prompt = build_user_prompt(question, context, question_type)
        return question_type, candidates, user_prompt

    async def answer(
        self, question: str, top_k: int | None = None, document_filter: str | None = None
    ) -> QueryResult:
        """Answer a question in one shot.

        Raises:
            EmptyGenerationError: If the model returned no text.
            GenerationError: If the model call failed.
        """
        question_type, candidates, user_prompt = await self._prepare(
            question, top_k, document_filter
        )
        answer = await asyncio.wait_for(
            asyncio.to_thread(self.gen.generate, SYSTEM_PROMPT, user_prompt),
            timeout=self.settings.request_timeout,
        )
        if not answer or not answer.strip():
            raise EmptyGenerationError("The model did not produce an answer")

        return QueryResult(
            answer=answer,
            sources=format_sources(candidates),
            context=candidates,
            question_type=question_type,
        )

    async def stream_answer(
        self, question: str, top_k: int | None = None, document_filter: str | None = None
    ) -> AsyncIterator[dict]:
        """Stream an answer as ``chunk`` events followed by one ``sources`` event.

        If the model produces no fragments the ``sources`` event is still
        emitted and EmptyGenerationError is raised afterwards.
        """
        _, candidates, user_prompt = await self._prepare(question, top_k, document_filter)
        sources = format_sources(candidates)

        chunk_count = 0
        fragments = self._stream_fragments(user_prompt)
        try:
            async for fragment in fragments:
                chunk_count += 1
                yield {"type": "chunk", "content": fragment}
        finally:
            await fragments.aclose()

        yield {"type": "sources", "sources": sources}

        if chunk_count == 0:
            raise EmptyGenerationError("The model did not produce an answer")

    async def _stream_fragments(self, user_prompt: str) -> AsyncIterator[str]:
        """Run the blocking generation stream on a worker thread.

        The worker writes fragments into a bounded queue, followed by either
        an exception or the end sentinel. Leaving the loop early (client
        disconnect) tells the worker to stop and close the model stream.
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=STREAM_QUEUE_SIZE)
        stop = threading.Event()

        def put(item) -> None:
            asyncio.run_coroutine_threadsafe(queue.put(item), loop).result()

        def produce() -> None:
            outcome = _STREAM_END
            try:
                stream = self.gen.generate_stream(SYSTEM_PROMPT, user_prompt)
                try:
                    for fragment in stream:
                        if stop.is_set():
                            break
                        if fragment:
                            put(fragment)
                finally:
                    close = getattr(stream, "close", None)
                    if close is not None:
                        close()
            except Exception as e:
                outcome = e
            if stop.is_set():
                logger.info("Generation stream stopped by consumer")
                return
            put(outcome)

        producer = loop.run_in_executor(None, produce)
        try:
            while True:
                item = await asyncio.wait_for(queue.get(), timeout=self.settings.request_timeout)
                if item is _STREAM_END:
                    break
                if isinstance(item, Exception):
                    raise item
                yield item
            await producer
        finally:
            stop.set()
            while not queue.empty():
                queue.get_nowait()
