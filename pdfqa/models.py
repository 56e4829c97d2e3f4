"""Data models for the question-answering pipeline.

This module defines Pydantic models for stored chunks, retrieval
candidates, query analysis and answers.
"""

from enum import Enum

from pydantic import BaseModel, Field


class QuestionType(str, Enum):
    """Question categories used to steer search and answer instructions."""

    DEFINITION = "definition"
    COMPARISON = "comparison"
    EXPLANATION = "explanation"
    LOCATION = "location"
    LISTING = "listing"
    QUANTITY = "quantity"
    PROCEDURE = "procedure"
    CAUSE_EFFECT = "cause_effect"
    PROPERTY = "property"
    EXAMPLE = "example"
    TIME = "time"
    GENERAL = "general"


class ChunkMetadata(BaseModel):
    """Metadata stored alongside every chunk.

    Attributes:
        document_name: Uploaded filename the chunk came from.
        page_number: 1-based page number in the source PDF.
        chunk_index: Position of the chunk within the whole document.
        total_chunks: Number of chunks the document was split into.
    """

    document_name: str
    page_number: int = Field(ge=1)
    chunk_index: int = Field(ge=0)
    total_chunks: int | None = None


class ChunkDraft(BaseModel):
    """Chunk produced at ingestion time, before it has an id or embedding."""

    content: str
    metadata: ChunkMetadata


class Chunk(BaseModel):
    """Retrieval candidate.

    Attributes:
        id: Stable store-assigned identifier.
        content: Chunk text.
        metadata: Owning document and page.
        similarity: Retrieval similarity; can exceed 1.0 after merge boosts.
        relevance: Heuristic rerank score, set by the reranker.
    """

    id: int
    content: str
    metadata: ChunkMetadata
    similarity: float = 0.0
    relevance: float | None = None


class QueryTerms(BaseModel):
    """Terms derived from a query.

    Attributes:
        primary_terms: Acronyms, quoted phrases and capitalised terms.
        context_terms: Up to five remaining lower-cased content words.
        search_hints: Vocabulary associated with the question type.
    """

    primary_terms: list[str] = Field(default_factory=list)
    context_terms: list[str] = Field(default_factory=list)
    search_hints: list[str] = Field(default_factory=list)


class SourceSummary(BaseModel):
    """Pages and best similarity seen for one document."""

    document_name: str
    pages: list[int]
    max_similarity: float

    def render(self) -> str:
        page_list = ", ".join(str(page) for page in self.pages)
        return f"{self.document_name} (pages: {page_list})"


class QueryResult(BaseModel):
    """Query result with answer and source information.

    Attributes:
        answer: Generated answer text.
        sources: Rendered source citations.
        context: Candidates the answer was grounded on.
        question_type: Detected question type.
    """

    answer: str
    sources: list[str]
    context: list[Chunk] = Field(default_factory=list)
    question_type: QuestionType = QuestionType.GENERAL


class IngestionStats(BaseModel):
    """Summary of a processed upload."""

    file_name: str
    file_size: int
    total_pages: int
    total_chunks: int
    chunk_size: int
    chunk_overlap: int
