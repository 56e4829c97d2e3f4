"""Text chunking utilities.

This module splits parsed PDFs into overlapping, page-tagged chunks.
"""

from typing import List

from langchain_text_splitters import RecursiveCharacterTextSplitter

from pdfqa.models import ChunkDraft, ChunkMetadata
from pdfqa.rag.pdf_extractor import ParsedPDF


def chunk_document(
    parsed: ParsedPDF, chunk_size: int, chunk_overlap: int
) -> List[ChunkDraft]:
    """Split each page of a document into chunks.

    Pages are split independently so every chunk belongs to exactly one
    page. ``chunk_index`` counts across the whole document.

    Args:
        parsed: Parsed PDF.
        chunk_size: Target size for each chunk.
        chunk_overlap: Overlap between consecutive chunks.

    Returns:
        List of chunks with metadata, ``total_chunks`` set on each.
    """
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        length_function=len,
        separators=["\n\n", "\n", ". ", " ", ""],
    )

    pieces: list[tuple[int, str]] = []
    for page in parsed.pages:
        for text in splitter.split_text(page.text):
            pieces.append((page.page_number, text))

    return [
        ChunkDraft(
            content=text,
            metadata=ChunkMetadata(
                document_name=parsed.document_name,
                page_number=page_number,
                chunk_index=index,
                total_chunks=len(pieces),
            ),
        )
        for index, (page_number, text) in enumerate(pieces)
    ]
