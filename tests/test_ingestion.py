from pdfqa.rag.chunker import chunk_document
from pdfqa.rag.embeddings import EmbeddingClient
from pdfqa.rag.pdf_extractor import ParsedPage, ParsedPDF, clean_text
from pdfqa.rag.vectorstore import _like_pattern, filter_expression


def test_chunks_stay_on_their_page():
    parsed = ParsedPDF(
        document_name="paper.pdf",
        total_pages=2,
        pages=[
            ParsedPage(page_number=1, text="Sentence on the first page. " * 12),
            ParsedPage(page_number=2, text="Short second page."),
        ],
    )

    chunks = chunk_document(parsed, chunk_size=100, chunk_overlap=20)

    assert len(chunks) > 2
    assert all(len(c.content) <= 100 for c in chunks)
    assert [c.metadata.chunk_index for c in chunks] == list(range(len(chunks)))
    assert all(c.metadata.total_chunks == len(chunks) for c in chunks)
    assert all(c.metadata.document_name == "paper.pdf" for c in chunks)
    assert chunks[-1].metadata.page_number == 2
    assert chunks[-1].content == "Short second page."
    assert {c.metadata.page_number for c in chunks[:-1]} == {1}


def test_chunk_document_without_pages():
    parsed = ParsedPDF(document_name="empty.pdf", total_pages=1)
    assert chunk_document(parsed, chunk_size=100, chunk_overlap=20) == []


def test_clean_text():
    raw = "“Quoted”\x07  text\n\nwith   ‘spaces’ "
    assert clean_text(raw) == "\"Quoted\" text with 'spaces'"


def test_full_text_joins_pages():
    parsed = ParsedPDF(
        document_name="a.pdf",
        total_pages=2,
        pages=[ParsedPage(page_number=1, text="one"), ParsedPage(page_number=2, text="two")],
    )
    assert parsed.full_text == "one\n\ntwo"


def test_filter_expression():
    assert filter_expression(None) == ""
    assert filter_expression({"document_name": 'my "notes".pdf'}) == (
        'document_name == "my \\"notes\\".pdf"'
    )


def test_like_pattern_escapes_wildcards():
    assert _like_pattern("100%_done") == '"%100\\\\%\\\\_done%"'


def test_embedding_response_shapes():
    vectors = [[0.1, 0.2], [0.3, 0.4]]

    assert EmbeddingClient._as_vectors(vectors) == vectors
    assert EmbeddingClient._as_vectors({"embeddings": vectors}) == vectors
    assert EmbeddingClient._as_vectors(
        {"results": [{"embedding": vectors[0]}, {"embedding": vectors[1]}]}
    ) == vectors
