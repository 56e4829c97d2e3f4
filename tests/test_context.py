from conftest import make_chunk
from pdfqa.rag.context import NO_CONTEXT, format_context, format_sources, summarize_sources


def _section(chunk):
    return (
        f"[Page {chunk.metadata.page_number}, Relevance: {chunk.similarity * 100:.1f}%]\n"
        f"{chunk.content}\n\n"
    )


def test_format_context_orders_pages_ascending():
    chunks = [
        make_chunk(1, "third page first block", page=3, similarity=0.9),
        make_chunk(2, "first page block", page=1, similarity=0.5),
        make_chunk(3, "third page second block", page=3, similarity=0.4),
    ]

    context = format_context(chunks)

    assert context.startswith("[Page 1, Relevance: 50.0%]\nfirst page block")
    assert context.index("third page first block") < context.index("third page second block")
    assert context.endswith("third page second block")


def test_format_context_skips_page_that_exceeds_budget():
    first = make_chunk(1, "a" * 100, page=1, similarity=0.5)
    too_long = make_chunk(2, "b" * 500, page=2, similarity=0.5)
    last = make_chunk(3, "c" * 20, page=3, similarity=0.5)
    budget = len(_section(first)) + len(_section(last)) + 5

    context = format_context([first, too_long, last], max_length=budget)

    assert "a" * 100 in context
    assert "b" * 500 not in context
    assert "c" * 20 in context
    assert len(context) <= budget


def test_format_context_without_candidates():
    assert format_context([]) == NO_CONTEXT


def test_sources_group_pages_per_document():
    chunks = [
        make_chunk(1, "x", page=3, document="a.pdf", similarity=0.4),
        make_chunk(2, "y", page=2, document="b.pdf", similarity=0.9),
        make_chunk(3, "z", page=1, document="a.pdf", similarity=0.7),
        make_chunk(4, "w", page=3, document="a.pdf", similarity=0.2),
    ]

    assert format_sources(chunks) == ["a.pdf (pages: 1, 3)", "b.pdf (pages: 2)"]
    summaries = summarize_sources(chunks)
    assert summaries[0].max_similarity == 0.7
    assert summaries[1].pages == [2]


def test_sources_empty():
    assert format_sources([]) == []
