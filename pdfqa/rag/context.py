"""Context and citation formatting for retrieved chunks."""

from pdfqa.models import Chunk, SourceSummary

NO_CONTEXT = "No relevant context found in the documents."
DEFAULT_MAX_CONTEXT_LENGTH = 15000


def format_context(candidates: list[Chunk], max_length: int = DEFAULT_MAX_CONTEXT_LENGTH) -> str:
    """Render candidates as page-labelled blocks for the prompt.

    Blocks are grouped by page with pages ascending; candidates keep their
    order within a page. When the next block of a page would exceed
    ``max_length`` the rest of that page is skipped.

    Args:
        candidates: Ranked retrieval candidates.
        max_length: Character budget of the whole context.

    Returns:
        The context text, or NO_CONTEXT when there are no candidates.
    """
    if not candidates:
        return NO_CONTEXT

    by_page: dict[int, list[Chunk]] = {}
    for candidate in candidates:
        by_page.setdefault(candidate.metadata.page_number, []).append(candidate)

    parts: list[str] = []
    total_length = 0
    for page in sorted(by_page):
        for candidate in by_page[page]:
            section = (
                f"[Page {page}, Relevance: {candidate.similarity * 100:.1f}%]\n"
                f"{candidate.content}\n\n"
            )
            if total_length + len(section) > max_length:
                break
            parts.append(section)
            total_length += len(section)

    return "".join(parts).rstrip()


def summarize_sources(candidates: list[Chunk]) -> list[SourceSummary]:
    """Group candidates by document, in order of first appearance."""
    pages: dict[str, set[int]] = {}
    best: dict[str, float] = {}
    for candidate in candidates:
        name = candidate.metadata.document_name
        pages.setdefault(name, set()).add(candidate.metadata.page_number)
        best[name] = max(best.get(name, 0.0), candidate.similarity)

    return [
        SourceSummary(document_name=name, pages=sorted(page_set), max_similarity=best[name])
        for name, page_set in pages.items()
    ]


def format_sources(candidates: list[Chunk]) -> list[str]:
    """Render citations such as ``"paper.pdf (pages: 1, 4)"``."""
    return [summary.render() for summary in summarize_sources(candidates)]
