"""Search query construction.

Two strategies exist: ``build_search_query`` rewrites the query into a
single search string, ``expand_query`` fans it out into several variants
searched independently. A retrieval run uses one or the other.
"""

import re

from pdfqa.models import QueryTerms, QuestionType
from pdfqa.rag.keywords import find_acronyms

PROCEDURE_SUFFIX = "steps process method how to"
LISTING_SUFFIX = "types kinds list categories"
MAX_QUERY_VARIANTS = 3

_COMPARISON_RE = re.compile(r"difference|compare|vs", re.IGNORECASE)


def build_search_query(query: str, question_type: QuestionType, terms: QueryTerms) -> str:
    """Rewrite a query into a search string tuned for its question type.

    Args:
        query: Raw user query.
        question_type: Type returned by the classifier.
        terms: Terms extracted from the query.

    Returns:
        The optimized search text, or the original query when the type has
        no rewrite rule or the query lacks the terms the rule needs.
    """
    primary = terms.primary_terms

    if question_type == QuestionType.DEFINITION and primary:
        return f"{' '.join(primary)} definition meaning characteristics"

    if question_type == QuestionType.COMPARISON and len(primary) >= 2:
        return f"{primary[0]} {primary[1]} difference comparison"

    if question_type in (QuestionType.PROCEDURE, QuestionType.LISTING):
        suffix = PROCEDURE_SUFFIX if question_type == QuestionType.PROCEDURE else LISTING_SUFFIX
        words = primary + terms.context_terms[:3]
        return " ".join(words + [suffix])

    return query


def expand_query(query: str) -> list[str]:
    """Generate up to three query variants for multi-query retrieval."""
    queries = [query]
    for acronym in find_acronyms(query):
        queries.append(f"What is {acronym}?")
        queries.append(f"{acronym} definition characteristics properties")

    lowered = query.lower()
    if "difference" in lowered or "compare" in lowered or "vs" in lowered:
        queries.append(_COMPARISON_RE.sub("characteristics", query))

    return queries[:MAX_QUERY_VARIANTS]
