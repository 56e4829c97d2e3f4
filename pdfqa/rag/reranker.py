import re

from pdfqa.models import Chunk, QueryTerms, QuestionType
from pdfqa.rag.keywords import extract_keywords, extract_terms

KEYWORD_HIT_BONUS = 8.0
KEYWORD_COVERAGE_BONUS = 20.0
PRIMARY_TERM_BONUS = 25.0
CONTEXT_TERM_BONUS = 10.0
SEARCH_HINT_BONUS = 5.0
PATTERN_BONUS = 15.0

# Content structure that typically answers each question type.
TYPE_PATTERNS: dict[QuestionType, re.Pattern[str]] = {
    QuestionType.DEFINITION: re.compile(
        r"\b(?:is|are) (?:a|an|the)\b|\b(?:is|are) defined as\b|\brefers? to\b|\bmeans\b"
    ),
    QuestionType.COMPARISON: re.compile(
        r"\b(?:whereas|however|unlike|in contrast|compared (?:to|with)|on the other hand|versus|while)\b"
    ),
    QuestionType.EXPLANATION: re.compile(
        r"\b(?:because|therefore|thus|hence|as a result|this is why|in order to)\b"
    ),
    QuestionType.LOCATION: re.compile(
        r"\b(?:located|situated|found in|positioned|section \d+|chapter \d+)\b"
    ),
    QuestionType.LISTING: re.compile(r"(?:^|\s)(?:\d+[.)]|[•*\-])\s+\w"),
    QuestionType.QUANTITY: re.compile(
        r"\d+(?:[.,]\d+)?\s*(?:%|percent|kg|mg|g|km|cm|mm|m|ms|s|hz|khz|mhz|ghz|"
        r"kb|mb|gb|tb|bps|kbps|mbps|gbps|v|kw|w|°c|units?|times)(?!\w)"
    ),
    QuestionType.PROCEDURE: re.compile(r"\b(?:step\s*\d+|first(?:ly)?|then|next|finally)\b"),
    QuestionType.CAUSE_EFFECT: re.compile(
        r"\b(?:because|due to|caused by|results? in|leads? to|consequently)\b"
    ),
    QuestionType.PROPERTY: re.compile(
        r"\b(?:propert(?:y|ies)|characteristics?|features?|attributes?)\b"
    ),
    QuestionType.EXAMPLE: re.compile(r"\b(?:for example|for instance|such as|e\.g\.)"),
    QuestionType.TIME: re.compile(
        r"\b(?:1[0-9]{3}|20[0-9]{2})\b|\b(?:january|february|march|april|may|june|july|"
        r"august|september|october|november|december|century|decade)\b"
    ),
}


def length_adjustment(length: int) -> float:
    """Penalize very short chunks and favour substantial ones."""
    adjustment = 0.0
    if length < 50:
        adjustment -= 20
    if length < 100:
        adjustment -= 10
    if length > 300:
        adjustment += 5
    if length > 500:
        adjustment += 5
    return adjustment


class Reranker:
    """Heuristic reranker.

    Scores are additive: retrieval similarity scaled to 0-100, bonuses for
    keywords, extracted terms, type hints and answer-shaped content, and a
    length adjustment. Nothing is learned, so the same inputs always give
    the same ordering.
    """

    def score(
        self,
        candidate: Chunk,
        keywords: list[str],
        terms: QueryTerms,
        question_type: QuestionType,
    ) -> float:
        content = candidate.content.lower()
        total = candidate.similarity * 100

        if keywords:
            matched = sum(1 for keyword in keywords if keyword in content)
            total += matched * KEYWORD_HIT_BONUS
            total += KEYWORD_COVERAGE_BONUS * matched / len(keywords)

        total += PRIMARY_TERM_BONUS * sum(1 for term in terms.primary_terms if term.lower() in content)
        total += CONTEXT_TERM_BONUS * sum(1 for term in terms.context_terms if term.lower() in content)
        total += SEARCH_HINT_BONUS * sum(1 for hint in terms.search_hints if hint in content)

        pattern = TYPE_PATTERNS.get(question_type)
        if pattern is not None and pattern.search(content):
            total += PATTERN_BONUS

        total += length_adjustment(len(candidate.content))
        return total

    def rerank(
        self,
        candidates: list[Chunk],
        query: str,
        question_type: QuestionType,
        top_n: int,
    ) -> list[Chunk]:
        """Return up to ``top_n`` scored copies of ``candidates``, best first.

        Equal scores keep their incoming order.
        """
        if not candidates or top_n <= 0:
            return []

        keywords = extract_keywords(query)
        terms = extract_terms(query, question_type)
        scored = [
            candidate.model_copy(
                update={"relevance": self.score(candidate, keywords, terms, question_type)}
            )
            for candidate in candidates
        ]
        scored.sort(key=lambda chunk: chunk.relevance, reverse=True)
        return scored[:top_n]
