"""Keyword and term extraction for queries.

Everything here is a pure function of the query text so the retriever and
reranker see the same terms for the same question.
"""

import re

from pdfqa.models import QueryTerms, QuestionType

STOP_WORDS = frozenset(
    {
        "a", "about", "above", "after", "again", "all", "also", "am", "an", "and",
        "any", "are", "as", "at", "be", "because", "been", "before", "being",
        "below", "between", "both", "but", "by", "can", "could", "did", "do",
        "does", "doing", "down", "during", "each", "explain", "few", "for",
        "from", "further", "give", "had", "has", "have", "having", "he", "her",
        "here", "hers", "him", "his", "how", "i", "if", "in", "into", "is", "it",
        "its", "just", "me", "more", "most", "my", "no", "nor", "not", "now",
        "of", "off", "on", "once", "only", "or", "other", "our", "out", "over",
        "own", "please", "same", "she", "should", "so", "some", "such", "tell",
        "than", "that", "the", "their", "them", "then", "there", "these", "they",
        "this", "those", "through", "to", "too", "under", "until", "up", "very",
        "was", "we", "were", "what", "when", "where", "which", "while", "who",
        "whom", "why", "will", "with", "would", "you", "your", "describe",
        "document", "documents", "according",
    }
)

SEARCH_HINTS: dict[QuestionType, list[str]] = {
    QuestionType.DEFINITION: ["definition", "meaning", "refers to", "is defined as", "is a"],
    QuestionType.COMPARISON: ["difference", "compared", "whereas", "unlike", "similar"],
    QuestionType.EXPLANATION: ["because", "therefore", "mechanism", "works by", "principle"],
    QuestionType.LOCATION: ["located", "found in", "section", "chapter", "region"],
    QuestionType.LISTING: ["types", "kinds", "include", "following", "categories"],
    QuestionType.QUANTITY: ["number", "total", "percent", "amount", "approximately"],
    QuestionType.PROCEDURE: ["step", "first", "then", "finally", "procedure"],
    QuestionType.CAUSE_EFFECT: ["because", "due to", "results in", "leads to", "caused by"],
    QuestionType.PROPERTY: ["properties", "characteristics", "features", "attributes"],
    QuestionType.EXAMPLE: ["for example", "such as", "for instance", "e.g."],
    QuestionType.TIME: ["year", "date", "period", "during", "since"],
    QuestionType.GENERAL: [],
}

MAX_CONTEXT_TERMS = 5

_ACRONYM_RE = re.compile(r"\b[A-Z]{2,}\d*\b")
_QUOTED_RE = re.compile(r"\"([^\"]+)\"|“([^”]+)”")
_CAPITALIZED_RE = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)+\b")
_TOKEN_RE = re.compile(r"[a-z0-9]+(?:[-'][a-z0-9]+)*")


def _unique(items: list[str], *, casefold: bool = False) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        key = item.lower() if casefold else item
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out


def find_acronyms(query: str) -> list[str]:
    """Return all-caps tokens of two or more letters, case preserved."""
    return _unique(_ACRONYM_RE.findall(query))


def _quoted_phrases(query: str) -> list[str]:
    phrases = []
    for straight, curly in _QUOTED_RE.findall(query):
        phrase = (straight or curly).strip()
        if phrase:
            phrases.append(phrase)
    return phrases


def _capitalized_terms(query: str) -> list[str]:
    terms = []
    for match in _CAPITALIZED_RE.findall(query):
        words = match.split()
        # "What Is Machine Learning" -> "Machine Learning"
        while words and words[0].lower() in STOP_WORDS:
            words.pop(0)
        if len(words) >= 2:
            terms.append(" ".join(words))
    return terms


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def extract_terms(query: str, question_type: QuestionType) -> QueryTerms:
    """Split a query into primary terms, context terms and search hints.

    Args:
        query: Raw user query.
        question_type: Type returned by the classifier.

    Returns:
        QueryTerms for the query.
    """
    primary = _unique(
        find_acronyms(query) + _quoted_phrases(query) + _capitalized_terms(query),
        casefold=True,
    )
    primary_lower = {term.lower() for term in primary}
    primary_words = {word for term in primary_lower for word in term.split()}

    context: list[str] = []
    for token in tokenize(query):
        if len(token) <= 2 or token in STOP_WORDS:
            continue
        if token in primary_lower or token in primary_words or token in context:
            continue
        context.append(token)
        if len(context) == MAX_CONTEXT_TERMS:
            break

    return QueryTerms(
        primary_terms=primary,
        context_terms=context,
        search_hints=list(SEARCH_HINTS.get(question_type, [])),
    )


def extract_keywords(query: str) -> list[str]:
    """Extract lower-cased keywords for the lexical search path.

    Stop words and tokens shorter than three characters are dropped,
    acronyms are always kept. Duplicates are removed and query order is
    preserved.
    """
    acronyms = {acronym.lower() for acronym in find_acronyms(query)}
    keywords = [
        token
        for token in tokenize(query)
        if token in acronyms or (len(token) >= 3 and token not in STOP_WORDS)
    ]
    return _unique(keywords)
