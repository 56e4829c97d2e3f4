"""Question type classification.

Queries are matched against an ordered list of pattern groups. The first
group with a matching pattern decides the type, so the order of
``QUESTION_PATTERNS`` is the precedence between overlapping categories.
"""

import re

from pdfqa.models import QuestionType

_COMPARISON_WORDS = r"(?:differ|differs|difference|differences|compare|compared|comparison|versus|vs)"

QUESTION_PATTERNS: list[tuple[QuestionType, list[re.Pattern[str]]]] = [
    (
        QuestionType.LOCATION,
        [
            re.compile(r"\bwhere\b"),
            re.compile(r"\b(?:located|location of)\b"),
            re.compile(r"\bin which (?:section|chapter|part|page)\b"),
        ],
    ),
    (
        QuestionType.LISTING,
        [
            re.compile(r"^(?:list|enumerate|name)\b"),
            re.compile(
                r"\bwhat are (?:the )?(?:main |different |various )?"
                r"(?:types|kinds|categories|components|elements|stages|layers)\b"
            ),
            re.compile(r"\b(?:types|kinds|categories) of\b"),
        ],
    ),
    (
        QuestionType.QUANTITY,
        [
            re.compile(r"\bhow (?:many|much)\b"),
            re.compile(r"\b(?:number|amount|percentage|quantity) of\b"),
            re.compile(r"\bwhat is the (?:value|size|rate|speed|capacity|frequency|range)\b"),
        ],
    ),
    (
        QuestionType.PROCEDURE,
        [
            re.compile(r"\bhow (?:do|can|should|would) (?:i|you|we|one)\b"),
            re.compile(r"\bhow to\b"),
            re.compile(r"\b(?:steps|procedure|process) (?:to|for|of)\b"),
            re.compile(r"\bwhat are the steps\b"),
        ],
    ),
    (
        QuestionType.CAUSE_EFFECT,
        [
            re.compile(r"\bwhy\b"),
            re.compile(r"\b(?:cause|causes|caused|effect|effects|impact|consequence|consequences)\b"),
            re.compile(r"\b(?:lead|leads) to\b|\bresults? in\b"),
            re.compile(r"\bwhat happens (?:if|when)\b"),
        ],
    ),
    (
        QuestionType.PROPERTY,
        [
            re.compile(
                r"\b(?:properties|property|characteristics|features|attributes|"
                r"advantages|disadvantages|benefits|limitations)\b"
            ),
        ],
    ),
    (
        QuestionType.EXAMPLE,
        [
            re.compile(r"\b(?:example|examples|instance|instances)\b"),
            re.compile(r"\bsuch as\b"),
            re.compile(r"\billustrate\b"),
        ],
    ),
    (
        QuestionType.TIME,
        [
            re.compile(r"\bwhen\b"),
            re.compile(r"\b(?:what|which) (?:year|date|time|period|century)\b"),
            re.compile(r"\bhow long\b"),
        ],
    ),
    (
        QuestionType.DEFINITION,
        [
            re.compile(
                r"^(?:what|who) (?:is|are|was|were)\b"
                r"(?! the (?:purpose|role|function|mechanism|significance)\b)"
                rf"(?!.*\b{_COMPARISON_WORDS}\b)"
            ),
            re.compile(r"\b(?:define|definition of|meaning of)\b"),
            re.compile(r"\bwhat does .+ (?:mean|stand for)\b"),
        ],
    ),
    (
        QuestionType.COMPARISON,
        [
            re.compile(rf"\b{_COMPARISON_WORDS}\b"),
            re.compile(r"\b(?:contrast|similarities|better than|worse than)\b"),
        ],
    ),
    (
        QuestionType.EXPLANATION,
        [
            re.compile(r"\b(?:explain|describe|elaborate|discuss)\b"),
            re.compile(r"^how (?:does|do|is|are|did|was|were)\b"),
            re.compile(r"\bwhat is the (?:purpose|role|function|mechanism|significance)\b"),
        ],
    ),
]


def classify_question(query: str) -> QuestionType:
    """Assign a query to a question type.

    Args:
        query: Raw user query.

    Returns:
        The first matching QuestionType, or GENERAL when nothing matches.
    """
    lowered = query.lower().strip()
    for question_type, patterns in QUESTION_PATTERNS:
        if any(pattern.search(lowered) for pattern in patterns):
            return question_type
    return QuestionType.GENERAL
