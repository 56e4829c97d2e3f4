import pytest

from pdfqa.models import QuestionType
from pdfqa.rag.classifier import classify_question


@pytest.mark.parametrize(
    "query, expected",
    [
        ("What is machine learning?", QuestionType.DEFINITION),
        ("Define entropy", QuestionType.DEFINITION),
        ("What does HTTP stand for?", QuestionType.DEFINITION),
        ("What is the difference between TCP and UDP?", QuestionType.COMPARISON),
        ("Compare supervised and unsupervised learning", QuestionType.COMPARISON),
        ("Explain how photosynthesis works", QuestionType.EXPLANATION),
        ("What is the purpose of the kernel?", QuestionType.EXPLANATION),
        ("Where is the mitochondria located?", QuestionType.LOCATION),
        ("List the main components of a computer", QuestionType.LISTING),
        ("What are the different types of memory?", QuestionType.LISTING),
        ("How many layers does the OSI model have?", QuestionType.QUANTITY),
        ("How do I install the package?", QuestionType.PROCEDURE),
        ("Why does the sky appear blue?", QuestionType.CAUSE_EFFECT),
        ("What are the advantages of solar power?", QuestionType.PROPERTY),
        ("Give an example of a renewable resource", QuestionType.EXAMPLE),
        ("When was the treaty signed?", QuestionType.TIME),
        ("Photosynthesis", QuestionType.GENERAL),
    ],
)
def test_classify_question(query, expected):
    assert classify_question(query) == expected


def test_location_wins_over_definition():
    assert classify_question("Where is the definition of entropy?") == QuestionType.LOCATION


def test_classification_ignores_case_and_padding():
    assert classify_question("   WHAT IS A COMPILER?  ") == QuestionType.DEFINITION


def test_empty_query_is_general():
    assert classify_question("") == QuestionType.GENERAL
