from dataclasses import dataclass, field
from typing import BinaryIO, List
import io
import logging
import re

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from pdfqa.rag.errors import IngestionError

logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x09\x0B\x0C\x0E-\x1F\x7F]")


@dataclass
class ParsedPage:
    page_number: int
    text: str


@dataclass
class ParsedPDF:
    document_name: str
    total_pages: int
    pages: List[ParsedPage] = field(default_factory=list)

    @property
    def full_text(self) -> str:
        return "\n\n".join(page.text for page in self.pages)


def clean_text(text: str) -> str:
    """Collapse whitespace, drop control characters and normalize quotes."""
    text = " ".join(text.split())
    text = _CONTROL_CHARS.sub("", text)
    text = text.replace("“", '"').replace("”", '"')
    text = text.replace("‘", "'").replace("’", "'")
    return text.strip()


def extract_text_per_page(fileobj: BinaryIO) -> List[str]:
    reader = PdfReader(fileobj)
    pages: List[str] = []
    for page in reader.pages:
        text = page.extract_text() or ""
        pages.append(clean_text(text))
    return pages


def parse_pdf(data: bytes, document_name: str) -> ParsedPDF:
    """Extract the text of every page; pages without text are skipped.

    Args:
        data: Raw PDF bytes.
        document_name: Name recorded on every chunk, usually the filename.

    Returns:
        ParsedPDF with 1-based page numbers.

    Raises:
        IngestionError: If the bytes are not a readable PDF.
    """
    try:
        page_texts = extract_text_per_page(io.BytesIO(data))
    except PdfReadError as e:
        raise IngestionError(f"Could not read PDF {document_name}: {e}") from e

    parsed = ParsedPDF(document_name=document_name, total_pages=len(page_texts))
    for number, text in enumerate(page_texts, start=1):
        if text:
            parsed.pages.append(ParsedPage(page_number=number, text=text))
    logger.info(
        f"Parsed {document_name}: {parsed.total_pages} pages, {len(parsed.pages)} with text"
    )
    return parsed
