"""Main Streamlit application for PDF question answering.

This module provides the user interface: document upload, the document
list with deletion, and a chat panel answering questions with page
citations.
"""

import asyncio
import logging
from typing import Optional, Tuple

import streamlit as st
from dotenv import load_dotenv

from pdfqa.config import Settings
from pdfqa.models import QueryResult
from pdfqa.rag.errors import EmptyGenerationError, IngestionError, RateLimitError
from pdfqa.rag.pipeline import IngestionPipeline, QueryPipeline

logger = logging.getLogger(__name__)

ALL_DOCUMENTS = "All documents"
BUSY_MESSAGE = "The AI service is temporarily busy. Please wait a moment and try again."
EMPTY_ANSWER_MESSAGE = "No answer was produced. Please try again or rephrase the question."
FAILURE_MESSAGE = "Something went wrong while answering. Please try again."


def init_state() -> None:
    """Initialize Streamlit session state variables."""
    if "messages" not in st.session_state:
        st.session_state["messages"] = []
    if "document_filter" not in st.session_state:
        st.session_state["document_filter"] = None


def upload_section(ingestion: IngestionPipeline, settings: Settings) -> None:
    """Display the PDF upload area and ingest selected files.

    Args:
        ingestion: IngestionPipeline instance for processing documents.
        settings: Application settings.
    """
    st.sidebar.markdown("### Upload Documents")
    uploaded_files = st.sidebar.file_uploader(
        "Drag PDF files here or click to browse",
        type=["pdf"],
        accept_multiple_files=True,
        help="Files are split into chunks, embedded and indexed for search.",
    )
    if not uploaded_files or not st.sidebar.button(f"Ingest {len(uploaded_files)} file(s)", type="primary"):
        return

    limit = settings.max_upload_bytes
    for f in uploaded_files:
        if f.size > limit:
            st.sidebar.error(f"{f.name} exceeds the {limit // (1024 * 1024)}MB limit")
            continue
        with st.spinner(f"Ingesting {f.name}..."):
            try:
                stats = ingestion.ingest_pdf(f.name, f.getvalue())
            except IngestionError as e:
                st.sidebar.error(f"{f.name}: {e}")
                continue
        st.sidebar.success(
            f"{stats.file_name}: {stats.total_pages} pages, {stats.total_chunks} chunks"
        )


def sidebar_documents(ingestion: IngestionPipeline) -> None:
    """Display stored documents with a delete button and the search filter."""
    st.sidebar.markdown("### Documents")
    documents = ingestion.list_documents()
    if not documents:
        st.sidebar.info("Upload documents to get started")
        st.session_state["document_filter"] = None
        return

    st.sidebar.caption(f"{len(documents)} document(s)")
    for name in documents:
        col_name, col_delete = st.sidebar.columns([4, 1])
        col_name.markdown(f"**{name}**")
        if col_delete.button("✕", key=f"delete_{name}", help=f"Delete {name}"):
            deleted = ingestion.delete_document(name)
            st.toast(f"Deleted {deleted} chunks for {name}")
            st.rerun()

    choice = st.sidebar.selectbox("Search in", [ALL_DOCUMENTS] + documents)
    st.session_state["document_filter"] = None if choice == ALL_DOCUMENTS else choice


def ask_question(
    query_pipeline: QueryPipeline, question: str, document_filter: Optional[str] = None
) -> Tuple[Optional[QueryResult], Optional[str]]:
    """Answer a question, turning failures into a message for the user.

    Returns:
        Tuple of (result, error message); exactly one of them is set.
    """
    try:
        result = asyncio.run(query_pipeline.answer(question, document_filter=document_filter))
    except RateLimitError:
        return None, BUSY_MESSAGE
    except EmptyGenerationError:
        return None, EMPTY_ANSWER_MESSAGE
    except Exception as e:
        logger.error(f"Error processing query: {e}")
        return None, FAILURE_MESSAGE
    return result, None


def chat_ui(query_pipeline: QueryPipeline) -> None:
    """Display the conversation and answer new questions."""
    for message in st.session_state["messages"]:
        with st.chat_message(message["role"]):
            st.markdown(message["content"])
            if message.get("sources"):
                st.caption("Sources: " + "; ".join(message["sources"]))

    question = st.chat_input("Ask a question about your documents")
    if not question or not question.strip():
        return

    st.session_state["messages"].append({"role": "user", "content": question})
    with st.chat_message("user"):
        st.markdown(question)

    with st.chat_message("assistant"):
        with st.spinner("Searching documents..."):
            result, error = ask_question(
                query_pipeline, question.strip(), st.session_state.get("document_filter")
            )
        if error is not None:
            st.error(error)
            st.session_state["messages"].append({"role": "assistant", "content": error})
            return
        st.markdown(result.answer)
        if result.sources:
            st.caption("Sources: " + "; ".join(result.sources))

    st.session_state["messages"].append(
        {"role": "assistant", "content": result.answer, "sources": result.sources}
    )


@st.cache_resource
def get_settings() -> Settings:
    """Load and cache application settings.

    Returns:
        Settings instance loaded from environment variables.
    """
    load_dotenv()
    return Settings.from_env()


@st.cache_resource
def get_pipelines(
    _settings: Settings,
) -> Tuple[IngestionPipeline, QueryPipeline]:
    """Initialize and cache pipelines.

    Args:
        _settings: Application settings (excluded from the cache key).

    Returns:
        Tuple of (IngestionPipeline, QueryPipeline) instances.
    """
    return IngestionPipeline(_settings), QueryPipeline(_settings)


def main() -> None:
    """Main entry point for the Streamlit application."""
    st.set_page_config(
        page_title="PDF Q&A",
        page_icon=None,
        layout="wide",
        initial_sidebar_state="expanded",
    )
    settings = get_settings()
    init_state()
    ingestion, query_pipeline = get_pipelines(settings)

    st.title("Ask your PDFs")
    upload_section(ingestion, settings)
    st.sidebar.divider()
    sidebar_documents(ingestion)

    active_filter: Optional[str] = st.session_state.get("document_filter")
    if active_filter:
        st.caption(f"Searching in {active_filter}")
    chat_ui(query_pipeline)


if __name__ == "__main__":
    main()
