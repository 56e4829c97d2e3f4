"""Application configuration settings.

This module defines the Settings dataclass that loads configuration
from environment variables.
"""

from dataclasses import dataclass
import os

from pdfqa.rag.errors import ConfigurationError

RETRIEVAL_MODES = ("hybrid", "multi_query", "semantic")


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        ibm_cloud_api_key: IBM Cloud API key for authentication.
        watsonx_region: Watsonx.ai service region.
        watsonx_project_id: Watsonx.ai project ID.
        watsonx_embed_model: Embedding model ID.
        watsonx_gen_model: Generation model ID.
        milvus_host: Milvus database host.
        milvus_port: Milvus database port.
        milvus_db: Milvus database name (optional).
        milvus_tls: Whether to use TLS for Milvus.
        milvus_collection: Collection holding document chunks.
        embedding_dim: Embedding dimension.
        chunk_size: Text chunk size for splitting.
        chunk_overlap: Text chunk overlap size.
        top_k: Number of candidates fetched by each retrieval path.
        rerank_top_k: Number of candidates kept after reranking.
        similarity_threshold: Minimum merged similarity kept for reranking.
        max_context_length: Character budget of the assembled context.
        max_keywords: Number of keywords searched by the lexical path.
        keyword_base_score: Similarity floor of a keyword-only match.
        keyword_score_range: Similarity added for matching every keyword.
        keyword_similarity_cap: Upper bound of keyword-path similarity.
        keyword_only_boost: Added to keyword hits the semantic pass missed.
        overlap_boost: Added to semantic hits the keyword pass also found.
        retrieval_mode: One of "hybrid", "multi_query" or "semantic".
        temperature: Generation temperature.
        max_new_tokens: Generation token limit.
        request_timeout: Seconds allowed for retrieval and generation.
        max_upload_bytes: Largest accepted PDF upload.
        cors_origins: Origins allowed to call the HTTP API.
    """

    ibm_cloud_api_key: str
    watsonx_region: str
    watsonx_project_id: str
    watsonx_embed_model: str
    watsonx_gen_model: str

    milvus_host: str
    milvus_port: int
    milvus_db: str | None
    milvus_tls: bool
    milvus_collection: str
    embedding_dim: int

    chunk_size: int
    chunk_overlap: int

    top_k: int
    rerank_top_k: int
    similarity_threshold: float
    max_context_length: int
    max_keywords: int
    keyword_base_score: float
    keyword_score_range: float
    keyword_similarity_cap: float
    keyword_only_boost: float
    overlap_boost: float
    retrieval_mode: str

    temperature: float
    max_new_tokens: int
    request_timeout: float
    max_upload_bytes: int
    cors_origins: list[str]

    @staticmethod
    def _get_bool(value: str | None, default: bool = False) -> bool:
        """Convert string value to boolean.

        Args:
            value: String value to convert.
            default: Default value if value is None.

        Returns:
            Boolean value.
        """
        if value is None:
            return default
        return value.lower() in {"1", "true", "t", "yes", "y"}

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings instance from environment variables.

        Returns:
            Settings instance with values loaded from environment.
        """
        retrieval_mode = os.getenv("RETRIEVAL_MODE", "hybrid").lower()
        if retrieval_mode not in RETRIEVAL_MODES:
            raise ConfigurationError(
                f"RETRIEVAL_MODE must be one of {', '.join(RETRIEVAL_MODES)}, got {retrieval_mode!r}"
            )
        return cls(
            ibm_cloud_api_key=os.getenv("IBM_CLOUD_API_KEY", ""),
            watsonx_region=os.getenv("WATSONX_REGION", "us-south"),
            watsonx_project_id=os.getenv("WATSONX_PROJECT_ID", ""),
            watsonx_embed_model=os.getenv(
                "WATSONX_EMBED_MODEL",
                "ibm/slate-125m-english-rtrvr-v2",
            ),
            watsonx_gen_model=os.getenv(
                "WATSONX_GEN_MODEL", "ibm/granite-3-8b-instruct"
            ),
            milvus_host=os.getenv("MILVUS_HOST", "localhost"),
            milvus_port=int(os.getenv("MILVUS_PORT", "19530")),
            milvus_db=os.getenv("MILVUS_DB"),
            milvus_tls=cls._get_bool(os.getenv("MILVUS_TLS"), False),
            milvus_collection=os.getenv("MILVUS_COLLECTION", "pdf_chunks"),
            embedding_dim=int(os.getenv("EMBEDDING_DIM", "768")),
            chunk_size=int(os.getenv("CHUNK_SIZE", "1000")),
            chunk_overlap=int(os.getenv("CHUNK_OVERLAP", "200")),
            top_k=int(os.getenv("TOP_K", "10")),
            rerank_top_k=int(os.getenv("RERANK_TOP_K", "5")),
            similarity_threshold=float(os.getenv("SIMILARITY_THRESHOLD", "0.1")),
            max_context_length=int(os.getenv("MAX_CONTEXT_LENGTH", "15000")),
            max_keywords=int(os.getenv("MAX_KEYWORDS", "5")),
            keyword_base_score=float(os.getenv("KEYWORD_BASE_SCORE", "0.3")),
            keyword_score_range=float(os.getenv("KEYWORD_SCORE_RANGE", "0.5")),
            keyword_similarity_cap=float(os.getenv("KEYWORD_SIMILARITY_CAP", "0.9")),
            keyword_only_boost=float(os.getenv("KEYWORD_ONLY_BOOST", "0.2")),
            overlap_boost=float(os.getenv("OVERLAP_BOOST", "0.15")),
            retrieval_mode=retrieval_mode,
            temperature=float(os.getenv("TEMPERATURE", "0.2")),
            max_new_tokens=int(os.getenv("MAX_NEW_TOKENS", "4096")),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))),
            cors_origins=[
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", "*").split(",")
                if origin.strip()
            ],
        )

    def require_watsonx(self) -> None:
        """Fail fast when watsonx.ai credentials are missing.

        Raises:
            ConfigurationError: If the API key or project ID is empty.
        """
        missing = [
            name
            for name, value in (
                ("IBM_CLOUD_API_KEY", self.ibm_cloud_api_key),
                ("WATSONX_PROJECT_ID", self.watsonx_project_id),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing watsonx.ai settings: {', '.join(missing)}. "
                "Set them in the environment or in a .env file."
            )

    @property
    def watsonx_url(self) -> str:
        return f"https://{self.watsonx_region}.ml.cloud.ibm.com"
