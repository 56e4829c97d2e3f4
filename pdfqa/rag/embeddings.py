import logging

from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import Embeddings as WXEmbeddings
from ibm_watsonx_ai.metanames import EmbedTextParamsMetaNames as EmbedParams

from pdfqa.config import Settings

logger = logging.getLogger(__name__)

EMBEDDING_BATCH_SIZE = 100


class EmbeddingClient:
    def __init__(self, settings: Settings):
        settings.require_watsonx()
        self.settings = settings
        credentials = Credentials(
            api_key=settings.ibm_cloud_api_key,
            url=settings.watsonx_url,
        )
        self.client = WXEmbeddings(
            model_id=settings.watsonx_embed_model,
            project_id=settings.watsonx_project_id,
            credentials=credentials,
            params={EmbedParams.TRUNCATE_INPUT_TOKENS: 512},
        )

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed document chunks in batches of EMBEDDING_BATCH_SIZE."""
        vectors: list[list[float]] = []
        for start in range(0, len(texts), EMBEDDING_BATCH_SIZE):
            batch = texts[start : start + EMBEDDING_BATCH_SIZE]
            vectors.extend(self._as_vectors(self.client.embed_documents(batch)))
            if len(texts) > EMBEDDING_BATCH_SIZE:
                logger.info(
                    f"Embedded {min(start + EMBEDDING_BATCH_SIZE, len(texts))}/{len(texts)} chunks"
                )
        if len(vectors) != len(texts):
            raise RuntimeError(
                f"watsonx.ai returned {len(vectors)} embeddings for {len(texts)} texts"
            )
        return vectors

    def embed_query(self, text: str) -> list[float]:
        result = self.client.embed_query(text)
        data = result.get_result() if hasattr(result, "get_result") else result
        # single vector as list of floats
        if isinstance(data, list) and data and isinstance(data[0], (int, float)):
            return data  # type: ignore[return-value]
        vectors = self._as_vectors(result)
        if not vectors:
            raise RuntimeError("watsonx.ai returned no query embedding")
        return vectors[0]

    @staticmethod
    def _as_vectors(result) -> list[list[float]]:
        data = result.get_result() if hasattr(result, "get_result") else result
        # {"results": [{"embedding": [...]}, ...]}
        if isinstance(data, dict) and isinstance(data.get("results"), list):
            return [item["embedding"] for item in data["results"] if "embedding" in item]
        if isinstance(data, dict) and "embeddings" in data:
            return data["embeddings"]  # type: ignore[return-value]
        # direct list of vectors
        if isinstance(data, list) and (not data or isinstance(data[0], list)):
            return data  # type: ignore[return-value]
        raise RuntimeError(
            f"Unexpected embeddings response format from watsonx.ai: {type(data)} keys={list(data.keys()) if isinstance(data, dict) else 'n/a'}"
        )
