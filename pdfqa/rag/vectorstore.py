import logging
from typing import List

from pymilvus import connections, FieldSchema, CollectionSchema, DataType, Collection, utility

from pdfqa.config import Settings
from pdfqa.models import Chunk, ChunkDraft, ChunkMetadata

logger = logging.getLogger(__name__)

# Milvus caps query() results at 16384 rows.
_QUERY_LIMIT = 16384

_OUTPUT_FIELDS = ["id", "content", "document_name", "page_number", "chunk_index", "total_chunks"]


def _quote(value: str) -> str:
    """Render a string literal for a Milvus boolean expression."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return _quote(f"%{escaped}%")


def filter_expression(filters: dict[str, str] | None) -> str:
    """Build an equality filter expression, e.g. ``document_name == "a.pdf"``."""
    if not filters:
        return ""
    return " and ".join(f"{field} == {_quote(value)}" for field, value in sorted(filters.items()))


def _to_chunk(entity: dict, similarity: float = 0.0) -> Chunk:
    total_chunks = entity.get("total_chunks")
    return Chunk(
        id=int(entity["id"]),
        content=entity["content"],
        metadata=ChunkMetadata(
            document_name=entity["document_name"],
            page_number=int(entity["page_number"]),
            chunk_index=int(entity["chunk_index"]),
            total_chunks=int(total_chunks) if total_chunks and total_chunks > 0 else None,
        ),
        similarity=similarity,
    )


class MilvusStore:
    """Chunk store backed by a Milvus collection.

    The collection keeps a lower-cased copy of every chunk so keyword
    containment search can be case-insensitive with Milvus ``like``.
    """

    def __init__(self, settings: Settings, collection_name: str | None = None):
        self.settings = settings
        self.collection_name = collection_name or settings.milvus_collection
        self._connect()
        self._ensure_collection()

    def _connect(self) -> None:
        alias = "default"
        if connections.has_connection(alias):
            return
        kwargs = {}
        if self.settings.milvus_db:
            kwargs["db_name"] = self.settings.milvus_db
        connections.connect(
            alias=alias,
            host=self.settings.milvus_host,
            port=str(self.settings.milvus_port),
            secure=self.settings.milvus_tls,
            **kwargs,
        )
        logger.info(f"Connected to Milvus at {self.settings.milvus_host}:{self.settings.milvus_port}")

    def _ensure_collection(self) -> None:
        fields = [
            FieldSchema(name="id", dtype=DataType.INT64, is_primary=True, auto_id=True),
            FieldSchema(name="content", dtype=DataType.VARCHAR, max_length=8192),
            FieldSchema(name="content_lower", dtype=DataType.VARCHAR, max_length=8192),
            FieldSchema(name="document_name", dtype=DataType.VARCHAR, max_length=512),
            FieldSchema(name="page_number", dtype=DataType.INT64),
            FieldSchema(name="chunk_index", dtype=DataType.INT64),
            FieldSchema(name="total_chunks", dtype=DataType.INT64),
            FieldSchema(name="embedding", dtype=DataType.FLOAT_VECTOR, dim=self.settings.embedding_dim),
        ]
        schema = CollectionSchema(fields=fields, description="PDF chunks")

        if not utility.has_collection(self.collection_name):
            self.collection = Collection(self.collection_name, schema=schema)
            self.collection.create_index(
                field_name="embedding",
                index_params={
                    "index_type": "IVF_FLAT",
                    "metric_type": "COSINE",
                    "params": {"nlist": 128},
                },
            )
            self.collection.create_index(field_name="document_name", index_name="document_name_idx")
            logger.info(f"Created Milvus collection {self.collection_name}")
        else:
            self.collection = Collection(self.collection_name)

        self.collection.load()

    def insert_chunks(self, drafts: List[ChunkDraft], embeddings: List[List[float]]) -> int:
        if not drafts:
            return 0
        if len(drafts) != len(embeddings):
            raise ValueError(f"Got {len(embeddings)} embeddings for {len(drafts)} chunks")
        self.collection.insert(
            [
                [d.content for d in drafts],
                [d.content.lower() for d in drafts],
                [d.metadata.document_name for d in drafts],
                [d.metadata.page_number for d in drafts],
                [d.metadata.chunk_index for d in drafts],
                [d.metadata.total_chunks or 0 for d in drafts],
                list(embeddings),
            ]
        )
        self.collection.flush()
        return len(drafts)

    def similarity_search(
        self, query_embedding: List[float], limit: int, filters: dict[str, str] | None = None
    ) -> List[Chunk]:
        """Nearest chunks by cosine similarity, best first, similarity in [0, 1]."""
        results = self.collection.search(
            data=[query_embedding],
            anns_field="embedding",
            param={"metric_type": "COSINE", "params": {"nprobe": 16}},
            limit=limit,
            expr=filter_expression(filters) or None,
            output_fields=_OUTPUT_FIELDS[1:],
        )
        hits = []
        for hit in results[0]:
            entity = {f: hit.entity.get(f) for f in _OUTPUT_FIELDS[1:]}
            entity["id"] = hit.id
            # COSINE distance in Milvus is the cosine similarity itself
            similarity = max(0.0, min(1.0, float(hit.distance)))
            hits.append(_to_chunk(entity, similarity))
        hits.sort(key=lambda chunk: chunk.similarity, reverse=True)
        return hits

    def contains_search(
        self, term: str, limit: int, filters: dict[str, str] | None = None
    ) -> List[Chunk]:
        """Chunks whose content contains ``term``, ignoring case."""
        expr = f"content_lower like {_like_pattern(term.lower())}"
        extra = filter_expression(filters)
        if extra:
            expr = f"{expr} and {extra}"
        rows = self.collection.query(expr=expr, output_fields=_OUTPUT_FIELDS, limit=limit)
        return [_to_chunk(row) for row in rows]

    def delete_by_document(self, document_name: str) -> int:
        result = self.collection.delete(expr=filter_expression({"document_name": document_name}))
        self.collection.flush()
        deleted = int(getattr(result, "delete_count", 0))
        logger.info(f"Deleted {deleted} chunks for {document_name}")
        return deleted

    def list_documents(self) -> List[str]:
        rows = self.collection.query(
            expr="id >= 0", output_fields=["document_name"], limit=_QUERY_LIMIT
        )
        return list(dict.fromkeys(row["document_name"] for row in rows))
