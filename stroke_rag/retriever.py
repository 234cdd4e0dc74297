"""Semantic search over the clinical reference index."""

import logging
from pathlib import Path

import chromadb
from chromadb.config import Settings

from stroke_rag.embeddings import LocalEmbeddings
from stroke_rag.indexer import COLLECTION_NAME
from stroke_rag.models import ContextSnippet

logger = logging.getLogger(__name__)


class ReferenceRetriever:
    """Retrieves the reference chunks closest to a clinical description."""

    def __init__(
        self,
        index_path: Path = Path(".chroma_db"),
        embedding_model: str = "BAAI/bge-small-en-v1.5",
        top_k: int = 5,
    ):
        self.index_path = Path(index_path)
        self.embeddings_client = LocalEmbeddings(model=embedding_model)
        self.top_k = top_k
        self.client = chromadb.PersistentClient(
            path=str(self.index_path), settings=Settings(anonymized_telemetry=False)
        )
        self.collection = self.client.get_or_create_collection(
            name=COLLECTION_NAME,
            metadata={"embedding_model": embedding_model, "hnsw:space": "cosine"},
        )

    async def search(self, query: str) -> list[ContextSnippet]:
        query_embedding = await self.embeddings_client.embed_query(query)

        results = self.collection.query(
            query_embeddings=[query_embedding],
            n_results=self.top_k,
        )

        if not results["ids"] or not results["ids"][0]:
            logger.info("No reference chunks matched the query")
            return []

        snippets = []
        for doc_id, document, metadata, distance in zip(
            results["ids"][0],
            results["documents"][0],
            results["metadatas"][0],
            results["distances"][0],
        ):
            metadata = dict(metadata or {})
            snippets.append(
                ContextSnippet(
                    text=document,
                    score=1.0 - distance,
                    document_id=metadata.get("document_id"),
                    chunk_id=metadata.get("chunk_id") or doc_id,
                    metadata=metadata,
                )
            )

        logger.debug("Retrieved %d reference chunks", len(snippets))
        return snippets
