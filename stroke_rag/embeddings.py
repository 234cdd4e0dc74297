"""Local sentence-transformers embeddings for clinical reference text."""

import asyncio
from functools import lru_cache

from sentence_transformers import SentenceTransformer

# bge retrieval models expect this prefix on queries, not on passages.
BGE_QUERY_INSTRUCTION = "Represent this sentence for searching relevant passages: "


@lru_cache(maxsize=4)
def _load_model(model_name: str) -> SentenceTransformer:
    return SentenceTransformer(model_name)


class LocalEmbeddings:
    """Embeds reference passages and clinical queries on the local machine."""

    def __init__(
        self,
        model: str = "BAAI/bge-small-en-v1.5",
        batch_size: int = 32,
        device: str | None = None,
    ):
        self.model_name = model
        self.batch_size = batch_size
        self._model = _load_model(model)
        if device:
            self._model = self._model.to(device)

    @property
    def query_instruction(self) -> str:
        return BGE_QUERY_INSTRUCTION if "bge" in self.model_name.lower() else ""

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed passages in a worker thread."""
        if not texts:
            return []

        return await asyncio.to_thread(
            lambda: self._model.encode(
                texts,
                batch_size=self.batch_size,
                show_progress_bar=len(texts) > 100,
                normalize_embeddings=True,
                convert_to_numpy=True,
            ).tolist()
        )

    async def embed_query(self, query: str) -> list[float]:
        results = await self.embed_texts([self.query_instruction + query])
        return results[0]
