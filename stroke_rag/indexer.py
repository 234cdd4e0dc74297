"""Builds the vector index of clinical reference documents."""

import hashlib
import logging
from pathlib import Path

import chromadb
from chromadb.config import Settings

from stroke_rag.embeddings import LocalEmbeddings

logger = logging.getLogger(__name__)

COLLECTION_NAME = "stroke_references"
REFERENCE_EXTENSIONS = (".txt", ".md")


def chunk_text(text: str, max_chars: int = 1200, overlap: int = 200) -> list[str]:
    """Split text into windows of at most ``max_chars``, preferring paragraph breaks.

    Paragraphs are packed together while they fit; a paragraph longer than
    ``max_chars`` is cut into overlapping character windows.
    """
    if overlap >= max_chars:
        raise ValueError("overlap must be smaller than max_chars")

    paragraphs = [" ".join(p.split()) for p in text.replace("\r\n", "\n").split("\n\n")]
    chunks: list[str] = []
    current = ""

    for paragraph in filter(None, paragraphs):
        if len(paragraph) > max_chars:
            if current:
                chunks.append(current)
                current = ""
            step = max_chars - overlap
            for start in range(0, len(paragraph), step):
                chunks.append(paragraph[start : start + max_chars])
                if start + max_chars >= len(paragraph):
                    break
            continue

        candidate = f"{current}\n\n{paragraph}" if current else paragraph
        if len(candidate) > max_chars:
            chunks.append(current)
            current = paragraph
        else:
            current = candidate

    if current:
        chunks.append(current)
    return chunks


def document_id_for(path: Path, data_dir: Path) -> str:
    relative = path.relative_to(data_dir).as_posix()
    return hashlib.sha1(relative.encode("utf-8")).hexdigest()[:16]


class ReferenceIndexer:
    """Indexes reference documents into ChromaDB with local embeddings."""

    def __init__(
        self,
        data_dir: Path,
        index_path: Path = Path(".chroma_db"),
        embedding_model: str = "BAAI/bge-small-en-v1.5",
        max_chars: int = 1200,
        overlap: int = 200,
        device: str | None = None,
    ):
        self.data_dir = Path(data_dir)
        self.index_path = Path(index_path)
        self.max_chars = max_chars
        self.overlap = overlap
        self.embeddings_client = LocalEmbeddings(model=embedding_model, device=device)
        self.client = chromadb.PersistentClient(
            path=str(self.index_path), settings=Settings(anonymized_telemetry=False)
        )
        self.collection = self.client.get_or_create_collection(
            name=COLLECTION_NAME,
            metadata={"embedding_model": embedding_model, "hnsw:space": "cosine"},
        )

    def _reference_files(self) -> list[Path]:
        return sorted(
            p for p in self.data_dir.rglob("*")
            if p.is_file() and p.suffix.lower() in REFERENCE_EXTENSIONS
        )

    async def index_all(self) -> int:
        """Chunk, embed and store every reference document. Returns the chunk count."""
        documents = []
        metadatas = []
        ids = []

        for path in self._reference_files():
            text = path.read_text(encoding="utf-8", errors="replace")
            chunks = chunk_text(text, max_chars=self.max_chars, overlap=self.overlap)
            if not chunks:
                logger.warning("Skipping empty reference file %s", path)
                continue

            document_id = document_id_for(path, self.data_dir)
            for position, chunk in enumerate(chunks):
                chunk_id = f"{document_id}-{position:04d}"
                documents.append(chunk)
                metadatas.append(
                    {
                        "document_id": document_id,
                        "chunk_id": chunk_id,
                        "filename": path.name,
                        "source": path.relative_to(self.data_dir).as_posix(),
                        "position": position,
                    }
                )
                ids.append(chunk_id)

        if not documents:
            return 0

        embeddings = await self.embeddings_client.embed_texts(documents)
        self.collection.upsert(
            embeddings=embeddings,
            documents=documents,
            metadatas=metadatas,
            ids=ids,
        )
        logger.info("Indexed %d chunks from %s", len(documents), self.data_dir)
        return len(documents)
