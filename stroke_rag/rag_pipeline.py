"""Local inference service: retrieval plus generation."""

import logging
from collections.abc import AsyncGenerator

from stroke_rag.llm_client import OpenAIClient
from stroke_rag.models import ContextSnippet, QueryResponse
from stroke_rag.retriever import ReferenceRetriever

logger = logging.getLogger(__name__)

NO_CONTEXT_ANSWER = (
    "Notes: No relevant reference material was found for the provided clinical data."
)


class RAGPipeline:
    """Orchestrates reference retrieval and answer generation."""

    def __init__(
        self,
        retriever: ReferenceRetriever,
        llm_client: OpenAIClient,
    ):
        self.retriever = retriever
        self.llm_client = llm_client

    async def stream(
        self, query: str, snippets: list[ContextSnippet] | None = None
    ) -> AsyncGenerator[str, None]:
        """Stream the answer text for a clinical query."""
        if snippets is None:
            snippets = await self.retriever.search(query)

        if not snippets:
            yield NO_CONTEXT_ANSWER
            return

        async for chunk in self.llm_client.generate_answer(query, snippets):
            yield chunk

    async def query(self, query: str) -> QueryResponse:
        """Run the full query and return the answer with its context, like the remote API."""
        snippets = await self.retriever.search(query)
        parts = [chunk async for chunk in self.stream(query, snippets)]
        logger.info("Generated answer from %d reference chunks", len(snippets))
        return QueryResponse(query=query, answer="".join(parts), retrieved_chunks=snippets)
