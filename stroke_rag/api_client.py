"""HTTP client for the remote stroke RAG inference API."""

import logging
from typing import Any

import httpx

from stroke_rag.config import ServiceConfig
from stroke_rag.models import QueryResponse

logger = logging.getLogger(__name__)


class InferenceAPIError(Exception):
    """Raised when the inference API cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class InferenceClient:
    """Async client posting clinical text to the inference API.

    Use as an async context manager::

        async with InferenceClient(config) as client:
            response = await client.query("right hemiparesis, aphasia")
    """

    def __init__(self, config: ServiceConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self.endpoint = config.query_endpoint
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "InferenceClient":
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout_seconds),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def query(self, text: str) -> QueryResponse:
        """Send clinical text, return the answer and its supporting context."""
        if self._client is None:
            raise RuntimeError("InferenceClient must be used as an async context manager")

        logger.info("Sending query to %s", self.endpoint)
        try:
            response = await self._client.post(
                self.endpoint,
                json={"query": text, "top_k": self.config.top_k},
            )
        except httpx.HTTPError as e:
            raise InferenceAPIError("Failed to connect to the API.") from e

        if not response.is_success:
            body = response.text or "Unknown error"
            raise InferenceAPIError(
                f"API Error: {response.status_code} - {response.reason_phrase}. Details: {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            result = QueryResponse.model_validate(response.json())
        except ValueError as e:
            raise InferenceAPIError(
                f"Invalid response from API: {e}", status_code=response.status_code
            ) from e

        logger.info("Received answer with %d context chunks", len(result.retrieved_chunks))
        return result
