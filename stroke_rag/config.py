"""Service configuration, passed explicitly to the clients that need it."""

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_TOP_K = 5
DEFAULT_TIMEOUT_SECONDS = 30.0


class ConfigurationError(ValueError):
    """Raised when required service configuration is missing."""


class ServiceConfig(BaseModel):
    """Settings for the remote inference API and the local RAG backend."""

    api_base_url: str | None = None
    top_k: int = Field(default=DEFAULT_TOP_K, ge=1)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    index_path: Path = Path(".chroma_db")
    embedding_model: str = "BAAI/bge-small-en-v1.5"
    llm_model: str = "gpt-4o-mini"

    @field_validator("api_base_url")
    @classmethod
    def _normalize_base_url(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        # API binds IPv4 only.
        return value.strip().replace("localhost", "127.0.0.1")

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Build config from STROKE_RAG_* environment variables."""
        values = {
            "api_base_url": os.getenv("STROKE_RAG_API_BASE_URL")
            or os.getenv("NEXT_PUBLIC_API_BASE_URL"),
            "top_k": os.getenv("STROKE_RAG_TOP_K"),
            "timeout_seconds": os.getenv("STROKE_RAG_TIMEOUT"),
            "index_path": os.getenv("STROKE_RAG_INDEX_PATH"),
            "embedding_model": os.getenv("STROKE_RAG_EMBEDDING_MODEL"),
            "llm_model": os.getenv("STROKE_RAG_LLM_MODEL"),
        }
        return cls(**{key: value for key, value in values.items() if value is not None})

    def require_base_url(self) -> str:
        if not self.api_base_url:
            raise ConfigurationError(
                "API configuration not found. Please contact technical support."
            )
        return self.api_base_url

    @property
    def query_endpoint(self) -> str:
        return f"{self.require_base_url().rstrip('/')}/query"

    def image_url(self, path: str) -> str:
        """Static assets are served from the API host root, outside /api/v1."""
        root = self.require_base_url().replace("/api/v1", "").rstrip("/")
        return f"{root}/{path.lstrip('/')}"
