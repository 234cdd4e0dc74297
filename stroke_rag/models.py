"""Pydantic models for parsed answers and query responses."""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class CandidateRecord(BaseModel):
    """One diagnostic hypothesis extracted from an answer."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(min_length=1)
    rank: int = Field(ge=1)
    description: str | None = None
    fields: Mapping[str, str | float] = Field(default_factory=dict, validate_default=True)
    details: tuple[str, ...] = ()

    @field_validator("fields")
    @classmethod
    def _read_only_fields(cls, value: Mapping[str, str | float]) -> Mapping[str, str | float]:
        return MappingProxyType(dict(value))

    @field_serializer("fields")
    def _dump_fields(self, value: Mapping[str, str | float]) -> dict[str, str | float]:
        return dict(value)


class ParsedAnswer(BaseModel):
    """Ranked candidates plus optional trailing notes."""

    model_config = ConfigDict(frozen=True)

    candidates: tuple[CandidateRecord, ...] = ()
    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def _empty_notes_are_absent(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value


class ContextSnippet(BaseModel):
    """Retrieved reference fragment, passed through to rendering unchanged."""

    text: str
    score: float
    document_id: str | None = None
    chunk_id: str | None = None
    metadata: dict[str, Any] | None = None


class ImageRef(BaseModel):
    """Diagram attached to a query response."""

    path: str
    name: str = ""


class QueryResponse(BaseModel):
    """Response from the inference service."""

    query: str
    answer: str
    retrieved_chunks: list[ContextSnippet] = Field(default_factory=list)
    image: ImageRef | None = None
