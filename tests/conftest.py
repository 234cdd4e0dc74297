"""Shared fixtures for all test modules."""

from unittest.mock import MagicMock

import pytest

from stroke_rag.models import ContextSnippet, QueryResponse

SCENARIO_A = (
    "1. Lateral medullary syndrome - brainstem, PICA territory\n"
    "2. Wallenberg variant - vertebral artery\n"
    "Notes: consider MRI confirmation"
)

SAMPLE_EMBEDDING = [0.1] * 384

SAMPLE_SNIPPET_DATA = {
    "document_id": "doc-001",
    "chunk_id": "doc-001-0000",
    "text": "Lateral medullary infarction follows PICA or vertebral artery occlusion.",
    "score": 0.91,
    "metadata": {"filename": "brainstem_syndromes.md"},
}


@pytest.fixture
def scenario_a():
    return SCENARIO_A


@pytest.fixture
def sample_snippets():
    return [
        ContextSnippet(**SAMPLE_SNIPPET_DATA),
        ContextSnippet(
            text="Weber syndrome: ipsilateral CN III palsy with contralateral hemiparesis.",
            score=0.78,
            metadata={"source": "midbrain.txt"},
        ),
    ]


@pytest.fixture
def sample_response(sample_snippets):
    return QueryResponse(
        query="vertigo, ipsilateral Horner, contralateral pain loss",
        answer=SCENARIO_A,
        retrieved_chunks=sample_snippets,
    )


@pytest.fixture
def mock_chroma_collection():
    """MagicMock ChromaDB collection with a pre-configured query result."""
    collection = MagicMock()
    collection.query = MagicMock(
        return_value={
            "ids": [["doc-001-0000", "doc-002-0003"]],
            "documents": [["PICA territory text", "Basilar tip text"]],
            "metadatas": [
                [
                    {
                        "document_id": "doc-001",
                        "chunk_id": "doc-001-0000",
                        "filename": "brainstem_syndromes.md",
                    },
                    {
                        "document_id": "doc-002",
                        "chunk_id": "doc-002-0003",
                        "filename": "basilar.txt",
                    },
                ]
            ],
            "distances": [[0.1, 0.25]],
        }
    )
    return collection
