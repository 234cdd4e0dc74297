"""Presentation state for one analysis: which query is in flight and what is shown."""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from stroke_rag.answer_parser import parse_answer
from stroke_rag.models import ContextSnippet, ParsedAnswer, QueryResponse

logger = logging.getLogger(__name__)

EMPTY_QUERY_MESSAGE = "Please enter the clinical data for analysis."
CONNECTION_FAILED_MESSAGE = "Failed to connect to the API."


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class ActiveView(str, Enum):
    CANDIDATES = "candidates"
    NOTES = "notes"
    CONTEXT = "context"


class SessionStateError(RuntimeError):
    """Raised on a transition the current state does not allow."""


class InferenceBackend(Protocol):
    async def query(self, text: str) -> QueryResponse: ...


class AnalysisSession:
    """State machine IDLE -> LOADING -> LOADED | FAILED.

    The answer is parsed exactly once, on the LOADED transition. A new
    submit from LOADED or FAILED discards the previous result.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        parser: Callable[[str], ParsedAnswer] = parse_answer,
    ):
        self.backend = backend
        self.parser = parser
        self.reset()

    def reset(self) -> None:
        self.state = SessionState.IDLE
        self.view = ActiveView.CANDIDATES
        self.response: QueryResponse | None = None
        self.parsed: ParsedAnswer | None = None
        self.error: str | None = None

    @property
    def snippets(self) -> list[ContextSnippet]:
        return self.response.retrieved_chunks if self.response else []

    async def submit(self, query: str) -> ParsedAnswer | None:
        """Run a query through the backend. Returns the parsed answer, or None on failure."""
        if self.state is SessionState.LOADING:
            raise SessionStateError("A query is already in progress")

        if not query.strip():
            self._fail(EMPTY_QUERY_MESSAGE)
            return None

        self.state = SessionState.LOADING
        self.response = None
        self.parsed = None
        self.error = None

        try:
            response = await self.backend.query(query)
        except Exception as e:
            logger.warning("Query failed: %s", e)
            self._fail(str(e) or CONNECTION_FAILED_MESSAGE)
            return None

        self.response = response
        self.parsed = self.parser(response.answer)
        self.state = SessionState.LOADED
        self.view = ActiveView.CANDIDATES
        logger.info(
            "Loaded %d candidates (notes: %s)",
            len(self.parsed.candidates),
            "yes" if self.parsed.notes else "no",
        )
        return self.parsed

    def select_view(self, view: ActiveView | str) -> ActiveView:
        if self.state is not SessionState.LOADED:
            raise SessionStateError(f"Cannot switch views while {self.state.value}")
        self.view = ActiveView(view)
        return self.view

    def _fail(self, message: str) -> None:
        self.state = SessionState.FAILED
        self.error = message
