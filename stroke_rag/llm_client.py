"""OpenAI LLM client for syndrome hypothesis generation."""

import logging
import os
from collections.abc import AsyncGenerator

from openai import AsyncOpenAI

from stroke_rag.models import ContextSnippet

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a vascular neurology assistant. You suggest stroke syndromes and "
    "neuroanatomical locations from clinical findings, using only the provided references."
)


class OpenAIClient:
    """Async OpenAI client that turns clinical text plus references into a ranked answer."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_candidates: int = 3,
    ):
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY environment variable is required")

        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.max_candidates = max_candidates

    def _build_prompt(self, query: str, snippets: list[ContextSnippet]) -> str:
        """Build the prompt; the answer format must stay parseable by answer_parser."""
        context_parts = []
        for i, snippet in enumerate(snippets, 1):
            source = (snippet.metadata or {}).get("filename", "reference")
            context_parts.append(f"[REFERENCE {i}] ({source})\n{snippet.text}")

        context = "\n\n".join(context_parts)

        prompt = f"""## References
{context}

## Clinical data
{query}

## Instructions
List up to {self.max_candidates} candidate vascular syndromes, most likely first.
Write one numbered line per syndrome, in this exact shape:

1. <Syndrome name> - <lesion location>, <arterial territory>

Under a syndrome you may add indented lines such as
   - Rationale: <key findings supporting it>
   - Confidence: <number between 0 and 1>

Finish with a single line starting with "Notes:" holding any recommendation
(e.g. imaging to confirm). If the references do not support any syndrome,
write only the Notes line and say so.

Answer:"""

        return prompt

    async def generate_answer(
        self, query: str, snippets: list[ContextSnippet]
    ) -> AsyncGenerator[str, None]:
        prompt = self._build_prompt(query, snippets)
        logger.debug("Requesting completion from %s", self.model)

        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            stream=True,
        )

        async for chunk in stream:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content
