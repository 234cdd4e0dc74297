"""Plain-text rendering of parsed answers and context snippets."""

from stroke_rag.models import CandidateRecord, ContextSnippet, ImageRef, ParsedAnswer
from stroke_rag.session import ActiveView, AnalysisSession, SessionState


def _format_value(value: str | float) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return value


def render_candidate(candidate: CandidateRecord) -> str:
    lines = [f"#{candidate.rank} {candidate.label}"]
    if candidate.description:
        lines.append(f"   {candidate.description}")
    for key, value in candidate.fields.items():
        lines.append(f"   {key.replace('_', ' ').capitalize()}: {_format_value(value)}")
    for detail in candidate.details:
        lines.append(f"   - {detail}")
    return "\n".join(lines)


def render_candidates(parsed: ParsedAnswer) -> str:
    if not parsed.candidates:
        return "Diagnostic Hypotheses\n\nNo diagnostic hypotheses were identified."
    cards = [render_candidate(c) for c in sorted(parsed.candidates, key=lambda c: c.rank)]
    return "Diagnostic Hypotheses\n\n" + "\n\n".join(cards)


def render_notes(parsed: ParsedAnswer) -> str:
    return "Clinical Observations\n\n" + (parsed.notes or "No observations.")


def snippet_key(snippet: ContextSnippet, position: int) -> str:
    return snippet.chunk_id or f"chunk-{position}"


def snippet_title(snippet: ContextSnippet) -> str:
    metadata = snippet.metadata or {}
    return metadata.get("filename") or metadata.get("source") or "Document"


def render_context(snippets: list[ContextSnippet]) -> str:
    if not snippets:
        return "Reference Context\n\nNo reference context was returned."
    blocks = [
        f"[{snippet_key(s, i)}] {snippet_title(s)} (Score: {s.score:.2f})\n{s.text}"
        for i, s in enumerate(snippets)
    ]
    return "Reference Context\n\n" + "\n\n".join(blocks)


def render_image(image: ImageRef, url: str) -> str:
    return f"Neuroanatomical Diagram: {image.name or 'Stroke diagram'} <{url}>"


def render_session(session: AnalysisSession, image_url: str | None = None) -> str:
    """Render whatever the session currently shows."""
    if session.state is SessionState.IDLE:
        return ""
    if session.state is SessionState.LOADING:
        return "Processing Analysis..."
    if session.state is SessionState.FAILED:
        return f"Error: {session.error}"

    if session.view is ActiveView.NOTES:
        return render_notes(session.parsed)
    if session.view is ActiveView.CONTEXT:
        return render_context(session.snippets)

    body = render_candidates(session.parsed)
    image = session.response.image if session.response else None
    if image and image_url:
        body = render_image(image, image_url) + "\n\n" + body
    return body
