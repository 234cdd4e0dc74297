"""Parses a free-form diagnostic answer into ranked candidate records.

The upstream answer is model-generated text, typically shaped like::

    1. Lateral medullary syndrome - brainstem, PICA territory
    2. Wallenberg variant - vertebral artery
    Notes: consider MRI confirmation

but numbering, bullets, headings, bold markup and line breaks all drift
between answers. Parsing is best-effort: text that cannot be placed in a
candidate ends up in ``notes`` rather than being dropped, and no input
raises.
"""

import re
from collections import deque
from dataclasses import dataclass, field

from stroke_rag.models import CandidateRecord, ParsedAnswer

NUMBERED = "numbered"
KEYED = "keyed"
HEADING = "heading"
BULLET = "bullet"

# Highest priority first; the first kind present in an answer is its
# candidate convention, lower kinds become descriptive lines.
MARKER_PRIORITY = (NUMBERED, KEYED, HEADING, BULLET)

DEFAULT_LABEL_KEYS = (
    "syndrome",
    "diagnosis",
    "hypothesis",
    "candidate",
    "condition",
    "síndrome",
    "sindrome",
    "diagnóstico",
    "diagnostico",
    "hipótese",
    "hipotese",
)

DEFAULT_NOTES_HEADINGS = (
    "clinical observations",
    "additional notes",
    "additional comments",
    "observations",
    "observation",
    "observações",
    "observacoes",
    "comments",
    "remarks",
    "notes",
    "note",
    "notas",
)

DEFAULT_FIELD_ALIASES = (
    ("localization", "location"),
    ("localisation", "location"),
    ("topography", "location"),
    ("lesion_location", "location"),
    ("anatomical_location", "location"),
    ("artery", "territory"),
    ("arterial_territory", "territory"),
    ("vascular_territory", "territory"),
    ("confidence", "score"),
    ("probability", "score"),
    ("likelihood", "score"),
    ("relevance", "score"),
    ("justification", "rationale"),
    ("reasoning", "rationale"),
    ("explanation", "rationale"),
    ("key_findings", "findings"),
    ("clinical_findings", "findings"),
)

_DECOR = r"[*_]{0,3}"
_LABEL_SEPARATOR = re.compile(r"(?:^|\s+)[-–—]{1,2}\s+|:\s+|:$")
_LEADING_SEPARATOR = re.compile(r"^\s*(?:[-–—]{1,2}|:)\s*")
_BOLD_LABEL = re.compile(r"^(?:\*\*(?P<star>.+?)\*\*|__(?P<under>.+?)__)")
_INLINE_SCORE = re.compile(
    r"[(\[]\s*(?:(?:score|confidence|probability|likelihood|relevance)(?:\s*[:=])?\s*)?"
    r"(?P<value>\d+(?:[.,]\d+)?)(?:\s*(?P<pct>%))?\s*[)\]]",
    re.IGNORECASE,
)
_NUMBER_VALUE = re.compile(r"^(?P<value>\d+(?:[.,]\d+)?)\s*(?P<pct>%)?$")
_KEY_VALUE = re.compile(
    r"^[*_]{0,2}(?P<key>[^\W\d_][^:]{0,40}?)[*_]{0,2}\s*:[*_]{0,2}\s+(?P<value>\S.*)$"
)
_INLINE_FIELD_SPLIT = re.compile(r"\s*;\s*|\s+\|\s+")
_LINE_MARKER = re.compile(r"^(?:[-*•+‣◦▪]|\d{1,2}[.)]|\(\d{1,2}\)|[a-z][.)])\s+")
_LABEL_STRIP = "*_`\"' \t"
_LABEL_TRAILING = ".:;,-–— \t*_`"
_BLANK_RUNS = re.compile(r"\n{3,}")
_CLAUSE_END = ".:;!?"


def _alternation(words: tuple[str, ...]) -> str:
    # Longest first so "clinical observations" wins over "observations".
    ordered = sorted({w.strip() for w in words if w.strip()}, key=lambda w: (-len(w), w))
    return "|".join(re.escape(w).replace(r"\ ", r"\s+") for w in ordered) or r"(?!x)x"


@dataclass(frozen=True)
class SegmentRules:
    """Delimiter table used to split an answer into segments.

    Word lists are matched case-insensitively. Extend them (or the field
    aliases) to follow changes in the upstream answer format.
    """

    label_keys: tuple[str, ...] = DEFAULT_LABEL_KEYS
    notes_headings: tuple[str, ...] = DEFAULT_NOTES_HEADINGS
    field_aliases: tuple[tuple[str, str], ...] = DEFAULT_FIELD_ALIASES
    numeric_fields: tuple[str, ...] = ("score",)
    max_key_words: int = 4

    numbered: re.Pattern = field(init=False, repr=False, compare=False)
    keyed: re.Pattern = field(init=False, repr=False, compare=False)
    heading: re.Pattern = field(init=False, repr=False, compare=False)
    bullet: re.Pattern = field(init=False, repr=False, compare=False)
    notes: re.Pattern = field(init=False, repr=False, compare=False)
    inline_notes: re.Pattern = field(init=False, repr=False, compare=False)
    inline_number: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        keys = _alternation(self.label_keys)
        headings = _alternation(self.notes_headings)
        patterns = {
            "numbered": re.compile(
                rf"^\s*(?:#{{1,6}}\s*)?{_DECOR}"
                rf"(?:\((?P<paren>\d{{1,2}})\)|(?P<num>\d{{1,2}})[.)]"
                rf"|(?:{keys})\s*#?(?P<knum>\d{{1,2}})\s*[:.)\-–—])"
                rf"{_DECOR}(?:\s+(?P<body>.*))?$",
                re.IGNORECASE,
            ),
            "keyed": re.compile(
                rf"^\s*{_DECOR}(?P<key>{keys}){_DECOR}(?:\s*:|\s+[-–—])"
                rf"{_DECOR}\s*(?P<body>.*)$",
                re.IGNORECASE,
            ),
            "heading": re.compile(r"^\s*#{1,6}\s+(?P<body>.*)$"),
            "bullet": re.compile(r"^(?P<indent>\s*)[-*•+‣◦▪]\s+(?P<body>.*)$"),
            "notes": re.compile(
                rf"^\s*(?:#{{1,6}}\s*)?(?:[*_]{{1,3}}\s*)?(?P<name>{headings})"
                rf"(?:\s*[*_]{{1,3}})?(?:\s*:{_DECOR}(?P<rest>.*))?\s*$",
                re.IGNORECASE,
            ),
            "inline_notes": re.compile(
                rf"(?<=\S)[ \t]+(?=(?:#{{1,6}}\s*)?{_DECOR}(?P<name>{headings}){_DECOR}\s*:)",
                re.IGNORECASE,
            ),
            "inline_number": re.compile(
                r"(?<=\S)[ \t]+(?=(?:\((?P<paren>\d{1,2})\)|(?P<num>\d{1,2})[.)])"
                r"[ \t]+(?P<lead>\S))"
            ),
        }
        for name, pattern in patterns.items():
            object.__setattr__(self, name, pattern)

    def canonical_key(self, key: str) -> str:
        slug = re.sub(r"[\W]+", "_", key.lower()).strip("_")
        return dict(self.field_aliases).get(slug, slug)


DEFAULT_RULES = SegmentRules()


@dataclass
class _Segment:
    kind: str  # "preamble" | "candidate" | "notes"
    head: str = ""
    marker_line: str = ""
    lines: list[str] = field(default_factory=list)


def parse_answer(raw: str, rules: SegmentRules = DEFAULT_RULES) -> ParsedAnswer:
    """Parse an answer string into ranked candidates and optional notes.

    Never raises for string input. An answer with no recognizable
    structure comes back as notes only.
    """
    text = raw.replace("\r\n", "\n").replace("\r", "\n").expandtabs(4)
    lines = text.split("\n")
    kind, bullet_indent = _detect_candidate_kind(lines, rules)
    segments = _split_segments(lines, rules, kind, bullet_indent)

    if len(segments) == 1:
        return ParsedAnswer(notes=raw.strip() or None)

    candidates: list[CandidateRecord] = []
    notes_parts: list[str] = []
    for segment in segments:
        if segment.kind == "candidate":
            record = _build_candidate(segment, len(candidates) + 1, rules)
            if record is not None:
                candidates.append(record)
                continue
            block = _clean_block([segment.marker_line] + segment.lines)
        else:
            block = _clean_block([segment.head] + segment.lines)
        if block:
            notes_parts.append(block)

    return ParsedAnswer(candidates=tuple(candidates), notes="\n".join(notes_parts) or None)


def _detect_candidate_kind(lines: list[str], rules: SegmentRules) -> tuple[str | None, int]:
    found = set()
    bullet_indents = []
    in_notes = False
    marker_indent = None
    for line in lines:
        if rules.notes.match(line):
            if marker_indent is None or _indent(line) <= marker_indent:
                in_notes = True
            continue
        if rules.numbered.match(line):
            if not in_notes:
                found.add(NUMBERED)
        elif rules.keyed.match(line):
            found.add(KEYED)
            in_notes = False
        elif rules.heading.match(line):
            found.add(HEADING)
            in_notes = False
        elif not in_notes:
            bullet = rules.bullet.match(line)
            if not bullet:
                continue
            found.add(BULLET)
            bullet_indents.append(len(bullet.group("indent")))
        else:
            continue
        indent = _indent(line)
        marker_indent = indent if marker_indent is None else min(marker_indent, indent)

    if not found and _has_inline_sequence(lines, rules):
        found.add(NUMBERED)

    for kind in MARKER_PRIORITY:
        if kind in found:
            return kind, min(bullet_indents, default=0)
    return None, 0


def _has_inline_sequence(lines: list[str], rules: SegmentRules) -> bool:
    """True when "1." and "2." markers both appear mid-line, in order."""
    expected = 1
    for line in lines:
        for match in rules.inline_number.finditer(line):
            if _marker_number(match) == expected and _starts_clause(line, match, expected > 1):
                expected += 1
                if expected > 2:
                    return True
    return False


def _marker_number(match: re.Match) -> int | None:
    for group in ("paren", "num", "knum"):
        value = match.groupdict().get(group)
        if value:
            return int(value)
    return None


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


def _split_segments(
    lines: list[str], rules: SegmentRules, kind: str | None, bullet_indent: int
) -> list[_Segment]:
    segments = [_Segment("preamble")]
    pending = deque(lines)
    started = 0

    while pending:
        line = pending.popleft()
        current = segments[-1]
        in_notes = current.kind == "notes"

        body = _candidate_body(line, rules, kind, bullet_indent, in_notes, started + 1)
        next_number = started + (2 if body is not None else 1)
        split_at = _inline_split(line, rules, kind, next_number, body is not None)
        if split_at is not None:
            pending.appendleft(line[split_at:].strip())
            line = line[:split_at].rstrip()
            body = _candidate_body(line, rules, kind, bullet_indent, in_notes, started + 1)

        notes = rules.notes.match(line)
        # A notes heading indented under a candidate belongs to that candidate.
        if notes and not (
            current.kind == "candidate" and _indent(line) > _indent(current.marker_line)
        ):
            segments.append(_Segment("notes", head=notes.group("rest") or "", marker_line=line))
        elif body is not None:
            segments.append(_Segment("candidate", head=body, marker_line=line))
            started += 1
        else:
            current.lines.append(line)

    return segments


def _candidate_body(
    line: str,
    rules: SegmentRules,
    kind: str | None,
    bullet_indent: int,
    in_notes: bool,
    expected: int,
) -> str | None:
    if kind is None or rules.notes.match(line):
        return None

    if kind == NUMBERED:
        match = rules.numbered.match(line)
        if match and (not in_notes or _marker_number(match) == expected):
            return match.group("body") or ""
    elif kind == KEYED:
        match = rules.keyed.match(line)
        if match:
            return match.group("body")
    elif kind == HEADING:
        match = rules.heading.match(line)
        if match:
            return match.group("body").strip().rstrip("#").strip()
    elif kind == BULLET and not in_notes:
        match = rules.bullet.match(line)
        if match and len(match.group("indent")) == bullet_indent:
            return match.group("body")
    return None


def _inline_split(
    line: str, rules: SegmentRules, kind: str | None, next_number: int, title_line: bool
) -> int | None:
    """Offset of the first marker that starts mid-line, if any."""
    end = len(line)
    if kind == NUMBERED:
        for match in rules.inline_number.finditer(line):
            if _marker_number(match) == next_number and _starts_clause(line, match, title_line):
                end = match.start()
                break
    for match in rules.inline_notes.finditer(line, 0, end):
        if match.group("name")[:1].isupper():
            return match.start()
    return end if end < len(line) else None


def _starts_clause(line: str, match: re.Match, title_line: bool) -> bool:
    """Mid-line numbers count after a sentence end, or between candidates on a title line."""
    previous = line[match.start() - 1]
    if previous in _CLAUSE_END:
        return True
    return title_line and previous != "," and not match.group("lead").islower()


def _build_candidate(segment: _Segment, rank: int, rules: SegmentRules) -> CandidateRecord | None:
    fields: dict[str, str | float] = {}
    details: list[str] = []
    rest_lines = [_collapse(_LINE_MARKER.sub("", line.strip())) for line in segment.lines]
    rest_lines = [line for line in rest_lines if line]

    label, remainder, score = _title(segment.head, rules)
    # Title may sit on the line after a bare marker ("1." / "## ").
    while rest_lines and not label:
        label, remainder, score = _title(rest_lines.pop(0), rules)
    if not label:
        return None
    if score is not None:
        fields["score"] = score

    description = _parse_inline_fields(remainder, fields, details, rules)
    for line in rest_lines:
        _add_line(line, fields, details, rules)

    return CandidateRecord(
        label=label,
        rank=rank,
        description=description,
        fields=fields,
        details=tuple(details),
    )


def _title(text: str, rules: SegmentRules) -> tuple[str, str, float | None]:
    """Label, the rest of the title line, and any bracketed score."""
    text, score = _extract_inline_score(_collapse(text))
    label, remainder = _split_label(text, rules)
    return label, remainder, score


def _split_label(text: str, rules: SegmentRules) -> tuple[str, str]:
    text = _collapse(text)
    bold = _BOLD_LABEL.match(text)
    if bold:
        label = bold.group("star") or bold.group("under")
        rest = _LEADING_SEPARATOR.sub("", text[bold.end():], count=1)
    else:
        separator = _LABEL_SEPARATOR.search(text)
        if separator:
            label, rest = text[: separator.start()], text[separator.end():]
        else:
            label, rest = text, ""

    label = _clean_label(label)
    rest = rest.strip()
    if rest and label.lower() in {key.lower() for key in rules.label_keys}:
        return _split_label(rest, rules)
    return label, rest


def _clean_label(label: str) -> str:
    label = _collapse(label).strip(_LABEL_STRIP)
    return label.rstrip(_LABEL_TRAILING).strip(_LABEL_STRIP)


def _extract_inline_score(text: str) -> tuple[str, float | None]:
    match = _INLINE_SCORE.search(text)
    if not match:
        return text, None
    stripped = _collapse(text[: match.start()] + " " + text[match.end():])
    return stripped, _to_number(match.group("value") + (match.group("pct") or ""))


def _parse_inline_fields(
    remainder: str, fields: dict[str, str | float], details: list[str], rules: SegmentRules
) -> str | None:
    """Pull ``key: value`` parts out of the label line, return the prose rest."""
    if not remainder:
        return None
    prose = []
    for part in _INLINE_FIELD_SPLIT.split(remainder):
        part = part.strip()
        if not part:
            continue
        if not _add_field(part, fields, details, rules):
            prose.append(part)
    return "; ".join(prose) or None


def _add_line(
    line: str, fields: dict[str, str | float], details: list[str], rules: SegmentRules
) -> None:
    if not _add_field(line, fields, details, rules):
        details.append(line.strip(_LABEL_STRIP) or line)


def _add_field(
    text: str,
    fields: dict[str, str | float],
    details: list[str],
    rules: SegmentRules,
) -> bool:
    match = _KEY_VALUE.match(text)
    if not match or len(match.group("key").split()) > rules.max_key_words:
        return False

    key = rules.canonical_key(match.group("key").strip(_LABEL_STRIP))
    value = match.group("value").strip(_LABEL_STRIP) or match.group("value")
    if not key:
        return False
    if key in fields:
        # Keep the duplicate verbatim rather than overwrite.
        details.append(text)
        return True

    if key in rules.numeric_fields:
        fields[key] = _to_number(value)
    else:
        fields[key] = value
    return True


def _to_number(value: str) -> str | float:
    match = _NUMBER_VALUE.match(value.strip())
    if not match:
        return value
    number = float(match.group("value").replace(",", "."))
    if match.group("pct"):
        number = number / 100
    return number


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _clean_block(lines: list[str]) -> str:
    """Normalize whitespace per line, keep paragraph breaks."""
    block = "\n".join(_collapse(line) for line in lines).strip("\n")
    return _BLANK_RUNS.sub("\n\n", block).strip()
