"""Tests for stroke_rag.answer_parser: pure function, no mocking."""

import time

import pytest

from stroke_rag.answer_parser import DEFAULT_RULES, SegmentRules, parse_answer
from stroke_rag.models import ParsedAnswer


class TestExampleAnswers:
    def test_numbered_list_with_notes(self, scenario_a):
        parsed = parse_answer(scenario_a)

        assert [c.label for c in parsed.candidates] == [
            "Lateral medullary syndrome",
            "Wallenberg variant",
        ]
        assert [c.rank for c in parsed.candidates] == [1, 2]
        assert parsed.candidates[0].description == "brainstem, PICA territory"
        assert parsed.candidates[1].description == "vertebral artery"
        assert parsed.notes == "consider MRI confirmation"

    def test_plain_sentence_becomes_notes(self):
        text = "No clear syndrome pattern identified from the provided data."
        parsed = parse_answer(text)
        assert parsed.candidates == ()
        assert parsed.notes == text

    def test_repeated_notes_headings_are_concatenated_in_order(self):
        parsed = parse_answer("Observations: A\nObservations: B")
        assert parsed.candidates == ()
        assert parsed.notes == "A\nB"


class TestEmptyInput:
    @pytest.mark.parametrize("text", ["", "   ", "\n\n", " \t\r\n "])
    def test_blank_input_yields_nothing(self, text):
        parsed = parse_answer(text)
        assert parsed.candidates == ()
        assert parsed.notes is None

    def test_unstructured_text_is_trimmed_not_rewritten(self):
        text = "  Findings are  inconclusive.\n\nRepeat the exam.  "
        assert parse_answer(text).notes == text.strip()

    def test_empty_notes_heading_is_absent(self):
        parsed = parse_answer("1. Weber syndrome\nNotes:")
        assert len(parsed.candidates) == 1
        assert parsed.notes is None


class TestInvariants:
    CASES = [
        "1. A - x\n2. B - y\n3. C - z",
        "- Weber syndrome\n- Benedikt syndrome\n- Claude syndrome",
        "## Top of the basilar\n## PCA occlusion",
        "1.\n2.\n3. Lacunar syndrome",
        "1) 2) 3)",
        "Syndrome:\nSyndrome: Weber",
        "**\n#\n## \n- \n(1)\n::::",
        "1. (0.5)\n2. [80%] Weber syndrome",
        "1. " * 200,
        "\x00\x01 1.   Weber syndrome",
    ]

    @pytest.mark.parametrize("text", CASES)
    def test_total_and_well_formed(self, text):
        parsed = parse_answer(text)
        assert isinstance(parsed, ParsedAnswer)
        for i, candidate in enumerate(parsed.candidates):
            assert candidate.rank == i + 1
            assert candidate.label.strip()
        assert parsed.notes is None or parsed.notes.strip()

    @pytest.mark.parametrize("text", CASES)
    def test_deterministic(self, text):
        assert parse_answer(text) == parse_answer(text)

    def test_result_is_immutable(self, scenario_a):
        parsed = parse_answer(scenario_a)
        with pytest.raises(Exception):
            parsed.notes = "changed"
        with pytest.raises(Exception):
            parsed.candidates[0].label = "changed"

    def test_candidate_containers_are_read_only(self):
        parsed = parse_answer(
            "1. Weber syndrome - midbrain\n   Location: ventral midbrain\n   CN III palsy\n2. Claude"
        )
        with pytest.raises(AttributeError):
            parsed.candidates.append(parsed.candidates[0])
        with pytest.raises(TypeError):
            parsed.candidates[0].fields["location"] = "changed"
        with pytest.raises(AttributeError):
            parsed.candidates[0].details.append("changed")
        assert [c.rank for c in parsed.candidates] == [1, 2]
        assert parsed.candidates[0].fields == {"location": "ventral midbrain"}


class TestLongInput:
    N = 100_000

    @pytest.mark.parametrize(
        "text",
        [
            " " * N + "x",
            "Notes" + " " * N + "x",
            "**" + " " * N + "Notes" + " " * N + ": x",
            "1. Weber syndrome" + " " * N + "(score" + " " * N + "x)",
            "Syndrome" + " " * N + "x",
        ],
    )
    def test_whitespace_runs_parse_in_linear_time(self, text):
        start = time.perf_counter()
        parsed = parse_answer(text)
        assert time.perf_counter() - start < 2.0
        assert parsed.notes or parsed.candidates

    def test_padded_line_keeps_its_text(self):
        assert parse_answer(" " * self.N + "x").notes == "x"


class TestSegmentSplitting:
    def test_crlf_and_cr_line_endings(self, scenario_a):
        expected = parse_answer(scenario_a)
        assert parse_answer(scenario_a.replace("\n", "\r\n")) == expected
        assert parse_answer(scenario_a.replace("\n", "\r")) == expected

    def test_markers_mid_line(self):
        parsed = parse_answer(
            "1. Lateral medullary syndrome - brainstem 2. Wallenberg variant - "
            "vertebral artery Notes: consider MRI"
        )
        assert [c.label for c in parsed.candidates] == [
            "Lateral medullary syndrome",
            "Wallenberg variant",
        ]
        assert parsed.candidates[0].description == "brainstem"
        assert parsed.candidates[1].description == "vertebral artery"
        assert parsed.notes == "consider MRI"

    def test_inline_list_after_preamble(self):
        parsed = parse_answer(
            "Candidates: 1. Weber syndrome - midbrain 2. Benedikt syndrome - tegmentum"
        )
        assert [c.label for c in parsed.candidates] == ["Weber syndrome", "Benedikt syndrome"]
        assert parsed.notes == "Candidates:"

    def test_lowercase_notes_word_mid_line_does_not_split(self):
        parsed = parse_answer("1. Weber syndrome - the patient notes: diplopia")
        assert len(parsed.candidates) == 1
        assert parsed.notes is None

    def test_number_inside_prose_does_not_start_candidate(self):
        parsed = parse_answer("1. Weber syndrome\n\nIn summary, 2. is less likely.")
        assert [c.label for c in parsed.candidates] == ["Weber syndrome"]
        assert parsed.candidates[0].details == ("In summary, 2. is less likely.",)

    def test_lowercase_text_after_number_on_title_line_does_not_split(self):
        parsed = parse_answer("1. Weber syndrome - seen in 2. patients")
        assert len(parsed.candidates) == 1
        assert parsed.candidates[0].description == "seen in 2. patients"

    def test_number_after_sentence_end_splits(self):
        parsed = parse_answer("Two options. 1. Weber syndrome - midbrain. 2. Claude syndrome")
        assert [c.label for c in parsed.candidates] == ["Weber syndrome", "Claude syndrome"]
        assert parsed.notes == "Two options."

    def test_indented_note_stays_with_candidate(self):
        parsed = parse_answer("1. Weber\n   Note: rare\n2. Claude")
        assert [c.label for c in parsed.candidates] == ["Weber", "Claude"]
        assert parsed.candidates[0].fields == {"note": "rare"}
        assert parsed.notes is None

    def test_numbered_list_inside_notes_stays_in_notes(self):
        parsed = parse_answer(
            "1. Weber syndrome - midbrain\n"
            "2. Benedikt syndrome - tegmentum\n"
            "Notes:\n"
            "1. Obtain MRI\n"
            "2. Check ECG"
        )
        assert len(parsed.candidates) == 2
        assert parsed.notes == "1. Obtain MRI\n2. Check ECG"

    def test_numbering_that_continues_after_notes_resumes_candidates(self):
        parsed = parse_answer("1. Weber syndrome\nNotes: check gaze\n2. Claude syndrome")
        assert [c.label for c in parsed.candidates] == ["Weber syndrome", "Claude syndrome"]
        assert parsed.notes == "check gaze"

    def test_bullet_list(self):
        parsed = parse_answer(
            "- Lateral medullary syndrome: dorsolateral medulla\n"
            "- Medial medullary syndrome: paramedian medulla"
        )
        assert [c.label for c in parsed.candidates] == [
            "Lateral medullary syndrome",
            "Medial medullary syndrome",
        ]
        assert parsed.candidates[1].description == "paramedian medulla"

    def test_nested_bullets_are_fields(self):
        parsed = parse_answer(
            "- Lateral medullary syndrome\n"
            "  - Location: medulla\n"
            "- Weber syndrome"
        )
        assert [c.label for c in parsed.candidates] == ["Lateral medullary syndrome", "Weber syndrome"]
        assert parsed.candidates[0].fields == {"location": "medulla"}

    def test_keyed_blocks(self):
        parsed = parse_answer(
            "Syndrome: Weber syndrome\n"
            "Location: ventral midbrain\n"
            "\n"
            "Syndrome: Benedikt syndrome\n"
            "Location: midbrain tegmentum"
        )
        assert [c.label for c in parsed.candidates] == ["Weber syndrome", "Benedikt syndrome"]
        assert parsed.candidates[1].fields["location"] == "midbrain tegmentum"

    def test_markdown_headings(self):
        parsed = parse_answer(
            "## Top of the basilar syndrome ##\n"
            "Bilateral thalamic infarcts\n"
            "## Notes\n"
            "Consider CTA"
        )
        assert len(parsed.candidates) == 1
        assert parsed.candidates[0].label == "Top of the basilar syndrome"
        assert parsed.candidates[0].details == ("Bilateral thalamic infarcts",)
        assert parsed.notes == "Consider CTA"

    def test_numbered_takes_priority_over_bullets(self):
        parsed = parse_answer(
            "1. Lateral medullary syndrome\n"
            "   - Location: dorsolateral medulla\n"
            "   - Artery: PICA\n"
            "2. Medial medullary syndrome"
        )
        assert len(parsed.candidates) == 2
        assert parsed.candidates[0].fields == {
            "location": "dorsolateral medulla",
            "territory": "PICA",
        }


class TestLabelExtraction:
    def test_bold_label(self):
        parsed = parse_answer("1. **Lateral medullary syndrome**: brainstem\n2. Weber")
        assert parsed.candidates[0].label == "Lateral medullary syndrome"
        assert parsed.candidates[0].description == "brainstem"

    def test_bold_wrapped_marker_line(self):
        parsed = parse_answer("**1. Lateral medullary syndrome** - brainstem")
        assert parsed.candidates[0].label == "Lateral medullary syndrome"
        assert parsed.candidates[0].description == "brainstem"

    def test_label_key_prefix_is_skipped(self):
        parsed = parse_answer("1. Syndrome: Weber syndrome - midbrain")
        assert parsed.candidates[0].label == "Weber syndrome"
        assert parsed.candidates[0].description == "midbrain"

    def test_numbered_label_key(self):
        parsed = parse_answer("Syndrome 1: Weber syndrome\nSyndrome 2: Claude syndrome")
        assert [c.label for c in parsed.candidates] == ["Weber syndrome", "Claude syndrome"]

    def test_label_on_line_after_bare_marker(self):
        parsed = parse_answer("1.\nWeber syndrome - ventral midbrain")
        assert parsed.candidates[0].label == "Weber syndrome"
        assert parsed.candidates[0].description == "ventral midbrain"

    def test_trailing_punctuation_removed_from_label(self):
        parsed = parse_answer("1. Wallenberg syndrome.\n2. Weber syndrome:")
        assert [c.label for c in parsed.candidates] == ["Wallenberg syndrome", "Weber syndrome"]

    def test_hyphenated_names_are_not_split(self):
        parsed = parse_answer("1. Dejerine-Roussy syndrome - thalamus")
        assert parsed.candidates[0].label == "Dejerine-Roussy syndrome"

    def test_label_less_segment_merges_into_notes(self):
        parsed = parse_answer("1. Weber syndrome\n2.\nNotes: follow up")
        assert [c.label for c in parsed.candidates] == ["Weber syndrome"]
        assert parsed.notes == "2.\nfollow up"

    def test_preamble_is_kept_in_notes(self):
        parsed = parse_answer(
            "Based on the findings:\n1. Weber syndrome - midbrain\nNotes: urgent MRI"
        )
        assert parsed.notes == "Based on the findings:\nurgent MRI"


class TestDescriptiveFields:
    def test_key_value_lines_with_aliases(self):
        parsed = parse_answer(
            "1. Lateral medullary syndrome\n"
            "   - Localization: dorsolateral medulla\n"
            "   - Vascular territory: PICA\n"
            "   - Reasoning: crossed sensory loss\n"
            "   - Confidence: 85%\n"
        )
        assert parsed.candidates[0].fields == {
            "location": "dorsolateral medulla",
            "territory": "PICA",
            "rationale": "crossed sensory loss",
            "score": 0.85,
        }

    def test_unparseable_lines_are_salvaged(self):
        parsed = parse_answer(
            "1. Lateral medullary syndrome\n"
            "   Classic   crossed sensory loss\n"
            "   Location:\n"
        )
        assert parsed.candidates[0].details == ("Classic crossed sensory loss", "Location:")

    def test_duplicate_keys_go_to_details(self):
        parsed = parse_answer(
            "1. Weber syndrome\n   Location: midbrain\n   Location: cerebral peduncle"
        )
        assert parsed.candidates[0].fields == {"location": "midbrain"}
        assert parsed.candidates[0].details == ("Location: cerebral peduncle",)

    def test_non_numeric_score_kept_as_text(self):
        parsed = parse_answer("1. Weber syndrome\n   Confidence: high")
        assert parsed.candidates[0].fields["score"] == "high"

    def test_inline_fields_on_title_line(self):
        parsed = parse_answer("1. Weber syndrome - Location: ventral midbrain; Artery: PCA")
        candidate = parsed.candidates[0]
        assert candidate.description is None
        assert candidate.fields == {"location": "ventral midbrain", "territory": "PCA"}

    @pytest.mark.parametrize(
        "title,score",
        [
            ("Medial medullary syndrome (score: 0.4)", 0.4),
            ("Medial medullary syndrome [80%]", 0.8),
            ("Medial medullary syndrome (0,75)", 0.75),
        ],
    )
    def test_inline_score_moves_to_fields(self, title, score):
        candidate = parse_answer(f"1. {title} - medulla").candidates[0]
        assert candidate.label == "Medial medullary syndrome"
        assert candidate.description == "medulla"
        assert candidate.fields["score"] == pytest.approx(score)


class TestCustomRules:
    def test_extra_notes_heading(self):
        rules = SegmentRules(notes_headings=("notes", "recommendation"))
        parsed = parse_answer("1. Weber syndrome\nRecommendation: MRI", rules)
        assert parsed.notes == "MRI"

    def test_extra_field_alias(self):
        rules = SegmentRules(field_aliases=(("vessel", "territory"),))
        parsed = parse_answer("1. Weber syndrome\n   Vessel: PCA", rules)
        assert parsed.candidates[0].fields == {"territory": "PCA"}

    def test_rules_are_comparable(self):
        assert SegmentRules() == SegmentRules()

    def test_default_rules_compile_on_import(self):
        assert DEFAULT_RULES.notes.match("## Notes:").group("name") == "Notes"
        assert DEFAULT_RULES.numbered.match("2) Claude syndrome").group("num") == "2"
