"""Tests for answer normalization."""

from __future__ import annotations

import pytest

from services.answers.exceptions import FormatError, ParseError
from services.answers.extractor import extract
from services.answers.models import ExtractionFailure, NumberedAnswers, SingleAnswer
from services.answers.normalizer import answer_text, coerce_number, normalize


def _pairs(answers) -> list[tuple[int, str]]:
    return [(a.number, a.answer) for a in answers]


class TestCoerceNumber:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (3, 3),
            (3.0, 3),
            ("3", 3),
            (" 3. ", 3),
            ("Q3", 3),
            ("question 3", 3),
            ("#3", 3),
            ("3)", 3),
            ("4.0", 4),
        ],
    )
    def test_recognized_forms(self, value: object, expected: int) -> None:
        assert coerce_number(value, position=9) == expected

    @pytest.mark.parametrize(
        "value",
        [
            None,
            True,
            0,
            -2,
            2.5,
            "abc",
            "",
            float("nan"),
            [1],
            {"n": 1},
            "1" * 5000,
            "Q" + "1" * 5000,
        ],
    )
    def test_falls_back_to_position(self, value: object) -> None:
        assert coerce_number(value, position=7) == 7


class TestAnswerText:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("  Paris ", "Paris"),
            (42, "42"),
            (6.0, "6"),
            (1.5, "1.5"),
            (True, "true"),
            (False, "false"),
            (["a", " b ", ""], "a, b"),
            ({"x": 1}, '{"x":1}'),
            (None, ""),
        ],
    )
    def test_rendering(self, value: object, expected: str) -> None:
        assert answer_text(value) == expected


class TestNumberedAnswers:
    def test_sorted_by_number_with_duplicates_kept(self) -> None:
        candidate = NumberedAnswers(
            items=(
                {"number": 3, "answer": "c"},
                {"number": 1, "answer": "a"},
                {"number": 3, "answer": "c2"},
                {"number": 2, "answer": "b"},
            ),
            strategy="direct_json",
        )
        answers = normalize(candidate)
        assert _pairs(answers) == [(1, "a"), (2, "b"), (3, "c"), (3, "c2")]

    def test_empty_answers_dropped(self) -> None:
        candidate = NumberedAnswers(
            items=(
                {"number": 1, "answer": "  "},
                {"number": 2, "answer": None},
                {"number": 3, "answer": "ok"},
            ),
            strategy="direct_json",
        )
        assert _pairs(normalize(candidate)) == [(3, "ok")]

    def test_missing_numbers_use_position(self) -> None:
        candidate = NumberedAnswers(
            items=({"answer": "x"}, "y", {"number": "Q5", "answer": 10.0}),
            strategy="direct_json",
        )
        assert _pairs(normalize(candidate)) == [(1, "x"), (2, "y"), (5, "10")]

    def test_all_empty_is_format_error(self) -> None:
        candidate = NumberedAnswers(items=({"answer": ""},), strategy="direct_json")
        with pytest.raises(FormatError):
            normalize(candidate)

    def test_empty_list_is_format_error(self) -> None:
        with pytest.raises(FormatError) as exc_info:
            normalize(NumberedAnswers(items=(), strategy="direct_json"))
        assert exc_info.value.message == "Invalid response format from AI"

    def test_options_ignored_in_direct_mode(self) -> None:
        candidate = NumberedAnswers(
            items=({"number": 1, "answer": "1.0", "options": ["A. 1.00"]},),
            strategy="direct_json",
        )
        (answer,) = normalize(candidate, mode="direct")
        assert answer.reconciliation is None

    def test_options_reconciled_in_multiple_choice_mode(self) -> None:
        candidate = NumberedAnswers(
            items=(
                {"number": 1, "answer": "1.0", "options": ["A. 1.00", "B. 2.00"]},
                {"number": 2, "answer": "blue", "options": []},
            ),
            strategy="direct_json",
        )
        first, second = normalize(candidate, mode="multiple_choice")
        assert first.reconciliation is not None
        assert first.reconciliation.consistency == "match"
        assert first.reconciliation.matched_option is not None
        assert first.reconciliation.matched_option.letter == "A"
        assert second.reconciliation is None


class TestSingleAndFailure:
    def test_single_answer(self) -> None:
        answers = normalize(SingleAnswer(value=" 42 ", strategy="raw_text"))
        assert _pairs(answers) == [(1, "42")]

    def test_failure_with_raw_text_passes_through(self) -> None:
        answers = normalize(ExtractionFailure(reason="x"), raw_reply="  keep me  ")
        assert _pairs(answers) == [(1, "keep me")]

    @pytest.mark.parametrize("raw", [None, "", "   ", 12])
    def test_failure_without_text_is_parse_error(self, raw: object) -> None:
        with pytest.raises(ParseError) as exc_info:
            normalize(ExtractionFailure(reason="x"), raw_reply=raw)
        assert exc_info.value.error_code == "parse_error"


def test_pipeline_preserves_cardinality_for_well_formed_reply() -> None:
    reply = (
        '{"answers": [{"number": 2, "answer": "b"}, {"number": 1, "answer": "a"},'
        ' {"number": 2, "answer": "b again"}]}'
    )
    answers = normalize(extract(reply), reply)
    assert _pairs(answers) == [(1, "a"), (2, "b"), (2, "b again")]


def test_numbered_lines_pipeline() -> None:
    reply = "1. Paris\n2. 42"
    assert _pairs(normalize(extract(reply), reply)) == [(1, "Paris"), (2, "42")]
