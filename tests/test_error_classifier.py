"""
Unit tests for failure classification and pattern analysis.
"""

import pytest

from scrapesynth_core.error_classifier import analyze_failure_pattern, classify_error, fix_for_pattern
from scrapesynth_core.models import AttemptError, CorrectiveFix, FailureType


def _errors(*pairs):
    return [AttemptError(i, msg, classify_error(msg)) for i, msg in enumerate(pairs, 1)]


class TestClassifyError:
    """Ordered rule matching"""

    @pytest.mark.parametrize("error,expected", [
        ("Unexpected token }", FailureType.SYNTAX_ERROR),
        ("SyntaxError: invalid selector 'div[['", FailureType.SYNTAX_ERROR),
        ("JSON parse error: Expecting value", FailureType.JSON_PARSE_ERROR),
        ("No JSON block found in model response", FailureType.JSON_PARSE_ERROR),
        ("Cannot find module 'cheerio'", FailureType.DEPENDENCY_ERROR),
        ("ETIMEDOUT", FailureType.TIMEOUT_ERROR),
        ("Execution timeout (30000ms)", FailureType.TIMEOUT_ERROR),
        ("Extracted 0 items", FailureType.NO_ITEMS),
        ("No container matched (8 alternatives tried)", FailureType.NO_ITEMS),
        ("connection reset", FailureType.UNKNOWN_ERROR),
    ])
    def test_examples(self, error, expected):
        """Each message maps to exactly one category"""
        assert classify_error(error) == expected

    def test_first_rule_wins(self):
        """A message matching several rules takes the earliest"""
        assert classify_error("SyntaxError while parsing JSON") == FailureType.SYNTAX_ERROR

    def test_empty_error_is_unknown(self):
        assert classify_error(None) == FailureType.UNKNOWN_ERROR
        assert classify_error("") == FailureType.UNKNOWN_ERROR

    def test_tester_no_items_message(self):
        """The tester's empty-result message lands in NO_ITEMS"""
        msg = "No items extracted: container matched 4 elements but no record passed the quality checks (itemCount: 0)"
        assert classify_error(msg) == FailureType.NO_ITEMS


class TestAnalyzeFailurePattern:
    """Summarising a worker run"""

    def test_no_errors(self):
        pattern = analyze_failure_pattern([])
        assert pattern.type == FailureType.NO_ERRORS
        assert pattern.consistent is False

    def test_all_same_type_is_consistent(self):
        pattern = analyze_failure_pattern(_errors(*["Extracted 0 items"] * 5))
        assert pattern.type == FailureType.NO_ITEMS
        assert pattern.consistent is True
        assert pattern.count == 5

    def test_dominant_type_is_consistent(self):
        """4 of 5 is a dominant share"""
        pattern = analyze_failure_pattern(_errors(
            "Unexpected token }", "Unexpected token }", "Unexpected token }", "Unexpected token }", "ETIMEDOUT",
        ))
        assert pattern.type == FailureType.SYNTAX_ERROR
        assert pattern.consistent is True

    def test_three_timeouts_two_unknown_is_mixed(self):
        pattern = analyze_failure_pattern(_errors(
            "ETIMEDOUT", "connection reset", "ETIMEDOUT", "connection reset", "ETIMEDOUT",
        ))
        assert pattern.type == FailureType.MIXED_ERRORS
        assert pattern.consistent is False

    def test_single_error_is_consistent(self):
        pattern = analyze_failure_pattern(_errors("JSON parse error: x"))
        assert pattern.type == FailureType.JSON_PARSE_ERROR
        assert pattern.consistent is True


class TestFixForPattern:
    """Pattern -> corrective fix"""

    @pytest.mark.parametrize("message,fix", [
        ("Unexpected token }", CorrectiveFix.QUOTE_FIELD_NAMES),
        ("JSON parse error: x", CorrectiveFix.CLEAN_LLM_JSON),
        ("Extracted 0 items", CorrectiveFix.ALTERNATIVE_SELECTORS),
    ])
    def test_mapping(self, message, fix):
        assert fix_for_pattern(analyze_failure_pattern(_errors(message, message))) == fix

    def test_already_applied_fix_is_not_repeated(self):
        pattern = analyze_failure_pattern(_errors("Extracted 0 items"))
        assert fix_for_pattern(pattern, [CorrectiveFix.ALTERNATIVE_SELECTORS]) is None

    def test_types_without_fix(self):
        for message in ("ETIMEDOUT", "connection reset", "Cannot find module 'x'"):
            assert fix_for_pattern(analyze_failure_pattern(_errors(message))) is None

    def test_mixed_has_no_fix(self):
        pattern = analyze_failure_pattern(_errors("Extracted 0 items", "ETIMEDOUT"))
        assert fix_for_pattern(pattern) is None
