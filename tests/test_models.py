import dataclasses

import pytest

from scrapesynth_core.models import (
    Attempt,
    Candidate,
    CorrectiveFix,
    FeedbackIssue,
    FieldFeedback,
    SupervisorState,
)


class TestCandidate:
    def test_from_dict_accepts_item_selector(self):
        candidate = Candidate.from_dict({"itemSelector": "tr", "fieldSelectors": {"date": "td"}})
        assert candidate.container_selector == "tr"
        assert candidate.field_selectors == {"date": "td"}
        assert candidate.source == "refinement"

    def test_is_immutable(self):
        candidate = Candidate("tr", {"date": "td"})
        with pytest.raises(dataclasses.FrozenInstanceError):
            candidate.container_selector = "li"
        assert candidate.with_container("li").container_selector == "li"
        assert candidate.container_selector == "tr"


class TestAttemptOrdering:
    """More items first, then fewer missing fields"""

    def _attempt(self, items, missing):
        return Attempt(1, Candidate("tr", {}), items=[{"a": "1"}] * items, missing_fields=list(missing))

    def test_more_items_wins(self):
        assert self._attempt(3, ["a", "b"]).is_better_than(self._attempt(2, []))

    def test_tie_fewer_missing_wins(self):
        assert self._attempt(3, ["a"]).is_better_than(self._attempt(3, ["a", "b"]))
        assert not self._attempt(3, ["a"]).is_better_than(self._attempt(3, ["b"]))

    def test_anything_beats_none(self):
        assert self._attempt(0, ["a"]).is_better_than(None)


class TestSupervisorState:
    def test_fixes_accumulate_without_mutation(self):
        state = SupervisorState()
        with_quote = state.with_fix(CorrectiveFix.QUOTE_FIELD_NAMES)
        both = with_quote.with_fix(CorrectiveFix.CLEAN_LLM_JSON)
        assert state.applied_fixes == ()
        assert with_quote.applied_fixes == (CorrectiveFix.QUOTE_FIELD_NAMES,)
        assert both.has_fix(CorrectiveFix.CLEAN_LLM_JSON)
        assert both.with_fix(CorrectiveFix.QUOTE_FIELD_NAMES) is both

    def test_next_iteration(self):
        assert SupervisorState().next_iteration().next_iteration().supervisor_iteration == 2

    def test_state_holds_only_fixes_and_iteration(self):
        assert [f.name for f in dataclasses.fields(SupervisorState)] == ["applied_fixes", "supervisor_iteration"]


class TestFieldFeedback:
    def test_wrong_alias(self):
        assert FeedbackIssue.parse("wrong") == FeedbackIssue.WRONG_SELECTOR
        assert FeedbackIssue.parse(None) == FeedbackIssue.MISSING

    def test_from_dict(self):
        fb = FieldFeedback.from_dict({"field": " time ", "issue": "partial", "expectedValues": "6:00 PM"})
        assert fb.field == "time"
        assert fb.issue == FeedbackIssue.PARTIAL
        assert fb.expected_values == ("6:00 PM",)
