"""
Data model for scraper synthesis.

    Candidate       - container selector + one selector per required field
    Attempt         - outcome of testing one candidate
    WorkerResult    - aggregate of one validation-loop run
    FailurePattern  - summary of a worker run's errors
    SupervisorState - immutable state threaded through supervisor iterations
    FieldFeedback   - per-field correction for the refinement path
    SynthesisResult - what a whole session hands back to the caller

Serialisation helpers produce the camelCase shapes used on the wire.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class FailureType(str, Enum):
    """Failure categories, plus the two loop-level pattern values"""
    SYNTAX_ERROR = "SYNTAX_ERROR"
    JSON_PARSE_ERROR = "JSON_PARSE_ERROR"
    DEPENDENCY_ERROR = "DEPENDENCY_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    NO_ITEMS = "NO_ITEMS"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    NO_ERRORS = "NO_ERRORS"
    MIXED_ERRORS = "MIXED_ERRORS"


class CorrectiveFix(str, Enum):
    """Strategies the supervisor can switch on for later worker runs"""
    QUOTE_FIELD_NAMES = "quote-field-names"
    CLEAN_LLM_JSON = "clean-ollama-json"
    ALTERNATIVE_SELECTORS = "use-alternative-selectors"


class FeedbackIssue(str, Enum):
    MISSING = "missing"
    PARTIAL = "partial"
    WRONG_SELECTOR = "wrong-selector"
    FORMAT = "format"
    IMPROVEMENT = "improvement"
    QUALITY = "quality"

    @classmethod
    def parse(cls, value: Optional[str]) -> "FeedbackIssue":
        text = (value or "missing").strip().lower()
        if text == "wrong":
            return cls.WRONG_SELECTOR
        return cls(text)


@dataclass(frozen=True)
class Candidate:
    """A proposed extraction definition; never mutated once built"""
    container_selector: str
    field_selectors: Dict[str, str]
    source: str = "heuristic"  # heuristic, llm, fallback, refinement

    def container_alternatives(self) -> List[str]:
        from .extraction import split_selector_list
        return split_selector_list(self.container_selector)

    def with_container(self, container_selector: str) -> "Candidate":
        return replace(self, container_selector=container_selector)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "containerSelector": self.container_selector,
            "fields": dict(self.field_selectors),
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candidate":
        container = data.get("containerSelector") or data.get("itemSelector") or ""
        fields = data.get("fields") or data.get("fieldSelectors") or {}
        return cls(
            container_selector=str(container),
            field_selectors={str(k): str(v) for k, v in dict(fields).items()},
            source=str(data.get("source") or "refinement"),
        )


@dataclass
class Attempt:
    """Tested outcome of one candidate within a worker run"""
    attempt_number: int
    candidate: Candidate
    matched_container: str = ""
    items: List[Dict[str, str]] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[FailureType] = None
    missing_fields: List[str] = field(default_factory=list)
    field_coverage: int = 0
    code: str = ""
    generation_error: Optional[str] = None

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def succeeded(self) -> bool:
        return self.item_count > 0 and not self.missing_fields

    def is_better_than(self, other: Optional["Attempt"]) -> bool:
        """More items wins; on a tie, fewer missing fields wins"""
        if other is None:
            return True
        if self.item_count != other.item_count:
            return self.item_count > other.item_count
        return len(self.missing_fields) < len(other.missing_fields)

    def to_dict(self, sample_size: int = 3) -> Dict[str, Any]:
        return {
            "attempt": self.attempt_number,
            "candidate": self.candidate.to_dict(),
            "matchedContainer": self.matched_container,
            "itemCount": self.item_count,
            "error": self.error,
            "errorType": self.error_type.value if self.error_type else None,
            "missingFields": list(self.missing_fields),
            "fieldCoverage": self.field_coverage,
            "sampleItems": self.items[:sample_size],
        }


@dataclass(frozen=True)
class AttemptError:
    attempt: int
    error: str
    classified_type: FailureType

    def to_dict(self) -> Dict[str, Any]:
        return {"attempt": self.attempt, "error": self.error, "classifiedType": self.classified_type.value}


@dataclass
class WorkerResult:
    """Aggregate of one validation-loop run"""
    validated: bool
    candidate: Candidate
    code: str
    item_count: int
    missing_fields: List[str]
    field_coverage: int
    sample_items: List[Dict[str, str]]
    attempts: int
    all_errors: List[AttemptError] = field(default_factory=list)
    best_attempt: Optional[Attempt] = None
    diagnostics: Optional[Dict[str, Any]] = None

    def is_better_than(self, other: Optional["WorkerResult"]) -> bool:
        if other is None:
            return True
        if self.validated != other.validated:
            return self.validated
        if self.item_count != other.item_count:
            return self.item_count > other.item_count
        return len(self.missing_fields) < len(other.missing_fields)

    @classmethod
    def from_attempt(
        cls,
        attempt: Attempt,
        validated: bool,
        attempts: int,
        all_errors: Optional[List[AttemptError]] = None,
        sample_size: int = 3,
    ) -> "WorkerResult":
        return cls(
            validated=validated,
            candidate=attempt.candidate,
            code=attempt.code,
            item_count=attempt.item_count,
            missing_fields=list(attempt.missing_fields),
            field_coverage=attempt.field_coverage,
            sample_items=attempt.items[:sample_size],
            attempts=attempts,
            all_errors=list(all_errors or []),
            best_attempt=attempt,
        )


@dataclass(frozen=True)
class FailurePattern:
    type: FailureType
    consistent: bool
    count: int = 0
    sample_error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "consistent": self.consistent,
            "count": self.count,
            "sampleError": self.sample_error,
        }


@dataclass(frozen=True)
class SupervisorState:
    """
    Carried across supervisor iterations and handed by value to each
    worker run. Fixes only ever accumulate.
    """
    applied_fixes: Tuple[CorrectiveFix, ...] = ()
    supervisor_iteration: int = 0

    def has_fix(self, fix: CorrectiveFix) -> bool:
        return fix in self.applied_fixes

    def with_fix(self, fix: CorrectiveFix) -> "SupervisorState":
        if fix in self.applied_fixes:
            return self
        return replace(self, applied_fixes=self.applied_fixes + (fix,))

    def next_iteration(self) -> "SupervisorState":
        return replace(self, supervisor_iteration=self.supervisor_iteration + 1)


@dataclass(frozen=True)
class FieldFeedback:
    field: str
    issue: FeedbackIssue = FeedbackIssue.MISSING
    correct_selector: str = ""
    notes: str = ""
    expected_values: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldFeedback":
        expected = data.get("expectedValues") or data.get("expected_values") or ()
        if isinstance(expected, str):
            expected = (expected,)
        return cls(
            field=str(data.get("field") or "").strip(),
            issue=FeedbackIssue.parse(data.get("issue")),
            correct_selector=str(data.get("correctSelector") or data.get("correct_selector") or "").strip(),
            notes=str(data.get("notes") or "").strip(),
            expected_values=tuple(str(v) for v in expected),
        )


@dataclass
class SynthesisResult:
    """Final answer of a session: best worker result plus session context"""
    result: WorkerResult
    supervisor_iterations: int
    applied_fixes: Tuple[CorrectiveFix, ...]
    html: str
    total_attempts: int
    last_pattern: Optional[FailurePattern] = None

    @property
    def validated(self) -> bool:
        return self.result.validated

    def to_payload(self) -> Dict[str, Any]:
        """Shape of the terminal `complete` event"""
        r = self.result
        return {
            "output": r.code,
            "candidate": r.candidate.to_dict(),
            "validated": r.validated,
            "itemCount": r.item_count,
            "attempts": r.attempts,
            "totalAttempts": self.total_attempts,
            "supervisorIterations": self.supervisor_iterations,
            "appliedFixes": [f.value for f in self.applied_fixes],
            "missingFields": list(r.missing_fields),
            "fieldCoverage": r.field_coverage,
            "sampleItems": r.sample_items,
            "diagnostics": r.diagnostics,
            "html": self.html,
        }


def worker_result_payload(result: WorkerResult, html: str = "") -> Dict[str, Any]:
    """Payload for a single-attempt answer (refinement path)"""
    return {
        "output": result.code,
        "candidate": result.candidate.to_dict(),
        "validated": result.validated,
        "itemCount": result.item_count,
        "attempts": result.attempts,
        "missingFields": list(result.missing_fields),
        "fieldCoverage": result.field_coverage,
        "sampleItems": result.sample_items,
        "diagnostics": result.diagnostics,
        "html": html,
    }
