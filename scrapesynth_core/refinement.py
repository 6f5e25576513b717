"""
Refinement path: one operator-guided attempt, no retry loop.

Per required field, in order of preference:
1. the literal selector from feedback
2. a selector the model proposes from the feedback notes
3. the field's previous selector (structured candidate, else recovered
   from the previous scraper source)
4. the heuristic class-selector guess

The container comes from the previous candidate, else from the previous
source, else a generic fallback list.
"""

import logging
from typing import Dict, List, Optional, Sequence

from .codegen import recover_container_selector, recover_field_selector
from .diagnostics import build_diagnostics
from .error_classifier import classify_error
from .errors import GenerationError
from .models import (
    Attempt, AttemptError, Candidate, FeedbackIssue, FieldFeedback, WorkerResult,
)
from .progress import ProgressEmitter
from .proposer import FALLBACK_CONTAINERS, heuristic_field_selector
from .validator import validate_coverage

logger = logging.getLogger(__name__)


def feedback_for_missing_fields(missing_fields: Sequence[str]) -> List[FieldFeedback]:
    """Automatic feedback for a 'continue iterating' round"""
    return [
        FieldFeedback(
            field=name,
            issue=FeedbackIssue.MISSING,
            notes=(
                f'Please find the correct selector for the "{name}" field. '
                f"Look for elements that contain this data in the HTML structure."
            ),
        )
        for name in missing_fields
    ]


async def build_refined_candidate(
    original_code: str,
    feedback: Sequence[FieldFeedback],
    fields: Sequence[str],
    html: str,
    proposer,
    original_candidate: Optional[Candidate] = None,
    progress: Optional[ProgressEmitter] = None,
) -> Candidate:
    progress = progress or ProgressEmitter(None)
    by_field: Dict[str, FieldFeedback] = {fb.field: fb for fb in feedback}

    container = (
        (original_candidate.container_selector if original_candidate else None)
        or recover_container_selector(original_code)
    )
    if not container:
        logger.info("Container selector not recoverable from previous code; using generic containers")
        container = ", ".join(FALLBACK_CONTAINERS)

    selectors: Dict[str, str] = {}
    for name in fields:
        previous = (
            (original_candidate.field_selectors.get(name) if original_candidate else None)
            or recover_field_selector(original_code, name)
        )
        fb = by_field.get(name)

        if fb and fb.correct_selector:
            selectors[name] = fb.correct_selector
            progress.info(f"✏️ {name}: using provided selector '{fb.correct_selector}'")
        elif fb and fb.notes:
            try:
                selectors[name] = await proposer.propose_field_selector(html, fb, current_selector=previous or "")
                progress.info(f"🧠 {name}: model suggested '{selectors[name]}'")
            except GenerationError as e:
                selectors[name] = heuristic_field_selector(name)
                progress.warning(f"⚠️ {name}: {e}; falling back to '{selectors[name]}'")
        else:
            selectors[name] = previous or heuristic_field_selector(name)

    return Candidate(container_selector=container, field_selectors=selectors, source="refinement")


async def refine_candidate(
    original_code: str,
    url: str,
    feedback: Sequence[FieldFeedback],
    fields: Sequence[str],
    html: str,
    proposer,
    tester,
    original_candidate: Optional[Candidate] = None,
    progress: Optional[ProgressEmitter] = None,
) -> WorkerResult:
    """Build, test and score a single refined candidate"""
    progress = progress or ProgressEmitter(None)
    candidate = await build_refined_candidate(
        original_code, feedback, fields, html, proposer,
        original_candidate=original_candidate,
        progress=progress,
    )

    outcome = await tester.test(candidate, html, url)
    report = validate_coverage(outcome.items, fields)
    attempt = Attempt(
        attempt_number=1,
        candidate=outcome.candidate,
        matched_container=outcome.matched_container,
        items=outcome.items,
        error=outcome.error,
        missing_fields=report.missing_fields,
        field_coverage=report.coverage_percent,
        code=outcome.code,
    )

    if report.passed:
        return WorkerResult.from_attempt(attempt, validated=True, attempts=1)

    if attempt.error is None:
        attempt.error = (
            f"Incomplete coverage {report.coverage_percent}%: "
            f"{len(report.missing_fields)} of {len(fields)} fields missing"
        )
    attempt.error_type = classify_error(attempt.error)
    errors = [AttemptError(1, attempt.error, attempt.error_type)]
    result = WorkerResult.from_attempt(attempt, validated=False, attempts=1, all_errors=errors)
    result.diagnostics = build_diagnostics(1, attempt, errors, fields)
    return result
