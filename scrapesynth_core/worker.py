"""
Worker loop (validation loop).

Per attempt: propose -> test -> validate. Stops on the first attempt
whose first record has every required field. Otherwise keeps the best
attempt (most items, then fewest missing fields) and, once attempts run
out, returns it with diagnostics.

Which corrective fixes are active comes from the SupervisorState passed
in; the loop never decides that itself.
"""

import logging
from typing import List, Optional, Sequence

from .diagnostics import build_diagnostics
from .error_classifier import classify_error
from .errors import GenerationError
from .models import Attempt, AttemptError, SupervisorState, WorkerResult
from .progress import ProgressEmitter
from .validator import validate_coverage

logger = logging.getLogger(__name__)

MAX_WORKER_ATTEMPTS = 5


async def run_validation_loop(
    url: str,
    html: str,
    fields: Sequence[str],
    state: SupervisorState,
    proposer,
    tester,
    progress: Optional[ProgressEmitter] = None,
    run_logger=None,
    max_attempts: int = MAX_WORKER_ATTEMPTS,
    js_rendered: bool = False,
) -> WorkerResult:
    """
    Run one bounded worker loop against the cached snapshot.

    Args:
        url: Target URL (for generated source and the sandbox)
        html: Snapshot HTML, shared read-only with every attempt
        fields: Required field names
        state: Supervisor state; only its applied_fixes are read here
        proposer: CandidateProposer
        tester: CandidateTester
        progress: Emitter for caller-facing events
        run_logger: Optional scrapesynth_logs.RunLogger
        max_attempts: Attempt bound for this run
        js_rendered: Snapshot looked JavaScript-rendered (diagnostics only)
    """
    progress = progress or ProgressEmitter(None)
    fixes = state.applied_fixes
    all_errors: List[AttemptError] = []
    best: Optional[Attempt] = None
    previous: Optional[Attempt] = None

    if fixes:
        progress.info(f"🔧 Active fixes: {', '.join(f.value for f in fixes)}")

    for attempt_number in range(1, max_attempts + 1):
        progress.info(f"🧠 Attempt {attempt_number}/{max_attempts}: proposing selectors...", attempt=attempt_number)

        generation_error: Optional[str] = None
        try:
            candidate = await proposer.propose(
                html, fields, attempt_number, previous=previous, fixes=fixes
            )
        except GenerationError as e:
            generation_error = str(e)
            error_type = classify_error(generation_error)
            all_errors.append(AttemptError(attempt_number, generation_error, error_type))
            progress.warning(
                f"⚠️ Attempt {attempt_number}: generation failed ({error_type.value}), using fallback selectors",
                attempt=attempt_number,
                errorType=error_type.value,
            )
            candidate = proposer.fallback(fields)

        progress.info(
            f"🧪 Attempt {attempt_number}: testing container '{candidate.container_selector}'",
            attempt=attempt_number,
        )
        outcome = await tester.test(candidate, html, url)

        report = validate_coverage(outcome.items, fields)
        attempt = Attempt(
            attempt_number=attempt_number,
            candidate=outcome.candidate,
            matched_container=outcome.matched_container,
            items=outcome.items,
            error=outcome.error,
            missing_fields=report.missing_fields,
            field_coverage=report.coverage_percent,
            code=outcome.code,
            generation_error=generation_error,
        )

        if report.passed:
            if run_logger:
                run_logger.log_attempt(attempt)
            progress.success(
                f"✅ Attempt {attempt_number}: all {len(fields)} fields extracted ({attempt.item_count} items)",
                attempt=attempt_number,
                itemCount=attempt.item_count,
            )
            return WorkerResult.from_attempt(attempt, validated=True, attempts=attempt_number, all_errors=all_errors)

        if attempt.error is None:
            attempt.error = (
                f"Incomplete coverage {report.coverage_percent}%: "
                f"{len(report.missing_fields)} of {len(fields)} fields missing"
            )
        attempt.error_type = classify_error(attempt.error)

        # A failed generation already accounts for this attempt
        if generation_error is None:
            all_errors.append(AttemptError(attempt_number, attempt.error, attempt.error_type))

        if run_logger:
            run_logger.log_attempt(attempt)

        if attempt.is_better_than(best):
            best = attempt

        if attempt.item_count:
            progress.warning(
                f"⚠️ Attempt {attempt_number}: {attempt.item_count} items, "
                f"missing {', '.join(attempt.missing_fields)} ({attempt.field_coverage}% coverage)",
                attempt=attempt_number,
                missingFields=attempt.missing_fields,
                fieldCoverage=attempt.field_coverage,
            )
        else:
            progress.warning(
                f"⚠️ Attempt {attempt_number}: {attempt.error_type.value} - {attempt.error}",
                attempt=attempt_number,
                errorType=attempt.error_type.value,
            )
        previous = attempt

    logger.info(f"❌ Worker loop exhausted after {max_attempts} attempts (best: #{best.attempt_number}, {best.item_count} items)")
    result = WorkerResult.from_attempt(best, validated=False, attempts=max_attempts, all_errors=all_errors)
    result.diagnostics = build_diagnostics(max_attempts, best, all_errors, fields, js_rendered=js_rendered)
    progress.warning(
        f"⚠️ {max_attempts} attempts without full coverage; best was #{best.attempt_number} "
        f"({best.item_count} items, {best.field_coverage}% coverage)"
    )
    return result
