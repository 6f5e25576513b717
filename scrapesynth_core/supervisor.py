"""
Supervisor loop.

Runs the worker loop, and when a run fails with one dominant failure
type, switches on the matching corrective fix and runs it again. Fixes
accumulate for the rest of the session. A mixed or unfixable pattern
ends the session with the best result seen so far.

    SYNTAX_ERROR     -> quote-field-names
    JSON_PARSE_ERROR -> clean-ollama-json
    NO_ITEMS         -> use-alternative-selectors
"""

import logging
from typing import Optional, Sequence

from .error_classifier import analyze_failure_pattern, fix_for_pattern
from .models import FailurePattern, SupervisorState, SynthesisResult, WorkerResult
from .progress import ProgressEmitter
from .worker import MAX_WORKER_ATTEMPTS, run_validation_loop

logger = logging.getLogger(__name__)

MAX_SUPERVISOR_ATTEMPTS = 3


async def run_supervisor_loop(
    url: str,
    html: str,
    fields: Sequence[str],
    proposer,
    tester,
    progress: Optional[ProgressEmitter] = None,
    run_logger=None,
    max_iterations: int = MAX_SUPERVISOR_ATTEMPTS,
    max_worker_attempts: int = MAX_WORKER_ATTEMPTS,
    js_rendered: bool = False,
) -> SynthesisResult:
    """
    Run up to max_iterations worker loops over the same snapshot.

    The returned result always carries the snapshot HTML so a caller can
    refine or retry without fetching again.
    """
    progress = progress or ProgressEmitter(None)
    state = SupervisorState()
    best: Optional[WorkerResult] = None
    total_attempts = 0
    pattern: Optional[FailurePattern] = None

    while state.supervisor_iteration < max_iterations:
        state = state.next_iteration()
        iteration = state.supervisor_iteration
        progress.info(
            f"👔 Supervisor iteration {iteration}/{max_iterations}",
            supervisorIteration=iteration,
            appliedFixes=[f.value for f in state.applied_fixes],
        )
        if run_logger:
            run_logger.log_heading(f"Supervisor iteration {iteration}")
            if state.applied_fixes:
                run_logger.log_kv("applied_fixes", ", ".join(f.value for f in state.applied_fixes))

        result = await run_validation_loop(
            url, html, fields, state, proposer, tester,
            progress=progress,
            run_logger=run_logger,
            max_attempts=max_worker_attempts,
            js_rendered=js_rendered,
        )
        total_attempts += result.attempts
        if result.is_better_than(best):
            best = result

        if result.validated:
            progress.success(f"🎉 Validated in supervisor iteration {iteration}", supervisorIteration=iteration)
            return SynthesisResult(
                result=result,
                supervisor_iterations=iteration,
                applied_fixes=state.applied_fixes,
                html=html,
                total_attempts=total_attempts,
            )

        pattern = analyze_failure_pattern(result.all_errors)
        if run_logger:
            run_logger.log_json(pattern.to_dict(), title="Failure pattern")

        fix = fix_for_pattern(pattern, state.applied_fixes)
        if fix is None:
            progress.warning(
                f"🛑 Failure pattern {pattern.type.value} has no untried fix; returning best result",
                pattern=pattern.to_dict(),
            )
            break
        if iteration >= max_iterations:
            progress.warning(f"🛑 Supervisor iterations exhausted; {fix.value} not tried", pattern=pattern.to_dict())
            break

        state = state.with_fix(fix)
        progress.info(
            f"🔧 Consistent {pattern.type.value} ({pattern.count} errors): applying {fix.value}",
            pattern=pattern.to_dict(),
            fix=fix.value,
        )
        logger.info(f"Supervisor applying {fix.value} after {pattern.type.value}")

    return SynthesisResult(
        result=best,
        supervisor_iterations=state.supervisor_iteration,
        applied_fixes=state.applied_fixes,
        html=html,
        total_attempts=total_attempts,
        last_pattern=pattern,
    )
