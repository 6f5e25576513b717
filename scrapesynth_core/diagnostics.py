import logging
import os
from typing import Any, Dict, List, Optional, Sequence

from .models import Attempt, AttemptError, FailureType


_LOGGER_CACHE: Dict[str, logging.Logger] = {}


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger.

    Respects SCRAPESYNTH_DEBUG env var to set DEBUG/INFO level.
    Ensures we don't duplicate handlers across multiple imports.
    """
    lg = _LOGGER_CACHE.get(name)
    if lg:
        return lg
    lg = logging.getLogger(name)
    if not lg.handlers:
        level = logging.DEBUG if str(os.getenv("SCRAPESYNTH_DEBUG", "false")).lower() == "true" else logging.INFO
        lg.setLevel(level)
        handler = logging.StreamHandler()
        handler.setLevel(level)
        fmt = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        handler.setFormatter(fmt)
        lg.addHandler(handler)
        lg.propagate = False
    _LOGGER_CACHE[name] = lg
    return lg


# Failure type -> operator suggestion
SUGGESTIONS: Dict[FailureType, str] = {
    FailureType.NO_ITEMS: "Container selector may not match any elements; inspect the page structure for the repeating record element.",
    FailureType.JSON_PARSE_ERROR: "Site may require render-based extraction if parse errors persist; the model could not produce usable selectors from the static HTML.",
    FailureType.SYNTAX_ERROR: "Generated selectors were malformed; try supplying a correct selector for the affected fields.",
    FailureType.TIMEOUT_ERROR: "Model or execution service timed out; check that Ollama and the execution service are running and responsive.",
    FailureType.DEPENDENCY_ERROR: "Execution service is missing a dependency; check its installation.",
    FailureType.UNKNOWN_ERROR: "Unclassified errors occurred; see the last error and the run log for details.",
}

JS_RENDERED_SUGGESTION = "Page looks JavaScript-rendered (little static text); the static snapshot may not contain the records."


def build_suggestions(
    error_types: Sequence[FailureType],
    missing_fields: Sequence[str],
    item_count: int,
    js_rendered: bool = False,
) -> List[str]:
    suggestions: List[str] = []
    if item_count == 0 and FailureType.NO_ITEMS not in error_types:
        suggestions.append(SUGGESTIONS[FailureType.NO_ITEMS])
    for error_type in error_types:
        text = SUGGESTIONS.get(error_type)
        if text and text not in suggestions:
            suggestions.append(text)
    if missing_fields and item_count > 0:
        suggestions.append(f"Missing fields: {', '.join(missing_fields)} - inspect manually and refine with a correct selector.")
    if js_rendered:
        suggestions.append(JS_RENDERED_SUGGESTION)
    return suggestions


def build_diagnostics(
    attempts: int,
    best_attempt: Optional[Attempt],
    all_errors: Sequence[AttemptError],
    required_fields: Sequence[str],
    js_rendered: bool = False,
) -> Dict[str, Any]:
    """Diagnostics block returned when a worker run ends without validating"""
    error_types: List[FailureType] = []
    for e in all_errors:
        if e.classified_type not in error_types:
            error_types.append(e.classified_type)

    item_count = best_attempt.item_count if best_attempt else 0
    missing = list(best_attempt.missing_fields) if best_attempt else list(required_fields)
    return {
        "totalAttempts": attempts,
        "bestAttempt": best_attempt.attempt_number if best_attempt else None,
        "itemCount": item_count,
        "fieldsRequired": len(required_fields),
        "fieldsFound": len(required_fields) - len(missing),
        "errorTypes": [t.value for t in error_types],
        "lastError": all_errors[-1].error if all_errors else None,
        "suggestions": build_suggestions(error_types, missing, item_count, js_rendered),
    }
