"""
Failure classification.

Maps raw attempt errors onto a small fixed taxonomy and summarises a
worker run's errors into a FailurePattern the supervisor can act on.

Rules are checked in order; the first one that matches wins.
"""

import re
from collections import Counter
from typing import Dict, Iterable, List, Optional, Pattern, Tuple
import logging

from .models import AttemptError, CorrectiveFix, FailurePattern, FailureType

logger = logging.getLogger(__name__)


CLASSIFICATION_RULES: List[Tuple[FailureType, Pattern]] = [
    (FailureType.SYNTAX_ERROR, re.compile(r"Unexpected token|SyntaxError")),
    (FailureType.JSON_PARSE_ERROR, re.compile(r"JSON|parse")),
    (FailureType.DEPENDENCY_ERROR, re.compile(r"Cannot find module|require")),
    (FailureType.TIMEOUT_ERROR, re.compile(r"timeout|ETIMEDOUT")),
    (FailureType.NO_ITEMS, re.compile(r"No items extracted|itemCount: 0|\b0 items\b|No container matched")),
]

# A type counts as the pattern when it covers more than this share of all errors
DOMINANT_SHARE = 0.6

FIX_FOR_PATTERN: Dict[FailureType, CorrectiveFix] = {
    FailureType.SYNTAX_ERROR: CorrectiveFix.QUOTE_FIELD_NAMES,
    FailureType.JSON_PARSE_ERROR: CorrectiveFix.CLEAN_LLM_JSON,
    FailureType.NO_ITEMS: CorrectiveFix.ALTERNATIVE_SELECTORS,
}


def classify_error(error: Optional[str]) -> FailureType:
    """Map an error string to exactly one failure category"""
    text = str(error or "")
    for failure_type, pattern in CLASSIFICATION_RULES:
        if pattern.search(text):
            return failure_type
    return FailureType.UNKNOWN_ERROR


def analyze_failure_pattern(errors: Iterable[AttemptError]) -> FailurePattern:
    """
    Summarise a worker run's errors.

    One type covering every error, or more than DOMINANT_SHARE of them,
    makes the pattern consistent. Anything else is MIXED_ERRORS.
    """
    errors = list(errors)
    if not errors:
        return FailurePattern(type=FailureType.NO_ERRORS, consistent=False)

    counts = Counter(e.classified_type for e in errors)
    top_type, top_count = counts.most_common(1)[0]
    sample = next(e.error for e in errors if e.classified_type == top_type)

    if len(counts) == 1 or top_count / len(errors) > DOMINANT_SHARE:
        logger.debug(f"Dominant failure {top_type.value}: {top_count}/{len(errors)}")
        return FailurePattern(type=top_type, consistent=True, count=top_count, sample_error=sample)

    return FailurePattern(
        type=FailureType.MIXED_ERRORS,
        consistent=False,
        count=len(errors),
        sample_error=errors[-1].error,
    )


def fix_for_pattern(pattern: FailurePattern, applied: Iterable[CorrectiveFix] = ()) -> Optional[CorrectiveFix]:
    """The fix to try next, or None when there is nothing left to try"""
    if not pattern.consistent:
        return None
    fix = FIX_FOR_PATTERN.get(pattern.type)
    if fix is None or fix in set(applied):
        return None
    return fix
