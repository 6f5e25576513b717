"""
scrapesynth_core package: scraper synthesis engine, its collaborators and the HTTP surface

Usage:
    from scrapesynth_core import ScraperSynthesizer

    synth = ScraperSynthesizer()
    result = await synth.synthesize("https://example.gov/meetings", ["date", "time", "location"])
    print(result.to_payload()["output"])
"""
from .config import Config, config
from .errors import (
    GenerationError,
    RequestValidationError,
    SelectorError,
    SinkClosedError,
    SnapshotError,
    SynthesisError,
)
from .models import (
    Attempt,
    Candidate,
    CorrectiveFix,
    FailurePattern,
    FailureType,
    FieldFeedback,
    SupervisorState,
    SynthesisResult,
    WorkerResult,
)
from .error_classifier import analyze_failure_pattern, classify_error
from .progress import ProgressEmitter, QueueSink
from .refinement import feedback_for_missing_fields, refine_candidate
from .supervisor import run_supervisor_loop
from .synthesizer import ScraperSynthesizer
from .worker import run_validation_loop

__all__ = [
    # Core
    "Config",
    "config",
    "ScraperSynthesizer",
    # Loops
    "run_validation_loop",
    "run_supervisor_loop",
    "refine_candidate",
    "feedback_for_missing_fields",
    "classify_error",
    "analyze_failure_pattern",
    # Model
    "Attempt",
    "Candidate",
    "CorrectiveFix",
    "FailurePattern",
    "FailureType",
    "FieldFeedback",
    "SupervisorState",
    "SynthesisResult",
    "WorkerResult",
    "ProgressEmitter",
    "QueueSink",
    # Errors
    "SynthesisError",
    "RequestValidationError",
    "SnapshotError",
    "GenerationError",
    "SelectorError",
    "SinkClosedError",
]
