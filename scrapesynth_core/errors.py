"""
Exception hierarchy for scraper synthesis.

Only RequestValidationError and SnapshotError end a session. Everything
raised while proposing or testing a single candidate is caught by the
worker loop and turned into an attempt error.
"""


class SynthesisError(Exception):
    """Base class for synthesis failures"""
    pass


class RequestValidationError(SynthesisError):
    """Malformed request: no URL, no required fields, bad feedback"""
    pass


class SnapshotError(SynthesisError):
    """The HTML snapshot could not be fetched (non-2xx, transport, too small)"""

    def __init__(self, message: str, url: str = "", status: int = 0):
        super().__init__(message)
        self.url = url
        self.status = status


class GenerationError(SynthesisError):
    """The proposer could not turn a model response into a candidate"""

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class SelectorError(SynthesisError):
    """A candidate selector could not be parsed"""

    def __init__(self, selector: str, reason: str = ""):
        super().__init__(f"SyntaxError: invalid selector '{selector}'" + (f" ({reason})" if reason else ""))
        self.selector = selector


class SinkClosedError(Exception):
    """The consumer of progress events has gone away"""
    pass
