"""
Inbound request parsing.

Turns the loosely-shaped JSON bodies callers send into validated
(url, fields) and refinement requests. Anything that cannot be resolved
raises RequestValidationError, which is fatal to the session.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .errors import RequestValidationError
from .models import Candidate, FieldFeedback

URL_IN_TEXT = re.compile(r"https?://[^\s\"'<>)\]]+", re.IGNORECASE)
FIELD_NAME_KEYS = ("fieldName", "name", "field")


def extract_url(text: Optional[str]) -> Optional[str]:
    """First http(s) URL in free text, with trailing punctuation dropped"""
    if not text:
        return None
    m = URL_IN_TEXT.search(str(text))
    if not m:
        return None
    return m.group(0).rstrip(".,;:!?")


def normalize_field(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        for key in FIELD_NAME_KEYS:
            name = value.get(key)
            if isinstance(name, str) and name.strip():
                return name.strip()
    return None


def normalize_fields(values: Any) -> List[str]:
    """Plain, unique field names in request order; unresolvable entries are dropped"""
    if not isinstance(values, (list, tuple)):
        return []
    names: List[str] = []
    for value in values:
        name = normalize_field(value)
        if name and name not in names:
            names.append(name)
    return names


def _fields_from_body(body: Dict[str, Any]) -> List[str]:
    cfg = body.get("config") if isinstance(body.get("config"), dict) else {}
    structures = body.get("pageStructures")
    sources = [body.get("fieldsRequired"), cfg.get("fieldsRequired")]
    if isinstance(structures, list) and structures and isinstance(structures[0], dict):
        sources.append(structures[0].get("fields"))
    for source in sources:
        names = normalize_fields(source)
        if names:
            return names
    return []


def _url_from_body(body: Dict[str, Any]) -> Optional[str]:
    cfg = body.get("config") if isinstance(body.get("config"), dict) else {}
    for value in (body.get("url"), cfg.get("url")):
        if isinstance(value, str) and value.strip():
            url = value.strip()
            if not URL_IN_TEXT.match(url):
                raise RequestValidationError(f"Invalid URL: {url}")
            return url
    return extract_url(body.get("task"))


def parse_synthesis_request(body: Any) -> Tuple[str, List[str], Optional[str]]:
    """
    Returns (url, fields, task).

    Raises:
        RequestValidationError: no URL, or no required fields
    """
    if not isinstance(body, dict):
        raise RequestValidationError("Request body must be a JSON object")
    url = _url_from_body(body)
    if not url:
        raise RequestValidationError("No target URL found in request (url or task)")
    fields = _fields_from_body(body)
    if not fields:
        raise RequestValidationError("No required fields in request (fieldsRequired)")
    task = body.get("task") if isinstance(body.get("task"), str) else None
    return url, fields, task


@dataclass
class RefinementRequest:
    url: str
    fields: List[str]
    feedback: List[FieldFeedback]
    original_code: str = ""
    html: str = ""
    candidate: Optional[Candidate] = None


def parse_feedback(values: Any) -> List[FieldFeedback]:
    if values is None:
        return []
    if not isinstance(values, list):
        raise RequestValidationError("feedback must be a list")
    feedback = []
    for entry in values:
        if not isinstance(entry, dict):
            raise RequestValidationError("feedback entries must be objects")
        try:
            fb = FieldFeedback.from_dict(entry)
        except ValueError:
            raise RequestValidationError(f"Unknown feedback issue: {entry.get('issue')!r}")
        if not fb.field:
            raise RequestValidationError("feedback entry without a field name")
        feedback.append(fb)
    return feedback


def parse_refinement_request(body: Any) -> RefinementRequest:
    """
    Validate a refinement body: {originalCode, url, feedback[], fieldsRequired, html, candidate?}.

    Raises:
        RequestValidationError: missing URL or fields, malformed feedback
    """
    if not isinstance(body, dict):
        raise RequestValidationError("Request body must be a JSON object")
    url = _url_from_body(body)
    if not url:
        raise RequestValidationError("No target URL in refinement request")
    fields = _fields_from_body(body)
    if not fields:
        raise RequestValidationError("No required fields in refinement request (fieldsRequired)")

    candidate = None
    raw_candidate = body.get("candidate")
    if isinstance(raw_candidate, dict):
        candidate = Candidate.from_dict(raw_candidate)
        if not candidate.container_selector:
            candidate = None

    return RefinementRequest(
        url=url,
        fields=fields,
        feedback=parse_feedback(body.get("feedback")),
        original_code=str(body.get("originalCode") or ""),
        html=str(body.get("html") or ""),
        candidate=candidate,
    )
