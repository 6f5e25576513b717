"""
Candidate Proposer - container + field selectors for a page

Two sources:
1. Heuristics (first attempt of a fresh worker run): a list of common
   container patterns and a class-selector guess per field.
2. The local model (every later attempt, or attempt 1 once the
   supervisor switched on alternative selectors). The prompt carries a
   trimmed body sample, the field list and, when there is one, the
   previous failing candidate with its error so the model can improve
   on it.

The model must answer with a fenced ```json block holding
{"containerSelector": ..., "fields": {...}}. Anything else raises
GenerationError, whose message is phrased for the failure classifier.

The proposer keeps no state between calls.
"""

import asyncio
import json
import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import aiohttp
from bs4 import Comment

from .config import Config
from .errors import GenerationError
from .extraction import parse_html
from .models import Attempt, Candidate, CorrectiveFix, FieldFeedback

logger = logging.getLogger(__name__)


COMMON_CONTAINERS = [".event", ".meeting", ".item", ".card", ".row", "article", "tbody tr", "li"]
FALLBACK_CONTAINERS = ["article", "[class*='event']", "[class*='item']", "table tr", "ul li", "div[class]"]

JSON_BLOCK = re.compile(r"```(?:json|JSON)?\s*(\{.*?\})\s*```", re.S)
SELECTOR_BLOCK = re.compile(r"<selector>(.*?)</selector>", re.S | re.I)
_STRING_LITERAL = re.compile(r'"(?:[^"\\]|\\.)*"')


def slugify_field(name: str) -> str:
    """'meetingTime' / 'meeting_time' / 'Meeting Time' -> 'meeting-time'"""
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", name.strip())
    s = re.sub(r"[^a-zA-Z0-9]+", "-", s).strip("-").lower()
    return s


def heuristic_field_selector(name: str) -> str:
    slug = slugify_field(name)
    return f".{slug}" if slug else ":self"


def heuristic_candidate(fields: Sequence[str], containers: Iterable[str] = COMMON_CONTAINERS, source: str = "heuristic") -> Candidate:
    return Candidate(
        container_selector=", ".join(containers),
        field_selectors={f: heuristic_field_selector(f) for f in fields},
        source=source,
    )


def _outside_strings(text: str, fn: Callable[[str], str]) -> str:
    """Apply fn to the parts of text that are not double-quoted string literals"""
    out: List[str] = []
    pos = 0
    for m in _STRING_LITERAL.finditer(text):
        out.append(fn(text[pos:m.start()]))
        out.append(m.group(0))
        pos = m.end()
    out.append(fn(text[pos:]))
    return "".join(out)


def clean_llm_json(text: str) -> str:
    """Strip // and /* */ comments and trailing commas"""
    def _clean(segment: str) -> str:
        segment = re.sub(r"/\*.*?\*/", "", segment, flags=re.S)
        segment = re.sub(r"//[^\n]*", "", segment)
        return segment

    cleaned = _outside_strings(text, _clean)
    return _outside_strings(cleaned, lambda s: re.sub(r",(\s*[}\]])", r"\1", s))


def quote_bare_keys(text: str) -> str:
    """{date: ".d", 'meeting-time': ".t"} -> {"date": ".d", "meeting-time": ".t"}"""
    def _quote(segment: str) -> str:
        segment = re.sub(r"([{,]\s*)'([^'\"\n]+)'\s*:", r'\1"\2":', segment)
        segment = re.sub(r"([{,]\s*)([A-Za-z_$][\w$\-]*)\s*:", r'\1"\2":', segment)
        return segment

    return _outside_strings(text, _quote)


def _json_error(raw: str, exc: json.JSONDecodeError, response: str) -> GenerationError:
    at = raw[exc.pos:exc.pos + 1]
    if exc.msg.startswith("Expecting property name") and (at.isalpha() or at in "_$'"):
        return GenerationError(f"SyntaxError: unquoted key in model JSON ({exc})", response)
    return GenerationError(f"JSON parse error: {exc}", response)


def resolve_field_key(fields: Dict[str, Any], name: str) -> Optional[str]:
    """Find the model's key for a required field: exact, _/- swapped, then case-insensitive"""
    for key in (name, name.replace("_", "-"), name.replace("-", "_")):
        if key in fields:
            return key
    lowered = {k.lower(): k for k in fields}
    for key in (name.lower(), name.lower().replace("_", "-"), name.lower().replace("-", "_")):
        if key in lowered:
            return lowered[key]
    return None


def _selector_value(value: Any) -> str:
    if isinstance(value, dict):
        value = value.get("selector") or value.get("css") or ""
    if isinstance(value, list):
        value = value[0] if value else ""
    return str(value or "").strip()


def parse_candidate_response(
    text: str,
    fields: Sequence[str],
    fixes: Iterable[CorrectiveFix] = (),
) -> Candidate:
    """
    Turn a model response into a Candidate.

    Raises:
        GenerationError: no fenced JSON block, JSON that does not parse,
            or no containerSelector
    """
    fixes = set(fixes)
    m = JSON_BLOCK.search(text or "")
    if not m:
        raise GenerationError("No JSON block found in model response", text or "")

    raw = m.group(1)
    if CorrectiveFix.CLEAN_LLM_JSON in fixes:
        raw = clean_llm_json(raw)
    if CorrectiveFix.QUOTE_FIELD_NAMES in fixes:
        raw = quote_bare_keys(raw)

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise _json_error(raw, e, text) from e

    if not isinstance(data, dict):
        raise GenerationError("JSON parse error: model JSON is not an object", text)

    container = _selector_value(data.get("containerSelector") or data.get("itemSelector"))
    if not container:
        raise GenerationError("JSON parse error: model JSON has no containerSelector", text)

    model_fields = data.get("fields") or {}
    if not isinstance(model_fields, dict):
        model_fields = {}

    selectors: Dict[str, str] = {}
    for name in fields:
        key = resolve_field_key(model_fields, name)
        value = _selector_value(model_fields.get(key)) if key is not None else ""
        selectors[name] = value or heuristic_field_selector(name)

    return Candidate(container_selector=container, field_selectors=selectors, source="llm")


def sample_html(html: str, budget: int) -> str:
    """Body markup without scripts/styles/comments, whitespace collapsed, cut to budget"""
    soup = parse_html(html)
    for tag in soup(["script", "style", "noscript", "svg", "iframe", "link", "meta"]):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    body = soup.body or soup
    markup = re.sub(r"\s+", " ", str(body)).strip()
    return markup[:budget]


class CandidateProposer:
    """
    Proposes candidates for the worker loop and single-field selectors
    for the refinement path.

    Args:
        llm: object with `async ainvoke(prompt) -> {"text": str}`
        html_sample_chars: body sample budget for candidate prompts
        refine_sample_chars: body sample budget for single-field prompts
    """

    def __init__(self, llm, html_sample_chars: int = 8000, refine_sample_chars: int = 6000):
        self.llm = llm
        self.html_sample_chars = html_sample_chars
        self.refine_sample_chars = refine_sample_chars

    @classmethod
    def from_config(cls, llm, cfg: Config) -> "CandidateProposer":
        return cls(llm, html_sample_chars=cfg.html_sample_chars, refine_sample_chars=cfg.refine_sample_chars)

    def heuristic(self, fields: Sequence[str]) -> Candidate:
        return heuristic_candidate(fields)

    def fallback(self, fields: Sequence[str]) -> Candidate:
        """Generic candidate used when the model answer is unusable"""
        return heuristic_candidate(fields, containers=FALLBACK_CONTAINERS, source="fallback")

    async def propose(
        self,
        html: str,
        fields: Sequence[str],
        attempt_number: int,
        previous: Optional[Attempt] = None,
        fixes: Iterable[CorrectiveFix] = (),
    ) -> Candidate:
        fixes = set(fixes)
        if attempt_number == 1 and CorrectiveFix.ALTERNATIVE_SELECTORS not in fixes:
            logger.debug("Attempt 1: heuristic candidate")
            return self.heuristic(fields)
        return await self.generate(html, fields, previous=previous, fixes=fixes)

    async def generate(
        self,
        html: str,
        fields: Sequence[str],
        previous: Optional[Attempt] = None,
        fixes: Iterable[CorrectiveFix] = (),
    ) -> Candidate:
        fixes = set(fixes)
        prompt = self.build_prompt(sample_html(html, self.html_sample_chars), fields, previous, fixes)
        text = await self._invoke(prompt)
        candidate = parse_candidate_response(text, fields, fixes)
        logger.info(f"🧠 Model proposed container '{candidate.container_selector}'")
        return candidate

    async def propose_field_selector(self, html: str, feedback: FieldFeedback, current_selector: str = "") -> str:
        """
        Ask the model for one field's selector, guided by operator notes.

        Raises:
            GenerationError: transport failure or no <selector> tag in the answer
        """
        prompt = self.build_field_prompt(
            sample_html(html, self.refine_sample_chars), feedback, current_selector
        )
        text = await self._invoke(prompt)
        m = SELECTOR_BLOCK.search(text or "")
        selector = m.group(1).strip().strip("`'\"") if m else ""
        if not selector:
            raise GenerationError(f"No <selector> found in model response for '{feedback.field}'", text or "")
        return selector

    async def _invoke(self, prompt: str) -> str:
        try:
            response = await self.llm.ainvoke(prompt)
        except asyncio.TimeoutError as e:
            raise GenerationError(f"Model request timeout after {getattr(self.llm, 'timeout', '?')}s") from e
        except aiohttp.ClientError as e:
            raise GenerationError(f"Model request failed: {e}") from e
        except ValueError as e:
            raise GenerationError(f"Model response JSON parse error: {e}") from e
        if isinstance(response, dict):
            return str(response.get("text") or "")
        return str(getattr(response, "content", response) or "")

    def build_prompt(
        self,
        html_sample: str,
        fields: Sequence[str],
        previous: Optional[Attempt] = None,
        fixes: Iterable[CorrectiveFix] = (),
    ) -> str:
        fixes = set(fixes)
        field_lines = "\n".join(f"- {f}" for f in fields)
        example_fields = ", ".join(f'"{f}": ".{slugify_field(f)}"' for f in list(fields)[:3])

        rules = [
            "containerSelector must match ONE element per record (one row / card / event).",
            "Each field selector is evaluated INSIDE a container element.",
            "Fields whose name contains 'url' read the href attribute; all others read text.",
            "Use selectors that exist in the HTML below. Never invent class names.",
        ]
        if CorrectiveFix.ALTERNATIVE_SELECTORS in fixes:
            rules.append(
                "The common container patterns did not match this page. Give containerSelector as a "
                "comma-separated list of 2-4 ALTERNATIVE selectors, most specific first."
            )
        if CorrectiveFix.QUOTE_FIELD_NAMES in fixes:
            rules.append("Quote EVERY key with double quotes, including names with hyphens or underscores.")
        if CorrectiveFix.CLEAN_LLM_JSON in fixes:
            rules.append("Plain JSON only: no comments, no trailing commas, no text inside the block.")
        rule_lines = "\n".join(f"{i}. {r}" for i, r in enumerate(rules, 1))

        prompt = f"""You are a web scraping expert. Find CSS selectors that extract these fields from the page:
{field_lines}

RULES:
{rule_lines}

HTML (body, truncated):
```html
{html_sample}
```
"""
        if previous is not None:
            prompt += f"""
PREVIOUS ATTEMPT #{previous.attempt_number} FAILED - improve on it, do not repeat it.
Selectors used:
```json
{json.dumps(previous.candidate.to_dict(), indent=2)}
```
Error: {previous.generation_error or previous.error or 'none'}
Items extracted: {previous.item_count}
Missing fields: {', '.join(previous.missing_fields) or 'none'}
"""
        prompt += f"""
Answer with ONE fenced JSON block and nothing else:
```json
{{"containerSelector": "div.event", "fields": {{{example_fields}}}}}
```
"""
        return prompt

    def build_field_prompt(self, html_sample: str, feedback: FieldFeedback, current_selector: str = "") -> str:
        expected = ", ".join(f'"{v}"' for v in feedback.expected_values) or "not given"
        return f"""You are a web scraping expert. Find ONE CSS selector for the field "{feedback.field}".
The selector is evaluated inside each record's container element.

Problem reported: {feedback.issue.value}
Operator notes: {feedback.notes or 'none'}
Example values: {expected}
Current selector: {current_selector or 'none'}

HTML (body, truncated):
```html
{html_sample}
```

Reply with the selector wrapped in tags, for example: <selector>.meeting-time</selector>
"""
