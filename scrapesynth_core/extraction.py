"""
Declarative extraction: run a Candidate against an HTML document.

This is what the sandbox executes. For each element matched by the
container selector it reads every field selector relative to that
element, then drops records that look like noise:

- every field empty
- all non-empty values identical (selectors collapsed onto one node)
- the fields mostly echo their own names (selectors hit label text)
- fewer than half (rounded) of the fields populated
"""

import math
import re
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag
from soupsieve import SelectorSyntaxError

from .errors import SelectorError
from .models import Candidate

# With fewer fields than this, a single echoing field rejects the record
ECHO_MIN_FIELDS = 3


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def split_selector_list(selector: str) -> List[str]:
    """Split 'a, b[x="1,2"], c' on top-level commas only"""
    parts: List[str] = []
    buf: List[str] = []
    depth = 0
    quote = ""
    for ch in selector or "":
        if quote:
            buf.append(ch)
            if ch == quote:
                quote = ""
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]" and depth > 0:
            depth -= 1
        elif ch == "," and depth == 0:
            part = "".join(buf).strip()
            if part:
                parts.append(part)
            buf = []
            continue
        buf.append(ch)
    tail = "".join(buf).strip()
    if tail:
        parts.append(tail)
    return parts


def match_container(soup: BeautifulSoup, container_selector: str) -> Tuple[str, List[Tag]]:
    """
    Return the first alternative that matches at least one element.

    Alternatives that fail to parse are skipped rather than fatal; an
    empty string means nothing matched.
    """
    for alternative in split_selector_list(container_selector):
        try:
            elements = soup.select(alternative)
        except (SelectorSyntaxError, NotImplementedError):
            # unparseable or pseudo-element (::text, ::attr) alternatives
            continue
        if elements:
            return alternative, elements
    return "", []


def is_url_field(field_name: str) -> bool:
    return "url" in field_name.lower()


def _normalise(text: str) -> str:
    return re.sub(r"[\s_\-]+", " ", text.lower()).strip()


def read_field(container: Tag, field_name: str, selector: str) -> str:
    """Read one field relative to a container element"""
    selector = (selector or "").strip()
    if not selector or selector in (":self", ":scope"):
        node: Optional[Tag] = container
    else:
        try:
            node = container.select_one(selector)
        except (SelectorSyntaxError, NotImplementedError) as e:
            raise SelectorError(selector, str(e)) from e
    if node is None:
        return ""

    if is_url_field(field_name):
        href = node.get("href")
        if not href:
            link = node.find("a", href=True)
            href = link.get("href") if link is not None else ""
        return str(href or "").strip()

    return node.get_text(" ", strip=True)


def echo_count(record: Dict[str, str]) -> int:
    """How many fields contain their own field name in their value"""
    count = 0
    for name, value in record.items():
        name_text = _normalise(name)
        if name_text and value and name_text in _normalise(value):
            count += 1
    return count


def rejection_reason(record: Dict[str, str]) -> Optional[str]:
    """Why a record should be dropped, or None to keep it"""
    total = len(record)
    if total == 0:
        return "no fields"

    populated = [v for v in record.values() if v]
    if not populated:
        return "all fields empty"

    if len(populated) >= 2 and len(set(populated)) == 1:
        return "all populated fields share one value"

    echoes = echo_count(record)
    echo_threshold = 1 if total < ECHO_MIN_FIELDS else total // 2 + 1
    if echoes >= echo_threshold:
        return "fields echo their own names"

    # Half of the fields, rounded half-up
    needed = math.floor(total / 2 + 0.5)
    if len(populated) < needed:
        return f"only {len(populated)}/{total} fields populated"

    return None


def extract_records(html: str, candidate: Candidate) -> Tuple[str, int, List[Dict[str, str]]]:
    """
    Run a candidate over an HTML document.

    Returns (matched container alternative, number of container
    elements, accepted records).
    """
    soup = parse_html(html)
    matched, containers = match_container(soup, candidate.container_selector)
    records: List[Dict[str, str]] = []
    for container in containers:
        record = {
            name: read_field(container, name, selector)
            for name, selector in candidate.field_selectors.items()
        }
        if rejection_reason(record) is None:
            records.append(record)
    return matched, len(containers), records
