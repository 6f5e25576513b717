"""
Generated scraper source.

Every attempt carries a standalone Python scraper (requests + bs4) built
from its candidate; that source is what the caller receives as `output`.

The recover_* helpers go the other way: a best-effort regex lookup of
selectors in previously generated source. They understand this module's
output and the older cheerio-style scrapers
(`$('<container>').each(...)`, `field: $(el).find('<selector>')`).
When nothing matches they return None and the caller falls back.
"""

import json
import re
from string import Template
from typing import List, Optional, Pattern

from .models import Candidate

SCRAPER_TEMPLATE = Template('''$docstring
import math
import re

import requests
from bs4 import BeautifulSoup

URL = $url_literal
CONTAINER_SELECTOR = $container_literal
FIELD_SELECTORS = {
$field_lines
}


def _norm(text):
    return re.sub(r"[\\s_\\-]+", " ", text.lower()).strip()


def _read(container, name, selector):
    node = container.select_one(selector) if selector not in ("", ":self", ":scope") else container
    if node is None:
        return ""
    if "url" in name.lower():
        href = node.get("href")
        if not href:
            link = node.find("a", href=True)
            href = link.get("href") if link is not None else ""
        return str(href or "").strip()
    return node.get_text(" ", strip=True)


def _keep(record):
    total = len(record)
    populated = [v for v in record.values() if v]
    if not populated:
        return False
    if len(populated) >= 2 and len(set(populated)) == 1:
        return False
    echoes = sum(1 for k, v in record.items() if v and _norm(k) in _norm(v))
    if echoes >= (1 if total < 3 else total // 2 + 1):
        return False
    return len(populated) >= math.floor(total / 2 + 0.5)


def scrape(url=URL):
    resp = requests.get(url, timeout=15)
    resp.raise_for_status()
    soup = BeautifulSoup(resp.text, "html.parser")
    results = []
    for container in soup.select(CONTAINER_SELECTOR):
        record = {name: _read(container, name, sel) for name, sel in FIELD_SELECTORS.items()}
        if _keep(record):
            results.append(record)
    return results


if __name__ == "__main__":
    import json
    print(json.dumps(scrape(), indent=2, ensure_ascii=False))
''')


def render_scraper(candidate: Candidate, url: str) -> str:
    """Render a candidate as standalone scraper source"""
    field_lines = "\n".join(
        f"    {json.dumps(name)}: {json.dumps(selector)},"
        for name, selector in candidate.field_selectors.items()
    )
    return SCRAPER_TEMPLATE.substitute(
        docstring=json.dumps(f"Generated scraper for {url}"),
        url_literal=json.dumps(url),
        container_literal=json.dumps(candidate.container_selector),
        field_lines=field_lines,
    )


_STRING_LITERAL = r'("(?:[^"\\]|\\.)*")'

CONTAINER_PATTERNS: List[Pattern] = [
    re.compile(r'^CONTAINER_SELECTOR\s*=\s*' + _STRING_LITERAL, re.M),
    re.compile(r"\$\(\s*'([^']+)'\s*\)\.each"),
    re.compile(r'\$\(\s*"([^"]+)"\s*\)\.each'),
    re.compile(r'(?:itemSelector|containerSelector)["\']?\s*:\s*["\']([^"\']+)["\']'),
]


def _field_patterns(field_name: str) -> List[Pattern]:
    name = re.escape(field_name)
    return [
        re.compile(r'^\s*"' + name + r'"\s*:\s*' + _STRING_LITERAL, re.M),
        re.compile(r"['\"]?" + name + r"['\"]?\s*:\s*\$\(el\)\.find\(\s*'([^']+)'"),
        re.compile(r"['\"]?" + name + r"['\"]?\s*:\s*\$\(el\)\.find\(\s*\"([^\"]+)\""),
    ]


def _unquote(raw: str) -> str:
    if raw.startswith('"'):
        try:
            return json.loads(raw)
        except ValueError:
            return raw.strip('"')
    return raw


def recover_container_selector(code: str) -> Optional[str]:
    for pattern in CONTAINER_PATTERNS:
        m = pattern.search(code or "")
        if m:
            value = _unquote(m.group(1)).strip()
            if value:
                return value
    return None


def recover_field_selector(code: str, field_name: str) -> Optional[str]:
    for pattern in _field_patterns(field_name):
        m = pattern.search(code or "")
        if m:
            value = _unquote(m.group(1)).strip()
            if value:
                return value
    return None
