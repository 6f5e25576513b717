#!/usr/bin/env python3
"""
Snapshot fetcher.

One plain GET per session. The document is reused, unchanged, by every
attempt of both loops; any failure here ends the session.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import aiohttp

from .config import Config
from .errors import SnapshotError
from .extraction import parse_html

logger = logging.getLogger(__name__)

SPA_MOUNT_PATTERN = re.compile(r'<div[^>]+id=["\'](?:root|app|__next|__nuxt)["\'][^>]*>\s*</div>', re.I)


@dataclass(frozen=True)
class Snapshot:
    url: str
    html: str
    status: int
    fetched_at: str
    looks_js_rendered: bool = False


def looks_js_rendered(html: str) -> bool:
    """Heuristic: very little visible text but script-heavy or an empty SPA mount point"""
    if SPA_MOUNT_PATTERN.search(html or ""):
        return True
    soup = parse_html(html)
    scripts = len(soup.find_all("script"))
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    body = soup.body or soup
    visible = body.get_text(" ", strip=True)
    return len(visible) < 200 and scripts >= 3


async def fetch_snapshot(url: str, cfg: Config, session: Optional[aiohttp.ClientSession] = None) -> Snapshot:
    """
    Fetch the HTML snapshot for a session.

    Raises:
        SnapshotError: non-2xx, transport failure, timeout, or a document
            shorter than cfg.min_snapshot_chars
    """
    headers = {"User-Agent": cfg.user_agent, "Accept": "text/html,application/xhtml+xml"}
    timeout_obj = aiohttp.ClientTimeout(total=cfg.snapshot_timeout)
    own_session = session is None
    if own_session:
        session = aiohttp.ClientSession(timeout=timeout_obj)
    try:
        async with session.get(url, headers=headers, timeout=timeout_obj, allow_redirects=True) as resp:
            status = resp.status
            if status < 200 or status >= 300:
                raise SnapshotError(f"HTTP {status} fetching {url}", url=url, status=status)
            html = await resp.text(errors="replace")
    except asyncio.TimeoutError as e:
        raise SnapshotError(f"Snapshot fetch timeout after {cfg.snapshot_timeout:.0f}s: {url}", url=url) from e
    except aiohttp.ClientError as e:
        raise SnapshotError(f"Snapshot fetch failed for {url}: {e}", url=url) from e
    finally:
        if own_session:
            await session.close()

    if len(html.strip()) < cfg.min_snapshot_chars:
        raise SnapshotError(
            f"Snapshot too small ({len(html.strip())} chars, need {cfg.min_snapshot_chars}): {url}",
            url=url,
            status=status,
        )

    logger.info(f"📥 Snapshot fetched: {url} ({len(html)} chars, HTTP {status})")
    return Snapshot(
        url=url,
        html=html,
        status=status,
        fetched_at=datetime.now().isoformat(),
        looks_js_rendered=looks_js_rendered(html),
    )
