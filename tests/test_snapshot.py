"""
Snapshot fetch tests. HTTP is mocked at the aiohttp session level.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from scrapesynth_core.config import Config
from scrapesynth_core.errors import SnapshotError
from scrapesynth_core.snapshot import fetch_snapshot, looks_js_rendered


def _session(status=200, text="", exc=None):
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)

    ctx = MagicMock()
    if exc is not None:
        ctx.__aenter__ = AsyncMock(side_effect=exc)
    else:
        ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.get = MagicMock(return_value=ctx)
    return session


class TestLooksJsRendered:
    def test_empty_mount_point(self):
        assert looks_js_rendered('<html><body><div id="root"></div><script src="a.js"></script></body></html>')

    def test_script_heavy_without_text(self):
        html = "<html><body><p>Loading</p>" + "<script>x()</script>" * 4 + "</body></html>"
        assert looks_js_rendered(html)

    def test_static_page(self, meetings_html):
        assert not looks_js_rendered(meetings_html)


class TestFetchSnapshot:
    @pytest.mark.asyncio
    async def test_success(self, meetings_html):
        session = _session(200, meetings_html)
        snapshot = await fetch_snapshot("https://example.gov", Config(), session=session)
        assert snapshot.html == meetings_html
        assert snapshot.status == 200
        assert snapshot.looks_js_rendered is False
        headers = session.get.call_args.kwargs["headers"]
        assert "Mozilla" in headers["User-Agent"]

    @pytest.mark.asyncio
    async def test_non_2xx(self):
        with pytest.raises(SnapshotError) as exc:
            await fetch_snapshot("https://example.gov", Config(), session=_session(404, "not found"))
        assert exc.value.status == 404

    @pytest.mark.asyncio
    async def test_too_small(self):
        with pytest.raises(SnapshotError, match="too small"):
            await fetch_snapshot("https://example.gov", Config(min_snapshot_chars=100), session=_session(200, "<p>hi</p>"))

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(SnapshotError, match="timeout"):
            await fetch_snapshot("https://example.gov", Config(), session=_session(exc=asyncio.TimeoutError()))

    @pytest.mark.asyncio
    async def test_transport_error(self):
        with pytest.raises(SnapshotError, match="failed"):
            await fetch_snapshot("https://example.gov", Config(), session=_session(exc=aiohttp.ClientConnectionError("refused")))
