from unittest.mock import AsyncMock, patch

import pytest

from scrapesynth_core.config import Config
from scrapesynth_core.errors import RequestValidationError
from scrapesynth_core.sandbox import LocalSandbox
from scrapesynth_core.snapshot import Snapshot
from scrapesynth_core.synthesizer import ScraperSynthesizer
from scrapesynth_logs import LogConfig

URL = "https://example.gov/meetings"


@pytest.fixture
def synth(mock_llm, tmp_path):
    return ScraperSynthesizer(
        Config(log_dir=tmp_path),
        llm=mock_llm,
        sandbox=LocalSandbox(timeout=10),
        log_config=LogConfig(log_dir=str(tmp_path), run_logs=True),
    )


class TestScraperSynthesizer:
    @pytest.mark.asyncio
    async def test_session_writes_run_log(self, synth, tmp_path, meetings_html, fields):
        snapshot = Snapshot(url=URL, html=meetings_html, status=200, fetched_at="now")
        with patch("scrapesynth_core.synthesizer.fetch_snapshot", AsyncMock(return_value=snapshot)) as fetch:
            result = await synth.synthesize(URL, fields)

        assert result.validated is True
        fetch.assert_awaited_once()
        logs = list(tmp_path.glob("run-*.md"))
        assert len(logs) == 1
        content = logs[0].read_text(encoding="utf-8")
        assert "## Final candidate" in content
        assert "```python" in content
        assert "**Status:** ✅ VALIDATED" in content

    @pytest.mark.asyncio
    async def test_requires_fields(self, synth):
        with pytest.raises(RequestValidationError):
            await synth.synthesize(URL, [])

    @pytest.mark.asyncio
    async def test_requires_url(self, synth, fields):
        with pytest.raises(RequestValidationError):
            await synth.synthesize("", fields)

    @pytest.mark.asyncio
    async def test_refine_fetches_when_html_missing(self, synth, meetings_html):
        snapshot = Snapshot(url=URL, html=meetings_html, status=200, fetched_at="now")
        with patch("scrapesynth_core.synthesizer.fetch_snapshot", AsyncMock(return_value=snapshot)) as fetch:
            result = await synth.refine(URL, ["date"], [], original_code="CONTAINER_SELECTOR = \".meeting\"")
        fetch.assert_awaited_once()
        assert result.validated is True
        assert result.candidate.field_selectors == {"date": ".date"}

    @pytest.mark.asyncio
    async def test_log_settings_from_environment(self, monkeypatch, mock_llm, tmp_path, meetings_html, fields):
        """Run-log options not covered by Config come from SCRAPESYNTH_LOG_* variables"""
        monkeypatch.setenv("SCRAPESYNTH_LOG_INCLUDE_CODE", "false")
        synth = ScraperSynthesizer(Config(log_dir=tmp_path, run_logs=True), llm=mock_llm, sandbox=LocalSandbox(timeout=10))
        assert synth.log_config.include_code is False
        assert synth.log_config.log_dir == str(tmp_path)

        snapshot = Snapshot(url=URL, html=meetings_html, status=200, fetched_at="now")
        with patch("scrapesynth_core.synthesizer.fetch_snapshot", AsyncMock(return_value=snapshot)):
            await synth.synthesize(URL, fields)
        content = next(tmp_path.glob("run-*.md")).read_text(encoding="utf-8")
        assert "## Final candidate" in content
        assert "```python" not in content
