"""
Tests for the candidate tester and the sandboxes it runs candidates in.
"""

import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from scrapesynth_core.error_classifier import classify_error
from scrapesynth_core.models import Candidate, FailureType
from scrapesynth_core.sandbox import LocalSandbox, RemoteSandbox, SandboxResult, create_sandbox
from scrapesynth_core.config import Config
from scrapesynth_core.tester import CandidateTester

GOOD = Candidate(".event, .meeting", {"date": ".date", "time": ".time", "location": ".location"})


class TestCandidateTester:
    @pytest.mark.asyncio
    async def test_success_narrows_container(self, tester, meetings_html):
        outcome = await tester.test(GOOD, meetings_html, "https://example.gov")
        assert outcome.success is True
        assert outcome.matched_container == ".meeting"
        assert outcome.candidate.container_selector == ".meeting"
        assert len(outcome.items) == 3
        assert 'CONTAINER_SELECTOR = ".meeting"' in outcome.code

    @pytest.mark.asyncio
    async def test_no_container(self, tester, meetings_html):
        outcome = await tester.test(Candidate(".event, article", {"date": ".date"}), meetings_html, "https://example.gov")
        assert outcome.success is False
        assert outcome.items == []
        assert classify_error(outcome.error) == FailureType.NO_ITEMS
        assert outcome.code

    @pytest.mark.asyncio
    async def test_all_records_rejected(self, tester, meetings_html):
        outcome = await tester.test(Candidate(".meeting", {"date": ".nope", "time": ".nope"}), meetings_html, "https://example.gov")
        assert outcome.success is False
        assert "itemCount: 0" in outcome.error
        assert classify_error(outcome.error) == FailureType.NO_ITEMS

    @pytest.mark.asyncio
    async def test_invalid_field_selector(self, tester, meetings_html):
        outcome = await tester.test(Candidate(".meeting", {"date": "span[["}), meetings_html, "https://example.gov")
        assert outcome.success is False
        assert classify_error(outcome.error) == FailureType.SYNTAX_ERROR

    @pytest.mark.asyncio
    async def test_pseudo_element_field_selector(self, tester, meetings_html):
        """Scrapy-style ::text selectors fail the attempt instead of raising"""
        outcome = await tester.test(Candidate(".meeting", {"date": "span.date::text"}), meetings_html, "https://example.gov")
        assert outcome.success is False
        assert classify_error(outcome.error) == FailureType.SYNTAX_ERROR

    @pytest.mark.asyncio
    async def test_pseudo_element_container_alternative(self, tester, meetings_html):
        candidate = Candidate("div.meeting::before, div.meeting", {"date": ".date", "time": ".time"})
        outcome = await tester.test(candidate, meetings_html, "https://example.gov")
        assert outcome.success is True
        assert outcome.matched_container == "div.meeting"

    @pytest.mark.asyncio
    async def test_sandbox_failure_is_reported(self, meetings_html):
        sandbox = MagicMock()
        sandbox.run = AsyncMock(return_value=SandboxResult(success=False, error="Execution timeout (30000ms)"))
        outcome = await CandidateTester(sandbox).test(GOOD, meetings_html, "https://example.gov")
        assert outcome.success is False
        assert classify_error(outcome.error) == FailureType.TIMEOUT_ERROR
        sandbox.run.assert_awaited_once()


class TestLocalSandbox:
    @pytest.mark.asyncio
    async def test_runs_extraction(self, meetings_html):
        result = await LocalSandbox().run(Candidate(".meeting", {"date": ".date"}), meetings_html, "https://example.gov")
        assert result.success is True
        assert [item["date"] for item in result.items] == ["Jan 5, 2026", "Feb 2, 2026", "Mar 2, 2026"]
        assert result.logs

    @pytest.mark.asyncio
    async def test_timeout(self, meetings_html):
        def slow(*args):
            time.sleep(0.5)
            return "", 0, []

        with patch("scrapesynth_core.sandbox.extract_records", side_effect=slow):
            result = await LocalSandbox(timeout=0.05).run(GOOD, meetings_html, "https://example.gov")
        assert result.success is False
        assert result.error == "Execution timeout (50ms)"


class TestRemoteSandbox:
    """Response parsing for the external execution service"""

    def test_success(self):
        result = RemoteSandbox._from_response(
            {"success": True, "result": [{"date": "Jan 5", "time": None}], "logs": ["ok"]}, time.time()
        )
        assert result.success is True
        assert result.items == [{"date": "Jan 5", "time": ""}]
        assert result.logs == ["ok"]

    def test_error(self):
        result = RemoteSandbox._from_response({"success": False, "error": "Cannot find module 'x'"}, time.time())
        assert result.success is False
        assert classify_error(result.error) == FailureType.DEPENDENCY_ERROR

    def test_malformed(self):
        assert RemoteSandbox._from_response("oops", time.time()).success is False
        assert RemoteSandbox._from_response({"success": True, "result": "x"}, time.time()).success is False

    def test_create_sandbox(self):
        assert isinstance(create_sandbox(Config(sandbox_url="")), LocalSandbox)
        remote = create_sandbox(Config(sandbox_url="http://sandbox:8080/"))
        assert isinstance(remote, RemoteSandbox)
        assert remote.base_url == "http://sandbox:8080"
