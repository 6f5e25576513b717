import json
from unittest.mock import AsyncMock, MagicMock, patch

from scrapesynth_core.cli import main
from scrapesynth_core.errors import SnapshotError
from scrapesynth_core.models import Candidate, SynthesisResult, WorkerResult


def _result(validated=True):
    worker = WorkerResult(
        validated=validated,
        candidate=Candidate(".meeting", {"date": ".date"}),
        code="def scrape(): ...",
        item_count=3,
        missing_fields=[],
        field_coverage=100,
        sample_items=[{"date": "Jan 5"}],
        attempts=1,
    )
    return SynthesisResult(result=worker, supervisor_iterations=1, applied_fixes=(), html="<html></html>", total_attempts=1)


def _patched_synthesizer(**kwargs):
    synth = MagicMock()
    synth.synthesize = AsyncMock(**kwargs)
    return patch("scrapesynth_core.synthesizer.ScraperSynthesizer", return_value=synth)


class TestCli:
    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_synthesize_prints_scraper(self, capsys):
        with _patched_synthesizer(return_value=_result()):
            code = main(["synthesize", "https://example.gov", "-f", "date", "--no-run-log", "-q"])
        out = capsys.readouterr()
        assert code == 0
        assert "def scrape(): ..." in out.out
        assert "validated" in out.err

    def test_synthesize_json(self, capsys):
        with _patched_synthesizer(return_value=_result(validated=False)):
            code = main(["synthesize", "https://example.gov", "-f", "date", "--json", "-q"])
        payload = json.loads(capsys.readouterr().out)
        assert code == 1
        assert payload["validated"] is False
        assert "html" not in payload

    def test_fatal_error(self):
        with _patched_synthesizer(side_effect=SnapshotError("HTTP 404 fetching https://example.gov", status=404)):
            assert main(["synthesize", "https://example.gov", "-f", "date", "-q"]) == 2
