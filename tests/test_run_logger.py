from scrapesynth_core.models import Attempt, Candidate, FailureType
from scrapesynth_logs import LogConfig, RunLogger, create_run_logger


class TestRunLogger:
    """Markdown run log output"""

    def test_header(self, tmp_path):
        logger = RunLogger("https://example.gov", ["date", "time"], task="meetings", log_dir=str(tmp_path), session_id="s1")
        content = (tmp_path / "run-s1.md").read_text(encoding="utf-8")
        assert logger.log_path.endswith("run-s1.md")
        assert "- **URL**: https://example.gov" in content
        assert "- **Fields**: date, time" in content
        assert "- **Task**: meetings" in content

    def test_attempt_rows_share_a_table(self, tmp_path):
        logger = RunLogger("https://example.gov", ["date"], log_dir=str(tmp_path), session_id="s2")
        logger.log_heading("Supervisor iteration 1")
        failed = Attempt(1, Candidate(".event", {"date": ".date"}), error="No container matched", error_type=FailureType.NO_ITEMS, missing_fields=["date"])
        passed = Attempt(2, Candidate(".meeting", {"date": ".date"}, source="llm"), matched_container=".meeting", items=[{"date": "Jan 5"}])
        logger.log_attempt(failed)
        logger.log_attempt(passed)
        logger.finalize(success=True, duration_ms=40, result={"itemCount": 1})

        content = (tmp_path / "run-s2.md").read_text(encoding="utf-8")
        assert content.count("| # | Source |") == 1
        assert "| 1 | heuristic | `.event` | 0 | date | NO_ITEMS |" in content
        assert "| 2 | llm | `.meeting` | 1 | - | ✅ |" in content
        assert "**Status:** ✅ VALIDATED" in content
        assert "**itemCount:** 1" in content
        assert "- [Supervisor iteration 1](#supervisor-iteration-1)" in content
        assert "TOC_PLACEHOLDER" not in content

    def test_create_run_logger(self, tmp_path):
        logger = create_run_logger("https://example.gov", ["date"], log_dir=str(tmp_path))
        assert logger.path.exists()


class TestLogConfig:
    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCRAPESYNTH_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("SCRAPESYNTH_RUN_LOGS", "false")
        cfg = LogConfig.from_env()
        assert cfg.log_dir == str(tmp_path)
        assert cfg.run_logs is False
        assert cfg.get_log_path("abc").endswith("run-abc.md")
