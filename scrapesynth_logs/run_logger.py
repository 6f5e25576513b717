"""
Run Logger - Markdown run log for one synthesis session

Provides:
- Table of Contents (rendered on finalize)
- One section per supervisor iteration
- One table row per attempt
- The final candidate and generated scraper as code blocks
- A summary with status and duration
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence


class RunLogger:
    """
    Markdown run logger for step-by-step diagnostics of a synthesis session.

    Usage:
        logger = RunLogger(
            url="https://example.gov/calendar",
            fields=["date", "time", "location"],
        )

        logger.log_heading("Supervisor iteration 1")
        logger.log_attempt(attempt)
        logger.finalize(success=True, duration_ms=5400)
    """

    ATTEMPT_HEADERS = ["#", "Source", "Container", "Items", "Missing", "Error type"]

    def __init__(
        self,
        url: Optional[str],
        fields: Sequence[str] = (),
        task: Optional[str] = None,
        log_dir: str = "./logs",
        session_id: Optional[str] = None
    ):
        """
        Initialize the run logger.

        Args:
            url: Target URL
            fields: Required field names
            task: Free-text task description, when the request had one
            log_dir: Directory for log files
            session_id: Optional session ID (auto-generated if not provided)
        """
        self.session_id = session_id or datetime.now().strftime('%Y%m%d-%H%M%S-%f')
        self.dir = Path(log_dir)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.path = self.dir / f'run-{self.session_id}.md'

        self._toc_placeholder = "<!-- TOC_PLACEHOLDER -->"
        self._toc: List[tuple] = []  # (title, anchor)
        self._table_open = False

        with open(self.path, 'w', encoding='utf-8') as f:
            f.write(f"# scrapesynth Run Log ({self.session_id})\n\n")
            f.write("## Navigation\n\n")
            f.write(self._toc_placeholder + "\n\n")
            if url:
                f.write(f"- **URL**: {url}\n")
            if fields:
                f.write(f"- **Fields**: {', '.join(fields)}\n")
            if task:
                f.write(f"- **Task**: {task}\n")
            f.write("\n")

    def _write(self, text: str):
        """Append text to log file"""
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(text)

    def _close_table(self):
        if self._table_open:
            self._write("\n")
            self._table_open = False

    def log_heading(self, text: str):
        """Log a section heading with TOC entry"""
        self._close_table()
        anchor = self._slugify(text)
        self._write("\n---\n\n")
        self._write(f"## {text}\n\n")
        self._toc.append((text, anchor))

    def log_text(self, text: str):
        """Log a paragraph of text"""
        self._close_table()
        self._write(f"{text}\n\n")

    def log_kv(self, key: str, value: str):
        """Log a key-value pair"""
        self._close_table()
        self._write(f"- {key}: {value}\n")

    def log_code(self, lang: str, code: str):
        """Log a code block"""
        self._close_table()
        self._write(f"```{lang}\n{code}\n```\n\n")

    def log_json(self, data: Any, title: str = "Data"):
        """Log JSON data"""
        self._close_table()
        self._write(f"### {title}\n\n")
        self._write(f"```json\n{json.dumps(data, indent=2, ensure_ascii=False)}\n```\n\n")

    def log_attempt(self, attempt):
        """
        Append one attempt as a table row; consecutive attempts share a table.

        Args:
            attempt: scrapesynth_core.models.Attempt
        """
        if not self._table_open:
            self._write("| " + " | ".join(self.ATTEMPT_HEADERS) + " |\n")
            self._write("|" + "|".join("---" for _ in self.ATTEMPT_HEADERS) + "|\n")
            self._table_open = True
        container = attempt.matched_container or attempt.candidate.container_selector
        container = container[:40] + ("..." if len(container) > 40 else "")
        missing = ", ".join(attempt.missing_fields) or "-"
        error_type = attempt.error_type.value if attempt.error_type else ("✅" if attempt.succeeded else "-")
        cells = [
            str(attempt.attempt_number),
            attempt.candidate.source,
            f"`{container}`",
            str(attempt.item_count),
            missing,
            error_type,
        ]
        self._write("| " + " | ".join(c.replace("|", "\\|") for c in cells) + " |\n")

    def log_warning(self, message: str):
        """Log a warning message"""
        self.log_text(f"⚠️ **WARNING:** {message}")

    def finalize(self, success: bool, duration_ms: int = 0, error: Optional[str] = None, result: Optional[Dict[str, Any]] = None):
        """
        Finalize the log with summary and render the table of contents.

        Args:
            success: Whether the session validated
            duration_ms: Total execution time
            error: Error message if the session failed
            result: Optional summary fields (itemCount, fieldCoverage, ...)
        """
        self._close_table()
        self._toc.append(("Summary", "summary"))
        self._write("\n---\n\n")
        self._write("## Summary\n\n")

        status = "✅ VALIDATED" if success else "❌ NOT VALIDATED"
        self._write(f"**Status:** {status}\n")
        self._write(f"**Duration:** {duration_ms}ms\n")
        for key, value in (result or {}).items():
            self._write(f"**{key}:** {value}\n")

        if error:
            self._write(f"\n**Error:** {error}\n")

        self._write("\n")
        self._update_toc()

    # --- Helpers ---
    def _slugify(self, text: str) -> str:
        """Convert text to URL-safe slug"""
        s = text.strip().lower()
        s = re.sub(r"[^a-z0-9\s-]", "", s)
        s = re.sub(r"\s+", "-", s)
        return s

    def _update_toc(self):
        """Replace the TOC placeholder with the collected headings"""
        with open(self.path, 'r', encoding='utf-8') as fr:
            content = fr.read()
        if self._toc:
            toc_md = "\n".join(f"- [{title}](#{anchor})" for title, anchor in self._toc)
        else:
            toc_md = "(no sections)"
        content = content.replace(self._toc_placeholder, toc_md)
        with open(self.path, 'w', encoding='utf-8') as fw:
            fw.write(content)

    @property
    def log_path(self) -> str:
        """Get the path to the log file"""
        return str(self.path)


def create_run_logger(
    url: Optional[str],
    fields: Sequence[str] = (),
    task: Optional[str] = None,
    log_dir: str = "./logs"
) -> RunLogger:
    """Create a new run logger instance"""
    return RunLogger(url=url, fields=fields, task=task, log_dir=log_dir)
