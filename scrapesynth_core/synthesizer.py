#!/usr/bin/env python3
import logging
import time
from dataclasses import replace
from typing import Any, Dict, Optional, Sequence

from scrapesynth_logs import LogConfig, create_run_logger

from .config import Config, config as default_config
from .errors import RequestValidationError, SnapshotError
from .llm import SimpleOllama
from .models import Candidate, FieldFeedback, SynthesisResult, WorkerResult, worker_result_payload
from .progress import ProgressEmitter
from .proposer import CandidateProposer
from .refinement import refine_candidate
from .sandbox import create_sandbox
from .snapshot import fetch_snapshot
from .supervisor import run_supervisor_loop
from .tester import CandidateTester

logger = logging.getLogger(__name__)


class ScraperSynthesizer:
    """
    One object per process; each synthesize()/refine() call is an
    independent session with its own snapshot and supervisor state.

    Usage:
        synth = ScraperSynthesizer()
        result = await synth.synthesize(url, ["date", "time", "location"])
        print(result.to_payload()["output"])
    """

    def __init__(self, cfg: Optional[Config] = None, llm=None, sandbox=None, log_config: Optional[LogConfig] = None):
        self.config = cfg or default_config
        self.llm = llm or SimpleOllama.from_config(self.config)
        self.sandbox = sandbox or create_sandbox(self.config)
        self.proposer = CandidateProposer.from_config(self.llm, self.config)
        self.tester = CandidateTester(self.sandbox)
        self.log_config = log_config or replace(
            LogConfig.from_env(), log_dir=str(self.config.log_dir), run_logs=self.config.run_logs
        )

    def _run_logger(self, url: str, fields: Sequence[str], task: Optional[str]):
        if not self.log_config.run_logs:
            return None
        return create_run_logger(url, fields, task=task, log_dir=self.log_config.log_dir)

    async def synthesize(
        self,
        url: str,
        fields: Sequence[str],
        progress: Optional[ProgressEmitter] = None,
        task: Optional[str] = None,
    ) -> SynthesisResult:
        """
        Full session: fetch snapshot once, then run the supervisor loop.

        Raises:
            RequestValidationError: missing URL or empty field list
            SnapshotError: the snapshot could not be fetched
        """
        progress = progress or ProgressEmitter(None)
        if not url:
            raise RequestValidationError("Target URL is required")
        fields = [f for f in fields if f]
        if not fields:
            raise RequestValidationError("At least one required field is needed")

        start = time.time()
        progress.info(f"🌐 Fetching {url}...")
        snapshot = await fetch_snapshot(url, self.config)
        progress.success(f"📥 Snapshot fetched ({len(snapshot.html)} chars)", htmlSize=len(snapshot.html))
        if snapshot.looks_js_rendered:
            progress.warning("⚠️ Page looks JavaScript-rendered; static selectors may find nothing")

        run_logger = self._run_logger(url, fields, task)
        if run_logger:
            logger.info(f"📝 Run log: {run_logger.log_path}")
            if snapshot.looks_js_rendered:
                run_logger.log_warning("Snapshot looks JavaScript-rendered; static selectors may find nothing")

        result = await run_supervisor_loop(
            url, snapshot.html, fields, self.proposer, self.tester,
            progress=progress,
            run_logger=run_logger,
            max_iterations=self.config.max_supervisor_iterations,
            max_worker_attempts=self.config.max_worker_attempts,
            js_rendered=snapshot.looks_js_rendered,
        )

        duration_ms = int((time.time() - start) * 1000)
        if run_logger:
            run_logger.log_heading("Final candidate")
            run_logger.log_json(result.result.candidate.to_dict(), title="Candidate")
            if self.log_config.include_code:
                run_logger.log_code("python", result.result.code)
            run_logger.finalize(
                success=result.validated,
                duration_ms=duration_ms,
                error=None if result.validated else (result.result.diagnostics or {}).get("lastError"),
                result={
                    "itemCount": result.result.item_count,
                    "fieldCoverage": f"{result.result.field_coverage}%",
                    "totalAttempts": result.total_attempts,
                    "supervisorIterations": result.supervisor_iterations,
                },
            )

        if result.validated:
            logger.info(f"✅ Synthesized scraper for {url} in {duration_ms}ms ({result.total_attempts} attempts)")
        else:
            logger.warning(f"⚠️ Best-effort scraper for {url}: {result.result.field_coverage}% coverage")
        return result

    async def refine(
        self,
        url: str,
        fields: Sequence[str],
        feedback: Sequence[FieldFeedback],
        original_code: str = "",
        html: str = "",
        candidate: Optional[Candidate] = None,
        progress: Optional[ProgressEmitter] = None,
    ) -> WorkerResult:
        """
        One refinement attempt. Fetches a snapshot only if the caller did
        not pass back the html from the previous session.
        """
        progress = progress or ProgressEmitter(None)
        if not fields:
            raise RequestValidationError("At least one required field is needed")
        if not html:
            progress.info(f"🌐 No cached HTML, fetching {url}...")
            html = (await fetch_snapshot(url, self.config)).html

        progress.info(f"🔁 Refining scraper with feedback for {len(feedback)} field(s)")
        return await refine_candidate(
            original_code, url, feedback, fields, html, self.proposer, self.tester,
            original_candidate=candidate,
            progress=progress,
        )


async def synthesize_and_report(
    synthesizer: ScraperSynthesizer,
    url: str,
    fields: Sequence[str],
    progress: ProgressEmitter,
    task: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Run a session and finish the event stream: exactly one terminal
    `complete` or `error` event.
    """
    try:
        result = await synthesizer.synthesize(url, fields, progress=progress, task=task)
    except (RequestValidationError, SnapshotError) as e:
        logger.error(f"❌ Synthesis aborted: {e}")
        progress.error(str(e), fatal=True)
        return None
    payload = result.to_payload()
    progress.complete(payload, message="Scraper validated" if result.validated else "Best-effort scraper (not validated)")
    return payload


async def refine_and_report(
    synthesizer: ScraperSynthesizer,
    request,
    progress: ProgressEmitter,
) -> Optional[Dict[str, Any]]:
    """Single-event variant for the refinement path; intermediate progress is not forwarded"""
    try:
        html = request.html or (await fetch_snapshot(request.url, synthesizer.config)).html
        result = await synthesizer.refine(
            request.url, request.fields, request.feedback,
            original_code=request.original_code,
            html=html,
            candidate=request.candidate,
        )
    except (RequestValidationError, SnapshotError) as e:
        logger.error(f"❌ Refinement aborted: {e}")
        progress.error(str(e), fatal=True)
        return None
    payload = worker_result_payload(result, html=html)
    progress.complete(payload, message="Refinement validated" if result.validated else "Refinement incomplete")
    return payload
