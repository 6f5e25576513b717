"""
Execution service for candidates.

Candidates are declarative, so the sandbox receives the candidate itself
(plus the snapshot HTML) instead of generated source text.

    LocalSandbox  - in-process, on a worker thread, bounded by a timeout
    RemoteSandbox - POST to an external execution service

Both return a SandboxResult; neither raises for a failing candidate.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from .config import Config
from .errors import SynthesisError
from .extraction import extract_records
from .models import Candidate

logger = logging.getLogger(__name__)


@dataclass
class SandboxResult:
    """Result of executing one candidate"""
    success: bool
    items: List[Dict[str, str]] = field(default_factory=list)
    error: Optional[str] = None
    logs: List[str] = field(default_factory=list)
    duration_ms: int = 0


class LocalSandbox:
    """Runs extraction on a worker thread so the event loop stays free"""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    async def run(self, candidate: Candidate, html: str, url: str) -> SandboxResult:
        start = time.time()
        logs: List[str] = []
        try:
            matched, container_count, items = await asyncio.wait_for(
                asyncio.to_thread(extract_records, html, candidate),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            return SandboxResult(
                success=False,
                error=f"Execution timeout ({int(self.timeout * 1000)}ms)",
                logs=logs,
                duration_ms=int((time.time() - start) * 1000),
            )
        except (SynthesisError, ValueError, TypeError) as e:
            logger.debug(f"Sandbox execution failed for {url}: {e}")
            return SandboxResult(
                success=False,
                error=str(e),
                logs=logs,
                duration_ms=int((time.time() - start) * 1000),
            )

        logs.append(f"container '{matched}' matched {container_count} elements")
        logs.append(f"{len(items)} records passed quality checks")
        return SandboxResult(
            success=True,
            items=items,
            logs=logs,
            duration_ms=int((time.time() - start) * 1000),
        )


class RemoteSandbox:
    """
    Client for an external execution service.

    Request:  {"candidate": {...}, "html": str, "targetUrl": str, "timeout": ms}
    Response: {"success": bool, "result": [...] | "error": str, "logs": [...]}
    """

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    async def run(self, candidate: Candidate, html: str, url: str) -> SandboxResult:
        start = time.time()
        payload = {
            "candidate": candidate.to_dict(),
            "html": html,
            "targetUrl": url,
            "timeout": int(self.timeout * 1000),
        }
        timeout_obj = aiohttp.ClientTimeout(total=self.timeout + 5)
        try:
            async with aiohttp.ClientSession(timeout=timeout_obj) as session:
                async with session.post(f"{self.base_url}/execute", json=payload) as resp:
                    data = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            return SandboxResult(
                success=False,
                error=f"Execution service timeout after {self.timeout:.0f}s",
                duration_ms=int((time.time() - start) * 1000),
            )
        except (aiohttp.ClientError, ValueError) as e:
            return SandboxResult(
                success=False,
                error=f"Execution service unavailable: {e}",
                duration_ms=int((time.time() - start) * 1000),
            )
        return self._from_response(data, start)

    @staticmethod
    def _from_response(data: Any, start: float) -> SandboxResult:
        duration_ms = int((time.time() - start) * 1000)
        if not isinstance(data, dict):
            return SandboxResult(success=False, error=f"Malformed execution response: {str(data)[:200]}", duration_ms=duration_ms)
        logs = [str(line) for line in (data.get("logs") or [])]
        if not data.get("success"):
            return SandboxResult(success=False, error=str(data.get("error") or "Execution failed"), logs=logs, duration_ms=duration_ms)
        result = data.get("result") if "result" in data else data.get("data")
        if not isinstance(result, list):
            return SandboxResult(success=False, error="Execution result is not a list of items", logs=logs, duration_ms=duration_ms)
        items = [
            {str(k): "" if v is None else str(v) for k, v in item.items()}
            for item in result
            if isinstance(item, dict)
        ]
        return SandboxResult(success=True, items=items, logs=logs, duration_ms=duration_ms)


def create_sandbox(cfg: Config):
    """Remote sandbox when SCRAPESYNTH_SANDBOX_URL is set, in-process otherwise"""
    if cfg.sandbox_url:
        logger.info(f"🧪 Using remote execution service at {cfg.sandbox_url}")
        return RemoteSandbox(cfg.sandbox_url, timeout=cfg.sandbox_timeout)
    return LocalSandbox(timeout=cfg.sandbox_timeout)
