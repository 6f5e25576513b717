"""
Candidate Tester.

Pre-checks the container alternatives against the snapshot, narrows the
candidate to the first alternative that matches, hands it to the
sandbox and renders the scraper source for the attempt.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .codegen import render_scraper
from .extraction import match_container, parse_html
from .models import Candidate

logger = logging.getLogger(__name__)


@dataclass
class TestOutcome:
    success: bool
    candidate: Candidate
    matched_container: str = ""
    items: List[Dict[str, str]] = field(default_factory=list)
    error: Optional[str] = None
    code: str = ""
    logs: List[str] = field(default_factory=list)

    # not a pytest test class
    __test__ = False


class CandidateTester:
    def __init__(self, sandbox):
        self.sandbox = sandbox

    async def test(self, candidate: Candidate, html: str, url: str) -> TestOutcome:
        matched, elements = match_container(parse_html(html), candidate.container_selector)
        if not matched:
            logger.debug(f"No container alternative matched in '{candidate.container_selector}'")
            return TestOutcome(
                success=False,
                candidate=candidate,
                error=f"No container matched ({len(candidate.container_alternatives())} alternatives tried)",
                code=render_scraper(candidate, url),
            )

        narrowed = candidate.with_container(matched)
        code = render_scraper(narrowed, url)
        logger.debug(f"Container '{matched}' matched {len(elements)} elements")

        result = await self.sandbox.run(narrowed, html, url)
        if not result.success:
            return TestOutcome(
                success=False,
                candidate=narrowed,
                matched_container=matched,
                error=result.error or "Execution failed",
                code=code,
                logs=result.logs,
            )

        if not result.items:
            return TestOutcome(
                success=False,
                candidate=narrowed,
                matched_container=matched,
                error=(
                    f"No items extracted: container matched {len(elements)} elements "
                    f"but no record passed the quality checks (itemCount: 0)"
                ),
                code=code,
                logs=result.logs,
            )

        return TestOutcome(
            success=True,
            candidate=narrowed,
            matched_container=matched,
            items=result.items,
            code=code,
            logs=result.logs,
        )
