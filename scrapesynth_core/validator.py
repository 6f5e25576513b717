"""Field coverage check on the first extracted record."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .models import FailureType


@dataclass
class CoverageReport:
    passed: bool
    item_count: int
    missing_fields: List[str] = field(default_factory=list)
    coverage: float = 0.0
    failure: Optional[FailureType] = None

    @property
    def coverage_percent(self) -> int:
        return int(round(self.coverage * 100))


def validate_coverage(items: Sequence[Dict[str, str]], required_fields: Sequence[str]) -> CoverageReport:
    """
    Passes iff there is at least one item and the first item has every
    required field populated. No items is its own failure (NO_ITEMS),
    not a 0% coverage figure.
    """
    if not items:
        return CoverageReport(
            passed=False,
            item_count=0,
            missing_fields=list(required_fields),
            coverage=0.0,
            failure=FailureType.NO_ITEMS,
        )

    first = items[0]
    missing = [f for f in required_fields if not str(first.get(f) or "").strip()]
    total = len(required_fields)
    coverage = (total - len(missing)) / total if total else 0.0
    return CoverageReport(
        passed=not missing,
        item_count=len(items),
        missing_fields=missing,
        coverage=coverage,
    )
