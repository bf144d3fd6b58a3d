"""
Severity ranking and candidate selection.

Maps competing detector findings to a single result with a stable,
deterministic tie-break.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from .schema import AnomalyResult, Severity


def severity_rank(severity: Severity) -> int:
    """
    Ordinal rank used to compare severities: high 3 > medium 2 > low 1.
    """

    return severity.rank


def select_highest(candidates: Sequence[Optional[AnomalyResult]]) -> Optional[AnomalyResult]:
    """
    Pick the highest-severity candidate, first-encountered on ties.

    None entries (silent detectors) are skipped. ``sorted`` is stable, so the
    detector evaluation order decides between equal severities.
    """

    fired: List[AnomalyResult] = [c for c in candidates if c is not None]
    if not fired:
        return None
    ranked = sorted(fired, key=lambda c: severity_rank(c.severity), reverse=True)
    return ranked[0]
