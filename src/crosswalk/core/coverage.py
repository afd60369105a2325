"""Coverage estimation.

Two independent aggregation paths, both monotonic non-decreasing and both
with diminishing returns for additional mappings:

- ``estimate_coverage`` works from bucket counts in the auto-derived index.
- ``aggregate_mapping_coverage`` works from explicit mapping percentages.
"""

from __future__ import annotations

from typing import Iterable, Optional


def estimate_coverage(direct: int, partial: int, supportive: int) -> int:
    """Estimate requirement coverage from direct/partial/supportive counts."""
    if direct > 0:
        return min(100, 60 + (direct - 1) * 10 + partial * 5)
    if partial > 0:
        return min(70, 30 + (partial - 1) * 10 + supportive * 5)
    if supportive > 0:
        return min(20, supportive * 5)
    return 0


def aggregate_mapping_coverage(mappings: Iterable) -> int:
    """Combine mapping percentages with sequential diminishing returns.

    Each mapping only fills the share still uncovered by the stronger ones
    before it: 70 then 40 gives ``70 + 40 * 0.3 = 82``.
    """
    percentages = sorted(
        (float(m.coverage_percentage) for m in mappings),
        reverse=True,
    )
    coverage = 0.0
    for pct in percentages:
        coverage += pct * (1 - coverage / 100)
        if coverage >= 100:
            break
    return int(round(min(100.0, max(0.0, coverage))))


def weighted_answer_coverage(
    pairs: Iterable[tuple[float, Optional[str]]],
    weights: dict[str, float],
) -> float:
    """Sum ``coverage x answer weight`` over (coverage, answer) pairs, clamped to 0..100."""
    total = 0.0
    for coverage, answer in pairs:
        total += float(coverage) * float(weights.get(answer or "", 0.0))
    return round(min(100.0, max(0.0, total)), 2)
