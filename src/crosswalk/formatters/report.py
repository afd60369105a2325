"""Markdown compliance report for one framework."""

from __future__ import annotations

from datetime import datetime

from .. import __version__
from ..models.gap import Gap
from ..models.progress import FrameworkComplianceSummary, RequirementProgress

_SEVERITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def generate_compliance_report(
    summary: FrameworkComplianceSummary,
    progress: list[RequirementProgress],
    gaps: list[Gap],
) -> str:
    """Generate the framework compliance report (markdown)."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    title = summary.framework_name or summary.framework_id

    lines: list[str] = []
    lines.append(f"# {title} Compliance Report")
    lines.append("")
    lines.append(f"**Framework:** {summary.framework_id}")
    if summary.framework_version:
        lines.append(f"**Version:** {summary.framework_version}")
    lines.append(f"**Date:** {timestamp}")
    lines.append(f"**Overall Score:** {summary.overall_score}%")
    lines.append("")
    lines.append(
        "> Severity, status and drift impact are derived from keyword and coverage "
        "heuristics. Treat them as advisory and confirm with a reviewer."
    )
    lines.append("")

    lines.append("## Requirement Status")
    lines.append("")
    lines.append("| Status | Count |")
    lines.append("|--------|-------|")
    lines.append(f"| Compliant | {summary.compliant} |")
    lines.append(f"| Partially compliant | {summary.partially_compliant} |")
    lines.append(f"| In progress | {summary.in_progress} |")
    lines.append(f"| Not started | {summary.not_started} |")
    lines.append(f"| Not applicable | {summary.not_applicable} |")
    lines.append(f"| Open gap | {summary.custom_gaps} |")
    lines.append(f"| **Total** | **{summary.total_requirements}** |")
    lines.append("")

    lines.append("## Open Gaps")
    lines.append("")
    lines.append("| Severity | Count |")
    lines.append("|----------|-------|")
    lines.append(f"| Critical | {summary.critical_gaps} |")
    lines.append(f"| High | {summary.high_gaps} |")
    lines.append(f"| Medium | {summary.medium_gaps} |")
    lines.append(f"| Low | {summary.low_gaps} |")
    lines.append("")

    open_gaps = sorted((g for g in gaps if g.is_open), key=lambda g: _SEVERITY_ORDER.get(g.severity.value, 4))
    if open_gaps:
        lines.append("## Gap Detail")
        lines.append("")
        for gap in open_gaps:
            lines.append(f"### {gap.requirement_id} [{gap.severity.value.upper()}]")
            lines.append(f"**Type:** {gap.gap_type.value}  ")
            lines.append(f"**Status:** {gap.status.value}")
            lines.append(f"\n{gap.description}")
            if gap.missing_coverage:
                lines.append("")
                for aspect in gap.missing_coverage:
                    lines.append(f"- {aspect}")
            lines.append("")

    lines.append("## Requirements")
    lines.append("")
    lines.append("| Requirement | Status | Coverage | Weighted | Controls |")
    lines.append("|-------------|--------|----------|----------|----------|")
    for p in progress:
        controls = ", ".join(c.control_id for c in p.mapped_controls) or "-"
        lines.append(
            f"| {p.requirement_code} {p.title} | {p.status.value} | {p.total_coverage}% "
            f"| {p.weighted_coverage:g}% | {controls} |"
        )
    lines.append("")

    lines.append("## Evidence")
    lines.append("")
    lines.append(
        f"{summary.total_evidence} total, {summary.verified_evidence} verified, "
        f"{summary.pending_evidence} pending, {summary.expired_evidence} expired"
    )
    lines.append("")

    lines.append("---")
    lines.append(f"*Generated by Control Crosswalk v{__version__} at {timestamp}*")

    return "\n".join(lines)
