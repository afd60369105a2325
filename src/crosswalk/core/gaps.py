"""Gap detection and gap lifecycle operations.

A gap exists for a leaf requirement while its aggregate coverage is below
the sufficient-coverage threshold. Gaps are upserted by ``requirement_id``:
a re-run refreshes the computed fields and keeps whatever a person has
recorded (status, notes, evidence, chosen resolution).
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Optional

from ..models.control import Control
from ..models.gap import (
    CLOSED_GAP_STATUSES,
    CompensatingControl,
    DirectEvidence,
    Effort,
    Gap,
    GapSeverity,
    GapStatus,
    GapType,
    ResolutionOption,
    RiskAcceptance,
)
from ..models.requirement import Requirement
from .clauses import in_clause_family
from .config import resolve_config
from .coverage import aggregate_mapping_coverage
from .mappings import is_live, synthesize_mappings
from .store import MappingStore

_SEVERITY_ORDER = [GapSeverity.CRITICAL, GapSeverity.HIGH, GapSeverity.MEDIUM]


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%dT%H:%M:%S")


def determine_severity(requirement: Requirement, config: Optional[dict] = None) -> GapSeverity:
    """Severity of an unmapped requirement, from title/code keywords and clause families."""
    cfg = resolve_config(config)["gap_severity"]
    keywords = cfg.get("keywords", {})
    families = cfg.get("clause_families", {})
    text = f"{requirement.title} {requirement.code}".lower()

    for severity in _SEVERITY_ORDER:
        if any(kw.lower() in text for kw in keywords.get(severity.value, [])):
            return severity
        if any(in_clause_family(requirement.code, fam) for fam in families.get(severity.value, [])):
            return severity
    return GapSeverity.LOW


def generate_resolution_options() -> list[ResolutionOption]:
    return [
        ResolutionOption(
            id="create_control",
            type="create_control",
            description="Create a new control to address this requirement",
            effort=Effort.HIGH,
            recommended_templates=["control-template"],
        ),
        ResolutionOption(
            id="upload_evidence",
            type="upload_evidence",
            description="Upload direct evidence showing compliance",
            effort=Effort.LOW,
        ),
        ResolutionOption(
            id="create_policy",
            type="create_policy",
            description="Create a policy document addressing this requirement",
            effort=Effort.MEDIUM,
            recommended_templates=["policy-template"],
        ),
        ResolutionOption(
            id="compensating_control",
            type="compensating_control",
            description="Document a compensating control that provides equivalent protection",
            effort=Effort.MEDIUM,
        ),
        ResolutionOption(
            id="accept_risk",
            type="accept_risk",
            description="Accept the risk with documented justification",
            effort=Effort.LOW,
        ),
    ]


def find_missing_coverage(mappings: list) -> list[str]:
    """Distinct uncovered aspects across mappings, first-seen order."""
    missing: list[str] = []
    for mapping in mappings:
        for aspect in mapping.uncovered_aspects:
            if aspect not in missing:
                missing.append(aspect)
    return missing


def _upsert(existing: Optional[Gap], requirement: Requirement, computed: dict) -> Gap:
    if existing is not None:
        return existing.model_copy(update=computed)
    return Gap(requirement_id=requirement.id, identified_at=_now(), **computed)


def recalculate_gaps(
    requirements: list[Requirement],
    mappings: list,
    existing_gaps: list[Gap],
    controls: Optional[list[Control]] = None,
    config: Optional[dict] = None,
) -> list[Gap]:
    """Recompute gaps for the given requirements.

    Returns one gap per under-covered leaf requirement. Requirements whose
    coverage reached the threshold are simply absent from the result.
    """
    cfg = resolve_config(config)
    threshold = cfg["thresholds"]["sufficient_coverage"]
    high_below = cfg["thresholds"]["high_severity_below"]

    existing_by_req = {g.requirement_id: g for g in existing_gaps}
    by_requirement: dict[str, list] = defaultdict(list)
    for mapping in mappings:
        if is_live(mapping):
            by_requirement[mapping.requirement_id].append(mapping)

    gaps: list[Gap] = []
    for req in requirements:
        if not req.is_leaf:
            continue

        req_mappings = by_requirement.get(req.id) or []
        if not req_mappings and controls is not None:
            req_mappings = synthesize_mappings(req, controls, cfg)

        if not req_mappings:
            computed = {
                "gap_type": GapType.NO_CONTROL_MAPPED,
                "severity": determine_severity(req, cfg),
                "description": f"No controls are mapped to requirement {req.code}: {req.title}",
                "missing_coverage": ["Full requirement coverage"],
            }
        else:
            coverage = aggregate_mapping_coverage(req_mappings)
            if coverage >= threshold:
                continue
            computed = {
                "gap_type": GapType.INSUFFICIENT_COVERAGE,
                "severity": GapSeverity.HIGH if coverage < high_below else GapSeverity.MEDIUM,
                "description": f"Controls only cover {coverage}% of requirement {req.code}",
                "missing_coverage": find_missing_coverage(req_mappings),
            }

        computed["resolution_options"] = generate_resolution_options()
        gaps.append(_upsert(existing_by_req.get(req.id), req, computed))

    return gaps


def refresh_gaps(
    store: MappingStore,
    requirements: list[Requirement],
    controls: Optional[list[Control]] = None,
    config: Optional[dict] = None,
) -> list[Gap]:
    """Recompute and persist gaps for a set of requirements.

    Gaps belonging to requirements outside the set are kept untouched.
    """
    existing = store.load_gaps()
    computed = recalculate_gaps(requirements, store.load_mappings(), existing, controls, config)

    in_scope = {r.id for r in requirements}
    kept = [g for g in existing if g.requirement_id not in in_scope]
    store.save_gaps(kept + computed)
    return computed


def get_gaps_for_framework(store: MappingStore, framework_id: str, open_only: bool = False) -> list[Gap]:
    prefix = f"{framework_id}-"
    return [
        g for g in store.load_gaps()
        if g.requirement_id.startswith(prefix) and (g.is_open or not open_only)
    ]


def get_gap(store: MappingStore, gap_id: str) -> Optional[Gap]:
    return next((g for g in store.load_gaps() if g.id == gap_id), None)


def update_gap(
    store: MappingStore,
    gap_id: str,
    status: Optional[str] = None,
    notes: Optional[str] = None,
    selected_resolution: Optional[str] = None,
    resolved_by: Optional[str] = None,
    compensating_control: Optional[CompensatingControl] = None,
    risk_acceptance: Optional[RiskAcceptance] = None,
) -> Optional[Gap]:
    """Record a human decision on a gap. Unknown ID returns None."""
    gaps = store.load_gaps()
    for i, gap in enumerate(gaps):
        if gap.id != gap_id:
            continue
        updates: dict = {}
        if status is not None:
            updates["status"] = GapStatus(status)
            if updates["status"] in CLOSED_GAP_STATUSES:
                updates["resolved_at"] = _now()
                if resolved_by:
                    updates["resolved_by"] = resolved_by
        if notes is not None:
            updates["notes"] = notes
        if selected_resolution is not None:
            updates["selected_resolution"] = selected_resolution
        if compensating_control is not None:
            updates["compensating_control"] = compensating_control
        if risk_acceptance is not None:
            updates["risk_acceptance"] = risk_acceptance
        gaps[i] = gap.model_copy(update=updates)
        store.save_gaps(gaps)
        return gaps[i]
    return None


def add_direct_evidence(store: MappingStore, gap_id: str, evidence: DirectEvidence) -> Optional[Gap]:
    """Attach evidence straight to a gap. Unknown ID returns None."""
    gaps = store.load_gaps()
    for i, gap in enumerate(gaps):
        if gap.id != gap_id:
            continue
        evidence = evidence.model_copy(update={"gap_id": gap_id})
        gaps[i] = gap.model_copy(update={"direct_evidence": [*gap.direct_evidence, evidence]})
        store.save_gaps(gaps)
        return gaps[i]
    return None
