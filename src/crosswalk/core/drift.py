"""Compliance drift detection across framework versions.

When a framework republishes a requirement, compare the old and new text,
re-check previously recorded answers against the new wording, and flag every
control actively mapped to the old version for review.

All scoring here is keyword heuristics and should be presented as advisory.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Optional

from ..models.drift import (
    ActionType,
    ChangeAnalysis,
    ChangeType,
    ComplianceDrift,
    DriftStatus,
    ImpactLevel,
    RequiredAction,
    UserResponse,
    VersionedRequirement,
)
from ..models.mapping import MappingStatus
from .config import resolve_config
from .store import MappingStore


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%dT%H:%M:%S")


def _term_pattern(term: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(term.lower())}\b")


def _mentions(text: str, term: str) -> bool:
    return bool(_term_pattern(term).search(text.lower()))


def keyword_strength(text: str, weights: dict[str, float]) -> float:
    """Weighted count of whole-word keyword occurrences (case-insensitive)."""
    lowered = text.lower()
    return sum(len(_term_pattern(kw).findall(lowered)) * float(w) for kw, w in weights.items())


def analyze_requirement_change(
    old: VersionedRequirement,
    new: VersionedRequirement,
    config: Optional[dict] = None,
) -> ChangeAnalysis:
    cfg = resolve_config(config)["drift"]
    weights = cfg["strengthening_keywords"]
    old_strength = keyword_strength(old.requirement_text, weights)
    new_strength = keyword_strength(new.requirement_text, weights)

    if new_strength > old_strength + cfg["strengthened_margin"]:
        added = new_strength - old_strength
        return ChangeAnalysis(
            change_type=ChangeType.REQUIREMENT_STRENGTHENED,
            impact_level=ImpactLevel.HIGH,
            summary=f"Requirement significantly strengthened with {added:g} new mandatory conditions",
            old_strength=old_strength,
            new_strength=new_strength,
        )
    if new.requirement_text != old.requirement_text:
        return ChangeAnalysis(
            change_type=ChangeType.REQUIREMENT_CLARIFIED,
            impact_level=ImpactLevel.LOW,
            summary="Minor text updates or clarifications",
            old_strength=old_strength,
            new_strength=new_strength,
        )
    return ChangeAnalysis(
        change_type=ChangeType.REQUIREMENT_CLARIFIED,
        impact_level=ImpactLevel.NONE,
        summary="No significant changes detected",
        old_strength=old_strength,
        new_strength=new_strength,
    )


def check_response_against_requirement(
    response: UserResponse,
    requirement: VersionedRequirement,
    ratio: float = 0.6,
) -> bool:
    """True if the answer mentions enough of the new requirement's keywords.

    A requirement without keywords is always met.
    """
    keywords = [k for k in requirement.keywords if k.strip()]
    matched = sum(1 for k in keywords if _mentions(response.user_answer, k))
    return matched >= len(keywords) * ratio


def generate_gap_analysis(
    response: UserResponse,
    requirement: VersionedRequirement,
    config: Optional[dict] = None,
) -> str:
    checks = resolve_config(config)["drift"].get("category_checks", {})
    answer = response.user_answer.lower()
    gaps: list[str] = []
    check = checks.get(requirement.category.value)
    if check and check["requires"].lower() not in answer:
        gaps.append(check["gap"])
    if gaps:
        return f"Identified gaps: {'; '.join(gaps)}"
    return "Response appears compliant"


def generate_required_actions(
    affected_control_ids: list[str],
    responses: list[UserResponse],
    id_prefix: str = "action",
) -> list[RequiredAction]:
    failing = [r for r in responses if r.meets_new_requirement is False]
    actions: list[RequiredAction] = []

    if affected_control_ids:
        actions.append(RequiredAction(
            id=f"{id_prefix}-1",
            action_type=ActionType.UPDATE_CONTROL,
            description=f"Review and update {len(affected_control_ids)} control(s)",
            priority="high" if failing else "medium",
        ))
    if failing:
        actions.append(RequiredAction(
            id=f"{id_prefix}-2",
            action_type=ActionType.REASSESS,
            description=f"Re-answer {len(failing)} compliance questions",
            priority="high",
        ))
    return actions


def process_requirement_update(
    old: VersionedRequirement,
    new: VersionedRequirement,
    mappings: list,
    user_responses: dict[str, list[UserResponse]],
    config: Optional[dict] = None,
) -> Optional[ComplianceDrift]:
    """Detect drift for one requirement version transition.

    Returns None, leaving ``mappings`` untouched, when nothing material
    changed. Otherwise every active mapping to the old requirement is moved
    to ``pending_review`` in place and one drift record is returned.
    """
    cfg = resolve_config(config)
    analysis = analyze_requirement_change(old, new, cfg)
    if analysis.impact_level == ImpactLevel.NONE:
        return None

    affected = [m for m in mappings if m.requirement_id == old.id and m.status == MappingStatus.ACTIVE]
    affected_control_ids: list[str] = []
    for mapping in affected:
        if mapping.control_id not in affected_control_ids:
            affected_control_ids.append(mapping.control_id)

    ratio = cfg["drift"]["response_match_ratio"]
    analyzed = [
        response.model_copy(update={
            "meets_new_requirement": check_response_against_requirement(response, new, ratio),
            "gap_analysis": generate_gap_analysis(response, new, cfg),
        })
        for response in user_responses.get(old.id, [])
    ]
    failing = sum(1 for r in analyzed if not r.meets_new_requirement)

    drift_id = str(uuid.uuid4())
    drift = ComplianceDrift(
        id=drift_id,
        detected_at=_now(),
        requirement_id=new.id,
        previous_requirement_id=old.id,
        previous_version=old.framework_version,
        new_version=new.framework_version,
        change_type=analysis.change_type,
        change_summary=analysis.summary,
        impact_level=analysis.impact_level,
        affected_control_ids=affected_control_ids,
        compliance_gap_description=f"{failing} responses need review",
        previous_user_responses=analyzed,
        required_actions=generate_required_actions(affected_control_ids, analyzed, f"{drift_id}-action"),
    )

    timestamp = _now()
    for mapping in affected:
        mapping.status = MappingStatus.PENDING_REVIEW
        mapping.updated_at = timestamp
    return drift


def get_controls_for_requirement(mappings: list, requirement_id: str) -> list[str]:
    """Control IDs with an active mapping to the requirement."""
    return [m.control_id for m in mappings if m.requirement_id == requirement_id and m.status == MappingStatus.ACTIVE]


def get_requirements_for_control(mappings: list, control_id: str) -> list[str]:
    """Requirement IDs the control is actively mapped to."""
    return [m.requirement_id for m in mappings if m.control_id == control_id and m.status == MappingStatus.ACTIVE]


def find_drift(
    drifts: list[ComplianceDrift],
    requirement_id: str,
    previous_version: str,
    new_version: str,
) -> Optional[ComplianceDrift]:
    return next(
        (
            d for d in drifts
            if d.requirement_id == requirement_id
            and d.previous_version == previous_version
            and d.new_version == new_version
        ),
        None,
    )


def record_drift(
    store: MappingStore,
    old: VersionedRequirement,
    new: VersionedRequirement,
    user_responses: Optional[dict[str, list[UserResponse]]] = None,
    config: Optional[dict] = None,
) -> Optional[ComplianceDrift]:
    """Run drift detection against the store and persist the result.

    A transition that was already recorded returns the existing record and
    changes nothing.
    """
    drifts = store.load_drifts()
    existing = find_drift(drifts, new.id, old.framework_version, new.framework_version)
    if existing is not None:
        return existing

    mappings = store.load_mappings()
    drift = process_requirement_update(old, new, mappings, user_responses or {}, config)
    if drift is None:
        return None

    if drift.affected_control_ids:
        store.save_mappings(mappings)
    store.save_drifts([*drifts, drift])
    return drift


def update_drift_status(
    store: MappingStore,
    drift_id: str,
    status: str,
    notes: Optional[str] = None,
) -> Optional[ComplianceDrift]:
    """Move a drift record through its lifecycle. Unknown ID returns None."""
    drifts = store.load_drifts()
    for i, drift in enumerate(drifts):
        if drift.id != drift_id:
            continue
        updates: dict = {"status": DriftStatus(status)}
        if notes is not None:
            updates["resolution_notes"] = notes
        if updates["status"] in (DriftStatus.RESOLVED, DriftStatus.RISK_ACCEPTED):
            updates["resolved_at"] = _now()
        drifts[i] = drift.model_copy(update=updates)
        store.save_drifts(drifts)
        return drifts[i]
    return None
