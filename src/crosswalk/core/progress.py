"""Requirement progress aggregation for auditor views.

Everything here reads through an explicit ``ProgressContext`` carrying the
control catalog and the answer/evidence lookups for one assessment. Nothing
is cached between calls.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from ..models.control import Control
from ..models.gap import Gap
from ..models.mapping import MappingStrength
from ..models.progress import (
    AutoMappingSuggestion,
    ControlAnswer,
    ControlCoverageIndex,
    ControlImplementationStatus,
    EvidenceReference,
    EvidenceSummary,
    FrameworkComplianceSummary,
    FrameworkCoverage,
    GapInfo,
    MappedControlSummary,
    MappedRequirementSummary,
    RequirementProgress,
    RequirementStatus,
)
from ..models.requirement import Requirement
from .config import resolve_config
from .coverage import aggregate_mapping_coverage, weighted_answer_coverage
from .mappings import is_live, synthesize_mappings

_WORD = re.compile(r"[a-z0-9][a-z0-9\-/]*")


@dataclass
class ProgressContext:
    """Inputs for one assessment: the control catalog and the user's answers."""

    controls: list[Control]
    get_control_answer: Callable[[str], Optional[str]]
    get_control_evidence: Optional[Callable[[str], list[EvidenceReference]]] = None
    config: Optional[dict] = None
    _by_id: dict[str, Control] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._by_id = {c.id: c for c in self.controls}

    def control(self, control_id: str) -> Optional[Control]:
        return self._by_id.get(control_id)

    def evidence(self, control_id: str) -> list[EvidenceReference]:
        if self.get_control_evidence is None:
            return []
        return self.get_control_evidence(control_id) or []


def resolve_mapped_controls(requirement: Requirement, mappings: list, ctx: ProgressContext) -> list:
    """Stored mappings for the requirement, or synthesized ones when none exist."""
    stored = [m for m in mappings if m.requirement_id == requirement.id and is_live(m)]
    if stored:
        return stored
    return synthesize_mappings(requirement, ctx.controls, ctx.config)


def answer_to_status(
    answer: Optional[str],
    has_verified_evidence: bool = False,
) -> ControlImplementationStatus:
    if answer == ControlAnswer.YES.value:
        if has_verified_evidence:
            return ControlImplementationStatus.VERIFIED
        return ControlImplementationStatus.IMPLEMENTED
    if answer == ControlAnswer.PARTIAL.value:
        return ControlImplementationStatus.IN_PROGRESS
    if answer == ControlAnswer.NA.value:
        return ControlImplementationStatus.NOT_APPLICABLE
    return ControlImplementationStatus.NOT_STARTED


def _answer(ctx: ProgressContext, control_id: str) -> Optional[str]:
    value = ctx.get_control_answer(control_id)
    if value is None:
        return None
    value = str(value.value if isinstance(value, ControlAnswer) else value).lower()
    return value if value in {a.value for a in ControlAnswer} else None


def _summarize_control(mapping, ctx: ProgressContext) -> MappedControlSummary:
    control = ctx.control(mapping.control_id)
    answer = _answer(ctx, mapping.control_id)
    evidence = ctx.evidence(mapping.control_id)
    verified = any(e.status == "verified" for e in evidence)
    return MappedControlSummary(
        control_id=mapping.control_id,
        control_title=control.title if control else mapping.control_id,
        mapping_kind=mapping.kind,
        mapping_strength=mapping.mapping_strength,
        coverage_percentage=mapping.coverage_percentage,
        answer=answer,
        implementation_status=answer_to_status(answer, verified),
        evidence_count=len(evidence),
        has_verified_evidence=verified,
    )


def determine_status(
    controls: list[MappedControlSummary],
    weighted_coverage: float,
    has_open_gap: bool,
    partial_threshold: float = 50,
) -> RequirementStatus:
    """Requirement status, first matching rule wins.

    1. open gap -> custom_gap
    2. nothing mapped -> not_started
    3. every applicable control implemented -> compliant
    4. some work started -> partially_compliant / in_progress by weighted coverage
    5. everything N/A -> not_applicable
    """
    if has_open_gap:
        return RequirementStatus.CUSTOM_GAP
    if not controls:
        return RequirementStatus.NOT_STARTED

    done = {ControlImplementationStatus.IMPLEMENTED, ControlImplementationStatus.VERIFIED}
    applicable = [c for c in controls if c.implementation_status != ControlImplementationStatus.NOT_APPLICABLE]

    if applicable and all(c.implementation_status in done for c in applicable):
        return RequirementStatus.COMPLIANT
    if any(c.implementation_status in done | {ControlImplementationStatus.IN_PROGRESS} for c in applicable):
        if weighted_coverage >= partial_threshold:
            return RequirementStatus.PARTIALLY_COMPLIANT
        return RequirementStatus.IN_PROGRESS
    if not applicable:
        return RequirementStatus.NOT_APPLICABLE
    return RequirementStatus.NOT_STARTED


def _summarize_evidence(refs: list[EvidenceReference]) -> EvidenceSummary:
    counts = Counter(e.status for e in refs)
    return EvidenceSummary(
        total=len(refs),
        verified=counts.get("verified", 0),
        pending=counts.get("pending", 0),
        expired=counts.get("expired", 0),
    )


def _build_progress(
    req: Requirement,
    mappings: list,
    gaps: list[Gap],
    ctx: ProgressContext,
    cfg: dict,
) -> RequirementProgress:
    mapped = resolve_mapped_controls(req, mappings, ctx)
    summaries = [_summarize_control(m, ctx) for m in mapped]

    weighted = weighted_answer_coverage(
        ((s.coverage_percentage, s.answer.value if s.answer else None) for s in summaries),
        cfg["answer_weights"],
    )
    reviewed = aggregate_mapping_coverage(m for m in mapped if m.human_reviewed)

    gap = next((g for g in gaps if g.requirement_id == req.id), None)
    open_gap = gap if gap is not None and gap.is_open else None

    refs: list[EvidenceReference] = []
    for s in summaries:
        refs.extend(ctx.evidence(s.control_id))

    return RequirementProgress(
        requirement_id=req.id,
        framework_id=req.framework_id,
        requirement_code=req.code,
        title=req.title,
        status=determine_status(summaries, weighted, open_gap is not None, cfg["thresholds"]["partial_progress"]),
        mapped_controls=summaries,
        total_coverage=aggregate_mapping_coverage(mapped),
        weighted_coverage=weighted,
        reviewed_coverage=reviewed,
        has_gap=open_gap is not None,
        gap_info=GapInfo(
            gap_id=gap.id,
            gap_type=gap.gap_type,
            description=gap.description,
            resolution=gap.selected_resolution,
        ) if gap else None,
        evidence_summary=_summarize_evidence(refs),
        direct_evidence=gap.direct_evidence if gap else [],
    )


def get_requirement_progress(
    requirement_id: str,
    requirements: list[Requirement],
    mappings: list,
    gaps: list[Gap],
    ctx: ProgressContext,
) -> Optional[RequirementProgress]:
    """Progress for one requirement. Unknown ID returns None."""
    req = next((r for r in requirements if r.id == requirement_id), None)
    if req is None:
        return None
    return _build_progress(req, mappings, gaps, ctx, resolve_config(ctx.config))


def get_framework_compliance_summary(
    framework_id: str,
    requirements: list[Requirement],
    mappings: list,
    gaps: list[Gap],
    ctx: ProgressContext,
    framework_name: str = "",
) -> FrameworkComplianceSummary:
    """Roll up leaf requirement statuses, open gaps and evidence for one framework."""
    cfg = resolve_config(ctx.config)
    leaves = [r for r in requirements if r.framework_id == framework_id and r.is_leaf]
    leaf_ids = {r.id for r in leaves}

    statuses: Counter = Counter()
    control_ids: set[str] = set()
    direct_refs = 0
    for req in leaves:
        progress = _build_progress(req, mappings, gaps, ctx, cfg)
        statuses[progress.status] += 1
        control_ids.update(c.control_id for c in progress.mapped_controls)
        direct_refs += len(progress.direct_evidence)

    refs: list[EvidenceReference] = []
    for control_id in sorted(control_ids):
        refs.extend(ctx.evidence(control_id))
    evidence = _summarize_evidence(refs)

    open_gaps = Counter(g.severity.value for g in gaps if g.requirement_id in leaf_ids and g.is_open)

    compliant = statuses[RequirementStatus.COMPLIANT]
    partial = statuses[RequirementStatus.PARTIALLY_COMPLIANT]
    not_applicable = statuses[RequirementStatus.NOT_APPLICABLE]
    assessable = len(leaves) - not_applicable
    score = round((compliant + partial * 0.5) / assessable * 100) if assessable > 0 else 0

    return FrameworkComplianceSummary(
        framework_id=framework_id,
        framework_name=framework_name,
        framework_version=next((r.framework_version for r in leaves if r.framework_version), ""),
        total_requirements=len(leaves),
        compliant=compliant,
        partially_compliant=partial,
        in_progress=statuses[RequirementStatus.IN_PROGRESS],
        non_compliant=statuses[RequirementStatus.NON_COMPLIANT],
        not_started=statuses[RequirementStatus.NOT_STARTED],
        not_applicable=not_applicable,
        custom_gaps=statuses[RequirementStatus.CUSTOM_GAP],
        overall_score=score,
        critical_gaps=open_gaps.get("critical", 0),
        high_gaps=open_gaps.get("high", 0),
        medium_gaps=open_gaps.get("medium", 0),
        low_gaps=open_gaps.get("low", 0),
        total_evidence=evidence.total + direct_refs,
        verified_evidence=evidence.verified,
        pending_evidence=evidence.pending,
        expired_evidence=evidence.expired,
        last_updated=datetime.now().strftime("%Y-%m-%dT%H:%M:%S"),
    )


def get_control_coverage_index(
    control_id: str,
    requirements: list[Requirement],
    mappings: list,
    ctx: ProgressContext,
) -> ControlCoverageIndex:
    """Every leaf requirement one control satisfies, grouped by framework.

    An unknown control yields an empty index.
    """
    control = ctx.control(control_id)
    index = ControlCoverageIndex(control_id=control_id, control_title=control.title if control else "")
    if control is None:
        return index

    leaves_by_framework: dict[str, list[Requirement]] = {}
    for req in requirements:
        if req.is_leaf:
            leaves_by_framework.setdefault(req.framework_id, []).append(req)

    for framework_id, leaves in leaves_by_framework.items():
        covered = 0
        for req in leaves:
            match = next((m for m in resolve_mapped_controls(req, mappings, ctx) if m.control_id == control_id), None)
            if match is None:
                continue
            covered += 1
            index.mapped_requirements.append(MappedRequirementSummary(
                requirement_id=req.id,
                framework_id=framework_id,
                requirement_code=req.code,
                title=req.title,
                mapping_kind=match.kind,
                mapping_strength=match.mapping_strength,
                coverage_percentage=match.coverage_percentage,
            ))
        if covered:
            index.framework_coverage[framework_id] = FrameworkCoverage(
                total=len(leaves),
                covered=covered,
                percentage=round(covered / len(leaves) * 100),
            )
    return index


def _suggested_strength(confidence: int) -> MappingStrength:
    if confidence >= 70:
        return MappingStrength.DIRECT
    if confidence >= 50:
        return MappingStrength.PARTIAL
    return MappingStrength.SUPPORTIVE


def generate_auto_mapping_suggestions(
    control: Control,
    requirements: list[Requirement],
    mappings: list,
    config: Optional[dict] = None,
) -> list[AutoMappingSuggestion]:
    """Suggest unmapped leaf requirements whose wording overlaps the control's keywords."""
    cfg = resolve_config(config)
    min_confidence = cfg["suggestions"]["min_confidence"]
    limit = cfg["suggestions"]["limit"]

    already = {m.requirement_id for m in mappings if m.control_id == control.id and is_live(m)}
    terms: list[str] = []
    for term in [*(k.lower() for k in control.keywords), *_WORD.findall(control.title.lower())]:
        if len(term) > 2 and term not in terms:
            terms.append(term)
    if not terms:
        return []

    suggestions: list[AutoMappingSuggestion] = []
    for req in requirements:
        if not req.is_leaf or req.id in already:
            continue
        title = req.title.lower()
        words = set(_WORD.findall(title))
        words.update(w for w in _WORD.findall(req.description.lower()) if len(w) > 3)

        matched = [t for t in terms if t in words or t in title]
        confidence = min(100, round(len(matched) / len(terms) * 100))
        if confidence < min_confidence:
            continue

        strength = _suggested_strength(confidence)
        suggestions.append(AutoMappingSuggestion(
            control_id=control.id,
            requirement_id=req.id,
            suggested_strength=strength,
            suggested_coverage=cfg["assessment_coverage"][strength.value],
            confidence=confidence,
            reasoning=f"{len(matched)} keyword matches found between control and requirement",
            matched_keywords=matched,
        ))

    suggestions.sort(key=lambda s: s.confidence, reverse=True)
    return suggestions[:limit]
