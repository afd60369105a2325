"""Requirement -> control index.

Inverts each control's declared framework clauses into a per-requirement view
with direct/partial/supportive buckets and an estimated coverage. The index is
a derived snapshot: rebuilding from the same controls and catalog yields the
same maps.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Callable, Optional

from ..catalog.flatten import get_framework_requirements
from ..models.control import Control
from ..models.mapping import (
    ControlMappingAssessment,
    FrameworkRequirementIndex,
    MappingStrength,
    RequirementIndexEntry,
)
from ..models.requirement import Requirement
from .clauses import classify_clause
from .config import resolve_config
from .coverage import estimate_coverage

_PRECEDENCE = {
    MappingStrength.DIRECT: 3,
    MappingStrength.PARTIAL: 2,
    MappingStrength.SUPPORTIVE: 1,
}


def best_strength(
    control: Control,
    requirement: Requirement,
    sibling_support: bool = False,
) -> Optional[MappingStrength]:
    """Strongest classification across all of a control's declarations for the requirement's framework."""
    best: Optional[MappingStrength] = None
    for declared in control.mappings_for(requirement.framework_id):
        strength = classify_clause(declared.clause_id, requirement.code, sibling_support)
        if strength is None:
            continue
        if best is None or _PRECEDENCE[strength] > _PRECEDENCE[best]:
            best = strength
    return best


def _index_gaps(entry: RequirementIndexEntry) -> list[str]:
    gaps: list[str] = []
    if entry.total_coverage >= 100:
        return gaps
    if not entry.direct_controls:
        gaps.append("No controls directly address this requirement")
    if entry.total_coverage < 50:
        gaps.append("Requirement may need direct assessment or additional controls")
    return gaps


def build_framework_index(
    framework_id: str,
    controls: list[Control],
    requirements: Optional[list[Requirement]] = None,
    config: Optional[dict] = None,
) -> FrameworkRequirementIndex:
    """Build the requirement -> control index for one framework.

    Only leaf requirements are indexed. Each control lands in at most one
    bucket per requirement (direct > partial > supportive).
    """
    cfg = resolve_config(config)
    sibling_support = bool(cfg["index"]["sibling_support"])
    fully_mapped_at = cfg["thresholds"]["fully_mapped"]

    if requirements is None:
        requirements = get_framework_requirements(framework_id)

    index = FrameworkRequirementIndex(
        framework_id=framework_id,
        framework_version=next((r.framework_version for r in requirements if r.framework_version), ""),
        last_built=datetime.now().strftime("%Y-%m-%dT%H:%M:%S"),
    )

    relevant = [c for c in controls if c.mappings_for(framework_id)]

    for req in requirements:
        if not req.is_leaf:
            continue

        buckets: dict[MappingStrength, list[str]] = defaultdict(list)
        for control in relevant:
            strength = best_strength(control, req, sibling_support)
            if strength is not None:
                buckets[strength].append(control.id)

        entry = RequirementIndexEntry(
            requirement_id=req.id,
            code=req.code,
            direct_controls=buckets[MappingStrength.DIRECT],
            partial_controls=buckets[MappingStrength.PARTIAL],
            supportive_controls=buckets[MappingStrength.SUPPORTIVE],
        )
        entry.total_coverage = estimate_coverage(
            len(entry.direct_controls),
            len(entry.partial_controls),
            len(entry.supportive_controls),
        )
        entry.gaps = _index_gaps(entry)
        index.requirement_map[req.id] = entry

        if entry.control_count == 0:
            index.unmapped_requirements.append(req.id)
        elif entry.total_coverage >= fully_mapped_at:
            index.fully_mapped_requirements.append(req.id)

    return index


class IndexCache:
    """Per-framework index cache.

    Entries are only dropped by an explicit ``invalidate`` call; the cache
    never rebuilds on its own when controls change.
    """

    def __init__(self, config: Optional[dict] = None):
        self.config = config
        self._indexes: dict[str, FrameworkRequirementIndex] = {}

    def get(
        self,
        framework_id: str,
        controls: list[Control],
        requirements: Optional[list[Requirement]] = None,
    ) -> FrameworkRequirementIndex:
        if framework_id not in self._indexes:
            self._indexes[framework_id] = build_framework_index(
                framework_id, controls, requirements, self.config,
            )
        return self._indexes[framework_id]

    def invalidate(self, framework_id: Optional[str] = None) -> None:
        """Drop one framework's index, or all of them when no ID is given."""
        if framework_id is None:
            self._indexes.clear()
        else:
            self._indexes.pop(framework_id, None)

    def clear(self) -> None:
        self.invalidate()

    def __contains__(self, framework_id: str) -> bool:
        return framework_id in self._indexes


def get_control_mappings_for_requirement(
    requirement: Requirement,
    controls: list[Control],
    get_control_answer: Optional[Callable[[str], Optional[str]]] = None,
    config: Optional[dict] = None,
) -> list[ControlMappingAssessment]:
    """Assess every control that touches a requirement, strongest first."""
    cfg = resolve_config(config)
    sibling_support = bool(cfg["index"]["sibling_support"])
    fixed_coverage = cfg["assessment_coverage"]

    assessments: list[ControlMappingAssessment] = []
    for control in controls:
        strength = best_strength(control, requirement, sibling_support)
        if strength is None:
            continue

        gap_description = None
        if strength == MappingStrength.PARTIAL:
            declared = next(
                m.clause_id for m in control.mappings_for(requirement.framework_id)
                if classify_clause(m.clause_id, requirement.code, sibling_support) == strength
            )
            gap_description = f"Control maps to {declared} which is a parent of {requirement.code}"
        elif strength == MappingStrength.SUPPORTIVE:
            gap_description = (
                f"Control provides supporting coverage but does not directly address {requirement.code}"
            )

        assessments.append(ControlMappingAssessment(
            control_id=control.id,
            mapping_type=strength,
            coverage_percentage=fixed_coverage[strength.value],
            gap_description=gap_description,
            control_answer=get_control_answer(control.id) if get_control_answer else None,
        ))

    assessments.sort(key=lambda a: a.coverage_percentage, reverse=True)
    return assessments


def get_framework_coverage_stats(
    framework_id: str,
    controls: list[Control],
    requirements: Optional[list[Requirement]] = None,
    config: Optional[dict] = None,
) -> dict:
    """Summary counts and average coverage for one framework."""
    if requirements is None:
        requirements = get_framework_requirements(framework_id)
    index = build_framework_index(framework_id, controls, requirements, config)

    leaves = [r for r in requirements if r.is_leaf]
    entries = list(index.requirement_map.values())
    average = round(sum(e.total_coverage for e in entries) / len(entries)) if entries else 0

    by_level: dict[int, list[int]] = defaultdict(list)
    for req in leaves:
        by_level[req.level].append(index.requirement_map[req.id].total_coverage)

    return {
        "framework_id": framework_id,
        "framework_version": index.framework_version,
        "total_requirements": len(requirements),
        "leaf_requirements": len(leaves),
        "mapped_requirements": len(entries) - len(index.unmapped_requirements),
        "unmapped_requirements": len(index.unmapped_requirements),
        "fully_mapped_requirements": len(index.fully_mapped_requirements),
        "average_coverage": average,
        "coverage_by_level": {
            level: round(sum(values) / len(values)) for level, values in sorted(by_level.items())
        },
    }
