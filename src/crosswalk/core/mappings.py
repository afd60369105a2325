"""Mapping operations over a ``MappingStore``.

Explicit mappings are created and edited by people; synthesized mappings are
derived from a control's own framework declarations whenever a requirement
has nothing explicit.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import TypeAdapter

from ..models.control import Control
from ..models.mapping import (
    ExplicitMapping,
    MappingStatus,
    MappingStrength,
    RequirementControlMapping,
    SynthesizedMapping,
)
from ..models.requirement import Requirement
from .clauses import parse_clause
from .config import resolve_config
from .store import MappingStore

_MAPPING = TypeAdapter(RequirementControlMapping)


def is_live(mapping) -> bool:
    """Deprecated mappings no longer count toward coverage."""
    return mapping.status != MappingStatus.DEPRECATED


def synthesize_mappings(
    requirement: Requirement,
    controls: list[Control],
    config: Optional[dict] = None,
) -> list[SynthesizedMapping]:
    """Derive mappings from controls that declare exactly this requirement's clause."""
    cfg = resolve_config(config)["synthesized"]
    target = parse_clause(requirement.code)
    synthesized: list[SynthesizedMapping] = []
    for control in controls:
        for declared in control.mappings_for(requirement.framework_id):
            if parse_clause(declared.clause_id) != target:
                continue
            synthesized.append(SynthesizedMapping(
                control_id=control.id,
                requirement_id=requirement.id,
                mapping_strength=MappingStrength(cfg["strength"]),
                coverage_percentage=cfg["coverage"],
                justification=f"Declared by control {control.id} for {requirement.framework_id} {declared.clause_id}",
                source_clause_id=declared.clause_id,
            ))
            break
    return synthesized


def create_mapping(
    store: MappingStore,
    control_id: str,
    requirement_id: str,
    mapping_strength: str,
    coverage_percentage: float,
    **fields,
) -> ExplicitMapping:
    """Create and persist an explicit mapping.

    Invalid input raises ``ValidationError`` before anything is written.
    """
    mapping = ExplicitMapping(
        control_id=control_id,
        requirement_id=requirement_id,
        mapping_strength=mapping_strength,
        coverage_percentage=coverage_percentage,
        **fields,
    )
    mappings = store.load_mappings()
    mappings.append(mapping)
    store.save_mappings(mappings)
    return mapping


def bulk_create_mappings(store: MappingStore, entries: list[dict]) -> list[ExplicitMapping]:
    """Validate every entry first, then persist them in one write."""
    created = [ExplicitMapping.model_validate(entry) for entry in entries]
    mappings = store.load_mappings()
    mappings.extend(created)
    store.save_mappings(mappings)
    return created


def update_mapping(store: MappingStore, mapping_id: str, **updates):
    """Apply field updates to one mapping. Unknown ID returns None."""
    mappings = store.load_mappings()
    for i, mapping in enumerate(mappings):
        if mapping.id != mapping_id:
            continue
        data = mapping.model_dump()
        data.update(updates)
        data["updated_at"] = datetime.now().strftime("%Y-%m-%dT%H:%M:%S")
        updated = _MAPPING.validate_python(data)
        mappings[i] = updated
        store.save_mappings(mappings)
        return updated
    return None


def remove_mapping(store: MappingStore, mapping_id: str) -> bool:
    mappings = store.load_mappings()
    remaining = [m for m in mappings if m.id != mapping_id]
    if len(remaining) == len(mappings):
        return False
    store.save_mappings(remaining)
    return True


def get_mappings_for_control(store: MappingStore, control_id: str, include_deprecated: bool = False) -> list:
    return [
        m for m in store.load_mappings()
        if m.control_id == control_id and (include_deprecated or is_live(m))
    ]


def get_mappings_for_requirement(store: MappingStore, requirement_id: str, include_deprecated: bool = False) -> list:
    return [
        m for m in store.load_mappings()
        if m.requirement_id == requirement_id and (include_deprecated or is_live(m))
    ]


def initialize_mappings_from_controls(
    store: MappingStore,
    controls: list[Control],
    requirements: list[Requirement],
    config: Optional[dict] = None,
) -> int:
    """Persist synthesized mappings for every leaf requirement, once.

    Does nothing when the store already holds mappings. Returns the number
    of mappings written.
    """
    if store.load_mappings():
        return 0
    synthesized: list[SynthesizedMapping] = []
    for req in requirements:
        if req.is_leaf:
            synthesized.extend(synthesize_mappings(req, controls, config))
    if synthesized:
        store.save_mappings(synthesized)
    return len(synthesized)
