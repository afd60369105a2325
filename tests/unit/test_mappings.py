"""Tests for core/mappings.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from crosswalk.core.mappings import (
    bulk_create_mappings,
    create_mapping,
    get_mappings_for_control,
    get_mappings_for_requirement,
    initialize_mappings_from_controls,
    remove_mapping,
    synthesize_mappings,
    update_mapping,
)
from crosswalk.core.store import InMemoryStore
from crosswalk.models.mapping import MappingStatus, MappingStrength


class TestCreateMapping:
    def test_persists_explicit(self):
        store = InMemoryStore()
        mapping = create_mapping(store, "AC-001", "SOC2-CC6.1", "direct", 70)
        assert mapping.kind == "explicit"
        assert mapping.human_reviewed is True
        assert store.load_mappings()[0].id == mapping.id

    @pytest.mark.parametrize("pct", [-1, 100.5])
    def test_rejects_out_of_range_coverage(self, pct):
        store = InMemoryStore()
        with pytest.raises(ValidationError):
            create_mapping(store, "AC-001", "SOC2-CC6.1", "direct", pct)
        assert store.load_mappings() == []

    def test_rejects_unknown_strength(self):
        with pytest.raises(ValidationError):
            create_mapping(InMemoryStore(), "AC-001", "SOC2-CC6.1", "strong", 50)

    def test_bulk_validates_before_writing(self):
        store = InMemoryStore()
        with pytest.raises(ValidationError):
            bulk_create_mappings(store, [
                {"control_id": "A", "requirement_id": "R1", "mapping_strength": "direct", "coverage_percentage": 50},
                {"control_id": "B", "requirement_id": "R2", "mapping_strength": "direct", "coverage_percentage": 150},
            ])
        assert store.load_mappings() == []


class TestUpdateAndRemove:
    def test_update(self):
        store = InMemoryStore()
        mapping = create_mapping(store, "AC-001", "SOC2-CC6.1", "direct", 70)
        updated = update_mapping(store, mapping.id, coverage_percentage=90, validated_by="auditor")
        assert updated.coverage_percentage == 90
        assert store.load_mappings()[0].validated_by == "auditor"

    def test_update_unknown(self):
        assert update_mapping(InMemoryStore(), "missing", coverage_percentage=10) is None

    def test_remove(self):
        store = InMemoryStore()
        mapping = create_mapping(store, "AC-001", "SOC2-CC6.1", "direct", 70)
        assert remove_mapping(store, mapping.id) is True
        assert remove_mapping(store, mapping.id) is False


class TestQueries:
    def test_deprecated_hidden_by_default(self):
        store = InMemoryStore()
        create_mapping(store, "AC-001", "SOC2-CC6.1", "direct", 70)
        create_mapping(store, "AC-001", "SOC2-CC6.2", "partial", 30, status=MappingStatus.DEPRECATED)
        assert len(get_mappings_for_control(store, "AC-001")) == 1
        assert len(get_mappings_for_control(store, "AC-001", include_deprecated=True)) == 2
        assert get_mappings_for_requirement(store, "SOC2-CC6.2") == []


class TestSynthesizedMappings:
    def test_exact_declarations_only(self, controls, soc2_requirements):
        cc61 = next(r for r in soc2_requirements if r.code == "CC6.1")
        synthesized = synthesize_mappings(cc61, controls)
        assert [m.control_id for m in synthesized] == ["AC-001"]
        assert synthesized[0].mapping_strength == MappingStrength.PARTIAL
        assert synthesized[0].coverage_percentage == 50
        assert synthesized[0].kind == "synthesized"

    def test_configurable_defaults(self, controls, soc2_requirements):
        cc61 = next(r for r in soc2_requirements if r.code == "CC6.1")
        synthesized = synthesize_mappings(cc61, controls, {"synthesized": {"strength": "supportive", "coverage": 20}})
        assert synthesized[0].mapping_strength == MappingStrength.SUPPORTIVE
        assert synthesized[0].coverage_percentage == 20

    def test_initialize_once(self, controls, soc2_requirements):
        store = InMemoryStore()
        assert initialize_mappings_from_controls(store, controls, soc2_requirements) == 2
        assert initialize_mappings_from_controls(store, controls, soc2_requirements) == 0
        assert {m.requirement_id for m in store.load_mappings()} == {"SOC2-CC6.1", "SOC2-CC3.1"}
