"""Tests for core/index.py."""

from __future__ import annotations

from unittest.mock import patch

from crosswalk.core.index import (
    IndexCache,
    build_framework_index,
    get_control_mappings_for_requirement,
    get_framework_coverage_stats,
)
from crosswalk.models.control import Control
from crosswalk.models.mapping import MappingStrength


class TestBuildFrameworkIndex:
    def test_buckets(self, controls, soc2_requirements):
        idx = build_framework_index("SOC2", controls, soc2_requirements)
        cc61 = idx.requirement_map["SOC2-CC6.1"]
        assert cc61.direct_controls == ["AC-001"]
        assert cc61.partial_controls == ["AC-002"]
        assert cc61.total_coverage == 65

    def test_only_leaves_indexed(self, controls, soc2_requirements):
        idx = build_framework_index("SOC2", controls, soc2_requirements)
        assert set(idx.requirement_map) == {"SOC2-CC6.1", "SOC2-CC6.2", "SOC2-CC3.1"}

    def test_partial_only_requirement(self, controls, soc2_requirements):
        idx = build_framework_index("SOC2", controls, soc2_requirements)
        cc62 = idx.requirement_map["SOC2-CC6.2"]
        assert cc62.partial_controls == ["AC-002"]
        assert cc62.total_coverage == 30
        assert "No controls directly address this requirement" in cc62.gaps
        assert "Requirement may need direct assessment or additional controls" in cc62.gaps

    def test_one_bucket_per_control(self, soc2_requirements):
        both = Control.model_validate({
            "id": "X-1",
            "title": "Declares parent and clause",
            "framework_mappings": [
                {"framework_id": "SOC2", "clause_id": "CC6"},
                {"framework_id": "SOC2", "clause_id": "CC6.1"},
            ],
        })
        entry = build_framework_index("SOC2", [both], soc2_requirements).requirement_map["SOC2-CC6.1"]
        assert entry.direct_controls == ["X-1"]
        assert entry.partial_controls == []

    def test_descendant_declaration_supportive(self, soc2_requirements):
        deep = Control.model_validate({
            "id": "X-2",
            "title": "Deep",
            "framework_mappings": [{"framework_id": "SOC2", "clause_id": "CC6.1.2"}],
        })
        entry = build_framework_index("SOC2", [deep], soc2_requirements).requirement_map["SOC2-CC6.1"]
        assert entry.supportive_controls == ["X-2"]
        assert entry.total_coverage == 5

    def test_unmapped_and_fully_mapped(self, controls, soc2_requirements):
        extra = Control.model_validate({
            "id": "AC-003",
            "title": "Access logging",
            "framework_mappings": [{"framework_id": "SOC2", "clause_id": "CC6.1"}],
        })
        idx = build_framework_index("SOC2", [*controls, extra], soc2_requirements)
        assert idx.requirement_map["SOC2-CC6.1"].total_coverage == 75
        assert idx.fully_mapped_requirements == []

        no_controls = build_framework_index("SOC2", [], soc2_requirements)
        assert no_controls.unmapped_requirements == ["SOC2-CC6.1", "SOC2-CC6.2", "SOC2-CC3.1"]

    def test_rebuild_is_idempotent(self, controls, soc2_requirements):
        first = build_framework_index("SOC2", controls, soc2_requirements)
        second = build_framework_index("SOC2", controls, soc2_requirements)
        assert first.requirement_map == second.requirement_map
        assert first.unmapped_requirements == second.unmapped_requirements
        assert first.fully_mapped_requirements == second.fully_mapped_requirements

    def test_other_framework_declarations_ignored(self, controls, hipaa_requirements):
        idx = build_framework_index("HIPAA", controls, hipaa_requirements)
        assert idx.requirement_map["HIPAA-164.312(d)"].direct_controls == ["AC-001"]
        assert "HIPAA-164.312(a)(2)(iii)" in idx.requirement_map
        assert idx.requirement_map["HIPAA-164.312(a)(2)(iii)"].direct_controls == []

    def test_version_recorded(self, controls, soc2_requirements):
        assert build_framework_index("SOC2", controls, soc2_requirements).framework_version == "2017"


class TestIndexCache:
    def test_builds_once_until_invalidated(self, controls, soc2_requirements):
        cache = IndexCache()
        with patch("crosswalk.core.index.build_framework_index", wraps=build_framework_index) as build:
            cache.get("SOC2", controls, soc2_requirements)
            cache.get("SOC2", controls, soc2_requirements)
            assert build.call_count == 1

            cache.invalidate("SOC2")
            assert "SOC2" not in cache
            cache.get("SOC2", controls, soc2_requirements)
            assert build.call_count == 2

    def test_stale_until_invalidated(self, controls, soc2_requirements):
        cache = IndexCache()
        cache.get("SOC2", controls, soc2_requirements)
        stale = cache.get("SOC2", [], soc2_requirements)
        assert stale.requirement_map["SOC2-CC6.1"].direct_controls == ["AC-001"]

        cache.clear()
        fresh = cache.get("SOC2", [], soc2_requirements)
        assert fresh.requirement_map["SOC2-CC6.1"].direct_controls == []


class TestControlMappingsForRequirement:
    def test_sorted_with_fixed_coverage_and_answers(self, controls, soc2_requirements):
        cc61 = next(r for r in soc2_requirements if r.code == "CC6.1")
        answers = {"AC-001": "yes", "AC-002": "partial"}
        result = get_control_mappings_for_requirement(cc61, controls, answers.get)
        assert [(a.control_id, a.mapping_type, a.coverage_percentage) for a in result] == [
            ("AC-001", MappingStrength.DIRECT, 80),
            ("AC-002", MappingStrength.PARTIAL, 40),
        ]
        assert result[0].control_answer == "yes"
        assert result[1].gap_description == "Control maps to CC6 which is a parent of CC6.1"


class TestCoverageStats:
    def test_counts(self, controls, soc2_requirements):
        stats = get_framework_coverage_stats("SOC2", controls, soc2_requirements)
        assert stats["total_requirements"] == 6
        assert stats["leaf_requirements"] == 3
        assert stats["mapped_requirements"] == 3
        assert stats["unmapped_requirements"] == 0
        assert stats["coverage_by_level"] == {2: stats["average_coverage"]}
