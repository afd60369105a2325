"""Tests for core/progress.py."""

from __future__ import annotations

import pytest

from crosswalk.core.progress import (
    ProgressContext,
    answer_to_status,
    determine_status,
    generate_auto_mapping_suggestions,
    get_control_coverage_index,
    get_framework_compliance_summary,
    get_requirement_progress,
    resolve_mapped_controls,
)
from crosswalk.models.gap import Gap, GapSeverity, GapStatus, GapType
from crosswalk.models.mapping import ExplicitMapping, MappingStrength
from crosswalk.models.progress import (
    ControlImplementationStatus as Impl,
    EvidenceReference,
    MappedControlSummary,
    RequirementStatus,
)
from crosswalk.models.requirement import Requirement


def _ctx(controls, answers=None, evidence=None) -> ProgressContext:
    answers = answers or {}
    evidence = evidence or {}
    return ProgressContext(
        controls=controls,
        get_control_answer=answers.get,
        get_control_evidence=lambda cid: evidence.get(cid, []),
    )


def _summary(status: Impl) -> MappedControlSummary:
    return MappedControlSummary(
        control_id="C", mapping_strength=MappingStrength.DIRECT, coverage_percentage=60, implementation_status=status,
    )


class TestAnswerToStatus:
    @pytest.mark.parametrize(
        "answer,expected",
        [
            ("yes", Impl.IMPLEMENTED),
            ("partial", Impl.IN_PROGRESS),
            ("na", Impl.NOT_APPLICABLE),
            ("no", Impl.NOT_STARTED),
            (None, Impl.NOT_STARTED),
        ],
    )
    def test_mapping(self, answer, expected):
        assert answer_to_status(answer) == expected

    def test_verified_evidence(self):
        assert answer_to_status("yes", has_verified_evidence=True) == Impl.VERIFIED


class TestDetermineStatus:
    def test_open_gap_wins(self):
        assert determine_status([_summary(Impl.IMPLEMENTED)], 100, True) == RequirementStatus.CUSTOM_GAP

    def test_nothing_mapped(self):
        assert determine_status([], 0, False) == RequirementStatus.NOT_STARTED

    def test_all_applicable_implemented(self):
        controls = [_summary(Impl.IMPLEMENTED), _summary(Impl.NOT_APPLICABLE), _summary(Impl.VERIFIED)]
        assert determine_status(controls, 60, False) == RequirementStatus.COMPLIANT

    def test_all_na_is_not_compliant(self):
        assert determine_status([_summary(Impl.NOT_APPLICABLE)], 0, False) == RequirementStatus.NOT_APPLICABLE

    def test_partial_by_weighted_coverage(self):
        controls = [_summary(Impl.IMPLEMENTED), _summary(Impl.NOT_STARTED)]
        assert determine_status(controls, 50, False) == RequirementStatus.PARTIALLY_COMPLIANT
        assert determine_status(controls, 49, False) == RequirementStatus.IN_PROGRESS

    def test_not_started(self):
        assert determine_status([_summary(Impl.NOT_STARTED)], 0, False) == RequirementStatus.NOT_STARTED


class TestResolveMappedControls:
    def test_stored_mappings_preferred(self, controls, soc2_requirements):
        cc61 = next(r for r in soc2_requirements if r.code == "CC6.1")
        stored = [ExplicitMapping(control_id="AC-002", requirement_id=cc61.id, mapping_strength="partial", coverage_percentage=30)]
        resolved = resolve_mapped_controls(cc61, stored, _ctx(controls))
        assert [m.control_id for m in resolved] == ["AC-002"]

    def test_synthesized_when_nothing_stored(self, controls, soc2_requirements):
        cc61 = next(r for r in soc2_requirements if r.code == "CC6.1")
        resolved = resolve_mapped_controls(cc61, [], _ctx(controls))
        assert [(m.control_id, m.kind) for m in resolved] == [("AC-001", "synthesized")]


class TestRequirementProgress:
    def test_unknown_requirement(self, controls, soc2_requirements):
        assert get_requirement_progress("SOC2-NOPE", soc2_requirements, [], [], _ctx(controls)) is None

    def test_compliant_from_synthesized(self, controls, soc2_requirements):
        evidence = {"AC-001": [EvidenceReference(id="EV-1", status="verified"), EvidenceReference(id="EV-2")]}
        progress = get_requirement_progress(
            "SOC2-CC6.1", soc2_requirements, [], [], _ctx(controls, {"AC-001": "yes"}, evidence),
        )
        assert progress.status == RequirementStatus.COMPLIANT
        assert progress.total_coverage == 50
        assert progress.weighted_coverage == 50
        assert progress.reviewed_coverage == 0
        assert progress.mapped_controls[0].implementation_status == Impl.VERIFIED
        assert progress.evidence_summary.total == 2
        assert progress.evidence_summary.verified == 1

    def test_open_gap_reported(self, controls, soc2_requirements):
        gap = Gap(requirement_id="SOC2-CC6.2", gap_type=GapType.NO_CONTROL_MAPPED, severity=GapSeverity.HIGH, description="none")
        progress = get_requirement_progress("SOC2-CC6.2", soc2_requirements, [], [gap], _ctx(controls))
        assert progress.status == RequirementStatus.CUSTOM_GAP
        assert progress.has_gap is True
        assert progress.gap_info.gap_id == gap.id

    def test_resolved_gap_not_open(self, controls, soc2_requirements):
        gap = Gap(
            requirement_id="SOC2-CC6.1", gap_type=GapType.INSUFFICIENT_COVERAGE,
            severity=GapSeverity.MEDIUM, status=GapStatus.RESOLVED,
        )
        progress = get_requirement_progress("SOC2-CC6.1", soc2_requirements, [], [gap], _ctx(controls, {"AC-001": "yes"}))
        assert progress.has_gap is False
        assert progress.status == RequirementStatus.COMPLIANT

    def test_reviewed_coverage_counts_explicit_only(self, controls, soc2_requirements):
        stored = [ExplicitMapping(control_id="AC-001", requirement_id="SOC2-CC6.1", mapping_strength="direct", coverage_percentage=70)]
        progress = get_requirement_progress("SOC2-CC6.1", soc2_requirements, stored, [], _ctx(controls))
        assert progress.reviewed_coverage == 70


class TestFrameworkSummary:
    def test_score_and_counts(self, controls, soc2_requirements):
        gap = Gap(requirement_id="SOC2-CC6.2", gap_type=GapType.NO_CONTROL_MAPPED, severity=GapSeverity.CRITICAL)
        summary = get_framework_compliance_summary(
            "SOC2", soc2_requirements, [], [gap], _ctx(controls, {"AC-001": "yes", "RA-001": "na"}),
        )
        assert summary.total_requirements == 3
        assert summary.compliant == 1
        assert summary.custom_gaps == 1
        assert summary.not_applicable == 1
        assert summary.critical_gaps == 1
        # (1 + 0) / (3 - 1)
        assert summary.overall_score == 50
        assert summary.framework_version == "2017"

    def test_nothing_assessable(self, soc2_requirements):
        summary = get_framework_compliance_summary("SOC2", soc2_requirements, [], [], _ctx([]))
        assert summary.overall_score == 0
        assert summary.not_started == 3


class TestControlCoverageIndex:
    def test_unknown_control_empty(self, controls, soc2_requirements):
        index = get_control_coverage_index("NOPE", soc2_requirements, [], _ctx(controls))
        assert index.mapped_requirements == []
        assert index.framework_coverage == {}

    def test_across_frameworks(self, controls, soc2_requirements, hipaa_requirements):
        index = get_control_coverage_index("AC-001", soc2_requirements + hipaa_requirements, [], _ctx(controls))
        assert {r.requirement_id for r in index.mapped_requirements} == {"SOC2-CC6.1", "HIPAA-164.312(d)"}
        assert index.framework_coverage["SOC2"].covered == 1
        assert index.framework_coverage["SOC2"].total == 3
        assert index.framework_coverage["SOC2"].percentage == 33


class TestAutoMappingSuggestions:
    @pytest.fixture
    def candidates(self) -> list[Requirement]:
        return [
            Requirement(
                id="HIPAA-164.312(d)", framework_id="HIPAA", code="164.312(d)",
                title="Person or Entity Authentication",
                description="Verify login identity before granting access",
            ),
            Requirement(
                id="HIPAA-164.312(b)", framework_id="HIPAA", code="164.312(b)",
                title="Audit Controls", description="Record and examine system activity",
            ),
        ]

    def test_keyword_overlap(self, controls, candidates):
        suggestions = generate_auto_mapping_suggestions(controls[0], candidates, [])
        assert [s.requirement_id for s in suggestions] == ["HIPAA-164.312(d)"]
        top = suggestions[0]
        assert top.confidence == 50
        assert top.suggested_strength == MappingStrength.PARTIAL
        assert top.suggested_coverage == 40
        assert top.matched_keywords == ["authentication", "login"]
        assert top.reasoning == "2 keyword matches found between control and requirement"

    def test_skips_mapped(self, controls, candidates):
        stored = [ExplicitMapping(control_id="AC-001", requirement_id="HIPAA-164.312(d)", mapping_strength="direct", coverage_percentage=80)]
        assert generate_auto_mapping_suggestions(controls[0], candidates, stored) == []

    def test_limit(self, controls, candidates):
        config = {"suggestions": {"limit": 0}}
        assert generate_auto_mapping_suggestions(controls[0], candidates, [], config) == []
