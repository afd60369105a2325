"""Tests for formatters/report.py."""

from __future__ import annotations

from crosswalk import __version__
from crosswalk.formatters.report import generate_compliance_report
from crosswalk.models.gap import Gap, GapSeverity, GapStatus, GapType
from crosswalk.models.mapping import MappingStrength
from crosswalk.models.progress import (
    FrameworkComplianceSummary,
    MappedControlSummary,
    RequirementProgress,
    RequirementStatus,
)


def _summary() -> FrameworkComplianceSummary:
    return FrameworkComplianceSummary(
        framework_id="HIPAA",
        framework_name="HIPAA Security Rule",
        framework_version="2013",
        total_requirements=3,
        compliant=1,
        custom_gaps=1,
        not_started=1,
        overall_score=33,
        critical_gaps=1,
        total_evidence=2,
        verified_evidence=1,
        pending_evidence=1,
    )


def _progress() -> list[RequirementProgress]:
    return [
        RequirementProgress(
            requirement_id="HIPAA-164.312(d)",
            framework_id="HIPAA",
            requirement_code="164.312(d)",
            title="Person or Entity Authentication",
            status=RequirementStatus.COMPLIANT,
            mapped_controls=[
                MappedControlSummary(control_id="AC-001", mapping_strength=MappingStrength.PARTIAL, coverage_percentage=50),
            ],
            total_coverage=50,
            weighted_coverage=50,
        ),
        RequirementProgress(
            requirement_id="HIPAA-164.312(a)(2)(iii)",
            framework_id="HIPAA",
            requirement_code="164.312(a)(2)(iii)",
            title="Automatic Logoff",
            status=RequirementStatus.CUSTOM_GAP,
            has_gap=True,
        ),
    ]


def _gaps() -> list[Gap]:
    return [
        Gap(
            requirement_id="HIPAA-164.312(a)(2)(i)",
            gap_type=GapType.INSUFFICIENT_COVERAGE,
            severity=GapSeverity.MEDIUM,
            description="Controls only cover 60% of requirement 164.312(a)(2)(i)",
        ),
        Gap(
            requirement_id="HIPAA-164.312(a)(2)(iii)",
            gap_type=GapType.NO_CONTROL_MAPPED,
            severity=GapSeverity.CRITICAL,
            description="No controls are mapped to requirement 164.312(a)(2)(iii): Automatic Logoff",
            missing_coverage=["Full requirement coverage"],
        ),
        Gap(
            requirement_id="HIPAA-164.312(b)",
            gap_type=GapType.NO_CONTROL_MAPPED,
            severity=GapSeverity.HIGH,
            status=GapStatus.RESOLVED,
        ),
    ]


class TestGenerateComplianceReport:
    def test_header(self):
        report = generate_compliance_report(_summary(), _progress(), _gaps())
        assert report.startswith("# HIPAA Security Rule Compliance Report")
        assert "**Version:** 2013" in report
        assert "**Overall Score:** 33%" in report
        assert "advisory" in report

    def test_status_counts(self):
        report = generate_compliance_report(_summary(), _progress(), _gaps())
        assert "| Compliant | 1 |" in report
        assert "| Open gap | 1 |" in report
        assert "| Critical | 1 |" in report
        assert "| **Total** | **3** |" in report

    def test_open_gaps_by_severity(self):
        report = generate_compliance_report(_summary(), _progress(), _gaps())
        critical = report.index("### HIPAA-164.312(a)(2)(iii) [CRITICAL]")
        medium = report.index("### HIPAA-164.312(a)(2)(i) [MEDIUM]")
        assert critical < medium
        assert "HIPAA-164.312(b)" not in report
        assert "- Full requirement coverage" in report

    def test_requirement_rows(self):
        report = generate_compliance_report(_summary(), _progress(), _gaps())
        assert "| 164.312(d) Person or Entity Authentication | compliant | 50% | 50% | AC-001 |" in report
        assert "| 164.312(a)(2)(iii) Automatic Logoff | custom_gap | 0% | 0% | - |" in report

    def test_no_gap_section_when_all_closed(self):
        report = generate_compliance_report(_summary(), _progress(), [])
        assert "## Gap Detail" not in report

    def test_footer(self):
        report = generate_compliance_report(_summary(), [], [])
        assert "2 total, 1 verified, 1 pending, 0 expired" in report
        assert f"Generated by Control Crosswalk v{__version__}" in report
