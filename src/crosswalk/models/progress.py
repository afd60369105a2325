"""Auditor-facing progress and coverage read models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .gap import DirectEvidence, GapType
from .mapping import MappingStrength


class ControlAnswer(str, Enum):
    YES = "yes"
    PARTIAL = "partial"
    NO = "no"
    NA = "na"


class ControlImplementationStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    IMPLEMENTED = "implemented"
    VERIFIED = "verified"
    NOT_APPLICABLE = "not_applicable"


class RequirementStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLIANT = "compliant"
    PARTIALLY_COMPLIANT = "partially_compliant"
    NON_COMPLIANT = "non_compliant"
    NOT_APPLICABLE = "not_applicable"
    CUSTOM_GAP = "custom_gap"


class EvidenceReference(BaseModel):
    """Pointer to evidence held by the user-response store."""

    id: str
    name: str = ""
    status: str = "pending"  # pending | verified | expired | rejected


class EvidenceSummary(BaseModel):
    total: int = 0
    verified: int = 0
    pending: int = 0
    expired: int = 0


class MappedControlSummary(BaseModel):
    control_id: str
    control_title: str = ""
    mapping_kind: str = "explicit"
    mapping_strength: MappingStrength
    coverage_percentage: float
    answer: Optional[ControlAnswer] = None
    implementation_status: ControlImplementationStatus = ControlImplementationStatus.NOT_STARTED
    evidence_count: int = 0
    has_verified_evidence: bool = False


class GapInfo(BaseModel):
    gap_id: str
    gap_type: GapType
    description: str
    resolution: Optional[str] = None


class RequirementProgress(BaseModel):
    requirement_id: str
    framework_id: str
    requirement_code: str
    title: str
    status: RequirementStatus
    mapped_controls: list[MappedControlSummary] = []
    total_coverage: int = 0
    weighted_coverage: float = 0.0
    reviewed_coverage: int = 0
    has_gap: bool = False
    gap_info: Optional[GapInfo] = None
    evidence_summary: EvidenceSummary = EvidenceSummary()
    direct_evidence: list[DirectEvidence] = []


class FrameworkComplianceSummary(BaseModel):
    framework_id: str
    framework_name: str = ""
    framework_version: str = ""
    total_requirements: int = 0
    compliant: int = 0
    partially_compliant: int = 0
    in_progress: int = 0
    non_compliant: int = 0
    not_started: int = 0
    not_applicable: int = 0
    custom_gaps: int = 0
    overall_score: int = 0
    critical_gaps: int = 0
    high_gaps: int = 0
    medium_gaps: int = 0
    low_gaps: int = 0
    total_evidence: int = 0
    verified_evidence: int = 0
    pending_evidence: int = 0
    expired_evidence: int = 0
    last_updated: str = ""


class MappedRequirementSummary(BaseModel):
    requirement_id: str
    framework_id: str
    requirement_code: str = ""
    title: str = ""
    mapping_kind: str = "explicit"
    mapping_strength: MappingStrength
    coverage_percentage: float


class FrameworkCoverage(BaseModel):
    total: int = 0
    covered: int = 0
    percentage: int = 0


class ControlCoverageIndex(BaseModel):
    """Which requirements one control satisfies, across every framework."""

    control_id: str
    control_title: str = ""
    mapped_requirements: list[MappedRequirementSummary] = []
    framework_coverage: dict[str, FrameworkCoverage] = {}


class AutoMappingSuggestion(BaseModel):
    control_id: str
    requirement_id: str
    suggested_strength: MappingStrength
    suggested_coverage: float
    confidence: int
    reasoning: str
    matched_keywords: list[str] = []
