"""Requirement version drift data models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class RequirementCategory(str, Enum):
    AI_TRANSPARENCY = "AI_TRANSPARENCY"
    AI_RISK_CLASSIFICATION = "AI_RISK_CLASSIFICATION"
    QUANTUM_READINESS = "QUANTUM_READINESS"
    ZERO_TRUST = "ZERO_TRUST"
    DATA_RESIDENCY = "DATA_RESIDENCY"
    SUPPLY_CHAIN = "SUPPLY_CHAIN"
    ALGORITHMIC_AUDIT = "ALGORITHMIC_AUDIT"
    HUMAN_OVERSIGHT = "HUMAN_OVERSIGHT"
    TRADITIONAL = "TRADITIONAL"


class ChangeType(str, Enum):
    REQUIREMENT_STRENGTHENED = "requirement_strengthened"
    REQUIREMENT_CLARIFIED = "requirement_clarified"


class ImpactLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DriftStatus(str, Enum):
    DETECTED = "detected"
    ACKNOWLEDGED = "acknowledged"
    REMEDIATION_PLANNED = "remediation_planned"
    IN_REMEDIATION = "in_remediation"
    RESOLVED = "resolved"
    RISK_ACCEPTED = "risk_accepted"


class ActionType(str, Enum):
    UPDATE_CONTROL = "update_control"
    ADD_EVIDENCE = "add_evidence"
    UPDATE_POLICY = "update_policy"
    IMPLEMENT_NEW = "implement_new"
    REASSESS = "reassess"


class VersionedRequirement(BaseModel):
    """One requirement as published in one framework version."""

    id: str
    framework_id: str
    framework_version: str
    section_code: str = ""
    section_title: str = ""
    requirement_text: str
    keywords: list[str] = []
    category: RequirementCategory = RequirementCategory.TRADITIONAL
    risk_level: str = "medium"


class UserResponse(BaseModel):
    question_id: str
    question_text: str = ""
    user_answer: str
    answered_at: str = ""
    meets_new_requirement: Optional[bool] = None
    gap_analysis: Optional[str] = None


class RequiredAction(BaseModel):
    id: str
    action_type: ActionType
    description: str
    priority: str
    status: str = "pending"
    deadline: Optional[str] = None
    assigned_to: Optional[str] = None


class ChangeAnalysis(BaseModel):
    change_type: ChangeType
    impact_level: ImpactLevel
    summary: str
    old_strength: float = 0
    new_strength: float = 0


class ComplianceDrift(BaseModel):
    """One detected version transition for one requirement."""

    id: str
    detected_at: str
    requirement_id: str
    previous_requirement_id: str = ""
    previous_version: str
    new_version: str
    change_type: ChangeType
    change_summary: str = ""
    impact_level: ImpactLevel
    affected_control_ids: list[str] = []
    compliance_gap_description: str = ""
    status: DriftStatus = DriftStatus.DETECTED
    previous_user_responses: list[UserResponse] = []
    required_actions: list[RequiredAction] = []
    resolution_notes: Optional[str] = None
    resolved_at: Optional[str] = None
