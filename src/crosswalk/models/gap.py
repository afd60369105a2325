"""Coverage gap data models."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class GapType(str, Enum):
    NO_CONTROL_MAPPED = "no_control_mapped"
    INSUFFICIENT_COVERAGE = "insufficient_coverage"


class GapSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class GapStatus(str, Enum):
    IDENTIFIED = "identified"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    ACCEPTED_RISK = "accepted_risk"


CLOSED_GAP_STATUSES = {GapStatus.RESOLVED, GapStatus.ACCEPTED_RISK}


class Effort(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ResolutionOption(BaseModel):
    id: str
    type: str
    description: str
    effort: Effort
    recommended_templates: list[str] = []


class DirectEvidence(BaseModel):
    """Evidence attached straight to a gap rather than to a control."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    gap_id: str = ""
    name: str
    description: str = ""
    evidence_type: str = "document"
    file_urls: list[str] = []
    status: str = "pending"
    uploaded_at: str = Field(default_factory=lambda: datetime.now().strftime("%Y-%m-%dT%H:%M:%S"))
    uploaded_by: str = ""


class CompensatingControl(BaseModel):
    description: str
    justification: str = ""
    risk_mitigation: str = ""
    residual_risk: str = "medium"
    approved_by: str = ""
    valid_until: Optional[str] = None


class RiskAcceptance(BaseModel):
    reason: str
    business_justification: str = ""
    risk_level: GapSeverity = GapSeverity.MEDIUM
    approved_by: str = ""
    expires_at: Optional[str] = None


class Gap(BaseModel):
    """A coverage deficiency for one leaf requirement.

    Identity is keyed by ``requirement_id``: re-running detection refreshes the
    computed fields and keeps everything a person has recorded.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    requirement_id: str
    gap_type: GapType
    severity: GapSeverity
    description: str = ""
    missing_coverage: list[str] = []
    resolution_options: list[ResolutionOption] = []
    selected_resolution: Optional[str] = None
    status: GapStatus = GapStatus.IDENTIFIED
    direct_evidence: list[DirectEvidence] = []
    compensating_control: Optional[CompensatingControl] = None
    risk_acceptance: Optional[RiskAcceptance] = None
    identified_at: str = ""
    identified_by: str = "system"
    resolved_at: Optional[str] = None
    resolved_by: Optional[str] = None
    notes: str = ""

    @property
    def is_open(self) -> bool:
        return self.status not in CLOSED_GAP_STATUSES
