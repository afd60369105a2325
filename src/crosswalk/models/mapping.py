"""Requirement-control mapping data models.

A mapping is either explicit (created or reviewed by a person) or synthesized
from a control's own framework declarations. The two variants share a shape
but carry a ``kind`` tag so audit-grade scoring can tell them apart.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%dT%H:%M:%S")


def _new_id() -> str:
    return str(uuid.uuid4())


class MappingStrength(str, Enum):
    DIRECT = "direct"
    PARTIAL = "partial"
    SUPPORTIVE = "supportive"


class MappingStatus(str, Enum):
    ACTIVE = "active"
    PENDING_REVIEW = "pending_review"
    DEPRECATED = "deprecated"


class _MappingBase(BaseModel):
    id: str = Field(default_factory=_new_id)
    control_id: str
    requirement_id: str
    mapping_strength: MappingStrength
    coverage_percentage: float = Field(ge=0, le=100)
    covered_aspects: list[str] = []
    uncovered_aspects: list[str] = []
    justification: str = ""
    status: MappingStatus = MappingStatus.ACTIVE
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)


class ExplicitMapping(_MappingBase):
    """A reviewed link between one control and one requirement."""

    kind: Literal["explicit"] = "explicit"
    is_auto_mapped: bool = False
    auto_map_confidence: Optional[int] = None
    human_reviewed: bool = True
    validated_by: Optional[str] = None
    validation_notes: Optional[str] = None


class SynthesizedMapping(_MappingBase):
    """A link derived from ``Control.framework_mappings``, never reviewed."""

    kind: Literal["synthesized"] = "synthesized"
    is_auto_mapped: bool = True
    auto_map_confidence: Optional[int] = None
    human_reviewed: bool = False
    source_clause_id: str = ""


RequirementControlMapping = Annotated[
    Union[ExplicitMapping, SynthesizedMapping],
    Field(discriminator="kind"),
]


class RequirementIndexEntry(BaseModel):
    """Inverse-index row: the controls bucketed against one leaf requirement."""

    requirement_id: str
    code: str
    direct_controls: list[str] = []
    partial_controls: list[str] = []
    supportive_controls: list[str] = []
    total_coverage: int = 0
    gaps: list[str] = []

    @property
    def control_count(self) -> int:
        return len(self.direct_controls) + len(self.partial_controls) + len(self.supportive_controls)


class FrameworkRequirementIndex(BaseModel):
    """Requirement -> control index for a single framework."""

    framework_id: str
    framework_version: str = ""
    requirement_map: dict[str, RequirementIndexEntry] = {}
    unmapped_requirements: list[str] = []
    fully_mapped_requirements: list[str] = []
    last_built: str = ""


class ControlMappingAssessment(BaseModel):
    """How one control relates to one requirement, for assessment views."""

    control_id: str
    mapping_type: MappingStrength
    coverage_percentage: float
    gap_description: Optional[str] = None
    control_answer: Optional[str] = None
