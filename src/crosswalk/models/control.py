"""Organizational control data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class RiskLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FrameworkMapping(BaseModel):
    """A control's declaration that it addresses one framework clause."""

    framework_id: str
    clause_id: str
    clause_title: str = ""


class Control(BaseModel):
    """A safeguard from the organization's control catalog (read-only here)."""

    id: str
    title: str
    description: str = ""
    domain: str = ""
    risk_level: RiskLevel = RiskLevel.MEDIUM
    keywords: list[str] = []
    framework_mappings: list[FrameworkMapping] = []

    def mappings_for(self, framework_id: str) -> list[FrameworkMapping]:
        return [m for m in self.framework_mappings if m.framework_id == framework_id]
