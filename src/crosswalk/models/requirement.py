"""Framework requirement data models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class Requirement(BaseModel):
    """One clause of one framework version, flattened out of its native catalog."""

    id: str
    framework_id: str
    framework_version: str = ""
    code: str
    title: str
    description: str = ""
    parent_code: Optional[str] = None
    level: int = 0
    is_leaf: bool = True
    is_required: bool = True
    category: str = ""


class FrameworkInfo(BaseModel):
    """Catalog metadata for an available framework."""

    id: str
    name: str = ""
    version: str = ""
    description: str = ""
    path: str = ""
