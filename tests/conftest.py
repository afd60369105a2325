"""Shared fixtures for Control Crosswalk tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from crosswalk.catalog.flatten import flatten_hipaa, flatten_soc2
from crosswalk.models.control import Control
from crosswalk.models.requirement import Requirement


@pytest.fixture
def soc2_catalog() -> dict:
    """A trimmed SOC2 catalog in its native nested shape."""
    return {
        "id": "SOC2",
        "name": "SOC 2 Type II",
        "version": "2017",
        "trust_services_categories": [
            {
                "id": "SECURITY",
                "name": "Security",
                "required": True,
                "categories": [
                    {
                        "id": "CC6",
                        "name": "Logical and Physical Access Controls",
                        "criteria": [
                            {"id": "CC6.1", "title": "Logical and Physical Access Controls"},
                            {"id": "CC6.2", "title": "User Registration and Authorization"},
                        ],
                    },
                    {
                        "id": "CC3",
                        "name": "Risk Assessment",
                        "criteria": [
                            {"id": "CC3.1", "title": "Specifies Suitable Objectives"},
                        ],
                    },
                ],
            }
        ],
    }


@pytest.fixture
def hipaa_catalog() -> dict:
    return {
        "id": "HIPAA",
        "name": "HIPAA Security Rule",
        "version": "2013",
        "safeguards": [
            {
                "id": "TECHNICAL",
                "name": "Technical Safeguards",
                "section": "164.312",
                "standards": [
                    {
                        "id": "164.312(a)(1)",
                        "name": "Access Control",
                        "specifications": [
                            {"id": "164.312(a)(2)(i)", "title": "Unique User Identification", "type": "required"},
                            {"id": "164.312(a)(2)(iii)", "title": "Automatic Logoff", "type": "addressable"},
                        ],
                    },
                    {
                        "id": "164.312(d)",
                        "name": "Person or Entity Authentication",
                        "specifications": [
                            {"id": "164.312(d)", "title": "Person or Entity Authentication", "type": "required"},
                        ],
                    },
                ],
            }
        ],
    }


@pytest.fixture
def soc2_requirements(soc2_catalog: dict) -> list[Requirement]:
    return flatten_soc2(soc2_catalog)


@pytest.fixture
def hipaa_requirements(hipaa_catalog: dict) -> list[Requirement]:
    return flatten_hipaa(hipaa_catalog)


@pytest.fixture
def controls() -> list[Control]:
    """Controls declaring SOC2 and HIPAA clauses at different depths."""
    return [
        Control.model_validate({
            "id": "AC-001",
            "title": "Multi-Factor Authentication",
            "keywords": ["mfa", "authentication", "multi-factor", "login"],
            "framework_mappings": [
                {"framework_id": "SOC2", "clause_id": "CC6.1"},
                {"framework_id": "HIPAA", "clause_id": "164.312(d)"},
            ],
        }),
        Control.model_validate({
            "id": "AC-002",
            "title": "Role-Based Access Reviews",
            "keywords": ["access", "role", "review"],
            "framework_mappings": [
                {"framework_id": "SOC2", "clause_id": "CC6"},
                {"framework_id": "HIPAA", "clause_id": "164.312(a)(1)"},
            ],
        }),
        Control.model_validate({
            "id": "RA-001",
            "title": "Annual Risk Assessment",
            "keywords": ["risk", "assessment"],
            "framework_mappings": [
                {"framework_id": "SOC2", "clause_id": "CC3.1"},
            ],
        }),
    ]


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    project = tmp_path / "org"
    project.mkdir()
    return project


@pytest.fixture
def initialized_project(tmp_project: Path) -> Path:
    """Project with .crosswalk/, two controls and a couple of answers."""
    xw_dir = tmp_project / ".crosswalk"
    (xw_dir / "frameworks").mkdir(parents=True)
    (xw_dir / "controls.yaml").write_text(
        "controls:\n"
        "  - id: AC-001\n"
        "    title: Multi-Factor Authentication\n"
        "    keywords: [mfa, authentication]\n"
        "    framework_mappings:\n"
        "      - {framework_id: SOC2, clause_id: CC6.1}\n"
        "      - {framework_id: HIPAA, clause_id: 164.312(d)}\n"
        "  - id: LM-001\n"
        "    title: Centralized Audit Logging\n"
        "    keywords: [audit, logging]\n"
        "    framework_mappings:\n"
        "      - {framework_id: SOC2, clause_id: CC7.2}\n",
        encoding="utf-8",
    )
    (xw_dir / "answers.yaml").write_text(
        "AC-001: yes\n"
        "LM-001:\n"
        "  answer: partial\n"
        "  evidence:\n"
        "    - {id: EV-1, name: SIEM retention policy, status: verified}\n",
        encoding="utf-8",
    )
    return tmp_project
