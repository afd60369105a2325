"""3-layer configuration system for the crosswalk engine.

Loads and merges configuration from:
1. Default settings (built-in)
2. Project config (.crosswalk/config.yaml)
3. CLI parameters (override)

Thresholds and keyword tables live here rather than in the scoring code so
they can be recalibrated or localized without code changes.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Optional

import yaml

PROJECT_DIR_NAME = ".crosswalk"

DEFAULT_CONFIG: dict = {
    "thresholds": {
        "sufficient_coverage": 80,
        "high_severity_below": 50,
        "fully_mapped": 80,
        "partial_progress": 50,
    },
    "index": {
        # Count controls that only share a top-level clause segment as supportive
        "sibling_support": False,
    },
    "synthesized": {
        "strength": "partial",
        "coverage": 50,
    },
    "answer_weights": {
        "yes": 1.0,
        "partial": 0.5,
        "no": 0.0,
        "na": 0.0,
    },
    "assessment_coverage": {
        "direct": 80,
        "partial": 40,
        "supportive": 15,
    },
    "gap_severity": {
        "keywords": {
            "critical": ["critical", "encryption", "authentication"],
            "high": ["access", "audit", "incident", "backup"],
            "medium": ["policy", "procedure", "training"],
        },
        "clause_families": {
            "critical": ["CC6", "164.312"],
        },
    },
    "drift": {
        "strengthening_keywords": {
            "must": 1,
            "shall": 1,
            "required": 1,
            "mandatory": 1,
            "continuous": 1,
            "real-time": 1,
            "automated": 1,
            "multi-factor": 1,
            "mfa": 1,
            "zero trust": 1,
            "quantum": 1,
            "post-quantum": 1,
            "ai": 1,
            "algorithm": 1,
            "model": 1,
        },
        "strengthened_margin": 2,
        "response_match_ratio": 0.6,
        "category_checks": {
            "ZERO_TRUST": {
                "requires": "continuous",
                "gap": "Missing continuous authentication/verification",
            },
            "QUANTUM_READINESS": {
                "requires": "post-quantum",
                "gap": "No post-quantum cryptography migration plan",
            },
            "AI_TRANSPARENCY": {
                "requires": "training data",
                "gap": "Training data documentation not addressed",
            },
        },
    },
    "suggestions": {
        "min_confidence": 30,
        "limit": 10,
    },
    "report": {
        "fail_on": ["critical", "high"],
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def resolve_config(config: Optional[dict] = None) -> dict:
    """Fill any keys missing from a partial config with the defaults."""
    if not config:
        return DEFAULT_CONFIG
    return deep_merge(DEFAULT_CONFIG, config)


def load_project_config(project_path: Path) -> dict:
    """Load project configuration from .crosswalk/config.yaml."""
    config_path = project_path / PROJECT_DIR_NAME / "config.yaml"
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        return yaml.safe_load(content) or {}
    except Exception:
        return {}


def get_effective_config(
    project_path: Path,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration for a project."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    project_config = load_project_config(project_path)
    if project_config:
        config = deep_merge(config, project_config)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    config["_project_path"] = str(project_path)

    return config
