"""Clause ID parsing and hierarchy comparison.

Clause IDs are compared as structured paths, never as raw string prefixes:
``"164.312(a)(2)(iii)"`` becomes ``("164", "312", "a", "2", "iii")`` and
``"GV.OC-01"`` becomes ``("GV", "OC", "01")``. This keeps ``"1.10"`` from
being treated as a child of ``"1.1"``.
"""

from __future__ import annotations

import re
from typing import Optional

from ..models.mapping import MappingStrength

_SEPARATORS = re.compile(r"[.\-()\s]+")


def parse_clause(clause_id: str) -> tuple[str, ...]:
    """Split a clause ID into its hierarchy segments."""
    if not clause_id:
        return ()
    return tuple(seg for seg in _SEPARATORS.split(clause_id.strip()) if seg)


def is_descendant(child: tuple[str, ...], ancestor: tuple[str, ...]) -> bool:
    """True if ``child`` sits strictly below ``ancestor`` in the hierarchy."""
    return bool(ancestor) and len(child) > len(ancestor) and child[: len(ancestor)] == ancestor


def shares_top_level(a: tuple[str, ...], b: tuple[str, ...]) -> bool:
    return bool(a) and bool(b) and a[0] == b[0]


def classify_clause(
    control_clause: str,
    requirement_code: str,
    sibling_support: bool = False,
) -> Optional[MappingStrength]:
    """Classify a control's declared clause against a requirement code.

    - direct: same clause
    - partial: the control declares an ancestor of the requirement
    - supportive: the control declares a descendant of the requirement, or
      (with ``sibling_support``) the two only share a top-level segment

    Returns None when the clauses are unrelated.
    """
    declared = parse_clause(control_clause)
    target = parse_clause(requirement_code)
    if not declared or not target:
        return None

    if declared == target:
        return MappingStrength.DIRECT
    if is_descendant(target, declared):
        return MappingStrength.PARTIAL
    if is_descendant(declared, target):
        return MappingStrength.SUPPORTIVE
    if sibling_support and shares_top_level(declared, target):
        return MappingStrength.SUPPORTIVE
    return None


def in_clause_family(code: str, family: str) -> bool:
    """True if ``code`` is the clause ``family`` itself or anything below it."""
    path = parse_clause(code)
    prefix = parse_clause(family)
    return bool(prefix) and path[: len(prefix)] == prefix
