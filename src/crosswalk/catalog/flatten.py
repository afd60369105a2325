"""Requirement catalog flattening.

Each framework publishes its requirements in its own three-level shape
(chapter/article/provision, safeguard/standard/specification, ...). The
routines here turn one native catalog into a flat, ordered list of
``Requirement`` nodes with parent linkage and leaf markers. Container nodes
are kept; only leaves are scored and gapped downstream.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from ..models.requirement import Requirement
from .loader import get_available_frameworks, get_framework_catalog

console = Console(stderr=True)


class _Builder:
    """Collects nodes for one framework in pre-order."""

    def __init__(self, catalog: dict):
        self.framework_id = catalog.get("id", "")
        self.version = str(catalog.get("version", ""))
        self.nodes: list[Requirement] = []

    def add(
        self,
        code: str,
        title: str,
        level: int,
        is_leaf: bool,
        parent_code: Optional[str] = None,
        description: str = "",
        is_required: bool = True,
        category: str = "",
    ) -> None:
        self.nodes.append(Requirement(
            id=f"{self.framework_id}-{code}",
            framework_id=self.framework_id,
            framework_version=self.version,
            code=code,
            title=title,
            description=description or "",
            parent_code=parent_code,
            level=level,
            is_leaf=is_leaf,
            is_required=is_required,
            category=category,
        ))


def flatten_soc2(catalog: dict) -> list[Requirement]:
    """Trust service category -> category -> criterion."""
    b = _Builder(catalog)
    for tsc in catalog.get("trust_services_categories", []) or []:
        required = bool(tsc.get("required", True))
        categories = tsc.get("categories") or []
        b.add(tsc["id"], tsc.get("name", ""), 0, not categories,
              description=tsc.get("description", ""), is_required=required, category=tsc.get("name", ""))
        for cat in categories:
            criteria = cat.get("criteria") or []
            b.add(cat["id"], cat.get("name", ""), 1, not criteria, parent_code=tsc["id"],
                  description=cat.get("description", ""), is_required=required, category=tsc.get("name", ""))
            for criterion in criteria:
                b.add(criterion["id"], criterion.get("title", ""), 2, True, parent_code=cat["id"],
                      description=criterion.get("description", ""), is_required=required,
                      category=tsc.get("name", ""))
    return b.nodes


def flatten_hipaa(catalog: dict) -> list[Requirement]:
    """Safeguard -> standard -> implementation specification.

    Some standards are their own single specification (same ID); those
    collapse into one leaf so requirement IDs stay unique.
    """
    b = _Builder(catalog)
    for safeguard in catalog.get("safeguards", []) or []:
        standards = safeguard.get("standards") or []
        b.add(safeguard["id"], safeguard.get("name", ""), 0, not standards,
              description=f"Section {safeguard['section']}" if safeguard.get("section") else "",
              category=safeguard.get("name", ""))
        for standard in standards:
            specs = standard.get("specifications") or []
            if len(specs) == 1 and specs[0]["id"] == standard["id"]:
                spec = specs[0]
                b.add(standard["id"], spec.get("title") or standard.get("name", ""), 1, True,
                      parent_code=safeguard["id"], description=spec.get("description", ""),
                      is_required=spec.get("type", "required") == "required",
                      category=safeguard.get("name", ""))
                continue
            b.add(standard["id"], standard.get("name", ""), 1, not specs,
                  parent_code=safeguard["id"], category=safeguard.get("name", ""))
            for spec in specs:
                b.add(spec["id"], spec.get("title", ""), 2, True, parent_code=standard["id"],
                      description=spec.get("description", ""),
                      is_required=spec.get("type", "required") == "required",
                      category=safeguard.get("name", ""))
    return b.nodes


def flatten_iso27001(catalog: dict) -> list[Requirement]:
    """Theme -> control (two levels)."""
    b = _Builder(catalog)
    for theme in catalog.get("themes", []) or []:
        controls = theme.get("controls") or []
        b.add(theme["id"], theme.get("name", ""), 0, not controls, category=theme.get("name", ""))
        for control in controls:
            b.add(control["id"], control.get("title", ""), 1, True, parent_code=theme["id"],
                  description=control.get("description", ""), category=theme.get("name", ""))
    return b.nodes


def flatten_nist(catalog: dict) -> list[Requirement]:
    """Function -> category -> subcategory."""
    b = _Builder(catalog)
    for fn in catalog.get("functions", []) or []:
        categories = fn.get("categories") or []
        b.add(fn["id"], fn.get("name", ""), 0, not categories,
              description=fn.get("description", ""), category=fn.get("name", ""))
        for cat in categories:
            subcategories = cat.get("subcategories") or []
            b.add(cat["id"], cat.get("name", ""), 1, not subcategories, parent_code=fn["id"],
                  category=fn.get("name", ""))
            for sub in subcategories:
                # Subcategories only carry a title
                b.add(sub["id"], sub.get("title", ""), 2, True, parent_code=cat["id"],
                      description=sub.get("title", ""), category=fn.get("name", ""))
    return b.nodes


def flatten_pcidss(catalog: dict) -> list[Requirement]:
    """Principal requirement -> sub-requirement -> requirement."""
    b = _Builder(catalog)
    for principal in catalog.get("principal_requirements", []) or []:
        subs = principal.get("sub_requirements") or []
        b.add(principal["id"], principal.get("name", ""), 0, not subs,
              description=principal.get("name", ""), category=principal["id"])
        for sub in subs:
            reqs = sub.get("requirements") or []
            b.add(sub["id"], sub.get("name", ""), 1, not reqs, parent_code=principal["id"],
                  description=sub.get("name", ""), category=principal["id"])
            for req in reqs:
                b.add(req["id"], req.get("title", ""), 2, True, parent_code=sub["id"],
                      description=req.get("description") or req.get("title", ""),
                      category=principal["id"])
    return b.nodes


def flatten_gdpr(catalog: dict) -> list[Requirement]:
    """Chapter -> article -> provision.

    Chapters are addressed as ``"Chapter <id>"``; an article without
    provisions is itself the leaf.
    """
    b = _Builder(catalog)
    for chapter in catalog.get("chapters", []) or []:
        chapter_code = f"Chapter {chapter['id']}"
        articles = chapter.get("articles") or []
        b.add(chapter_code, chapter.get("name", ""), 0, not articles, category=chapter.get("name", ""))
        for article in articles:
            provisions = article.get("provisions") or []
            b.add(article["id"], article.get("name", ""), 1, not provisions, parent_code=chapter_code,
                  category=chapter.get("name", ""))
            for provision in provisions:
                b.add(provision["id"], provision.get("title", ""), 2, True, parent_code=article["id"],
                      description=provision.get("description", ""), category=chapter.get("name", ""))
    return b.nodes


FLATTENERS: dict[str, Callable[[dict], list[Requirement]]] = {
    "SOC2": flatten_soc2,
    "HIPAA": flatten_hipaa,
    "ISO27001": flatten_iso27001,
    "NIST": flatten_nist,
    "PCIDSS": flatten_pcidss,
    "GDPR": flatten_gdpr,
}


def flatten_catalog(catalog: dict) -> list[Requirement]:
    """Flatten a catalog using the routine named by its ``structure`` key, or its ID.

    A catalog whose nodes are missing an ``id`` or have the wrong shape is
    skipped with a warning.
    """
    structure = str(catalog.get("structure") or catalog.get("id") or "").upper()
    flattener = FLATTENERS.get(structure)
    if flattener is None:
        return []
    try:
        return flattener(catalog)
    except (KeyError, TypeError, AttributeError, ValidationError) as e:
        console.print(
            f"  [yellow]WARN[/yellow] Skipping malformed catalog {catalog.get('id', structure)}: "
            f"{type(e).__name__} {escape(str(e))}"
        )
        return []


def get_framework_requirements(
    framework_id: str,
    catalog: Optional[dict] = None,
    catalog_dir: Optional[Path] = None,
) -> list[Requirement]:
    """Get every requirement node (containers and leaves) for a framework."""
    if catalog is None:
        catalog = get_framework_catalog(framework_id, catalog_dir)
    if not catalog:
        return []
    return flatten_catalog(catalog)


def get_leaf_requirements(
    framework_id: str,
    catalog: Optional[dict] = None,
    catalog_dir: Optional[Path] = None,
) -> list[Requirement]:
    """Get only the testable (leaf) requirements for a framework."""
    return [r for r in get_framework_requirements(framework_id, catalog, catalog_dir) if r.is_leaf]


def get_all_framework_requirements(catalog_dir: Optional[Path] = None) -> list[Requirement]:
    """Flatten every available framework."""
    requirements: list[Requirement] = []
    for fw in get_available_frameworks(catalog_dir):
        requirements.extend(get_framework_requirements(fw.id, catalog_dir=catalog_dir))
    return requirements
