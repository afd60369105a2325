"""Framework catalog and collaborator file loading.

Framework catalogs are YAML files carrying ``id``, ``name``, ``version`` and
the framework's own nested structure. The bundled catalogs ship as package
data; a project directory can add frameworks or replace bundled ones by id.
"""

from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError
from rich.console import Console

from ..models.control import Control
from ..models.drift import UserResponse, VersionedRequirement
from ..models.progress import EvidenceReference
from ..models.requirement import FrameworkInfo

console = Console(stderr=True)


def _read_yaml(text: Optional[str], source: str) -> Optional[object]:
    if text is None:
        return None
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        console.print(f"  [yellow]WARN[/yellow] Skipping unreadable YAML {source}: {e}")
        return None


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
    except UnicodeDecodeError:
        console.print(f"  [yellow]WARN[/yellow] Skipping {path.name}: not valid UTF-8")
        return None


def _bundled_catalogs() -> list[tuple[str, str]]:
    """(source, text) pairs for every catalog shipped with the package."""
    found: list[tuple[str, str]] = []
    data_pkg = resources.files("crosswalk.data.frameworks")
    for entry in sorted(data_pkg.iterdir(), key=lambda e: e.name):
        if entry.name.endswith(".yaml"):
            found.append((f"bundled:{entry.name}", entry.read_text(encoding="utf-8")))
    return found


def _directory_catalogs(catalog_dir: Path) -> list[tuple[str, str]]:
    found: list[tuple[str, str]] = []
    if not catalog_dir.exists():
        return found
    for yaml_file in sorted(catalog_dir.rglob("*.yaml")):
        text = _read_text(yaml_file)
        if text is not None:
            found.append((str(yaml_file), text))
    return found


def _load_catalogs(catalog_dir: Optional[Path] = None) -> dict[str, tuple[str, dict]]:
    """Load every catalog by framework id; directory catalogs override bundled ones."""
    sources = _bundled_catalogs()
    if catalog_dir is not None:
        sources += _directory_catalogs(catalog_dir)

    catalogs: dict[str, tuple[str, dict]] = {}
    for source, text in sources:
        content = _read_yaml(text, source)
        if isinstance(content, dict) and content.get("id"):
            catalogs[content["id"]] = (source, content)
    return catalogs


def get_available_frameworks(catalog_dir: Optional[Path] = None) -> list[FrameworkInfo]:
    """Get list of all available framework catalogs."""
    return [
        FrameworkInfo(
            id=fw_id,
            name=content.get("name", ""),
            version=str(content.get("version", "")),
            description=content.get("description", ""),
            path=source,
        )
        for fw_id, (source, content) in _load_catalogs(catalog_dir).items()
    ]


def get_framework_catalog(framework_id: str, catalog_dir: Optional[Path] = None) -> Optional[dict]:
    """Load a specific framework catalog by ID."""
    match = _load_catalogs(catalog_dir).get(framework_id)
    if not match:
        return None
    return match[1]


def load_controls(controls_path: Path) -> list[Control]:
    """Load the organization's control catalog.

    Accepts either a bare list or a mapping with a ``controls`` key. Entries
    that fail validation are skipped with a warning.
    """
    if not controls_path.exists():
        return []
    content = _read_yaml(_read_text(controls_path), str(controls_path))
    if isinstance(content, dict):
        content = content.get("controls")
    if not isinstance(content, list):
        return []

    controls: list[Control] = []
    for entry in content:
        try:
            controls.append(Control.model_validate(entry))
        except ValidationError as e:
            console.print(f"  [yellow]WARN[/yellow] Skipping invalid control in {controls_path.name}: {e.error_count()} error(s)")
    return controls


def load_bundled_controls() -> list[Control]:
    """Sample control catalog shipped with the package."""
    text = (resources.files("crosswalk.data") / "controls.yaml").read_text(encoding="utf-8")
    content = yaml.safe_load(text) or {}
    return [Control.model_validate(c) for c in content.get("controls", [])]


def load_answers(answers_path: Path) -> tuple[dict[str, Optional[str]], dict[str, list[EvidenceReference]]]:
    """Load per-control answers and evidence references.

    Each entry is either a bare answer (``AC-001: yes``) or a mapping with
    ``answer`` and ``evidence`` keys.
    """
    answers: dict[str, Optional[str]] = {}
    evidence: dict[str, list[EvidenceReference]] = {}
    if not answers_path.exists():
        return answers, evidence

    content = _read_yaml(_read_text(answers_path), str(answers_path))
    if not isinstance(content, dict):
        return answers, evidence

    for control_id, value in content.items():
        if isinstance(value, dict):
            answers[str(control_id)] = _normalize_answer(value.get("answer"))
            evidence[str(control_id)] = _load_evidence(control_id, value.get("evidence"), answers_path)
        else:
            answers[str(control_id)] = _normalize_answer(value)
    return answers, evidence


def _load_evidence(control_id: object, entries: object, answers_path: Path) -> list[EvidenceReference]:
    if not isinstance(entries, list):
        return []
    refs: list[EvidenceReference] = []
    for entry in entries:
        try:
            refs.append(EvidenceReference.model_validate(entry))
        except ValidationError as e:
            console.print(
                f"  [yellow]WARN[/yellow] Skipping invalid evidence for {control_id} in {answers_path.name}: "
                f"{e.error_count()} error(s)"
            )
    return refs


def _normalize_answer(value: object) -> Optional[str]:
    # YAML reads bare yes/no as booleans
    if value is True:
        return "yes"
    if value is False:
        return "no"
    if value is None:
        return None
    text = str(value).strip().lower()
    return text if text in ("yes", "no", "partial", "na") else None


def load_versioned_requirement(path: Path) -> Optional[VersionedRequirement]:
    """Load one requirement version (old or new side of a drift check)."""
    if not path.exists():
        return None
    content = _read_yaml(_read_text(path), str(path))
    if not isinstance(content, dict):
        return None
    try:
        return VersionedRequirement.model_validate(content)
    except ValidationError as e:
        console.print(f"  [yellow]WARN[/yellow] Invalid requirement file {path.name}: {e.error_count()} error(s)")
        return None


def load_user_responses(path: Path) -> dict[str, list[UserResponse]]:
    """Load previously recorded responses keyed by requirement ID."""
    if not path.exists():
        return {}
    content = _read_yaml(_read_text(path), str(path))
    if not isinstance(content, dict):
        return {}
    try:
        return {
            str(req_id): [UserResponse.model_validate(r) for r in responses or []]
            for req_id, responses in content.items()
        }
    except ValidationError as e:
        console.print(f"  [yellow]WARN[/yellow] Invalid responses file {path.name}: {e.error_count()} error(s)")
        return {}
