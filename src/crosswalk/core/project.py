"""Project workspace: the ``.crosswalk/`` directory and the runs built on it."""

from __future__ import annotations

from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Optional

from rich.console import Console

from .. import __version__
from ..catalog.flatten import get_framework_requirements
from ..catalog.loader import get_available_frameworks, load_answers, load_controls
from ..formatters.junit import export_gap_results
from ..models.control import Control
from ..models.gap import Gap
from ..models.progress import EvidenceReference
from ..models.requirement import FrameworkInfo, Requirement
from .config import PROJECT_DIR_NAME, get_effective_config
from .gaps import refresh_gaps
from .progress import ProgressContext
from .store import JsonFileStore

console = Console()


class ProjectNotInitialized(Exception):
    pass


def initialize_project(project_path: Path) -> None:
    """Create .crosswalk/ with a config file, a sample control catalog and an answers file."""
    xw_dir = project_path / PROJECT_DIR_NAME
    (xw_dir / "frameworks").mkdir(parents=True, exist_ok=True)

    config_path = xw_dir / "config.yaml"
    if not config_path.exists():
        config_path.write_text(
            "# Control Crosswalk project configuration\n"
            "# Keys left out fall back to the built-in defaults\n"
            "\n"
            f"crosswalk_version: \"{__version__}\"\n"
            "\n"
            "thresholds:\n"
            "  sufficient_coverage: 80\n"
            "\n"
            "report:\n"
            "  fail_on: [critical, high]\n",
            encoding="utf-8",
        )

    controls_path = xw_dir / "controls.yaml"
    if not controls_path.exists():
        sample = (resources.files("crosswalk.data") / "controls.yaml").read_text(encoding="utf-8")
        controls_path.write_text(sample, encoding="utf-8")

    answers_path = xw_dir / "answers.yaml"
    if not answers_path.exists():
        answers_path.write_text(
            "# control_id: yes | no | partial | na\n"
            "# or, with evidence:\n"
            "# AC-001:\n"
            "#   answer: yes\n"
            "#   evidence:\n"
            "#     - {id: EV-1, name: MFA enforcement screenshot, status: verified}\n",
            encoding="utf-8",
        )

    console.print(f"  [green]Initialized[/green] {PROJECT_DIR_NAME}/ in {project_path.name}")


@dataclass
class Project:
    """Everything loaded from one project directory."""

    path: Path
    config: dict
    controls: list[Control]
    answers: dict[str, Optional[str]] = field(default_factory=dict)
    evidence: dict[str, list[EvidenceReference]] = field(default_factory=dict)

    @property
    def store(self) -> JsonFileStore:
        return JsonFileStore(self.path)

    @property
    def catalog_dir(self) -> Path:
        return self.path / PROJECT_DIR_NAME / "frameworks"

    def frameworks(self) -> list[FrameworkInfo]:
        return get_available_frameworks(self.catalog_dir)

    def framework(self, framework_id: str) -> Optional[FrameworkInfo]:
        return next((f for f in self.frameworks() if f.id == framework_id), None)

    def requirements(self, framework_id: Optional[str] = None) -> list[Requirement]:
        ids = [framework_id] if framework_id else [f.id for f in self.frameworks()]
        requirements: list[Requirement] = []
        for fw_id in ids:
            requirements.extend(get_framework_requirements(fw_id, catalog_dir=self.catalog_dir))
        return requirements

    def context(self) -> ProgressContext:
        return ProgressContext(
            controls=self.controls,
            get_control_answer=self.answers.get,
            get_control_evidence=lambda control_id: self.evidence.get(control_id, []),
            config=self.config,
        )


def load_project(project_path: Path, cli_overrides: Optional[dict] = None) -> Project:
    xw_dir = project_path / PROJECT_DIR_NAME
    if not xw_dir.exists():
        raise ProjectNotInitialized(f"Project not initialized. Run: xw init -p {project_path}")

    answers, evidence = load_answers(xw_dir / "answers.yaml")
    return Project(
        path=project_path,
        config=get_effective_config(project_path, cli_overrides),
        controls=load_controls(xw_dir / "controls.yaml"),
        answers=answers,
        evidence=evidence,
    )


def run_gap_check(
    project: Project,
    framework_id: Optional[str] = None,
    ci: bool = False,
    junit_path: Optional[Path] = None,
) -> int:
    """Refresh gaps for one or all frameworks and report them.

    Returns 1 in CI mode when open gaps exist at a failing severity, else 0.
    """
    frameworks = [framework_id] if framework_id else [f.id for f in project.frameworks()]
    fail_on = {s.lower() for s in project.config["report"]["fail_on"]}

    by_framework: dict[str, list[Requirement]] = {}
    all_gaps: list[Gap] = []
    for fw_id in frameworks:
        requirements = project.requirements(fw_id)
        if not requirements:
            console.print(f"  [yellow]WARN[/yellow] No catalog found for framework {fw_id}")
            continue
        by_framework[fw_id] = requirements
        gaps = refresh_gaps(project.store, requirements, project.controls, project.config)
        all_gaps.extend(gaps)

        open_gaps = [g for g in gaps if g.is_open]
        leaves = sum(1 for r in requirements if r.is_leaf)
        color = "green" if not open_gaps else "yellow"
        console.print(f"  [{color}]{fw_id}[/{color}] {len(open_gaps)} open gap(s) across {leaves} requirement(s)")

    if junit_path is not None:
        result = export_gap_results(by_framework, all_gaps, junit_path, fail_on=sorted(fail_on))
        console.print(f"  [green]OK[/green] JUnit results: {result['path']}")

    failing = [g for g in all_gaps if g.is_open and g.severity.value in fail_on]
    if failing:
        console.print(f"  [red]{len(failing)} open gap(s) at {', '.join(sorted(fail_on))} severity[/red]")
    return 1 if ci and failing else 0


def refresh_requirement_gaps(project: Project, requirement_ids: list[str]) -> list[Gap]:
    """Recompute stored gaps for requirements whose mappings just changed.

    Gaps for every other requirement are left as they are.
    """
    wanted = set(requirement_ids)
    requirements = [r for r in project.requirements() if r.id in wanted]
    if not requirements:
        return []
    return refresh_gaps(project.store, requirements, project.controls, project.config)
