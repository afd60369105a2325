"""Control Crosswalk (xw) - requirement/control crosswalk, gaps and drift."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

console = Console()

_GAP_STATUSES = ["identified", "acknowledged", "in_progress", "resolved", "accepted_risk"]


def _open_project(project: str):
    from ..core.project import ProjectNotInitialized, load_project

    try:
        return load_project(Path(project))
    except ProjectNotInitialized as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(11)


def _require_framework(proj, framework: str) -> None:
    if proj.framework(framework) is None:
        available = ", ".join(f.id for f in proj.frameworks())
        click.echo(f"Error: Unknown framework {framework}. Available: {available}", err=True)
        sys.exit(1)


@click.group()
def xw_cli() -> None:
    """Control Crosswalk - map controls to framework requirements, find gaps, track drift."""


@xw_cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
def init(project: str) -> None:
    """Initialize .crosswalk/ in a project."""
    from ..core.project import initialize_project

    initialize_project(Path(project))


@xw_cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.option("--framework", "-f", required=True, help="Framework ID (e.g. SOC2)")
@click.option("--persist", is_flag=True, help="Store synthesized mappings for every framework if none are stored yet")
def index(project: str, framework: str, persist: bool) -> None:
    """Show which controls address each requirement of a framework.

    Example: xw index -p ./org -f HIPAA
    """
    from ..core.index import build_framework_index
    from ..core.mappings import initialize_mappings_from_controls

    proj = _open_project(project)
    _require_framework(proj, framework)
    requirements = proj.requirements(framework)
    idx = build_framework_index(framework, proj.controls, requirements, proj.config)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Requirement")
    table.add_column("Direct")
    table.add_column("Partial")
    table.add_column("Supportive")
    table.add_column("Coverage", justify="right")
    for entry in idx.requirement_map.values():
        table.add_row(
            entry.code,
            ", ".join(entry.direct_controls),
            ", ".join(entry.partial_controls),
            ", ".join(entry.supportive_controls),
            f"{entry.total_coverage}%",
        )
    console.print(table)
    console.print(
        f"  {len(idx.requirement_map)} requirement(s), "
        f"{len(idx.fully_mapped_requirements)} fully mapped, "
        f"{len(idx.unmapped_requirements)} unmapped"
    )

    if persist:
        written = initialize_mappings_from_controls(proj.store, proj.controls, proj.requirements(), proj.config)
        if written:
            console.print(f"  [green]OK[/green] Stored {written} synthesized mapping(s)")
        else:
            console.print("  [dim]Mappings already stored; nothing written[/dim]")


@xw_cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.option("--framework", "-f", help="Only this framework")
@click.option("--ci", is_flag=True, help="CI mode: exit 1 on open critical/high gaps")
@click.option("--junit", type=click.Path(), help="Write JUnit XML results to this path")
def gaps(project: str, framework: str | None, ci: bool, junit: str | None) -> None:
    """Detect coverage gaps and store them.

    Example: xw gaps -p ./org --ci --junit reports/gaps.xml
    """
    from ..core.project import run_gap_check

    proj = _open_project(project)
    if framework:
        _require_framework(proj, framework)
    exit_code = run_gap_check(proj, framework, ci=ci, junit_path=Path(junit) if junit else None)
    if ci:
        sys.exit(exit_code)


@xw_cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.argument("requirement_id")
def progress(project: str, requirement_id: str) -> None:
    """Show progress for one requirement (e.g. SOC2-CC6.1)."""
    from ..core.progress import get_requirement_progress

    proj = _open_project(project)
    result = get_requirement_progress(
        requirement_id,
        proj.requirements(requirement_id.split("-", 1)[0]),
        proj.store.load_mappings(),
        proj.store.load_gaps(),
        proj.context(),
    )
    if result is None:
        click.echo(f"Error: Unknown requirement {requirement_id}", err=True)
        sys.exit(1)

    console.print(f"  [bold]{result.requirement_code}[/bold] {result.title}")
    console.print(f"  Status:   [cyan]{result.status.value}[/cyan]")
    console.print(f"  Coverage: {result.total_coverage}% (weighted {result.weighted_coverage:g}%, reviewed {result.reviewed_coverage}%)")
    if result.gap_info:
        console.print(f"  Gap:      {result.gap_info.description}")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Control")
    table.add_column("Kind")
    table.add_column("Strength")
    table.add_column("Coverage", justify="right")
    table.add_column("Answer")
    table.add_column("Status")
    for c in result.mapped_controls:
        table.add_row(
            c.control_id,
            c.mapping_kind,
            c.mapping_strength.value,
            f"{c.coverage_percentage:g}%",
            c.answer.value if c.answer else "-",
            c.implementation_status.value,
        )
    console.print(table)


@xw_cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.option("--framework", "-f", required=True, help="Framework ID")
@click.option("--report", type=click.Path(), help="Write a markdown compliance report to this path")
def summary(project: str, framework: str, report: str | None) -> None:
    """Show the compliance summary for a framework."""
    from ..core.progress import get_framework_compliance_summary, get_requirement_progress
    from ..formatters.report import generate_compliance_report

    proj = _open_project(project)
    _require_framework(proj, framework)
    requirements = proj.requirements(framework)
    mappings = proj.store.load_mappings()
    gap_list = proj.store.load_gaps()
    ctx = proj.context()

    result = get_framework_compliance_summary(
        framework, requirements, mappings, gap_list, ctx, framework_name=proj.framework(framework).name,
    )
    console.print(f"  [bold]{result.framework_name}[/bold] {result.framework_version}")
    console.print(f"  Overall score: [cyan]{result.overall_score}%[/cyan] (advisory)")
    console.print(
        f"  {result.compliant} compliant, {result.partially_compliant} partial, "
        f"{result.in_progress} in progress, {result.not_started} not started, "
        f"{result.not_applicable} n/a, {result.custom_gaps} with open gaps"
    )
    console.print(
        f"  Open gaps: {result.critical_gaps} critical, {result.high_gaps} high, "
        f"{result.medium_gaps} medium, {result.low_gaps} low"
    )

    if report:
        progress_list = [
            get_requirement_progress(r.id, requirements, mappings, gap_list, ctx)
            for r in requirements if r.is_leaf
        ]
        fw_gaps = [g for g in gap_list if g.requirement_id.startswith(f"{framework}-")]
        report_path = Path(report)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(generate_compliance_report(result, progress_list, fw_gaps), encoding="utf-8")
        console.print(f"  [green]OK[/green] Report: {report_path}")


@xw_cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.argument("control_id")
def coverage(project: str, control_id: str) -> None:
    """Show every requirement one control satisfies."""
    from ..core.progress import get_control_coverage_index

    proj = _open_project(project)
    ctx = proj.context()
    if ctx.control(control_id) is None:
        click.echo(f"Error: Control {control_id} is not in the control catalog", err=True)
        sys.exit(1)

    idx = get_control_coverage_index(control_id, proj.requirements(), proj.store.load_mappings(), ctx)
    console.print(f"  [bold]{control_id}[/bold] {idx.control_title}")
    for fw_id, fc in idx.framework_coverage.items():
        console.print(f"  {fw_id}: {fc.covered}/{fc.total} requirement(s) ({fc.percentage}%)")
    for req in idx.mapped_requirements:
        console.print(f"    [dim]{req.requirement_id}[/dim] {req.mapping_strength.value} {req.coverage_percentage:g}%")


@xw_cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.argument("control_id")
def suggest(project: str, control_id: str) -> None:
    """Suggest requirements a control may also address."""
    from ..core.progress import generate_auto_mapping_suggestions

    proj = _open_project(project)
    control = proj.context().control(control_id)
    if control is None:
        click.echo(f"Error: Control {control_id} is not in the control catalog", err=True)
        sys.exit(1)

    suggestions = generate_auto_mapping_suggestions(
        control, proj.requirements(), proj.store.load_mappings(), proj.config,
    )
    if not suggestions:
        console.print("  [dim]No suggestions above the confidence threshold[/dim]")
        return
    for s in suggestions:
        console.print(
            f"  {s.requirement_id}: {s.confidence}% -> {s.suggested_strength.value} "
            f"({', '.join(s.matched_keywords)})"
        )


@xw_cli.command("map")
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.argument("control_id")
@click.argument("requirement_id")
@click.option("--strength", "-s", required=True, type=click.Choice(["direct", "partial", "supportive"]))
@click.option("--coverage", "-c", "coverage_pct", required=True, type=click.FloatRange(0, 100))
@click.option("--justification", "-j", default="", help="Why this control addresses the requirement")
@click.option("--uncovered", multiple=True, help="Aspect of the requirement this control leaves uncovered")
def map_control(
    project: str,
    control_id: str,
    requirement_id: str,
    strength: str,
    coverage_pct: float,
    justification: str,
    uncovered: tuple[str, ...],
) -> None:
    """Record an explicit control -> requirement mapping.

    Example: xw map -p ./org AC-001 SOC2-CC6.1 -s direct -c 70
    """
    from ..core.mappings import create_mapping
    from ..core.project import refresh_requirement_gaps

    proj = _open_project(project)
    mapping = create_mapping(
        proj.store,
        control_id,
        requirement_id,
        strength,
        coverage_pct,
        justification=justification,
        uncovered_aspects=list(uncovered),
    )
    click.echo(f"Mapped {control_id} -> {requirement_id} ({strength}, {coverage_pct:g}%)")
    click.echo(f"Mapping ID: {mapping.id}")

    remaining = [g for g in refresh_requirement_gaps(proj, [requirement_id]) if g.is_open]
    for gap in remaining:
        console.print(f"  [yellow]Gap still open[/yellow] {gap.description}")
    if not remaining:
        console.print(f"  [green]OK[/green] No open gap for {requirement_id}")


@xw_cli.command("resolve-gap")
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.argument("gap_id")
@click.option("--status", "-s", required=True, type=click.Choice(_GAP_STATUSES))
@click.option("--notes", "-n", help="Notes recorded on the gap")
@click.option("--resolution", "-r", help="Selected resolution option ID")
def resolve_gap(project: str, gap_id: str, status: str, notes: str | None, resolution: str | None) -> None:
    """Record a decision on a gap.

    Example: xw resolve-gap -p ./org 3f2c... -s accepted_risk -n "Legacy system, retiring Q3"
    """
    from ..core.gaps import update_gap

    proj = _open_project(project)
    gap = update_gap(proj.store, gap_id, status=status, notes=notes, selected_resolution=resolution)
    if gap is None:
        click.echo(f"Error: Unknown gap {gap_id}", err=True)
        sys.exit(1)
    click.echo(f"Gap {gap.id} ({gap.requirement_id}) -> {gap.status.value}")


@xw_cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.argument("old", type=click.Path(exists=True))
@click.argument("new", type=click.Path(exists=True))
@click.option("--responses", type=click.Path(exists=True), help="YAML of prior responses keyed by requirement ID")
def drift(project: str, old: str, new: str, responses: str | None) -> None:
    """Check a new version of a requirement for compliance drift.

    Example: xw drift -p ./org soc2-2017-cc6.1.yaml soc2-2024-cc6.1.yaml
    """
    from ..catalog.loader import load_user_responses, load_versioned_requirement
    from ..core.drift import record_drift

    proj = _open_project(project)
    old_req = load_versioned_requirement(Path(old))
    new_req = load_versioned_requirement(Path(new))
    if old_req is None or new_req is None:
        click.echo("Error: Could not read requirement version files", err=True)
        sys.exit(1)

    prior = load_user_responses(Path(responses)) if responses else {}
    result = record_drift(proj.store, old_req, new_req, prior, proj.config)
    if result is None:
        console.print("  [green]OK[/green] No significant changes detected")
        return

    color = "red" if result.impact_level.value in ("high", "critical") else "yellow"
    console.print(f"  [{color}]Drift {result.impact_level.value.upper()}[/{color}] {result.change_summary} (advisory)")
    console.print(f"  {result.previous_version} -> {result.new_version}: {result.compliance_gap_description}")
    if result.affected_control_ids:
        console.print(f"  Controls pending review: {', '.join(result.affected_control_ids)}")
    for action in result.required_actions:
        console.print(f"  - {action.description} ({action.priority})")


def main() -> None:
    xw_cli()


if __name__ == "__main__":
    main()
