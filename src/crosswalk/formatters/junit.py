"""JUnit XML export of gap results for CI/CD pipelines."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from xml.dom import minidom
from xml.etree import ElementTree as ET

from ..models.gap import Gap
from ..models.requirement import Requirement


def export_gap_results(
    requirements_by_framework: dict[str, list[Requirement]],
    gaps: list[Gap],
    output_path: Path,
    fail_on: list[str] | None = None,
    project_name: str = "Control Crosswalk",
) -> dict:
    """Export gap detection results as JUnit XML.

    Args:
        requirements_by_framework: framework_id -> flattened requirements.
            Only leaf requirements become test cases.
        gaps: Gap records; only open gaps can fail a test case.
        output_path: Path to write the XML file.
        fail_on: Gap severities to mark as failures. Default: critical, high.
        project_name: Name for the testsuites element.

    Returns:
        Dict with: path, total_tests, failures, passed.
    """
    if fail_on is None:
        fail_on = ["critical", "high"]
    fail_set = {s.lower() for s in fail_on}
    open_gaps = {g.requirement_id: g for g in gaps if g.is_open}

    testsuites = ET.Element("testsuites")
    testsuites.set("name", project_name)
    testsuites.set("timestamp", datetime.now().strftime("%Y-%m-%dT%H:%M:%S"))

    total_tests = 0
    total_failures = 0

    for framework_id, requirements in requirements_by_framework.items():
        leaves = [r for r in requirements if r.is_leaf]
        if not leaves:
            continue

        testsuite = ET.SubElement(testsuites, "testsuite")
        testsuite.set("name", framework_id)
        testsuite.set("tests", str(len(leaves)))

        suite_failures = 0

        for req in leaves:
            total_tests += 1

            testcase = ET.SubElement(testsuite, "testcase")
            testcase.set("name", f"{req.code}: {req.title}")
            testcase.set("classname", framework_id)

            gap = open_gaps.get(req.id)
            if gap is None or gap.severity.value not in fail_set:
                continue

            total_failures += 1
            suite_failures += 1

            failure = ET.SubElement(testcase, "failure")
            failure.set("message", f"[{gap.severity.value.upper()}] {gap.description}")
            failure.set("type", gap.gap_type.value)

            text_parts = [f"Severity: {gap.severity.value}", f"Status: {gap.status.value}"]
            if gap.missing_coverage:
                text_parts.append("\nMissing coverage:\n" + "\n".join(f"- {m}" for m in gap.missing_coverage))
            if gap.resolution_options:
                text_parts.append(
                    "\nResolution options:\n"
                    + "\n".join(f"- {o.description} (effort: {o.effort.value})" for o in gap.resolution_options)
                )
            failure.text = "\n".join(text_parts)

        testsuite.set("failures", str(suite_failures))
        testsuite.set("errors", "0")
        testsuite.set("skipped", "0")

    testsuites.set("tests", str(total_tests))
    testsuites.set("failures", str(total_failures))
    testsuites.set("errors", "0")

    output_path.parent.mkdir(parents=True, exist_ok=True)

    rough = ET.tostring(testsuites, encoding="unicode")
    dom = minidom.parseString(rough)
    xml_str = dom.toprettyxml(indent="  ", encoding="UTF-8")
    output_path.write_bytes(xml_str)

    return {
        "path": str(output_path),
        "total_tests": total_tests,
        "failures": total_failures,
        "passed": total_tests - total_failures,
    }
