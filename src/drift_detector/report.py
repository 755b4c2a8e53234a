"""
Report Assembler.

Renders a ClassificationResult into the drift summary, annotated declarations for
Changed and Removed resources, stub declarations for Added resources and the
inspection commands for Unsupported and NotExported ones. Also writes the
annotation files, and nothing but annotation files, into the baseline tree.
"""

import difflib
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from ..utils import setup_logging
from .baseline import DRIFT_SUFFIX, is_drift_annotation
from .grammar import find_header, to_symbolic_name
from .types import (
    Annotation,
    BaselineCategory,
    ClassificationResult,
    DriftReport,
    ResourceVerdict,
    SourceKind,
    Verdict,
)

logger = setup_logging()

SECTION_ORDER = ("Added", "Changed", "Removed", "Unchanged", "Unsupported", "NotExported")
AGGREGATED_FILENAME = f"drift-report{DRIFT_SUFFIX}"
SUMMARY_FILENAME = "drift-summary.md"
ANNOTATION_MARKER = "// drift-detector:"


def _display_name(result: ResourceVerdict, match_by_type: bool) -> str:
    # In strict mode one name can be both Removed (old type) and Added (new type)
    return str(result.identity) if match_by_type else result.identity.name


def build_sections(classification: ClassificationResult) -> Dict[str, List[str]]:
    """Names per verdict section, each list sorted."""
    sections: Dict[str, List[str]] = {name: [] for name in SECTION_ORDER}
    for result in classification.verdicts:
        name = _display_name(result, classification.match_by_type)
        sections[result.verdict.value].append(name)
        if result.unsupported:
            sections["Unsupported"].append(name)
    return {name: sorted(names) for name, names in sections.items()}


def render_summary(sections: Dict[str, List[str]], environment: Optional[str] = None) -> str:
    """
    Human-readable summary. Contains no timestamp, so the same classification
    always renders the same text.
    """
    title = f"# Drift report for {environment}" if environment else "# Drift report"
    counts = ", ".join(f"{name}: {len(sections[name])}" for name in SECTION_ORDER)
    lines = [title, "", counts]
    for name in SECTION_ORDER:
        names = sections[name]
        lines.extend(["", f"## {name} ({len(names)})"])
        if names:
            lines.extend(f"- {n}" for n in names)
        else:
            lines.append("None")
    return "\n".join(lines) + "\n"


def _commented(text: str) -> List[str]:
    return [f"// {line}" if line else "//" for line in text.splitlines()]


def _api_version(result: ResourceVerdict) -> str:
    if result.descriptor and result.descriptor.source_kind == SourceKind.EXPORTED:
        header = find_header(result.descriptor.raw_text)
        if header:
            return header.api_version
    return "<api-version>"


def _changed_body(result: ResourceVerdict) -> str:
    baseline_text = result.baseline.raw_text if result.baseline else ""
    live_text = result.descriptor.raw_text if result.descriptor else ""
    source = result.baseline.file_path if result.baseline else "the baseline"
    lines = [
        f"{ANNOTATION_MARKER} Changed",
        f"// Resource '{result.identity.name}' differs from {source}.",
        "// Live definition follows; reconcile the baseline file by hand.",
    ]
    if result.descriptor and result.descriptor.source_kind == SourceKind.SYNTHESIZED:
        lines.append("// The live body is a placeholder for an unsupported type; inspect the resource directly.")
    lines.append(live_text)
    diff = list(
        difflib.unified_diff(
            baseline_text.splitlines(),
            live_text.splitlines(),
            fromfile="baseline",
            tofile="live",
            lineterm="",
        )
    )
    if diff:
        lines.append("// Diff (baseline -> live):")
        lines.extend(_commented("\n".join(diff)))
    return "\n".join(lines)


def _removed_body(result: ResourceVerdict) -> str:
    resource_type = result.identity.type or "<type>"
    name = result.identity.name
    lines = [
        f"{ANNOTATION_MARKER} Removed",
        f"// Resource '{name}' ({resource_type}) no longer exists in the live environment.",
    ]
    if result.baseline:
        lines.append(f"// Baseline file left untouched: {result.baseline.file_path}")
    lines.extend(
        [
            "/*",
            f"resource {to_symbolic_name(name)} '{resource_type}@removed' = {{",
            f"  name: '{name}'",
            "}",
            "*/",
        ]
    )
    return "\n".join(lines)


def _added_stub(result: ResourceVerdict) -> str:
    name = result.identity.name
    resource_type = result.identity.type or "<type>"
    location = result.live.location if result.live and result.live.location else "<location>"
    fetch = (
        f"az resource show --ids {result.live.id} --output json"
        if result.live
        else f"az resource list --name {name} --output json"
    )
    lines = [
        f"{ANNOTATION_MARKER} Added",
        f"// Stub for '{name}'; property values are placeholders.",
        f"// Fetch the full definition with: {fetch}",
        f"resource {to_symbolic_name(name)} '{resource_type}@{_api_version(result)}' = {{",
        f"  name: '{name}'",
        f"  location: '{location}'",
        "  properties: {}",
        "}",
    ]
    if result.descriptor and result.descriptor.source_kind == SourceKind.EXPORTED:
        lines.append("// Exported definition:")
        lines.extend(_commented(result.descriptor.raw_text))
    return "\n".join(lines)


def inspection_commands(
    classification: ClassificationResult, environment: Optional[str] = None
) -> List[str]:
    """The commands a human should run next for Unsupported and NotExported resources."""
    group = environment or "<resource-group>"
    distinct: Dict[str, str] = {}
    for resource_type in sorted(classification.unsupported_types):
        distinct.setdefault(resource_type.lower(), resource_type)
    commands = [
        f"az resource list --resource-group {group} --resource-type '{resource_type}' --output json"
        for _, resource_type in sorted(distinct.items())
    ]
    for result in classification.by_verdict(Verdict.NOT_EXPORTED):
        if result.live:
            commands.append(f"az resource show --ids {result.live.id} --output json")
    return commands


def assemble_report(
    classification: ClassificationResult,
    environment: Optional[str] = None,
    diagnostics: Iterable[str] = (),
) -> DriftReport:
    """
    Builds the full drift report for one run.

    Args:
        classification: Output of the classifier
        environment: Resource group name, used in the title and commands
        diagnostics: Exporter and compiler messages to carry into the report

    Returns:
        A fresh DriftReport
    """
    sections = build_sections(classification)
    annotations: List[Annotation] = []
    stubs: List[Annotation] = []
    for result in classification.verdicts:
        baseline_path = result.baseline.file_path if result.baseline else None
        if result.verdict == Verdict.CHANGED:
            body = _changed_body(result)
        elif result.verdict == Verdict.REMOVED:
            body = _removed_body(result)
        elif result.verdict == Verdict.ADDED:
            stubs.append(Annotation(result.key, result.identity.name, result.verdict, _added_stub(result)))
            continue
        else:
            continue
        annotations.append(Annotation(result.key, result.identity.name, result.verdict, body, baseline_path))

    report = DriftReport(
        sections=sections,
        summary_text=render_summary(sections, environment),
        annotations=annotations,
        stubs=stubs,
        commands=inspection_commands(classification, environment),
        diagnostics=list(diagnostics),
    )
    logger.info(
        f"Report assembled: {len(annotations)} annotations, {len(stubs)} stubs, "
        f"{len(report.commands)} inspection commands"
    )
    return report


def _write(path: Path, content: str) -> Path:
    if not (is_drift_annotation(path) or path.name == SUMMARY_FILENAME):
        raise ValueError(f"Refusing to write {path}: only drift annotation files may be written")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info(f"Wrote {path}")
    return path


def annotation_path(annotation: Annotation, baseline_root: Path) -> Path:
    """Where a per-resource annotation lives: beside its baseline file, or under existing/."""
    if annotation.baseline_path is not None:
        source = annotation.baseline_path
        return source.with_name(source.name[: -len(".bicep")] + DRIFT_SUFFIX)
    return baseline_root / BaselineCategory.EXISTING.value / f"{to_symbolic_name(annotation.name)}{DRIFT_SUFFIX}"


def write_report_files(
    report: DriftReport,
    baseline_root: Union[str, Path],
    layout: str = "aggregated",
    output_dir: Optional[Union[str, Path]] = None,
) -> List[Path]:
    """
    Writes the summary and the annotation files.

    ``aggregated`` puts every annotation and stub in one file in ``output_dir``;
    ``per_resource`` puts each one beside its baseline file, several bodies
    sharing a file when they map to the same path. Either way only
    ``*.drift.bicep`` files and the summary are written, so the user's own
    declarations are never touched and the next scan ignores what this wrote.
    """
    root = Path(baseline_root)
    out = Path(output_dir) if output_dir else root
    written = [_write(out / SUMMARY_FILENAME, report.summary_text)]
    items = report.annotations + report.stubs

    if layout == "aggregated":
        if items:
            content = "\n\n".join(item.body for item in items) + "\n"
            written.append(_write(out / AGGREGATED_FILENAME, content))
    elif layout == "per_resource":
        # Several items can map to one path, e.g. a strict-mode Removed and Added pair
        grouped: Dict[Path, List[str]] = {}
        for item in items:
            grouped.setdefault(annotation_path(item, root), []).append(item.body)
        for path, bodies in grouped.items():
            written.append(_write(path, "\n\n".join(bodies) + "\n"))
    else:
        raise ValueError(f"Unknown report layout: {layout}")
    return written
