"""
Core drift detection orchestration logic.

This module contains the main entry point for drift detection and wires the
remote side (Azure export and live listing, or pre-recorded copies of them), the
Bicep decompiler, the baseline index, the classifier and the report assembler.
"""

from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set, Tuple

from ..utils import parse_json_document, read_source, setup_logging
from .baseline import BaselineIndex, build_baseline_index
from .comparators import classify
from .fetchers import (
    compile_template,
    create_resource_client,
    export_all,
    export_one,
    list_resources,
    list_resources_by_type,
    parse_recorded_export,
    parse_recorded_listing,
    resolve_unsupported,
)
from .report import assemble_report, write_report_files
from .splitter import split_descriptors
from .types import (
    ClassificationResult,
    DriftReport,
    ExportResult,
    LiveResourceSummary,
    PipelineOptions,
    ResourceDescriptor,
)

if TYPE_CHECKING:
    from ..config import Config

logger = setup_logging()

ListByType = Callable[[str], List[LiveResourceSummary]]
ExportOne = Callable[[str], str]


@dataclass
class RemoteInputs:
    """Everything fetched from the environment before classification."""

    live_listing: List[LiveResourceSummary]
    export: ExportResult
    list_by_type: ListByType
    export_one: Optional[ExportOne] = None
    environment: Optional[str] = None


def _offline_list_by_type(listing: List[LiveResourceSummary], resource_type: str) -> List[LiveResourceSummary]:
    return [s for s in listing if s.type.lower() == resource_type.lower()]


def gather_remote_inputs(config: "Config") -> RemoteInputs:
    """
    Fetches the live listing and the export, from Azure or from recorded sources.

    A recorded source always wins over the live call for the same input.
    """
    client = None
    if config.subscription_id and config.resource_group:
        client = create_resource_client(config.subscription_id)

    if config.live_listing_source:
        listing_text = read_source(config.live_listing_source)
        live_listing = parse_recorded_listing(parse_json_document(listing_text, "live listing"))
    else:
        live_listing = list_resources(client, config.resource_group)

    if config.export_source:
        export_text = read_source(config.export_source)
        export = parse_recorded_export(parse_json_document(export_text, "exported template"))
    else:
        export = export_all(client, config.resource_group, config.timeout_seconds)

    if client is not None:
        list_by_type: ListByType = partial(list_resources_by_type, client, config.resource_group)
        single_export: Optional[ExportOne] = partial(export_one, client)
    else:
        list_by_type = partial(_offline_list_by_type, live_listing)
        single_export = None

    return RemoteInputs(
        live_listing=live_listing,
        export=export,
        list_by_type=list_by_type,
        export_one=single_export,
        environment=config.resource_group,
    )


def _export_missing(
    inputs: RemoteInputs,
    descriptors: List[ResourceDescriptor],
    unsupported: Set[str],
    options: PipelineOptions,
    timeout_seconds: int,
) -> Tuple[List[ResourceDescriptor], List[str]]:
    """
    Exports one at a time the live resources the group export did not cover.

    Resources of unsupported types are left to the resolver. Anything that still
    fails stays without a descriptor and ends up NotExported.
    """
    if inputs.export_one is None:
        return [], []

    covered = {d.identity.key(options.match_by_type) for d in descriptors}
    recovered: List[ResourceDescriptor] = []
    diagnostics: List[str] = []
    for summary in inputs.live_listing:
        if summary.identity.key(options.match_by_type) in covered:
            continue
        if summary.type.lower() in {t.lower() for t in unsupported}:
            continue
        raw_text = inputs.export_one(summary.id)
        if not raw_text:
            diagnostics.append(f"Single export failed for {summary.id}")
            continue
        compiled = compile_template(raw_text, timeout_seconds)
        unsupported.update(compiled.unsupported_types)
        diagnostics.extend(compiled.diagnostics)
        found = split_descriptors(compiled.text)
        if not found:
            diagnostics.append(f"Single export of {summary.id} produced no declaration")
        recovered.extend(found)
    if recovered:
        logger.info(f"Recovered {len(recovered)} descriptors by exporting resources one at a time")
    return recovered, diagnostics


def run_pipeline(
    inputs: RemoteInputs,
    baseline: BaselineIndex,
    options: Optional[PipelineOptions] = None,
    timeout_seconds: int = 120,
) -> Tuple[ClassificationResult, DriftReport]:
    """
    Runs compile, split, unsupported resolution, classification and report assembly.

    Args:
        inputs: Remote inputs gathered beforehand
        baseline: Baseline index built from the local store
        options: Pipeline switches
        timeout_seconds: Upper bound for each decompile call

    Returns:
        Tuple of the classification and the assembled report
    """
    options = options or PipelineOptions()
    diagnostics: List[str] = list(inputs.export.diagnostics)

    # Step 1: Decompile the group export and split it into declarations
    compiled = compile_template(inputs.export.template_text, timeout_seconds)
    diagnostics.extend(compiled.diagnostics)
    descriptors = split_descriptors(compiled.text)
    logger.info(f"Split {len(descriptors)} declarations from the export")

    unsupported: Set[str] = set(inputs.export.unsupported_types) | set(compiled.unsupported_types)

    # Step 2: Export what the group export dropped, one resource at a time
    recovered, recovery_diagnostics = _export_missing(
        inputs, descriptors, unsupported, options, timeout_seconds
    )
    descriptors.extend(recovered)
    diagnostics.extend(recovery_diagnostics)

    # Step 3: Placeholders for every live instance of an unsupported type
    if options.include_unsupported and unsupported:
        descriptors.extend(resolve_unsupported(unsupported, inputs.list_by_type, inputs.live_listing))

    # Step 4: Classify and assemble the report
    classification = classify(baseline, descriptors, inputs.live_listing, unsupported, options)
    report = assemble_report(classification, inputs.environment, diagnostics)
    return classification, report


def detect_drift(config: "Config") -> Dict:
    """
    Main entry point for drift detection. Orchestrates the entire drift detection process.

    This function:
    - Builds the baseline index from the local modules/ and existing/ trees
    - Fetches the live listing and the exported template (or reads recorded copies)
    - Decompiles, splits and classifies every resource
    - Writes the summary and annotation files when requested
    - Returns the drift report as a dictionary

    Args:
        config: Validated configuration

    Returns:
        Dictionary containing the drift report and summary counts

    Raises:
        BaselineError: If the baseline store is missing or conflicting
    """
    baseline = build_baseline_index(config.baseline_path, config.conflict_policy)
    inputs = gather_remote_inputs(config)
    classification, report = run_pipeline(
        inputs, baseline, config.options, config.timeout_seconds
    )

    written: List[str] = []
    if config.write_annotations:
        written = [
            str(p)
            for p in write_report_files(
                report, config.baseline_path, config.report_layout, config.output_dir
            )
        ]

    result = report.to_dict()
    result["summary_text"] = report.summary_text
    result["written_files"] = written
    result["timestamp"] = datetime.now().isoformat()
    return result
