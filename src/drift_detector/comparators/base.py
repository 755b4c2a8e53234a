"""
Drift Classifier.

This module reconciles the baseline index with the live environment and gives
every resource key in baseline ∪ live exactly one verdict:

1. Removed: a baseline entry with no live counterpart.
2. Added / Changed / Unchanged: every descriptor, looked up in the baseline and
   compared on normalised text.
3. NotExported: a live resource that never produced a descriptor.
4. Unsupported: a tag on top of the verdict for any resource whose type the
   toolchain could not represent.

A resource counts as live when it is in the live listing or has a descriptor;
a body fetched from the environment is proof of existence even if the listing
call failed. The classifier does no I/O. Output is sorted by key, so identical
inputs always produce identical results.
"""

from dataclasses import replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from ...utils import setup_logging
from ..baseline import BaselineIndex
from ..types import (
    BaselineEntry,
    ClassificationResult,
    LiveResourceSummary,
    PipelineOptions,
    ResourceDescriptor,
    ResourceIdentity,
    ResourceVerdict,
    SourceKind,
    Verdict,
)
from .normalise import texts_match

logger = setup_logging()


def _check_inputs(
    baseline: BaselineIndex,
    descriptors: List[ResourceDescriptor],
    live_listing: List[LiveResourceSummary],
) -> None:
    if not isinstance(baseline, BaselineIndex):
        raise TypeError(f"baseline must be a BaselineIndex, got {type(baseline).__name__}")
    for descriptor in descriptors:
        if not isinstance(descriptor, ResourceDescriptor):
            raise TypeError(f"descriptors must be ResourceDescriptor, got {type(descriptor).__name__}")
        if not descriptor.identity.name:
            raise ValueError(f"Descriptor without a resource name: {descriptor!r}")
    for summary in live_listing:
        if not isinstance(summary, LiveResourceSummary):
            raise TypeError(f"live listing must hold LiveResourceSummary, got {type(summary).__name__}")


def _index_descriptors(
    descriptors: Iterable[ResourceDescriptor], match_by_type: bool
) -> Dict[str, ResourceDescriptor]:
    """
    One descriptor per key. An exported body beats a synthesized placeholder for
    the same resource; between two of the same kind the last one wins.
    """
    indexed: Dict[str, ResourceDescriptor] = {}
    for descriptor in descriptors:
        key = descriptor.identity.key(match_by_type)
        previous = indexed.get(key)
        if previous is not None:
            if (
                previous.source_kind == SourceKind.EXPORTED
                and descriptor.source_kind == SourceKind.SYNTHESIZED
            ):
                continue
            if previous.source_kind == descriptor.source_kind:
                logger.warning(f"Duplicate descriptor for '{key}'; keeping the last one")
        indexed[key] = descriptor
    return indexed


def _is_unsupported(identity: ResourceIdentity, unsupported_types: FrozenSet[str]) -> bool:
    return bool(identity.type) and identity.type.lower() in unsupported_types


def classify(
    baseline: BaselineIndex,
    descriptors: List[ResourceDescriptor],
    live_listing: List[LiveResourceSummary],
    unsupported_types: Iterable[str] = (),
    options: Optional[PipelineOptions] = None,
) -> ClassificationResult:
    """
    Classifies every resource key in baseline ∪ live.

    Args:
        baseline: Index of the local declarations
        descriptors: Split exported descriptors plus synthesized placeholders
        live_listing: Every resource the remote side reports as existing
        unsupported_types: Types the exporter or compiler could not represent
        options: Matching strictness and which passes to run

    Returns:
        ClassificationResult with one verdict per key, sorted by key

    Raises:
        TypeError, ValueError: If the inputs are structurally malformed
    """
    options = options or PipelineOptions()
    descriptors = list(descriptors)
    live_listing = list(live_listing)
    _check_inputs(baseline, descriptors, live_listing)

    match_by_type = options.match_by_type
    harvested = frozenset(unsupported_types) if options.include_unsupported else frozenset()
    unsupported = frozenset(t.lower() for t in harvested)

    baseline_by_key: Dict[str, BaselineEntry] = baseline.by_key(match_by_type)
    descriptor_by_key = _index_descriptors(descriptors, match_by_type)
    live_by_key: Dict[str, LiveResourceSummary] = {}
    for summary in live_listing:
        key = summary.identity.key(match_by_type)
        if key in live_by_key:
            logger.warning(
                f"Live listing has more than one resource for '{key}' "
                f"({live_by_key[key].id}, {summary.id}); keeping the first"
            )
            continue
        live_by_key[key] = summary

    present: Set[str] = set(live_by_key) | set(descriptor_by_key)
    results: Dict[str, ResourceVerdict] = {}

    # Pass 1: removed
    if options.include_removed:
        for key, entry in baseline_by_key.items():
            if key in present:
                continue
            results[key] = ResourceVerdict(
                key=key,
                identity=entry.identity,
                verdict=Verdict.REMOVED,
                baseline=entry,
            )

    # Pass 2: added / changed / unchanged
    for key, descriptor in descriptor_by_key.items():
        entry = baseline_by_key.get(key)
        if entry is None:
            verdict = Verdict.ADDED
        elif texts_match(entry.raw_text, descriptor.raw_text):
            verdict = Verdict.UNCHANGED
        else:
            verdict = Verdict.CHANGED
        results[key] = ResourceVerdict(
            key=key,
            identity=descriptor.identity,
            verdict=verdict,
            live=live_by_key.get(key),
            baseline=entry,
            descriptor=descriptor,
        )

    # Pass 3: live but never materialized
    for key, summary in live_by_key.items():
        if key in descriptor_by_key:
            continue
        results[key] = ResourceVerdict(
            key=key,
            identity=summary.identity,
            verdict=Verdict.NOT_EXPORTED,
            live=summary,
            baseline=baseline_by_key.get(key),
        )

    # Pass 4: unsupported tagging
    verdicts = []
    for key in sorted(results):
        result = results[key]
        if _is_unsupported(result.identity, unsupported):
            result = replace(result, unsupported=True)
        verdicts.append(result)

    classification = ClassificationResult(
        verdicts=tuple(verdicts),
        unsupported_types=harvested,
        match_by_type=match_by_type,
    )
    for verdict in Verdict:
        logger.info(f"{verdict.value}: {len(classification.by_verdict(verdict))}")
    return classification
