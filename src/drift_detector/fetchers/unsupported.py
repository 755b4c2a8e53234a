"""
Unsupported Resource Resolver.

For every resource type the exporter or the compiler rejected, enumerate the live
instances directly and synthesize a placeholder declaration for each, so no
resource of an unsupported type drops out of drift accounting.
"""

from typing import Callable, Dict, Iterable, List

from ...utils import setup_logging
from ..grammar import to_symbolic_name
from ..types import LiveResourceSummary, ResourceDescriptor, ResourceIdentity, SourceKind

logger = setup_logging()

PLACEHOLDER_MARKER = "// drift-detector: placeholder, manual review required"
PLACEHOLDER_API_VERSION = "unknown"

ListByType = Callable[[str], List[LiveResourceSummary]]


def placeholder_body(resource: LiveResourceSummary) -> str:
    """
    Minimal declaration carrying only identity and location.

    It never matches a real compiled body, so a baseline file for the same
    resource shows as Changed until someone reconciles it by hand.
    """
    location = resource.location or "unknown"
    return "\n".join(
        [
            f"resource {to_symbolic_name(resource.name)} '{resource.type}@{PLACEHOLDER_API_VERSION}' = {{",
            f"  {PLACEHOLDER_MARKER}",
            f"  // id: {resource.id}",
            f"  name: '{resource.name}'",
            f"  location: '{location}'",
            "}",
        ]
    )


def synthesize_descriptor(resource: LiveResourceSummary) -> ResourceDescriptor:
    return ResourceDescriptor(
        identity=ResourceIdentity(resource.name, resource.type),
        raw_text=placeholder_body(resource),
        source_kind=SourceKind.SYNTHESIZED,
    )


def resolve_unsupported(
    unsupported_types: Iterable[str],
    list_by_type: ListByType,
    live_listing: Iterable[LiveResourceSummary] = (),
) -> List[ResourceDescriptor]:
    """
    Synthesizes placeholder descriptors for every instance of every unsupported type.

    Instances come from ``list_by_type``; instances of the same type already in
    the full live listing are merged in, so a failed per-type listing still
    leaves every known instance accounted for.

    Args:
        unsupported_types: Types harvested from exporter and compiler diagnostics
        list_by_type: Lists live instances of one type (returns [] on failure)
        live_listing: The full live resource listing

    Returns:
        One synthesized descriptor per instance, ordered by type then name
    """
    live_by_type: Dict[str, List[LiveResourceSummary]] = {}
    for resource in live_listing:
        live_by_type.setdefault(resource.type.lower(), []).append(resource)

    # Exporter and compiler may report one type in different case
    distinct: Dict[str, str] = {}
    for resource_type in unsupported_types:
        distinct.setdefault(resource_type.lower(), resource_type)

    descriptors = []
    for _, resource_type in sorted(distinct.items()):
        instances: Dict[str, LiveResourceSummary] = {}
        for resource in list_by_type(resource_type):
            instances[resource.id.lower()] = resource
        for resource in live_by_type.get(resource_type.lower(), []):
            instances.setdefault(resource.id.lower(), resource)

        if not instances:
            logger.info(f"No live instances of unsupported type {resource_type}")
            continue
        logger.info(f"Synthesizing {len(instances)} placeholders for unsupported type {resource_type}")
        for resource in sorted(instances.values(), key=lambda r: (r.name, r.id)):
            descriptors.append(synthesize_descriptor(resource))
    return descriptors
