"""
Base Azure Resource Fetchers Module.

This module talks to Azure Resource Manager: it lists the live resources of a
resource group, exports the group as an ARM template, and exports single
resources by id. Every call is wrapped so that a failure for one type or one
resource is logged and absorbed instead of aborting the run.
"""

import json
import re
from typing import Any, Dict, List, Optional, Set, Tuple

from azure.identity import DefaultAzureCredential
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import ExportTemplateRequest

from ...utils import exporter_error_handler, setup_logging
from ..types import ExportResult, JsonDocument, LiveResourceSummary
from ..types import ResourceManagementClient as ResourceClient

logger = setup_logging()

ARM_TEMPLATE_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#"

# Type quoted in export error messages, e.g.
# "The schema of resource type 'Microsoft.Foo/bars' is not available."
QUOTED_TYPE_PATTERN = re.compile(
    r"resource type '(?P<type>[A-Za-z0-9.]+/[A-Za-z0-9./]+)'", re.IGNORECASE
)

ErrorDetail = Tuple[str, str, Optional[str]]


def parse_resource_type_from_id(resource_id: Optional[str]) -> Optional[str]:
    """
    Extracts the full resource type from an Azure resource id.

    /subscriptions/{sub}/resourceGroups/{rg}/providers/Microsoft.Sql/servers/s1/databases/db1
    gives 'Microsoft.Sql/servers/databases'.
    """
    if not resource_id or "/providers/" not in resource_id:
        return None
    provider_portion = resource_id.split("/providers/")[-1].strip("/")
    segments = provider_portion.split("/")
    if len(segments) < 3:
        return None
    namespace = segments[0]
    type_segments = segments[1::2]
    return "/".join([namespace] + type_segments)


def create_resource_client(subscription_id: str) -> ResourceClient:
    """Creates an ARM client using the ambient Azure credential chain."""
    credential = DefaultAzureCredential()
    return ResourceManagementClient(credential, subscription_id)


def _to_summary(resource: Any) -> LiveResourceSummary:
    return LiveResourceSummary(
        name=resource.name,
        type=resource.type,
        id=resource.id,
        location=getattr(resource, "location", None),
    )


@exporter_error_handler(list)
def list_resources(client: ResourceClient, resource_group: str) -> List[LiveResourceSummary]:
    """
    Lists every resource Azure reports in the resource group.

    Args:
        client: ARM ResourceManagementClient
        resource_group: Name of the resource group (the environment id)

    Returns:
        Live resource summaries in the order Azure returns them
    """
    summaries = [_to_summary(r) for r in client.resources.list_by_resource_group(resource_group)]
    logger.info(f"Found {len(summaries)} live resources in resource group {resource_group}")
    return summaries


@exporter_error_handler(list)
def list_resources_by_type(
    client: ResourceClient, resource_group: str, resource_type: str
) -> List[LiveResourceSummary]:
    """Lists live instances of one resource type."""
    resources = client.resources.list_by_resource_group(
        resource_group, filter=f"resourceType eq '{resource_type}'"
    )
    return [_to_summary(r) for r in resources]


def _harvest(details: List[ErrorDetail]) -> Tuple[Set[str], List[str]]:
    """Collects unsupported types and messages from export error details."""
    types: Set[str] = set()
    messages: List[str] = []
    for code, message, target in details:
        messages.append(f"{code or 'ExportError'}: {message}")
        match = QUOTED_TYPE_PATTERN.search(message)
        resource_type = match.group("type") if match else parse_resource_type_from_id(target)
        if resource_type:
            types.add(resource_type)
    return types, messages


def _build_export_result(template: Any, details: List[ErrorDetail]) -> ExportResult:
    types, messages = _harvest(details)
    for message in messages:
        logger.warning(f"Export diagnostic: {message}")
    return ExportResult(
        template_text=json.dumps(template or {}, indent=2),
        unsupported_types=frozenset(types),
        diagnostics=tuple(messages),
    )


@exporter_error_handler(ExportResult)
def export_all(
    client: ResourceClient, resource_group: str, timeout_seconds: Optional[int] = None
) -> ExportResult:
    """
    Exports the whole resource group as one ARM template.

    Partial failures are expected: Azure exports what it can and lists the
    resources it skipped in the error details. Those types are reported back as
    unsupported rather than failing the export.
    """
    logger.info(f"Exporting ARM template for resource group {resource_group}")
    poller = client.resource_groups.begin_export_template(
        resource_group,
        ExportTemplateRequest(
            resources=["*"],
            options="IncludeParameterDefaultValue,SkipResourceNameParameterization",
        ),
    )
    result = poller.result(timeout=timeout_seconds)
    if not poller.done():
        raise TimeoutError(f"Export of {resource_group} did not finish within {timeout_seconds}s")

    details: List[ErrorDetail] = []
    if result.error is not None:
        for d in list(result.error.details or []) or [result.error]:
            details.append((d.code or "", d.message or "", d.target))
    return _build_export_result(result.template, details)


def _latest_api_version(client: ResourceClient, resource_type: str) -> Optional[str]:
    namespace, _, type_name = resource_type.partition("/")
    provider = client.providers.get(namespace)
    for provider_type in provider.resource_types or []:
        if provider_type.resource_type.lower() == type_name.lower():
            versions = provider_type.api_versions or []
            stable = [v for v in versions if "preview" not in v.lower()]
            candidates = stable or versions
            return max(candidates) if candidates else None
    return None


@exporter_error_handler(str)
def export_one(client: ResourceClient, resource_id: str) -> str:
    """
    Exports a single resource as a one-resource ARM template.

    Returns:
        Template JSON text, or an empty string if the resource could not be read
    """
    resource_type = parse_resource_type_from_id(resource_id)
    api_version = _latest_api_version(client, resource_type) if resource_type else None
    if not api_version:
        logger.warning(f"No API version known for {resource_id}; cannot export it")
        return ""

    resource = client.resources.get_by_id(resource_id, api_version)
    body = resource.as_dict()
    body.pop("id", None)
    body["type"] = resource_type
    body["apiVersion"] = api_version
    return template_from_resources([body])


def template_from_resources(resources: List[JsonDocument]) -> str:
    """Wraps resource bodies into a minimal deployment template."""
    return json.dumps(
        {
            "$schema": ARM_TEMPLATE_SCHEMA,
            "contentVersion": "1.0.0.0",
            "resources": resources,
        },
        indent=2,
    )


def parse_recorded_export(document: Dict[str, Any]) -> ExportResult:
    """
    Interprets a pre-recorded export.

    Accepts either a bare ARM template or the export API response shape
    ``{"template": {...}, "error": {...}}``.
    """
    if "template" not in document:
        return ExportResult(template_text=json.dumps(document, indent=2))

    error = document.get("error") or {}
    details: List[ErrorDetail] = [
        (d.get("code", ""), d.get("message", ""), d.get("target"))
        for d in (error.get("details") or ([error] if error else []))
    ]
    return _build_export_result(document.get("template"), details)


def parse_recorded_listing(document: Dict[str, Any]) -> List[LiveResourceSummary]:
    """
    Interprets a pre-recorded live listing ('az resource list' output).

    Entries without a name, type or id are skipped with a warning.
    """
    summaries = []
    for item in document.get("value", []):
        if not isinstance(item, dict) or not all(item.get(k) for k in ("name", "type", "id")):
            logger.warning(f"Skipping malformed live listing entry: {item!r}")
            continue
        summaries.append(
            LiveResourceSummary(
                name=item["name"], type=item["type"], id=item["id"], location=item.get("location")
            )
        )
    return summaries
