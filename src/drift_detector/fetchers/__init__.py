"""
Azure Resource Fetchers Package.

This package contains the remote side of drift detection: listing and exporting
live Azure resources, decompiling exports into Bicep, and synthesizing
placeholders for resource types the toolchain cannot represent.
"""

from .base import (
    create_resource_client,
    export_all,
    export_one,
    list_resources,
    list_resources_by_type,
    parse_recorded_export,
    parse_recorded_listing,
    parse_resource_type_from_id,
)
from .compiler import compile_template, harvest_unsupported_types
from .unsupported import resolve_unsupported, synthesize_descriptor

__all__ = [
    "compile_template",
    "create_resource_client",
    "export_all",
    "export_one",
    "harvest_unsupported_types",
    "list_resources",
    "list_resources_by_type",
    "parse_recorded_export",
    "parse_recorded_listing",
    "parse_resource_type_from_id",
    "resolve_unsupported",
    "synthesize_descriptor",
]
