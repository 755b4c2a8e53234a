"""
Tests for the Unsupported Resource Resolver.
"""

import unittest
from unittest.mock import MagicMock

from src.drift_detector.fetchers.unsupported import (
    PLACEHOLDER_MARKER,
    resolve_unsupported,
    synthesize_descriptor,
)
from src.drift_detector.grammar import declared_name, find_header
from src.drift_detector.types import LiveResourceSummary, SourceKind

EXOTIC_TYPE = "Microsoft.Something/exotic"
RG = "/subscriptions/sub/resourceGroups/rg-app/providers"


def exotic(name: str, location: str = "westeurope") -> LiveResourceSummary:
    return LiveResourceSummary(name, EXOTIC_TYPE, f"{RG}/{EXOTIC_TYPE}/{name}", location)


class TestSynthesizeDescriptor(unittest.TestCase):
    def test_placeholder_carries_identity_and_location(self) -> None:
        resource = exotic("my-exotic-1", "northeurope")
        descriptor = synthesize_descriptor(resource)

        self.assertEqual(descriptor.source_kind, SourceKind.SYNTHESIZED)
        self.assertEqual(descriptor.identity.name, "my-exotic-1")
        self.assertEqual(descriptor.identity.type, EXOTIC_TYPE)
        self.assertIn(PLACEHOLDER_MARKER, descriptor.raw_text)
        self.assertIn(resource.id, descriptor.raw_text)
        self.assertIn("location: 'northeurope'", descriptor.raw_text)

    def test_placeholder_is_a_valid_declaration(self) -> None:
        descriptor = synthesize_descriptor(exotic("my-exotic-1"))
        header = find_header(descriptor.raw_text)
        self.assertIsNotNone(header)
        self.assertEqual(header.symbolic_name, "my_exotic_1")
        self.assertEqual(header.type_literal, EXOTIC_TYPE)
        self.assertEqual(declared_name(descriptor.raw_text, header), "my-exotic-1")

    def test_unknown_location(self) -> None:
        resource = LiveResourceSummary("x", EXOTIC_TYPE, f"{RG}/{EXOTIC_TYPE}/x")
        self.assertIn("location: 'unknown'", synthesize_descriptor(resource).raw_text)


class TestResolveUnsupported(unittest.TestCase):
    def test_every_instance_gets_a_placeholder(self) -> None:
        list_by_type = MagicMock(return_value=[exotic("e3"), exotic("e1"), exotic("e2")])
        descriptors = resolve_unsupported([EXOTIC_TYPE], list_by_type)

        list_by_type.assert_called_once_with(EXOTIC_TYPE)
        self.assertEqual([d.identity.name for d in descriptors], ["e1", "e2", "e3"])
        self.assertTrue(all(d.source_kind == SourceKind.SYNTHESIZED for d in descriptors))

    def test_failed_type_listing_falls_back_to_live_listing(self) -> None:
        list_by_type = MagicMock(return_value=[])
        listing = [exotic("e1"), LiveResourceSummary("vnetA", "Microsoft.Network/virtualNetworks", "id")]
        descriptors = resolve_unsupported([EXOTIC_TYPE.lower()], list_by_type, listing)
        self.assertEqual([d.identity.name for d in descriptors], ["e1"])

    def test_instances_from_both_sources_are_merged_by_id(self) -> None:
        from_type_listing = [exotic("e1")]
        upper_case_copy = LiveResourceSummary("e1", EXOTIC_TYPE, from_type_listing[0].id.upper(), "westeurope")
        descriptors = resolve_unsupported(
            [EXOTIC_TYPE], MagicMock(return_value=from_type_listing), [upper_case_copy, exotic("e2")]
        )
        self.assertEqual([d.identity.name for d in descriptors], ["e1", "e2"])

    def test_type_without_instances(self) -> None:
        self.assertEqual(resolve_unsupported(["Microsoft.Foo/bars"], MagicMock(return_value=[])), [])

    def test_each_type_listed_once(self) -> None:
        list_by_type = MagicMock(return_value=[])
        resolve_unsupported([EXOTIC_TYPE, EXOTIC_TYPE.lower(), "Microsoft.Foo/bars"], list_by_type)
        self.assertEqual(list_by_type.call_count, 2)


if __name__ == "__main__":
    unittest.main()
