#!/usr/bin/env python3
"""
Regression test for formatting-only differences.

Re-exporting and re-decompiling a resource changes line endings, indentation and
trailing whitespace without changing the resource. The comparator must not report
those as drift, and normalising twice must be the same as normalising once.
"""

from src.drift_detector.comparators.normalise import normalise_text, texts_match

BASELINE = """resource vnetA 'Microsoft.Network/virtualNetworks@2023-04-01' = {
  name: 'vnetA'
  location: 'westeurope'
  properties: {
    addressSpace: {
      addressPrefixes: [
        '10.0.0.0/16'
      ]
    }
  }
}
"""


def test_formatting_differences_are_not_drift() -> None:
    """Test that line endings, tabs and trailing spaces are ignored."""
    reexported = (
        "\r\n"
        + BASELINE.replace("\n", "  \r\n").replace("  name", "\tname").replace("    ", "\t\t")
        + "\r\n\r\n"
    )
    assert texts_match(BASELINE, reexported), "Expected formatting-only changes to match"


def test_normalisation_is_idempotent() -> None:
    once = normalise_text(BASELINE.replace("\n", "\r\n"))
    assert normalise_text(once) == once
    assert "\r" not in once
    assert once == once.strip()


def test_real_changes_are_drift() -> None:
    changed = BASELINE.replace("10.0.0.0/16", "10.1.0.0/16")
    assert not texts_match(BASELINE, changed)


def test_whitespace_inside_tokens_still_counts() -> None:
    assert not texts_match("name: 'a b'", "name: 'ab'")


if __name__ == "__main__":
    test_formatting_differences_are_not_drift()
    test_normalisation_is_idempotent()
    test_real_changes_are_drift()
    print("Test completed successfully!")
