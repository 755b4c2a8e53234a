"""
Drift Comparators Package.

This package contains the text normalisation used to compare declarations and
the classifier that reconciles the baseline with the live environment.
"""

from .base import classify
from .normalise import normalise_text, texts_match

__all__ = [
    "classify",
    "normalise_text",
    "texts_match",
]
