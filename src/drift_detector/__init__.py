"""
Bicep Drift Detector Package.

This package detects configuration drift between a local Bicep baseline and the
live state of an Azure resource group.

The drift detection process:
1. Indexes the baseline declarations under modules/ and existing/
2. Lists and exports the live resources, then decompiles the export to Bicep
3. Splits the decompiled source into per-resource declarations
4. Synthesizes placeholders for resource types the toolchain cannot represent
5. Classifies every resource as Unchanged, Added, Changed, Removed or NotExported
6. Reports the result and writes annotation files for manual reconciliation
"""

from .core import detect_drift, run_pipeline

__all__ = ['detect_drift', 'run_pipeline']
