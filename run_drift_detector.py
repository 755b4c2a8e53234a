#!/usr/bin/env python3
"""
Command-line interface for running the Bicep Drift Detector locally.

This script scans an Azure resource group against a local Bicep baseline. It
requires Azure credentials (az login, environment variables or a managed
identity) unless both the export and the live listing come from recorded files.

Usage:
    python run_drift_detector.py --subscription <id> --resource-group rg-app --baseline ./infra
    python run_drift_detector.py --export-source local://export.json --listing-source local://resources.json --baseline ./infra
    python run_drift_detector.py --subscription <id> --resource-group rg-app --baseline ./infra --match-by-type
"""

import argparse
import json
import os
import sys
from typing import Dict, Any

# Add the src directory to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from src.config import CONFLICT_POLICIES, REPORT_LAYOUTS, Config
from src.drift_detector import detect_drift
from src.drift_detector.baseline import BaselineError
from src.utils import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run the Bicep Drift Detector against an Azure resource group",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_drift_detector.py --subscription 0000-... --resource-group rg-app --baseline ./infra
  python run_drift_detector.py --export-source s3://bucket/export.json --listing-source s3://bucket/resources.json --baseline ./infra
        """
    )

    parser.add_argument(
        "--subscription",
        default=os.environ.get("AZURE_SUBSCRIPTION_ID"),
        help="Azure subscription id (default: $AZURE_SUBSCRIPTION_ID)"
    )

    parser.add_argument(
        "--resource-group",
        default=os.environ.get("RESOURCE_GROUP"),
        help="Resource group to scan (default: $RESOURCE_GROUP)"
    )

    parser.add_argument(
        "--baseline",
        default=".",
        help="Directory containing modules/ and existing/ (default: current directory)"
    )

    parser.add_argument(
        "--export-source",
        help="Recorded ARM export instead of a live export (local://, s3:// or a path)"
    )

    parser.add_argument(
        "--listing-source",
        help="Recorded 'az resource list' output instead of a live listing"
    )

    parser.add_argument(
        "--match-by-type",
        action="store_true",
        help="Require resource types to match as well as names"
    )

    parser.add_argument(
        "--skip-unsupported",
        action="store_true",
        help="Do not synthesize placeholders for unsupported resource types"
    )

    parser.add_argument(
        "--skip-removed",
        action="store_true",
        help="Do not report baseline resources missing from the environment"
    )

    parser.add_argument(
        "--layout",
        choices=REPORT_LAYOUTS,
        default="aggregated",
        help="Annotation file layout (default: aggregated)"
    )

    parser.add_argument(
        "--output-dir",
        help="Where the summary and aggregated annotations go (default: the baseline directory)"
    )

    parser.add_argument(
        "--no-write",
        action="store_true",
        help="Print the report without writing any files"
    )

    parser.add_argument(
        "--conflict-policy",
        choices=CONFLICT_POLICIES,
        default="last_wins",
        help="What to do when two baseline files declare the same name (default: last_wins)"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--timeout-seconds",
        type=int,
        default=120,
        help="Timeout for each export and decompile call in seconds (default: 120)"
    )

    parser.add_argument(
        "--output-format",
        choices=["json", "pretty"],
        default="pretty",
        help="Output format for the drift report (default: pretty)"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> Config:
    config = Config(
        subscription_id=args.subscription,
        resource_group=args.resource_group,
        baseline_path=args.baseline,
        export_source=args.export_source,
        live_listing_source=args.listing_source,
        match_by_type=args.match_by_type,
        include_unsupported=not args.skip_unsupported,
        include_removed=not args.skip_removed,
        report_layout=args.layout,
        output_dir=args.output_dir,
        write_annotations=not args.no_write,
        conflict_policy=args.conflict_policy,
        log_level=args.log_level,
        timeout_seconds=args.timeout_seconds,
    )
    config.validate()
    return config


def main() -> None:
    """Main entry point for the command-line drift detector."""
    args = build_parser().parse_args()

    # Set up logging
    logger = setup_logging(args.log_level)
    logger.info("Starting Bicep drift detection from command line")

    try:
        config = config_from_args(args)
    except ValueError as e:
        print(f"ERROR: {str(e)}", file=sys.stderr)
        sys.exit(1)

    try:
        logger.info(f"Running drift detection for baseline: {config.baseline_path}")
        if config.resource_group:
            logger.info(f"Using resource group: {config.resource_group}")

        drift_report = detect_drift(config)

        # Output results
        if args.output_format == "json":
            print(json.dumps(drift_report, indent=2))
        else:
            print_drift_report(drift_report)

        # Exit with appropriate code
        if drift_report.get("drift_detected", False):
            logger.warning("Drift detected! Exiting with code 1")
            sys.exit(1)
        else:
            logger.info("No drift detected. Exiting with code 0")
            sys.exit(0)

    except BaselineError as e:
        logger.error(f"Baseline error: {str(e)}")
        print(f"ERROR: {str(e)}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        logger.error(f"Error running drift detection: {str(e)}")
        print(f"ERROR: {str(e)}", file=sys.stderr)
        sys.exit(1)


def print_drift_report(drift_report: Dict[str, Any]) -> None:
    """Print a human-readable drift report with next steps."""
    print("\n" + "="*60)
    print("BICEP DRIFT DETECTION REPORT")
    print("="*60)

    print()
    print(drift_report.get("summary_text", "").rstrip())

    commands = drift_report.get("commands", [])
    print(f"\n=== Inspection Commands ({len(commands)}) ===")
    if commands:
        for command in commands:
            print(f"$ {command}")
        print("\nNote: run these to inspect resources whose definitions could not be exported or decompiled.")
    else:
        print("No manual inspection needed.")

    diagnostics = drift_report.get("diagnostics", [])
    if diagnostics:
        print(f"\n=== Diagnostics ({len(diagnostics)}) ===")
        for diagnostic in diagnostics:
            print(f"⚠️  {diagnostic}")

    written = drift_report.get("written_files", [])
    if written:
        print(f"\n=== Files Written ({len(written)}) ===")
        for path in written:
            print(f"📝 {path}")

    print("\n" + "="*60)


if __name__ == "__main__":
    main()
