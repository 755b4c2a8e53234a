"""
Configuration loader for the Bicep Drift Detector.
"""

import os
from dataclasses import dataclass
from typing import Optional

from .drift_detector.types import PipelineOptions

REPORT_LAYOUTS = ("aggregated", "per_resource")
CONFLICT_POLICIES = ("last_wins", "fail")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got '{raw}'")


@dataclass
class Config:
    """Configuration class for the drift detector."""

    subscription_id: Optional[str] = None
    resource_group: Optional[str] = None
    baseline_path: str = "."
    export_source: Optional[str] = None
    live_listing_source: Optional[str] = None
    match_by_type: bool = False
    include_unsupported: bool = True
    include_removed: bool = True
    report_layout: str = "aggregated"
    output_dir: Optional[str] = None
    write_annotations: bool = True
    conflict_policy: str = "last_wins"
    log_level: str = "INFO"
    timeout_seconds: int = 120

    @property
    def options(self) -> PipelineOptions:
        return PipelineOptions(
            match_by_type=self.match_by_type,
            include_unsupported=self.include_unsupported,
            include_removed=self.include_removed,
        )

    @property
    def offline(self) -> bool:
        """True when both the export and the live listing are pre-recorded."""
        return bool(self.export_source and self.live_listing_source)

    def validate(self) -> None:
        """
        Raises:
            ValueError: If the combination of settings cannot run
        """
        if not self.offline and not (self.subscription_id and self.resource_group):
            raise ValueError(
                "AZURE_SUBSCRIPTION_ID and RESOURCE_GROUP are required unless "
                "EXPORT_SOURCE and LIVE_LISTING_SOURCE are both set"
            )
        for source in (self.export_source, self.live_listing_source):
            if source and source.startswith("s3:") and not source.startswith("s3://"):
                raise ValueError(f"'{source}' must be a valid S3 path starting with s3://")
        if self.report_layout not in REPORT_LAYOUTS:
            raise ValueError(f"REPORT_LAYOUT must be one of {', '.join(REPORT_LAYOUTS)}")
        if self.conflict_policy not in CONFLICT_POLICIES:
            raise ValueError(f"CONFLICT_POLICY must be one of {', '.join(CONFLICT_POLICIES)}")
        if self.timeout_seconds <= 0:
            raise ValueError("TIMEOUT_SECONDS must be positive")


def load_config() -> Config:
    """
    Loads and validates configuration from the environment.

    Returns:
        Config object with validated settings

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    try:
        timeout_seconds = int(os.environ.get("TIMEOUT_SECONDS", "120"))
    except ValueError:
        raise ValueError("TIMEOUT_SECONDS must be an integer")

    config = Config(
        subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID") or None,
        resource_group=os.environ.get("RESOURCE_GROUP") or None,
        baseline_path=os.environ.get("BASELINE_PATH", "."),
        export_source=os.environ.get("EXPORT_SOURCE") or None,
        live_listing_source=os.environ.get("LIVE_LISTING_SOURCE") or None,
        match_by_type=_env_flag("MATCH_BY_TYPE", False),
        include_unsupported=_env_flag("INCLUDE_UNSUPPORTED", True),
        include_removed=_env_flag("INCLUDE_REMOVED", True),
        report_layout=os.environ.get("REPORT_LAYOUT", "aggregated"),
        output_dir=os.environ.get("OUTPUT_DIR") or None,
        write_annotations=_env_flag("WRITE_ANNOTATIONS", True),
        conflict_policy=os.environ.get("CONFLICT_POLICY", "last_wins"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        timeout_seconds=timeout_seconds,
    )
    config.validate()
    return config
