"""
Type definitions for the Bicep Drift Detector.

This module contains the value types passed between the splitter, the baseline
index, the unsupported resource resolver, the classifier and the report assembler.
All of them are frozen once produced.
"""

# Azure management clients are generated at runtime from the REST specs and their
# operation groups are not useful as static types, so they are annotated as Any.
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

ResourceManagementClient = Any

# Loosely typed JSON values coming out of an ARM export
JsonValue = Union[str, int, float, bool, List, Dict, None]
JsonDocument = Dict[str, JsonValue]

ConfigDict = Dict[str, Union[str, int, float, bool, None]]


class SourceKind(str, Enum):
    """Where a descriptor body came from."""

    EXPORTED = "exported"
    SYNTHESIZED = "synthesized"


class BaselineCategory(str, Enum):
    """The two namespaces of the baseline store."""

    MODULE = "modules"
    EXISTING = "existing"


class Verdict(str, Enum):
    """Primary classification of a resource key."""

    UNCHANGED = "Unchanged"
    ADDED = "Added"
    CHANGED = "Changed"
    REMOVED = "Removed"
    NOT_EXPORTED = "NotExported"


def _fold_type(resource_type: Optional[str]) -> Optional[str]:
    return resource_type.lower() if resource_type else None


@dataclass(frozen=True)
class ResourceIdentity:
    """
    Identifies a resource by name and, when known, type.

    Equality is by name only. Strict matching goes through ``key(True)``, which
    folds the type because ARM reports the same type with varying case.
    """

    name: str
    type: Optional[str] = field(default=None, compare=False)

    def key(self, match_by_type: bool = False) -> str:
        """Key used for every lookup and for the verdict map."""
        if match_by_type and self.type:
            return f"{self.name}|{_fold_type(self.type)}"
        return self.name

    def __str__(self) -> str:
        if self.type:
            return f"{self.name} ({self.type})"
        return self.name


@dataclass(frozen=True)
class ResourceDescriptor:
    identity: ResourceIdentity
    raw_text: str
    source_kind: SourceKind = SourceKind.EXPORTED


@dataclass(frozen=True)
class BaselineEntry:
    """A baseline file's resource. ``raw_text`` is the declaration span, without any preamble."""

    identity: ResourceIdentity
    file_path: Path
    raw_text: str
    category: BaselineCategory


@dataclass(frozen=True)
class LiveResourceSummary:
    """Identity-level record for every resource the remote side says exists."""

    name: str
    type: str
    id: str
    location: Optional[str] = None

    @property
    def identity(self) -> ResourceIdentity:
        return ResourceIdentity(self.name, self.type)


@dataclass(frozen=True)
class PipelineOptions:
    """Switches that used to be separate script variants."""

    match_by_type: bool = False
    include_unsupported: bool = True
    include_removed: bool = True


@dataclass(frozen=True)
class ExportResult:
    """Outcome of exporting a whole environment."""

    template_text: str = ""
    unsupported_types: FrozenSet[str] = frozenset()
    diagnostics: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CompileResult:
    """Outcome of decompiling an exported template into Bicep source."""

    text: str = ""
    unsupported_types: FrozenSet[str] = frozenset()
    diagnostics: Tuple[str, ...] = ()
    succeeded: bool = True


@dataclass(frozen=True)
class ResourceVerdict:
    """One verdict for one key, plus what the report needs to render it."""

    key: str
    identity: ResourceIdentity
    verdict: Verdict
    unsupported: bool = False
    live: Optional[LiveResourceSummary] = None
    baseline: Optional[BaselineEntry] = None
    descriptor: Optional[ResourceDescriptor] = None


@dataclass(frozen=True)
class ClassificationResult:
    """Verdicts keyed by resource key, iterated in sorted key order."""

    verdicts: Tuple[ResourceVerdict, ...]
    unsupported_types: FrozenSet[str] = frozenset()
    match_by_type: bool = False

    def by_verdict(self, verdict: Verdict) -> List[ResourceVerdict]:
        return [v for v in self.verdicts if v.verdict == verdict]

    def unsupported(self) -> List[ResourceVerdict]:
        return [v for v in self.verdicts if v.unsupported]

    def keys(self) -> List[str]:
        return [v.key for v in self.verdicts]

    @property
    def drift_detected(self) -> bool:
        return any(v.verdict != Verdict.UNCHANGED for v in self.verdicts)


@dataclass(frozen=True)
class Annotation:
    """A generated declaration body and where it belongs."""

    key: str
    name: str
    verdict: Verdict
    body: str
    baseline_path: Optional[Path] = None


@dataclass
class DriftReport:
    """Rendered outcome of one run. Built fresh each time."""

    sections: Dict[str, List[str]]
    summary_text: str
    annotations: List[Annotation]
    stubs: List[Annotation]
    commands: List[str]
    diagnostics: List[str] = field(default_factory=list)

    @property
    def drift_detected(self) -> bool:
        return any(
            self.sections.get(section)
            for section in ("Added", "Changed", "Removed", "Unsupported", "NotExported")
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "drift_detected": self.drift_detected,
            "summary": {name: len(names) for name, names in self.sections.items()},
            "resources": self.sections,
            "annotations": [
                {"name": a.name, "verdict": a.verdict.value, "body": a.body}
                for a in self.annotations
            ],
            "stubs": [{"name": s.name, "body": s.body} for s in self.stubs],
            "commands": self.commands,
            "diagnostics": self.diagnostics,
        }
