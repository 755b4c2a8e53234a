"""
Baseline Index.

Scans the local baseline store once and indexes every declared resource by name
(and by name and type for strict matching). The store has two namespaces,
``modules/`` and ``existing/``, each holding one ``.bicep`` file per resource.
Files ending in ``.drift.bicep`` are annotations written by a previous run and
are never read back as baseline.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from ..utils import setup_logging
from .grammar import declared_name, find_header, parameter_defaults
from .splitter import split_declarations
from .types import BaselineCategory, BaselineEntry, ResourceIdentity

logger = setup_logging()

DRIFT_SUFFIX = ".drift.bicep"
BICEP_SUFFIX = ".bicep"


class BaselineError(Exception):
    """The baseline store is structurally unusable."""


class IdentityConflictError(BaselineError):
    """Two baseline files declare the same resource name."""


def is_drift_annotation(path: Union[str, Path]) -> bool:
    return str(path).endswith(DRIFT_SUFFIX)


@dataclass(frozen=True)
class BaselineIndex:
    """
    Immutable view of the baseline store.

    ``entries`` is ordered by category then relative path, so two scans of the
    same tree compare equal.
    """

    root: Path
    entries: Tuple[BaselineEntry, ...]

    def by_name(self) -> Dict[str, BaselineEntry]:
        return {entry.identity.name: entry for entry in self.entries}

    def by_key(self, match_by_type: bool = False) -> Dict[str, BaselineEntry]:
        return {entry.identity.key(match_by_type): entry for entry in self.entries}

    def lookup(
        self, identity: ResourceIdentity, match_by_type: bool = False
    ) -> Optional[BaselineEntry]:
        return self.by_key(match_by_type).get(identity.key(match_by_type))

    def __len__(self) -> int:
        return len(self.entries)


def _iter_baseline_files(root: Path, category: BaselineCategory) -> Iterator[Path]:
    directory = root / category.value
    if not directory.is_dir():
        logger.info(f"No {category.value}/ directory under {root}; nothing to index there")
        return
    for path in sorted(directory.rglob(f"*{BICEP_SUFFIX}")):
        if is_drift_annotation(path):
            logger.debug(f"Skipping drift annotation {path}")
            continue
        if path.is_file():
            yield path


def _read_entry(path: Path, category: BaselineCategory) -> Optional[BaselineEntry]:
    text = path.read_text(encoding="utf-8")
    header = find_header(text)
    if header is None:
        logger.warning(f"No resource declaration found in {path}; not part of the baseline")
        return None
    # Compare the declaration only; comments, params and vars above it are not the resource
    declaration = split_declarations(text).get(header.symbolic_name, text)
    name = declared_name(declaration, header, parameter_defaults(text))
    return BaselineEntry(
        identity=ResourceIdentity(name, header.type_literal),
        file_path=path,
        raw_text=declaration,
        category=category,
    )


def build_baseline_index(
    root: Union[str, Path], conflict_policy: str = "last_wins"
) -> BaselineIndex:
    """
    Builds the baseline index from the filesystem.

    Conflicts (two files declaring the same name) follow ``conflict_policy``:
    ``last_wins`` keeps the file that sorts last (``existing/`` after
    ``modules/``, then by path) and logs a warning naming both files; ``fail``
    raises IdentityConflictError.

    Args:
        root: Directory containing modules/ and existing/
        conflict_policy: 'last_wins' or 'fail'

    Returns:
        BaselineIndex with at most one entry per name

    Raises:
        BaselineError: If the root directory does not exist
        IdentityConflictError: On a duplicate name under the 'fail' policy
    """
    root_path = Path(root)
    if not root_path.is_dir():
        raise BaselineError(f"Baseline path does not exist or is not a directory: {root_path}")

    indexed: Dict[str, BaselineEntry] = {}
    for category in (BaselineCategory.MODULE, BaselineCategory.EXISTING):
        for path in _iter_baseline_files(root_path, category):
            entry = _read_entry(path, category)
            if entry is None:
                continue
            name = entry.identity.name
            previous = indexed.get(name)
            if previous is not None:
                if conflict_policy == "fail":
                    raise IdentityConflictError(
                        f"Resource '{name}' is declared in both {previous.file_path} and {path}"
                    )
                logger.warning(
                    f"Resource '{name}' is declared in both {previous.file_path} and {path}; "
                    f"using {path}"
                )
                del indexed[name]
            indexed[name] = entry

    entries: List[BaselineEntry] = sorted(
        indexed.values(),
        key=lambda e: (e.category != BaselineCategory.MODULE, e.file_path.relative_to(root_path).as_posix()),
    )
    logger.info(f"Indexed {len(entries)} baseline resources under {root_path}")
    return BaselineIndex(root=root_path, entries=tuple(entries))
