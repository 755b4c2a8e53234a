"""
Descriptor Splitter.

Decomposes one block of decompiled Bicep source into per-resource declaration
text. The scan is a fold over the input lines through two states, ``Idle`` and
``Accumulating``; a header line flushes the pending declaration and starts a new
one, and the end of input flushes whatever is pending.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple, Union

from ..utils import setup_logging
from .grammar import Header, declared_name, find_header, parameter_defaults, parse_header
from .types import ResourceDescriptor, ResourceIdentity, SourceKind

logger = setup_logging()


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Accumulating:
    header: Header
    lines: Tuple[str, ...] = ()


ScanState = Union[Idle, Accumulating]


def _flush(state: ScanState, blocks: Dict[str, str]) -> None:
    if not isinstance(state, Accumulating):
        return
    name = state.header.symbolic_name
    if name in blocks:
        # Bicep forbids duplicate symbols, so this only happens on broken input
        logger.warning(f"Duplicate declaration '{name}' in split input; keeping the last one")
    blocks[name] = "\n".join(state.lines).strip()


def _step(state: ScanState, line: str, blocks: Dict[str, str]) -> ScanState:
    header = parse_header(line)
    if header:
        _flush(state, blocks)
        return Accumulating(header, (line,))
    if isinstance(state, Accumulating):
        return Accumulating(state.header, state.lines + (line,))
    # Text before the first header (params, vars, comments) is not a resource
    return state


def split_declarations(text: Optional[str]) -> Dict[str, str]:
    """
    Splits concatenated declarations into a symbolic name -> text mapping.

    Each value runs from its header line up to, but not including, the next
    header line or the end of input, trimmed. Trailing content that does not
    parse (a truncated compile, for instance) stays attached to the last
    declaration. Input without any header gives an empty mapping. When a symbolic
    name repeats, the last declaration wins.

    Args:
        text: Bicep source text, possibly empty or truncated

    Returns:
        Mapping of symbolic name to verbatim declaration text, in input order
    """
    blocks: Dict[str, str] = {}
    if not text:
        return blocks

    state: ScanState = Idle()
    for line in text.splitlines():
        state = _step(state, line, blocks)
    _flush(state, blocks)

    logger.debug(f"Split {len(blocks)} declarations from {len(text)} characters")
    return blocks


def to_descriptors(
    blocks: Dict[str, str],
    source_kind: SourceKind = SourceKind.EXPORTED,
    parameters: Optional[Mapping[str, str]] = None,
) -> List[ResourceDescriptor]:
    """
    Turns split blocks into descriptors keyed by their declared resource name.

    ``parameters`` maps parameter names to their literal defaults, so a body
    whose ``name:`` is a parameter reference still gets the live name.
    """
    descriptors = []
    for symbolic_name, body in blocks.items():
        header = find_header(body)
        if header is None:
            # Cannot happen for splitter output; tolerated for hand-built input
            logger.warning(f"Block '{symbolic_name}' has no declaration header; skipping")
            continue
        identity = ResourceIdentity(declared_name(body, header, parameters), header.type_literal)
        descriptors.append(ResourceDescriptor(identity, body, source_kind))
    return descriptors


def split_descriptors(
    text: Optional[str], source_kind: SourceKind = SourceKind.EXPORTED
) -> List[ResourceDescriptor]:
    """Splits text and returns descriptors in one step, resolving parameterized names."""
    return to_descriptors(split_declarations(text), source_kind, parameter_defaults(text or ""))
