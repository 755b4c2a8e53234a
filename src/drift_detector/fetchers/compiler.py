"""
Bicep Definition Compiler Module.

Runs the Bicep CLI to decompile an exported ARM template into Bicep source and
harvests the resource types it could not handle from its diagnostics.
"""

import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Set

from ...utils import setup_logging
from ..types import CompileResult

logger = setup_logging()

# BCP081: Resource type "Microsoft.Foo/bars@2021-01-01" does not have types available.
NO_TYPES_PATTERN = re.compile(
    r'Resource type "(?P<type>[^"@]+)@[^"]*" does not have types available'
)
# Decompiler failures quoting the type, e.g. "... unsupported resource type 'Microsoft.Foo/bars'"
UNSUPPORTED_TYPE_PATTERN = re.compile(
    r"(?:unsupported|not supported)[^'\"]*['\"](?P<type>[A-Za-z0-9.]+/[A-Za-z0-9./]+)['\"]",
    re.IGNORECASE,
)


def harvest_unsupported_types(diagnostics: str) -> Set[str]:
    """Returns every resource type named as unsupported in compiler output."""
    types = set()
    for pattern in (NO_TYPES_PATTERN, UNSUPPORTED_TYPE_PATTERN):
        for match in pattern.finditer(diagnostics):
            types.add(match.group("type"))
    return types


def _decompile_command(template_path: Path) -> Optional[List[str]]:
    if shutil.which("bicep"):
        return ["bicep", "decompile", str(template_path), "--stdout"]
    if shutil.which("az"):
        return ["az", "bicep", "decompile", "--file", str(template_path), "--force"]
    return None


def compile_template(raw_text: str, timeout_seconds: int = 120) -> CompileResult:
    """
    Decompiles an ARM template into Bicep.

    Any failure (missing CLI, timeout, non-zero exit) is a compile failure, not
    an error: whatever partial output exists is returned with ``succeeded``
    False so the splitter can still salvage complete declarations.

    Args:
        raw_text: ARM template JSON
        timeout_seconds: Upper bound for the CLI call

    Returns:
        CompileResult with the Bicep text and harvested unsupported types
    """
    if not raw_text.strip():
        return CompileResult(succeeded=False, diagnostics=("Empty template; nothing to decompile",))

    with tempfile.TemporaryDirectory(prefix="bicep-drift-") as workdir:
        template_path = Path(workdir) / "template.json"
        template_path.write_text(raw_text, encoding="utf-8")

        command = _decompile_command(template_path)
        if command is None:
            message = "Neither 'bicep' nor 'az' is on PATH; cannot decompile"
            logger.error(message)
            return CompileResult(succeeded=False, diagnostics=(message,))

        logger.info(f"Decompiling template with: {' '.join(command[:3])}")
        try:
            completed = subprocess.run(
                command, capture_output=True, text=True, timeout=timeout_seconds
            )
        except subprocess.TimeoutExpired as e:
            message = f"Decompile timed out after {timeout_seconds}s"
            logger.error(message)
            partial = e.stdout.decode() if isinstance(e.stdout, bytes) else (e.stdout or "")
            return CompileResult(text=partial, succeeded=False, diagnostics=(message,))
        except OSError as e:
            message = f"Decompile could not start: {e}"
            logger.error(message)
            return CompileResult(succeeded=False, diagnostics=(message,))

        text = completed.stdout
        if command[0] == "az":
            # az writes the result next to the input instead of stdout
            output_path = template_path.with_suffix(".bicep")
            text = output_path.read_text(encoding="utf-8") if output_path.exists() else ""

    diagnostics = [line.strip() for line in completed.stderr.splitlines() if line.strip()]
    unsupported = harvest_unsupported_types(completed.stderr)
    if command[0] == "bicep":
        # Unsupported-type warnings are also embedded as comments in the output
        unsupported |= harvest_unsupported_types(text)

    succeeded = completed.returncode == 0
    if not succeeded:
        logger.error(f"Decompile exited with code {completed.returncode}")
    for resource_type in sorted(unsupported):
        logger.warning(f"Compiler cannot represent resource type {resource_type}")

    return CompileResult(
        text=text,
        unsupported_types=frozenset(unsupported),
        diagnostics=tuple(diagnostics),
        succeeded=succeeded,
    )
