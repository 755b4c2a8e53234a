"""
Text normalisation for declaration comparison.

Re-exporting and re-compiling routinely changes line endings, trailing spaces,
indentation width and blank lines. None of that is drift.
"""

import re

_HORIZONTAL_RUN = re.compile(r"[ \t]+")
_BLANK_LINES = re.compile(r"\n{2,}")


def normalise_text(text: str) -> str:
    """
    Canonical form of a declaration body.

    Line endings become LF, every run of spaces or tabs becomes one space, lines
    are stripped, blank line runs collapse and the whole text is trimmed.
    Applying it twice gives the same result as applying it once.
    """
    unified = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [_HORIZONTAL_RUN.sub(" ", line).strip() for line in unified.split("\n")]
    return _BLANK_LINES.sub("\n", "\n".join(lines)).strip()


def texts_match(baseline_text: str, live_text: str) -> bool:
    return normalise_text(baseline_text) == normalise_text(live_text)
