"""
Declaration header grammar.

Every component that needs to find where a Bicep resource declaration starts goes
through ``parse_header``. A header is the ``resource`` keyword, a symbolic name and
a quoted ``'<type>@<apiVersion>'`` literal, e.g.::

    resource vnetA 'Microsoft.Network/virtualNetworks@2023-04-01' = {

Nothing else marks a boundary.
"""

import re
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

HEADER_PATTERN = re.compile(
    r"^\s*resource\s+"
    r"(?P<symbolic_name>[A-Za-z_][A-Za-z0-9_]*)\s+"
    r"'(?P<type_literal>[^'@\s]+)@(?P<api_version>[^'\s]+)'"
)

# First `name:` property of a body; a plain string literal or a parameter reference.
NAME_PROPERTY_PATTERN = re.compile(r"^\s*name:\s*(?P<value>.+?)\s*$", re.MULTILINE)
NAME_LITERAL_PATTERN = re.compile(r"^'(?P<name>[^'$]+)'$")
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
# `param vnetName string = 'vnetA'`, as emitted for parameterized exports
PARAM_DEFAULT_PATTERN = re.compile(
    r"^\s*param\s+(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s+string\s*=\s*'(?P<default>[^'$]+)'\s*$",
    re.MULTILINE,
)


@dataclass(frozen=True)
class Header:
    symbolic_name: str
    type_literal: str
    api_version: str


def parse_header(line: str) -> Optional[Header]:
    """Returns the parsed header if ``line`` opens a declaration, else None."""
    match = HEADER_PATTERN.match(line)
    if not match:
        return None
    return Header(
        symbolic_name=match.group("symbolic_name"),
        type_literal=match.group("type_literal"),
        api_version=match.group("api_version"),
    )


def find_header(text: str) -> Optional[Header]:
    """Returns the first header found in a block of text."""
    for line in text.splitlines():
        header = parse_header(line)
        if header:
            return header
    return None


def parameter_defaults(text: str) -> Dict[str, str]:
    """Literal string defaults of the ``param`` declarations in a document."""
    return {m.group("name"): m.group("default") for m in PARAM_DEFAULT_PATTERN.finditer(text)}


def declared_name(
    body: str, header: Header, parameters: Optional[Mapping[str, str]] = None
) -> str:
    """
    Resource name declared by a body.

    The literal ``name:`` property wins because that is what the live environment
    reports. A bare parameter reference resolves through ``parameters`` (the
    literal defaults of the same document). The symbolic name is the fallback
    for anything else, such as an interpolation or a parameter without default.
    """
    match = NAME_PROPERTY_PATTERN.search(body)
    if match:
        value = match.group("value")
        literal = NAME_LITERAL_PATTERN.match(value)
        if literal:
            return literal.group("name")
        if parameters and IDENTIFIER_PATTERN.match(value) and value in parameters:
            return parameters[value]
    return header.symbolic_name


def to_symbolic_name(resource_name: str) -> str:
    """Turns an Azure resource name into a valid Bicep identifier."""
    symbol = re.sub(r"[^A-Za-z0-9_]", "_", resource_name)
    if not symbol or symbol[0].isdigit():
        symbol = f"r_{symbol}"
    return symbol
