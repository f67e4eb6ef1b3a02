"""
Macro scanning.

A macro is a brace-delimited directive inside story text:

    {{Start}}        begin a section
    {@Section}       section reference
    {#function}      function reference
    {$variable}      variable reference

Link and image destinations carry the same forms, optionally with a
``:modifier`` suffix (only ``:inline`` is meaningful, and only for links).
A backslash escapes the character after it while scanning.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .errors import UnknownMacro, UnterminatedMacro

_ESCAPE = re.compile(r"\\(.)", re.DOTALL)


class MacroKind(Enum):
    SECTION_BEGIN = "{"
    SECTION_REF = "@"
    FUNCTION_REF = "#"
    VARIABLE_REF = "$"

    @property
    def sigil(self) -> str:
        return self.value

    @classmethod
    def for_sigil(cls, char: str) -> Optional["MacroKind"]:
        """Returns the kind selected by a macro's second character, or None."""
        for kind in cls:
            if kind.value == char:
                return kind
        return None


@dataclass(frozen=True)
class MacroToken:
    kind: MacroKind
    identifier: str
    start: int
    end: int  # exclusive
    text: str
    modifier: Optional[str] = None

    @property
    def reference(self) -> str:
        """The identifier with its sigil, e.g. ``$name``."""
        if self.kind is MacroKind.SECTION_BEGIN:
            return self.identifier
        return self.kind.sigil + self.identifier


def unescape(text: str) -> str:
    """Strips escape backslashes: ``\\X`` becomes ``X``."""
    return _ESCAPE.sub(r"\1", text)


def scan_macro(literal: str, start: int) -> MacroToken:
    """
    Extracts the macro that opens at ``literal[start]``.

    The macro ends at the brace that brings the depth back to zero. Escaped
    characters never change the depth. Raises UnterminatedMacro if the
    literal ends first and UnknownMacro for an unrecognized second character.
    """
    depth = 0
    i = start
    while i < len(literal):
        char = literal[i]
        if char == '\\':
            i += 2
            continue
        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return _make_token(literal[start:i + 1], start, i + 1)
        i += 1
    raise UnterminatedMacro(f'Unterminated macro near "{literal[start:start + 10]}"')


def _make_token(text: str, start: int, end: int) -> MacroToken:
    kind = MacroKind.for_sigil(text[1:2])
    if kind is None:
        raise UnknownMacro(f'Unknown macro "{text}"')
    if kind is MacroKind.SECTION_BEGIN:
        identifier = text[2:-2]
    else:
        identifier = text[2:-1]
    return MacroToken(kind, unescape(identifier), start, end, text)


def split_destination(url: str) -> Tuple[str, Optional[str]]:
    """
    Splits a macro destination like ``{@Section:inline}`` into
    ``("@Section", "inline")``. The caller has already checked the opening
    brace; raises UnterminatedMacro when the closing one is missing.
    """
    if not url.endswith('}') or len(url) < 2:
        raise UnterminatedMacro(f'Unterminated macro "{url}"')
    identifier, separator, modifier = url[1:-1].partition(':')
    return identifier, (modifier if separator else None)

