"""Raw source slicing for ``do`` bodies.

Action bodies are Python, which the DSL tokenizer does not understand. The
parser therefore uses the token stream only to find the line an action body
opens on, then re-reads the original text here with brace and quote
bookkeeping to recover the body exactly as written.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..errors import PositionNotFound, UnbalancedDelimiters

QUOTES = ("'", '"', "`")


@dataclass(frozen=True)
class BlockSpan:
    """Text between a pair of braces.

    ``text`` is trimmed of surrounding whitespace. ``end_offset`` points just
    past the closing brace. ``indent`` holds the whitespace that preceded the
    first body line when that line starts below the opening brace, and is
    ``None`` when the body starts on the brace's own line.
    """

    text: str
    end_offset: int
    indent: Optional[str] = None


def locate_open_delimiter(source: str, line: int, *, path: Optional[str] = None) -> int:
    """Return the offset of the first ``{`` on the 1-based ``line``."""
    if line < 1:
        raise PositionNotFound(f"Line {line} not found in source", path=path, line=line)
    current = 1
    offset = 0
    while current < line:
        newline = source.find("\n", offset)
        if newline == -1:
            raise PositionNotFound(f"Line {line} not found in source", path=path, line=line)
        offset = newline + 1
        current += 1

    line_end = source.find("\n", offset)
    if line_end == -1:
        line_end = len(source)
    brace = source.find("{", offset, line_end)
    if brace == -1:
        raise PositionNotFound(f"No opening brace on line {line}", path=path, line=line)
    return brace


def _skip_quoted(source: str, index: int) -> int:
    quote = source[index]
    index += 1
    while index < len(source):
        char = source[index]
        if char == "\\":
            index += 2
            continue
        index += 1
        if char == quote:
            break
    return index


def extract_balanced_block(source: str, open_offset: int, *, path: Optional[str] = None) -> BlockSpan:
    """Slice the text between ``source[open_offset]`` and its matching ``}``.

    Braces inside quoted regions and ``#`` comments do not count toward the
    depth. A backslash inside quotes escapes the following character.
    """
    if open_offset >= len(source) or source[open_offset] != "{":
        raise PositionNotFound(f"No opening brace at offset {open_offset}", path=path)

    depth = 1
    index = open_offset + 1
    length = len(source)
    while index < length:
        char = source[index]
        if char in QUOTES:
            index = _skip_quoted(source, index)
            continue
        if char == "#":
            newline = source.find("\n", index)
            index = length if newline == -1 else newline
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                break
        index += 1

    if depth != 0:
        line = source.count("\n", 0, open_offset) + 1
        raise UnbalancedDelimiters(
            "Unbalanced braces: block is never closed",
            path=path,
            line=line,
            hint="Check for a missing '}' or an unterminated string in the block",
        )

    raw = source[open_offset + 1:index]
    return BlockSpan(text=raw.strip(), end_offset=index + 1, indent=_first_line_indent(raw))


def _first_line_indent(raw: str) -> Optional[str]:
    head, newline, rest = raw.partition("\n")
    if head.strip() or not newline:
        return None
    for line in rest.splitlines():
        if line.strip():
            return line[: len(line) - len(line.lstrip())]
    return None


__all__ = ["BlockSpan", "locate_open_delimiter", "extract_balanced_block"]
