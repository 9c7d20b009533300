"""AST nodes for ``do`` blocks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ActionDecl:
    """An opaque unit of business logic.

    ``body`` is the verbatim source slice between the block braces. It is
    never tokenized or executed by the compiler. ``indent`` records the
    whitespace that preceded the first body line so the emitter can restore
    relative indentation after trimming.
    """

    name: str
    params: List[str] = field(default_factory=list)
    body: str = ""
    line: Optional[int] = None
    indent: Optional[str] = None


__all__ = ["ActionDecl"]
