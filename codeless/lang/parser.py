"""Recursive descent parser for the codeless DSL.

The grammar is small and fixed::

    file       := { import | data | do | route | migration }
    import     := "import" STRING
    data       := "data" IDENT "{" { field [","] } "}"
    field      := NAME ":" IDENT [ "(" args ")" ] [ "?" ]
    do         := "do" IDENT "(" [ NAME { "," NAME } ] ")" "{" <python> "}"
    route      := "route" "{" { VERB STRING "=>" steps } "}"
    steps      := [ "[" ] step { "," step } [ "]" ]
    step       := "auth" | "validate" "(" IDENT ")" | IDENT
    migration  := "migration" (STRING | NUMBER) "{" { operation } "}"

Unrecognized tokens between top-level blocks are skipped. Inside a block any
deviation from the grammar raises :class:`ParseError` with the offending
token's position; there is no recovery mid-construct.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Union

from ..ast import (
    ActionDecl,
    ArgValue,
    FieldDecl,
    ImportDecl,
    MigrationDecl,
    MigrationOp,
    PipelineStep,
    RouteDecl,
    SchemaDecl,
    SyntaxTree,
)
from ..errors import ParseError
from .lexer import Token, TokenType, tokenize
from .source import extract_balanced_block, locate_open_delimiter

logger = logging.getLogger(__name__)

NAME_TOKENS = (TokenType.IDENTIFIER, TokenType.KEYWORD, TokenType.HTTP_METHOD)
ARG_VALUE_TOKENS = (TokenType.NUMBER, TokenType.IDENTIFIER, TokenType.STRING)
UNCOERCED_ARGS = frozenset({"pattern", "format"})


def _coerce_scalar(text: str) -> Union[int, float, str]:
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return text
    if number != number or number in (float("inf"), float("-inf")):
        return text
    return number


class Parser:
    """Single-lookahead parser producing a :class:`SyntaxTree` for one file."""

    def __init__(self, source: str, *, path: str = ""):
        self.source = source
        self.path = path
        self.tokens = tokenize(source, path)
        self.pos = 0
        self.tree = SyntaxTree(path=path or None)
        self._handlers: Dict[str, Callable[[], None]] = {
            "import": self.parse_import,
            "data": self.parse_data,
            "do": self.parse_action,
            "route": self.parse_route,
            "migration": self.parse_migration,
        }

    # ====================================================================
    # Token Management
    # ====================================================================

    def peek(self, offset: int = 0) -> Token:
        pos = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[pos]

    def current(self) -> Token:
        return self.peek(0)

    def advance(self) -> Token:
        token = self.current()
        if token.type is not TokenType.EOF:
            self.pos += 1
        return token

    def match(self, *types: TokenType) -> bool:
        return self.current().type in types

    def consume_if(self, *types: TokenType) -> Optional[Token]:
        if self.match(*types):
            return self.advance()
        return None

    def expect(self, *types: TokenType, what: Optional[str] = None) -> Token:
        token = self.current()
        if token.type not in types:
            expected = [what] if what else [t.name.lower().replace("_", " ") for t in types]
            raise self.error(f"Unexpected {token.describe()}", expected=expected)
        return self.advance()

    def error(self, message: str, *, expected: Optional[List[str]] = None, token: Optional[Token] = None) -> ParseError:
        token = token or self.current()
        return ParseError(
            message,
            path=self.path or None,
            line=token.line,
            column=token.column,
            expected=expected,
            found=token.describe(),
        )

    def at_block_end(self) -> bool:
        return self.match(TokenType.RBRACE, TokenType.EOF)

    # ====================================================================
    # Top Level
    # ====================================================================

    def parse(self) -> SyntaxTree:
        while not self.match(TokenType.EOF):
            token = self.current()
            handler = self._handlers.get(token.value) if token.type is TokenType.KEYWORD else None
            if handler is None:
                self.advance()
                continue
            handler()
        return self.tree

    def parse_import(self) -> None:
        """Grammar: import := "import" STRING"""
        keyword = self.advance()
        path = self.expect(TokenType.STRING, what="import path string").value
        self.tree.imports.append(ImportDecl(path=path, line=keyword.line))

    # ====================================================================
    # data
    # ====================================================================

    def parse_data(self) -> None:
        keyword = self.advance()
        name = self.expect(TokenType.IDENTIFIER, what="schema name").value
        self.expect(TokenType.LBRACE)
        fields: List[FieldDecl] = []
        while not self.at_block_end():
            if self.consume_if(TokenType.COMMA):
                continue
            fields.append(self.parse_field())
        self.expect(TokenType.RBRACE)
        self.tree.schemas.append(SchemaDecl(name=name, fields=fields, line=keyword.line))

    def parse_field(self) -> FieldDecl:
        """Grammar: field := NAME ":" IDENT [ "(" args ")" ] [ "?" ]"""
        name_token = self.expect(*NAME_TOKENS, what="field name")
        self.expect(TokenType.COLON)
        type_name = self.expect(TokenType.IDENTIFIER, what="field type").value
        args: Dict[str, ArgValue] = {}
        if self.consume_if(TokenType.LPAREN):
            args = self.parse_field_args()
            self.expect(TokenType.RPAREN)
        optional = self.consume_if(TokenType.QUESTION) is not None
        return FieldDecl(
            name=name_token.value,
            type_name=type_name,
            optional=optional,
            args=args,
            line=name_token.line,
        )

    def parse_field_args(self) -> Dict[str, ArgValue]:
        """Parse ``key: value`` pairs and bare enum members up to ``)``."""
        args: Dict[str, ArgValue] = {}
        while not self.match(TokenType.RPAREN, TokenType.EOF):
            if self.consume_if(TokenType.PIPE, TokenType.COMMA):
                continue
            head = self.expect(TokenType.IDENTIFIER, TokenType.STRING, TokenType.NUMBER, what="argument")
            if head.type is TokenType.IDENTIFIER and self.consume_if(TokenType.COLON):
                value = self.expect(*ARG_VALUE_TOKENS, what="argument value")
                if head.value in UNCOERCED_ARGS:
                    args[head.value] = value.value
                else:
                    args[head.value] = _coerce_scalar(value.value)
                    if value.type is TokenType.NUMBER and isinstance(args[head.value], str):
                        raise self.error(f"Number {value.value} is out of range", token=value)
            else:
                members = args.setdefault("enum", [])
                if not isinstance(members, list):
                    raise self.error("Conflicting 'enum' argument", token=head)
                members.append(head.value)
        return args

    # ====================================================================
    # do
    # ====================================================================

    def parse_action(self) -> None:
        keyword = self.advance()
        name = self.expect(TokenType.IDENTIFIER, what="action name").value
        self.expect(TokenType.LPAREN)
        params: List[str] = []
        while not self.match(TokenType.RPAREN, TokenType.EOF):
            if self.consume_if(TokenType.COMMA):
                continue
            params.append(self.expect(*NAME_TOKENS, what="parameter name").value)
        self.expect(TokenType.RPAREN)
        lbrace = self.expect(TokenType.LBRACE)

        open_offset = locate_open_delimiter(self.source, lbrace.line, path=self.path or None)
        span = extract_balanced_block(self.source, open_offset, path=self.path or None)
        self._skip_token_block()
        self._resync_after(span.end_offset)

        self.tree.actions.append(
            ActionDecl(name=name, params=params, body=span.text, line=keyword.line, indent=span.indent)
        )

    def _skip_token_block(self) -> None:
        depth = 1
        while depth > 0 and not self.match(TokenType.EOF):
            token = self.advance()
            if token.type is TokenType.LBRACE:
                depth += 1
            elif token.type is TokenType.RBRACE:
                depth -= 1

    def _resync_after(self, end_offset: int) -> None:
        """Move the cursor to the first token at or after ``end_offset``.

        Python operators such as ``//`` can hide braces from the tokenizer,
        so the token-level walk may stop early or late.
        """
        line = self.source.count("\n", 0, end_offset) + 1
        column = end_offset - (self.source.rfind("\n", 0, end_offset) + 1) + 1
        target = len(self.tokens) - 1
        for index, token in enumerate(self.tokens):
            if (token.line, token.column) >= (line, column):
                target = index
                break
        if target != self.pos:
            logger.debug("Resynchronized token cursor after action body at %s:%s", line, column)
            self.pos = target

    # ====================================================================
    # route
    # ====================================================================

    def parse_route(self) -> None:
        self.advance()
        self.expect(TokenType.LBRACE)
        while not self.at_block_end():
            self.tree.routes.append(self.parse_route_entry())
        self.expect(TokenType.RBRACE)

    def parse_route_entry(self) -> RouteDecl:
        """Grammar: VERB STRING "=>" [ "[" ] step { "," step } [ "]" ]"""
        verb = self.expect(TokenType.HTTP_METHOD, what="HTTP method")
        path = self.expect(TokenType.STRING, what="route path string").value
        self.expect(TokenType.FAT_ARROW)
        bracketed = self.consume_if(TokenType.LBRACKET) is not None
        steps: List[PipelineStep] = []
        while not self.match(TokenType.HTTP_METHOD, TokenType.RBRACE, TokenType.EOF):
            if bracketed and self.match(TokenType.RBRACKET):
                break
            if self.consume_if(TokenType.COMMA):
                continue
            steps.append(self.parse_step())
        if bracketed:
            self.expect(TokenType.RBRACKET)
        return RouteDecl(method=verb.value, path=path, steps=steps, line=verb.line)

    def parse_step(self) -> PipelineStep:
        ident = self.expect(TokenType.IDENTIFIER, what="pipeline step")
        if ident.value == "validate" and self.consume_if(TokenType.LPAREN):
            schema = self.expect(TokenType.IDENTIFIER, what="schema name").value
            self.expect(TokenType.RPAREN)
            return PipelineStep.validate(schema)
        if ident.value == "auth":
            return PipelineStep.auth()
        return PipelineStep.action(ident.value)

    # ====================================================================
    # migration
    # ====================================================================

    def parse_migration(self) -> None:
        keyword = self.advance()
        version = self.expect(TokenType.STRING, TokenType.NUMBER, what="migration version").value
        self.expect(TokenType.LBRACE)
        operations: List[MigrationOp] = []
        while not self.at_block_end():
            operations.append(self.parse_migration_op())
        self.expect(TokenType.RBRACE)
        self.tree.migrations.append(MigrationDecl(version=version, operations=operations, line=keyword.line))

    def parse_migration_op(self) -> MigrationOp:
        op = self.expect(TokenType.IDENTIFIER, what="migration operation")
        if op.value not in ("addColumn", "dropColumn", "createTable", "dropTable"):
            raise self.error(
                f"Unknown migration operation '{op.value}'",
                expected=["addColumn", "dropColumn", "createTable", "dropTable"],
                token=op,
            )
        table = self.expect(TokenType.STRING, what="table name string").value
        if op.value == "addColumn":
            column = self.expect(*NAME_TOKENS, what="column name").value
            type_name = self.expect(TokenType.IDENTIFIER, what="column type").value
            return MigrationOp(op.value, table, column=column, type_name=type_name, line=op.line)
        if op.value == "dropColumn":
            column = self.expect(*NAME_TOKENS, what="column name").value
            return MigrationOp(op.value, table, column=column, line=op.line)
        return MigrationOp(op.value, table, line=op.line)


def parse(source: str, path: str = "") -> SyntaxTree:
    """
    Parse codeless source text into a :class:`SyntaxTree`.

    Args:
        source: Full text of one ``.cls`` file.
        path: File path used in error messages.

    Returns:
        The declarations of that file in source order. Imports are recorded
        but not followed; see :func:`codeless.resolver.resolve_modules`.

    Raises:
        ParseError: On malformed constructs or unterminated strings.
        PositionNotFound, UnbalancedDelimiters: When an action body cannot be
            sliced out of the source.
    """
    return Parser(source, path=path).parse()


__all__ = ["Parser", "parse"]
