"""Lexical analyzer for the codeless DSL.

Only the structural vocabulary of the language is recognized: the five
block keywords, HTTP verbs, identifiers, string and number literals and a
handful of punctuation marks. Anything else is skipped without complaint,
because ``do`` bodies are arbitrary Python that the parser later slices out
of the raw source instead of trusting this token stream.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional

from ..errors import ParseError


class TokenType(Enum):
    """Token types for the codeless DSL."""

    KEYWORD = auto()
    IDENTIFIER = auto()
    STRING = auto()
    NUMBER = auto()
    HTTP_METHOD = auto()

    LPAREN = auto()
    RPAREN = auto()
    LBRACE = auto()
    RBRACE = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    COMMA = auto()
    COLON = auto()
    PIPE = auto()
    QUESTION = auto()
    FAT_ARROW = auto()

    EOF = auto()


@dataclass
class Token:
    """A single token with the position of its first character."""

    type: TokenType
    value: str
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"

    def describe(self) -> str:
        if self.type is TokenType.EOF:
            return "end of input"
        if self.type is TokenType.STRING:
            return f'string "{self.value}"'
        return f"{self.type.name.lower()} '{self.value}'"


KEYWORDS = frozenset({"data", "do", "route", "migration", "import"})
HTTP_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH"})

PUNCTUATION = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    "|": TokenType.PIPE,
    "?": TokenType.QUESTION,
}


class Lexer:
    """Tokenizer for codeless source files."""

    def __init__(self, source: str, path: str = ""):
        self.source = source
        self.path = path
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []

    def peek(self, offset: int = 0) -> Optional[str]:
        pos = self.pos + offset
        if pos < len(self.source):
            return self.source[pos]
        return None

    def advance(self) -> Optional[str]:
        if self.pos >= len(self.source):
            return None
        char = self.source[self.pos]
        self.pos += 1
        if char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return char

    def add_token(self, token_type: TokenType, value: str, line: int, column: int) -> None:
        self.tokens.append(Token(token_type, value, line, column))

    def skip_line_comment(self) -> None:
        while self.peek() is not None and self.peek() != "\n":
            self.advance()

    def skip_block_comment(self) -> None:
        self.advance()  # /
        self.advance()  # *
        while self.peek() is not None:
            if self.peek() == "*" and self.peek(1) == "/":
                self.advance()
                self.advance()
                return
            self.advance()

    def read_string(self) -> str:
        """Read a quoted literal and return its raw text without the quotes."""
        line, column = self.line, self.column
        quote = self.advance()
        start = self.pos
        while True:
            char = self.peek()
            if char is None:
                raise ParseError(
                    "Unterminated string literal",
                    path=self.path or None,
                    line=line,
                    column=column,
                    expected=[f"closing {quote}"],
                    found="end of input",
                )
            if char == "\\":
                self.advance()
                self.advance()
                continue
            if char == quote:
                value = self.source[start:self.pos]
                self.advance()
                return value
            self.advance()

    def read_number(self) -> str:
        start = self.pos
        if self.peek() == "-":
            self.advance()
        while self.peek() is not None and self.peek().isdigit():
            self.advance()
        if self.peek() == "." and (self.peek(1) or "").isdigit():
            self.advance()
            while self.peek() is not None and self.peek().isdigit():
                self.advance()
        if self.peek() in ("e", "E"):
            sign = 1 if self.peek(1) in ("+", "-") else 0
            if (self.peek(1 + sign) or "").isdigit():
                for _ in range(1 + sign):
                    self.advance()
                while self.peek() is not None and self.peek().isdigit():
                    self.advance()
        return self.source[start:self.pos]

    def read_identifier(self) -> str:
        start = self.pos
        while self.peek() is not None and (self.peek().isalnum() or self.peek() == "_"):
            self.advance()
        return self.source[start:self.pos]

    def tokenize(self) -> List[Token]:
        while self.pos < len(self.source):
            char = self.peek()
            nxt = self.peek(1)
            line, column = self.line, self.column

            if char.isspace():
                self.advance()
            elif char == "#" or (char == "/" and nxt == "/"):
                self.skip_line_comment()
            elif char == "/" and nxt == "*":
                self.skip_block_comment()
            elif char == "=" and nxt == ">":
                self.advance()
                self.advance()
                self.add_token(TokenType.FAT_ARROW, "=>", line, column)
            elif char in PUNCTUATION:
                self.add_token(PUNCTUATION[char], self.advance(), line, column)
            elif char in ('"', "'"):
                self.add_token(TokenType.STRING, self.read_string(), line, column)
            elif char.isdigit() or (char == "-" and nxt is not None and nxt.isdigit()):
                self.add_token(TokenType.NUMBER, self.read_number(), line, column)
            elif char.isalpha() or char == "_":
                word = self.read_identifier()
                if word in KEYWORDS:
                    token_type = TokenType.KEYWORD
                elif word in HTTP_METHODS:
                    token_type = TokenType.HTTP_METHOD
                else:
                    token_type = TokenType.IDENTIFIER
                self.add_token(token_type, word, line, column)
            else:
                self.advance()

        self.add_token(TokenType.EOF, "", self.line, self.column)
        return self.tokens


def tokenize(source: str, path: str = "") -> List[Token]:
    """Tokenize codeless source text.

    Raises:
        ParseError: If a string literal is not closed before end of input.
    """
    return Lexer(source, path).tokenize()


__all__ = ["TokenType", "Token", "Lexer", "tokenize", "KEYWORDS", "HTTP_METHODS"]
