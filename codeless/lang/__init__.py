"""Front end of the codeless compiler: tokenizer, body extractor and parser."""

from .lexer import HTTP_METHODS, KEYWORDS, Lexer, Token, TokenType, tokenize
from .parser import Parser, parse
from .source import BlockSpan, extract_balanced_block, locate_open_delimiter

__all__ = [
    "BlockSpan",
    "HTTP_METHODS",
    "KEYWORDS",
    "Lexer",
    "Parser",
    "Token",
    "TokenType",
    "extract_balanced_block",
    "locate_open_delimiter",
    "parse",
    "tokenize",
]
