"""Tokenizer for protobuf (.proto) files."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List


class ProtoTokenType(Enum):
    # Keywords
    SYNTAX = auto()
    PACKAGE = auto()
    IMPORT = auto()
    OPTION = auto()
    MESSAGE = auto()
    ENUM = auto()
    ONEOF = auto()
    REPEATED = auto()
    OPTIONAL = auto()
    REQUIRED = auto()
    RESERVED = auto()
    SERVICE = auto()
    RPC = auto()
    RETURNS = auto()
    STREAM = auto()
    MAP = auto()

    # Delimiters
    LBRACE = auto()
    RBRACE = auto()
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LANGLE = auto()
    RANGLE = auto()
    SEMICOLON = auto()
    EQUALS = auto()
    COMMA = auto()

    # Literals
    IDENT = auto()
    NUMBER = auto()
    STRING_LIT = auto()

    # Special
    EOF = auto()


_KEYWORDS = {
    "syntax": ProtoTokenType.SYNTAX,
    "package": ProtoTokenType.PACKAGE,
    "import": ProtoTokenType.IMPORT,
    "option": ProtoTokenType.OPTION,
    "message": ProtoTokenType.MESSAGE,
    "enum": ProtoTokenType.ENUM,
    "oneof": ProtoTokenType.ONEOF,
    "repeated": ProtoTokenType.REPEATED,
    "optional": ProtoTokenType.OPTIONAL,
    "required": ProtoTokenType.REQUIRED,
    "reserved": ProtoTokenType.RESERVED,
    "service": ProtoTokenType.SERVICE,
    "rpc": ProtoTokenType.RPC,
    "returns": ProtoTokenType.RETURNS,
    "stream": ProtoTokenType.STREAM,
    "map": ProtoTokenType.MAP,
}

_PUNCTUATION = {
    "{": ProtoTokenType.LBRACE,
    "}": ProtoTokenType.RBRACE,
    "(": ProtoTokenType.LPAREN,
    ")": ProtoTokenType.RPAREN,
    "[": ProtoTokenType.LBRACKET,
    "]": ProtoTokenType.RBRACKET,
    "<": ProtoTokenType.LANGLE,
    ">": ProtoTokenType.RANGLE,
    ";": ProtoTokenType.SEMICOLON,
    "=": ProtoTokenType.EQUALS,
    ",": ProtoTokenType.COMMA,
}


@dataclass
class ProtoToken:
    type: ProtoTokenType
    value: str
    line: int
    col: int


def tokenize_proto(text: str) -> List[ProtoToken]:
    """Tokenize a protobuf source string into a list of tokens."""
    tokens: List[ProtoToken] = []
    i = 0
    line = 1
    col = 1
    n = len(text)

    while i < n:
        ch = text[i]

        # Whitespace
        if ch in (" ", "\t", "\r"):
            i += 1
            col += 1
            continue

        if ch == "\n":
            i += 1
            line += 1
            col = 1
            continue

        # Single-line comment
        if ch == "/" and i + 1 < n and text[i + 1] == "/":
            while i < n and text[i] != "\n":
                i += 1
            continue

        # Multi-line comment
        if ch == "/" and i + 1 < n and text[i + 1] == "*":
            i += 2
            col += 2
            while i < n:
                if text[i] == "\n":
                    line += 1
                    col = 1
                elif text[i] == "*" and i + 1 < n and text[i + 1] == "/":
                    i += 2
                    col += 2
                    break
                else:
                    col += 1
                i += 1
            continue

        if ch in _PUNCTUATION:
            tokens.append(ProtoToken(_PUNCTUATION[ch], ch, line, col))
            i += 1
            col += 1
            continue

        # String literal, either quote style. The value keeps escapes as
        # written and is always safe to wrap in double quotes.
        if ch in ('"', "'"):
            quote = ch
            start_col = col
            i += 1
            col += 1
            chars: List[str] = []
            while i < n and text[i] != quote:
                if text[i] == "\\" and i + 1 < n:
                    chars.append(text[i:i + 2])
                    i += 2
                    col += 2
                    continue
                chars.append('\\"' if text[i] == '"' else text[i])
                i += 1
                col += 1
            value = "".join(chars)
            if i < n:
                i += 1  # consume closing quote
                col += 1
            tokens.append(ProtoToken(ProtoTokenType.STRING_LIT, value, line, start_col))
            continue

        # Number: optional sign, decimal, hex or fractional. A digit-led run
        # of word characters (e.g. 3D_MODEL) stays one token so the parser
        # can take it as an enum value name.
        if ch.isdigit() or (ch in "-+" and i + 1 < n and text[i + 1].isdigit()):
            start = i
            start_col = col
            i += 1
            col += 1
            while i < n and (text[i].isalnum() or text[i] in "_."):
                i += 1
                col += 1
            tokens.append(ProtoToken(ProtoTokenType.NUMBER, text[start:i], line, start_col))
            continue

        # Identifier / keyword; dotted names stay a single identifier
        if ch.isalpha() or ch == "_" or ch == ".":
            start = i
            start_col = col
            while i < n and (text[i].isalnum() or text[i] in "_."):
                i += 1
                col += 1
            word = text[start:i]
            tok_type = _KEYWORDS.get(word, ProtoTokenType.IDENT)
            tokens.append(ProtoToken(tok_type, word, line, start_col))
            continue

        # Skip any other character
        i += 1
        col += 1

    tokens.append(ProtoToken(ProtoTokenType.EOF, "", line, col))
    return tokens
