"""Recursive descent parser for protobuf (.proto) files.

Consumes a token stream from proto_tokenizer and produces proto AST nodes.
"""

from __future__ import annotations

from typing import List, Tuple

from .proto_ast import (
    ProtoEnum,
    ProtoEnumField,
    ProtoField,
    ProtoFile,
    ProtoImport,
    ProtoMessage,
    ProtoOneof,
    ProtoOption,
    ProtoRpc,
    ProtoService,
)
from .proto_tokenizer import _KEYWORDS, ProtoToken, ProtoTokenType

# Keywords may double as names (e.g. a field called ``package``).
_NAME_TOKENS = {ProtoTokenType.IDENT} | set(_KEYWORDS.values())

_NO_SPACE_BEFORE = {
    ProtoTokenType.COMMA,
    ProtoTokenType.RPAREN,
    ProtoTokenType.RBRACKET,
    ProtoTokenType.RANGLE,
}
_NO_SPACE_AFTER = {
    ProtoTokenType.LPAREN,
    ProtoTokenType.LBRACKET,
    ProtoTokenType.LANGLE,
}


def _join_tokens(tokens: List[ProtoToken]) -> str:
    """Rebuild source text for a token run, e.g. ``(my.opt).sub = "x", 9 to 11``."""
    parts: List[str] = []
    prev: ProtoToken | None = None
    for tok in tokens:
        text = f'"{tok.value}"' if tok.type == ProtoTokenType.STRING_LIT else tok.value
        if (
            prev is not None
            and prev.type not in _NO_SPACE_AFTER
            and tok.type not in _NO_SPACE_BEFORE
            and not (tok.type in _NAME_TOKENS and tok.value.startswith("."))
        ):
            parts.append(" ")
        parts.append(text)
        prev = tok
    return "".join(parts)


class ProtoParseError(Exception):
    """Raised when the parser encounters unexpected input."""

    def __init__(self, message: str, token: ProtoToken | None = None):
        if token:
            super().__init__(f"Line {token.line}:{token.col}: {message}")
        else:
            super().__init__(message)


class ProtoParser:
    """Recursive descent parser for .proto files."""

    def __init__(self, tokens: List[ProtoToken]):
        self._tokens = tokens
        self._pos = 0

    # -- public API --

    def parse(self) -> ProtoFile:
        """Parse the full token stream into a ProtoFile AST."""
        result = ProtoFile()

        while not self._at_end():
            tt = self._peek().type

            if tt == ProtoTokenType.SYNTAX:
                result.syntax = self._parse_syntax()
            elif tt == ProtoTokenType.PACKAGE:
                self._advance()
                result.package = self._expect_name().value
                self._expect(ProtoTokenType.SEMICOLON)
            elif tt == ProtoTokenType.IMPORT:
                result.imports.append(self._parse_import())
            elif tt == ProtoTokenType.OPTION:
                result.options.append(self._parse_option())
            elif tt == ProtoTokenType.MESSAGE:
                result.messages.append(self._parse_message())
            elif tt == ProtoTokenType.ENUM:
                result.enums.append(self._parse_enum())
            elif tt == ProtoTokenType.SERVICE:
                result.services.append(self._parse_service())
            elif tt == ProtoTokenType.SEMICOLON:
                self._advance()
            else:
                raise ProtoParseError(
                    f"Unexpected top-level token {self._peek().value!r}",
                    self._peek(),
                )

        return result

    # -- file-level statements --

    def _parse_syntax(self) -> str:
        """Parse: SYNTAX EQUALS STRING_LIT SEMICOLON"""
        self._expect(ProtoTokenType.SYNTAX)
        self._expect(ProtoTokenType.EQUALS)
        value = self._expect(ProtoTokenType.STRING_LIT).value
        self._expect(ProtoTokenType.SEMICOLON)
        return value

    def _parse_import(self) -> ProtoImport:
        """Parse: IMPORT [public|weak] STRING_LIT SEMICOLON"""
        self._expect(ProtoTokenType.IMPORT)
        modifier = None
        if self._peek().type == ProtoTokenType.IDENT and self._peek().value in ("public", "weak"):
            modifier = self._advance().value
        path = self._expect(ProtoTokenType.STRING_LIT).value
        self._expect(ProtoTokenType.SEMICOLON)
        return ProtoImport(path=path, modifier=modifier)

    def _parse_option(self) -> ProtoOption:
        """Parse: OPTION name EQUALS value SEMICOLON"""
        self._expect(ProtoTokenType.OPTION)
        name = self._parse_option_name()
        self._expect(ProtoTokenType.EQUALS)
        tok = self._advance()
        if tok.type == ProtoTokenType.STRING_LIT:
            value = f'"{tok.value}"'
        elif tok.type in _NAME_TOKENS or tok.type == ProtoTokenType.NUMBER:
            value = tok.value
        else:
            raise ProtoParseError(f"Unsupported option value {tok.value!r}", tok)
        self._expect(ProtoTokenType.SEMICOLON)
        return ProtoOption(name=name, value=value)

    def _parse_option_name(self) -> str:
        # Custom options look like (my.option).sub
        if self._peek().type == ProtoTokenType.LPAREN:
            self._advance()
            inner = self._expect_name().value
            self._expect(ProtoTokenType.RPAREN)
            name = f"({inner})"
            if self._peek().type in _NAME_TOKENS and self._peek().value.startswith("."):
                name += self._advance().value
            return name
        return self._expect_name().value

    # -- message parsing --

    def _parse_message(self) -> ProtoMessage:
        """Parse: MESSAGE IDENT LBRACE body RBRACE"""
        self._expect(ProtoTokenType.MESSAGE)
        msg = ProtoMessage(name=self._expect_name().value)
        self._expect(ProtoTokenType.LBRACE)

        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
            tt = self._peek().type

            if tt == ProtoTokenType.MESSAGE:
                msg.nested_messages.append(self._parse_message())
            elif tt == ProtoTokenType.ENUM:
                msg.nested_enums.append(self._parse_enum())
            elif tt == ProtoTokenType.ONEOF:
                msg.oneofs.append(self._parse_oneof())
            elif tt == ProtoTokenType.RESERVED:
                msg.reserved.append(self._parse_reserved())
            elif tt == ProtoTokenType.OPTION:
                self._skip_statement()
            elif tt == ProtoTokenType.IDENT and self._peek().value == "extensions":
                self._skip_statement()
            elif tt == ProtoTokenType.SEMICOLON:
                self._advance()
            else:
                msg.fields.append(self._parse_field())

        self._expect(ProtoTokenType.RBRACE)
        return msg

    def _parse_oneof(self) -> ProtoOneof:
        """Parse: ONEOF IDENT LBRACE field* RBRACE"""
        self._expect(ProtoTokenType.ONEOF)
        oneof = ProtoOneof(name=self._expect_name().value)
        self._expect(ProtoTokenType.LBRACE)
        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
            if self._peek().type == ProtoTokenType.OPTION:
                self._skip_statement()
            else:
                oneof.fields.append(self._parse_field())
        self._expect(ProtoTokenType.RBRACE)
        return oneof

    def _parse_field(self) -> ProtoField:
        """Parse: [REPEATED|OPTIONAL|REQUIRED] type IDENT(name) EQUALS NUMBER [options] SEMICOLON"""
        label = self._peek().type
        is_repeated = label == ProtoTokenType.REPEATED
        is_optional = label == ProtoTokenType.OPTIONAL
        is_required = label == ProtoTokenType.REQUIRED
        # A label is only a label when a type and a name follow it
        if (is_repeated or is_optional or is_required) and self._peek_at(2).type != ProtoTokenType.EQUALS:
            self._advance()
        else:
            is_repeated = is_optional = is_required = False

        if self._peek().type == ProtoTokenType.MAP and self._peek_at(1).type == ProtoTokenType.LANGLE:
            type_name = self._parse_map_type()
        else:
            type_name = self._expect_name().value

        name_tok = self._expect_name()
        self._expect(ProtoTokenType.EQUALS)
        num_tok = self._expect(ProtoTokenType.NUMBER)
        options = None
        if self._peek().type == ProtoTokenType.LBRACKET:
            options = self._parse_bracket_options()
        self._expect(ProtoTokenType.SEMICOLON)

        return ProtoField(
            type_name=type_name,
            field_name=name_tok.value,
            field_number=self._to_int(num_tok),
            is_repeated=is_repeated,
            is_optional=is_optional,
            is_required=is_required,
            options=options,
        )

    def _parse_map_type(self) -> str:
        """Parse: MAP LANGLE type COMMA type RANGLE"""
        self._expect(ProtoTokenType.MAP)
        self._expect(ProtoTokenType.LANGLE)
        key = self._expect_name().value
        self._expect(ProtoTokenType.COMMA)
        value = self._expect_name().value
        self._expect(ProtoTokenType.RANGLE)
        return f"map<{key}, {value}>"

    # -- enum parsing --

    def _parse_enum(self) -> ProtoEnum:
        """Parse: ENUM IDENT LBRACE (NAME EQUALS NUMBER [options] SEMICOLON)* RBRACE"""
        self._expect(ProtoTokenType.ENUM)
        enum = ProtoEnum(name=self._expect_name().value)
        self._expect(ProtoTokenType.LBRACE)

        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
            tt = self._peek().type
            if tt == ProtoTokenType.RESERVED:
                enum.reserved.append(self._parse_reserved())
                continue
            if tt == ProtoTokenType.OPTION:
                self._skip_statement()
                continue
            if tt == ProtoTokenType.SEMICOLON:
                self._advance()
                continue

            # Value names generated from other schema languages may start
            # with a digit, which the tokenizer reads as a NUMBER.
            name_tok = self._advance()
            if name_tok.type not in _NAME_TOKENS and name_tok.type != ProtoTokenType.NUMBER:
                raise ProtoParseError(
                    f"Expected enum value name, got {name_tok.type.name} ({name_tok.value!r})",
                    name_tok,
                )
            self._expect(ProtoTokenType.EQUALS)
            num_tok = self._expect(ProtoTokenType.NUMBER)
            options = None
            if self._peek().type == ProtoTokenType.LBRACKET:
                options = self._parse_bracket_options()
            self._expect(ProtoTokenType.SEMICOLON)
            enum.fields.append(
                ProtoEnumField(name=name_tok.value, index=self._to_int(num_tok), options=options)
            )

        self._expect(ProtoTokenType.RBRACE)
        return enum

    # -- service parsing --

    def _parse_service(self) -> ProtoService:
        """Parse: SERVICE IDENT LBRACE rpc* RBRACE"""
        self._expect(ProtoTokenType.SERVICE)
        service = ProtoService(name=self._expect_name().value)
        self._expect(ProtoTokenType.LBRACE)

        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
            tt = self._peek().type
            if tt == ProtoTokenType.RPC:
                service.rpcs.append(self._parse_rpc())
            elif tt == ProtoTokenType.OPTION:
                self._skip_statement()
            elif tt == ProtoTokenType.SEMICOLON:
                self._advance()
            else:
                raise ProtoParseError(
                    f"Unexpected token in service {self._peek().value!r}",
                    self._peek(),
                )

        self._expect(ProtoTokenType.RBRACE)
        return service

    def _parse_rpc(self) -> ProtoRpc:
        """Parse: RPC IDENT (req) RETURNS (resp) (SEMICOLON | LBRACE ... RBRACE)"""
        self._expect(ProtoTokenType.RPC)
        name = self._expect_name().value
        client_streaming, input_type = self._parse_rpc_type()
        self._expect(ProtoTokenType.RETURNS)
        server_streaming, output_type = self._parse_rpc_type()

        if self._peek().type == ProtoTokenType.LBRACE:
            self._skip_braces()
        else:
            self._expect(ProtoTokenType.SEMICOLON)

        return ProtoRpc(
            name=name,
            input_type=input_type,
            output_type=output_type,
            client_streaming=client_streaming,
            server_streaming=server_streaming,
        )

    def _parse_rpc_type(self) -> Tuple[bool, str]:
        self._expect(ProtoTokenType.LPAREN)
        streaming = False
        # "stream" is only a modifier when a type name follows it
        if self._peek().type == ProtoTokenType.STREAM and self._peek_at(1).type != ProtoTokenType.RPAREN:
            self._advance()
            streaming = True
        type_name = self._expect_name().value
        self._expect(ProtoTokenType.RPAREN)
        return streaming, type_name

    # -- verbatim helpers --

    def _parse_reserved(self) -> str:
        """Parse: RESERVED ranges-or-names SEMICOLON, keeping the body as text."""
        self._expect(ProtoTokenType.RESERVED)
        body: List[ProtoToken] = []
        while not self._at_end() and self._peek().type != ProtoTokenType.SEMICOLON:
            body.append(self._advance())
        self._expect(ProtoTokenType.SEMICOLON)
        return _join_tokens(body)

    def _parse_bracket_options(self) -> str:
        """Parse a [ ... ] option list, returning the text between the brackets."""
        self._expect(ProtoTokenType.LBRACKET)
        body: List[ProtoToken] = []
        depth = 1
        while not self._at_end():
            tok = self._advance()
            if tok.type == ProtoTokenType.LBRACKET:
                depth += 1
            elif tok.type == ProtoTokenType.RBRACKET:
                depth -= 1
                if depth == 0:
                    return _join_tokens(body)
            body.append(tok)
        raise ProtoParseError("Unterminated option list", self._peek())

    # -- skip helpers --

    def _skip_statement(self) -> None:
        """Skip tokens until (and including) the next semicolon."""
        while not self._at_end():
            tok = self._advance()
            if tok.type == ProtoTokenType.SEMICOLON:
                return

    def _skip_braces(self) -> None:
        """Skip a braced block, including nested braces."""
        self._expect(ProtoTokenType.LBRACE)
        depth = 1
        while not self._at_end() and depth > 0:
            tok = self._advance()
            if tok.type == ProtoTokenType.LBRACE:
                depth += 1
            elif tok.type == ProtoTokenType.RBRACE:
                depth -= 1

    # -- token helpers --

    def _peek(self) -> ProtoToken:
        return self._tokens[self._pos]

    def _peek_at(self, offset: int) -> ProtoToken:
        idx = min(self._pos + offset, len(self._tokens) - 1)
        return self._tokens[idx]

    def _advance(self) -> ProtoToken:
        tok = self._tokens[self._pos]
        if tok.type != ProtoTokenType.EOF:
            self._pos += 1
        return tok

    def _expect(self, expected: ProtoTokenType) -> ProtoToken:
        tok = self._peek()
        if tok.type != expected:
            raise ProtoParseError(
                f"Expected {expected.name}, got {tok.type.name} ({tok.value!r})",
                tok,
            )
        return self._advance()

    def _expect_name(self) -> ProtoToken:
        tok = self._peek()
        if tok.type not in _NAME_TOKENS:
            raise ProtoParseError(
                f"Expected IDENT, got {tok.type.name} ({tok.value!r})",
                tok,
            )
        return self._advance()

    @staticmethod
    def _to_int(tok: ProtoToken) -> int:
        try:
            return int(tok.value, 0)
        except ValueError:
            pass
        # Leading-zero literals are octal in proto
        try:
            return int(tok.value, 8)
        except ValueError:
            raise ProtoParseError(f"Invalid integer {tok.value!r}", tok) from None

    def _at_end(self) -> bool:
        return self._tokens[self._pos].type == ProtoTokenType.EOF
