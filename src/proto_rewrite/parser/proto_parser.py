from __future__ import annotations

import logging
from pathlib import Path

from .proto_ast import ProtoFile
from .proto_ast_parser import ProtoParser
from .proto_tokenizer import tokenize_proto

logger = logging.getLogger(__name__)


def parse_proto(text: str) -> ProtoFile:
    """Parse proto source text into a ProtoFile AST."""
    return ProtoParser(tokenize_proto(text)).parse()


def parse_proto_file(file_path: str) -> ProtoFile:
    """Parse a .proto file from disk."""
    text = Path(file_path).read_text(encoding="utf-8")
    ast = parse_proto(text)
    logger.debug(
        "Parsed %s: %d message(s), %d enum(s), %d service(s)",
        file_path, len(ast.messages), len(ast.enums), len(ast.services),
    )
    return ast
