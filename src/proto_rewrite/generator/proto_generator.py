from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List

from jinja2 import Environment, FileSystemLoader

from proto_rewrite.parser.proto_ast import ProtoFile

logger = logging.getLogger(__name__)


def _get_template_env() -> Environment:
    template_dir = Path(__file__).parent.parent / "templates"
    return Environment(
        loader=FileSystemLoader(str(template_dir)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_proto(ast: ProtoFile) -> str:
    """Render a ProtoFile AST back into .proto source text."""
    env = _get_template_env()
    template = env.get_template("proto.j2")

    source = template.render(
        syntax=ast.syntax,
        package=ast.package,
        imports=ast.imports,
        options=ast.options,
        enums=ast.enums,
        messages=ast.messages,
        services=ast.services,
    )
    # Without a syntax line the first section starts with its separator
    return source.lstrip("\n")


def generate_proto_files(
    files: Dict[str, ProtoFile],
    output_dir: str,
) -> List[str]:
    """Render each AST into ``output_dir`` under its relative path.

    ``files`` maps a path relative to ``output_dir`` to its AST.
    Returns list of generated file paths.
    """
    generated: List[str] = []
    for rel_path, ast in files.items():
        file_path = os.path.join(output_dir, rel_path)
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        Path(file_path).write_text(render_proto(ast), encoding="utf-8")
        logger.debug("Wrote %s", file_path)
        generated.append(file_path)

    return generated
