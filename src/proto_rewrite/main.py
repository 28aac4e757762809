from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from proto_rewrite.generator.proto_generator import generate_proto_files
from proto_rewrite.logging_utils import setup_logging
from proto_rewrite.parser.proto_ast import ProtoFile
from proto_rewrite.parser.proto_ast_parser import ProtoParseError
from proto_rewrite.parser.proto_parser import parse_proto_file
from proto_rewrite.pipeline import DEFAULT_PASSES, UnknownPassError, resolve_passes, rewrite_file


@dataclass
class RewriteOptions:
    working_path: str
    output_dir: Optional[str] = None
    passes: Tuple[str, ...] = DEFAULT_PASSES
    verbose: bool = False

    def resolved_output_dir(self) -> str:
        if self.output_dir:
            return self.output_dir
        base = Path(self.working_path)
        if base.is_file():
            base = base.parent
        return str(base / "rewritten")


def _find_files(working_path: str, extensions: List[str], exclude_dir: str) -> List[str]:
    """Recursively find files with given extensions under working_path."""
    root = Path(working_path)
    if root.is_file():
        return [str(root)]

    excluded = Path(exclude_dir).resolve()
    results = []
    for ext in extensions:
        for p in root.rglob(f"*{ext}"):
            if excluded in p.resolve().parents:
                continue
            results.append(str(p))
    return sorted(results)


def run(options: RewriteOptions) -> List[str]:
    """Main pipeline: parse, rewrite, generate."""
    output_dir = options.resolved_output_dir()

    # 1. Find input files
    proto_files = _find_files(options.working_path, [".proto"], output_dir)
    if not proto_files:
        print(f"No .proto files found under {options.working_path}")
        sys.exit(1)

    print(f"Found {len(proto_files)} proto file(s)")

    # 2. Parse and rewrite
    base = Path(options.working_path)
    rewritten: Dict[str, ProtoFile] = {}
    for pf in proto_files:
        try:
            ast = parse_proto_file(pf)
        except ProtoParseError as e:
            print(f"FATAL: {pf}: {e}", file=sys.stderr)
            sys.exit(1)

        rel_path = os.path.basename(pf) if base.is_file() else os.path.relpath(pf, base)
        rewritten[rel_path] = rewrite_file(ast, options.passes)
        print(f"  Rewrote {pf}: {', '.join(options.passes) or 'no passes'}")

    # 3. Generate
    generated = generate_proto_files(rewritten, output_dir)
    for f in generated:
        print(f"  Generated: {f}")

    print("Done!")
    return generated


def main():
    parser = argparse.ArgumentParser(
        description="Normalize Protocol Buffers schema files",
    )
    parser.add_argument(
        "--working-path",
        required=True,
        help="A .proto file, or a directory to scan for .proto files",
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory for rewritten files (default: <working-path>/rewritten)",
    )
    parser.add_argument(
        "--passes",
        default=",".join(DEFAULT_PASSES),
        help=f"Comma-separated passes to run in order (default: {','.join(DEFAULT_PASSES)})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()
    setup_logging(verbose=args.verbose)

    names = [n.strip() for n in args.passes.split(",") if n.strip()]
    try:
        passes = resolve_passes(names)
    except UnknownPassError as e:
        parser.error(str(e))

    run(
        RewriteOptions(
            working_path=args.working_path,
            output_dir=args.output_dir,
            passes=passes,
            verbose=args.verbose,
        )
    )


if __name__ == "__main__":
    main()
