"""Apply named rewrite passes to proto ASTs."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Sequence, Tuple

from proto_rewrite.generator.proto_generator import render_proto
from proto_rewrite.parser.proto_ast import ProtoFile
from proto_rewrite.parser.proto_parser import parse_proto
from proto_rewrite.rewrite.enum_prefix import prefix_digit_enum_values
from proto_rewrite.rewrite.lift_message import lift_messages
from proto_rewrite.rewrite.zero_enum import complete_zero_in_enums

logger = logging.getLogger(__name__)

PASSES: Dict[str, Callable[[ProtoFile], ProtoFile]] = {
    "lift": lift_messages,
    "complete-zero": complete_zero_in_enums,
    "prefix-digits": prefix_digit_enum_values,
}

DEFAULT_PASSES: Tuple[str, ...] = ("lift", "complete-zero", "prefix-digits")


class UnknownPassError(ValueError):
    """Raised when a pass name is not registered in PASSES."""


def resolve_passes(names: Sequence[str]) -> Tuple[str, ...]:
    unknown = [n for n in names if n not in PASSES]
    if unknown:
        raise UnknownPassError(
            f"Unknown pass(es): {', '.join(unknown)}. "
            f"Available: {', '.join(PASSES)}"
        )
    return tuple(names)


def rewrite_file(ast: ProtoFile, passes: Sequence[str] = DEFAULT_PASSES) -> ProtoFile:
    """Run ``passes`` over ``ast`` in the given order."""
    for name in resolve_passes(passes):
        logger.debug("Running pass %s", name)
        ast = PASSES[name](ast)
    return ast


def rewrite_proto_text(text: str, passes: Sequence[str] = DEFAULT_PASSES) -> str:
    """Parse, rewrite and render proto source text."""
    return render_proto(rewrite_file(parse_proto(text), passes))
