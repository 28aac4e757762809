"""Ensure every enum has a value numbered 0.

proto3 requires the first enum value to be zero. Enums without one get a
synthetic ``DEFAULT = 0`` value at the front.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from proto_rewrite.parser.proto_ast import ProtoEnum, ProtoFile, ProtoMessage, new_enum_field

logger = logging.getLogger(__name__)

DEFAULT_ENUM_VALUE_NAME = "DEFAULT"


def complete_zero_in_enums(f: ProtoFile) -> ProtoFile:
    """Return a copy of ``f`` in which every enum, at any depth, has a 0 value."""
    if not f.messages and not f.enums:
        return f

    return replace(
        f,
        enums=[_complete_zero_if_absent(e) for e in f.enums],
        messages=[_complete_zero_in_message(m) for m in f.messages],
    )


def _complete_zero_in_message(m: ProtoMessage) -> ProtoMessage:
    if not m.nested_messages and not m.nested_enums:
        return m

    return replace(
        m,
        nested_enums=[_complete_zero_if_absent(e) for e in m.nested_enums],
        nested_messages=[_complete_zero_in_message(n) for n in m.nested_messages],
    )


def _complete_zero_if_absent(e: ProtoEnum) -> ProtoEnum:
    if any(v.index == 0 for v in e.fields):
        return e

    logger.debug("Adding %s = 0 to enum %s", DEFAULT_ENUM_VALUE_NAME, e.name)
    return replace(e, fields=[new_enum_field(DEFAULT_ENUM_VALUE_NAME, 0)] + e.fields)
