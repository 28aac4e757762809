"""Rename enum values whose names start with a digit.

Identifiers in proto cannot begin with a digit, so such values are
prefixed with ``NUM_``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List

from proto_rewrite.parser.proto_ast import ProtoEnum, ProtoEnumField, ProtoFile, ProtoMessage

logger = logging.getLogger(__name__)

ENUM_VALUE_PREFIX = "NUM_"

_DIGITS = "0123456789"


def prefix_digit_enum_values(f: ProtoFile) -> ProtoFile:
    """Return a copy of ``f`` with digit-leading enum value names prefixed."""
    if not f.messages and not f.enums:
        return f

    return replace(
        f,
        enums=[_prefix_in_enum(e) for e in f.enums],
        messages=[_prefix_in_message(m) for m in f.messages],
    )


def _prefix_in_message(m: ProtoMessage) -> ProtoMessage:
    if not m.nested_messages and not m.nested_enums:
        return m

    return replace(
        m,
        nested_enums=[_prefix_in_enum(e) for e in m.nested_enums],
        nested_messages=[_prefix_in_message(n) for n in m.nested_messages],
    )


def _prefix_in_enum(e: ProtoEnum) -> ProtoEnum:
    fields: List[ProtoEnumField] = []
    for v in e.fields:
        if not _starts_with_digit(v.name):
            fields.append(v)
            continue

        renamed = ENUM_VALUE_PREFIX + v.name
        logger.debug("Renaming %s.%s to %s", e.name, v.name, renamed)
        fields.append(replace(v, name=renamed))
    return replace(e, fields=fields)


def _starts_with_digit(name: str) -> bool:
    return bool(name) and name[0] in _DIGITS
