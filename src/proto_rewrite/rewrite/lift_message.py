"""Lift nested messages to the top level of a proto file.

A nested message is lifted when every definition sharing its name, at any
depth, is structurally identical. One copy moves to the top level and the
nested copies are dropped. This reduces nesting depth without changing the
meaning of the schema.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Set

from proto_rewrite.parser.proto_ast import ProtoFile, ProtoMessage, is_same_type

logger = logging.getLogger(__name__)


def lift_messages(f: ProtoFile) -> ProtoFile:
    """Lift every liftable nested message of ``f`` in place and return ``f``."""
    groups = group_messages_by_name(f)
    targets = exactly_same_messages(groups)
    # A top-level definition already counts as lifted.
    lifted: Dict[str, bool] = {m.name: True for m in f.messages}
    for msg in list(f.messages):
        _lift_message(msg, f, targets, lifted)
    return f


def _lift_message(
    msg: ProtoMessage,
    f: ProtoFile,
    targets: Set[str],
    lifted: Dict[str, bool],
) -> None:
    if not msg.nested_messages:
        return

    children: List[ProtoMessage] = []
    for child in msg.nested_messages:
        _lift_message(child, f, targets, lifted)
        if child.name not in targets:
            children.append(child)
            continue
        if lifted.get(child.name):
            logger.debug("Dropping duplicate %s nested in %s", child.name, msg.name)
        else:
            logger.debug("Lifting %s out of %s", child.name, msg.name)
            f.add_message(child)
            lifted[child.name] = True
    msg.nested_messages = children


def exactly_same_messages(groups: Dict[str, List[ProtoMessage]]) -> Set[str]:
    """Return the names whose definitions are all structurally identical."""
    names: Set[str] = set()
    for name, msgs in groups.items():
        if _all_messages_identical(msgs):
            names.add(name)
        else:
            logger.debug("Keeping %s nested: %d differing definitions", name, len(msgs))
    return names


def _all_messages_identical(msgs: List[ProtoMessage]) -> bool:
    for i in range(len(msgs)):
        for j in range(i + 1, len(msgs)):
            if not is_same_type(msgs[i], msgs[j]):
                return False
    return True


def group_messages_by_name(f: ProtoFile) -> Dict[str, List[ProtoMessage]]:
    """Group every message in ``f``, at any depth, by name.

    Each group lists its messages in depth-first pre-order: a message's
    whole subtree comes before its next sibling.
    """
    groups: Dict[str, List[ProtoMessage]] = {}
    _traverse_messages(f.messages, groups)
    return groups


def _traverse_messages(
    msgs: List[ProtoMessage],
    groups: Dict[str, List[ProtoMessage]],
) -> None:
    for msg in msgs:
        groups.setdefault(msg.name, []).append(msg)
        _traverse_messages(msg.nested_messages, groups)
