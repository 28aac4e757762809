"""AST node definitions for protobuf (.proto) files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ProtoField:
    """A field declaration: [repeated|optional|required] Type name = number [options];

    ``options`` keeps the text between the brackets, e.g. ``packed = true``.
    """

    type_name: str
    field_name: str
    field_number: int
    is_repeated: bool = False
    is_optional: bool = False
    is_required: bool = False
    options: Optional[str] = None


@dataclass
class ProtoOneof:
    """A oneof group inside a message."""

    name: str
    fields: List[ProtoField] = field(default_factory=list)


@dataclass
class ProtoEnumField:
    """An enum value: NAME = index [options];"""

    name: str
    index: int
    options: Optional[str] = None


@dataclass
class ProtoEnum:
    name: str
    fields: List[ProtoEnumField] = field(default_factory=list)
    # Each entry is the body of one reserved statement, e.g. ``2, 9 to 11``
    reserved: List[str] = field(default_factory=list)


@dataclass
class ProtoMessage:
    """A message definition, possibly containing nested messages and enums."""

    name: str
    fields: List[ProtoField] = field(default_factory=list)
    oneofs: List[ProtoOneof] = field(default_factory=list)
    nested_messages: List[ProtoMessage] = field(default_factory=list)
    nested_enums: List[ProtoEnum] = field(default_factory=list)
    reserved: List[str] = field(default_factory=list)


@dataclass
class ProtoRpc:
    name: str
    input_type: str
    output_type: str
    client_streaming: bool = False
    server_streaming: bool = False


@dataclass
class ProtoService:
    name: str
    rpcs: List[ProtoRpc] = field(default_factory=list)


@dataclass
class ProtoOption:
    """A file-level option. ``value`` keeps its source text (quoted for strings)."""

    name: str
    value: str


@dataclass
class ProtoImport:
    path: str
    modifier: Optional[str] = None  # "public" or "weak"


@dataclass
class ProtoFile:
    """Top-level parsed representation of a .proto file.

    ``syntax`` is None when the source has no syntax statement, which
    protoc reads as proto2.
    """

    syntax: Optional[str] = None
    package: Optional[str] = None
    imports: List[ProtoImport] = field(default_factory=list)
    options: List[ProtoOption] = field(default_factory=list)
    messages: List[ProtoMessage] = field(default_factory=list)
    enums: List[ProtoEnum] = field(default_factory=list)
    services: List[ProtoService] = field(default_factory=list)

    def add_message(self, msg: ProtoMessage) -> None:
        self.messages.append(msg)


def new_enum_field(name: str, index: int) -> ProtoEnumField:
    return ProtoEnumField(name=name, index=index)


def is_same_type(a: ProtoMessage, b: ProtoMessage) -> bool:
    """Report whether two messages are structurally identical.

    Names, fields, oneofs, reserved ranges, nested messages and nested enums
    are compared recursively and in order. Where the messages sit in the
    tree does not matter.
    """
    return (
        a.name == b.name
        and a.fields == b.fields
        and a.oneofs == b.oneofs
        and a.reserved == b.reserved
        and a.nested_enums == b.nested_enums
        and len(a.nested_messages) == len(b.nested_messages)
        and all(
            is_same_type(x, y)
            for x, y in zip(a.nested_messages, b.nested_messages)
        )
    )
