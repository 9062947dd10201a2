"""Message structures: the public shape of a credential's attributes.

A structure is a tree of ``Node`` mappings whose leaves carry an ``Encoding``.
Flattening joins nested names with dots (array items use their position) and
sorts the paths; a leaf's position in that sorted list is its message index.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Union

from zkcred.sdk.errors import InvalidSchema, UnknownFieldName


class EncodingKind(str, Enum):
    """How a leaf value becomes a field element."""
    DEFAULT = "default"
    STRING = "string"
    INTEGER = "integer"
    POSITIVE_INTEGER = "positiveInteger"
    DECIMAL = "decimal"
    TIMESTAMP = "timestamp"
    BYTES = "bytes"


@dataclass(frozen=True)
class Encoding:
    """Leaf of a message structure."""

    kind: EncodingKind = EncodingKind.DEFAULT
    minimum: int | None = None
    decimal_places: int | None = None


@dataclass(frozen=True)
class Node:
    """Inner node of a message structure; children keep their declared order."""

    children: tuple[tuple[str, MessageStructure], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        names = [name for name, _ in self.children]
        if len(set(names)) != len(names):
            raise InvalidSchema("Duplicate field names in message structure")
        if any(not name or "." in name for name in names):
            raise InvalidSchema("Field names must be non-empty and cannot contain '.'")

    def get(self, name: str) -> MessageStructure | None:
        return dict(self.children).get(name)


MessageStructure = Union[Encoding, Node]


def structure_from_dict(spec: Mapping[str, Any]) -> Node:
    """Build a structure from a plain mapping of name to ``None`` (leaf) or nested mapping."""
    children = []
    for name, value in spec.items():
        if value is None:
            children.append((name, Encoding()))
        elif isinstance(value, Encoding):
            children.append((name, value))
        elif isinstance(value, Mapping):
            children.append((name, structure_from_dict(value)))
        else:
            raise InvalidSchema(f"Structure entry {name} must be None or a mapping")
    return Node(tuple(children))


def structure_of(obj: Mapping[str, Any]) -> Node:
    """Derive the value-free structure of an attribute object."""
    redacted = _redact(obj)
    if not isinstance(redacted, dict):
        raise InvalidSchema("Attribute object must be a non-empty mapping")
    return structure_from_dict(redacted)


def _redact(obj: Any) -> Any:
    if isinstance(obj, Mapping) and obj:
        return {str(k): _redact(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)) and obj:
        return {str(i): _redact(v) for i, v in enumerate(obj)}
    return None


def _walk(structure: MessageStructure, prefix: str) -> Iterable[tuple[str, Encoding]]:
    if isinstance(structure, Encoding):
        yield prefix, structure
        return
    if not structure.children:
        raise InvalidSchema(f"Empty object at {prefix or 'root'}")
    for name, child in structure.children:
        yield from _walk(child, f"{prefix}.{name}" if prefix else name)


def flatten_structure(structure: MessageStructure | Mapping[str, Any]) -> list[tuple[str, Encoding]]:
    """Leaf paths with their encodings, sorted by path."""
    node = structure if isinstance(structure, (Encoding, Node)) else structure_from_dict(structure)
    return sorted(_walk(node, ""), key=lambda item: item[0])


def flatten_object(obj: Any, prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings and lists into dot-joined paths.

    Empty mappings and lists are kept as leaf values.
    """
    items: Iterable[tuple[Any, Any]]
    if isinstance(obj, Mapping) and obj:
        items = obj.items()
    elif isinstance(obj, (list, tuple)) and obj:
        items = enumerate(obj)
    else:
        return {prefix: obj}
    flat: dict[str, Any] = {}
    for key, value in items:
        flat.update(flatten_object(value, f"{prefix}.{key}" if prefix else str(key)))
    return flat


def unflatten_object(flat: Mapping[str, Any]) -> dict[str, Any]:
    """Inverse of ``flatten_object``; list positions come back as string keys."""
    result: dict[str, Any] = {}
    for path, value in flat.items():
        *parents, leaf = path.split(".")
        node = result
        for name in parents:
            node = node.setdefault(name, {})
        node[leaf] = value
    return result


def is_valid_msg_structure(messages: Mapping[str, Any], structure: MessageStructure | Mapping[str, Any]) -> bool:
    """Check the object's flattened names equal the structure's leaf names."""
    names_in_struct = [path for path, _ in flatten_structure(structure)]
    return sorted(flatten_object(messages)) == names_in_struct


def get_indices_for_msg_names(names: Iterable[str], structure: MessageStructure | Mapping[str, Any]) -> list[int]:
    """Message indices for the given names, in the order given."""
    all_names = [path for path, _ in flatten_structure(structure)]
    positions = {path: i for i, path in enumerate(all_names)}
    indices = []
    for name in names:
        if name not in positions:
            raise UnknownFieldName(f"Message name {name} was not found")
        indices.append(positions[name])
    return indices
