"""Witness-equality meta statements across statements of a composite proof."""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping

from zkcred.sdk.encoder import as_encoder
from zkcred.sdk.errors import UnknownFieldName
from zkcred.sdk.models import MetaStatement


def build_equality(equality: Mapping[int, tuple[Iterable[str], Any]]) -> MetaStatement:
    """One equality set from ``{statement index: (field names, schema)}``.

    Names resolve to message indices through each statement's own schema, so
    credentials under different schemas can be equated field by field.
    """
    refs = set()
    unmatched = 0
    for statement_index, (names, schema) in equality.items():
        encoder = as_encoder(schema)
        for name in names:
            if name in encoder.names:
                refs.add((statement_index, encoder.index_of(name)))
            else:
                unmatched += 1
    if unmatched:
        raise UnknownFieldName(
            f"Some of the equality message names were not found in the statement schemas, "
            f"{unmatched} extra names found"
        )
    return MetaStatement(refs=frozenset(refs))


def witness_equality(*refs: tuple[int, int]) -> MetaStatement:
    return MetaStatement(refs=frozenset(refs))


class MetaStatements:
    """Ordered collection of meta statements passed to the proof spec."""

    def __init__(self, items: Iterable[MetaStatement] = ()) -> None:
        self._items: list[MetaStatement] = list(items)

    def add(self, meta: MetaStatement) -> int:
        """Append a meta statement and return its position."""
        self._items.append(meta)
        return len(self._items) - 1

    def add_witness_equality(self, *refs: tuple[int, int]) -> int:
        return self.add(witness_equality(*refs))

    def union(self, other: Iterable[MetaStatement]) -> MetaStatements:
        return MetaStatements([*self._items, *other])

    def __iter__(self) -> Iterator[MetaStatement]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> MetaStatement:
        return self._items[index]
