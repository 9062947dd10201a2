"""Test the positive accumulator and its membership store."""

from __future__ import annotations

import pytest

from zkcred.sdk.accumulator import (
    InMemoryState,
    PositiveAccumulator,
    encode_positive_number_as_member,
)
from zkcred.sdk.errors import DuplicateMember, NotAMember
from zkcred.sdk.models import Params, PublicKey, SecretKey

AccumulatorKeys = tuple[Params, SecretKey, PublicKey]


def _members(*ns: int) -> list[bytes]:
    return [encode_positive_number_as_member(n) for n in ns]


def test_encode_positive_number() -> None:
    """Test members are 32-byte big-endian encodings."""
    assert encode_positive_number_as_member(1) == b"\x00" * 31 + b"\x01"
    with pytest.raises(ValueError, match="non-negative"):
        encode_positive_number_as_member(-1)


def test_add_and_remove(accumulator_keys: AccumulatorKeys) -> None:
    """Test duplicate additions and removals of absent members are rejected."""
    params, sk, _ = accumulator_keys
    e1, e2 = _members(101, 102)
    accumulator = PositiveAccumulator(params)
    state = InMemoryState()
    initial = accumulator.accumulated

    accumulator.add(e1, sk, state)
    assert accumulator.accumulated != initial
    assert state.has(e1)

    with pytest.raises(DuplicateMember):
        accumulator.add(e1, sk, state)
    with pytest.raises(NotAMember):
        accumulator.remove(e2, sk, state)

    accumulator.remove(e1, sk, state)
    assert accumulator.accumulated == initial
    assert len(state) == 0


def test_failed_batch_leaves_state_unchanged(accumulator_keys: AccumulatorKeys) -> None:
    """Test a rejected batch changes neither the store nor the accumulated value."""
    params, sk, _ = accumulator_keys
    e1, e2, e3, e4 = _members(1, 2, 3, 4)
    accumulator = PositiveAccumulator(params)
    state = InMemoryState()
    accumulator.add_batch([e1, e2, e3], sk, state)
    before = accumulator.accumulated

    with pytest.raises(DuplicateMember):
        accumulator.add_batch([e3, e4], sk, state)
    with pytest.raises(DuplicateMember):
        accumulator.add_batch([e4, e4], sk, state)
    with pytest.raises(NotAMember):
        accumulator.remove_batch([e1, e4], sk, state)

    assert len(state) == 3
    assert not state.has(e4)
    assert accumulator.accumulated == before


def test_batches_match_single_updates(accumulator_keys: AccumulatorKeys) -> None:
    """Test batch updates reach the same value as one-by-one updates."""
    params, sk, _ = accumulator_keys
    members = _members(10, 11, 12)
    single, batched = PositiveAccumulator(params), PositiveAccumulator(params)
    single_state, batched_state = InMemoryState(), InMemoryState()

    for m in members:
        single.add(m, sk, single_state)
    batched.add_batch(members, sk, batched_state)
    assert single.accumulated == batched.accumulated

    single.remove(members[0], sk, single_state)
    batched.remove_batch(members[:1], sk, batched_state)
    assert single.accumulated == batched.accumulated


def test_add_remove_batches(accumulator_keys: AccumulatorKeys) -> None:
    """Test combined additions and removals in one update."""
    params, sk, _ = accumulator_keys
    e1, e2, e3 = _members(21, 22, 23)
    accumulator = PositiveAccumulator(params)
    state = InMemoryState()
    accumulator.add_batch([e1, e2], sk, state)

    accumulator.add_remove_batches([e3], [e1], sk, state)

    assert state.state == {e2, e3}
    with pytest.raises(DuplicateMember, match="both added and removed"):
        accumulator.add_remove_batches([e1], [e1], sk, state)


def test_membership_witness(accumulator_keys: AccumulatorKeys) -> None:
    """Test witnesses verify for members and go stale after updates."""
    params, sk, pk = accumulator_keys
    e1, e2, e3 = _members(31, 32, 33)
    accumulator = PositiveAccumulator(params)
    state = InMemoryState()
    accumulator.add_batch([e1, e2], sk, state)

    w1, w2 = accumulator.membership_witnesses_for_batch([e1, e2], sk, state)
    assert accumulator.verify_membership_witness(e1, w1, pk)
    assert accumulator.verify_membership_witness(e2, w2, pk)
    assert not accumulator.verify_membership_witness(e2, w1, pk)

    with pytest.raises(NotAMember):
        accumulator.membership_witness(e3, sk, state)

    accumulator.add(e3, sk, state)
    assert not accumulator.verify_membership_witness(e1, w1, pk)
    assert accumulator.verify_membership_witness(e1, accumulator.membership_witness(e1, sk, state), pk)


def test_requires_accumulator_params(person_params: dict) -> None:
    """Test signature params cannot back an accumulator."""
    with pytest.raises(ValueError, match="accumulator params"):
        PositiveAccumulator(next(iter(person_params.values())))
