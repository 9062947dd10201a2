"""Positive dynamic accumulator with an in-memory membership store.

Every update checks the store first, runs the cryptographic update, and only
then commits to the store, so a failed update leaves both untouched.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from zkcred.engine import accumulator as engine_accumulator
from zkcred.sdk.config import ZkCredConfig, get_config
from zkcred.sdk.errors import DuplicateMember, NotAMember
from zkcred.sdk.models import ACCUMULATOR, Params, PublicKey, SecretKey
from zkcred.sdk.signing import generate_params

logger = logging.getLogger(__name__)


class AccumulatorState(Protocol):
    """Membership store consulted and updated alongside the accumulator."""

    def has(self, member: bytes) -> bool: ...

    def add(self, member: bytes) -> None: ...

    def remove(self, member: bytes) -> None: ...


class InMemoryState:
    """Set-backed membership store."""

    def __init__(self) -> None:
        self.state: set[bytes] = set()

    def has(self, member: bytes) -> bool:
        return member in self.state

    def add(self, member: bytes) -> None:
        if member in self.state:
            raise DuplicateMember("Member already present")
        self.state.add(member)

    def remove(self, member: bytes) -> None:
        if member not in self.state:
            raise NotAMember("Member not present")
        self.state.remove(member)

    def add_batch(self, members: Iterable[bytes]) -> None:
        batch = list(members)
        _check_absent(self, batch)
        self.state.update(batch)

    def remove_batch(self, members: Iterable[bytes]) -> None:
        batch = list(members)
        _check_present(self, batch)
        self.state.difference_update(batch)

    def __len__(self) -> int:
        return len(self.state)


def _check_absent(state: AccumulatorState, members: list[bytes]) -> None:
    if len(set(members)) != len(members):
        raise DuplicateMember("Batch contains the same member twice")
    if any(state.has(m) for m in members):
        raise DuplicateMember("Member already present")


def _check_present(state: AccumulatorState, members: list[bytes]) -> None:
    if len(set(members)) != len(members):
        raise NotAMember("Batch removes the same member twice")
    if not all(state.has(m) for m in members):
        raise NotAMember("Member not present")


def encode_positive_number_as_member(n: int) -> bytes:
    """Encode a non-negative integer as an accumulator member."""
    return engine_accumulator.encode_positive_number(n)


def generate_accumulator_params(label: bytes | None = None, config: ZkCredConfig | None = None) -> Params:
    """Accumulator params derived from ``label`` or the configured default label."""
    return generate_params(ACCUMULATOR, 0, label if label is not None else (config or get_config()).params_label(ACCUMULATOR))


def generate_accumulator_secret_key(seed: bytes | None = None) -> SecretKey:
    return SecretKey(value=engine_accumulator.generate_secret_key(seed), scheme=ACCUMULATOR)


def generate_accumulator_public_key(secret_key: SecretKey, params: Params) -> PublicKey:
    return PublicKey(value=engine_accumulator.generate_public_key(secret_key.value, params.value), scheme=ACCUMULATOR)


class PositiveAccumulator:
    """Accumulator supporting additions, removals and membership witnesses."""

    def __init__(self, params: Params, accumulated: bytes | None = None) -> None:
        if params.scheme != ACCUMULATOR:
            raise ValueError("Expected accumulator params")
        self.params = params
        self.accumulated = accumulated if accumulated is not None else engine_accumulator.initial_accumulated(params.value)

    def _apply(self, additions: list[bytes], removals: list[bytes], secret_key: SecretKey) -> None:
        self.accumulated = engine_accumulator.update(self.accumulated, additions, removals, secret_key.value)
        logger.debug("Accumulator updated: %d added, %d removed", len(additions), len(removals))

    def add(self, member: bytes, secret_key: SecretKey, state: AccumulatorState) -> None:
        if state.has(member):
            raise DuplicateMember("Member already present")
        self._apply([member], [], secret_key)
        state.add(member)

    def remove(self, member: bytes, secret_key: SecretKey, state: AccumulatorState) -> None:
        if not state.has(member):
            raise NotAMember("Member not present")
        self._apply([], [member], secret_key)
        state.remove(member)

    def add_batch(self, members: Iterable[bytes], secret_key: SecretKey, state: AccumulatorState) -> None:
        batch = list(members)
        _check_absent(state, batch)
        self._apply(batch, [], secret_key)
        for m in batch:
            state.add(m)

    def remove_batch(self, members: Iterable[bytes], secret_key: SecretKey, state: AccumulatorState) -> None:
        batch = list(members)
        _check_present(state, batch)
        self._apply([], batch, secret_key)
        for m in batch:
            state.remove(m)

    def add_remove_batches(
        self,
        additions: Iterable[bytes],
        removals: Iterable[bytes],
        secret_key: SecretKey,
        state: AccumulatorState,
    ) -> None:
        """Add and remove in one update; additions must be new, removals present."""
        adds, removes = list(additions), list(removals)
        if set(adds) & set(removes):
            raise DuplicateMember("Member both added and removed in one batch")
        _check_absent(state, adds)
        _check_present(state, removes)
        self._apply(adds, removes, secret_key)
        for m in adds:
            state.add(m)
        for m in removes:
            state.remove(m)

    def membership_witness(self, member: bytes, secret_key: SecretKey, state: AccumulatorState) -> bytes:
        """Witness for ``member`` against the current accumulated value."""
        if not state.has(member):
            raise NotAMember("Member not present")
        return engine_accumulator.membership_witness(self.accumulated, member, secret_key.value)

    def membership_witnesses_for_batch(
        self, members: Iterable[bytes], secret_key: SecretKey, state: AccumulatorState
    ) -> list[bytes]:
        return [self.membership_witness(m, secret_key, state) for m in members]

    def verify_membership_witness(self, member: bytes, witness: bytes, public_key: PublicKey) -> bool:
        ok = engine_accumulator.verify_membership(member, witness, self.accumulated, public_key.value, self.params.value)
        if not ok:
            logger.warning("Membership witness verification failed")
        return ok
