"""Positive dynamic accumulator (VB style) over BLS12-381.

``V' = V^(y + alpha)`` on add and ``V^(1/(y + alpha))`` on remove; a membership
witness for ``y`` is ``V^(1/(y + alpha))`` and verifies with one pairing check.
State tracking (who is a member) is the caller's job.
"""

from __future__ import annotations

from functools import reduce

from zkcred.engine.group import (
    add,
    curve_order,
    dumps,
    hash_to_scalar,
    inverse,
    load_typed,
    mul,
    pairings_equal,
    point_from_bytes,
    point_to_bytes,
    point_to_hex,
    point_from_hex,
    random_scalar,
    scalar_from_bytes,
    scalar_from_hex,
    scalar_to_hex,
)
from zkcred.engine.params import ACCUMULATOR, load_generators


def generate_secret_key(seed: bytes | None = None) -> bytes:
    alpha = hash_to_scalar(b"accumulator-secret", seed) if seed is not None else random_scalar()
    return dumps({"type": "secret_key", "scheme": ACCUMULATOR, "alpha": scalar_to_hex(alpha)})


def generate_public_key(secret_key: bytes, params: bytes) -> bytes:
    alpha = _alpha(secret_key)
    gens = load_generators(params, ACCUMULATOR)
    return dumps({"type": "public_key", "scheme": ACCUMULATOR, "q": point_to_hex(mul(gens.g2, alpha))})


def initial_accumulated(params: bytes) -> bytes:
    return point_to_bytes(load_generators(params, ACCUMULATOR).g1)


def encode_positive_number(n: int) -> bytes:
    if n < 0 or n >= curve_order:
        raise ValueError("Accumulator member must be a non-negative number below the group order")
    return n.to_bytes(32, "big")


def _alpha(secret_key: bytes) -> int:
    sk = load_typed(secret_key, "secret_key")
    if sk["scheme"] != ACCUMULATOR:
        raise ValueError("Expected an accumulator secret key")
    return scalar_from_hex(sk["alpha"])


def _factor(members: list[bytes], alpha: int) -> int:
    factors = [(scalar_from_bytes(m) + alpha) % curve_order for m in members]
    if any(f == 0 for f in factors):
        raise ValueError("Member collides with the accumulator secret")
    return reduce(lambda a, b: a * b % curve_order, factors, 1)


def update(accumulated: bytes, additions: list[bytes], removals: list[bytes], secret_key: bytes) -> bytes:
    """Apply a batch of additions and removals and return the new accumulated value."""
    alpha = _alpha(secret_key)
    exponent = _factor(additions, alpha) * inverse(_factor(removals, alpha))
    return point_to_bytes(mul(point_from_bytes(accumulated), exponent))


def membership_witness(accumulated: bytes, member: bytes, secret_key: bytes) -> bytes:
    alpha = _alpha(secret_key)
    w = mul(point_from_bytes(accumulated), inverse(_factor([member], alpha)))
    return point_to_bytes(w)


def verify_membership(member: bytes, witness: bytes, accumulated: bytes, public_key: bytes, params: bytes) -> bool:
    """Check ``e(C, P~^y * Q~) == e(V, P~)``."""
    try:
        gens = load_generators(params, ACCUMULATOR)
        pk = load_typed(public_key, "public_key")
        y = scalar_from_bytes(member)
        lhs_g2 = add(mul(gens.g2, y), point_from_hex(pk["q"]))
        return pairings_equal(point_from_bytes(witness), lhs_g2, point_from_bytes(accumulated), gens.g2)
    except (ValueError, KeyError, TypeError):
        return False
