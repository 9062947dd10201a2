"""BLS12-381 arithmetic and byte codecs for the reference engine.

Thin layer over ``py_ecc.optimized_bls12_381``: scalar sampling and hashing,
hash-to-curve generators, point (de)compression and pairing-product checks.
Every blob the engine hands out is canonical JSON built from these helpers.
"""

from __future__ import annotations

import hashlib
import json
from functools import reduce
from typing import Any

from nacl.encoding import RawEncoder
from nacl.hash import blake2b
from nacl.utils import random as random_bytes
from py_ecc.bls.hash_to_curve import hash_to_G1, hash_to_G2
from py_ecc.bls.point_compression import compress_G1, compress_G2, decompress_G1, decompress_G2
from py_ecc.bls.typing import G1Compressed, G2Compressed
from py_ecc.fields import optimized_bls12_381_FQ2 as FQ2
from py_ecc.optimized_bls12_381 import (
    FQ12,
    add,
    curve_order,
    eq,
    final_exponentiate,
    is_inf,
    multiply,
    neg,
    pairing,
)

Point = tuple[Any, Any, Any]

SCALAR_SIZE = 32
G1_SIZE = 48
G2_SIZE = 96

_HASH_PERSON = b"zkcred-engine-v1"
_G1_DST = b"ZKCRED_BLS12381G1_XMD:SHA-256_SSWU_RO_"
_G2_DST = b"ZKCRED_BLS12381G2_XMD:SHA-256_SSWU_RO_"


def random_scalar() -> int:
    """Sample a uniformly random non-zero scalar."""
    while True:
        s = int.from_bytes(random_bytes(64), "big") % curve_order
        if s:
            return s


def hash_to_scalar(*parts: bytes) -> int:
    """Hash length-prefixed parts to a scalar with blake2b."""
    data = b"".join(len(p).to_bytes(8, "big") + p for p in parts)
    digest = blake2b(data, digest_size=64, person=_HASH_PERSON, encoder=RawEncoder)
    return int.from_bytes(digest, "big") % curve_order


def inverse(s: int) -> int:
    if s % curve_order == 0:
        raise ValueError("Cannot invert zero scalar")
    return pow(s, curve_order - 2, curve_order)


def hash_to_g1(message: bytes) -> Point:
    return hash_to_G1(message, _G1_DST, hashlib.sha256)


def hash_to_g2(message: bytes) -> Point:
    return hash_to_G2(message, _G2_DST, hashlib.sha256)


def mul(pt: Point, s: int) -> Point:
    return multiply(pt, s % curve_order)


def combine(terms: list[tuple[Point, int]]) -> Point:
    """Sum of ``base * scalar`` over the given terms (at least one term)."""
    if not terms:
        raise ValueError("Linear combination needs at least one term")
    return reduce(add, (mul(base, s) for base, s in terms))


def points_equal(p1: Point, p2: Point) -> bool:
    return eq(p1, p2)


def is_identity(pt: Point) -> bool:
    return is_inf(pt)


def pairing_product_is_one(pairs: list[tuple[Point, Point]]) -> bool:
    """Check ``prod e(P_i, Q_i) == 1`` for (G1, G2) pairs with one final exponentiation."""
    acc = FQ12.one()
    for p, q in pairs:
        acc = acc * pairing(q, p, final_exponentiate=False)
    return final_exponentiate(acc) == FQ12.one()


def pairings_equal(p1: Point, q1: Point, p2: Point, q2: Point) -> bool:
    """Check ``e(p1, q1) == e(p2, q2)``."""
    return pairing_product_is_one([(p1, q1), (neg(p2), q2)])


# --- codecs ---


def scalar_to_hex(s: int) -> str:
    return (s % curve_order).to_bytes(SCALAR_SIZE, "big").hex()


def scalar_from_bytes(b: bytes) -> int:
    if len(b) != SCALAR_SIZE:
        raise ValueError(f"Scalar must be {SCALAR_SIZE} bytes, got {len(b)}")
    s = int.from_bytes(b, "big")
    if s >= curve_order:
        raise ValueError("Scalar is not reduced modulo the group order")
    return s


def scalar_from_hex(h: str) -> int:
    return scalar_from_bytes(bytes.fromhex(h))


def is_g2(pt: Point) -> bool:
    return isinstance(pt[0], FQ2)


def point_to_bytes(pt: Point) -> bytes:
    if is_g2(pt):
        z1, z2 = compress_G2(pt)
        return int(z1).to_bytes(G1_SIZE, "big") + int(z2).to_bytes(G1_SIZE, "big")
    return int(compress_G1(pt)).to_bytes(G1_SIZE, "big")


def point_from_bytes(b: bytes) -> Point:
    if len(b) == G1_SIZE:
        return decompress_G1(G1Compressed(int.from_bytes(b, "big")))
    if len(b) == G2_SIZE:
        z1 = int.from_bytes(b[:G1_SIZE], "big")
        z2 = int.from_bytes(b[G1_SIZE:], "big")
        return decompress_G2(G2Compressed((z1, z2)))
    raise ValueError(f"Invalid point encoding length {len(b)}")


def point_to_hex(pt: Point) -> str:
    return point_to_bytes(pt).hex()


def point_from_hex(h: str) -> Point:
    return point_from_bytes(bytes.fromhex(h))


def dumps(obj: Any) -> bytes:
    """Canonical JSON bytes (sorted keys, no whitespace)."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")


def loads(blob: bytes) -> Any:
    try:
        return json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Malformed engine blob: {e}") from e


def load_typed(blob: bytes, expected: str | tuple[str, ...], field: str = "type") -> dict[str, Any]:
    """Decode a blob and check its type tag."""
    obj = loads(blob)
    allowed = (expected,) if isinstance(expected, str) else expected
    if not isinstance(obj, dict) or obj.get(field) not in allowed:
        raise ValueError(f"Expected blob of {field} {allowed}")
    return obj
