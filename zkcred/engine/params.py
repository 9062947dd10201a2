"""Label-derived public parameters.

All generators are hashed to the curve from a public label, so parameters are
fully described by ``(scheme, label, message_count)`` and growing or shrinking
them keeps every existing generator in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from nacl.utils import random as random_bytes

from zkcred.engine.group import Point, dumps, hash_to_g1, hash_to_g2, load_typed

SIGNATURE_SCHEMES = ("bbs", "bbs_plus", "ps", "mac")
ACCUMULATOR = "accumulator"


@dataclass(frozen=True)
class Generators:
    """Materialized generators for one ``(scheme, label, count)`` triple."""

    scheme: str
    label: bytes
    message_count: int
    g1: Point
    g2: Point | None
    h0: Point | None
    h: tuple[Point, ...]


def _gen_g1(scheme: str, label: bytes, tag: bytes) -> Point:
    return hash_to_g1(scheme.encode() + b"|" + label + b"|" + tag)


def _gen_g2(scheme: str, label: bytes, tag: bytes) -> Point:
    return hash_to_g2(scheme.encode() + b"|" + label + b"|" + tag)


@lru_cache(maxsize=1024)
def _message_generator(scheme: str, label: bytes, index: int) -> Point:
    return _gen_g1(scheme, label, b"h" + index.to_bytes(4, "big"))


@lru_cache(maxsize=64)
def _base_generators(scheme: str, label: bytes) -> tuple[Point, Point | None, Point | None]:
    if scheme == "bbs":
        return _gen_g1(scheme, label, b"g1"), _gen_g2(scheme, label, b"g2"), None
    if scheme in ("bbs_plus", "mac"):
        return _gen_g1(scheme, label, b"g1"), _gen_g2(scheme, label, b"g2"), _gen_g1(scheme, label, b"h0")
    if scheme in ("ps", ACCUMULATOR):
        return _gen_g1(scheme, label, b"g1"), _gen_g2(scheme, label, b"g2"), None
    raise ValueError(f"Unknown scheme {scheme}")


def generators(scheme: str, label: bytes, message_count: int) -> Generators:
    g1, g2, h0 = _base_generators(scheme, label)
    if scheme in ("ps", ACCUMULATOR):
        h: tuple[Point, ...] = ()
    else:
        h = tuple(_message_generator(scheme, label, i) for i in range(message_count))
    return Generators(scheme, label, message_count, g1, g2, h0, h)


def generate_params(scheme: str, message_count: int, label: bytes | None = None) -> bytes:
    """Create a params blob; a random label is drawn when none is given."""
    if scheme not in SIGNATURE_SCHEMES + (ACCUMULATOR,):
        raise ValueError(f"Unknown scheme {scheme}")
    if message_count < 0:
        raise ValueError("Message count must not be negative")
    label = label if label is not None else random_bytes(32)
    return dumps({"type": "params", "scheme": scheme, "label": label.hex(), "message_count": message_count})


def adapt_params(params: bytes, message_count: int) -> bytes:
    obj = load_typed(params, "params")
    return generate_params(obj["scheme"], message_count, bytes.fromhex(obj["label"]))


def params_info(params: bytes | dict[str, Any]) -> tuple[str, bytes, int]:
    obj = load_typed(params, "params") if isinstance(params, bytes) else params
    if obj.get("type") != "params":
        raise ValueError("Expected params object")
    return obj["scheme"], bytes.fromhex(obj["label"]), int(obj["message_count"])


def load_generators(params: bytes | dict[str, Any], scheme: str | tuple[str, ...] | None = None) -> Generators:
    name, label, count = params_info(params)
    allowed = (scheme,) if isinstance(scheme, str) else scheme
    if allowed is not None and name not in allowed:
        raise ValueError(f"Params are for scheme {name}, expected {allowed}")
    return generators(name, label, count)
